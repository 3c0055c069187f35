"""
Job and application state machine.

Every transition is a single UPDATE guarded on the row's expected current
status. Accepting an application is the only multi-row write: the guarded
job UPDATE runs first inside the transaction, so of two concurrent accepts
on the same job exactly one sees `status = 'open'` and the other fails with
InvalidStateError.
"""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from marketplace.dependencies import Actor
from marketplace.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
)
from marketplace.models.application import Application
from marketplace.models.enums import ApplicationStatus, JobStatus, SettlementStatus
from marketplace.models.job import Job
from marketplace.services.job_service import get_job
from marketplace.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.OPEN: frozenset({JobStatus.ASSIGNED, JobStatus.CANCELLED}),
    JobStatus.ASSIGNED: frozenset({JobStatus.IN_PROGRESS, JobStatus.DISPUTED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.COMPLETED, JobStatus.DISPUTED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
    JobStatus.DISPUTED: frozenset(),
}

APPLICATION_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.PENDING: frozenset(
        {ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN}
    ),
    ApplicationStatus.ACCEPTED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
    ApplicationStatus.WITHDRAWN: frozenset(),
}

SETTLEMENT_TRANSITIONS: dict[SettlementStatus, frozenset[SettlementStatus]] = {
    SettlementStatus.PENDING: frozenset(
        {SettlementStatus.AUTHORIZED, SettlementStatus.CAPTURED, SettlementStatus.FAILED}
    ),
    SettlementStatus.AUTHORIZED: frozenset({SettlementStatus.CAPTURED, SettlementStatus.FAILED}),
    SettlementStatus.CAPTURED: frozenset({SettlementStatus.REFUNDED, SettlementStatus.DISPUTED}),
    SettlementStatus.FAILED: frozenset(),
    SettlementStatus.REFUNDED: frozenset(),
    SettlementStatus.DISPUTED: frozenset(),
}


def can_transition(table: dict, current, target) -> bool:
    return target in table.get(current, frozenset())


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------

def _load_application(db: Session, application_id: str) -> tuple[Application, Job]:
    application = db.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application not found")
    job = db.get(Job, application.job_id)
    if job is None:
        raise NotFoundError("Job not found")
    return application, job


def accept_application(db: Session, actor: Actor, application_id: str) -> Application:
    application, job = _load_application(db, application_id)
    if job.poster_id != actor.user_id:
        raise ForbiddenError("Only the job's poster can accept applications")
    if application.status != ApplicationStatus.PENDING:
        raise InvalidStateError(f"Application is {application.status.value}, not pending")
    if job.status != JobStatus.OPEN:
        raise InvalidStateError(f"Job is {job.status.value}, not open")

    now = utc_now()
    try:
        assigned = db.execute(
            update(Job)
            .where(Job.id == job.id, Job.status == JobStatus.OPEN)
            .values(status=JobStatus.ASSIGNED, worker_id=application.worker_id, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if assigned.rowcount != 1:
            logger.warning("Accept of application %s lost the race for job %s", application.id, job.id)
            raise InvalidStateError("Job has already been assigned")

        accepted = db.execute(
            update(Application)
            .where(Application.id == application.id, Application.status == ApplicationStatus.PENDING)
            .values(status=ApplicationStatus.ACCEPTED, responded_at=now)
            .execution_options(synchronize_session=False)
        )
        if accepted.rowcount != 1:
            logger.warning("Application %s changed state while being accepted", application.id)
            raise InvalidStateError("Application is no longer pending")

        rejected = db.execute(
            update(Application)
            .where(
                Application.job_id == job.id,
                Application.id != application.id,
                Application.status == ApplicationStatus.PENDING,
            )
            .values(status=ApplicationStatus.REJECTED, responded_at=now)
            .execution_options(synchronize_session=False)
        )
        rejected_count = rejected.rowcount
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(application)
    logger.info(
        "Application %s accepted; job %s assigned to worker %s, %d other application(s) rejected",
        application.id, job.id, application.worker_id, rejected_count,
    )
    return application


def _respond(db: Session, application: Application, target: ApplicationStatus) -> Application:
    if not can_transition(APPLICATION_TRANSITIONS, application.status, target):
        raise InvalidStateError(f"Application is {application.status.value}, not pending")

    try:
        result = db.execute(
            update(Application)
            .where(Application.id == application.id, Application.status == ApplicationStatus.PENDING)
            .values(status=target, responded_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError("Application is no longer pending")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(application)
    logger.info("Application %s %s", application.id, target.value)
    return application


def reject_application(db: Session, actor: Actor, application_id: str) -> Application:
    application, job = _load_application(db, application_id)
    if job.poster_id != actor.user_id:
        raise ForbiddenError("Only the job's poster can reject applications")
    return _respond(db, application, ApplicationStatus.REJECTED)


def withdraw_application(db: Session, actor: Actor, application_id: str) -> Application:
    application, _ = _load_application(db, application_id)
    if application.worker_id != actor.user_id:
        raise ForbiddenError("Only the applying worker can withdraw an application")
    return _respond(db, application, ApplicationStatus.WITHDRAWN)


# ---------------------------------------------------------------------------
# Job progression
# ---------------------------------------------------------------------------

def guarded_job_transition(db: Session, job: Job, target: JobStatus, **values) -> None:
    """Move `job` to `target` without committing; raises if the job moved first."""
    if not can_transition(JOB_TRANSITIONS, job.status, target):
        raise InvalidStateError(f"Cannot move job from {job.status.value} to {target.value}")

    result = db.execute(
        update(Job)
        .where(Job.id == job.id, Job.status == job.status)
        .values(status=target, updated_at=utc_now(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Job %s changed state before %s could be applied", job.id, target.value)
        raise InvalidStateError("Job status changed; reload and retry")


def _transition_job(db: Session, job: Job, target: JobStatus, **values) -> Job:
    previous = job.status
    try:
        guarded_job_transition(db, job, target, **values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info("Job %s moved %s -> %s", job.id, previous.value, target.value)
    return job


def _require_participant(actor: Actor, job: Job, action: str) -> None:
    if actor.user_id not in (job.poster_id, job.worker_id):
        raise ForbiddenError(f"Only the job's poster or assigned worker can {action}")


def start_job(db: Session, actor: Actor, job_id: str) -> Job:
    job = get_job(db, job_id)
    _require_participant(actor, job, "start it")
    return _transition_job(db, job, JobStatus.IN_PROGRESS, actual_start=utc_now())


def complete_job(db: Session, actor: Actor, job_id: str, completion_notes: str | None = None) -> Job:
    job = get_job(db, job_id)
    _require_participant(actor, job, "complete it")
    return _transition_job(
        db, job, JobStatus.COMPLETED, actual_end=utc_now(), completion_notes=completion_notes
    )


def cancel_job(db: Session, actor: Actor, job_id: str) -> Job:
    job = get_job(db, job_id)
    if job.poster_id != actor.user_id:
        raise ForbiddenError("Only the job's poster can cancel it")
    return _transition_job(db, job, JobStatus.CANCELLED)


def dispute_job(db: Session, actor: Actor, job_id: str) -> Job:
    job = get_job(db, job_id)
    _require_participant(actor, job, "dispute it")
    return _transition_job(db, job, JobStatus.DISPUTED)


def review_job(db: Session, actor: Actor, job_id: str, rating: int, review: str | None = None) -> Job:
    job = get_job(db, job_id)
    if job.poster_id == actor.user_id:
        rating_col, review_col = Job.worker_rating, Job.worker_review
    elif job.worker_id is not None and job.worker_id == actor.user_id:
        rating_col, review_col = Job.poster_rating, Job.poster_review
    else:
        raise ForbiddenError("Only the job's poster or assigned worker can review it")
    if job.status != JobStatus.COMPLETED:
        raise InvalidStateError("Only completed jobs can be reviewed")
    if getattr(job, rating_col.key) is not None:
        raise ConflictError("You have already reviewed this job")

    try:
        result = db.execute(
            update(Job)
            .where(Job.id == job.id, Job.status == JobStatus.COMPLETED, rating_col.is_(None))
            .values({rating_col: rating, review_col: review, Job.updated_at: utc_now()})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("You have already reviewed this job")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info("Job %s reviewed by %s", job.id, actor.user_id)
    return job
