import logging
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.dependencies import Actor
from marketplace.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from marketplace.models.application import Application
from marketplace.models.enums import ApplicationStatus, JobStatus
from marketplace.models.job import Job
from marketplace.schemas.application import ApplicationCreate
from marketplace.schemas.common import PageMeta
from marketplace.services.job_service import get_job, require_role
from marketplace.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


def apply_to_job(db: Session, actor: Actor, job_id: str, req: ApplicationCreate) -> Application:
    require_role(actor, "worker", "apply to jobs")
    job = get_job(db, job_id)
    if job.poster_id == actor.user_id:
        raise ForbiddenError("You cannot apply to your own job")
    if job.status != JobStatus.OPEN:
        raise InvalidStateError("Job is not available for applications")

    existing = (
        db.query(func.count(Application.id))
        .filter(Application.job_id == job_id, Application.worker_id == actor.user_id)
        .scalar()
    )
    if existing:
        raise ConflictError("You have already applied to this job")

    application = Application(
        id=str(uuid.uuid4()),
        job_id=job_id,
        worker_id=actor.user_id,
        message=req.message,
        proposed_price=req.proposed_price,
        estimated_completion_time=req.estimated_completion_time,
        status=ApplicationStatus.PENDING,
        applied_at=utc_now(),
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against the same worker's concurrent application.
        db.rollback()
        raise ConflictError("You have already applied to this job")
    db.refresh(application)
    logger.info("Worker %s applied to job %s (%s)", actor.user_id, job_id, application.id)
    return application


def get_application(db: Session, actor: Actor, application_id: str) -> Application:
    application = db.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application not found")
    if actor.user_id not in (application.worker_id, application.job.poster_id):
        raise ForbiddenError("You cannot view this application")
    return application


def list_job_applications(db: Session, actor: Actor, job_id: str) -> list[Application]:
    job = get_job(db, job_id)
    if job.poster_id != actor.user_id:
        raise ForbiddenError("Only the job's poster can list its applications")
    return (
        db.query(Application)
        .filter(Application.job_id == job_id)
        .order_by(Application.applied_at.desc(), Application.id)
        .all()
    )


def list_my_applications(
    db: Session,
    actor: Actor,
    role: str | None = None,
    status: ApplicationStatus | None = None,
    job_id: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Application], PageMeta]:
    page = max(1, page)
    limit = max(1, min(limit, settings.max_page_size))

    as_worker = Application.worker_id == actor.user_id
    as_poster = Application.job_id.in_(select(Job.id).where(Job.poster_id == actor.user_id))
    query = db.query(Application)
    if role == "worker":
        query = query.filter(as_worker)
    elif role == "poster":
        query = query.filter(as_poster)
    else:
        query = query.filter(or_(as_worker, as_poster))

    if status:
        query = query.filter(Application.status == status)
    if job_id:
        query = query.filter(Application.job_id == job_id)

    total = query.count()
    applications = (
        query.order_by(Application.applied_at.desc(), Application.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return applications, PageMeta.build(page, limit, total)
