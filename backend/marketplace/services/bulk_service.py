"""
Best-effort batch orchestration for enterprise posters.

A batch is processed row by row. Each successful row commits together with
the operation's success counter; a failing row is rolled back on its own and
recorded in `error_details`. One bad row never aborts the batch.
"""
import logging
import uuid
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.dependencies import Actor
from marketplace.errors import ForbiddenError, MarketplaceError, NotFoundError, ValidationError
from marketplace.models.bulk_operation import BulkJobOperation
from marketplace.models.enums import BulkOperationStatus, BulkOperationType, JobStatus
from marketplace.models.job import Job
from marketplace.schemas.job import JobCreate
from marketplace.services.job_service import apply_job_changes, build_job, require_role
from marketplace.services.lifecycle import guarded_job_transition
from marketplace.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

RECENT_OPERATIONS_LIMIT = 20

RowHandler = Callable[[Session, Actor, Any], Job]


def _row_message(exc: Exception) -> str:
    if isinstance(exc, PydanticValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'row'}: {err['msg']}" for err in exc.errors()
        )
    if isinstance(exc, MarketplaceError):
        return exc.message
    return f"Storage error: {exc.__class__.__name__}"


def _mark_failed(db: Session, operation_id: str) -> None:
    try:
        db.execute(
            update(BulkJobOperation)
            .where(BulkJobOperation.id == operation_id)
            .values(status=BulkOperationStatus.FAILED, completed_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not mark bulk operation %s as failed", operation_id)


def _run_batch(
    db: Session,
    actor: Actor,
    operation_type: BulkOperationType,
    rows: list,
    handler: RowHandler,
) -> tuple[BulkJobOperation, list[Job]]:
    require_role(actor, "poster", "submit bulk job operations")
    if not rows:
        raise ValidationError("A bulk operation needs at least one row")
    if len(rows) > settings.max_bulk_rows:
        raise ValidationError(f"A bulk operation accepts at most {settings.max_bulk_rows} rows")

    operation = BulkJobOperation(
        id=str(uuid.uuid4()),
        enterprise_id=actor.user_id,
        operation_type=operation_type,
        total_jobs=len(rows),
        successful_jobs=0,
        failed_jobs=0,
        status=BulkOperationStatus.PROCESSING,
        error_details=[],
        created_by=actor.user_id,
        started_at=utc_now(),
    )
    db.add(operation)
    db.commit()
    operation_id = operation.id
    logger.info(
        "Bulk %s operation %s started by %s with %d row(s)",
        operation_type.value, operation_id, actor.user_id, len(rows),
    )

    jobs: list[Job] = []
    try:
        for index, row in enumerate(rows):
            try:
                job = handler(db, actor, row)
                operation.successful_jobs += 1
                db.commit()
                jobs.append(job)
            except (MarketplaceError, PydanticValidationError, SQLAlchemyError) as exc:
                db.rollback()
                message = _row_message(exc)
                logger.warning("Bulk operation %s row %d failed: %s", operation_id, index, message)
                operation.failed_jobs += 1
                operation.error_details = [
                    *operation.error_details,
                    {"row_index": index, "message": message},
                ]
                db.commit()

        operation.status = (
            BulkOperationStatus.COMPLETED if operation.failed_jobs == 0 else BulkOperationStatus.PARTIAL
        )
        operation.completed_at = utc_now()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Bulk operation %s could not record its progress", operation_id)
        _mark_failed(db, operation_id)
        raise

    db.refresh(operation)
    logger.info(
        "Bulk operation %s finished %s: %d succeeded, %d failed",
        operation_id, operation.status.value, operation.successful_jobs, operation.failed_jobs,
    )
    return operation, jobs


def _create_row(db: Session, actor: Actor, row: Any) -> Job:
    req = JobCreate.model_validate(row)
    job = build_job(actor.user_id, req)
    db.add(job)
    db.flush()
    return job


def _load_owned_job(db: Session, actor: Actor, job_id: Any) -> Job:
    job = db.get(Job, job_id) if isinstance(job_id, str) else None
    if job is None:
        raise NotFoundError(f"Job {job_id} not found")
    if job.poster_id != actor.user_id:
        raise ForbiddenError(f"Job {job_id} belongs to another poster")
    return job


def submit_bulk_create(db: Session, actor: Actor, rows: list) -> tuple[BulkJobOperation, list[Job]]:
    return _run_batch(db, actor, BulkOperationType.CREATE, rows, _create_row)


def submit_bulk_update(
    db: Session, actor: Actor, job_ids: list, changes: dict
) -> tuple[BulkJobOperation, list[Job]]:
    if not changes:
        raise ValidationError("No updates supplied")

    def _update_row(db: Session, actor: Actor, job_id: Any) -> Job:
        job = _load_owned_job(db, actor, job_id)
        apply_job_changes(db, job, changes)
        return job

    return _run_batch(db, actor, BulkOperationType.UPDATE, job_ids, _update_row)


def _cancel_row(db: Session, actor: Actor, job_id: Any) -> Job:
    job = _load_owned_job(db, actor, job_id)
    guarded_job_transition(db, job, JobStatus.CANCELLED)
    return job


def submit_bulk_cancel(
    db: Session, actor: Actor, job_ids: list
) -> tuple[BulkJobOperation, list[Job]]:
    return _run_batch(db, actor, BulkOperationType.CANCEL, job_ids, _cancel_row)


def get_bulk_operation(db: Session, actor: Actor, operation_id: str) -> BulkJobOperation:
    operation = (
        db.query(BulkJobOperation)
        .filter(BulkJobOperation.id == operation_id, BulkJobOperation.enterprise_id == actor.user_id)
        .first()
    )
    if operation is None:
        raise NotFoundError("Bulk operation not found")
    return operation


def list_bulk_operations(db: Session, actor: Actor) -> list[BulkJobOperation]:
    return (
        db.query(BulkJobOperation)
        .filter(BulkJobOperation.enterprise_id == actor.user_id)
        .order_by(BulkJobOperation.started_at.desc(), BulkJobOperation.id)
        .limit(RECENT_OPERATIONS_LIMIT)
        .all()
    )
