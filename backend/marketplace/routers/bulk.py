from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import Actor, get_current_actor
from marketplace.models.bulk_operation import BulkJobOperation
from marketplace.routers.jobs import job_to_response
from marketplace.schemas.bulk import (
    BulkJobCancelRequest,
    BulkJobCreateRequest,
    BulkJobUpdateRequest,
    BulkOperationListResponse,
    BulkOperationResponse,
    BulkSubmitResponse,
    RowError,
)
from marketplace.services import bulk_service

router = APIRouter(prefix="/enterprise", tags=["enterprise"])


def _operation_to_response(operation: BulkJobOperation) -> BulkOperationResponse:
    return BulkOperationResponse(
        id=operation.id,
        enterprise_id=operation.enterprise_id,
        operation_type=operation.operation_type,
        total_jobs=operation.total_jobs,
        successful_jobs=operation.successful_jobs,
        failed_jobs=operation.failed_jobs,
        status=operation.status,
        error_details=[RowError(**e) for e in operation.error_details or []],
        created_by=operation.created_by,
        started_at=operation.started_at,
        completed_at=operation.completed_at,
    )


def _submit_response(operation, jobs) -> BulkSubmitResponse:
    return BulkSubmitResponse(
        operation=_operation_to_response(operation),
        jobs=[job_to_response(j) for j in jobs],
    )


@router.post("/jobs/bulk", response_model=BulkSubmitResponse, status_code=201)
async def bulk_create_jobs(
    req: BulkJobCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    operation, jobs = bulk_service.submit_bulk_create(db, actor, req.jobs)
    return _submit_response(operation, jobs)


@router.put("/jobs/bulk", response_model=BulkSubmitResponse)
async def bulk_update_jobs(
    req: BulkJobUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    changes = req.updates.model_dump(exclude_unset=True)
    operation, jobs = bulk_service.submit_bulk_update(db, actor, req.job_ids, changes)
    return _submit_response(operation, jobs)


@router.post("/jobs/bulk/cancel", response_model=BulkSubmitResponse)
async def bulk_cancel_jobs(
    req: BulkJobCancelRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    operation, jobs = bulk_service.submit_bulk_cancel(db, actor, req.job_ids)
    return _submit_response(operation, jobs)


@router.get("/bulk-operations", response_model=BulkOperationListResponse)
async def list_bulk_operations(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    operations = bulk_service.list_bulk_operations(db, actor)
    return BulkOperationListResponse(operations=[_operation_to_response(o) for o in operations])


@router.get("/bulk-operations/{operation_id}", response_model=BulkOperationResponse)
async def get_bulk_operation(
    operation_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _operation_to_response(bulk_service.get_bulk_operation(db, actor, operation_id))
