from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from marketplace.models.enums import BulkOperationStatus, BulkOperationType, PriceType, Urgency
from marketplace.schemas.job import JobResponse


class BulkJobCreateRequest(BaseModel):
    # Rows stay untyped here so a malformed row fails on its own instead of rejecting the batch.
    jobs: list[Any]


class BulkJobChanges(BaseModel):
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    price_type: PriceType | None = None
    urgency: Urgency | None = None
    scheduled_start: datetime | None = None
    estimated_duration_hours: int | None = Field(default=None, gt=0)


class BulkJobUpdateRequest(BaseModel):
    job_ids: list[Any]
    updates: BulkJobChanges


class BulkJobCancelRequest(BaseModel):
    job_ids: list[Any]


class RowError(BaseModel):
    row_index: int
    message: str


class BulkOperationResponse(BaseModel):
    id: str
    enterprise_id: str
    operation_type: BulkOperationType
    total_jobs: int
    successful_jobs: int
    failed_jobs: int
    status: BulkOperationStatus
    error_details: list[RowError]
    created_by: str
    started_at: str
    completed_at: str | None


class BulkSubmitResponse(BaseModel):
    operation: BulkOperationResponse
    jobs: list[JobResponse]


class BulkOperationListResponse(BaseModel):
    operations: list[BulkOperationResponse]
