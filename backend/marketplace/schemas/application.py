from decimal import Decimal

from pydantic import BaseModel, Field

from marketplace.models.enums import ApplicationStatus
from marketplace.schemas.common import PageMeta


class ApplicationCreate(BaseModel):
    message: str | None = Field(default=None, max_length=1000)
    proposed_price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    # hours
    estimated_completion_time: int | None = Field(default=None, gt=0)


class ApplicationResponse(BaseModel):
    id: str
    job_id: str
    worker_id: str
    message: str | None
    proposed_price: Decimal | None
    estimated_completion_time: int | None
    status: ApplicationStatus
    applied_at: str
    responded_at: str | None


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationResponse]
    meta: PageMeta
