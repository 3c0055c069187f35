from decimal import Decimal

from pydantic import BaseModel, Field

from marketplace.models.enums import SettlementStatus


class SettlementQuote(BaseModel):
    gross_amount: Decimal
    platform_fee: Decimal
    worker_amount: Decimal
    fee_rate: Decimal
    currency: str


class SettlementCreate(BaseModel):
    # defaults to the job's price
    amount: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)


class SettlementStatusUpdate(BaseModel):
    status: SettlementStatus
    external_reference: str | None = Field(default=None, max_length=255)
    failure_reason: str | None = Field(default=None, max_length=1000)


class SettlementResponse(BaseModel):
    id: str
    job_id: str
    poster_id: str
    worker_id: str
    gross_amount: Decimal
    platform_fee: Decimal
    worker_amount: Decimal
    fee_rate: Decimal
    currency: str
    status: SettlementStatus
    external_reference: str | None
    failure_reason: str | None
    created_at: str
    updated_at: str
