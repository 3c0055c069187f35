from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.database import get_db
from marketplace.dependencies import Actor, get_current_actor
from marketplace.models.settlement import Settlement
from marketplace.schemas.settlement import (
    SettlementCreate,
    SettlementQuote,
    SettlementResponse,
    SettlementStatusUpdate,
)
from marketplace.services import settlement_service

router = APIRouter(prefix="/settlements", tags=["settlements"])


def _settlement_to_response(settlement: Settlement) -> SettlementResponse:
    return SettlementResponse(
        id=settlement.id,
        job_id=settlement.job_id,
        poster_id=settlement.poster_id,
        worker_id=settlement.worker_id,
        gross_amount=settlement.gross_amount,
        platform_fee=settlement.platform_fee,
        worker_amount=settlement.worker_amount,
        fee_rate=settlement.fee_rate,
        currency=settlement.currency,
        status=settlement.status,
        external_reference=settlement.external_reference,
        failure_reason=settlement.failure_reason,
        created_at=settlement.created_at,
        updated_at=settlement.updated_at,
    )


@router.get("/quote", response_model=SettlementQuote)
async def quote_settlement(amount: Decimal = Query(..., ge=0, max_digits=10, decimal_places=2)):
    split = settlement_service.compute_settlement(amount, settings.platform_fee_rate)
    return SettlementQuote(
        gross_amount=split.gross_amount,
        platform_fee=split.platform_fee,
        worker_amount=split.worker_amount,
        fee_rate=settings.platform_fee_rate,
        currency=settings.currency,
    )


@router.put("/{settlement_id}/status", response_model=SettlementResponse)
async def update_settlement_status(
    settlement_id: str,
    req: SettlementStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    settlement = settlement_service.update_settlement_status(
        db,
        actor,
        settlement_id,
        req.status,
        external_reference=req.external_reference,
        failure_reason=req.failure_reason,
    )
    return _settlement_to_response(settlement)


# Job-scoped settlement endpoints
job_settlement_router = APIRouter(
    prefix="/jobs/{job_id}/settlement",
    tags=["settlements"],
)


@job_settlement_router.post("", response_model=SettlementResponse, status_code=201)
async def record_settlement(
    job_id: str,
    req: SettlementCreate | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    amount = req.amount if req else None
    return _settlement_to_response(settlement_service.record_settlement(db, actor, job_id, amount))


@job_settlement_router.get("", response_model=SettlementResponse)
async def get_job_settlement(
    job_id: str,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _settlement_to_response(settlement_service.get_job_settlement(db, actor, job_id))
