"""
Platform fee split and settlement records for completed jobs.
The fee rate is always passed in; callers supply `settings.platform_fee_rate`.
"""
import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.dependencies import Actor
from marketplace.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from marketplace.models.enums import JobStatus, SettlementStatus
from marketplace.models.settlement import Settlement
from marketplace.services.job_service import get_job
from marketplace.services.lifecycle import SETTLEMENT_TRANSITIONS, can_transition
from marketplace.utils.timestamps import utc_now

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class SettlementSplit:
    gross_amount: Decimal
    platform_fee: Decimal
    worker_amount: Decimal


def compute_settlement(gross_amount: Decimal, fee_rate: Decimal) -> SettlementSplit:
    """
    Split `gross_amount` into platform fee and worker payout at cent precision.
    The fee is rounded half-up and the payout is the remainder, so the two
    always add back up to the gross exactly.
    """
    gross = Decimal(gross_amount)
    rate = Decimal(fee_rate)
    if gross < 0:
        raise ValidationError("Amount cannot be negative")
    if not Decimal(0) <= rate <= Decimal(1):
        raise ValidationError("Fee rate must be between 0 and 1")

    gross = gross.quantize(CENT, rounding=ROUND_HALF_UP)
    fee = (gross * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return SettlementSplit(gross_amount=gross, platform_fee=fee, worker_amount=gross - fee)


def record_settlement(
    db: Session, actor: Actor, job_id: str, amount: Decimal | None = None
) -> Settlement:
    job = get_job(db, job_id)
    if job.poster_id != actor.user_id:
        raise ForbiddenError("Only the job's poster can settle it")
    if job.status != JobStatus.COMPLETED or job.worker_id is None:
        raise InvalidStateError("Only completed jobs with an assigned worker can be settled")
    if db.query(Settlement).filter(Settlement.job_id == job_id).first():
        raise ConflictError("Job has already been settled")

    split = compute_settlement(job.price if amount is None else amount, settings.platform_fee_rate)
    now = utc_now()
    settlement = Settlement(
        id=str(uuid.uuid4()),
        job_id=job.id,
        poster_id=job.poster_id,
        worker_id=job.worker_id,
        gross_amount=split.gross_amount,
        platform_fee=split.platform_fee,
        worker_amount=split.worker_amount,
        fee_rate=settings.platform_fee_rate,
        currency=settings.currency,
        status=SettlementStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    db.add(settlement)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Job has already been settled")
    db.refresh(settlement)
    logger.info(
        "Settlement %s recorded for job %s: gross=%s fee=%s worker=%s",
        settlement.id, job.id, split.gross_amount, split.platform_fee, split.worker_amount,
    )
    return settlement


def get_job_settlement(db: Session, actor: Actor, job_id: str) -> Settlement:
    job = get_job(db, job_id)
    if actor.user_id not in (job.poster_id, job.worker_id):
        raise ForbiddenError("Only the job's poster or worker can view its settlement")
    settlement = db.query(Settlement).filter(Settlement.job_id == job_id).first()
    if settlement is None:
        raise NotFoundError("Settlement not found")
    return settlement


def update_settlement_status(
    db: Session,
    actor: Actor,
    settlement_id: str,
    status: SettlementStatus,
    external_reference: str | None = None,
    failure_reason: str | None = None,
) -> Settlement:
    settlement = db.get(Settlement, settlement_id)
    if settlement is None:
        raise NotFoundError("Settlement not found")
    if settlement.poster_id != actor.user_id:
        raise ForbiddenError("Only the paying poster can record settlement outcomes")
    if not can_transition(SETTLEMENT_TRANSITIONS, settlement.status, status):
        raise InvalidStateError(
            f"Cannot move settlement from {settlement.status.value} to {status.value}"
        )

    values = {"status": status, "updated_at": utc_now()}
    if external_reference is not None:
        values["external_reference"] = external_reference
    if failure_reason is not None:
        values["failure_reason"] = failure_reason
    try:
        result = db.execute(
            update(Settlement)
            .where(Settlement.id == settlement.id, Settlement.status == settlement.status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError("Settlement status changed; reload and retry")
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(settlement)
    logger.info("Settlement %s is now %s", settlement.id, status.value)
    return settlement
