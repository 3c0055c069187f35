from sqlalchemy import Column, ForeignKey, Numeric, Text

from marketplace.database import Base
from marketplace.models.enums import SettlementStatus, enum_column


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, unique=True)
    poster_id = Column(Text, nullable=False)
    worker_id = Column(Text, nullable=False)
    gross_amount = Column(Numeric(10, 2), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False)
    worker_amount = Column(Numeric(10, 2), nullable=False)
    fee_rate = Column(Numeric(6, 4), nullable=False)
    currency = Column(Text, nullable=False)
    status = Column(enum_column(SettlementStatus), nullable=False, default=SettlementStatus.PENDING)
    external_reference = Column(Text)
    failure_reason = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

