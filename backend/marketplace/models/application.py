from sqlalchemy import Column, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import relationship

from marketplace.database import Base
from marketplace.models.enums import ApplicationStatus, enum_column


class Application(Base):
    __tablename__ = "applications"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    worker_id = Column(Text, nullable=False)
    message = Column(Text)
    proposed_price = Column(Numeric(10, 2))
    estimated_completion_time = Column(Integer)
    status = Column(enum_column(ApplicationStatus), nullable=False, default=ApplicationStatus.PENDING)
    applied_at = Column(Text, nullable=False)
    responded_at = Column(Text)

    job = relationship("Job", back_populates="applications")
