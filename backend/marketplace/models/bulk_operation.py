from sqlalchemy import JSON, Column, Integer, Text

from marketplace.database import Base
from marketplace.models.enums import BulkOperationStatus, BulkOperationType, enum_column


class BulkJobOperation(Base):
    __tablename__ = "bulk_job_operations"

    id = Column(Text, primary_key=True)
    enterprise_id = Column(Text, nullable=False)
    operation_type = Column(enum_column(BulkOperationType), nullable=False)
    total_jobs = Column(Integer, nullable=False)
    successful_jobs = Column(Integer, nullable=False, default=0)
    failed_jobs = Column(Integer, nullable=False, default=0)
    status = Column(enum_column(BulkOperationStatus), nullable=False, default=BulkOperationStatus.PENDING)
    # [{"row_index": int, "message": str}, ...]; reassign the list, never mutate it in place
    error_details = Column(JSON, nullable=False, default=list)
    created_by = Column(Text, nullable=False)
    started_at = Column(Text, nullable=False)
    completed_at = Column(Text)
