from marketplace.models.job import Job, JobSkill
from marketplace.models.application import Application
from marketplace.models.bulk_operation import BulkJobOperation
from marketplace.models.settlement import Settlement

__all__ = ["Job", "JobSkill", "Application", "BulkJobOperation", "Settlement"]
