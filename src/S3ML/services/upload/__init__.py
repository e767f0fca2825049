from .models import FileRecord, FileSummary, UploadOutcome, UploadReport
from .orchestrator import OutcomeSink, UploadOrchestrator

__all__ = [
    "FileRecord",
    "FileSummary",
    "OutcomeSink",
    "UploadOrchestrator",
    "UploadOutcome",
    "UploadReport",
]
