"""
Records produced and consumed by the upload orchestrator.

Module Output:
    - FileRecord: one classified input file and its bytes
    - UploadOutcome: the result of one (file, backend) pair
    - UploadReport: every outcome of a run plus per-backend tallies
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from S3ML.services.classification import Category


@dataclass(frozen=True)
class FileRecord:
    """
    A classified input file.

    ``data`` is read once and shared by every backend attempt for the file;
    ``bytes`` is immutable, so no backend can alter it.
    """

    path: Path
    data: bytes = field(repr=False)
    category: Category
    key: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class FileSummary:
    """What the report keeps about a file once its bytes are released."""

    path: str
    category: Category
    key: str
    size: int

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileSummary":
        return cls(str(record.path), record.category, record.key, record.size)


@dataclass(frozen=True)
class UploadOutcome:
    """
    Result of one upload attempt sequence for a (file, backend) pair.

    Attributes:
        backend: Backend identifier, e.g. "aws-sdk"
        file_path: Source file
        key: Object key that was (or would have been) written
        success: True when the object was stored
        error_type: Exception class name on failure
        error: Human-readable error on failure
        details: Structured error context (status code, server message, ...)
        attempts: Number of attempts made
        elapsed_seconds: Wall time across all attempts
    """

    backend: str
    file_path: str
    key: str
    success: bool
    error_type: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict, compare=False)
    attempts: int = 1
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "file_path": self.file_path,
            "key": self.key,
            "success": self.success,
            "error_type": self.error_type,
            "error": self.error,
            "details": dict(self.details),
            "attempts": self.attempts,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass
class BackendTally:
    succeeded: int = 0
    failed: int = 0


@dataclass
class UploadReport:
    """
    Aggregated result of one orchestrator run.

    Built once after every (file, backend) task has finished.
    """

    outcomes: List[UploadOutcome] = field(default_factory=list)
    files: List[FileSummary] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def failures(self) -> List[UploadOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]

    @property
    def has_failures(self) -> bool:
        return any(not outcome.success for outcome in self.outcomes)

    def by_backend(self) -> Dict[str, BackendTally]:
        """Success/failure counts per backend, in first-seen order."""
        tallies: Dict[str, BackendTally] = {}
        for outcome in self.outcomes:
            tally = tallies.setdefault(outcome.backend, BackendTally())
            if outcome.success:
                tally.succeeded += 1
            else:
                tally.failed += 1
        return tallies

    def for_file(self, file_path: str) -> List[UploadOutcome]:
        return [outcome for outcome in self.outcomes if outcome.file_path == str(file_path)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "backends": {
                name: {"succeeded": tally.succeeded, "failed": tally.failed}
                for name, tally in self.by_backend().items()
            },
            "files": [
                {
                    "path": summary.path,
                    "category": summary.category.value,
                    "key": summary.key,
                    "size": summary.size,
                }
                for summary in self.files
            ],
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
