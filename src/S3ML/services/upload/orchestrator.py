"""
Concurrent upload orchestration.

For every input file the orchestrator reads the bytes once, classifies them,
and launches one upload per backend. Attempts run concurrently on a thread
pool driven by asyncio; each one is isolated, so a failing or hanging backend
never cancels the others. Outcomes are written to a lock-guarded sink and the
report is built only after every (file, backend) task has finished.

Module Input:
    - File paths
    - Storage backends built from explicit configuration

Module Output:
    - UploadReport with one UploadOutcome per (file, backend) pair
    - Progress and failure logging
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from S3ML.core.exceptions import ConfigError, S3MLError, UploadTimeoutError
from S3ML.core.logging_config import get_logger
from S3ML.core.settings import Settings
from S3ML.services.classification import FileClassifier
from S3ML.services.storage.backends import StorageBackend

from .models import FileRecord, FileSummary, UploadOutcome, UploadReport

logger = get_logger(__name__)


class OutcomeSink:
    """Shared outcome collection; every write is serialized by a lock."""

    def __init__(self) -> None:
        self._outcomes: List[UploadOutcome] = []
        self._lock = asyncio.Lock()

    async def add(self, outcome: UploadOutcome) -> None:
        async with self._lock:
            self._outcomes.append(outcome)

    async def drain(self) -> List[UploadOutcome]:
        async with self._lock:
            outcomes = list(self._outcomes)
            self._outcomes.clear()
            return outcomes


class UploadOrchestrator:
    """
    Fan out every file to every backend and collect the results.

    Attributes:
        backends (Sequence[StorageBackend]): Delivery paths, one attempt each per file
        classifier (FileClassifier): Category and key routing
        attempt_timeout (float): Seconds a started backend call may run before it
            is recorded as timed out; time spent waiting for a worker is not counted
        max_attempts (int): Attempts per (file, backend); retries only retryable errors
        retry_delay (float): Initial backoff between attempts, doubled each time
        max_concurrent_files (int): Files in flight at once
        max_workers (int): Threads available for blocking backend calls
    """

    def __init__(
        self,
        backends: Sequence[StorageBackend],
        classifier: Optional[FileClassifier] = None,
        attempt_timeout: float = 30.0,
        max_attempts: int = 1,
        retry_delay: float = 1.0,
        max_concurrent_files: int = 8,
        max_workers: int = 16,
    ):
        """
        Raises:
            ConfigError: If no backends are given, two share a name, or a
                numeric limit is not positive
        """
        if not backends:
            raise ConfigError("At least one storage backend is required")

        names = [backend.name for backend in backends]
        if len(set(names)) != len(names):
            raise ConfigError("Backend names must be unique", details={"backends": names})

        if attempt_timeout <= 0 or max_attempts < 1 or max_concurrent_files < 1 or max_workers < 1:
            raise ConfigError(
                "Orchestrator limits must be positive",
                details={
                    "attempt_timeout": attempt_timeout,
                    "max_attempts": max_attempts,
                    "max_concurrent_files": max_concurrent_files,
                    "max_workers": max_workers,
                },
            )

        self.backends = list(backends)
        self.classifier = classifier or FileClassifier()
        self.attempt_timeout = attempt_timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_concurrent_files = max_concurrent_files
        self.max_workers = max_workers

        logger.info(
            f"Initialized UploadOrchestrator: backends={names}, timeout={attempt_timeout}s, "
            f"max_attempts={max_attempts}, max_concurrent_files={max_concurrent_files}"
        )

    @classmethod
    def from_settings(cls, settings: Settings, backends: Sequence[StorageBackend]) -> "UploadOrchestrator":
        """Build an orchestrator with limits taken from settings."""
        return cls(
            backends,
            attempt_timeout=settings.upload_timeout_seconds,
            max_attempts=settings.upload_max_attempts,
            retry_delay=settings.upload_retry_delay_seconds,
            max_concurrent_files=settings.max_concurrent_files,
            max_workers=settings.max_workers,
        )

    def run(self, file_paths: Iterable[Path]) -> UploadReport:
        """Blocking entry point; see :meth:`run_async`."""
        return asyncio.run(self.run_async(file_paths))

    async def run_async(self, file_paths: Iterable[Path]) -> UploadReport:
        """
        Upload every file to every backend.

        Args:
            file_paths: Files to upload

        Returns:
            UploadReport: Exactly ``len(files) * len(backends)`` outcomes
        """
        paths = [Path(path) for path in file_paths]
        logger.info(f"Starting upload of {len(paths)} files to {len(self.backends)} backends")

        sink = OutcomeSink()
        semaphore = asyncio.Semaphore(self.max_concurrent_files)
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="s3ml-upload")
        started = time.monotonic()

        try:
            summaries = await asyncio.gather(
                *(self._process_file(path, executor, semaphore, sink) for path in paths)
            )
        finally:
            # Timed-out calls may still be running; do not wait for them
            executor.shutdown(wait=False, cancel_futures=True)

        report = UploadReport(
            outcomes=await sink.drain(),
            files=[summary for summary in summaries if summary is not None],
        )

        logger.info(
            f"Batch upload complete: {report.succeeded}/{report.total} successful, "
            f"{report.failed} failed in {time.monotonic() - started:.2f}s"
        )
        for name, tally in report.by_backend().items():
            logger.info(f"  {name}: {tally.succeeded} succeeded, {tally.failed} failed")
        return report

    async def _process_file(
        self,
        path: Path,
        executor: ThreadPoolExecutor,
        semaphore: asyncio.Semaphore,
        sink: OutcomeSink,
    ) -> Optional[FileSummary]:
        async with semaphore:
            loop = asyncio.get_running_loop()
            try:
                data = await loop.run_in_executor(executor, path.read_bytes)
            except OSError as e:
                logger.error(f"Cannot read {path}: {e}")
                for backend in self.backends:
                    await sink.add(UploadOutcome(
                        backend=backend.name,
                        file_path=str(path),
                        key=path.name,
                        success=False,
                        error_type=type(e).__name__,
                        error=f"Cannot read file: {e}",
                        attempts=0,
                    ))
                return None

            category, key = self.classifier.route(path, data)
            record = FileRecord(path=path, data=data, category=category, key=key)

            outcomes = await asyncio.gather(
                *(self._attempt(backend, record, executor, sink) for backend in self.backends)
            )

            failed = sum(1 for outcome in outcomes if not outcome.success)
            if failed:
                logger.warning(f"Uploads completed for file: {path.name} ({failed}/{len(outcomes)} failed)")
            else:
                logger.info(f"All uploads completed for file: {path.name}")
            return FileSummary.from_record(record)

    async def _attempt(
        self,
        backend: StorageBackend,
        record: FileRecord,
        executor: ThreadPoolExecutor,
        sink: OutcomeSink,
    ) -> UploadOutcome:
        """
        Run one (file, backend) upload, retrying retryable errors.

        Never raises: every failure becomes a failed outcome.
        """
        loop = asyncio.get_running_loop()
        started = time.monotonic()
        attempts = 0

        while True:
            attempts += 1
            logger.info(
                f"Uploading {record.key} to {backend.name} (attempt {attempts}/{self.max_attempts})"
            )
            started_in_worker = asyncio.Event()

            def store() -> None:
                loop.call_soon_threadsafe(started_in_worker.set)
                backend.store(record.key, record.data)

            call = loop.run_in_executor(executor, store)
            try:
                # The timeout covers the backend call only, not time queued for a worker
                await started_in_worker.wait()
                await asyncio.wait_for(call, timeout=self.attempt_timeout)
                outcome = UploadOutcome(
                    backend=backend.name,
                    file_path=str(record.path),
                    key=record.key,
                    success=True,
                    attempts=attempts,
                    elapsed_seconds=time.monotonic() - started,
                )
                break
            except asyncio.TimeoutError:
                error: Exception = UploadTimeoutError(
                    f"Upload to {backend.name} timed out after {self.attempt_timeout}s",
                    backend.name,
                    record.key,
                    {"timeout_seconds": self.attempt_timeout},
                )
            except Exception as e:  # isolate this pair from every other attempt
                error = e

            if attempts < self.max_attempts and getattr(error, "retryable", False):
                delay = self.retry_delay * (2 ** (attempts - 1))
                logger.warning(
                    f"Attempt {attempts} to {backend.name} failed for {record.key}: {error}; "
                    f"retrying in {delay:.1f} seconds..."
                )
                await asyncio.sleep(delay)
                continue

            outcome = self._failure(backend, record, error, attempts, time.monotonic() - started)
            break

        await sink.add(outcome)
        return outcome

    @staticmethod
    def _failure(
        backend: StorageBackend,
        record: FileRecord,
        error: Exception,
        attempts: int,
        elapsed: float,
    ) -> UploadOutcome:
        if isinstance(error, S3MLError):
            message = error.message
            details = dict(error.details)
            logger.error(
                f"Failed to upload {record.key} to {backend.name}: {message}",
                extra={"error_details": details},
            )
        else:
            message = str(error) or type(error).__name__
            details = {}
            logger.error(
                f"Unexpected error uploading {record.key} to {backend.name}",
                exc_info=error,
            )

        return UploadOutcome(
            backend=backend.name,
            file_path=str(record.path),
            key=record.key,
            success=False,
            error_type=type(error).__name__,
            error=message,
            details=details,
            attempts=attempts,
            elapsed_seconds=elapsed,
        )
