import asyncio
import logging
import time

import pytest

from S3ML.core.exceptions import (
    AuthRejectedError,
    ConfigError,
    StorageBackendError,
    ThrottledError,
)
from S3ML.core.settings import BackendKind, Settings
from S3ML.services.classification import Category
from S3ML.services.upload import OutcomeSink, UploadOrchestrator, UploadOutcome
from tests.fixtures.backends import FailingBackend, FlakyBackend, HangingBackend, RecordingBackend


def _all_recording():
    return [RecordingBackend(kind) for kind in BackendKind]


class TestRun:

    def test_every_file_reaches_every_backend(self, sample_files):
        backends = _all_recording()
        report = UploadOrchestrator(backends, attempt_timeout=5).run(sample_files)

        assert report.total == 9
        assert report.succeeded == 9
        assert not report.has_failures
        for backend in backends:
            assert set(backend.objects) == {"text/file1.txt", "images/logo.png", "misc/empty.bin"}

    def test_report_lists_files_with_categories(self, sample_files):
        report = UploadOrchestrator(_all_recording(), attempt_timeout=5).run(sample_files)

        by_key = {summary.key: summary for summary in report.files}
        assert by_key["text/file1.txt"].category is Category.TEXT
        assert by_key["images/logo.png"].category is Category.IMAGES
        assert by_key["misc/empty.bin"].size == 0

    def test_all_backends_receive_same_bytes(self, sample_files):
        backends = _all_recording()
        UploadOrchestrator(backends, attempt_timeout=5).run(sample_files[:1])

        stored = [backend.objects["text/file1.txt"] for backend in backends]
        assert stored[0] == sample_files[0].read_bytes()
        assert stored[0] is stored[1] is stored[2]

    def test_empty_input(self):
        report = UploadOrchestrator(_all_recording()).run([])
        assert report.total == 0
        assert report.files == []

    def test_progress_logs_render_values(self, sample_files, caplog):
        caplog.set_level(logging.INFO)
        UploadOrchestrator([RecordingBackend(BackendKind.HTTP)], attempt_timeout=5).run(sample_files)

        assert "timeout=5s, max_attempts=1, max_concurrent_files=8" in caplog.text
        assert "Batch upload complete: 3/3 successful, 0 failed in " in caplog.text
        assert "%" not in caplog.text


class TestIsolation:

    def test_one_failing_backend_does_not_affect_others(self, sample_files):
        good = [RecordingBackend(BackendKind.AWS_SDK), RecordingBackend(BackendKind.COMPATIBLE)]
        bad = FailingBackend(
            BackendKind.HTTP,
            AuthRejectedError("Authentication rejected", "http-sigv4", None, {"status_code": 403}),
        )

        report = UploadOrchestrator(good + [bad], attempt_timeout=5).run(sample_files)

        assert report.total == 9
        assert report.succeeded == 6
        assert report.failed == 3
        for outcome in report.failures:
            assert outcome.backend == "http-sigv4"
            assert outcome.error_type == "AuthRejectedError"
            assert outcome.details["status_code"] == 403
        assert all(len(backend.objects) == 3 for backend in good)

    def test_hanging_backend_times_out_alone(self, sample_files):
        backends = [
            RecordingBackend(BackendKind.AWS_SDK),
            RecordingBackend(BackendKind.COMPATIBLE),
            HangingBackend(BackendKind.HTTP, hang_seconds=1.0),
        ]

        started = time.monotonic()
        report = UploadOrchestrator(backends, attempt_timeout=0.2).run(sample_files)
        elapsed = time.monotonic() - started

        assert report.total == 9
        assert report.succeeded == 6
        timeouts = report.failures
        assert len(timeouts) == 3
        assert {outcome.error_type for outcome in timeouts} == {"UploadTimeoutError"}
        assert {outcome.key for outcome in timeouts} == {
            "text/file1.txt", "images/logo.png", "misc/empty.bin"
        }
        assert report.by_backend()["http-sigv4"].failed == 3
        # Files run concurrently, so the three timeouts overlap
        assert elapsed < 1.0

    def test_unexpected_exception_becomes_outcome(self, sample_files):
        backends = [
            RecordingBackend(BackendKind.AWS_SDK),
            FailingBackend(BackendKind.COMPATIBLE, RuntimeError("boom")),
        ]

        report = UploadOrchestrator(backends, attempt_timeout=5).run(sample_files[:1])

        failure = report.failures[0]
        assert failure.backend == "s3-compatible"
        assert failure.error_type == "RuntimeError"
        assert failure.error == "boom"
        assert report.succeeded == 1

    def test_unreadable_file_fails_for_every_backend(self, sample_files, tmp_path):
        missing = tmp_path / "vanished.txt"
        backends = _all_recording()

        report = UploadOrchestrator(backends, attempt_timeout=5).run([missing] + sample_files)

        assert report.total == 12
        failures = report.for_file(str(missing))
        assert len(failures) == 3
        assert {outcome.error_type for outcome in failures} == {"FileNotFoundError"}
        assert all(outcome.attempts == 0 for outcome in failures)
        assert report.succeeded == 9
        assert len(report.files) == 3


class TestRetry:

    def test_retryable_error_is_retried(self, sample_files):
        flaky = FlakyBackend(BackendKind.HTTP, failures=2)
        orchestrator = UploadOrchestrator([flaky], attempt_timeout=5, max_attempts=3, retry_delay=0.01)

        report = orchestrator.run(sample_files[:1])

        outcome = report.outcomes[0]
        assert outcome.success
        assert outcome.attempts == 3
        assert flaky.calls == 3

    def test_gives_up_after_max_attempts(self, sample_files):
        flaky = FlakyBackend(
            BackendKind.HTTP, failures=5, error=ThrottledError("slow down", "http-sigv4")
        )
        orchestrator = UploadOrchestrator([flaky], attempt_timeout=5, max_attempts=2, retry_delay=0.01)

        outcome = orchestrator.run(sample_files[:1]).outcomes[0]

        assert not outcome.success
        assert outcome.error_type == "ThrottledError"
        assert outcome.attempts == 2

    def test_non_retryable_error_is_not_retried(self, sample_files):
        failing = FailingBackend(BackendKind.AWS_SDK, StorageBackendError("quota", "aws-sdk"))
        orchestrator = UploadOrchestrator([failing], attempt_timeout=5, max_attempts=3, retry_delay=0.01)

        outcome = orchestrator.run(sample_files[:1]).outcomes[0]

        assert outcome.attempts == 1
        assert failing.calls == 1

    def test_default_is_single_attempt(self, sample_files):
        flaky = FlakyBackend(BackendKind.HTTP, failures=1)
        outcome = UploadOrchestrator([flaky], attempt_timeout=5).run(sample_files[:1]).outcomes[0]

        assert not outcome.success
        assert outcome.error_type == "NetworkError"
        assert flaky.calls == 1


class TestConcurrency:

    def test_backends_run_in_parallel(self, sample_files):
        backends = [RecordingBackend(kind, delay=0.3) for kind in BackendKind]

        started = time.monotonic()
        report = UploadOrchestrator(backends, attempt_timeout=5).run(sample_files)
        elapsed = time.monotonic() - started

        assert report.succeeded == 9
        # Nine sequential stores would take 2.7s
        assert elapsed < 1.5

    def test_max_concurrent_files_bounds_parallelism(self, tmp_path):
        files = []
        for index in range(4):
            path = tmp_path / f"f{index}.txt"
            path.write_text("x")
            files.append(path)
        backend = RecordingBackend(BackendKind.AWS_SDK, delay=0.2)

        started = time.monotonic()
        UploadOrchestrator([backend], attempt_timeout=5, max_concurrent_files=1).run(files)
        elapsed = time.monotonic() - started

        assert elapsed >= 0.75

    def test_waiting_for_a_worker_does_not_count_against_timeout(self, tmp_path):
        files = []
        for index in range(8):
            path = tmp_path / f"f{index}.txt"
            path.write_text(f"file {index}")
            files.append(path)
        backends = [RecordingBackend(kind, delay=0.3) for kind in BackendKind]

        # 24 attempts on 4 workers: most attempts queue longer than the timeout
        report = UploadOrchestrator(backends, attempt_timeout=0.5, max_workers=4).run(files)

        assert report.total == 24
        assert report.failed == 0, [o.error_type for o in report.failures]
        assert all(len(backend.objects) == 8 for backend in backends)

    def test_default_limits_keep_healthy_backends_within_timeout(self, tmp_path):
        files = []
        for index in range(8):
            path = tmp_path / f"f{index}.txt"
            path.write_text(f"file {index}")
            files.append(path)
        backends = [RecordingBackend(kind, delay=0.3) for kind in BackendKind]

        report = UploadOrchestrator(backends, attempt_timeout=0.5).run(files)

        assert report.succeeded == 24

    @pytest.mark.asyncio
    async def test_run_async(self, sample_files):
        report = await UploadOrchestrator(_all_recording(), attempt_timeout=5).run_async(sample_files)
        assert report.succeeded == 9


class TestConfiguration:

    def test_requires_backends(self):
        with pytest.raises(ConfigError):
            UploadOrchestrator([])

    def test_rejects_duplicate_backend_names(self):
        with pytest.raises(ConfigError) as exc_info:
            UploadOrchestrator([RecordingBackend(BackendKind.HTTP), RecordingBackend(BackendKind.HTTP)])
        assert exc_info.value.details["backends"] == ["http-sigv4", "http-sigv4"]

    @pytest.mark.parametrize(
        "kwargs",
        [{"attempt_timeout": 0}, {"max_attempts": 0}, {"max_concurrent_files": 0}, {"max_workers": 0}],
    )
    def test_rejects_non_positive_limits(self, kwargs):
        with pytest.raises(ConfigError):
            UploadOrchestrator(_all_recording(), **kwargs)

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            upload_timeout_seconds=7,
            upload_max_attempts=3,
            upload_retry_delay_seconds=0.5,
            max_concurrent_files=2,
            max_workers=4,
        )
        orchestrator = UploadOrchestrator.from_settings(settings, _all_recording())

        assert orchestrator.attempt_timeout == 7
        assert orchestrator.max_attempts == 3
        assert orchestrator.retry_delay == 0.5
        assert orchestrator.max_concurrent_files == 2
        assert orchestrator.max_workers == 4


@pytest.mark.asyncio
async def test_outcome_sink_collects_concurrent_writes():
    sink = OutcomeSink()
    outcomes = [
        UploadOutcome(backend="aws-sdk", file_path=f"f{i}", key=f"text/f{i}", success=True)
        for i in range(50)
    ]

    await asyncio.gather(*(sink.add(outcome) for outcome in outcomes))

    drained = await sink.drain()
    assert sorted(o.file_path for o in drained) == sorted(o.file_path for o in outcomes)
    assert await sink.drain() == []
