import logging
from logging.handlers import RotatingFileHandler

import pytest

from S3ML.core import logging_config
from S3ML.core.logging_config import LoggerConfig, configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging("DEBUG", log_to_file=False)


def test_get_logger_does_not_duplicate_handlers():
    first = get_logger("s3ml.test.dupes")
    second = get_logger("s3ml.test.dupes")

    assert first is second
    assert len(first.handlers) == 1


def test_file_handler_writes_to_log_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("AWS_EXECUTION_ENV", raising=False)
    monkeypatch.delenv("AWS_LAMBDA_FUNCTION_NAME", raising=False)

    logger = LoggerConfig(log_dir=tmp_path / "logs", log_file="run.log").apply(
        logging.getLogger("s3ml.test.file")
    )
    logger.info("upload finished")
    for handler in logger.handlers:
        handler.flush()

    assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
    assert "upload finished" in (tmp_path / "logs" / "run.log").read_text()


def test_lambda_skips_file_handler(tmp_path, monkeypatch):
    monkeypatch.setenv("AWS_LAMBDA_FUNCTION_NAME", "uploader")

    logger = LoggerConfig(log_dir=tmp_path).apply(logging.getLogger("s3ml.test.lambda"))

    assert not any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
    assert not (tmp_path / "s3ml.log").exists()


def test_configure_logging_reapplies_level():
    logger = get_logger("s3ml.test.level")

    configure_logging("WARNING", log_to_file=False)

    assert logger.level == logging.WARNING
    assert logger.handlers[0].level == logging.WARNING
    assert logging_config._default_config.log_level == logging.WARNING


def test_unknown_level_name_falls_back_to_info():
    config = configure_logging("CHATTY", log_to_file=False)
    assert config.log_level == logging.INFO


def test_console_logs_go_to_current_stderr(capsys):
    logger = get_logger("s3ml.test.console")

    logger.warning("console line")

    captured = capsys.readouterr()
    assert "console line" in captured.err
    assert captured.out == ""
