"""
Process-wide logging setup for the uploader.

Every module asks for its logger through :func:`get_logger`; the CLI calls
:func:`configure_logging` once settings are loaded, which rebuilds the
handlers of every logger handed out so far.

Module Input:
    - Logger names (``__name__`` of the calling module)
    - Level, directory and file name chosen from settings

Module Output:
    - Log lines on stderr (stdout is left to command output such as JSON reports)
    - Log lines in a size-rotated file (logs/s3ml.log) outside Lambda
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Set, Union

# Example: "2024-01-15 10:30:45 | INFO     | S3ML.cli:upload:120 | Batch upload complete"
LOCAL_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
# CloudWatch stamps each line itself
LAMBDA_FORMAT = "%(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def running_in_lambda() -> bool:
    """True when the AWS Lambda runtime variables are present."""
    return "AWS_EXECUTION_ENV" in os.environ or "AWS_LAMBDA_FUNCTION_NAME" in os.environ


def parse_level(level: Union[int, str]) -> int:
    """Turn "debug"/"INFO"/20 into a logging level, falling back to INFO."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


class ConsoleHandler(logging.StreamHandler):
    """
    Writes to whatever ``sys.stderr`` is at emit time.

    Keeping console logs off stdout leaves stdout to command output, so
    ``s3ml upload --json`` prints a parseable report.
    """

    def __init__(self, level: int = logging.NOTSET):
        logging.Handler.__init__(self, level)

    @property
    def stream(self):
        return sys.stderr


class LoggerConfig:
    """
    Handler recipe shared by all S3ML loggers.

    Attributes:
        log_level (int): Level set on each logger and its handlers
        log_dir (Path): Directory of the rotating log file
        log_file (str): Log file name
        max_bytes (int): Size at which the file rotates
        backup_count (int): Rotated files kept
        log_to_file (bool): Whether the file handler is wanted at all
    """

    # Names handed out by get_logger(); configure_logging() revisits them
    _configured_loggers: Set[str] = set()

    def __init__(
        self,
        log_level: Union[int, str] = logging.INFO,
        log_dir: Union[str, Path] = "logs",
        log_file: str = "s3ml.log",
        max_bytes: int = 10_485_760,  # 10MB
        backup_count: int = 5,
        log_to_file: bool = True,
    ):
        self.log_level = parse_level(log_level)
        self.log_dir = Path(log_dir)
        self.log_file = log_file
        self.max_bytes = max_bytes
        self.backup_count = backup_count
        self.log_to_file = log_to_file
        self.is_lambda = running_in_lambda()

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.log_file

    def formatter(self) -> logging.Formatter:
        if self.is_lambda:
            return logging.Formatter(LAMBDA_FORMAT)
        return logging.Formatter(LOCAL_FORMAT, datefmt=DATE_FORMAT)

    def build_handlers(self) -> List[logging.Handler]:
        """
        Build a fresh console handler, plus the rotating file handler when
        file logging is on and we are not inside Lambda.
        """
        handlers: List[logging.Handler] = [ConsoleHandler()]

        if self.log_to_file and not self.is_lambda:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(self.log_path, maxBytes=self.max_bytes, backupCount=self.backup_count)
            )

        for handler in handlers:
            handler.setLevel(self.log_level)
            handler.setFormatter(self.formatter())
        return handlers

    def apply(self, logger: logging.Logger) -> logging.Logger:
        """Swap the handlers of ``logger`` for this recipe's handlers."""
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        logger.setLevel(self.log_level)
        for handler in self.build_handlers():
            logger.addHandler(handler)
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        """
        Return the named logger, attaching handlers on first request only.

        Args:
            name: Logger name, typically ``__name__``

        Returns:
            logging.Logger: Logger with exactly one set of handlers
        """
        logger = logging.getLogger(name)
        if name not in LoggerConfig._configured_loggers:
            self.apply(logger)
            LoggerConfig._configured_loggers.add(name)
        return logger


_default_config = LoggerConfig()


def get_logger(name: str) -> logging.Logger:
    """
    Module-level accessor used throughout the package.

    Example:
        from S3ML.core.logging_config import get_logger

        logger = get_logger(__name__)
        logger.info("Upload started")
    """
    return _default_config.get_logger(name)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Union[str, Path] = "logs",
    log_file: str = "s3ml.log",
    log_to_file: bool = True,
) -> LoggerConfig:
    """
    Install a new default recipe and re-apply it to existing loggers.

    Loggers are created at import time, before settings are read, so the CLI
    calls this as its first step.

    Returns:
        LoggerConfig: The recipe now in effect
    """
    global _default_config

    _default_config = LoggerConfig(
        log_level=level,
        log_dir=log_dir,
        log_file=log_file,
        log_to_file=log_to_file,
    )
    for name in sorted(LoggerConfig._configured_loggers):
        _default_config.apply(logging.getLogger(name))
    return _default_config
