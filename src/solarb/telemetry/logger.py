"""
Queue-backed logging with secret redaction.

Records are handed to a QueueHandler and written by a QueueListener
thread, so a slow console or disk never stalls the control loop or a
request handler. A redaction filter runs before records are queued and
masks any configured secret (API secret, custodial key material) that
ends up in a message or its arguments.
"""

import logging
import sys
from collections.abc import Iterable
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Queue

from solarb.config.constants import LOG_DATE_FORMAT, LOG_FORMAT, MAX_LOG_QUEUE_SIZE


REDACTED = "***"

# Secrets shorter than this are too likely to collide with ordinary text
MIN_REDACTED_LENGTH = 8

NOISY_LOGGERS = ("aiohttp", "asyncio", "uvicorn.access")


class MicrosecondFormatter(logging.Formatter):
    """Formatter with microsecond precision timestamps."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        created = datetime.fromtimestamp(record.created)
        return f"{created.strftime(datefmt or LOG_DATE_FORMAT)}.{created.microsecond:06d}"


class RedactingFilter(logging.Filter):
    """Replace known secret values in log records with a placeholder."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = sorted(
            {s for s in secrets if s and len(s) >= MIN_REDACTED_LENGTH},
            key=len,
            reverse=True,
        )

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        # Render once so secrets inside %-args are caught too
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class AsyncLogger:
    """
    Non-blocking logging for one logger tree.

    Example:
        >>> with AsyncLogger("solarb", secrets=[api_secret]) as async_logger:
        ...     async_logger.logger.info("service up")
    """

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        log_file: Path | None = None,
        secrets: Iterable[str] = (),
    ) -> None:
        """
        Initialize the logger.

        Args:
            name: Logger name; child loggers propagate into it.
            level: Minimum level emitted.
            log_file: Optional file sink, which receives every level the
                logger lets through.
            secrets: Values to mask before a record is queued.
        """
        self._level = level
        self._log_file = log_file
        self._logger = logging.getLogger(name)
        self._queue: Queue[logging.LogRecord] = Queue(maxsize=MAX_LOG_QUEUE_SIZE)
        self._redactor = RedactingFilter(secrets)
        self._queue_handler: QueueHandler | None = None
        self._listener: QueueListener | None = None

    def _build_sinks(self) -> list[logging.Handler]:
        formatter = MicrosecondFormatter(LOG_FORMAT, LOG_DATE_FORMAT)

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        console.setLevel(self._level)
        sinks: list[logging.Handler] = [console]

        if self._log_file:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            file_sink = logging.FileHandler(self._log_file, encoding="utf-8")
            file_sink.setFormatter(formatter)
            sinks.append(file_sink)

        return sinks

    def start(self) -> None:
        """Attach the queue handler and start the writer thread."""
        if self._listener is not None:
            return

        self._queue_handler = QueueHandler(self._queue)
        self._queue_handler.addFilter(self._redactor)
        self._logger.addHandler(self._queue_handler)
        self._logger.setLevel(self._level)

        self._listener = QueueListener(self._queue, *self._build_sinks(), respect_handler_level=True)
        self._listener.start()

    def stop(self) -> None:
        """Flush pending records and detach."""
        if self._listener:
            self._listener.stop()
            for sink in self._listener.handlers:
                sink.close()
            self._listener = None
        if self._queue_handler:
            self._logger.removeHandler(self._queue_handler)
            self._queue_handler = None

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def __enter__(self) -> "AsyncLogger":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    secrets: Iterable[str] = (),
) -> AsyncLogger:
    """
    Route the `solarb` logger tree through a started AsyncLogger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path.
        secrets: Values that must never appear in log output.

    Returns:
        Started AsyncLogger; call stop() on shutdown to flush.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    async_logger = AsyncLogger("solarb", level=numeric_level, log_file=log_file, secrets=secrets)
    async_logger.start()

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return async_logger
