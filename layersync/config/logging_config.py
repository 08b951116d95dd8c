import logging
from logging.handlers import RotatingFileHandler
import io
import sys
from contextvars import ContextVar, Token
from pathlib import Path
from layersync.config.settings import Config

NO_CORRELATION_ID = "NO Correlation ID"

# Context variable to store correlation ID across async boundaries
correlation_id_var: ContextVar[str] = ContextVar(
    "correlation_id", default=NO_CORRELATION_ID
)


def bind_correlation_id(correlation_id: str) -> Token:
    """Set the correlation id for the current task. Reset with the returned token."""
    return correlation_id_var.set(correlation_id)


def reset_correlation_id(token: Token) -> None:
    correlation_id_var.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Logging filter to add correlation ID to log records."""

    def filter(self, record):
        record.correlation_id = correlation_id_var.get()
        return True


class SafeFormatter(logging.Formatter):
    """Formatter that ensures correlation_id always exists."""

    def format(self, record):
        if not hasattr(record, "correlation_id"):
            record.correlation_id = NO_CORRELATION_ID
        return super().format(record)


def setup_logging(level: str = "INFO", log_file: str | None = None):
    root = logging.getLogger()
    root.setLevel(logging.WARNING)  # Set root to WARNING to avoid too much noise
    root.addFilter(CorrelationIdFilter())
    logger_handler = logging.StreamHandler(
        io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8")
    )
    formatter = SafeFormatter(Config.LOG_FORMAT)
    logger_handler.setFormatter(formatter)
    logger_handler.addFilter(CorrelationIdFilter())
    root.addHandler(logger_handler)

    # Set up file logging if log_file provided with rotation
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(CorrelationIdFilter())
        root.addHandler(file_handler)

    for noisy in ("httpx", "httpcore", "openai", "prisma"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    # Only the package logs at the configured level
    logging.getLogger("layersync").setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("layersync").info("Logging is set up.")
    return root
