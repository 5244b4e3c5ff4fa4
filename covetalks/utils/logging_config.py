"""
Structured Logging Configuration

Every record is a JSON object carrying the request context: the correlation
ID from the X-Correlation-ID header (or the Lambda request id) and the id of
the signed-in member, when the session gate resolved one.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "covetalks"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
member_id_var: ContextVar[Optional[str]] = ContextVar("member_id", default=None)


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request context"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "N/A"
        member_id = member_id_var.get()
        if member_id is not None:
            record.member_id = member_id
        return True


class CoveTalksJsonFormatter(jsonlogger.JsonFormatter):
    def __init__(self, *args, environment: str = "development", **kwargs):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["environment"] = self.environment
        log_record["source"] = f"{record.module}.{record.funcName}:{record.lineno}"
        log_record.setdefault("correlation_id", getattr(record, "correlation_id", "N/A"))

        if record.exc_info and "exception" not in log_record:
            log_record["exception"] = self.formatException(record.exc_info)


def setup_logging(log_level: str = "INFO", environment: str = "development") -> logging.Logger:
    """
    Attach a single stdout JSON handler to the application logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        environment: Deployment name added to every record
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        CoveTalksJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
            environment=environment,
        )
    )
    handler.addFilter(RequestContextFilter())
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the "covetalks" hierarchy for ``name``."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set the correlation ID for this context, generating a UUID when absent."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def set_member_id(member_id: Optional[str]) -> None:
    member_id_var.set(member_id)


def clear_request_context() -> None:
    """Drop the correlation and member ids once a request completes"""
    correlation_id_var.set(None)
    member_id_var.set(None)
