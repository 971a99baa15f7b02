"""
Logging configuration for ConfidentialReco.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional, TextIO

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs one JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    One method per workflow transition, plus security events for rejected
    oracle callbacks.
    """

    def __init__(self, name: str = "confidential_reco.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def profile_submitted(self, profile_id: int, created_at: int) -> None:
        self._log(
            logging.INFO,
            "PROFILE_SUBMITTED",
            profile_id=profile_id,
            created_at=created_at,
            message=f"Profile {profile_id} submitted"
        )

    def decryption_requested(self, oracle_request_id: int, subject_id: int, kind: str) -> None:
        self._log(
            logging.INFO,
            "DECRYPTION_REQUESTED",
            oracle_request_id=oracle_request_id,
            subject_id=subject_id,
            kind=kind,
            message=f"Decryption {oracle_request_id} requested for {kind} subject {subject_id}"
        )

    def recommendation_generated(self, recommendation_id: int, profile_id: int) -> None:
        self._log(
            logging.INFO,
            "RECOMMENDATION_GENERATED",
            recommendation_id=recommendation_id,
            profile_id=profile_id,
            message=f"Recommendation {recommendation_id} generated for profile {profile_id}"
        )

    def result_revealed(self, recommendation_id: int) -> None:
        self._log(
            logging.INFO,
            "RESULT_REVEALED",
            recommendation_id=recommendation_id,
            message=f"Recommendation {recommendation_id} revealed"
        )

    def callback_rejected(self, oracle_request_id: int, code: str, reason: str) -> None:
        """Log a rejected oracle callback."""
        severity = "high" if code == "INVALID_PROOF" else "medium"
        self.security_event(
            "callback_rejected",
            severity=severity,
            oracle_request_id=oracle_request_id,
            code=code,
            reason=reason,
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
        stream: Console stream (defaults to stdout)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Returns:
        The request ID that was set (generated when None)
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
