"""Audit and debug logging utilities."""

from .audit import (
    AuditEvent,
    JsonlAuditLogger,
    sanitize_arguments,
    summarize_result,
    utc_timestamp,
)
from .debug import DEBUG_LOG_NAME, configure_debug_log

__all__ = [
    "AuditEvent",
    "DEBUG_LOG_NAME",
    "JsonlAuditLogger",
    "configure_debug_log",
    "sanitize_arguments",
    "summarize_result",
    "utc_timestamp",
]
