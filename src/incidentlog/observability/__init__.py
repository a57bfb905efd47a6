"""
Observability module for incidentlog.

Structured JSON logging of store operations, with a per-task session context.
"""

from incidentlog.observability.logging import (
    StructuredFormatter,
    configure_logging,
    log_context,
    log_operation,
)

__all__ = [
    "StructuredFormatter",
    "configure_logging",
    "log_context",
    "log_operation",
]
