"""
Monitoring module for the transfer engine.

Structured, correlation-aware logging shared by the export and import
cascades, the transfer service, and the CLI.
"""

from .structured_logger import (
    StructuredLogger,
    LoggingContext,
    OperationLogger,
    CorrelationIdManager,
    JSONFormatter,
    get_logger,
    configure_logging,
)

__all__ = [
    'StructuredLogger',
    'LoggingContext',
    'OperationLogger',
    'CorrelationIdManager',
    'JSONFormatter',
    'get_logger',
    'configure_logging',
]
