"""
Telemetry for hypertrace itself.

Usage:
    from hypertrace.telemetry import get_logger

    logger = get_logger(__name__)
    logger.info("metrics_target_started", port=9100)
"""

from hypertrace.telemetry.logger import (
    BoundLogger,
    StructuredFormatter,
    StructuredLogger,
    get_logger,
    reset_logging,
    setup_logging,
)

__all__ = [
    "BoundLogger",
    "StructuredFormatter",
    "StructuredLogger",
    "get_logger",
    "reset_logging",
    "setup_logging",
]
