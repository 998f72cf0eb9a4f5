"""Exception classes for hypertrace.

Includes:
- Base exception carrying a stable error code
- Argument validation failures raised synchronously to the caller
- Call-site resolution failures (never degraded into a corrupted event)
- Metrics listener start-up failures
"""

from datetime import UTC, datetime
from typing import Any


class HypertraceException(Exception):
    """Base exception for all hypertrace errors."""

    def __init__(self, detail: str, error_code: str = "HYPERTRACE_ERROR"):
        self.detail = detail
        self.error_code = error_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for structured logs."""
        return {
            "error": self.error_code,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }


class InvalidArgumentError(HypertraceException, ValueError):
    """Raised when a public entry point receives an unusable argument."""

    def __init__(self, detail: str):
        super().__init__(detail=detail, error_code="INVALID_ARGUMENT")


class MalformedStackFrameError(HypertraceException, RuntimeError):
    """Raised when the caller frame cannot be resolved into a call site."""

    def __init__(self, reason: str, frame: Any = None):
        self.frame = frame
        super().__init__(
            detail=f"Cannot resolve call site: {reason}",
            error_code="MALFORMED_STACK_FRAME",
        )


class MetricsTargetError(HypertraceException, RuntimeError):
    """Raised when the metrics exposition listener cannot be started."""

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        super().__init__(
            detail=f"Metrics listener on {host}:{port} failed: {reason}",
            error_code="METRICS_TARGET_FAILED",
        )
