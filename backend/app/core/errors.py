"""Error Hierarchy — typed, categorized exceptions for every dog-detection failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Input errors (400-level) are recoverable; vendor errors (500-level) are critical
    - to_response() produces the REST envelope used by the global handlers
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with DogDetectionError base: FastAPI global handler catches all
    - ErrorContext as dataclass: observability data without coupling to logging framework
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class DogDetectionError(Exception):
    """Base exception for all dog-detection errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "request_id": self.context.request_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Input Errors (400-level) ───────────────────────────────────

class InvalidImageError(DogDetectionError):
    """Image payload missing, not a data URL, or not decodable."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_IMAGE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )


class ImageTooLargeError(DogDetectionError):
    """Decoded image exceeds the configured size limit."""
    def __init__(
        self, size_bytes: int, limit_bytes: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Image is {size_bytes} bytes; the limit is {limit_bytes} bytes",
            "IMAGE_TOO_LARGE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 413,
        )
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


# ─── Infrastructure Errors (500-level) ──────────────────────────

class VendorAPIError(DogDetectionError):
    """Roboflow inference call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        status_code: int | None = None,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        category = (
            ErrorCategory.TIMEOUT if api_error_type == "timeout"
            else ErrorCategory.EXTERNAL_API
        )
        super().__init__(
            f"Roboflow API Error: {message}",
            "VENDOR_API_ERROR", category,
            ErrorSeverity.CRITICAL, ctx, 502,
        )
        self.api_error_type = api_error_type
        self.status_code = status_code
