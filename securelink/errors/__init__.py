"""
Structured error handling for securelink.

Every failure the engine, the stores and the HTTP layer can report is a
SecureLinkError carrying an ErrorCode, the subsystem it came from, a severity
and optional request context. The HTTP layer turns these into JSON bodies
using ``http_status`` and ``to_dict()``.
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any, Optional, List
from dataclasses import dataclass


class ErrorCode(Enum):
    """Structured error codes for securelink."""

    # Request errors
    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"

    # Terminal link states
    LINK_EXPIRED = "link_expired"
    LINK_EXHAUSTED = "link_exhausted"

    # Contention
    BUSY = "busy"

    # Infrastructure
    STORAGE_FAILURE = "storage_failure"
    UPSTREAM_FAILURE = "upstream_failure"
    SERVER_ERROR = "server_error"


class ErrorSource(Enum):
    """Sources where errors can originate."""

    CLIENT = "client"
    SERVER = "server"
    VALIDATION = "validation"
    LINK_ENGINE = "link_engine"
    STORAGE = "storage"
    UPSTREAM = "upstream"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Additional context for errors."""

    request_id: Optional[str] = None
    program_id: Optional[str] = None
    account_login: Optional[str] = None
    endpoint: Optional[str] = None
    timestamp: datetime = None
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()
        if self.metadata is None:
            self.metadata = {}


_HTTP_STATUS = {
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.LINK_EXPIRED: 403,
    ErrorCode.LINK_EXHAUSTED: 403,
    ErrorCode.BUSY: 503,
    ErrorCode.STORAGE_FAILURE: 500,
    ErrorCode.UPSTREAM_FAILURE: 502,
    ErrorCode.SERVER_ERROR: 500,
}


class SecureLinkError(Exception):
    """
    Base exception class for all securelink errors.

    Provides structured error information with error codes,
    sources, severity levels, and additional context.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        source: ErrorSource = ErrorSource.SERVER,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.code = code
        self.message = message
        self.source = source
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause

        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        """HTTP status code this error maps to."""
        return _HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the JSON body returned to HTTP callers."""
        result = {
            "error": self.message,
            "code": self.code.value,
        }

        if self.context.request_id:
            result["request_id"] = self.context.request_id

        if self.context.metadata.get("field"):
            result["field"] = self.context.metadata["field"]

        return result

    def is_client_error(self) -> bool:
        """Check if this is a client-side error."""
        return 400 <= self.http_status < 500

    def is_retryable(self) -> bool:
        """Check if this error might be resolved by retrying."""
        return self.code == ErrorCode.BUSY


class InvalidArgumentError(SecureLinkError):
    """Malformed or missing request fields."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", ErrorContext())
        if field:
            context.metadata["field"] = field

        super().__init__(
            code=ErrorCode.INVALID_ARGUMENT,
            message=message,
            source=ErrorSource.VALIDATION,
            severity=ErrorSeverity.LOW,
            context=context,
            **kwargs
        )


class NotFoundError(SecureLinkError):
    """Unknown key."""

    def __init__(self, message: str = "Link not found", token_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", ErrorContext())
        if token_id:
            context.metadata["token_id"] = token_id

        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message,
            source=ErrorSource.LINK_ENGINE,
            severity=ErrorSeverity.LOW,
            context=context,
            **kwargs
        )


class LinkExpiredError(SecureLinkError):
    """The link is past its expiry or was deactivated."""

    def __init__(self, message: str = "Link expired", token_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", ErrorContext())
        if token_id:
            context.metadata["token_id"] = token_id

        super().__init__(
            code=ErrorCode.LINK_EXPIRED,
            message=message,
            source=ErrorSource.LINK_ENGINE,
            severity=ErrorSeverity.LOW,
            context=context,
            **kwargs
        )


class LinkExhaustedError(SecureLinkError):
    """The link has no uses left."""

    def __init__(self, message: str = "Maximum uses exceeded", token_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", ErrorContext())
        if token_id:
            context.metadata["token_id"] = token_id

        super().__init__(
            code=ErrorCode.LINK_EXHAUSTED,
            message=message,
            source=ErrorSource.LINK_ENGINE,
            severity=ErrorSeverity.LOW,
            context=context,
            **kwargs
        )


class BusyError(SecureLinkError):
    """Lock or compare-and-swap contention timed out; safe to retry."""

    def __init__(self, message: str = "Resource busy, retry later",
                 retry_after: float = 1.0, **kwargs):
        self.retry_after = retry_after
        super().__init__(
            code=ErrorCode.BUSY,
            message=message,
            source=ErrorSource.STORAGE,
            severity=ErrorSeverity.MEDIUM,
            **kwargs
        )


class StorageFailureError(SecureLinkError):
    """I/O or serialization fault in the record store."""

    def __init__(self, message: str, namespace: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", ErrorContext())
        if namespace:
            context.metadata["namespace"] = namespace

        super().__init__(
            code=ErrorCode.STORAGE_FAILURE,
            message=message,
            source=ErrorSource.STORAGE,
            severity=ErrorSeverity.HIGH,
            context=context,
            **kwargs
        )


class UpstreamFailureError(SecureLinkError):
    """The upstream fetch failed."""

    def __init__(self, message: str = "Download failed", status: Optional[int] = None, **kwargs):
        context = kwargs.pop("context", ErrorContext())
        if status is not None:
            context.metadata["upstream_status"] = status

        super().__init__(
            code=ErrorCode.UPSTREAM_FAILURE,
            message=message,
            source=ErrorSource.UPSTREAM,
            severity=ErrorSeverity.MEDIUM,
            context=context,
            **kwargs
        )


def wrap_exception(exc: Exception, message: str = "Internal server error") -> SecureLinkError:
    """Wrap a generic exception as a securelink error."""
    return SecureLinkError(
        code=ErrorCode.SERVER_ERROR,
        message=message,
        cause=exc
    )


class ErrorCollection:
    """Collection of validation errors gathered from one request body."""

    def __init__(self):
        self.errors: List[SecureLinkError] = []

    def add(self, error: SecureLinkError):
        """Add an error to the collection."""
        self.errors.append(error)

    def add_validation_error(self, message: str, field: Optional[str] = None):
        """Add a validation error."""
        self.add(InvalidArgumentError(message, field=field))

    def has_errors(self) -> bool:
        """Check if collection has any errors."""
        return len(self.errors) > 0

    def raise_if_errors(self):
        """Raise the first error if any exist."""
        if self.has_errors():
            raise self.errors[0]


__all__ = [
    "ErrorCode",
    "ErrorSource",
    "ErrorSeverity",
    "ErrorContext",
    "SecureLinkError",
    "InvalidArgumentError",
    "NotFoundError",
    "LinkExpiredError",
    "LinkExhaustedError",
    "BusyError",
    "StorageFailureError",
    "UpstreamFailureError",
    "wrap_exception",
    "ErrorCollection",
]
