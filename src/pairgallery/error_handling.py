"""
Error taxonomy for pairgallery.

Every expected failure is a PairGalleryError subclass. A subclass fixes its
category, severity, default code and retry hint as class attributes; call
sites only pass a message, a specific ``code`` and ``details``. Screens catch
these at their boundary and render ``user_message``.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from .logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    UPLOAD = "upload"
    MEDIA = "media"
    DATABASE = "database"
    VALIDATION = "validation"
    NETWORK = "network"
    DECODE = "decode"
    SYSTEM = "system"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorInfo:
    """What a screen needs to show an error."""

    category: ErrorCategory
    severity: ErrorSeverity
    code: str
    message: str
    user_message: str
    details: dict[str, Any]
    timestamp: datetime
    recoverable: bool = True
    retry_suggested: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "recoverable": self.recoverable,
            "retry_suggested": self.retry_suggested,
        }


class PairGalleryError(Exception):
    """
    Base exception class for pairgallery.

    Constructing an error logs it: validation failures at info level, the
    rest through ``log_error``, and sign-in or permission failures also as
    security events.
    """

    category: ClassVar[ErrorCategory] = ErrorCategory.UNKNOWN
    severity: ClassVar[ErrorSeverity] = ErrorSeverity.MEDIUM
    default_code: ClassVar[str | None] = None
    default_user_message: ClassVar[str] = "An unexpected error occurred."
    recoverable_default: ClassVar[bool] = True
    retry_default: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        recoverable: bool | None = None,
        retry_suggested: bool | None = None,
    ):
        super().__init__(message)
        if category is not None:
            self.category = category  # type: ignore[misc]
        if severity is not None:
            self.severity = severity  # type: ignore[misc]
        self.code = code or self.default_code or f"{self.category.value}_error"
        self.user_message = user_message or self.default_user_message
        self.details = details or {}
        self.recoverable = self.recoverable_default if recoverable is None else recoverable
        self.retry_suggested = self.retry_default if retry_suggested is None else retry_suggested
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        self._log_error()

    def _log_error(self) -> None:
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "recoverable": self.recoverable,
            **self.details,
        }
        if self.original_exception is not None:
            error_context["original_exception"] = str(self.original_exception)

        if self.category is ErrorCategory.VALIDATION:
            logger.info("validation_failed", error_message=str(self), **error_context)
            return

        log_error(self, error_context)
        if self.category in (ErrorCategory.AUTHENTICATION, ErrorCategory.AUTHORIZATION):
            log_security_event(self.category.value, context=error_context)

    def get_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            category=self.category,
            severity=self.severity,
            code=self.code,
            message=str(self),
            user_message=self.user_message,
            details=self.details,
            timestamp=self.timestamp,
            recoverable=self.recoverable,
            retry_suggested=self.retry_suggested,
        )


class AuthenticationError(PairGalleryError):
    """No current user, expired session, or rejected credentials."""

    category = ErrorCategory.AUTHENTICATION
    severity = ErrorSeverity.HIGH
    default_code = "auth_failed"
    default_user_message = "Please sign in again."
    retry_default = True


class AuthorizationError(PairGalleryError):
    """The user may not do this: no household, or a vault problem."""

    category = ErrorCategory.AUTHORIZATION
    severity = ErrorSeverity.HIGH
    default_code = "access_denied"
    default_user_message = "You are not allowed to do that."
    recoverable_default = False


class VaultLockedError(AuthorizationError):
    """The private vault was accessed while locked."""

    default_code = "vault_locked"
    default_user_message = "The vault is locked. Enter your vault password to continue."
    recoverable_default = True

    def __init__(self, message: str = "Vault is locked", code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, code=code, details=details)


class UploadError(PairGalleryError):
    """Media upload failed at the provider."""

    category = ErrorCategory.UPLOAD
    default_code = "upload_failed"
    default_user_message = "The upload failed. Please try again."
    retry_default = True


class MediaProcessingError(PairGalleryError):
    """A photo could not be decoded or inspected."""

    category = ErrorCategory.MEDIA
    default_code = "media_processing_failed"
    default_user_message = "This file could not be read. Check the file format."


class DatabaseError(PairGalleryError):
    """The local preferences store failed."""

    category = ErrorCategory.DATABASE
    severity = ErrorSeverity.HIGH
    default_code = "database_error"
    default_user_message = "Local settings could not be saved."
    retry_default = True


class ValidationError(PairGalleryError):
    """Rejected input; raised before anything is sent."""

    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW
    default_code = "validation_failed"
    default_user_message = "Please check your input."


class NetworkError(PairGalleryError):
    """A gateway call failed; the optimistic change was undone."""

    category = ErrorCategory.NETWORK
    default_code = "network_error"
    default_user_message = "Could not reach the server. Check your connection and try again."
    retry_default = True


class RecordDecodeError(PairGalleryError):
    """An external row did not have the expected shape."""

    category = ErrorCategory.DECODE
    severity = ErrorSeverity.LOW
    default_code = "record_decode_failed"
    default_user_message = "Received data in an unexpected format."

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class PairGallerySystemError(PairGalleryError):
    """Misconfiguration or a failure the app cannot recover from."""

    category = ErrorCategory.SYSTEM
    severity = ErrorSeverity.CRITICAL
    default_code = "system_error"
    default_user_message = "Something went wrong. Please restart the app."
    recoverable_default = False


class ErrorHandler:
    """Turns any exception into ErrorInfo at the screen boundary and counts codes."""

    KEYWORDS: ClassVar[list[tuple[type[PairGalleryError], tuple[str, ...]]]] = [
        (AuthenticationError, ("authentication", "login", "jwt", "token", "unauthorized", "session")),
        (AuthorizationError, ("permission", "access denied", "forbidden", "not allowed")),
        (UploadError, ("upload", "imagekit", "cloudinary", "file size")),
        (MediaProcessingError, ("image", "exif", "pillow", "heic", "jpeg")),
        (DatabaseError, ("duckdb", "database", "preferences")),
        (NetworkError, ("network", "connection", "timeout", "unreachable", "gateway")),
        (ValidationError, ("validation", "invalid", "required", "missing", "empty")),
    ]
    FREQUENT_EVERY = 10

    def __init__(self) -> None:
        self.error_counts: dict[str, int] = {}

    def handle_error(self, error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
        if not isinstance(error, PairGalleryError):
            error = self.classify(error, context or {})
        error_info = error.get_error_info()
        self._track_error(error_info.code)
        return error_info

    def classify(self, error: Exception, context: dict[str, Any]) -> PairGalleryError:
        """Map a foreign exception by message keywords, then by type."""
        message = str(error)
        lowered = message.lower()
        details = {"original_type": type(error).__name__, **context}

        for error_class, keywords in self.KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return error_class(message, details=details, original_exception=error)

        if isinstance(error, (ConnectionError, TimeoutError)):
            return NetworkError(message, details=details, original_exception=error)
        if isinstance(error, (OSError, MemoryError, SystemError)):
            return PairGallerySystemError(message, details=details, original_exception=error)
        return PairGalleryError(message, details=details, original_exception=error)

    def _track_error(self, error_code: str) -> None:
        count = self.error_counts.get(error_code, 0) + 1
        self.error_counts[error_code] = count
        if count % self.FREQUENT_EVERY == 0:
            logger.warning("frequent_error_detected", error_code=error_code, count=count)

    def get_error_statistics(self) -> dict[str, int]:
        return dict(self.error_counts)

    def reset_statistics(self) -> None:
        self.error_counts.clear()


error_handler = ErrorHandler()


def handle_error(error: Exception, context: dict[str, Any] | None = None) -> ErrorInfo:
    """Classify ``error`` with the process-wide handler."""
    return error_handler.handle_error(error, context)
