"""Custom exception hierarchy for QueueBot."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for log records and queue-page reports."""

    # Command errors
    INVALID_COMMAND = "INVALID_COMMAND"
    DISCUSSION_LINK_MISSING = "DISCUSSION_LINK_MISSING"

    # Page store errors
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    PAGE_STORE_ERROR = "PAGE_STORE_ERROR"

    # Wikitext errors
    TRANSCODER_ERROR = "TRANSCODER_ERROR"

    # Discovery errors
    DISCOVERY_ERROR = "DISCOVERY_ERROR"

    # Audit database errors
    AUDIT_WRITE_FAILED = "AUDIT_WRITE_FAILED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class QueueBotException(Exception):
    """
    Base exception for all QueueBot errors.

    Provides structured errors with:
    - Human-readable message
    - Machine-readable error code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for structured logging.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class InvalidCommandError(QueueBotException):
    """Queue heading does not match any known command form."""

    def __init__(self, message: str = "コマンド形式が不正です. コマンドを確認し修正してください.",
                 heading: Optional[str] = None):
        details = {"heading": heading} if heading else {}
        super().__init__(message, ErrorCode.INVALID_COMMAND, details=details)


class DiscussionLinkMissingError(QueueBotException):
    """Command section carries no link to the discussion that approved it."""

    def __init__(self, heading: Optional[str] = None):
        details = {"heading": heading} if heading else {}
        super().__init__(
            "議論が行われた場所を示すリンクが必要です.",
            ErrorCode.DISCUSSION_LINK_MISSING,
            details=details,
        )


class PageStoreError(QueueBotException):
    """A page store request failed."""

    def __init__(self, message: str, title: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        details: Dict[str, Any] = {}
        if title:
            details["title"] = title
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, ErrorCode.PAGE_STORE_ERROR, details=details)


class PageNotFoundError(QueueBotException):
    """Page does not exist on the wiki."""

    def __init__(self, title: str):
        super().__init__(
            f"Page not found: {title}",
            ErrorCode.PAGE_NOT_FOUND,
            details={"title": title}
        )


class TranscoderError(QueueBotException):
    """Wikitext could not be parsed or serialized."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, ErrorCode.TRANSCODER_ERROR, details=details)


class DiscoveryError(QueueBotException):
    """One item of a member-discovery stream could not be produced."""

    def __init__(self, source: str, original_error: Exception):
        super().__init__(
            f"{source} failed: {original_error}",
            ErrorCode.DISCOVERY_ERROR,
            details={"source": source, "original_error": str(original_error)},
        )
        self.source = source
        self.original_error = original_error


class AuditWriteError(QueueBotException):
    """Audit database insert failed after all retries."""

    def __init__(self, message: str, attempts: int, original_error: Optional[Exception] = None):
        details: Dict[str, Any] = {"attempts": attempts}
        if original_error:
            details["original_error"] = str(original_error)
        super().__init__(message, ErrorCode.AUDIT_WRITE_FAILED, details=details)
        self.original_error = original_error
