"""
SarkariFeed Custom Exceptions
============================

Exception hierarchy for the ingestion pipeline with error codes and
context information for structured logging.

Failure kinds are kept distinct so run statistics can be attributed:
- FetchError: network/transport failure for one feed source
- ParseError: feed payload is not a usable syndication document
- ItemSkipped: a recorded decision to not merge one item
- MergeError: record store write failure for one item
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Feed ingestion errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_NOT_FOUND = "F006"
    FEED_HTTP_ERROR = "F007"

    # Item processing errors (P001-P099)
    ITEM_MALFORMED = "P001"
    ITEM_UNCLASSIFIED = "P002"
    ITEM_MERGE_FAILED = "P003"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"


class SarkariFeedError(Exception):
    """Base exception for all SarkariFeed errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        """Initialize SarkariFeed error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(SarkariFeedError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            **kwargs,
        )


class DatabaseError(SarkariFeedError):
    """Record store errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DATABASE_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class ValidationError(SarkariFeedError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


class FeedError(SarkariFeedError):
    """Feed-level errors. Contained to the feed that raised them."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for SarkariFeedError
        """
        context = kwargs.pop("context", {})
        if feed_url:
            context["feed_url"] = feed_url
        self.feed_url = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.FEED_NETWORK_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class FetchError(FeedError):
    """Transport failure retrieving one feed (HTTP status, network, timeout)."""

    def __init__(
        self,
        message: str,
        feed_url: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs,
    ):
        self.cause = cause
        context = kwargs.pop("context", {})
        if cause is not None:
            context["cause"] = f"{type(cause).__name__}: {cause}"
        super().__init__(message, feed_url=feed_url, context=context, **kwargs)


class ParseError(FeedError):
    """Feed payload is not a well-formed syndication document."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            feed_url=feed_url,
            error_code=kwargs.pop("error_code", ErrorCode.FEED_PARSE_ERROR),
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


class ItemSkipped(SarkariFeedError):
    """An item was deliberately not merged.

    Not a failure: raised or reported when an entry is malformed within an
    otherwise valid document, or when it cannot be classified.
    """

    MALFORMED = "malformed"
    UNCLASSIFIED = "unclassified"

    def __init__(
        self,
        message: str,
        reason: str,
        external_key: Optional[str] = None,
        title: Optional[str] = None,
        **kwargs,
    ):
        self.reason = reason
        self.external_key = external_key
        self.title = title
        context = kwargs.pop("context", {})
        context["reason"] = reason
        if external_key:
            context["external_key"] = external_key
        if title:
            context["title"] = title

        default_code = (
            ErrorCode.ITEM_UNCLASSIFIED
            if reason == self.UNCLASSIFIED
            else ErrorCode.ITEM_MALFORMED
        )
        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", default_code),
            context=context,
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


class MergeError(SarkariFeedError):
    """Record store write failure for a single item."""

    def __init__(
        self,
        message: str,
        external_key: str,
        kind: Optional[str] = None,
        **kwargs,
    ):
        self.external_key = external_key
        self.kind = kind
        context = kwargs.pop("context", {})
        context["external_key"] = external_key
        if kind:
            context["kind"] = kind

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.ITEM_MERGE_FAILED),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


def is_retryable_error(exception: SarkariFeedError) -> bool:
    """Check if an error is worth retrying.

    Args:
        exception: SarkariFeed exception to check

    Returns:
        True if the error is potentially retryable
    """
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.FEED_NETWORK_ERROR,
        ErrorCode.FEED_FETCH_TIMEOUT,
        ErrorCode.FEED_HTTP_ERROR,
        ErrorCode.DATABASE_CONNECTION,
    }

    return exception.error_code in retryable_codes
