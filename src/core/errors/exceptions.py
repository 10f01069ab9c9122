"""
Common exception types and error classification for the scaler.

Provides:
- ErrorCategory enum for retry decisions
- Typed exception hierarchy for scaler errors
- Error classification utilities
"""

from enum import Enum
from typing import Optional

# Response bodies carried in error context are cut to this many characters
MAX_BODY_CHARS = 500


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed on a later cycle
                   (e.g., network timeouts, 429/503 errors)
        AUTH: Authentication failures requiring credential refresh
              (e.g., 401/403 errors, expired tokens)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., bad configuration, malformed query results)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


def truncate_body(body: Optional[bytes], limit: int = MAX_BODY_CHARS) -> str:
    """Decode and shorten a response body for error messages and logs."""
    if not body:
        return ""
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else str(body)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


class ScalerError(Exception):
    """
    Base exception for all scaler errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether a later scheduling cycle may succeed."""
        return self.category in (
            ErrorCategory.TRANSIENT,
            ErrorCategory.AUTH,
            ErrorCategory.UNKNOWN,
        )

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class _HttpScalerError(ScalerError):
    """Error raised from an HTTP exchange; keeps status and a truncated body."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        body: Optional[bytes] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.body = truncate_body(body)
        context = dict(context or {})
        context.setdefault("http_status", status_code)
        if self.body:
            context.setdefault("body", self.body)
        super().__init__(message, cause, context)

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code:
            parts.append(f"HTTP code: {self.status_code}")
        if self.body:
            parts.append(f"Body: {self.body}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ScalerError):
    """Invalid or missing scaler metadata."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthError(_HttpScalerError):
    """Identity provider call failed or returned an unusable token."""

    category = ErrorCategory.AUTH


# =============================================================================
# Query Errors
# =============================================================================


class QueryError(_HttpScalerError):
    """Log Analytics query failed before its result could be validated."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        body: Optional[bytes] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, status_code, body, cause, context)
        if status_code:
            self.category = classify_http_status(status_code)
        elif cause is not None:
            self.category = ErrorCategory.TRANSIENT


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(ScalerError):
    """
    Query result does not have the shape of a scalar metric.

    Attributes:
        reason: Short machine-readable code identifying the violated rule
    """

    category = ErrorCategory.PERMANENT

    def __init__(
        self,
        reason: str,
        message: str,
        context: Optional[dict] = None,
    ):
        self.reason = reason
        context = dict(context or {})
        context.setdefault("reason", reason)
        super().__init__(message, None, context)


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """
    Classify HTTP status code into error category.

    Args:
        status_code: HTTP response status

    Returns:
        Appropriate ErrorCategory
    """
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code in (401, 403):
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN

