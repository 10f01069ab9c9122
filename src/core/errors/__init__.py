"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- ScalerError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base class
    ScalerError,
    # Typed errors
    ConfigurationError,
    AuthError,
    QueryError,
    ValidationError,
    # Classification utilities
    MAX_BODY_CHARS,
    classify_http_status,
    truncate_body,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base class
    "ScalerError",
    # Typed errors
    "ConfigurationError",
    "AuthError",
    "QueryError",
    "ValidationError",
    # Classification utilities
    "MAX_BODY_CHARS",
    "classify_http_status",
    "truncate_body",
]
