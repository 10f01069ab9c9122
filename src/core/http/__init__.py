"""
Async HTTP helpers.

Provides session creation and a single-request helper that reports
transport failures as data instead of raising.
"""

from core.http.client import (
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    HttpResponse,
    create_session,
    send_request,
)

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_USER_AGENT",
    "HttpResponse",
    "create_session",
    "send_request",
]
