"""
Minimal aiohttp request helper.

send_request() never raises for HTTP status codes or transport failures:
it always returns an HttpResponse, with status_code 0 and error set when no
response was received. Callers decide what a failure means.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_USER_AGENT = "log-analytics-scaler/1.0.0"


@dataclass(frozen=True)
class HttpResponse:
    """
    Outcome of a single HTTP exchange.

    Attributes:
        body: Raw response body (empty if nothing was read)
        status_code: HTTP status, or 0 if no response was received
        error: Transport error, if any
    """

    body: bytes
    status_code: int
    error: Optional[Exception] = None


def create_session(
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    max_connections: int = 10,
    user_agent: str = DEFAULT_USER_AGENT,
) -> aiohttp.ClientSession:
    """
    Create an aiohttp session for identity and query calls.

    Args:
        timeout_seconds: Total timeout per request
        max_connections: Connection pool size
        user_agent: User-Agent header sent with every request

    Returns:
        New ClientSession (caller must close it)
    """
    connector = aiohttp.TCPConnector(limit=max_connections)
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds),
        headers={"User-Agent": user_agent},
    )


async def send_request(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    data: Optional[Dict[str, str]] = None,
    json_body: Optional[Dict[str, Any]] = None,
) -> HttpResponse:
    """
    Perform one HTTP request and read the whole body.

    Args:
        session: aiohttp session to use
        method: HTTP method (GET, POST)
        url: Absolute URL
        headers: Extra request headers
        data: Form fields (sent url-encoded)
        json_body: JSON body

    Returns:
        HttpResponse with body and status, or status 0 and the transport error
    """
    request_headers = {"Cache-Control": "no-cache"}
    if headers:
        request_headers.update(headers)

    try:
        async with session.request(
            method,
            url,
            headers=request_headers,
            data=data,
            json=json_body,
        ) as response:
            try:
                body = await response.read()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                return HttpResponse(body=b"", status_code=response.status, error=e)
            return HttpResponse(body=body, status_code=response.status)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return HttpResponse(body=b"", status_code=0, error=e)
