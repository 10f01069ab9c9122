"""
Log Analytics query execution.

QueryExecutor sends the query with a bearer token. If the API answers 403
or the body mentions TokenExpired, the token is force-refreshed and the
query is sent exactly once more; a second rejection is reported, not retried.
"""

import logging
import time
from typing import Optional

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from core import metrics
from core.auth.lifecycle import TokenLifecycleManager
from core.auth.token_store import Token
from core.errors.exceptions import QueryError
from core.http.client import HttpResponse, send_request
from core.logging.utilities import LoggedClass, logged_operation
from log_analytics_scaler.validation import MetricSample, QueryResponse, ResultValidator

LOG_ANALYTICS_QUERY_ENDPOINT = "https://api.loganalytics.io/v1/workspaces/{workspace_id}/query"
TOKEN_EXPIRED_MARKER = b"TokenExpired"


def is_token_rejected(response: HttpResponse) -> bool:
    """Whether the query API refused the bearer token."""
    return response.status_code == 403 or TOKEN_EXPIRED_MARKER in response.body


class QueryExecutor(LoggedClass):
    """
    Runs a query against one workspace and validates the result.

    Args:
        workspace_id: Log Analytics workspace ID
        token_manager: Token source for the workspace credentials
        validator: Result validator (default: ResultValidator())
    """

    log_component = "query"

    def __init__(
        self,
        workspace_id: str,
        token_manager: TokenLifecycleManager,
        validator: Optional[ResultValidator] = None,
    ):
        self.workspace_id = workspace_id
        self.token_manager = token_manager
        self.validator = validator or ResultValidator()
        self.url = LOG_ANALYTICS_QUERY_ENDPOINT.format(workspace_id=workspace_id)
        super().__init__()

    @logged_operation()
    async def run(self, session: aiohttp.ClientSession, query: str) -> MetricSample:
        """
        Execute the query and return the validated sample.

        Raises:
            AuthError: If a token cannot be acquired
            QueryError: On HTTP/transport failure or undecodable body
            ValidationError: If the result is not a single scalar row
        """
        start = time.perf_counter()
        try:
            token = await self.token_manager.acquire(session)
            response = await self._post_query(session, query, token)

            if is_token_rejected(response):
                metrics.query_retries_total.inc()
                self._log(
                    logging.INFO,
                    "Access token rejected by Log Analytics, refreshing and retrying",
                    http_status=response.status_code,
                )
                token = await self.token_manager.acquire(session, force_refresh=True)
                response = await self._post_query(session, query, token)

            return self.validator.validate(self._decode(response))
        finally:
            metrics.query_duration_seconds.observe(time.perf_counter() - start)

    async def _post_query(
        self,
        session: aiohttp.ClientSession,
        query: str,
        token: Token,
    ) -> HttpResponse:
        response = await send_request(
            session,
            "POST",
            self.url,
            headers={"Authorization": f"Bearer {token.access_token}"},
            json_body={"query": query},
        )
        metrics.query_requests_total.labels(status=str(response.status_code)).inc()
        return response

    def _decode(self, response: HttpResponse) -> QueryResponse:
        if response.status_code not in (200, 0):
            raise QueryError(
                "Error processing Log Analytics request",
                status_code=response.status_code,
                body=response.body,
                cause=response.error,
            )

        if response.error is not None:
            raise QueryError(
                "Error calling Log Analytics REST api",
                status_code=response.status_code,
                body=response.body,
                cause=response.error,
            )

        if not response.body:
            raise QueryError(
                "Error processing Log Analytics request. Details: empty body",
                status_code=response.status_code,
            )

        try:
            return QueryResponse.model_validate_json(response.body)
        except PydanticValidationError as e:
            raise QueryError(
                "Error processing Log Analytics request. Details: can't decode response body",
                status_code=response.status_code,
                body=response.body,
                cause=e,
            ) from e
