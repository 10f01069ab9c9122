"""
Get-or-refresh token orchestration.

TokenLifecycleManager combines the shared TokenStore with the provider
bound to one scaler's credentials:

1. A cached token is reused while it has at least 30 seconds left.
2. Otherwise a new token is fetched from the provider.
3. A token whose not_before lies up to 10 seconds in the future is waited
   for; a larger skew fails instead of blocking.
4. The new token replaces the cached one under the same fingerprint.

acquire(force_refresh=True) skips step 1. It is used after the query
endpoint reported the current token invalid.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

import aiohttp

from core import metrics
from core.auth.credentials import AuthMode
from core.auth.providers import AuthProvider
from core.auth.token_store import Token, TokenStore, default_token_store
from core.errors.exceptions import AuthError
from core.logging.utilities import LoggedClass

# Largest not_before skew that is waited out rather than failed
MAX_NOT_BEFORE_SKEW_SECONDS = 10


class TokenLifecycleManager(LoggedClass):
    """
    Returns a usable token for one set of credentials.

    Args:
        provider: Flow used to fetch new tokens (carries the credentials)
        store: Shared token store (default: process-wide store)
        clock: Returns current epoch seconds
        sleep: Awaitable sleep, replaced in tests
    """

    log_component = "auth"

    def __init__(
        self,
        provider: AuthProvider,
        store: Optional[TokenStore] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.store = store if store is not None else default_token_store()
        self._clock = clock
        self._sleep = sleep
        super().__init__()

    @property
    def auth_mode(self) -> AuthMode:
        return self.provider.auth_mode

    @property
    def fingerprint(self) -> str:
        return self.provider.credentials.fingerprint

    async def acquire(
        self,
        session: aiohttp.ClientSession,
        force_refresh: bool = False,
    ) -> Token:
        """
        Return a cached token if still fresh, otherwise fetch and cache one.

        Args:
            session: aiohttp session for the identity provider call
            force_refresh: Ignore the cache (token was rejected by the server)

        Returns:
            Token valid for at least 30 more seconds

        Raises:
            AuthError: If the provider fails or the token starts too far in
                the future
        """
        fingerprint = self.fingerprint

        if force_refresh:
            reason = "rejected"
        else:
            cached = self.store.get(fingerprint)
            if cached is not None and cached.is_fresh(self._clock()):
                return cached
            reason = "expired" if cached is not None else "missing"

        try:
            token = await self.provider.fetch_token(session)
            await self._wait_until_valid(token)
        except AuthError:
            metrics.token_failures_total.labels(auth_mode=self.auth_mode.value).inc()
            raise

        self.store.put(fingerprint, token)
        metrics.token_refreshes_total.labels(
            auth_mode=self.auth_mode.value, reason=reason
        ).inc()

        if self.auth_mode == AuthMode.SERVICE_PRINCIPAL:
            self._log(
                logging.DEBUG,
                "Token for service principal has been refreshed",
                client_id=self.provider.credentials.client_id,
                refresh_reason=reason,
                expires_on=token.expires_on,
            )
        else:
            self._log(
                logging.DEBUG,
                "Token for managed identity has been refreshed",
                refresh_reason=reason,
                expires_on=token.expires_on,
            )
        return token

    async def _wait_until_valid(self, token: Token) -> None:
        """Wait out a small not_before skew; fail on a large one."""
        now = int(self._clock())
        if token.not_before <= now:
            return

        skew = token.not_before - now
        if skew > MAX_NOT_BEFORE_SKEW_SECONDS:
            raise AuthError(
                "token not yet valid, skew too large",
                context={"skew_seconds": skew},
            )

        delay = skew + 1
        self._log(
            logging.DEBUG,
            "Access token not yet valid, waiting",
            delay_seconds=delay,
        )
        await self._sleep(delay)
