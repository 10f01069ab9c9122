"""
Thread-safe, process-wide token store.

Tokens are cached per credential fingerprint so that every scaler using the
same credentials shares one token, whichever thread or event loop it runs
on. The store is constructed explicitly and injected; default_token_store()
returns the process-wide instance used when none is supplied.

Entries are overwritten on refresh and never evicted. A process serving many
distinct credential sets grows by one small entry per set.

Example:
    >>> store = TokenStore()
    >>> store.put(credentials.fingerprint, token)
    >>> cached = store.get(credentials.fingerprint)
"""

import threading
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

# Tokens closer than this to expiry are refreshed before use
TOKEN_EXPIRY_BUFFER_SECONDS = 30


class Token(BaseModel):
    """
    Access token as returned by the identity provider.

    Both Azure AD and the instance metadata service send numeric fields as
    strings; they are coerced to integers on validation.

    Attributes:
        access_token: Bearer token value
        token_type: Usually "Bearer"
        expires_on: Expiry as epoch seconds
        not_before: Start of validity as epoch seconds
        resource: Resource the token was issued for
        expires_in: Lifetime in seconds at issue time
        ext_expires_in: Extended lifetime in seconds
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(..., min_length=1, repr=False)
    token_type: str = "Bearer"
    expires_on: int
    not_before: int = 0
    resource: str = ""
    expires_in: int = 0
    ext_expires_in: int = 0

    def is_fresh(self, now: float, buffer_seconds: int = TOKEN_EXPIRY_BUFFER_SECONDS) -> bool:
        """Whether the token can still be used at time ``now``."""
        return now + buffer_seconds <= self.expires_on


class TokenStore:
    """
    Concurrent map from credential fingerprint to the last known token.

    Thread Safety:
        get/put hold a threading.Lock only for the single dictionary lookup
        or assignment. Tokens are immutable, so readers never see a partially
        written entry.
    """

    def __init__(self):
        self._tokens: Dict[str, Token] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[Token]:
        """
        Return the cached token, or None if there is none.

        A missing token is not an error; callers treat it like an expired one.
        """
        with self._lock:
            token = self._tokens.get(fingerprint)
        if token is None or not token.access_token:
            return None
        return token

    def put(self, fingerprint: str, token: Token) -> None:
        """Store or replace the token for a fingerprint."""
        with self._lock:
            self._tokens[fingerprint] = token

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._tokens


_default_store = TokenStore()


def default_token_store() -> TokenStore:
    """Process-wide store shared by scalers that aren't given one."""
    return _default_store
