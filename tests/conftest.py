"""
pytest configuration for scaler tests.

Adds src directory to Python path for imports and provides shared fixtures.
"""

import json
import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from core.auth.credentials import ServicePrincipalCredentials  # noqa: E402
from core.auth.token_store import TokenStore  # noqa: E402

# Fixed "current time" for token freshness tests
NOW = 1_700_000_000


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def token_store():
    """Isolated token store (never the process-wide one)."""
    return TokenStore()


@pytest.fixture
def sp_credentials():
    return ServicePrincipalCredentials(
        tenant_id="tenant-1",
        client_id="client-1",
        client_secret="secret-1",
    )


@pytest.fixture
def token_body():
    """Factory for identity provider response bodies (numbers as strings, like Azure AD)."""

    def _make(access_token="token-1", expires_on=NOW + 3600, not_before=NOW - 10, **extra):
        payload = {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": "3600",
            "ext_expires_in": "3600",
            "expires_on": str(expires_on),
            "not_before": str(not_before),
            "resource": "https://api.loganalytics.io/",
        }
        payload.update(extra)
        return json.dumps(payload).encode("utf-8")

    return _make


@pytest.fixture
def query_body():
    """Factory for Log Analytics query response bodies."""

    def _make(rows=None, types=("real", "real"), tables=1):
        columns = [{"name": f"col{i}", "type": t} for i, t in enumerate(types)]
        table = {
            "name": "PrimaryResult",
            "columns": columns,
            "rows": [[12.0, 100.0]] if rows is None else rows,
        }
        return json.dumps({"tables": [table] * tables}).encode("utf-8")

    return _make

