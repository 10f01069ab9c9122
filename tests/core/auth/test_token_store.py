"""Tests for Token, TokenStore and credential fingerprints."""

import threading

import pytest
from pydantic import ValidationError as PydanticValidationError

from core.auth.credentials import (
    AuthMode,
    ManagedIdentityCredentials,
    ServicePrincipalCredentials,
    compute_fingerprint,
)
from core.auth.token_store import Token, TokenStore, default_token_store


class TestToken:
    """Tests for Token decoding and freshness."""

    def test_decodes_string_numbers(self, token_body, now):
        """Azure AD sends numeric fields as strings."""
        token = Token.model_validate_json(token_body(expires_on=now + 3600))

        assert token.access_token == "token-1"
        assert token.expires_on == now + 3600
        assert token.expires_in == 3600
        assert token.resource == "https://api.loganalytics.io/"

    def test_ignores_unknown_fields(self, token_body):
        token = Token.model_validate_json(token_body(client_id="abc"))
        assert not hasattr(token, "client_id")

    def test_rejects_missing_access_token(self, now):
        with pytest.raises(PydanticValidationError):
            Token.model_validate({"expires_on": now})

    def test_access_token_not_in_repr(self, now):
        token = Token(access_token="super-secret", expires_on=now)
        assert "super-secret" not in repr(token)

    @pytest.mark.parametrize(
        "offset,fresh",
        [(29, False), (30, True), (31, True), (-5, False)],
    )
    def test_freshness_buffer(self, now, offset, fresh):
        """A token needs at least 30 seconds left to be used."""
        token = Token(access_token="t", expires_on=now + offset)
        assert token.is_fresh(now) is fresh


class TestTokenStore:
    """Tests for the shared token store."""

    def test_get_missing_returns_none(self, token_store):
        assert token_store.get("nope") is None

    def test_put_then_get(self, token_store, now):
        token = Token(access_token="t", expires_on=now)
        token_store.put("fp", token)

        assert token_store.get("fp") is token
        assert "fp" in token_store
        assert len(token_store) == 1

    def test_put_replaces_entry(self, token_store, now):
        token_store.put("fp", Token(access_token="old", expires_on=now))
        token_store.put("fp", Token(access_token="new", expires_on=now))

        assert token_store.get("fp").access_token == "new"
        assert len(token_store) == 1

    def test_entries_are_never_evicted(self, token_store, now):
        for i in range(50):
            token_store.put(f"fp-{i}", Token(access_token="t", expires_on=now))
        assert len(token_store) == 50

    def test_concurrent_writers(self, token_store, now):
        """Writes from many threads all land."""

        def writer(n):
            for i in range(100):
                token_store.put(f"{n}-{i}", Token(access_token="t", expires_on=now))
                token_store.get(f"{n}-{i}")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(token_store) == 800

    def test_default_store_is_shared(self):
        assert default_token_store() is default_token_store()


class TestFingerprint:
    """Tests for credential fingerprints used as store keys."""

    def test_deterministic(self):
        assert compute_fingerprint("id", "secret") == compute_fingerprint("id", "secret")

    def test_distinct_pairs_differ(self):
        assert compute_fingerprint("id", "secret-a") != compute_fingerprint("id", "secret-b")
        assert compute_fingerprint("id-a", "secret") != compute_fingerprint("id-b", "secret")

    def test_separator_in_parts_does_not_collide(self):
        """Moving a '|' between client id and secret gives a different key."""
        first = ServicePrincipalCredentials("tenant", "client|x", "secret")
        second = ServicePrincipalCredentials("tenant", "client", "x|secret")
        assert first.fingerprint != second.fingerprint

    def test_quotes_and_brackets_do_not_collide(self):
        assert compute_fingerprint('a", "b', "c") != compute_fingerprint("a", 'b", "c')

    def test_same_credentials_same_key_across_instances(self):
        first = ServicePrincipalCredentials("tenant", "id", "secret")
        second = ServicePrincipalCredentials("other-tenant", "id", "secret")
        assert first.fingerprint == second.fingerprint

    def test_secret_not_in_fingerprint_or_repr(self, sp_credentials):
        assert "secret-1" not in sp_credentials.fingerprint
        assert "secret-1" not in repr(sp_credentials)

    def test_managed_identity_shares_one_key(self):
        assert (
            ManagedIdentityCredentials().fingerprint
            == ManagedIdentityCredentials().fingerprint
            == compute_fingerprint("azure", "azure")
        )

    def test_auth_modes(self, sp_credentials):
        assert sp_credentials.auth_mode == AuthMode.SERVICE_PRINCIPAL
        assert ManagedIdentityCredentials().auth_mode == AuthMode.MANAGED_IDENTITY
