"""
Credential variants for the two supported authentication flows.

Credentials are immutable and identify which token to fetch and cache.
The fingerprint is the token store key, so raw secrets are never used as
dictionary keys or written to logs.
"""

import base64
import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

# Sentinel label for platform managed identity (pod identity "azure")
MANAGED_IDENTITY_TAG = "azure"


class AuthMode(str, Enum):
    """Authentication flow selected at construction time."""

    SERVICE_PRINCIPAL = "service_principal"
    MANAGED_IDENTITY = "managed_identity"


def compute_fingerprint(first: str, second: str) -> str:
    """
    Digest a credential pair into a token store key.

    The pair is serialized as a JSON array before hashing, so a separator
    inside either part cannot make two pairs encode to the same bytes.
    The key is not a secret.

    Args:
        first: Client ID (or identity tag)
        second: Client secret (or identity tag)

    Returns:
        Base64-encoded SHA-256 digest of '["first", "second"]'
    """
    encoded = json.dumps([first, second]).encode("utf-8")
    digest = hashlib.sha256(encoded).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass(frozen=True)
class ServicePrincipalCredentials:
    """Client-credentials grant identity."""

    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)

    @property
    def auth_mode(self) -> AuthMode:
        return AuthMode.SERVICE_PRINCIPAL

    @property
    def fingerprint(self) -> str:
        return compute_fingerprint(self.client_id, self.client_secret)


@dataclass(frozen=True)
class ManagedIdentityCredentials:
    """Platform managed identity; every instance in the process shares one token."""

    identity: str = MANAGED_IDENTITY_TAG

    @property
    def auth_mode(self) -> AuthMode:
        return AuthMode.MANAGED_IDENTITY

    @property
    def fingerprint(self) -> str:
        return compute_fingerprint(self.identity, self.identity)


Credentials = Union[ServicePrincipalCredentials, ManagedIdentityCredentials]
