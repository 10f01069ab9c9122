"""
Authentication module.

Provides token acquisition and caching for the Log Analytics API.

Components:
    - Credentials: ServicePrincipalCredentials / ManagedIdentityCredentials
    - TokenStore: Thread-safe, process-wide token cache keyed by fingerprint
    - AuthProvider: ServicePrincipalFlow (Azure AD) / ManagedIdentityFlow (IMDS)
    - TokenLifecycleManager: Get-or-refresh with not-before skew handling
"""

from core.auth.credentials import (
    MANAGED_IDENTITY_TAG,
    AuthMode,
    Credentials,
    ManagedIdentityCredentials,
    ServicePrincipalCredentials,
    compute_fingerprint,
)
from core.auth.lifecycle import MAX_NOT_BEFORE_SKEW_SECONDS, TokenLifecycleManager
from core.auth.providers import (
    LOG_ANALYTICS_RESOURCE,
    AuthProvider,
    ManagedIdentityFlow,
    ServicePrincipalFlow,
    create_auth_provider,
)
from core.auth.token_store import (
    TOKEN_EXPIRY_BUFFER_SECONDS,
    Token,
    TokenStore,
    default_token_store,
)

__all__ = [
    "MANAGED_IDENTITY_TAG",
    "AuthMode",
    "Credentials",
    "ManagedIdentityCredentials",
    "ServicePrincipalCredentials",
    "compute_fingerprint",
    "MAX_NOT_BEFORE_SKEW_SECONDS",
    "TokenLifecycleManager",
    "LOG_ANALYTICS_RESOURCE",
    "AuthProvider",
    "ManagedIdentityFlow",
    "ServicePrincipalFlow",
    "create_auth_provider",
    "TOKEN_EXPIRY_BUFFER_SECONDS",
    "Token",
    "TokenStore",
    "default_token_store",
]
