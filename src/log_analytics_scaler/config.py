"""
Scaler configuration.

Metadata for one scaled object is resolved from three sources, in order:
    1. auth_params[key]               (trigger authentication)
    2. metadata[key]                  (trigger metadata)
    3. resolved_env[metadata[keyFromEnv]]  (environment of the scale target)

query and threshold are read from metadata only (2 and 3).

A ScalerConfig wraps the metadata with the scaled object identity and HTTP
settings, loadable from a YAML file or from environment variables.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from core.auth.credentials import (
    MANAGED_IDENTITY_TAG,
    AuthMode,
    Credentials,
    ManagedIdentityCredentials,
    ServicePrincipalCredentials,
)
from core.errors.exceptions import ConfigurationError
from core.http.client import DEFAULT_TIMEOUT_SECONDS

# Pod identity values meaning "use service principal credentials"
SERVICE_PRINCIPAL_POD_IDENTITIES = ("", "none")

# Base-10 integer with optional sign; no whitespace or digit separators
_THRESHOLD_PATTERN = re.compile(r"[+-]?[0-9]+")
MAX_THRESHOLD = 2**63 - 1
MIN_THRESHOLD = -(2**63)


@dataclass(frozen=True)
class ScalerMetadata:
    """
    Validated scaler metadata.

    Attributes:
        auth_mode: Service principal or managed identity
        workspace_id: Log Analytics workspace ID
        query: KQL query returning one row (value[, threshold])
        threshold: Target value used when the query returns no threshold
        tenant_id: Azure AD tenant (service principal only)
        client_id: Application ID (service principal only)
        client_secret: Application secret (service principal only)
    """

    auth_mode: AuthMode
    workspace_id: str
    query: str
    threshold: int
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = field(default="", repr=False)

    def credentials(self) -> Credentials:
        """Build the credentials variant matching auth_mode."""
        if self.auth_mode == AuthMode.SERVICE_PRINCIPAL:
            return ServicePrincipalCredentials(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                client_secret=self.client_secret,
            )
        if self.auth_mode == AuthMode.MANAGED_IDENTITY:
            return ManagedIdentityCredentials(identity=MANAGED_IDENTITY_TAG)
        raise ConfigurationError(f"Unsupported auth mode: {self.auth_mode}")


def parse_auth_mode(pod_identity: Optional[str]) -> AuthMode:
    """
    Map a pod identity provider name to an auth mode.

    Names are matched exactly: "", "none" or "azure".

    Raises:
        ConfigurationError: For providers other than none/azure
    """
    value = pod_identity or ""
    if value in SERVICE_PRINCIPAL_POD_IDENTITIES:
        return AuthMode.SERVICE_PRINCIPAL
    if value == MANAGED_IDENTITY_TAG:
        return AuthMode.MANAGED_IDENTITY
    raise ConfigurationError(
        f"Error parsing metadata. Details: Log Analytics scaler doesn't support pod identity {pod_identity}"
    )


def _resolve(
    key: str,
    metadata: Mapping[str, str],
    auth_params: Optional[Mapping[str, str]],
    resolved_env: Mapping[str, str],
) -> str:
    if auth_params is not None and auth_params.get(key):
        return str(auth_params[key])
    if metadata.get(key):
        return str(metadata[key])
    env_name = metadata.get(f"{key}FromEnv")
    if env_name and resolved_env.get(env_name):
        return str(resolved_env[env_name])
    raise ConfigurationError(
        f"Error parsing metadata. Details: {key} was not found in metadata. "
        "Check your ScaledObject configuration"
    )


def parse_threshold(raw: str) -> int:
    """
    Parse a threshold as a signed 64-bit base-10 integer.

    Raises:
        ConfigurationError: If the value has any other form or is out of range
    """
    if not _THRESHOLD_PATTERN.fullmatch(raw):
        raise ConfigurationError(
            f"Error parsing metadata. Details: can't parse threshold {raw!r}"
        )
    # int() refuses strings beyond the interpreter digit limit
    digits = raw.lstrip("+-").lstrip("0")
    threshold = int(raw) if len(digits) <= 19 else MAX_THRESHOLD + 1
    if not MIN_THRESHOLD <= threshold <= MAX_THRESHOLD:
        raise ConfigurationError(
            f"Error parsing metadata. Details: can't parse threshold {raw!r}, value out of range"
        )
    return threshold


def parse_scaler_metadata(
    metadata: Mapping[str, str],
    auth_params: Optional[Mapping[str, str]] = None,
    resolved_env: Optional[Mapping[str, str]] = None,
    pod_identity: Optional[str] = "",
) -> ScalerMetadata:
    """
    Validate raw trigger metadata into ScalerMetadata.

    Args:
        metadata: Trigger metadata (workspaceId, query, threshold, ...)
        auth_params: Trigger authentication parameters (tenantId, clientId, ...)
        resolved_env: Environment used for the *FromEnv keys
        pod_identity: "", "none" or "azure"

    Returns:
        ScalerMetadata

    Raises:
        ConfigurationError: If a required field is missing or invalid
    """
    resolved_env = resolved_env or {}
    auth_mode = parse_auth_mode(pod_identity)

    tenant_id = client_id = client_secret = ""
    if auth_mode == AuthMode.SERVICE_PRINCIPAL:
        tenant_id = _resolve("tenantId", metadata, auth_params, resolved_env)
        client_id = _resolve("clientId", metadata, auth_params, resolved_env)
        client_secret = _resolve("clientSecret", metadata, auth_params, resolved_env)

    workspace_id = _resolve("workspaceId", metadata, auth_params, resolved_env)
    query = _resolve("query", metadata, None, resolved_env)
    raw_threshold = _resolve("threshold", metadata, None, resolved_env)

    threshold = parse_threshold(raw_threshold)

    return ScalerMetadata(
        auth_mode=auth_mode,
        workspace_id=workspace_id,
        query=query,
        threshold=threshold,
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )


@dataclass(frozen=True)
class ScalerConfig:
    """
    Everything needed to build one scaler.

    Load from YAML using load_config(), or from environment using
    ScalerConfig.from_env().
    """

    name: str
    namespace: str
    metadata: ScalerMetadata
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        resolved_env: Optional[Mapping[str, str]] = None,
    ) -> "ScalerConfig":
        """
        Build from a mapping shaped like:

            name: my-app
            namespace: default
            podIdentity: none
            timeoutSeconds: 30
            metadata:
              workspaceId: ...
              query: ...
              threshold: "10"
            authParams:
              tenantId: ...

        *FromEnv keys are looked up in resolved_env (default: os.environ).
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Scaler configuration must be a mapping")

        metadata = data.get("metadata") or {}
        auth_params = data.get("authParams") or {}
        if not isinstance(metadata, Mapping) or not isinstance(auth_params, Mapping):
            raise ConfigurationError("metadata and authParams must be mappings")

        parsed = parse_scaler_metadata(
            {k: str(v) for k, v in metadata.items() if v is not None},
            auth_params={k: str(v) for k, v in auth_params.items() if v is not None},
            resolved_env=os.environ if resolved_env is None else resolved_env,
            pod_identity=str(data.get("podIdentity") or ""),
        )

        try:
            timeout_seconds = float(data.get("timeoutSeconds", DEFAULT_TIMEOUT_SECONDS))
        except (TypeError, ValueError) as e:
            raise ConfigurationError("timeoutSeconds must be a number", cause=e) from e

        return cls(
            name=str(data.get("name") or "log-analytics-scaler"),
            namespace=str(data.get("namespace") or "default"),
            metadata=parsed,
            timeout_seconds=timeout_seconds,
        )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ScalerConfig":
        """
        Load configuration from environment variables.

        Required:
            LA_WORKSPACE_ID, LA_QUERY, LA_THRESHOLD
            LA_TENANT_ID, LA_CLIENT_ID, LA_CLIENT_SECRET (service principal)

        Optional:
            LA_POD_IDENTITY: none (default) or azure
            LA_SCALED_OBJECT: scaled object name (default: log-analytics-scaler)
            LA_NAMESPACE: namespace (default: default)
            LA_TIMEOUT_SECONDS: HTTP timeout (default: 30)

        Raises:
            ConfigurationError: If required variables are missing
        """
        env = os.environ if env is None else env
        metadata = {
            key: env[var]
            for key, var in (
                ("workspaceId", "LA_WORKSPACE_ID"),
                ("query", "LA_QUERY"),
                ("threshold", "LA_THRESHOLD"),
                ("tenantId", "LA_TENANT_ID"),
                ("clientId", "LA_CLIENT_ID"),
                ("clientSecret", "LA_CLIENT_SECRET"),
            )
            if env.get(var)
        }
        return cls.from_dict(
            {
                "name": env.get("LA_SCALED_OBJECT", ""),
                "namespace": env.get("LA_NAMESPACE", ""),
                "podIdentity": env.get("LA_POD_IDENTITY", ""),
                "timeoutSeconds": env.get("LA_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
                "metadata": metadata,
            },
            resolved_env=env,
        )


def load_config(
    path: Union[str, Path],
    resolved_env: Optional[Mapping[str, str]] = None,
) -> ScalerConfig:
    """
    Load a ScalerConfig from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}", cause=e) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {path}", cause=e) from e

    return ScalerConfig.from_dict(data, resolved_env=resolved_env)
