"""
Token providers for the Log Analytics API.

Two flows are supported:
- ServicePrincipalFlow: OAuth2 client-credentials grant against Azure AD
- ManagedIdentityFlow: GET against the instance metadata service (IMDS)

Both return the same Token shape. The flow is chosen once from the
credentials variant by create_auth_provider().
"""

import logging
from abc import ABC, abstractmethod

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from core.auth.credentials import (
    AuthMode,
    Credentials,
    ManagedIdentityCredentials,
    ServicePrincipalCredentials,
)
from core.auth.token_store import Token
from core.errors.exceptions import AuthError, ConfigurationError
from core.http.client import HttpResponse, send_request
from core.logging.utilities import LoggedClass

LOG_ANALYTICS_RESOURCE = "https://api.loganalytics.io/"
AAD_TOKEN_ENDPOINT = "https://login.microsoftonline.com/{tenant_id}/oauth2/token"
IMDS_TOKEN_ENDPOINT = (
    "http://169.254.169.254/metadata/identity/oauth2/token"
    "?api-version=2018-02-01&resource=https%3A%2F%2Fapi.loganalytics.io%2F"
)


class AuthProvider(LoggedClass, ABC):
    """
    Fetches a fresh token from an identity provider.

    Subclasses implement _request_token(); response checking is shared.
    """

    log_component = "auth"
    source: str = "identity provider"

    def __init__(self, credentials: Credentials):
        self.credentials = credentials
        super().__init__()

    @property
    def auth_mode(self) -> AuthMode:
        return self.credentials.auth_mode

    @abstractmethod
    async def _request_token(self, session: aiohttp.ClientSession) -> HttpResponse:
        """Send the token request."""

    async def fetch_token(self, session: aiohttp.ClientSession) -> Token:
        """
        Request a new token.

        Args:
            session: aiohttp session to send the request with

        Returns:
            Token decoded from a 200 response

        Raises:
            AuthError: On transport failure, empty or undecodable body, or
                any status other than 200
        """
        response = await self._request_token(session)
        return self._parse_response(response)

    def _parse_response(self, response: HttpResponse) -> Token:
        if response.error is not None:
            raise AuthError(
                f"Error getting access token from {self.source}",
                status_code=response.status_code,
                body=response.body,
                cause=response.error,
            )

        if not response.body:
            raise AuthError(
                "Error getting access token. Details: empty body",
                status_code=response.status_code,
            )

        if response.status_code != 200:
            raise AuthError(
                f"Error getting access token. Details: {self.source} rejected the request",
                status_code=response.status_code,
                body=response.body,
            )

        try:
            return Token.model_validate_json(response.body)
        except PydanticValidationError as e:
            raise AuthError(
                "Error getting access token. Details: can't decode response body",
                status_code=response.status_code,
                body=response.body,
                cause=e,
            ) from e


class ServicePrincipalFlow(AuthProvider):
    """Client-credentials grant against the tenant's Azure AD token endpoint."""

    source = "Azure Active Directory"

    def __init__(self, credentials: ServicePrincipalCredentials):
        super().__init__(credentials)

    async def _request_token(self, session: aiohttp.ClientSession) -> HttpResponse:
        self._log(
            logging.DEBUG,
            "Requesting service principal token",
            client_id=self.credentials.client_id,
            resource=LOG_ANALYTICS_RESOURCE,
        )
        return await send_request(
            session,
            "POST",
            AAD_TOKEN_ENDPOINT.format(tenant_id=self.credentials.tenant_id),
            data={
                "grant_type": "client_credentials",
                "client_id": self.credentials.client_id,
                "redirect_uri": "http://",
                "resource": LOG_ANALYTICS_RESOURCE,
                "client_secret": self.credentials.client_secret,
            },
        )


class ManagedIdentityFlow(AuthProvider):
    """Token from the local instance metadata service."""

    source = "Azure Instance Metadata service"

    def __init__(self, credentials: ManagedIdentityCredentials):
        super().__init__(credentials)

    async def _request_token(self, session: aiohttp.ClientSession) -> HttpResponse:
        self._log(
            logging.DEBUG,
            "Requesting managed identity token",
            resource=LOG_ANALYTICS_RESOURCE,
        )
        return await send_request(
            session,
            "GET",
            IMDS_TOKEN_ENDPOINT,
            headers={"Metadata": "true"},
        )


def create_auth_provider(credentials: Credentials) -> AuthProvider:
    """
    Select the flow matching a credentials variant.

    Raises:
        ConfigurationError: If the credentials type is not supported
    """
    if isinstance(credentials, ServicePrincipalCredentials):
        return ServicePrincipalFlow(credentials)
    if isinstance(credentials, ManagedIdentityCredentials):
        return ManagedIdentityFlow(credentials)
    raise ConfigurationError(
        f"Unsupported credentials type: {type(credentials).__name__}"
    )
