"""OAuth2 authenticator for the Salesforce token endpoint.

Exchanges configured credentials for a bearer token using either the
client-credentials or the resource-owner password grant. A failed
attempt is surfaced immediately; there is no retry.
"""

import logging
from typing import Dict

from .base import AuthError, ConnectorError, OAuthTokenAuth, describe_error
from .credentials import Credentials
from .http_client import AsyncHTTPClient

logger = logging.getLogger(__name__)


def build_token_form(credentials: Credentials) -> Dict[str, str]:
    """Build the form-encoded token request body for the chosen grant."""
    if credentials.grant_type == "client_credentials":
        return {
            "grant_type": "client_credentials",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
        }

    # The security token is appended to the password, never sent on its own
    password = credentials.password or ""
    if credentials.security_token:
        password = password + credentials.security_token

    form = {
        "grant_type": "password",
        "username": credentials.username or "",
        "password": password,
    }
    if credentials.client_id:
        form["client_id"] = credentials.client_id
    if credentials.client_secret:
        form["client_secret"] = credentials.client_secret
    return form


class Authenticator:
    """Obtains bearer tokens from ``<instance>/services/oauth2/token``."""

    def __init__(self, client: AsyncHTTPClient):
        self._client = client

    async def authenticate(self, credentials: Credentials) -> OAuthTokenAuth:
        """Exchange credentials for a token.

        Raises:
            AuthError: on a non-success status, a transport failure, or a
                success body without ``access_token``
        """
        url = f"{credentials.instance_url}{credentials.endpoints.token}"
        form = build_token_form(credentials)
        logger.debug("Requesting token (%s grant) from %s", form["grant_type"], url)

        try:
            response = await self._client.post(
                url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except ConnectorError as e:
            body = e.error_data if isinstance(e.error_data, dict) else {}
            description = describe_error(e)
            raise AuthError(
                f"Salesforce authentication failed: {description}",
                code=body.get("error"),
                description=description,
                status_code=e.status_code,
            ) from e

        data = response.data
        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthError(
                "Salesforce authentication failed: No access token received from Salesforce",
                code="missing_access_token",
                description="No access token received from Salesforce",
                status_code=response.status_code,
            )

        token = OAuthTokenAuth.from_token_response(data)
        logger.debug("Authentication successful (scope=%s)", token.scope)
        return token
