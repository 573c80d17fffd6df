"""Xero OAuth 2.0 implementation."""
import base64
from typing import Any, Dict, List, Optional
import httpx

from xero_sync.core.config import settings
from xero_sync.domain.models.connection import Credentials, XeroTenant
from xero_sync.domain.services.credential_policy import CredentialPolicy


class XeroOAuthError(Exception):
    """Xero's identity service answered with a body that cannot be used."""


class XeroOAuthClient:
    """
    Xero OAuth 2.0 client.

    Handles the authorization flow, token management and the tenant
    (organisation) lookup that follows a code exchange.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize OAuth client with settings.

        Args:
            transport: Optional httpx transport, used by tests
        """
        self.client_id = settings.xero_client_id
        self.client_secret = settings.xero_client_secret
        self.redirect_uri = settings.xero_redirect_uri
        self.scopes = settings.xero_scopes
        self.auth_url = settings.xero_authorization_url
        self.token_url = settings.xero_token_url
        self.connections_url = settings.xero_connections_url
        self.transport = transport

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """
        Build the consent page URL the user is redirected to.

        Args:
            state: Optional opaque value echoed back on the callback

        Returns:
            Absolute authorization URL
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
        }
        if state:
            params["state"] = state

        return str(httpx.URL(self.auth_url, params=params))

    async def exchange_code_for_tokens(self, authorization_code: str) -> Credentials:
        """
        Exchange authorization code for access and refresh tokens.

        Args:
            authorization_code: Authorization code from OAuth callback

        Returns:
            Credentials object with tokens

        Raises:
            httpx.HTTPError: If token exchange fails
            XeroOAuthError: If the token response is malformed
        """
        token_data = await self._post_token({
            "grant_type": "authorization_code",
            "code": authorization_code,
            "redirect_uri": self.redirect_uri
        })
        return self._parse_token_response(token_data)

    async def refresh_access_token(self, refresh_token: str) -> Credentials:
        """
        Refresh access token using refresh token.

        Args:
            refresh_token: Current refresh token

        Returns:
            New credentials with refreshed tokens

        Raises:
            httpx.HTTPError: If token refresh fails
            XeroOAuthError: If the token response is malformed
        """
        token_data = await self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token
        })
        return self._parse_token_response(token_data)

    async def fetch_tenants(self, access_token: str) -> List[XeroTenant]:
        """
        List the organisations the token has been granted access to.

        Args:
            access_token: Freshly issued access token

        Returns:
            Tenants in the order Xero returns them

        Raises:
            httpx.HTTPError: If the lookup fails
            XeroOAuthError: If the response is not a list of tenants
        """
        async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
            response = await client.get(
                self.connections_url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json"
                }
            )
            response.raise_for_status()
            data = self._read_json(response)

        if not isinstance(data, list):
            raise XeroOAuthError("Malformed connections response: expected a list")

        tenants = []
        for item in data:
            if not isinstance(item, dict) or not item.get("tenantId"):
                raise XeroOAuthError("Malformed connections response: missing tenantId")
            tenants.append(XeroTenant(
                tenant_id=item["tenantId"],
                tenant_name=item.get("tenantName") or "",
                tenant_type=item.get("tenantType") or "ORGANISATION"
            ))
        return tenants

    async def _post_token(self, form: Dict[str, str]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
            response = await client.post(
                self.token_url,
                headers={
                    "Authorization": self._get_auth_header(),
                    "Content-Type": "application/x-www-form-urlencoded"
                },
                data=form
            )
            response.raise_for_status()
            data = self._read_json(response)

        if not isinstance(data, dict):
            raise XeroOAuthError("Malformed token response: expected an object")
        return data

    @staticmethod
    def _read_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise XeroOAuthError(f"Invalid JSON from {response.url.host}: {str(e)}") from e

    def _get_auth_header(self) -> str:
        """Generate Basic Auth header for token requests."""
        credentials = f"{self.client_id}:{self.client_secret}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return f"Basic {encoded}"

    def _parse_token_response(self, token_data: Dict[str, Any]) -> Credentials:
        """
        Parse token response into Credentials object.

        Args:
            token_data: Token response from Xero

        Returns:
            Credentials object

        Raises:
            XeroOAuthError: If expires_in is not a number of seconds
        """
        try:
            expires_in = int(token_data.get("expires_in", 1800))
        except (TypeError, ValueError):
            raise XeroOAuthError(f"Malformed token response: expires_in={token_data.get('expires_in')!r}")

        return Credentials(
            access_token=token_data.get("access_token") or "",
            refresh_token=token_data.get("refresh_token") or "",
            expires_at=CredentialPolicy.calculate_expiry_time(expires_in),
            token_type=token_data.get("token_type") or "Bearer"
        )
