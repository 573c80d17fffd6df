"""Connection manager application service - OAuth credential lifecycle."""
import logging
import uuid
from typing import Any, Dict, Optional, Tuple
import httpx

from xero_sync.core.clock import utcnow
from xero_sync.domain.exceptions import AuthExchangeError
from xero_sync.domain.models.connection import Connection, XeroTenant
from xero_sync.domain.ports.connection_repo import ConnectionRepository
from xero_sync.domain.services.credential_policy import CredentialPolicy
from xero_sync.infrastructure.integrations.xero.client import XeroAPIClient
from xero_sync.infrastructure.integrations.xero.oauth import XeroOAuthClient, XeroOAuthError

logger = logging.getLogger(__name__)

# Transport failures and unusable response bodies from the identity service
OAUTH_ERRORS = (httpx.HTTPError, XeroOAuthError)


class ConnectionManager:
    """
    Owns the single active Xero connection.

    Responsibilities:
    - Build the consent URL and complete the authorization code exchange
    - Keep tokens valid, refreshing on expiry
    - Fail closed: a connection whose refresh fails is deactivated
    """

    def __init__(
        self,
        connection_repo: ConnectionRepository,
        oauth_client: Optional[XeroOAuthClient] = None,
        api_transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize service.

        Args:
            connection_repo: Connection repository
            oauth_client: OAuth client, defaults to one built from settings
            api_transport: Optional httpx transport handed to API clients
        """
        self.connection_repo = connection_repo
        self.oauth_client = oauth_client or XeroOAuthClient()
        self.api_transport = api_transport

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Consent page URL. No side effects."""
        return self.oauth_client.build_authorization_url(state or uuid.uuid4().hex)

    async def complete_authorization(self, callback_url: str) -> uuid.UUID:
        """
        Finish the OAuth flow from the callback URL.

        Args:
            callback_url: Full callback URL including its query string

        Returns:
            ID of the newly active connection

        Raises:
            AuthExchangeError: If the callback carries an error, the code
                exchange fails or no organisation is granted. Stored
                connections are left untouched in that case.
        """
        params = httpx.URL(callback_url).params

        error = params.get("error")
        if error:
            raise AuthExchangeError(params.get("error_description") or error)

        code = params.get("code")
        if not code:
            raise AuthExchangeError("No authorization code provided")

        try:
            credentials = await self.oauth_client.exchange_code_for_tokens(code)
        except OAUTH_ERRORS as e:
            logger.error(f"Xero token exchange failed: {str(e)}")
            raise AuthExchangeError(f"Token exchange failed: {str(e)}") from e

        if not CredentialPolicy.validate_credentials(credentials):
            raise AuthExchangeError("Token response is missing access or refresh token")

        try:
            tenants = await self.oauth_client.fetch_tenants(credentials.access_token)
        except OAUTH_ERRORS as e:
            logger.error(f"Xero tenant lookup failed: {str(e)}")
            raise AuthExchangeError(f"Failed to fetch Xero organisation: {str(e)}") from e

        tenant = self._pick_tenant(tenants)
        if tenant is None:
            raise AuthExchangeError("No Xero organisation was granted")

        existing = self.connection_repo.find_by_tenant_id(tenant.tenant_id)
        connection = Connection(
            id=existing.id if existing else None,
            tenant_id=tenant.tenant_id,
            tenant_name=tenant.tenant_name,
            tenant_type=tenant.tenant_type,
            credentials=credentials,
            is_active=True,
            last_sync_at=existing.last_sync_at if existing else None
        )
        if existing:
            connection.created_at = existing.created_at

        connection = self.connection_repo.activate(connection)
        logger.info(f"Connected to Xero organisation {tenant.tenant_name} ({tenant.tenant_id})")

        return connection.id

    async def get_valid_client(self) -> Optional[Tuple[XeroAPIClient, Connection]]:
        """
        Return an API client for the active connection, refreshing if needed.

        Returns:
            (client, connection), or None if there is no usable connection
        """
        connection = self.connection_repo.find_active()
        if connection is None:
            return None

        if CredentialPolicy.should_refresh_credentials(connection):
            logger.info(f"Refreshing Xero token for tenant {connection.tenant_id}")
            try:
                new_credentials = await self.oauth_client.refresh_access_token(
                    connection.credentials.refresh_token
                )
            except OAUTH_ERRORS as e:
                logger.error(f"Token refresh failed, deactivating connection: {str(e)}")
                connection.deactivate()
                self.connection_repo.save(connection)
                return None

            if not CredentialPolicy.validate_credentials(new_credentials):
                logger.error("Token refresh returned incomplete credentials, deactivating connection")
                connection.deactivate()
                self.connection_repo.save(connection)
                return None

            connection.update_credentials(new_credentials)
            connection = self.connection_repo.save(connection)

        client = XeroAPIClient.with_credentials(
            connection.tenant_id, connection.credentials, transport=self.api_transport
        )
        return client, connection

    def disconnect(self) -> None:
        """Deactivate the active connection. Tokens are kept but never reused."""
        connection = self.connection_repo.find_active()
        if connection is None:
            return
        connection.deactivate()
        self.connection_repo.save(connection)
        logger.info(f"Disconnected Xero organisation {connection.tenant_id}")

    def record_sync(self, connection: Connection) -> None:
        """Stamp the connection with the end of a sync run."""
        # Re-read: a disconnect during the run must not be undone
        current = self.connection_repo.find_by_tenant_id(connection.tenant_id) or connection
        current.record_sync(utcnow())
        self.connection_repo.save(current)
        connection.last_sync_at = current.last_sync_at

    def status(self) -> Dict[str, Any]:
        """Connection summary for the status endpoint."""
        connection = self.connection_repo.find_active()
        if connection is None:
            return {"connected": False}

        return {
            "connected": True,
            "tenantName": connection.tenant_name,
            "lastSyncAt": connection.last_sync_at.isoformat() if connection.last_sync_at else None
        }

    @staticmethod
    def _pick_tenant(tenants) -> Optional[XeroTenant]:
        for tenant in tenants:
            if tenant.tenant_type == "ORGANISATION":
                return tenant
        return tenants[0] if tenants else None
