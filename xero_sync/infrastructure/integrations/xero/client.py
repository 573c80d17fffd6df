"""Xero Accounting API client - Anti-Corruption Layer."""
from datetime import datetime
from typing import Any, Dict, List, Optional
import httpx

from xero_sync.core.config import settings
from xero_sync.domain.models.connection import Credentials


class XeroAPIError(Exception):
    """Raised when a Xero API call fails or returns an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class XeroAPIClient:
    """
    Xero Accounting API client implementing Anti-Corruption Layer.

    Responsibilities:
    - Hide Xero API specifics (tenant header, paging params, filters)
    - Normalize pagination across paged and unpaged endpoints
    - Return plain payload dicts, one per upstream record

    An instance is bound to one tenant and one access token and is never
    mutated; build a new one after a token refresh.
    """

    PAGE_SIZE_MAX = 1000

    def __init__(
        self,
        tenant_id: str,
        access_token: str,
        page_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize API client.

        Args:
            tenant_id: Xero organisation (tenant) ID
            access_token: Valid OAuth access token
            page_size: Records per page for paged endpoints
            transport: Optional httpx transport, used by tests
        """
        self.tenant_id = tenant_id
        self.access_token = access_token
        self.page_size = min(page_size or settings.sync_page_size, self.PAGE_SIZE_MAX)
        self.base_url = settings.xero_api_base_url
        self.transport = transport

    @classmethod
    def with_credentials(
        cls,
        tenant_id: str,
        credentials: Credentials,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "XeroAPIClient":
        """Build a client for the given tenant and token set."""
        return cls(tenant_id, credentials.access_token, transport=transport)

    async def fetch_accounts(
        self,
        page: int = 1,
        modified_since: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch the chart of accounts.

        The accounts endpoint is not paged: page 1 returns everything
        and any later page is empty.

        Args:
            page: 1-based page number
            modified_since: Only fetch accounts modified after this time

        Returns:
            Raw account payloads
        """
        if page > 1:
            return []
        return await self._get("Accounts", "Accounts", {}, modified_since)

    async def fetch_contacts(
        self,
        page: int = 1,
        modified_since: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of contacts.

        Args:
            page: 1-based page number
            modified_since: Only fetch contacts modified after this time

        Returns:
            Raw contact payloads
        """
        params = {"page": page, "pageSize": self.page_size, "includeArchived": "false"}
        return await self._get("Contacts", "Contacts", params, modified_since)

    async def fetch_bank_transactions(
        self,
        page: int = 1,
        modified_since: Optional[datetime] = None,
        from_date: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of bank transactions.

        Args:
            page: 1-based page number
            modified_since: Only fetch transactions modified after this time
            from_date: Only fetch transactions dated on or after this day

        Returns:
            Raw bank transaction payloads
        """
        params = {"page": page, "pageSize": self.page_size}
        if from_date:
            params["where"] = self._date_filter(from_date)
        return await self._get("BankTransactions", "BankTransactions", params, modified_since)

    async def fetch_invoices(
        self,
        page: int = 1,
        modified_since: Optional[datetime] = None,
        from_date: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch one page of invoices. Sales invoices (ACCREC) and bills
        (ACCPAY) share this endpoint.

        Args:
            page: 1-based page number
            modified_since: Only fetch invoices modified after this time
            from_date: Only fetch invoices dated on or after this day

        Returns:
            Raw invoice payloads, line items included
        """
        params = {"page": page, "pageSize": self.page_size}
        if from_date:
            params["where"] = self._date_filter(from_date)
        return await self._get("Invoices", "Invoices", params, modified_since)

    async def _get(
        self,
        path: str,
        collection_key: str,
        params: Dict[str, Any],
        modified_since: Optional[datetime]
    ) -> List[Dict[str, Any]]:
        """
        Execute a GET against the accounting API.

        Args:
            path: Endpoint path below the API base URL
            collection_key: Key of the record list in the response body
            params: Query parameters
            modified_since: Sent as If-Modified-Since when set

        Returns:
            The record list

        Raises:
            XeroAPIError: If the request fails or the body is malformed
        """
        url = f"{self.base_url}/{path}"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "xero-tenant-id": self.tenant_id,
            "Accept": "application/json"
        }
        if modified_since:
            headers["If-Modified-Since"] = modified_since.strftime("%Y-%m-%dT%H:%M:%S")

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.get(url, params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise XeroAPIError(
                f"Xero API returned {e.response.status_code} for {path}",
                status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            raise XeroAPIError(f"Xero API request for {path} failed: {e}") from e
        except ValueError as e:
            raise XeroAPIError(f"Xero API returned invalid JSON for {path}") from e

        records = data.get(collection_key) if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise XeroAPIError(f"Malformed response from {path}: missing {collection_key} list")
        return records

    @staticmethod
    def _date_filter(from_date: datetime) -> str:
        return f"Date>=DateTime({from_date.year},{from_date.month:02d},{from_date.day:02d})"
