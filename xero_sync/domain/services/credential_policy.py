"""Credential policy domain service - manages credential lifecycle rules."""
from datetime import datetime, timedelta
from typing import Optional

from xero_sync.core.clock import utcnow
from xero_sync.domain.models.connection import Connection, Credentials


class CredentialPolicy:
    """
    Domain service for credential expiration and refresh policies.

    This is pure business logic with no infrastructure dependencies.
    """

    @staticmethod
    def should_refresh_credentials(
        connection: Connection,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Determine if credentials must be refreshed before use.

        A token whose expiry is at or before now is refreshed; there is
        no early-refresh buffer.

        Args:
            connection: Connection to check
            now: Reference time, defaults to current UTC time

        Returns:
            True if credentials should be refreshed
        """
        return connection.credentials.is_expired(now)

    @staticmethod
    def calculate_expiry_time(expires_in_seconds: int) -> datetime:
        """
        Calculate expiry timestamp from expires_in value.

        Args:
            expires_in_seconds: Seconds until expiry

        Returns:
            Absolute expiry timestamp
        """
        return utcnow() + timedelta(seconds=expires_in_seconds)

    @staticmethod
    def validate_credentials(credentials: Credentials) -> bool:
        """
        Validate that credentials are complete.

        Args:
            credentials: Credentials to validate

        Returns:
            True if credentials are usable
        """
        if not credentials.access_token:
            return False
        if not credentials.refresh_token:
            return False
        if not credentials.expires_at:
            return False
        return True
