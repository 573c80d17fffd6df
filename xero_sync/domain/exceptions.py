"""Domain exceptions raised by the sync engine."""


class XeroSyncError(Exception):
    """Base class for sync engine errors."""


class AuthExchangeError(XeroSyncError):
    """Authorization code exchange or organisation lookup failed."""


class NotConnectedError(XeroSyncError):
    """No active Xero connection exists."""

    def __init__(self, message: str = "Not connected to Xero"):
        super().__init__(message)


class SyncAlreadyRunningError(XeroSyncError):
    """Another sync run holds the connection's lock."""
