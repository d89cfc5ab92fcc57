"""Exception hierarchy for the connector, transform stage and sync driver."""

from typing import Optional


class HubSpotSyncError(Exception):
    """Base class for all hubspot-sync errors."""


class ConfigError(HubSpotSyncError, ValueError):
    """Connector configuration is malformed (raised by initialize, before any I/O)."""


class ConnectorError(HubSpotSyncError):
    """Connector-level failure. Aborts the current stream and the sync run."""


class AuthFailure(ConnectorError):
    """Credentials were rejected by the remote API. Never retried."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteUnavailable(ConnectorError):
    """Remote API kept failing (429 / 5xx / transport) after all retry attempts."""

    def __init__(self, message: str, attempts: int = 0, status_code: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
        self.status_code = status_code


class RemoteRequestError(ConnectorError):
    """Non-retryable client-side error (4xx other than auth, malformed body)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotConnected(ConnectorError):
    """Connector used before connect() or after disconnect()."""


class NormalizationError(HubSpotSyncError):
    """A raw record could not be converted to a normalized record."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        super().__init__(message)
        self.record_id = record_id


class ForwardingError(HubSpotSyncError):
    """Writing one record to the ingestion boundary failed."""

    def __init__(self, message: str, record_key: Optional[str] = None):
        super().__init__(message)
        self.record_key = record_key
