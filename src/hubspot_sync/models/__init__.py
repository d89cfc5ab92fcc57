"""Data models for raw and normalized HubSpot records."""

from hubspot_sync.models.config import AuthConfig, ConnectorConfig, RateLimitConfig, RetryConfig
from hubspot_sync.models.dead_letter import DeadLetterEntry
from hubspot_sync.models.raw import Associations, RawRecord
from hubspot_sync.models.records import Company, Contact, Deal, NormalizedRecord

__all__ = [
    "Associations",
    "AuthConfig",
    "Company",
    "ConnectorConfig",
    "Contact",
    "DeadLetterEntry",
    "Deal",
    "NormalizedRecord",
    "RateLimitConfig",
    "RawRecord",
    "RetryConfig",
]
