"""Source connectors for CRM ingestion."""

from hubspot_sync.connectors.base import BaseConnector, StreamOptions
from hubspot_sync.connectors.hubspot import HubSpotConnector
from hubspot_sync.connectors.pager import Page, Pager
from hubspot_sync.connectors.rate_limit import TokenBucket
from hubspot_sync.connectors.registry import ConnectorRegistry

__all__ = [
    "BaseConnector",
    "ConnectorRegistry",
    "HubSpotConnector",
    "Page",
    "Pager",
    "StreamOptions",
    "TokenBucket",
]
