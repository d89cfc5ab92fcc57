"""HubSpot CRM v3 connector.

Streams contacts, companies, deals, tickets and engagements (calls, emails,
meetings, notes, tasks) from ``/crm/v3/objects/{objectType}``. All requests
made by one connector instance share a single token bucket, so several
streams may run concurrently (e.g. one thread per object type) without
exceeding the account's rate limit.
"""

import logging
import time
from typing import Any, Callable, Iterator, Optional

import httpx

from hubspot_sync.connectors.base import BaseConnector, StreamOptions
from hubspot_sync.connectors.pager import Pager
from hubspot_sync.connectors.rate_limit import TokenBucket
from hubspot_sync.errors import ConfigError, NotConnected
from hubspot_sync.models.config import ConnectorConfig
from hubspot_sync.models.raw import ENGAGEMENT_TYPES, STANDARD_OBJECT_TYPES, RawRecord

logger = logging.getLogger(__name__)

_NEW = "new"
_INITIALIZED = "initialized"
_CONNECTED = "connected"
_CLOSED = "closed"


class HubSpotConnector(BaseConnector):
    """
    Connector for the HubSpot CRM objects API.
    Handles bearer auth, cursor pagination, rate limiting and retry of
    transient failures; exposes lazy per-object-type streams of RawRecord.
    """

    source_id = "hubspot"

    OBJECTS_PATH = "/crm/v3/objects/{object_type}"
    LIVENESS_OBJECT = "contacts"

    DEFAULT_HEADERS = {
        "User-Agent": "hubspot-sync/0.1",
        "Accept": "application/json",
    }

    def __init__(
        self,
        config: Optional[ConnectorConfig | dict] = None,
        *,
        client: Optional[httpx.Client] = None,
        rate_limiter: Optional[TokenBucket] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            config: optional config; when given, initialize() is called immediately
            client: optional httpx client (must already carry base_url and auth);
                not closed by disconnect()
            rate_limiter: optional shared token bucket; built from config otherwise
            sleep: backoff sleep, injectable for tests
        """
        self._config: Optional[ConnectorConfig] = None
        self._injected_client = client
        self._client: Optional[httpx.Client] = None
        self._rate_limiter = rate_limiter
        self._sleep = sleep
        self._state = _NEW
        if config is not None:
            self.initialize(config)

    @property
    def config(self) -> Optional[ConnectorConfig]:
        return self._config

    @property
    def rate_limiter(self) -> Optional[TokenBucket]:
        return self._rate_limiter

    @property
    def is_connected(self) -> bool:
        return self._state == _CONNECTED

    def initialize(self, config: ConnectorConfig | dict) -> None:
        """Validate credentials format and rate-limit settings. No I/O."""
        if self._state in (_CONNECTED, _CLOSED):
            raise ConfigError("initialize() must be called before connect()")
        self._config = ConnectorConfig.parse(config)
        if self._rate_limiter is None:
            rl = self._config.rate_limit
            self._rate_limiter = TokenBucket(rl.burst_capacity, rl.requests_per_second)
        self._state = _INITIALIZED

    def _build_client(self) -> httpx.Client:
        assert self._config is not None
        headers = {
            **self.DEFAULT_HEADERS,
            "Authorization": f"Bearer {self._config.auth.token}",
        }
        return httpx.Client(
            base_url=self._config.base_url,
            headers=headers,
            timeout=self._config.timeout,
        )

    def connect(self) -> None:
        """Open the HTTP client and make one lightweight authenticated call."""
        if self._state == _CLOSED:
            raise NotConnected("Connector was disconnected; create a new connector")
        if self._state == _CONNECTED:
            return
        if self._state == _NEW or self._config is None:
            raise ConfigError("Connector not initialized; call initialize(config) first")

        self._client = self._injected_client or self._build_client()
        try:
            pager = self._pager(self.LIVENESS_OBJECT, StreamOptions(page_size=1))
            pager.fetch_page()
        except Exception:
            self._release_client()
            raise
        self._state = _CONNECTED
        logger.info("Connected to HubSpot at %s", self._config.base_url)

    def disconnect(self) -> None:
        """Close the HTTP client. Safe to call more than once."""
        if self._state == _CLOSED:
            return
        self._release_client()
        self._state = _CLOSED
        logger.info("Disconnected from HubSpot")

    def _release_client(self) -> None:
        if self._client is not None and self._client is not self._injected_client:
            self._client.close()
        self._client = None

    def _require_connected(self) -> None:
        if self._state != _CONNECTED or self._client is None:
            raise NotConnected("Connector is not connected; call connect() first")

    def _pager(self, object_type: str, options: StreamOptions) -> Pager:
        assert self._config is not None and self._client is not None
        assert self._rate_limiter is not None
        params: dict[str, Any] = {
            "limit": options.page_size or self._config.page_size,
            "archived": "true" if options.archived else "false",
        }
        if options.properties:
            params["properties"] = ",".join(options.properties)
        return Pager(
            self._client,
            self.OBJECTS_PATH.format(object_type=object_type),
            rate_limiter=self._rate_limiter,
            object_type=object_type,
            params=params,
            retry=self._config.retry,
            sleep=self._sleep,
        )

    def stream(self, object_type: str, options: Optional[StreamOptions] = None) -> Iterator[RawRecord]:
        """
        Lazily stream raw records. Raises NotConnected at call time if the
        connector is not connected. The next page is fetched only once the
        consumer has pulled every record of the current one.
        """
        self._require_connected()
        options = options or StreamOptions()
        if object_type == "engagements":
            types = options.engagement_types or list(ENGAGEMENT_TYPES)
            unknown = [t for t in types if t not in ENGAGEMENT_TYPES]
            if unknown:
                raise ValueError(f"Unknown engagement types: {unknown}. Available: {list(ENGAGEMENT_TYPES)}")
            return self._iter_engagements(types, options)
        if object_type not in STANDARD_OBJECT_TYPES and object_type not in ENGAGEMENT_TYPES:
            raise ValueError(
                f"Unknown object type: {object_type}. "
                f"Available: {list(STANDARD_OBJECT_TYPES) + ['engagements']}"
            )
        return self._iter_records(object_type, options)

    def _iter_records(self, object_type: str, options: StreamOptions) -> Iterator[RawRecord]:
        pager = self._pager(object_type, options)
        cursor: Optional[str] = None
        pages = 0
        count = 0
        while True:
            # Re-check between pages so a disconnect() stops the stream.
            self._require_connected()
            page = pager.fetch_page(cursor)
            pages += 1
            for record in page.records:
                count += 1
                yield record
            if not page.next_cursor:
                break
            cursor = page.next_cursor
        logger.debug("Streamed %d %s in %d page(s)", count, object_type, pages)

    def _iter_engagements(self, types: list[str], options: StreamOptions) -> Iterator[RawRecord]:
        for engagement_type in types:
            yield from self._iter_records(engagement_type, options)
