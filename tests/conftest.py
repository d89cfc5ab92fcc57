"""Pytest fixtures for hubspot-sync tests."""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
import pytest

from hubspot_sync.connectors.hubspot import HubSpotConnector
from hubspot_sync.connectors.rate_limit import TokenBucket
from hubspot_sync.models.raw import RawRecord

BASE_URL = "https://api.hubapi.com"


class FakeClock:
    """Manual clock; sleep() advances it instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def api_item(
    record_id: Optional[str] = "1",
    properties: Optional[dict[str, Any]] = None,
    created_at: str = "2024-01-10T09:00:00.000Z",
    updated_at: str = "2024-02-01T12:30:00.000Z",
    archived: bool = False,
) -> dict[str, Any]:
    """One entry of an objects API `results` array."""
    item: dict[str, Any] = {
        "properties": properties or {},
        "createdAt": created_at,
        "updatedAt": updated_at,
        "archived": archived,
    }
    if record_id is not None:
        item["id"] = record_id
    return item


def page_body(items: list[dict[str, Any]], next_cursor: Optional[str] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"results": items}
    if next_cursor:
        body["paging"] = {"next": {"after": next_cursor, "link": "..."}}
    return body


class FakeHubSpotAPI:
    """
    MockTransport handler serving canned pages per object type.
    pages[object_type] is a list of (items, next_cursor); the `after` query
    param selects which page is returned. Every request is recorded.
    """

    def __init__(self, pages: Optional[dict[str, list[tuple[list[dict], Optional[str]]]]] = None):
        self.pages = pages or {}
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response] = []

    def queue(self, *responses: httpx.Response) -> None:
        """Responses served (in order) before falling back to the page table."""
        self.responses.extend(responses)

    def requests_for(self, object_type: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(f"/objects/{object_type}")]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        object_type = request.url.path.rsplit("/", 1)[-1]
        pages = self.pages.get(object_type, [([], None)])
        after = request.url.params.get("after")
        index = 0
        if after:
            cursors = [c for _, c in pages]
            index = cursors.index(after) + 1
        items, next_cursor = pages[index]
        limit = int(request.url.params.get("limit", "100"))
        return httpx.Response(200, json=page_body(items[:limit], next_cursor))


@pytest.fixture
def fake_api() -> FakeHubSpotAPI:
    return FakeHubSpotAPI()


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    """Build an httpx client backed by a MockTransport handler."""
    clients: list[httpx.Client] = []

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.close()


@pytest.fixture
def connector_config() -> dict[str, Any]:
    return {
        "auth": {"type": "bearer", "token": "pat-na1-test-token"},
        "rateLimit": {"requestsPerSecond": 10, "burstCapacity": 10},
        "pageSize": 100,
        "retry": {"max_attempts": 3, "base_delay": 0.01, "max_delay": 0.05},
    }


@pytest.fixture
def make_connector(make_client, connector_config):
    """Initialized (not connected) connector wired to a fake API handler."""

    def _make(handler, **config_overrides) -> HubSpotConnector:
        config = {**connector_config, **config_overrides}
        return HubSpotConnector(
            config,
            client=make_client(handler),
            rate_limiter=TokenBucket(1000, 1000.0),
            sleep=lambda _s: None,
        )

    return _make


@pytest.fixture
def sample_deal_properties() -> dict[str, Optional[str]]:
    """Deal properties as returned by the API (values are strings or null)."""
    return {
        "dealname": "Acme renewal",
        "amount": "12500.50",
        "dealstage": "closedwon",
        "pipeline": "default",
        "dealtype": "existingbusiness",
        "closedate": "2024-01-20T09:00:00.000Z",
        "createdate": "2024-01-10T09:00:00.000Z",
        "hs_lastmodifieddate": "2024-02-01T12:30:00.000Z",
        "hubspot_owner_id": "42",
        "deal_currency_code": "EUR",
        "hs_deal_stage_probability": "1.0",
        "hs_forecast_amount": None,
        "num_associated_contacts": "3",
        "num_contacted_notes": "",
        "custom_region": "EMEA",
        "custom_empty": "",
        "custom_null": None,
    }


@pytest.fixture
def raw_deal(sample_deal_properties) -> RawRecord:
    return RawRecord(
        id="9001",
        object_type="deals",
        properties=sample_deal_properties,
        created_at=datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc),
        updated_at=datetime(2024, 2, 1, 12, 30, tzinfo=timezone.utc),
        archived=False,
    )


def make_raw(
    record_id: Optional[str] = "1",
    properties: Optional[dict[str, Optional[str]]] = None,
    object_type: str = "deals",
) -> RawRecord:
    return RawRecord(
        id=record_id,
        object_type=object_type,
        properties=properties or {},
        created_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        updated_at=datetime(2024, 3, 5, tzinfo=timezone.utc),
    )
