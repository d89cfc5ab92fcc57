"""Tests for cursor pagination and retry behavior."""

import httpx
import pytest

from hubspot_sync.connectors.pager import Pager, backoff_delay
from hubspot_sync.connectors.rate_limit import TokenBucket
from hubspot_sync.errors import AuthFailure, RemoteRequestError, RemoteUnavailable
from hubspot_sync.models.config import RetryConfig
from hubspot_sync.models.raw import MISSING_TIMESTAMP
from tests.conftest import FakeHubSpotAPI, api_item, page_body


class CountingBucket(TokenBucket):
    """Token bucket that records how often acquire() was called."""

    def __init__(self) -> None:
        super().__init__(1000, 1000.0)
        self.calls = 0

    def acquire(self) -> None:
        self.calls += 1
        super().acquire()


@pytest.fixture
def bucket() -> CountingBucket:
    return CountingBucket()


def _pager(client: httpx.Client, bucket: TokenBucket, sleeps: list[float] | None = None, **retry) -> Pager:
    sleeps = sleeps if sleeps is not None else []
    return Pager(
        client,
        "/crm/v3/objects/deals",
        rate_limiter=bucket,
        object_type="deals",
        params={"limit": 2, "archived": "false"},
        retry=RetryConfig(**{"max_attempts": 5, "base_delay": 0.5, "max_delay": 8.0, **retry}),
        sleep=sleeps.append,
    )


class TestPagerFetchPage:
    """Single page fetches."""

    def test_parses_records_and_cursor(self, make_client, bucket) -> None:
        """Records become RawRecords tagged with the object type; paging.next.after is the cursor."""
        api = FakeHubSpotAPI({"deals": [([api_item("1", {"dealname": "A"}), api_item("2")], "c1"), ([], None)]})
        page = _pager(make_client(api), bucket).fetch_page()
        assert [r.id for r in page.records] == ["1", "2"]
        assert page.records[0].object_type == "deals"
        assert page.records[0].properties == {"dealname": "A"}
        assert page.next_cursor == "c1"

    def test_cursor_sent_as_after_param(self, make_client, bucket) -> None:
        """The cursor is passed as ?after= along with the static params."""
        api = FakeHubSpotAPI({"deals": [([api_item("1")], "c1"), ([api_item("2")], None)]})
        page = _pager(make_client(api), bucket).fetch_page("c1")
        assert [r.id for r in page.records] == ["2"]
        assert page.next_cursor is None
        params = api.requests[0].url.params
        assert params["after"] == "c1"
        assert params["limit"] == "2"

    def test_rate_limiter_called_before_each_request(self, make_client, bucket) -> None:
        """acquire() precedes every remote call, including retries."""
        api = FakeHubSpotAPI()
        api.queue(httpx.Response(503), httpx.Response(200, json=page_body([])))
        _pager(make_client(api), bucket).fetch_page()
        assert len(api.requests) == 2
        assert bucket.calls == 2

    def test_missing_results_is_request_error(self, make_client, bucket) -> None:
        """A body without a results list is a non-retryable error."""
        api = FakeHubSpotAPI()
        api.queue(httpx.Response(200, json={"status": "ok"}))
        with pytest.raises(RemoteRequestError):
            _pager(make_client(api), bucket).fetch_page()
        assert len(api.requests) == 1

    @pytest.mark.parametrize("body", [[1, 2], "ok", None, {"results": [1, "x"]}])
    def test_non_object_body_is_request_error(self, make_client, bucket, body) -> None:
        """A JSON body that is not an object of result objects fails cleanly, without retries."""
        api = FakeHubSpotAPI()
        api.queue(httpx.Response(200, json=body))
        with pytest.raises(RemoteRequestError):
            _pager(make_client(api), bucket).fetch_page()
        assert len(api.requests) == 1

    def test_result_without_timestamps_still_parses(self, make_client, bucket) -> None:
        """One record lacking createdAt/updatedAt does not sink the rest of its page."""
        bare = {"id": "2", "properties": {"dealname": "B"}}
        api = FakeHubSpotAPI()
        api.queue(httpx.Response(200, json=page_body([api_item("1"), bare])))
        page = _pager(make_client(api), bucket).fetch_page()
        assert [r.id for r in page.records] == ["1", "2"]
        assert page.records[1].created_at == MISSING_TIMESTAMP


class TestPagerRetry:
    """Retry with exponential backoff."""

    def test_two_transient_errors_then_success(self, make_client, bucket) -> None:
        """Two 5xx responses then a success: exactly 3 remote calls, page returned."""
        api = FakeHubSpotAPI()
        api.queue(
            httpx.Response(502),
            httpx.Response(500),
            httpx.Response(200, json=page_body([api_item("7")])),
        )
        sleeps: list[float] = []
        page = _pager(make_client(api), bucket, sleeps).fetch_page()
        assert [r.id for r in page.records] == ["7"]
        assert len(api.requests) == 3
        assert sleeps == [0.5, 1.0]

    def test_rate_limited_response_is_retried(self, make_client, bucket) -> None:
        """429 is retried and a Retry-After header lengthens the delay."""
        api = FakeHubSpotAPI()
        api.queue(
            httpx.Response(429, headers={"Retry-After": "3"}),
            httpx.Response(200, json=page_body([])),
        )
        sleeps: list[float] = []
        _pager(make_client(api), bucket, sleeps).fetch_page()
        assert len(api.requests) == 2
        assert sleeps == [3.0]

    def test_transport_error_is_retried(self, make_client, bucket) -> None:
        """Network errors (including timeouts) are transient."""
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ConnectTimeout("timed out", request=request)
            return httpx.Response(200, json=page_body([api_item("1")]))

        page = _pager(make_client(handler), bucket).fetch_page()
        assert len(page.records) == 1
        assert calls["n"] == 2

    def test_exhausted_retries_raise_remote_unavailable(self, make_client, bucket) -> None:
        """After max_attempts failures RemoteUnavailable propagates."""
        api = FakeHubSpotAPI()
        api.queue(*[httpx.Response(503) for _ in range(3)])
        with pytest.raises(RemoteUnavailable) as exc_info:
            _pager(make_client(api), bucket, max_attempts=3).fetch_page()
        assert exc_info.value.attempts == 3
        assert exc_info.value.status_code == 503
        assert len(api.requests) == 3

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failure_not_retried(self, make_client, bucket, status: int) -> None:
        """401/403 raise AuthFailure on the first attempt."""
        api = FakeHubSpotAPI()
        api.queue(httpx.Response(status, json={"message": "bad token"}))
        sleeps: list[float] = []
        with pytest.raises(AuthFailure) as exc_info:
            _pager(make_client(api), bucket, sleeps).fetch_page()
        assert exc_info.value.status_code == status
        assert len(api.requests) == 1
        assert sleeps == []

    def test_other_client_error_not_retried(self, make_client, bucket) -> None:
        """400 is a RemoteRequestError, raised immediately."""
        api = FakeHubSpotAPI()
        api.queue(httpx.Response(400, json={"message": "bad property"}))
        with pytest.raises(RemoteRequestError):
            _pager(make_client(api), bucket).fetch_page()
        assert len(api.requests) == 1


class TestPagerIterPages:
    """Full pagination."""

    def test_stops_when_cursor_absent(self, make_client, bucket) -> None:
        """Three pages, the last without a cursor: three fetches, no fourth."""
        api = FakeHubSpotAPI(
            {
                "deals": [
                    ([api_item("1"), api_item("2")], "c1"),
                    ([api_item("3"), api_item("4")], "c2"),
                    ([api_item("5")], None),
                ]
            }
        )
        pages = list(_pager(make_client(api), bucket).iter_pages())
        assert [len(p.records) for p in pages] == [2, 2, 1]
        assert len(api.requests) == 3


class TestBackoffDelay:
    """Backoff schedule."""

    def test_doubles_and_caps(self) -> None:
        retry = RetryConfig(max_attempts=10, base_delay=1.0, max_delay=5.0)
        assert [backoff_delay(a, retry) for a in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_retry_after_capped_by_max_delay(self) -> None:
        retry = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=5.0)
        assert backoff_delay(1, retry, retry_after=60) == 5.0
