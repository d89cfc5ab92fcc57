"""Cursor-based pagination against the HubSpot CRM v3 objects API.

List endpoints return::

    {"results": [...], "paging": {"next": {"after": "<cursor>"}}}

and the next page is requested with ``?after=<cursor>``. A missing
``paging.next`` ends the stream.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

import httpx
from pydantic import ValidationError

from hubspot_sync.connectors.rate_limit import TokenBucket
from hubspot_sync.errors import AuthFailure, RemoteRequestError, RemoteUnavailable
from hubspot_sync.models.config import RetryConfig
from hubspot_sync.models.raw import RawRecord

logger = logging.getLogger(__name__)

RATE_LIMITED_STATUS = 429
AUTH_STATUS = frozenset({401, 403})


@dataclass
class Page:
    """One page of raw records plus the cursor for the next page (None at the end)."""

    records: list[RawRecord] = field(default_factory=list)
    next_cursor: Optional[str] = None


def backoff_delay(attempt: int, retry: RetryConfig, retry_after: Optional[float] = None) -> float:
    """Delay before retry number `attempt` (1-based). Retry-After wins when larger."""
    delay = min(retry.max_delay, retry.base_delay * (2 ** (attempt - 1)))
    if retry_after is not None:
        delay = max(delay, min(retry_after, retry.max_delay))
    return delay


def _retry_after_seconds(resp: httpx.Response) -> Optional[float]:
    value = resp.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class Pager:
    """
    Fetches pages for one object type, one remote call at a time.
    Every remote call, retries included, first takes a token from the rate limiter.
    """

    def __init__(
        self,
        client: httpx.Client,
        path: str,
        *,
        rate_limiter: TokenBucket,
        object_type: str,
        params: Optional[dict[str, Any]] = None,
        retry: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            client: httpx client with base_url and auth headers set
            path: list endpoint, e.g. /crm/v3/objects/deals
            rate_limiter: shared token bucket
            object_type: tag applied to every produced RawRecord
            params: static query params (limit, properties, archived)
            retry: backoff policy for retryable failures
            sleep: injectable for tests
        """
        self._client = client
        self._path = path
        self._rate_limiter = rate_limiter
        self._object_type = object_type
        self._params = dict(params or {})
        self._retry = retry or RetryConfig()
        self._sleep = sleep

    def fetch_page(self, cursor: Optional[str] = None) -> Page:
        """Fetch one page. Raises AuthFailure, RemoteRequestError or RemoteUnavailable."""
        params = dict(self._params)
        if cursor:
            params["after"] = cursor
        payload = self._get_with_retry(params)
        if not isinstance(payload, dict):
            raise RemoteRequestError(f"Response from {self._path} is not a JSON object")

        results = payload.get("results")
        if not isinstance(results, list) or not all(isinstance(item, dict) for item in results):
            raise RemoteRequestError(f"Response from {self._path} has no 'results' list of objects")
        try:
            records = [RawRecord.from_api(item, self._object_type) for item in results]
        except ValidationError as e:
            raise RemoteRequestError(f"Malformed record in response from {self._path}: {e}") from e

        next_cursor = ((payload.get("paging") or {}).get("next") or {}).get("after")
        return Page(records=records, next_cursor=str(next_cursor) if next_cursor else None)

    def iter_pages(self) -> Iterator[Page]:
        """Yield pages from the beginning until the API stops returning a cursor."""
        cursor: Optional[str] = None
        while True:
            page = self.fetch_page(cursor)
            yield page
            if not page.next_cursor:
                return
            cursor = page.next_cursor

    def _get_with_retry(self, params: dict[str, Any]) -> dict:
        max_attempts = self._retry.max_attempts
        last_error = ""
        last_status: Optional[int] = None

        for attempt in range(1, max_attempts + 1):
            self._rate_limiter.acquire()
            retry_after: Optional[float] = None
            try:
                resp = self._client.get(self._path, params=params)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                last_status = None
            else:
                if resp.status_code in AUTH_STATUS:
                    raise AuthFailure(
                        f"HubSpot rejected credentials ({resp.status_code}) for {self._path}",
                        status_code=resp.status_code,
                    )
                if resp.status_code == RATE_LIMITED_STATUS or resp.status_code >= 500:
                    last_error = f"HTTP {resp.status_code}"
                    last_status = resp.status_code
                    retry_after = _retry_after_seconds(resp)
                elif resp.is_error:
                    raise RemoteRequestError(
                        f"HubSpot returned HTTP {resp.status_code} for {self._path}: {resp.text[:200]}",
                        status_code=resp.status_code,
                    )
                else:
                    try:
                        return resp.json()
                    except ValueError as e:
                        raise RemoteRequestError(f"Non-JSON response from {self._path}") from e

            if attempt < max_attempts:
                delay = backoff_delay(attempt, self._retry, retry_after)
                logger.warning(
                    "Request to %s failed (%s), attempt %d/%d; retrying in %.2fs",
                    self._path, last_error, attempt, max_attempts, delay,
                )
                self._sleep(delay)

        raise RemoteUnavailable(
            f"HubSpot unavailable after {max_attempts} attempts ({last_error}) for {self._path}",
            attempts=max_attempts,
            status_code=last_status,
        )
