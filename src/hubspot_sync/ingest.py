"""Ingestion boundary: where synced records are written.

The downstream pipeline accepts one JSON document per record at
``POST {base_url}/ingest/{stream_name}`` and is expected to tolerate
duplicates (writes are keyed by record id, or (id, objectType) for
engagements). Any failure to write surfaces as ForwardingError.
"""

import sqlite3
from typing import Any, Optional, Protocol, Union

import httpx

from hubspot_sync.errors import ForwardingError
from hubspot_sync.models.dead_letter import DeadLetterEntry
from hubspot_sync.models.raw import RawRecord
from hubspot_sync.models.records import Deal, NormalizedRecord
from hubspot_sync.store import DealStore, RawRecordStore

DEFAULT_INGEST_URL = "http://localhost:4000"

_STREAM_NAMES = {
    "contacts": "Contact",
    "companies": "Company",
    "deals": "Deal",
    "tickets": "Ticket",
    "engagements": "Engagement",
}

SinkRecord = Union[RawRecord, NormalizedRecord]


def raw_stream_name(object_type: str) -> str:
    """e.g. deals -> HubSpotDealRaw; engagement types share HubSpotEngagementRaw."""
    return f"HubSpot{_STREAM_NAMES.get(object_type, 'Engagement')}Raw"


def normalized_stream_name(object_type: str) -> str:
    return f"HubSpot{_STREAM_NAMES.get(object_type, 'Engagement')}"


def dead_letter_stream_name(object_type: str) -> str:
    return f"HubSpot{_STREAM_NAMES.get(object_type, 'Engagement')}DeadLetter"


def _record_key(record: SinkRecord) -> str:
    if isinstance(record, RawRecord):
        return str(record.record_key)
    return record.id


class IngestSink(Protocol):
    """One write per record; implementations raise ForwardingError on failure."""

    def write(self, record: Any) -> None: ...

    def close(self) -> None: ...


class HttpIngestSink:
    """Posts records as JSON to an ingest endpoint."""

    def __init__(
        self,
        stream_name: str,
        base_url: str = DEFAULT_INGEST_URL,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.stream_name = stream_name
        self._url = f"{base_url.rstrip('/')}/ingest/{stream_name}"
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @property
    def url(self) -> str:
        return self._url

    def _post(self, payload: dict[str, Any], key: str) -> None:
        try:
            resp = self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise ForwardingError(f"Ingest request for {key} failed: {e}", record_key=key) from e
        if resp.is_error:
            raise ForwardingError(
                f"Ingest error {resp.status_code} for {key}: {resp.text[:200]}",
                record_key=key,
            )

    def write(self, record: SinkRecord) -> None:
        if isinstance(record, RawRecord):
            payload = record.to_ingest_payload()
        else:
            payload = record.model_dump(mode="json")
        self._post(payload, _record_key(record))

    def write_dead_letter(self, entry: DeadLetterEntry) -> None:
        self._post(entry.to_payload(), _record_key(entry.original_record))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class RawRecordSink:
    """Writes raw records into the local SQLite raw store."""

    def __init__(self, store: RawRecordStore):
        self._store = store

    def write(self, record: RawRecord) -> None:
        try:
            self._store.upsert(record)
        except (ValueError, sqlite3.Error) as e:
            key = str(record.record_key)
            raise ForwardingError(f"Store write failed for {key}: {e}", record_key=key) from e

    def close(self) -> None:
        pass


class DealStoreSink:
    """Writes normalized deals into the local deal store."""

    def __init__(self, store: DealStore):
        self._store = store

    def write(self, record: NormalizedRecord) -> None:
        if not isinstance(record, Deal):
            raise ForwardingError(
                f"DealStoreSink only accepts deals, got {type(record).__name__}",
                record_key=record.id,
            )
        try:
            self._store.upsert(record)
        except sqlite3.Error as e:
            raise ForwardingError(f"Deal store write failed for {record.id}: {e}", record_key=record.id) from e

    def close(self) -> None:
        pass


class CollectingSink:
    """Keeps every written record in memory (dry runs, JSON output, tests)."""

    def __init__(self) -> None:
        self.records: list[Any] = []

    def write(self, record: Any) -> None:
        self.records.append(record)

    def close(self) -> None:
        pass
