"""Abstract base class for CRM source connectors."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from pydantic import BaseModel, Field

from hubspot_sync.models.raw import ENGAGEMENT_TYPES, RawRecord


class StreamOptions(BaseModel):
    """Per-stream options. page_size falls back to the connector config."""

    properties: list[str] = Field(default_factory=list, description="Property names to request")
    page_size: Optional[int] = Field(default=None, ge=1, le=100)
    archived: bool = False
    engagement_types: list[str] = Field(default_factory=lambda: list(ENGAGEMENT_TYPES))


class BaseConnector(ABC):
    """
    Standard interface for CRM source connectors.
    Lifecycle: initialize(config) -> connect() -> stream_*() ... -> disconnect().
    Every stream is a lazy, finite, non-restartable iterator of RawRecord.
    """

    source_id: str = ""

    @abstractmethod
    def initialize(self, config: Any) -> None:
        """
        Validate configuration. Performs no I/O; fails fast on malformed config.
        """
        pass

    @abstractmethod
    def connect(self) -> None:
        """
        Open resources and run a cheap authenticated liveness check.
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """
        Release resources. Idempotent; the connector cannot be reused afterwards.
        """
        pass

    @abstractmethod
    def stream(self, object_type: str, options: Optional[StreamOptions] = None) -> Iterator[RawRecord]:
        """
        Stream raw records of one object type, page by page.
        """
        pass

    def stream_contacts(self, options: Optional[StreamOptions] = None) -> Iterator[RawRecord]:
        return self.stream("contacts", options)

    def stream_companies(self, options: Optional[StreamOptions] = None) -> Iterator[RawRecord]:
        return self.stream("companies", options)

    def stream_deals(self, options: Optional[StreamOptions] = None) -> Iterator[RawRecord]:
        return self.stream("deals", options)

    def stream_tickets(self, options: Optional[StreamOptions] = None) -> Iterator[RawRecord]:
        return self.stream("tickets", options)

    def stream_engagements(self, options: Optional[StreamOptions] = None) -> Iterator[RawRecord]:
        return self.stream("engagements", options)

    def fetch_all(self, object_type: str, options: Optional[StreamOptions] = None) -> list[RawRecord]:
        """
        Drain a stream into a list. Convenient for small object sets and tests;
        prefer iterating the stream for anything large.
        """
        return list(self.stream(object_type, options))

    @contextmanager
    def session(self) -> Iterator["BaseConnector"]:
        """Connect, and disconnect on every exit path (including failures)."""
        try:
            self.connect()
            yield self
        finally:
            self.disconnect()
