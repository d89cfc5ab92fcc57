"""Routes records that failed normalization to a dead-letter sink."""

import logging
from typing import Optional, Protocol

from hubspot_sync.errors import NormalizationError
from hubspot_sync.models.dead_letter import DeadLetterEntry
from hubspot_sync.models.raw import RawRecord

logger = logging.getLogger(__name__)


class DeadLetterSink(Protocol):
    """Anything that can persist a dead-letter entry."""

    def write_dead_letter(self, entry: DeadLetterEntry) -> None: ...


class InMemoryDeadLetterSink:
    """Keeps entries in a list. Used for dry runs and tests."""

    def __init__(self) -> None:
        self.entries: list[DeadLetterEntry] = []

    def write_dead_letter(self, entry: DeadLetterEntry) -> None:
        self.entries.append(entry)


class DeadLetterRouter:
    """
    Builds a DeadLetterEntry per normalization failure and writes it once.
    A sink failure is logged and swallowed so the normalizing stream keeps
    going; entries are never retried or replayed automatically.
    """

    def __init__(self, sink: DeadLetterSink):
        self._sink = sink
        self.routed = 0
        self.sink_failures = 0

    def route(self, raw: RawRecord, error: NormalizationError) -> Optional[DeadLetterEntry]:
        """Write one entry for `raw`. Returns the entry, or None if the sink failed."""
        entry = DeadLetterEntry(original_record=raw, failure_reason=str(error))
        try:
            self._sink.write_dead_letter(entry)
        except Exception:
            self.sink_failures += 1
            logger.exception(
                "Dead-letter sink failed for %s record %s; entry dropped",
                raw.object_type, raw.id,
            )
            return None
        self.routed += 1
        logger.warning("Dead-lettered %s record %s: %s", raw.object_type, raw.id, error)
        return entry
