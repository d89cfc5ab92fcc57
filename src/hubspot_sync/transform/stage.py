"""Transform stage: normalize each raw record or hand it to the dead-letter router."""

from typing import Iterable, Iterator, Optional

from hubspot_sync.models.raw import RawRecord
from hubspot_sync.models.records import NormalizedRecord
from hubspot_sync.transform.dead_letter import DeadLetterRouter
from hubspot_sync.transform.normalizer import normalize


class TransformStage:
    """Normalizes raw records one at a time; failures never abort the stream."""

    def __init__(self, router: DeadLetterRouter):
        self.router = router
        self.succeeded = 0
        self.failed = 0

    def process(self, raw: RawRecord) -> Optional[NormalizedRecord]:
        """Return the normalized record, or None after dead-lettering the raw one."""
        result = normalize(raw)
        if result.ok:
            self.succeeded += 1
            return result.record
        self.failed += 1
        assert result.error is not None
        self.router.route(raw, result.error)
        return None

    def run(self, records: Iterable[RawRecord]) -> Iterator[NormalizedRecord]:
        """Lazily normalize a stream, skipping (and dead-lettering) failures."""
        for raw in records:
            record = self.process(raw)
            if record is not None:
                yield record
