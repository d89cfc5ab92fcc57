"""Local storage for raw records, dead letters, normalized deals and run history."""

from hubspot_sync.store.deal_store import DealQuery, DealStore
from hubspot_sync.store.dead_letter_store import DeadLetterStore
from hubspot_sync.store.sqlite_store import RawRecordStore, RunRecord

__all__ = [
    "DeadLetterStore",
    "DealQuery",
    "DealStore",
    "RawRecordStore",
    "RunRecord",
]
