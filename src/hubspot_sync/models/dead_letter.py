"""Dead-letter entry for records that failed normalization."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hubspot_sync.models.raw import RawRecord


class DeadLetterEntry(BaseModel):
    """Raw record plus failure context. Terminal once written; never replayed."""

    model_config = ConfigDict(frozen=True)

    original_record: RawRecord
    failure_reason: str
    failed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def object_type(self) -> str:
        return self.original_record.object_type

    def to_payload(self) -> dict[str, Any]:
        """Outbound dead-letter schema: {originalRecord, failureReason, failedAt}."""
        return {
            "originalRecord": self.original_record.to_ingest_payload(),
            "failureReason": self.failure_reason,
            "failedAt": self.failed_at.isoformat(),
        }
