"""Raw HubSpot record representation before normalization."""

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

STANDARD_OBJECT_TYPES = ("contacts", "companies", "deals", "tickets")
ENGAGEMENT_TYPES = ("calls", "emails", "meetings", "notes", "tasks")

# Used when an API result carries neither createdAt nor updatedAt.
MISSING_TIMESTAMP = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_engagement_type(object_type: str) -> bool:
    """Engagement records are keyed by (id, object_type) rather than id alone."""
    return object_type in ENGAGEMENT_TYPES or object_type == "engagements"


class Associations(BaseModel):
    """IDs of objects associated with a record (empty lists if none fetched)."""

    contacts: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)


class RawRecord(BaseModel):
    """
    Flexible raw record from the HubSpot objects API.
    Property values are kept as strings exactly as returned; absent, null and
    empty-string values all mean "no value".
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    object_type: str = Field(default="deals", alias="objectType")
    properties: dict[str, Optional[str]] = Field(default_factory=dict)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    archived: bool = False
    associations: Associations = Field(default_factory=Associations)

    @classmethod
    def from_api(cls, item: dict[str, Any], object_type: str) -> "RawRecord":
        """Build from one entry of an API `results` array."""
        props = item.get("properties") or {}
        raw_id = item.get("id")
        assoc = item.get("associations") or {}
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            object_type=object_type,
            properties={k: (None if v is None else str(v)) for k, v in props.items()},
            created_at=item.get("createdAt") or item.get("updatedAt") or MISSING_TIMESTAMP,
            updated_at=item.get("updatedAt") or item.get("createdAt") or MISSING_TIMESTAMP,
            archived=bool(item.get("archived") or False),
            associations=Associations(
                contacts=_association_ids(assoc.get("contacts")),
                companies=_association_ids(assoc.get("companies")),
            ),
        )

    @property
    def record_key(self) -> Union[Optional[str], tuple[Optional[str], str]]:
        """Idempotency key used by the ingest boundary."""
        if is_engagement_type(self.object_type):
            return (self.id, self.object_type)
        return self.id

    def clean_properties(self) -> dict[str, str]:
        """Return properties with absent/null/empty values dropped."""
        return {k: v for k, v in self.properties.items() if v is not None and v != ""}

    def get(self, name: str) -> Optional[str]:
        """Property value, or None when missing or empty."""
        value = self.properties.get(name)
        return value if value else None

    def to_ingest_payload(self) -> dict[str, Any]:
        """JSON body forwarded to the ingest endpoint (cleaned properties only)."""
        payload: dict[str, Any] = {
            "id": self.id,
            "properties": self.clean_properties(),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "archived": self.archived,
            "associations": self.associations.model_dump(),
        }
        if is_engagement_type(self.object_type):
            payload["objectType"] = self.object_type
        return payload


def _association_ids(value: Any) -> list[str]:
    """Accept either a plain id list or the API's {"results": [{"id": ...}]} shape."""
    if not value:
        return []
    if isinstance(value, dict):
        value = value.get("results") or []
    ids: list[str] = []
    for v in value:
        if isinstance(v, dict):
            if v.get("id") is not None:
                ids.append(str(v["id"]))
        elif v is not None:
            ids.append(str(v))
    return ids
