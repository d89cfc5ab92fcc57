"""Raw HubSpot record -> typed record conversion.

Extraction policy, applied the same way to every object type:

* strings: the named property when present and non-empty, else a default
* numbers: parsed as float; absent or unparseable values become 0
* dates: parsed as a timestamp; absent or unparseable values fall back to
  the raw record's own createdAt / updatedAt
* any property outside the standard set is kept in ``custom_properties``

Only a structurally invalid record (no ``id``) raises NormalizationError.
Won/closed flags are substring matches on the stage, not a stage table;
any "closed" stage (closedlost included) counts as won.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from hubspot_sync.errors import NormalizationError
from hubspot_sync.models.raw import RawRecord
from hubspot_sync.models.records import Company, Contact, Deal, NormalizedRecord

SECONDS_PER_DAY = 24 * 60 * 60

DEAL_PROPERTIES = (
    "dealname", "amount", "dealstage", "pipeline", "dealtype",
    "closedate", "createdate", "hs_lastmodifieddate", "hubspot_owner_id",
    "deal_currency_code", "dealstage_label", "pipeline_label",
    "hs_deal_stage_probability", "hs_forecast_amount", "hs_projected_amount",
    "num_associated_contacts", "num_contacted_notes", "days_to_close",
)
DEAL_STANDARD_PROPERTIES = frozenset(DEAL_PROPERTIES) | {"amount_in_home_currency"}

CONTACT_PROPERTIES = (
    "email", "firstname", "lastname", "company", "phone", "lifecyclestage",
    "hubspot_owner_id", "createdate", "lastmodifieddate",
)
CONTACT_STANDARD_PROPERTIES = frozenset(CONTACT_PROPERTIES) | {"hs_object_id"}

COMPANY_PROPERTIES = (
    "name", "domain", "industry", "city", "country", "annualrevenue",
    "numberofemployees", "hubspot_owner_id", "createdate", "hs_lastmodifieddate",
)
COMPANY_STANDARD_PROPERTIES = frozenset(COMPANY_PROPERTIES) | {"hs_object_id"}


def parse_number(value: Optional[str]) -> float:
    """Parse a float; None, garbage, NaN and infinities all become 0."""
    if value is None:
        return 0.0
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_count(value: Optional[str]) -> int:
    """Parse an integer count (truncating decimals); falls back to 0."""
    return int(parse_number(value))


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a HubSpot timestamp: ISO-8601 (with or without 'Z'), a plain date,
    or epoch milliseconds. Returns an aware UTC datetime, or None.
    """
    if not value or not value.strip():
        return None
    value = value.strip()
    if value.isdigit():
        try:
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    try:
        return _as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def _text(raw: RawRecord, name: str, default: str) -> str:
    value = raw.get(name)
    return value.strip() if value and value.strip() else default


def _optional_text(raw: RawRecord, name: str) -> Optional[str]:
    value = raw.get(name)
    return value.strip() if value and value.strip() else None


def _custom_properties(raw: RawRecord, standard: frozenset[str]) -> dict[str, str]:
    return {k: v for k, v in raw.clean_properties().items() if k not in standard}


def _require_id(raw: RawRecord) -> str:
    if raw.id is None or not str(raw.id).strip():
        raise NormalizationError(f"Raw {raw.object_type} record has no id")
    return str(raw.id).strip()


def stage_flags(stage: str) -> tuple[bool, bool]:
    """Return (is_won, is_closed) from a case-insensitive substring match on the stage."""
    s = stage.lower()
    is_won = "won" in s or "closed" in s
    is_closed = is_won or "lost" in s or "closed" in s
    return is_won, is_closed


def days_between(start: datetime, end: datetime) -> int:
    """Whole days (rounded up) between two instants, order-insensitive."""
    seconds = abs((_as_utc(end) - _as_utc(start)).total_seconds())
    return math.ceil(seconds / SECONDS_PER_DAY)


def normalize_deal(raw: RawRecord) -> Deal:
    """Convert a raw deal to a Deal. Raises NormalizationError if id is missing."""
    deal_id = _require_id(raw)

    stage = _text(raw, "dealstage", "unknown")
    pipeline = _text(raw, "pipeline", "default")
    amount = parse_number(raw.get("amount"))

    created_at = parse_timestamp(raw.get("createdate")) or _as_utc(raw.created_at)
    last_modified_at = parse_timestamp(raw.get("hs_lastmodifieddate")) or _as_utc(raw.updated_at)
    close_date = parse_timestamp(raw.get("closedate"))

    is_won, is_closed = stage_flags(stage)
    days_to_close = days_between(created_at, close_date) if is_closed and close_date else None

    associated_contacts = list(raw.associations.contacts)
    associated_companies = list(raw.associations.companies)

    return Deal(
        id=deal_id,
        deal_name=_text(raw, "dealname", "Untitled Deal"),
        amount=amount,
        currency=_text(raw, "deal_currency_code", "USD"),
        stage=stage,
        stage_label=_text(raw, "dealstage_label", stage),
        pipeline=pipeline,
        pipeline_label=_text(raw, "pipeline_label", pipeline),
        deal_type=_optional_text(raw, "dealtype"),
        close_date=close_date,
        created_at=created_at,
        last_modified_at=last_modified_at,
        owner_id=_optional_text(raw, "hubspot_owner_id"),
        stage_probability=parse_number(raw.get("hs_deal_stage_probability")),
        forecast_amount=parse_number(raw.get("hs_forecast_amount") or raw.get("amount")),
        projected_amount=parse_number(raw.get("hs_projected_amount") or raw.get("amount")),
        days_to_close=days_to_close,
        is_won=is_won,
        is_closed=is_closed,
        is_archived=raw.archived,
        contact_count=parse_count(raw.get("num_associated_contacts")) or len(associated_contacts),
        note_count=parse_count(raw.get("num_contacted_notes")),
        associated_contacts=associated_contacts,
        associated_companies=associated_companies,
        custom_properties=_custom_properties(raw, DEAL_STANDARD_PROPERTIES),
    )


def normalize_contact(raw: RawRecord) -> Contact:
    """Convert a raw contact to a Contact."""
    contact_id = _require_id(raw)
    first = _optional_text(raw, "firstname")
    last = _optional_text(raw, "lastname")
    email = _optional_text(raw, "email")
    full_name = " ".join(p for p in (first, last) if p) or email or "Unknown Contact"

    return Contact(
        id=contact_id,
        email=email,
        first_name=first,
        last_name=last,
        full_name=full_name,
        company=_optional_text(raw, "company"),
        phone=_optional_text(raw, "phone"),
        lifecycle_stage=_text(raw, "lifecyclestage", "unknown"),
        owner_id=_optional_text(raw, "hubspot_owner_id"),
        created_at=parse_timestamp(raw.get("createdate")) or _as_utc(raw.created_at),
        last_modified_at=parse_timestamp(raw.get("lastmodifieddate")) or _as_utc(raw.updated_at),
        is_archived=raw.archived,
        custom_properties=_custom_properties(raw, CONTACT_STANDARD_PROPERTIES),
    )


def normalize_company(raw: RawRecord) -> Company:
    """Convert a raw company to a Company."""
    company_id = _require_id(raw)
    domain = _optional_text(raw, "domain")

    return Company(
        id=company_id,
        name=_text(raw, "name", domain or "Untitled Company"),
        domain=domain,
        industry=_optional_text(raw, "industry"),
        city=_optional_text(raw, "city"),
        country=_optional_text(raw, "country"),
        annual_revenue=parse_number(raw.get("annualrevenue")),
        number_of_employees=parse_count(raw.get("numberofemployees")),
        owner_id=_optional_text(raw, "hubspot_owner_id"),
        created_at=parse_timestamp(raw.get("createdate")) or _as_utc(raw.created_at),
        last_modified_at=parse_timestamp(raw.get("hs_lastmodifieddate")) or _as_utc(raw.updated_at),
        is_archived=raw.archived,
        custom_properties=_custom_properties(raw, COMPANY_STANDARD_PROPERTIES),
    )


NormalizerFn = Callable[[RawRecord], NormalizedRecord]

NORMALIZERS: dict[str, NormalizerFn] = {
    "deals": normalize_deal,
    "contacts": normalize_contact,
    "companies": normalize_company,
}

# Properties to request per object type so normalization has what it needs.
DEFAULT_PROPERTIES: dict[str, tuple[str, ...]] = {
    "deals": DEAL_PROPERTIES,
    "contacts": CONTACT_PROPERTIES,
    "companies": COMPANY_PROPERTIES,
}


@dataclass(frozen=True)
class NormalizationResult:
    """Either a normalized record or the error that prevented one."""

    raw: RawRecord
    record: Optional[NormalizedRecord] = None
    error: Optional[NormalizationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.record is not None


def normalize(raw: RawRecord) -> NormalizationResult:
    """Normalize any supported object type. Never raises for per-record problems."""
    fn = NORMALIZERS.get(raw.object_type)
    if fn is None:
        return NormalizationResult(
            raw=raw,
            error=NormalizationError(f"No normalizer for object type '{raw.object_type}'", record_id=raw.id),
        )
    try:
        return NormalizationResult(raw=raw, record=fn(raw))
    except NormalizationError as e:
        return NormalizationResult(raw=raw, error=e)
    except ValidationError as e:
        return NormalizationResult(
            raw=raw,
            error=NormalizationError(f"Normalized {raw.object_type} failed validation: {e}", record_id=raw.id),
        )


def supports(object_type: str) -> bool:
    return object_type in NORMALIZERS

