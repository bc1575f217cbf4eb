"""Core data models shared by the discovery pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, NewType, Optional, Tuple

# Raw href of one candidate listing on a results surface.
ListingReference = str

# Fully-formed query string, e.g. "cafes in North Madrid, Spain".
SearchTask = str

# "place:<placeId>" when a place id exists, otherwise "name:<normalized name>".
DedupKey = NewType("DedupKey", str)


def _unique(values: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class ListingRecord:
    """Snapshot of one map listing extracted from its detail page."""

    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    emails: Tuple[str, ...] = ()
    has_website: bool = False
    is_active: bool = True
    place_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "emails", _unique(self.emails))

    @property
    def qualifies(self) -> bool:
        """Only active listings with a name and no website are worth emitting."""
        return not self.has_website and self.is_active and bool(self.name)

    def with_emails(self, emails: Iterable[str]) -> "ListingRecord":
        return ListingRecord(
            name=self.name,
            address=self.address,
            phone=self.phone,
            emails=self.emails + tuple(emails),
            has_website=self.has_website,
            is_active=self.is_active,
            place_id=self.place_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "emails": list(self.emails),
            "hasWebsite": self.has_website,
            "isActive": self.is_active,
            "placeId": self.place_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListingRecord":
        return cls(
            name=data.get("name"),
            address=data.get("address"),
            phone=data.get("phone"),
            emails=tuple(data.get("emails") or ()),
            has_website=bool(data.get("hasWebsite", False)),
            is_active=bool(data.get("isActive", True)),
            place_id=data.get("placeId"),
        )


def dedup_key(place_id: Optional[str], name: Optional[str]) -> Optional[DedupKey]:
    """Canonical identity of a listing, preferring the platform id over the name."""
    if place_id:
        return DedupKey(f"place:{place_id}")
    normalized = (name or "").strip().lower()
    if normalized:
        return DedupKey(f"name:{normalized}")
    return None


def record_key(record: ListingRecord) -> Optional[DedupKey]:
    return dedup_key(record.place_id, record.name)


def dict_key(data: Dict[str, Any]) -> Optional[DedupKey]:
    """Same as :func:`record_key` for a persisted (camelCase) record."""
    return dedup_key(data.get("placeId"), data.get("name"))
