"""Text-pattern extraction of listing facts (phones, emails, status, ids)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional
from urllib.parse import unquote

from leadscout.core.models import ListingRecord

PHONE_PATTERNS = (
    # international / loose form
    re.compile(r"\+?\(?\d{1,4}\)?[-.\s]?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}"),
    # US parenthesized form
    re.compile(r"\(\d{3}\)\s*\d{3}[-.\s]?\d{4}"),
    # digit-dashed form
    re.compile(r"\d{3}[-.\s]\d{3}[-.\s]\d{4}"),
)
MIN_PHONE_DIGITS = 7

EMAIL_REGEX = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)

# Addresses on these domains belong to the map platform or web plumbing, not to the business.
PLATFORM_NOISE_DOMAINS = (
    "example.com",
    "google.com",
    "gstatic.com",
    "googleapis.com",
    "googleusercontent.com",
    "schema.org",
    "w3.org",
    "sentry.io",
)

CLOSED_INDICATORS = (
    "permanently closed",
    "temporarily closed",
    "cerrado permanentemente",
    "cerrado temporalmente",
    "business has closed",
    "no longer in business",
    "this place is closed",
    "dauerhaft geschlossen",
    "vorübergehend geschlossen",
    "définitivement fermé",
    "temporairement fermé",
    "chiuso definitivamente",
    "chiuso temporaneamente",
)

_GOOGLE_PLACE_ID_REGEX = re.compile(r"!19s(ChIJ[^!?/&]+)")
_FEATURE_ID_REGEX = re.compile(r"!1s(0x[0-9a-f]+:0x[0-9a-f]+)", re.IGNORECASE)
_PLACE_SEGMENT_REGEX = re.compile(r"/place/([^/?#]+)")
_ICON_GLYPHS = re.compile(r"[\ue000-\uf8ff]")
# google.es, google.co.uk, google.com.mx and the like
_REGIONAL_GOOGLE_REGEX = re.compile(r"(?:^|\.)google\.(?:com?\.)?[a-z]{2,3}$")


def _digit_count(value: str) -> int:
    return sum(1 for ch in value if ch.isdigit())


def extract_phone(text: Optional[str]) -> Optional[str]:
    """Return the first phone-shaped snippet with at least seven digits."""
    if not text:
        return None

    for pattern in PHONE_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(0).strip()
            if _digit_count(candidate) >= MIN_PHONE_DIGITS:
                return candidate
    return None


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower()


def is_blocked_domain(email: str, blocklist: Iterable[str]) -> bool:
    """Exact or subdomain match; blocking google.com also blocks its country domains."""
    domain = email_domain(email)
    blocked = tuple(blocklist)
    if "google.com" in blocked and _REGIONAL_GOOGLE_REGEX.search(domain):
        return True
    return any(domain == entry or domain.endswith(f".{entry}") for entry in blocked)


def find_emails(text: Optional[str], blocklist: Iterable[str]) -> List[str]:
    """Unique email matches not on ``blocklist``, in first-seen order."""
    if not text:
        return []

    blocked = tuple(blocklist)
    unique: List[str] = []
    for match in EMAIL_REGEX.finditer(text):
        email = match.group(0)
        if is_blocked_domain(email, blocked) or email in unique:
            continue
        unique.append(email)
    return unique


def extract_emails(text: Optional[str]) -> List[str]:
    return find_emails(text, PLATFORM_NOISE_DOMAINS)


def detect_closed(text: Optional[str]) -> bool:
    """True when the text announces a permanent or temporary closure."""
    if not text:
        return False
    lowered = text.lower()
    return any(indicator in lowered for indicator in CLOSED_INDICATORS)


def extract_place_id(url: Optional[str]) -> Optional[str]:
    """Derive a stable identifier from a listing URL.

    Google place ids (``ChIJ...``) win over feature ids (``0x..:0x..``), which
    win over the decoded ``/place/<slug>`` path segment.
    """
    if not url:
        return None
    segment = _PLACE_SEGMENT_REGEX.search(url)
    if not segment:
        return None

    place_id = _GOOGLE_PLACE_ID_REGEX.search(url)
    if place_id:
        return unquote(place_id.group(1))
    feature_id = _FEATURE_ID_REGEX.search(url)
    if feature_id:
        return feature_id.group(1).lower()
    return unquote(segment.group(1)).replace("+", " ").strip() or None


@dataclass(frozen=True)
class PageSnapshot:
    """Raw facts read from a rendered listing page, before interpretation."""

    url: str
    heading: Optional[str] = None
    body_text: str = ""
    panel_text: str = ""
    phone_text: Optional[str] = None
    address_text: Optional[str] = None
    has_website_element: bool = False


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    # icon font glyphs prefix button labels on the details panel
    stripped = _ICON_GLYPHS.sub("", value).strip()
    return stripped or None


def parse_snapshot(snapshot: PageSnapshot) -> ListingRecord:
    phone = extract_phone(snapshot.phone_text) if snapshot.phone_text else None
    if not phone:
        phone = extract_phone(snapshot.panel_text)

    return ListingRecord(
        name=_strip_or_none(snapshot.heading),
        address=_strip_or_none(snapshot.address_text),
        phone=phone,
        emails=tuple(extract_emails(snapshot.body_text)),
        has_website=snapshot.has_website_element,
        is_active=not detect_closed(snapshot.body_text),
        place_id=extract_place_id(snapshot.url),
    )
