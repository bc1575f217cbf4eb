"""Best-effort business email lookup through DuckDuckGo's no-JavaScript HTML endpoint."""

import logging
import threading
from typing import List, Optional
from urllib.parse import unquote

import requests
from bs4 import BeautifulSoup

from leadscout.core.config import DEFAULT_USER_AGENT
from leadscout.core.extractor import email_domain, find_emails

logger = logging.getLogger(__name__)
# lookups run on asyncio.to_thread workers, so each thread keeps its own session
_LOCAL = threading.local()
_BASE_URL = "https://html.duckduckgo.com/html/"
REQUEST_TIMEOUT = 15

# Search engines, social networks and mapping platforms leak their own addresses into results.
LOOKUP_BLOCKLIST = (
    "example.com",
    "google.com",
    "gstatic.com",
    "googleapis.com",
    "schema.org",
    "w3.org",
    "facebook.com",
    "twitter.com",
    "duckduckgo.com",
    "bing.com",
    "yahoo.com",
    "microsoft.com",
    "apple.com",
    "amazon.com",
    "instagram.com",
    "linkedin.com",
    "youtube.com",
    "whatsapp.com",
    "tripadvisor.com",
)
FREE_MAIL_DOMAINS = (
    "gmail.com",
    "googlemail.com",
    "hotmail.com",
    "outlook.com",
    "live.com",
    "icloud.com",
    "protonmail.com",
)


def _thread_session() -> requests.Session:
    session = getattr(_LOCAL, "session", None)
    if session is None:
        session = requests.Session()
        session.headers.update({"User-Agent": DEFAULT_USER_AGENT, "Accept-Language": "en-US,en;q=0.9"})
        _LOCAL.session = session
    return session


def guess_city(address: Optional[str]) -> str:
    """Second-to-last comma token of an address, which is usually the city."""
    if not address:
        return ""
    parts = [part.strip() for part in address.split(",")]
    if len(parts) < 2:
        return ""
    return parts[-2]


def build_query(business_name: str, address: Optional[str]) -> str:
    parts = [business_name.strip(), guess_city(address), "email"]
    return " ".join(part for part in parts if part)


def pick_email(candidates: List[str]) -> Optional[str]:
    for email in candidates:
        if email_domain(email) in FREE_MAIL_DOMAINS:
            return email
    return candidates[0] if candidates else None


def page_text(html: str) -> str:
    """Visible text plus any link target that looks like it carries an address."""
    soup = BeautifulSoup(html, "html.parser")
    chunks = [soup.get_text(" ", strip=True)]
    for anchor in soup.find_all("a", href=True):
        href = unquote(anchor["href"])
        if "mailto:" in href or "@" in href:
            chunks.append(href.replace("mailto:", " "))
    return " ".join(chunks)


def find_business_email(
    business_name: str,
    address: Optional[str] = None,
    *,
    session: Optional[requests.Session] = None,
    timeout: int = REQUEST_TIMEOUT,
) -> Optional[str]:
    """Return one plausible email for the business or None; never raises on network trouble."""
    if not business_name or not business_name.strip():
        return None

    query = build_query(business_name, address)
    http = session or _thread_session()
    try:
        response = http.get(_BASE_URL, params={"q": query}, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.debug("Email lookup failed for %r: %s", query, exc)
        return None

    content_type = response.headers.get("Content-Type", "").lower()
    if "text/html" not in content_type:
        logger.debug("Email lookup got non-HTML content for %r (content-type=%s)", query, content_type)
        return None

    candidates = find_emails(page_text(response.text), LOOKUP_BLOCKLIST)
    email = pick_email(candidates)
    logger.debug("Email lookup for %r found %d candidate(s), picked %s", query, len(candidates), email)
    return email
