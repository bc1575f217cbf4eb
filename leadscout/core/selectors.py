"""Ordered selector chains for the Google Maps UI.

Every field is a probe list: callers try the selectors in order and the first
one that matches wins. The chains can be replaced without a code change by
pointing ``LEADSCOUT_SELECTORS_FILE`` at a JSON object such as::

    {"search_input": ["input#searchboxinput"], "place_phone": ["button[data-item-id^='phone:']"]}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from typing import Optional, Tuple

from leadscout.core.config import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectorConfig:
    results_container: Tuple[str, ...] = (
        'div[role="feed"]',
        'div[aria-label*="Results"]',
        "div.section-layout",
        '#pane div[role="region"]',
    )
    result_link: Tuple[str, ...] = ('a[href*="/maps/place/"]',)
    search_input: Tuple[str, ...] = (
        "input#searchboxinput",
        'input[name="q"]',
        'input[aria-label*="Search"]',
        'input[aria-label*="Buscar"]',
        "#searchbox input",
        "input.searchboxinput",
    )
    consent_buttons: Tuple[str, ...] = (
        'button:has-text("Accept all")',
        'button:has-text("Aceptar todo")',
        'button:has-text("Acepto")',
        'button:has-text("Alle akzeptieren")',
        'button:has-text("Tout accepter")',
        'button:has-text("Accetta tutto")',
        'button:has-text("Agree")',
        'button:has-text("I agree")',
        'form[action*="consent"] button',
        '[aria-label*="Accept"]',
        '[aria-label*="Aceptar"]',
    )
    place_name: Tuple[str, ...] = ("h1",)
    place_phone: Tuple[str, ...] = (
        'button[data-item-id^="phone:"]',
        '[data-tooltip="Copy phone number"]',
    )
    place_address: Tuple[str, ...] = (
        'button[data-item-id="address"]',
        '[data-tooltip="Copy address"]',
    )
    place_website: Tuple[str, ...] = (
        'a[data-item-id="authority"]',
        '[data-tooltip="Open website"]',
    )
    detail_panel: Tuple[str, ...] = ('[role="main"]',)


DEFAULT_SELECTORS = SelectorConfig()


def load_selectors(path: Optional[str] = None) -> SelectorConfig:
    """Return the default chains with any overrides from a JSON file applied."""
    if not path:
        return DEFAULT_SELECTORS

    try:
        with open(path, "r", encoding="utf-8") as fh:
            overrides = json.load(fh)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Unable to read selectors file {path}: {exc}") from exc

    if not isinstance(overrides, dict):
        raise ConfigError(f"Selectors file {path} must contain a JSON object")

    known = {field.name for field in fields(SelectorConfig)}
    changes = {}
    for key, value in overrides.items():
        if key not in known:
            logger.warning("Ignoring unknown selector chain %r in %s", key, path)
            continue
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise ConfigError(f"Selector chain {key!r} must be a string or a list of strings")
        if not any(item.strip() for item in value):
            raise ConfigError(f"Selector chain {key!r} must contain at least one selector")
        changes[key] = tuple(item for item in value if item.strip())

    logger.info("Loaded %d selector override(s) from %s", len(changes), path)
    return replace(DEFAULT_SELECTORS, **changes)
