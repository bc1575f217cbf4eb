"""JSON file persistence for discovered listings."""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from leadscout.core.models import ListingRecord, dict_key

logger = logging.getLogger(__name__)

_append_lock = threading.Lock()

RecordLike = Union[ListingRecord, Dict[str, Any]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_dict(record: RecordLike) -> Dict[str, Any]:
    if isinstance(record, ListingRecord):
        return record.to_dict()
    return dict(record)


def load_existing(path: str) -> Optional[Dict[str, Any]]:
    """Return the parsed results file, or None when it is missing or unreadable."""
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.error("Error loading existing file %s: %s", path, exc)
        return None
    if not isinstance(data, dict):
        logger.error("Existing file %s does not hold a results object", path)
        return None
    return data


def save_results(data: Dict[str, Any], path: str) -> bool:
    """Write ``data`` as pretty JSON, replacing the file atomically."""
    directory = os.path.dirname(os.path.abspath(path))
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".leadscout-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
    except OSError as exc:
        logger.error("Error saving results to %s: %s", path, exc)
        return False
    return True


def merge_results(existing: Optional[Dict[str, Any]], new_records: Iterable[RecordLike]) -> List[Dict[str, Any]]:
    """Existing results first, then new records whose dedup key is not present yet."""
    merged: List[Dict[str, Any]] = list((existing or {}).get("results") or [])
    seen = {key for key in (dict_key(item) for item in merged) if key is not None}

    for record in new_records:
        item = _as_dict(record)
        key = dict_key(item)
        if key is not None:
            if key in seen:
                continue
            seen.add(key)
        merged.append(item)
    return merged


def create_results_object(query: Optional[str], location: str, results: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "scrapedAt": _now_iso(),
        "query": query,
        "location": location,
        "totalFound": len(results),
        "results": results,
    }


def append_result(record: RecordLike, path: str, query: Optional[str], location: str) -> bool:
    """Stream one record into the results file, creating it if needed."""
    item = _as_dict(record)
    with _append_lock:
        existing = load_existing(path)
        if existing is None:
            return save_results(create_results_object(query, location, [item]), path)

        results = existing.setdefault("results", [])
        key = dict_key(item)
        if key is not None and any(dict_key(current) == key for current in results):
            logger.debug("Record %s already stored in %s", item.get("name"), path)
            return True

        results.append(item)
        existing["totalFound"] = len(results)
        existing["lastUpdated"] = _now_iso()
        return save_results(existing, path)


def merge_and_save(
    new_records: Iterable[RecordLike], path: str, query: Optional[str], location: str
) -> Tuple[bool, int]:
    """Fold ``new_records`` into the file at ``path`` under the append lock.

    Returns (saved, total results in the file).
    """
    with _append_lock:
        merged = merge_results(load_existing(path), new_records)
        return save_results(create_results_object(query, location, merged), path), len(merged)
