"""HTTP entrypoint that queues discovery jobs in the background."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict

from flask import Flask, jsonify, request

from leadscout.core.config import get_settings
from leadscout.jobs.run_query import run_discovery_job

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
# Each job owns a browser; keep the number of simultaneous browsers small.
_executor = ThreadPoolExecutor(max_workers=2)

# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint that only reads env-based settings."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "concurrency": settings.concurrency,
                "headless": settings.headless,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/scrape")
def enqueue_scrape() -> Any:
    """
    Enqueue a discovery job.
    Required JSON fields: location
    Optional: query (str), subdivide (bool), zones (bool), concurrency (int)
    Results always go to LEADSCOUT_OUTPUT; a client-chosen path is rejected.
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    location = str(payload.get("location") or "").strip()
    if not location:
        return jsonify({"error": "missing fields: location"}), 400
    if "output" in payload:
        return jsonify({"error": "output is not accepted; the server writes to LEADSCOUT_OUTPUT"}), 400

    concurrency_raw = payload.get("concurrency")
    concurrency = None
    if concurrency_raw is not None:
        try:
            concurrency = int(concurrency_raw)
        except (TypeError, ValueError):
            return jsonify({"error": "concurrency must be numeric"}), 400
        if concurrency <= 0:
            return jsonify({"error": "concurrency must be positive"}), 400

    job_args = dict(
        query=str(payload.get("query") or "").strip(),
        location=location,
        output=get_settings().output_path,
        concurrency=concurrency,
        use_subdivision=bool(payload.get("subdivide", False)),
        include_zones=bool(payload.get("zones", False)),
    )

    logger.info("Queueing discovery job: %s", job_args)
    _executor.submit(_run_job_safe, job_args)

    return jsonify({"data": {"status": "queued"}}), 202


# ---------- Internals ----------


def _run_job_safe(job_args: Dict[str, Any]) -> None:
    try:
        summary = run_discovery_job(**job_args)
        logger.info("Discovery job finished: %s", summary)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Discovery job failed: %s", exc)


def main() -> None:
    port = int(os.getenv("PORT") or 8080)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
