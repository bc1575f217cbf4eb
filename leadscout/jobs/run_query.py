"""CLI job that finds map listings without a website and streams them to a JSON file."""

import argparse
import asyncio
import logging
import signal
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional

from leadscout.core.cancel import CancelToken
from leadscout.core.config import ConfigError, get_settings
from leadscout.core.engine import DiscoveryEngine
from leadscout.core.link_collector import SearchSurfaceError
from leadscout.core.models import ListingRecord
from leadscout.core.session import SessionError
from leadscout.etl import subdivide
from leadscout.etl.storage import append_result, merge_and_save

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LABEL = "food & drink"


def run_discovery_job(
    *,
    query: Optional[str],
    location: str,
    output: str,
    concurrency: Optional[int] = None,
    use_subdivision: bool = False,
    include_zones: bool = False,
    headless: Optional[bool] = None,
    cancel_token: Optional[CancelToken] = None,
) -> Dict[str, Any]:
    """Run one discovery job end to end and return a summary of what was stored."""
    if not location or not location.strip():
        raise ValueError("location is required")

    settings = get_settings()
    if headless is not None:
        settings = replace(settings, headless=headless)

    started = time.monotonic()
    streamed: List[ListingRecord] = []
    query_label = query or DEFAULT_QUERY_LABEL

    def on_result(record: ListingRecord) -> None:
        streamed.append(record)
        if not append_result(record, output, query_label, location):
            logger.error("Failed to stream %s to %s", record.name, output)
        logger.info(
            "✓ %s | %s [saved: %d]",
            record.name,
            record.phone or "No phone",
            len(streamed),
        )

    engine = DiscoveryEngine(
        settings,
        on_result=on_result,
        cancel_token=cancel_token,
        concurrency=concurrency,
    )

    if use_subdivision:
        categories = (query.strip(),) if query and query.strip() else subdivide.FOOD_DRINK_CATEGORIES
        tasks = subdivide.plan(location, include_zones=include_zones, categories=categories)
        logger.info("Will search %d sub-regions", len(tasks))
        for index, task in enumerate(tasks[:5], start=1):
            logger.info("   %d. %s", index, task)
        if len(tasks) > 5:
            logger.info("   ... and %d more", len(tasks) - 5)
        results = asyncio.run(engine.sweep(tasks))
    else:
        results = asyncio.run(engine.scrape(query, location))

    summary: Dict[str, Any] = {
        "found": len(results),
        "total_in_file": 0,
        "with_phone": sum(1 for record in results if record.phone),
        "with_email": sum(1 for record in results if record.emails),
        "saved": False,
        "output": output,
        "elapsed_seconds": round(time.monotonic() - started, 1),
    }

    if not results:
        logger.warning("No establishments without websites found.")
        return summary

    summary["saved"], summary["total_in_file"] = merge_and_save(results, output, query_label, location)

    if summary["saved"]:
        logger.info("Found %d establishments without websites", summary["found"])
        logger.info("Total in file: %d, saved to %s", summary["total_in_file"], output)
        logger.info("With phone number: %d/%d", summary["with_phone"], summary["found"])
        logger.info("With email: %d/%d", summary["with_email"], summary["found"])
        logger.info("Time elapsed: %.1fs", summary["elapsed_seconds"])
    else:
        logger.error("Failed to save results to %s", output)
    return summary


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Find Google Maps establishments without websites")
    parser.add_argument(
        "-q",
        "--query",
        dest="query",
        default="",
        help='Type of establishment (e.g. "restaurants"). Omit for all types',
    )
    parser.add_argument(
        "-l",
        "--location",
        dest="location",
        required=True,
        help='Geographic area to search (e.g. "Madrid, Spain")',
    )
    parser.add_argument("-o", "--output", dest="output", default=settings.output_path, help="Output JSON filename")
    parser.add_argument(
        "-c",
        "--concurrency",
        dest="concurrency",
        type=int,
        default=settings.concurrency,
        help="Number of parallel page loads",
    )
    parser.add_argument(
        "-s",
        "--subdivide",
        dest="subdivide",
        action="store_true",
        help="Split the area into sub-regions for more results",
    )
    parser.add_argument("--zones", dest="zones", action="store_true", help="Add numbered zones to the sweep")
    parser.add_argument("--headed", dest="headed", action="store_true", help="Show the browser window")
    return parser


def _install_signal_handlers(token: CancelToken) -> None:
    def _handle(signum, frame):  # noqa: ARG001
        logger.warning("Received signal %s, finishing current listings and stopping", signum)
        token.cancel()
        signal.signal(signum, signal.SIG_DFL)

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main() -> None:
    try:
        level = get_settings().log_level
    except ConfigError:
        level = "INFO"
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s - %(message)s")

    try:
        parser = build_parser()
        args = parser.parse_args()
        if args.concurrency < 1:
            parser.error("--concurrency must be at least 1")

        token = CancelToken()
        _install_signal_handlers(token)
        logger.info(
            "query=%s location=%s output=%s concurrency=%s subdivide=%s headless=%s",
            args.query or "All establishments",
            args.location,
            args.output,
            args.concurrency,
            args.subdivide,
            not args.headed,
        )
        run_discovery_job(
            query=args.query,
            location=args.location,
            output=args.output,
            concurrency=args.concurrency,
            use_subdivision=args.subdivide,
            include_zones=args.zones,
            headless=not args.headed,
            cancel_token=token,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except (SessionError, SearchSurfaceError) as exc:
        logger.error("Error: %s", exc)
        if "Executable" in str(exc):
            logger.error('Tip: run "playwright install chromium" to install the browser')
        raise SystemExit(1) from exc
    except Exception as exc:  # pragma: no cover - CLI fallback
        logger.error("Discovery job failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
