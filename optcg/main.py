import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from optcg.config import Settings, load_settings
from optcg.constants import SITE_URLS
from optcg.errors import CardlistError
from optcg.logs import close_logging, setup_logging
from optcg.paths import db_path, images_root, log_dir, reset_dir
from optcg.services.browser import BrowserSession
from optcg.services.db import CatalogStore
from optcg.services.images import ImageFetcher
from optcg.services.pipeline import CardSource, Orchestrator
from optcg.services.verify import inspect_store, run_startup_checks

logger = logging.getLogger("optcg")

PROMPT = "Use the Japanese site? (Y/N): "


def prompt_site_url(ask: Callable[[str], str] = input) -> str:
    """Y -> Japanese site, N -> Traditional Chinese site. Asks until valid."""
    while True:
        choice = ask(PROMPT).strip().upper()
        if choice == "Y":
            return SITE_URLS["ja"]
        if choice == "N":
            return SITE_URLS["tw"]
        print("Invalid input, please enter 'Y' or 'N'.")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Crawl the One Piece card list into SQLite and download card images."
    )
    ap.add_argument(
        "series",
        nargs="*",
        help="Series ids to extract (e.g. 550101). Default: every series.",
    )
    return ap


def run(
    series: list[str],
    settings: Settings,
    *,
    ask: Callable[[str], str] = input,
    source: CardSource | None = None,
    http: requests.Session | None = None,
) -> int:
    data_root = settings.data_root
    issues = run_startup_checks(data_root)
    if issues:
        for issue in issues:
            print(f"[ERROR] {issue}", file=sys.stderr)
        return 1

    setup_logging(log_dir(data_root), settings.log_level)
    try:
        return _crawl(series, settings, ask=ask, source=source, http=http)
    finally:
        close_logging()


def _crawl(
    series: list[str],
    settings: Settings,
    *,
    ask: Callable[[str], str],
    source: CardSource | None,
    http: requests.Session | None,
) -> int:
    store_path = db_path(settings.data_root)
    reset_dir(store_path.parent)
    img_root = reset_dir(images_root(settings.data_root))
    logger.info("[START] db=%s images=%s series=%s", store_path, img_root, ",".join(series) or "ALL")

    site_url = settings.site_url or prompt_site_url(ask)

    store = CatalogStore(store_path)
    fetcher = ImageFetcher(store, img_root, session=http)
    source = source or BrowserSession(
        headless=settings.headless,
        settle_seconds=settings.settle_seconds,
        consent_timeout_ms=settings.consent_timeout_ms,
    )

    try:
        report = Orchestrator(source, store, fetcher, site_url).run(series)
    except CardlistError as ex:
        logger.error("Run aborted: %s", ex, exc_info=True)
        return 1
    except Exception:
        logger.exception("Run aborted by an unexpected error")
        return 1

    for issue in inspect_store(store_path):
        logger.warning("store check: %s", issue)

    failures = report.failures()
    if failures:
        logger.warning("finished with %d skipped units", len(failures))
    else:
        logger.info("all series and images processed")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as ex:
        print(f"[ERROR] {ex}", file=sys.stderr)
        return 2
    return run(args.series, settings)


if __name__ == "__main__":
    sys.exit(main())
