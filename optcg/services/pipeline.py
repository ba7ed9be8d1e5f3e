# optcg/services/pipeline.py
"""
DiscoverSeries -> ExtractSeries(s)... -> Normalize -> FetchImages

Each stage returns StageOutcome records instead of letting exceptions
cross the stage boundary. The orchestrator decides what a failure means:
a failed series or image is skipped, a failed normalization ends the run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from optcg.errors import FatalError, ImageFetchError, PageError, StorageError
from optcg.services.db import CatalogStore
from optcg.services.images import ImageFetcher
from optcg.services.parser import parse_card_bundles, parse_series_options

logger = logging.getLogger(__name__)

DISCOVER = "discover"
EXTRACT = "extract"
NORMALIZE = "normalize"
FETCH = "fetch"


class CardSource(Protocol):
    def fetch_series_options(self, base_url: str) -> list[tuple[str, str]]: ...

    def fetch_card_bundles(self, base_url: str, series_id: str) -> list[dict]: ...


@dataclass
class StageOutcome:
    stage: str
    key: str
    ok: bool
    count: int = 0
    error: str = ""


@dataclass
class RunReport:
    outcomes: list[StageOutcome] = field(default_factory=list)

    def add(self, outcome: StageOutcome) -> StageOutcome:
        self.outcomes.append(outcome)
        return outcome

    def for_stage(self, stage: str) -> list[StageOutcome]:
        return [o for o in self.outcomes if o.stage == stage]

    def failures(self) -> list[StageOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def summary(self) -> dict[str, dict[str, int]]:
        out: dict[str, dict[str, int]] = {}
        for o in self.outcomes:
            s = out.setdefault(o.stage, {"ok": 0, "failed": 0, "count": 0})
            s["ok" if o.ok else "failed"] += 1
            s["count"] += o.count
        return out


class Orchestrator:
    def __init__(
        self,
        source: CardSource,
        store: CatalogStore,
        fetcher: ImageFetcher,
        site_base_url: str,
    ) -> None:
        self.source = source
        self.store = store
        self.fetcher = fetcher
        self.site_base_url = site_base_url

    def discover_series(self) -> StageOutcome:
        try:
            pairs = self.source.fetch_series_options(self.site_base_url)
            series = parse_series_options(pairs)
            saved = self.store.upsert_series(series)
        except (PageError, StorageError) as ex:
            logger.error("series discovery failed: %s", ex)
            return StageOutcome(DISCOVER, self.site_base_url, False, error=str(ex))
        logger.info("series discovered=%d", saved)
        return StageOutcome(DISCOVER, self.site_base_url, True, count=saved)

    def target_series(self, index: dict[str, str], allow: Sequence[str] = ()) -> list[str]:
        if not allow:
            return list(index)
        wanted = set(allow)
        unknown = [sid for sid in allow if sid not in index]
        if unknown:
            logger.warning("unknown series ids ignored: %s", ", ".join(unknown))
        return [sid for sid in index if sid in wanted]

    def extract_series(self, series_id: str) -> StageOutcome:
        try:
            bundles = self.source.fetch_card_bundles(self.site_base_url, series_id)
            rows = parse_card_bundles(bundles, series_id)
            saved = self.store.append_card_rows(rows)
        except (PageError, StorageError) as ex:
            logger.error("series=%s skipped: %s", series_id, ex)
            return StageOutcome(EXTRACT, series_id, False, error=str(ex))
        logger.info("[SERIES] %s rows=%d", series_id, saved)
        return StageOutcome(EXTRACT, series_id, True, count=saved)

    def normalize(self) -> StageOutcome:
        try:
            summary = self.store.normalize()
        except StorageError as ex:
            raise FatalError(f"normalization failed: {ex}") from ex
        logger.info(
            "normalized rows=%d cards=%d variants=%d alternate_art=%d",
            summary.raw_rows,
            summary.cards,
            summary.variants,
            summary.alternate_art,
        )
        return StageOutcome(NORMALIZE, "store", True, count=summary.cards)

    def fetch_images(self) -> list[StageOutcome]:
        try:
            worklist = self.store.fetch_download_worklist()
        except StorageError as ex:
            logger.error("download worklist unavailable: %s", ex)
            return [StageOutcome(FETCH, "worklist", False, error=str(ex))]

        total = len(worklist)
        logger.info("images to download=%d", total)
        outcomes: list[StageOutcome] = []
        t0 = time.time()
        for idx, item in enumerate(worklist, 1):
            key = str(item.cid)
            try:
                self.fetcher.fetch(item.cid, item.image_src, item.series_name, self.site_base_url)
            except (ImageFetchError, StorageError) as ex:
                logger.error("image cid=%s skipped: %s", item.cid, ex)
                outcomes.append(StageOutcome(FETCH, key, False, error=str(ex)))
            else:
                outcomes.append(StageOutcome(FETCH, key, True, count=1))

            if idx % 50 == 0 or idx == total:
                elapsed = max(1e-6, time.time() - t0)
                logger.info("[PROGRESS] images %d/%d rate=%.2f/s", idx, total, idx / elapsed)
        return outcomes

    def run(self, target_series: Sequence[str] = ()) -> RunReport:
        report = RunReport()
        report.add(self.discover_series())

        try:
            index = self.store.load_series_index()
        except StorageError as ex:
            raise FatalError(f"series index unavailable: {ex}") from ex

        for series_id in self.target_series(index, target_series):
            report.add(self.extract_series(series_id))

        report.add(self.normalize())

        for outcome in self.fetch_images():
            report.add(outcome)

        logger.info("[DONE] %s", report.summary())
        return report
