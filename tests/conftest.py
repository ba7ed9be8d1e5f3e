from __future__ import annotations

from pathlib import Path

import pytest
import requests

from optcg.models import RawCardRow
from optcg.services.db import CatalogStore

SITE = "https://www.onepiece-cardgame.com"


class FakeResponse:
    def __init__(self, body: bytes, status_code: int = 200, url: str = "") -> None:
        self.content = body
        self.status_code = status_code
        self.url = url

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error: {self.url}")


class FakeHttp:
    """Stands in for requests.Session; maps URL -> body, status or exception."""

    def __init__(self, routes: dict[str, object] | None = None, default: bytes | None = b"PNGDATA") -> None:
        self.routes = routes or {}
        self.default = default
        self.calls: list[str] = []

    def get(self, url: str, **kwargs) -> FakeResponse:
        self.calls.append(url)
        route = self.routes.get(url, self.default)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, int):
            return FakeResponse(b"", status_code=route, url=url)
        if route is None:
            return FakeResponse(b"", status_code=404, url=url)
        return FakeResponse(route, url=url)


class FakeSource:
    """Stands in for BrowserSession: canned series options and card bundles."""

    def __init__(
        self,
        series: list[tuple[str, str]] | Exception,
        cards: dict[str, list[dict] | Exception],
    ) -> None:
        self.series = series
        self.cards = cards
        self.visited: list[str] = []

    def fetch_series_options(self, base_url: str) -> list[tuple[str, str]]:
        if isinstance(self.series, Exception):
            raise self.series
        return list(self.series)

    def fetch_card_bundles(self, base_url: str, series_id: str) -> list[dict]:
        self.visited.append(series_id)
        result = self.cards.get(series_id, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


def make_row(display_code: str = "OP01-001", **overrides) -> RawCardRow:
    values = dict(
        display_code=display_code,
        name="Roronoa Zoro",
        species="L",
        card_type="LEADER",
        image_src=f"/images/cardlist/card/{display_code}.png",
        cost=0,
        power=5000,
        counter=0,
        color="Red",
        feature="Supernovas/Straw Hat Crew",
        effect_text="-",
        acquisition_text="ROMANCE DAWN [OP-01]",
        series_id="OP01",
    )
    values.update(overrides)
    return RawCardRow(**values)


def card_bundle(display_code: str = "OP05-002", **overrides) -> dict:
    bundle = {
        "display_code": f" {display_code} ",
        "species": "SR",
        "card_type": "CHARACTER",
        "image_src": f"../images/cardlist/card/{display_code}.png?241220",
        "name": "Belo Betty",
        "cost": " 2",
        "power": "5000",
        "counter": "1000",
        "color": " Red ",
        "feature": "Revolutionary Army",
        "effect_text": "<h3>Effect</h3>[On Play] Draw 1 card.<br>Then trash 1 card.",
        "acquisition_text": "<h3>Card Set(s)</h3>-Awakening of the New Era- [OP-05]",
    }
    bundle.update(overrides)
    return bundle


@pytest.fixture
def store(tmp_path: Path) -> CatalogStore:
    return CatalogStore(tmp_path / "db" / "cards.db")


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    d = tmp_path / "images"
    d.mkdir()
    return d
