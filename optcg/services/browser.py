# optcg/services/browser.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page
from playwright.sync_api import TimeoutError as PWTimeoutError
from playwright.sync_api import sync_playwright

from optcg.constants import (
    BROWSER_ARGS,
    CARD_BLOCK_SELECTOR,
    CONSENT_PAUSE_MS,
    CONSENT_SELECTOR,
    CONSENT_TIMEOUT_MS,
    SERIES_OPTION_SELECTOR,
    SETTLE_SECONDS,
    USER_AGENT,
)
from optcg.errors import PageError

logger = logging.getLogger(__name__)

SERIES_OPTIONS_SCRIPT = """
(options) => options.map((option) => [option.textContent, option.value])
"""

# Returns raw values only; defaults and cleanup happen in parser.py.
CARD_BLOCKS_SCRIPT = """
(blocks) => blocks.map((block) => {
    const text = (selector) => {
        const el = block.querySelector(selector);
        return el ? el.textContent : null;
    };
    const labelled = (selector) => {
        const el = block.querySelector('.backCol ' + selector);
        const node = el ? el.childNodes[1] : null;
        return node ? node.nodeValue : null;
    };
    const fragment = (selector) => {
        const el = block.querySelector('.backCol ' + selector);
        return el ? el.innerHTML : null;
    };
    const img = block.querySelector('.frontCol img');
    return {
        display_code: text('.infoCol span:nth-child(1)'),
        species: text('.infoCol span:nth-child(2)'),
        card_type: text('.infoCol span:nth-child(3)'),
        image_src: img ? (img.getAttribute('data-src') || img.getAttribute('src')) : null,
        name: img ? img.getAttribute('alt') : null,
        cost: labelled('.cost'),
        power: labelled('.power'),
        counter: labelled('.counter'),
        color: labelled('.color'),
        feature: labelled('.feature'),
        effect_text: fragment('.text'),
        acquisition_text: fragment('.getInfo'),
    };
})
"""


def cardlist_url(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/cardlist/"


def series_url(base_url: str, series_id: str) -> str:
    return f"{cardlist_url(base_url)}?series={series_id}"


class BrowserSession:
    """
    One headless Chromium per page visit.

    ``open`` is a context manager: the browser is closed on success, on
    parse failure and on timeout alike. Playwright errors raised while the
    page is in use are reported as PageError.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        settle_seconds: float = SETTLE_SECONDS,
        consent_timeout_ms: int = CONSENT_TIMEOUT_MS,
        playwright_factory: Callable[[], Any] = sync_playwright,
    ) -> None:
        self.headless = headless
        self.settle_seconds = settle_seconds
        self.consent_timeout_ms = consent_timeout_ms
        self._playwright_factory = playwright_factory

    @contextmanager
    def open(self, url: str) -> Iterator[Page]:
        try:
            with self._playwright_factory() as p:
                browser = p.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
                try:
                    page = browser.new_page(user_agent=USER_AGENT)
                    logger.debug("Opening %s", url)
                    page.goto(url, wait_until="domcontentloaded")
                    yield page
                finally:
                    browser.close()
        except PlaywrightError as ex:
            raise PageError(url, str(ex)) from ex

    def dismiss_consent(self, page: Page, timeout_ms: int | None = None) -> bool:
        timeout = self.consent_timeout_ms if timeout_ms is None else timeout_ms
        try:
            button = page.wait_for_selector(CONSENT_SELECTOR, timeout=timeout)
            if button is None:
                return False
            button.click()
        except PWTimeoutError:
            logger.debug("Consent overlay not shown on %s", page.url)
            return False
        except PlaywrightError as ex:
            logger.debug("Consent overlay could not be closed: %s", ex)
            return False
        page.wait_for_timeout(CONSENT_PAUSE_MS)
        logger.debug("Consent overlay closed")
        return True

    def settle(self, page: Page) -> None:
        # client-side rendering of the result list
        if self.settle_seconds > 0:
            page.wait_for_timeout(int(self.settle_seconds * 1000))

    def extract(self, page: Page, selector: str, script: str) -> list[Any]:
        try:
            return list(page.eval_on_selector_all(selector, script))
        except PlaywrightError as ex:
            raise PageError(page.url, f"extract {selector!r}: {ex}") from ex

    def fetch_series_options(self, base_url: str) -> list[tuple[str, str]]:
        url = cardlist_url(base_url)
        with self.open(url) as page:
            self.dismiss_consent(page)
            pairs = self.extract(page, SERIES_OPTION_SELECTOR, SERIES_OPTIONS_SCRIPT)
        return [(label or "", value or "") for label, value in pairs]

    def fetch_card_bundles(self, base_url: str, series_id: str) -> list[dict]:
        url = series_url(base_url, series_id)
        with self.open(url) as page:
            self.settle(page)
            self.dismiss_consent(page)
            return self.extract(page, CARD_BLOCK_SELECTOR, CARD_BLOCKS_SCRIPT)
