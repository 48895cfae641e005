"""Headless-browser extraction of the resort pages' embedded status objects.

Resort pages publish their data on a page-global ``FR`` object once their
scripts have run. The extractor loads the page, waits (bounded) for the
object to appear and hands back a plain JSON-compatible dict, or None when the
object never shows up.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .logging import get_logger

logger = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]

TERRAIN_READY = "() => typeof FR !== 'undefined' && !!FR.TerrainStatusFeed"
TERRAIN_EXTRACT = "() => (typeof FR !== 'undefined' && FR.TerrainStatusFeed) ? FR.TerrainStatusFeed : null"

SNOW_READY = "() => typeof FR !== 'undefined' && !!FR.snowReportData"
SNOW_EXTRACT = """() => {
    if (typeof FR !== 'undefined' && FR.snowReportData) {
        return { snowReport: FR.snowReportData, forecasts: FR.forecasts || null };
    }
    return null;
}"""


class ExtractionError(RuntimeError):
    """The browser could not be started or the page could not be evaluated."""


class StatusExtractor(Protocol):
    async def fetch_terrain(self, url: str) -> Optional[Dict[str, Any]]:
        ...

    async def fetch_snow(self, url: str) -> Optional[Dict[str, Any]]:
        ...


class BrowserExtractor:
    """Loads resort pages in headless Chromium and reads their ``FR`` globals."""

    def __init__(
        self,
        headless: bool = True,
        navigation_timeout_ms: int = 60000,
        ready_timeout_ms: int = 45000,
        settle_ms: int = 3000,
    ) -> None:
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.ready_timeout_ms = ready_timeout_ms
        self.settle_ms = settle_ms

    async def fetch_terrain(self, url: str) -> Optional[Dict[str, Any]]:
        return await self._extract(url, TERRAIN_READY, TERRAIN_EXTRACT, kind="terrain")

    async def fetch_snow(self, url: str) -> Optional[Dict[str, Any]]:
        return await self._extract(url, SNOW_READY, SNOW_EXTRACT, kind="snow")

    async def _extract(self, url: str, ready: str, extract: str, *, kind: str) -> Optional[Dict[str, Any]]:
        log = logger.bind(url=url, kind=kind)
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
                try:
                    context = await browser.new_context(user_agent=USER_AGENT)
                    page = await context.new_page()

                    log.debug("extract.navigate", timeout_ms=self.navigation_timeout_ms)
                    try:
                        await page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
                    except PlaywrightTimeoutError as exc:
                        # Vendor pages often keep polling; the data may still be there.
                        log.warning("extract.navigation_slow", error=str(exc))

                    await asyncio.sleep(self.settle_ms / 1000)

                    try:
                        await page.wait_for_function(ready, timeout=self.ready_timeout_ms)
                    except PlaywrightTimeoutError:
                        log.warning("extract.data_not_found")

                    data = await page.evaluate(extract)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            log.error("extract.failure", error=str(exc))
            raise ExtractionError(f"Failed to extract {kind} data from {url}: {exc}") from exc

        if not isinstance(data, dict):
            log.warning("extract.empty")
            return None
        log.info("extract.success")
        return data
