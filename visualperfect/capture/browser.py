"""Playwright browser session scoped to a single capture."""

from __future__ import annotations

from types import TracebackType
from typing import Any

import structlog
from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from visualperfect.constants import DEFAULT_VIEWPORT_HEIGHT, DEFAULT_VIEWPORT_WIDTH
from visualperfect.exceptions import NavigationError
from visualperfect.types import FailureKind

logger = structlog.get_logger(__name__)


class BrowserSession:
    """Owns one Playwright + Chromium instance for the duration of an ``async with``.

    Nothing is shared between sessions; the browser is closed on every exit
    path, including when the body raises.
    """

    def __init__(self, headless: bool = True) -> None:
        self._headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> BrowserSession:
        await self.launch()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def launch(self) -> None:
        """Launch the browser."""
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self._headless)
        except PlaywrightError as e:
            await self.close()
            msg = f"browser launch failed: {e.message}"
            raise NavigationError(msg, kind=FailureKind.BROWSER_LAUNCH) from e
        logger.debug("browser_launched", headless=self._headless)

    async def new_page(
        self,
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: int = DEFAULT_VIEWPORT_HEIGHT,
    ) -> Page:
        """Open a page in a fresh, isolated context."""
        if not self._browser:
            raise RuntimeError("Browser not launched. Call launch() first.")

        kwargs: dict[str, Any] = {
            "viewport": {"width": viewport_width, "height": viewport_height},
            "device_scale_factor": 1,
        }
        context = await self._browser.new_context(**kwargs)
        return await context.new_page()

    async def close(self) -> None:
        """Close browser and playwright."""
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        try:
            if browser:
                await browser.close()
        finally:
            if playwright:
                await playwright.stop()
                logger.debug("browser_closed")
