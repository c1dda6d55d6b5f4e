"""Screenshot capture of a rendered subject with a single navigation retry."""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING
from urllib.parse import quote

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from visualperfect.capture.browser import BrowserSession
from visualperfect.constants import (
    CAPTURE_MAX_ATTEMPTS,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_RETRY_BACKOFF_MS,
    DEFAULT_SETTLE_DELAY_MS,
    DEFAULT_STORYBOOK_URL,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
)
from visualperfect.exceptions import CaptureFailed, NavigationError
from visualperfect.types import RETRYABLE_FAILURES, FailureKind
from visualperfect.utils.retry import retry
from visualperfect.utils.sanitize import validate_subject

if TYPE_CHECKING:
    from playwright.async_api import Page, Response

    from visualperfect.config.settings import Settings

logger = structlog.get_logger(__name__)

# Chromium network error codes -> failure kind
NET_ERROR_KINDS: dict[str, FailureKind] = {
    "ERR_CONNECTION_REFUSED": FailureKind.CONNECTION_REFUSED,
    "ERR_CONNECTION_RESET": FailureKind.CONNECTION_RESET,
    "ERR_CONNECTION_CLOSED": FailureKind.CONNECTION_RESET,
    "ERR_EMPTY_RESPONSE": FailureKind.CONNECTION_RESET,
    "ERR_CONNECTION_TIMED_OUT": FailureKind.TIMEOUT,
    "ERR_TIMED_OUT": FailureKind.TIMEOUT,
    "ERR_NAME_NOT_RESOLVED": FailureKind.NAME_NOT_RESOLVED,
    "ERR_NAME_RESOLUTION_FAILED": FailureKind.NAME_NOT_RESOLVED,
    "ERR_ADDRESS_UNREACHABLE": FailureKind.ADDRESS_UNREACHABLE,
    "ERR_INTERNET_DISCONNECTED": FailureKind.ADDRESS_UNREACHABLE,
    "ERR_ABORTED": FailureKind.ABORTED,
}

_NET_ERROR_RE = re.compile(r"net::(ERR_[A-Z_]+)")


def classify_navigation_error(error: PlaywrightError) -> FailureKind:
    """Map a Playwright navigation error to a FailureKind."""
    if isinstance(error, PlaywrightTimeoutError):
        return FailureKind.TIMEOUT
    match = _NET_ERROR_RE.search(error.message or "")
    if match:
        return NET_ERROR_KINDS.get(match.group(1), FailureKind.UNKNOWN)
    return FailureKind.UNKNOWN


def classify_response_status(status: int) -> FailureKind | None:
    """Return a failure kind for an HTTP error status, or None when it succeeded."""
    if status >= 500:
        return FailureKind.SERVER_ERROR
    if status >= 400:
        return FailureKind.CLIENT_ERROR
    return None


def is_retryable(error: Exception) -> bool:
    return isinstance(error, NavigationError) and error.kind in RETRYABLE_FAILURES


class CaptureDriver:
    """Captures a PNG screenshot of a subject rendered by Storybook.

    Each attempt owns its own browser session. A retryable navigation failure
    is retried exactly once after a fixed backoff; everything else surfaces as
    CaptureFailed.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_STORYBOOK_URL,
        headless: bool = True,
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        viewport_height: int = DEFAULT_VIEWPORT_HEIGHT,
        settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        retry_backoff_ms: int = DEFAULT_RETRY_BACKOFF_MS,
        full_page: bool = False,
        ready_selector: str | None = None,
        session_factory: Callable[[], BrowserSession] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headless = headless
        self._viewport = (viewport_width, viewport_height)
        self._settle_delay_ms = settle_delay_ms
        self._navigation_timeout_ms = navigation_timeout_ms
        self._retry_backoff_ms = retry_backoff_ms
        self._full_page = full_page
        self._ready_selector = ready_selector
        self._session_factory = session_factory or (lambda: BrowserSession(headless=self._headless))

    @classmethod
    def from_settings(cls, settings: Settings) -> CaptureDriver:
        return cls(
            base_url=settings.storybook_url,
            headless=settings.headless,
            viewport_width=settings.viewport_width,
            viewport_height=settings.viewport_height,
            settle_delay_ms=settings.settle_delay_ms,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            retry_backoff_ms=settings.retry_backoff_ms,
            full_page=settings.full_page,
            ready_selector=settings.ready_selector,
        )

    def resolve_url(self, subject: str) -> str:
        """Build the isolated story URL for a subject."""
        subject = validate_subject(subject)
        return f"{self._base_url}/iframe.html?id={quote(subject, safe='')}&viewMode=story"

    async def capture(self, subject: str) -> bytes:
        """Capture a screenshot of the subject or raise CaptureFailed."""
        url = self.resolve_url(subject)
        attempt = retry(
            max_attempts=CAPTURE_MAX_ATTEMPTS,
            delay_ms=self._retry_backoff_ms,
            backoff_factor=1.0,
            retry_if=is_retryable,
        )(self._capture_once)
        try:
            return await attempt(subject, url)
        except NavigationError as e:
            logger.error("capture_failed", subject=subject, kind=e.kind.value, error=str(e))
            raise CaptureFailed(str(e), kind=e.kind) from e
        except PlaywrightError as e:
            logger.error("capture_failed", subject=subject, kind=FailureKind.UNKNOWN.value, error=e.message)
            raise CaptureFailed(e.message, kind=FailureKind.UNKNOWN) from e

    async def _capture_once(self, subject: str, url: str) -> bytes:
        logger.info("capture_started", subject=subject, url=url)
        async with self._session_factory() as session:
            try:
                page = await session.new_page(*self._viewport)
            except PlaywrightError as e:
                msg = f"could not open page: {e.message}"
                raise NavigationError(msg, kind=FailureKind.BROWSER_LAUNCH) from e
            await self._navigate(page, url)
            await page.wait_for_timeout(self._settle_delay_ms)
            try:
                data = await page.screenshot(full_page=self._full_page, type="png")
            except PlaywrightError as e:
                msg = f"screenshot failed: {e.message}"
                raise NavigationError(msg, kind=FailureKind.SCREENSHOT) from e
        logger.info("capture_complete", subject=subject, size=len(data))
        return data

    async def _navigate(self, page: Page, url: str) -> None:
        try:
            response: Response | None = await page.goto(
                url, wait_until="networkidle", timeout=self._navigation_timeout_ms
            )
            if self._ready_selector:
                await page.wait_for_selector(
                    self._ready_selector, state="visible", timeout=self._navigation_timeout_ms
                )
        except PlaywrightError as e:
            kind = classify_navigation_error(e)
            logger.warning("navigation_failed", url=url, kind=kind.value, error=e.message)
            msg = f"navigation to {url} failed ({kind.value}): {e.message}"
            raise NavigationError(msg, kind=kind) from e

        if response is not None:
            kind = classify_response_status(response.status)
            if kind is not None:
                logger.warning("navigation_http_error", url=url, status=response.status)
                msg = f"navigation to {url} returned HTTP {response.status}"
                raise NavigationError(msg, kind=kind)
