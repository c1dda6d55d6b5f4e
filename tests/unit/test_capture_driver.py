from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from visualperfect.capture.driver import (
    CaptureDriver,
    classify_navigation_error,
    classify_response_status,
)
from visualperfect.exceptions import CaptureFailed, InvalidSubject, NavigationError
from visualperfect.types import FailureKind


class FakeSession:
    def __init__(self, page: AsyncMock) -> None:
        self.page = page
        self.closed = False
        self.viewport: tuple[int, int] | None = None

    async def __aenter__(self) -> FakeSession:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closed = True

    async def new_page(self, width: int, height: int) -> AsyncMock:
        self.viewport = (width, height)
        return self.page


def _ok_response(status: int = 200) -> MagicMock:
    return MagicMock(status=status)


@pytest.fixture()
def page() -> AsyncMock:
    page = AsyncMock()
    page.goto = AsyncMock(return_value=_ok_response())
    page.screenshot = AsyncMock(return_value=b"\x89PNG screenshot")
    return page


@pytest.fixture()
def sessions() -> list[FakeSession]:
    return []


@pytest.fixture()
def driver(page: AsyncMock, sessions: list[FakeSession]) -> CaptureDriver:
    def _factory() -> FakeSession:
        session = FakeSession(page)
        sessions.append(session)
        return session

    return CaptureDriver(
        base_url="http://localhost:6006/",
        settle_delay_ms=500,
        retry_backoff_ms=0,
        viewport_width=800,
        viewport_height=600,
        session_factory=_factory,  # type: ignore[arg-type]
    )


@pytest.mark.unit
class TestCaptureDriver:
    def test_resolve_url_is_deterministic(self, driver: CaptureDriver) -> None:
        url = driver.resolve_url("example-button--primary")
        assert url == "http://localhost:6006/iframe.html?id=example-button--primary&viewMode=story"
        assert driver.resolve_url("example-button--primary") == url

    def test_resolve_url_rejects_unsafe_subject(self, driver: CaptureDriver) -> None:
        with pytest.raises(InvalidSubject):
            driver.resolve_url("../secrets")

    @pytest.mark.asyncio
    async def test_capture_waits_then_screenshots(
        self, driver: CaptureDriver, page: AsyncMock, sessions: list[FakeSession]
    ) -> None:
        data = await driver.capture("button--primary")

        assert data == b"\x89PNG screenshot"
        assert page.goto.call_args.kwargs["wait_until"] == "networkidle"
        page.wait_for_timeout.assert_awaited_once_with(500)
        page.screenshot.assert_awaited_once_with(full_page=False, type="png")
        assert len(sessions) == 1
        assert sessions[0].closed is True
        assert sessions[0].viewport == (800, 600)

    @pytest.mark.asyncio
    async def test_timeout_is_retried_once(
        self, driver: CaptureDriver, page: AsyncMock, sessions: list[FakeSession]
    ) -> None:
        page.goto.side_effect = [PlaywrightTimeoutError("Timeout 30000ms exceeded"), _ok_response()]

        data = await driver.capture("button--primary")

        assert data == b"\x89PNG screenshot"
        assert page.goto.await_count == 2
        assert len(sessions) == 2
        assert all(s.closed for s in sessions)

    @pytest.mark.asyncio
    async def test_second_failure_is_terminal(
        self, driver: CaptureDriver, page: AsyncMock, sessions: list[FakeSession]
    ) -> None:
        page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_REFUSED at http://localhost:6006/")

        with pytest.raises(CaptureFailed) as exc_info:
            await driver.capture("button--primary")

        assert exc_info.value.kind == FailureKind.CONNECTION_REFUSED
        assert page.goto.await_count == 2
        assert all(s.closed for s in sessions)

    @pytest.mark.asyncio
    async def test_non_retryable_navigation_failure(self, driver: CaptureDriver, page: AsyncMock) -> None:
        page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED at http://nope/")

        with pytest.raises(CaptureFailed) as exc_info:
            await driver.capture("button--primary")

        assert exc_info.value.kind == FailureKind.NAME_NOT_RESOLVED
        assert page.goto.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, driver: CaptureDriver, page: AsyncMock) -> None:
        page.goto.side_effect = [_ok_response(503), _ok_response(200)]
        assert await driver.capture("button--primary") == b"\x89PNG screenshot"
        assert page.goto.await_count == 2

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, driver: CaptureDriver, page: AsyncMock) -> None:
        page.goto.return_value = _ok_response(404)
        with pytest.raises(CaptureFailed) as exc_info:
            await driver.capture("button--primary")
        assert exc_info.value.kind == FailureKind.CLIENT_ERROR
        assert page.goto.await_count == 1

    @pytest.mark.asyncio
    async def test_screenshot_failure_is_terminal(
        self, driver: CaptureDriver, page: AsyncMock, sessions: list[FakeSession]
    ) -> None:
        page.screenshot.side_effect = PlaywrightError("Target closed")
        with pytest.raises(CaptureFailed) as exc_info:
            await driver.capture("button--primary")
        assert exc_info.value.kind == FailureKind.SCREENSHOT
        assert len(sessions) == 1
        assert sessions[0].closed is True

    @pytest.mark.asyncio
    async def test_ready_selector_is_awaited(self, page: AsyncMock) -> None:
        driver = CaptureDriver(
            ready_selector="#storybook-root > *",
            session_factory=lambda: FakeSession(page),  # type: ignore[arg-type, return-value]
        )
        await driver.capture("button--primary")
        assert page.wait_for_selector.call_args.args == ("#storybook-root > *",)


@pytest.mark.unit
class TestFailureClassification:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (PlaywrightTimeoutError("Timeout 30000ms exceeded."), FailureKind.TIMEOUT),
            (PlaywrightError("page.goto: net::ERR_CONNECTION_REFUSED at http://x/"), FailureKind.CONNECTION_REFUSED),
            (PlaywrightError("page.goto: net::ERR_CONNECTION_RESET"), FailureKind.CONNECTION_RESET),
            (PlaywrightError("page.goto: net::ERR_NAME_NOT_RESOLVED"), FailureKind.NAME_NOT_RESOLVED),
            (PlaywrightError("page.goto: net::ERR_ABORTED"), FailureKind.ABORTED),
            (PlaywrightError("page.goto: net::ERR_SOMETHING_NEW"), FailureKind.UNKNOWN),
            (PlaywrightError("Navigation failed because page crashed!"), FailureKind.UNKNOWN),
        ],
    )
    def test_classify_navigation_error(self, error: PlaywrightError, kind: FailureKind) -> None:
        assert classify_navigation_error(error) == kind

    def test_classify_response_status(self) -> None:
        assert classify_response_status(200) is None
        assert classify_response_status(304) is None
        assert classify_response_status(404) == FailureKind.CLIENT_ERROR
        assert classify_response_status(502) == FailureKind.SERVER_ERROR

    def test_navigation_error_carries_kind(self) -> None:
        err = NavigationError("boom", kind=FailureKind.TIMEOUT)
        assert err.kind == FailureKind.TIMEOUT
        assert str(err) == "boom"
