"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Callable
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from visualperfect.config.settings import get_settings
from visualperfect.diff.engine import VisualDiff
from visualperfect.runner.orchestrator import VisualTestOrchestrator
from visualperfect.storage.baselines import BaselineStore
from visualperfect.web.app import create_app
from visualperfect.web.dependencies import get_baseline_store, get_orchestrator

PngFactory = Callable[..., bytes]


def _make_png(
    size: tuple[int, int] = (10, 10),
    color: tuple[int, int, int] = (0, 0, 0),
    pixels: dict[tuple[int, int], tuple[int, int, int]] | None = None,
) -> bytes:
    img = Image.new("RGBA", size, color=(*color, 255))
    for xy, rgb in (pixels or {}).items():
        img.putpixel(xy, (*rgb, 255))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class FakeDriver:
    """Stands in for CaptureDriver: returns (or raises) scripted frames in order.

    The last frame repeats once the script is exhausted. ``gate`` lets a test
    hold captures open to observe locking.
    """

    def __init__(self, *frames: bytes | Exception) -> None:
        self.frames = list(frames)
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self.gate: asyncio.Event | None = None

    async def capture(self, subject: str) -> bytes:
        self.calls.append(subject)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            frame = self.frames.pop(0) if len(self.frames) > 1 else self.frames[0]
        finally:
            self.active -= 1
        if isinstance(frame, Exception):
            raise frame
        return frame


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Point every test at its own baseline directory and reset cached singletons."""
    monkeypatch.setenv("VISUAL_PERFECT_BASELINES_DIR", str(tmp_path / "baselines"))
    monkeypatch.setenv("VISUAL_PERFECT_DEBUG", "true")
    get_settings.cache_clear()
    get_baseline_store.cache_clear()
    get_orchestrator.cache_clear()
    yield
    get_settings.cache_clear()
    get_baseline_store.cache_clear()
    get_orchestrator.cache_clear()


@pytest.fixture()
def make_png() -> PngFactory:
    return _make_png


@pytest.fixture()
def store(tmp_path: Path) -> BaselineStore:
    return BaselineStore(tmp_path / "store")


@pytest.fixture()
def make_driver() -> Callable[..., FakeDriver]:
    return FakeDriver


@pytest.fixture()
def make_orchestrator(store: BaselineStore) -> Callable[[FakeDriver], VisualTestOrchestrator]:
    def _build(driver: FakeDriver, persist_diffs: bool = True) -> VisualTestOrchestrator:
        return VisualTestOrchestrator(
            driver=driver,  # type: ignore[arg-type]
            store=store,
            differ=VisualDiff(threshold=0.1),
            tolerance=0.1,
            persist_diffs=persist_diffs,
        )

    return _build


@pytest.fixture()
def app():
    """Create a fresh app instance for tests."""
    return create_app()


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
