"""FastAPI dependency injection and shared state."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import structlog

from visualperfect.capture.driver import CaptureDriver
from visualperfect.config.settings import get_settings
from visualperfect.diff.engine import VisualDiff
from visualperfect.runner.orchestrator import VisualTestOrchestrator
from visualperfect.storage.baselines import BaselineStore

logger = structlog.get_logger(__name__)


@lru_cache
def get_baseline_store() -> BaselineStore:
    """Return the process-wide baseline store."""
    settings = get_settings()
    store = BaselineStore(Path(settings.baselines_dir))
    logger.info("baselines_directory", path=str(store.base_dir))
    return store


@lru_cache
def get_orchestrator() -> VisualTestOrchestrator:
    """Return the process-wide orchestrator so per-subject locks are shared."""
    settings = get_settings()
    return VisualTestOrchestrator(
        driver=CaptureDriver.from_settings(settings),
        store=get_baseline_store(),
        differ=VisualDiff(threshold=settings.diff_tolerance),
        tolerance=settings.diff_tolerance,
        persist_diffs=settings.persist_diffs,
    )
