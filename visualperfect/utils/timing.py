"""Stage timing for capture and compare."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = structlog.get_logger(__name__)


@contextmanager
def timed(stage: str, **fields: object) -> Iterator[dict[str, float]]:
    """Log how long the ``with`` body took as a ``stage_timed`` event.

    The yielded dict gets an ``elapsed`` key (seconds) once the body exits,
    whether or not it raised.
    """
    timing = {"elapsed": 0.0}
    started = time.perf_counter()
    try:
        yield timing
    finally:
        timing["elapsed"] = time.perf_counter() - started
        logger.debug("stage_timed", stage=stage, duration_ms=round(timing["elapsed"] * 1000, 1), **fields)
