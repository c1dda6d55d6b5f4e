"""Health check endpoint logic."""

from __future__ import annotations

import os

import structlog

from visualperfect.constants import VERSION
from visualperfect.web.dependencies import get_baseline_store

logger = structlog.get_logger(__name__)


async def check_health() -> dict[str, object]:
    """Return application health status with a baseline directory probe."""
    store = get_baseline_store()
    result: dict[str, object] = {
        "status": "healthy",
        "version": VERSION,
        "baselinesDir": str(store.base_dir),
    }
    if not os.access(store.base_dir, os.W_OK):
        logger.warning("health_check_store_readonly", path=str(store.base_dir))
        result["status"] = "degraded"
    return result
