"""Application settings via Pydantic BaseSettings."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings

from visualperfect.constants import (
    API_BASE_PATH,
    DEFAULT_BASELINES_DIR,
    DEFAULT_DIFF_TOLERANCE,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_RETRY_BACKOFF_MS,
    DEFAULT_SETTLE_DELAY_MS,
    DEFAULT_STORYBOOK_URL,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
)
from visualperfect.exceptions import ConfigError


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "VISUAL_PERFECT_"}

    # App
    debug: bool = False
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 6007
    api_base_path: str = API_BASE_PATH
    allowed_origins: list[str] = ["http://localhost:6006"]

    # Rendering target
    storybook_url: str = DEFAULT_STORYBOOK_URL

    # Baseline store
    baselines_dir: str = DEFAULT_BASELINES_DIR
    persist_diffs: bool = True

    # Capture
    headless: bool = True
    viewport_width: int = DEFAULT_VIEWPORT_WIDTH
    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT
    full_page: bool = False
    ready_selector: str | None = None
    settle_delay_ms: int = DEFAULT_SETTLE_DELAY_MS
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    retry_backoff_ms: int = DEFAULT_RETRY_BACKOFF_MS

    # Diff
    diff_tolerance: float = DEFAULT_DIFF_TOLERANCE


def validate_settings(settings: Settings) -> Settings:
    """Reject settings the engine cannot run with."""
    if not 0.0 <= settings.diff_tolerance <= 1.0:
        msg = f"DIFF_TOLERANCE must be between 0 and 1, got {settings.diff_tolerance}"
        raise ConfigError(msg)
    if settings.viewport_width <= 0 or settings.viewport_height <= 0:
        msg = "Viewport dimensions must be positive"
        raise ConfigError(msg)
    if settings.settle_delay_ms < 0 or settings.retry_backoff_ms < 0:
        msg = "Delays must not be negative"
        raise ConfigError(msg)
    if not settings.api_base_path.startswith("/"):
        msg = f"API_BASE_PATH must start with '/', got {settings.api_base_path!r}"
        raise ConfigError(msg)
    return settings


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return validate_settings(Settings())
