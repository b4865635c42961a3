"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings

DEFAULT_PALETTE: tuple[str, ...] = (
    "#CC0000",
    "#22C55E",
    "#6366F1",
    "#FF8C00",
    "#F59E0B",
    "#EC4899",
    "#06B6D4",
    "#8B5CF6",
    "#EF4444",
    "#14B8A6",
)


class Settings(BaseSettings):
    app_name: str = "queue-timeline"
    debug: bool = False
    log_level: str = "INFO"

    # Venue clock: minute-of-day windows are evaluated in this zone
    venue_timezone: str = "UTC"

    # One operating session, used when a query names only a day
    session_start_hour: int = 17
    session_end_hour: int = 0

    # Live dashboard window
    default_from_time: str = "00:00"
    default_to_time: str = "23:59"

    # Presentation hints carried on the views
    series_palette: list[str] = list(DEFAULT_PALETTE)
    name_fallback_length: int = 8

    model_config = {"env_prefix": "QUEUE_"}


settings = Settings()
