"""Environment driven configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List


class Settings:
    """Settings for the API, the CLI and the storage layer."""

    def __init__(self) -> None:
        data_dir = os.environ.get("NUTRITION_TRACKER_DATA_DIR")
        self.data_dir: Path = (
            Path(data_dir).expanduser() if data_dir else Path.home() / ".nutrition_tracker"
        )
        self.session_ttl_hours: float = float(
            os.environ.get("NUTRITION_TRACKER_SESSION_TTL_HOURS") or "24"
        )
        self.log_level: str = (os.environ.get("NUTRITION_TRACKER_LOG_LEVEL") or "WARNING").upper()

        cors = os.environ.get("NUTRITION_TRACKER_CORS_ORIGINS", "*")
        if cors.strip() == "*":
            self.cors_origins: List[str] = ["*"]
        else:
            self.cors_origins = [origin.strip() for origin in cors.split(",") if origin.strip()]

    @property
    def food_items_path(self) -> Path:
        return self.data_dir / "food_items.json"

    @property
    def food_entries_path(self) -> Path:
        return self.data_dir / "food_entries.json"

    @property
    def users_path(self) -> Path:
        return self.data_dir / "users.json"


def load_settings() -> Settings:
    """Build settings from the current environment."""

    return Settings()
