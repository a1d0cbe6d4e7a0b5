"""Configuration management for CareMatch."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

# Default paths
DATA_DIR = Path(__file__).parent.parent / "data"
DEFAULT_CONFIG_PATH = DATA_DIR / "settings.yaml"
DEFAULT_DB_PATH = DATA_DIR / "carematch.db"
LOG_PATH = DATA_DIR / "carematch.log"


class Settings(BaseModel):
    """Tunable thresholds and service settings."""

    fuzzy_threshold: float = Field(0.90, ge=0.0, le=1.0, description="Minimum similarity for a fuzzy match")
    ai_confidence_floor: float = Field(
        0.5, ge=0.0, le=1.0, description="Minimum semantic-match confidence to accept"
    )
    ai_confidence_cap: float = Field(
        0.7, ge=0.0, le=1.0, description="Maximum confidence stored for a semantic match"
    )
    semantic_timeout_seconds: float = Field(20.0, gt=0, description="Per-call timeout for the semantic service")
    openai_model: str = Field("gpt-4o-mini", description="Model used for semantic matching")
    database_path: Optional[Path] = Field(None, description="SQLite database path")

    @property
    def db_path(self) -> Path:
        return self.database_path or DEFAULT_DB_PATH


def ensure_data_dir() -> None:
    """Ensure the data directory exists."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from a YAML file.

    Args:
        path: Optional path to the settings file. Defaults to data/settings.yaml.

    Returns:
        Settings instance. Returns defaults if the file doesn't exist or is empty.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    if not path.exists():
        return Settings()

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return Settings()

    return Settings.model_validate(data)


def save_settings(settings: Settings, path: Optional[Path] = None) -> Path:
    """Save settings to a YAML file.

    Args:
        settings: Settings instance to save.
        path: Optional path to save to. Defaults to data/settings.yaml.

    Returns:
        Path where settings were saved.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    path.parent.mkdir(parents=True, exist_ok=True)

    data = settings.model_dump(mode="json", exclude_none=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    return path
