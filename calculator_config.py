"""Calculator configuration."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from dose_table import DoseTable, get_preset, load_dose_table


class Settings(BaseSettings):
    """Settings loaded from SLIDING_SCALE_* environment variables or a .env file."""

    dose_preset: str = "six_bucket"
    dose_table_file: Optional[Path] = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SLIDING_SCALE_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_configured_table(settings: Settings) -> DoseTable:
    """A table file, when configured, takes precedence over the named preset."""
    if settings.dose_table_file is not None:
        return load_dose_table(settings.dose_table_file)
    return get_preset(settings.dose_preset)
