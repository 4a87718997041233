"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from protein_floor_tracker.domain.state import SNAPSHOT_KEEP
from protein_floor_tracker.services.store import StoreKeys

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    data_dir: Path = Path.home() / ".protein_floor_tracker"
    primary_key: str = "protein_floor_tracker_v4"
    mirror_key: str = "protein_floor_tracker_v4__backup"
    snapshots_key: str = "protein_floor_tracker_v4__snapshots"
    snapshot_keep: int = SNAPSHOT_KEEP
    off_base_url: str = "https://world.openfoodfacts.org"
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    lookup_timeout_seconds: float = 15
    timezone: str = "UTC"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="PFT_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def store_keys(self) -> StoreKeys:
        """Return the storage key names as a single value."""
        return StoreKeys(
            primary=self.primary_key,
            mirror=self.mirror_key,
            snapshots=self.snapshots_key,
        )
