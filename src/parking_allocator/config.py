"""Configuration models and loading utilities."""

import os
from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator


class LotConfig(BaseModel):
    """Physical lot layout."""

    spot_ids: list[int] = [1, 2, 3]

    @field_validator("spot_ids")
    @classmethod
    def require_spots(cls, v: list[int]) -> list[int]:
        """A lot needs at least one spot and ids must be unique."""
        if not v:
            raise ValueError("at least one spot id is required")
        if len(set(v)) != len(v):
            raise ValueError("spot ids must be unique")
        return v


class BillingConfig(BaseModel):
    """Default fee schedule and billing rule parameters."""

    default_base: Decimal = Decimal("5.00")
    default_per_minute: Decimal = Decimal("0.10")
    included_minutes: int = 60  # Minutes covered by the base cost

    @field_validator("default_base", "default_per_minute", "included_minutes")
    @classmethod
    def require_non_negative(cls, v):
        """Rates and included minutes can not be negative."""
        if v < 0:
            raise ValueError("must not be negative")
        return v


class StoreConfig(BaseModel):
    """Persistence collaborator configuration."""

    retry_attempts: int = 1  # Retries after a transient fault (max 1)


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    history_limit: int = 50  # Default page size for /history


class AppConfig(BaseModel):
    """Main application configuration."""

    lot: LotConfig = LotConfig()
    billing: BillingConfig = BillingConfig()
    store: StoreConfig = StoreConfig()
    api: APIConfig = APIConfig()


def load_config(path: str | Path) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: Path to the configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    return AppConfig(**data)


def get_config_path() -> Path:
    """Get the default configuration file path."""
    # Explicit override first
    env_config = os.environ.get("PARKING_CONFIG")
    if env_config:
        return Path(env_config)

    local_config = Path("config/config.yaml")
    if local_config.exists():
        return local_config

    # Check for config in parent directory (for Docker)
    parent_config = Path("/app/config/config.yaml")
    if parent_config.exists():
        return parent_config

    return local_config  # Return default even if doesn't exist
