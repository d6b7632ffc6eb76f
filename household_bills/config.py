"""
Engine Configuration (``household_bills.config``).

Responsibility
--------------
Typed, validated runtime settings for the bill engine: database URL,
generation horizon, nearby-transaction window, and logging level.  Settings
come from built-in defaults, an optional YAML file, and the
``HOUSEHOLD_BILLS_DATABASE_URL`` environment variable (highest precedence).

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Self

import yaml

from household_bills.logging_config import get_logger

logger = get_logger("config")

DATABASE_URL_ENV = "HOUSEHOLD_BILLS_DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite://"


@dataclass(frozen=True)
class EngineConfig:
    """Configuration schema for the bill engine."""

    database_url: str = DEFAULT_DATABASE_URL
    horizon_months: int = 12
    nearby_window_days: int = 7
    log_level: str = "INFO"
    echo_sql: bool = False

    def __post_init__(self):
        if self.horizon_months <= 0:
            raise ValueError("horizon_months must be positive")
        if self.nearby_window_days < 0:
            raise ValueError("nearby_window_days cannot be negative")
        if not self.database_url:
            raise ValueError("database_url is required")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}")
    return data


def load_config(path: str | Path | None = None) -> EngineConfig:
    """
    Build the active configuration.

    Precedence (lowest to highest): defaults, YAML file at ``path`` (the
    ``engine:`` section if present, else the whole document), environment.
    """
    data: dict[str, Any] = {}
    if path is not None:
        raw = load_yaml_file(Path(path))
        data.update(raw.get("engine", raw))

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        data["database_url"] = env_url

    config = EngineConfig.from_dict(data)
    logger.info("engine_config_loaded", extra={
        "source": str(path) if path is not None else "defaults",
        "horizon_months": config.horizon_months,
        "nearby_window_days": config.nearby_window_days,
    })
    return config
