"""
Production Kernel Configuration.

Defines runtime settings for the ledger: where the database lives, how
hard to retry on a version conflict, and the input ranges accepted when
orders are placed.  Values come from defaults, a YAML file, or a dict;
``PRODUCTION_KERNEL_DATABASE_URL`` overrides the database URL.

Example ``ledger.yaml``::

    database_url: postgresql://prod:secret@db/production
    max_conflict_retries: 5
    retry_backoff_seconds: 0.02
    log_level: DEBUG
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Self

import yaml

from production_kernel.logging_config import get_logger

logger = get_logger("config")

DATABASE_URL_ENV = "PRODUCTION_KERNEL_DATABASE_URL"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass
class LedgerConfig:
    """
    Configuration schema for the production kernel.

    Override at instantiation or load from YAML:

        config = LedgerConfig(max_conflict_retries=5)
        config = load_config(Path("ledger.yaml"))
    """

    database_url: str = "sqlite:///production_kernel.db"
    echo_sql: bool = False

    # Optimistic concurrency
    max_conflict_retries: int = 3
    retry_backoff_seconds: float = 0.01

    # Order intake
    max_planned_quantity: int = 100_000

    # Progress display
    progress_decimal_places: int = 2

    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries must be >= 0")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0")
        if self.max_planned_quantity < 1:
            raise ValueError("max_planned_quantity must be >= 1")
        if not 0 <= self.progress_decimal_places <= 4:
            raise ValueError("progress_decimal_places must be between 0 and 4")
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level}")

        logger.info(
            "ledger_config_initialized",
            extra={
                "max_conflict_retries": self.max_conflict_retries,
                "retry_backoff_seconds": self.retry_backoff_seconds,
                "max_planned_quantity": self.max_planned_quantity,
                "progress_decimal_places": self.progress_decimal_places,
                "log_level": self.log_level,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Defaults, with the database URL taken from the environment when set."""
        env_url = os.environ.get(DATABASE_URL_ENV)
        if env_url:
            return cls(database_url=env_url)
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dictionary; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        logger.info(
            "ledger_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        values = dict(data)
        env_url = os.environ.get(DATABASE_URL_ENV)
        if env_url:
            values["database_url"] = env_url
        return cls(**values)


def load_config(path: Path | str) -> LedgerConfig:
    """
    Load a LedgerConfig from a YAML file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: on unknown keys, a non-mapping document, or invalid values.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return LedgerConfig.from_dict(data)
