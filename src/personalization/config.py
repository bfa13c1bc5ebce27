"""Runtime configuration for the personalization service.

Values come from environment variables so the API server and the scripts can
be pointed at different storage directories and catalog files.
"""

import os
from dataclasses import dataclass
from typing import Optional

from src.personalization.events import DEFAULT_MAX_EVENTS

ENV_PREFIX = "SHOPREC_"

DEFAULT_LOG_LEVEL = "INFO"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or value == "":
        return default
    return value


@dataclass
class EngineConfig:
    """Service-level settings that are not user-editable.

    Attributes:
        storage_dir: Directory for the file blob store; in-memory if None.
        catalog_path: CSV file with catalog products.
        orders_path: CSV file with past order line items.
        max_events: Capacity of the behavioral event log.
        log_level: Root logging level.
    """

    storage_dir: Optional[str] = None
    catalog_path: Optional[str] = None
    orders_path: Optional[str] = None
    max_events: int = DEFAULT_MAX_EVENTS
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if self.max_events <= 0:
            raise ValueError(f"max_events must be positive, got {self.max_events}")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            storage_dir=_env("STORAGE_DIR"),
            catalog_path=_env("CATALOG_PATH"),
            orders_path=_env("ORDERS_PATH"),
            max_events=int(_env("MAX_EVENTS", str(DEFAULT_MAX_EVENTS))),
            log_level=_env("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )
