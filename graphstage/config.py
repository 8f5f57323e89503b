"""
Runtime settings for graphstage.

Settings are read from the environment (optionally seeded from a ``.env``
file) and handed to the data context. Only ambient behaviour is configurable;
the tracking rules themselves are fixed.
"""
import os
import logging
from typing import Any, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


class ContextSettings(BaseModel):
    """Settings shared by the discoverer, the walker and the data context."""
    log_level: Optional[str] = Field(default=None, description="Level for graphstage loggers; None leaves them alone")
    discover_properties: bool = Field(
        default=True, description="Inspect public properties that have a setter"
    )
    log_cycles: bool = Field(default=True, description="Report reference cycles found while walking")

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        level = str(value).strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @classmethod
    def from_env(cls) -> "ContextSettings":
        """Build settings from GRAPHSTAGE_* environment variables."""
        load_dotenv()
        return cls(
            log_level=os.getenv("GRAPHSTAGE_LOG_LEVEL") or None,
            discover_properties=_env_flag("GRAPHSTAGE_DISCOVER_PROPERTIES", True),
            log_cycles=_env_flag("GRAPHSTAGE_LOG_CYCLES", True),
        )


LOGGER_NAMES = ("InMemoryDataContext", "EntityGraph", "RelationshipDiscoverer")


def configure_logging(settings: ContextSettings, handler: Union[logging.Handler, None] = None) -> None:
    """
    Attach a formatted handler to every graphstage logger and apply the level.

    Calling this twice with the same handler does not duplicate output.
    """
    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        if handler not in logger.handlers:
            logger.addHandler(handler)
        logger.setLevel(settings.log_level or "WARNING")
