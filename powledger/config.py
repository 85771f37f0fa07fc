"""
Ledger Configuration

One settings model covers every tunable of a node. Values come from, in
increasing priority:
1. Field defaults
2. Environment variables prefixed ``POWLEDGER_`` (e.g. ``POWLEDGER_DIFFICULTY``)
3. A YAML file (``config/default.yaml`` is the sample)
4. Explicit overrides (command-line flags)

Validation failures are reported as ConfigError.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from .blockchain.ledger import DEFAULT_DIFFICULTY
from .exceptions import ConfigError
from .integration.flush_scheduler import (
    DEFAULT_FLUSH_BACKOFF,
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_FLUSH_RETRIES,
)


DEFAULT_STORAGE_PATH = Path("./blocks")


class LedgerConfig(BaseSettings):
    """Settings for a ledger node."""

    difficulty: int = Field(default=DEFAULT_DIFFICULTY, ge=1, le=256)
    flush_interval: float = Field(default=DEFAULT_FLUSH_INTERVAL, gt=0)
    storage_path: Path = DEFAULT_STORAGE_PATH
    workers: Optional[int] = Field(default=None, ge=1)
    flush_retries: int = Field(default=DEFAULT_FLUSH_RETRIES, ge=0)
    flush_backoff: float = Field(default=DEFAULT_FLUSH_BACKOFF, ge=0)
    drain_pending: bool = False
    strict_links: bool = False
    log_level: str = "INFO"

    model_config = {"env_prefix": "POWLEDGER_"}

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> 'LedgerConfig':
        """
        Build a config from an optional YAML file plus explicit overrides.

        Overrides whose value is None are ignored.

        Raises:
            ConfigError: If the file is unusable or a value is invalid
        """
        raw = _read_yaml(Path(path)) if path is not None else {}
        for key, value in (overrides or {}).items():
            if value is not None:
                raw[key] = value
        try:
            return cls(**raw)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'LedgerConfig':
        """
        Load settings from a YAML mapping.

        Raises:
            ConfigError: If the file is missing, unparsable, not a mapping,
                or holds invalid values
        """
        return cls.load(path)


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return raw
