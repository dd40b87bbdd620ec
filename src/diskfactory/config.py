# SPDX-License-Identifier: MIT
"""Configuration management for diskfactory.

This module handles:
- Logging setup
- The per-disk configuration model
- Loading the disk mapping from a JSON file or the environment

A configuration is a mapping of disk name to disk settings::

    {
        "default": {"backend_type": "local", "backend_settings": {"root": "/srv/files"},
                    "url_base": "https://files.example.com"},
        "scratch": {"backend_type": "memory", "cache_settings": {"cache_type": "memory"}}
    }

Only the presence of ``"default"`` is checked up front; each disk entry is
validated the first time that disk is selected.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
import sys
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

DEFAULT_DISK = "default"
CONFIG_ENV_VAR = "DISKFACTORY_CONFIG"
LOG_LEVEL_ENV_VAR = "DISKFACTORY_LOG_LEVEL"

logger = logging.getLogger("diskfactory")


# ---------- Logging configuration ----------
def configure_logging(level: str | int | None = None) -> None:
    """Configure root logging for applications embedding diskfactory.

    The library itself never calls this; it only logs to the
    ``"diskfactory"`` logger.

    Args:
        level: Log level; defaults to ``DISKFACTORY_LOG_LEVEL`` or ``INFO``.
    """
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV_VAR, "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ---------- Disk configuration ----------
class DiskConfig(BaseModel, frozen=True):
    """Immutable configuration of a single disk."""

    backend_type: str
    backend_settings: dict[str, Any] = Field(default_factory=dict)
    cache_settings: dict[str, Any] | None = None
    url_base: str | None = None

    @field_validator("backend_type")
    @classmethod
    def _validate_backend_type(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("backend_type must not be empty")
        return v

    @property
    def cache_type(self) -> str | None:
        """The ``cache_type`` key of ``cache_settings``, if any."""
        if not self.cache_settings:
            return None
        return self.cache_settings.get("cache_type")


def parse_disk_config(name: str, raw: Any) -> DiskConfig:
    """Validate one raw disk entry.

    Raises:
        ConfigurationError: If the entry is not a mapping, lacks ``backend_type``
            or fails validation.
    """
    if isinstance(raw, DiskConfig):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Invalid disk configuration ({name}): expected a mapping")
    try:
        return DiskConfig.model_validate(dict(raw))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid disk configuration ({name}): {e}") from e


def validate_config(config: Any) -> dict[str, Any]:
    """Check the top-level shape of a configuration and return a copy.

    Raises:
        ConfigurationError: If *config* is not a mapping or has no ``"default"`` disk.
    """
    if not isinstance(config, Mapping):
        raise ConfigurationError("Invalid filesystem configuration: expected a mapping of disk names")
    if DEFAULT_DISK not in config:
        raise ConfigurationError(f"Invalid filesystem configuration: missing {DEFAULT_DISK!r} disk")
    return dict(config)


# ---------- Loading ----------
def load_config(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Load and validate a JSON configuration file.

    Raises:
        ConfigurationError: If the file cannot be read, is not valid JSON, or
            has no ``"default"`` disk.
    """
    config_path = pathlib.Path(path).expanduser()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in configuration file {config_path}: {e}") from e
    logger.debug("Loaded filesystem configuration from %s", config_path)
    return validate_config(raw)


def load_config_from_env() -> dict[str, Any]:
    """Load the configuration file named by ``DISKFACTORY_CONFIG``.

    Raises:
        ConfigurationError: If the variable is unset or the file is invalid.
    """
    path = os.getenv(CONFIG_ENV_VAR, "").strip()
    if not path:
        raise ConfigurationError(f"{CONFIG_ENV_VAR} is not set")
    return load_config(path)
