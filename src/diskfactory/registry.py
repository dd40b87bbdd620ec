# SPDX-License-Identifier: MIT
"""Disk registry: lazily built backends by name plus the current-disk cursor.

The cursor starts on ``"default"``.  Selecting another disk moves it for
one operation only: :meth:`DiskRegistry.resolve_current` hands out the
selected backend and puts the cursor back on ``"default"``.  Selecting with
``pin=True`` turns that revert off for the rest of the registry's life.

A registry is not safe to share between concurrently running tasks or
threads: selecting and resolving are two separate steps.  Use one registry
per task, or address disks explicitly via :meth:`DiskRegistry.get`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .backends.factory import BackendFactory, backend_factory
from .backends.protocol import Backend
from .cache.factory import CacheFactory, cache_factory
from .config import DEFAULT_DISK, DiskConfig, parse_disk_config, validate_config
from .exceptions import ConfigurationError, DiskError

logger = logging.getLogger("diskfactory")


class DiskRegistry:
    """Registry that lazily creates and caches backends by disk name.

    Args:
        config: Mapping of disk name to disk settings; must contain ``"default"``.
        backends: Backend factory used to construct disks.
        caches: Cache factory used to decorate disks that configure a cache.

    Raises:
        ConfigurationError: If *config* has no ``"default"`` disk.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        backends: BackendFactory = backend_factory,
        caches: CacheFactory = cache_factory,
    ) -> None:
        self._config = validate_config(config)
        self._backends = backends
        self._caches = caches
        self._disks: dict[str, Backend] = {}
        self._disk_configs: dict[str, DiskConfig] = {}
        self._current = DEFAULT_DISK
        self._revert_after_use = True

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def default_name(self) -> str:
        return DEFAULT_DISK

    @property
    def configured_names(self) -> list[str]:
        return list(self._config)

    @property
    def revert_after_use(self) -> bool:
        return self._revert_after_use

    def current_name(self) -> str:
        """Name the next cursor-based operation will use (no side effects)."""
        return self._current

    def names(self) -> list[str]:
        """Names of disks constructed so far, in construction order."""
        return list(self._disks)

    def is_constructed(self, name: str) -> bool:
        return name in self._disks

    def config_for(self, name: str) -> DiskConfig:
        """Validated configuration of *name*.

        Raises:
            ConfigurationError: If *name* is not configured or its entry is invalid.
        """
        if name in self._disk_configs:
            return self._disk_configs[name]
        if name not in self._config:
            raise ConfigurationError(f"Invalid disk configuration ({name}): disk is not configured")
        disk_config = parse_disk_config(name, self._config[name])
        self._disk_configs[name] = disk_config
        return disk_config

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, name: str, pin: bool = False) -> None:
        """Make *name* the current disk, constructing it on first use.

        Args:
            name: Configured disk name.
            pin: Keep *name* current after operations instead of reverting
                to ``"default"``.

        Raises:
            ConfigurationError: If *name* is not configured or lacks ``backend_type``.
            DiskError: If the backend type is unknown or construction fails.
        """
        self.get(name)
        self._current = name
        if pin:
            self._revert_after_use = False
        logger.debug("Selected disk %r (pinned=%s)", name, not self._revert_after_use)

    def resolve_current(self) -> tuple[str, Backend]:
        """Return ``(name, backend)`` for the current disk, then apply revert-after-use.

        The revert only affects the next call; the returned backend is the
        one selected before it.
        """
        name = self._current
        backend = self.get(name)
        if self._revert_after_use:
            self._current = DEFAULT_DISK
        return name, backend

    def get(self, name: str) -> Backend:
        """Return the backend for *name*, creating it on first access, without moving the cursor."""
        if name in self._disks:
            return self._disks[name]
        backend = self._construct(name)
        self._disks[name] = backend
        return backend

    def _construct(self, name: str) -> Backend:
        disk_config = self.config_for(name)
        if not self._backends.is_registered(disk_config.backend_type):
            raise DiskError(f"Disk adapter does not exist ({disk_config.backend_type})")

        try:
            backend = self._backends.construct(disk_config.backend_type, disk_config.backend_settings)
            cache_type = disk_config.cache_type
            if cache_type is not None and self._caches.is_registered(cache_type):
                backend = self._caches.decorate(cache_type, disk_config.cache_settings or {}, backend)
            elif disk_config.cache_settings is not None:
                logger.warning("Disk %r: cache type %r is not registered; using it uncached", name, cache_type)
        except Exception as e:
            raise DiskError(f"Unable to create disk {name!r}: {e}") from e

        logger.debug("Constructed disk %r (backend=%s)", name, disk_config.backend_type)
        return backend

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        """Release resources held by constructed backends."""
        for name, backend in self._disks.items():
            close = getattr(backend, "aclose", None)
            if close is not None:
                await close()
                logger.debug("Closed disk %r", name)
        self._disks.clear()
