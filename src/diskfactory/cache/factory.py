# SPDX-License-Identifier: MIT
"""Cache decorator factory.

Maps a configuration-supplied ``cache_type`` to a constructor that wraps a
backend.  Wrapping is composition only: the result satisfies the same
:class:`~diskfactory.backends.protocol.Backend` protocol as its input.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from ..backends.factory import ConstructorTable
from ..backends.protocol import Backend
from .memory import MemoryCache

CacheConstructor = Callable[[Mapping[str, Any], Backend], Backend]


class CacheFactory(ConstructorTable[CacheConstructor]):
    """Registry of cache decorator constructors."""

    def __init__(self) -> None:
        super().__init__("cache")

    def decorate(self, cache_type: str, settings: Mapping[str, Any], backend: Backend) -> Backend:
        """Validate *settings* and wrap *backend* with a cache of *cache_type*."""
        constructor = self._resolve(cache_type, settings)
        return constructor(settings, backend)


cache_factory = CacheFactory()
"""Default factory with the built-in ``memory`` cache type."""


@cache_factory.register("memory")
def _create_memory_cache(settings: Mapping[str, Any], backend: Backend) -> Backend:
    return MemoryCache(backend, maxsize=settings.get("maxsize", 256), ttl=settings.get("ttl"))
