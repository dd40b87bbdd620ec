# SPDX-License-Identifier: MIT
"""In-process metadata cache for any backend.

:class:`MemoryCache` wraps a backend and memoises the read-only metadata
capabilities with :func:`async_lru.alru_cache`.  Any mutation made through
the wrapper clears every cache, so the wrapper never serves stale
metadata for changes it has seen.  Changes made behind its back (another
process writing to the same bucket) are only picked up after ``ttl``.

File contents are never cached.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar

from async_lru import alru_cache

from ..backends.protocol import Backend, Entry, Metadata, Visibility

T = TypeVar("T")

_CACHED = ("has", "get_metadata", "get_mimetype", "get_size", "get_timestamp", "get_visibility", "list_contents")


class MemoryCache:
    """Caching wrapper satisfying :class:`~diskfactory.backends.protocol.Backend`.

    Args:
        backend: The backend (or another wrapper) to decorate.
        maxsize: Entries kept per cached capability; ``None`` for unbounded.
        ttl: Seconds before a cached entry expires; ``None`` keeps entries
            until the next mutation.
    """

    def __init__(self, backend: Backend, maxsize: int | None = 256, ttl: float | None = None) -> None:
        self._backend = backend
        cache = alru_cache(maxsize=maxsize, ttl=ttl)
        self._cached: dict[str, Any] = {name: cache(getattr(backend, name)) for name in _CACHED}

    @property
    def backend(self) -> Backend:
        return self._backend

    def cache_clear(self) -> None:
        for cached in self._cached.values():
            cached.cache_clear()

    def cache_info(self) -> dict[str, Any]:
        """Return hit/miss statistics per cached capability."""
        return {name: cached.cache_info() for name, cached in self._cached.items()}

    async def _mutate(self, call: Callable[..., Awaitable[T]], *args: Any) -> T:
        try:
            return await call(*args)
        finally:
            self.cache_clear()

    async def aclose(self) -> None:
        self.cache_clear()
        close = getattr(self._backend, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # Pass-through (mutating)
    # ------------------------------------------------------------------

    async def write(self, path: str, contents: bytes, visibility: Visibility) -> bool:
        return await self._mutate(self._backend.write, path, contents, visibility)

    async def write_stream(self, path: str, chunks: AsyncIterator[bytes], visibility: Visibility) -> bool:
        return await self._mutate(self._backend.write_stream, path, chunks, visibility)

    async def delete(self, path: str) -> bool:
        return await self._mutate(self._backend.delete, path)

    async def rename(self, source: str, destination: str) -> bool:
        return await self._mutate(self._backend.rename, source, destination)

    async def copy(self, source: str, destination: str) -> bool:
        return await self._mutate(self._backend.copy, source, destination)

    async def create_dir(self, path: str, visibility: Visibility) -> bool:
        return await self._mutate(self._backend.create_dir, path, visibility)

    async def delete_dir(self, path: str) -> bool:
        return await self._mutate(self._backend.delete_dir, path)

    async def set_visibility(self, path: str, visibility: Visibility) -> bool:
        return await self._mutate(self._backend.set_visibility, path, visibility)

    # ------------------------------------------------------------------
    # Pass-through (contents, never cached)
    # ------------------------------------------------------------------

    async def read(self, path: str) -> bytes | None:
        return await self._backend.read(path)

    async def read_stream(self, path: str) -> AsyncIterator[bytes] | None:
        return await self._backend.read_stream(path)

    # ------------------------------------------------------------------
    # Cached
    # ------------------------------------------------------------------

    async def has(self, path: str) -> bool:
        return await self._cached["has"](path)

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        return list(await self._cached["list_contents"](path, recursive))

    async def get_metadata(self, path: str) -> Metadata | None:
        return await self._cached["get_metadata"](path)

    async def get_mimetype(self, path: str) -> str | None:
        return await self._cached["get_mimetype"](path)

    async def get_size(self, path: str) -> int | None:
        return await self._cached["get_size"](path)

    async def get_timestamp(self, path: str) -> int | None:
        return await self._cached["get_timestamp"](path)

    async def get_visibility(self, path: str) -> Visibility:
        return await self._cached["get_visibility"](path)
