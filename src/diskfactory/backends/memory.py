# SPDX-License-Identifier: MIT
"""In-memory storage backend.

Keeps file contents, visibility and timestamps in plain dicts.  Useful for
tests and for scratch disks that should never touch real storage.
"""

from __future__ import annotations

import mimetypes
import posixpath
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from .protocol import Entry, Metadata, Visibility, normalize_path


@dataclass
class _StoredFile:
    contents: bytes
    visibility: Visibility
    timestamp: int = field(default_factory=lambda: int(time.time()))


class MemoryBackend:
    """Dict-backed storage with explicit directory tracking."""

    def __init__(self) -> None:
        self._files: dict[str, _StoredFile] = {}
        self._dirs: dict[str, Visibility] = {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_parents(self, path: str, visibility: Visibility) -> None:
        parent = posixpath.dirname(path)
        while parent:
            self._dirs.setdefault(parent, visibility)
            parent = posixpath.dirname(parent)

    def _is_dir(self, path: str) -> bool:
        if not path:
            return True
        prefix = path + "/"
        return path in self._dirs or any(p.startswith(prefix) for p in self._files)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write(self, path: str, contents: bytes, visibility: Visibility) -> bool:
        path = normalize_path(path)
        if not path or path in self._dirs:
            return False
        self._ensure_parents(path, visibility)
        self._files[path] = _StoredFile(bytes(contents), visibility)
        return True

    async def write_stream(self, path: str, chunks: AsyncIterator[bytes], visibility: Visibility) -> bool:
        buf = bytearray()
        async for chunk in chunks:
            buf.extend(chunk)
        return await self.write(path, bytes(buf), visibility)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read(self, path: str) -> bytes | None:
        stored = self._files.get(normalize_path(path))
        return None if stored is None else stored.contents

    async def read_stream(self, path: str) -> AsyncIterator[bytes] | None:
        contents = await self.read(path)
        if contents is None:
            return None

        async def _chunks() -> AsyncIterator[bytes]:
            yield contents

        return _chunks()

    async def has(self, path: str) -> bool:
        path = normalize_path(path)
        return path in self._files or self._is_dir(path)

    # ------------------------------------------------------------------
    # Manipulation
    # ------------------------------------------------------------------

    async def delete(self, path: str) -> bool:
        return self._files.pop(normalize_path(path), None) is not None

    async def rename(self, source: str, destination: str) -> bool:
        source, destination = normalize_path(source), normalize_path(destination)
        stored = self._files.get(source)
        if stored is None or not destination or destination in self._dirs:
            return False
        del self._files[source]
        self._ensure_parents(destination, stored.visibility)
        self._files[destination] = stored
        return True

    async def copy(self, source: str, destination: str) -> bool:
        source, destination = normalize_path(source), normalize_path(destination)
        stored = self._files.get(source)
        if stored is None or not destination:
            return False
        self._ensure_parents(destination, stored.visibility)
        self._files[destination] = _StoredFile(stored.contents, stored.visibility)
        return True

    async def create_dir(self, path: str, visibility: Visibility) -> bool:
        path = normalize_path(path)
        if path in self._files:
            return False
        if path:
            self._ensure_parents(path, visibility)
            self._dirs[path] = visibility
        return True

    async def delete_dir(self, path: str) -> bool:
        path = normalize_path(path)
        if not path or not self._is_dir(path):
            return False
        prefix = path + "/"
        for key in [k for k in self._files if k.startswith(prefix)]:
            del self._files[key]
        for key in [k for k in self._dirs if k == path or k.startswith(prefix)]:
            del self._dirs[key]
        return True

    # ------------------------------------------------------------------
    # Listing / metadata
    # ------------------------------------------------------------------

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        path = normalize_path(path)
        prefix = path + "/" if path else ""

        def _wanted(candidate: str) -> bool:
            if not candidate.startswith(prefix) or candidate == path:
                return False
            return recursive or "/" not in candidate[len(prefix) :]

        entries = [Entry(path=d, type="dir") for d in self._dirs if _wanted(d)]
        entries.extend(
            Entry(path=p, type="file", size=len(f.contents), timestamp=f.timestamp)
            for p, f in self._files.items()
            if _wanted(p)
        )
        return sorted(entries, key=lambda e: e.path)

    async def get_metadata(self, path: str) -> Metadata | None:
        path = normalize_path(path)
        stored = self._files.get(path)
        if stored is not None:
            return Metadata(
                path=path,
                type="file",
                size=len(stored.contents),
                timestamp=stored.timestamp,
                mimetype=_guess_mimetype(path),
                visibility=stored.visibility,
            )
        if path and self._is_dir(path):
            return Metadata(path=path, type="dir", visibility=self._dirs.get(path, "public"))
        return None

    async def get_mimetype(self, path: str) -> str | None:
        meta = await self.get_metadata(path)
        return None if meta is None else meta.mimetype

    async def get_size(self, path: str) -> int | None:
        meta = await self.get_metadata(path)
        return None if meta is None else meta.size

    async def get_timestamp(self, path: str) -> int | None:
        meta = await self.get_metadata(path)
        return None if meta is None else meta.timestamp

    async def get_visibility(self, path: str) -> Visibility:
        meta = await self.get_metadata(path)
        if meta is None or meta.visibility is None:
            raise FileNotFoundError(f"Path not found: {path}")
        return meta.visibility

    async def set_visibility(self, path: str, visibility: Visibility) -> bool:
        path = normalize_path(path)
        if path in self._files:
            self._files[path].visibility = visibility
            return True
        if path and self._is_dir(path):
            self._dirs[path] = visibility
            return True
        return False


def _guess_mimetype(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"
