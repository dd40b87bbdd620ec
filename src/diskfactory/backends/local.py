# SPDX-License-Identifier: MIT
"""Local filesystem storage backend.

Visibility is expressed through POSIX permission bits: each of
``file``/``dir`` has a ``public`` and a ``private`` mode, configurable
under the ``permissions`` settings key.
"""

from __future__ import annotations

import logging
import mimetypes
import os
import pathlib
import shutil
from collections.abc import AsyncIterator, Mapping
from typing import Any

import aiofiles
import anyio

from ..utils import dot_get
from .protocol import Entry, EntryType, Metadata, Visibility, normalize_path

logger = logging.getLogger("diskfactory")

DEFAULT_PERMISSIONS: dict[str, dict[str, int]] = {
    "file": {"public": 0o644, "private": 0o600},
    "dir": {"public": 0o755, "private": 0o700},
}

_CHUNK_SIZE = 64 * 1024


class LocalBackend:
    """Local-disk storage rooted at *root*.

    Args:
        root: Base directory.  Created on construction if missing.
        permissions: Optional ``{"file": {"public": 0o644, ...}, "dir": {...}}``
            overrides for the visibility/permission map.
    """

    def __init__(self, root: str | os.PathLike[str], permissions: Mapping[str, Any] | None = None) -> None:
        self._root = pathlib.Path(root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        permissions = permissions or {}
        self._permissions = {
            kind: {vis: int(dot_get(permissions, f"{kind}.{vis}", mode)) for vis, mode in modes.items()}
            for kind, modes in DEFAULT_PERMISSIONS.items()
        }

    @property
    def root(self) -> pathlib.Path:
        return self._root

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _safe(self, path: str) -> pathlib.Path:
        """Map a storage path to a real path, rejecting traversal outside the root."""
        full = (self._root / normalize_path(path)).resolve()
        try:
            full.relative_to(self._root)
        except ValueError as e:
            raise ValueError(f"Invalid path (path traversal detected): {path}") from e
        return full

    def _relative(self, full: pathlib.Path) -> str:
        return full.relative_to(self._root).as_posix()

    def _mode(self, kind: EntryType, visibility: Visibility) -> int:
        return self._permissions[kind][visibility]

    def _ensure_parent(self, full: pathlib.Path) -> None:
        full.parent.mkdir(parents=True, exist_ok=True, mode=self._mode("dir", "public"))

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write(self, path: str, contents: bytes, visibility: Visibility) -> bool:
        full = self._safe(path)
        await anyio.to_thread.run_sync(self._ensure_parent, full)
        async with aiofiles.open(full, "wb") as f:
            await f.write(contents)
        await anyio.to_thread.run_sync(os.chmod, full, self._mode("file", visibility))
        return True

    async def write_stream(self, path: str, chunks: AsyncIterator[bytes], visibility: Visibility) -> bool:
        full = self._safe(path)
        await anyio.to_thread.run_sync(self._ensure_parent, full)
        async with aiofiles.open(full, "wb") as f:
            async for chunk in chunks:
                await f.write(chunk)
        await anyio.to_thread.run_sync(os.chmod, full, self._mode("file", visibility))
        return True

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read(self, path: str) -> bytes | None:
        full = self._safe(path)
        if not full.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        async with aiofiles.open(full, "rb") as f:
            return await f.read()

    async def read_stream(self, path: str) -> AsyncIterator[bytes] | None:
        full = self._safe(path)
        if not full.is_file():
            raise FileNotFoundError(f"File not found: {path}")

        async def _chunks() -> AsyncIterator[bytes]:
            async with aiofiles.open(full, "rb") as f:
                while chunk := await f.read(_CHUNK_SIZE):
                    yield chunk

        return _chunks()

    async def has(self, path: str) -> bool:
        try:
            return self._safe(path).exists()
        except (ValueError, OSError):
            return False

    # ------------------------------------------------------------------
    # Manipulation
    # ------------------------------------------------------------------

    async def delete(self, path: str) -> bool:
        full = self._safe(path)
        if not full.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        await anyio.to_thread.run_sync(full.unlink)
        return True

    async def rename(self, source: str, destination: str) -> bool:
        src, dst = self._safe(source), self._safe(destination)
        if not src.exists():
            raise FileNotFoundError(f"Path not found: {source}")
        await anyio.to_thread.run_sync(self._ensure_parent, dst)
        await anyio.to_thread.run_sync(os.replace, src, dst)
        return True

    async def copy(self, source: str, destination: str) -> bool:
        src, dst = self._safe(source), self._safe(destination)
        if not src.is_file():
            raise FileNotFoundError(f"File not found: {source}")
        await anyio.to_thread.run_sync(self._ensure_parent, dst)
        await anyio.to_thread.run_sync(self._copy_file, src, dst)
        return True

    @staticmethod
    def _copy_file(src: pathlib.Path, dst: pathlib.Path) -> None:
        # Mode bits carry visibility; the copy gets a fresh mtime
        shutil.copyfile(src, dst)
        shutil.copymode(src, dst)

    async def create_dir(self, path: str, visibility: Visibility) -> bool:
        full = self._safe(path)
        if full.is_file():
            return False
        mode = self._mode("dir", visibility)
        await anyio.to_thread.run_sync(lambda: full.mkdir(parents=True, exist_ok=True, mode=mode))
        await anyio.to_thread.run_sync(os.chmod, full, mode)
        return True

    async def delete_dir(self, path: str) -> bool:
        full = self._safe(path)
        if full == self._root or not full.is_dir():
            return False
        await anyio.to_thread.run_sync(shutil.rmtree, full)
        return True

    # ------------------------------------------------------------------
    # Listing / metadata
    # ------------------------------------------------------------------

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        base = self._safe(path)
        return await anyio.to_thread.run_sync(self._scan, base, recursive)

    def _scan(self, base: pathlib.Path, recursive: bool) -> list[Entry]:
        if not base.is_dir():
            return []
        candidates = base.rglob("*") if recursive else base.iterdir()
        results: list[Entry] = []
        for item in sorted(candidates):
            if item.is_symlink():
                logger.debug("Skipping symbolic link: %s", item)
                continue
            st = item.stat()
            if item.is_dir():
                results.append(Entry(path=self._relative(item), type="dir", timestamp=int(st.st_mtime)))
            else:
                results.append(
                    Entry(path=self._relative(item), type="file", size=st.st_size, timestamp=int(st.st_mtime))
                )
        return results

    async def get_metadata(self, path: str) -> Metadata | None:
        full = self._safe(path)
        try:
            st = full.stat()
        except OSError as e:
            raise FileNotFoundError(f"Cannot stat path: {e}") from e
        if full.is_dir():
            return Metadata(path=self._relative(full), type="dir", timestamp=int(st.st_mtime))
        mime, _ = mimetypes.guess_type(full.name)
        return Metadata(
            path=self._relative(full),
            type="file",
            size=st.st_size,
            timestamp=int(st.st_mtime),
            mimetype=mime or "application/octet-stream",
        )

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
        full = self._safe(path)
        try:
            mode = full.stat().st_mode & 0o777
        except OSError as e:
            raise FileNotFoundError(f"Cannot stat path: {e}") from e
        kind: EntryType = "dir" if full.is_dir() else "file"
        for visibility, perms in self._permissions[kind].items():
            if perms == mode:
                return visibility  # type: ignore[return-value]
        # Unmapped mode: world-readable counts as public
        return "public" if mode & 0o004 else "private"

    async def set_visibility(self, path: str, visibility: Visibility) -> bool:
        full = self._safe(path)
        if not full.exists():
            raise FileNotFoundError(f"Path not found: {path}")
        kind: EntryType = "dir" if full.is_dir() else "file"
        await anyio.to_thread.run_sync(os.chmod, full, self._mode(kind, visibility))
        return True
