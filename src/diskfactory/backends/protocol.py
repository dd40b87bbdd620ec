# SPDX-License-Identifier: MIT
"""Backend protocol and shared types.

Defines the capability interface that every storage backend (and every
cache wrapper around one) must implement.
"""

from __future__ import annotations

import posixpath
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

Visibility = Literal["public", "private"]
"""Two-valued access classification attached to a path."""

EntryType = Literal["file", "dir"]

PUBLIC: Visibility = "public"
PRIVATE: Visibility = "private"


def normalize_path(path: str) -> str:
    """Normalise a storage path to a root-relative POSIX path without slashes at either end.

    Examples::

        >>> normalize_path("/a//b/./c.txt")
        'a/b/c.txt'
        >>> normalize_path("")
        ''
    """
    path = path.replace("\\", "/").strip("/")
    if not path:
        return ""
    normalized = posixpath.normpath(path)
    return "" if normalized == "." else normalized


@dataclass(frozen=True)
class Entry:
    """One record returned by :meth:`Backend.list_contents`."""

    path: str
    type: EntryType
    size: int | None = None
    timestamp: int | None = None

    @property
    def dirname(self) -> str:
        return posixpath.dirname(self.path)

    @property
    def basename(self) -> str:
        return posixpath.basename(self.path)

    @property
    def extension(self) -> str | None:
        name = self.basename
        if "." not in name.lstrip("."):
            return None
        return name.rsplit(".", 1)[1]

    @property
    def filename(self) -> str:
        ext = self.extension
        return self.basename if ext is None else self.basename[: -(len(ext) + 1)]


@dataclass(frozen=True)
class Metadata:
    """Known metadata of a file or directory."""

    path: str
    type: EntryType
    size: int | None = None
    timestamp: int | None = None
    mimetype: str | None = None
    visibility: Visibility | None = None


@runtime_checkable
class Backend(Protocol):
    """Protocol for pluggable storage backends.

    All paths are relative to the backend's configured root.  A backend
    signals failure either by raising or by returning a falsy value
    (``False`` / ``None``); the :class:`~diskfactory.filesystem.Filesystem`
    facade turns both into typed errors.
    """

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write(self, path: str, contents: bytes, visibility: Visibility) -> bool:
        """Create or overwrite a file."""
        ...

    async def write_stream(self, path: str, chunks: AsyncIterator[bytes], visibility: Visibility) -> bool:
        """Create or overwrite a file from an async byte-chunk stream."""
        ...

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read(self, path: str) -> bytes | None:
        """Read entire file contents."""
        ...

    async def read_stream(self, path: str) -> AsyncIterator[bytes] | None:
        """Return an async iterator over the file contents."""
        ...

    async def has(self, path: str) -> bool:
        """Check whether a file or directory exists."""
        ...

    # ------------------------------------------------------------------
    # Manipulation
    # ------------------------------------------------------------------

    async def delete(self, path: str) -> bool: ...

    async def rename(self, source: str, destination: str) -> bool: ...

    async def copy(self, source: str, destination: str) -> bool: ...

    async def create_dir(self, path: str, visibility: Visibility) -> bool: ...

    async def delete_dir(self, path: str) -> bool: ...

    # ------------------------------------------------------------------
    # Listing / metadata
    # ------------------------------------------------------------------

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        """List files and directories below *path*."""
        ...

    async def get_metadata(self, path: str) -> Metadata | None: ...

    async def get_mimetype(self, path: str) -> str | None: ...

    async def get_size(self, path: str) -> int | None: ...

    async def get_timestamp(self, path: str) -> int | None: ...

    async def get_visibility(self, path: str) -> Visibility: ...

    async def set_visibility(self, path: str, visibility: Visibility) -> bool: ...
