# SPDX-License-Identifier: MIT
"""Uniform file operations over named disks.

Usage::

    from diskfactory import Filesystem

    fs = Filesystem(config)
    await fs.write("notes/today.txt", "hello", public=True)   # "default" disk
    await fs.disk("archive").write("notes/today.txt", "hi")  # "archive", once
    await fs.exists("notes/today.txt")                       # back on "default"

    archive = fs.on("archive")                               # explicit handle,
    await archive.read("notes/today.txt")                    # no cursor involved

Every failing operation raises the error type of its category (see
:mod:`diskfactory.exceptions`), whether the backend raised or merely
returned a falsy value.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any
from urllib.parse import quote

from .backends.factory import BackendFactory, backend_factory
from .backends.protocol import PRIVATE, PUBLIC, Backend, Entry, Metadata, Visibility
from .cache.factory import CacheFactory, cache_factory
from .config import DiskConfig, load_config_from_env
from .exceptions import (
    DirectoryCreateError,
    DirectoryDeleteError,
    FileCopyError,
    FileDeleteError,
    FileMetadataError,
    FileMoveError,
    FileReadError,
    FileRenameError,
    FilesystemError,
    FileWriteError,
)
from .registry import DiskRegistry

logger = logging.getLogger("diskfactory")

Contents = str | bytes
Extensions = str | Iterable[str] | None


def _visibility(public: bool) -> Visibility:
    return PUBLIC if public else PRIVATE


def _to_bytes(contents: Contents) -> bytes:
    return contents.encode("utf-8") if isinstance(contents, str) else bytes(contents)


def _extensions(extensions: Extensions) -> set[str]:
    if not extensions:
        return set()
    if isinstance(extensions, str):
        extensions = [extensions]
    return {ext.lstrip(".") for ext in extensions}


@contextmanager
def _reraise_as(error: type[FilesystemError]) -> Iterator[None]:
    """Re-raise anything escaping the block as *error*, chaining the cause."""
    try:
        yield
    except error:
        raise
    except Exception as e:
        raise error(str(e) or type(e).__name__) from e


class DiskHandle:
    """File operations bound to one disk.

    Handles never touch the registry cursor, so several may be used
    side by side (including from concurrent tasks).
    """

    def __init__(self, name: str, backend: Backend, config: DiskConfig) -> None:
        self._name = name
        self._backend = backend
        self._config = config

    def __repr__(self) -> str:
        return f"DiskHandle(name={self._name!r}, backend_type={self._config.backend_type!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def config(self) -> DiskConfig:
        return self._config

    # ------------------------------------------------------------------
    # Files and directories
    # ------------------------------------------------------------------

    async def write(self, file: str, contents: Contents, public: bool = False) -> None:
        """Write or overwrite *file*."""
        with _reraise_as(FileWriteError):
            if not await self._backend.write(file, _to_bytes(contents), _visibility(public)):
                raise FileWriteError(f"Unable to write ({file})")

    async def write_stream(self, file: str, chunks: AsyncIterator[bytes], public: bool = False) -> None:
        """Write or overwrite *file* from an async byte-chunk stream."""
        with _reraise_as(FileWriteError):
            if not await self._backend.write_stream(file, chunks, _visibility(public)):
                raise FileWriteError(f"Unable to write stream ({file})")

    async def prepend(self, file: str, contents: Contents, public: bool = False) -> None:
        """Prepend *contents* to an existing file.

        Reads the whole file and writes it back; meant for small files.
        """
        with _reraise_as(FileWriteError):
            existing = await self._backend.read(file)
            if existing is None or not await self._backend.write(
                file, _to_bytes(contents) + existing, _visibility(public)
            ):
                raise FileWriteError(f"Unable to prepend ({file})")

    async def append(self, file: str, contents: Contents, public: bool = False) -> None:
        """Append *contents* to an existing file.

        Reads the whole file and writes it back; meant for small files.
        """
        with _reraise_as(FileWriteError):
            existing = await self._backend.read(file)
            if existing is None or not await self._backend.write(
                file, existing + _to_bytes(contents), _visibility(public)
            ):
                raise FileWriteError(f"Unable to append ({file})")

    async def exists(self, path: str) -> bool:
        """Check whether a file or directory exists.

        Directory results may vary between backends.
        """
        return await self._backend.has(path)

    async def missing(self, path: str) -> bool:
        return not await self.exists(path)

    async def rename(self, source: str, destination: str) -> None:
        with _reraise_as(FileRenameError):
            if not await self._backend.rename(source, destination):
                raise FileRenameError(f"Unable to rename ({source})")

    async def copy(self, source: str, destination: str) -> None:
        with _reraise_as(FileCopyError):
            if not await self._backend.copy(source, destination):
                raise FileCopyError(f"Unable to copy ({source})")

    async def move(self, source: str, destination: str) -> None:
        """Copy *source* to *destination*, then delete *source*.

        Not atomic: if the delete fails, the copy at *destination* is kept
        and :class:`FileMoveError` is raised.
        """
        with _reraise_as(FileMoveError):
            if not await self._backend.copy(source, destination):
                raise FileMoveError(f"Unable to move ({source})")
            if not await self._backend.delete(source):
                logger.warning("Move of %r left a copy at %r: source delete failed", source, destination)
                raise FileMoveError(f"Unable to move ({source}): source not deleted")

    async def read(self, file: str) -> bytes:
        with _reraise_as(FileReadError):
            contents = await self._backend.read(file)
            if contents is None:
                raise FileReadError(f"Unable to read ({file})")
            return contents

    async def read_stream(self, file: str) -> AsyncIterator[bytes]:
        with _reraise_as(FileReadError):
            stream = await self._backend.read_stream(file)
            if stream is None:
                raise FileReadError(f"Unable to read stream ({file})")
            return stream

    async def read_and_delete(self, file: str) -> bytes:
        """Return the contents of *file*, then delete it."""
        with _reraise_as(FileReadError):
            contents = await self._backend.read(file)
            if contents is None or not await self._backend.delete(file):
                raise FileReadError(f"Unable to read and delete ({file})")
            return contents

    async def delete(self, file: str) -> None:
        with _reraise_as(FileDeleteError):
            if not await self._backend.delete(file):
                raise FileDeleteError(f"Unable to delete ({file})")

    async def create_dir(self, path: str, public: bool = False) -> None:
        with _reraise_as(DirectoryCreateError):
            if not await self._backend.create_dir(path, _visibility(public)):
                raise DirectoryCreateError(f"Unable to create directory ({path})")

    async def delete_dir(self, path: str) -> None:
        with _reraise_as(DirectoryDeleteError):
            if not await self._backend.delete_dir(path):
                raise DirectoryDeleteError(f"Unable to delete directory ({path})")

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        return await self._backend.list_contents(path, recursive)

    async def list_files(self, path: str = "", recursive: bool = False, extensions: Extensions = None) -> list[Entry]:
        """List files, optionally only those with one of *extensions*."""
        wanted = _extensions(extensions)
        return [
            entry
            for entry in await self.list_contents(path, recursive)
            if entry.type == "file" and (not wanted or entry.extension in wanted)
        ]

    async def list_files_except(
        self, path: str = "", recursive: bool = False, extensions: Extensions = None
    ) -> list[Entry]:
        """List files, leaving out those with one of *extensions*."""
        unwanted = _extensions(extensions)
        return [
            entry
            for entry in await self.list_contents(path, recursive)
            if entry.type == "file" and entry.extension not in unwanted
        ]

    async def list_dirs(self, path: str = "", recursive: bool = False) -> list[Entry]:
        return [entry for entry in await self.list_contents(path, recursive) if entry.type == "dir"]

    # ------------------------------------------------------------------
    # File meta
    # ------------------------------------------------------------------

    async def get_visibility(self, path: str) -> Visibility:
        with _reraise_as(FileMetadataError):
            return await self._backend.get_visibility(path)

    async def is_public(self, path: str) -> bool:
        return await self.get_visibility(path) == PUBLIC

    async def is_private(self, path: str) -> bool:
        return await self.get_visibility(path) == PRIVATE

    async def set_public(self, path: str) -> None:
        await self.set_visibility(path, PUBLIC)

    async def set_private(self, path: str) -> None:
        await self.set_visibility(path, PRIVATE)

    async def set_visibility(self, path: str, visibility: str) -> None:
        """Set visibility; anything other than ``"public"`` means ``"private"``."""
        value: Visibility = PUBLIC if visibility == PUBLIC else PRIVATE
        with _reraise_as(FileMetadataError):
            if not await self._backend.set_visibility(path, value):
                raise FileMetadataError(f"Unable to set visibility as {value} ({path})")

    async def get_metadata(self, path: str) -> Metadata:
        with _reraise_as(FileMetadataError):
            meta = await self._backend.get_metadata(path)
            if meta is None:
                raise FileMetadataError(f"Unable to get metadata ({path})")
            return meta

    async def get_mimetype(self, path: str) -> str:
        with _reraise_as(FileMetadataError):
            mime = await self._backend.get_mimetype(path)
            if not mime:
                raise FileMetadataError(f"Unable to get MIME type ({path})")
            return mime

    async def get_size(self, file: str) -> int:
        with _reraise_as(FileMetadataError):
            size = await self._backend.get_size(file)
            if size is None:
                raise FileMetadataError(f"Unable to get size ({file})")
            return size

    async def get_timestamp(self, path: str) -> int:
        with _reraise_as(FileMetadataError):
            timestamp = await self._backend.get_timestamp(path)
            if timestamp is None:
                raise FileMetadataError(f"Unable to get timestamp ({path})")
            return timestamp

    async def touch(self, file: str) -> None:
        """Refresh the timestamp of *file* by copying it to ``<file>.tmp`` and back.

        For backends without a native touch.  Not atomic: an interruption
        can leave only the ``.tmp`` copy behind.
        """
        tmp = f"{file}.tmp"
        with _reraise_as(FileMetadataError):
            if not (
                await self._backend.copy(file, tmp)
                and await self._backend.delete(file)
                and await self._backend.rename(tmp, file)
            ):
                raise FileMetadataError(f"Unable to touch ({file})")

    async def url(self, path: str) -> str:
        """Public URL of *path* under the disk's ``url_base``.

        Only public, existing paths on a disk with a ``url_base`` have a URL.
        """
        with _reraise_as(FileMetadataError):
            base = self._config.url_base
            if base and await self._backend.has(path) and await self._backend.get_visibility(path) == PUBLIC:
                return f"{base.rstrip('/')}/{quote(path.lstrip('/'))}"
            raise FileMetadataError(f"Unable to retrieve URL ({path})")


class Filesystem:
    """Facade running file operations against the current disk.

    Operations use whichever disk :meth:`disk` last selected and then fall
    back to ``"default"``, unless the selection was made with
    ``make_default=True``.  Not safe for concurrent use; prefer
    :meth:`on` when several tasks share one instance.

    Args:
        config: Mapping of disk name to disk settings; must contain ``"default"``.
        backends: Backend factory (defaults to the built-in one).
        caches: Cache factory (defaults to the built-in one).

    Raises:
        ConfigurationError: If *config* has no ``"default"`` disk.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        backends: BackendFactory = backend_factory,
        caches: CacheFactory = cache_factory,
    ) -> None:
        self._registry = DiskRegistry(config, backends=backends, caches=caches)

    @classmethod
    def from_env(cls) -> Filesystem:
        """Build a filesystem from the file named by ``DISKFACTORY_CONFIG``."""
        return cls(load_config_from_env())

    @property
    def registry(self) -> DiskRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Disks
    # ------------------------------------------------------------------

    def disk(self, name: str, make_default: bool = False) -> Filesystem:
        """Select *name* for the next operation (or permanently with *make_default*)."""
        self._registry.select(name, pin=make_default)
        return self

    def on(self, name: str) -> DiskHandle:
        """Return a handle bound to *name* without moving the cursor."""
        backend = self._registry.get(name)
        return DiskHandle(name, backend, self._registry.config_for(name))

    def get_disk(self, name: str) -> Backend:
        return self._registry.get(name)

    def get_default_disk(self) -> Backend:
        return self._registry.get(self._registry.default_name)

    def get_current_disk(self) -> Backend:
        return self._registry.get(self._registry.current_name())

    def get_disk_names(self) -> list[str]:
        """Names of disks created so far."""
        return self._registry.names()

    def get_default_disk_name(self) -> str:
        return self._registry.default_name

    def get_current_disk_name(self) -> str:
        return self._registry.current_name()

    def _current(self) -> DiskHandle:
        name, backend = self._registry.resolve_current()
        return DiskHandle(name, backend, self._registry.config_for(name))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._registry.aclose()

    async def __aenter__(self) -> Filesystem:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Files and directories
    # ------------------------------------------------------------------

    async def write(self, file: str, contents: Contents, public: bool = False) -> None:
        await self._current().write(file, contents, public)

    async def write_stream(self, file: str, chunks: AsyncIterator[bytes], public: bool = False) -> None:
        await self._current().write_stream(file, chunks, public)

    async def prepend(self, file: str, contents: Contents, public: bool = False) -> None:
        await self._current().prepend(file, contents, public)

    async def append(self, file: str, contents: Contents, public: bool = False) -> None:
        await self._current().append(file, contents, public)

    async def exists(self, path: str) -> bool:
        return await self._current().exists(path)

    async def missing(self, path: str) -> bool:
        return await self._current().missing(path)

    async def rename(self, source: str, destination: str) -> None:
        await self._current().rename(source, destination)

    async def copy(self, source: str, destination: str) -> None:
        await self._current().copy(source, destination)

    async def move(self, source: str, destination: str) -> None:
        await self._current().move(source, destination)

    async def read(self, file: str) -> bytes:
        return await self._current().read(file)

    async def read_stream(self, file: str) -> AsyncIterator[bytes]:
        return await self._current().read_stream(file)

    async def read_and_delete(self, file: str) -> bytes:
        return await self._current().read_and_delete(file)

    async def delete(self, file: str) -> None:
        await self._current().delete(file)

    async def create_dir(self, path: str, public: bool = False) -> None:
        await self._current().create_dir(path, public)

    async def delete_dir(self, path: str) -> None:
        await self._current().delete_dir(path)

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        return await self._current().list_contents(path, recursive)

    async def list_files(self, path: str = "", recursive: bool = False, extensions: Extensions = None) -> list[Entry]:
        return await self._current().list_files(path, recursive, extensions)

    async def list_files_except(
        self, path: str = "", recursive: bool = False, extensions: Extensions = None
    ) -> list[Entry]:
        return await self._current().list_files_except(path, recursive, extensions)

    async def list_dirs(self, path: str = "", recursive: bool = False) -> list[Entry]:
        return await self._current().list_dirs(path, recursive)

    # ------------------------------------------------------------------
    # File meta
    # ------------------------------------------------------------------

    async def get_visibility(self, path: str) -> Visibility:
        return await self._current().get_visibility(path)

    async def is_public(self, path: str) -> bool:
        return await self._current().is_public(path)

    async def is_private(self, path: str) -> bool:
        return await self._current().is_private(path)

    async def set_public(self, path: str) -> None:
        await self._current().set_public(path)

    async def set_private(self, path: str) -> None:
        await self._current().set_private(path)

    async def set_visibility(self, path: str, visibility: str) -> None:
        await self._current().set_visibility(path, visibility)

    async def get_metadata(self, path: str) -> Metadata:
        return await self._current().get_metadata(path)

    async def get_mimetype(self, path: str) -> str:
        return await self._current().get_mimetype(path)

    async def get_size(self, file: str) -> int:
        return await self._current().get_size(file)

    async def get_timestamp(self, path: str) -> int:
        return await self._current().get_timestamp(path)

    async def touch(self, file: str) -> None:
        await self._current().touch(file)

    async def url(self, path: str) -> str:
        return await self._current().url(path)
