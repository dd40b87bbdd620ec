# SPDX-License-Identifier: MIT
"""FTP storage backend.

Uses the standard library :mod:`ftplib` client.  The control connection is
opened lazily on first use and every command runs in a worker thread,
serialised by a lock since an FTP session handles one command at a time.

Listing and metadata rely on ``MLSD`` (RFC 3659), which most current
servers support.  Visibility is mapped onto ``SITE CHMOD``.
"""

from __future__ import annotations

import calendar
import ftplib
import io
import logging
import mimetypes
import posixpath
import time
from collections.abc import AsyncIterator, Callable, Mapping
from typing import Any, TypeVar

import anyio

from ..utils import dot_get
from .protocol import Entry, Metadata, Visibility, normalize_path

logger = logging.getLogger("diskfactory")

T = TypeVar("T")

_MLSD_FACTS = ["type", "size", "modify", "unix.mode"]


class FtpBackend:
    """FTP (optionally FTPS) storage rooted at *root* on the server."""

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        *,
        port: int = 21,
        root: str = "",
        passive: bool = True,
        ssl: bool = False,
        timeout: float = 90,
        permissions: Mapping[str, Any] | None = None,
    ) -> None:
        self._host = host
        self._port = int(port)
        self._username = username
        self._password = password
        self._root = "/" + root.strip("/") if root.strip("/") else ""
        self._passive = passive
        self._ssl = ssl
        self._timeout = timeout
        permissions = permissions or {}
        self._permissions: dict[Visibility, int] = {
            "public": int(dot_get(permissions, "public", 0o744)),
            "private": int(dot_get(permissions, "private", 0o700)),
        }
        self._ftp: ftplib.FTP | None = None
        self._lock = anyio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _connection(self) -> ftplib.FTP:
        if self._ftp is not None:
            return self._ftp
        ftp = ftplib.FTP_TLS(timeout=self._timeout) if self._ssl else ftplib.FTP(timeout=self._timeout)
        ftp.connect(self._host, self._port)
        ftp.login(self._username, self._password)
        if isinstance(ftp, ftplib.FTP_TLS):
            ftp.prot_p()
        ftp.set_pasv(self._passive)
        logger.debug("Connected to FTP server %s:%d", self._host, self._port)
        self._ftp = ftp
        return ftp

    async def aclose(self) -> None:
        """Close the control connection, if one was opened."""
        async with self._lock:
            ftp, self._ftp = self._ftp, None
            if ftp is None:
                return
            try:
                await anyio.to_thread.run_sync(ftp.quit)
            except ftplib.all_errors:
                ftp.close()
            logger.debug("Closed FTP connection to %s", self._host)

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        async with self._lock:
            try:
                return await anyio.to_thread.run_sync(lambda: func(self._connection(), *args))
            except FileNotFoundError:
                raise
            except (EOFError, OSError, ftplib.error_temp) as e:
                self._drop_connection(e)
                raise

    def _drop_connection(self, error: BaseException) -> None:
        """Forget a broken session so the next call reconnects."""
        ftp, self._ftp = self._ftp, None
        if ftp is None:
            return
        ftp.close()
        logger.warning("FTP connection to %s dropped (%s); reconnecting on next use", self._host, error)

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _remote(self, path: str) -> str:
        path = normalize_path(path)
        if path.startswith("../") or path == "..":
            raise ValueError(f"Invalid path (path traversal detected): {path}")
        if not path:
            return self._root or "/"
        return f"{self._root}/{path}"

    def _relative(self, remote: str) -> str:
        return remote[len(self._root) :].lstrip("/")

    # ------------------------------------------------------------------
    # Blocking helpers (run in worker threads)
    # ------------------------------------------------------------------

    @staticmethod
    def _mkdirs(ftp: ftplib.FTP, remote_dir: str) -> None:
        current = ""
        for part in remote_dir.strip("/").split("/"):
            if not part:
                continue
            current = f"{current}/{part}"
            try:
                ftp.mkd(current)
            except ftplib.error_perm:
                # 550: already exists
                continue

    def _chmod(self, ftp: ftplib.FTP, remote: str, visibility: Visibility) -> bool:
        try:
            ftp.sendcmd(f"SITE CHMOD {self._permissions[visibility]:o} {remote}")
        except ftplib.error_perm as e:
            logger.debug("SITE CHMOD failed for %s: %s", remote, e)
            return False
        return True

    def _stat(self, ftp: ftplib.FTP, remote: str) -> dict[str, str] | None:
        parent, name = posixpath.split(remote.rstrip("/"))
        if not name:
            return {"type": "dir"}
        try:
            for entry_name, facts in list(ftp.mlsd(parent or "/", facts=_MLSD_FACTS)):
                if entry_name == name:
                    return facts
        except ftplib.error_perm:
            return None
        return None

    def _store(self, ftp: ftplib.FTP, remote: str, contents: bytes, visibility: Visibility) -> bool:
        self._mkdirs(ftp, posixpath.dirname(remote))
        ftp.storbinary(f"STOR {remote}", io.BytesIO(contents))
        if not self._chmod(ftp, remote, visibility):
            logger.warning("Stored %s but could not set it %s; server kept its default mode", remote, visibility)
        return True

    @staticmethod
    def _retrieve(ftp: ftplib.FTP, remote: str) -> bytes:
        buf = io.BytesIO()
        ftp.retrbinary(f"RETR {remote}", buf.write)
        return buf.getvalue()

    def _copy(self, ftp: ftplib.FTP, source: str, destination: str) -> bool:
        facts = self._stat(ftp, source)
        if facts is None or facts.get("type") == "dir":
            raise FileNotFoundError(f"File not found: {self._relative(source)}")
        return self._store(ftp, destination, self._retrieve(ftp, source), self._visibility_of(facts))

    def _rename(self, ftp: ftplib.FTP, source: str, destination: str) -> bool:
        self._mkdirs(ftp, posixpath.dirname(destination))
        ftp.rename(source, destination)
        return True

    def _create_dir(self, ftp: ftplib.FTP, remote: str, visibility: Visibility) -> bool:
        self._mkdirs(ftp, remote)
        self._chmod(ftp, remote, visibility)
        return True

    def _delete_dir(self, ftp: ftplib.FTP, remote: str) -> bool:
        facts = self._stat(ftp, remote)
        if facts is None or facts.get("type") != "dir" or remote in ("", "/", self._root):
            return False
        self._remove_tree(ftp, remote)
        return True

    def _remove_tree(self, ftp: ftplib.FTP, remote: str) -> None:
        for name, facts in list(ftp.mlsd(remote, facts=["type"])):
            kind = facts.get("type")
            if kind in ("cdir", "pdir") or name in (".", ".."):
                continue
            child = f"{remote}/{name}"
            if kind == "dir":
                self._remove_tree(ftp, child)
            else:
                ftp.delete(child)
        ftp.rmd(remote)

    def _list(self, ftp: ftplib.FTP, remote: str, recursive: bool) -> list[Entry]:
        entries: list[Entry] = []
        try:
            listing = sorted(ftp.mlsd(remote, facts=_MLSD_FACTS), key=lambda item: item[0])
        except ftplib.error_perm:
            return entries
        for name, facts in listing:
            kind = facts.get("type")
            if kind in ("cdir", "pdir") or name in (".", ".."):
                continue
            child = f"{remote.rstrip('/')}/{name}"
            entries.append(self._entry(child, facts))
            if recursive and kind == "dir":
                entries.extend(self._list(ftp, child, recursive))
        return entries

    # ------------------------------------------------------------------
    # Fact parsing
    # ------------------------------------------------------------------

    def _entry(self, remote: str, facts: Mapping[str, str]) -> Entry:
        if facts.get("type") == "dir":
            return Entry(path=self._relative(remote), type="dir", timestamp=_parse_modify(facts))
        size = facts.get("size")
        return Entry(
            path=self._relative(remote),
            type="file",
            size=int(size) if size is not None else None,
            timestamp=_parse_modify(facts),
        )

    @staticmethod
    def _visibility_of(facts: Mapping[str, str]) -> Visibility:
        mode = facts.get("unix.mode")
        if mode is None:
            return "private"
        return "public" if int(mode, 8) & 0o044 else "private"

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write(self, path: str, contents: bytes, visibility: Visibility) -> bool:
        return await self._run(self._store, self._remote(path), contents, visibility)

    async def write_stream(self, path: str, chunks: AsyncIterator[bytes], visibility: Visibility) -> bool:
        # ftplib uploads from a file object; buffer the stream first
        buf = bytearray()
        async for chunk in chunks:
            buf.extend(chunk)
        return await self.write(path, bytes(buf), visibility)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read(self, path: str) -> bytes | None:
        return await self._run(self._retrieve, self._remote(path))

    async def read_stream(self, path: str) -> AsyncIterator[bytes] | None:
        contents = await self.read(path)
        if contents is None:
            return None

        async def _chunks() -> AsyncIterator[bytes]:
            yield contents

        return _chunks()

    async def has(self, path: str) -> bool:
        return await self._run(self._stat, self._remote(path)) is not None

    # ------------------------------------------------------------------
    # Manipulation
    # ------------------------------------------------------------------

    async def delete(self, path: str) -> bool:
        await self._run(lambda ftp, remote: ftp.delete(remote), self._remote(path))
        return True

    async def rename(self, source: str, destination: str) -> bool:
        return await self._run(self._rename, self._remote(source), self._remote(destination))

    async def copy(self, source: str, destination: str) -> bool:
        return await self._run(self._copy, self._remote(source), self._remote(destination))

    async def create_dir(self, path: str, visibility: Visibility) -> bool:
        return await self._run(self._create_dir, self._remote(path), visibility)

    async def delete_dir(self, path: str) -> bool:
        return await self._run(self._delete_dir, self._remote(path))

    # ------------------------------------------------------------------
    # Listing / metadata
    # ------------------------------------------------------------------

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        return await self._run(self._list, self._remote(path), recursive)

    async def get_metadata(self, path: str) -> Metadata | None:
        remote = self._remote(path)
        facts = await self._run(self._stat, remote)
        if facts is None:
            return None
        entry = self._entry(remote, facts)
        mime = None
        if entry.type == "file":
            mime = mimetypes.guess_type(entry.path)[0] or "application/octet-stream"
        return Metadata(
            path=entry.path,
            type=entry.type,
            size=entry.size,
            timestamp=entry.timestamp,
            mimetype=mime,
            visibility=self._visibility_of(facts),
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
        facts = await self._run(self._stat, self._remote(path))
        if facts is None:
            raise FileNotFoundError(f"Path not found: {path}")
        return self._visibility_of(facts)

    async def set_visibility(self, path: str, visibility: Visibility) -> bool:
        return await self._run(self._chmod, self._remote(path), visibility)


def _parse_modify(facts: Mapping[str, str]) -> int | None:
    """Parse an MLSD ``modify`` fact (``YYYYMMDDHHMMSS[.sss]``, UTC)."""
    value = facts.get("modify")
    if not value:
        return None
    return calendar.timegm(time.strptime(value[:14], "%Y%m%d%H%M%S"))
