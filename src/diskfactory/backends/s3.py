# SPDX-License-Identifier: MIT
"""S3-compatible object storage backend (requires ``pip install 'diskfactory[s3]'``).

Works against AWS S3 and S3-compatible services such as DigitalOcean
Spaces or MinIO (set ``endpoint``).  Visibility maps onto canned ACLs:
``public-read`` for public objects and ``private`` otherwise.  Directories
are emulated from key prefixes, plus zero-byte ``dir/`` marker objects
created by :meth:`S3Backend.create_dir`.
"""

from __future__ import annotations

import mimetypes
import posixpath
from collections.abc import AsyncIterator
from typing import Any

import aioboto3
from botocore.exceptions import ClientError

from .protocol import PRIVATE, PUBLIC, Entry, Metadata, Visibility, normalize_path

_ALL_USERS = "http://acs.amazonaws.com/groups/global/AllUsers"
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_CHUNK_SIZE = 64 * 1024
_DELETE_BATCH = 1000


def _acl(visibility: Visibility) -> str:
    return "public-read" if visibility == PUBLIC else "private"


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in _NOT_FOUND_CODES


class S3Backend:
    """Store files in an S3-compatible bucket."""

    def __init__(
        self,
        bucket: str,
        region: str,
        key: str,
        secret: str,
        *,
        endpoint: str | None = None,
        prefix: str = "",
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._key_id = key
        self._secret = secret
        self._endpoint = endpoint
        self._prefix = prefix.strip("/")
        self._session = aioboto3.Session()

    def _client(self):
        kwargs: dict[str, Any] = {
            "region_name": self._region,
            "aws_access_key_id": self._key_id,
            "aws_secret_access_key": self._secret,
        }
        if self._endpoint:
            kwargs["endpoint_url"] = self._endpoint
        return self._session.client("s3", **kwargs)

    # ------------------------------------------------------------------
    # Key helpers
    # ------------------------------------------------------------------

    def _key(self, path: str) -> str:
        path = normalize_path(path)
        if path.startswith("../") or path == "..":
            raise ValueError(f"Invalid path (path traversal detected): {path}")
        if self._prefix:
            return f"{self._prefix}/{path}" if path else self._prefix
        return path

    def _dir_prefix(self, path: str) -> str:
        key = self._key(path)
        return f"{key}/" if key else ""

    def _relative(self, key: str) -> str:
        key = key.rstrip("/")
        if self._prefix:
            return key[len(self._prefix) :].lstrip("/")
        return key

    async def _head(self, s3, key: str) -> dict[str, Any] | None:
        try:
            return await s3.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise

    async def _dir_exists(self, s3, path: str) -> bool:
        response = await s3.list_objects_v2(Bucket=self._bucket, Prefix=self._dir_prefix(path), MaxKeys=1)
        return response.get("KeyCount", len(response.get("Contents", []))) > 0

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write(self, path: str, contents: bytes, visibility: Visibility) -> bool:
        key = self._key(path)
        async with self._client() as s3:
            await s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=contents,
                ACL=_acl(visibility),
                ContentType=mimetypes.guess_type(key)[0] or "application/octet-stream",
            )
        return True

    async def write_stream(self, path: str, chunks: AsyncIterator[bytes], visibility: Visibility) -> bool:
        # put_object needs a sized body; buffer the whole stream
        buf = bytearray()
        async for chunk in chunks:
            buf.extend(chunk)
        return await self.write(path, bytes(buf), visibility)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read(self, path: str) -> bytes | None:
        async with self._client() as s3:
            response = await s3.get_object(Bucket=self._bucket, Key=self._key(path))
            return await response["Body"].read()

    async def read_stream(self, path: str) -> AsyncIterator[bytes] | None:
        key = self._key(path)
        async with self._client() as s3:
            if await self._head(s3, key) is None:
                raise FileNotFoundError(f"File not found: {path}")

        async def _chunks() -> AsyncIterator[bytes]:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=self._bucket, Key=key)
                body = response["Body"]
                while chunk := await body.read(_CHUNK_SIZE):
                    yield chunk

        return _chunks()

    async def has(self, path: str) -> bool:
        async with self._client() as s3:
            if await self._head(s3, self._key(path)) is not None:
                return True
            return await self._dir_exists(s3, path)

    # ------------------------------------------------------------------
    # Manipulation
    # ------------------------------------------------------------------

    async def delete(self, path: str) -> bool:
        key = self._key(path)
        async with self._client() as s3:
            if await self._head(s3, key) is None:
                return False
            await s3.delete_object(Bucket=self._bucket, Key=key)
        return True

    async def copy(self, source: str, destination: str) -> bool:
        visibility = await self.get_visibility(source)
        async with self._client() as s3:
            await s3.copy_object(
                Bucket=self._bucket,
                Key=self._key(destination),
                CopySource={"Bucket": self._bucket, "Key": self._key(source)},
                ACL=_acl(visibility),
            )
        return True

    async def rename(self, source: str, destination: str) -> bool:
        if not await self.copy(source, destination):
            return False
        return await self.delete(source)

    async def create_dir(self, path: str, visibility: Visibility) -> bool:
        async with self._client() as s3:
            await s3.put_object(Bucket=self._bucket, Key=self._dir_prefix(path), Body=b"", ACL=_acl(visibility))
        return True

    async def delete_dir(self, path: str) -> bool:
        prefix = self._dir_prefix(path)
        if not prefix:
            return False
        async with self._client() as s3:
            keys: list[str] = []
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            if not keys:
                return False
            for start in range(0, len(keys), _DELETE_BATCH):
                batch = keys[start : start + _DELETE_BATCH]
                await s3.delete_objects(
                    Bucket=self._bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
        return True

    # ------------------------------------------------------------------
    # Listing / metadata
    # ------------------------------------------------------------------

    async def list_contents(self, path: str = "", recursive: bool = False) -> list[Entry]:
        prefix = self._dir_prefix(path)
        base = self._relative(prefix)
        files: dict[str, Entry] = {}
        dirs: dict[str, Entry] = {}

        params: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix}
        if not recursive:
            params["Delimiter"] = "/"

        async with self._client() as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(**params):
                for common in page.get("CommonPrefixes", []):
                    rel = self._relative(common["Prefix"])
                    dirs[rel] = Entry(path=rel, type="dir")
                for obj in page.get("Contents", []):
                    key = obj["Key"]
                    if key == prefix:
                        continue
                    rel = self._relative(key)
                    if key.endswith("/"):
                        dirs[rel] = Entry(path=rel, type="dir")
                    else:
                        files[rel] = Entry(
                            path=rel,
                            type="file",
                            size=obj.get("Size"),
                            timestamp=int(obj["LastModified"].timestamp()) if "LastModified" in obj else None,
                        )

        if recursive:
            # Emulate intermediate directories from nested keys
            for rel in list(files) + list(dirs):
                parent = posixpath.dirname(rel)
                while parent and parent != base and parent.startswith(base):
                    dirs.setdefault(parent, Entry(path=parent, type="dir"))
                    parent = posixpath.dirname(parent)

        return sorted([*dirs.values(), *files.values()], key=lambda e: e.path)

    async def get_metadata(self, path: str) -> Metadata | None:
        key = self._key(path)
        async with self._client() as s3:
            head = await self._head(s3, key)
            if head is None:
                if await self._dir_exists(s3, path):
                    return Metadata(path=self._relative(key), type="dir")
                return None
        modified = head.get("LastModified")
        return Metadata(
            path=self._relative(key),
            type="file",
            size=head.get("ContentLength"),
            timestamp=int(modified.timestamp()) if modified is not None else None,
            mimetype=head.get("ContentType") or mimetypes.guess_type(key)[0] or "application/octet-stream",
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
        async with self._client() as s3:
            response = await s3.get_object_acl(Bucket=self._bucket, Key=self._key(path))
        for grant in response.get("Grants", []):
            grantee = grant.get("Grantee", {})
            if grantee.get("URI") == _ALL_USERS and grant.get("Permission") in ("READ", "FULL_CONTROL"):
                return PUBLIC
        return PRIVATE

    async def set_visibility(self, path: str, visibility: Visibility) -> bool:
        async with self._client() as s3:
            await s3.put_object_acl(Bucket=self._bucket, Key=self._key(path), ACL=_acl(visibility))
        return True
