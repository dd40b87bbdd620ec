# SPDX-License-Identifier: MIT
"""Backend factory.

Maps a configuration-supplied ``backend_type`` to a constructor.  Each
registration declares the settings keys it requires (dot notation over
nested settings, e.g. ``credentials.key``); they are checked before the
constructor runs so malformed settings never reach the backend library.

Usage::

    from diskfactory.backends import backend_factory

    backend = backend_factory.construct("local", {"root": "/srv/files"})

Registering a custom backend::

    @backend_factory.register("webdav", required_keys=("url",))
    def create_webdav(settings):
        return WebDavBackend(settings["url"])
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..exceptions import ConfigurationError, DiskError
from ..utils import dot_get, missing_keys
from .local import LocalBackend
from .memory import MemoryBackend
from .protocol import Backend

logger = logging.getLogger("diskfactory")

C = TypeVar("C", bound=Callable[..., Backend])

BackendConstructor = Callable[[Mapping[str, Any]], Backend]


@dataclass(frozen=True)
class Registration(Generic[C]):
    constructor: C
    required_keys: tuple[str, ...]


class ConstructorTable(Generic[C]):
    """Name -> constructor table with required-key validation.

    Args:
        kind: Human-readable noun used in error messages ("adapter", "cache").
    """

    def __init__(self, kind: str) -> None:
        self._kind = kind
        self._registrations: dict[str, Registration[C]] = {}

    def register(self, name: str, required_keys: Iterable[str] = ()) -> Callable[[C], C]:
        """Decorator registering *constructor* under *name* (replacing any previous one)."""

        def decorator(constructor: C) -> C:
            self._registrations[name] = Registration(constructor, tuple(required_keys))
            logger.debug("Registered %s type %r", self._kind, name)
            return constructor

        return decorator

    def unregister(self, name: str) -> None:
        self._registrations.pop(name, None)

    def is_registered(self, name: str) -> bool:
        return name in self._registrations

    @property
    def types(self) -> list[str]:
        return list(self._registrations)

    def required_keys(self, name: str) -> tuple[str, ...]:
        return self._lookup(name).required_keys

    def _lookup(self, name: str) -> Registration[C]:
        try:
            return self._registrations[name]
        except KeyError:
            raise DiskError(f"Disk {self._kind} does not exist ({name})") from None

    def _resolve(self, name: str, settings: Mapping[str, Any]) -> C:
        """Return the constructor for *name* after validating *settings*.

        Raises:
            DiskError: If *name* is not registered.
            ConfigurationError: If any required key is missing from *settings*.
        """
        registration = self._lookup(name)
        missing = missing_keys(settings, registration.required_keys)
        if missing:
            raise ConfigurationError(f"Invalid {self._kind} configuration for {name!r}: missing {', '.join(missing)}")
        return registration.constructor


class BackendFactory(ConstructorTable[BackendConstructor]):
    """Registry of storage backend constructors."""

    def __init__(self) -> None:
        super().__init__("adapter")

    def construct(self, backend_type: str, settings: Mapping[str, Any]) -> Backend:
        """Validate *settings* and build a backend of *backend_type*."""
        constructor = self._resolve(backend_type, settings)
        return constructor(settings)


backend_factory = BackendFactory()
"""Default factory with the built-in ``local``, ``memory``, ``ftp``, ``s3`` and ``digitalocean`` types."""


@backend_factory.register("local", required_keys=("root",))
def _create_local(settings: Mapping[str, Any]) -> Backend:
    return LocalBackend(settings["root"], permissions=settings.get("permissions"))


@backend_factory.register("memory")
def _create_memory(settings: Mapping[str, Any]) -> Backend:
    return MemoryBackend()


_FTP_OPTIONS = ("port", "root", "passive", "ssl", "timeout", "permissions")


@backend_factory.register("ftp", required_keys=("host", "username", "password"))
def _create_ftp(settings: Mapping[str, Any]) -> Backend:
    from .ftp import FtpBackend

    options = {name: settings[name] for name in _FTP_OPTIONS if name in settings}
    return FtpBackend(settings["host"], settings["username"], settings["password"], **options)


_S3_KEYS = ("credentials.key", "credentials.secret", "region", "bucket")


@backend_factory.register("s3", required_keys=_S3_KEYS)
def _create_s3(settings: Mapping[str, Any]) -> Backend:
    return _s3_backend(settings)


@backend_factory.register("digitalocean", required_keys=(*_S3_KEYS, "endpoint"))
def _create_digitalocean(settings: Mapping[str, Any]) -> Backend:
    return _s3_backend(settings)


def _s3_backend(settings: Mapping[str, Any]) -> Backend:
    try:
        from .s3 import S3Backend
    except ImportError as exc:
        raise RuntimeError(
            "S3 storage backend requires extra dependencies. Install with: pip install 'diskfactory[s3]'"
        ) from exc
    return S3Backend(
        bucket=settings["bucket"],
        region=settings["region"],
        key=dot_get(settings, "credentials.key"),
        secret=dot_get(settings, "credentials.secret"),
        endpoint=settings.get("endpoint"),
        prefix=settings.get("prefix", ""),
    )
