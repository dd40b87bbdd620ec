# SPDX-License-Identifier: MIT
"""Multi-backend file storage behind named disks.

Usage::

    from diskfactory import Filesystem

    fs = Filesystem({
        "default": {"backend_type": "local", "backend_settings": {"root": "/srv/files"}},
        "scratch": {"backend_type": "memory"},
    })
    await fs.write("hello.txt", "hi")
    data = await fs.disk("scratch").read("cache.bin")
"""

from .backends import Backend, Entry, Metadata, Visibility, backend_factory
from .cache import cache_factory
from .config import DiskConfig, configure_logging, load_config, load_config_from_env
from .exceptions import (
    ConfigurationError,
    DirectoryCreateError,
    DirectoryDeleteError,
    DiskError,
    FileCopyError,
    FileDeleteError,
    FileMetadataError,
    FileMoveError,
    FileReadError,
    FileRenameError,
    FilesystemError,
    FileWriteError,
)
from .filesystem import DiskHandle, Filesystem
from .registry import DiskRegistry

__all__ = [
    "Backend",
    "ConfigurationError",
    "DirectoryCreateError",
    "DirectoryDeleteError",
    "DiskConfig",
    "DiskError",
    "DiskHandle",
    "DiskRegistry",
    "Entry",
    "FileCopyError",
    "FileDeleteError",
    "FileMetadataError",
    "FileMoveError",
    "FileReadError",
    "FileRenameError",
    "FileWriteError",
    "Filesystem",
    "FilesystemError",
    "Metadata",
    "Visibility",
    "backend_factory",
    "cache_factory",
    "configure_logging",
    "load_config",
    "load_config_from_env",
]
