# SPDX-License-Identifier: MIT
"""Storage backends and the factory that builds them.

The ``ftp`` and ``s3`` backends import their client libraries lazily, so
only ``local`` and ``memory`` are loaded eagerly.
"""

from .factory import BackendFactory, backend_factory
from .local import LocalBackend
from .memory import MemoryBackend
from .protocol import Backend, Entry, Metadata, Visibility

__all__ = [
    "Backend",
    "BackendFactory",
    "Entry",
    "LocalBackend",
    "MemoryBackend",
    "Metadata",
    "Visibility",
    "backend_factory",
]
