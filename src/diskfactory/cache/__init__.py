# SPDX-License-Identifier: MIT
"""Cache decorators for storage backends."""

from .factory import CacheFactory, cache_factory
from .memory import MemoryCache

__all__ = ["CacheFactory", "MemoryCache", "cache_factory"]
