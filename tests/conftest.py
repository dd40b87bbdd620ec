# SPDX-License-Identifier: MIT
"""Shared pytest fixtures for diskfactory tests."""

import pathlib

import pytest

from diskfactory.backends.factory import BackendFactory
from diskfactory.backends.memory import MemoryBackend
from diskfactory.filesystem import Filesystem


@pytest.fixture
def memory_config() -> dict:
    """Two in-memory disks, ``default`` and ``A``."""
    return {
        "default": {"backend_type": "memory"},
        "A": {"backend_type": "memory", "url_base": "https://a.example.com/files/"},
    }


@pytest.fixture
def fs(memory_config: dict) -> Filesystem:
    return Filesystem(memory_config)


@pytest.fixture
def local_root(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create a temporary root directory for the local backend."""
    root = tmp_path / "disk"
    root.mkdir()
    return root


class CountingFactory(BackendFactory):
    """Backend factory whose ``counting`` type records every construction."""

    def __init__(self) -> None:
        super().__init__()
        self.constructed: list[dict] = []

        @self.register("counting")
        def _create(settings):
            self.constructed.append(dict(settings))
            return MemoryBackend()


@pytest.fixture
def counting_factory() -> CountingFactory:
    return CountingFactory()
