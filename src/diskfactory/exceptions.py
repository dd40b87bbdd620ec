# SPDX-License-Identifier: MIT
"""Exception hierarchy for diskfactory.

Callers are expected to catch by category.  Every error raised while
talking to a backend carries the original exception as ``__cause__``.
"""


class FilesystemError(Exception):
    """Base exception for all diskfactory errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(FilesystemError):
    """Missing or invalid configuration (including a missing default disk)."""


class DiskError(FilesystemError):
    """Unknown backend type or failure while constructing a disk."""


class FileWriteError(FilesystemError):
    pass


class FileReadError(FilesystemError):
    pass


class FileRenameError(FilesystemError):
    pass


class FileCopyError(FilesystemError):
    pass


class FileMoveError(FilesystemError):
    pass


class FileDeleteError(FilesystemError):
    pass


class DirectoryCreateError(FilesystemError):
    pass


class DirectoryDeleteError(FilesystemError):
    pass


class FileMetadataError(FilesystemError):
    """Visibility, metadata, size, timestamp, touch or URL failure."""
