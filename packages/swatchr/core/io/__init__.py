"""Filesystem abstraction layer for swatchr.

Async-first, atomic-write filesystem access, with an in-memory fake for tests.

Example:
    >>> from swatchr.core.io import RealFileSystem, absolute_path
    >>> fs = RealFileSystem()
    >>> path = fs.join(absolute_path("/tmp"), "swatchr", "state.json")
    >>> await fs.write_text(path, "{}")
    >>> content = await fs.read_text(path)
"""

from .impl_fake import FakeFileSystem
from .impl_real import RealFileSystem
from .models import AbsolutePath, WriteResult, absolute_path
from .protocols import FileSystem
from .utils import sanitize_path_component

__all__ = [
    # Path types and constructors
    "AbsolutePath",
    "absolute_path",
    # Result types
    "WriteResult",
    # Protocols
    "FileSystem",
    # Implementations
    "RealFileSystem",
    "FakeFileSystem",
    # Utilities
    "sanitize_path_component",
]
