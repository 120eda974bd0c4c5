"""Protocol for async filesystem operations."""

from typing import Protocol

from .models import AbsolutePath, WriteResult


class FileSystem(Protocol):
    """
    Async filesystem used by the cache, checkpoint and discovery code.

    Implementations must make ``write_text``/``write_bytes`` atomic: readers
    either see the previous content or the complete new content.
    """

    def join(self, base: AbsolutePath, *parts: str) -> AbsolutePath:
        """
        Safely join path components.

        Raises:
            ValueError: If result escapes base directory
        """
        ...

    async def exists(self, path: AbsolutePath) -> bool:
        """Check if path exists (file or directory)."""
        ...

    async def is_file(self, path: AbsolutePath) -> bool:
        """Check if path exists and is a file."""
        ...

    async def is_dir(self, path: AbsolutePath) -> bool:
        """Check if path exists and is a directory."""
        ...

    async def read_text(self, path: AbsolutePath, encoding: str = "utf-8") -> str:
        """
        Read text file contents.

        Raises:
            FileNotFoundError: If file doesn't exist
            OSError: On read failure
        """
        ...

    async def read_bytes(self, path: AbsolutePath) -> bytes:
        """Read binary file contents."""
        ...

    async def write_text(
        self,
        path: AbsolutePath,
        content: str,
        encoding: str = "utf-8",
    ) -> WriteResult:
        """
        Atomically write text to file, creating parent directories.

        Raises:
            OSError: On write failure
        """
        ...

    async def write_bytes(self, path: AbsolutePath, content: bytes) -> WriteResult:
        """Atomically write binary content to file."""
        ...

    async def mkdirs(self, path: AbsolutePath, exist_ok: bool = True) -> None:
        """Create directory and parents."""
        ...

    async def listdir(self, path: AbsolutePath) -> list[str]:
        """
        List immediate children of a directory (names only).

        Raises:
            FileNotFoundError: If directory doesn't exist
        """
        ...

    async def remove(self, path: AbsolutePath) -> None:
        """
        Remove a file.

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        ...
