"""Path wrappers and result types for the filesystem layer."""

from pathlib import Path
from typing import NewType

from pydantic import BaseModel, Field

AbsolutePath = NewType("AbsolutePath", Path)


def absolute_path(path: str | Path) -> AbsolutePath:
    """
    Resolve and wrap a path as an AbsolutePath.

    Relative inputs are resolved against the current working directory, which
    is where the checkpoint and cache files live by default.

    Example:
        >>> p = absolute_path("/tmp/cache")
        >>> assert Path(p).is_absolute()
    """
    return AbsolutePath(Path(path).expanduser().resolve())


class WriteResult(BaseModel):
    """Result of a filesystem write operation."""

    path: str = Field(description="Final path written")
    bytes_written: int = Field(description="Number of bytes written", ge=0)
    duration_ms: float = Field(description="Operation duration in milliseconds", ge=0.0)
