"""Data types for the shared download pipeline."""

from __future__ import annotations

from pathlib import Path
import uuid

from pydantic import BaseModel, ConfigDict, Field


class FileContents(BaseModel):
    """One output file of an export.

    A file with ``source_url`` must be downloaded before it can be written;
    a file without one is local-only (generated content or already on disk).

    Attributes:
        destination: Output path relative to the config's output directory
        source_url: Remote reference to fetch (None for local-only files)
        data_file: Local path holding the bytes once resolved
        data: Inline content for generated files
        scale: Rendition scale (1.0, 2.0, 3.0, ...)
        dark: Dark-mode variant
        is_rtl: Right-to-left variant
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    destination: str
    source_url: str | None = None
    data_file: Path | None = None
    data: bytes | None = Field(default=None, repr=False)
    scale: float = 1.0
    dark: bool = False
    is_rtl: bool = False

    @property
    def is_remote(self) -> bool:
        return self.source_url is not None

    @property
    def is_resolved(self) -> bool:
        return self.source_url is None or self.data_file is not None


def _new_job_id() -> str:
    return uuid.uuid4().hex


class DownloadJob(BaseModel):
    """A config's batch of remote files, submitted to the queue as one unit.

    Lower ``priority`` is serviced first; equal priorities keep submission order.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=_new_job_id)
    config_id: str
    files: tuple[FileContents, ...]
    priority: int = 0


class DownloadJobResult(BaseModel):
    """Outcome of a completed job; files keep the job's input order."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    job_id: str
    config_id: str
    downloaded_files: tuple[FileContents, ...]
    duration_s: float = Field(ge=0.0)


class QueueStats(BaseModel):
    """Point-in-time snapshot of queue state."""

    model_config = ConfigDict(frozen=True)

    pending_jobs: int
    active_jobs: int
    active_downloads: int
    total_completed: int
    max_concurrent: int

    @property
    def utilization(self) -> float:
        """Fraction of download slots in use (0.0 - 1.0)."""
        if self.max_concurrent <= 0:
            return 0.0
        return self.active_downloads / self.max_concurrent
