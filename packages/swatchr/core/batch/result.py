"""Result types for batch execution.

Immutable per-config and per-batch results. Handlers never need to build
failure results themselves: the executor turns exceptions into them.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from swatchr.core.caching.change_detection import GranularCacheStats


class ConfigFile(BaseModel):
    """A discovered config file."""

    model_config = ConfigDict(frozen=True)

    path: Path
    name: str

    @classmethod
    def from_path(cls, path: Path) -> ConfigFile:
        return cls(path=path, name=path.stem)

    @property
    def key(self) -> str:
        """Stable identifier used by the checkpoint and the download queue."""
        return str(self.path)


class ExportStats(BaseModel):
    """Work done for one config (or, summed, for a batch).

    Attributes:
        processed: Units of work exported
        skipped: Units skipped because the cache showed no change
        failed: Units that could not be exported
        downloaded: Remote files fetched
        computed_node_hashes: file_id -> node_id -> fingerprint to record in the cache
        file_versions: file_id -> (version, file name) exported
        granular: Per-node cache counts
    """

    model_config = ConfigDict(frozen=True)

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    downloaded: int = 0
    computed_node_hashes: dict[str, dict[str, str]] = Field(default_factory=dict)
    file_versions: dict[str, tuple[str, str | None]] = Field(default_factory=dict)
    granular: GranularCacheStats = Field(default_factory=GranularCacheStats)

    def __add__(self, other: ExportStats) -> ExportStats:
        hashes = {file_id: dict(nodes) for file_id, nodes in self.computed_node_hashes.items()}
        for file_id, nodes in other.computed_node_hashes.items():
            hashes.setdefault(file_id, {}).update(nodes)
        return ExportStats(
            processed=self.processed + other.processed,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
            downloaded=self.downloaded + other.downloaded,
            computed_node_hashes=hashes,
            file_versions={**self.file_versions, **other.file_versions},
            granular=self.granular + other.granular,
        )


class ConfigResult(BaseModel):
    """Outcome of one config."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    config: ConfigFile
    success: bool
    stats: ExportStats = Field(default_factory=ExportStats)
    error: str | None = None
    error_type: str | None = None
    duration_s: float = 0.0

    @classmethod
    def succeeded(
        cls, config: ConfigFile, stats: ExportStats, duration_s: float = 0.0
    ) -> ConfigResult:
        return cls(config=config, success=True, stats=stats, duration_s=duration_s)

    @classmethod
    def failed(
        cls, config: ConfigFile, error: BaseException, duration_s: float = 0.0
    ) -> ConfigResult:
        return cls(
            config=config,
            success=False,
            error=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            duration_s=duration_s,
        )


class BatchResult(BaseModel):
    """Aggregate outcome of a batch run."""

    model_config = ConfigDict(frozen=True)

    results: tuple[ConfigResult, ...] = ()
    skipped_configs: tuple[ConfigFile, ...] = Field(
        default=(), description="Configs already completed according to the checkpoint"
    )
    started_at: datetime
    finished_at: datetime
    resumed: bool = False

    @property
    def duration_s(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def successes(self) -> list[ConfigResult]:
        return [r for r in self.results if r.success]

    @property
    def failures(self) -> list[ConfigResult]:
        return [r for r in self.results if not r.success]

    @property
    def success_count(self) -> int:
        return len(self.successes)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_configs)

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0

    @property
    def total_stats(self) -> ExportStats:
        total = ExportStats()
        for result in self.results:
            total = total + result.stats
        return total
