"""Concurrency primitives: bounded fan-out and the shared download queue."""

from swatchr.core.pipeline.download_queue import (
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    MAX_UNCLAIMED_RESULTS,
    FileDownloader,
    SharedDownloadQueue,
)
from swatchr.core.pipeline.models import DownloadJob, DownloadJobResult, FileContents, QueueStats
from swatchr.core.pipeline.parallel import DEFAULT_MAX_PARALLEL, parallel_map_entries

__all__ = [
    # Fan-out
    "DEFAULT_MAX_PARALLEL",
    "parallel_map_entries",
    # Download queue
    "DEFAULT_MAX_CONCURRENT_DOWNLOADS",
    "MAX_UNCLAIMED_RESULTS",
    "FileDownloader",
    "SharedDownloadQueue",
    # Models
    "DownloadJob",
    "DownloadJobResult",
    "FileContents",
    "QueueStats",
]
