"""Cross-config download queue.

Every config in a batch submits its remote files as one DownloadJob. The
queue services jobs in priority order (lower first, FIFO within a priority)
and bounds the number of concurrent downloads across all jobs, so parallel
configs share one pool of connections instead of each opening their own.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import Sequence
import heapq
import itertools
import logging
import time
from typing import Protocol

from swatchr.core.errors import DownloadJobCancelledError, UnknownDownloadJobError
from swatchr.core.pipeline.models import DownloadJob, DownloadJobResult, FileContents, QueueStats
from swatchr.core.pipeline.parallel import parallel_map_entries

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_DOWNLOADS = 20
MAX_UNCLAIMED_RESULTS = 100


class FileDownloader(Protocol):
    """Resolves a remote file reference to a local file."""

    async def download_file(self, file: FileContents) -> FileContents: ...


class SharedDownloadQueue:
    """Priority-ordered, globally bounded download pipeline.

    Every submitted job gets a future up front. The future settles exactly once
    with a DownloadJobResult or the job's exception, and stays retrievable
    until ``wait_for_completion`` claims it. At most ``max_unclaimed_results``
    settled-but-unclaimed jobs are kept; the oldest are evicted first.

    Args:
        downloader: Object with ``async download_file(FileContents) -> FileContents``
        max_concurrent_downloads: Global bound on simultaneous file downloads
        max_active_jobs: Bound on simultaneously running jobs (defaults to
            ``max_concurrent_downloads``)
        max_unclaimed_results: Retention bound for settled, unclaimed jobs

    Example:
        >>> queue = SharedDownloadQueue(downloader, max_concurrent_downloads=10)
        >>> job_id = await queue.submit_and_process(DownloadJob(config_id="icons", files=files))
        >>> result = await queue.wait_for_completion(job_id)
    """

    def __init__(
        self,
        downloader: FileDownloader,
        max_concurrent_downloads: int = DEFAULT_MAX_CONCURRENT_DOWNLOADS,
        max_active_jobs: int | None = None,
        max_unclaimed_results: int = MAX_UNCLAIMED_RESULTS,
    ) -> None:
        self.downloader = downloader
        self.max_concurrent_downloads = max(1, max_concurrent_downloads)
        self.max_active_jobs = max(1, max_active_jobs or self.max_concurrent_downloads)
        self.max_unclaimed_results = max(1, max_unclaimed_results)

        self._pending: list[tuple[int, int, DownloadJob]] = []
        self._sequence = itertools.count()
        self._futures: dict[str, asyncio.Future[DownloadJobResult]] = {}
        self._unclaimed: OrderedDict[str, None] = OrderedDict()
        self._active: dict[str, asyncio.Task[None]] = {}
        self._slots = asyncio.Semaphore(self.max_concurrent_downloads)
        self._active_downloads = 0
        self._total_completed = 0
        self._cancelled_configs: set[str] = set()

    # Submission

    def submit(self, job: DownloadJob) -> str:
        """Enqueue ``job`` without starting it. Returns the job id."""
        future: asyncio.Future[DownloadJobResult] = asyncio.get_running_loop().create_future()
        self._futures[job.id] = future

        if job.config_id in self._cancelled_configs:
            logger.debug(f"Job {job.id} rejected: config '{job.config_id}' is cancelled")
            self._settle(job.id, error=DownloadJobCancelledError(job.id, job.config_id))
            return job.id

        heapq.heappush(self._pending, (job.priority, next(self._sequence), job))
        logger.debug(
            f"Job submitted: {job.id} config={job.config_id} files={len(job.files)} "
            f"priority={job.priority} pending={len(self._pending)}"
        )
        return job.id

    async def submit_and_process(self, job: DownloadJob) -> str:
        """Enqueue ``job`` and start dispatching. Returns without waiting for downloads."""
        job_id = self.submit(job)
        self._dispatch()
        return job_id

    async def wait_for_completion(self, job_id: str) -> DownloadJobResult:
        """Wait for a job and claim its result.

        Raises:
            UnknownDownloadJobError: The id was never submitted, already claimed,
                or its result was evicted
            DownloadJobCancelledError: The job was dropped by ``cancel_config``
            Exception: Whatever the job's download failed with
        """
        future = self._futures.get(job_id)
        if future is None:
            raise UnknownDownloadJobError(job_id)
        try:
            # Shielded so that a cancelled waiter does not cancel the job.
            return await asyncio.shield(future)
        finally:
            if future.done():
                self._futures.pop(job_id, None)
                self._unclaimed.pop(job_id, None)

    async def download(
        self,
        files: Sequence[FileContents],
        config_id: str,
        priority: int = 0,
    ) -> list[FileContents]:
        """Resolve ``files`` through the queue and return them in input order.

        When no file has a remote source the queue is bypassed entirely.
        """
        if not any(f.is_remote for f in files):
            return list(files)
        job = DownloadJob(config_id=config_id, files=tuple(files), priority=priority)
        job_id = await self.submit_and_process(job)
        result = await self.wait_for_completion(job_id)
        return list(result.downloaded_files)

    def cancel_config(self, config_id: str) -> int:
        """Drop pending jobs for ``config_id`` and reject its future submissions.

        Jobs already running are left to finish. Returns the number of jobs dropped.
        """
        self._cancelled_configs.add(config_id)
        dropped = [entry for entry in self._pending if entry[2].config_id == config_id]
        if dropped:
            self._pending = [entry for entry in self._pending if entry[2].config_id != config_id]
            heapq.heapify(self._pending)
        for _, _, job in dropped:
            self._settle(job.id, error=DownloadJobCancelledError(job.id, config_id))
        logger.info(f"Cancelled {len(dropped)} pending job(s) for config: {config_id}")
        return len(dropped)

    def stats(self) -> QueueStats:
        return QueueStats(
            pending_jobs=len(self._pending),
            active_jobs=len(self._active),
            active_downloads=self._active_downloads,
            total_completed=self._total_completed,
            max_concurrent=self.max_concurrent_downloads,
        )

    async def aclose(self) -> None:
        """Cancel running jobs and fail everything still pending."""
        for _, _, job in self._pending:
            self._settle(job.id, error=DownloadJobCancelledError(job.id, job.config_id))
        self._pending.clear()
        tasks = list(self._active.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for future in self._futures.values():
            if future.done() and not future.cancelled():
                future.exception()

    # Internals

    def _dispatch(self) -> None:
        while self._pending and len(self._active) < self.max_active_jobs:
            _, _, job = heapq.heappop(self._pending)
            self._active[job.id] = asyncio.create_task(
                self._run_job(job), name=f"download-job-{job.id}"
            )

    async def _run_job(self, job: DownloadJob) -> None:
        start = time.perf_counter()
        try:
            files = await parallel_map_entries(
                job.files, self._download_one, self.max_concurrent_downloads
            )
        except asyncio.CancelledError:
            self._settle(job.id, error=DownloadJobCancelledError(job.id, job.config_id))
            raise
        except Exception as e:
            logger.error(f"Download job {job.id} for config '{job.config_id}' failed: {e}")
            self._settle(job.id, error=e)
        else:
            result = DownloadJobResult(
                job_id=job.id,
                config_id=job.config_id,
                downloaded_files=tuple(files),
                duration_s=time.perf_counter() - start,
            )
            logger.debug(
                f"Job {job.id} complete: {len(files)} file(s) in {result.duration_s:.2f}s"
            )
            self._settle(job.id, result=result)
        finally:
            self._active.pop(job.id, None)
            self._dispatch()

    async def _download_one(self, file: FileContents) -> FileContents:
        if not file.is_remote:
            return file
        async with self._slots:
            self._active_downloads += 1
            try:
                downloaded = await self.downloader.download_file(file)
            finally:
                self._active_downloads -= 1
        self._total_completed += 1
        return downloaded

    def _settle(
        self,
        job_id: str,
        *,
        result: DownloadJobResult | None = None,
        error: BaseException | None = None,
    ) -> None:
        future = self._futures.get(job_id)
        if future is None or future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)  # type: ignore[arg-type]
        self._unclaimed[job_id] = None
        self._evict_unclaimed()

    def _evict_unclaimed(self) -> None:
        while len(self._unclaimed) > self.max_unclaimed_results:
            oldest, _ = self._unclaimed.popitem(last=False)
            future = self._futures.pop(oldest, None)
            if future is not None and not future.cancelled():
                # Mark a stored exception as retrieved so asyncio does not warn about it.
                future.exception()
            logger.debug(f"Evicted unclaimed result for job {oldest}")
