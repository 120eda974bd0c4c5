"""Config-level batch executor.

Runs a handler over many configs, either in parallel (failures isolated to
their config) or sequentially with fail-fast.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
import logging
import time

from swatchr.core.batch.result import ConfigFile, ConfigResult, ExportStats
from swatchr.core.pipeline.parallel import parallel_map_entries

logger = logging.getLogger(__name__)

ConfigHandler = Callable[[ConfigFile, int], Awaitable[ExportStats]]
ResultCallback = Callable[[ConfigResult], Awaitable[None]]


class BatchExecutor:
    """Executes a config handler across a batch.

    The handler receives the config and its position in the batch (used as the
    download priority, so earlier configs get their files first). Any exception
    it raises becomes a failed ConfigResult; the batch itself only aborts on
    cancellation.

    Args:
        max_parallel: Configs in flight at once (values < 1 become 1)
        fail_fast: Run sequentially and stop after the first failure

    Example:
        >>> executor = BatchExecutor(max_parallel=3)
        >>> results = await executor.execute(configs, handler.process)
        >>> failed = [r for r in results if not r.success]
    """

    def __init__(self, max_parallel: int = 3, fail_fast: bool = False) -> None:
        self.max_parallel = max(1, max_parallel)
        self.fail_fast = fail_fast

    async def _run_one(
        self,
        config: ConfigFile,
        index: int,
        handler: ConfigHandler,
        on_result: ResultCallback | None,
    ) -> ConfigResult:
        start = time.perf_counter()
        logger.info(f"Processing config {config.name} ({config.path})")
        try:
            stats = await handler(config, index)
        except Exception as e:
            duration = time.perf_counter() - start
            logger.error(f"Config {config.name} failed after {duration:.2f}s: {e}")
            logger.debug(f"Config {config.name} failure detail", exc_info=True)
            result = ConfigResult.failed(config, e, duration)
        else:
            duration = time.perf_counter() - start
            logger.info(
                f"Config {config.name} done in {duration:.2f}s: "
                f"{stats.processed} processed, {stats.skipped} skipped"
            )
            result = ConfigResult.succeeded(config, stats, duration)

        if on_result is not None:
            await on_result(result)
        return result

    async def execute(
        self,
        configs: Sequence[ConfigFile],
        handler: ConfigHandler,
        on_result: ResultCallback | None = None,
    ) -> list[ConfigResult]:
        """Run ``handler`` for every config.

        Args:
            configs: Configs to process
            handler: ``async (config, index) -> ExportStats``
            on_result: Awaited with each result as soon as it is known

        Returns:
            Results in config order. In fail-fast mode, configs after the first
            failure are not run and have no result.
        """
        if self.fail_fast:
            results: list[ConfigResult] = []
            for index, config in enumerate(configs):
                result = await self._run_one(config, index, handler, on_result)
                results.append(result)
                if not result.success:
                    logger.warning(
                        f"Stopping batch after failure in {config.name} "
                        f"({len(configs) - index - 1} config(s) not run)"
                    )
                    break
            return results

        indexed = list(enumerate(configs))
        return await parallel_map_entries(
            indexed,
            lambda item: self._run_one(item[1], item[0], handler, on_result),
            self.max_parallel,
        )
