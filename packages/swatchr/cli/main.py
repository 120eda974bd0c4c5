"""Command-line interface for swatchr."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
import sys

import httpx
from rich.console import Console

from swatchr.core.api.design import DesignApiClient, HttpFileDownloader
from swatchr.core.api.http import AsyncApiClient, HttpClientConfig, RetryPolicy
from swatchr.core.batch import BatchOptions, BatchRunner, render_batch_summary
from swatchr.core.config import load_app_config, resolve_api_token
from swatchr.core.config.models import AppConfig
from swatchr.core.errors import SwatchrError
from swatchr.core.io import RealFileSystem, absolute_path
from swatchr.core.utils.logging import configure_logging

console = Console()
logger = logging.getLogger(__name__)


def _at_least_one(value: int | None) -> int | None:
    return None if value is None else max(1, value)


def build_batch_options(args: argparse.Namespace, app_config: AppConfig) -> BatchOptions:
    """Merge CLI flags over app settings (unset flags keep the app value).

    Concurrency flags below 1 are raised to 1.
    """
    return BatchOptions.from_app_config(
        app_config,
        max_parallel_configs=_at_least_one(args.parallel),
        max_concurrent_downloads=_at_least_one(args.concurrent_downloads),
        fail_fast=args.fail_fast,
        cache_enabled=args.cache,
        granular_cache=args.granular_cache or None,
        force=args.force,
        cache_path=args.cache_path,
    )


async def run_batch_async(args: argparse.Namespace) -> int:
    """Run a batch export.

    Returns:
        Exit code (0 when every config succeeded, 1 otherwise)
    """
    try:
        app_config = load_app_config(args.config)
    except SwatchrError as e:
        console.print(f"[red]ERROR: Could not load app config: {e}[/red]")
        return 1

    configure_logging(
        level="DEBUG" if args.verbose else app_config.log_level,
        structured=app_config.log_structured,
    )

    token = resolve_api_token(app_config)
    if not token:
        console.print(f"[red]ERROR: {app_config.api_token_env} environment variable not set[/red]")
        console.print(f"\n  export {app_config.api_token_env}='your-token-here'")
        return 1

    options = build_batch_options(args, app_config)
    retry_policy = RetryPolicy(max_attempts=app_config.max_retries)
    paths = [Path(p) for p in args.paths]

    console.print(f"[bold]📦 Exporting from {len(paths)} path(s)...[/bold]")
    download_http = AsyncApiClient(
        HttpClientConfig(
            base_url=app_config.api_base_url,
            timeout=httpx.Timeout(app_config.api_timeout_seconds, connect=5.0),
        ),
        retry_policy=retry_policy,
    )
    async with (
        DesignApiClient.from_token(
            token,
            base_url=app_config.api_base_url,
            timeout_s=app_config.api_timeout_seconds,
            retry_policy=retry_policy,
        ) as api,
        download_http,
    ):
        runner = BatchRunner(
            client=api,
            downloader=HttpFileDownloader(download_http, absolute_path(app_config.download_dir)),
            fs=RealFileSystem(),
            options=options,
        )
        try:
            result = await runner.run(paths, resume=args.resume)
        except SwatchrError as e:
            console.print(f"[red]ERROR: {e}[/red]")
            return 1

    render_batch_summary(console, result)
    return 0 if result.all_succeeded else 1


def run_batch(args: argparse.Namespace) -> None:
    exit_code = asyncio.run(run_batch_async(args))
    sys.exit(exit_code)


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for CLI."""
    p = argparse.ArgumentParser(
        prog="swatchr",
        description="swatchr - export icons, images and colors from design files",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    batch = sub.add_parser("batch", help="Export every config in the given files/directories")
    batch.add_argument("paths", nargs="+", help="Config files or directories of configs")
    batch.add_argument("--parallel", type=int, default=None, help="Configs processed at once")
    batch.add_argument(
        "--fail-fast", action="store_true", help="Run sequentially and stop at the first failure"
    )
    batch.add_argument(
        "--resume", action="store_true", help="Skip configs completed by an interrupted run"
    )
    batch.add_argument(
        "--cache",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Skip files unchanged since the last export (default: app config)",
    )
    batch.add_argument("--force", action="store_true", help="Export even if nothing changed")
    batch.add_argument("--cache-path", type=Path, default=None, help="Tracking cache file")
    batch.add_argument(
        "--granular-cache", action="store_true", help="Skip unchanged components, not just files"
    )
    batch.add_argument(
        "--concurrent-downloads",
        type=int,
        default=None,
        help="Concurrent downloads across the whole batch",
    )
    batch.add_argument(
        "--config",
        default="swatchr.yaml",
        help="Path to app config (default: swatchr.yaml, optional)",
    )
    batch.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    return p


def main() -> None:
    """Main entry point for CLI."""
    p = build_arg_parser()
    args = p.parse_args()

    if args.cmd == "batch":
        run_batch(args)


if __name__ == "__main__":
    main()
