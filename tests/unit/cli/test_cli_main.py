"""Tests for the swatchr command-line interface."""

from __future__ import annotations

from pathlib import Path

import pytest

from swatchr.cli.main import build_arg_parser, build_batch_options, run_batch_async
from swatchr.core.config.models import AppConfig


class TestArgParser:
    def test_batch_defaults(self) -> None:
        args = build_arg_parser().parse_args(["batch", "configs/"])

        assert args.cmd == "batch"
        assert args.paths == ["configs/"]
        assert args.cache is None
        assert args.parallel is None
        assert not args.resume
        assert args.config == "swatchr.yaml"

    def test_batch_flags(self) -> None:
        args = build_arg_parser().parse_args(
            [
                "batch",
                "a.yaml",
                "b.yaml",
                "--parallel",
                "4",
                "--no-cache",
                "--resume",
                "--concurrent-downloads",
                "8",
                "--cache-path",
                "state/cache.json",
            ]
        )

        assert args.paths == ["a.yaml", "b.yaml"]
        assert args.parallel == 4
        assert args.cache is False
        assert args.resume
        assert args.concurrent_downloads == 8
        assert args.cache_path == Path("state/cache.json")

    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            build_arg_parser().parse_args([])


class TestBatchOptions:
    """Tests for merging CLI flags over app settings."""

    def test_unset_flags_keep_app_values(self) -> None:
        args = build_arg_parser().parse_args(["batch", "configs/"])
        app = AppConfig(max_parallel_configs=6, granular_cache=True, cache_enabled=False)

        options = build_batch_options(args, app)

        assert options.max_parallel_configs == 6
        assert options.granular_cache
        assert not options.cache_enabled
        assert not options.force

    def test_flags_override_app_values(self) -> None:
        args = build_arg_parser().parse_args(
            ["batch", "configs/", "--parallel", "2", "--cache", "--force", "--fail-fast"]
        )
        app = AppConfig(max_parallel_configs=6, cache_enabled=False)

        options = build_batch_options(args, app)

        assert options.max_parallel_configs == 2
        assert options.cache_enabled
        assert options.force
        assert options.fail_fast

    def test_non_positive_concurrency_is_raised_to_one(self) -> None:
        args = build_arg_parser().parse_args(
            ["batch", "configs/", "--parallel", "0", "--concurrent-downloads", "-3"]
        )

        options = build_batch_options(args, AppConfig())

        assert options.max_parallel_configs == 1
        assert options.max_concurrent_downloads == 1


class TestRunBatch:
    async def test_missing_token_exits_with_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("swatchr.cli.main.configure_logging", lambda **kwargs: None)
        monkeypatch.delenv("SWATCHR_API_TOKEN", raising=False)
        args = build_arg_parser().parse_args(["batch", str(tmp_path)])

        assert await run_batch_async(args) == 1

    async def test_invalid_app_config_exits_with_error(self, tmp_path: Path) -> None:
        app_config = tmp_path / "swatchr.yaml"
        app_config.write_text("max_parallel_configs: 0\n")
        args = build_arg_parser().parse_args(
            ["batch", str(tmp_path), "--config", str(app_config)]
        )

        assert await run_batch_async(args) == 1
