"""Integration tests for BatchRunner.

Runs whole batches against real temporary directories with the design API and
downloader faked, checking outputs, the tracking cache and the checkpoint
across consecutive runs.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from swatchr.core.api.design import ComponentsEndpoint, FileVariables, ImageUrlsEndpoint
from swatchr.core.batch import BatchOptions, BatchRunner
from swatchr.core.batch.checkpoint import CHECKPOINT_FILENAME
from swatchr.core.caching.store import TrackingCacheStore
from swatchr.core.io import RealFileSystem, absolute_path
from tests.conftest import FakeDesignClient, FakeDownloader, make_node

ICONS = """\
name: icons
file_id: f1
output_dir: out/icons
assets:
  - kind: icons
    frame_name: Icons
"""

COLORS = """\
name: colors
file_id: f2
output_dir: out/colors
assets:
  - kind: colors
    variables_collection: Brand
"""

BRAND_VARIABLES = {
    "variables": {
        "V1": {
            "id": "V1",
            "name": "brand/primary",
            "resolvedType": "COLOR",
            "valuesByMode": {"m1": {"r": 0, "g": 0, "b": 0, "a": 1}},
            "variableCollectionId": "C1",
        }
    },
    "variableCollections": {
        "C1": {
            "id": "C1",
            "name": "Brand",
            "modes": [{"modeId": "m1", "name": "Light"}],
            "variableIds": ["V1"],
        }
    },
}


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path.resolve()
    (root / "configs").mkdir()
    (root / "state").mkdir()
    return root


@pytest.fixture
def api(design_client: FakeDesignClient, icon_components: list) -> FakeDesignClient:
    design_client.add_file("f1", "v1", icon_components, name="Icons")
    design_client.add_file("f2", "v1", name="Tokens")
    return design_client


def make_runner(
    workspace: Path, api: FakeDesignClient, downloader: FakeDownloader, **options: object
) -> BatchRunner:
    return BatchRunner(
        client=api,
        downloader=downloader,
        fs=RealFileSystem(),
        options=BatchOptions(cache_path=workspace / "state" / "cache.json", **options),
        state_dir=absolute_path(workspace / "state"),
    )


async def load_cache(workspace: Path):
    return await TrackingCacheStore(RealFileSystem()).load(
        absolute_path(workspace / "state" / "cache.json")
    )


class TestIncrementalExport:
    """Consecutive runs over the same configs."""

    async def test_second_run_skips_unchanged_files(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        (workspace / "configs" / "icons.yaml").write_text(ICONS)
        configs = [workspace / "configs"]

        first = await make_runner(workspace, api, downloader).run(configs)

        out = workspace / "configs" / "out" / "icons" / "icons"
        assert first.all_succeeded
        assert first.total_stats.processed == 3
        assert sorted(p.name for p in out.iterdir()) == [
            "arrow-left.svg",
            "arrow-right.svg",
            "close.svg",
        ]
        assert (out / "close.svg").read_bytes() == b"bytes:https://cdn.test/f1/1:3@1.svg"
        assert (await load_cache(workspace)).cached_version("f1") == "v1"
        assert not (workspace / "state" / CHECKPOINT_FILENAME).exists()

        second = await make_runner(workspace, api, downloader).run(configs)

        assert second.all_succeeded
        assert second.total_stats.processed == 0
        assert second.total_stats.skipped == 1
        assert len(downloader.downloaded) == 3
        assert len(api.calls_of(ComponentsEndpoint)) == 1
        assert len(api.calls_of(ImageUrlsEndpoint)) == 1

    async def test_new_version_is_exported_again(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader, icon_components
    ) -> None:
        (workspace / "configs" / "icons.yaml").write_text(ICONS)
        configs = [workspace / "configs"]
        await make_runner(workspace, api, downloader).run(configs)

        api.add_file("f1", "v2", icon_components, name="Icons")
        result = await make_runner(workspace, api, downloader).run(configs)

        assert result.total_stats.processed == 3
        assert (await load_cache(workspace)).cached_version("f1") == "v2"

    async def test_force_exports_without_changes(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        (workspace / "configs" / "icons.yaml").write_text(ICONS)
        configs = [workspace / "configs"]
        await make_runner(workspace, api, downloader).run(configs)

        result = await make_runner(workspace, api, downloader, force=True).run(configs)

        assert result.total_stats.processed == 3
        assert len(downloader.downloaded) == 6

    async def test_force_with_granular_cache_exports_every_node(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        api.nodes["f1"] = {
            "1:1": make_node("arrow-left"),
            "1:2": make_node("arrow-right"),
            "1:3": make_node("close"),
        }
        (workspace / "configs" / "icons.yaml").write_text(ICONS)
        configs = [workspace / "configs"]
        await make_runner(workspace, api, downloader, granular_cache=True).run(configs)
        assert set((await load_cache(workspace)).node_hashes("f1")) == {"1:1", "1:2", "1:3"}

        result = await make_runner(
            workspace, api, downloader, granular_cache=True, force=True
        ).run(configs)

        assert result.total_stats.processed == 3
        assert result.total_stats.skipped == 0
        assert len(downloader.downloaded) == 6
        assert set((await load_cache(workspace)).node_hashes("f1")) == {"1:1", "1:2", "1:3"}

    async def test_cache_disabled_writes_no_cache(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        (workspace / "configs" / "icons.yaml").write_text(ICONS)

        result = await make_runner(workspace, api, downloader, cache_enabled=False).run(
            [workspace / "configs"]
        )

        assert result.total_stats.processed == 3
        assert not (workspace / "state" / "cache.json").exists()


class TestFailuresAndResume:
    """A failing config keeps the checkpoint so the next run can resume."""

    async def test_failed_config_resumes(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        (workspace / "configs" / "icons.yaml").write_text(ICONS)
        (workspace / "configs" / "colors.yaml").write_text(COLORS)
        configs = [workspace / "configs"]

        first = await make_runner(workspace, api, downloader).run(configs)

        assert [r.config.name for r in first.failures] == ["colors"]
        assert first.failures[0].error_type == "CollectionNotFoundError"
        assert (workspace / "state" / CHECKPOINT_FILENAME).exists()
        cache = await load_cache(workspace)
        assert cache.cached_version("f1") == "v1"
        assert cache.cached_version("f2") is None

        api.variables["f2"] = FileVariables.model_validate(BRAND_VARIABLES)
        second = await make_runner(workspace, api, downloader).run(configs, resume=True)

        assert second.resumed
        assert [c.name for c in second.skipped_configs] == ["icons"]
        assert [r.config.name for r in second.results] == ["colors"]
        assert second.all_succeeded
        palette = json.loads(
            (workspace / "configs" / "out" / "colors" / "colors" / "Brand.json").read_text()
        )
        assert palette == {"brand/primary": {"Light": "#000000"}}
        assert not (workspace / "state" / CHECKPOINT_FILENAME).exists()
        assert (await load_cache(workspace)).cached_version("f2") == "v1"

    async def test_without_resume_everything_runs_again(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        (workspace / "configs" / "icons.yaml").write_text(ICONS)
        (workspace / "configs" / "colors.yaml").write_text(COLORS)
        configs = [workspace / "configs"]
        await make_runner(workspace, api, downloader).run(configs)

        second = await make_runner(workspace, api, downloader).run(configs, resume=False)

        assert not second.resumed
        assert second.skipped_configs == ()
        assert [r.config.name for r in second.results] == ["colors", "icons"]

    async def test_invalid_config_is_reported_not_fatal(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        (workspace / "configs" / "icons.yaml").write_text(ICONS)
        (workspace / "configs" / "broken.yaml").write_text("name: broken\n")

        result = await make_runner(workspace, api, downloader).run([workspace / "configs"])

        assert result.success_count == 1
        assert [r.config.name for r in result.failures] == ["broken"]
        assert result.failures[0].error_type == "ConfigLoadError"

    async def test_fail_fast_stops_batch(
        self, workspace: Path, api: FakeDesignClient, downloader: FakeDownloader
    ) -> None:
        (workspace / "configs" / "a_colors.yaml").write_text(COLORS)
        (workspace / "configs" / "b_icons.yaml").write_text(ICONS)

        result = await make_runner(workspace, api, downloader, fail_fast=True).run(
            [workspace / "configs"]
        )

        assert [r.config.name for r in result.results] == ["a_colors"]
        assert downloader.downloaded == []
