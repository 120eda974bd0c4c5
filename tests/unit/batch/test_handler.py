"""Tests for AssetExportHandler and its helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from swatchr.core.api.design import FileVariables, ImageUrlsEndpoint
from swatchr.core.batch.context import BatchContext, BatchSharedState
from swatchr.core.batch.handler import (
    AssetExportHandler,
    asset_destination,
    build_color_palette,
    color_to_hex,
    select_components,
)
from swatchr.core.batch.result import ConfigFile
from swatchr.core.caching.fingerprint import hash_node
from swatchr.core.caching.models import SharedTrackingCache, TrackingCache
from swatchr.core.config.models import AssetKind, AssetSelector, ExportFormat
from swatchr.core.errors import CollectionNotFoundError
from swatchr.core.io import FakeFileSystem, absolute_path
from swatchr.core.pipeline import SharedDownloadQueue
from tests.conftest import FakeDesignClient, FakeDownloader, make_component, make_node

VARIABLES: dict[str, Any] = {
    "variables": {
        "V1": {
            "id": "V1",
            "name": "brand/primary",
            "resolvedType": "COLOR",
            "valuesByMode": {
                "m1": {"r": 1, "g": 0, "b": 0, "a": 1},
                "m2": {"r": 0, "g": 0, "b": 1, "a": 0.5},
            },
            "variableCollectionId": "C1",
        },
        "V2": {
            "id": "V2",
            "name": "brand/accent",
            "resolvedType": "COLOR",
            "valuesByMode": {"m1": {"type": "VARIABLE_ALIAS", "id": "V1"}},
            "variableCollectionId": "C1",
        },
        "V3": {
            "id": "V3",
            "name": "spacing/s",
            "resolvedType": "FLOAT",
            "valuesByMode": {"m1": 4},
            "variableCollectionId": "C1",
        },
    },
    "variableCollections": {
        "C1": {
            "id": "C1",
            "name": "Brand",
            "modes": [{"modeId": "m1", "name": "Light"}, {"modeId": "m2", "name": "Dark"}],
            "variableIds": ["V1", "V2", "V3"],
        }
    },
}


def write_config(tmp_path: Path, body: str) -> ConfigFile:
    path = tmp_path / "icons.yaml"
    path.write_text(body)
    return ConfigFile.from_path(path)


ICONS_CONFIG = """\
name: icons
file_id: f1
output_dir: out
format: svg
assets:
  - kind: icons
    frame_name: Icons
"""


def make_state(
    client: FakeDesignClient, downloader: FakeDownloader, cache: TrackingCache | None = None
) -> BatchSharedState:
    context = BatchContext()
    if cache is not None:
        context = context.with_cache(
            SharedTrackingCache(cache=cache, path=absolute_path("/cache.json"))
        )
    return BatchSharedState(context, client, SharedDownloadQueue(downloader))


class TestHelpers:
    def test_select_by_frame_and_pattern(self) -> None:
        components = [
            make_component("1:1", "arrow-left"),
            make_component("1:2", "close"),
            make_component("2:1", "arrow-up", frame="Other"),
        ]
        selector = AssetSelector(kind=AssetKind.ICONS, frame_name="Icons", name_pattern="arrow-.*")
        assert [c.node_id for c in select_components(components, selector)] == ["1:1"]

    def test_destination(self) -> None:
        assert asset_destination(AssetKind.ICONS, "close", ExportFormat.SVG) == "icons/close.svg"
        assert (
            asset_destination(AssetKind.IMAGES, "nav/hero", ExportFormat.PNG, 2.0, dark=True)
            == "images/nav_hero_dark@2x.png"
        )

    def test_color_to_hex(self) -> None:
        assert color_to_hex({"r": 1, "g": 0.5, "b": 0}) == "#FF8000"
        assert color_to_hex({"r": 0, "g": 0, "b": 0, "a": 0.5}) == "#00000080"

    def test_palette_resolves_aliases_and_skips_non_colors(self) -> None:
        palette = build_color_palette(FileVariables.model_validate(VARIABLES), "Brand", "f1")
        assert palette == {
            "brand/primary": {"Light": "#FF0000", "Dark": "#0000FF80"},
            "brand/accent": {"Light": "{brand/primary}"},
        }

    def test_missing_collection(self) -> None:
        with pytest.raises(CollectionNotFoundError) as exc_info:
            build_color_palette(FileVariables.model_validate(VARIABLES), "Nope", "f1")
        assert exc_info.value.collection == "Nope"


class TestProcess:
    """End-to-end handler runs against the fake API."""

    async def test_exports_selected_icons(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
        icon_components: list,
    ) -> None:
        design_client.add_file("f1", "v1", icon_components, name="Icons File")
        config = write_config(tmp_path, ICONS_CONFIG)

        stats = await AssetExportHandler(fake_fs).process(
            config, make_state(design_client, downloader)
        )

        out = tmp_path.resolve() / "out" / "icons"
        assert stats.processed == 3
        assert stats.downloaded == 3
        assert stats.file_versions == {"f1": ("v1", "Icons File")}
        assert await fake_fs.read_bytes(absolute_path(out / "close.svg")) == (
            b"bytes:https://cdn.test/f1/1:3@1.svg"
        )
        assert not await fake_fs.exists(absolute_path(out / "hero.svg"))

    async def test_png_exports_every_scale(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
    ) -> None:
        design_client.add_file("f1", "v1", [make_component("1:1", "logo", frame="Images")])
        config = write_config(
            tmp_path,
            "name: img\nfile_id: f1\noutput_dir: out\nformat: png\nscales: [2, 1]\n"
            "assets:\n  - kind: images\n",
        )

        stats = await AssetExportHandler(fake_fs).process(
            config, make_state(design_client, downloader)
        )

        out = tmp_path.resolve() / "out" / "images"
        assert stats.processed == 2
        assert await fake_fs.exists(absolute_path(out / "logo.png"))
        assert await fake_fs.exists(absolute_path(out / "logo@2x.png"))

    async def test_dark_file_gets_dark_suffix(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
    ) -> None:
        design_client.add_file("f1", "v1", [make_component("1:1", "star")])
        design_client.add_file("f2", "v9", [make_component("9:1", "star")])
        body = ICONS_CONFIG.replace("file_id: f1", "file_id: f1\ndark_file_id: f2")
        config = write_config(tmp_path, body)

        await AssetExportHandler(fake_fs).process(config, make_state(design_client, downloader))

        out = tmp_path.resolve() / "out" / "icons"
        assert await fake_fs.exists(absolute_path(out / "star.svg"))
        assert await fake_fs.exists(absolute_path(out / "star_dark.svg"))

    async def test_unchanged_config_is_skipped(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
        icon_components: list,
    ) -> None:
        design_client.add_file("f1", "v1", icon_components)
        cache = TrackingCache()
        cache.update_file_version("f1", "v1")
        config = write_config(tmp_path, ICONS_CONFIG)

        stats = await AssetExportHandler(fake_fs).process(
            config, make_state(design_client, downloader, cache)
        )

        assert stats.processed == 0
        assert stats.skipped == 1
        assert design_client.calls_of(ImageUrlsEndpoint) == []
        assert fake_fs.write_count == 0

    async def test_force_ignores_cache(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
        icon_components: list,
    ) -> None:
        design_client.add_file("f1", "v1", icon_components)
        cache = TrackingCache()
        cache.update_file_version("f1", "v1")
        config = write_config(tmp_path, ICONS_CONFIG)

        stats = await AssetExportHandler(fake_fs, force=True).process(
            config, make_state(design_client, downloader, cache)
        )

        assert stats.processed == 3

    async def test_granular_skips_unchanged_nodes(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
        icon_components: list,
    ) -> None:
        """Test that only components whose node changed are exported."""
        design_client.add_file("f1", "v2", icon_components)
        design_client.nodes["f1"] = {
            "1:1": make_node("arrow-left"),
            "1:2": make_node("arrow-right"),
            "1:3": make_node("close", color=0.9),
        }
        cache = TrackingCache()
        cache.update_file_version("f1", "v1")
        cache.update_node_hashes(
            "f1",
            {"1:1": hash_node(make_node("arrow-left")), "1:2": hash_node(make_node("arrow-right"))},
        )
        config = write_config(tmp_path, ICONS_CONFIG)

        stats = await AssetExportHandler(fake_fs, granular=True).process(
            config, make_state(design_client, downloader, cache)
        )

        assert stats.processed == 1
        assert stats.skipped == 2
        assert stats.granular.changed == 1
        assert set(stats.computed_node_hashes["f1"]) == {"1:1", "1:2", "1:3"}
        assert downloader.downloaded == ["https://cdn.test/f1/1:3@1.svg"]

    async def test_force_exports_nodes_with_cached_hashes(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
        icon_components: list,
    ) -> None:
        nodes = {
            "1:1": make_node("arrow-left"),
            "1:2": make_node("arrow-right"),
            "1:3": make_node("close"),
        }
        design_client.add_file("f1", "v1", icon_components)
        design_client.nodes["f1"] = nodes
        cache = TrackingCache()
        cache.update_file_version("f1", "v1")
        cache.update_node_hashes("f1", {n: hash_node(doc) for n, doc in nodes.items()})
        config = write_config(tmp_path, ICONS_CONFIG)

        stats = await AssetExportHandler(fake_fs, force=True, granular=True).process(
            config, make_state(design_client, downloader, cache)
        )

        assert stats.processed == 3
        assert stats.skipped == 0
        assert stats.granular.changed == 3
        assert stats.computed_node_hashes["f1"] == cache.node_hashes("f1")

    async def test_unrendered_nodes_count_as_failed(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
        icon_components: list,
    ) -> None:
        design_client.add_file("f1", "v1", icon_components)
        design_client.nodes["f1"] = {
            "1:1": make_node("arrow-left"),
            "1:2": make_node("arrow-right"),
            "1:3": make_node("close"),
        }
        design_client.missing_renders = {"1:3"}
        config = write_config(tmp_path, ICONS_CONFIG)

        stats = await AssetExportHandler(fake_fs, granular=True).process(
            config, make_state(design_client, downloader, TrackingCache())
        )

        assert stats.processed == 2
        assert stats.failed == 1
        assert set(stats.computed_node_hashes["f1"]) == {"1:1", "1:2"}
        assert stats.file_versions == {}
        assert not await fake_fs.exists(
            absolute_path(tmp_path.resolve() / "out" / "icons" / "close.svg")
        )

    async def test_colors_written_inline(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
    ) -> None:
        design_client.add_file("f1", "v1")
        design_client.variables["f1"] = FileVariables.model_validate(VARIABLES)
        config = write_config(
            tmp_path,
            "name: colors\nfile_id: f1\noutput_dir: out\n"
            "assets:\n  - kind: colors\n    variables_collection: Brand\n",
        )

        stats = await AssetExportHandler(fake_fs).process(
            config, make_state(design_client, downloader)
        )

        path = absolute_path(tmp_path.resolve() / "out" / "colors" / "Brand.json")
        palette = json.loads(await fake_fs.read_text(path))
        assert palette["brand/primary"]["Light"] == "#FF0000"
        assert stats.processed == 1
        assert stats.downloaded == 0
        assert downloader.downloaded == []

    async def test_missing_collection_fails_config(
        self,
        tmp_path: Path,
        fake_fs: FakeFileSystem,
        design_client: FakeDesignClient,
        downloader: FakeDownloader,
    ) -> None:
        design_client.add_file("f1", "v1")
        config = write_config(
            tmp_path,
            "name: colors\nfile_id: f1\noutput_dir: out\n"
            "assets:\n  - kind: colors\n    variables_collection: Missing\n",
        )

        with pytest.raises(CollectionNotFoundError):
            await AssetExportHandler(fake_fs).process(
                config, make_state(design_client, downloader)
            )
