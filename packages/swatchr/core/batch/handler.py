"""Default per-config handler: export icons, images and colors of one config."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import json
import logging
from pathlib import Path
import re
from typing import Any

from swatchr.core.api.design import (
    Component,
    FileVariables,
    ImageUrlsEndpoint,
    Variable,
    VariablesEndpoint,
    batched,
)
from swatchr.core.batch.context import BatchSharedState
from swatchr.core.batch.result import ConfigFile, ExportStats
from swatchr.core.caching.change_detection import ChangeDetector, GranularCacheStats
from swatchr.core.caching.models import TrackingCache
from swatchr.core.caching.versions import VersionTracker
from swatchr.core.config.loader import load_export_config
from swatchr.core.config.models import AssetKind, AssetSelector, ExportConfig, ExportFormat
from swatchr.core.errors import CollectionNotFoundError
from swatchr.core.io import AbsolutePath, FileSystem, absolute_path, sanitize_path_component
from swatchr.core.pipeline.models import FileContents
from swatchr.core.pipeline.parallel import parallel_map_entries

logger = logging.getLogger(__name__)


def select_components(components: Sequence[Component], selector: AssetSelector) -> list[Component]:
    """Components matching the selector's frame and name filters, in listing order."""
    pattern = re.compile(selector.name_pattern) if selector.name_pattern else None
    return [
        c
        for c in components
        if (selector.frame_name is None or c.frame_name == selector.frame_name)
        and (pattern is None or pattern.fullmatch(c.name))
    ]


def asset_destination(
    kind: AssetKind, name: str, fmt: ExportFormat, scale: float = 1.0, dark: bool = False
) -> str:
    """Output path of one rendition, relative to the config's output directory.

    Example:
        >>> asset_destination(AssetKind.ICONS, "nav/arrow", ExportFormat.PNG, 2.0, dark=True)
        'icons/nav_arrow_dark@2x.png'
    """
    stem = sanitize_path_component(name)
    if dark:
        stem += "_dark"
    if scale != 1.0:
        stem += f"@{scale:g}x"
    return f"{kind.value}/{stem}.{fmt.value}"


def color_to_hex(value: Mapping[str, Any]) -> str:
    """Convert an API RGBA color (0-1 floats) to ``#RRGGBB`` or ``#RRGGBBAA``."""
    channels = [round(float(value.get(c, 0.0)) * 255) for c in ("r", "g", "b")]
    alpha = float(value.get("a", 1.0))
    text = "#" + "".join(f"{c:02X}" for c in channels)
    if alpha < 1.0:
        text += f"{round(alpha * 255):02X}"
    return text


def _resolve_value(value: Any, variables: Mapping[str, Variable]) -> Any:
    if isinstance(value, dict) and value.get("type") == "VARIABLE_ALIAS":
        target = variables.get(value.get("id", ""))
        return f"{{{target.name}}}" if target else None
    if isinstance(value, dict) and {"r", "g", "b"} <= value.keys():
        return color_to_hex(value)
    return value


def build_color_palette(
    file_variables: FileVariables, collection_name: str, file_id: str
) -> dict[str, Any]:
    """Map each variable of a collection to its value per mode name.

    Raises:
        CollectionNotFoundError: If the collection is not in the file
    """
    collection = file_variables.collection_named(collection_name)
    if collection is None:
        raise CollectionNotFoundError(collection_name, file_id)
    mode_names = {mode.mode_id: mode.name for mode in collection.modes}
    palette: dict[str, Any] = {}
    for variable in file_variables.variables_in(collection):
        if variable.resolved_type != "COLOR":
            continue
        palette[variable.name] = {
            mode_names.get(mode_id, mode_id): _resolve_value(value, file_variables.variables)
            for mode_id, value in variable.values_by_mode.items()
        }
    return palette


class AssetExportHandler:
    """Exports one config inside a batch.

    Per config: version check against the cache, component selection,
    optional per-node change detection, rendition URL lookup, download
    through the shared queue and writing into the config's output directory.

    Args:
        fs: Filesystem used for output files
        cache_enabled: Skip unchanged files (and nodes, with ``granular``)
        granular: Per-node change detection for changed files
        force: Export even when the cache says nothing changed
        max_parallel_entries: Concurrent URL lookups within one config
    """

    def __init__(
        self,
        fs: FileSystem,
        *,
        cache_enabled: bool = True,
        granular: bool = False,
        force: bool = False,
        max_parallel_entries: int = 5,
    ) -> None:
        self.fs = fs
        self.cache_enabled = cache_enabled
        self.granular = granular
        self.force = force
        self.max_parallel_entries = max_parallel_entries

    def _cache(self, state: BatchSharedState) -> TrackingCache | None:
        shared = state.context.cache
        if not self.cache_enabled or shared is None:
            return None
        return shared.cache

    async def process(
        self, config_file: ConfigFile, state: BatchSharedState, priority: int = 0
    ) -> ExportStats:
        export = load_export_config(config_file.path)
        cache = self._cache(state)
        versions = await state.ensure_versions(export.file_ids)
        file_versions = {f: (meta.version, meta.name) for f, meta in versions.items()}

        changed_ids = list(export.file_ids)
        if cache is not None:
            tracker = VersionTracker(state.client, cache, state.max_parallel)
            check = await tracker.check_for_changes(
                export.file_ids, force=self.force, prefetched=versions
            )
            if not check.needs_export:
                logger.info(f"Config {config_file.name}: no design file changed, skipping")
                return ExportStats(skipped=len(export.assets), file_versions=file_versions)
            changed_ids = list(check.changed_file_ids)

        components = await state.ensure_components(changed_ids)

        files: list[FileContents] = []
        hashes: dict[str, dict[str, str]] = {}
        unrendered: dict[str, set[str]] = {}
        granular_stats = GranularCacheStats()
        skipped = 0
        failed = 0

        for selector in export.assets:
            for file_id in changed_ids:
                dark = file_id == export.dark_file_id and file_id != export.file_id
                if selector.kind is AssetKind.COLORS:
                    files.append(await self._export_colors(state, export, selector, file_id, dark))
                    continue

                selected = select_components(components[file_id], selector)
                if cache is not None and self.granular:
                    # Forced runs compare against no hashes so every node counts as changed.
                    baseline = TrackingCache() if self.force else cache
                    detector = ChangeDetector(state.client, baseline, state.max_parallel)
                    detection = await detector.filter_changed(
                        file_id, selected, state.context.nodes.get(file_id)
                    )
                    hashes.setdefault(file_id, {}).update(detection.computed_hashes)
                    granular_stats = granular_stats + detection.stats
                    skipped += detection.stats.skipped
                    selected = list(detection.changed)

                renditions, missing = await self._rendition_files(
                    state, export, selector, file_id, selected, dark
                )
                files.extend(renditions)
                failed += len(missing)
                if missing:
                    unrendered.setdefault(file_id, set()).update(missing)

        # Nodes without an exported rendition must not be recorded as done.
        for file_id, node_ids in unrendered.items():
            for node_id in node_ids:
                hashes.get(file_id, {}).pop(node_id, None)
        if unrendered:
            logger.warning(
                f"Config {config_file.name}: {failed} rendition(s) not exported; "
                f"not recording versions of {sorted(unrendered)}"
            )

        resolved = await self._download(state, config_file, files, priority)
        written = await self._write_outputs(export, resolved)
        logger.info(f"Config {config_file.name}: wrote {written} file(s) to {export.output_dir}")
        return ExportStats(
            processed=written,
            skipped=skipped,
            failed=failed,
            downloaded=sum(1 for f in files if f.is_remote),
            computed_node_hashes=hashes,
            file_versions={f: v for f, v in file_versions.items() if f not in unrendered},
            granular=granular_stats,
        )

    async def _export_colors(
        self,
        state: BatchSharedState,
        export: ExportConfig,
        selector: AssetSelector,
        file_id: str,
        dark: bool,
    ) -> FileContents:
        collection = selector.variables_collection
        if not collection:
            raise ValueError(f"Config {export.name}: colors asset needs variables_collection")
        file_variables = await state.client.fetch(VariablesEndpoint(file_id=file_id))
        palette = build_color_palette(file_variables, collection, file_id)
        stem = sanitize_path_component(collection) + ("_dark" if dark else "")
        return FileContents(
            destination=f"{AssetKind.COLORS.value}/{stem}.json",
            data=json.dumps(palette, indent=2, sort_keys=True).encode("utf-8"),
            dark=dark,
        )

    async def _rendition_files(
        self,
        state: BatchSharedState,
        export: ExportConfig,
        selector: AssetSelector,
        file_id: str,
        components: Sequence[Component],
        dark: bool,
    ) -> tuple[list[FileContents], list[str]]:
        """Resolve render URLs for every rendition of ``components``.

        Returns:
            (files to download, node ids of renditions the API did not render,
            once per missing scale)
        """
        if not components:
            return [], []
        # Vector formats have a single rendition.
        scales = export.scales if export.format is ExportFormat.PNG else [1.0]
        by_id = {c.node_id: c for c in components}
        work = [(scale, chunk) for scale in scales for chunk in batched(list(by_id))]

        async def resolve(
            entry: tuple[float, tuple[str, ...]],
        ) -> tuple[list[FileContents], list[str]]:
            scale, chunk = entry
            urls = await state.client.fetch(
                ImageUrlsEndpoint(
                    file_id=file_id, node_ids=chunk, format=export.format.value, scale=scale
                )
            )
            missing = [node_id for node_id in chunk if node_id not in urls]
            if missing:
                logger.warning(f"No render URL for {len(missing)} node(s) in {file_id}: {missing}")
            resolved = [
                FileContents(
                    destination=asset_destination(
                        selector.kind, by_id[node_id].name, export.format, scale, dark
                    ),
                    source_url=urls[node_id],
                    scale=scale,
                    dark=dark,
                )
                for node_id in chunk
                if node_id in urls
            ]
            return resolved, missing

        pages = await parallel_map_entries(work, resolve, self.max_parallel_entries)
        return (
            [f for files, _ in pages for f in files],
            [node_id for _, missing in pages for node_id in missing],
        )

    async def _download(
        self,
        state: BatchSharedState,
        config_file: ConfigFile,
        files: list[FileContents],
        priority: int,
    ) -> list[FileContents]:
        if not any(f.is_remote for f in files):
            return files
        if state.download_queue is None:
            raise RuntimeError("Batch state has no download queue for remote files")
        return await state.download_queue.download(files, config_file.key, priority)

    async def _write_outputs(self, export: ExportConfig, files: Sequence[FileContents]) -> int:
        output_dir = absolute_path(export.output_dir)
        for file in files:
            if file.data is not None:
                content = file.data
            elif file.data_file is not None:
                content = await self.fs.read_bytes(AbsolutePath(Path(file.data_file)))
            else:
                raise RuntimeError(f"Unresolved output file: {file.destination}")
            target = self.fs.join(output_dir, *Path(file.destination).parts)
            await self.fs.write_bytes(target, content)
        return len(files)
