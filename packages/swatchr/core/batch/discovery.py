"""Config file discovery."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from pathlib import Path

from swatchr.core.batch.result import ConfigFile
from swatchr.core.config.loader import CONFIG_SUFFIXES, load_export_config
from swatchr.core.config.models import ExportConfig
from swatchr.core.errors import ConfigDiscoveryError, ConfigLoadError

logger = logging.getLogger(__name__)


class ConfigDiscovery:
    """Finds export configs from CLI arguments (files and/or directories)."""

    def __init__(self, suffixes: Sequence[str] = CONFIG_SUFFIXES) -> None:
        self.suffixes = tuple(s.lower() for s in suffixes)

    def _is_config(self, path: Path) -> bool:
        if not path.is_file() or path.name.startswith("."):
            return False
        return path.suffix.lower() in self.suffixes

    def discover_in_directory(self, directory: Path) -> list[ConfigFile]:
        """Configs directly inside ``directory`` (not recursive), sorted by name.

        Raises:
            ConfigDiscoveryError: If the directory does not exist
        """
        if not directory.is_dir():
            raise ConfigDiscoveryError(f"Directory not found: {directory}")
        paths = sorted((p for p in directory.iterdir() if self._is_config(p)), key=lambda p: p.name)
        return [ConfigFile.from_path(p.resolve()) for p in paths]

    def discover_from_paths(self, paths: Sequence[Path]) -> list[ConfigFile]:
        """Wrap explicit file paths, checking each exists.

        Raises:
            ConfigDiscoveryError: If a file does not exist
        """
        missing = [p for p in paths if not p.is_file()]
        if missing:
            raise ConfigDiscoveryError(f"Config file(s) not found: {', '.join(map(str, missing))}")
        return [ConfigFile.from_path(p.resolve()) for p in paths]

    def discover(self, paths: Sequence[Path]) -> list[ConfigFile]:
        """Expand directories and keep files, dropping duplicates (first wins)."""
        found: dict[Path, ConfigFile] = {}
        for path in paths:
            configs = (
                self.discover_in_directory(path)
                if path.is_dir()
                else self.discover_from_paths([path])
            )
            for config in configs:
                found.setdefault(config.path, config)
        logger.debug(f"Discovered {len(found)} config(s)")
        return list(found.values())

    def filter_valid(self, configs: Sequence[ConfigFile]) -> list[ConfigFile]:
        """Keep configs that load as ExportConfig; log the rest."""
        valid = []
        for config in configs:
            try:
                load_export_config(config.path)
            except ConfigLoadError as e:
                logger.warning(f"Skipping invalid config {config.path}: {e}")
                continue
            valid.append(config)
        return valid

    @staticmethod
    def detect_output_conflicts(
        configs: Sequence[tuple[ConfigFile, ExportConfig]],
    ) -> dict[Path, list[ConfigFile]]:
        """Output directories claimed by more than one config."""
        by_output: dict[Path, list[ConfigFile]] = {}
        for config_file, export in configs:
            by_output.setdefault(export.output_dir.resolve(), []).append(config_file)
        return {out: files for out, files in by_output.items() if len(files) > 1}
