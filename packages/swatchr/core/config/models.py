"""Configuration models for swatchr."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssetKind(str, Enum):
    ICONS = "icons"
    IMAGES = "images"
    COLORS = "colors"


class ExportFormat(str, Enum):
    SVG = "svg"
    PNG = "png"
    PDF = "pdf"


class AssetSelector(BaseModel):
    """Which assets of a design file a config exports."""

    model_config = ConfigDict(extra="forbid")

    kind: AssetKind
    frame_name: str | None = Field(
        default=None, description="Only components inside this frame (exact match)"
    )
    name_pattern: str | None = Field(
        default=None, description="Regex that component names must fully match"
    )
    variables_collection: str | None = Field(
        default=None, description="Variable collection name (required for colors)"
    )


class ExportConfig(BaseModel):
    """One export configuration file.

    Example (YAML):
        name: ios-icons
        file_id: AbCdEf123
        output_dir: ./Assets/Icons
        format: svg
        assets:
          - kind: icons
            frame_name: Icons
          - kind: colors
            variables_collection: Brand
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    file_id: str = Field(min_length=1)
    dark_file_id: str | None = None
    output_dir: Path
    assets: list[AssetSelector] = Field(min_length=1)
    scales: list[float] = Field(default_factory=lambda: [1.0])
    format: ExportFormat = ExportFormat.SVG

    @field_validator("scales")
    @classmethod
    def validate_scales(cls, v: list[float]) -> list[float]:
        if not v:
            raise ValueError("scales must not be empty")
        if any(s <= 0 for s in v):
            raise ValueError("scales must be positive")
        return sorted(set(v))

    @property
    def file_ids(self) -> list[str]:
        """Every design file this config reads, light file first."""
        ids = [self.file_id]
        if self.dark_file_id and self.dark_file_id != self.file_id:
            ids.append(self.dark_file_id)
        return ids


class AppConfig(BaseModel):
    """Application settings (shared by every config in a batch)."""

    api_base_url: str = Field(default="https://api.figma.com", description="Design API base URL")
    api_token_env: str = Field(
        default="SWATCHR_API_TOKEN", description="Environment variable holding the API token"
    )
    api_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    max_retries: int = Field(default=4, ge=1, description="Attempts per API request")

    max_parallel_configs: int = Field(default=3, ge=1, description="Configs processed at once")
    max_parallel_entries: int = Field(
        default=5, ge=1, description="Concurrent units of work within one config"
    )
    max_concurrent_downloads: int = Field(
        default=20, ge=1, description="Concurrent file downloads across the whole batch"
    )

    cache_enabled: bool = Field(default=True, description="Skip unchanged files/nodes")
    granular_cache: bool = Field(default=False, description="Per-node change detection")
    cache_path: Path = Field(default=Path(".swatchr-cache.json"))
    checkpoint_ttl_hours: float = Field(default=24.0, gt=0)
    download_dir: Path = Field(default=Path(".swatchr-downloads"))

    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_structured: bool = False
