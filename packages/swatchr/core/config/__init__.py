from swatchr.core.config.loader import (
    CONFIG_SUFFIXES,
    detect_format,
    load_app_config,
    load_config,
    load_export_config,
    resolve_api_token,
)
from swatchr.core.config.models import (
    AppConfig,
    AssetKind,
    AssetSelector,
    ExportConfig,
    ExportFormat,
)

__all__ = [
    "CONFIG_SUFFIXES",
    "detect_format",
    "load_config",
    "load_export_config",
    "load_app_config",
    "resolve_api_token",
    "AppConfig",
    "AssetKind",
    "AssetSelector",
    "ExportConfig",
    "ExportFormat",
]
