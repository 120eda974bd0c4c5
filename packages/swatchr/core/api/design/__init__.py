"""Design API client, endpoints and payload models."""

from swatchr.core.api.design.client import (
    DEFAULT_API_BASE_URL,
    DesignApiClient,
    DesignClient,
    HttpFileDownloader,
    source_key,
)
from swatchr.core.api.design.endpoints import (
    NODES_BATCH_SIZE,
    ComponentsEndpoint,
    Endpoint,
    FileMetadataEndpoint,
    ImageUrlsEndpoint,
    NodesEndpoint,
    VariablesEndpoint,
    batched,
)
from swatchr.core.api.design.models import (
    Component,
    ContainingFrame,
    FileMetadata,
    FileVariables,
    NodeDocument,
    Variable,
    VariableCollection,
    VariableMode,
)

__all__ = [
    # Client
    "DEFAULT_API_BASE_URL",
    "DesignApiClient",
    "DesignClient",
    "HttpFileDownloader",
    "source_key",
    # Endpoints
    "Endpoint",
    "ComponentsEndpoint",
    "FileMetadataEndpoint",
    "ImageUrlsEndpoint",
    "NodesEndpoint",
    "VariablesEndpoint",
    "NODES_BATCH_SIZE",
    "batched",
    # Models
    "Component",
    "ContainingFrame",
    "FileMetadata",
    "FileVariables",
    "NodeDocument",
    "Variable",
    "VariableCollection",
    "VariableMode",
]
