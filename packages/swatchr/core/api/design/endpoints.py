"""Design API endpoint descriptions.

Each endpoint knows its request path/params and how to turn the JSON
payload into models, so DesignApiClient needs a single ``fetch`` call.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from swatchr.core.api.design.models import Component, FileMetadata, FileVariables, NodeDocument

R = TypeVar("R")

NODES_BATCH_SIZE = 100


class Endpoint(BaseModel, Generic[R]):
    """Base class for typed endpoints."""

    model_config = ConfigDict(frozen=True)

    @property
    def path(self) -> str:
        raise NotImplementedError

    def params(self) -> dict[str, str]:
        return {}

    def parse(self, payload: Any) -> R:
        raise NotImplementedError


class ComponentsEndpoint(Endpoint[list[Component]]):
    file_id: str

    @property
    def path(self) -> str:
        return f"/v1/files/{self.file_id}/components"

    def parse(self, payload: Any) -> list[Component]:
        raw = (payload or {}).get("meta", {}).get("components", [])
        return [Component.model_validate(item) for item in raw]


class FileMetadataEndpoint(Endpoint[FileMetadata]):
    file_id: str

    @property
    def path(self) -> str:
        return f"/v1/files/{self.file_id}/meta"

    def parse(self, payload: Any) -> FileMetadata:
        data = payload or {}
        return FileMetadata.model_validate(data.get("file", data))


class VariablesEndpoint(Endpoint[FileVariables]):
    file_id: str

    @property
    def path(self) -> str:
        return f"/v1/files/{self.file_id}/variables/local"

    def parse(self, payload: Any) -> FileVariables:
        return FileVariables.model_validate((payload or {}).get("meta", {}))


class NodesEndpoint(Endpoint[dict[str, NodeDocument]]):
    """Node documents for at most NODES_BATCH_SIZE ids."""

    file_id: str
    node_ids: tuple[str, ...] = Field(max_length=NODES_BATCH_SIZE)

    @property
    def path(self) -> str:
        return f"/v1/files/{self.file_id}/nodes"

    def params(self) -> dict[str, str]:
        return {"ids": ",".join(self.node_ids)}

    def parse(self, payload: Any) -> dict[str, NodeDocument]:
        nodes = (payload or {}).get("nodes") or {}
        # Deleted or inaccessible ids come back as null.
        return {
            node_id: entry["document"]
            for node_id, entry in nodes.items()
            if entry and entry.get("document") is not None
        }


class ImageUrlsEndpoint(Endpoint[dict[str, str]]):
    """Rendered export URLs for a set of nodes."""

    file_id: str
    node_ids: tuple[str, ...]
    format: str = "svg"
    scale: float = 1.0

    @property
    def path(self) -> str:
        return f"/v1/images/{self.file_id}"

    def params(self) -> dict[str, str]:
        params = {"ids": ",".join(self.node_ids), "format": self.format}
        if self.format != "svg":
            params["scale"] = f"{self.scale:g}"
        return params

    def parse(self, payload: Any) -> dict[str, str]:
        images = (payload or {}).get("images") or {}
        return {node_id: url for node_id, url in images.items() if url}


def batched(ids: list[str], size: int = NODES_BATCH_SIZE) -> list[tuple[str, ...]]:
    """Split ids into request-sized tuples, preserving order."""
    return [tuple(ids[i : i + size]) for i in range(0, len(ids), size)]
