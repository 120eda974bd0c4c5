"""Pydantic models for design API payloads.

Only the fields the export pipeline reads are modelled; everything else in
the API responses is ignored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class ContainingFrame(_ApiModel):
    name: str | None = None
    node_id: str | None = Field(default=None, alias="nodeId")
    page_name: str | None = Field(default=None, alias="pageName")


class Component(_ApiModel):
    """A published component (icon, image, illustration)."""

    key: str = ""
    node_id: str
    name: str
    description: str = ""
    containing_frame: ContainingFrame = Field(default_factory=ContainingFrame)

    @property
    def frame_name(self) -> str | None:
        return self.containing_frame.name


class FileMetadata(_ApiModel):
    """Lightweight file metadata; ``version`` changes on every upstream save."""

    name: str
    version: str
    last_touched_at: datetime | None = None


class VariableMode(_ApiModel):
    mode_id: str = Field(alias="modeId")
    name: str


class VariableCollection(_ApiModel):
    id: str
    name: str
    modes: list[VariableMode] = Field(default_factory=list)
    variable_ids: list[str] = Field(default_factory=list, alias="variableIds")


class Variable(_ApiModel):
    id: str
    name: str
    resolved_type: str = Field(alias="resolvedType")
    values_by_mode: dict[str, Any] = Field(default_factory=dict, alias="valuesByMode")
    variable_collection_id: str = Field(alias="variableCollectionId")


class FileVariables(_ApiModel):
    """Local variables and their collections for one file."""

    variables: dict[str, Variable] = Field(default_factory=dict)
    collections: dict[str, VariableCollection] = Field(
        default_factory=dict, alias="variableCollections"
    )

    def collection_named(self, name: str) -> VariableCollection | None:
        for collection in self.collections.values():
            if collection.name == name:
                return collection
        return None

    def variables_in(self, collection: VariableCollection) -> list[Variable]:
        return [self.variables[v] for v in collection.variable_ids if v in self.variables]


# Node documents are kept as raw mappings: hashing needs the full visual
# property tree, and modelling every node type buys nothing here.
NodeDocument = dict[str, Any]
