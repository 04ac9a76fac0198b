# graphmemory/models/graph.py
from typing import Any
from pydantic import BaseModel, ConfigDict, Field

# Persisted records and the operation contract use camelCase keys ("nodeType",
# "from"); attributes are snake_case and populated from either spelling.
_RECORD_CONFIG = ConfigDict(populate_by_name=True, extra="ignore")

class Node(BaseModel):
    model_config = _RECORD_CONFIG

    name: str = Field(min_length=1)
    node_type: str = Field(alias="nodeType", min_length=1)
    metadata: list[str] = Field(default_factory=list)

class Edge(BaseModel):
    model_config = _RECORD_CONFIG

    source: str = Field(alias="from", min_length=1)
    target: str = Field(alias="to", min_length=1)
    edge_type: str = Field(alias="edgeType", min_length=1)
    weight: float | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.edge_type)

class Graph(BaseModel):
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

class NodeUpdate(BaseModel):
    model_config = _RECORD_CONFIG

    name: str = Field(min_length=1)
    node_type: str | None = Field(default=None, alias="nodeType", min_length=1)
    metadata: list[str] | None = None

class EdgeUpdate(BaseModel):
    model_config = _RECORD_CONFIG

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    edge_type: str = Field(alias="edgeType")
    new_source: str | None = Field(default=None, alias="newFrom")
    new_target: str | None = Field(default=None, alias="newTo")
    new_edge_type: str | None = Field(default=None, alias="newEdgeType")
    new_weight: float | None = Field(default=None, alias="newWeight")

class EdgeFilter(BaseModel):
    model_config = _RECORD_CONFIG

    source: str | None = Field(default=None, alias="from")
    target: str | None = Field(default=None, alias="to")
    edge_type: str | None = Field(default=None, alias="edgeType")

    def is_empty(self) -> bool:
        return self.source is None and self.target is None and self.edge_type is None

    def matches(self, edge: Edge) -> bool:
        if self.source is not None and edge.source != self.source:
            return False
        if self.target is not None and edge.target != self.target:
            return False
        return self.edge_type is None or edge.edge_type == self.edge_type

class MetadataAddition(BaseModel):
    model_config = _RECORD_CONFIG

    node_name: str = Field(alias="nodeName")
    contents: list[str]

class MetadataDeletion(BaseModel):
    model_config = _RECORD_CONFIG

    node_name: str = Field(alias="nodeName")
    metadata: list[str]

class MetadataResult(BaseModel):
    model_config = _RECORD_CONFIG

    node_name: str = Field(alias="nodeName")
    added_metadata: list[str] = Field(alias="addedMetadata")

class RejectedItem(BaseModel):
    item: Any
    error: str

class BatchResult(BaseModel):
    """Outcome of a partial-success batch call."""
    applied: list[Node | Edge] = Field(default_factory=list)
    rejected: list[RejectedItem] = Field(default_factory=list)
