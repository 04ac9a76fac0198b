# graphmemory/models/schema.py
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field
from graphmemory.models.graph import Edge

class RelationshipConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    edge_type: str = Field(alias="edgeType", min_length=1)
    description: str = ""
    node_type: str | None = Field(default=None, alias="nodeType")

class SchemaProperty(BaseModel):
    type: Literal["string", "array"] = "string"
    description: str = ""
    required: bool = False
    enum: list[str] | None = None
    relationship: RelationshipConfig | None = None

class SchemaDefinition(BaseModel):
    """
    Declarative definition of one entity type, as read from a *.schema.json file.
    Fields carrying a relationship are rendered as edges as well as metadata.

    `additional_properties` is kept for schema-file compatibility only: fields
    the schema does not declare are always stored as metadata, even when it is
    false.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str = ""
    properties: dict[str, SchemaProperty] = Field(default_factory=dict)
    additional_properties: bool = Field(default=True, alias="additionalProperties")

    @property
    def required_fields(self) -> list[str]:
        return [field for field, prop in self.properties.items() if prop.required]

    @property
    def optional_fields(self) -> list[str]:
        return [field for field, prop in self.properties.items() if not prop.required]

    @property
    def relationships(self) -> dict[str, RelationshipConfig]:
        return {
            field: prop.relationship
            for field, prop in self.properties.items()
            if prop.relationship is not None
        }

    @property
    def exclude_fields(self) -> list[str]:
        """Fields rendered as edges; kept out of the plain metadata pass."""
        return list(self.relationships)

class EdgeChanges(BaseModel):
    remove: list[Edge] = Field(default_factory=list)
    add: list[Edge] = Field(default_factory=list)

class EntityUpdate(BaseModel):
    metadata: list[str]
    edge_changes: EdgeChanges = Field(default_factory=EdgeChanges)
