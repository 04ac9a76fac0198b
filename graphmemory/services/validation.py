import math
from typing import Any, Container, TypeVar

from pydantic import BaseModel, ValidationError

from graphmemory.core.exceptions import GraphValidationException, NodeNotFoundException
from graphmemory.models.graph import Edge

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_EDGE_WEIGHT = 1.0


def coerce(model_cls: type[ModelT], item: Any) -> ModelT:
    """Accepts either a model instance or its dict form; rejects anything malformed."""
    if isinstance(item, model_cls):
        return item
    try:
        return model_cls.model_validate(item)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'value'}: {error['msg']}"
            for error in exc.errors()
        )
        raise GraphValidationException(f"Invalid {model_cls.__name__}: {problems}") from exc


def validate_node_exists(node_names: Container[str], name: str) -> None:
    if name not in node_names:
        raise NodeNotFoundException(f"Node not found: {name}")


def validate_node_does_not_exist(node_names: Container[str], name: str) -> None:
    if name in node_names:
        raise GraphValidationException(
            f"Node already exists: {name}. Consider updating existing node."
        )


def validate_edge_uniqueness(edge_keys: set[tuple[str, str, str]], edge: Edge) -> None:
    if edge.key in edge_keys:
        raise GraphValidationException(
            f"Edge already exists: {edge.source} -> {edge.target} ({edge.edge_type})"
        )


def validate_weight(weight: float) -> None:
    if math.isnan(weight) or weight < 0 or weight > 1:
        raise GraphValidationException(f"Edge weight must be between 0 and 1, got {weight}")


def validate_node_names(node_names: Any) -> list[str]:
    if not isinstance(node_names, (list, tuple)):
        raise GraphValidationException("nodeNames must be a list")
    if any(not isinstance(name, str) for name in node_names):
        raise GraphValidationException("All node names must be strings")
    return list(node_names)


def ensure_weight(edge: Edge) -> Edge:
    if edge.weight is None:
        return edge.model_copy(update={"weight": DEFAULT_EDGE_WEIGHT})
    return edge


def describe_item(item: Any) -> Any:
    """Plain form of a batch item for rejection reports."""
    return item.model_dump(by_alias=True) if isinstance(item, BaseModel) else item
