# graphmemory/services/schema_service.py
import logging
from typing import Any

from graphmemory.core.exceptions import GraphValidationException, NodeNotFoundException
from graphmemory.models.graph import Node, Edge, Graph, NodeUpdate
from graphmemory.models.schema import SchemaDefinition, EdgeChanges, EntityUpdate
from graphmemory.services.edge_manager import EdgeManager
from graphmemory.services.node_manager import NodeManager
from graphmemory.services.search_service import SearchService
from graphmemory.services.transaction_service import TransactionCoordinator

logger = logging.getLogger(__name__)

# Keys in update payloads that identify the node rather than describe it.
_UPDATE_RESERVED = {"name", "metadata"}


def format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def format_metadata_entry(field: str, value: Any) -> str:
    return f"{field}: {format_value(value)}"


def _targets(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item]
    return [str(value)] if value else []


def _require_name(data: dict[str, Any]) -> str:
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise GraphValidationException('Required field "name" is missing')
    return name


def _check_enums(data: dict[str, Any], schema: SchemaDefinition) -> None:
    for field, value in data.items():
        prop = schema.properties.get(field)
        if prop is None or not prop.enum or value is None:
            continue
        for item in value if isinstance(value, (list, tuple)) else [value]:
            if item not in prop.enum:
                raise GraphValidationException(
                    f'Invalid value "{item}" for field "{field}"; expected one of: {", ".join(prop.enum)}'
                )


def create_entity(
    data: dict[str, Any], schema: SchemaDefinition, entity_type: str
) -> tuple[list[Node], list[Edge]]:
    """
    Turns raw field data into one node plus the edges its relationship fields
    describe. Fields unknown to the schema are kept as metadata verbatim.
    """
    name = _require_name(data)
    for field in schema.required_fields:
        if data.get(field) is None:
            raise GraphValidationException(f'Required field "{field}" is missing')
    _check_enums(data, schema)

    excluded = {"name", *schema.exclude_fields}
    metadata: list[str] = []
    edges: list[Edge] = []

    for field in schema.required_fields + schema.optional_fields:
        if field not in excluded and data.get(field) is not None:
            metadata.append(format_metadata_entry(field, data[field]))

    for field, config in schema.relationships.items():
        targets = _targets(data.get(field))
        if not targets:
            continue
        edges.extend(Edge(source=name, target=target, edge_type=config.edge_type) for target in targets)
        metadata.append(format_metadata_entry(field, data[field]))

    for field, value in data.items():
        if field != "name" and field not in schema.properties and value is not None:
            metadata.append(format_metadata_entry(field, value))

    node = Node(name=name, node_type=entity_type, metadata=metadata)
    return [node], edges


def update_entity(
    updates: dict[str, Any],
    current_node: Node,
    schema: SchemaDefinition,
    current_graph: Graph,
) -> EntityUpdate:
    """
    Computes the replacement metadata and the edge changes for an update.

    Metadata keys match case-insensitively and keep their position and spelling.
    Each updated relationship field is a full replace: every current edge of
    that type from this node is removed and the new targets are added.
    """
    _check_enums(updates, schema)

    # Entries without a "Key:" prefix get a private key so they survive untouched.
    slots: dict[str, str] = {}
    for entry in current_node.metadata:
        key, sep, _ = entry.partition(":")
        slots[key.strip().lower() if sep else f"\0{entry}"] = entry

    def put(field: str, value: Any) -> None:
        existing = slots.get(field.lower())
        label = existing.partition(":")[0].strip() if existing else field
        slots[field.lower()] = format_metadata_entry(label, value)

    excluded = _UPDATE_RESERVED | set(schema.exclude_fields)
    for field in schema.required_fields + schema.optional_fields:
        if field not in excluded and updates.get(field) is not None:
            put(field, updates[field])

    changes = EdgeChanges()
    for field, config in schema.relationships.items():
        if field not in updates:
            continue
        changes.remove.extend(
            edge for edge in current_graph.edges
            if edge.source == current_node.name and edge.edge_type == config.edge_type
        )
        targets = _targets(updates[field])
        changes.add.extend(
            Edge(source=current_node.name, target=target, edge_type=config.edge_type)
            for target in targets
        )
        if targets:
            put(field, updates[field])
        else:
            slots.pop(field.lower(), None)

    for field, value in updates.items():
        if field not in _UPDATE_RESERVED and field not in schema.properties and value is not None:
            put(field, value)

    return EntityUpdate(metadata=list(slots.values()), edge_changes=changes)


class SchemaEngine:
    """Applies schema-backed create/update/delete as compensated multi-step operations."""

    def __init__(
        self,
        nodes: NodeManager,
        edges: EdgeManager,
        search: SearchService,
        transactions: TransactionCoordinator,
    ):
        self.nodes = nodes
        self.edges = edges
        self.search = search
        self.transactions = transactions

    async def handle_create(self, data: dict[str, Any], schema: SchemaDefinition, entity_type: str) -> Graph:
        new_nodes, new_edges = create_entity(data, schema, entity_type)
        name = new_nodes[0].name

        async with self.transactions.transaction() as tx:
            added_nodes = await self.nodes.add_nodes(new_nodes)
            tx.add_rollback_action(lambda: self.nodes.delete_nodes([name]), f"delete {entity_type} {name}")
            added_edges = await self.edges.add_edges(new_edges) if new_edges else []

        logger.info("Created %s %s with %d edges", entity_type, name, len(added_edges))
        return Graph(nodes=added_nodes, edges=added_edges)

    async def handle_update(
        self, updates: dict[str, Any], schema: SchemaDefinition, entity_type: str
    ) -> tuple[Node, EdgeChanges]:
        name = _require_name(updates)
        node = await self._find_entity(name, entity_type)

        relevant_edges: list[Edge] = []
        if any(field in updates for field in schema.relationships):
            relevant_edges = await self.edges.get_edges({"from": name})

        async with self.transactions.transaction() as tx:
            change = update_entity(updates, node, schema, Graph(nodes=[node], edges=relevant_edges))
            removed, added = change.edge_changes.remove, change.edge_changes.add

            updated = await self.nodes.update_nodes([NodeUpdate(name=name, metadata=change.metadata)])
            tx.add_rollback_action(
                lambda: self.nodes.update_nodes(
                    [NodeUpdate(name=name, node_type=node.node_type, metadata=node.metadata)]
                ),
                f"restore {entity_type} {name}",
            )
            if removed:
                await self.edges.delete_edges(removed)
                tx.add_rollback_action(lambda: self.edges.add_edges(removed), f"re-add {len(removed)} edges")
            if added:
                await self.edges.add_edges(added)
                tx.add_rollback_action(lambda: self.edges.delete_edges(added), f"remove {len(added)} edges")

        logger.info("Updated %s %s (-%d/+%d edges)", entity_type, name, len(removed), len(added))
        return updated[0], change.edge_changes

    async def handle_delete(self, name: str, entity_type: str) -> None:
        neighborhood = await self.search.open_nodes([name])
        node = self._typed_node(neighborhood, name, entity_type)
        touching = list(neighborhood.edges)

        async def restore() -> None:
            await self.nodes.add_nodes([node])
            if touching:
                await self.edges.add_edges(touching)

        async with self.transactions.transaction() as tx:
            await self.nodes.delete_nodes([name])
            tx.add_rollback_action(restore, f"restore {entity_type} {name} and {len(touching)} edges")

        logger.info("Deleted %s %s", entity_type, name)

    async def _find_entity(self, name: str, entity_type: str) -> Node:
        return self._typed_node(await self.search.open_nodes([name]), name, entity_type)

    @staticmethod
    def _typed_node(graph: Graph, name: str, entity_type: str) -> Node:
        for node in graph.nodes:
            if node.name == name and node.node_type == entity_type:
                return node
        raise NodeNotFoundException(f'{entity_type} "{name}" not found')
