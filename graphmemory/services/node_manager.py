# graphmemory/services/node_manager.py
import logging
from typing import Iterable

from graphmemory.core.exceptions import GraphValidationException, NodeNotFoundException
from graphmemory.db.repositories.graph_store import GraphStore
from graphmemory.models.graph import Node, NodeUpdate, BatchResult, RejectedItem
from graphmemory.services.validation import (
    coerce,
    describe_item,
    validate_node_does_not_exist,
    validate_node_exists,
    validate_node_names,
)

logger = logging.getLogger(__name__)


def _without_duplicates(entries: list[str]) -> list[str]:
    return list(dict.fromkeys(entries))


class NodeManager:
    def __init__(self, store: GraphStore):
        self.store = store

    async def add_nodes(self, nodes: Iterable[Node | dict]) -> list[Node]:
        """
        Adds a batch of nodes. Every node is validated before anything is
        written, so one bad node rejects the whole batch.
        """
        candidates = [coerce(Node, node) for node in nodes]

        async with self.store.lock:
            graph = await self.store.load()
            names = {node.name for node in graph.nodes}
            new_nodes: list[Node] = []
            for node in candidates:
                validate_node_does_not_exist(names, node.name)
                names.add(node.name)
                new_nodes.append(node.model_copy(update={"metadata": _without_duplicates(node.metadata)}))

            graph.nodes.extend(new_nodes)
            await self.store.save(graph)

        logger.debug("Added %d nodes", len(new_nodes))
        return new_nodes

    async def add_nodes_partial(self, nodes: Iterable[Node | dict]) -> BatchResult:
        """Adds every valid node and reports the rejected ones instead of failing."""
        result = BatchResult()

        async with self.store.lock:
            graph = await self.store.load()
            names = {node.name for node in graph.nodes}
            for item in nodes:
                try:
                    node = coerce(Node, item)
                    validate_node_does_not_exist(names, node.name)
                except GraphValidationException as exc:
                    result.rejected.append(RejectedItem(item=describe_item(item), error=exc.message))
                    continue
                names.add(node.name)
                result.applied.append(node.model_copy(update={"metadata": _without_duplicates(node.metadata)}))

            if result.applied:
                graph.nodes.extend(result.applied)
                await self.store.save(graph)

        logger.debug("Partial add: %d applied, %d rejected", len(result.applied), len(result.rejected))
        return result

    async def update_nodes(self, nodes: Iterable[NodeUpdate | dict]) -> list[Node]:
        # Supplied fields overwrite the stored ones; metadata is replaced, not merged.
        updates = [coerce(NodeUpdate, node) for node in nodes]

        async with self.store.lock:
            graph = await self.store.load()
            positions = {node.name: i for i, node in enumerate(graph.nodes)}
            updated: list[Node] = []
            for update in updates:
                if update.name not in positions:
                    raise NodeNotFoundException(f"Node not found: {update.name}")
                i = positions[update.name]
                changes = update.model_dump(exclude_unset=True, exclude_none=True, exclude={"name"})
                graph.nodes[i] = graph.nodes[i].model_copy(update=changes)
                updated.append(graph.nodes[i])

            await self.store.save(graph)

        return updated

    async def delete_nodes(self, node_names: list[str]) -> int:
        """Deletes the named nodes and every edge touching them. Returns the number of nodes removed."""
        names = validate_node_names(node_names)

        async with self.store.lock:
            graph = await self.store.load()
            existing = {node.name for node in graph.nodes}
            for name in names:
                validate_node_exists(existing, name)

            doomed = set(names)
            node_count, edge_count = len(graph.nodes), len(graph.edges)
            graph.nodes = [node for node in graph.nodes if node.name not in doomed]
            graph.edges = [
                edge for edge in graph.edges
                if edge.source not in doomed and edge.target not in doomed
            ]
            await self.store.save(graph)

        deleted = node_count - len(graph.nodes)
        logger.debug("Deleted %d nodes and %d edges", deleted, edge_count - len(graph.edges))
        return deleted

    async def get_nodes(self, node_names: list[str]) -> list[Node]:
        names = validate_node_names(node_names)
        graph = await self.store.load()
        by_name = {node.name: node for node in graph.nodes}
        for name in names:
            validate_node_exists(by_name.keys(), name)
        return [by_name[name] for name in dict.fromkeys(names)]
