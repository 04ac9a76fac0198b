# graphmemory/services/edge_manager.py
import logging
from typing import Iterable

from graphmemory.core.exceptions import (
    EdgeNotFoundException,
    GraphValidationException,
    NodeNotFoundException,
)
from graphmemory.db.repositories.graph_store import GraphStore, INDEXED_FIELDS
from graphmemory.models.graph import Edge, EdgeFilter, EdgeUpdate, BatchResult, RejectedItem
from graphmemory.services.validation import (
    coerce,
    describe_item,
    ensure_weight,
    validate_edge_uniqueness,
    validate_node_exists,
    validate_weight,
)

logger = logging.getLogger(__name__)


def _edge_label(source: str, target: str, edge_type: str) -> str:
    return f"{source} -> {target} ({edge_type})"


class EdgeManager:
    def __init__(self, store: GraphStore):
        self.store = store

    async def add_edges(self, edges: Iterable[Edge | dict]) -> list[Edge]:
        """
        Adds a batch of edges, all or nothing. Missing weights default to 1;
        both endpoints must already exist.
        """
        candidates = [ensure_weight(coerce(Edge, edge)) for edge in edges]
        for edge in candidates:
            validate_weight(edge.weight)

        async with self.store.lock:
            graph = await self.store.load()
            names = {node.name for node in graph.nodes}
            keys = {edge.key for edge in graph.edges}
            for edge in candidates:
                validate_edge_uniqueness(keys, edge)
                validate_node_exists(names, edge.source)
                validate_node_exists(names, edge.target)
                keys.add(edge.key)

            graph.edges.extend(candidates)
            await self.store.save(graph)

        logger.debug("Added %d edges", len(candidates))
        return candidates

    async def add_edges_partial(self, edges: Iterable[Edge | dict]) -> BatchResult:
        result = BatchResult()

        async with self.store.lock:
            graph = await self.store.load()
            names = {node.name for node in graph.nodes}
            keys = {edge.key for edge in graph.edges}
            for item in edges:
                try:
                    edge = ensure_weight(coerce(Edge, item))
                    validate_weight(edge.weight)
                    validate_edge_uniqueness(keys, edge)
                    validate_node_exists(names, edge.source)
                    validate_node_exists(names, edge.target)
                except (GraphValidationException, NodeNotFoundException) as exc:
                    result.rejected.append(RejectedItem(item=describe_item(item), error=exc.message))
                    continue
                keys.add(edge.key)
                result.applied.append(edge)

            if result.applied:
                graph.edges.extend(result.applied)
                await self.store.save(graph)

        logger.debug("Partial add: %d applied, %d rejected", len(result.applied), len(result.rejected))
        return result

    async def update_edges(self, edges: Iterable[EdgeUpdate | dict]) -> list[Edge]:
        updates = [coerce(EdgeUpdate, edge) for edge in edges]

        async with self.store.lock:
            graph = await self.store.load()
            names = {node.name for node in graph.nodes}
            positions = {edge.key: i for i, edge in enumerate(graph.edges)}
            updated: list[Edge] = []
            for update in updates:
                key = (update.source, update.target, update.edge_type)
                if key not in positions:
                    raise EdgeNotFoundException(f"Edge not found: {_edge_label(*key)}")
                if update.new_source is not None:
                    validate_node_exists(names, update.new_source)
                if update.new_target is not None:
                    validate_node_exists(names, update.new_target)

                i = positions.pop(key)
                current = graph.edges[i]
                new_edge = Edge(
                    source=update.new_source or current.source,
                    target=update.new_target or current.target,
                    edge_type=update.new_edge_type or current.edge_type,
                    weight=update.new_weight if update.new_weight is not None else current.weight,
                )
                if new_edge.weight is not None:
                    validate_weight(new_edge.weight)
                if new_edge.key in positions:
                    raise GraphValidationException(f"Edge already exists: {_edge_label(*new_edge.key)}")

                graph.edges[i] = new_edge
                positions[new_edge.key] = i
                updated.append(new_edge)

            await self.store.save(graph)

        return updated

    async def delete_edges(self, edges: Iterable[Edge | dict]) -> int:
        doomed = [coerce(Edge, edge).key for edge in edges]

        async with self.store.lock:
            graph = await self.store.load()
            keys = {edge.key for edge in graph.edges}
            for key in doomed:
                if key not in keys:
                    raise EdgeNotFoundException(f"Edge not found: {_edge_label(*key)}")

            doomed_keys = set(doomed)
            edge_count = len(graph.edges)
            graph.edges = [edge for edge in graph.edges if edge.key not in doomed_keys]
            await self.store.save(graph)

        return edge_count - len(graph.edges)

    async def get_edges(self, edge_filter: EdgeFilter | dict | None = None) -> list[Edge]:
        """
        Returns edges matching every supplied key of the filter. Candidate ids
        come from intersecting the store's indices, so only matching edges are
        materialized; no filter returns the full edge list.
        """
        criteria = coerce(EdgeFilter, edge_filter) if edge_filter is not None else EdgeFilter()
        graph = await self.store.load()
        if criteria.is_empty():
            return graph.edges

        candidate_ids: set[str] | None = None
        for field in INDEXED_FIELDS:
            value = getattr(criteria, field)
            if value is None:
                continue
            ids = self.store.edge_ids(field, value)
            candidate_ids = ids if candidate_ids is None else candidate_ids & ids
            if not candidate_ids:
                return []

        return self.store.load_edges_by_id(sorted(candidate_ids))
