# graphmemory/services/metadata_manager.py
from typing import Iterable

from graphmemory.db.repositories.graph_store import GraphStore
from graphmemory.models.graph import MetadataAddition, MetadataDeletion, MetadataResult
from graphmemory.services.validation import coerce, validate_node_exists


class MetadataManager:
    def __init__(self, store: GraphStore):
        self.store = store

    async def add_metadata(self, additions: Iterable[MetadataAddition | dict]) -> list[MetadataResult]:
        """Appends metadata entries not already present on each node."""
        items = [coerce(MetadataAddition, item) for item in additions]

        async with self.store.lock:
            graph = await self.store.load()
            by_name = {node.name: node for node in graph.nodes}
            for item in items:
                validate_node_exists(by_name, item.node_name)

            results: list[MetadataResult] = []
            for item in items:
                node = by_name[item.node_name]
                present = set(node.metadata)
                added = [entry for entry in dict.fromkeys(item.contents) if entry not in present]
                node.metadata.extend(added)
                results.append(MetadataResult(node_name=item.node_name, added_metadata=added))

            await self.store.save(graph)

        return results

    async def delete_metadata(self, deletions: Iterable[MetadataDeletion | dict]) -> int:
        items = [coerce(MetadataDeletion, item) for item in deletions]

        async with self.store.lock:
            graph = await self.store.load()
            by_name = {node.name: node for node in graph.nodes}
            for item in items:
                validate_node_exists(by_name, item.node_name)

            deleted = 0
            for item in items:
                node = by_name[item.node_name]
                doomed = set(item.metadata)
                remaining = [entry for entry in node.metadata if entry not in doomed]
                deleted += len(node.metadata) - len(remaining)
                node.metadata = remaining

            await self.store.save(graph)

        return deleted

    async def get_metadata(self, node_name: str) -> list[str]:
        graph = await self.store.load()
        by_name = {node.name: node for node in graph.nodes}
        validate_node_exists(by_name, node_name)
        return by_name[node_name].metadata
