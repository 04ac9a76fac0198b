# graphmemory/services/search_service.py
from graphmemory.db.repositories.graph_store import GraphStore
from graphmemory.models.graph import Node, Graph


def _matches(node: Node, needle: str) -> bool:
    return (
        needle in node.name.lower()
        or needle in node.node_type.lower()
        or any(needle in entry.lower() for entry in node.metadata)
    )


def _expand(graph: Graph, matched: list[Node]) -> Graph:
    """
    Matched nodes, their direct neighbors in either direction, and every edge
    with at least one matched endpoint. Edges between two neighbors are left out.
    """
    matched_names = {node.name for node in matched}
    edges = [
        edge for edge in graph.edges
        if edge.source in matched_names or edge.target in matched_names
    ]
    neighbor_names = {edge.source for edge in edges} | {edge.target for edge in edges}
    neighbors = [
        node for node in graph.nodes
        if node.name in neighbor_names and node.name not in matched_names
    ]
    return Graph(nodes=matched + neighbors, edges=edges)


class SearchService:
    """Read-only queries; these never take the store lock or join a transaction."""

    def __init__(self, store: GraphStore):
        self.store = store

    async def search_nodes(self, query: str) -> Graph:
        graph = await self.store.load()
        needle = query.lower()
        return _expand(graph, [node for node in graph.nodes if _matches(node, needle)])

    async def open_nodes(self, names: list[str]) -> Graph:
        graph = await self.store.load()
        wanted = set(names)
        return _expand(graph, [node for node in graph.nodes if node.name in wanted])

    async def read_graph(self) -> Graph:
        return await self.store.load()
