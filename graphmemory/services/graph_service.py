# graphmemory/services/graph_service.py
from typing import Any

from graphmemory.core.config import Settings, settings
from graphmemory.core.exceptions import SchemaNotFoundException
from graphmemory.db.repositories.graph_store import GraphStore
from graphmemory.models.graph import (
    Node,
    Edge,
    Graph,
    NodeUpdate,
    EdgeUpdate,
    EdgeFilter,
    MetadataAddition,
    MetadataDeletion,
    MetadataResult,
    BatchResult,
)
from graphmemory.models.schema import SchemaDefinition, EdgeChanges
from graphmemory.services.edge_manager import EdgeManager
from graphmemory.services.metadata_manager import MetadataManager
from graphmemory.services.node_manager import NodeManager
from graphmemory.services.schema_loader import SchemaLoader
from graphmemory.services.schema_service import SchemaEngine
from graphmemory.services.search_service import SearchService
from graphmemory.services.transaction_service import TransactionCoordinator, RollbackAction


class GraphService:
    """
    The operation surface of the graph memory. Owns one GraphStore and hands it
    to every collaborator; build one per process.
    """

    def __init__(self, store: GraphStore, schema_loader: SchemaLoader | None = None):
        self.store = store
        self.nodes = NodeManager(store)
        self.edges = EdgeManager(store)
        self.metadata = MetadataManager(store)
        self.search = SearchService(store)
        self.transactions = TransactionCoordinator(store)
        self.schema_engine = SchemaEngine(self.nodes, self.edges, self.search, self.transactions)
        self.schema_loader = schema_loader
        self.schemas: dict[str, SchemaDefinition] = {}

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "GraphService":
        store = GraphStore(config.MEMORY_FILE, strict=config.STRICT_LOAD)
        return cls(store, SchemaLoader(config.SCHEMAS_DIR))

    async def load_schemas(self) -> dict[str, SchemaDefinition]:
        if self.schema_loader is not None:
            self.schemas = await self.schema_loader.load_all_schemas()
        return self.schemas

    def register_schema(self, schema_name: str, schema: SchemaDefinition) -> None:
        self.schemas[schema_name] = schema

    def list_schemas(self) -> list[str]:
        return sorted(self.schemas)

    # --- Nodes ---
    async def add_nodes(self, nodes: list[Node | dict]) -> list[Node]:
        return await self.nodes.add_nodes(nodes)

    async def add_nodes_partial(self, nodes: list[Node | dict]) -> BatchResult:
        return await self.nodes.add_nodes_partial(nodes)

    async def update_nodes(self, nodes: list[NodeUpdate | dict]) -> list[Node]:
        return await self.nodes.update_nodes(nodes)

    async def delete_nodes(self, node_names: list[str]) -> int:
        return await self.nodes.delete_nodes(node_names)

    async def get_nodes(self, node_names: list[str]) -> list[Node]:
        return await self.nodes.get_nodes(node_names)

    # --- Edges ---
    async def add_edges(self, edges: list[Edge | dict]) -> list[Edge]:
        return await self.edges.add_edges(edges)

    async def add_edges_partial(self, edges: list[Edge | dict]) -> BatchResult:
        return await self.edges.add_edges_partial(edges)

    async def update_edges(self, edges: list[EdgeUpdate | dict]) -> list[Edge]:
        return await self.edges.update_edges(edges)

    async def delete_edges(self, edges: list[Edge | dict]) -> int:
        return await self.edges.delete_edges(edges)

    async def get_edges(self, edge_filter: EdgeFilter | dict | None = None) -> list[Edge]:
        return await self.edges.get_edges(edge_filter)

    # --- Metadata ---
    async def add_metadata(self, additions: list[MetadataAddition | dict]) -> list[MetadataResult]:
        return await self.metadata.add_metadata(additions)

    async def delete_metadata(self, deletions: list[MetadataDeletion | dict]) -> int:
        return await self.metadata.delete_metadata(deletions)

    async def get_metadata(self, node_name: str) -> list[str]:
        return await self.metadata.get_metadata(node_name)

    # --- Search ---
    async def search_nodes(self, query: str) -> Graph:
        return await self.search.search_nodes(query)

    async def open_nodes(self, names: list[str]) -> Graph:
        return await self.search.open_nodes(names)

    async def read_graph(self) -> Graph:
        return await self.search.read_graph()

    # --- Transactions ---
    async def begin_transaction(self) -> None:
        await self.transactions.begin()

    async def commit(self) -> None:
        await self.transactions.commit()

    async def rollback(self) -> None:
        await self.transactions.rollback()

    def add_rollback_action(self, action: RollbackAction, description: str) -> None:
        self.transactions.add_rollback_action(action, description)

    def is_in_transaction(self) -> bool:
        return self.transactions.is_in_transaction()

    def get_current_graph(self) -> Graph:
        return self.transactions.get_current_graph()

    # --- Schema-backed entities ---
    async def add_entity(self, schema_name: str, data: dict[str, Any]) -> Graph:
        return await self.schema_engine.handle_create(data, self._schema(schema_name), schema_name)

    async def update_entity(self, schema_name: str, updates: dict[str, Any]) -> tuple[Node, EdgeChanges]:
        return await self.schema_engine.handle_update(updates, self._schema(schema_name), schema_name)

    async def delete_entity(self, schema_name: str, name: str) -> None:
        self._schema(schema_name)
        await self.schema_engine.handle_delete(name, schema_name)

    def _schema(self, schema_name: str) -> SchemaDefinition:
        if schema_name not in self.schemas:
            available = ", ".join(self.list_schemas()) or "none"
            raise SchemaNotFoundException(f"Schema not found: {schema_name} (available: {available})")
        return self.schemas[schema_name]
