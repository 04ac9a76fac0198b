import asyncio

import pytest

from graphmemory.core.exceptions import GraphValidationException, NodeNotFoundException
from graphmemory.services.metadata_manager import MetadataManager
from graphmemory.services.node_manager import NodeManager

NODES = [
    {"name": "Grak", "nodeType": "npc", "metadata": ["Role: Smith", "Race: Orc"]},
    {"name": "Ilsa", "nodeType": "npc", "metadata": []},
    {"name": "Dark Forest", "nodeType": "location", "metadata": []},
]
EDGES = [
    {"from": "Grak", "to": "Dark Forest", "edgeType": "located_in", "weight": 1.0},
    {"from": "Ilsa", "to": "Grak", "edgeType": "allied_with", "weight": 0.7},
    {"from": "Ilsa", "to": "Dark Forest", "edgeType": "located_in", "weight": 1.0},
]


@pytest.fixture
def manager(store):
    return NodeManager(store)


@pytest.mark.asyncio
async def test_add_nodes_persists_batch(manager, store):
    added = await manager.add_nodes([
        {"name": "A", "nodeType": "person", "metadata": ["x", "x", "y"]},
        {"name": "B", "nodeType": "person"},
    ])

    assert [node.name for node in added] == ["A", "B"]
    assert added[0].metadata == ["x", "y"]
    assert added[1].metadata == []
    graph = await store.load()
    assert [node.name for node in graph.nodes] == ["A", "B"]


@pytest.mark.asyncio
async def test_add_existing_node_rejects_whole_batch(manager, seed, memory_file):
    seed(NODES, EDGES)
    before = memory_file.read_text(encoding="utf-8")

    with pytest.raises(GraphValidationException, match="Node already exists: Grak"):
        await manager.add_nodes([
            {"name": "New", "nodeType": "npc"},
            {"name": "Grak", "nodeType": "npc"},
        ])

    assert memory_file.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_duplicate_names_within_batch_are_rejected(manager, memory_file):
    with pytest.raises(GraphValidationException):
        await manager.add_nodes([
            {"name": "A", "nodeType": "person"},
            {"name": "A", "nodeType": "place"},
        ])
    assert not memory_file.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", [
    {"name": "", "nodeType": "npc"},
    {"name": "A"},
    {"name": "A", "nodeType": "npc", "metadata": "not a list"},
    "A",
])
async def test_malformed_nodes_are_rejected(manager, bad):
    with pytest.raises(GraphValidationException, match="Invalid Node"):
        await manager.add_nodes([bad])


@pytest.mark.asyncio
async def test_add_nodes_partial_reports_rejections(manager, seed, store):
    seed(NODES)

    result = await manager.add_nodes_partial([
        {"name": "New", "nodeType": "npc"},
        {"name": "Grak", "nodeType": "npc"},
        {"name": ""},
    ])

    assert [node.name for node in result.applied] == ["New"]
    assert [rejected.item["name"] for rejected in result.rejected] == ["Grak", ""]
    assert "already exists" in result.rejected[0].error
    graph = await store.load()
    assert [node.name for node in graph.nodes][-1] == "New"


@pytest.mark.asyncio
async def test_update_replaces_supplied_fields_only(manager, seed, store):
    seed(NODES)

    updated = await manager.update_nodes([{"name": "Grak", "metadata": ["Role: Chief"]}])

    assert updated[0].node_type == "npc"
    assert updated[0].metadata == ["Role: Chief"]
    graph = await store.load()
    grak = next(node for node in graph.nodes if node.name == "Grak")
    assert grak.metadata == ["Role: Chief"]


@pytest.mark.asyncio
async def test_update_can_change_node_type(manager, seed):
    seed(NODES)

    updated = await manager.update_nodes([{"name": "Ilsa", "nodeType": "deity"}])

    assert updated[0].node_type == "deity"
    assert updated[0].metadata == []


@pytest.mark.asyncio
async def test_update_missing_node_fails_without_writing(manager, seed, memory_file):
    seed(NODES)
    before = memory_file.read_text(encoding="utf-8")

    with pytest.raises(NodeNotFoundException, match="Node not found: Nobody"):
        await manager.update_nodes([
            {"name": "Grak", "metadata": []},
            {"name": "Nobody", "metadata": []},
        ])

    assert memory_file.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_delete_cascades_to_touching_edges(manager, seed, store):
    seed(NODES, EDGES)

    deleted = await manager.delete_nodes(["Grak"])

    assert deleted == 1
    graph = await store.load()
    assert {node.name for node in graph.nodes} == {"Ilsa", "Dark Forest"}
    assert [(edge.source, edge.target) for edge in graph.edges] == [("Ilsa", "Dark Forest")]
    assert store.edge_ids("target", "Grak") == set()


@pytest.mark.asyncio
async def test_delete_missing_node_raises(manager, seed, memory_file):
    seed(NODES, EDGES)
    before = memory_file.read_text(encoding="utf-8")

    with pytest.raises(NodeNotFoundException):
        await manager.delete_nodes(["Grak", "Nobody"])

    assert memory_file.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["Grak", ["Grak", 3], None])
async def test_delete_requires_list_of_names(manager, seed, bad):
    seed(NODES)
    with pytest.raises(GraphValidationException):
        await manager.delete_nodes(bad)


@pytest.mark.asyncio
async def test_get_nodes_keeps_request_order(manager, seed):
    seed(NODES)

    nodes = await manager.get_nodes(["Dark Forest", "Grak"])

    assert [node.name for node in nodes] == ["Dark Forest", "Grak"]


@pytest.mark.asyncio
async def test_get_nodes_missing_name_raises(manager, seed):
    seed(NODES)
    with pytest.raises(NodeNotFoundException):
        await manager.get_nodes(["Grak", "Nobody"])


@pytest.mark.asyncio
async def test_concurrent_adds_do_not_overwrite_each_other(manager, store):
    names = [f"N{i}" for i in range(20)]

    await asyncio.gather(*(manager.add_nodes([{"name": name, "nodeType": "npc"}]) for name in names))

    graph = await store.load()
    assert sorted(node.name for node in graph.nodes) == sorted(names)


@pytest.mark.asyncio
async def test_concurrent_metadata_additions_all_land(seed, store):
    seed(NODES)
    metadata = MetadataManager(store)

    await asyncio.gather(*(
        metadata.add_metadata([{"nodeName": "Ilsa", "contents": [f"Note: {i}"]}]) for i in range(10)
    ))

    assert sorted(await metadata.get_metadata("Ilsa")) == sorted(f"Note: {i}" for i in range(10))
