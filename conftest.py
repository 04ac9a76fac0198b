import json
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep test runs away from a developer's real graph file and .env overrides
os.environ.setdefault("MEMORY_FILE", str(ROOT / ".pytest-memory.jsonl"))
os.environ.setdefault("STRICT_LOAD", "true")

from graphmemory.db.repositories.graph_store import GraphStore
from graphmemory.services.graph_service import GraphService
from graphmemory.services.schema_loader import SchemaLoader

SCHEMAS_DIR = ROOT / "graphmemory" / "data" / "schemas"


def write_records(path: Path, nodes=(), edges=()) -> None:
    lines = [json.dumps({"type": "node", **node}) for node in nodes]
    lines += [json.dumps({"type": "edge", **edge}) for edge in edges]
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")


@pytest.fixture
def memory_file(tmp_path):
    return tmp_path / "memory.jsonl"


@pytest.fixture
def seed(memory_file):
    def _seed(nodes=(), edges=()):
        write_records(memory_file, nodes, edges)
        return memory_file

    return _seed


@pytest.fixture
def store(memory_file):
    return GraphStore(memory_file)


@pytest.fixture
def service(store):
    return GraphService(store, SchemaLoader(SCHEMAS_DIR))
