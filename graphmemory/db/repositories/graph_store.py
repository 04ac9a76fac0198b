# graphmemory/db/repositories/graph_store.py
import asyncio
import json
import logging
import os
import tempfile
from collections import defaultdict
from contextlib import suppress
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, ValidationError

from graphmemory.core.exceptions import StorageException
from graphmemory.models.graph import Node, Edge, Graph

logger = logging.getLogger(__name__)

# Edge attributes that get an index, keyed by attribute name.
INDEXED_FIELDS = ("source", "target", "edge_type")


def edge_id(edge: Edge) -> str:
    return f"{edge.source}|{edge.target}|{edge.edge_type}"


class GraphStore:
    """
    Persists the whole graph as JSON lines and keeps derived edge indices.

    Every mutation rewrites the full file, so the indices are rebuilt on each
    load and save rather than maintained incrementally. Mutating callers must
    hold `lock` across their load -> mutate -> save sequence.
    """

    def __init__(self, path: Path, strict: bool = True):
        self.path = Path(path)
        self.strict = strict
        self.lock = asyncio.Lock()
        self._index: dict[str, defaultdict[str, set[str]]] = {
            field: defaultdict(set) for field in INDEXED_FIELDS
        }
        self._edge_cache: dict[str, Edge] = {}

    async def load(self) -> Graph:
        text = await self._read_file()
        graph = Graph() if text is None else self._parse(text)
        self._rebuild_indices(graph.edges)
        return graph

    async def save(self, graph: Graph) -> None:
        lines = [self._dump_record("node", node) for node in graph.nodes]
        lines += [self._dump_record("edge", edge) for edge in graph.edges]
        await self._write_file("".join(f"{line}\n" for line in lines))
        self._rebuild_indices(graph.edges)
        logger.debug(
            "Saved %d nodes and %d edges to %s", len(graph.nodes), len(graph.edges), self.path
        )

    def load_edges_by_id(self, ids: Iterable[str]) -> list[Edge]:
        """Materializes edges from the id cache filled by the last load or save."""
        return [self._edge_cache[i].model_copy() for i in ids if i in self._edge_cache]

    def edge_ids(self, field: str, value: str) -> set[str]:
        if field not in self._index:
            raise KeyError(f"Edges are not indexed by '{field}'.")
        return set(self._index[field].get(value, ()))

    def _rebuild_indices(self, edges: list[Edge]) -> None:
        for index in self._index.values():
            index.clear()
        self._edge_cache = {}
        for edge in edges:
            key = edge_id(edge)
            self._edge_cache[key] = edge.model_copy()
            for field, index in self._index.items():
                index[getattr(edge, field)].add(key)

    def _parse(self, text: str) -> Graph:
        graph = Graph()
        for line_no, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                if not isinstance(record, dict):
                    raise ValueError("record is not a JSON object")
                kind = record.pop("type", None)
                if kind == "node":
                    graph.nodes.append(Node.model_validate(record))
                elif kind == "edge":
                    graph.edges.append(Edge.model_validate(record))
                else:
                    raise ValueError(f"unknown record type {kind!r}")
            except (ValueError, ValidationError) as exc:
                if self.strict:
                    raise StorageException(
                        f"Corrupt record at {self.path}:{line_no}: {exc}"
                    ) from exc
                logger.warning("Skipping corrupt record at %s:%d: %s", self.path, line_no, exc)
        return graph

    @staticmethod
    def _dump_record(kind: str, model: BaseModel) -> str:
        payload = {"type": kind, **model.model_dump(by_alias=True, exclude_none=True)}
        return json.dumps(payload, ensure_ascii=False)

    async def _read_file(self) -> str | None:
        def _read() -> str | None:
            try:
                return self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None

        try:
            return await asyncio.to_thread(_read)
        except OSError as exc:
            raise StorageException(f"Failed to read {self.path}: {exc}") from exc

    async def _write_file(self, payload: str) -> None:
        def _write() -> None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            except Exception:
                with suppress(FileNotFoundError):
                    os.unlink(tmp_name)
                raise

        write = asyncio.ensure_future(asyncio.to_thread(_write))
        try:
            try:
                await asyncio.shield(write)
            except asyncio.CancelledError:
                # The thread keeps running; wait for the replace to land, then
                # re-deliver the cancel at the caller's next await.
                await write
                asyncio.current_task().cancel()
        except OSError as exc:
            raise StorageException(f"Failed to write {self.path}: {exc}") from exc
