# graphmemory/services/schema_loader.py
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from graphmemory.core.exceptions import (
    GraphValidationException,
    SchemaNotFoundException,
    StorageException,
)
from graphmemory.models.schema import SchemaDefinition
from graphmemory.services.validation import coerce

logger = logging.getLogger(__name__)

SCHEMA_SUFFIX = ".schema.json"


class SchemaLoader:
    def __init__(self, schemas_dir: Path):
        self.schemas_dir = Path(schemas_dir)

    async def load_schema(self, schema_name: str) -> SchemaDefinition:
        schema_path = self.schemas_dir / f"{schema_name}{SCHEMA_SUFFIX}"

        def _read() -> dict[str, Any]:
            with schema_path.open("r", encoding="utf-8") as handle:
                return json.load(handle)

        try:
            data = await asyncio.to_thread(_read)
        except FileNotFoundError as exc:
            raise SchemaNotFoundException(f"Schema '{schema_name}' not found in {self.schemas_dir}") from exc
        except json.JSONDecodeError as exc:
            raise GraphValidationException(f"Schema file {schema_path} is not valid JSON: {exc}") from exc
        except OSError as exc:
            raise StorageException(f"Failed to read {schema_path}: {exc}") from exc

        return coerce(SchemaDefinition, data)

    async def load_all_schemas(self) -> dict[str, SchemaDefinition]:
        """Loads every *.schema.json in the directory, keyed by file name without the suffix."""
        if not self.schemas_dir.is_dir():
            logger.warning("Schema directory %s does not exist; no schemas loaded", self.schemas_dir)
            return {}

        schema_paths = await asyncio.to_thread(lambda: sorted(self.schemas_dir.glob(f"*{SCHEMA_SUFFIX}")))
        schemas: dict[str, SchemaDefinition] = {}
        for schema_path in schema_paths:
            schema_name = schema_path.name[: -len(SCHEMA_SUFFIX)]
            schemas[schema_name] = await self.load_schema(schema_name)

        logger.info("Loaded %d schemas from %s", len(schemas), self.schemas_dir)
        return schemas
