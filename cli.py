import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from graphmemory.core.config import settings
from graphmemory.core.exceptions import GraphMemoryException
from graphmemory.services.graph_service import GraphService

cli_app = typer.Typer(help="Inspect and edit a graph memory file.")
console = Console()

_options: dict[str, Optional[Path]] = {"memory_file": None, "schemas_dir": None}


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    return value


def _print_json(value: Any) -> None:
    payload = json.dumps(_to_jsonable(value), indent=2, ensure_ascii=False)
    console.print(Syntax(payload, "json", theme="solarized-dark"))


def _parse_payload(raw: str) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        console.print(f"[bold red]Error:[/bold red] payload is not valid JSON ({exc}).")
        raise typer.Exit(code=1)
    if not isinstance(payload, dict):
        console.print("[bold red]Error:[/bold red] payload must be a JSON object.")
        raise typer.Exit(code=1)
    return payload


def _run(action: Callable[[GraphService], Awaitable[Any]]) -> None:
    """Builds the service, loads schemas, runs one operation and prints its result."""
    config = settings.model_copy(
        update={key.upper(): value for key, value in _options.items() if value is not None}
    )

    async def main():
        service = GraphService.from_settings(config)
        await service.load_schemas()
        return await action(service)

    try:
        result = asyncio.run(main())
    except GraphMemoryException as exc:
        console.print(f"[bold red]Error:[/bold red] {exc.message}")
        raise typer.Exit(code=1)
    if result is not None:
        _print_json(result)


@cli_app.callback()
def configure(
    memory_file: Optional[Path] = typer.Option(None, "--memory-file", "-m", help="Graph file to use instead of MEMORY_FILE."),
    schemas_dir: Optional[Path] = typer.Option(None, "--schemas-dir", "-s", help="Directory of *.schema.json files."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
):
    _options["memory_file"] = memory_file
    _options["schemas_dir"] = schemas_dir
    logging.basicConfig(
        level="DEBUG" if verbose else settings.LOG_LEVEL,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@cli_app.command("read-graph")
def read_graph():
    """Prints every node and edge."""
    _run(lambda service: service.read_graph())


@cli_app.command()
def search(query: str = typer.Argument(..., help="Case-insensitive text to look for.")):
    """Finds nodes by name, type or metadata, with their direct neighbors."""
    _run(lambda service: service.search_nodes(query))


@cli_app.command("open")
def open_nodes(names: list[str] = typer.Argument(..., help="Exact node names.")):
    """Shows the named nodes with their direct neighbors."""
    _run(lambda service: service.open_nodes(names))


@cli_app.command()
def edges(
    source: Optional[str] = typer.Option(None, "--from", help="Source node name."),
    target: Optional[str] = typer.Option(None, "--to", help="Target node name."),
    edge_type: Optional[str] = typer.Option(None, "--type", help="Edge type."),
):
    """Lists edges matching every given filter."""
    edge_filter = {"from": source, "to": target, "edgeType": edge_type}
    _run(lambda service: service.get_edges(edge_filter))


@cli_app.command()
def schemas():
    """Lists the loaded entity schemas."""

    async def describe(service: GraphService) -> None:
        table = Table("schema", "required", "optional", "relationships")
        for name in service.list_schemas():
            schema = service.schemas[name]
            table.add_row(
                name,
                ", ".join(schema.required_fields),
                ", ".join(schema.optional_fields),
                ", ".join(f"{field} -> {rel.edge_type}" for field, rel in schema.relationships.items()),
            )
        console.print(table)

    _run(describe)


@cli_app.command("add-entity")
def add_entity(
    schema_name: str = typer.Argument(..., help="Schema to create the entity with."),
    payload: str = typer.Argument(..., help='Entity fields as JSON, e.g. \'{"name": "Grak", "role": "Smith"}\'.'),
):
    """Creates a schema-backed entity and its relationship edges."""
    data = _parse_payload(payload)
    _run(lambda service: service.add_entity(schema_name, data))


@cli_app.command("update-entity")
def update_entity(
    schema_name: str = typer.Argument(..., help="Schema the entity belongs to."),
    payload: str = typer.Argument(..., help="Fields to change as JSON; must include name."),
):
    """Updates a schema-backed entity, replacing changed relationships."""
    updates = _parse_payload(payload)

    async def apply(service: GraphService) -> dict[str, Any]:
        node, changes = await service.update_entity(schema_name, updates)
        return {"node": _to_jsonable(node), "removedEdges": _to_jsonable(changes.remove), "addedEdges": _to_jsonable(changes.add)}

    _run(apply)


@cli_app.command("delete-entity")
def delete_entity(
    schema_name: str = typer.Argument(..., help="Schema the entity belongs to."),
    name: str = typer.Argument(..., help="Name of the entity to delete."),
):
    """Deletes a schema-backed entity and every edge touching it."""
    _run(lambda service: service.delete_entity(schema_name, name))
    console.print(f"[green]Deleted {schema_name} {name}.[/green]")


if __name__ == "__main__":
    cli_app()
