"""Command-line interface for WorldWeaver."""

from __future__ import annotations

import asyncio
import atexit
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from worldweaver.config import load_config
from worldweaver.errors import ConfigError
from worldweaver.models.entities import Entity
from worldweaver.models.graph import LocationGraph
from worldweaver.observability import close_file_logging, configure_logging, get_logger

if TYPE_CHECKING:
    from worldweaver.config import WeaverConfig
    from worldweaver.graph.mutator import MapUpdateResult
    from worldweaver.parsing.schema_gate import TurnRecord

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="ww",
    help="WorldWeaver: validate storyteller output and apply it to world state.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are the storyteller of an interactive narrative. Respond with a single JSON object."
)

# Global state for options set by the callback
_config_path: Path | None = None


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_dir: Annotated[
        Path | None,
        typer.Option(
            "--log-dir",
            help="Also write every event to {log-dir}/debug.jsonl.",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file or directory containing worldweaver.yaml.",
            envvar="WW_CONFIG",
        ),
    ] = None,
) -> None:
    """WorldWeaver: validate storyteller output and apply it to world state."""
    global _config_path
    _config_path = config

    configure_logging(verbosity=verbose, log_to_file=log_dir is not None, log_dir=log_dir)
    if log_dir is not None:
        atexit.register(close_file_logging)


def _load_config_or_exit() -> WeaverConfig:
    try:
        return load_config(_config_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def _read_json(path: Path, what: str) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] {what} file not found: {path}")
        raise typer.Exit(1) from None
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {what} file is not valid JSON: {escape(str(e))}")
        raise typer.Exit(1) from None


def _print_record(record: TurnRecord) -> None:
    table = Table(title="Sanitized turn record", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for name, value in vars(record).items():
        if value is None or value == []:
            continue
        shown = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
        table.add_row(name, escape(shown))
    console.print(table)


def _print_map_result(result: MapUpdateResult) -> None:
    table = Table(title="Map update", show_header=True)
    table.add_column("Status")
    table.add_column("Operation", style="cyan")
    table.add_column("Target")
    table.add_column("Reason")
    for op in result.applied:
        table.add_row("[green]applied[/green]", op.kind, op.target, "")
    for skipped in result.skipped:
        table.add_row("[yellow]skipped[/yellow]", skipped.kind, skipped.target, escape(skipped.reason))
    for name in result.annihilated:
        table.add_row("[dim]cancelled[/dim]", "add/remove", name, "add and remove in one batch")
    for node_id in result.promoted:
        table.add_row("[blue]promoted[/blue]", "leaf", node_id, "containment edges")
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from worldweaver import __version__

    console.print(f"WorldWeaver v{__version__}")


@app.command("check-response")
def check_response(
    file: Annotated[Path, typer.Argument(help="File holding a raw storyteller completion")],
) -> None:
    """Decode a completion and run the schema gate on it, offline.

    Prints the sanitized record, or the failure reason and the feedback
    that would be sent back to the storyteller.
    """
    from worldweaver.errors import FailureReason, format_feedback
    from worldweaver.parsing.schema_gate import check_turn_payload
    from worldweaver.parsing.wire import decode_response

    try:
        text = file.read_text(encoding="utf-8")
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] File not found: {file}")
        raise typer.Exit(1) from None

    decoded = decode_response(text)
    if not decoded.ok:
        console.print(f"[red]✗[/red] {FailureReason.JSON_PARSE_FAILED}: {escape(decoded.error or '')}")
        raise typer.Exit(1)

    gate = check_turn_payload(decoded.value)
    if gate.record is None:
        console.print(f"[red]✗[/red] {gate.reason}")
        console.print(escape(format_feedback(list(gate.errors))))
        raise typer.Exit(1)

    console.print("[green]✓[/green] Response passed the schema gate")
    _print_record(gate.record)


@app.command("apply-map")
def apply_map(
    graph_file: Annotated[Path, typer.Argument(help="Graph JSON file (nodes and edges)")],
    batch_file: Annotated[Path, typer.Argument(help="Map-update payload JSON file")],
    theme: Annotated[str, typer.Option("--theme", "-t", help="Theme new nodes belong to")] = "default",
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Where to write the next graph (default: GRAPH_FILE)."),
    ] = None,
) -> None:
    """Apply a map-update payload to a graph file and write the next version."""
    from worldweaver.errors import format_feedback
    from worldweaver.graph.mutator import GraphMutator
    from worldweaver.parsing.map_payload import parse_map_update

    config = _load_config_or_exit()
    raw_graph = _read_json(graph_file, "Graph")
    try:
        graph = LocationGraph.model_validate(raw_graph)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid graph file: {escape(str(e))}")
        raise typer.Exit(1) from None

    parsed = parse_map_update(_read_json(batch_file, "Batch"), config.graph.max_node_description)
    if parsed.batch is None:
        console.print("[red]✗[/red] Map-update payload failed validation")
        console.print(escape(format_feedback(parsed.errors)))
        raise typer.Exit(1)

    result = GraphMutator(config.graph).apply(graph, parsed.batch, theme)
    _print_map_result(result)

    target = output or graph_file
    target.write_text(result.graph.model_dump_json(indent=2), encoding="utf-8")
    console.print(f"[green]✓[/green] Wrote graph to {target}")


@app.command()
def turn(
    prompt: Annotated[str, typer.Argument(help="Storyteller prompt")],
    system: Annotated[
        str | None,
        typer.Option("--system", "-s", help="System instruction for the storyteller."),
    ] = None,
    registry_file: Annotated[
        Path | None,
        typer.Option("--registry", "-r", help="JSON array of known entities."),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="LLM provider (e.g., ollama/qwen3:8b, openai/gpt-4o)."),
    ] = None,
) -> None:
    """Request one storyteller turn and run the full parse pipeline."""
    from worldweaver.providers.base import CollaboratorError
    from worldweaver.providers.factory import create_collaborator
    from worldweaver.turn.orchestrator import TurnParseOrchestrator

    config = _load_config_or_exit()
    registry: list[Entity] = []
    if registry_file is not None:
        try:
            registry = TypeAdapter(list[Entity]).validate_python(_read_json(registry_file, "Registry"))
        except ValidationError as e:
            console.print(f"[red]Error:[/red] Invalid registry file: {escape(str(e))}")
            raise typer.Exit(1) from None

    provider_string = provider or config.provider
    try:
        collaborator = create_collaborator(provider_string)
        orchestrator = TurnParseOrchestrator(collaborator, config)
        result = asyncio.run(
            orchestrator.run(prompt, system or DEFAULT_SYSTEM_INSTRUCTION, registry)
        )
    except CollaboratorError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    log.info("turn_command_finished", attempts=result.attempts, ok=result.ok)
    if result.data is None:
        console.print(f"[red]✗[/red] Turn failed after {result.attempts} attempt(s): {result.reason}")
        if result.error:
            console.print(escape(result.error))
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Turn parsed in {result.attempts} attempt(s)")
    console.print_json(result.data.model_dump_json())
