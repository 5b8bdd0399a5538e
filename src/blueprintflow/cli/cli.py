"""BlueprintFlow CLI tools."""

import json
import platform
import sys
from pathlib import Path
from typing import Annotated, Any, Optional

import dotenv
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from typer import Context, Exit

import blueprintflow
from blueprintflow.builder.graph_validator import ValidationReport, validate
from blueprintflow.builder.json_graph import (
    convert_legacy_flowchart,
    load_document_file,
    save_document_file,
    serialize_document,
)
from blueprintflow.builder.mutation_engine import MutationEngine
from blueprintflow.builder.nodes import NodeRegistry
from blueprintflow.builder.operations import parse_operations
from blueprintflow.exceptions import BlueprintFlowError
from blueprintflow.settings import get_settings
from blueprintflow.utilities.logging import configure_logging, get_logger

logger = get_logger("cli")
console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="blueprintflow",
    help="BlueprintFlow CLI",
    add_completion=False,
    no_args_is_help=True,
)

FileArgument = Annotated[
    Path,
    typer.Argument(exists=True, dir_okay=False, readable=True, resolve_path=True),
]
OutputOption = Annotated[
    Optional[Path],
    typer.Option("--output", "-o", help="Write the resulting document here instead of stdout"),
]


@app.callback()
def main(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Override BLUEPRINTFLOW_LOG_LEVEL"),
    ] = None,
) -> None:
    # GOOGLE_API_KEY and friends are read by client libraries straight from the environment.
    dotenv.load_dotenv()
    configure_logging(log_level or get_settings().log_level)


def _fail(message: str, error: Optional[BlueprintFlowError] = None) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    if error is not None and error.details:
        err_console.print_json(json.dumps(error.details, default=str))
    raise Exit(1)


def _load(path: Path):
    try:
        return load_document_file(str(path))
    except BlueprintFlowError as e:
        _fail(f"{path}: {e.message}", e)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        _fail(f"{path}: invalid JSON: {e}")


def _print_report(report: ValidationReport) -> None:
    if report.is_clean:
        console.print("[green]No findings.[/green]")
        return
    table = Table(title="Findings")
    table.add_column("Severity")
    table.add_column("Code", style="cyan")
    table.add_column("Node")
    table.add_column("Connection")
    table.add_column("Message")
    for finding in report:
        style = "bold red" if finding.is_error else "yellow"
        table.add_row(
            f"[{style}]{finding.severity}[/{style}]",
            finding.code,
            finding.node_id or "",
            finding.connection_id or "",
            finding.message,
        )
    console.print(table)


def _emit(document, output: Optional[Path]) -> None:
    if output is None:
        sys.stdout.write(serialize_document(document) + "\n")
        return
    save_document_file(document, str(output))
    console.print(f"Wrote {output}")


@app.command()
def version(ctx: Context) -> None:
    """Show version information."""
    if ctx.resilient_parsing:
        return
    info = {
        "BlueprintFlow version": blueprintflow.__version__,
        "Python version": platform.python_version(),
        "Platform": platform.platform(),
    }
    g = Table.grid(padding=(0, 1))
    g.add_column(style="bold", justify="left")
    g.add_column(style="cyan", justify="right")
    for k, v in info.items():
        g.add_row(f"{k}:", str(v))
    console.print(g)
    raise Exit()


@app.command("validate")
def validate_command(
    file: FileArgument,
    as_json: Annotated[bool, typer.Option("--json", help="Print findings as JSON")] = False,
) -> None:
    """Validate a flowchart document. Exits 1 when there are error findings."""
    document = _load(file)
    report = validate(document)
    if as_json:
        sys.stdout.write(json.dumps({"valid": not report.has_errors, "findings": report.to_list()}, indent=2) + "\n")
    else:
        _print_report(report)
        console.print(
            f"{len(document.nodes)} node(s), {len(document.connections)} connection(s): "
            f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )
    if report.has_errors:
        raise Exit(1)


@app.command("apply")
def apply_command(
    file: FileArgument,
    operations_file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, resolve_path=True, help="JSON list of operations"),
    ],
    output: OutputOption = None,
) -> None:
    """Apply a batch of operations to a document, all or nothing."""
    document = _load(file)
    raw = _read_json(operations_file)
    try:
        operations = parse_operations(raw)
    except ValidationError as e:
        _fail(f"{operations_file}: {e.error_count()} invalid operation(s)\n{e}")
    try:
        outcome = MutationEngine().apply(document, operations)
    except BlueprintFlowError as e:
        _fail(e.message, e)
    if not outcome.committed:
        _print_report(outcome.report)
        _fail("Batch rejected; the document was not changed.")
    logger.info("Applied %d operation(s)", len(outcome.applied))
    _emit(outcome.document, output)


@app.command("node-types")
def node_types_command() -> None:
    """List the registered node types."""
    table = Table(title="Node types")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Inputs")
    table.add_column("Outputs")
    for spec in NodeRegistry.specs():
        table.add_row(
            spec.id,
            spec.name,
            spec.category,
            ", ".join(f"{p.id}:{p.type.value}" for p in spec.input_pins),
            ", ".join(f"{p.id}:{p.type.value}" for p in spec.output_pins),
        )
    console.print(table)


@app.command("convert-legacy")
def convert_legacy_command(file: FileArgument, output: OutputOption = None) -> None:
    """Convert a legacy 3-D flowchart ({nodes, connections}) to a blueprint document."""
    raw = _read_json(file)
    if not isinstance(raw, dict):
        _fail(f"{file}: expected an object with 'nodes' and 'connections'")
    try:
        document = convert_legacy_flowchart(raw.get("nodes", []), raw.get("connections", []))
    except BlueprintFlowError as e:
        _fail(e.message, e)
    _emit(document, output)


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port")] = 8000,
    reload: Annotated[bool, typer.Option(help="Reload on code changes")] = False,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    logger.info("Starting BlueprintFlow API on %s:%d", host, port)
    uvicorn.run("blueprintflow.server:app", host=host, port=port, reload=reload)
