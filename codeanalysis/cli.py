"""Typer-based CLI over the code analysis engine."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .analyzer import AnalysisResult, CodeAnalyzer
from .config import load_config
from .errors import InvalidInputError, InvariantViolation, NotFoundError
from .graph_export import export_dot, export_json
from .models import ENTITY_KINDS, CallEdge, Entity
from .parser import SUPPORTED_EXTENSIONS

app = typer.Typer(
    help="🔍 Code Analysis — entities, call graph and dependency cycles for TS/JS projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

EXIT_NOT_FOUND = 1
EXIT_INVALID = 2
EXIT_INTERNAL = 3

_state: Dict[str, Optional[Path]] = {"config": None}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"codeanalysis v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log analysis progress."),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False, help="Path to a config.toml file.",
    ),
):
    """Analyze a TypeScript / JavaScript project and query its structure."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )
    _state["config"] = config_file


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

@contextmanager
def _engine_errors() -> Iterator[None]:
    try:
        yield
    except InvalidInputError as exc:
        typer.echo(f"Invalid input: {exc}", err=True)
        raise typer.Exit(code=EXIT_INVALID)
    except NotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=EXIT_NOT_FOUND)
    except InvariantViolation as exc:
        typer.echo(f"Internal error: {exc}", err=True)
        raise typer.Exit(code=EXIT_INTERNAL)


def collect_files(project_path: Path, skip_dirs: frozenset) -> List[Dict[str, str]]:
    """Read every supported source file under *project_path*."""
    files: List[Dict[str, str]] = []
    for file_path in sorted(project_path.rglob("*")):
        if not file_path.is_file() or file_path.suffix not in SUPPORTED_EXTENSIONS:
            continue
        rel = file_path.relative_to(project_path)
        if any(part in skip_dirs for part in rel.parts[:-1]):
            continue
        files.append({
            "path": rel.as_posix(),
            "content": file_path.read_text(encoding="utf-8", errors="ignore"),
        })
    return files


def _analyze(project_path: Path) -> AnalysisResult:
    with _engine_errors():
        config = load_config(_state["config"])
        files = collect_files(project_path, config.skip_dirs)
        return CodeAnalyzer(config).analyze(files)


def _entity_table(title: str, entities: List[Entity]) -> Table:
    table = Table(title=title)
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Location")
    table.add_column("Complexity", justify="right")
    table.add_column("Issues", justify="right")
    for e in entities:
        table.add_row(
            e.qualified_name,
            e.kind,
            f"{e.file_path}:{e.range.start_line}",
            "-" if e.complexity is None else str(e.complexity),
            str(len(e.issues)),
        )
    return table


def _edge_table(title: str, edges: List[CallEdge]) -> Table:
    table = Table(title=title)
    table.add_column("Caller", style="cyan")
    table.add_column("Callee", style="magenta")
    table.add_column("Resolved")
    table.add_column("Call site")
    for edge in edges:
        table.add_row(
            edge.caller.qualified_name,
            edge.callee.name,
            "yes" if edge.callee.is_resolved else "no",
            f"{edge.location.file_path}:{edge.location.line}",
        )
    return table


def _print_list(title: str, items: List[str], empty: str) -> None:
    if not items:
        typer.echo(empty)
        return
    console.print(f"[bold]{title}[/bold]")
    for item in items:
        typer.echo(f"  {item}")


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

@app.command("analyze")
def analyze_project(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    as_json: bool = typer.Option(False, "--json", help="Print the full analysis as JSON."),
    dot: Optional[Path] = typer.Option(None, "--dot", help="Write the dependency graph as DOT."),
    graph_json: Optional[Path] = typer.Option(None, "--graph-json", help="Write the dependency graph as JSON."),
    focus: str = typer.Option("", "--focus", help="Limit the DOT graph to files matching this text and their neighbours."),
    include_external: bool = typer.Option(False, "--include-external", help="Draw external modules in the DOT graph."),
):
    """Parse a project and report entities, issues and dependency cycles."""
    result = _analyze(project_path)
    if dot is not None:
        export_dot(result.dependency_graph, dot, focus=focus, include_external=include_external)
    if graph_json is not None:
        export_json(result.dependency_graph, graph_json)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    summary = result.summary
    typer.echo(f"Analyzed '{project_path}'.")
    typer.echo(
        f"Files: {summary.total_files} | Entities: {summary.total_entities} | "
        f"Issues: {summary.total_issues} | Cycles: {summary.total_cycles}"
    )
    for file_result in result.per_file:
        if file_result.parse_error:
            console.print(f"[red]✗ {file_result.file_path}: {file_result.parse_error}[/red]")
    for issue in result.snapshot.issues:
        typer.echo(
            f"  [{issue.severity}] {issue.location.file_path}:{issue.location.line} "
            f"{issue.rule}: {issue.message}"
        )
    for written in (dot, graph_json):
        if written is not None:
            typer.echo(f"Dependency graph written to {written}")


@app.command("callers")
def callers(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    name: str = typer.Argument(..., help="Function or method name."),
    file_path: Optional[str] = typer.Option(None, "--file", "-f", help="Only callers located in this file."),
    member: bool = typer.Option(False, "--member", "-m", help="Also match the last segment of dotted callees (obj.NAME)."),
):
    """Show every call site that invokes NAME."""
    snapshot = _analyze(project_path).snapshot
    with _engine_errors():
        edges = snapshot.find_callers(name, file_path, match_member=member)
    if not edges:
        typer.echo(f"No callers found for '{name}'.")
        return
    console.print(_edge_table(f"Callers of {name}", edges))


@app.command("callees")
def callees(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    name: str = typer.Argument(..., help="Qualified name of the calling entity."),
):
    """Show every call made by NAME."""
    snapshot = _analyze(project_path).snapshot
    with _engine_errors():
        edges = snapshot.find_callees(name)
    if not edges:
        typer.echo(f"No callees found for '{name}'.")
        return
    console.print(_edge_table(f"Calls made by {name}", edges))


@app.command("search")
def search(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    pattern: str = typer.Argument(..., help="Substring or glob (*, ?, [...]) matched case-insensitively."),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help=f"One of: {', '.join(ENTITY_KINDS)}."),
):
    """Search entities by qualified name."""
    if kind is not None and kind not in ENTITY_KINDS:
        raise typer.BadParameter(f"Unknown kind '{kind}'. Expected one of: {', '.join(ENTITY_KINDS)}.")
    snapshot = _analyze(project_path).snapshot
    with _engine_errors():
        entities = snapshot.search_entities(pattern, kind)
    if not entities:
        typer.echo(f"No entities match '{pattern}'.")
        return
    console.print(_entity_table(f"Entities matching {pattern}", entities))


@app.command("entity")
def entity(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    name: str = typer.Argument(..., help="Qualified entity name, e.g. Service.run."),
):
    """Show one entity as JSON (the first one when the name repeats)."""
    snapshot = _analyze(project_path).snapshot
    with _engine_errors():
        found = snapshot.get_entity(name)
    if found is None:
        typer.echo(f"Entity '{name}' not found.", err=True)
        raise typer.Exit(code=EXIT_NOT_FOUND)
    typer.echo(json.dumps(found.to_dict(), indent=2))


@app.command("dependents")
def dependents(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    file_path: str = typer.Argument(..., help="Project-relative file path."),
):
    """List files that depend on FILE_PATH."""
    snapshot = _analyze(project_path).snapshot
    with _engine_errors():
        items = snapshot.get_dependents(file_path)
    _print_list(f"Files depending on {file_path}", items, f"No files depend on '{file_path}'.")


@app.command("dependencies")
def dependencies(
    project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project."),
    file_path: str = typer.Argument(..., help="Project-relative file path."),
):
    """List files and modules FILE_PATH depends on."""
    snapshot = _analyze(project_path).snapshot
    with _engine_errors():
        items = snapshot.get_dependencies(file_path)
    _print_list(f"Dependencies of {file_path}", items, f"'{file_path}' has no dependencies.")


@app.command("cycles")
def cycles(project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project.")):
    """Detect circular dependencies between files.

    Densely connected files can form a very large number of cycles; set
    max_cycles in the analysis table of config.toml to stop the search early.
    """
    found = _analyze(project_path).snapshot.find_circular_dependencies()
    if not found:
        typer.echo("No circular dependencies found.")
        return
    typer.echo(f"Found {len(found)} circular dependencies:")
    for cycle in found:
        typer.echo("  " + " -> ".join(cycle + cycle[:1]))


@app.command("summary")
def summary(project_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Path to source project.")):
    """Print aggregate counts for the project."""
    result = _analyze(project_path).snapshot.get_codebase_summary()
    table = Table(title="Codebase summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Files", str(result.total_files))
    table.add_row("Entities", str(result.total_entities))
    for kind, count in result.entities_by_kind.items():
        table.add_row(f"  {kind}", str(count))
    table.add_row("Average complexity", f"{result.average_complexity:.2f}")
    table.add_row("Issues", str(result.total_issues))
    for severity, count in result.issues_by_severity.items():
        table.add_row(f"  {severity}", str(count))
    table.add_row("Dependency edges", str(result.total_dependency_edges))
    table.add_row("Circular dependencies", str(result.total_cycles))
    table.add_row("Call edges", str(result.total_call_edges))
    table.add_row("Unresolved calls", str(result.unresolved_calls))
    table.add_row("Parse failures", str(result.parse_failures))
    console.print(table)


if __name__ == "__main__":
    app()
