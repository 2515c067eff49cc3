"""Scope program CLI commands.

Commands:
    scope catalog           -- List catalog items for a workspace
    scope intent            -- Recommend catalog items for a selection intent
    scope validate-pattern  -- Validate and normalize pattern text
    scope compile           -- Compile a request file into a descriptor
    scope resolve           -- Resolve a descriptor and list the files it contains
    scope normalize         -- Recompile a stored descriptor
    scope contains          -- Check one file against a descriptor
    scope filter            -- Split files into matched/excluded/missing

Workspaces are read from a YAML manifest (``--workspace``, default
``scopekit.yaml``). Engine defaults come from ``.scopekit/config.yaml`` in
the current directory.
"""

import json as json_lib
import logging
from pathlib import Path
from typing import Any, List, NoReturn, Optional, Type, TypeVar

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scopekit.scope import (
    CatalogIntent,
    ProgramDescriptor,
    ResolveRequest,
    ScopeEngineError,
    ScopeResolver,
    build_search_plan,
    contains_file,
    filter_files,
    load_engine_config,
)
from scopekit.scope.models import CatalogItem, Shape
from scopekit.workspace import InMemoryWorkspace, WorkspaceError, load_manifest

logger = logging.getLogger(__name__)

app = typer.Typer(help="Scope program commands")
console = Console(width=120)

DEFAULT_MANIFEST = "scopekit.yaml"

_VALID_INTENTS = {i.value for i in CatalogIntent}

_SHAPE_STYLES = {
    Shape.GLOBAL: "green",
    Shape.LOCAL: "yellow",
    Shape.MIXED: "magenta",
}

M = TypeVar("M", bound=BaseModel)

WorkspaceOption = typer.Option(
    Path(DEFAULT_MANIFEST),
    "--workspace",
    "-w",
    help="Workspace manifest (YAML)",
)
JsonOption = typer.Option(
    False,
    "--json",
    help="Output as JSON (machine-parseable)",
)


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error: {escape(message)}[/red]")
    raise typer.Exit(1)


def _make_resolver(workspace: Path, required: bool = True) -> ScopeResolver:
    """Build a resolver for the manifest at ``workspace`` using local config.

    When ``required`` is False a missing manifest yields an empty workspace.
    """
    config = load_engine_config(Path.cwd())
    if not required and not workspace.exists():
        return ScopeResolver(InMemoryWorkspace(), config=config)
    try:
        return ScopeResolver(load_manifest(workspace), config=config)
    except WorkspaceError as exc:
        _fail(str(exc))


def _read_model(path: Path, model: Type[M]) -> M:
    if not path.exists():
        _fail(f"File not found: {path}")
    try:
        return model.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        _fail(f"{path} is not a valid {model.__name__}: {exc}")


def _dump(payload: Any) -> None:
    # print() rather than console.print() to avoid Rich markup
    print(json_lib.dumps(payload, indent=2))


def _print_diagnostics(diagnostics: List[str]) -> None:
    for message in diagnostics:
        console.print(f"[yellow]![/yellow] {escape(message)}")


def _shape_label(shape: Shape) -> str:
    style = _SHAPE_STYLES.get(shape, "white")
    return f"[{style}]{shape.value}[/{style}]"


def _items_table(title: str, items: List[CatalogItem]) -> Table:
    table = Table(title=title)
    table.add_column("Reference", style="cyan")
    table.add_column("Display name", style="bold")
    table.add_column("Kind")
    table.add_column("Shape")
    table.add_column("Flags", style="dim")
    for item in items:
        flags = []
        if item.requires_user_input:
            flags.append("interactive")
        if item.unstable:
            flags.append("unstable")
        table.add_row(
            item.scope_ref_id,
            escape(item.display_name),
            item.kind.value,
            _shape_label(item.shape),
            ", ".join(flags),
        )
    return table


@app.command("catalog")
def catalog(
    workspace: Path = WorkspaceOption,
    allow_interactive: Optional[bool] = typer.Option(
        None,
        "--allow-interactive/--no-interactive",
        help="Include scopes that require user input (default from config)",
    ),
    json_output: bool = JsonOption,
) -> None:
    """List every catalog item available in the workspace."""
    resolver = _make_resolver(workspace)
    result = resolver.list_catalog(allow_interactive=allow_interactive)

    if json_output:
        _dump(result.model_dump(mode="json"))
        return

    if not result.items:
        console.print("[dim]No catalog items found[/dim]")
    else:
        console.print(_items_table("Scope Catalog", result.items))
        console.print(f"\n[dim]Total: {len(result.items)} item(s)[/dim]")
    _print_diagnostics(result.diagnostics)


@app.command("intent")
def intent(
    intent_name: str = typer.Argument(..., metavar="INTENT", help="Selection intent"),
    workspace: Path = WorkspaceOption,
    max_results: int = typer.Option(20, "--max-results", "-n", help="Maximum items to return"),
    include_interactive: bool = typer.Option(
        False,
        "--include-interactive",
        help="Include scopes that require user input",
    ),
    json_output: bool = JsonOption,
) -> None:
    """Recommend catalog items for a selection intent."""
    if intent_name not in _VALID_INTENTS:
        _fail(f"Invalid intent '{intent_name}'. Valid intents: {', '.join(sorted(_VALID_INTENTS))}")

    resolver = _make_resolver(workspace)
    try:
        result = resolver.find_by_intent(
            CatalogIntent(intent_name),
            max_results=max_results,
            include_interactive=include_interactive,
        )
    except ValueError as exc:
        _fail(str(exc))

    if json_output:
        _dump(result.model_dump(mode="json"))
        return

    if result.items:
        console.print(_items_table(f"Intent: {result.intent.value}", result.items))
    if result.recommended_scope_ref_id:
        console.print(f"\nRecommended: [bold cyan]{result.recommended_scope_ref_id}[/bold cyan]")
    _print_diagnostics(result.diagnostics)


@app.command("validate-pattern")
def validate_pattern(
    pattern_text: str = typer.Argument(..., metavar="PATTERN", help="Pattern text to validate"),
    workspace: Path = WorkspaceOption,
    json_output: bool = JsonOption,
) -> None:
    """Validate pattern text and show its normalized form."""
    resolver = _make_resolver(workspace, required=False)
    result = resolver.validate_pattern(pattern_text)

    if json_output:
        _dump(result.model_dump(mode="json"))
    elif result.valid:
        console.print(f"[green]✓[/green] Valid pattern: [bold]{escape(result.normalized_pattern_text or '')}[/bold]")
    else:
        _print_diagnostics(result.diagnostics)

    if not result.valid:
        raise typer.Exit(1)


@app.command("compile")
def compile_request(
    request_file: Path = typer.Argument(..., help="JSON file holding a resolve request"),
    workspace: Path = WorkspaceOption,
    strict: Optional[bool] = typer.Option(
        None,
        "--strict/--lenient",
        help="Override the resolution policy for this run",
    ),
    json_output: bool = JsonOption,
) -> None:
    """Compile a scope program into a storable descriptor."""
    resolver = _make_resolver(workspace)
    request = _read_model(request_file, ResolveRequest)
    try:
        descriptor = resolver.compile(request, strict=strict)
    except ScopeEngineError as exc:
        _fail(str(exc))

    if json_output:
        _dump(descriptor.model_dump(mode="json"))
        return

    console.print(f"Scope: [bold]{escape(descriptor.display_name)}[/bold] ({_shape_label(descriptor.shape)})")
    console.print(f"[dim]{len(descriptor.atoms)} atom(s), {len(descriptor.tokens)} token(s)[/dim]")
    _print_diagnostics(descriptor.diagnostics)


@app.command("normalize")
def normalize(
    descriptor_file: Path = typer.Argument(..., help="JSON file holding a stored descriptor"),
    workspace: Path = WorkspaceOption,
    allow_interactive: Optional[bool] = typer.Option(
        None,
        "--allow-interactive/--no-interactive",
        help="Allow scopes that require user input (default from config)",
    ),
) -> None:
    """Recompile a stored descriptor against the current workspace and print it as JSON."""
    resolver = _make_resolver(workspace)
    descriptor = _read_model(descriptor_file, ProgramDescriptor)
    try:
        normalized = resolver.normalize_descriptor(descriptor, allow_interactive=allow_interactive)
    except ScopeEngineError as exc:
        _fail(str(exc))
    _dump(normalized.model_dump(mode="json"))


@app.command("resolve")
def resolve(
    descriptor_file: Path = typer.Argument(..., help="JSON file holding a stored descriptor"),
    workspace: Path = WorkspaceOption,
    allow_interactive: Optional[bool] = typer.Option(
        None,
        "--allow-interactive/--no-interactive",
        help="Allow scopes that require user input (default from config)",
    ),
    json_output: bool = JsonOption,
) -> None:
    """Resolve a descriptor and list the workspace files it contains."""
    resolver = _make_resolver(workspace)
    descriptor = _read_model(descriptor_file, ProgramDescriptor)
    try:
        resolved = resolver.resolve(descriptor, allow_interactive=allow_interactive)
    except ScopeEngineError as exc:
        _fail(str(exc))

    plan = build_search_plan(resolved, resolver.workspace)
    files = plan.select(resolver.workspace.files())
    diagnostics = list(resolved.diagnostics) + plan.diagnostics

    if json_output:
        _dump(
            {
                "display_name": resolved.display_name,
                "shape": resolved.shape.value,
                "file_urls": [f.url for f in files],
                "diagnostics": diagnostics,
            }
        )
        return

    console.print(f"Scope: [bold]{escape(resolved.display_name)}[/bold] ({_shape_label(resolved.shape)})")
    if files:
        table = Table(title="Files in scope")
        table.add_column("Path", style="cyan")
        table.add_column("Module")
        table.add_column("Root", style="dim")
        for f in files:
            table.add_row(f.path, f.module or f.library or "", f.root_kind.value)
        console.print(table)
    else:
        console.print("[dim]No files in scope[/dim]")
    _print_diagnostics(diagnostics)


@app.command("contains")
def contains(
    descriptor_file: Path = typer.Argument(..., help="JSON file holding a stored descriptor"),
    file_url: str = typer.Argument(..., help="File URL to test"),
    workspace: Path = WorkspaceOption,
    allow_interactive: Optional[bool] = typer.Option(
        None,
        "--allow-interactive/--no-interactive",
        help="Allow scopes that require user input (default from config)",
    ),
    json_output: bool = JsonOption,
) -> None:
    """Check whether a file belongs to a descriptor's scope."""
    resolver = _make_resolver(workspace)
    descriptor = _read_model(descriptor_file, ProgramDescriptor)
    try:
        result = contains_file(resolver, descriptor, file_url, allow_interactive=allow_interactive)
    except ScopeEngineError as exc:
        _fail(str(exc))

    if json_output:
        _dump(result.model_dump(mode="json"))
        return

    if result.matches:
        console.print(f"[green]✓[/green] {file_url} is in [bold]{escape(result.scope_display_name)}[/bold]")
    else:
        console.print(f"[red]✗[/red] {file_url} is not in [bold]{escape(result.scope_display_name)}[/bold]")
    _print_diagnostics(result.diagnostics)


@app.command("filter")
def filter_command(
    descriptor_file: Path = typer.Argument(..., help="JSON file holding a stored descriptor"),
    file_urls: List[str] = typer.Argument(..., help="File URLs to filter"),
    workspace: Path = WorkspaceOption,
    allow_interactive: Optional[bool] = typer.Option(
        None,
        "--allow-interactive/--no-interactive",
        help="Allow scopes that require user input (default from config)",
    ),
    json_output: bool = JsonOption,
) -> None:
    """Split file URLs into matched, excluded and missing."""
    resolver = _make_resolver(workspace)
    descriptor = _read_model(descriptor_file, ProgramDescriptor)
    try:
        result = filter_files(resolver, descriptor, file_urls, allow_interactive=allow_interactive)
    except ScopeEngineError as exc:
        _fail(str(exc))

    if json_output:
        _dump(result.model_dump(mode="json"))
        return

    table = Table(title=f"Filter: {escape(result.scope_display_name)}")
    table.add_column("File URL", style="cyan")
    table.add_column("Result")
    for url in result.matched_file_urls:
        table.add_row(url, "[green]matched[/green]")
    for url in result.excluded_file_urls:
        table.add_row(url, "[dim]excluded[/dim]")
    for url in result.missing_file_urls:
        table.add_row(url, "[red]missing[/red]")
    console.print(table)
    _print_diagnostics(result.diagnostics)
