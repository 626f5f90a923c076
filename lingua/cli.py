"""
Lingua operator CLI.

Commands:
- lingua validate  - Load the catalog and fail on malformed definitions
- lingua concepts  - List module concepts
- lingua modules   - Show modules with their submodule/schema steps
- lingua init-db   - Create database tables
- lingua serve     - Run the API server
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from config import get_settings
from lingua.core.errors import RegistryLoadError
from lingua.db.database import Database
from lingua.marking import StrategyRegistry
from lingua.registry.catalog import LearningCatalog, build_catalog

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="lingua",
    help="Lingua progression engine tools",
    no_args_is_help=True,
)
console = Console()


def _load_catalog(definitions_dir: Optional[Path]) -> LearningCatalog:
    settings = get_settings()
    if definitions_dir is not None:
        settings = settings.model_copy(update={"definitions_dir": definitions_dir})
    return build_catalog(settings)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def validate(
    definitions_dir: Optional[Path] = typer.Option(
        None,
        "--dir", "-d",
        help="Definitions directory (defaults to settings)",
    ),
) -> None:
    """Load every definition file and report problems."""
    try:
        catalog = _load_catalog(definitions_dir)
    except RegistryLoadError as e:
        console.print(f"[bold red]Catalog invalid:[/bold red] {e.message}")
        raise typer.Exit(code=1)

    strategies = StrategyRegistry.list_strategies()
    unmarkable = [
        s.id for s in catalog.schemas.get_all_schemas() if s.marking.mode.value not in strategies
    ]
    if unmarkable:
        console.print(f"[bold red]Catalog invalid:[/bold red] no marking strategy for {', '.join(unmarkable)}")
        raise typer.Exit(code=1)

    modules = catalog.modules.get_all_modules()
    pairs = sum(len(m.supported_pairs()) for m in modules)
    console.print(
        f"[bold green]Catalog OK[/bold green]: {len(modules)} modules, "
        f"{len(catalog.schemas.get_all_schemas())} modal schemas, {pairs} steps, "
        f"{len(strategies)} marking strategies"
    )


@app.command()
def concepts(
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Filter by target language"),
) -> None:
    """List module concepts and their languages."""
    catalog = _load_catalog(None)
    table = Table(title="Module Concepts")
    table.add_column("Concept", style="bold cyan")
    table.add_column("Title")
    table.add_column("Target languages")
    table.add_column("Source languages", style="dim")

    for concept in catalog.modules.get_unique_module_concepts():
        if target and target not in concept.supported_target_languages:
            continue
        table.add_row(
            concept.id,
            concept.title,
            ", ".join(sorted(concept.supported_target_languages)),
            ", ".join(sorted(concept.supported_source_languages)),
        )
    console.print(table)


@app.command()
def modules(
    target: str = typer.Option(..., "--target", "-t", help="Target language"),
    source: str = typer.Option("en", "--source", "-s", help="Language for titles"),
) -> None:
    """Show each module's submodules and modal schemas."""
    catalog = _load_catalog(None)
    found = [m for m in catalog.modules.get_all_modules() if m.target_language == target]
    if not found:
        console.print(f"[bold yellow]No modules for target language {target}[/bold yellow]")
        raise typer.Exit(code=1)

    for module in found:
        table = Table(title=f"{module.title_for(source)} ({module.concept_id})")
        table.add_column("Submodule", style="bold")
        table.add_column("Modal schema")
        table.add_column("UI component", style="dim")
        for submodule in module.submodules:
            for schema_id in submodule.supported_modal_schema_ids:
                schema = catalog.schemas.get_schema(schema_id)
                table.add_row(
                    submodule.title_for(source),
                    schema_id,
                    catalog.resolve_ui_component(submodule, schema),
                )
        console.print(table)


@app.command("init-db")
def init_db() -> None:
    """Create database tables."""
    Database.from_settings(get_settings()).init_db()
    console.print("[bold green]Database initialized[/bold green]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "lingua.api.main:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(sys.stderr, level="WARNING", format="<level>{message}</level>")

    app()


if __name__ == "__main__":
    main()
