import asyncio

import click
from rich.console import Console
from rich.table import Table

from rolo.config import get_config
from rolo.constants import SIMILAR_INTERACTION_LIMIT, SNIPPET_DISPLAY_LIMIT
from rolo.contacts.models import Person, VectorHit
from rolo.logging import configure_logging, uvicorn_log_config
from rolo.search.analyzer import QueryAnalysis

console = Console()


@click.group(invoke_without_command=True)
@click.pass_context
def main(ctx):
    """rolo - search your contacts in plain language"""
    try:
        ctx.ensure_object(dict)
        ctx.obj["config"] = get_config()
        configure_logging(ctx.obj["config"].log_level, ctx.obj["config"].log_json)
    except ValueError as e:
        # Only fail if we're running a command that needs config
        ctx.obj["config_error"] = str(e)

    if ctx.invoked_subcommand is None:
        console.print("[bold]rolo[/bold] - search your contacts in plain language\n")
        console.print("Run [cyan]rolo seed[/cyan] to load demo contacts, then [cyan]rolo search \"...\"[/cyan].")
        console.print("\nUse [cyan]rolo --help[/cyan] for all commands.")


def _require_config(ctx):
    if "config_error" in ctx.obj:
        console.print(f"[red]Error:[/red] {ctx.obj['config_error']}")
        raise SystemExit(1)
    return ctx.obj["config"]


def _print_analysis(analysis: QueryAnalysis) -> None:
    console.print(f"Query: [cyan]{analysis.original_query}[/cyan]")
    if analysis.was_rewritten:
        console.print(f"Rewritten: [cyan]{analysis.rewritten_query}[/cyan] ({analysis.rewrite_confidence:.2f})")
    console.print(
        f"Intent: [bold]{analysis.intent.value}[/bold]  "
        f"Strategy: [bold]{analysis.strategy.value}[/bold]  "
        f"Confidence: {analysis.confidence:.2f}"
    )
    for category, values in analysis.entities.as_dict().items():
        console.print(f"  {category}: {', '.join(values)}")


def _describe(payload) -> str:
    if isinstance(payload, Person):
        roles = ", ".join(f"{r.title} at {r.organization}" for r in payload.current_roles)
        return f"{payload.name}" + (f" ({roles})" if roles else "")
    if isinstance(payload, VectorHit):
        return payload.content[:SNIPPET_DISPLAY_LIMIT]
    return str(payload)


@main.command()
@click.pass_context
def status(ctx):
    """Show configuration and store counts."""
    config = _require_config(ctx)

    console.print("[bold]rolo status[/bold]")
    console.print()
    console.print(f"Database dir: [cyan]{config.db_dir}[/cyan]")
    console.print(f"Embedding model: {config.embedding_model} ({config.embedding_dim} dims)")
    console.print(f"Fusion: {config.fusion.to_dict()}")

    counts = asyncio.run(_with_service(config, lambda service: service.status()))
    console.print(
        f"People: {counts['people']}  Interactions: {counts['interactions']}  Indexed: {counts['indexed']}"
    )


@main.command()
@click.argument("query")
def analyze(query: str):
    """Show how a query would be classified, without searching."""
    from rolo.search.analyzer import QueryAnalyzer

    _print_analysis(QueryAnalyzer().analyze(query))


@main.command()
@click.argument("query")
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Maximum number of results")
@click.option("--offset", default=0, type=click.IntRange(min=0), help="Skip this many structured results")
@click.pass_context
def search(ctx, query: str, limit: int | None, offset: int):
    """Search contacts and interaction notes."""
    config = _require_config(ctx)
    response = asyncio.run(_with_service(config, lambda s: s.execute(query, limit=limit, offset=offset)))

    _print_analysis(response.analysis)
    console.print(
        f"[dim]{response.strategy}: {response.basic_count} structured, "
        f"{response.semantic_count} semantic in {response.execution_time_ms:.0f} ms[/dim]"
    )
    console.print()

    if not response.results:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Type")
    table.add_column("Result")
    table.add_column("Source")
    table.add_column("Score", justify="right")
    for i, result in enumerate(response.results, start=1):
        table.add_row(
            str(i),
            result.entity_type.value,
            _describe(result.payload),
            result.source.value,
            f"{result.rank or result.score:.3f}",
        )
    console.print(table)


@main.command()
@click.argument("interaction_id", type=int)
@click.option("--limit", default=SIMILAR_INTERACTION_LIMIT, help="Maximum number of neighbours")
@click.pass_context
def similar(ctx, interaction_id: int, limit: int):
    """List interaction notes similar to an indexed one."""
    config = _require_config(ctx)
    hits = asyncio.run(_with_service(config, lambda s: s.similar(interaction_id, limit)))

    if hits is None:
        console.print(f"[red]Error:[/red] interaction {interaction_id} is not indexed")
        raise SystemExit(1)
    if not hits:
        console.print("[yellow]No similar interactions[/yellow]")
        return
    for hit in hits:
        console.print(f"[cyan]{hit.id}[/cyan] {hit.similarity:.3f}  {hit.content[:SNIPPET_DISPLAY_LIMIT]}")


@main.command()
@click.option("--no-index", is_flag=True, help="Skip embedding interaction notes")
@click.pass_context
def seed(ctx, no_index: bool):
    """Replace the contact store with demo contacts."""
    config = _require_config(ctx)
    counts = asyncio.run(_seed(config, index=not no_index))
    console.print(
        f"[green]Seeded[/green] {counts['people']} people, {counts['interactions']} interactions "
        f"({counts['indexed']} indexed)"
    )


@main.command()
@click.pass_context
def reindex(ctx):
    """Embed interaction notes that are missing from or stale in the index."""
    config = _require_config(ctx)
    indexed = asyncio.run(_with_service(config, lambda s: s.reindex()))
    console.print(f"[green]Indexed[/green] {indexed} interactions")


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.pass_context
def serve(ctx, host: str, port: int, reload: bool):
    """Start the rolo API server."""
    config = _require_config(ctx)

    import uvicorn

    console.print(f"[bold]rolo server[/bold] starting on http://{host}:{port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]")
    console.print()

    uvicorn.run(
        "rolo.server.app:app",
        host=host,
        port=port,
        reload=reload,
        log_config=uvicorn_log_config(config.log_json),
    )


async def _with_service(config, action):
    from rolo.service import UnifiedSearch

    service = await UnifiedSearch.create(config)
    try:
        return await action(service)
    finally:
        await service.close()


async def _seed(config, index: bool) -> dict:
    from rolo.contacts.seed import seed_contacts

    return await _with_service(config, lambda s: seed_contacts(s.store, s.index, embed=index))


if __name__ == "__main__":
    main()
