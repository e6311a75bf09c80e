#!/usr/bin/env python3
"""
Command-line front end for the quickpal engine.

Usage:
    quickpal search "query"     - Type a query keystroke by keystroke, show each publication
    quickpal intent "query"     - Show the parsed intent for a query
    quickpal run "query"        - Execute the top result
    quickpal config             - Print the effective configuration
    quickpal serve              - Read queries from stdin until EOF
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import click
import yaml
from loguru import logger
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..daemon.config import Config
from ..daemon.intent.tools import describe
from ..daemon.main import PaletteService, setup_logging
from ..daemon.models import IntentContext, SearchResult
from ..daemon.publication import CallbackSink

console = Console()


def load_config(config_path: Optional[str], quiet: bool = True) -> Config:
    config = Config.load(Path(config_path) if config_path else None)
    if quiet:
        config.logging.level = "WARNING"
    setup_logging(config.logging)
    return config


def results_table(results: List[SearchResult], title: str, limit: int) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="cyan", no_wrap=False)
    table.add_column("Subtitle", no_wrap=False)
    table.add_column("Category", style="magenta")
    table.add_column("Score", justify="right")
    table.add_column("Source", style="dim")

    for index, r in enumerate(results[:limit], 1):
        title_text = f"[bold]{r.title}[/bold]" if r.is_active else r.title
        table.add_row(
            str(index),
            title_text,
            r.subtitle[:80],
            r.category.value,
            str(r.score),
            r.provider or r.source.value,
        )
    return table


def display_context(context: Optional[IntentContext]) -> None:
    if context is None:
        console.print("[dim]No intent detected[/dim]")
        return
    console.print(
        f"\n[bold]Intent:[/bold] {context.intent_type.value} "
        f"[dim](confidence {context.confidence:.2f})[/dim]"
    )
    for entity in context.entities:
        console.print(f"  • {entity.entity_type.value}: {entity.value}")


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Show engine logs")
@click.pass_context
def cli(ctx, config_path: Optional[str], verbose: bool):
    """quickpal - command palette search engine."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("query")
@click.option("--type-delay", default=30, help="Milliseconds between keystrokes")
@click.option("--limit", "-l", default=10, help="Rows to show per publication")
@click.option("--trace", is_flag=True, help="Print the search trace")
@click.pass_context
def search(ctx, query: str, type_delay: int, limit: int, trace: bool):
    """Type QUERY one keystroke at a time and show every publication."""
    config = load_config(ctx.obj["config_path"], quiet=not ctx.obj["verbose"])
    asyncio.run(run_search(config, query, type_delay, limit, trace))


async def run_search(config: Config, query: str, type_delay: int, limit: int, trace: bool):
    publications: List[List[SearchResult]] = []
    sink = CallbackSink(on_results=publications.append)
    service = PaletteService(config, sink=sink)
    await service.start()

    try:
        for end in range(1, len(query) + 1):
            service.orchestrator.on_query_changed(query[:end])
            await asyncio.sleep(type_delay / 1000)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console
        ) as progress:
            progress.add_task(description="Waiting for slow providers...", total=None)
            await service.orchestrator.wait_idle()

        console.print(f"[dim]{len(publications)} publications across "
                      f"{service.orchestrator.generation} generations[/dim]")
        final = service.orchestrator.results
        if final:
            console.print(results_table(final, f"Results for '{query}'", limit))
        else:
            console.print("[yellow]No results found[/yellow]")
        display_context(service.orchestrator.intent_context)

        if trace and service.orchestrator.last_trace is not None:
            console.print(f"\n[bold]Trace:[/bold]\n{service.orchestrator.last_trace.to_string()}")
    finally:
        await service.stop()


@cli.command()
@click.argument("query")
@click.option("--no-backend", is_flag=True, help="Use the rule-based parser only")
@click.pass_context
def intent(ctx, query: str, no_backend: bool):
    """Show the tool call and intent context for QUERY."""
    config = load_config(ctx.obj["config_path"], quiet=not ctx.obj["verbose"])
    if no_backend:
        config.intent.backend = "none"
    asyncio.run(show_intent(config, query.strip()))


async def show_intent(config: Config, query: str):
    service = PaletteService(config)
    try:
        tool_call = await service.adapter.infer(query)
        if tool_call is None:
            console.print("[yellow]No intent[/yellow]")
            return
        console.print(f"[green]✓[/green] {describe(tool_call)}")
        console.print_json(json.dumps(tool_call.to_dict()))
        display_context(service.adapter.build_context(tool_call, query))
    finally:
        await service.stop()


@cli.command()
@click.argument("query")
@click.option("--reveal", is_flag=True, help="Run the reveal action instead")
@click.pass_context
def run(ctx, query: str, reveal: bool):
    """Search QUERY and execute the top result."""
    config = load_config(ctx.obj["config_path"], quiet=not ctx.obj["verbose"])
    asyncio.run(run_top_result(config, query, reveal))


async def run_top_result(config: Config, query: str, reveal: bool):
    service = PaletteService(config)
    await service.start()
    try:
        await service.search(query)
        top = service.store.selected
        if top is None:
            console.print("[yellow]No results found[/yellow]")
            return
        console.print(f"Running [cyan]{top.title}[/cyan] ({top.action.kind})")
        try:
            outcome = service.dispatcher.reveal(top) if reveal else service.dispatcher.execute(top)
        except Exception as e:
            console.print(f"[red]Error:[/red] {e}")
            logger.exception("Command failed")
            return
        if outcome is not None:
            console.print(f"[green]✓[/green] {outcome}")
    finally:
        await service.stop()


@cli.command(name="config")
@click.option("--path", "show_path", is_flag=True, help="Only show which file would be loaded")
@click.pass_context
def show_config(ctx, show_path: bool):
    """Print the effective configuration."""
    if show_path:
        explicit = ctx.obj["config_path"]
        candidates = [Path(explicit)] if explicit else Config.default_paths()
        found = next((p for p in candidates if p.exists()), None)
        console.print(str(found) if found else "[dim]No config file, using defaults[/dim]")
        return
    config = load_config(ctx.obj["config_path"])
    console.print(yaml.safe_dump(config.model_dump(mode="json"), default_flow_style=False))


@cli.command()
@click.pass_context
def serve(ctx):
    """Read queries from stdin, one per line."""
    from ..daemon.main import main as service_main

    try:
        asyncio.run(service_main(ctx.obj["config_path"]))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user[/yellow]")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
