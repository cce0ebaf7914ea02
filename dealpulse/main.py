"""
Main application entry point for DealPulse.

Provides CLI interface for research, intelligence generation and the worker.
"""

import asyncio
import sys
from datetime import timedelta
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from dealpulse.cli_commands.runtime import open_runtime
from dealpulse.cli_commands.show import show
from dealpulse.core.config import (
    get_settings,
    print_configuration_summary,
    validate_required_settings,
)
from dealpulse.core.exceptions import DealPulseError
from dealpulse.core.logging import set_correlation_id, setup_logging
from dealpulse.core.models import BatchSummary, ResearchRunResult, utcnow

console = Console()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines instead of rich output")
@click.option("--correlation-id", help="Set correlation ID for request tracing")
@click.pass_context
def main(ctx, debug: bool, json_logs: bool, correlation_id: Optional[str]):
    """Research orchestration and deal intelligence for client rosters.

    Gathers external signals about each client's company, scores deal health
    and stores an intelligence report per client.
    """
    ctx.ensure_object(dict)
    load_dotenv()

    setup_logging(debug=debug, rich_output=not json_logs)
    ctx.obj["correlation_id"] = set_correlation_id(correlation_id)
    ctx.obj["debug"] = debug


main.add_command(show)


def _fail(ctx, label: str, error: Exception) -> None:
    console.print(f"[red]{label}:[/red] {error}")
    if ctx.obj.get("debug"):
        import traceback

        console.print(traceback.format_exc())
    sys.exit(1)


def _display_summary(title: str, summary: BatchSummary) -> None:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Total", str(summary.total))
    table.add_row("Processed", str(summary.processed))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Failed", str(summary.failed))
    console.print(table)

    failures = [d for d in summary.details if d.error]
    if failures:
        console.print("\n[bold]Failures:[/bold]")
        for detail in failures:
            console.print(f"  • {detail.entity_id}: {detail.error}")


def _display_research_result(result: Optional[ResearchRunResult]) -> None:
    if result is None:
        console.print("[red]Entity not found in roster[/red]")
        return
    console.print(f"Research outcome for {result.entity_id}: [bold]{result.outcome.value}[/bold]")
    if result.sources_fetched:
        console.print(f"  fetched: {', '.join(result.sources_fetched)}")
    if result.sources_empty:
        console.print(f"  empty: {', '.join(result.sources_empty)}")
    if result.sources_failed:
        console.print(f"  failed: {', '.join(result.sources_failed)}")


async def _research_one(settings, entity_id: str, user_id: str, force: bool):
    async with open_runtime(settings) as runtime:
        if force:
            return await runtime.coordinator.refresh(entity_id, user_id)

        entity = await runtime.roster.get(entity_id, user_id)
        now = utcnow()
        record = await runtime.store.get(entity_id, user_id)
        stale = runtime.scheduler.stale_sources(record, now)
        if not stale:
            console.print("[yellow]All sources are within the cooldown window[/yellow]")
            return None
        return await runtime.coordinator.run(entity, sources=stale, now=now)


async def _research_cycle(settings, force: bool) -> BatchSummary:
    async with open_runtime(settings) as runtime:
        if force:
            runtime.scheduler.cooldown = timedelta(0)
        return await runtime.scheduler.run_cycle()


async def _intelligence(settings, entity_id: Optional[str]) -> BatchSummary:
    async with open_runtime(settings) as runtime:
        entities = None
        if entity_id:
            entities = [e for e in await runtime.roster.list_entities() if e.id == entity_id]
            if not entities:
                console.print(f"[yellow]No roster entity with id {entity_id}[/yellow]")
        return await runtime.batch_runner.run(entities)


async def _cycle(settings):
    async with open_runtime(settings) as runtime:
        research = await runtime.scheduler.run_cycle()
        intelligence = await runtime.batch_runner.run()
        return research, intelligence


async def _worker(settings, interval: float, iterations: Optional[int]) -> None:
    async with open_runtime(settings) as runtime:
        await runtime.scheduler.run_forever(interval, max_iterations=iterations)


@main.command()
@click.option("--entity-id", help="Research a single entity")
@click.option("--user-id", help="Owning user of --entity-id")
@click.option("--force", is_flag=True, help="Ignore the cooldown window")
@click.pass_context
def research(ctx, entity_id: Optional[str], user_id: Optional[str], force: bool):
    """Run research for one entity, or a cooldown cycle over the roster."""
    settings = get_settings()
    for item in validate_required_settings("research", settings):
        console.print(f"[yellow]Source disabled, missing:[/yellow] {item}")

    try:
        if entity_id:
            if not user_id:
                raise click.UsageError("--user-id is required with --entity-id")
            result = asyncio.run(_research_one(settings, entity_id, user_id, force))
            if result is not None or force:
                _display_research_result(result)
        else:
            summary = asyncio.run(_research_cycle(settings, force))
            _display_summary("Research Cycle", summary)
    except DealPulseError as e:
        _fail(ctx, "Research Error", e)


@main.command()
@click.option("--entity-id", help="Generate for a single entity")
@click.pass_context
def intelligence(ctx, entity_id: Optional[str]):
    """Generate deal intelligence across the roster in throttled batches."""
    settings = get_settings()
    if validate_required_settings("intelligence", settings):
        console.print("[yellow]No generative service configured; using fallback reports[/yellow]")

    try:
        summary = asyncio.run(_intelligence(settings, entity_id))
    except DealPulseError as e:
        _fail(ctx, "Intelligence Error", e)
    _display_summary("Intelligence Batch", summary)


@main.command()
@click.pass_context
def cycle(ctx):
    """Run one research cycle followed by an intelligence batch."""
    try:
        research_summary, intelligence_summary = asyncio.run(_cycle(get_settings()))
    except DealPulseError as e:
        _fail(ctx, "Cycle Error", e)
    _display_summary("Research Cycle", research_summary)
    _display_summary("Intelligence Batch", intelligence_summary)


@main.command()
@click.option("--interval", type=float, help="Seconds between cycles (default from settings)")
@click.option("--iterations", type=int, help="Stop after this many cycles")
@click.pass_context
def worker(ctx, interval: Optional[float], iterations: Optional[int]):
    """Run research and intelligence cycles on a fixed interval."""
    settings = get_settings()
    interval = interval if interval is not None else settings.batch.worker_interval_seconds
    console.print(f"[blue]Starting worker (interval {interval:.0f}s)[/blue]")
    try:
        asyncio.run(_worker(settings, interval, iterations))
    except KeyboardInterrupt:
        console.print("[yellow]Worker stopped[/yellow]")
    except DealPulseError as e:
        _fail(ctx, "Worker Error", e)


@main.command()
def config():
    """Display current configuration."""
    settings = get_settings()
    missing = validate_required_settings("research", settings) + validate_required_settings(
        "intelligence", settings
    )
    if missing:
        console.print("[red]Configuration Issues:[/red]")
        for item in missing:
            console.print(f"  • Missing: {item}")
        console.print()
    else:
        console.print("[green]Configuration Valid[/green]")
        console.print()

    print_configuration_summary(console, settings)
    sys.exit(0 if not missing else 1)


if __name__ == "__main__":
    main()
