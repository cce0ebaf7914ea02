"""
"Show" command: render the stored intelligence for one entity.

Entities without an intelligence document yet are reported as pending.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from dealpulse.core.config import get_settings
from dealpulse.core.exceptions import DealPulseError
from dealpulse.core.models import DealIntelligence, ResearchRecord
from dealpulse.data.store import JsonFileResearchStore

console = Console()


def render_intelligence(record: ResearchRecord, out: Console = console) -> None:
    intel: DealIntelligence = record.deal_intelligence
    title = f"Deal intelligence: {record.company or record.entity_id}"

    if intel.is_advisory:
        out.print(f"[bold]{title}[/bold]")
        out.print(f"[yellow]{intel.message}[/yellow]")
        for item in intel.recommendations:
            out.print(f"  • {item}")
        return

    table = Table(title=title)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Score", str(intel.score))
    table.add_row("Confidence", f"{intel.confidence}%")
    if intel.momentum:
        table.add_row("Momentum", intel.momentum.category.value)
    if intel.engagement:
        table.add_row("Engagement", intel.engagement.value)
    if intel.stage_progress:
        progress = intel.stage_progress
        table.add_row(
            "Stage",
            f"{progress.current_stage} ({progress.percent_complete}%, "
            f"{progress.days_in_stage} days)",
        )
    table.add_row("Source", intel.metadata.source.value)
    table.add_row("Data quality", str(intel.metadata.data_quality))
    table.add_row("Generated", intel.metadata.generated_at.isoformat())
    out.print(table)

    if intel.reasoning:
        out.print(f"\n[bold]Reasoning[/bold]\n{intel.reasoning}")
    if intel.risk_factors:
        out.print("\n[bold]Risks[/bold]")
        for risk in intel.risk_factors:
            out.print(f"  [{risk.severity.value}] {risk.description} ({risk.impact})")
    if intel.next_actions:
        out.print("\n[bold]Next actions[/bold]")
        for action in intel.next_actions:
            out.print(f"  • {action.action} [{action.priority}, {action.deadline}]")


@click.command()
@click.argument("entity_id")
@click.argument("user_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw stored document")
def show(entity_id: str, user_id: str, as_json: bool):
    """Show stored deal intelligence for ENTITY_ID owned by USER_ID."""
    try:
        store = JsonFileResearchStore(Path(get_settings().store_path))
        record = asyncio.run(store.get(entity_id, user_id))
    except DealPulseError as e:
        console.print(f"[red]Store Error:[/red] {e}")
        sys.exit(1)

    if record is None or record.deal_intelligence is None:
        console.print(f"[yellow]pending[/yellow]: no intelligence generated for {entity_id} yet")
        return

    if as_json:
        click.echo(json.dumps(record.deal_intelligence.to_document(), indent=2))
        return

    render_intelligence(record)
