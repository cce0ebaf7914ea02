"""Wires settings into the components used by the CLI commands."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

import httpx

from dealpulse.core.config import Settings
from dealpulse.data.roster import JsonRosterRepository
from dealpulse.data.store import JsonFileResearchStore
from dealpulse.intelligence.generator import IntelligenceGenerator
from dealpulse.intelligence.llm_client import LLMClient
from dealpulse.research.connectors import build_connectors
from dealpulse.research.coordinator import ResearchCoordinator
from dealpulse.research.summary import NarrativeSummarizer
from dealpulse.services.batch_runner import BatchRunner
from dealpulse.services.intelligence_service import IntelligenceService
from dealpulse.services.scheduler import CooldownScheduler


@dataclass
class Runtime:
    settings: Settings
    roster: JsonRosterRepository
    store: JsonFileResearchStore
    coordinator: ResearchCoordinator
    service: IntelligenceService
    batch_runner: BatchRunner
    scheduler: CooldownScheduler


@asynccontextmanager
async def open_runtime(settings: Settings) -> AsyncIterator[Runtime]:
    """Build every component around one shared HTTP client."""
    async with httpx.AsyncClient(
        timeout=settings.research.connector_timeout, follow_redirects=True
    ) as client:
        llm = LLMClient.from_settings(settings.generation)
        roster = JsonRosterRepository(Path(settings.roster_path))
        store = JsonFileResearchStore(Path(settings.store_path))

        coordinator = ResearchCoordinator(
            build_connectors(settings.research, client),
            store,
            summarizer=NarrativeSummarizer(llm),
            roster=roster,
        )
        service = IntelligenceService(IntelligenceGenerator.from_settings(settings, llm), store)
        batch_runner = BatchRunner.from_settings(settings, service, roster=roster)
        scheduler = CooldownScheduler.from_settings(
            settings, coordinator, roster, store, intelligence_runner=batch_runner
        )

        yield Runtime(
            settings=settings,
            roster=roster,
            store=store,
            coordinator=coordinator,
            service=service,
            batch_runner=batch_runner,
            scheduler=scheduler,
        )
