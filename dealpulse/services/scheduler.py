"""
Cooldown-driven research scheduling.

Each cycle walks the active roster and re-runs research for entities with at
least one source older than the cooldown window.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog

from dealpulse.core.models import (
    BatchSummary,
    Entity,
    EntityOutcome,
    ProcessingStatus,
    ResearchOutcome,
    ResearchRecord,
    ensure_utc,
    utcnow,
)
from dealpulse.data.roster import RosterRepository
from dealpulse.data.store import ResearchStore
from dealpulse.research.coordinator import ResearchCoordinator
from dealpulse.services.batch_runner import BatchRunner
from dealpulse.utils.reliability import track_performance

logger = structlog.get_logger(__name__)

_OUTCOME_STATUS = {
    ResearchOutcome.COMPLETED: ProcessingStatus.PROCESSED,
    ResearchOutcome.NO_DATA: ProcessingStatus.PROCESSED,
    ResearchOutcome.SKIPPED_DUPLICATE: ProcessingStatus.SKIPPED,
    ResearchOutcome.ABORTED: ProcessingStatus.FAILED,
}


class CooldownScheduler:
    """Decides per source when research is due and runs it across the roster."""

    def __init__(
        self,
        coordinator: ResearchCoordinator,
        roster: RosterRepository,
        store: ResearchStore,
        cooldown_hours: float = 12.0,
        max_concurrent: int = 5,
        refetch_all_sources: bool = False,
        intelligence_runner: Optional[BatchRunner] = None,
    ):
        self.coordinator = coordinator
        self.roster = roster
        self.store = store
        self.cooldown = timedelta(hours=cooldown_hours)
        self.max_concurrent = max(1, max_concurrent)
        self.refetch_all_sources = refetch_all_sources
        self.intelligence_runner = intelligence_runner

    @classmethod
    def from_settings(cls, settings, coordinator, roster, store, intelligence_runner=None):
        return cls(
            coordinator,
            roster,
            store,
            cooldown_hours=settings.research.cooldown_hours,
            max_concurrent=settings.batch.max_concurrent_entities,
            refetch_all_sources=settings.research.refetch_all_sources,
            intelligence_runner=intelligence_runner,
        )

    def stale_sources(
        self,
        record: Optional[ResearchRecord],
        now: datetime,
        sources: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """Enabled sources never fetched, or fetched at least one cooldown ago."""
        sources = list(sources if sources is not None else self.coordinator.sources)
        if record is None:
            return sources
        stale = []
        for source in sources:
            fetched_at = record.last_fetched.get(source)
            if fetched_at is None or now - ensure_utc(fetched_at) >= self.cooldown:
                stale.append(source)
        return stale

    async def _process(self, entity: Entity, now: datetime) -> EntityOutcome:
        try:
            record = await self.store.get(entity.id, entity.user_id)
            stale = self.stale_sources(record, now)
            if not stale:
                logger.debug("research_within_cooldown", entity_id=entity.id)
                return EntityOutcome(entity_id=entity.id, status=ProcessingStatus.SKIPPED)

            sources = None if self.refetch_all_sources else stale
            result = await self.coordinator.run(entity, sources=sources, now=now)
        except Exception as e:
            logger.error(
                "research_entity_failed",
                entity_id=entity.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return EntityOutcome(entity_id=entity.id, status=ProcessingStatus.FAILED, error=str(e))

        status = _OUTCOME_STATUS[result.outcome]
        error = "missing identifiers" if result.outcome == ResearchOutcome.ABORTED else None
        return EntityOutcome(entity_id=entity.id, status=status, error=error)

    @track_performance("research_cycle")
    async def run_cycle(self, now: Optional[datetime] = None) -> BatchSummary:
        """Run one pass over the active roster."""
        now = ensure_utc(now) if now else utcnow()
        entities = await self.roster.list_active()
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def bounded(entity: Entity) -> EntityOutcome:
            async with semaphore:
                return await self._process(entity, now)

        outcomes = await asyncio.gather(*(bounded(entity) for entity in entities))

        summary = BatchSummary(total=len(entities))
        for outcome in outcomes:
            summary.record(outcome)
        logger.info(
            "research_cycle_completed",
            processed=summary.processed,
            failed=summary.failed,
            skipped=summary.skipped,
            total=summary.total,
        )
        return summary

    async def run_forever(
        self, interval_seconds: float, max_iterations: Optional[int] = None
    ) -> None:
        """Research cycle then intelligence batch, every ``interval_seconds``."""
        iteration = 0
        while max_iterations is None or iteration < max_iterations:
            iteration += 1
            try:
                await self.run_cycle()
                if self.intelligence_runner is not None:
                    await self.intelligence_runner.run()
            except Exception as e:
                logger.error(
                    "worker_iteration_failed",
                    iteration=iteration,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            if max_iterations is None or iteration < max_iterations:
                await asyncio.sleep(interval_seconds)
