"""
Batch intelligence generation across the roster.

Entities are processed in fixed-size chunks; a chunk runs concurrently and
the runner pauses between chunks to bound the outbound request rate.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog

from dealpulse.core.models import BatchSummary, Entity, EntityOutcome, ProcessingStatus
from dealpulse.data.roster import RosterRepository
from dealpulse.services.intelligence_service import IntelligenceService
from dealpulse.utils.reliability import track_performance

logger = structlog.get_logger(__name__)


def is_eligible(entity: Entity) -> bool:
    """Active entities with at least one deal or some notes."""
    return entity.is_active and (bool(entity.deals) or bool(entity.notes.strip()))


class BatchRunner:
    def __init__(
        self,
        service: IntelligenceService,
        roster: Optional[RosterRepository] = None,
        batch_size: int = 5,
        batch_delay_seconds: float = 3.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service = service
        self.roster = roster
        self.batch_size = max(1, batch_size)
        self.batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, service: IntelligenceService, roster=None) -> "BatchRunner":
        return cls(
            service,
            roster=roster,
            batch_size=settings.batch.batch_size,
            batch_delay_seconds=settings.batch.batch_delay_seconds,
        )

    async def _process(self, entity: Entity, now: Optional[datetime]) -> EntityOutcome:
        try:
            await self.service.process(entity, now)
        except Exception as e:
            logger.error(
                "intelligence_entity_failed",
                entity_id=entity.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return EntityOutcome(entity_id=entity.id, status=ProcessingStatus.FAILED, error=str(e))
        return EntityOutcome(entity_id=entity.id, status=ProcessingStatus.PROCESSED)

    @track_performance("intelligence_batch")
    async def run(
        self,
        entities: Optional[Sequence[Entity]] = None,
        now: Optional[datetime] = None,
    ) -> BatchSummary:
        """
        Generate intelligence for ``entities`` (the whole roster when None).

        Returns:
            BatchSummary with one outcome per entity
        """
        if entities is None:
            if self.roster is None:
                raise ValueError("No entities given and no roster configured")
            entities = await self.roster.list_entities()

        summary = BatchSummary(total=len(entities))
        eligible: List[Entity] = []
        for entity in entities:
            if is_eligible(entity):
                eligible.append(entity)
            else:
                summary.record(EntityOutcome(entity_id=entity.id, status=ProcessingStatus.SKIPPED))

        chunks = [
            eligible[i : i + self.batch_size] for i in range(0, len(eligible), self.batch_size)
        ]
        logger.info(
            "intelligence_batch_started",
            total=len(entities),
            eligible=len(eligible),
            chunks=len(chunks),
        )

        for index, chunk in enumerate(chunks):
            outcomes = await asyncio.gather(*(self._process(entity, now) for entity in chunk))
            for outcome in outcomes:
                summary.record(outcome)
            logger.info(
                "intelligence_chunk_completed",
                chunk=index + 1,
                of=len(chunks),
                processed=summary.processed,
                failed=summary.failed,
            )
            if index < len(chunks) - 1 and self.batch_delay_seconds > 0:
                await self._sleep(self.batch_delay_seconds)

        logger.info(
            "intelligence_batch_completed",
            processed=summary.processed,
            failed=summary.failed,
            skipped=summary.skipped,
            total=summary.total,
        )
        return summary
