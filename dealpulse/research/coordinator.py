"""
Research coordination for a single entity.

Fans out to the enabled source connectors in parallel, merges the results
into the entity's research record and refreshes its narrative summary.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from dealpulse.core.exceptions import EntityNotFoundError
from dealpulse.core.models import (
    Entity,
    ResearchOutcome,
    ResearchRecord,
    ResearchRunResult,
    ensure_utc,
    utcnow,
)
from dealpulse.data.roster import RosterRepository
from dealpulse.data.store import ResearchStore
from dealpulse.research.connectors.base import SourceConnector, SourceResult
from dealpulse.research.inflight import InFlightRegistry
from dealpulse.research.summary import NarrativeSummarizer

logger = structlog.get_logger(__name__)


class ResearchCoordinator:
    """
    Runs research for one entity at a time per entity id.

    A second ``run`` for an entity already in progress returns
    ``skipped_duplicate`` without touching any connector.
    """

    def __init__(
        self,
        connectors: Sequence[SourceConnector],
        store: ResearchStore,
        summarizer: Optional[NarrativeSummarizer] = None,
        roster: Optional[RosterRepository] = None,
        registry: Optional[InFlightRegistry] = None,
    ):
        self.connectors = list(connectors)
        self.store = store
        self.summarizer = summarizer or NarrativeSummarizer()
        self.roster = roster
        self.in_flight = registry or InFlightRegistry()

    @property
    def sources(self) -> List[str]:
        return [connector.name for connector in self.connectors]

    def _select(self, sources: Optional[Iterable[str]]) -> List[SourceConnector]:
        if sources is None:
            return list(self.connectors)
        wanted = set(sources)
        return [c for c in self.connectors if c.name in wanted]

    async def _gather(
        self, entity: Entity, connectors: List[SourceConnector]
    ) -> Dict[str, SourceResult]:
        results = await asyncio.gather(
            *(
                c.fetch_result(entity.company, entity.id, entity.user_id, entity=entity)
                for c in connectors
            ),
            return_exceptions=True,
        )
        collected = {}
        for connector, result in zip(connectors, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "connector_raised",
                    source=connector.name,
                    entity_id=entity.id,
                    error=str(result),
                )
                result = SourceResult(connector.empty(), succeeded=False)
            collected[connector.name] = result
        return collected

    async def run(
        self,
        entity: Entity,
        sources: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> ResearchRunResult:
        """
        Fetch, summarise and persist research for ``entity``.

        Args:
            entity: Roster entity to research
            sources: Restrict the run to these source names (all when None)
            now: Timestamp recorded for every source that answered

        Returns:
            ResearchRunResult with the outcome and per-source fetched, empty and failed lists

        Raises:
            PersistenceError: If the research record cannot be written
        """
        if not entity.id or not entity.user_id:
            logger.warning(
                "research_aborted",
                reason="missing_identifiers",
                entity_id=entity.id or None,
                user_id=entity.user_id or None,
            )
            return ResearchRunResult(entity_id=entity.id, outcome=ResearchOutcome.ABORTED)

        async with self.in_flight.claim(entity.id) as acquired:
            if not acquired:
                logger.info("research_skipped_duplicate", entity_id=entity.id)
                return ResearchRunResult(
                    entity_id=entity.id, outcome=ResearchOutcome.SKIPPED_DUPLICATE
                )
            return await self._run(entity, self._select(sources), ensure_utc(now) or utcnow())

    async def _run(
        self, entity: Entity, connectors: List[SourceConnector], now: datetime
    ) -> ResearchRunResult:
        log = logger.bind(entity_id=entity.id, user_id=entity.user_id)
        log.info("research_started", company=entity.company, sources=[c.name for c in connectors])

        results = await self._gather(entity, connectors)
        fresh = {name: r.payload for name, r in results.items() if r.succeeded and r.payload}
        answered = sorted(name for name, r in results.items() if r.succeeded)
        empty = sorted(name for name in answered if name not in fresh)
        failed = sorted(name for name, r in results.items() if not r.succeeded)
        # sources that answered, even with nothing, wait out the cooldown; failures retry
        fetched_at = {name: now for name in answered}

        if not fresh:
            if fetched_at:
                await self.store.upsert_research(
                    entity.id,
                    entity.user_id,
                    company=entity.company,
                    data={},
                    fetched_at=fetched_at,
                    timestamp=now,
                )
            log.info("research_no_data", sources_empty=empty, sources_failed=failed)
            return ResearchRunResult(
                entity_id=entity.id,
                outcome=ResearchOutcome.NO_DATA,
                sources_empty=empty,
                sources_failed=failed,
            )

        existing = await self.store.get(entity.id, entity.user_id)
        aggregated = dict(existing.data) if existing else {}
        aggregated.update(fresh)
        narrative = await self.summarizer.summarize(entity, aggregated)

        await self.store.upsert_research(
            entity.id,
            entity.user_id,
            company=entity.company,
            data=fresh,
            fetched_at=fetched_at,
            narrative_summary=narrative,
            timestamp=now,
        )

        log.info(
            "research_completed",
            sources_fetched=sorted(fresh),
            sources_empty=empty,
            sources_failed=failed,
        )
        return ResearchRunResult(
            entity_id=entity.id,
            outcome=ResearchOutcome.COMPLETED,
            sources_fetched=sorted(fresh),
            sources_empty=empty,
            sources_failed=failed,
        )

    async def get_research(self, entity_id: str, user_id: str) -> Optional[ResearchRecord]:
        return await self.store.get(entity_id, user_id)

    async def refresh(self, entity_id: str, user_id: str) -> Optional[ResearchRunResult]:
        """Force a run of every source for one roster entity."""
        if self.roster is None:
            raise RuntimeError("refresh requires a roster repository")
        try:
            entity = await self.roster.get(entity_id, user_id)
        except EntityNotFoundError as e:
            logger.warning("entity_not_found", entity_id=entity_id, user_id=user_id, error=str(e))
            return None
        return await self.run(entity)
