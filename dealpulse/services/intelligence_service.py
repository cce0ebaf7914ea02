"""Per-entity unit of work: read research, generate intelligence, persist it."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog

from dealpulse.core.exceptions import MissingIdentifiersError
from dealpulse.core.logging import entity_context
from dealpulse.core.models import DealIntelligence, Entity
from dealpulse.data.store import ResearchStore
from dealpulse.intelligence.generator import IntelligenceGenerator

logger = structlog.get_logger(__name__)


class IntelligenceService:
    def __init__(self, generator: IntelligenceGenerator, store: ResearchStore):
        self.generator = generator
        self.store = store

    async def process(self, entity: Entity, now: Optional[datetime] = None) -> DealIntelligence:
        """
        Generate and store the intelligence document for ``entity``.

        Generation itself never fails (it falls back); store errors propagate.
        """
        if not entity.id or not entity.user_id:
            raise MissingIdentifiersError(
                "Entity is missing an id or user id", entity_id=entity.id or None
            )

        with entity_context(entity.id, entity.user_id):
            research = await self.store.get(entity.id, entity.user_id)
            intelligence = await self.generator.generate(entity, research, now)
            await self.store.save_intelligence(
                entity.id, entity.user_id, intelligence, company=entity.company
            )
            logger.info(
                "intelligence_saved",
                source=intelligence.metadata.source.value,
                score=intelligence.score,
                had_research=research is not None,
            )
        return intelligence
