"""
Deal intelligence generation.

Scores the entity deterministically, asks the generative service for the
narrative sections, and merges the two. Whatever goes wrong with the model
call, the caller gets back a complete ``DealIntelligence`` document.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Type

import structlog
from pydantic import BaseModel, ValidationError

from dealpulse.core.exceptions import MissingCredentialError
from dealpulse.core.models import (
    ConversationStarter,
    Deal,
    DealIntelligence,
    Entity,
    IntelligenceMetadata,
    IntelligenceSource,
    KeyInsight,
    NextAction,
    NotesAnalysis,
    Opportunity,
    ResearchRecord,
    ScoringResult,
    ensure_utc,
    utcnow,
)
from dealpulse.intelligence.fallback import (
    assemble_report,
    build_advisory,
    build_fallback_report,
    build_narrative_sections,
)
from dealpulse.intelligence.industry import (
    IndustryStrategy,
    get_industry_strategy,
    resolve_industry,
)
from dealpulse.intelligence.json_utils import ResponseParser
from dealpulse.intelligence.notes_analyzer import analyze_notes, extract_intelligence_info
from dealpulse.intelligence.prompts import build_intelligence_prompt
from dealpulse.intelligence.scoring import DealScoringEngine

logger = structlog.get_logger(__name__)

NARRATIVE_LIMIT = 5

# field name -> (response key, model, field a bare string maps to, defaults)
_SECTIONS: Dict[str, tuple] = {
    "key_insights": ("keyInsights", KeyInsight, "insight", {}),
    "opportunities": ("opportunities", Opportunity, "opportunity", {}),
    "next_actions": ("nextActions", NextAction, "action", {}),
    "conversation_starters": (
        "conversationStarters",
        ConversationStarter,
        "question",
        {"topic": "General"},
    ),
}


def calculate_data_quality(
    entity: Entity, analysis: NotesAnalysis, research: Optional[ResearchRecord]
) -> int:
    """Rough 0-100 measure of how much evidence backs a report."""
    quality = 50
    if len((entity.notes or "").strip()) > 100:
        quality += 10
    if entity.last_contact is not None:
        quality += 5
    if research is not None:
        if research.data.get("news"):
            quality += 10
        enrichment = research.data.get("enrichment")
        if isinstance(enrichment, dict) and enrichment.get("companyData"):
            quality += 10
    if analysis.questions:
        quality += 5
    if analysis.requirements:
        quality += 5
    return max(0, min(100, quality))


def _clean_item(item: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key, value in item.items():
        if value is None:
            continue
        if isinstance(value, (int, float, bool)):
            value = str(value)
        elif isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        cleaned[key] = value
    return cleaned


def repair_section(
    raw: Any, model: Type[BaseModel], primary: str, defaults: Mapping[str, str]
) -> List[BaseModel]:
    """Coerce a model-provided list into validated items, dropping bad entries."""
    if isinstance(raw, dict):
        raw = [raw]
    if not isinstance(raw, list):
        return []

    items: List[BaseModel] = []
    for entry in raw:
        if isinstance(entry, str):
            entry = {primary: entry.strip()} if entry.strip() else None
        if not isinstance(entry, dict):
            continue
        try:
            items.append(model.model_validate({**defaults, **_clean_item(entry)}))
        except ValidationError:
            continue
        if len(items) >= NARRATIVE_LIMIT:
            break
    return items


class IntelligenceGenerator:
    """Builds the intelligence document for one entity."""

    def __init__(
        self,
        llm=None,
        scoring_engine: Optional[DealScoringEngine] = None,
        parser: Optional[ResponseParser] = None,
        max_tokens: int = 800,
        temperature: float = 0.7,
        industry_table: Optional[Mapping[str, IndustryStrategy]] = None,
    ):
        """
        Args:
            llm: Object with ``async complete(prompt, max_tokens, temperature) -> str``
                (``LLMClient`` in production); None means fallback only
            scoring_engine: Deterministic scorer
            parser: Response parse chain
            max_tokens: Completion budget passed to the service
            temperature: Sampling temperature passed to the service
            industry_table: Override for the industry strategy table
        """
        self.llm = llm
        self.engine = scoring_engine or DealScoringEngine()
        self.parser = parser or ResponseParser()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.industry_table = industry_table

    @classmethod
    def from_settings(cls, settings, llm=None) -> "IntelligenceGenerator":
        if llm is None:
            from dealpulse.intelligence.llm_client import LLMClient

            llm = LLMClient.from_settings(settings.generation)
        return cls(
            llm=llm,
            scoring_engine=DealScoringEngine.from_settings(settings),
            max_tokens=settings.generation.max_tokens,
            temperature=settings.generation.temperature,
        )

    async def generate(
        self,
        entity: Entity,
        research: Optional[ResearchRecord] = None,
        now: Optional[datetime] = None,
    ) -> DealIntelligence:
        """Return a complete intelligence document for ``entity``."""
        now = ensure_utc(now) if now else utcnow()
        analysis = analyze_notes(entity.notes)
        data_quality = calculate_data_quality(entity, analysis, research)

        if not entity.deals:
            logger.info("intelligence_advisory", entity_id=entity.id, reason="no_deals")
            return build_advisory(has_deals=False, data_quality=data_quality)

        deal = self.engine.select_primary_deal(entity.deals)
        if deal is None:
            logger.info("intelligence_advisory", entity_id=entity.id, reason="no_active_deals")
            return build_advisory(has_deals=True, data_quality=data_quality)

        scoring = self.engine.score(entity, deal, analysis, research, now)
        strategy = get_industry_strategy(resolve_industry(entity, research), self.industry_table)

        try:
            payload = await self._request_narrative(
                entity, deal, scoring, analysis, strategy, research
            )
            report = self.merge(
                entity, deal, scoring, analysis, strategy, payload, data_quality, now
            )
        except Exception as e:
            logger.warning(
                "intelligence_fallback",
                entity_id=entity.id,
                reason=type(e).__name__,
                error=str(e),
            )
            return build_fallback_report(
                entity,
                deal,
                scoring,
                analysis,
                strategy,
                data_quality,
                reason=type(e).__name__,
                generated_at=now,
            )

        logger.info(
            "intelligence_generated",
            entity_id=entity.id,
            score=report.score,
            confidence=report.confidence,
            momentum=scoring.momentum.category.value,
        )
        return report

    async def _request_narrative(
        self,
        entity: Entity,
        deal: Deal,
        scoring: ScoringResult,
        analysis: NotesAnalysis,
        strategy: IndustryStrategy,
        research: Optional[ResearchRecord],
    ) -> Dict[str, Any]:
        if self.llm is None or not getattr(self.llm, "available", True):
            raise MissingCredentialError("No generative service configured")

        prompt = build_intelligence_prompt(
            entity,
            deal,
            scoring,
            analysis,
            strategy,
            research=research,
            notes_info=extract_intelligence_info(entity.notes),
        )
        text = await self.llm.complete(
            prompt, max_tokens=self.max_tokens, temperature=self.temperature
        )
        return self.parser.parse(text)

    def merge(
        self,
        entity: Entity,
        deal: Deal,
        scoring: ScoringResult,
        analysis: NotesAnalysis,
        strategy: IndustryStrategy,
        payload: Dict[str, Any],
        data_quality: int,
        now: datetime,
    ) -> DealIntelligence:
        """
        Take narrative sections from the model, everything scored from ``scoring``.

        Score, confidence, momentum, engagement and risk factors in ``payload``
        are ignored. Missing or unusable narrative sections are filled from the
        deterministic builders.
        """
        defaults = build_narrative_sections(entity, deal, scoring, analysis, strategy)

        reasoning = payload.get("reasoning")
        sections: Dict[str, Any] = {
            "reasoning": reasoning.strip()
            if isinstance(reasoning, str) and reasoning.strip()
            else defaults["reasoning"]
        }
        for field, (key, model, primary, item_defaults) in _SECTIONS.items():
            raw = payload.get(key, payload.get(field))
            sections[field] = repair_section(raw, model, primary, item_defaults) or defaults[field]

        model = getattr(self.llm, "model", None)
        metadata = IntelligenceMetadata(
            generated_at=now,
            source=IntelligenceSource.MODEL,
            data_quality=data_quality,
            model=model if isinstance(model, str) else None,
        )
        return assemble_report(scoring, sections, metadata)
