"""Narrative summary over aggregated research results."""

from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Optional

import structlog

from dealpulse.core.models import Entity
from dealpulse.intelligence.prompts import build_research_summary_prompt

logger = structlog.get_logger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a research analyst briefing a relationship manager. Answer in plain prose."
)


def _news_sentence(news: List[Dict[str, Any]]) -> Optional[str]:
    if not news:
        return None
    headlines = [item.get("title", "") for item in news[:3] if item.get("title")]
    if not headlines:
        return None
    return f"Recent coverage includes: {'; '.join(headlines)}."


def _discussion_sentence(posts: List[Dict[str, Any]]) -> Optional[str]:
    if not posts:
        return None
    tally = Counter(post.get("sentiment", "neutral") for post in posts)
    communities = sorted({p.get("subreddit") for p in posts if p.get("subreddit")})
    where = f" in {', '.join('r/' + c for c in communities[:3])}" if communities else ""
    return (
        f"{len(posts)} public discussion threads{where} "
        f"({tally['positive']} positive, {tally['negative']} negative)."
    )


def _enrichment_sentence(enrichment: Dict[str, Any]) -> Optional[str]:
    company = (enrichment or {}).get("companyData") or {}
    person = (enrichment or {}).get("personData") or {}
    parts = []
    if company:
        profile = ", ".join(
            str(company[k]) for k in ("industry", "size", "location") if company.get(k)
        )
        name = company.get("display_name") or company.get("name") or "The company"
        parts.append(f"{name}: {profile}." if profile else f"{name} profile is on file.")
    if person.get("job_title"):
        who = person.get("full_name") or "The contact"
        parts.append(f"{who} is {person['job_title']}.")
    return " ".join(parts) or None


def fallback_summary(entity: Entity, data: Dict[str, Any]) -> str:
    """Deterministic narrative built from whichever sources have data."""
    sentences = [
        sentence
        for sentence in (
            _news_sentence(data.get("news") or []),
            _discussion_sentence(data.get("discussion") or []),
            _enrichment_sentence(data.get("enrichment") or {}),
        )
        if sentence
    ]
    if not sentences:
        return f"No external research is available for {entity.company or 'this client'} yet."
    return " ".join(sentences)


class NarrativeSummarizer:
    """Summarise research through the generative service, falling back to a template."""

    def __init__(self, llm=None, max_tokens: int = 400, temperature: float = 0.3):
        self.llm = llm
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def summarize(self, entity: Entity, data: Dict[str, Any]) -> str:
        if not any(data.values()):
            return fallback_summary(entity, data)
        if self.llm is None or not getattr(self.llm, "available", True):
            return fallback_summary(entity, data)

        try:
            text = await self.llm.complete(
                build_research_summary_prompt(entity, data),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system_prompt=SUMMARY_SYSTEM_PROMPT,
            )
        except Exception as e:
            logger.warning(
                "research_summary_fallback",
                entity_id=entity.id,
                reason=type(e).__name__,
                error=str(e),
            )
            return fallback_summary(entity, data)

        return text.strip() or fallback_summary(entity, data)
