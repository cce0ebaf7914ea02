"""Prompt builders for deal intelligence and research narratives."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from dealpulse.core.models import Deal, Entity, NotesAnalysis, ResearchRecord, ScoringResult
from dealpulse.intelligence.industry import IndustryStrategy

RESPONSE_SCHEMA: Dict[str, Any] = {
    "reasoning": "2-3 sentences explaining the deal's health and what drives it",
    "keyInsights": [{"insight": "string", "impact": "high|medium|low", "actionRequired": "string"}],
    "opportunities": [
        {
            "opportunity": "string",
            "potential": "high|medium|low",
            "action": "string",
            "timeline": "string",
        }
    ],
    "nextActions": [
        {
            "action": "string",
            "priority": "high|medium|low",
            "deadline": "string",
            "expectedOutcome": "string",
        }
    ],
    "conversationStarters": [{"topic": "string", "question": "string", "purpose": "string"}],
}


def _bullets(items: List[str], limit: int = 5) -> str:
    if not items:
        return "- None recorded"
    return "\n".join(f"- {item}" for item in items[:limit])


def _format_date(value) -> str:
    return value.date().isoformat() if value else "not set"


def _research_section(research: Optional[ResearchRecord]) -> str:
    if research is None or not research.data:
        return "No external research available yet."

    lines: List[str] = []
    news = research.data.get("news") or []
    if news:
        lines.append("Recent news:")
        lines.extend(f"- {item.get('title', '')} ({item.get('source', '')})" for item in news[:3])

    discussion = research.data.get("discussion") or []
    if discussion:
        lines.append("Public discussion:")
        lines.extend(
            f"- r/{post.get('subreddit', '')}: {post.get('title', '')} "
            f"[{post.get('sentiment', 'neutral')}]"
            for post in discussion[:3]
        )

    enrichment = research.data.get("enrichment") or {}
    company = enrichment.get("companyData") if isinstance(enrichment, dict) else None
    if company:
        facts = {
            key: company.get(key)
            for key in ("industry", "size", "employee_count", "founded", "location")
            if company.get(key)
        }
        if facts:
            lines.append(f"Company profile: {json.dumps(facts, default=str)}")

    if research.narrative_summary:
        lines.append(f"Research summary: {research.narrative_summary[:600]}")

    return "\n".join(lines) if lines else "No external research available yet."


def build_intelligence_prompt(
    entity: Entity,
    deal: Deal,
    scoring: ScoringResult,
    analysis: NotesAnalysis,
    strategy: IndustryStrategy,
    research: Optional[ResearchRecord] = None,
    notes_info: Optional[Dict[str, List[str]]] = None,
) -> str:
    """Build the single prompt requesting a deal intelligence JSON object."""
    notes_info = notes_info or {}
    risks = [f"{r.type} ({r.severity.value}): {r.description}" for r in scoring.risk_factors]
    progress = scoring.stage_progress

    return f"""Analyze this B2B sales opportunity and return deal intelligence.

CLIENT
- Company: {entity.company}
- Contact: {entity.contact_name or 'unknown'}{f' ({entity.position})' if entity.position else ''}
- Last contact: {_format_date(entity.last_contact)}
- Follow-up date: {_format_date(entity.follow_up_date)}

PRIMARY DEAL
- Title: {deal.title}
- Value: ${deal.value:,.0f}
- Stage: {scoring.stage} ({progress.percent_complete}% through the pipeline, {progress.days_in_stage} days in stage)
- Expected close: {_format_date(deal.expected_close_date)}

AUTHORITATIVE SCORING BASELINE (do not change these numbers)
- Deal score: {scoring.score}/100, confidence {scoring.confidence}/100
- Momentum: {scoring.momentum.category.value}; signals: {', '.join(scoring.momentum.signals) or 'none'}
- Engagement: {scoring.engagement.value}
- Benchmark: typical stage length {scoring.benchmark.typical_stage_length}, {scoring.benchmark.comparison}
- Risk factors:
{_bullets(risks)}

NOTES ANALYSIS
- Sentiment: {analysis.sentiment.value}
- Open questions:
{_bullets(analysis.questions)}
- Requirements:
{_bullets(analysis.requirements)}
- Decision points:
{_bullets(analysis.decision_points)}
- Upcoming events:
{_bullets(analysis.upcoming_events)}
- Systems mentioned: {', '.join(notes_info.get('system_names', [])) or 'none'}
- Metrics mentioned: {', '.join(notes_info.get('metrics', [])) or 'none'}

RESEARCH CONTEXT
{_research_section(research)}

INDUSTRY STRATEGY ({strategy.name})
- Topics: {', '.join(strategy.topics)}
- Common objections: {', '.join(strategy.objections)}
- Terms to use: {', '.join(strategy.technical_terms)}

Return ONLY a JSON object with this shape (3-5 items per list):
{json.dumps(RESPONSE_SCHEMA, indent=2)}
"""


def build_research_summary_prompt(entity: Entity, data: Dict[str, Any]) -> str:
    """Prompt for a short sales-oriented narrative over aggregated research."""
    payload = json.dumps(data, default=str)[:6000]
    return f"""Summarize the research below for a relationship manager preparing to talk with {entity.company}.

Focus on recent developments, business priorities, and conversation openings.
Write 4-6 sentences of plain prose. Do not invent facts that are not in the data.

Client notes:
{(entity.notes or 'none')[:1500]}

Research data (JSON):
{payload}
"""
