"""Deterministic intelligence content.

Used when the generative service is unavailable or its answer is unusable,
to fill narrative sections the model left out, and for the fixed advisories
given to entities without active deals.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from dealpulse.core.models import (
    ConversationStarter,
    Deal,
    DealIntelligence,
    Entity,
    IntelligenceMetadata,
    IntelligenceSource,
    KeyInsight,
    MomentumCategory,
    NextAction,
    NotesAnalysis,
    Opportunity,
    ScoringResult,
    Severity,
    utcnow,
)
from dealpulse.intelligence.industry import IndustryStrategy

NO_DEALS_MESSAGE = "You do not have any active deals"
NO_DEALS_RECOMMENDATIONS = [
    "Create a new deal for this client",
    "Define initial opportunity parameters",
    "Schedule discovery meeting",
]

CLOSED_DEALS_MESSAGE = "Deal prediction is only for active deal clients only"
CLOSED_DEALS_RECOMMENDATIONS = [
    "Review closed deals for upsell opportunities",
    "Schedule follow-up for customer satisfaction",
    "Explore expansion possibilities",
]

_DEADLINES = {
    Severity.HIGH: "Within 3 days",
    Severity.MEDIUM: "This week",
    Severity.LOW: "Within 2 weeks",
}


def build_advisory(has_deals: bool, data_quality: int = 50) -> DealIntelligence:
    """Fixed advisory for an entity with no deals, or with only closed deals."""
    if has_deals:
        message, recommendations = CLOSED_DEALS_MESSAGE, CLOSED_DEALS_RECOMMENDATIONS
    else:
        message, recommendations = NO_DEALS_MESSAGE, NO_DEALS_RECOMMENDATIONS
    return DealIntelligence(
        has_deals=has_deals,
        has_active_deals=False,
        message=message,
        recommendations=list(recommendations),
        metadata=IntelligenceMetadata(
            source=IntelligenceSource.ADVISORY, data_quality=data_quality
        ),
    )


def build_reasoning(entity: Entity, deal: Deal, scoring: ScoringResult) -> str:
    momentum = scoring.momentum.category.value
    text = (
        f"{entity.company or 'This client'}'s {deal.title or 'deal'} is in the "
        f"{scoring.stage} stage "
        f"with a deal score of {scoring.score}/100. Momentum is {momentum} and engagement is "
        f"{scoring.engagement.value}, compared with a {scoring.benchmark.typical_stage_length} "
        f"typical stage length."
    )
    if scoring.risk_factors:
        top = scoring.risk_factors[0]
        text += f" The main risk is {top.type}: {top.description.rstrip('.').lower()}."
    return text


def build_key_insights(scoring: ScoringResult, analysis: NotesAnalysis) -> List[KeyInsight]:
    insights: List[KeyInsight] = []
    declining = scoring.momentum.category in (MomentumCategory.STALLING, MomentumCategory.DECLINING)
    insights.append(
        KeyInsight(
            insight=f"Deal momentum is {scoring.momentum.category.value}",
            impact="high" if declining else "medium",
            action_required=(
                "Re-engage the client with a concrete next step"
                if declining
                else "Keep the current cadence and confirm next steps"
            ),
        )
    )
    for risk in scoring.risk_factors[:2]:
        insights.append(
            KeyInsight(
                insight=risk.description,
                impact=risk.severity.value,
                action_required=risk.recommendation,
            )
        )
    if analysis.questions:
        insights.append(
            KeyInsight(
                insight=f"{len(analysis.questions)} open client question(s) recorded",
                impact="medium",
                action_required="Answer outstanding questions before the next meeting",
            )
        )
    return insights[:5]


def build_opportunities(strategy: IndustryStrategy, analysis: NotesAnalysis) -> List[Opportunity]:
    opportunities = [
        Opportunity(
            opportunity=f"Position value around {topic.lower()}",
            potential="high" if index == 0 else "medium",
            action=f"Share a {topic.lower()} proof point relevant to the client",
            timeline="Next meeting",
        )
        for index, topic in enumerate(strategy.topics[:3])
    ]
    for requirement in analysis.requirements[:2]:
        opportunities.append(
            Opportunity(
                opportunity=f"Address stated requirement: {requirement}",
                potential="medium",
                action="Map the requirement to a specific capability",
                timeline="This week",
            )
        )
    return opportunities[:5]


def build_next_actions(scoring: ScoringResult, analysis: NotesAnalysis) -> List[NextAction]:
    actions: List[NextAction] = []
    for risk in scoring.risk_factors:
        actions.append(
            NextAction(
                action=risk.recommendation,
                priority=risk.severity.value,
                deadline=_DEADLINES.get(risk.severity, "This week"),
                expected_outcome=f"Reduce {risk.type} risk",
            )
        )
    if analysis.questions:
        actions.append(
            NextAction(
                action=f"Follow up on: {analysis.questions[0]}",
                priority="medium",
                deadline="Within 3 days",
                expected_outcome="Client questions resolved",
            )
        )
    upcoming = scoring.stage_progress.upcoming_stages
    if upcoming:
        actions.append(
            NextAction(
                action=f"Agree on the criteria to move into {upcoming[0]}",
                priority="medium",
                deadline="Within 2 weeks",
                expected_outcome=f"Deal advances to {upcoming[0]}",
            )
        )
    else:
        actions.append(
            NextAction(
                action="Confirm final terms and signature timeline",
                priority="high",
                deadline="This week",
                expected_outcome="Deal closed",
            )
        )
    return actions[:5]


def build_conversation_starters(
    entity: Entity, deal: Deal, strategy: IndustryStrategy
) -> List[ConversationStarter]:
    objection = strategy.objections[0] if strategy.objections else "budget"
    return [
        ConversationStarter(
            topic="Deal Progress",
            question=f"How is your team feeling about {deal.title or 'the proposal'} so far?",
            purpose="Gauge momentum and surface hidden blockers",
        ),
        ConversationStarter(
            topic="Decision Timeline",
            question=(
                "What does your decision process look like from here, and who else is involved?"
            ),
            purpose="Confirm timeline and stakeholders",
        ),
        ConversationStarter(
            topic="Value Confirmation",
            question=f"Which outcomes matter most to {entity.company or 'your team'} this quarter?",
            purpose="Tie the solution to measurable value",
        ),
        ConversationStarter(
            topic=objection,
            question=f"Is {objection.lower()} something we should plan around together?",
            purpose="Address a common objection early",
        ),
    ]


def build_narrative_sections(
    entity: Entity,
    deal: Deal,
    scoring: ScoringResult,
    analysis: NotesAnalysis,
    strategy: IndustryStrategy,
) -> Dict[str, list]:
    """All narrative sections, keyed by ``DealIntelligence`` field name."""
    return {
        "reasoning": build_reasoning(entity, deal, scoring),
        "key_insights": build_key_insights(scoring, analysis),
        "opportunities": build_opportunities(strategy, analysis),
        "next_actions": build_next_actions(scoring, analysis),
        "conversation_starters": build_conversation_starters(entity, deal, strategy),
    }


def assemble_report(
    scoring: ScoringResult,
    sections: Dict[str, list],
    metadata: IntelligenceMetadata,
) -> DealIntelligence:
    """Combine deterministic scoring fields with narrative sections."""
    return DealIntelligence(
        score=scoring.score,
        confidence=scoring.confidence,
        momentum=scoring.momentum,
        engagement=scoring.engagement,
        risk_factors=scoring.risk_factors,
        stage_progress=scoring.stage_progress,
        industry_benchmark=scoring.benchmark,
        metadata=metadata,
        **sections,
    )


def build_fallback_report(
    entity: Entity,
    deal: Deal,
    scoring: ScoringResult,
    analysis: NotesAnalysis,
    strategy: IndustryStrategy,
    data_quality: int,
    reason: Optional[str] = None,
    generated_at: Optional[datetime] = None,
) -> DealIntelligence:
    """Fully deterministic report; schema-complete by construction."""
    sections = build_narrative_sections(entity, deal, scoring, analysis, strategy)
    metadata = IntelligenceMetadata(
        generated_at=generated_at or utcnow(),
        source=IntelligenceSource.FALLBACK,
        data_quality=data_quality,
        fallback_reason=reason,
    )
    return assemble_report(scoring, sections, metadata)
