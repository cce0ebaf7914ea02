"""
Deal health scoring.

Combines a stage baseline with momentum, engagement, time-in-stage and risk
signals into a bounded score plus qualitative attributes. Every table the
engine reads comes from a ``StageTaxonomy`` and ``ScoringRules``; the engine
never branches on which taxonomy is active.
"""

from __future__ import annotations

import random
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

import structlog

from dealpulse.core.models import (
    Deal,
    EngagementLevel,
    Entity,
    IndustryBenchmark,
    MomentumCategory,
    MomentumResult,
    NotesAnalysis,
    ResearchRecord,
    RiskFactor,
    ScoringResult,
    Severity,
    StageProgress,
    ensure_utc,
    utcnow,
)
from dealpulse.intelligence.notes_analyzer import analyze_notes
from dealpulse.intelligence.rules import (
    DEFAULT_RULES,
    ScoringRules,
    bucket_for,
    first_exceeding,
    first_within,
)
from dealpulse.intelligence.taxonomy import (
    DEFAULT_TAXONOMY,
    StageDefinition,
    StageTaxonomy,
    get_taxonomy,
)

logger = structlog.get_logger(__name__)

# (days without contact exceeded, severity, impact)
CONTACT_GAP_RISKS = ((30, Severity.HIGH, -10), (14, Severity.MEDIUM, -5))
NEVER_CONTACTED_IMPACT = -8
OVERDUE_CLOSE_IMPACT = -6
MISSING_CLOSE_IMPACT = -3
BENCHMARK_MARGIN = 10


class DealScoringEngine:
    """Computes a ``ScoringResult`` for an entity's primary deal."""

    def __init__(
        self,
        taxonomy: Optional[StageTaxonomy] = None,
        rules: Optional[ScoringRules] = None,
        rng: Optional[random.Random] = None,
    ):
        self.taxonomy = taxonomy or DEFAULT_TAXONOMY
        self.rules = rules or DEFAULT_RULES
        self.rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings) -> "DealScoringEngine":
        return cls(
            taxonomy=get_taxonomy(settings.scoring.taxonomy),
            rng=random.Random(settings.scoring.seed),
        )

    # Deal selection

    def active_deals(self, deals: Sequence[Deal]) -> List[Deal]:
        return [deal for deal in deals if self.taxonomy.is_active(deal.status)]

    def select_primary_deal(self, deals: Sequence[Deal]) -> Optional[Deal]:
        """
        Pick the deal to score.

        Highest stage priority wins; ties go to the higher value, then the most
        recently updated deal, then the earliest deal in roster order.
        """
        candidates = [
            (index, deal)
            for index, deal in enumerate(deals)
            if self.taxonomy.is_active(deal.status)
        ]
        if not candidates:
            return None

        def rank(item: Tuple[int, Deal]):
            index, deal = item
            stage = self.taxonomy.get(deal.status)
            updated = (
                ensure_utc(deal.last_updated).timestamp() if deal.last_updated else float("-inf")
            )
            return (-stage.priority, -deal.value, -updated, index)

        return min(candidates, key=rank)[1]

    # Pipeline

    def score(
        self,
        entity: Entity,
        deal: Optional[Deal] = None,
        notes_analysis: Optional[NotesAnalysis] = None,
        research: Optional[ResearchRecord] = None,
        now: Optional[datetime] = None,
    ) -> ScoringResult:
        """Score ``deal`` (or the entity's primary deal)."""
        now = ensure_utc(now) if now else utcnow()
        deal = deal or self.select_primary_deal(entity.deals)
        if deal is None:
            raise ValueError(f"Entity {entity.id!r} has no active deal to score")

        stage = self.taxonomy.get(deal.status)
        if stage is None or stage.terminal:
            raise ValueError(
                f"Deal status {deal.status!r} is not an active {self.taxonomy.name} stage"
            )

        analysis = notes_analysis if notes_analysis is not None else analyze_notes(entity.notes)
        days_in_stage = deal.days_in_stage(now)
        days_since_contact = entity.days_since_contact(now)

        base = self.base_score(stage)
        momentum, momentum_mult = self.assess_momentum(
            entity.notes, days_since_contact, days_in_stage
        )
        engagement, engagement_points, engagement_mult = self.assess_engagement(
            entity.notes, analysis, days_since_contact
        )
        stage_penalty = self.stage_penalty(stage, days_in_stage)
        risks = self.identify_risks(entity, deal, stage, days_in_stage, days_since_contact, now)

        raw = base * momentum_mult * engagement_mult * stage_penalty + sum(r.impact for r in risks)
        score = int(max(0, min(100, round(raw))))
        confidence = self.calculate_confidence(entity, deal, analysis, len(risks), now, research)

        logger.debug(
            "deal_scored",
            entity_id=entity.id,
            stage=stage.name,
            base=base,
            momentum=momentum.category.value,
            engagement=engagement.value,
            stage_penalty=stage_penalty,
            risk_count=len(risks),
            score=score,
            confidence=confidence,
        )

        return ScoringResult(
            score=score,
            confidence=confidence,
            base_score=base,
            stage=stage.name,
            deal_title=deal.title,
            momentum=momentum,
            engagement=engagement,
            engagement_points=engagement_points,
            risk_factors=risks,
            stage_progress=self.stage_progress(stage, days_in_stage),
            benchmark=self.benchmark(stage, score),
        )

    def base_score(self, stage: StageDefinition) -> int:
        jitter = self.rng.randint(-stage.variance, stage.variance) if stage.variance else 0
        return stage.base_score + jitter

    def assess_momentum(
        self, notes: str, days_since_contact: Optional[int], days_in_stage: int
    ) -> Tuple[MomentumResult, float]:
        hits: List[Tuple[int, str]] = []
        for rule in self.rules.momentum_signals:
            if rule.pattern.search(notes or ""):
                hits.append((rule.signed_weight, f"{rule.category.title()}: {rule.label}"))

        recency = first_within(days_since_contact, self.rules.recency_bonuses)
        if recency:
            hits.append((recency, f"Recent contact ({days_since_contact} days ago)"))

        stagnation = first_exceeding(days_in_stage, self.rules.stagnation_penalties)
        if stagnation:
            hits.append((stagnation, f"Stagnation: {days_in_stage} days in current stage"))

        tally = sum(weight for weight, _ in hits)
        bucket = bucket_for(tally, self.rules.momentum_buckets)
        strongest = sorted(hits, key=lambda hit: -abs(hit[0]))[: self.rules.max_signals]

        result = MomentumResult(
            category=MomentumCategory(bucket.category),
            tally=tally,
            signals=[label for _, label in strongest],
        )
        return result, bucket.multiplier

    def assess_engagement(
        self, notes: str, analysis: NotesAnalysis, days_since_contact: Optional[int]
    ) -> Tuple[EngagementLevel, int, float]:
        points = first_exceeding(len((notes or "").strip()), self.rules.notes_length_points)
        points += min(len(analysis.questions), 3)
        points += min(len(analysis.requirements), 3)
        points += min(len(analysis.decision_points), 2)
        points += first_within(days_since_contact, self.rules.contact_points)

        bucket = bucket_for(points, self.rules.engagement_buckets)
        return EngagementLevel(bucket.category), points, bucket.multiplier

    @staticmethod
    def stage_penalty(stage: StageDefinition, days_in_stage: int) -> float:
        if days_in_stage > stage.stall_threshold_days:
            return stage.stall_penalty
        return 1.0

    def identify_risks(
        self,
        entity: Entity,
        deal: Deal,
        stage: StageDefinition,
        days_in_stage: int,
        days_since_contact: Optional[int],
        now: datetime,
    ) -> List[RiskFactor]:
        risks: List[RiskFactor] = []

        if days_in_stage > stage.stall_threshold_days:
            severe = days_in_stage > 2 * stage.stall_threshold_days
            risks.append(
                RiskFactor(
                    type="stagnation",
                    severity=Severity.HIGH if severe else Severity.MEDIUM,
                    description=(
                        f"Deal has been in {stage.name} for {days_in_stage} days "
                        f"(typical: {stage.typical_duration})"
                    ),
                    impact=-8 if severe else -5,
                    recommendation="Agree with the client on what is needed to advance this stage",
                )
            )

        contact_risk = self._contact_risk(days_since_contact)
        if contact_risk:
            risks.append(contact_risk)

        close_risk = self._close_date_risk(deal, stage, now)
        if close_risk:
            risks.append(close_risk)

        notes = entity.notes or ""
        for rule in self.rules.risk_patterns:
            if rule.pattern.search(notes):
                risks.append(
                    RiskFactor(
                        type=rule.type,
                        severity=rule.severity,
                        description=rule.description,
                        impact=rule.impact,
                        recommendation=rule.recommendation,
                    )
                )

        order = {severity: rank for rank, severity in enumerate(self.rules.severity_order)}
        risks.sort(key=lambda risk: order.get(risk.severity.value, len(order)))
        return risks[: self.rules.max_risks]

    @staticmethod
    def _contact_risk(days_since_contact: Optional[int]) -> Optional[RiskFactor]:
        if days_since_contact is None:
            return RiskFactor(
                type="communication",
                severity=Severity.HIGH,
                description="No recorded contact with this client",
                impact=NEVER_CONTACTED_IMPACT,
                recommendation="Schedule an introductory call to establish the relationship",
            )
        for threshold, severity, impact in CONTACT_GAP_RISKS:
            if days_since_contact > threshold:
                return RiskFactor(
                    type="communication",
                    severity=severity,
                    description=f"No contact in {days_since_contact} days",
                    impact=impact,
                    recommendation="Reach out with a relevant update to re-establish momentum",
                )
        return None

    def _close_date_risk(
        self, deal: Deal, stage: StageDefinition, now: datetime
    ) -> Optional[RiskFactor]:
        if deal.expected_close_date is not None:
            if ensure_utc(deal.expected_close_date) < now:
                return RiskFactor(
                    type="timeline",
                    severity=Severity.HIGH,
                    description="Expected close date has passed",
                    impact=OVERDUE_CLOSE_IMPACT,
                    recommendation="Re-confirm the decision timeline and update the close date",
                )
            return None

        _, _, percent = self.taxonomy.progress(stage.name)
        if percent >= 50:
            return RiskFactor(
                type="timeline",
                severity=Severity.LOW,
                description="No expected close date defined for a late-stage deal",
                impact=MISSING_CLOSE_IMPACT,
                recommendation="Agree on a target close date with the client",
            )
        return None

    def calculate_confidence(
        self,
        entity: Entity,
        deal: Deal,
        analysis: NotesAnalysis,
        risk_count: int,
        now: datetime,
        research: Optional[ResearchRecord] = None,
    ) -> int:
        """50 plus evidence bonuses, minus a capped per-risk penalty, within [30, 100]."""
        rules = self.rules
        notes_length = len((entity.notes or "").strip())
        bonus = 10 if notes_length > 200 else 5 if notes_length > 50 else 0

        days_since_contact = entity.days_since_contact(now)
        if days_since_contact is not None:
            bonus += 10
            if days_since_contact <= 14:
                bonus += 5

        if deal.value > 0:
            bonus += 10
        if deal.expected_close_date is not None:
            bonus += 5

        richness = (
            len(analysis.questions) + len(analysis.requirements) + len(analysis.decision_points)
        )
        bonus += 2 * min(richness, 5)

        if research is not None and any(research.data.values()):
            bonus += 5

        penalty = min(rules.risk_confidence_penalty * risk_count, rules.max_risk_penalty)
        return max(rules.confidence_floor, min(100, rules.confidence_base + bonus - penalty))

    def stage_progress(self, stage: StageDefinition, days_in_stage: int) -> StageProgress:
        completed, upcoming, percent = self.taxonomy.progress(stage.name)
        return StageProgress(
            current_stage=stage.name,
            completed_stages=completed,
            upcoming_stages=upcoming,
            percent_complete=percent,
            days_in_stage=days_in_stage,
            is_overdue=days_in_stage > stage.stall_threshold_days,
        )

    @staticmethod
    def benchmark(stage: StageDefinition, score: int) -> IndustryBenchmark:
        if score > stage.base_score + BENCHMARK_MARGIN:
            comparison = "above average"
        elif score < stage.base_score - BENCHMARK_MARGIN:
            comparison = "below average"
        else:
            comparison = "average"
        return IndustryBenchmark(
            typical_stage_length=stage.typical_duration,
            success_probability=stage.success_probability,
            comparison=comparison,
        )
