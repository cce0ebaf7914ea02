"""Rule tables for deal scoring.

Momentum signals, bucket thresholds and the risk-pattern library are plain
data. ``DealScoringEngine`` iterates them generically, so tuning a weight or
adding a risk family is a table edit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Pattern, Sequence, Tuple

from dealpulse.core.models import EngagementLevel, MomentumCategory, Severity

POSITIVE = "positive"
NEGATIVE = "negative"


@dataclass(frozen=True)
class SignalRule:
    """A note pattern that moves the momentum tally by ``weight``."""

    pattern: Pattern[str]
    category: str
    weight: int
    label: str

    @property
    def signed_weight(self) -> int:
        return self.weight if self.category == POSITIVE else -self.weight


@dataclass(frozen=True)
class Bucket:
    """Maps a tally at or above ``minimum`` to a category and multiplier.

    ``minimum=None`` marks the catch-all bucket and must come last.
    """

    minimum: Optional[int]
    category: str
    multiplier: float


@dataclass(frozen=True)
class RiskRule:
    """A note pattern that emits a risk factor when it matches."""

    type: str
    pattern: Pattern[str]
    severity: Severity
    impact: int
    description: str
    recommendation: str


def _signal(pattern: str, category: str, weight: int, label: str) -> SignalRule:
    return SignalRule(re.compile(pattern, re.IGNORECASE), category, weight, label)


def _risk(
    type_: str,
    pattern: str,
    severity: Severity,
    impact: int,
    description: str,
    recommendation: str,
) -> RiskRule:
    compiled = re.compile(pattern, re.IGNORECASE)
    return RiskRule(type_, compiled, severity, impact, description, recommendation)


MOMENTUM_SIGNALS: Tuple[SignalRule, ...] = (
    _signal(r"\bmoving forward\b", POSITIVE, 5, "Moving forward"),
    _signal(r"\b(verbal(ly)? commit|signed|ready to sign)\b", POSITIVE, 6, "Commitment signalled"),
    _signal(r"\bapprov(e|ed|al)\b", POSITIVE, 5, "Approval mentioned"),
    _signal(r"\bproceed(ing)?\b", POSITIVE, 4, "Ready to proceed"),
    _signal(r"\bexcited\b", POSITIVE, 4, "Client excitement"),
    _signal(r"\bnext steps?\b", POSITIVE, 3, "Next steps agreed"),
    _signal(r"\bprogress", POSITIVE, 3, "Progress noted"),
    _signal(r"\bchampion\b", POSITIVE, 3, "Internal champion"),
    _signal(r"\binterest(ed)?\b", POSITIVE, 2, "Expressed interest"),
    _signal(r"\bpositive\b", POSITIVE, 2, "Positive tone"),
    _signal(r"\b(on hold|hold off)\b", NEGATIVE, 6, "Deal on hold"),
    _signal(r"\b(no response|went dark|unresponsive)\b", NEGATIVE, 6, "Client unresponsive"),
    _signal(r"\bdelay", NEGATIVE, 5, "Delay mentioned"),
    _signal(r"\bpostpone", NEGATIVE, 5, "Postponed"),
    _signal(r"\breconsider", NEGATIVE, 5, "Reconsidering"),
    _signal(r"\bpause", NEGATIVE, 4, "Paused"),
    _signal(r"\brethink", NEGATIVE, 4, "Rethinking approach"),
    _signal(r"\bconcern", NEGATIVE, 3, "Concerns raised"),
    _signal(r"\bwait(ing)?\b", NEGATIVE, 2, "Waiting on client"),
)

MOMENTUM_BUCKETS: Tuple[Bucket, ...] = (
    Bucket(15, MomentumCategory.ACCELERATING.value, 1.15),
    Bucket(5, MomentumCategory.STEADY.value, 1.0),
    Bucket(-10, MomentumCategory.STALLING.value, 0.85),
    Bucket(None, MomentumCategory.DECLINING.value, 0.7),
)

ENGAGEMENT_BUCKETS: Tuple[Bucket, ...] = (
    Bucket(8, EngagementLevel.HIGH.value, 1.2),
    Bucket(4, EngagementLevel.MEDIUM.value, 1.0),
    Bucket(None, EngagementLevel.LOW.value, 0.85),
)

# (max days since contact, momentum bonus)
RECENCY_BONUSES: Tuple[Tuple[int, int], ...] = ((7, 8), (14, 4))

# (days in stage exceeded, momentum penalty)
STAGNATION_PENALTIES: Tuple[Tuple[int, int], ...] = ((45, -15), (30, -8))

# (notes length exceeded, engagement points)
NOTES_LENGTH_POINTS: Tuple[Tuple[int, int], ...] = ((500, 3), (200, 2), (50, 1))

# (max days since contact, engagement points)
CONTACT_POINTS: Tuple[Tuple[int, int], ...] = ((7, 3), (14, 1))

RISK_PATTERNS: Tuple[RiskRule, ...] = (
    _risk(
        "budget",
        r"\b(budget (concern|issue|constraint|cut|freeze|pressure)s?|over budget|too expensive"
        r"|cost concerns?|pric(e|ing) (concern|objection)s?|no budget|funding (gap|issue)s?)\b",
        Severity.MEDIUM,
        -6,
        "Budget or pricing concerns raised in notes",
        "Quantify ROI and explore phased pricing or alternative packaging",
    ),
    _risk(
        "timeline",
        r"\b(delay(ed|s)?|postpon(e|ed)|push(ed)? back|slipp(ed|ing)|reschedul(e|ed)"
        r"|next fiscal year)\b",
        Severity.MEDIUM,
        -5,
        "Timeline slippage mentioned",
        "Confirm a mutual action plan with dated milestones",
    ),
    _risk(
        "competition",
        r"\b(competitor|competition|competing|alternative vendors?|other vendors?"
        r"|evaluating (other|alternatives)|rfp|incumbent)\b",
        Severity.MEDIUM,
        -5,
        "Competitive evaluation in progress",
        "Reinforce differentiators and request a side-by-side evaluation call",
    ),
    _risk(
        "authority",
        r"\b((board|executive|leadership) approval|sign[- ]off|decision maker|procurement"
        r"|legal review|not the decision)\b",
        Severity.LOW,
        -3,
        "Additional approvals required before a decision",
        "Map the buying committee and engage the economic buyer directly",
    ),
    _risk(
        "engagement",
        r"\b(no response|unresponsive|not responding|went dark|ghost(ed|ing)"
        r"|hasn'?t (replied|responded)|missed (the )?(meeting|call))\b",
        Severity.HIGH,
        -7,
        "Client engagement has dropped off",
        "Re-engage through a different contact or channel with a concrete offer",
    ),
)


@dataclass(frozen=True)
class ScoringRules:
    """All tunable tables consumed by the scoring engine."""

    momentum_signals: Sequence[SignalRule] = MOMENTUM_SIGNALS
    momentum_buckets: Sequence[Bucket] = MOMENTUM_BUCKETS
    engagement_buckets: Sequence[Bucket] = ENGAGEMENT_BUCKETS
    recency_bonuses: Sequence[Tuple[int, int]] = RECENCY_BONUSES
    stagnation_penalties: Sequence[Tuple[int, int]] = STAGNATION_PENALTIES
    notes_length_points: Sequence[Tuple[int, int]] = NOTES_LENGTH_POINTS
    contact_points: Sequence[Tuple[int, int]] = CONTACT_POINTS
    risk_patterns: Sequence[RiskRule] = RISK_PATTERNS
    max_signals: int = 5
    max_risks: int = 5
    max_risk_penalty: int = 20
    risk_confidence_penalty: int = 5
    confidence_base: int = 50
    confidence_floor: int = 30
    severity_order: Tuple[str, ...] = field(
        default=(Severity.HIGH.value, Severity.MEDIUM.value, Severity.LOW.value)
    )


DEFAULT_RULES = ScoringRules()


def bucket_for(value: int, buckets: Sequence[Bucket]) -> Bucket:
    """Return the first bucket whose minimum ``value`` reaches."""
    for bucket in buckets:
        if bucket.minimum is None or value >= bucket.minimum:
            return bucket
    return buckets[-1]


def first_within(days: Optional[int], table: Sequence[Tuple[int, int]]) -> int:
    """Points for the first ``(max_days, points)`` row that ``days`` falls within."""
    if days is None:
        return 0
    for max_days, points in table:
        if days <= max_days:
            return points
    return 0


def first_exceeding(value: int, table: Sequence[Tuple[int, int]]) -> int:
    """Points for the first ``(threshold, points)`` row that ``value`` exceeds."""
    for threshold, points in table:
        if value > threshold:
            return points
    return 0
