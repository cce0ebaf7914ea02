"""
Data models and type definitions for DealPulse.

Provides type-safe data structures with validation for roster entities,
research records, scoring results and intelligence documents. External JSON
uses camelCase keys; Python attributes stay snake_case.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "2.0"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so all comparisons are aware."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_datetime(value: Any) -> Optional[datetime]:
    """Parse roster/store timestamps (ISO strings, dates, datetimes) to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return ensure_utc(date_parser.parse(str(value)))


def whole_days_between(earlier: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole days elapsed from ``earlier`` to ``now``, never negative."""
    if earlier is None:
        return None
    seconds = (ensure_utc(now) - ensure_utc(earlier)).total_seconds()
    return max(0, math.floor(seconds / 86400))


class DealStatus(str, Enum):
    """Deal stages of the default taxonomy."""

    PROSPECTING = "prospecting"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class ProcessingStatus(str, Enum):
    """Per-entity outcome of a batch run."""

    PROCESSED = "processed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ResearchOutcome(str, Enum):
    """Outcome of a single research run."""

    COMPLETED = "completed"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    NO_DATA = "no_data"
    ABORTED = "aborted"


class MomentumCategory(str, Enum):
    ACCELERATING = "accelerating"
    STEADY = "steady"
    STALLING = "stalling"
    DECLINING = "declining"


class EngagementLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class IntelligenceSource(str, Enum):
    """Where the narrative part of an intelligence document came from."""

    MODEL = "model"
    FALLBACK = "fallback"
    ADVISORY = "advisory"


# Base Models


class CamelModel(BaseModel):
    """Base class for models exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict using the external camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# Roster Models


class Deal(CamelModel):
    """A sales opportunity attached to an entity."""

    title: str = ""
    value: float = Field(default=0.0, ge=0)
    status: str = DealStatus.PROSPECTING.value
    expected_close_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    @field_validator("value", mode="before")
    @classmethod
    def parse_value(cls, v):
        if v is None or v == "":
            return 0.0
        return v

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        if v is None:
            return DealStatus.PROSPECTING.value
        return str(v).strip().lower().replace(" ", "_").replace("-", "_")

    @field_validator("expected_close_date", "last_updated", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return coerce_datetime(v)

    def days_in_stage(self, now: datetime) -> int:
        """Whole days since the deal last changed stage (0 when unknown)."""
        return whole_days_between(self.last_updated, now) or 0


class Entity(CamelModel):
    """A tracked client/opportunity record from the roster."""

    id: str = ""
    user_id: str = ""
    company: str = ""
    notes: str = ""
    is_active: bool = True
    last_contact: Optional[datetime] = None
    follow_up_date: Optional[datetime] = None
    deals: List[Deal] = Field(default_factory=list)

    # Optional contact context used by enrichment and industry lookup
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    position: Optional[str] = None
    industry: Optional[str] = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return "" if v is None else str(v).strip()

    @field_validator("notes", "company", mode="before")
    @classmethod
    def empty_text(cls, v):
        return v or ""

    @field_validator("deals", mode="before")
    @classmethod
    def empty_deals(cls, v):
        return v or []

    @field_validator("last_contact", "follow_up_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return coerce_datetime(v)

    @property
    def key(self) -> tuple:
        return (self.id, self.user_id)

    def days_since_contact(self, now: datetime) -> Optional[int]:
        return whole_days_between(self.last_contact, now)


# Derived analysis


class NotesAnalysis(BaseModel):
    """Structured signals extracted from free-text notes."""

    questions: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    decision_points: List[str] = Field(default_factory=list)
    upcoming_events: List[str] = Field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    key_topics: List[str] = Field(default_factory=list)
    urgency_indicators: List[str] = Field(default_factory=list)


# Scoring Models


class RiskFactor(CamelModel):
    """A scored negative signal; impact is always below zero."""

    type: str
    severity: Severity
    description: str
    impact: int = Field(..., lt=0)
    recommendation: str = ""


class MomentumResult(CamelModel):
    category: MomentumCategory
    tally: int = 0
    signals: List[str] = Field(default_factory=list)


class StageProgress(CamelModel):
    current_stage: str
    completed_stages: List[str] = Field(default_factory=list)
    upcoming_stages: List[str] = Field(default_factory=list)
    percent_complete: int = Field(default=0, ge=0, le=100)
    days_in_stage: int = Field(default=0, ge=0)
    is_overdue: bool = False


class IndustryBenchmark(CamelModel):
    typical_stage_length: str
    success_probability: int = Field(..., ge=0, le=100)
    comparison: str


class ScoringResult(CamelModel):
    """Deterministic deal health computed by the scoring engine."""

    score: int = Field(..., ge=0, le=100)
    confidence: int = Field(..., ge=30, le=100)
    base_score: int
    stage: str
    deal_title: str = ""
    momentum: MomentumResult
    engagement: EngagementLevel
    engagement_points: int = 0
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    stage_progress: StageProgress
    benchmark: IndustryBenchmark


# Intelligence Models


class KeyInsight(CamelModel):
    insight: str
    impact: str = "medium"
    action_required: str = ""


class Opportunity(CamelModel):
    opportunity: str
    potential: str = "medium"
    action: str = ""
    timeline: str = ""


class NextAction(CamelModel):
    action: str
    priority: str = "medium"
    deadline: str = ""
    expected_outcome: str = ""


class ConversationStarter(CamelModel):
    topic: str
    question: str
    purpose: str = ""


class IntelligenceMetadata(CamelModel):
    generated_at: datetime = Field(default_factory=utcnow)
    schema_version: str = SCHEMA_VERSION
    data_quality: int = Field(default=50, ge=0, le=100)
    source: IntelligenceSource = IntelligenceSource.MODEL
    fallback_reason: Optional[str] = None
    model: Optional[str] = None


class DealIntelligence(CamelModel):
    """Intelligence document stored per entity; replaced every cycle."""

    score: Optional[int] = Field(default=None, ge=0, le=100)
    confidence: Optional[int] = Field(default=None, ge=30, le=100)
    momentum: Optional[MomentumResult] = None
    engagement: Optional[EngagementLevel] = None
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    opportunities: List[Opportunity] = Field(default_factory=list)
    next_actions: List[NextAction] = Field(default_factory=list)
    conversation_starters: List[ConversationStarter] = Field(default_factory=list)
    key_insights: List[KeyInsight] = Field(default_factory=list)
    reasoning: str = ""
    stage_progress: Optional[StageProgress] = None
    industry_benchmark: Optional[IndustryBenchmark] = None
    has_deals: bool = True
    has_active_deals: bool = True
    message: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)
    metadata: IntelligenceMetadata = Field(default_factory=IntelligenceMetadata)

    @property
    def is_advisory(self) -> bool:
        return self.metadata.source == IntelligenceSource.ADVISORY


class ResearchRecord(CamelModel):
    """Raw research results and latest intelligence for one (entity, user)."""

    entity_id: str
    user_id: str
    company: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    last_fetched: Dict[str, datetime] = Field(default_factory=dict)
    narrative_summary: str = ""
    deal_intelligence: Optional[DealIntelligence] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("last_fetched", mode="before")
    @classmethod
    def parse_last_fetched(cls, v):
        return {source: coerce_datetime(ts) for source, ts in (v or {}).items() if ts}

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return coerce_datetime(v) or utcnow()

    @property
    def key(self) -> tuple:
        return (self.entity_id, self.user_id)


# Run reports


class ResearchRunResult(CamelModel):
    entity_id: str
    outcome: ResearchOutcome
    sources_fetched: List[str] = Field(default_factory=list)
    sources_empty: List[str] = Field(default_factory=list)
    sources_failed: List[str] = Field(default_factory=list)


class EntityOutcome(CamelModel):
    entity_id: str
    status: ProcessingStatus
    error: Optional[str] = None


class BatchSummary(CamelModel):
    """Aggregated per-entity outcomes of a batch or scheduler cycle."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    details: List[EntityOutcome] = Field(default_factory=list)

    def record(self, outcome: EntityOutcome) -> None:
        self.details.append(outcome)
        if outcome.status == ProcessingStatus.PROCESSED:
            self.processed += 1
        elif outcome.status == ProcessingStatus.FAILED:
            self.failed += 1
        else:
            self.skipped += 1

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
