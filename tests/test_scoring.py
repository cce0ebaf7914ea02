"""Tests for the deterministic deal scoring engine."""

import random
from datetime import timedelta

import pytest

from dealpulse.core.exceptions import ConfigurationError
from dealpulse.core.models import (
    Deal,
    EngagementLevel,
    MomentumCategory,
    ResearchRecord,
    Severity,
)
from dealpulse.intelligence.notes_analyzer import analyze_notes
from dealpulse.intelligence.rules import DEFAULT_RULES, Bucket, ScoringRules, bucket_for
from dealpulse.intelligence.scoring import DealScoringEngine
from dealpulse.intelligence.taxonomy import get_taxonomy

SCENARIO_B_NOTES = (
    "Can they integrate with our existing CRM?\n"
    "How is pricing structured for multiple teams?\n"
    "Is there an onboarding plan?\n"
    "They need single sign-on.\n"
    "Reporting functionality is important for the ops team."
)


def _engine(seed: int = 7, taxonomy: str = "default") -> DealScoringEngine:
    return DealScoringEngine(taxonomy=get_taxonomy(taxonomy), rng=random.Random(seed))


class TestPrimaryDealSelection:
    """Test choice of the deal that gets scored."""

    def test_highest_priority_wins(self, now):
        deals = [
            Deal(title="small", status="prospecting", value=900_000),
            Deal(title="late", status="negotiation", value=1_000),
        ]
        assert _engine().select_primary_deal(deals).title == "late"

    def test_value_breaks_priority_ties(self):
        deals = [
            Deal(title="a", status="proposal", value=10_000),
            Deal(title="b", status="proposal", value=20_000),
        ]
        assert _engine().select_primary_deal(deals).title == "b"

    def test_recent_update_then_roster_order(self, now):
        deals = [
            Deal(title="old", status="proposal", value=5, last_updated=now - timedelta(days=9)),
            Deal(title="new", status="proposal", value=5, last_updated=now - timedelta(days=1)),
            Deal(title="twin", status="proposal", value=5, last_updated=now - timedelta(days=1)),
        ]
        assert _engine().select_primary_deal(deals).title == "new"

    def test_closed_and_unknown_statuses_are_inactive(self):
        deals = [
            Deal(title="won", status="closed_won"),
            Deal(title="lost", status="Closed Lost"),
            Deal(title="odd", status="on_ice"),
        ]
        engine = _engine()
        assert engine.active_deals(deals) == []
        assert engine.select_primary_deal(deals) is None

    def test_score_requires_an_active_deal(self, make_entity):
        entity = make_entity(status="closed_won")
        with pytest.raises(ValueError):
            _engine().score(entity)


class TestScenarios:
    """Test the reference deal situations end to end."""

    def test_stalled_negotiation_with_budget_concerns(self, make_entity, now):
        entity = make_entity(
            notes="Client raised budget concerns about the renewal.",
            status="negotiation",
            stage_days=50,
            contact_days=20,
            deals=[
                Deal(
                    title="Renewal",
                    value=120_000,
                    status="negotiation",
                    last_updated=now - timedelta(days=50),
                )
            ],
        )
        engine = _engine()
        result = engine.score(entity, now=now)

        assert result.momentum.category in (MomentumCategory.DECLINING, MomentumCategory.STALLING)
        risk_types = [risk.type for risk in result.risk_factors]
        assert "budget" in risk_types
        assert "communication" in risk_types
        assert "stagnation" in risk_types
        assert result.score < 50
        assert result.stage_progress.is_overdue is True
        assert result.stage_progress.days_in_stage == 50

        analysis = analyze_notes(entity.notes)
        unpenalised = engine.calculate_confidence(
            entity, entity.deals[0], analysis, risk_count=0, now=now
        )
        assert result.confidence == max(30, unpenalised - 5 * len(result.risk_factors))
        assert result.confidence < unpenalised

    def test_engaged_prospect(self, make_entity, now):
        entity = make_entity(
            notes=SCENARIO_B_NOTES,
            status="prospecting",
            stage_days=5,
            contact_days=2,
        )
        result = _engine().score(entity, now=now)

        assert result.engagement == EngagementLevel.HIGH
        assert result.momentum.category in (MomentumCategory.STEADY, MomentumCategory.ACCELERATING)
        assert result.score > 25
        assert result.risk_factors == []


class TestBounds:
    """Test score and confidence stay within bounds for any input."""

    @pytest.mark.parametrize("seed", range(5))
    def test_bounds_across_inputs(self, make_entity, now, seed):
        notes_options = [
            "",
            SCENARIO_B_NOTES,
            "Deal on hold. No response since the demo. Budget freeze, competitor RFP, "
            "procurement and legal review, delayed again.",
            "Moving forward! Verbal commit, approved, excited to proceed, next steps agreed, "
            "great progress, strong interest, positive champion. " * 5,
        ]
        engine = _engine(seed=seed)
        for notes in notes_options:
            for status in ("prospecting", "qualified", "proposal", "negotiation"):
                for stage_days in (0, 20, 40, 100):
                    for contact_days in (None, 1, 10, 20, 60):
                        entity = make_entity(
                            notes=notes,
                            status=status,
                            stage_days=stage_days,
                            contact_days=contact_days,
                        )
                        result = engine.score(entity, now=now)
                        assert isinstance(result.score, int)
                        assert 0 <= result.score <= 100
                        assert 30 <= result.confidence <= 100
                        assert len(result.risk_factors) <= 5
                        assert all(risk.impact < 0 for risk in result.risk_factors)

    def test_momentum_is_independent_of_jitter(self, make_entity, now):
        entity = make_entity(
            notes="Some concern about timing, still waiting on legal.", stage_days=35
        )
        categories = {
            _engine(seed=seed).score(entity, now=now).momentum.category for seed in range(25)
        }
        tallies = {_engine(seed=seed).score(entity, now=now).momentum.tally for seed in range(25)}
        assert len(categories) == 1
        assert len(tallies) == 1

    def test_base_score_stays_within_variance(self):
        engine = _engine(seed=3)
        stage = engine.taxonomy.get("proposal")
        scores = {engine.base_score(stage) for _ in range(200)}
        assert min(scores) >= stage.base_score - stage.variance
        assert max(scores) <= stage.base_score + stage.variance


class TestRisks:
    """Test risk factor rules."""

    def test_never_contacted_is_high_risk(self, make_entity, now):
        entity = make_entity(contact_days=None)
        risks = _engine().score(entity, now=now).risk_factors
        communication = [r for r in risks if r.type == "communication"]
        assert communication[0].severity == Severity.HIGH
        assert communication[0].impact == -8

    def test_past_due_close_date(self, make_entity, now):
        deal = Deal(
            title="Late",
            status="proposal",
            value=1,
            expected_close_date=now - timedelta(days=2),
            last_updated=now,
        )
        entity = make_entity(deals=[deal])
        risks = _engine().score(entity, now=now).risk_factors
        assert risks[0].type == "timeline"
        assert risks[0].severity == Severity.HIGH

    def test_missing_close_date_only_late_in_pipeline(self, make_entity, now):
        early = make_entity(deals=[Deal(title="x", status="prospecting", last_updated=now)])
        late = make_entity(deals=[Deal(title="x", status="proposal", last_updated=now)])
        engine = _engine()
        assert not [r for r in engine.score(early, now=now).risk_factors if r.type == "timeline"]
        late_risks = [r for r in engine.score(late, now=now).risk_factors if r.type == "timeline"]
        assert late_risks[0].severity == Severity.LOW

    def test_risks_sorted_by_severity_and_capped(self, make_entity, now):
        entity = make_entity(
            notes=(
                "Went dark after the demo. Budget freeze announced. Timeline pushed back. "
                "Competitor in the RFP. Needs board approval."
            ),
            stage_days=90,
            contact_days=45,
        )
        risks = _engine().score(entity, now=now).risk_factors
        order = {"high": 0, "medium": 1, "low": 2}
        assert len(risks) == 5
        assert [order[r.severity.value] for r in risks] == sorted(
            order[r.severity.value] for r in risks
        )


class TestConfidence:
    """Test confidence evidence bonuses."""

    def test_research_adds_confidence(self, make_entity, now):
        entity = make_entity(notes="Short note about the rollout plan and its next phase.")
        engine = _engine()
        analysis = analyze_notes(entity.notes)
        research = ResearchRecord(
            entity_id=entity.id, user_id=entity.user_id, data={"news": [{"title": "t"}]}
        )
        without = engine.calculate_confidence(entity, entity.deals[0], analysis, 0, now)
        with_research = engine.calculate_confidence(
            entity, entity.deals[0], analysis, 0, now, research=research
        )
        assert with_research == without + 5

    def test_risk_penalty_is_capped(self, make_entity, now):
        entity = make_entity(notes="")
        engine = _engine()
        analysis = analyze_notes("")
        baseline = engine.calculate_confidence(entity, entity.deals[0], analysis, 0, now)
        assert engine.calculate_confidence(entity, entity.deals[0], analysis, 10, now) == max(
            30, baseline - 20
        )


class TestTaxonomies:
    """Test alternate stage taxonomies."""

    def test_enterprise_taxonomy_scores_its_own_stages(self, make_entity, now):
        entity = make_entity(status="solution")
        result = _engine(taxonomy="enterprise").score(entity, now=now)
        assert result.stage == "solution"
        assert result.stage_progress.completed_stages == ["discovery", "qualification"]
        assert result.stage_progress.upcoming_stages == ["proposal", "contract"]

    def test_default_stage_names_are_inactive_elsewhere(self):
        engine = _engine(taxonomy="solution")
        assert engine.select_primary_deal([Deal(status="negotiation")]) is None

    def test_unknown_taxonomy(self):
        with pytest.raises(ConfigurationError):
            get_taxonomy("waterfall")

    def test_benchmark_comparison(self, make_entity, now):
        result = _engine().score(make_entity(status="proposal"), now=now)
        assert result.benchmark.success_probability == 65
        assert result.benchmark.comparison in ("above average", "average", "below average")


class TestRuleTables:
    """Test rule tables can be swapped without engine changes."""

    def test_bucket_for(self):
        buckets = DEFAULT_RULES.momentum_buckets
        assert bucket_for(15, buckets).category == "accelerating"
        assert bucket_for(5, buckets).category == "steady"
        assert bucket_for(-10, buckets).category == "stalling"
        assert bucket_for(-11, buckets).category == "declining"

    def test_custom_rules(self, make_entity, now):
        rules = ScoringRules(
            momentum_signals=(),
            momentum_buckets=(Bucket(None, "steady", 1.0),),
            risk_patterns=(),
        )
        engine = DealScoringEngine(rules=rules, rng=random.Random(1))
        entity = make_entity(notes="Budget freeze and a competitor, deal on hold.")
        result = engine.score(entity, now=now)
        assert result.momentum.category == MomentumCategory.STEADY
        assert not [r for r in result.risk_factors if r.type in ("budget", "competition")]
