"""Tests for cooldown-driven research scheduling."""

import asyncio
from datetime import timedelta

import pytest

from dealpulse.core.models import (
    BatchSummary,
    ProcessingStatus,
    ResearchOutcome,
    ResearchRecord,
    ResearchRunResult,
)
from dealpulse.data.roster import InMemoryRosterRepository
from dealpulse.data.store import InMemoryResearchStore
from dealpulse.research.connectors.base import SourceResult
from dealpulse.research.coordinator import ResearchCoordinator
from dealpulse.services.scheduler import CooldownScheduler

SOURCES = ["news", "discussion", "enrichment"]


class DummyCoordinator:
    """Records research runs and returns canned outcomes."""

    sources = SOURCES

    def __init__(self, outcome=ResearchOutcome.COMPLETED, fail_for=()):
        self.outcome = outcome
        self.fail_for = set(fail_for)
        self.calls = []

    async def run(self, entity, sources=None, now=None):
        self.calls.append((entity.id, None if sources is None else list(sources)))
        if entity.id in self.fail_for:
            raise RuntimeError(f"research blew up for {entity.id}")
        return ResearchRunResult(entity_id=entity.id, outcome=self.outcome)


class DummyRunner:
    def __init__(self):
        self.runs = 0

    async def run(self):
        self.runs += 1
        return BatchSummary()


def _record(entity, fetched_at):
    return ResearchRecord(
        entity_id=entity.id,
        user_id=entity.user_id,
        data={source: ["x"] for source in fetched_at},
        last_fetched=fetched_at,
    )


def _scheduler(entities, coordinator=None, store=None, **kwargs):
    return CooldownScheduler(
        coordinator or DummyCoordinator(),
        InMemoryRosterRepository(entities),
        store or InMemoryResearchStore(),
        **kwargs,
    )


async def _seed(store, record):
    await store.upsert_research(
        record.entity_id,
        record.user_id,
        company="",
        data=record.data,
        fetched_at=record.last_fetched,
    )


class TestStaleSources:
    """Test per-source cooldown decisions."""

    def test_never_researched_is_fully_stale(self, make_entity, now):
        scheduler = _scheduler([])
        assert scheduler.stale_sources(None, now) == SOURCES

    def test_cooldown_boundary(self, make_entity, now):
        entity = make_entity()
        scheduler = _scheduler([entity])
        record = _record(
            entity,
            {
                "news": now - timedelta(hours=11),
                "discussion": now - timedelta(hours=13),
                "enrichment": now - timedelta(hours=12),
            },
        )
        assert scheduler.stale_sources(record, now) == ["discussion", "enrichment"]

    def test_missing_source_is_stale(self, make_entity, now):
        entity = make_entity()
        scheduler = _scheduler([entity])
        record = _record(entity, {"news": now, "discussion": now})
        assert scheduler.stale_sources(record, now) == ["enrichment"]


class TestRunCycle:
    """Test one scheduler pass over the roster."""

    def test_recent_research_is_skipped(self, make_entity, now):
        entity = make_entity()
        store = InMemoryResearchStore()
        coordinator = DummyCoordinator()
        scheduler = _scheduler([entity], coordinator, store)
        fetched = now - timedelta(hours=11)

        async def run():
            await _seed(store, _record(entity, {s: fetched for s in SOURCES}))
            return await scheduler.run_cycle(now=now)

        summary = asyncio.run(run())

        assert coordinator.calls == []
        assert summary.skipped == 1
        assert summary.total == 1

    def test_expired_research_is_rerun(self, make_entity, now):
        entity = make_entity()
        store = InMemoryResearchStore()
        coordinator = DummyCoordinator()
        scheduler = _scheduler([entity], coordinator, store)
        fetched = now - timedelta(hours=13)

        async def run():
            await _seed(store, _record(entity, {s: fetched for s in SOURCES}))
            return await scheduler.run_cycle(now=now)

        summary = asyncio.run(run())

        assert coordinator.calls == [("ent-1", SOURCES)]
        assert summary.processed == 1

    def test_only_stale_sources_are_requested(self, make_entity, now):
        entity = make_entity()
        store = InMemoryResearchStore()
        coordinator = DummyCoordinator()
        fetched = {"news": now - timedelta(hours=1), "discussion": now - timedelta(hours=30)}

        async def run():
            await _seed(store, _record(entity, fetched))
            return await _scheduler([entity], coordinator, store).run_cycle(now=now)

        asyncio.run(run())
        assert coordinator.calls == [("ent-1", ["discussion", "enrichment"])]

    def test_refetch_all_sources(self, make_entity, now):
        entity = make_entity()
        store = InMemoryResearchStore()
        coordinator = DummyCoordinator()
        fetched = {"news": now - timedelta(hours=1), "discussion": now - timedelta(hours=30)}

        async def run():
            await _seed(store, _record(entity, fetched))
            scheduler = _scheduler([entity], coordinator, store, refetch_all_sources=True)
            return await scheduler.run_cycle(now=now)

        asyncio.run(run())
        assert coordinator.calls == [("ent-1", None)]

    def test_inactive_entities_are_not_visited(self, make_entity, now):
        coordinator = DummyCoordinator()
        entities = [make_entity(entity_id="a"), make_entity(entity_id="b", is_active=False)]
        summary = asyncio.run(_scheduler(entities, coordinator).run_cycle(now=now))
        assert [call[0] for call in coordinator.calls] == ["a"]
        assert summary.total == 1

    def test_failure_is_isolated(self, make_entity, now):
        coordinator = DummyCoordinator(fail_for={"b"})
        entities = [make_entity(entity_id=e) for e in ("a", "b", "c")]

        summary = asyncio.run(_scheduler(entities, coordinator).run_cycle(now=now))

        assert summary.processed == 2
        assert summary.failed == 1
        failed = [d for d in summary.details if d.status == ProcessingStatus.FAILED]
        assert failed[0].entity_id == "b"
        assert "research blew up" in failed[0].error

    @pytest.mark.parametrize(
        "outcome,status",
        [
            (ResearchOutcome.COMPLETED, ProcessingStatus.PROCESSED),
            (ResearchOutcome.NO_DATA, ProcessingStatus.PROCESSED),
            (ResearchOutcome.SKIPPED_DUPLICATE, ProcessingStatus.SKIPPED),
            (ResearchOutcome.ABORTED, ProcessingStatus.FAILED),
        ],
    )
    def test_outcome_mapping(self, make_entity, now, outcome, status):
        scheduler = _scheduler([make_entity()], DummyCoordinator(outcome=outcome))
        summary = asyncio.run(scheduler.run_cycle(now=now))
        assert summary.details[0].status == status


class TestRunForever:
    """Test the long-running worker loop."""

    def test_iterations_continue_after_errors(self, make_entity):
        class FailingRoster(InMemoryRosterRepository):
            async def list_entities(self):
                raise OSError("roster unavailable")

        runner = DummyRunner()
        scheduler = CooldownScheduler(
            DummyCoordinator(),
            FailingRoster(),
            InMemoryResearchStore(),
            intelligence_runner=runner,
        )

        asyncio.run(scheduler.run_forever(interval_seconds=0, max_iterations=2))
        # the cycle failed before the intelligence batch both times
        assert runner.runs == 0

    def test_runs_intelligence_after_each_cycle(self, make_entity):
        runner = DummyRunner()
        scheduler = _scheduler([make_entity()], intelligence_runner=runner)
        asyncio.run(scheduler.run_forever(interval_seconds=0, max_iterations=3))
        assert runner.runs == 3


class CountingConnector:
    """Connector double counting calls; ``succeeded=False`` mimics an outage."""

    def __init__(self, name, payload, succeeded=True):
        self.name = name
        self.payload = payload
        self.succeeded = succeeded
        self.calls = 0

    def empty(self):
        return []

    async def fetch_result(self, company, entity_id, user_id, *, entity=None):
        self.calls += 1
        return SourceResult(self.payload, succeeded=self.succeeded)


class TestCooldownWithCoordinator:
    """Test cooldown decisions against real research runs."""

    def _setup(self, make_entity, connectors):
        store = InMemoryResearchStore()
        coordinator = ResearchCoordinator(connectors, store)
        roster = InMemoryRosterRepository([make_entity()])
        return CooldownScheduler(coordinator, roster, store)

    def test_empty_source_waits_out_cooldown(self, make_entity, now):
        news = CountingConnector("news", [{"title": "Acme Lending expands"}])
        discussion = CountingConnector("discussion", [])
        scheduler = self._setup(make_entity, [news, discussion])

        async def run():
            for hours in (0, 1, 2):
                await scheduler.run_cycle(now=now + timedelta(hours=hours))
            within = (news.calls, discussion.calls)
            await scheduler.run_cycle(now=now + timedelta(hours=12))
            return within

        assert asyncio.run(run()) == (1, 1)
        assert (news.calls, discussion.calls) == (2, 2)

    def test_all_empty_entity_is_not_rerun(self, make_entity, now):
        news = CountingConnector("news", [])
        discussion = CountingConnector("discussion", [])
        scheduler = self._setup(make_entity, [news, discussion])

        async def run():
            first = await scheduler.run_cycle(now=now)
            second = await scheduler.run_cycle(now=now + timedelta(hours=1))
            return first, second

        first, second = asyncio.run(run())

        assert first.processed == 1
        assert second.skipped == 1
        assert (news.calls, discussion.calls) == (1, 1)

    def test_failed_source_is_retried_next_cycle(self, make_entity, now):
        news = CountingConnector("news", [{"title": "Acme Lending expands"}])
        enrichment = CountingConnector("enrichment", [], succeeded=False)
        scheduler = self._setup(make_entity, [news, enrichment])

        async def run():
            await scheduler.run_cycle(now=now)
            await scheduler.run_cycle(now=now + timedelta(hours=1))

        asyncio.run(run())

        assert news.calls == 1
        assert enrichment.calls == 2
