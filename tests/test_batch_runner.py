"""Tests for batch intelligence generation."""

import asyncio
import random

import pytest

from dealpulse.core.exceptions import MissingIdentifiersError
from dealpulse.core.models import Deal, IntelligenceSource, ProcessingStatus
from dealpulse.data.roster import InMemoryRosterRepository
from dealpulse.data.store import InMemoryResearchStore
from dealpulse.intelligence.generator import IntelligenceGenerator
from dealpulse.intelligence.scoring import DealScoringEngine
from dealpulse.services.batch_runner import BatchRunner, is_eligible
from dealpulse.services.intelligence_service import IntelligenceService


class DummyService:
    """Records processed entities; raises for configured ids."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.processed = []

    async def process(self, entity, now=None):
        if entity.id in self.fail_for:
            raise RuntimeError(f"generation store failed for {entity.id}")
        self.processed.append(entity.id)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class TestEligibility:
    """Test which entities get intelligence."""

    def test_rules(self, make_entity):
        assert is_eligible(make_entity())
        assert is_eligible(make_entity(deals=[], notes="Met at the conference."))
        assert not is_eligible(make_entity(deals=[], notes="   "))
        assert not is_eligible(make_entity(is_active=False))


class TestBatchRunner:
    """Test chunking, pacing and failure isolation."""

    def test_chunks_with_delay_between_only(self, make_entity):
        sleep = SleepRecorder()
        service = DummyService()
        entities = [make_entity(entity_id=f"e{i}") for i in range(7)]
        runner = BatchRunner(service, batch_size=3, batch_delay_seconds=2.5, sleep=sleep)

        summary = asyncio.run(runner.run(entities))

        assert summary.processed == 7
        assert summary.total == 7
        assert sorted(service.processed) == sorted(e.id for e in entities)
        assert sleep.calls == [2.5, 2.5]

    def test_no_delay_for_single_chunk(self, make_entity):
        sleep = SleepRecorder()
        runner = BatchRunner(DummyService(), batch_size=5, sleep=sleep)
        asyncio.run(runner.run([make_entity(entity_id="a"), make_entity(entity_id="b")]))
        assert sleep.calls == []

    def test_ineligible_are_skipped(self, make_entity):
        service = DummyService()
        entities = [
            make_entity(entity_id="ok"),
            make_entity(entity_id="empty", deals=[], notes=""),
            make_entity(entity_id="off", is_active=False),
        ]
        summary = asyncio.run(BatchRunner(service, sleep=SleepRecorder()).run(entities))

        assert service.processed == ["ok"]
        assert (summary.processed, summary.skipped, summary.total) == (1, 2, 3)

    def test_failure_does_not_abort_batch(self, make_entity):
        service = DummyService(fail_for={"e1"})
        entities = [make_entity(entity_id=f"e{i}") for i in range(4)]
        runner = BatchRunner(service, batch_size=2, sleep=SleepRecorder())

        summary = asyncio.run(runner.run(entities))

        assert summary.processed == 3
        assert summary.failed == 1
        failed = next(d for d in summary.details if d.status == ProcessingStatus.FAILED)
        assert failed.entity_id == "e1"
        assert "generation store failed" in failed.error

    def test_reads_roster_when_no_entities_given(self, make_entity):
        service = DummyService()
        roster = InMemoryRosterRepository([make_entity(entity_id="r1")])
        summary = asyncio.run(BatchRunner(service, roster=roster, sleep=SleepRecorder()).run())
        assert service.processed == ["r1"]
        assert summary.total == 1

    def test_requires_roster_or_entities(self):
        with pytest.raises(ValueError):
            asyncio.run(BatchRunner(DummyService()).run())


class TestIntelligenceService:
    """Test generation plus persistence for one entity."""

    def _service(self, store):
        generator = IntelligenceGenerator(
            llm=None, scoring_engine=DealScoringEngine(rng=random.Random(3))
        )
        return IntelligenceService(generator, store)

    def test_saves_intelligence_without_research(self, make_entity, now):
        store = InMemoryResearchStore()
        entity = make_entity()

        async def run():
            await self._service(store).process(entity, now)
            return await store.get(entity.id, entity.user_id)

        record = asyncio.run(run())

        assert record.company == "Acme Lending"
        assert record.data == {}
        assert record.deal_intelligence.metadata.source == IntelligenceSource.FALLBACK
        assert 0 <= record.deal_intelligence.score <= 100

    def test_keeps_existing_research(self, make_entity, now):
        store = InMemoryResearchStore()
        entity = make_entity(deals=[Deal(title="Done", status="closed_won")])

        async def run():
            await store.upsert_research(
                entity.id,
                entity.user_id,
                company=entity.company,
                data={"news": [{"title": "t"}]},
                fetched_at={"news": now},
            )
            await self._service(store).process(entity, now)
            return await store.get(entity.id, entity.user_id)

        record = asyncio.run(run())

        assert record.data == {"news": [{"title": "t"}]}
        assert record.deal_intelligence.is_advisory

    def test_missing_identifiers(self, make_entity):
        with pytest.raises(MissingIdentifiersError):
            asyncio.run(self._service(InMemoryResearchStore()).process(make_entity(user_id="")))
