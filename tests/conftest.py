"""Configure pytest fixtures and environment for DealPulse tests."""

from datetime import datetime, timedelta, timezone

import pytest
from dotenv import load_dotenv

from dealpulse.core.models import Deal, Entity

FIXED_NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


def pytest_sessionstart(session):
    """Load environment variables from a local .env, if present."""
    load_dotenv()


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_entity(now):
    """Factory for roster entities with sensible defaults.

    ``contact_days`` and ``stage_days`` are relative to the fixed ``now``.
    """

    def _make(
        entity_id: str = "ent-1",
        user_id: str = "user-1",
        company: str = "Acme Lending",
        notes: str = "",
        status: str = "proposal",
        value: float = 50_000,
        stage_days: int = 5,
        contact_days=3,
        deals=None,
        **overrides,
    ) -> Entity:
        if deals is None:
            deals = [
                Deal(
                    title="Platform rollout",
                    value=value,
                    status=status,
                    last_updated=now - timedelta(days=stage_days),
                    expected_close_date=now + timedelta(days=30),
                )
            ]
        last_contact = now - timedelta(days=contact_days) if contact_days is not None else None
        return Entity(
            id=entity_id,
            user_id=user_id,
            company=company,
            notes=notes,
            last_contact=last_contact,
            deals=deals,
            **overrides,
        )

    return _make
