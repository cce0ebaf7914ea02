"""Entity roster access.

The roster is owned by the surrounding CRM; this subsystem only reads it.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, List, Optional

import structlog
from pydantic import ValidationError

from dealpulse.core.exceptions import DataAccessError, EntityNotFoundError
from dealpulse.core.models import Entity

logger = structlog.get_logger(__name__)


class RosterRepository(ABC):
    """Read-only access to entities."""

    @abstractmethod
    async def list_entities(self) -> List[Entity]:
        """Return every entity in the roster, active or not."""

    async def list_active(self) -> List[Entity]:
        return [entity for entity in await self.list_entities() if entity.is_active]

    async def get(self, entity_id: str, user_id: Optional[str] = None) -> Entity:
        """Return one entity or raise ``EntityNotFoundError``."""
        for entity in await self.list_entities():
            if entity.id == entity_id and (user_id is None or entity.user_id == user_id):
                return entity
        raise EntityNotFoundError(
            f"Entity {entity_id} not found", entity_id=entity_id, details={"user_id": user_id}
        )


class InMemoryRosterRepository(RosterRepository):
    def __init__(self, entities: Iterable[Entity] = ()):
        self.entities = list(entities)

    async def list_entities(self) -> List[Entity]:
        return list(self.entities)


def parse_roster(raw: Any) -> List[Entity]:
    """Validate roster JSON (a list, or ``{"entities": [...]}``), skipping bad rows."""
    rows = raw.get("entities", []) if isinstance(raw, dict) else raw
    if not isinstance(rows, list):
        raise DataAccessError("Roster must be a list of entities")

    entities = []
    for index, row in enumerate(rows):
        try:
            entities.append(Entity.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "roster_entry_invalid",
                index=index,
                entity_id=row.get("id") if isinstance(row, dict) else None,
                error=str(exc),
            )
    return entities


class JsonRosterRepository(RosterRepository):
    """Roster read from a JSON file on every call, so edits are picked up."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Any:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise DataAccessError(
                f"Failed to read roster: {exc}", details={"path": str(self.path)}
            ) from exc

    async def list_entities(self) -> List[Entity]:
        raw = await asyncio.to_thread(self._read)
        entities = parse_roster(raw)
        logger.debug("roster_loaded", path=str(self.path), entities=len(entities))
        return entities
