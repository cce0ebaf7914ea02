"""Research record stores keyed by (entity_id, user_id).

Writes are upserts: running the same write twice leaves the same record, so
retried or duplicated work is harmless.
"""

from __future__ import annotations

import asyncio
import json
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog
from pydantic import ValidationError

from dealpulse.core.exceptions import PersistenceError
from dealpulse.core.models import DealIntelligence, ResearchRecord, utcnow

logger = structlog.get_logger(__name__)

Key = Tuple[str, str]


class ResearchStore(ABC):
    """Upsert-by-composite-key document store for research records."""

    def __init__(self):
        self._lock = asyncio.Lock()

    @abstractmethod
    async def _read(self, key: Key) -> Optional[ResearchRecord]:
        """Return a copy of the stored record, if any."""

    @abstractmethod
    async def _write(self, record: ResearchRecord) -> None:
        """Persist ``record``, replacing any record with the same key."""

    @abstractmethod
    async def list_records(self) -> List[ResearchRecord]:
        """Return copies of all stored records."""

    async def get(self, entity_id: str, user_id: str) -> Optional[ResearchRecord]:
        return await self._read((entity_id, user_id))

    async def upsert_research(
        self,
        entity_id: str,
        user_id: str,
        *,
        company: str,
        data: Mapping[str, Any],
        fetched_at: Mapping[str, datetime],
        narrative_summary: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> ResearchRecord:
        """
        Merge fresh source payloads into the record for (entity_id, user_id).

        Sources absent from ``data`` keep their previous payload and
        timestamp. The stored intelligence document is left untouched.
        """
        async with self._lock:
            record = await self._read((entity_id, user_id)) or ResearchRecord(
                entity_id=entity_id, user_id=user_id
            )
            record.company = company or record.company
            record.data.update(data)
            record.last_fetched.update(fetched_at)
            if narrative_summary is not None:
                record.narrative_summary = narrative_summary
            record.timestamp = timestamp or utcnow()
            await self._write(record)
        logger.debug("research_upserted", entity_id=entity_id, sources=sorted(data))
        return record

    async def save_intelligence(
        self,
        entity_id: str,
        user_id: str,
        intelligence: DealIntelligence,
        company: str = "",
    ) -> ResearchRecord:
        """Replace the intelligence document, creating the record if needed."""
        async with self._lock:
            record = await self._read((entity_id, user_id)) or ResearchRecord(
                entity_id=entity_id, user_id=user_id, company=company
            )
            record.deal_intelligence = intelligence
            record.timestamp = utcnow()
            await self._write(record)
        return record


class InMemoryResearchStore(ResearchStore):
    """Process-local store, used in tests and single-shot runs."""

    def __init__(self):
        super().__init__()
        self._records: Dict[Key, ResearchRecord] = {}

    async def _read(self, key: Key) -> Optional[ResearchRecord]:
        record = self._records.get(key)
        return record.model_copy(deep=True) if record else None

    async def _write(self, record: ResearchRecord) -> None:
        self._records[record.key] = record.model_copy(deep=True)

    async def list_records(self) -> List[ResearchRecord]:
        return [r.model_copy(deep=True) for r in self._records.values()]


class JsonFileResearchStore(ResearchStore):
    """Simple JSON-file store for deployments without a database."""

    def __init__(self, state_path: Path):
        """Load existing records from ``state_path`` if the file exists."""
        super().__init__()
        self.state_path = Path(state_path)
        self._records: Dict[Key, ResearchRecord] = self._load()

    def _load(self) -> Dict[Key, ResearchRecord]:
        if not self.state_path.exists():
            return {}
        try:
            raw = json.loads(self.state_path.read_text(encoding="utf-8"))
            records = [ResearchRecord.model_validate(item) for item in raw.get("records", [])]
        except (OSError, ValueError, ValidationError) as exc:
            raise PersistenceError(
                f"Failed to load research store: {exc}", details={"path": str(self.state_path)}
            ) from exc
        logger.info("research_store_loaded", path=str(self.state_path), records=len(records))
        return {record.key: record for record in records}

    def _save(self, records: List[Dict[str, Any]]) -> None:
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.state_path.with_suffix(self.state_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps({"records": records}, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.state_path)

    async def _read(self, key: Key) -> Optional[ResearchRecord]:
        record = self._records.get(key)
        return record.model_copy(deep=True) if record else None

    async def _write(self, record: ResearchRecord) -> None:
        updated = dict(self._records)
        updated[record.key] = record.model_copy(deep=True)
        documents = [r.to_document() for r in updated.values()]
        try:
            await asyncio.to_thread(self._save, documents)
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write research store: {exc}",
                details={"path": str(self.state_path), "entity_id": record.entity_id},
            ) from exc
        self._records = updated

    async def list_records(self) -> List[ResearchRecord]:
        return [r.model_copy(deep=True) for r in self._records.values()]
