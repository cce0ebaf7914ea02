"""Base class for research source connectors."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import structlog

from dealpulse.core.exceptions import ConnectorError
from dealpulse.core.models import Entity

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SourceResult:
    """Payload of one connector call, and whether the source answered at all."""

    payload: Any
    succeeded: bool = True


class SourceConnector(ABC):
    """
    Fetches one kind of external signal about a company.

    ``fetch`` never raises: transport, status, timeout and decoding problems
    are logged and turned into an empty payload so research can continue
    with whatever the other sources return. ``fetch_result`` additionally
    tells a failed call apart from a source that had nothing to report.
    """

    name: str = ""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 20.0):
        self.client = client
        self.timeout = timeout

    def empty(self) -> Any:
        return []

    def _failed(self) -> SourceResult:
        return SourceResult(self.empty(), succeeded=False)

    async def fetch(
        self,
        company: str,
        entity_id: str,
        user_id: str,
        *,
        entity: Optional[Entity] = None,
    ) -> Any:
        result = await self.fetch_result(company, entity_id, user_id, entity=entity)
        return result.payload

    async def fetch_result(
        self,
        company: str,
        entity_id: str,
        user_id: str,
        *,
        entity: Optional[Entity] = None,
    ) -> SourceResult:
        log = logger.bind(source=self.name, entity_id=entity_id, user_id=user_id)
        if not company:
            log.warning("connector_skipped", reason="missing_company")
            return self._failed()

        try:
            payload = await asyncio.wait_for(self._fetch(company, entity), timeout=self.timeout)
        except asyncio.TimeoutError:
            log.warning("connector_timeout", timeout=self.timeout)
            return self._failed()
        except ConnectorError as exc:
            log.warning("connector_failed", error=exc.message, status_code=exc.status_code)
            return self._failed()
        except Exception as exc:
            log.warning("connector_failed", error=str(exc), error_type=type(exc).__name__)
            return self._failed()

        if not payload:
            log.info("connector_empty", company=company)
            return SourceResult(self.empty())

        log.info("connector_fetched", company=company, items=len(payload))
        return SourceResult(payload)

    @abstractmethod
    async def _fetch(self, company: str, entity: Optional[Entity]) -> Any:
        """Return the source payload; may raise."""

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        try:
            response = await self.client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise ConnectorError(self.name, f"Request failed: {exc}") from exc

        if allow_not_found and response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ConnectorError(
                self.name, f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorError(self.name, "Response was not valid JSON") from exc
