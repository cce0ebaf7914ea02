"""Company and contact enrichment from People Data Labs."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import structlog

from dealpulse.core.exceptions import ConnectorError
from dealpulse.core.models import Entity
from dealpulse.research.connectors.base import SourceConnector

logger = structlog.get_logger(__name__)

PDL_BASE_URL = "https://api.peopledatalabs.com/v5"

COMPANY_FIELDS = (
    "name",
    "display_name",
    "industry",
    "size",
    "employee_count",
    "founded",
    "website",
    "linkedin_url",
    "summary",
    "tags",
)
PERSON_FIELDS = (
    "full_name",
    "job_title",
    "job_title_role",
    "job_company_name",
    "linkedin_url",
    "location_name",
)


def summarize_company(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    summary = {key: raw.get(key) for key in COMPANY_FIELDS if raw.get(key) is not None}
    location = raw.get("location")
    if isinstance(location, dict) and location.get("name"):
        summary["location"] = location["name"]
    return summary or None


def summarize_person(raw: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not raw:
        return None
    person = raw.get("data", raw)
    summary = {key: person.get(key) for key in PERSON_FIELDS if person.get(key) is not None}
    skills = person.get("skills") or []
    if skills:
        summary["skills"] = skills[:10]
    return summary or None


class EnrichmentConnector(SourceConnector):
    name = "enrichment"

    def __init__(self, client: httpx.AsyncClient, api_key: str, timeout: float = 20.0):
        super().__init__(client, timeout=timeout)
        self.api_key = api_key

    def empty(self) -> Any:
        return {}

    async def _lookup(self, endpoint: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._get_json(
            f"{PDL_BASE_URL}/{endpoint}",
            params=params,
            headers={"X-Api-Key": self.api_key, "Accept": "application/json"},
            allow_not_found=True,
        )

    async def _fetch(self, company: str, entity: Optional[Entity]) -> Dict[str, Any]:
        lookups = [("company/enrich", {"name": company}, summarize_company)]
        if entity is not None and (entity.contact_email or entity.contact_name):
            if entity.contact_email:
                params = {"email": entity.contact_email}
            else:
                params = {"name": entity.contact_name, "company": company}
            lookups.append(("person/enrich", params, summarize_person))

        found = {}
        failures = 0
        for endpoint, params, summarize in lookups:
            try:
                found[endpoint] = summarize(await self._lookup(endpoint, params))
            except ConnectorError as exc:
                failures += 1
                logger.warning("enrichment_lookup_failed", endpoint=endpoint, error=exc.message)

        # a 404 is an answer; only treat the source as down when nothing answered
        if failures == len(lookups):
            raise ConnectorError(self.name, "All enrichment lookups failed")

        company_data = found.get("company/enrich")
        person_data = found.get("person/enrich")
        if company_data is None and person_data is None:
            return {}
        return {"companyData": company_data, "personData": person_data}
