"""Recent company news via the SerpAPI Google News engine."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from dealpulse.core.models import Entity
from dealpulse.research.connectors.base import SourceConnector

SERPAPI_ENDPOINT = "https://serpapi.com/search.json"


def _news_item(result: Dict[str, Any]) -> Dict[str, str]:
    # Grouped results carry the article in their first story
    if not result.get("link") and result.get("stories"):
        result = result["stories"][0]
    source = result.get("source") or ""
    if isinstance(source, dict):
        source = source.get("name", "")
    return {
        "title": result.get("title", ""),
        "url": result.get("link", ""),
        "snippet": result.get("snippet", ""),
        "publishedDate": result.get("date", ""),
        "source": source,
    }


class NewsConnector(SourceConnector):
    name = "news"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        max_results: int = 5,
        timeout: float = 20.0,
    ):
        super().__init__(client, timeout=timeout)
        self.api_key = api_key
        self.max_results = max_results

    async def _fetch(self, company: str, entity: Optional[Entity]) -> List[Dict[str, str]]:
        data = await self._get_json(
            SERPAPI_ENDPOINT,
            params={
                "engine": "google_news",
                "q": f"{company} latest news",
                "api_key": self.api_key,
            },
        )
        items = []
        for result in (data or {}).get("news_results") or []:
            item = _news_item(result)
            if item["title"] and item["url"]:
                items.append(item)
            if len(items) >= self.max_results:
                break
        return items
