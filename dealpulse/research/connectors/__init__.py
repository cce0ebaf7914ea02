"""
Research source connectors.

Connectors are selected by name from configuration; each one turns its own
failures into an empty payload.
"""

from typing import Callable, Dict, List, Optional

import httpx
import structlog

from dealpulse.core.config import ResearchConfig
from dealpulse.research.connectors.base import SourceConnector, SourceResult
from dealpulse.research.connectors.discussion import DiscussionConnector
from dealpulse.research.connectors.enrichment import EnrichmentConnector
from dealpulse.research.connectors.news import NewsConnector

logger = structlog.get_logger(__name__)

Factory = Callable[[ResearchConfig, httpx.AsyncClient], Optional[SourceConnector]]


def _news(config: ResearchConfig, client: httpx.AsyncClient) -> Optional[SourceConnector]:
    if not config.serpapi_api_key:
        return None
    return NewsConnector(
        client,
        api_key=config.serpapi_api_key,
        max_results=config.news_max_results,
        timeout=config.connector_timeout,
    )


def _discussion(config: ResearchConfig, client: httpx.AsyncClient) -> Optional[SourceConnector]:
    return DiscussionConnector(
        client,
        user_agent=config.reddit_user_agent,
        max_results=config.discussion_max_results,
        timeout=config.connector_timeout,
    )


def _enrichment(config: ResearchConfig, client: httpx.AsyncClient) -> Optional[SourceConnector]:
    if not config.pdl_api_key:
        return None
    return EnrichmentConnector(
        client, api_key=config.pdl_api_key, timeout=config.connector_timeout
    )


CONNECTOR_FACTORIES: Dict[str, Factory] = {
    "news": _news,
    "discussion": _discussion,
    "enrichment": _enrichment,
}


def build_connectors(config: ResearchConfig, client: httpx.AsyncClient) -> List[SourceConnector]:
    """Instantiate the enabled connectors in configured order."""
    connectors = []
    for name in config.sources:
        factory = CONNECTOR_FACTORIES.get(name)
        if factory is None:
            logger.warning("unknown_research_source", source=name)
            continue
        connector = factory(config, client)
        if connector is None:
            logger.warning("research_source_disabled", source=name, reason="missing_credentials")
            continue
        connectors.append(connector)

    logger.debug("connectors_built", sources=[c.name for c in connectors])
    return connectors


__all__ = [
    "CONNECTOR_FACTORIES",
    "DiscussionConnector",
    "EnrichmentConnector",
    "NewsConnector",
    "SourceConnector",
    "SourceResult",
    "build_connectors",
]
