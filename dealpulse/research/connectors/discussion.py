"""Public discussion about a company from Reddit search."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from dealpulse.core.models import Entity, Sentiment
from dealpulse.research.connectors.base import SourceConnector

REDDIT_SEARCH_ENDPOINT = "https://www.reddit.com/search.json"

BUSINESS_SUBREDDITS = {
    "banking",
    "business",
    "entrepreneur",
    "finance",
    "fintech",
    "investing",
    "marketing",
    "mortgage",
    "realestate",
    "saas",
    "sales",
    "smallbusiness",
    "startups",
    "sysadmin",
    "technology",
}

BUSINESS_KEYWORDS = re.compile(
    r"\b(customer|service|product|company|business|pricing|support|software|platform"
    r"|review|experience|partnership|acquisition|funding|revenue|launch|layoffs?)\b",
    re.IGNORECASE,
)

IRRELEVANT_KEYWORDS = re.compile(
    r"\b(meme|nsfw|gaming|video game|movie|tv show|recipe|fantasy football)\b", re.IGNORECASE
)

POSITIVE_WORDS = re.compile(
    r"\b(great|love|excellent|recommend|good|happy|amazing|best|reliable)\b", re.IGNORECASE
)
NEGATIVE_WORDS = re.compile(
    r"\b(terrible|awful|scam|worst|hate|bad|problem|issue|complaint|avoid|outage)\b",
    re.IGNORECASE,
)


def post_sentiment(text: str) -> str:
    positive = len(POSITIVE_WORDS.findall(text))
    negative = len(NEGATIVE_WORDS.findall(text))
    if positive > negative:
        return Sentiment.POSITIVE.value
    if negative > positive:
        return Sentiment.NEGATIVE.value
    return Sentiment.NEUTRAL.value


def is_relevant(post: Dict[str, Any], company: str) -> bool:
    """Mentions the company, in a business context, and is not noise."""
    text = f"{post.get('title', '')} {post.get('selftext', '')}"
    if company.lower() not in text.lower():
        return False
    if IRRELEVANT_KEYWORDS.search(text) or post.get("over_18"):
        return False
    subreddit = str(post.get("subreddit", "")).lower()
    return subreddit in BUSINESS_SUBREDDITS or bool(BUSINESS_KEYWORDS.search(text))


class DiscussionConnector(SourceConnector):
    name = "discussion"

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str,
        max_results: int = 10,
        timeout: float = 20.0,
    ):
        super().__init__(client, timeout=timeout)
        self.user_agent = user_agent
        self.max_results = max_results

    async def _fetch(self, company: str, entity: Optional[Entity]) -> List[Dict[str, Any]]:
        data = await self._get_json(
            REDDIT_SEARCH_ENDPOINT,
            params={"q": f'"{company}"', "sort": "relevance", "t": "year", "limit": 50},
            headers={"User-Agent": self.user_agent},
        )
        children = ((data or {}).get("data") or {}).get("children") or []

        posts = []
        for child in children:
            post = child.get("data") or {}
            if not is_relevant(post, company):
                continue
            text = f"{post.get('title', '')} {post.get('selftext', '')}"
            created = post.get("created_utc")
            posts.append(
                {
                    "title": post.get("title", ""),
                    "subreddit": post.get("subreddit", ""),
                    "url": f"https://www.reddit.com{post.get('permalink', '')}",
                    "upvotes": post.get("score", 0),
                    "comments": post.get("num_comments", 0),
                    "snippet": (post.get("selftext") or "")[:300],
                    "createdAt": (
                        datetime.fromtimestamp(created, tz=timezone.utc).isoformat()
                        if created
                        else None
                    ),
                    "sentiment": post_sentiment(text),
                }
            )
            if len(posts) >= self.max_results:
                break
        return posts
