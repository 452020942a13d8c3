"""Trending topic discovery from Reddit's public listing endpoints."""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from reelpipe.config import RedditConfig
from reelpipe.schemas.media import TrendingTopic

logger = logging.getLogger(__name__)

REDDIT_BASE_URL = "https://www.reddit.com"

TIME_FILTERS = ("hour", "day", "week", "month", "year", "all")


def parse_listing(data: dict) -> list[TrendingTopic]:
    """Convert a Reddit listing response into TrendingTopic entries."""
    topics = []
    for child in data.get("data", {}).get("children", []):
        post = child.get("data", {})
        if not post.get("id") or not post.get("title"):
            continue
        created = post.get("created_utc")
        permalink = post.get("permalink")
        topics.append(
            TrendingTopic(
                id=post["id"],
                title=post["title"],
                subreddit=post.get("subreddit", ""),
                score=post.get("score", 0),
                num_comments=post.get("num_comments", 0),
                author=post.get("author"),
                url=post.get("url"),
                permalink=f"{REDDIT_BASE_URL}{permalink}" if permalink else None,
                created_at=datetime.fromtimestamp(created, tz=timezone.utc) if created else None,
                selftext=post.get("selftext") or "",
                is_video=bool(post.get("is_video", False)),
                flair=post.get("link_flair_text"),
            )
        )
    return topics


class RedditClient:
    """Async client for subreddit hot/top listings and search."""

    def __init__(self, config: RedditConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=REDDIT_BASE_URL,
                headers={"User-Agent": self.config.user_agent},
                follow_redirects=True,
                timeout=httpx.Timeout(20.0, connect=10.0),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def __aenter__(self) -> "RedditClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def get_hot(self, subreddit: Optional[str] = None, limit: Optional[int] = None) -> list[TrendingTopic]:
        subreddit = subreddit or self.config.default_subreddit
        topics = await self._listing(f"/r/{subreddit}/hot.json", {"limit": limit or self.config.limit})
        logger.info(f"Retrieved {len(topics)} trending topics from r/{subreddit}")
        return topics

    async def get_top(
        self,
        subreddit: Optional[str] = None,
        time_filter: str = "day",
        limit: Optional[int] = None,
    ) -> list[TrendingTopic]:
        if time_filter not in TIME_FILTERS:
            raise ValueError(f"time_filter must be one of {', '.join(TIME_FILTERS)}")
        subreddit = subreddit or self.config.default_subreddit
        topics = await self._listing(
            f"/r/{subreddit}/top.json", {"t": time_filter, "limit": limit or self.config.limit}
        )
        logger.info(f"Retrieved {len(topics)} top posts from r/{subreddit}")
        return topics

    async def search(
        self,
        query: str,
        subreddit: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[TrendingTopic]:
        subreddit = subreddit or self.config.default_subreddit
        topics = await self._listing(
            f"/r/{subreddit}/search.json",
            {"q": query, "restrict_sr": "on", "limit": limit or self.config.limit},
        )
        logger.info(f"Retrieved {len(topics)} search results for {query!r}")
        return topics

    async def _listing(self, path: str, params: dict) -> list[TrendingTopic]:
        @retry(
            stop=stop_after_attempt(3),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        async def _call() -> dict:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
            return response.json()

        return parse_listing(await _call())
