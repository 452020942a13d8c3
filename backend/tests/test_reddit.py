"""Tests for Reddit listing parsing and the async client."""

from datetime import datetime, timezone

import httpx
import pytest

from reelpipe.config import RedditConfig
from reelpipe.services.reddit import REDDIT_BASE_URL, RedditClient, parse_listing

LISTING = {
    "data": {
        "children": [
            {
                "data": {
                    "id": "abc1",
                    "title": "Scientists teach robots to fold laundry",
                    "subreddit": "technology",
                    "score": 5120,
                    "num_comments": 312,
                    "author": "someone",
                    "url": "https://example.com/robots",
                    "permalink": "/r/technology/comments/abc1/robots/",
                    "created_utc": 1700000000,
                    "link_flair_text": "Robotics",
                }
            },
            {"data": {"id": "abc2", "title": ""}},
            {
                "data": {
                    "id": "abc3",
                    "title": "A quiet second post",
                    "subreddit": "technology",
                    "is_video": True,
                }
            },
        ]
    }
}


def test_parse_listing():
    topics = parse_listing(LISTING)

    assert [t.id for t in topics] == ["abc1", "abc3"]
    first = topics[0]
    assert first.permalink == "https://www.reddit.com/r/technology/comments/abc1/robots/"
    assert first.created_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert first.flair == "Robotics"
    assert topics[1].is_video is True
    assert topics[1].permalink is None
    assert topics[1].created_at is None


def test_parse_empty_listing():
    assert parse_listing({}) == []


def _client(handler, **config):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=REDDIT_BASE_URL)
    return RedditClient(RedditConfig(**config), client=http)


@pytest.mark.asyncio
async def test_get_hot_uses_default_subreddit_and_limit():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=LISTING)

    async with _client(handler, default_subreddit="technology", limit=7) as reddit:
        topics = await reddit.get_hot()

    assert len(topics) == 2
    assert seen[0].url.path == "/r/technology/hot.json"
    assert seen[0].url.params["limit"] == "7"


@pytest.mark.asyncio
async def test_get_top_passes_time_filter():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=LISTING)

    async with _client(handler) as reddit:
        await reddit.get_top("science", time_filter="week", limit=3)

    assert seen[0].url.path == "/r/science/top.json"
    assert seen[0].url.params["t"] == "week"
    assert seen[0].url.params["limit"] == "3"


@pytest.mark.asyncio
async def test_get_top_rejects_unknown_time_filter():
    async with _client(lambda request: httpx.Response(200, json=LISTING)) as reddit:
        with pytest.raises(ValueError, match="time_filter"):
            await reddit.get_top("science", time_filter="decade")


@pytest.mark.asyncio
async def test_search_restricts_to_subreddit():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=LISTING)

    async with _client(handler) as reddit:
        await reddit.search("fusion power", subreddit="energy")

    assert seen[0].url.path == "/r/energy/search.json"
    assert seen[0].url.params["q"] == "fusion power"
    assert seen[0].url.params["restrict_sr"] == "on"


@pytest.mark.asyncio
async def test_http_error_propagates():
    async with _client(lambda request: httpx.Response(429)) as reddit:
        with pytest.raises(httpx.HTTPStatusError):
            await reddit.get_hot("all")
