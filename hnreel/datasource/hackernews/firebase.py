"""
Hacker News Firebase API data source.

API Documentation: https://github.com/HackerNews/API
No API key required. Every endpoint is cached in memory with
stale-while-revalidate; item lookups fanned out by get_items() and comment
trees go through a shared concurrency limiter.
"""

import asyncio
from datetime import timedelta
from urllib.parse import urljoin

from loguru import logger

from hnreel.datasource.base import BaseDataSource
from hnreel.datasource.hackernews.models import (
    CommentTree,
    Item,
    ItemId,
    ItemIdList,
    Updates,
    User,
)
from hnreel.datasource.hackernews.tree import CommentTreeMaterializer
from hnreel.services.cache import CacheConfig, SWRCache
from hnreel.services.client import ServiceClient
from hnreel.services.limiter import RequestLimiter

TOP_STORIES = "v0/topstories.json"
NEW_STORIES = "v0/newstories.json"
BEST_STORIES = "v0/beststories.json"
ASK_STORIES = "v0/askstories.json"
SHOW_STORIES = "v0/showstories.json"
JOB_STORIES = "v0/jobstories.json"

LIST_ENDPOINTS = [
    TOP_STORIES,
    NEW_STORIES,
    BEST_STORIES,
    ASK_STORIES,
    SHOW_STORIES,
    JOB_STORIES,
]

# Freshness windows and capacity per kind of payload
CACHE_CONFIGS: dict[str, CacheConfig] = {
    "items": CacheConfig(
        fresh_window=timedelta(minutes=5),
        stale_window=timedelta(hours=1),
        capacity=2000,
    ),
    "lists": CacheConfig(
        fresh_window=timedelta(seconds=30),
        stale_window=timedelta(minutes=2),
        capacity=20,
    ),
    "users": CacheConfig(
        fresh_window=timedelta(minutes=5),
        stale_window=timedelta(minutes=30),
        capacity=500,
    ),
    "updates": CacheConfig(
        fresh_window=timedelta(seconds=30),
        stale_window=timedelta(minutes=1),
        capacity=5,
    ),
    "maxitem": CacheConfig(
        fresh_window=timedelta(seconds=30),
        stale_window=timedelta(minutes=1),
        capacity=1,
    ),
}


class HackerNewsSource(BaseDataSource[Item]):
    """
    Hacker News Firebase API data source.

    Usage:
        source = HackerNewsSource()
        ids = await source.get_top_stories()
        stories = await source.get_items(ids[:30])
        thread = await source.get_item_with_comments(ids[0], max_depth=3)
    """

    SERVICE_ID = "hackernews"

    def __init__(
        self,
        client: ServiceClient | None = None,
        limiter: RequestLimiter | None = None,
        caches: dict[str, SWRCache] | None = None,
        base_url: str | None = None,
        max_comment_depth: int | None = None,
    ):
        from hnreel.settings import global_settings

        super().__init__(client)
        self.base_url = base_url or global_settings.hn_base_url
        self.limiter = limiter or RequestLimiter(max_concurrent=global_settings.max_concurrent)

        caches = caches or {}
        self.caches: dict[str, SWRCache] = {
            kind: caches[kind] if kind in caches else SWRCache(config, name=f"hn:{kind}")
            for kind, config in CACHE_CONFIGS.items()
        }

        self._materializer = CommentTreeMaterializer(
            self.get_item,
            self.limiter,
            max_depth=(
                global_settings.comment_max_depth
                if max_comment_depth is None
                else max_comment_depth
            ),
        )

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    async def fetch(self) -> list[Item]:
        """
        Fetch the current front page.

        Returns:
            Top stories resolved to items, in ranking order
        """
        ids = await self.get_top_stories()
        items = await self.get_items(ids)
        logger.info(f"Fetched {len(items)} top stories")
        return items

    # =========================================================================
    # Items and users
    # =========================================================================

    async def get_item(self, item_id: int) -> Item:
        """Fetch a story, comment, job, poll or poll option by id."""
        return await self.caches["items"].get(
            f"item:{item_id}",
            lambda: self.client.get_json(
                self._url(f"v0/item/{item_id}.json"),
                Item,
                description=f"item {item_id}",
            ),
        )

    async def get_items(self, ids: list[int]) -> list[Item]:
        """Fetch several items through the limiter, preserving input order."""
        return list(
            await asyncio.gather(
                *(
                    self.limiter.schedule(lambda item_id=item_id: self.get_item(item_id))
                    for item_id in ids
                )
            )
        )

    async def get_user(self, username: str) -> User:
        """Fetch a user profile. Usernames are case-sensitive."""
        return await self.caches["users"].get(
            f"user:{username}",
            lambda: self.client.get_json(
                self._url(f"v0/user/{username}.json"),
                User,
                description=f"user {username}",
            ),
        )

    async def get_max_item_id(self) -> int:
        """Fetch the largest item id issued so far."""
        return await self.caches["maxitem"].get(
            "maxitem",
            lambda: self.client.get_json(
                self._url("v0/maxitem.json"), ItemId, description="max item ID"
            ),
        )

    async def get_updates(self) -> Updates:
        """Fetch recently changed items and profiles."""
        return await self.caches["updates"].get(
            "updates",
            lambda: self.client.get_json(
                self._url("v0/updates.json"), Updates, description="updates"
            ),
        )

    async def get_item_with_comments(
        self,
        item_id: int,
        max_depth: int | None = None,
        fanout_limit: int | None = None,
    ) -> CommentTree:
        """
        Fetch an item with its replies nested to ``max_depth`` levels.

        Replies that fail to load, or are deleted or dead, are left out.
        A failure loading ``item_id`` itself is raised.
        """
        return await self._materializer.materialize(item_id, max_depth, fanout_limit)

    # =========================================================================
    # Story lists
    # =========================================================================

    async def get_top_stories(self) -> list[int]:
        return await self._get_list(TOP_STORIES)

    async def get_new_stories(self) -> list[int]:
        return await self._get_list(NEW_STORIES)

    async def get_best_stories(self) -> list[int]:
        return await self._get_list(BEST_STORIES)

    async def get_ask_stories(self) -> list[int]:
        return await self._get_list(ASK_STORIES)

    async def get_show_stories(self) -> list[int]:
        return await self._get_list(SHOW_STORIES)

    async def get_job_stories(self) -> list[int]:
        return await self._get_list(JOB_STORIES)

    async def _get_list(self, endpoint: str) -> list[int]:
        return await self.caches["lists"].get(
            f"list:{endpoint}",
            lambda: self.client.get_json(
                self._url(endpoint), ItemIdList, description=f"list from {endpoint}"
            ),
        )

    # =========================================================================
    # Cache control
    # =========================================================================

    def invalidate_item_cache(self, item_id: int) -> None:
        self.caches["items"].invalidate(f"item:{item_id}")

    def invalidate_user_cache(self, username: str) -> None:
        self.caches["users"].invalidate(f"user:{username}")

    def invalidate_list_caches(self) -> None:
        for endpoint in LIST_ENDPOINTS:
            self.caches["lists"].invalidate(f"list:{endpoint}")

    def clear_all_caches(self) -> None:
        for cache in self.caches.values():
            cache.clear()
        logger.info("Cleared all Hacker News caches")

    def get_stats(self) -> dict[str, dict]:
        """Cache and limiter statistics."""
        stats = {kind: cache.get_stats().to_dict() for kind, cache in self.caches.items()}
        stats["limiter"] = self.limiter.get_stats()
        return stats

    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path)
