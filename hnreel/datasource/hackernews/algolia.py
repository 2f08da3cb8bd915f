"""
Hacker News search via the Algolia HN Search API.

API Documentation: https://hn.algolia.com/api
The public endpoint allows about 10,000 requests per hour per IP, so every
call is paced through a single-lane limiter with a refilling reservoir.
"""

from datetime import timedelta
from typing import Any

from loguru import logger

from hnreel.datasource.base import BaseDataSource
from hnreel.datasource.hackernews.models import (
    SearchHit,
    SearchOptions,
    SearchResponse,
)
from hnreel.services.cache import CacheConfig, SWRCache
from hnreel.services.client import ServiceClient
from hnreel.services.limiter import RequestLimiter

SEARCH_CACHE_CONFIG = CacheConfig(
    fresh_window=timedelta(seconds=30),
    stale_window=timedelta(minutes=2),
    capacity=500,
)


def default_search_limiter() -> RequestLimiter:
    """About 2.7 requests per second with bursts of up to 100."""
    return RequestLimiter(
        max_concurrent=1,
        min_interval=0.37,
        reservoir=100,
        reservoir_refresh_amount=10,
        reservoir_refresh_interval=3.7,
    )


def search_cache_key(query: str, options: SearchOptions | None = None) -> str:
    options_json = (options or SearchOptions()).model_dump_json(exclude_defaults=True)
    return f"search:{query}:{options_json}"


def build_search_params(query: str, options: SearchOptions) -> dict[str, Any]:
    """Translate search options into Algolia query parameters."""
    params: dict[str, Any] = {"query": query}

    tags = list(options.tags)
    if options.author:
        tags.append(f"author_{options.author}")
    if options.story_id:
        tags.append(f"story_{options.story_id}")
    if tags:
        params["tags"] = ",".join(tags)

    if options.numeric_filters:
        params["numericFilters"] = ",".join(str(f) for f in options.numeric_filters)

    params["page"] = str(options.page)
    params["hitsPerPage"] = str(options.hits_per_page)

    if options.restrict_searchable_attributes:
        params["restrictSearchableAttributes"] = ",".join(
            options.restrict_searchable_attributes
        )

    return params


class AlgoliaSearchSource(BaseDataSource[SearchHit]):
    """
    Full-text search over stories and comments.

    Usage:
        search = AlgoliaSearchSource()
        results = await search.search_stories(
            "python",
            SearchOptions(numeric_filters=[NumericFilter(field="points", operator=">", value=100)]),
        )
    """

    SERVICE_ID = "hn-algolia"

    def __init__(
        self,
        client: ServiceClient | None = None,
        limiter: RequestLimiter | None = None,
        cache: SWRCache | None = None,
        base_url: str | None = None,
    ):
        from hnreel.settings import global_settings

        super().__init__(client)
        self.base_url = (base_url or global_settings.search_base_url).rstrip("/")
        self.limiter = limiter or default_search_limiter()
        self.cache: SWRCache = (
            cache if cache is not None else SWRCache(SEARCH_CACHE_CONFIG, name="hn:search")
        )

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    async def fetch(self) -> list[SearchHit]:
        """Fetch the hits currently on the front page."""
        response = await self.get_front_page_stories()
        logger.info(f"Fetched {len(response.hits)} front page hits")
        return response.hits

    async def search_stories(
        self, query: str, options: SearchOptions | None = None
    ) -> SearchResponse:
        """
        Search by relevance, or by date when ``options.sort_by_date`` is set.

        Raises:
            RateLimitError: The search API answered 429
        """
        options = options or SearchOptions()
        return await self.cache.get(
            search_cache_key(query, options),
            lambda: self.limiter.schedule(lambda: self._search(query, options)),
        )

    async def get_front_page_stories(
        self, options: SearchOptions | None = None
    ) -> SearchResponse:
        """Search the front page; any tags in ``options`` are replaced."""
        options = (options or SearchOptions()).model_copy(update={"tags": ["front_page"]})
        return await self.search_stories("", options)

    def invalidate_search_cache(
        self, query: str, options: SearchOptions | None = None
    ) -> None:
        self.cache.invalidate(search_cache_key(query, options))

    def clear_search_cache(self) -> None:
        self.cache.clear()

    async def _search(self, query: str, options: SearchOptions) -> SearchResponse:
        endpoint = "search_by_date" if options.sort_by_date else "search"
        return await self.client.get_json(
            f"{self.base_url}/{endpoint}",
            SearchResponse,
            params=build_search_params(query, options),
            description=f"search '{query}'",
        )
