"""
Hacker News data sources: Firebase item API and Algolia search.
"""

from hnreel.datasource.hackernews.algolia import AlgoliaSearchSource
from hnreel.datasource.hackernews.firebase import HackerNewsSource
from hnreel.datasource.hackernews.models import (
    CommentTree,
    Item,
    NumericFilter,
    SearchHit,
    SearchOptions,
    SearchResponse,
    Updates,
    User,
)
from hnreel.datasource.hackernews.tree import CommentTreeMaterializer

__all__ = [
    "AlgoliaSearchSource",
    "HackerNewsSource",
    "CommentTree",
    "CommentTreeMaterializer",
    "Item",
    "NumericFilter",
    "SearchHit",
    "SearchOptions",
    "SearchResponse",
    "Updates",
    "User",
]
