"""
Hacker News payload models.

Validation boundary for both APIs: decoded JSON goes through these models
(or the TypeAdapters below) before reaching callers.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ItemType = Literal["job", "story", "comment", "poll", "pollopt"]


class Item(BaseModel):
    """A story, comment, job, poll or poll option."""

    id: int
    deleted: bool | None = None
    type: ItemType | None = None
    by: str | None = None
    time: int | None = None  # Unix time
    text: str | None = None  # HTML
    dead: bool | None = None
    parent: int | None = None
    poll: int | None = None
    kids: list[int] | None = None  # Ranked display order
    url: str | None = None
    score: int | None = None
    title: str | None = None  # HTML
    parts: list[int] | None = None
    descendants: int | None = None

    @property
    def is_gone(self) -> bool:
        """Deleted or dead items are hidden from comment trees."""
        return bool(self.deleted or self.dead)


class CommentTree(Item):
    """An item with its replies nested."""

    replies: list["CommentTree"] = Field(default_factory=list)

    @classmethod
    def from_item(
        cls, item: Item, replies: list["CommentTree"] | None = None
    ) -> "CommentTree":
        return cls(**item.model_dump(exclude={"replies"}), replies=replies or [])

    @classmethod
    def placeholder(cls, item_id: int) -> "CommentTree":
        """Stand-in for a reply that could not be loaded."""
        return cls(
            id=item_id,
            deleted=True,
            type="comment",
            text="Failed to load comment",
        )


class User(BaseModel):
    """A Hacker News user. ``id`` is the case-sensitive username."""

    id: str
    created: int
    karma: int
    about: str | None = None
    submitted: list[int] | None = None


class Updates(BaseModel):
    """Recently changed items and profiles."""

    items: list[int]
    profiles: list[str]


ItemIdList = TypeAdapter(list[int])
ItemId = TypeAdapter(int)


# =============================================================================
# Search (Algolia)
# =============================================================================

NumericField = Literal["created_at_i", "points", "num_comments"]
NumericOperator = Literal["<", "<=", "=", ">", ">="]


class NumericFilter(BaseModel):
    """Numeric condition such as ``points>100``."""

    field: NumericField
    operator: NumericOperator
    value: int | float

    def __str__(self) -> str:
        return f"{self.field}{self.operator}{self.value}"


class SearchOptions(BaseModel):
    """Filters and pagination for a search query."""

    tags: list[str] = Field(default_factory=lambda: ["story"])
    numeric_filters: list[NumericFilter] = Field(default_factory=list)
    page: int = Field(default=0, ge=0)
    hits_per_page: int = Field(default=20, ge=1)
    sort_by_date: bool = False
    restrict_searchable_attributes: list[str] = Field(default_factory=list)
    author: str | None = None
    story_id: int | None = None


class SearchHit(BaseModel):
    """A single search result."""

    model_config = ConfigDict(populate_by_name=True)

    object_id: str = Field(alias="objectID")
    title: str | None = None
    url: str | None = None
    author: str
    points: int | None = None
    story_text: str | None = None
    comment_text: str | None = None
    tags: list[str] = Field(alias="_tags")
    created_at: str
    created_at_i: int
    num_comments: int | None = None


class SearchResponse(BaseModel):
    """A page of search results."""

    model_config = ConfigDict(populate_by_name=True)

    hits: list[SearchHit]
    page: int
    nb_hits: int = Field(alias="nbHits")
    nb_pages: int = Field(alias="nbPages")
    hits_per_page: int = Field(alias="hitsPerPage")
    processing_time_ms: int = Field(alias="processingTimeMS")
    query: str
