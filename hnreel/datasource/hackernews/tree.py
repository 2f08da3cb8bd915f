"""
Comment tree materialization.

Resolves an item and, recursively, its kids into a CommentTree. Each
child's own resolution takes a slot from a shared limiter; the slot is
released before that child's replies are scheduled, so a bounded limiter
cannot be starved by ancestors waiting on descendants.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Union

from loguru import logger

from hnreel.datasource.hackernews.models import CommentTree, Item
from hnreel.services.errors import RequestCancelledError
from hnreel.services.limiter import RequestLimiter

# Guards against runaway recursion on deeply nested or cyclic threads
DEFAULT_MAX_COMMENT_DEPTH = 25

ItemResolver = Callable[[int], Awaitable[Item]]


@dataclass
class Resolved:
    """A child that loaded, with its own subtree."""

    node: CommentTree


@dataclass
class Failed:
    """A child whose resolution raised."""

    item_id: int
    error: Exception


ChildResult = Union[Resolved, Failed]


class CommentTreeMaterializer:
    """
    Builds comment trees from a cache-backed item resolver.

    A failure resolving the root propagates. A failure anywhere below it
    is replaced by a placeholder (deleted, no replies) and logged, which
    the deleted/dead filter then drops from the parent's replies.
    Cancellation always propagates.
    """

    def __init__(
        self,
        resolve: ItemResolver,
        limiter: RequestLimiter | None = None,
        max_depth: int = DEFAULT_MAX_COMMENT_DEPTH,
    ):
        self._resolve = resolve
        self._limiter = limiter or RequestLimiter()
        self._max_depth = max_depth

    async def materialize(
        self,
        root_id: int,
        max_depth: int | None = None,
        fanout_limit: int | None = None,
    ) -> CommentTree:
        """
        Resolve ``root_id`` and its replies down to ``max_depth``.

        Args:
            root_id: Story or comment to start from
            max_depth: Levels of replies to load below the root
            fanout_limit: Cap on concurrent child resolutions across this
                whole tree; defaults to the shared limiter

        Returns:
            The root with nested replies, deleted/dead entries removed
        """
        depth_limit = self._max_depth if max_depth is None else max_depth
        limiter = (
            RequestLimiter(max_concurrent=fanout_limit)
            if fanout_limit is not None
            else self._limiter
        )

        root = await self._resolve(root_id)
        return await self._expand(root, 0, depth_limit, limiter)

    async def _expand(
        self,
        item: Item,
        depth: int,
        max_depth: int,
        limiter: RequestLimiter,
    ) -> CommentTree:
        if not item.kids or depth >= max_depth:
            return CommentTree.from_item(item)

        results = await asyncio.gather(
            *(
                self._resolve_child(kid, depth + 1, max_depth, limiter)
                for kid in item.kids
            )
        )

        replies: list[CommentTree] = []
        for result in results:
            if isinstance(result, Failed):
                logger.warning(f"Failed to load comment {result.item_id}: {result.error}")
                node = CommentTree.placeholder(result.item_id)
            else:
                node = result.node
            if not node.is_gone:
                replies.append(node)

        return CommentTree.from_item(item, replies)

    async def _resolve_child(
        self,
        item_id: int,
        depth: int,
        max_depth: int,
        limiter: RequestLimiter,
    ) -> ChildResult:
        try:
            item = await limiter.schedule(lambda: self._resolve(item_id))
            return Resolved(await self._expand(item, depth, max_depth, limiter))
        except RequestCancelledError:
            raise
        except Exception as e:
            return Failed(item_id, e)
