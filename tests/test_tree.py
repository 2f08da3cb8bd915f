"""Tests for comment tree materialization."""

from __future__ import annotations

import asyncio

import pytest

from hnreel.datasource.hackernews.models import Item
from hnreel.datasource.hackernews.tree import CommentTreeMaterializer
from hnreel.services.errors import RequestCancelledError
from hnreel.services.limiter import RequestLimiter


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeResolver:
    """Resolves ids from a table; exception values are raised."""

    def __init__(self, table: dict[int, Item | Exception]) -> None:
        self.table = table
        self.calls: list[int] = []
        self.active = 0
        self.peak = 0

    async def __call__(self, item_id: int) -> Item:
        self.calls.append(item_id)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            # Later ids finish first so ordering cannot come from completion
            for _ in range(max(0, 20 - item_id)):
                await asyncio.sleep(0)
            value = self.table[item_id]
            if isinstance(value, Exception):
                raise value
            return value
        finally:
            self.active -= 1


def _comment(item_id: int, kids: list[int] | None = None, **fields) -> Item:
    return Item(id=item_id, type="comment", kids=kids, **fields)


def _ids(nodes) -> list[int]:
    return [node.id for node in nodes]


# ---------------------------------------------------------------------------
# Shape
# ---------------------------------------------------------------------------


class TestShape:
    @pytest.mark.asyncio
    async def test_nested_replies_in_kid_order(self) -> None:
        resolver = FakeResolver(
            {
                1: Item(id=1, type="story", kids=[2, 3]),
                2: _comment(2, kids=[4]),
                3: _comment(3),
                4: _comment(4),
            }
        )
        tree = await CommentTreeMaterializer(resolver).materialize(1)

        assert tree.id == 1
        assert _ids(tree.replies) == [2, 3]
        assert _ids(tree.replies[0].replies) == [4]
        assert tree.replies[1].replies == []

    @pytest.mark.asyncio
    async def test_item_without_kids_is_a_leaf(self) -> None:
        resolver = FakeResolver({1: Item(id=1, type="story")})
        tree = await CommentTreeMaterializer(resolver).materialize(1)

        assert tree.replies == []
        assert resolver.calls == [1]

    @pytest.mark.asyncio
    async def test_max_depth_zero_returns_root_only(self) -> None:
        resolver = FakeResolver({1: Item(id=1, kids=[2]), 2: _comment(2)})
        tree = await CommentTreeMaterializer(resolver).materialize(1, max_depth=0)

        assert tree.replies == []
        assert resolver.calls == [1]

    @pytest.mark.asyncio
    async def test_depth_limit_stops_descent(self) -> None:
        resolver = FakeResolver(
            {
                1: Item(id=1, kids=[2]),
                2: _comment(2, kids=[3]),
                3: _comment(3, kids=[4]),
                4: _comment(4),
            }
        )
        tree = await CommentTreeMaterializer(resolver).materialize(1, max_depth=2)

        grandchild = tree.replies[0].replies[0]
        assert grandchild.id == 3
        assert grandchild.kids == [4]
        assert grandchild.replies == []
        assert 4 not in resolver.calls

    @pytest.mark.asyncio
    async def test_default_depth_from_constructor(self) -> None:
        resolver = FakeResolver({1: Item(id=1, kids=[2]), 2: _comment(2, kids=[3]), 3: _comment(3)})
        tree = await CommentTreeMaterializer(resolver, max_depth=1).materialize(1)

        assert tree.replies[0].replies == []

    @pytest.mark.asyncio
    async def test_deleted_and_dead_replies_are_dropped(self) -> None:
        resolver = FakeResolver(
            {
                1: Item(id=1, kids=[2, 3, 4]),
                2: _comment(2, deleted=True),
                3: _comment(3, dead=True),
                4: _comment(4),
            }
        )
        tree = await CommentTreeMaterializer(resolver).materialize(1)

        assert _ids(tree.replies) == [4]


# ---------------------------------------------------------------------------
# Partial failure
# ---------------------------------------------------------------------------


class TestPartialFailure:
    @pytest.mark.asyncio
    async def test_failed_child_is_omitted(self) -> None:
        resolver = FakeResolver(
            {
                1: Item(id=1, kids=[2, 3, 4]),
                2: _comment(2, text="A"),
                3: RuntimeError("B failed"),
                4: _comment(4, text="C"),
            }
        )
        tree = await CommentTreeMaterializer(resolver).materialize(1)

        assert [reply.text for reply in tree.replies] == ["A", "C"]

    @pytest.mark.asyncio
    async def test_failure_below_child_keeps_child(self) -> None:
        resolver = FakeResolver(
            {
                1: Item(id=1, kids=[2]),
                2: _comment(2, kids=[3, 4]),
                3: RuntimeError("gone"),
                4: _comment(4),
            }
        )
        tree = await CommentTreeMaterializer(resolver).materialize(1)

        assert _ids(tree.replies) == [2]
        assert _ids(tree.replies[0].replies) == [4]

    @pytest.mark.asyncio
    async def test_root_failure_propagates(self) -> None:
        resolver = FakeResolver({1: RuntimeError("root failed")})

        with pytest.raises(RuntimeError, match="root failed"):
            await CommentTreeMaterializer(resolver).materialize(1)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        resolver = FakeResolver({1: Item(id=1, kids=[2]), 2: RequestCancelledError()})

        with pytest.raises(RequestCancelledError):
            await CommentTreeMaterializer(resolver).materialize(1)


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_fanout_limit_bounds_concurrent_resolutions(self) -> None:
        table: dict[int, Item | Exception] = {1: Item(id=1, kids=list(range(2, 10)))}
        table.update({i: _comment(i) for i in range(2, 10)})
        resolver = FakeResolver(table)

        tree = await CommentTreeMaterializer(resolver).materialize(1, fanout_limit=2)

        assert _ids(tree.replies) == list(range(2, 10))
        assert resolver.peak <= 2

    @pytest.mark.asyncio
    async def test_single_slot_limiter_does_not_deadlock(self) -> None:
        table: dict[int, Item | Exception] = {1: Item(id=1, kids=[2, 3])}
        table[2] = _comment(2, kids=[4, 5])
        table[3] = _comment(3, kids=[6])
        table[4] = _comment(4, kids=[7])
        for i in (5, 6, 7):
            table[i] = _comment(i)
        resolver = FakeResolver(table)
        materializer = CommentTreeMaterializer(resolver, RequestLimiter(max_concurrent=1))

        tree = await asyncio.wait_for(materializer.materialize(1), timeout=5.0)

        assert _ids(tree.replies) == [2, 3]
        assert _ids(tree.replies[0].replies) == [4, 5]
        assert _ids(tree.replies[0].replies[0].replies) == [7]
        assert resolver.peak == 1
