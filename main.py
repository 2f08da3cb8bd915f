"""
hnreel entry point.

Prints the current top stories and the comment thread of the first one.
"""

import asyncio

from loguru import logger

from hnreel.datasource.hackernews import CommentTree, HackerNewsSource
from hnreel.services.client import close_service_client

TOP_N = 10
THREAD_DEPTH = 2


def print_thread(node: CommentTree, indent: int = 0) -> None:
    """Print a comment tree, one line per reply."""
    for reply in node.replies:
        text = (reply.text or "").replace("\n", " ")
        print(f"{'  ' * indent}- {reply.by}: {text[:100]}")
        print_thread(reply, indent + 1)


async def main() -> None:
    """Main function."""
    logger.info("Starting hnreel...")

    try:
        source = HackerNewsSource()

        ids = await source.get_top_stories()
        stories = await source.get_items(ids[:TOP_N])
        for rank, story in enumerate(stories, start=1):
            print(f"{rank:2}. {story.title} ({story.score} points by {story.by})")

        if stories:
            thread = await source.get_item_with_comments(stories[0].id, max_depth=THREAD_DEPTH)
            print(f"\n{thread.title}")
            print_thread(thread)

        logger.debug(f"Stats: {source.get_stats()}")

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Error fetching Hacker News: {e}")
    finally:
        logger.info("Closing HTTP client...")
        await close_service_client()

        logger.info("hnreel stopped")


if __name__ == "__main__":
    asyncio.run(main())
