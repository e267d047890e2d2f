from __future__ import annotations

import asyncio
import math
from typing import List, Set

from models import ArticleFilter, ArticleSummary, FeedRequest, FeedResponse
from monitoring import EventLog
from settings import FEED_MAX_LIMIT, FOLLOWING_SHARE, RECOMMENDED_SHARE


class FeedAssemblyError(Exception):
    """Unexpected failure while building a feed. Never carries a partial result."""


def clamp_limit(limit: int, upper: int = FEED_MAX_LIMIT) -> int:
    return max(1, min(int(limit), upper))


def merge_sources(following: List[ArticleSummary], recommended: List[ArticleSummary]) -> List[ArticleSummary]:
    # First occurrence wins, so a following-sourced copy beats a recommended one.
    seen: Set[str] = set()
    unique: List[ArticleSummary] = []
    for article in [*following, *recommended]:
        if article.id in seen:
            continue
        seen.add(article.id)
        unique.append(article)
    # Stable: equal timestamps keep following-before-recommended order.
    unique.sort(key=lambda a: a.published_at, reverse=True)
    return unique


class FeedAssembler:
    """Builds a personalized feed from followed authors and featured articles.

    Both stores are synchronous; calls run in worker threads so the following
    and recommended fetches can overlap. Each source degrades to an empty
    result on failure. Anything else that goes wrong surfaces as
    FeedAssemblyError.
    """

    def __init__(self, subscriptions, articles, events: EventLog) -> None:
        self.subscriptions = subscriptions
        self.articles = articles
        self.events = events

    async def resolve_followed_authors(self, caller_id: str) -> Set[str]:
        try:
            relations = await asyncio.to_thread(self.subscriptions.find_active_subscriptions, caller_id)
        except Exception as ex:
            self.events.error("followed_authors_lookup_failed", caller_id=caller_id, error=str(ex))
            return set()
        return {r.author_id for r in relations if r.status == "active" and r.author_id}

    async def fetch_following_articles(self, author_ids: Set[str], count: int) -> List[ArticleSummary]:
        if not author_ids:
            return []
        try:
            items = await asyncio.to_thread(
                self.articles.find_published,
                ArticleFilter(author_id_in=frozenset(author_ids)),
                [("published_at", "desc")],
                count,
            )
        except Exception as ex:
            self.events.error("following_feed_fetch_failed", author_count=len(author_ids), error=str(ex))
            return []
        return [a for a in items if a.status == "published"]

    async def fetch_recommended_articles(self, exclude_author_ids: Set[str], count: int) -> List[ArticleSummary]:
        try:
            items = await asyncio.to_thread(
                self.articles.find_published,
                ArticleFilter(exclude_author_id_in=frozenset(exclude_author_ids), is_featured=True),
                [("views_count", "desc"), ("published_at", "desc")],
                count,
            )
        except Exception as ex:
            self.events.error("recommended_feed_fetch_failed", excluded_count=len(exclude_author_ids), error=str(ex))
            return []
        return [a for a in items if a.status == "published"]

    async def _no_items(self) -> List[ArticleSummary]:
        return []

    async def assemble(self, request: FeedRequest) -> FeedResponse:
        limit = clamp_limit(request.limit)
        offset = max(0, int(request.offset))
        try:
            followed: Set[str] = set()
            if request.include_following:
                followed = await self.resolve_followed_authors(request.caller_id)

            following_target = math.ceil(limit * FOLLOWING_SHARE)
            recommended_target = math.ceil(limit * RECOMMENDED_SHARE)

            following_task = (
                self.fetch_following_articles(followed, following_target)
                if request.include_following and followed
                else self._no_items()
            )
            recommended_task = (
                self.fetch_recommended_articles(followed, recommended_target)
                if request.include_recommended
                else self._no_items()
            )
            following_items, recommended_items = await asyncio.gather(following_task, recommended_task)

            # The merged pool is capped at `limit` before `offset` is applied, so
            # offset > 0 never reaches past the first `limit` candidates.
            windowed = merge_sources(following_items, recommended_items)[:limit]
            page = windowed[offset : offset + limit]

            response = FeedResponse(
                items=page,
                total=len(windowed),
                offset=offset,
                limit=limit,
                followed_authors_count=len(followed),
                source_counts={"following": len(following_items), "recommended": len(recommended_items)},
            )
        except Exception as ex:
            self.events.error(
                "feed_assembly_failed",
                caller_id=request.caller_id,
                limit=limit,
                offset=offset,
                error=repr(ex),
            )
            raise FeedAssemblyError("Failed to generate personalized feed") from ex

        self.events.emit(
            "feed_assembled",
            caller_id=request.caller_id,
            total=response.total,
            returned=len(response.items),
            following=response.source_counts["following"],
            recommended=response.source_counts["recommended"],
        )
        return response
