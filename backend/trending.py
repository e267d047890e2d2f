from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from models import ArticleFilter, TrendingRequest, TrendingResponse
from settings import TRENDING_MAX_LIMIT

TIMEFRAMES = {"day", "week", "month", "all"}
METRICS = {"views", "likes", "comments", "mixed"}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def timeframe_start(timeframe: str, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if timeframe == "day":
        return now - timedelta(days=1)
    if timeframe == "week":
        return now - timedelta(days=7)
    if timeframe == "month":
        return now - timedelta(days=30)
    return _EPOCH


def sort_field(metric: str) -> str:
    if metric == "likes":
        return "likes_count"
    if metric == "comments":
        return "comments_count"
    # "mixed" has no blended score yet; it ranks by views like "views".
    return "views_count"


def find_trending(articles, request: TrendingRequest, now: Optional[datetime] = None) -> TrendingResponse:
    limit = max(1, min(int(request.limit), TRENDING_MAX_LIMIT))
    start = timeframe_start(request.timeframe, now)
    items = articles.find_published(
        ArticleFilter(published_since=start, category_ref=request.category_ref),
        [(sort_field(request.metric), "desc")],
        limit,
    )
    return TrendingResponse(
        items=[a for a in items if a.status == "published"],
        timeframe=request.timeframe,
        metric=request.metric,
        period_start=start,
    )
