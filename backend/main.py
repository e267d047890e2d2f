from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

import settings
from auth import require_caller
from catalog import AuthorNotFound, author_stats, list_published
from context import AppContext, build_context_from_env, get_context
from feed import FeedAssemblyError
from models import ArticleListRequest, FeedRequest, TrendingRequest, article_payload
from schemas import (
    ArticleListEnvelope,
    AuthorStatsEnvelope,
    FeedEnvelope,
    SubscriptionsEnvelope,
    TrendingEnvelope,
)
from trending import find_trending

app = FastAPI(title="Inkwell Feed API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "anonymous"


@app.on_event("startup")
def startup() -> None:
    # Tests install their own context before the app starts.
    if getattr(app.state, "ctx", None) is None:
        app.state.ctx = build_context_from_env()
    ctx: AppContext = app.state.ctx
    ctx.events.emit("data_backend_selected", mode=ctx.data_backend_mode)


@app.on_event("shutdown")
def shutdown() -> None:
    ctx: Optional[AppContext] = getattr(app.state, "ctx", None)
    if ctx is not None:
        ctx.close()


@app.get("/health")
def health(ctx: AppContext = Depends(get_context)) -> dict:
    started = time.perf_counter()
    ok = True
    try:
        return {
            "status": "ok",
            "article_count": ctx.articles.count_articles(),
            "data_backend_mode": ctx.data_backend_mode,
        }
    except Exception:
        ok = False
        raise
    finally:
        ctx.metrics.record("/health", (time.perf_counter() - started) * 1000, ok)


@app.get("/api/articles/feed", response_model=FeedEnvelope)
async def get_personalized_feed(
    limit: int = Query(default=settings.FEED_DEFAULT_LIMIT),
    offset: int = Query(default=0),
    include_following: bool = Query(default=True),
    include_recommended: bool = Query(default=True),
    caller_id: str = Depends(require_caller),
    ctx: AppContext = Depends(get_context),
) -> dict:
    started = time.perf_counter()
    ok = True
    try:
        ctx.rate_limiter.enforce(caller_id, "/api/articles/feed")
        try:
            feed = await ctx.assembler.assemble(
                FeedRequest(
                    caller_id=caller_id,
                    limit=limit,
                    offset=offset,
                    include_following=include_following,
                    include_recommended=include_recommended,
                )
            )
        except FeedAssemblyError:
            raise HTTPException(status_code=500, detail="Failed to generate personalized feed")

        return {
            "data": [article_payload(a) for a in feed.items],
            "meta": {
                "total": feed.total,
                "offset": feed.offset,
                "limit": feed.limit,
                "followed_authors_count": feed.followed_authors_count,
                "sources": dict(feed.source_counts),
            },
        }
    except Exception:
        ok = False
        raise
    finally:
        ctx.metrics.record("/api/articles/feed", (time.perf_counter() - started) * 1000, ok)


@app.get("/api/articles/trending", response_model=TrendingEnvelope)
def get_trending_articles(
    request: Request,
    timeframe: str = Query(default="week"),
    metric: str = Query(default="mixed"),
    limit: int = Query(default=settings.TRENDING_DEFAULT_LIMIT),
    category: Optional[str] = Query(default=None),
    ctx: AppContext = Depends(get_context),
) -> dict:
    started = time.perf_counter()
    ok = True
    try:
        ctx.rate_limiter.enforce(_client_key(request), "/api/articles/trending")
        query = TrendingRequest(timeframe=timeframe, metric=metric, limit=limit, category_ref=category or None)
        try:
            result = find_trending(ctx.articles, query)
        except Exception as ex:
            ctx.events.error("trending_fetch_failed", timeframe=timeframe, metric=metric, error=str(ex))
            raise HTTPException(status_code=500, detail="Failed to fetch trending articles")

        return {
            "data": [article_payload(a) for a in result.items],
            "meta": {
                "timeframe": result.timeframe,
                "metric": result.metric,
                "count": result.count,
                "period_start": result.period_start.isoformat(),
            },
        }
    except Exception:
        ok = False
        raise
    finally:
        ctx.metrics.record("/api/articles/trending", (time.perf_counter() - started) * 1000, ok)


@app.get("/api/articles", response_model=ArticleListEnvelope)
def list_articles(
    request: Request,
    category: Optional[str] = Query(default=None),
    author: Optional[str] = Query(default=None),
    featured: Optional[bool] = Query(default=None),
    limit: int = Query(default=settings.LIST_DEFAULT_LIMIT),
    offset: int = Query(default=0),
    ctx: AppContext = Depends(get_context),
) -> dict:
    started = time.perf_counter()
    ok = True
    try:
        ctx.rate_limiter.enforce(_client_key(request), "/api/articles")
        query = ArticleListRequest(
            category_ref=category or None,
            author_id=author or None,
            featured=featured,
            limit=limit,
            offset=offset,
        )
        try:
            result = list_published(ctx.articles, query)
        except Exception as ex:
            ctx.events.error("article_list_failed", category=category, author=author, error=str(ex))
            raise HTTPException(status_code=500, detail="Failed to fetch articles")

        return {
            "data": [article_payload(a) for a in result.items],
            "meta": {"count": len(result.items), "limit": result.limit, "offset": result.offset},
        }
    except Exception:
        ok = False
        raise
    finally:
        ctx.metrics.record("/api/articles", (time.perf_counter() - started) * 1000, ok)


@app.get("/api/authors/{author_id}/stats", response_model=AuthorStatsEnvelope)
def get_author_stats(author_id: str, ctx: AppContext = Depends(get_context)) -> dict:
    started = time.perf_counter()
    ok = True
    try:
        try:
            stats = author_stats(ctx.articles, author_id)
        except AuthorNotFound:
            raise HTTPException(status_code=404, detail="Author not found")
        except Exception as ex:
            ctx.events.error("author_stats_failed", author_id=author_id, error=str(ex))
            raise HTTPException(status_code=500, detail="Failed to fetch author statistics")

        latest = stats.latest_published_at
        return {
            "author_id": stats.author_id,
            "statistics": {
                "articles_count": stats.articles_count,
                "published_articles_count": stats.published_articles_count,
                "featured_articles_count": stats.featured_articles_count,
                "total_views": stats.total_views,
                "total_likes": stats.total_likes,
                "total_comments": stats.total_comments,
                "latest_published_at": latest.isoformat() if latest else None,
            },
        }
    except Exception:
        ok = False
        raise
    finally:
        ctx.metrics.record("/api/authors/{author_id}/stats", (time.perf_counter() - started) * 1000, ok)


@app.get("/api/subscriptions/me", response_model=SubscriptionsEnvelope)
async def get_my_subscriptions(
    caller_id: str = Depends(require_caller),
    ctx: AppContext = Depends(get_context),
) -> dict:
    started = time.perf_counter()
    ok = True
    try:
        try:
            relations = await asyncio.to_thread(ctx.subscriptions.find_active_subscriptions, caller_id)
        except Exception as ex:
            ctx.events.error("subscriptions_fetch_failed", caller_id=caller_id, error=str(ex))
            raise HTTPException(status_code=500, detail="Failed to fetch subscriptions")

        author_ids = sorted({r.author_id for r in relations})
        return {"data": author_ids, "meta": {"count": len(author_ids)}}
    except Exception:
        ok = False
        raise
    finally:
        ctx.metrics.record("/api/subscriptions/me", (time.perf_counter() - started) * 1000, ok)


@app.get("/api/monitoring/dashboard")
def monitoring_dashboard(ctx: AppContext = Depends(get_context)) -> dict:
    started = time.perf_counter()
    ok = True
    try:
        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "data_backend_mode": ctx.data_backend_mode,
            "rate_limits": {
                "window_seconds": ctx.rate_limiter.window_seconds,
                "limits_per_window": ctx.rate_limiter.limits_per_window,
            },
            "traffic_metrics": ctx.metrics.snapshot(),
            "recent_logs": ctx.events.tail(80),
        }
    except Exception:
        ok = False
        raise
    finally:
        ctx.metrics.record("/api/monitoring/dashboard", (time.perf_counter() - started) * 1000, ok)
