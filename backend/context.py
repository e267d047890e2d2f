from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from pymongo import MongoClient

import settings
from feed import FeedAssembler
from monitoring import EndpointMetrics, EventLog
from ratelimit import SlidingWindowRateLimiter
from seed import generate_demo_data, seed_mongo
from stores import (
    MemoryArticleStore,
    MemorySubscriptionStore,
    MongoArticleStore,
    MongoSubscriptionStore,
    mongo_init,
)


@dataclass
class AppContext:
    events: EventLog
    metrics: EndpointMetrics
    rate_limiter: SlidingWindowRateLimiter
    subscriptions: Any
    articles: Any
    assembler: FeedAssembler
    data_backend_mode: str = "memory"
    jwt_secret: str = settings.JWT_SECRET
    jwt_algorithm: str = settings.JWT_ALGORITHM
    mongo_client: Optional[MongoClient] = None

    def close(self) -> None:
        if self.mongo_client is not None:
            self.mongo_client.close()
            self.mongo_client = None


def build_context(
    subscriptions=None,
    articles=None,
    events: Optional[EventLog] = None,
    data_backend_mode: str = "memory",
    mongo_client: Optional[MongoClient] = None,
    jwt_secret: str = settings.JWT_SECRET,
    jwt_algorithm: str = settings.JWT_ALGORITHM,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
) -> AppContext:
    events = events or EventLog()
    if subscriptions is None or articles is None:
        relations, seeded = generate_demo_data(settings.SEED_ARTICLE_COUNT)
        subscriptions = subscriptions if subscriptions is not None else MemorySubscriptionStore(relations)
        articles = articles if articles is not None else MemoryArticleStore(seeded)
    return AppContext(
        events=events,
        metrics=EndpointMetrics(),
        rate_limiter=rate_limiter
        or SlidingWindowRateLimiter(settings.RATE_LIMITS_PER_WINDOW, settings.RATE_LIMIT_WINDOW_SECONDS),
        subscriptions=subscriptions,
        articles=articles,
        assembler=FeedAssembler(subscriptions, articles, events),
        data_backend_mode=data_backend_mode,
        jwt_secret=jwt_secret,
        jwt_algorithm=jwt_algorithm,
        mongo_client=mongo_client,
    )


def build_context_from_env() -> AppContext:
    events = EventLog()
    if settings.DATA_BACKEND == "mongo":
        client, db = mongo_init(settings.MONGO_URI, settings.MONGO_DB_NAME, settings.MONGO_TIMEOUT_MS, events)
        if db is not None:
            relations, seeded = generate_demo_data(settings.SEED_ARTICLE_COUNT)
            if seed_mongo(db, relations, seeded):
                events.emit("mongo_seeded_from_fresh_data", article_count=len(seeded))
            else:
                events.emit("mongo_state_loaded")
            return build_context(
                subscriptions=MongoSubscriptionStore(db, events),
                articles=MongoArticleStore(db, events),
                events=events,
                data_backend_mode="mongo",
                mongo_client=client,
            )
        events.emit("mongo_unavailable_fallback_memory")
    return build_context(events=events)


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx
