from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import jwt
import pytest
from fastapi.testclient import TestClient

import main
from context import build_context
from models import ArticleSummary, FollowRelation
from monitoring import EventLog
from stores import MemoryArticleStore, MemorySubscriptionStore, StoreError

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
SECRET = "test-secret"


def make_article(article_id: str, author_id: str, hours_ago: float, **overrides) -> ArticleSummary:
    fields = {
        "id": article_id,
        "author_id": author_id,
        "published_at": NOW - timedelta(hours=hours_ago),
        "status": "published",
        "views_count": 0,
        "is_featured": False,
        "title": f"Article {article_id}",
        "slug": f"article-{article_id}",
    }
    fields.update(overrides)
    return ArticleSummary(**fields)


def follows(subscriber_id: str, *author_ids: str, status: str = "active") -> List[FollowRelation]:
    return [FollowRelation(subscriber_id=subscriber_id, author_id=a, status=status) for a in author_ids]


class FailingSubscriptionStore:
    def find_active_subscriptions(self, subscriber_id: str):
        raise StoreError("subscription store offline")


class FailingArticleStore:
    def count_articles(self, author_id=None, status=None) -> int:
        raise StoreError("article store offline")

    def find_published(self, flt, sort=(), limit=None):
        raise StoreError("article store offline")


class RecordingArticleStore(MemoryArticleStore):
    def __init__(self, articles=()) -> None:
        super().__init__(articles)
        self.calls = []

    def find_published(self, flt, sort=(("published_at", "desc"),), limit=None):
        self.calls.append((flt, list(sort), limit))
        return super().find_published(flt, sort, limit)


class RecordingSubscriptionStore(MemorySubscriptionStore):
    def __init__(self, relations=()) -> None:
        super().__init__(relations)
        self.calls = []

    def find_active_subscriptions(self, subscriber_id: str):
        self.calls.append(subscriber_id)
        return super().find_active_subscriptions(subscriber_id)


@pytest.fixture
def events() -> EventLog:
    return EventLog(name="inkwell-test")


@pytest.fixture
def make_token() -> Callable[..., str]:
    def _make(caller_id: str, claim: str = "id", expires_in: Optional[int] = 3600, secret: str = SECRET) -> str:
        payload = {claim: caller_id}
        if expires_in is not None:
            payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def make_client(events):
    def _make(subscriptions=None, articles=None, rate_limiter=None) -> TestClient:
        main.app.state.ctx = build_context(
            subscriptions=subscriptions if subscriptions is not None else MemorySubscriptionStore(),
            articles=articles if articles is not None else MemoryArticleStore(),
            events=events,
            jwt_secret=SECRET,
            rate_limiter=rate_limiter,
        )
        return TestClient(main.app)

    yield _make
    main.app.state.ctx = None
