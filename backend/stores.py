from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from models import ARTICLE_STATUSES, ArticleFilter, ArticleSummary, FollowRelation, SortDirection
from monitoring import EventLog

SortSpec = Sequence[Tuple[str, SortDirection]]

SORTABLE_FIELDS = {"published_at", "views_count", "likes_count", "comments_count"}


class StoreError(Exception):
    """Raised by a store backend that cannot serve a query."""


def _coerce_dt(value: object) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    raise ValueError(f"unsupported datetime value: {value!r}")


def article_from_doc(doc: dict) -> ArticleSummary:
    status = str(doc.get("status", "draft"))
    if status not in ARTICLE_STATUSES:
        raise ValueError(f"unknown article status: {status}")
    views = int(doc.get("views_count", 0))
    if views < 0:
        raise ValueError("views_count must be >= 0")
    return ArticleSummary(
        id=str(doc["id"]),
        author_id=str(doc["author_id"]),
        published_at=_coerce_dt(doc.get("published_at")),
        status=status,  # type: ignore[arg-type]
        views_count=views,
        is_featured=bool(doc.get("is_featured", False)),
        category_ref=str(doc["category_ref"]) if doc.get("category_ref") else None,
        cover_image_ref=str(doc["cover_image_ref"]) if doc.get("cover_image_ref") else None,
        title=str(doc.get("title", "")),
        slug=str(doc.get("slug", "")),
        excerpt=str(doc.get("excerpt", "")),
        likes_count=max(int(doc.get("likes_count", 0)), 0),
        comments_count=max(int(doc.get("comments_count", 0)), 0),
        tags=tuple(str(t) for t in doc.get("tags", []) or []),
    )


def article_to_doc(article: ArticleSummary) -> dict:
    return {
        "id": article.id,
        "author_id": article.author_id,
        "published_at": article.published_at,
        "status": article.status,
        "views_count": article.views_count,
        "is_featured": article.is_featured,
        "category_ref": article.category_ref,
        "cover_image_ref": article.cover_image_ref,
        "title": article.title,
        "slug": article.slug,
        "excerpt": article.excerpt,
        "likes_count": article.likes_count,
        "comments_count": article.comments_count,
        "tags": list(article.tags),
    }


def _check_sort(sort: SortSpec) -> None:
    for field_name, direction in sort:
        if field_name not in SORTABLE_FIELDS:
            raise StoreError(f"cannot sort by {field_name}")
        if direction not in ("asc", "desc"):
            raise StoreError(f"bad sort direction {direction}")


def _matches(article: ArticleSummary, flt: ArticleFilter) -> bool:
    if article.status != "published":
        return False
    if flt.author_id_in is not None and article.author_id not in flt.author_id_in:
        return False
    if flt.exclude_author_id_in and article.author_id in flt.exclude_author_id_in:
        return False
    if flt.is_featured is not None and article.is_featured != flt.is_featured:
        return False
    if flt.published_since is not None and article.published_at < flt.published_since:
        return False
    if flt.category_ref is not None and article.category_ref != flt.category_ref:
        return False
    return True


class MemorySubscriptionStore:
    def __init__(self, relations: Iterable[FollowRelation] = ()) -> None:
        self._relations: List[FollowRelation] = list(relations)
        self._lock = threading.Lock()

    def find_active_subscriptions(self, subscriber_id: str) -> List[FollowRelation]:
        with self._lock:
            return [
                r for r in self._relations
                if r.subscriber_id == subscriber_id and r.status == "active"
            ]


class MemoryArticleStore:
    def __init__(self, articles: Iterable[ArticleSummary] = ()) -> None:
        self._articles: List[ArticleSummary] = list(articles)
        self._lock = threading.Lock()

    def count_articles(self, author_id: Optional[str] = None, status: Optional[str] = None) -> int:
        with self._lock:
            return sum(
                1 for a in self._articles
                if (author_id is None or a.author_id == author_id) and (status is None or a.status == status)
            )

    def find_published(
        self,
        flt: ArticleFilter,
        sort: SortSpec = (("published_at", "desc"),),
        limit: Optional[int] = None,
    ) -> List[ArticleSummary]:
        _check_sort(sort)
        if limit is not None and limit <= 0:
            return []
        with self._lock:
            matched = [a for a in self._articles if _matches(a, flt)]
        # Stable multi-key sort: apply the least significant key first.
        for field_name, direction in reversed(list(sort)):
            matched.sort(key=lambda a: getattr(a, field_name), reverse=direction == "desc")
        return matched if limit is None else matched[:limit]


def build_article_query(flt: ArticleFilter) -> dict:
    query: dict = {"status": "published"}
    author: dict = {}
    if flt.author_id_in is not None:
        author["$in"] = sorted(flt.author_id_in)
    if flt.exclude_author_id_in:
        author["$nin"] = sorted(flt.exclude_author_id_in)
    if author:
        query["author_id"] = author
    if flt.is_featured is not None:
        query["is_featured"] = flt.is_featured
    if flt.published_since is not None:
        query["published_at"] = {"$gte": flt.published_since}
    if flt.category_ref is not None:
        query["category_ref"] = flt.category_ref
    return query


class MongoSubscriptionStore:
    def __init__(self, db: Optional[Database], events: EventLog, collection: str = "subscriptions") -> None:
        self.db = db
        self.events = events
        self.collection_name = collection

    def _collection(self):
        if self.db is None:
            raise StoreError("mongo database is not initialised")
        return self.db[self.collection_name]

    def find_active_subscriptions(self, subscriber_id: str) -> List[FollowRelation]:
        docs = self._collection().find(
            {"subscriber_id": subscriber_id, "status": "active"},
            {"_id": 0, "subscriber_id": 1, "author_id": 1, "status": 1},
        )
        relations = []
        for d in docs:
            if not d.get("author_id"):
                continue
            relations.append(
                FollowRelation(subscriber_id=str(d["subscriber_id"]), author_id=str(d["author_id"]), status="active")
            )
        return relations


class MongoArticleStore:
    def __init__(self, db: Optional[Database], events: EventLog, collection: str = "articles") -> None:
        self.db = db
        self.events = events
        self.collection_name = collection

    def _collection(self):
        if self.db is None:
            raise StoreError("mongo database is not initialised")
        return self.db[self.collection_name]

    def count_articles(self, author_id: Optional[str] = None, status: Optional[str] = None) -> int:
        query: dict = {}
        if author_id is not None:
            query["author_id"] = author_id
        if status is not None:
            query["status"] = status
        return int(self._collection().count_documents(query))

    def find_published(
        self,
        flt: ArticleFilter,
        sort: SortSpec = (("published_at", "desc"),),
        limit: Optional[int] = None,
    ) -> List[ArticleSummary]:
        _check_sort(sort)
        if limit is not None and limit <= 0:
            return []
        cursor = self._collection().find(build_article_query(flt), {"_id": 0})
        cursor = cursor.sort([(f, DESCENDING if d == "desc" else ASCENDING) for f, d in sort])
        if limit is not None:
            cursor = cursor.limit(limit)

        articles = []
        for doc in cursor:
            try:
                articles.append(article_from_doc(doc))
            except (KeyError, TypeError, ValueError) as ex:
                self.events.error("mongo_article_doc_skipped", article_id=doc.get("id"), error=str(ex))
        return articles


def mongo_init(uri: str, db_name: str, timeout_ms: int, events: EventLog) -> Tuple[Optional[MongoClient], Optional[Database]]:
    try:
        client = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms, connectTimeoutMS=timeout_ms, tz_aware=True)
        client.admin.command("ping")
        return client, client[db_name]
    except Exception as ex:
        events.error("mongo_init_failed", error=str(ex))
        return None, None


def ensure_indexes(db: Database) -> None:
    db["subscriptions"].create_index([("subscriber_id", ASCENDING), ("status", ASCENDING)])
    db["articles"].create_index([("status", ASCENDING), ("published_at", DESCENDING)])
    db["articles"].create_index([("author_id", ASCENDING)])
    db["articles"].create_index([("is_featured", ASCENDING), ("views_count", DESCENDING)])
