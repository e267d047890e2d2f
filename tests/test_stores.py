from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pymongo import ASCENDING, DESCENDING

from conftest import NOW, follows, make_article
from models import ArticleFilter
from seed import generate_demo_data, seed_mongo
from stores import (
    MemoryArticleStore,
    MemorySubscriptionStore,
    MongoArticleStore,
    MongoSubscriptionStore,
    StoreError,
    article_from_doc,
    article_to_doc,
    build_article_query,
)


class FakeCursor:
    def __init__(self, docs):
        self.docs = list(docs)
        self.sort_spec = None
        self.limit_value = None

    def sort(self, spec):
        self.sort_spec = spec
        return self

    def limit(self, value):
        self.limit_value = value
        return self

    def __iter__(self):
        return iter(self.docs)


class FakeCollection:
    def __init__(self, docs=()):
        self.docs = list(docs)
        self.queries = []
        self.cursors = []
        self.inserted = []
        self.indexes = []

    def find(self, query, projection=None):
        self.queries.append((query, projection))
        cursor = FakeCursor(self.docs)
        self.cursors.append(cursor)
        return cursor

    def count_documents(self, query, limit=0):
        return len(self.docs)

    def insert_many(self, docs):
        self.inserted.extend(docs)

    def create_index(self, keys):
        self.indexes.append(keys)


class FakeDatabase(dict):
    def __missing__(self, name):
        collection = FakeCollection()
        self[name] = collection
        return collection


def test_memory_subscriptions_only_return_active_relations():
    store = MemorySubscriptionStore(follows("u1", "a", "b") + follows("u1", "c", status="inactive") + follows("u2", "d"))

    assert [r.author_id for r in store.find_active_subscriptions("u1")] == ["a", "b"]
    assert store.find_active_subscriptions("nobody") == []


def test_memory_articles_filter_and_multi_key_sort():
    store = MemoryArticleStore(
        [
            make_article("a1", "x", 1, views_count=10, is_featured=True),
            make_article("a2", "y", 2, views_count=30, is_featured=True),
            make_article("a3", "y", 0, views_count=30, is_featured=True),
            make_article("a4", "z", 0, views_count=99),
            make_article("a5", "y", 0, views_count=500, is_featured=True, status="draft"),
        ]
    )

    result = store.find_published(
        ArticleFilter(exclude_author_id_in=frozenset({"x"}), is_featured=True),
        [("views_count", "desc"), ("published_at", "desc")],
        10,
    )

    assert [a.id for a in result] == ["a3", "a2"]


def test_memory_articles_author_filter_limit_and_window():
    store = MemoryArticleStore([make_article(f"a{n}", "x" if n < 4 else "y", n) for n in range(8)])

    by_author = store.find_published(ArticleFilter(author_id_in=frozenset({"x"})), [("published_at", "desc")], 2)
    recent = store.find_published(ArticleFilter(published_since=NOW - timedelta(hours=2, minutes=30)))

    assert [a.id for a in by_author] == ["a0", "a1"]
    assert [a.id for a in recent] == ["a0", "a1", "a2"]
    assert store.find_published(ArticleFilter(), limit=0) == []


def test_memory_articles_reject_unknown_sort_field():
    with pytest.raises(StoreError):
        MemoryArticleStore().find_published(ArticleFilter(), [("title", "desc")])


def test_build_article_query_translates_every_filter():
    since = datetime(2025, 1, 1, tzinfo=timezone.utc)
    query = build_article_query(
        ArticleFilter(
            author_id_in=frozenset({"b", "a"}),
            exclude_author_id_in=frozenset({"c"}),
            is_featured=True,
            published_since=since,
            category_ref="design",
        )
    )

    assert query == {
        "status": "published",
        "author_id": {"$in": ["a", "b"], "$nin": ["c"]},
        "is_featured": True,
        "published_at": {"$gte": since},
        "category_ref": "design",
    }
    assert build_article_query(ArticleFilter(exclude_author_id_in=frozenset())) == {"status": "published"}


def test_mongo_article_store_sorts_limits_and_skips_bad_documents(events):
    good = article_to_doc(make_article("a1", "x", 1, is_featured=True))
    naive = dict(good, id="a2", published_at=datetime(2025, 2, 1, 9, 30))
    broken = {"id": "a3", "author_id": "x", "status": "published"}
    db = FakeDatabase(articles=FakeCollection([good, naive, broken]))
    store = MongoArticleStore(db, events)

    result = store.find_published(
        ArticleFilter(is_featured=True),
        [("views_count", "desc"), ("published_at", "desc")],
        3,
    )

    assert [a.id for a in result] == ["a1", "a2"]
    assert result[1].published_at.tzinfo is not None
    cursor = db["articles"].cursors[0]
    assert cursor.sort_spec == [("views_count", DESCENDING), ("published_at", DESCENDING)]
    assert cursor.limit_value == 3
    assert db["articles"].queries[0] == ({"status": "published", "is_featured": True}, {"_id": 0})
    assert events.tail()[0]["event"] == "mongo_article_doc_skipped"


def test_mongo_article_store_zero_limit_skips_query(events):
    db = FakeDatabase()
    assert MongoArticleStore(db, events).find_published(ArticleFilter(), limit=0) == []
    assert db["articles"].queries == []


def test_mongo_subscription_store_queries_active_relations(events):
    docs = [{"subscriber_id": "u1", "author_id": 7, "status": "active"}, {"subscriber_id": "u1", "status": "active"}]
    db = FakeDatabase(subscriptions=FakeCollection(docs))

    relations = MongoSubscriptionStore(db, events).find_active_subscriptions("u1")

    assert [r.author_id for r in relations] == ["7"]
    assert db["subscriptions"].queries[0][0] == {"subscriber_id": "u1", "status": "active"}


def test_mongo_stores_without_database_raise_store_error(events):
    with pytest.raises(StoreError):
        MongoSubscriptionStore(None, events).find_active_subscriptions("u1")
    with pytest.raises(StoreError):
        MongoArticleStore(None, events).count_articles()


def test_article_from_doc_validates_status_and_views():
    doc = article_to_doc(make_article("a1", "x", 1))
    assert article_from_doc(dict(doc, published_at="2025-02-01T10:00:00Z")).published_at == datetime(
        2025, 2, 1, 10, 0, tzinfo=timezone.utc
    )
    with pytest.raises(ValueError):
        article_from_doc(dict(doc, status="archived"))
    with pytest.raises(ValueError):
        article_from_doc(dict(doc, views_count=-1))


def test_demo_data_is_deterministic_and_covers_statuses():
    relations_a, articles_a = generate_demo_data(200, now=NOW)
    relations_b, articles_b = generate_demo_data(200, now=NOW)

    assert relations_a == relations_b
    assert articles_a == articles_b
    assert len({a.id for a in articles_a}) == 200
    assert {a.status for a in articles_a} == {"draft", "published", "scheduled", "premium"}
    active_readers = {r.subscriber_id for r in relations_a if r.status == "active"}
    assert active_readers == {"u1", "u2", "u3", "u4", "u5"}


def test_seed_mongo_only_populates_empty_database():
    relations, articles = generate_demo_data(5, now=NOW)
    empty = FakeDatabase()
    assert seed_mongo(empty, relations, articles) is True
    assert len(empty["articles"].inserted) == 5
    assert empty["subscriptions"].inserted[0]["status"] in ("active", "inactive")
    assert ([("subscriber_id", ASCENDING), ("status", ASCENDING)]) in empty["subscriptions"].indexes

    populated = FakeDatabase(articles=FakeCollection([{"id": "a1"}]))
    assert seed_mongo(populated, relations, articles) is False
    assert populated["articles"].inserted == []


def test_count_articles_by_author_and_status(events):
    store = MemoryArticleStore(
        [make_article("a1", "x", 1), make_article("a2", "x", 2, status="draft"), make_article("a3", "y", 3)]
    )

    assert store.count_articles() == 3
    assert store.count_articles(author_id="x") == 2
    assert store.count_articles(author_id="x", status="published") == 1

    class CountingCollection(FakeCollection):
        def count_documents(self, query, limit=0):
            self.queries.append((query, None))
            return 4

    db = FakeDatabase(articles=CountingCollection())
    assert MongoArticleStore(db, events).count_articles(author_id="x", status="draft") == 4
    assert db["articles"].queries == [({"author_id": "x", "status": "draft"}, None)]


def test_featured_filter_matches_either_value():
    store = MemoryArticleStore([make_article("f1", "x", 1, is_featured=True), make_article("p1", "x", 2)])

    assert [a.id for a in store.find_published(ArticleFilter(is_featured=False))] == ["p1"]
    assert [a.id for a in store.find_published(ArticleFilter(is_featured=True))] == ["f1"]
    assert build_article_query(ArticleFilter(is_featured=False)) == {"status": "published", "is_featured": False}
