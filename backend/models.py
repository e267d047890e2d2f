from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Literal, Optional, Tuple

ArticleStatus = Literal["draft", "published", "scheduled", "premium"]
FollowStatus = Literal["active", "inactive"]
SortDirection = Literal["asc", "desc"]

ARTICLE_STATUSES = ("draft", "published", "scheduled", "premium")


@dataclass(frozen=True)
class FollowRelation:
    subscriber_id: str
    author_id: str
    status: FollowStatus = "active"


@dataclass(frozen=True)
class ArticleSummary:
    id: str
    author_id: str
    published_at: datetime
    status: ArticleStatus = "published"
    views_count: int = 0
    is_featured: bool = False
    category_ref: Optional[str] = None
    cover_image_ref: Optional[str] = None
    title: str = ""
    slug: str = ""
    excerpt: str = ""
    likes_count: int = 0
    comments_count: int = 0
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ArticleFilter:
    author_id_in: Optional[FrozenSet[str]] = None
    exclude_author_id_in: Optional[FrozenSet[str]] = None
    is_featured: Optional[bool] = None
    published_since: Optional[datetime] = None
    category_ref: Optional[str] = None


@dataclass
class FeedRequest:
    caller_id: str
    limit: int = 20
    offset: int = 0
    include_following: bool = True
    include_recommended: bool = True


@dataclass
class FeedResponse:
    items: List[ArticleSummary]
    total: int
    offset: int
    limit: int
    followed_authors_count: int
    source_counts: Dict[str, int] = field(default_factory=lambda: {"following": 0, "recommended": 0})


@dataclass
class TrendingRequest:
    timeframe: str = "week"
    metric: str = "mixed"
    limit: int = 10
    category_ref: Optional[str] = None


@dataclass
class TrendingResponse:
    items: List[ArticleSummary]
    timeframe: str
    metric: str
    period_start: datetime

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass
class ArticleListRequest:
    category_ref: Optional[str] = None
    author_id: Optional[str] = None
    featured: Optional[bool] = None
    limit: int = 10
    offset: int = 0


@dataclass
class ArticleListResponse:
    items: List[ArticleSummary]
    limit: int
    offset: int


@dataclass(frozen=True)
class AuthorStats:
    author_id: str
    articles_count: int
    published_articles_count: int
    featured_articles_count: int
    total_views: int
    total_likes: int
    total_comments: int
    latest_published_at: Optional[datetime] = None


def article_payload(article: ArticleSummary) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "excerpt": article.excerpt,
        "author_id": article.author_id,
        "category": article.category_ref,
        "cover_image": article.cover_image_ref,
        "published_at": article.published_at.isoformat(),
        "views_count": article.views_count,
        "likes_count": article.likes_count,
        "comments_count": article.comments_count,
        "is_featured": article.is_featured,
        "status": article.status,
        "tags": list(article.tags),
    }
