from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ArticleOut(BaseModel):
    id: str
    title: str = ""
    slug: str = ""
    excerpt: str = ""
    author_id: str
    category: Optional[str] = None
    cover_image: Optional[str] = None
    published_at: str
    views_count: int = Field(ge=0)
    likes_count: int = Field(default=0, ge=0)
    comments_count: int = Field(default=0, ge=0)
    is_featured: bool = False
    status: Literal["published"]
    tags: List[str] = Field(default_factory=list)


class FeedMeta(BaseModel):
    total: int = Field(ge=0)
    offset: int = Field(ge=0)
    limit: int = Field(ge=1, le=100)
    followed_authors_count: int = Field(ge=0)
    sources: Dict[str, int]


class FeedEnvelope(BaseModel):
    data: List[ArticleOut]
    meta: FeedMeta


class TrendingMeta(BaseModel):
    timeframe: str
    metric: str
    count: int = Field(ge=0)
    period_start: str


class TrendingEnvelope(BaseModel):
    data: List[ArticleOut]
    meta: TrendingMeta


class SubscriptionsMeta(BaseModel):
    count: int = Field(ge=0)


class SubscriptionsEnvelope(BaseModel):
    data: List[str]
    meta: SubscriptionsMeta


class ArticleListMeta(BaseModel):
    count: int = Field(ge=0)
    limit: int = Field(ge=1, le=100)
    offset: int = Field(ge=0)


class ArticleListEnvelope(BaseModel):
    data: List[ArticleOut]
    meta: ArticleListMeta


class AuthorStatistics(BaseModel):
    articles_count: int = Field(ge=0)
    published_articles_count: int = Field(ge=0)
    featured_articles_count: int = Field(ge=0)
    total_views: int = Field(ge=0)
    total_likes: int = Field(ge=0)
    total_comments: int = Field(ge=0)
    latest_published_at: Optional[str] = None


class AuthorStatsEnvelope(BaseModel):
    author_id: str
    statistics: AuthorStatistics
