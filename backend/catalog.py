from __future__ import annotations

from models import ArticleFilter, ArticleListRequest, ArticleListResponse, AuthorStats
from settings import LIST_MAX_LIMIT


class AuthorNotFound(Exception):
    """The author has no articles in any status."""


def list_published(articles, request: ArticleListRequest) -> ArticleListResponse:
    """Published articles, newest first, filtered by category, author and featured flag."""
    limit = max(1, min(int(request.limit), LIST_MAX_LIMIT))
    offset = max(0, int(request.offset))
    flt = ArticleFilter(
        author_id_in=frozenset({request.author_id}) if request.author_id else None,
        is_featured=request.featured,
        category_ref=request.category_ref,
    )
    # Stores have no skip; fetch through the end of the page and slice.
    items = articles.find_published(flt, [("published_at", "desc")], offset + limit)
    page = [a for a in items if a.status == "published"][offset : offset + limit]
    return ArticleListResponse(items=page, limit=limit, offset=offset)


def author_stats(articles, author_id: str) -> AuthorStats:
    total = articles.count_articles(author_id=author_id)
    if total == 0:
        raise AuthorNotFound(author_id)

    published = articles.find_published(ArticleFilter(author_id_in=frozenset({author_id})))
    return AuthorStats(
        author_id=author_id,
        articles_count=total,
        published_articles_count=len(published),
        featured_articles_count=sum(1 for a in published if a.is_featured),
        total_views=sum(a.views_count for a in published),
        total_likes=sum(a.likes_count for a in published),
        total_comments=sum(a.comments_count for a in published),
        latest_published_at=max((a.published_at for a in published), default=None),
    )
