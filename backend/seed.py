from __future__ import annotations

import random
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from pymongo.database import Database

from models import ArticleSummary, FollowRelation
from stores import article_to_doc, ensure_indexes

CATEGORIES = ["engineering", "design", "product", "science", "culture", "finance"]

TOPIC_TEMPLATES = {
    "engineering": ["System Design", "Backend Architecture", "Frontend Reliability", "APIs at Scale"],
    "design": ["Interaction Patterns", "Design Systems", "User Testing", "Accessibility"],
    "product": ["Roadmap Prioritization", "Discovery Methods", "Feature Adoption", "Experiment Design"],
    "science": ["Research Breakthroughs", "Lab Methods", "Health Studies", "Climate Findings"],
    "culture": ["Remote Teams", "Writing Habits", "Career Moves", "Creative Thinking"],
    "finance": ["Interest Rate Outlook", "Portfolio Rebalancing", "Fintech Trends", "Budget Optimization"],
}

AUTHOR_IDS = [f"au{n}" for n in range(1, 9)]
READER_IDS = ["u1", "u2", "u3", "u4", "u5"]

# Weights for draft/published/scheduled/premium.
STATUS_WEIGHTS = [12, 70, 8, 10]


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def generate_demo_data(
    article_count: int,
    now: Optional[datetime] = None,
    seed: int = 42,
) -> Tuple[List[FollowRelation], List[ArticleSummary]]:
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)

    relations: List[FollowRelation] = []
    for reader in READER_IDS:
        followed = rng.sample(AUTHOR_IDS, k=rng.randint(2, 3))
        for author in followed:
            relations.append(FollowRelation(subscriber_id=reader, author_id=author, status="active"))
        lapsed = rng.choice([a for a in AUTHOR_IDS if a not in followed])
        relations.append(FollowRelation(subscriber_id=reader, author_id=lapsed, status="inactive"))

    articles: List[ArticleSummary] = []
    for idx in range(article_count):
        n = idx + 1
        category = CATEGORIES[idx % len(CATEGORIES)]
        topic = rng.choice(TOPIC_TEMPLATES[category])
        title = f"{topic}: Notes {n}"
        status = rng.choices(["draft", "published", "scheduled", "premium"], weights=STATUS_WEIGHTS, k=1)[0]
        views = rng.randint(0, 5000)
        articles.append(
            ArticleSummary(
                id=f"a{n}",
                author_id=rng.choice(AUTHOR_IDS),
                published_at=now - timedelta(days=rng.randint(0, 45), hours=rng.randint(0, 23), minutes=rng.randint(0, 59)),
                status=status,
                views_count=views,
                is_featured=rng.random() < 0.25,
                category_ref=category,
                cover_image_ref=f"/uploads/cover_{n}.jpg",
                title=title,
                slug=_slugify(title),
                excerpt=f"A short read on {topic.lower()} for the {category} desk.",
                likes_count=rng.randint(0, max(views // 10, 0)),
                comments_count=rng.randint(0, 40),
                tags=tuple(sorted(rng.sample(["howto", "opinion", "deep-dive", "news", "interview"], k=2))),
            )
        )
    return relations, articles


def seed_mongo(db: Database, relations: List[FollowRelation], articles: List[ArticleSummary]) -> bool:
    """Populate an empty database. Returns False when data is already present."""
    if db["articles"].count_documents({}, limit=1):
        return False
    ensure_indexes(db)
    if relations:
        db["subscriptions"].insert_many(
            [{"subscriber_id": r.subscriber_id, "author_id": r.author_id, "status": r.status} for r in relations]
        )
    if articles:
        db["articles"].insert_many([article_to_doc(a) for a in articles])
    return True
