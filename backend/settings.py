from __future__ import annotations

import os

DATA_BACKEND = os.getenv("DATA_BACKEND", "memory").strip().lower()
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017").strip()
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "inkwell").strip()
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "1200"))

JWT_SECRET = os.getenv("JWT_SECRET", "inkwell-dev-secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256").strip()
ACCESS_TOKEN_COOKIE = "accessToken"

FEED_DEFAULT_LIMIT = int(os.getenv("FEED_DEFAULT_LIMIT", "20"))
FEED_MAX_LIMIT = 100
FOLLOWING_SHARE = 0.7
RECOMMENDED_SHARE = 0.3

TRENDING_DEFAULT_LIMIT = 10
TRENDING_MAX_LIMIT = 50

LIST_DEFAULT_LIMIT = 10
LIST_MAX_LIMIT = 100

SEED_ARTICLE_COUNT = int(os.getenv("SEED_ARTICLE_COUNT", "60"))

RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
RATE_LIMITS_PER_WINDOW = {
    "/api/articles/feed": int(os.getenv("RATE_LIMIT_FEED_PER_WINDOW", "600")),
    "/api/articles/trending": int(os.getenv("RATE_LIMIT_TRENDING_PER_WINDOW", "300")),
    "/api/articles": int(os.getenv("RATE_LIMIT_LIST_PER_WINDOW", "300")),
}

CORS_ALLOW_ORIGINS = [
    origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
]

RECENT_LOG_SIZE = 300
