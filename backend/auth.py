from __future__ import annotations

from typing import Optional

import jwt
from fastapi import HTTPException, Request

from settings import ACCESS_TOKEN_COOKIE

CALLER_ID_CLAIMS = ("id", "userId", "sub")


def extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    cookie_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    return cookie_token or None


def decode_caller_id(token: str, secret: str, algorithm: str) -> Optional[str]:
    """Return the caller id carried by a valid token, or None.

    Expiry is enforced by ``jwt.decode`` whenever the token has an ``exp`` claim.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.PyJWTError:
        return None
    for claim in CALLER_ID_CLAIMS:
        value = payload.get(claim)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def require_caller(request: Request) -> str:
    ctx = request.app.state.ctx
    token = extract_token(request)
    caller_id = decode_caller_id(token, ctx.jwt_secret, ctx.jwt_algorithm) if token else None
    if caller_id is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required for personalized feed",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return caller_id
