from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from jwt import InvalidTokenError

ADMIN_ROLE = "admin"


def create_admin_token(*, subject: str, ttl_seconds: int, secret: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(seconds=ttl_seconds)
    payload: dict[str, Any] = {
        "sub": subject,
        "role": ADMIN_ROLE,
        "exp": exp,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_admin_token(token: str, secret: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"require": ["exp", "sub"]},
        )
    except InvalidTokenError as e:
        raise ValueError("Invalid token") from e

    if payload.get("role") != ADMIN_ROLE:
        raise ValueError("Token is not an admin token")
    return payload
