from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request, status

from coursevideo.core.security import decode_admin_token
from coursevideo.core.settings import Settings, get_settings
from coursevideo.engine import VideoEngine, build_engine


async def require_admin(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_admin_token(token.strip(), settings.jwt_secret)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")

    return payload


async def get_video_engine(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> VideoEngine:
    # Built lazily on first use so the DB engine binds to the serving loop.
    # build_engine is synchronous: nothing can interleave between check and store.
    engine = getattr(request.app.state, "video_engine", None)
    if engine is None:
        engine = build_engine(settings)
        request.app.state.video_engine = engine
    return engine
