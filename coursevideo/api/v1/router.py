from __future__ import annotations

from fastapi import APIRouter

from coursevideo.api.v1 import videos

api_router = APIRouter()
api_router.include_router(videos.router)
