from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from coursevideo.api.v1.router import api_router
from coursevideo.core.errors import VideoError, VideoErrorCode
from coursevideo.core.logging_config import configure_logging
from coursevideo.core.settings import get_settings
from coursevideo.db.session import dispose_engines, get_db

logger = logging.getLogger(__name__)

_STATUS_FOR_CODE = {
    VideoErrorCode.VIDEO_NOT_FOUND: 404,
    VideoErrorCode.COURSE_NOT_FOUND: 404,
    VideoErrorCode.DUPLICATE_VIDEO: 409,
    VideoErrorCode.INVALID_INPUT: 400,
    VideoErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    VideoErrorCode.DATABASE_ERROR: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    engine = getattr(app.state, "video_engine", None)
    if engine is not None:
        await engine.aclose()
    await dispose_engines()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Course Video API", lifespan=lifespan)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(VideoError)
    async def video_error_handler(request: Request, exc: VideoError) -> JSONResponse:
        status_code = _STATUS_FOR_CODE.get(exc.code, 500)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code.value}: {exc.message}")
        return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/health/db")
    async def health_db(db: AsyncSession = Depends(get_db)):
        await db.execute(text("SELECT 1"))
        return {"ok": True}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
