from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .constants import API_PREFIX, HEALTH_PATH
from .db import close_pool
from .routers import analytics

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _apply_no_cache(response):
    response.headers.update(NO_CACHE_HEADERS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the connection pool on shutdown."""
    yield
    close_pool()


def create_app() -> FastAPI:
    app = FastAPI(title="Cantiere Analytics API", lifespan=lifespan)

    allow_all_origins = "*" in settings.allowed_origins_list
    allow_origins = ["*"] if allow_all_origins else settings.allowed_origins_list

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=not allow_all_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def disable_cache(request: Request, call_next):
        response = await call_next(request)

        # Reports are recomputed on every read and must not be cached by clients
        if "cache-control" not in response.headers:
            _apply_no_cache(response)

        return response

    app.include_router(analytics.router, prefix=API_PREFIX)

    @app.get(HEALTH_PATH)
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
