# marketplace/main.py

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from marketplace.config import get_settings
from marketplace.logging_config import configure_logging
from marketplace.routers import admin_listings_router, cron_router
from marketplace.services.lifecycle import ListingLifecycleError, TierCache

SERVICE_NAME = "marketplace-listings"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)
    yield


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(title="Marketplace Listing Lifecycle", version=VERSION, lifespan=lifespan)

    # One tier cache per app instance, shared by request-scoped resolvers
    app.state.tier_cache = TierCache(
        maxsize=settings.TIER_CACHE_MAX_SIZE,
        ttl_seconds=settings.TIER_CACHE_TTL_SECONDS,
    )

    app.include_router(cron_router)
    app.include_router(admin_listings_router)

    @app.exception_handler(ListingLifecycleError)
    async def lifecycle_error_handler(request: Request, exc: ListingLifecycleError) -> JSONResponse:
        content = {"error": exc.message}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "service": SERVICE_NAME, "version": VERSION}

    return app


app = create_app()
