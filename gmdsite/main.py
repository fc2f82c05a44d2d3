from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse
from starlette.staticfiles import StaticFiles

from .analytics import AnalyticsStore, CountryLookup, CountryResolver, analytics_router
from .config import Settings, get_settings
from .pages import router as pages_router

logger = logging.getLogger("uvicorn.error")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[AnalyticsStore] = None,
    country_lookup: Optional[CountryLookup] = None,
) -> FastAPI:
    """Create the application serving an already compiled build root."""
    settings = settings or get_settings()
    if store is None:
        if country_lookup is None:
            country_lookup = CountryResolver(
                lookup_url=settings.geo_lookup_url,
                timeout=settings.geo_timeout_seconds,
            )
        store = AnalyticsStore(country_lookup, cooldown_seconds=settings.view_cooldown_seconds)

    app = FastAPI(title="gmdsite", version="1.0.0", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.analytics = store

    if settings.assets_dir.is_dir():
        app.mount("/assets", StaticFiles(directory=settings.assets_dir), name="assets")
    else:
        @app.get("/assets/{asset_path:path}", include_in_schema=False)
        def missing_assets(asset_path: str) -> None:
            raise HTTPException(status_code=404, detail="Not Found")

    @app.get("/favicon.ico", include_in_schema=False)
    def favicon() -> FileResponse:
        if not settings.favicon_path.is_file():
            raise HTTPException(status_code=404, detail="Not Found")
        return FileResponse(settings.favicon_path)

    app.include_router(analytics_router)
    # Catch-all page route goes last.
    app.include_router(pages_router)

    @app.on_event("startup")
    def log_startup() -> None:
        logger.info("Serving pages from %s", settings.build_dir)
        logger.info(
            "Analytics: cooldown=%ss, dashboard %s",
            settings.view_cooldown_seconds,
            "protected" if settings.analytics_protected else "open",
        )

    return app
