from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apicatalog.api.routes import health, refresh, services
from apicatalog.config import get_settings
from apicatalog.logging import configure_logging
from apicatalog.runtime import CatalogRuntime, build_runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level)

    runtime: CatalogRuntime | None = getattr(app.state, "runtime", None)
    owns_runtime = runtime is None
    if runtime is None:
        runtime = await build_runtime(settings)
        app.state.runtime = runtime

    await runtime.trigger.start()
    try:
        yield
    finally:
        await runtime.trigger.stop()
        if owns_runtime:
            await runtime.aclose()
            app.state.runtime = None


def create_app(runtime: CatalogRuntime | None = None) -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="API Catalog",
        version="0.1.0",
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.cors_origins],
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    app.include_router(services.router, prefix=settings.api_prefix, tags=["services"])
    app.include_router(refresh.router, prefix=settings.api_prefix, tags=["refresh"])
    app.include_router(health.router, tags=["health"])
    return app
