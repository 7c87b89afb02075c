"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI

from multigit.interface.dependencies import shutdown, startup
from multigit.interface.error_handlers import register_error_handlers
from multigit.interface.routes import router


def create_app(config_path: Path | None = None) -> FastAPI:
    """Build and wire the FastAPI application."""

    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        await startup(config_path)
        yield
        await shutdown()

    app = FastAPI(
        title="multigit",
        version="1.0.0",
        description="Lists the organizations and repositories multigit can manage.",
        lifespan=_lifespan,
    )

    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
