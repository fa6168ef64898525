"""
Mod provider backend.

FastAPI application exposing the unified mod marketplace API.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)

from database import init_db  # noqa: E402
from exceptions import ModProviderError  # noqa: E402
from mods.service import ModProviderService  # noqa: E402
from observability.logging import setup_logging  # noqa: E402
from observability.metrics import metrics_registry  # noqa: E402
from observability.middleware import ObservabilityMiddleware  # noqa: E402
from routes.mods import router as mods_router  # noqa: E402
from services.settings import DatabaseSettingsStore, create_settings_store  # noqa: E402

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "0.1.0"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


class HealthResponse(BaseModel):
    status: str
    version: str


def create_app(service: Optional[ModProviderService] = None) -> FastAPI:
    """
    Build the application.

    Without ``service`` the lifespan creates the settings store and the
    provider service from the environment; passing one skips that bootstrap.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        mod_service = service
        if mod_service is None:
            settings = create_settings_store()
            if isinstance(settings, DatabaseSettingsStore):
                await init_db()
            mod_service = ModProviderService(settings)

        await mod_service.initialize()
        app.state.mod_provider_service = mod_service
        try:
            yield
        finally:
            await mod_service.aclose()
            logger.info("[main] Mod provider service closed")

    app = FastAPI(
        title="Mod Provider Backend",
        description="Unified search, metadata and downloads across mod marketplaces",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ObservabilityMiddleware)

    @app.exception_handler(ModProviderError)
    async def mod_provider_error_handler(request: Request, exc: ModProviderError):
        if exc.status_code >= 500:
            logger.error(f"[main] {request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        return {"status": "healthy", "version": VERSION}

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)

    app.include_router(mods_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
