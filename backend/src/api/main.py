"""FastAPI application main entry point."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from .middleware import register_error_handlers  # noqa: E402
from .routes import admin, auth, files, folders, inbox, notes, rpc, todos  # noqa: E402
from ..services.config import get_config  # noqa: E402
from ..services.database import get_database_service  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler to run startup tasks."""
    logger.info("Running startup: initializing database...")
    get_database_service().initialize()
    logger.info("Startup complete: database ready")
    yield


def create_app() -> FastAPI:
    config = get_config()
    app = FastAPI(
        title="Haku API",
        description="Notes, todo trees and a quick-capture inbox",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Mount routers (auth first so sign in is never shadowed)
    app.include_router(auth.router, tags=["auth"])
    app.include_router(files.router, tags=["files"])
    app.include_router(inbox.router, tags=["inbox"])
    app.include_router(folders.router, tags=["folders"])
    app.include_router(notes.router, tags=["notes"])
    app.include_router(todos.router, tags=["todos"])
    app.include_router(admin.router, tags=["admin"])
    app.include_router(rpc.router, tags=["rpc"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


__all__ = ["app", "create_app"]
