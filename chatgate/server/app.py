"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatgate.server.dependencies import get_gateway, reset_gateway
from chatgate.server.routes import register_routes


def create_app(cors_origins: list[str] | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        get_gateway().start()
        yield
        # Cleanup: stop the sweep thread on shutdown
        reset_gateway()

    app = FastAPI(
        title="chatgate",
        description="Streaming chat gateway for a locally invoked AI agent",
        lifespan=lifespan,
    )

    # CORS
    origins = cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app
