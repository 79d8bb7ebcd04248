"""Route registration."""

from fastapi import FastAPI


def register_routes(app: FastAPI) -> None:
    """Register all API routes."""
    from chatgate.server.routes.chat import router as chat_router
    from chatgate.server.routes.config import router as config_router
    from chatgate.server.routes.health import router as health_router

    app.include_router(health_router)
    app.include_router(chat_router, prefix="/api")
    app.include_router(config_router, prefix="/api")
