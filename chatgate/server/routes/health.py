"""Health check endpoints."""

from fastapi import APIRouter

from chatgate.server.dependencies import get_gateway
from chatgate.server.models import HealthResponse

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok", "service": "chatgate"}


@router.get("/api/chat/health")
def agent_health() -> HealthResponse:
    """Whether the agent CLI can be run, with its version and default provider/model."""
    return HealthResponse(**get_gateway().health())
