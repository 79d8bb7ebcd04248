"""Conversation session endpoints with SSE streaming replies."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Query
from fastapi.responses import JSONResponse, StreamingResponse

from chatgate.core.gateway import AgentUnavailableError
from chatgate.models.session import SessionOptions
from chatgate.server.dependencies import get_gateway
from chatgate.server.models import (
    CloseSessionResponse,
    CreateSessionResponse,
    SessionStatusResponse,
    StreamMessageRequest,
)
from chatgate.server.protocol import get_encoder
from chatgate.server.stream import publisher_to_sse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _response(model, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=model.model_dump(by_alias=True))


@router.post("/sessions")
async def create_session(options: SessionOptions | None = Body(default=None)):
    """Create a conversation session. Body fields are all optional."""
    logger.info("Creating new conversation session")
    try:
        session_id = get_gateway().create_session(options)
    except AgentUnavailableError as e:
        return _response(CreateSessionResponse(success=False, message=str(e)), 503)
    except Exception as e:
        logger.exception("Failed to create conversation session")
        return _response(
            CreateSessionResponse(success=False, message=f"Failed to create session: {e}"),
            500,
        )
    return _response(CreateSessionResponse(session_id=session_id, success=True), 201)


# Sync routes below run in the threadpool; message preparation may query the retriever
def _stream(session_id: str, message: str, document_context: str | None = None):
    encoder = get_encoder()
    publisher = get_gateway().stream_message(session_id, message, document_context)
    return StreamingResponse(
        publisher_to_sse(publisher, encoder),
        media_type=encoder.content_type(),
        headers=encoder.extra_headers(),
    )


@router.get("/sessions/{session_id}/stream")
def stream_message(session_id: str, message: str = Query(...)):
    """
    Send a message and stream the reply as Server-Sent Events.

    GET keeps browser EventSource usable. Use the POST variant for messages
    carrying large document context.
    """
    return _stream(session_id, message)


@router.post("/sessions/{session_id}/stream")
def stream_message_post(session_id: str, body: StreamMessageRequest):
    """Send a message with optional document context and stream the reply."""
    return _stream(session_id, body.message, body.document_context)


@router.get("/sessions/{session_id}/status")
async def get_session_status(session_id: str) -> SessionStatusResponse:
    return SessionStatusResponse(session_id=session_id, active=get_gateway().get_status(session_id))


@router.delete("/sessions/{session_id}")
async def close_session(session_id: str) -> CloseSessionResponse:
    """Close a session. Closing an unknown session also succeeds."""
    logger.info("Closing conversation session: %s", session_id)
    get_gateway().close_session(session_id)
    return CloseSessionResponse(success=True, message="Session closed successfully")
