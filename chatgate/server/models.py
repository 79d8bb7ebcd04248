"""Pydantic models for the API layer."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StreamMessageRequest(BaseModel):
    """POST stream body: the message and optional document text (e.g. an imported PDF)."""

    message: str = ""
    document_context: str | None = Field(default=None, alias="documentContext")

    model_config = {"populate_by_name": True}


class CreateSessionResponse(BaseModel):
    session_id: str | None = Field(default=None, alias="sessionId")
    success: bool
    message: str | None = None

    model_config = {"populate_by_name": True}


class CloseSessionResponse(BaseModel):
    success: bool
    message: str


class SessionStatusResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    active: bool

    model_config = {"populate_by_name": True}


class HealthResponse(BaseModel):
    """Agent availability summary."""

    available: bool
    version: str
    provider: str
    model: str
    message: str


class McpServerResponse(BaseModel):
    name: str
    type: str | None = None
    url: str | None = None
    command: str | None = None
    args: list[str] = Field(default_factory=list)


class ConfigResponse(BaseModel):
    """Agent configuration exposed to the frontend."""

    provider: str | None = None
    model: str | None = None
    mcp_servers: list[McpServerResponse] = Field(default_factory=list, alias="mcpServers")
    error: str | None = None

    model_config = {"populate_by_name": True}
