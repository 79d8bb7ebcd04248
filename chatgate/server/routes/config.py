"""Agent configuration endpoint."""

from __future__ import annotations

import logging

import yaml
from fastapi import APIRouter

from chatgate.server.dependencies import get_gateway
from chatgate.server.models import ConfigResponse, McpServerResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["config"])


@router.get("/config")
def get_configuration() -> ConfigResponse:
    """Provider, model and MCP servers from the agent's config file."""
    try:
        described = get_gateway().describe_agent_config()
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to read agent configuration: %s", e)
        return ConfigResponse(error=f"Failed to read agent configuration: {e}")

    return ConfigResponse(
        provider=described["provider"],
        model=described["model"],
        mcp_servers=[
            McpServerResponse(
                name=server.name,
                type=server.type,
                url=server.url,
                command=server.command,
                args=server.args,
            )
            for server in described["mcp_servers"]
        ],
    )
