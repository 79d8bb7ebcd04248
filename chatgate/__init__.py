"""chatgate - streaming chat gateway for a locally invoked AI agent."""

__version__ = "0.1.0"
