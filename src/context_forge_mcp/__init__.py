"""
Context Forge MCP: a Model Context Protocol server exposing project task tools.

Each SSE client gets an isolated session with its own protocol server; stdio mode serves a single
session for the process lifetime.

Subpackages:
    - config: Configuration loading and validation.
    - db: Task store and query cache.
    - tools: Tool registration, middleware and task tools.
    - server: Protocol server factory.
    - sessions: Session registry and SSE transport.
    - mcp_server: HTTP application, stdio runner and CLI.

See the project README for configuration details and usage examples.
"""

import logging

__version__ = "1.0.0"

__all__ = ["__version__"]

_LOGGER = logging.getLogger(__name__)
_LOGGER.addHandler(logging.NullHandler())
