"""
stdio mode.

A single permanent session for the lifetime of the process: one protocol server reading
newline-delimited JSON-RPC from stdin and writing to stdout. No registry is involved.
"""

import logging
from typing import Any

from mcp.server.stdio import stdio_server

from ._build import build_server_factory, build_task_store

_LOGGER = logging.getLogger(__name__)


async def run_stdio(config: dict[str, Any]) -> None:
    """Serve MCP over stdio until stdin closes, then shut the server and task store down."""
    task_store = build_task_store(config)
    await task_store.open()
    server = build_server_factory(config, task_store).create()
    _LOGGER.info(f"[mcp_server:run_stdio] serving '{server.name}' over stdio")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream)
    finally:
        try:
            await server.shutdown()
        finally:
            await task_store.close()
        _LOGGER.info(f"[mcp_server:run_stdio] '{server.name}' stopped")
