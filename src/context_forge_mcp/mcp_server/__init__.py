"""
context_forge_mcp.mcp_server package.

Entrypoints for serving MCP. The HTTP application (`create_app`) runs one protocol server per SSE
client; `run_stdio` runs a single protocol server over stdin/stdout. The CLI lives in `main`.

Exports:
    - create_app: Build the Starlette application (SSE + message POST + health).
    - run_stdio: Serve one permanent session over stdio.
"""

from ._app import create_app
from ._stdio import run_stdio

__all__ = ["create_app", "run_stdio"]
