"""
CLI entrypoint for the Context Forge MCP server.

This module sets up logging, global exception handling, and Uvicorn exception patching before starting the server.
It provides a command-line interface to launch the server with a specified transport (stdio or sse).
"""

from .._logging import setup_global_exception_logging, setup_logging  # noqa: E402

# Ensure logging is set up before any other imports
setup_logging()
# Ensure global exception logging is set up before any server code runs
setup_global_exception_logging()

from .._monkeypatch import monkeypatch_uvicorn_exception_handling  # noqa: E402

# Ensure Uvicorn's exception handling is patched before any server code runs
monkeypatch_uvicorn_exception_handling()

import asyncio  # noqa: E402
import logging  # noqa: E402
import sys  # noqa: E402
from typing import Literal  # noqa: E402

import uvicorn  # noqa: E402

from ..config import ConfigManager, McpConfigurationError  # noqa: E402
from ._app import create_app  # noqa: E402
from ._stdio import run_stdio  # noqa: E402

_LOGGER = logging.getLogger(__name__)


def run_server(
    transport: Literal["stdio", "sse"],
    *,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """
    Start the MCP server with the specified transport.

    Args:
        transport (str): The transport type ('stdio' or 'sse').
        host (str | None): Overrides the configured bind host (sse only).
        port (int | None): Overrides the configured bind port (sse only).
    """
    try:
        config = asyncio.run(ConfigManager().get_config())
    except McpConfigurationError as e:
        _LOGGER.error(f"Invalid configuration: {e}")
        sys.exit(1)

    name = config["server"]["name"]
    if transport == "stdio":
        _LOGGER.warning(f"Starting MCP server '{name}' with transport=stdio")
        try:
            asyncio.run(run_stdio(config))
        finally:
            _LOGGER.info(f"MCP server '{name}' stopped.")
        return

    bind_host = host if host is not None else config["http"]["host"]
    bind_port = port if port is not None else config["http"]["port"]
    _LOGGER.warning(
        f"Starting MCP server '{name}' with transport={transport} (host={bind_host}, port={bind_port})"
    )
    try:
        # uvicorn exits the process with a non-zero status if the port cannot be bound
        uvicorn.run(create_app(config), host=bind_host, port=bind_port)
    finally:
        _LOGGER.info(f"MCP server '{name}' stopped.")


def main() -> None:
    """
    Command-line entry point for the Context Forge MCP server.

    Parses CLI arguments using argparse and starts the MCP server with the specified transport.

    Arguments:
        -t, --transport: Transport type for the MCP server ('stdio' or 'sse'). Default: 'sse'.
        --host: Bind host for the sse transport. Default: from configuration.
        --port: Bind port for the sse transport. Default: from configuration.
    """
    import argparse

    parser = argparse.ArgumentParser(description="Start the Context Forge MCP server.")
    parser.add_argument(
        "-t",
        "--transport",
        choices=["stdio", "sse"],
        default="sse",
        help="Transport type for the MCP server (stdio or sse). Default: sse",
    )
    parser.add_argument("--host", default=None, help="Bind host (sse only).")
    parser.add_argument("--port", type=int, default=None, help="Bind port (sse only).")
    args = parser.parse_args()
    _LOGGER.info(f"CLI args: {vars(args)}")
    run_server(args.transport, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
