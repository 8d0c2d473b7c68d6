"""
Logging and global exception handling utilities for the Context Forge MCP server.

This module provides functions to:
- Set up root logger configuration early in process startup (`setup_logging`).
- Ensure all unhandled synchronous and asynchronous exceptions are logged (`setup_global_exception_logging`).

Call `setup_logging()` before any other imports in your main entrypoint to ensure all loggers are configured correctly.
Call `setup_global_exception_logging()` once at process startup so that no error goes unnoticed.
"""

import asyncio
import logging
import os
import sys
from types import TracebackType
from typing import Any, TextIO

LOG_LEVEL_ENV_VAR = "PYTHONLOGLEVEL"
"""str: Environment variable holding the root log level (default INFO)."""


def setup_logging(stream: TextIO | None = None) -> None:
    """
    Set up logging configuration for the application.

    The root logger level comes from the PYTHONLOGLEVEL environment variable. Logs always go to a
    stream other than stdout by default: in stdio mode stdout carries protocol traffic and must not
    be polluted.

    Args:
        stream (TextIO | None): Stream for the root handler. Defaults to sys.stderr.
    """
    logging.basicConfig(
        level=os.getenv(LOG_LEVEL_ENV_VAR, "INFO"),
        format="[%(asctime)s] %(levelname)s: %(message)s",
        stream=stream if stream is not None else sys.stderr,
        force=True,  # Ensure we override any existing logging configuration
    )


# Idempotency guard for global exception logging setup
_EXC_LOGGING_INSTALLED = False


def setup_global_exception_logging() -> None:
    """
    Set up global logging for all unhandled exceptions (synchronous and asynchronous) in the process.

    This function ensures that:
        - All uncaught exceptions in synchronous code are logged using the root logger.
        - All uncaught exceptions in asyncio event loops are logged, including loops created later by
          Uvicorn or anyio, by patching `asyncio.new_event_loop`.
        - The handler is also set on the current event loop, if one exists.

    Calling it more than once is a no-op.
    """
    global _EXC_LOGGING_INSTALLED
    if _EXC_LOGGING_INSTALLED:
        return
    _EXC_LOGGING_INSTALLED = True

    def _log_unhandled_exception(
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_traceback: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            return
        logging.error(
            "UNHANDLED EXCEPTION", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = _log_unhandled_exception

    def _asyncio_exception_handler(
        loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        exception = context.get("exception")
        logging.error(
            f"UNHANDLED ASYNC EXCEPTION: {context.get('message')}",
            exc_info=(
                (type(exception), exception, exception.__traceback__)
                if exception
                else None
            ),
        )

    # Patch new_event_loop to always set the handler
    _orig_new_event_loop = asyncio.new_event_loop

    def _patched_new_event_loop(*args: Any, **kwargs: Any) -> asyncio.AbstractEventLoop:
        loop = _orig_new_event_loop(*args, **kwargs)
        loop.set_exception_handler(_asyncio_exception_handler)
        return loop

    asyncio.new_event_loop = _patched_new_event_loop

    try:
        asyncio.get_event_loop().set_exception_handler(_asyncio_exception_handler)
    except RuntimeError:
        # No loop yet; the patched new_event_loop covers it
        pass
