"""
Monkeypatch utilities for the Context Forge MCP server.

Uvicorn does not reliably log exceptions escaping an ASGI application (for example an SSE stream
that fails after the response has started). This module wraps Uvicorn's
`RequestResponseCycle.run_asgi` so that every such exception is written twice before being
re-raised:

1. Direct stderr JSON, bypassing the logging framework.
2. A dedicated `json_asgi_errors` logger formatted with python-json-logger.

Usage:
    Call `monkeypatch_uvicorn_exception_handling()` once at process startup, before Uvicorn runs.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import json as jsonlogger
from uvicorn.protocols.http.httptools_impl import RequestResponseCycle

_LOGGER = logging.getLogger(__name__)


def _setup_json_logging() -> logging.Logger:
    """
    Configure the python-json-logger logger used for ASGI exception logging.

    Returns:
        logging.Logger: Logger named 'json_asgi_errors' writing JSON to stderr at ERROR level,
            with propagation disabled to prevent duplicate entries.
    """
    json_logger = logging.getLogger("json_asgi_errors")

    if not json_logger.handlers:
        json_handler = logging.StreamHandler(sys.stderr)
        json_formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S.%fZ",
        )
        json_handler.setFormatter(json_formatter)
        json_logger.addHandler(json_handler)
        json_logger.setLevel(logging.ERROR)

    json_logger.propagate = False
    return json_logger


# Created lazily so importing this module has no side effects
_json_logger: logging.Logger | None = None


def _get_json_logger() -> logging.Logger:
    """Get or create the JSON ASGI error logger."""
    global _json_logger
    if _json_logger is None:
        _json_logger = _setup_json_logging()
    return _json_logger


def monkeypatch_uvicorn_exception_handling() -> None:
    """
    Monkey-patch Uvicorn's RequestResponseCycle so unhandled ASGI exceptions are always logged.

    The original exception is re-raised after logging, so Uvicorn's own error handling
    (500 response, connection close) is unchanged.
    """
    _LOGGER.warning(
        "Monkey-patching Uvicorn's RequestResponseCycle to log unhandled ASGI exceptions."
    )
    orig_run_asgi = RequestResponseCycle.run_asgi

    async def my_run_asgi(self: RequestResponseCycle, app: Any) -> None:
        async def wrapped_app(*args: Any) -> Any:
            try:
                return await app(*args)
            except Exception as e:
                exc_type = type(e)
                full_traceback = "".join(
                    traceback.format_exception(exc_type, e, e.__traceback__)
                )

                stderr_log = {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "severity": "ERROR",
                    "message": f"Unhandled exception in ASGI application (Direct stderr JSON): {exc_type.__name__}: {e}",
                    "exception": {
                        "type": exc_type.__name__,
                        "module": exc_type.__module__,
                        "args": str(getattr(e, "args", None)),
                        "traceback": full_traceback,
                    },
                }
                print(json.dumps(stderr_log), file=sys.stderr, flush=True)

                try:
                    _get_json_logger().error(
                        f"Unhandled exception in ASGI application (Python JSON Logger): {exc_type.__name__}: {e}",
                        extra={
                            "severity": "ERROR",
                            "exception_type": exc_type.__name__,
                            "exception_module": exc_type.__module__,
                            "exception_message": str(e),
                            "stack_trace": full_traceback,
                        },
                        exc_info=(exc_type, e, e.__traceback__),
                    )
                except Exception as json_err:
                    print(f"Python JSON Logger failed: {json_err}", file=sys.stderr)

                raise

        await orig_run_asgi(self, wrapped_app)

    RequestResponseCycle.run_asgi = my_run_asgi  # type: ignore[method-assign]
