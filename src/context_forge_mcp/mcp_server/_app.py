"""
HTTP front door of the MCP server.

Routes:
    - GET  {sse_path}: Opens a session and streams its SSE response until the client goes away.
      HEAD is answered with 405 and opens nothing.
    - POST {message_path}?sessionId=<id>: Delivers one JSON-RPC message to a live session.
    - GET  /health: Liveness check reporting the number of live sessions.

Status mapping for POST {message_path}:
    400 Missing sessionId parameter     no ``sessionId`` query parameter (registry not consulted)
    400 Invalid sessionId parameter     ``sessionId`` is not a minted id (registry not consulted)
    413 Request body too large          body exceeds ``http.max_body_bytes``
    404 No active connection found...   no live session with that id
    202 Accepted / 400 Could not parse  as acknowledged by the session's transport

The task store, server factory and session registry are built in the application lifespan (unless
injected) and stored on ``app.state``. Shutdown closes every session before the task store.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import anyio
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from context_forge_mcp._exceptions import (
    InternalError,
    RegistryClosedError,
    SessionCreationError,
    SessionNotFoundError,
)
from context_forge_mcp.db import TaskStore
from context_forge_mcp.sessions import SessionRegistry, is_valid_session_id

from ._build import build_server_factory, build_session_registry, build_task_store

_LOGGER = logging.getLogger(__name__)


class _BodyTooLarge(Exception):
    pass


async def _read_body(request: Request, limit: int) -> bytes:
    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit():
        if int(content_length) > limit:
            raise _BodyTooLarge()

    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise _BodyTooLarge()
        chunks.append(chunk)
    return b"".join(chunks)


class SseEndpoint:
    """
    ASGI endpoint for the long-lived SSE GET.

    Implemented as a raw ASGI callable because the SSE response owns ``send`` for as long as the
    client stays connected; the session is closed once that response ends, however it ends.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        # Starlette adds HEAD to GET routes; a HEAD must not open a session
        if scope["method"] != "GET":
            response: Response = PlainTextResponse(
                "Method Not Allowed", status_code=405, headers={"Allow": "GET"}
            )
            await response(scope, receive, send)
            return

        registry: SessionRegistry = scope["app"].state.session_registry
        try:
            session = await registry.open()
        except RegistryClosedError:
            _LOGGER.warning("[SseEndpoint] rejected connection: server is shutting down")
            response = PlainTextResponse(
                "Server is shutting down", status_code=503
            )
            await response(scope, receive, send)
            return
        except (SessionCreationError, InternalError) as e:
            _LOGGER.error(f"[SseEndpoint] failed to open session: {e}")
            response = PlainTextResponse("Failed to create session", status_code=500)
            await response(scope, receive, send)
            return

        _LOGGER.info(f"Client connected: {session.id}")
        try:
            await session.transport.stream(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                await registry.close(session.id)
            _LOGGER.info(f"Client disconnected: {session.id}")


async def handle_post_message(request: Request) -> Response:
    session_id = request.query_params.get("sessionId")
    if not session_id:
        return PlainTextResponse("Missing sessionId parameter", status_code=400)
    if not is_valid_session_id(session_id):
        return PlainTextResponse("Invalid sessionId parameter", status_code=400)

    try:
        body = await _read_body(request, request.app.state.max_body_bytes)
    except _BodyTooLarge:
        _LOGGER.warning(
            f"[handle_post_message] body too large for session {session_id}"
        )
        return PlainTextResponse("Request body too large", status_code=413)

    registry: SessionRegistry = request.app.state.session_registry
    try:
        delivery = await registry.route(session_id, body)
    except SessionNotFoundError:
        _LOGGER.debug(f"[handle_post_message] unknown session {session_id}")
        return PlainTextResponse(
            "No active connection found for this sessionId", status_code=404
        )
    return PlainTextResponse(delivery.detail, status_code=delivery.status_code)


async def health_check(request: Request) -> JSONResponse:
    """Return ``{"status": "ok", "sessions": <live session count>}``."""
    registry: SessionRegistry = request.app.state.session_registry
    return JSONResponse({"status": "ok", "sessions": await registry.count()})


def create_app(
    config: dict[str, Any],
    *,
    task_store: TaskStore | None = None,
    session_registry: SessionRegistry | None = None,
) -> Starlette:
    """
    Build the Starlette application serving MCP over SSE.

    Args:
        config (dict[str, Any]): Effective configuration, as returned by ``ConfigManager.get_config()``.
        task_store (TaskStore | None): Store to use instead of one built from ``config``. It is
            opened on startup if needed and closed on shutdown either way.
        session_registry (SessionRegistry | None): Registry to use instead of a fresh one.

    Returns:
        Starlette: The ASGI application.
    """
    http = config["http"]

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        store = task_store if task_store is not None else build_task_store(config)
        await store.open()
        registry = session_registry
        if registry is None:
            registry = build_session_registry(
                config, build_server_factory(config, store)
            )
        app.state.task_store = store
        app.state.session_registry = registry
        _LOGGER.info(
            f"[mcp_server:lifespan] MCP server '{config['server']['name']}' starting up"
        )
        try:
            yield
        finally:
            _LOGGER.info(
                f"[mcp_server:lifespan] MCP server '{config['server']['name']}' shutting down"
            )
            await registry.close_all()
            await store.close()

    app = Starlette(
        routes=[
            Route(http["sse_path"], endpoint=SseEndpoint(), methods=["GET"]),
            Route(http["message_path"], endpoint=handle_post_message, methods=["POST"]),
            Route("/health", endpoint=health_check, methods=["GET"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=http["cors_allow_origins"],
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
            )
        ],
        lifespan=lifespan,
    )
    app.state.max_body_bytes = http["max_body_bytes"]
    return app
