"""
Tool registration with composable handler middleware.

A `ToolRegistrar` sits between tool modules and a FastMCP instance. Every handler registered through
it is wrapped by the configured middleware chain before FastMCP sees it, so cross-cutting concerns
such as call logging are added by composition rather than by subclassing the server.

Middleware contract:
    A middleware is ``(tool_name, handler) -> handler``. The returned handler must keep the
    original signature visible (use ``functools.wraps``) because FastMCP derives the tool's input
    schema from it. The first middleware in the list is the outermost wrapper.
"""

import functools
import inspect
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from mcp.server.fastmcp import FastMCP

_LOGGER = logging.getLogger(__name__)

ToolHandler = Callable[..., Any]
"""A tool implementation: a sync or async callable returning a result payload."""

ToolMiddleware = Callable[[str, ToolHandler], ToolHandler]
"""Wraps a tool handler; receives the tool name and the handler to wrap."""

F = TypeVar("F", bound=ToolHandler)


def log_tool_calls(name: str, handler: ToolHandler) -> ToolHandler:
    """
    Middleware that logs every invocation of a tool, its duration, and any failure.

    Works for both synchronous and asynchronous handlers; the wrapper is always a coroutine
    function. Exceptions are logged and re-raised unchanged.
    """

    @functools.wraps(handler)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        _LOGGER.info(f"Tool {name} was called")
        start_time = time.monotonic()
        try:
            result = handler(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            _LOGGER.exception(
                f"Tool {name} failed after {time.monotonic() - start_time:.3f}s"
            )
            raise
        _LOGGER.debug(
            f"Tool {name} completed in {time.monotonic() - start_time:.3f}s"
        )
        return result

    return wrapper


class ToolRegistrar:
    """
    Registers tools on one FastMCP instance, applying middleware to each handler.

    Args:
        server (FastMCP): The protocol server receiving the tools.
        middleware (Sequence[ToolMiddleware]): Wrappers applied to every handler, outermost first.
    """

    def __init__(
        self, server: FastMCP, middleware: Sequence[ToolMiddleware] = ()
    ) -> None:
        self._server = server
        self._middleware = tuple(middleware)
        self._names: list[str] = []

    @property
    def tool_names(self) -> list[str]:
        """Names of the tools registered through this registrar, in registration order."""
        return list(self._names)

    def add_tool(
        self,
        fn: ToolHandler,
        *,
        name: str | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> None:
        tool_name = name or fn.__name__
        handler = fn
        for middleware in reversed(self._middleware):
            handler = middleware(tool_name, handler)

        self._server.add_tool(
            handler, name=tool_name, title=title, description=description
        )
        self._names.append(tool_name)
        _LOGGER.debug(f"[{self.__class__.__name__}] registered tool '{tool_name}'")

    def tool(
        self,
        *,
        name: str | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> Callable[[F], F]:
        """Decorator form of :meth:`add_tool`. Returns the undecorated function."""

        def decorator(fn: F) -> F:
            self.add_tool(fn, name=name, title=title, description=description)
            return fn

        return decorator


ToolRegistration = Callable[[ToolRegistrar], None]
"""A function that registers a group of related tools on a registrar."""


def apply_registrations(
    registrar: ToolRegistrar, registrations: Sequence[ToolRegistration]
) -> None:
    for registration in registrations:
        registration(registrar)
