"""
Protocol server factory.

Every client session gets its own FastMCP instance carrying the full tool set. FastMCP instances
hold per-connection protocol state (initialization, capabilities), so they are never shared
between sessions. `ProtocolServerFactory.create()` is the single place that knows which tools a
server exposes and which middleware wraps them.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.server.fastmcp import FastMCP
from mcp.shared.message import SessionMessage

from context_forge_mcp._exceptions import InternalError
from context_forge_mcp.tools import (
    ToolMiddleware,
    ToolRegistrar,
    ToolRegistration,
    apply_registrations,
    log_tool_calls,
)

_LOGGER = logging.getLogger(__name__)

ReadStream = MemoryObjectReceiveStream[SessionMessage | Exception]
WriteStream = MemoryObjectSendStream[SessionMessage]


class ServerTransport(Protocol):
    """The stream pair a protocol server reads requests from and writes responses to."""

    @property
    def read_stream(self) -> ReadStream: ...

    @property
    def write_stream(self) -> WriteStream: ...


class ProtocolServer:
    """
    One protocol server instance bound to at most one transport.

    ``connect()`` starts the MCP message loop as a background task; ``shutdown()`` stops it.
    ``run()`` drives the same loop in the foreground, which is what stdio mode uses.
    """

    def __init__(self, mcp: FastMCP, tool_names: Sequence[str] = ()) -> None:
        self._mcp = mcp
        self._tool_names = list(tool_names)
        self._task: asyncio.Task[None] | None = None
        self._shut_down = False

    @property
    def name(self) -> str:
        return self._mcp.name

    @property
    def mcp(self) -> FastMCP:
        return self._mcp

    @property
    def is_connected(self) -> bool:
        return self._task is not None and not self._shut_down

    def list_tool_names(self) -> list[str]:
        return list(self._tool_names)

    async def run(self, read_stream: ReadStream, write_stream: WriteStream) -> None:
        """Serve MCP messages from *read_stream* until it closes."""
        lowlevel = self._mcp._mcp_server
        await lowlevel.run(
            read_stream, write_stream, lowlevel.create_initialization_options()
        )

    async def connect(self, transport: ServerTransport) -> None:
        """
        Bind this server to *transport* and start serving in the background.

        Raises:
            InternalError: If the server was already connected or shut down.
        """
        if self._task is not None or self._shut_down:
            raise InternalError(
                f"Protocol server '{self.name}' is already bound to a transport"
            )
        self._task = asyncio.create_task(
            self.run(transport.read_stream, transport.write_stream),
            name=f"mcp-server:{self.name}",
        )
        self._task.add_done_callback(self._log_task_result)

    def _log_task_result(self, task: "asyncio.Task[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOGGER.error(
                f"[{self.__class__.__name__}] server loop for '{self.name}' ended with error: {exc!r}"
            )

    async def shutdown(self) -> None:
        """
        Stop the background message loop. Safe to call more than once.

        Raises:
            Exception: Whatever the message loop failed with, if it ended with an error.
        """
        if self._shut_down:
            return
        self._shut_down = True
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            # Only the cancellation requested above is swallowed
            current = asyncio.current_task()
            if not task.cancelled() or (current is not None and current.cancelling()):
                raise


class ProtocolServerFactory:
    """
    Builds fully configured `ProtocolServer` instances.

    Args:
        name (str): Server name reported to clients during initialization.
        version (str): Server version reported to clients.
        registrations (Sequence[ToolRegistration]): Tool groups installed on every server.
        middleware (Sequence[ToolMiddleware]): Handler wrappers, outermost first.
    """

    def __init__(
        self,
        name: str,
        version: str,
        registrations: Sequence[ToolRegistration],
        middleware: Sequence[ToolMiddleware] = (log_tool_calls,),
    ) -> None:
        self._name = name
        self._version = version
        self._registrations = tuple(registrations)
        self._middleware = tuple(middleware)

    def create(self) -> ProtocolServer:
        mcp = FastMCP(self._name)
        # FastMCP takes no version argument; the low-level server reports this one.
        mcp._mcp_server.version = self._version
        registrar = ToolRegistrar(mcp, self._middleware)
        apply_registrations(registrar, self._registrations)
        _LOGGER.debug(
            f"[{self.__class__.__name__}] created server '{self._name}' with tools {registrar.tool_names}"
        )
        return ProtocolServer(mcp, registrar.tool_names)
