"""
Session registry.

The registry owns the mapping from session id to live `Session`. It is the only shared mutable
state of the HTTP server. Every mutation and lookup of the mapping happens under one
`asyncio.Lock`; message delivery and session teardown happen outside it, so a slow client or a
stuck shutdown never blocks other sessions.

Lifecycle of one session:
    open()   -> transport + server built, server bound to transport, entry inserted
    route()  -> inbound message forwarded to the session's transport
    close()  -> entry removed first, then server shut down and transport closed (best-effort)
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from context_forge_mcp._exceptions import (
    InternalError,
    RegistryClosedError,
    SessionCreationError,
    SessionNotFoundError,
    TransportClosedError,
)
from context_forge_mcp.server import ProtocolServer, ProtocolServerFactory

from ._transport import Delivery, SseSessionTransport

_LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[], SseSessionTransport]


@dataclass(frozen=True)
class Session:
    """A live client session: one transport and the protocol server bound to it."""

    id: str
    transport: SseSessionTransport
    server: ProtocolServer


class SessionRegistry:
    """
    Coroutine-safe registry of live sessions.

    Args:
        server_factory (ProtocolServerFactory): Builds a fresh protocol server per session.
        transport_factory (TransportFactory): Builds a fresh transport per session; the transport
            mints the session id.

    Example:
        >>> registry = SessionRegistry(factory, lambda: SseSessionTransport("/messages"))
        >>> session = await registry.open()
        >>> delivery = await registry.route(session.id, b'{"jsonrpc": "2.0", ...}')
        >>> await registry.close(session.id)
    """

    def __init__(
        self,
        server_factory: ProtocolServerFactory,
        transport_factory: TransportFactory,
    ) -> None:
        self._server_factory = server_factory
        self._transport_factory = transport_factory
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def open(self) -> Session:
        """
        Create, bind and register a new session.

        Returns:
            Session: The registered session. Its server is already serving its transport.

        Raises:
            RegistryClosedError: If the registry is shutting down.
            SessionCreationError: If the transport or server could not be built or bound.
            InternalError: If the minted id collides with a live session.
        """
        if self._closed:
            raise RegistryClosedError("Session registry is shutting down")

        transport: SseSessionTransport | None = None
        server: ProtocolServer | None = None
        try:
            transport = self._transport_factory()
            server = self._server_factory.create()
        except Exception as e:
            _LOGGER.error(f"[{self.__class__.__name__}] failed to build session: {e!r}")
            if transport is not None:
                transport.close()
            raise SessionCreationError(f"Failed to create session: {e}") from e

        session = Session(id=transport.session_id, transport=transport, server=server)
        try:
            try:
                await server.connect(transport)
            except Exception as e:
                raise SessionCreationError(
                    f"Failed to bind server to session {session.id}: {e}"
                ) from e
            # The session is only visible once it is bound
            async with self._lock:
                if self._closed:
                    raise RegistryClosedError("Session registry is shutting down")
                if session.id in self._sessions:
                    raise InternalError(f"Session id collision: {session.id}")
                self._sessions[session.id] = session
        except Exception:
            await self._teardown(session)
            raise

        _LOGGER.info(f"[{self.__class__.__name__}] session created: {session.id}")
        return session

    async def route(self, session_id: str, body: bytes) -> Delivery:
        """
        Forward an inbound message body to the session's transport.

        Raises:
            SessionNotFoundError: If no live session has this id, or it closed during delivery.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(
                f"No active connection found for session {session_id}"
            )

        try:
            return await session.transport.deliver(body)
        except TransportClosedError as e:
            raise SessionNotFoundError(
                f"Session {session_id} closed while delivering a message"
            ) from e

    async def close(self, session_id: str) -> bool:
        """
        Remove a session and tear it down. Never raises for an unknown id.

        Returns:
            bool: True if a session was removed, False if none was registered under this id.
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            _LOGGER.debug(
                f"[{self.__class__.__name__}] close for unknown session {session_id} ignored"
            )
            return False

        await self._teardown(session)
        _LOGGER.info(f"[{self.__class__.__name__}] session closed: {session_id}")
        return True

    async def close_all(self) -> None:
        """Reject further opens, then remove and tear down every session."""
        async with self._lock:
            self._closed = True
            sessions = list(self._sessions.values())
            self._sessions.clear()

        _LOGGER.info(
            f"[{self.__class__.__name__}] closing {len(sessions)} session(s) on shutdown"
        )
        for session in sessions:
            await self._teardown(session)

    async def session_ids(self) -> list[str]:
        async with self._lock:
            return list(self._sessions)

    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def _teardown(self, session: Session) -> None:
        try:
            await session.server.shutdown()
        except Exception as e:
            _LOGGER.error(
                f"[{self.__class__.__name__}] error shutting down server for session {session.id}: {e!r}"
            )
        try:
            session.transport.close()
        except Exception as e:
            _LOGGER.error(
                f"[{self.__class__.__name__}] error closing transport for session {session.id}: {e!r}"
            )
