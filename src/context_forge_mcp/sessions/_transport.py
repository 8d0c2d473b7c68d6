"""
Server-Sent Events transport for one client session.

The transport is the bridge between HTTP and a protocol server:

- Outbound: messages the server writes to ``write_stream`` are rendered as ``event: message``
  SSE events on the client's long-lived GET response. The first event on that response is
  ``event: endpoint``, telling the client where to POST its messages.
- Inbound: request bodies POSTed for this session are parsed as JSON-RPC and pushed into
  ``read_stream``, which the bound server consumes.

One transport serves exactly one session and is never reused.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp import types
from mcp.shared.message import SessionMessage
from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.types import Receive, Scope, Send

from context_forge_mcp._exceptions import TransportClosedError

_LOGGER = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"[0-9a-f]{32}")


def is_valid_session_id(value: str) -> bool:
    """Return True if *value* has the shape of an id minted by :class:`SseSessionTransport`."""
    return _SESSION_ID_RE.fullmatch(value) is not None


@dataclass(frozen=True)
class Delivery:
    """Acknowledgment for one inbound message, returned to the posting client as-is."""

    status_code: int
    detail: str


class SseSessionTransport:
    """
    SSE transport bound to a single session id.

    Args:
        message_path (str): Path clients POST messages to; advertised in the endpoint event.
        session_id (str | None): Id to use instead of a freshly minted one. Intended for tests.
    """

    def __init__(self, message_path: str, *, session_id: str | None = None) -> None:
        self._message_path = message_path
        self._session_id = session_id or uuid.uuid4().hex
        self._closed = False

        self._read_writer: MemoryObjectSendStream[SessionMessage | Exception]
        self._read_stream: MemoryObjectReceiveStream[SessionMessage | Exception]
        self._read_writer, self._read_stream = anyio.create_memory_object_stream[
            SessionMessage | Exception
        ](0)

        self._write_stream: MemoryObjectSendStream[SessionMessage]
        self._write_reader: MemoryObjectReceiveStream[SessionMessage]
        self._write_stream, self._write_reader = anyio.create_memory_object_stream[
            SessionMessage
        ](0)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def read_stream(self) -> MemoryObjectReceiveStream[SessionMessage | Exception]:
        return self._read_stream

    @property
    def write_stream(self) -> MemoryObjectSendStream[SessionMessage]:
        return self._write_stream

    @property
    def is_closed(self) -> bool:
        return self._closed

    def endpoint_url(self, root_path: str = "") -> str:
        return f"{root_path}{self._message_path}?sessionId={self._session_id}"

    async def stream(self, scope: Scope, receive: Receive, send: Send) -> None:
        """
        Serve the SSE response for this session.

        Returns when the client disconnects or the transport is closed.
        """
        endpoint = self.endpoint_url(scope.get("root_path", ""))
        sse_stream_writer, sse_stream_reader = anyio.create_memory_object_stream[
            dict[str, Any]
        ](0)

        async def sse_writer() -> None:
            async with sse_stream_writer, self._write_reader:
                await sse_stream_writer.send({"event": "endpoint", "data": endpoint})
                _LOGGER.debug(
                    f"[{self.__class__.__name__}] sent endpoint event for session {self._session_id}"
                )
                try:
                    async for session_message in self._write_reader:
                        await sse_stream_writer.send(
                            {
                                "event": "message",
                                "data": session_message.message.model_dump_json(
                                    by_alias=True, exclude_none=True
                                ),
                            }
                        )
                except anyio.ClosedResourceError:
                    # close() ran while a message was pending
                    pass

        response = EventSourceResponse(
            content=sse_stream_reader, data_sender_callable=sse_writer
        )
        await response(scope, receive, send)

    async def deliver(self, body: bytes) -> Delivery:
        """
        Parse *body* as a JSON-RPC message and hand it to the bound server.

        Raises:
            TransportClosedError: If the transport was closed.
        """
        if self._closed:
            raise TransportClosedError(f"Transport for session {self._session_id} is closed")

        try:
            message = types.JSONRPCMessage.model_validate_json(body)
        except ValidationError as err:
            _LOGGER.warning(
                f"[{self.__class__.__name__}] could not parse message for session {self._session_id}: {err}"
            )
            return Delivery(400, "Could not parse message")

        try:
            await self._read_writer.send(SessionMessage(message))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise TransportClosedError(
                f"Transport for session {self._session_id} is closed"
            ) from e
        return Delivery(202, "Accepted")

    def close(self) -> None:
        """Close every stream of this transport. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._read_writer.close()
        self._read_stream.close()
        self._write_stream.close()
        self._write_reader.close()
