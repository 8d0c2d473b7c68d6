"""Protocol server construction: one fully configured FastMCP instance per session."""

from ._factory import (
    ProtocolServer,
    ProtocolServerFactory,
    ReadStream,
    ServerTransport,
    WriteStream,
)

__all__ = [
    "ProtocolServer",
    "ProtocolServerFactory",
    "ReadStream",
    "ServerTransport",
    "WriteStream",
]
