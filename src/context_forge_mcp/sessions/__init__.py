"""
Session management for the HTTP (SSE) server.

Exports:
    - SessionRegistry: Owns the id -> Session mapping (open, route, close, close_all).
    - Session: One transport and the protocol server bound to it.
    - SseSessionTransport: SSE transport of a single session.
    - Delivery: Acknowledgment for one inbound message.
    - is_valid_session_id: Format check for session ids.
"""

from ._registry import Session, SessionRegistry, TransportFactory
from ._transport import Delivery, SseSessionTransport, is_valid_session_id

__all__ = [
    "Session",
    "SessionRegistry",
    "TransportFactory",
    "Delivery",
    "SseSessionTransport",
    "is_valid_session_id",
]
