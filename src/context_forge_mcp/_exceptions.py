"""Custom exception types for Context Forge MCP.

Defines the exception hierarchy shared by the session registry, the SSE transport, the
persistence layer and the configuration loader. These exceptions let callers tell
caller errors, not-found conditions, construction failures and bugs apart without
inspecting messages.

Exception Hierarchy:
    - Base exceptions: McpError (base for all exceptions), InternalError (extends McpError and RuntimeError)
    - Session exceptions: SessionError (extends McpError), SessionCreationError (extends SessionError),
      SessionNotFoundError (extends SessionError and KeyError), RegistryClosedError (extends SessionError)
    - Transport exceptions: TransportError (extends McpError), TransportClosedError (extends TransportError)
    - Persistence exceptions: TaskStoreError (extends McpError)
    - Configuration exceptions: ConfigurationError (extends McpError)

Usage Example:
    ```python
    from context_forge_mcp._exceptions import SessionNotFoundError

    try:
        delivery = await registry.route(session_id, body)
    except SessionNotFoundError:
        return PlainTextResponse("No active connection found for this sessionId", status_code=404)
    ```
"""

__all__ = [
    # Base exceptions
    "McpError",
    "InternalError",
    # Session exceptions
    "SessionError",
    "SessionCreationError",
    "SessionNotFoundError",
    "RegistryClosedError",
    # Transport exceptions
    "TransportError",
    "TransportClosedError",
    # Persistence exceptions
    "TaskStoreError",
    # Configuration exceptions
    "ConfigurationError",
]


# Base Exceptions


class McpError(Exception):
    """Base exception for all Context Forge MCP errors.

    Lets callers catch every error raised by this package with a single except clause
    while keeping the specific types available for finer handling.
    """

    pass


class InternalError(McpError, RuntimeError):
    """Internal errors indicating bugs in the server implementation.

    Raised when an invariant is violated, for example a freshly minted session id that
    is already registered, or a protocol server that is bound to a second transport.
    These are never caused by client input.
    """

    pass


# Session Exceptions


class SessionError(McpError):
    """Base exception for all session-related errors."""

    pass


class SessionCreationError(SessionError):
    """Raised when a session cannot be opened.

    Covers failures of the protocol server factory, the transport constructor, or the
    binding of the two. When this is raised the registry holds no entry for the
    attempted session.
    """

    pass


class SessionNotFoundError(SessionError, KeyError):
    """Raised when a session id is not (or no longer) registered.

    This is the "no active session" outcome: the client may have posted after
    disconnecting, or with a stale or forged id. It is not fatal and never affects
    other sessions. Inherits from KeyError so it reads naturally as a failed lookup.
    """

    def __str__(self) -> str:
        # KeyError.__str__ quotes the message; keep it readable in logs.
        return str(self.args[0]) if self.args else ""


class RegistryClosedError(SessionError):
    """Raised when a session is opened after the registry started shutting down."""

    pass


# Transport Exceptions


class TransportError(McpError):
    """Base exception for transport adapter errors."""

    pass


class TransportClosedError(TransportError):
    """Raised when a message is delivered into a transport whose streams are closed."""

    pass


# Persistence Exceptions


class TaskStoreError(McpError):
    """Raised by the task store for database failures or use outside its open/close window.

    Tool handlers treat this as a domain error and report it in their result payload.
    """

    pass


# Configuration Exceptions


class ConfigurationError(McpError):
    """Base exception for configuration errors raised outside the config loader."""

    pass
