"""Construction of the process-wide collaborators shared by the SSE and stdio entrypoints."""

import logging
from typing import Any

from context_forge_mcp.db import QueryCache, TaskStore
from context_forge_mcp.server import ProtocolServerFactory
from context_forge_mcp.sessions import SessionRegistry, SseSessionTransport
from context_forge_mcp.tools import task_tools

_LOGGER = logging.getLogger(__name__)


def build_task_store(config: dict[str, Any]) -> TaskStore:
    """Create an unopened `TaskStore` from the ``database`` section of *config*."""
    database = config["database"]
    return TaskStore(
        database["path"], cache=QueryCache(database["cache_ttl_seconds"])
    )


def build_server_factory(
    config: dict[str, Any], task_store: TaskStore
) -> ProtocolServerFactory:
    """Create the factory that builds every protocol server of this process."""
    server = config["server"]
    return ProtocolServerFactory(
        server["name"], server["version"], [task_tools(task_store)]
    )


def build_session_registry(
    config: dict[str, Any], server_factory: ProtocolServerFactory
) -> SessionRegistry:
    message_path = config["http"]["message_path"]
    return SessionRegistry(
        server_factory, lambda: SseSessionTransport(message_path)
    )
