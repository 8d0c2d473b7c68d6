"""
MCP tool definitions and registration plumbing.

Modules:
    _registration: ToolRegistrar, tool middleware (log_tool_calls) and the ToolRegistration type.
    _tasks: Project task tools backed by the TaskStore.
"""

from ._registration import (
    ToolHandler,
    ToolMiddleware,
    ToolRegistrar,
    ToolRegistration,
    apply_registrations,
    log_tool_calls,
)
from ._tasks import task_tools

__all__ = [
    "ToolHandler",
    "ToolMiddleware",
    "ToolRegistrar",
    "ToolRegistration",
    "apply_registrations",
    "log_tool_calls",
    "task_tools",
]
