"""
Custom exceptions for Context Forge MCP configuration.
"""

from context_forge_mcp._exceptions import ConfigurationError


class McpConfigurationError(ConfigurationError):
    """Raised when the configuration file cannot be read or fails validation."""

    pass


__all__ = [
    "McpConfigurationError",
]
