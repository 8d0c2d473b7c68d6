"""
Validation and defaults for the individual configuration sections.

Each top-level section (`server`, `http`, `database`) has a table of allowed fields and their
types. Unknown fields and wrongly typed values fail validation with `McpConfigurationError`.
"""

__all__ = [
    "DEFAULT_CONFIG",
    "validate_section",
    "merged_with_defaults",
    "validate_effective_config",
]

import copy
import logging
from typing import Any

from .errors import McpConfigurationError

_LOGGER = logging.getLogger(__name__)


DEFAULT_CONFIG: dict[str, dict[str, Any]] = {
    "server": {
        "name": "Context Forge MCP Server",
        "version": "1.0.0",
    },
    "http": {
        "host": "127.0.0.1",
        "port": 3000,
        "sse_path": "/sse",
        "message_path": "/messages",
        "cors_allow_origins": ["*"],
        "max_body_bytes": 4 * 1024 * 1024,
    },
    "database": {
        "path": "context_forge.db",
        "cache_ttl_seconds": 60,
    },
}
"""Defaults applied beneath whatever the config file provides."""

_ALLOWED_FIELDS: dict[str, dict[str, type | tuple[type, ...]]] = {
    "server": {
        "name": str,
        "version": str,
    },
    "http": {
        "host": str,
        "port": int,
        "sse_path": str,
        "message_path": str,
        "cors_allow_origins": list,
        "max_body_bytes": int,
    },
    "database": {
        "path": str,
        "cache_ttl_seconds": (int, float),
    },
}
"""Allowed fields per section and their expected types."""


def _check_type(section: str, field_name: str, value: Any) -> None:
    allowed_types = _ALLOWED_FIELDS[section][field_name]
    # bool is an int subclass; never accept it for numeric fields
    if isinstance(value, bool) or not isinstance(value, allowed_types):
        expected = (
            allowed_types.__name__
            if isinstance(allowed_types, type)
            else " | ".join(t.__name__ for t in allowed_types)
        )
        raise McpConfigurationError(
            f"Field '{section}.{field_name}' must be of type {expected}, got {type(value).__name__}"
        )


def _validate_http(http_config: dict[str, Any]) -> None:
    port = http_config.get("port")
    if port is not None and not 1 <= port <= 65535:
        raise McpConfigurationError(
            f"Field 'http.port' must be between 1 and 65535, got {port}"
        )

    for path_field in ("sse_path", "message_path"):
        path = http_config.get(path_field)
        if path is not None and not path.startswith("/"):
            raise McpConfigurationError(
                f"Field 'http.{path_field}' must start with '/', got '{path}'"
            )

    origins = http_config.get("cors_allow_origins")
    if origins is not None:
        for origin in origins:
            if not isinstance(origin, str):
                raise McpConfigurationError(
                    f"Field 'http.cors_allow_origins' must contain only strings, got {type(origin).__name__}"
                )

    max_body_bytes = http_config.get("max_body_bytes")
    if max_body_bytes is not None and max_body_bytes <= 0:
        raise McpConfigurationError(
            f"Field 'http.max_body_bytes' must be positive, got {max_body_bytes}"
        )


def _validate_database(database_config: dict[str, Any]) -> None:
    if "path" in database_config and not database_config["path"]:
        raise McpConfigurationError("Field 'database.path' must not be empty")

    ttl = database_config.get("cache_ttl_seconds")
    if ttl is not None and ttl < 0:
        raise McpConfigurationError(
            f"Field 'database.cache_ttl_seconds' must be non-negative, got {ttl}"
        )


def validate_section(section: str, section_config: Any) -> None:
    """
    Validate one top-level configuration section.

    Args:
        section (str): The section name ('server', 'http' or 'database').
        section_config (Any): The value found in the configuration file.

    Raises:
        McpConfigurationError: If the section is not a dict, contains unknown fields,
            or a field has the wrong type or an out-of-range value.
    """
    if not isinstance(section_config, dict):
        raise McpConfigurationError(
            f"Section '{section}' must be a dictionary, got {type(section_config).__name__}"
        )

    allowed = _ALLOWED_FIELDS[section]
    for field_name, value in section_config.items():
        if field_name not in allowed:
            raise McpConfigurationError(
                f"Unknown field '{field_name}' in section '{section}'"
            )
        _check_type(section, field_name, value)

    if section == "http":
        _validate_http(section_config)
    elif section == "database":
        _validate_database(section_config)

    _LOGGER.debug(f"[config:validate_section] Section '{section}' is valid")


def merged_with_defaults(config: dict[str, Any]) -> dict[str, Any]:
    """Return a deep copy of the defaults with every section of *config* laid over them."""
    merged = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in config.items():
        merged[section].update(copy.deepcopy(values))
    return merged


def validate_effective_config(config: dict[str, Any]) -> None:
    """
    Validate cross-field constraints on the fully merged configuration.

    Raises:
        McpConfigurationError: If the SSE and message routes collide.
    """
    http_config = config["http"]
    if http_config["sse_path"] == http_config["message_path"]:
        raise McpConfigurationError(
            f"Fields 'http.sse_path' and 'http.message_path' must differ, both are '{http_config['sse_path']}'"
        )
