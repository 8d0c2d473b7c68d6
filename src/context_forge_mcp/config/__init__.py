"""
Async Context Forge MCP configuration management.

This module loads, validates, and caches the server configuration. Configuration comes from three
layers, later layers winning:

1. Built-in defaults (`DEFAULT_CONFIG`).
2. An optional JSON file named by the CONTEXT_FORGE_MCP_CONFIG_FILE environment variable, read with
   native async file I/O (aiofiles).
3. Environment overrides: PORT, CONTEXT_FORGE_MCP_HOST, CONTEXT_FORGE_MCP_DB_PATH.

Configuration Schema:
---------------------
The configuration file must be a JSON object. All top-level keys are optional:

  - `server` (dict): `name` (str), `version` (str). Advertised to MCP clients during initialization.
  - `http` (dict): `host` (str), `port` (int, 1-65535), `sse_path` (str, starts with '/'),
    `message_path` (str, starts with '/'), `cors_allow_origins` (list[str]), `max_body_bytes` (int > 0).
  - `database` (dict): `path` (str, sqlite file), `cache_ttl_seconds` (number >= 0).

Unknown top-level keys and unknown fields inside a section fail validation.

Example Valid Configuration:
---------------------------
```json
{
    "server": {"name": "Context Forge MCP Server"},
    "http": {"host": "0.0.0.0", "port": 8080, "cors_allow_origins": ["https://app.example.com"]},
    "database": {"path": "/var/lib/context-forge/tasks.db"}
}
```

Usage:
    >>> config_manager = ConfigManager()
    >>> config = await config_manager.get_config()
    >>> config["http"]["port"]
    3000
"""

__all__ = [
    "McpConfigurationError",
    "ConfigManager",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG",
    "get_config_path",
    "validate_config",
    "load_and_validate_config",
]

import asyncio
import json
import logging
import os
from typing import Any, cast

import aiofiles

from ._sections import (
    DEFAULT_CONFIG,
    merged_with_defaults,
    validate_effective_config,
    validate_section,
)
from .errors import McpConfigurationError

_LOGGER = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CONTEXT_FORGE_MCP_CONFIG_FILE"
"""str: Name of the environment variable specifying the path to the JSON config file."""

PORT_ENV_VAR = "PORT"
"""str: Environment variable overriding `http.port`."""

HOST_ENV_VAR = "CONTEXT_FORGE_MCP_HOST"
"""str: Environment variable overriding `http.host`."""

DB_PATH_ENV_VAR = "CONTEXT_FORGE_MCP_DB_PATH"
"""str: Environment variable overriding `database.path`."""

_ALLOWED_TOP_LEVEL_KEYS: set[str] = set(DEFAULT_CONFIG)
"""Set of all allowed top-level keys in the configuration file."""


class ConfigManager:
    """
    Async configuration manager for the Context Forge MCP server.

    Encapsulates loading, validating, and caching the effective configuration. All public methods
    are coroutine-safe.
    """

    def __init__(self) -> None:
        self._cache: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    async def clear_config_cache(self) -> None:
        """Clear the cached configuration so the next access reloads it."""
        _LOGGER.debug("Clearing Context Forge configuration cache...")
        async with self._lock:
            self._cache = None
        _LOGGER.debug("Configuration cache cleared.")

    async def _set_config_cache(self, config: dict[str, Any]) -> None:
        """
        PRIVATE: Set the configuration cache directly (validated), bypassing file I/O.

        Intended for tests. Defaults and environment overrides are applied exactly as for a file.

        Raises:
            McpConfigurationError: If the provided configuration is invalid.
        """
        async with self._lock:
            self._cache = _apply_env_overrides(merged_with_defaults(validate_config(config)))
            validate_effective_config(self._cache)

    async def get_config(self) -> dict[str, Any]:
        """
        Load, validate, and cache the effective configuration (coroutine-safe).

        Returns:
            dict[str, Any]: The effective configuration with every section and field populated.

        Raises:
            McpConfigurationError: If the config file cannot be read, is not valid JSON, fails
                validation, or an environment override is malformed.
        """
        async with self._lock:
            if self._cache is not None:
                _LOGGER.debug("Using cached Context Forge configuration.")
                return self._cache

            config_path = get_config_path()
            file_config = (
                await load_and_validate_config(config_path) if config_path else {}
            )
            effective = _apply_env_overrides(merged_with_defaults(file_config))
            validate_effective_config(effective)
            self._cache = effective
            _log_config_summary(effective)
            return effective


def get_config_path() -> str | None:
    """
    Retrieve the configuration file path from the environment.

    Returns:
        str | None: The value of CONTEXT_FORGE_MCP_CONFIG_FILE, or None when it is unset
            (defaults and environment overrides only).
    """
    config_path = os.environ.get(CONFIG_ENV_VAR)
    if not config_path:
        _LOGGER.info(
            f"Environment variable {CONFIG_ENV_VAR} is not set; using default configuration."
        )
        return None
    _LOGGER.info(f"Environment variable {CONFIG_ENV_VAR} is set to: {config_path}")
    return config_path


async def _load_config_from_file(config_path: str) -> dict[str, Any]:
    """
    Load and parse the configuration JSON file asynchronously.

    Raises:
        McpConfigurationError: If the file is missing, unreadable, or not valid JSON.
    """
    try:
        async with aiofiles.open(config_path) as f:
            content = await f.read()
        return cast(dict[str, Any], json.loads(content))
    except FileNotFoundError:
        _LOGGER.error(f"Configuration file not found: {config_path}")
        raise McpConfigurationError(
            f"Configuration file not found: {config_path}"
        ) from None
    except PermissionError:
        _LOGGER.error(
            f"Permission denied when trying to read configuration file: {config_path}"
        )
        raise McpConfigurationError(
            f"Permission denied when trying to read configuration file: {config_path}"
        ) from None
    except json.JSONDecodeError as e:
        _LOGGER.error(f"Invalid JSON in configuration file {config_path}: {e}")
        raise McpConfigurationError(
            f"Invalid JSON in configuration file {config_path}: {e}"
        ) from e


async def load_and_validate_config(config_path: str) -> dict[str, Any]:
    """
    Load and validate the configuration file.

    Args:
        config_path (str): The path to the configuration JSON file.

    Returns:
        dict[str, Any]: The validated file contents (without defaults applied).

    Raises:
        McpConfigurationError: If the file cannot be read, is not valid JSON, or fails validation.
    """
    data = await _load_config_from_file(config_path)
    try:
        return validate_config(data)
    except McpConfigurationError as e:
        _LOGGER.error(f"Configuration validation failed for {config_path}: {e}")
        raise


def validate_config(config: Any) -> dict[str, Any]:
    """
    Validate a configuration dictionary as read from the config file.

    Args:
        config (Any): The parsed configuration.

    Returns:
        dict[str, Any]: The same dictionary, once validated.

    Raises:
        McpConfigurationError: If the value is not a dict, has unknown top-level keys, or any
            section is invalid.
    """
    if not isinstance(config, dict):
        raise McpConfigurationError(
            f"Configuration must be a JSON object, got {type(config).__name__}"
        )

    unknown_keys = set(config) - _ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        _LOGGER.error(f"Unknown top-level keys in Context Forge config: {unknown_keys}")
        raise McpConfigurationError(
            f"Unknown top-level keys in Context Forge config: {unknown_keys}"
        )

    for section, section_config in config.items():
        validate_section(section, section_config)

    _LOGGER.info("Configuration validation passed.")
    return config


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    port = os.environ.get(PORT_ENV_VAR)
    if port:
        try:
            port_value = int(port)
        except ValueError:
            raise McpConfigurationError(
                f"Environment variable {PORT_ENV_VAR} must be an integer, got '{port}'"
            ) from None
        validate_section("http", {"port": port_value})
        config["http"]["port"] = port_value

    host = os.environ.get(HOST_ENV_VAR)
    if host:
        config["http"]["host"] = host

    db_path = os.environ.get(DB_PATH_ENV_VAR)
    if db_path:
        config["database"]["path"] = db_path

    return config


def _log_config_summary(config: dict[str, Any]) -> None:
    http_config = config["http"]
    _LOGGER.info(
        f"Server '{config['server']['name']}' v{config['server']['version']}: "
        f"http://{http_config['host']}:{http_config['port']} "
        f"(sse={http_config['sse_path']}, messages={http_config['message_path']})"
    )
    _LOGGER.info(f"Database: {config['database']['path']}")
