"""
Tests for context_forge_mcp.config (ConfigManager, file loading, validation, env overrides).
"""

import json
from unittest.mock import patch

import pytest

from context_forge_mcp import config
from context_forge_mcp.config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG,
    ConfigManager,
    McpConfigurationError,
    get_config_path,
    load_and_validate_config,
    validate_config,
)
from context_forge_mcp.config._sections import (
    merged_with_defaults,
    validate_effective_config,
    validate_section,
)


# --- Fixtures and helpers ---
@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        CONFIG_ENV_VAR,
        config.PORT_ENV_VAR,
        config.HOST_ENV_VAR,
        config.DB_PATH_ENV_VAR,
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    def _write(data):
        path = tmp_path / "config.json"
        path.write_text(data if isinstance(data, str) else json.dumps(data))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        return path

    return _write


# --- ConfigManager ---
@pytest.mark.asyncio
async def test_get_config_defaults_without_file():
    cm = ConfigManager()
    cfg = await cm.get_config()
    assert cfg == DEFAULT_CONFIG
    # Defaults are copied, never shared
    assert cfg is not DEFAULT_CONFIG
    cfg["http"]["port"] = 1
    assert DEFAULT_CONFIG["http"]["port"] == 3000


@pytest.mark.asyncio
async def test_get_config_from_file_merges_defaults(config_file):
    config_file({"http": {"port": 8080, "host": "0.0.0.0"}})
    cfg = await ConfigManager().get_config()
    assert cfg["http"]["port"] == 8080
    assert cfg["http"]["host"] == "0.0.0.0"
    assert cfg["http"]["sse_path"] == "/sse"
    assert cfg["database"]["path"] == "context_forge.db"
    assert cfg["server"]["name"] == "Context Forge MCP Server"


@pytest.mark.asyncio
async def test_get_config_is_cached(config_file):
    config_file({"server": {"name": "first"}})
    cm = ConfigManager()
    first = await cm.get_config()
    config_file({"server": {"name": "second"}})
    assert (await cm.get_config()) is first

    await cm.clear_config_cache()
    assert (await cm.get_config())["server"]["name"] == "second"


@pytest.mark.asyncio
async def test_get_config_env_overrides(config_file, monkeypatch):
    config_file({"http": {"port": 8080}})
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("CONTEXT_FORGE_MCP_HOST", "0.0.0.0")
    monkeypatch.setenv("CONTEXT_FORGE_MCP_DB_PATH", "/tmp/tasks.db")
    cfg = await ConfigManager().get_config()
    assert cfg["http"]["port"] == 9090
    assert cfg["http"]["host"] == "0.0.0.0"
    assert cfg["database"]["path"] == "/tmp/tasks.db"


@pytest.mark.asyncio
@pytest.mark.parametrize("port", ["abc", "0", "70000"])
async def test_get_config_invalid_port_env(monkeypatch, port):
    monkeypatch.setenv("PORT", port)
    with pytest.raises(McpConfigurationError, match="port|PORT"):
        await ConfigManager().get_config()


@pytest.mark.asyncio
async def test_get_config_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.json"))
    with pytest.raises(McpConfigurationError, match="not found"):
        await ConfigManager().get_config()


@pytest.mark.asyncio
async def test_get_config_invalid_json(config_file):
    config_file("{not json")
    with pytest.raises(McpConfigurationError, match="Invalid JSON"):
        await ConfigManager().get_config()


@pytest.mark.asyncio
async def test_get_config_permission_denied(config_file):
    config_file({})
    with patch("aiofiles.open", side_effect=PermissionError("denied")):
        with pytest.raises(McpConfigurationError, match="Permission denied"):
            await ConfigManager().get_config()


@pytest.mark.asyncio
async def test_get_config_colliding_paths(config_file):
    config_file({"http": {"sse_path": "/mcp", "message_path": "/mcp"}})
    with pytest.raises(McpConfigurationError, match="must differ"):
        await ConfigManager().get_config()


@pytest.mark.asyncio
async def test_set_config_cache_validates_and_merges():
    cm = ConfigManager()
    await cm._set_config_cache({"database": {"cache_ttl_seconds": 0}})
    cfg = await cm.get_config()
    assert cfg["database"]["cache_ttl_seconds"] == 0
    assert cfg["http"]["port"] == 3000

    with pytest.raises(McpConfigurationError):
        await cm._set_config_cache({"bogus": {}})


@pytest.mark.asyncio
async def test_get_config_logs_summary(caplog):
    caplog.set_level("INFO")
    await ConfigManager().get_config()
    assert any(
        "Server 'Context Forge MCP Server' v1.0.0" in r.message for r in caplog.records
    )


# --- get_config_path / load_and_validate_config ---
def test_get_config_path_unset():
    assert get_config_path() is None


def test_get_config_path_set(monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, "/etc/context-forge.json")
    assert get_config_path() == "/etc/context-forge.json"


@pytest.mark.asyncio
async def test_load_and_validate_config_rejects_invalid(config_file):
    path = config_file({"http": {"port": "3000"}})
    with pytest.raises(McpConfigurationError, match="must be of type int"):
        await load_and_validate_config(str(path))


@pytest.mark.asyncio
async def test_load_and_validate_config_returns_file_contents(config_file):
    path = config_file({"server": {"version": "2.0.0"}})
    assert await load_and_validate_config(str(path)) == {"server": {"version": "2.0.0"}}


# --- validate_config ---
def test_validate_config_accepts_empty():
    assert validate_config({}) == {}


def test_validate_config_not_a_dict():
    with pytest.raises(McpConfigurationError, match="JSON object"):
        validate_config(["server"])


def test_validate_config_unknown_top_level_key():
    with pytest.raises(McpConfigurationError, match="Unknown top-level keys"):
        validate_config({"community": {}})


# --- validate_section ---
@pytest.mark.parametrize(
    "section,section_config,match",
    [
        ("http", [], "must be a dictionary"),
        ("http", {"bogus": 1}, "Unknown field 'bogus'"),
        ("http", {"port": True}, "must be of type int"),
        ("http", {"port": 0}, "between 1 and 65535"),
        ("http", {"port": 65536}, "between 1 and 65535"),
        ("http", {"sse_path": "sse"}, "must start with '/'"),
        ("http", {"message_path": "messages"}, "must start with '/'"),
        ("http", {"cors_allow_origins": "*"}, "must be of type list"),
        ("http", {"cors_allow_origins": ["*", 1]}, "only strings"),
        ("http", {"max_body_bytes": 0}, "must be positive"),
        ("server", {"name": 1}, "must be of type str"),
        ("database", {"path": ""}, "must not be empty"),
        ("database", {"cache_ttl_seconds": -1}, "non-negative"),
        ("database", {"cache_ttl_seconds": "60"}, "int | float"),
    ],
)
def test_validate_section_errors(section, section_config, match):
    with pytest.raises(McpConfigurationError, match=match):
        validate_section(section, section_config)


def test_validate_section_accepts_valid_values():
    validate_section(
        "http",
        {
            "host": "0.0.0.0",
            "port": 65535,
            "sse_path": "/events",
            "message_path": "/rpc",
            "cors_allow_origins": ["https://app.example.com"],
            "max_body_bytes": 1,
        },
    )
    validate_section("database", {"cache_ttl_seconds": 0.5})


def test_merged_with_defaults_does_not_mutate_input():
    file_config = {"http": {"cors_allow_origins": ["https://a"]}}
    merged = merged_with_defaults(file_config)
    merged["http"]["cors_allow_origins"].append("https://b")
    assert file_config["http"]["cors_allow_origins"] == ["https://a"]
    assert merged["http"]["port"] == 3000


def test_validate_effective_config_accepts_defaults():
    validate_effective_config(merged_with_defaults({}))
