import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from context_forge_mcp.config import McpConfigurationError
from context_forge_mcp.config._sections import merged_with_defaults


@pytest.fixture
def main_module():
    """Import main with its import-time setup patched out."""
    with (
        patch(
            "context_forge_mcp._logging.setup_logging", MagicMock()
        ) as setup_logging_mock,
        patch(
            "context_forge_mcp._logging.setup_global_exception_logging", MagicMock()
        ) as setup_global_exception_logging_mock,
        patch(
            "context_forge_mcp._monkeypatch.monkeypatch_uvicorn_exception_handling",
            MagicMock(),
        ) as monkeypatch_uvicorn_mock,
    ):
        sys.modules.pop("context_forge_mcp.mcp_server.main", None)
        import context_forge_mcp.mcp_server.main as mod

        setup_logging_mock.assert_called_once()
        setup_global_exception_logging_mock.assert_called_once()
        monkeypatch_uvicorn_mock.assert_called_once()
        yield mod
    sys.modules.pop("context_forge_mcp.mcp_server.main", None)


@pytest.fixture
def config():
    return merged_with_defaults({"http": {"host": "0.0.0.0", "port": 8123}})


@pytest.fixture
def config_manager(main_module, config):
    manager = MagicMock()
    manager.get_config = AsyncMock(return_value=config)
    with patch.object(main_module, "ConfigManager", return_value=manager):
        yield manager


def test_run_server_sse_uses_configured_address(main_module, config, config_manager):
    app = object()
    with (
        patch.object(main_module, "create_app", return_value=app) as create_app_mock,
        patch.object(main_module.uvicorn, "run") as uvicorn_run,
    ):
        main_module.run_server("sse")
    create_app_mock.assert_called_once_with(config)
    uvicorn_run.assert_called_once_with(app, host="0.0.0.0", port=8123)


def test_run_server_sse_cli_overrides(main_module, config_manager):
    with (
        patch.object(main_module, "create_app", return_value=object()),
        patch.object(main_module.uvicorn, "run") as uvicorn_run,
    ):
        main_module.run_server("sse", host="127.0.0.1", port=9000)
    assert uvicorn_run.call_args.kwargs == {"host": "127.0.0.1", "port": 9000}


def test_run_server_stdio(main_module, config, config_manager):
    with (
        patch.object(main_module, "run_stdio", AsyncMock()) as run_stdio_mock,
        patch.object(main_module.uvicorn, "run") as uvicorn_run,
    ):
        main_module.run_server("stdio")
    run_stdio_mock.assert_awaited_once_with(config)
    uvicorn_run.assert_not_called()


def test_run_server_logs_stopped_on_failure(main_module, config_manager):
    mock_logger_info = MagicMock()
    with (
        patch.object(main_module, "create_app", return_value=object()),
        patch.object(main_module.uvicorn, "run", side_effect=RuntimeError("fail")),
        patch.object(main_module._LOGGER, "info", mock_logger_info),
    ):
        with pytest.raises(RuntimeError):
            main_module.run_server("sse")
    assert any(
        "stopped" in str(call_args[0][0]).lower()
        for call_args in mock_logger_info.call_args_list
    )


def test_run_server_port_bind_failure_exits(main_module, config_manager):
    # uvicorn exits the process when it cannot bind
    with (
        patch.object(main_module, "create_app", return_value=object()),
        patch.object(main_module.uvicorn, "run", side_effect=SystemExit(1)),
    ):
        with pytest.raises(SystemExit) as exc_info:
            main_module.run_server("sse")
    assert exc_info.value.code == 1


def test_run_server_invalid_config_exits(main_module, config_manager):
    config_manager.get_config.side_effect = McpConfigurationError("bad port")
    with patch.object(main_module.uvicorn, "run") as uvicorn_run:
        with pytest.raises(SystemExit) as exc_info:
            main_module.run_server("sse")
    assert exc_info.value.code == 1
    uvicorn_run.assert_not_called()


@pytest.mark.parametrize(
    "argv,expected",
    [
        (["prog"], ("sse", None, None)),
        (["prog", "-t", "stdio"], ("stdio", None, None)),
        (
            ["prog", "--transport", "sse", "--host", "0.0.0.0", "--port", "8080"],
            ("sse", "0.0.0.0", 8080),
        ),
    ],
)
def test_main_invokes_run_server(main_module, argv, expected):
    called = {}

    def fake_run_server(transport, *, host=None, port=None):
        called["args"] = (transport, host, port)

    with (
        patch.object(main_module, "run_server", fake_run_server),
        patch("sys.argv", argv),
    ):
        main_module.main()
    assert called["args"] == expected


def test_main_rejects_unknown_transport(main_module):
    with patch("sys.argv", ["prog", "-t", "streamable-http"]):
        with pytest.raises(SystemExit):
            main_module.main()
