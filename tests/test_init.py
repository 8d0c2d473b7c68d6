"""
Tests for context_forge_mcp.__init__ (package docstring, version, logging).
"""

import logging


def test_imports_and_version():
    import context_forge_mcp as mod

    assert isinstance(mod.__version__, str)
    assert "__version__" in mod.__all__


def test_version_matches_distribution_default():
    import context_forge_mcp as mod

    assert mod.__version__ == "1.0.0"


def test_logger_null_handler():
    import context_forge_mcp as mod

    logger = getattr(mod, "_LOGGER", None)
    assert logger is not None
    assert any(isinstance(h, logging.NullHandler) for h in logger.handlers)


def test_subpackages_export_public_api():
    from context_forge_mcp import db, mcp_server, server, sessions, tools

    assert "TaskStore" in db.__all__
    assert "create_app" in mcp_server.__all__
    assert "ProtocolServerFactory" in server.__all__
    assert "SessionRegistry" in sessions.__all__
    assert "task_tools" in tools.__all__
