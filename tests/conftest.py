"""Pytest fixtures for Things MCP tests."""
import json
from pathlib import Path
from typing import Optional
from unittest.mock import Mock

import pytest


@pytest.fixture(autouse=True)
def mock_config(tmp_path: Path, monkeypatch):
    """Point the config module at a temporary config file.

    Autouse so no test ever reads the real ~/.things-mcp/config.json or
    the developer's THINGS_AUTH_TOKEN.
    """
    import things_mcp.tools.config as config_module

    config_file = tmp_path / "things-mcp" / "config.json"
    config_file.parent.mkdir(parents=True)

    monkeypatch.setattr(config_module, "get_config_path", lambda: config_file)
    monkeypatch.delenv(config_module.AUTH_TOKEN_ENV, raising=False)
    config_module.clear_config_cache()

    class ConfigHelper:
        def __init__(self):
            self.path = config_file

        def set(self, **kwargs):
            """Update config values."""
            data = json.loads(self.path.read_text()) if self.path.exists() else {}
            data.update(kwargs)
            self.path.write_text(json.dumps(data))
            config_module.clear_config_cache()

        def delete_file(self):
            """Delete the config file entirely."""
            if self.path.exists():
                self.path.unlink()
            config_module.clear_config_cache()

    yield ConfigHelper()
    config_module.clear_config_cache()


@pytest.fixture
def mock_subprocess(monkeypatch):
    """Mock subprocess.run for osascript/open calls."""
    import subprocess

    class SubprocessMock:
        """Helper to mock subprocess.run with custom behaviors."""
        def __init__(self):
            self.calls = []
            self.mock_return = None
            self.mock_side_effect = None

        @property
        def call_count(self):
            return len(self.calls)

        @property
        def last_command(self):
            return self.calls[-1][0][0] if self.calls else None

        def set_return(self, returncode=0, stdout="", stderr=""):
            """Set what subprocess.run should return."""
            result = Mock()
            result.returncode = returncode
            result.stdout = stdout
            result.stderr = stderr
            self.mock_return = result

        def set_json(self, data):
            """Return data as osascript JSON stdout."""
            self.set_return(stdout=json.dumps(data) + "\n")

        def set_side_effect(self, side_effect):
            """Set a side effect (e.g., exception)."""
            self.mock_side_effect = side_effect

        def __call__(self, *args, **kwargs):
            self.calls.append((args, kwargs))
            if self.mock_side_effect:
                if isinstance(self.mock_side_effect, Exception):
                    raise self.mock_side_effect
                return self.mock_side_effect(*args, **kwargs)
            return self.mock_return if self.mock_return else Mock(returncode=0, stdout="", stderr="")

    mock = SubprocessMock()
    monkeypatch.setattr(subprocess, "run", mock)
    return mock


@pytest.fixture
def make_todo():
    """Factory for JXA-shaped to-do records."""
    counter = {"n": 0}

    def _make(
        name: str = "Test Todo",
        status: str = "open",
        due_date: Optional[str] = None,
        activation_date: Optional[str] = None,
        todo_id: Optional[str] = None,
    ) -> dict:
        counter["n"] += 1
        return {
            "id": todo_id or f"t-{counter['n']}",
            "name": name,
            "status": status,
            "notes": "",
            "tags": "",
            "dueDate": due_date,
            "activationDate": activation_date,
            "creationDate": "2026-01-01T00:00:00.000Z",
            "modificationDate": "2026-02-27T00:00:00.000Z",
            "completionDate": None,
            "projectName": None,
            "areaName": None,
        }

    return _make
