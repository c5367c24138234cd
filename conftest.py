"""Root-level conftest.py: keep every test away from the real ~/.azure-boards-cli.

AZB_HOME points the config directory (token, templates, keybinds, logs)
somewhere disposable, and AZB_TOKEN is cleared so a developer's own token
never leaks into a test run.
"""

import shutil
import tempfile

import pytest


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch):
    home = tempfile.mkdtemp(prefix="azb-home-")
    monkeypatch.setenv("AZB_HOME", home)
    monkeypatch.delenv("AZB_TOKEN", raising=False)
    monkeypatch.delenv("EDITOR", raising=False)
    yield
    shutil.rmtree(home, ignore_errors=True)
