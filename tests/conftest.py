"""
Pytest configuration and fixtures for Twinforge tests.
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from twinforge.domain.errors import CollaboratorError
from twinforge.domain.models import BaseConfiguration

# Keep the environment from leaking into mode/revision resolution
for _name in ("TWINFORGE_ENV", "NODE_ENV", "TWINFORGE_REVISION", "PORT"):
    os.environ.pop(_name, None)

SCENARIO_FILES = {
    "app.js": "import React from 'react';\nconsole.log(WEBPACK.GIT_REVISION);\n",
    "theme.scss": "/* theme */\n.title {\n  color: red;\n}\n.page-header {\n  margin: 0;\n}\n",
}


class FlakyScriptCompiler:
    """Script collaborator that can be switched to fail."""

    def __init__(self) -> None:
        self.fail = False
        self.calls = 0

    def compile(self, source, options):
        self.calls += 1
        if self.fail:
            raise CollaboratorError("Unexpected token (1:7)")
        return source


@pytest.fixture
def make_project(tmp_path):
    """Write a source tree under tmp_path/src and return its template."""

    def _make(files=None, **overrides):
        src = tmp_path / "src"
        src.mkdir(exist_ok=True)
        for rel_path, content in (SCENARIO_FILES if files is None else files).items():
            path = src / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                content = content.encode("utf-8")
            path.write_bytes(content)

        settings = {
            "project_root": tmp_path,
            "entry": "app.js",
            "revision": "abc123",
            "workers": 2,
            "server": {"entry": "app.js", "entry_filename": "server.js"},
        }
        settings.update(overrides)
        return BaseConfiguration(**settings)

    return _make


@pytest.fixture
def flaky_compiler():
    return FlakyScriptCompiler()


@pytest.fixture
def mock_recompressor():
    """Image collaborator that records calls and shrinks its input."""
    recompressor = MagicMock()
    recompressor.recompress.side_effect = lambda content, suffix, **kw: content[: len(content) // 2]
    return recompressor
