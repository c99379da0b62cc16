"""
Tests for script and style collaborators.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from twinforge.domain.errors import CollaboratorError
from twinforge.infra.collaborators import (
    CommandScriptCompiler,
    ModuleStyleCompiler,
    PassthroughScriptCompiler,
    find_class_identifiers,
    rewrite_class_identifiers,
    run_command,
)


def completed(returncode=0, stdout=b"", stderr=b""):
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


# =============================================================================
# CSS IDENTIFIERS
# =============================================================================


class TestClassIdentifiers:
    def test_order_of_first_appearance(self):
        css = ".b { x: 1 }\n.a .b:hover { y: 2 }\n.c-d, .e_f { z: 3 }"
        assert find_class_identifiers(css) == ["b", "a", "c-d", "e_f"]

    def test_ignores_comments_strings_and_urls(self):
        css = (
            "/* .commented */\n"
            ".real { content: '.quoted'; background: url(img/bg.png); }\n"
            ".size { width: 0.5em; }"
        )
        assert find_class_identifiers(css) == ["real", "size"]

    def test_rewrite(self):
        css = ".title { color: red } /* .title */ .other {}"
        out = rewrite_class_identifiers(css, {"title": "title-abc1234"})
        assert out == ".title-abc1234 { color: red } /* .title */ .other {}"


# =============================================================================
# COMMAND RUNNER
# =============================================================================


class TestRunCommand:
    def test_pipes_source_and_formats_args(self):
        with patch(
            "twinforge.infra.collaborators.subprocess.run", return_value=completed(stdout=b"out")
        ) as mock_run:
            output = run_command(
                ["esbuild", "--format={module_format}", "--keep={unknown}"],
                b"src",
                {"module_format": "iife"},
                timeout=5,
            )

        assert output == b"out"
        args, kwargs = mock_run.call_args
        assert args[0] == ["esbuild", "--format=iife", "--keep={unknown}"]
        assert kwargs["input"] == b"src"
        assert kwargs["timeout"] == 5

    def test_non_zero_exit(self):
        with patch(
            "twinforge.infra.collaborators.subprocess.run",
            return_value=completed(returncode=1, stderr=b"Unexpected token (1:7)"),
        ):
            with pytest.raises(CollaboratorError, match="Unexpected token"):
                run_command(["esbuild"], b"const = ;", {}, timeout=5)

    def test_missing_executable(self):
        with patch(
            "twinforge.infra.collaborators.subprocess.run", side_effect=FileNotFoundError("esbuild")
        ):
            with pytest.raises(CollaboratorError, match="Cannot run"):
                run_command(["esbuild"], b"", {}, timeout=5)

    def test_timeout(self):
        with patch(
            "twinforge.infra.collaborators.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["esbuild"], 5),
        ):
            with pytest.raises(CollaboratorError, match="timed out"):
                run_command(["esbuild"], b"", {}, timeout=5)


class TestScriptCompilers:
    def test_passthrough(self):
        assert PassthroughScriptCompiler().compile(b"x;", {}) == b"x;"

    def test_command_requires_argv(self):
        with pytest.raises(ValueError):
            CommandScriptCompiler([])

    def test_command(self):
        compiler = CommandScriptCompiler(["esbuild", "--loader=jsx"], timeout=7)
        with patch(
            "twinforge.infra.collaborators.subprocess.run", return_value=completed(stdout=b"js")
        ) as mock_run:
            assert compiler.compile(b"<App/>", {}) == b"js"
        assert mock_run.call_args[1]["timeout"] == 7


class TestModuleStyleCompiler:
    def test_plain_css(self):
        output = ModuleStyleCompiler().compile(b".a{}.b{}", {"source_path": "x.css"})
        assert output.css == b".a{}.b{}"
        assert output.identifiers == ("a", "b")

    def test_preprocessor_only_for_scss(self):
        compiler = ModuleStyleCompiler(["sass", "--stdin"])
        with patch(
            "twinforge.infra.collaborators.subprocess.run", return_value=completed(stdout=b".c{}")
        ) as mock_run:
            assert compiler.compile(b"$x: 1; .c{}", {"source_path": "t.scss"}).identifiers == ("c",)
            compiler.compile(b".d{}", {"source_path": "t.css"})
        assert mock_run.call_count == 1

    def test_not_utf8(self):
        with pytest.raises(CollaboratorError):
            ModuleStyleCompiler().compile(b"\xff\xfe", {"source_path": "x.css"})
