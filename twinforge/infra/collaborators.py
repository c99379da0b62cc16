# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# COLLABORATORS - SCRIPT & STYLE TRANSFORMS
# -----------------------------------------------------------------------------
# Responsibility: The narrow contracts to external transform tools.
#
# The pipeline never transforms script syntax or preprocesses stylesheets
# itself. It calls:
# - ScriptCompiler.compile(source, options) -> bytes
# - StyleCompiler.compile(source, options) -> StyleOutput(css, identifiers)
#
# Command-backed implementations pipe the source through an external tool
# (stdin -> stdout) with a hard timeout, like any other subprocess we run.
# -----------------------------------------------------------------------------

import re
import subprocess
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from rich.console import Console

from twinforge.domain.errors import CollaboratorError

console = Console()

# Local class selectors; comments, strings and url(...) are matched first so
# that dots inside them are never taken for selectors.
CSS_TOKEN_RE = re.compile(
    r"""
    (?P<comment>/\*.*?\*/)
    |(?P<string>"(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*')
    |(?P<url>url\(\s*[^)]*\))
    |\.(?P<ident>-?[_a-zA-Z][_a-zA-Z0-9-]*)
    """,
    re.S | re.X,
)


def find_class_identifiers(css: str) -> list[str]:
    """Local class identifiers in order of first appearance."""
    seen: dict[str, None] = {}
    for match in CSS_TOKEN_RE.finditer(css):
        ident = match.group("ident")
        if ident:
            seen.setdefault(ident, None)
    return list(seen)


def rewrite_class_identifiers(css: str, table: Mapping[str, str]) -> str:
    """Replace every local class selector found in ``table``."""

    def _replace(match: re.Match) -> str:
        ident = match.group("ident")
        if ident and ident in table:
            return f".{table[ident]}"
        return match.group(0)

    return CSS_TOKEN_RE.sub(_replace, css)


class _Placeholders(dict):
    """format_map helper that leaves unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def run_command(command: Sequence[str], source: bytes, options: Mapping[str, Any], timeout: int) -> bytes:
    """
    Pipe ``source`` through an external command.

    Arguments may reference options, e.g. ``--format={module_format}``.

    Raises:
        CollaboratorError: Non-zero exit, missing executable or timeout.
    """
    values = _Placeholders({k: str(v) for k, v in options.items()})
    argv = [arg.format_map(values) for arg in command]

    try:
        completed = subprocess.run(argv, input=source, capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise CollaboratorError(f"'{argv[0]}' timed out after {timeout}s") from e
    except OSError as e:
        raise CollaboratorError(f"Cannot run '{argv[0]}': {e}") from e

    if completed.returncode != 0:
        stderr = completed.stderr.decode("utf-8", errors="replace").strip()
        raise CollaboratorError(f"'{argv[0]}' exited with {completed.returncode}: {stderr[:500]}")

    return completed.stdout


# =============================================================================
# SCRIPT COLLABORATORS
# =============================================================================


class ScriptCompiler(Protocol):
    """External script-transform capability."""

    def compile(self, source: bytes, options: Mapping[str, Any]) -> bytes: ...


class PassthroughScriptCompiler:
    """Used when no script command is configured: source is already runnable."""

    def compile(self, source: bytes, options: Mapping[str, Any]) -> bytes:
        return source


class CommandScriptCompiler:
    """Runs a configured command (e.g. a JSX transpiler) per script asset."""

    def __init__(self, command: Sequence[str], timeout: int = 60) -> None:
        if not command:
            raise ValueError("script command must not be empty")
        self._command = list(command)
        self._timeout = timeout

    def compile(self, source: bytes, options: Mapping[str, Any]) -> bytes:
        return run_command(self._command, source, options, self._timeout)


# =============================================================================
# STYLE COLLABORATORS
# =============================================================================


@dataclass(frozen=True)
class StyleOutput:
    """Compiled CSS plus the local class identifiers it declares."""

    css: bytes
    identifiers: tuple[str, ...]


class StyleCompiler(Protocol):
    """External stylesheet-transform capability."""

    def compile(self, source: bytes, options: Mapping[str, Any]) -> StyleOutput: ...


class ModuleStyleCompiler:
    """
    CSS-module style compiler.

    Runs the optional preprocessor command for ``.scss`` sources, then
    reports every local class selector so the chain can rewrite them.
    Without a command, ``.scss`` sources are taken as plain CSS.
    """

    def __init__(self, preprocess_command: Sequence[str] | None = None, timeout: int = 60) -> None:
        self._command = list(preprocess_command) if preprocess_command else None
        self._timeout = timeout

    def compile(self, source: bytes, options: Mapping[str, Any]) -> StyleOutput:
        source_path = str(options.get("source_path", ""))
        if self._command and source_path.endswith(".scss"):
            source = run_command(self._command, source, options, self._timeout)

        try:
            css = source.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CollaboratorError(f"Stylesheet is not valid UTF-8: {e}") from e

        return StyleOutput(css=css.encode("utf-8"), identifiers=tuple(find_class_identifiers(css)))
