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
# ENVIRONMENT INPUTS
# -----------------------------------------------------------------------------
# Responsibility: Read the opaque values the build takes from its
# environment. None of them carry logic:
# - mode selector:  TWINFORGE_ENV, falling back to NODE_ENV
# - proxy backend:  PORT (default 6969)
# - revision:       TWINFORGE_REVISION, falling back to `git rev-parse HEAD`
# -----------------------------------------------------------------------------

import os
import subprocess
from pathlib import Path

from rich.console import Console

from twinforge.domain.errors import ConfigurationError
from twinforge.domain.models import BuildMode

console = Console()

MODE_ENV_VARS = ("TWINFORGE_ENV", "NODE_ENV")
DEFAULT_BACKEND_PORT = 6969
GIT_TIMEOUT_SECONDS = 10
UNKNOWN_REVISION = "unknown"


def resolve_mode(explicit: str | None = None) -> BuildMode:
    """
    Select the build mode.

    An explicit value (CLI flag) wins. Otherwise the first mode variable that
    is set decides: "development" selects development, anything else
    production. Nothing set -> production.
    """
    if explicit:
        try:
            return BuildMode(explicit.lower())
        except ValueError:
            raise ConfigurationError(f"Unknown mode '{explicit}'") from None

    for name in MODE_ENV_VARS:
        value = os.getenv(name)
        if value:
            return BuildMode.DEVELOPMENT if value.lower() == "development" else BuildMode.PRODUCTION
    return BuildMode.PRODUCTION


def backend_port() -> int:
    """Port of the backend the development proxy forwards to."""
    raw = os.getenv("PORT", str(DEFAULT_BACKEND_PORT))
    try:
        port = int(raw)
    except ValueError:
        raise ConfigurationError(f"PORT must be an integer, got '{raw}'") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT out of range: {port}")
    return port


def resolve_revision(cwd: Path | None = None) -> str:
    """Revision identifier injected as a compile-time constant."""
    override = os.getenv("TWINFORGE_REVISION")
    if override:
        return override.strip()

    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        console.print(f"[yellow][ENV] git unavailable ({e}), revision={UNKNOWN_REVISION}[/yellow]")
        return UNKNOWN_REVISION

    if completed.returncode != 0:
        console.print(f"[yellow][ENV] Not a git checkout, revision={UNKNOWN_REVISION}[/yellow]")
        return UNKNOWN_REVISION
    return completed.stdout.strip()
