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
# THE WATCH LOOP - DEVELOPMENT REBUILDS
# -----------------------------------------------------------------------------
# Responsibility: Poll the source tree and rebuild only what changed.
#
# - Changed/added file: re-run that asset's chain, commit its manifest entry,
#   notify live-reload clients
# - Deleted file: drop its manifest entry
# - Any pipeline error is reported and the loop keeps waiting; the previous
#   output stays live
# The loop has no natural end. It stops when the stop event is set (process
# shutdown).
# -----------------------------------------------------------------------------

import os
import threading
from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.markup import escape

from twinforge.core.orchestrator import BuildOrchestrator
from twinforge.domain.errors import PipelineError

console = Console()

POLL_INTERVAL_SECONDS = 0.5


class Watcher:
    """Polling file watcher driving incremental rebuilds."""

    def __init__(
        self,
        orchestrator: BuildOrchestrator,
        source_root: Path,
        notify: Callable[[dict], object] | None = None,
        interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._orchestrator = orchestrator
        self._root = Path(source_root)
        self._notify = notify
        self._interval = interval
        self._snapshot = self.snapshot()

    def snapshot(self) -> dict[str, int]:
        """Modification times of every file under the source root."""
        stamps = {}
        for dirpath, _, filenames in os.walk(self._root):
            for filename in filenames:
                path = os.path.join(dirpath, filename)
                try:
                    stamps[path] = os.stat(path).st_mtime_ns
                except FileNotFoundError:
                    continue
        return stamps

    def poll_once(self) -> list[str]:
        """
        Apply every change since the previous poll.

        Returns:
            Paths whose rebuild or removal was committed.
        """
        current = self.snapshot()
        changed = sorted(p for p, stamp in current.items() if self._snapshot.get(p) != stamp)
        removed = sorted(p for p in self._snapshot if p not in current)
        self._snapshot = current

        if not changed and not removed:
            return []

        if not self._orchestrator.has_committed:
            return self._full_rebuild(changed + removed)

        applied = []
        for path in removed:
            try:
                dropped = self._orchestrator.remove(path)
            except (PipelineError, OSError) as e:
                self._report(e)
                continue
            if dropped:
                applied.append(path)
                self._publish({"type": "removed", "path": path})

        for path in changed:
            try:
                result = self._orchestrator.rebuild(path)
            except (PipelineError, OSError) as e:
                self._report(e)
                continue
            if result is None:
                continue
            applied.append(path)
            console.print(f"[green][WATCH] {result.source_path} -> {result.final_name}[/green]")
            self._publish(
                {"type": "change", "source": result.source_path, "name": result.final_name}
            )
        return applied

    def _full_rebuild(self, paths: list[str]) -> list[str]:
        """No generation committed yet: retry the whole build."""
        try:
            self._orchestrator.run()
        except (PipelineError, OSError) as e:
            self._report(e)
            return []
        self._publish({"type": "rebuild"})
        return paths

    def _publish(self, event: dict) -> None:
        if self._notify is not None:
            self._notify(event)

    def _report(self, error: Exception) -> None:
        stage = getattr(error, "stage", None) or "io"
        where = getattr(error, "source_path", None) or getattr(error, "filename", None) or "-"
        console.print(f"[red][WATCH] {stage} failed for {where}: {escape(str(error))}[/red]")
        console.print("[yellow][WATCH] Previous output kept live; waiting for changes...[/yellow]")

    def run(self, stop: threading.Event) -> None:
        """Poll until ``stop`` is set."""
        console.print(f"[cyan][WATCH] Watching {self._root} (every {self._interval}s)[/cyan]")
        while not stop.wait(self._interval):
            self.poll_once()
        console.print("[yellow][WATCH] Stopped[/yellow]")
