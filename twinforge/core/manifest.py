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
# THE MANIFEST - SOURCE ID -> DEPLOYED NAME
# -----------------------------------------------------------------------------
# Responsibility: Accumulate one generation's (source id -> deployed name)
# pairs and commit them as a single unit.
#
# Guarantees:
# - At most one registration per source id per generation
# - The manifest file is replaced wholesale: temp write, fsync, os.replace.
#   A concurrent reader sees either the old table or the new one, never a
#   truncated hybrid
# - Server code gets a read-only view (ManifestReader)
# -----------------------------------------------------------------------------

import json
import os
import tempfile
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

from rich.console import Console

from twinforge.domain.errors import ConfigurationError, DuplicateManifestKeyError

console = Console()

MANIFEST_FILENAME = "manifest.json"


class Manifest(Mapping[str, str]):
    """An immutable, committed lookup table."""

    def __init__(self, entries: Mapping[str, str] | None = None, generation: int = 0) -> None:
        self._entries = MappingProxyType(dict(entries or {}))
        self.generation = generation

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Manifest(generation={self.generation}, entries={dict(self._entries)!r})"

    def to_dict(self) -> dict[str, str]:
        return dict(self._entries)


class ManifestBuilder:
    """
    Accumulates entries for one build generation.

    A builder seeded from a committed manifest (incremental development
    updates) may replace each seeded key once; registering any key twice in
    the same generation is a bug in classification or configuration.
    """

    def __init__(self, seed: Mapping[str, str] | None = None, generation: int = 1) -> None:
        self._entries: dict[str, str] = dict(seed or {})
        self._registered: set[str] = set()
        self._generation = generation
        self._lock = threading.Lock()

    def register(self, source_id: str, deployed_name: str) -> None:
        """
        Record one entry.

        Raises:
            DuplicateManifestKeyError: ``source_id`` was already registered
                in this generation.
        """
        with self._lock:
            if source_id in self._registered:
                console.print(f"[red][MANIFEST] Duplicate source id: {source_id}[/red]")
                raise DuplicateManifestKeyError(
                    f"Source id '{source_id}' registered twice in generation {self._generation}",
                    source_path=source_id,
                )
            self._registered.add(source_id)
            self._entries[source_id] = deployed_name

    def discard(self, source_id: str) -> None:
        """Drop an entry (its source was deleted)."""
        with self._lock:
            self._entries.pop(source_id, None)
            self._registered.discard(source_id)

    def build(self) -> Manifest:
        with self._lock:
            return Manifest(self._entries, generation=self._generation)


class ManifestStore:
    """Reads and atomically replaces the persisted manifest file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> Manifest:
        """
        Load the committed manifest (empty when none exists yet).

        Raises:
            ConfigurationError: The file is not a JSON object of strings.
        """
        if not self.path.exists():
            return Manifest()
        try:
            with open(self.path) as f:
                entries = json.load(f)
        except ValueError as e:
            console.print(f"[red][MANIFEST] Corrupt manifest: {self.path}[/red]")
            raise ConfigurationError(
                f"Corrupt manifest {self.path}: {e}", source_path=self.path.name, stage="manifest"
            ) from e

        if not isinstance(entries, dict) or not all(
            isinstance(v, str) for v in entries.values()
        ):
            raise ConfigurationError(
                f"Manifest {self.path} must map source ids to names",
                source_path=self.path.name,
                stage="manifest",
            )
        return Manifest(entries)

    def commit(self, manifest: Manifest) -> Path:
        """
        Replace the manifest file with ``manifest`` in one atomic step.

        On any failure the temp file is removed and the previous manifest is
        left exactly as it was.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(manifest.to_dict(), f, indent=2, sort_keys=True)
                    f.write("\n")
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

        console.print(
            f"[green][MANIFEST] Committed generation {manifest.generation} "
            f"({len(manifest)} entries): {self.path}[/green]"
        )
        return self.path


class ManifestReader:
    """
    Read-only view of the committed manifest for server-side rendering.

    The file is re-read whenever its modification time changes, so a running
    server picks up a new generation as soon as it is committed.
    """

    def __init__(self, path: Path, public_path: str = "/dist/") -> None:
        self._path = Path(path)
        self._public_path = public_path if public_path.endswith("/") else public_path + "/"
        self._stamp: int | None = None
        self._table: Mapping[str, str] = MappingProxyType({})

    @property
    def entries(self) -> Mapping[str, str]:
        self._refresh()
        return self._table

    def _refresh(self) -> None:
        try:
            stamp = self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return
        if stamp != self._stamp:
            with open(self._path) as f:
                self._table = MappingProxyType(json.load(f))
            self._stamp = stamp

    def resolve(self, source_id: str) -> str:
        """Deployed name for a source id (KeyError if unknown)."""
        return self.entries[source_id]

    def url_for(self, source_id: str) -> str:
        """Public URL of a source id's deployed artifact."""
        return f"{self._public_path}{self.resolve(source_id)}"
