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
# THE CLASSIFIER - ASSET CLASSES
# -----------------------------------------------------------------------------
# Responsibility: Decide which transform chain applies to a source file.
#
# Rules:
# - Classification is a pure function of the path and the configured patterns
# - Paths outside the source root are never classified (pass-through)
# - A path inside the source root that matches nothing is a hard error, so
#   no asset can silently drop out of the manifest
# -----------------------------------------------------------------------------

import os
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping, Sequence

from rich.console import Console

from twinforge.domain.errors import ClassificationError
from twinforge.domain.models import AssetClass

console = Console()


def path_matches(rel_path: str, pattern: str) -> bool:
    """
    Match a source-relative POSIX path against a glob pattern.

    Patterns without a slash match the file name only; ``**/`` prefixes also
    match at the top level.
    """
    if "/" not in pattern:
        return fnmatchcase(PurePosixPath(rel_path).name, pattern)
    if fnmatchcase(rel_path, pattern):
        return True
    if pattern.startswith("**/"):
        return path_matches(rel_path, pattern[3:])
    return False


def is_ignored(rel_path: str, ignore: Iterable[str]) -> bool:
    """True if any path component (or the whole path) matches an ignore pattern."""
    parts = PurePosixPath(rel_path).parts
    for pattern in ignore:
        if "/" in pattern:
            if path_matches(rel_path, pattern):
                return True
        elif any(fnmatchcase(part, pattern) for part in parts):
            return True
    return False


class AssetClassifier:
    """
    Maps source files to asset classes using configurable glob patterns.

    Patterns are checked in AssetClass declaration order; the first class
    with a matching pattern wins.
    """

    def __init__(self, source_root: Path, patterns: Mapping[AssetClass, Sequence[str]]) -> None:
        self._root = Path(source_root).resolve()
        self._patterns = {cls: tuple(patterns.get(cls, ())) for cls in AssetClass}

    @property
    def source_root(self) -> Path:
        return self._root

    def relative(self, path: str | os.PathLike) -> str | None:
        """Return the source-relative POSIX path, or None when outside the root."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self._root / candidate
        candidate = Path(os.path.normpath(candidate))
        try:
            return candidate.relative_to(self._root).as_posix()
        except ValueError:
            return None

    def classify(self, path: str | os.PathLike) -> AssetClass | None:
        """
        Classify a path.

        Returns:
            The asset class, or None for paths outside the source root.

        Raises:
            ClassificationError: Path is inside the root but matches no class.
        """
        rel_path = self.relative(path)
        if rel_path is None or rel_path == ".":
            return None

        asset_class = self.match(rel_path)
        if asset_class is not None:
            return asset_class

        console.print(f"[red][CLASSIFIER] Unclassified asset: {rel_path}[/red]")
        raise ClassificationError(
            f"No asset class matches '{rel_path}' under the source root", source_path=rel_path
        )

    def match(self, rel_path: str) -> AssetClass | None:
        """First class whose patterns match ``rel_path``; None if none does."""
        for asset_class, patterns in self._patterns.items():
            if any(path_matches(rel_path, p) for p in patterns):
                return asset_class
        return None

    def discover(self, include: Sequence[str], ignore: Sequence[str] = ()) -> list[str]:
        """
        List source-relative files selected by ``include`` and not ignored.

        The result is sorted so builds are deterministic.
        """
        found = []
        for dirpath, _, filenames in os.walk(self._root):
            for filename in filenames:
                rel_path = (Path(dirpath) / filename).relative_to(self._root).as_posix()
                if is_ignored(rel_path, ignore):
                    continue
                if any(path_matches(rel_path, p) for p in include):
                    found.append(rel_path)
        return sorted(found)
