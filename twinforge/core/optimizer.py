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
# THE OPTIMIZER - PRODUCTION BROWSER OUTPUT
# -----------------------------------------------------------------------------
# Responsibility: Post-transform optimization and pre-emission cleanup.
#
# Phases (production + browser only):
# - scripts: rjsmin (deterministic, safe on already-minified input)
# - styles:  rcssmin, then collapse identical top-level rule blocks
# Optimized outputs are renamed through the Output Namer so production names
# always digest the bytes actually deployed.
#
# Cleanup removes every previously emitted file in an output directory except
# the manifest. It is a guarded step: once emission of a generation started,
# cleanup refuses to run.
# -----------------------------------------------------------------------------

import dataclasses
import os
from pathlib import Path

import rcssmin
import rjsmin
from rich.console import Console

from twinforge.core.naming import OutputNamer
from twinforge.domain.models import (
    Asset,
    AssetClass,
    BuildMode,
    BuildTarget,
    Configuration,
    TransformResult,
)

console = Console()


class CleanupOrderError(RuntimeError):
    """Raised when cleanup is requested after emission has started."""

    pass


def minify_script(source: bytes) -> bytes:
    return rjsmin.jsmin(source.decode("utf-8")).encode("utf-8")


def split_rules(css: str) -> list[str]:
    """Split minified CSS into top-level statements (rules, at-rules, blocks)."""
    rules, depth, start, quote = [], 0, 0, ""
    for i, char in enumerate(css):
        if quote:
            if char == quote and css[i - 1] != "\\":
                quote = ""
            continue
        if char in "\"'":
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                rules.append(css[start:i + 1])
                start = i + 1
        elif char == ";" and depth == 0:
            rules.append(css[start:i + 1])
            start = i + 1
    if css[start:].strip():
        rules.append(css[start:])
    return rules


def dedupe_rules(css: str) -> str:
    """Drop repeated identical rules, keeping the last (cascade wins there)."""
    rules = split_rules(css)
    last_seen = {rule: i for i, rule in enumerate(rules)}
    return "".join(rule for i, rule in enumerate(rules) if last_seen[rule] == i)


def minify_style(source: bytes) -> bytes:
    return dedupe_rules(rcssmin.cssmin(source.decode("utf-8"))).encode("utf-8")


def should_optimize(config: Configuration) -> bool:
    return (
        config.optimization_enabled
        and config.mode == BuildMode.PRODUCTION
        and config.target == BuildTarget.BROWSER
    )


class Optimizer:
    """Production-only minification and output-directory cleanup."""

    def __init__(self, namer: OutputNamer | None = None) -> None:
        self._namer = namer or OutputNamer()

    def optimize(
        self, config: Configuration, results: list[TransformResult]
    ) -> list[TransformResult]:
        """
        Minify scripts and styles; return new, renamed results.

        Non-production or non-browser configurations are returned unchanged.
        """
        if not should_optimize(config):
            return results

        optimized = []
        scripts = styles = 0
        for result in results:
            if result.asset_class == AssetClass.SCRIPT:
                output = minify_script(result.output)
                scripts += 1
            elif result.asset_class == AssetClass.STYLESHEET:
                output = minify_style(result.output)
                styles += 1
            else:
                optimized.append(result)
                continue

            asset = Asset(result.source_path, result.output, result.asset_class)
            optimized.append(
                dataclasses.replace(
                    result, output=output, final_name=self._namer.name(asset, config, output)
                )
            )

        console.print(
            f"[green][OPTIMIZER] Minified {scripts} script(s), {styles} style sheet(s)[/green]"
        )
        return optimized

    def clean(self, output_dir: Path, manifest_path: Path, emission_started: bool = False) -> int:
        """
        Remove every previously emitted file under ``output_dir`` except the
        manifest file.

        Returns:
            Number of files removed.

        Raises:
            CleanupOrderError: Emission of the new generation already began.
        """
        if emission_started:
            raise CleanupOrderError("Cleanup must run before the generation emits any file")

        output_dir = Path(output_dir)
        if not output_dir.is_dir():
            return 0

        keep = Path(manifest_path).resolve()
        removed = 0
        for dirpath, dirnames, filenames in os.walk(output_dir, topdown=False):
            for filename in filenames:
                path = Path(dirpath) / filename
                if path.resolve() == keep:
                    continue
                path.unlink()
                removed += 1
            for dirname in dirnames:
                directory = Path(dirpath) / dirname
                if directory.is_dir() and not any(directory.iterdir()):
                    directory.rmdir()

        console.print(f"[yellow][OPTIMIZER] Cleanup removed {removed} file(s) from {output_dir}[/yellow]")
        return removed
