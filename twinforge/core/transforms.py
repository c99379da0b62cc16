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
# THE TRANSFORM CHAIN - STAGE EXECUTOR
# -----------------------------------------------------------------------------
# Responsibility: Run an asset through the ordered stage descriptors its
# class is wired to in the Configuration.
#
# Contract per stage: (buffer, metadata, options) -> (buffer, metadata).
# Stages run strictly in sequence. A failure at stage k stops the chain
# before stage k+1 and surfaces as CompilationError tagged with the asset's
# source path and the stage name. Nothing is swallowed.
# -----------------------------------------------------------------------------

import hashlib
import json
import re
import threading
from pathlib import PurePosixPath
from typing import Any, Callable

from rich.console import Console

from twinforge.core.naming import OutputNamer
from twinforge.domain.errors import CompilationError, ConfigurationError, PipelineError
from twinforge.domain.models import (
    Asset,
    BuildMode,
    Configuration,
    EmittedFile,
    ExternalizationPolicy,
    StageKind,
    TransformResult,
)
from twinforge.infra.collaborators import (
    ModuleStyleCompiler,
    PassthroughScriptCompiler,
    ScriptCompiler,
    StyleCompiler,
    rewrite_class_identifiers,
)
from twinforge.infra.images import ImageRecompressor

console = Console()

Metadata = dict[str, Any]
StageHandler = Callable[[Asset, bytes, Metadata, dict[str, Any]], tuple[bytes, Metadata]]

# Module specifiers in import/export-from/dynamic import/require forms
SPECIFIER_RE = re.compile(
    r"""(?P<prefix>\bfrom\s*|\bimport\s*\(\s*|\bimport\s+|\brequire\s*\(\s*)"""
    r"""(?P<quote>['"])(?P<spec>[^'"\n]+)(?P=quote)"""
)

LIVE_RELOAD_MARKER = "/* twinforge:live-reload */"
LIVE_RELOAD_ENDPOINT = "/__livereload"
LIVE_RELOAD_HOOK = """
{marker}
;(function () {{
  if (typeof window === 'undefined' || window.__twinforgeLiveReload) return;
  var source = new EventSource('{endpoint}');
  window.__twinforgeLiveReload = source;
  source.onmessage = function () {{ window.location.reload(); }};
}})();
"""

STYLE_HASH_LENGTH = 7


def is_bare_specifier(spec: str) -> bool:
    """``react`` / ``@scope/pkg`` are bare; ``./x``, ``../x`` and ``/x`` are not."""
    return not spec.startswith((".", "/")) and ":" not in spec


def apply_alias(spec: str, aliases: dict[str, str]) -> str:
    """Rewrite ``spec`` through the first alias naming it or one of its subpaths."""
    for name, target in aliases.items():
        if spec == name or spec.startswith(name + "/"):
            return target + spec[len(name):]
    return spec


def camel_case(identifier: str) -> str:
    """``page-header`` -> ``pageHeader``."""
    head, *rest = re.split(r"[-_]+", identifier.strip("-_")) or [""]
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def style_hash(source_path: str, content: bytes) -> str:
    digest = hashlib.sha256(source_path.encode("utf-8") + b"\0" + content)
    return digest.hexdigest()[:STYLE_HASH_LENGTH]


class TransformChain:
    """
    Generic executor for one Configuration's stage descriptors.

    One chain instance serves one target for one build generation; the style
    identifier registry it holds detects rewritten-name collisions across
    every stylesheet of that generation.
    """

    def __init__(
        self,
        config: Configuration,
        script_compiler: ScriptCompiler | None = None,
        style_compiler: StyleCompiler | None = None,
        image_recompressor: ImageRecompressor | None = None,
        namer: OutputNamer | None = None,
    ) -> None:
        self._config = config
        self._script_compiler = script_compiler or PassthroughScriptCompiler()
        self._style_compiler = style_compiler or ModuleStyleCompiler()
        self._images = image_recompressor or ImageRecompressor()
        self._namer = namer or OutputNamer()
        self._style_names: dict[str, tuple[str, str]] = {}
        self._style_lock = threading.Lock()
        self._handlers: dict[StageKind, StageHandler] = {
            StageKind.ALIAS: self._alias,
            StageKind.DEFINE: self._define,
            StageKind.COMPILE: self._compile,
            StageKind.LIVE_RELOAD: self._live_reload,
            StageKind.EXTRACT_STYLE: self._extract_style,
            StageKind.RECOMPRESS: self._recompress,
            StageKind.PASSTHROUGH: self._passthrough,
            StageKind.FINGERPRINT: self._fingerprint,
        }

    @property
    def config(self) -> Configuration:
        return self._config

    def run(self, asset: Asset) -> TransformResult:
        """
        Run ``asset`` through its class's chain.

        Raises:
            ConfigurationError: No chain is wired for the asset's class.
            CompilationError: A stage failed.
        """
        stages = self._config.chains.get(asset.detected_class)
        if stages is None:
            raise ConfigurationError(
                f"No {asset.detected_class.value} chain is wired for the "
                f"{self._config.target.value} target",
                source_path=asset.source_path,
            )

        buffer: bytes = asset.content
        metadata: Metadata = {}
        for descriptor in stages:
            stage = descriptor.kind.value
            try:
                buffer, metadata = self._handlers[descriptor.kind](
                    asset, buffer, dict(metadata), dict(descriptor.options)
                )
            except PipelineError:
                raise
            except Exception as e:
                console.print(f"[red][CHAIN] {asset.source_path}: {stage} failed: {e}[/red]")
                raise CompilationError(
                    f"Stage '{stage}' failed for {asset.source_path}: {e}",
                    source_path=asset.source_path,
                    stage=stage,
                    cause=e,
                ) from e

        final_name = metadata.pop("final_name", None) or self._namer.name(
            asset, self._config, buffer
        )
        side_effect_files = tuple(metadata.pop("side_effect_files", ()))
        return TransformResult(
            source_path=asset.source_path,
            asset_class=asset.detected_class,
            output=buffer,
            final_name=final_name,
            side_effect_files=side_effect_files,
            metadata=metadata,
        )

    # =========================================================================
    # SCRIPT STAGES
    # =========================================================================

    def _alias(self, asset, buffer, metadata, options):
        aliases = self._config.module_aliases
        if not aliases:
            return buffer, metadata

        def _replace(match: re.Match) -> str:
            spec = apply_alias(match.group("spec"), aliases)
            return f"{match.group('prefix')}{match.group('quote')}{spec}{match.group('quote')}"

        text = SPECIFIER_RE.sub(_replace, buffer.decode("utf-8"))
        return text.encode("utf-8"), metadata

    def _define(self, asset, buffer, metadata, options):
        text = buffer.decode("utf-8")
        for name, value in self._config.defines.items():
            pattern = r"(?<![\w$.])" + re.escape(name) + r"(?![\w$])"
            text = re.sub(pattern, lambda _: value, text)
        return text.encode("utf-8"), metadata

    def _compile(self, asset, buffer, metadata, options):
        externalize = self._config.externalization == ExternalizationPolicy.RUNTIME_DEPENDENCIES
        compile_options = {
            "source_path": asset.source_path,
            "target": self._config.target.value,
            "mode": self._config.mode.value,
            "module_format": self._config.output.module_format,
            "externalize": externalize,
            "entry": asset.source_path == self._config.entry_point,
            **options,
        }
        output = self._script_compiler.compile(buffer, compile_options)

        if externalize:
            specs = {m.group("spec") for m in SPECIFIER_RE.finditer(output.decode("utf-8"))}
            metadata["externals"] = sorted(s for s in specs if is_bare_specifier(s))
        return output, metadata

    def _live_reload(self, asset, buffer, metadata, options):
        if self._config.mode != BuildMode.DEVELOPMENT:
            return buffer, metadata
        hook = LIVE_RELOAD_HOOK.format(
            marker=LIVE_RELOAD_MARKER, endpoint=options.get("endpoint", LIVE_RELOAD_ENDPOINT)
        )
        metadata["live_reload"] = True
        return buffer + hook.encode("utf-8"), metadata

    # =========================================================================
    # STYLE STAGES
    # =========================================================================

    def _extract_style(self, asset, buffer, metadata, options):
        compiled = self._style_compiler.compile(
            buffer, {"source_path": asset.source_path, "mode": self._config.mode.value, **options}
        )

        suffix = style_hash(asset.source_path, asset.content)
        table = {ident: f"{ident}-{suffix}" for ident in compiled.identifiers}
        self._claim_style_names(asset.source_path, table)

        css = rewrite_class_identifiers(compiled.css.decode("utf-8"), table)
        metadata["exports"] = {camel_case(ident): name for ident, name in table.items()}
        return css.encode("utf-8"), metadata

    def _claim_style_names(self, source_path: str, table: dict[str, str]) -> None:
        """Fail when two different (asset, identifier) pairs rewrite to one name."""
        with self._style_lock:
            for ident, name in table.items():
                owner = self._style_names.setdefault(name, (source_path, ident))
                if owner != (source_path, ident):
                    raise CompilationError(
                        f"Class '{ident}' in {source_path} rewrites to '{name}', "
                        f"already used by '{owner[1]}' in {owner[0]}",
                        source_path=source_path,
                        stage=StageKind.EXTRACT_STYLE.value,
                    )

    # =========================================================================
    # BINARY STAGES
    # =========================================================================

    def _recompress(self, asset, buffer, metadata, options):
        if self._config.mode != BuildMode.PRODUCTION:
            metadata["recompressed"] = False
            return buffer, metadata
        output = self._images.recompress(buffer, PurePosixPath(asset.source_path).suffix, **options)
        metadata["recompressed"] = output is not buffer
        return output, metadata

    def _passthrough(self, asset, buffer, metadata, options):
        return buffer, metadata

    # =========================================================================
    # NAMING
    # =========================================================================

    def _fingerprint(self, asset, buffer, metadata, options):
        final_name = self._namer.name(asset, self._config, buffer)
        metadata["final_name"] = final_name

        entry_name = self._namer.entry_name(self._config)
        if entry_name and asset.source_path == self._config.entry_point:
            metadata["side_effect_files"] = [
                EmittedFile(name=entry_name, content=self._entry_shim(final_name, entry_name))
            ]
        return buffer, metadata

    def _entry_shim(self, module_name: str, entry_name: str) -> bytes:
        """Fixed-name entry unit re-exporting the (unbundled) entry module."""
        depth = len(PurePosixPath(entry_name).parts) - 1
        relative = "../" * depth + module_name if depth else "./" + module_name
        if self._config.output.module_format.startswith("commonjs"):
            return f"module.exports = require({json.dumps(relative)});\n".encode("utf-8")
        return (
            f"export * from {json.dumps(relative)};\n"
            f"export {{ default }} from {json.dumps(relative)};\n"
        ).encode("utf-8")
