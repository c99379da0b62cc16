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
# THE ORCHESTRATOR - BUILD GENERATIONS
# -----------------------------------------------------------------------------
# Responsibility: Drive one build generation through the state machine
#
#   Idle -> Configuring -> Transforming -> Optimizing (prod) -> Committing
#        -> Idle | Failed
#
# Transforming and Optimizing run entirely in memory. Nothing on disk changes
# until Committing, which runs (in order): manifest registration, cleanup
# (production), browser emission, server emission, atomic manifest commit.
# A failure anywhere before that leaves the previous generation untouched.
#
# Development mode also supports incremental single-asset rebuilds for the
# watch loop; each one commits its manifest entry atomically.
# -----------------------------------------------------------------------------

import os
import posixpath
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console

from twinforge.core.classifier import AssetClassifier, is_ignored, path_matches
from twinforge.core.configurator import derive, targets_for
from twinforge.core.manifest import Manifest, ManifestBuilder, ManifestStore
from twinforge.core.naming import OutputNamer
from twinforge.core.optimizer import CleanupOrderError, Optimizer
from twinforge.core.transforms import (
    SPECIFIER_RE,
    TransformChain,
    apply_alias,
    is_bare_specifier,
)
from twinforge.domain.errors import CompilationError, ConfigurationError, PipelineError
from twinforge.domain.models import (
    Asset,
    AssetClass,
    BaseConfiguration,
    BuildMode,
    BuildReport,
    BuildState,
    BuildTarget,
    Configuration,
    StateTransition,
    TransformResult,
)
from twinforge.infra.collaborators import ScriptCompiler, StyleCompiler
from twinforge.infra.images import ImageRecompressor

console = Console()


def write_atomic(path: Path, content: bytes) -> None:
    """Write ``content`` to ``path`` via a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _contains(parent: Path, child: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


class BuildOrchestrator:
    """
    Top-level build driver.

    Pipeline: template -> Configurator -> (Classifier -> Chain -> Namer) per
    target -> Optimizer -> Manifest.
    """

    def __init__(
        self,
        base: BaseConfiguration,
        mode: BuildMode,
        script_compiler: ScriptCompiler | None = None,
        style_compiler: StyleCompiler | None = None,
        image_recompressor: ImageRecompressor | None = None,
        optimizer: Optimizer | None = None,
    ) -> None:
        self._base = base
        self._mode = mode
        self._script_compiler = script_compiler
        self._style_compiler = style_compiler
        self._images = image_recompressor
        self._namer = OutputNamer()
        self._optimizer = optimizer or Optimizer(self._namer)

        self._state = BuildState.IDLE
        self._transitions: list[StateTransition] = []
        self._configs: dict[BuildTarget, Configuration] = {}
        self._generation = 0
        self._emission_started = False
        self._store: ManifestStore | None = None
        self._committed = Manifest()
        self._has_committed = False

        console.print(f"[green][ORCHESTRATOR] Online ({mode.value})[/green]")

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def mode(self) -> BuildMode:
        return self._mode

    @property
    def transitions(self) -> list[StateTransition]:
        return list(self._transitions)

    @property
    def configurations(self) -> dict[BuildTarget, Configuration]:
        return dict(self._configs)

    @property
    def manifest(self) -> Manifest:
        return self._committed

    @property
    def has_committed(self) -> bool:
        """True once a full generation has been committed by this process."""
        return self._has_committed

    def _transition(self, state: BuildState, details: str | None = None) -> None:
        self._state = state
        self._transitions.append(
            StateTransition(
                timestamp=datetime.now(timezone.utc).isoformat(), state=state, details=details
            )
        )

    def _fail(self, error: Exception) -> None:
        if isinstance(error, PipelineError):
            where = error.source_path or "-"
            details = f"{error.stage}: {where}: {error}"
        else:
            details = f"{type(error).__name__}: {error}"
        self._transition(BuildState.FAILED, details)
        console.print(f"[red][ORCHESTRATOR] Generation {self._generation} FAILED ({details})[/red]")

    def _new_chain(self, config: Configuration) -> TransformChain:
        return TransformChain(
            config,
            script_compiler=self._script_compiler,
            style_compiler=self._style_compiler,
            image_recompressor=self._images,
            namer=self._namer,
        )

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def configure(self) -> dict[BuildTarget, Configuration]:
        """
        Derive and validate one Configuration per target for this mode.

        Raises:
            ConfigurationError: Missing source root/entry or overlapping
                source and output directories.
        """
        configs = {t: derive(self._base, t, self._mode) for t in targets_for(self._mode)}

        for target, config in configs.items():
            if not config.source_root.is_dir():
                raise ConfigurationError(f"Source root not found: {config.source_root}")
            if not (config.source_root / config.entry_point).is_file():
                raise ConfigurationError(
                    f"{target.value} entry not found under {config.source_root}",
                    source_path=config.entry_point,
                )
            out = config.output.path
            if _contains(config.source_root, out) or _contains(out, config.source_root):
                raise ConfigurationError(
                    f"{target.value} output {out} overlaps the source root {config.source_root}"
                )

        self._configs = configs
        if self._store is None and BuildTarget.BROWSER in configs:
            store = ManifestStore(configs[BuildTarget.BROWSER].manifest_path)
            self._committed = store.load()
            self._store = store
        return configs

    def run(self) -> BuildReport:
        """
        Run one complete build generation.

        Returns:
            BuildReport of the committed generation.

        Raises:
            PipelineError: Any fatal stage failure (state becomes FAILED and
                the previous generation's artifacts stay in place).
        """
        start = time.monotonic()
        self._generation += 1
        console.print(f"[cyan][ORCHESTRATOR] Generation {self._generation} started[/cyan]")

        try:
            self._transition(BuildState.CONFIGURING)
            configs = self.configure()
            plans = {target: self._plan(config) for target, config in configs.items()}

            self._transition(BuildState.TRANSFORMING)
            results = {
                target: self._transform(configs[target], assets) for target, assets in plans.items()
            }

            if self._mode == BuildMode.PRODUCTION:
                self._transition(BuildState.OPTIMIZING)
                results = {
                    target: self._optimizer.optimize(configs[target], target_results)
                    for target, target_results in results.items()
                }

            self._transition(BuildState.COMMITTING)
            manifest = self._commit(configs, results)
        except Exception as e:
            self._fail(e)
            raise

        self._transition(BuildState.IDLE, f"generation {self._generation}")
        self._has_committed = True
        duration = time.monotonic() - start
        console.print(
            f"[green][ORCHESTRATOR] Generation {self._generation} committed ({duration:.2f}s)[/green]"
        )
        return BuildReport(
            mode=self._mode,
            generation=self._generation,
            state=self._state,
            results=results,
            manifest=manifest.to_dict(),
            transitions=self.transitions,
            duration_seconds=duration,
        )

    # =========================================================================
    # PIPELINE PHASES
    # =========================================================================

    def _plan(self, config: Configuration) -> list[Asset]:
        """
        Discover and classify a target's sources.

        Raises:
            ClassificationError: Unknown file under the source root.
            ConfigurationError: A source the target is not allowed to process.
        """
        classifier = AssetClassifier(config.source_root, config.class_patterns)
        assets = []
        for rel_path in classifier.discover(config.include, config.ignore):
            asset_class = classifier.classify(rel_path)
            if asset_class not in config.eligible_classes:
                console.print(
                    f"[red][ORCHESTRATOR] {rel_path} ({asset_class.value}) routed into "
                    f"the {config.target.value} target[/red]"
                )
                raise ConfigurationError(
                    f"{asset_class.value} asset routed into the {config.target.value} target",
                    source_path=rel_path,
                )
            asset = Asset(rel_path, self._read_source(config, rel_path), asset_class)
            if asset_class == AssetClass.SCRIPT:
                self._check_references(config, classifier, asset)
            assets.append(asset)

        console.print(f"[cyan][ORCHESTRATOR] {config.target.value}: {len(assets)} asset(s)[/cyan]")
        return assets

    def _read_source(self, config: Configuration, rel_path: str) -> bytes:
        """
        Read one source file.

        Raises:
            CompilationError: The file vanished or cannot be read (stage "read").
        """
        try:
            return (config.source_root / rel_path).read_bytes()
        except OSError as e:
            raise CompilationError(
                f"Cannot read {rel_path}: {e}", source_path=rel_path, stage="read", cause=e
            ) from e

    def _check_references(
        self, config: Configuration, classifier: AssetClassifier, asset: Asset
    ) -> None:
        """
        Reject relative imports of sources the target is not allowed to process.

        Bare specifiers and paths outside the source root are left alone.

        Raises:
            ConfigurationError: A script imports a stylesheet/media source the
                target has no chain for.
        """
        if set(config.eligible_classes) >= set(AssetClass):
            return

        text = asset.content.decode("utf-8", errors="replace")
        base_dir = posixpath.dirname(asset.source_path)
        for match in SPECIFIER_RE.finditer(text):
            spec = apply_alias(match.group("spec"), config.module_aliases)
            if is_bare_specifier(spec) or spec.startswith("/"):
                continue
            ref_path = posixpath.normpath(posixpath.join(base_dir, spec.split("?", 1)[0]))
            if ref_path == ".." or ref_path.startswith("../"):
                continue

            ref_class = classifier.match(ref_path)
            if ref_class is not None and ref_class not in config.eligible_classes:
                console.print(
                    f"[red][ORCHESTRATOR] {asset.source_path} imports {spec} "
                    f"({ref_class.value}) in the {config.target.value} target[/red]"
                )
                raise ConfigurationError(
                    f"{asset.source_path} imports '{spec}', a {ref_class.value} asset "
                    f"the {config.target.value} target cannot process",
                    source_path=asset.source_path,
                )

    def _transform(self, config: Configuration, assets: list[Asset]) -> list[TransformResult]:
        """Run every asset's chain; assets are independent, chains sequential."""
        chain = self._new_chain(config)
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            futures = [pool.submit(chain.run, asset) for asset in assets]
            return [future.result() for future in futures]

    def _commit(
        self,
        configs: dict[BuildTarget, Configuration],
        results: dict[BuildTarget, list[TransformResult]],
    ) -> Manifest:
        builder = ManifestBuilder(generation=self._generation)
        for result in results.get(BuildTarget.BROWSER, []):
            builder.register(result.source_path, result.final_name)
        manifest = builder.build()

        emissions = {target: self._emission_plan(target_results) for target, target_results in results.items()}

        self._emission_started = False
        if self._mode == BuildMode.PRODUCTION:
            for config in configs.values():
                self.clean(config)

        for target in (BuildTarget.BROWSER, BuildTarget.SERVER):
            if target in emissions:
                self._emit(configs[target], emissions[target])

        if self._store is not None:
            self._store.commit(manifest)
        self._committed = manifest
        return manifest

    def clean(self, config: Configuration) -> int:
        """
        Cleanup step of a production generation.

        Raises:
            CleanupOrderError: Called outside Committing or after emission began.
        """
        if self._state != BuildState.COMMITTING:
            raise CleanupOrderError(f"Cleanup is not allowed in state '{self._state.value}'")
        return self._optimizer.clean(
            config.output.path, config.manifest_path, emission_started=self._emission_started
        )

    def _emission_plan(self, results: list[TransformResult]) -> dict[str, bytes]:
        """
        Map every output name to its bytes.

        Raises:
            ConfigurationError: Two different contents would share one name.
        """
        files: dict[str, tuple[str, bytes]] = {}
        for result in results:
            units = [(result.final_name, result.output)]
            units += [(f.name, f.content) for f in result.side_effect_files]
            for name, content in units:
                owner = files.setdefault(name, (result.source_path, content))
                if owner[1] != content:
                    raise ConfigurationError(
                        f"Output name '{name}' is claimed by {owner[0]} and {result.source_path}",
                        source_path=result.source_path,
                    )
        return {name: content for name, (_, content) in files.items()}

    def _emit(self, config: Configuration, files: dict[str, bytes]) -> None:
        for name, content in files.items():
            self._emission_started = True
            try:
                write_atomic(config.output.path / name, content)
            except OSError as e:
                raise CompilationError(
                    f"Cannot write {name}: {e}", source_path=name, stage="emit", cause=e
                ) from e
        console.print(
            f"[green][ORCHESTRATOR] {config.target.value}: emitted {len(files)} file(s) "
            f"to {config.output.path}[/green]"
        )

    # =========================================================================
    # INCREMENTAL (DEVELOPMENT WATCH LOOP)
    # =========================================================================

    def _browser_config(self) -> Configuration:
        if BuildTarget.BROWSER not in self._configs:
            self.configure()
        return self._configs[BuildTarget.BROWSER]

    def _source_id(self, config: Configuration, path: str | os.PathLike) -> str | None:
        """Source-relative id of a watched path, or None if the target skips it."""
        classifier = AssetClassifier(config.source_root, config.class_patterns)
        rel_path = classifier.relative(path)
        if rel_path is None or is_ignored(rel_path, config.ignore):
            return None
        if not any(path_matches(rel_path, p) for p in config.include):
            return None
        return rel_path

    def rebuild(self, path: str | os.PathLike) -> TransformResult | None:
        """
        Re-run one asset's chain and commit its manifest entry.

        Returns:
            The new result, or None when the path is not part of the build.

        Raises:
            PipelineError: The asset failed; the previous output stays live.
        """
        config = self._browser_config()
        rel_path = self._source_id(config, path)
        if rel_path is None:
            return None

        self._generation += 1
        try:
            self._transition(BuildState.TRANSFORMING, rel_path)
            asset_class = AssetClassifier(config.source_root, config.class_patterns).classify(rel_path)
            content = self._read_source(config, rel_path)
            result = self._new_chain(config).run(Asset(rel_path, content, asset_class))

            self._transition(BuildState.COMMITTING, rel_path)
            builder = ManifestBuilder(seed=self._committed, generation=self._generation)
            builder.register(rel_path, result.final_name)
            manifest = builder.build()

            self._emission_started = False
            self._emit(config, self._emission_plan([result]))
            if self._store is not None:
                self._store.commit(manifest)
            self._committed = manifest
        except Exception as e:
            self._fail(e)
            raise

        self._transition(BuildState.IDLE, f"rebuilt {rel_path}")
        return result

    def remove(self, path: str | os.PathLike) -> bool:
        """Drop a deleted source's manifest entry and output file."""
        config = self._browser_config()
        rel_path = self._source_id(config, path)
        if rel_path is None or rel_path not in self._committed:
            return False

        self._generation += 1
        old_name = self._committed[rel_path]
        builder = ManifestBuilder(seed=self._committed, generation=self._generation)
        builder.discard(rel_path)
        manifest = builder.build()
        if self._store is not None:
            self._store.commit(manifest)
        self._committed = manifest

        if old_name not in manifest.values():
            (config.output.path / old_name).unlink(missing_ok=True)
        console.print(f"[yellow][ORCHESTRATOR] Removed {rel_path}[/yellow]")
        return True
