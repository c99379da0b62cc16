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
# THE CONFIGURATOR - PER-TARGET BUILD CONFIGURATIONS
# -----------------------------------------------------------------------------
# Responsibility: Load the shared template (twinforge.yaml) and derive one
# complete Configuration per (target, mode).
#
# derive() is pure. It never mutates the template and builds fresh copies of
# every nested structure (aliases, defines, patterns, chains), so no mutable
# object is reachable from two Configurations.
#
# Browser: app root entry, content-hashed names in production, everything
#          bundled, optimized in production.
# Server:  renderable root module, fixed entry filename, runtime
#          dependencies resolved natively, scripts only.
# -----------------------------------------------------------------------------

import copy
import json
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError
from rich.console import Console

from twinforge.domain.errors import ConfigurationError
from twinforge.domain.models import (
    AssetClass,
    BaseConfiguration,
    BuildMode,
    BuildTarget,
    Configuration,
    ExternalizationPolicy,
    NamingStrategy,
    OutputDescriptor,
    StageDescriptor,
    StageKind,
)

console = Console()

# Template location
CONFIG_FILENAME = "twinforge.yaml"

# Classes a server-executable target must never process
SERVER_EXCLUDED_CLASSES = frozenset(
    {AssetClass.STYLESHEET, AssetClass.FONT_OR_MEDIA, AssetClass.RASTER_IMAGE}
)

MODE_DEFINE = "process.env.NODE_ENV"


def load_base(path: Path | None = None, **overrides: Any) -> BaseConfiguration:
    """
    Load the build template from YAML.

    Relative paths in the template are resolved against the directory the
    file lives in. Missing file -> defaults rooted at that directory. No path
    -> twinforge.yaml in the current working directory.

    Raises:
        ConfigurationError: The file is not a valid template.
    """
    path = Path(path) if path is not None else Path.cwd() / CONFIG_FILENAME
    data: dict[str, Any] = {}

    if path.exists():
        with open(path) as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")
        data = loaded or {}
        console.print(f"[green][CONFIGURATOR] Template loaded: {path}[/green]")
    else:
        console.print(f"[yellow][CONFIGURATOR] {path.name} not found, using defaults[/yellow]")

    root = Path(data.get("project_root", "."))
    data["project_root"] = root if root.is_absolute() else (path.parent / root).resolve()
    data.update(overrides)

    try:
        return BaseConfiguration(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid template {path}: {e}") from e


def targets_for(mode: BuildMode) -> list[BuildTarget]:
    """Development builds the browser target only; production builds both."""
    if mode == BuildMode.DEVELOPMENT:
        return [BuildTarget.BROWSER]
    return [BuildTarget.BROWSER, BuildTarget.SERVER]


def build_chains(
    base: BaseConfiguration, target: BuildTarget, mode: BuildMode
) -> dict[AssetClass, list[StageDescriptor]]:
    """Fresh stage descriptor lists for one (target, mode)."""
    script = [
        StageDescriptor(kind=StageKind.ALIAS),
        StageDescriptor(kind=StageKind.DEFINE),
        StageDescriptor(kind=StageKind.COMPILE),
    ]
    if mode == BuildMode.DEVELOPMENT and target == BuildTarget.BROWSER:
        script.append(StageDescriptor(kind=StageKind.LIVE_RELOAD))
    script.append(StageDescriptor(kind=StageKind.FINGERPRINT))

    chains = {AssetClass.SCRIPT: script}
    if target == BuildTarget.SERVER:
        return chains

    chains[AssetClass.STYLESHEET] = [
        StageDescriptor(kind=StageKind.EXTRACT_STYLE),
        StageDescriptor(kind=StageKind.FINGERPRINT),
    ]
    chains[AssetClass.RASTER_IMAGE] = [
        StageDescriptor(kind=StageKind.RECOMPRESS, options=base.images.model_dump()),
        StageDescriptor(kind=StageKind.FINGERPRINT),
    ]
    chains[AssetClass.FONT_OR_MEDIA] = [
        StageDescriptor(kind=StageKind.PASSTHROUGH),
        StageDescriptor(kind=StageKind.FINGERPRINT),
    ]
    return chains


def derive(
    base: BaseConfiguration,
    target: BuildTarget,
    mode: BuildMode,
    overrides: Mapping[str, Any] | None = None,
) -> Configuration:
    """
    Derive the Configuration for one target.

    Args:
        base: The shared template (never mutated).
        target: browser or server.
        mode: development or production.
        overrides: Optional field overrides applied after the target rules.

    Raises:
        ConfigurationError: The result would route stylesheet/media assets
            into the server target, or is otherwise invalid.
    """
    root = Path(base.project_root)
    production = mode == BuildMode.PRODUCTION

    aliases = dict(base.aliases)
    if not production:
        aliases.update(base.development_aliases)

    defines = {
        base.revision_define: json.dumps(base.revision),
        MODE_DEFINE: json.dumps(mode.value),
        **base.defines,
    }

    if target == BuildTarget.BROWSER:
        output = OutputDescriptor(
            path=root / base.output_path,
            public_path=base.public_path,
            naming=NamingStrategy.CONTENT_HASH if production else NamingStrategy.STABLE,
            module_format="iife",
            hash_length=base.hash_length,
        )
        fields: dict[str, Any] = {
            "entry_point": base.entry,
            "optimization_enabled": production,
            "externalization": ExternalizationPolicy.NONE,
            "include": ["**/*"],
            "eligible_classes": list(AssetClass),
        }
    else:
        output = OutputDescriptor(
            path=root / base.server.output_path,
            public_path=base.public_path,
            naming=NamingStrategy.FIXED,
            entry_filename=base.server.entry_filename,
            module_format="commonjs2",
            hash_length=base.hash_length,
        )
        fields = {
            "entry_point": base.server.entry,
            "optimization_enabled": False,
            "externalization": ExternalizationPolicy.RUNTIME_DEPENDENCIES,
            "include": list(base.server.include),
            "eligible_classes": [AssetClass.SCRIPT],
        }

    fields.update(
        mode=mode,
        target=target,
        source_root=(root / base.source_root).resolve(),
        output=output,
        module_aliases=aliases,
        defines=defines,
        ignore=list(base.ignore),
        class_patterns={cls: list(patterns) for cls, patterns in base.classes.items()},
        chains=build_chains(base, target, mode),
        manifest_path=root / base.manifest_path,
        workers=base.workers,
    )
    if overrides:
        fields.update(copy.deepcopy(dict(overrides)))

    try:
        config = Configuration(**fields)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {target.value} configuration: {e}") from e

    check_target_isolation(config)
    console.print(
        f"[cyan][CONFIGURATOR] {target.value}/{mode.value}: entry={config.entry_point} "
        f"naming={config.output.naming.value} externals={config.externalization.value}[/cyan]"
    )
    return config


def check_target_isolation(config: Configuration) -> None:
    """
    Reject stylesheet/media processing wired into the server target.

    Raises:
        ConfigurationError: A style/media chain or eligible class is present.
    """
    if config.target != BuildTarget.SERVER:
        return

    wired = (set(config.chains) | set(config.eligible_classes)) & SERVER_EXCLUDED_CLASSES
    if wired:
        names = ", ".join(sorted(cls.value for cls in wired))
        console.print(f"[red][CONFIGURATOR] Server target cannot process: {names}[/red]")
        raise ConfigurationError(f"Server target cannot process {names} assets")
