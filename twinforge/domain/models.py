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
# DOMAIN MODELS - BUILD INSTRUCTIONS
# -----------------------------------------------------------------------------
# These models describe one build invocation: the shared template read from
# twinforge.yaml, the per-target Configuration derived from it, and the
# values that flow through the transform chain.
#
# Configuration is frozen. Each target owns its own copy of every nested
# structure, so mutating one target's alias table or chain list can never be
# observed from the other target.
# -----------------------------------------------------------------------------

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BuildMode(str, Enum):
    """Runtime mode, selected once per invocation."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


class BuildTarget(str, Enum):
    """Deployment target a Configuration is derived for."""

    BROWSER = "browser"
    SERVER = "server"


class AssetClass(str, Enum):
    """
    Asset classes recognised by the classifier.

    Each class maps to one fixed transform chain.
    """

    SCRIPT = "script"
    STYLESHEET = "stylesheet"
    FONT_OR_MEDIA = "font_or_media"
    RASTER_IMAGE = "raster_image"


class StageKind(str, Enum):
    """Tagged stage descriptors interpreted by the transform chain."""

    ALIAS = "alias"
    DEFINE = "define"
    COMPILE = "compile"
    LIVE_RELOAD = "live_reload"
    EXTRACT_STYLE = "extract_style"
    RECOMPRESS = "recompress"
    PASSTHROUGH = "passthrough"
    FINGERPRINT = "fingerprint"


class ExternalizationPolicy(str, Enum):
    """Whether bare module specifiers are bundled or resolved natively."""

    NONE = "none"
    RUNTIME_DEPENDENCIES = "runtime_dependencies"


class NamingStrategy(str, Enum):
    """How the Output Namer derives deployed filenames."""

    STABLE = "stable"
    CONTENT_HASH = "content_hash"
    FIXED = "fixed"


class BuildState(str, Enum):
    """Build Orchestrator states."""

    IDLE = "idle"
    CONFIGURING = "configuring"
    TRANSFORMING = "transforming"
    OPTIMIZING = "optimizing"
    COMMITTING = "committing"
    FAILED = "failed"


# Default extension patterns per asset class
DEFAULT_CLASS_PATTERNS: dict[AssetClass, list[str]] = {
    AssetClass.SCRIPT: ["*.js", "*.jsx"],
    AssetClass.STYLESHEET: ["*.css", "*.scss"],
    AssetClass.FONT_OR_MEDIA: [
        "*.svg", "*.mp4", "*.webm", "*.woff", "*.woff2", "*.eot", "*.ttf", "*.otf", "*.wav",
    ],
    AssetClass.RASTER_IMAGE: ["*.png", "*.jpg", "*.jpeg", "*.gif"],
}


# =============================================================================
# TEMPLATE (twinforge.yaml)
# =============================================================================


class ServerSettings(BaseModel):
    """Server-executable overrides from the template."""

    entry: str = "components/App.jsx"
    output_path: str = "http/dist"
    entry_filename: str = "App.js"
    include: list[str] = Field(default_factory=lambda: ["**/*.js", "**/*.jsx"])


class CompilerSettings(BaseModel):
    """
    External collaborator commands.

    Commands read the source on stdin and write the result to stdout.
    ``None`` means the built-in passthrough/module implementation is used.
    """

    script_command: list[str] | None = None
    style_command: list[str] | None = None
    timeout_seconds: int = Field(default=60, gt=0)


class ImageSettings(BaseModel):
    """Fixed recompression parameters (production only)."""

    jpeg_quality: int = Field(default=95, ge=1, le=100)
    jpeg_progressive: bool = True
    png_compression: int = Field(default=9, ge=0, le=9)


class BaseConfiguration(BaseModel):
    """
    The shared build template.

    Loaded from twinforge.yaml by the Target Configurator; every target
    Configuration is derived from one instance of this model.
    """

    project_root: Path = Path(".")
    source_root: str = "src"
    entry: str = "main.jsx"
    output_path: str = "dist"
    public_path: str = "/dist/"
    revision: str = "unknown"
    # Global the revision is compiled into (application code reads it)
    revision_define: str = "WEBPACK.GIT_REVISION"
    manifest_path: str = "http/dist/manifest.json"
    hash_length: int = Field(default=20, ge=8, le=64)
    aliases: dict[str, str] = Field(default_factory=dict)
    development_aliases: dict[str, str] = Field(
        default_factory=lambda: {"react-dom": "@hot-loader/react-dom"}
    )
    defines: dict[str, str] = Field(default_factory=dict)
    classes: dict[AssetClass, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CLASS_PATTERNS.items()}
    )
    ignore: list[str] = Field(default_factory=lambda: [".*"])
    workers: int = Field(default=4, ge=1)
    server: ServerSettings = Field(default_factory=ServerSettings)
    compiler: CompilerSettings = Field(default_factory=CompilerSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)


# =============================================================================
# PER-TARGET CONFIGURATION
# =============================================================================


class StageDescriptor(BaseModel):
    """One stage in a transform chain."""

    model_config = ConfigDict(frozen=True)

    kind: StageKind
    options: dict[str, Any] = Field(default_factory=dict)


class OutputDescriptor(BaseModel):
    """Where and how a target writes its artifacts."""

    model_config = ConfigDict(frozen=True)

    path: Path
    public_path: str = "/"
    naming: NamingStrategy
    entry_filename: str | None = None
    module_format: str = "iife"
    hash_length: int = 20


class Configuration(BaseModel):
    """
    A complete build configuration for one (target, mode) pair.

    Produced by ``derive``; never mutated after construction.
    """

    model_config = ConfigDict(frozen=True)

    mode: BuildMode
    target: BuildTarget
    source_root: Path
    entry_point: str
    output: OutputDescriptor
    module_aliases: dict[str, str]
    defines: dict[str, str]
    optimization_enabled: bool
    externalization: ExternalizationPolicy
    include: list[str]
    ignore: list[str]
    class_patterns: dict[AssetClass, list[str]]
    eligible_classes: list[AssetClass]
    chains: dict[AssetClass, list[StageDescriptor]]
    manifest_path: Path
    workers: int = 4

    @property
    def is_production(self) -> bool:
        return self.mode == BuildMode.PRODUCTION


# =============================================================================
# PIPELINE VALUES
# =============================================================================


@dataclass(frozen=True)
class Asset:
    """A classified source file. Transforms never mutate it."""

    source_path: str
    content: bytes
    detected_class: AssetClass


@dataclass(frozen=True)
class EmittedFile:
    """A file written next to a result's main output (e.g. an entry shim)."""

    name: str
    content: bytes


@dataclass(frozen=True)
class TransformResult:
    """Output of one asset's chain for one configuration."""

    source_path: str
    asset_class: AssetClass
    output: bytes
    final_name: str
    side_effect_files: tuple[EmittedFile, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StateTransition:
    """A single entry in the orchestrator's transition log."""

    timestamp: str
    state: BuildState
    details: str | None = None


@dataclass
class BuildReport:
    """Result of a committed build generation."""

    mode: BuildMode
    generation: int
    state: BuildState
    results: dict[BuildTarget, list[TransformResult]]
    manifest: dict[str, str]
    transitions: list[StateTransition]
    duration_seconds: float = 0.0
