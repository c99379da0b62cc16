# -----------------------------------------------------------------------------
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Contains the build instructions (pydantic models and frozen values) and the
# pipeline error hierarchy shared by every component.
# -----------------------------------------------------------------------------

from .errors import (
    ClassificationError,
    CollaboratorError,
    CompilationError,
    ConfigurationError,
    DuplicateManifestKeyError,
    PipelineError,
)
from .models import (
    Asset,
    AssetClass,
    BaseConfiguration,
    BuildMode,
    BuildReport,
    BuildState,
    BuildTarget,
    Configuration,
    EmittedFile,
    ExternalizationPolicy,
    NamingStrategy,
    OutputDescriptor,
    StageDescriptor,
    StageKind,
    TransformResult,
)

__all__ = [
    "Asset", "AssetClass", "BaseConfiguration", "BuildMode", "BuildReport", "BuildState",
    "BuildTarget", "Configuration", "EmittedFile", "ExternalizationPolicy", "NamingStrategy",
    "OutputDescriptor", "StageDescriptor", "StageKind", "TransformResult",
    "PipelineError", "ClassificationError", "CompilationError", "DuplicateManifestKeyError",
    "ConfigurationError", "CollaboratorError",
]
