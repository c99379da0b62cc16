# -----------------------------------------------------------------------------
# CORE LAYER
# -----------------------------------------------------------------------------
# The build pipeline:
# - AssetClassifier: source path -> asset class
# - TransformChain: ordered stage descriptors per asset class
# - OutputNamer: content-hashed or stable deployed names
# - ManifestBuilder / ManifestStore / ManifestReader: the lookup table
# - derive: per-target Configuration from the shared template
# - Optimizer: production minification and cleanup
# - BuildOrchestrator: generation state machine
# - Watcher: development rebuild loop
# -----------------------------------------------------------------------------

from .classifier import AssetClassifier
from .configurator import derive, load_base, targets_for
from .manifest import Manifest, ManifestBuilder, ManifestReader, ManifestStore
from .naming import OutputNamer
from .optimizer import CleanupOrderError, Optimizer
from .orchestrator import BuildOrchestrator
from .transforms import TransformChain
from .watcher import Watcher

__all__ = [
    "AssetClassifier",
    "TransformChain",
    "OutputNamer",
    "Manifest", "ManifestBuilder", "ManifestReader", "ManifestStore",
    "derive", "load_base", "targets_for",
    "Optimizer", "CleanupOrderError",
    "BuildOrchestrator",
    "Watcher",
]
