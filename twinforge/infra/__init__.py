# -----------------------------------------------------------------------------
# INFRASTRUCTURE LAYER
# -----------------------------------------------------------------------------
# Wrappers around everything outside the pipeline:
# - collaborators: external script/style transform tools
# - images: OpenCV raster recompression
# - environment: mode, proxy port and revision inputs
# - dev_server: Flask development server (imported on demand)
# -----------------------------------------------------------------------------

from .collaborators import (
    CommandScriptCompiler,
    ModuleStyleCompiler,
    PassthroughScriptCompiler,
    StyleOutput,
)
from .images import ImageRecompressor

__all__ = [
    "CommandScriptCompiler",
    "ModuleStyleCompiler",
    "PassthroughScriptCompiler",
    "StyleOutput",
    "ImageRecompressor",
]
