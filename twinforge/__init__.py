# -----------------------------------------------------------------------------
# TWINFORGE
# -----------------------------------------------------------------------------
# One source tree, two deployment artifacts: a content-hashed browser build
# and an unbundled server-executable build, tied together by a manifest.
# -----------------------------------------------------------------------------

__version__ = "1.0.0"
