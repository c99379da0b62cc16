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
# THE NAMER - DEPLOYED FILENAMES
# -----------------------------------------------------------------------------
# Responsibility: Compute the deployed name of a processed asset.
#
# - content_hash: SHA-256 of the FINAL output buffer, truncated to the
#   configured length. Identical bytes always give the identical name, so
#   production artifacts can be cached indefinitely.
# - stable / fixed: the logical module name (source path with the output
#   extension). Not unique across builds; used where nothing caches.
# -----------------------------------------------------------------------------

import hashlib
from pathlib import PurePosixPath

from twinforge.domain.models import Asset, AssetClass, Configuration, NamingStrategy

# Extensions of the output unit per class; other classes keep their own
OUTPUT_EXTENSIONS = {
    AssetClass.SCRIPT: ".js",
    AssetClass.STYLESHEET: ".css",
}


def content_digest(content: bytes, length: int = 20) -> str:
    """Hex SHA-256 of ``content`` truncated to ``length`` characters."""
    return hashlib.sha256(content).hexdigest()[:length]


def output_extension(source_path: str, asset_class: AssetClass) -> str:
    return OUTPUT_EXTENSIONS.get(asset_class, PurePosixPath(source_path).suffix)


def logical_name(source_path: str) -> str:
    """``components/Header.jsx`` -> ``components/Header``."""
    path = PurePosixPath(source_path)
    return str(path.with_suffix("")) if path.suffix else str(path)


class OutputNamer:
    """Derives deployed names from a Configuration's naming strategy."""

    def name(self, asset: Asset, config: Configuration, output: bytes | None = None) -> str:
        """
        Name an asset's output unit.

        Args:
            asset: The classified source asset.
            config: The target configuration (naming strategy, hash length).
            output: Final output bytes; defaults to the asset's own content.
        """
        ext = output_extension(asset.source_path, asset.detected_class)

        if config.output.naming == NamingStrategy.CONTENT_HASH:
            content = asset.content if output is None else output
            return f"{content_digest(content, config.output.hash_length)}{ext}"

        return f"{logical_name(asset.source_path)}{ext}"

    def entry_name(self, config: Configuration) -> str | None:
        """Fixed filename of the entry unit, when the target uses one."""
        if config.output.naming == NamingStrategy.FIXED:
            return config.output.entry_filename
        return None
