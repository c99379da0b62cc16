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
# IMAGE RECOMPRESSION (OpenCV)
# -----------------------------------------------------------------------------
# Responsibility: Production-only recompression of raster images.
#
# Fixed parameters (configurable in twinforge.yaml, defaults below):
# - JPEG: quality 95, progressive
# - PNG: lossless, compression level 9
# - GIF: passed through unchanged (no GIF encoder)
# The smaller of the original and the recompressed bytes is kept.
# -----------------------------------------------------------------------------

import cv2
import numpy as np

from twinforge.domain.errors import CollaboratorError

JPEG_SUFFIXES = (".jpg", ".jpeg")
PNG_SUFFIXES = (".png",)


class ImageRecompressor:
    """Decodes and re-encodes raster images with fixed quality parameters."""

    def recompress(
        self,
        content: bytes,
        suffix: str,
        jpeg_quality: int = 95,
        jpeg_progressive: bool = True,
        png_compression: int = 9,
    ) -> bytes:
        suffix = suffix.lower()
        if suffix in JPEG_SUFFIXES:
            params = [
                cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality),
                cv2.IMWRITE_JPEG_PROGRESSIVE, int(bool(jpeg_progressive)),
            ]
            ext = ".jpg"
        elif suffix in PNG_SUFFIXES:
            params = [cv2.IMWRITE_PNG_COMPRESSION, int(png_compression)]
            ext = ".png"
        else:
            return content

        image = cv2.imdecode(np.frombuffer(content, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise CollaboratorError(f"Cannot decode {suffix} image")

        ok, encoded = cv2.imencode(ext, image, params)
        if not ok:
            raise CollaboratorError(f"Cannot encode {suffix} image")

        output = encoded.tobytes()
        return output if len(output) < len(content) else content
