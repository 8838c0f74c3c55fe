# Copyright 2025 Google LLC
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
# ==============================================================================

"""Image resizing helpers for photos uploaded to Firebase Storage."""

import io
import logging

from PIL import Image, ImageOps

from shared.constants import (
    THUMBNAIL_MAX_WIDTH,
    THUMBNAIL_QUALITY,
    UPLOAD_IMAGE_MAX_WIDTH,
    UPLOAD_IMAGE_QUALITY,
)

logger = logging.getLogger(__name__)


def _resize_to_jpeg(image_bytes: bytes, max_width: int, quality: int) -> bytes:
    with Image.open(io.BytesIO(image_bytes)) as image:
        image = ImageOps.exif_transpose(image)
        if image.width > max_width:
            height = round(image.height * max_width / image.width)
            image = image.resize((max_width, height), Image.Resampling.LANCZOS)
        if image.mode != "RGB":
            image = image.convert("RGB")

        output = io.BytesIO()
        image.save(output, format="JPEG", quality=quality)
        return output.getvalue()


def compress_for_upload(image_bytes: bytes) -> bytes:
    """
    Compresses an image before upload.

    The image is scaled down to at most 1600px wide (keeping its aspect ratio)
    and re-encoded as JPEG at 75% quality. If the image cannot be decoded the
    original bytes are returned unchanged.
    """
    try:
        compressed = _resize_to_jpeg(
            image_bytes, UPLOAD_IMAGE_MAX_WIDTH, UPLOAD_IMAGE_QUALITY
        )
    except Exception as e:
        logger.error("[Images] Compression failed: %s", e)
        return image_bytes
    logger.info(
        "[Images] Compression complete: %d -> %d bytes",
        len(image_bytes),
        len(compressed),
    )
    return compressed


def create_thumbnail(image_bytes: bytes) -> bytes:
    """Returns a 400px wide JPEG preview, or the original bytes on failure."""
    try:
        return _resize_to_jpeg(image_bytes, THUMBNAIL_MAX_WIDTH, THUMBNAIL_QUALITY)
    except Exception as e:
        logger.error("[Images] Thumbnail creation failed: %s", e)
        return image_bytes
