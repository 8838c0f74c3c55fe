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

"""
Post-processing for project photos uploaded to Cloud Storage.

The app uploads originals to `projects/{projectId}/{filename}`. Each one gets
a compressed copy under `projects/{projectId}/compressed/` and a preview under
`projects/{projectId}/thumbnails/`. Those outputs sit one level deeper than
the originals, so they never match the upload pattern themselves.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from shared.constants import JPEG_CONTENT_TYPE
from shared.images import compress_for_upload, create_thumbnail

logger = logging.getLogger(__name__)

PROJECT_PHOTO_PATTERN = re.compile(
    r"^projects/(?P<project_id>[^/]+)/(?P<filename>[^/]+)$"
)
COMPRESSED_DIR = "compressed"
THUMBNAILS_DIR = "thumbnails"


class StorageClient(Protocol):
    """The storage operations used by the photo processing."""

    def download_bytes(self, path: str) -> bytes:
        ...

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        ...


@dataclass
class GcsStorageClient:
    """Cloud Storage client over a `firebase_admin.storage` bucket."""

    bucket: Any

    def download_bytes(self, path: str) -> bytes:
        return self.bucket.blob(path).download_as_bytes()

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self.bucket.blob(path).upload_from_string(data, content_type=content_type)


@dataclass
class PhotoOutputs:
    project_id: str
    source_path: str
    compressed_path: str
    thumbnail_path: str


def photo_outputs(path: str) -> Optional[PhotoOutputs]:
    """Returns where the processed copies of `path` go, or None for other objects."""
    match = PROJECT_PHOTO_PATTERN.match(path or "")
    if match is None:
        return None
    project_id = match.group("project_id")
    stem, _ = posixpath.splitext(match.group("filename"))
    base = f"projects/{project_id}"
    return PhotoOutputs(
        project_id=project_id,
        source_path=path,
        compressed_path=f"{base}/{COMPRESSED_DIR}/{stem}.jpg",
        thumbnail_path=f"{base}/{THUMBNAILS_DIR}/{stem}.jpg",
    )


def process_project_photo(
    storage: StorageClient, path: str, content_type: str | None
) -> Optional[PhotoOutputs]:
    """
    Writes the compressed copy and thumbnail of a newly uploaded project photo.

    Args:
        storage (StorageClient): The bucket holding the upload.
        path (str): Object name of the upload.
        content_type (str | None): Content type reported by Cloud Storage.

    Returns:
        The written paths, or None when the object is not an original project
        photo and was left alone.
    """
    if not content_type or not content_type.startswith("image/"):
        logger.info("[Photos] Skipping non-image object %s (%s)", path, content_type)
        return None
    outputs = photo_outputs(path)
    if outputs is None:
        logger.info("[Photos] Skipping %s: not an original project photo", path)
        return None

    original = storage.download_bytes(path)
    storage.upload_bytes(
        outputs.compressed_path, compress_for_upload(original), JPEG_CONTENT_TYPE
    )
    storage.upload_bytes(
        outputs.thumbnail_path, create_thumbnail(original), JPEG_CONTENT_TYPE
    )
    logger.info(
        "[Photos] Processed %s -> %s, %s",
        path,
        outputs.compressed_path,
        outputs.thumbnail_path,
    )
    return outputs
