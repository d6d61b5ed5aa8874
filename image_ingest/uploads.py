"""
Plain disk upload: runs an uploaded file through the pipeline and stores the result.
"""

import posixpath
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from image_ingest.config import logger
from image_ingest.errors import FileUnavailable
from image_ingest.pipeline import IngestionPipeline
from image_ingest.storage import LocalDiskStorage
from image_ingest.transform import PipelineResult, TransformConfig


@dataclass
class UploadedFile:
    path: Path
    client_name: str
    mime_type: Optional[str] = None

    def exists(self) -> bool:
        try:
            return Path(self.path).is_file()
        except OSError as e:
            raise FileUnavailable(f"Cannot check {self.path}: {e}") from e

    def read(self) -> bytes:
        return Path(self.path).read_bytes()


@dataclass(frozen=True)
class StoredUpload:
    path: str
    result: PipelineResult


def is_available(upload: UploadedFile) -> bool:
    """Missing and undeterminable files are both treated as nothing to store."""
    try:
        return upload.exists()
    except FileUnavailable as e:
        logger.warning(f"Upload unavailable: {e}")
        return False


def storage_filename(upload: UploadedFile, preserve: bool = False) -> str:
    if preserve:
        return Path(upload.client_name).name
    return f"{uuid.uuid4().hex}{Path(upload.client_name).suffix}"


def join_path(directory: str, filename: str) -> str:
    return posixpath.join(directory.strip("/"), filename).strip("/")


class FileUploadHandler:
    def __init__(self, storage: LocalDiskStorage, config: TransformConfig,
                 directory: str = "", visibility: str = "private",
                 preserve_filenames: bool = False,
                 pipeline: Optional[IngestionPipeline] = None):
        self.storage = storage
        self.config = config
        self.directory = directory
        self.visibility = visibility
        self.preserve_filenames = preserve_filenames
        self.pipeline = pipeline or IngestionPipeline()

    def store(self, upload: UploadedFile) -> Optional[StoredUpload]:
        if not is_available(upload):
            return None

        filename = storage_filename(upload, self.preserve_filenames)
        result = self.pipeline.process(upload.read(), upload.mime_type, filename, self.config)

        path = join_path(self.directory, result.filename)
        options = {"visibility": "public"} if self.visibility == "public" else {}
        self.storage.put(path, result.data, options)
        return StoredUpload(path, result)

    def save(self, upload: UploadedFile) -> Optional[str]:
        """Store ``upload`` and return its storage path, or ``None`` if it is gone."""
        stored = self.store(upload)
        return stored.path if stored else None
