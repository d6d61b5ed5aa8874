"""
Media-library upload. Stores pipeline output as ordered media records owned by a user.

Host applications hook in through plain callbacks:
    filter_media(records) -> records   narrows which stored media are visible/deletable
    media_name(upload) -> str | None   display name for a new record
    on_load_state(state)               called after state is loaded from the table
    on_persist(record)                 called after a new record is saved
"""

import asyncio
import uuid
from pathlib import Path
from typing import Callable, Iterable, Optional

from image_ingest.codec import mime_type_for
from image_ingest.config import logger
from image_ingest.database import MediaRepo
from image_ingest.pipeline import IngestionPipeline
from image_ingest.storage import LocalDiskStorage
from image_ingest.transform import PipelineResult, TransformConfig
from image_ingest.uploads import UploadedFile, is_available, storage_filename


class MediaLibraryUpload:
    def __init__(self, media: MediaRepo, storage: LocalDiskStorage, config: TransformConfig,
                 collection: str = "default", multiple: bool = True,
                 filter_media: Optional[Callable[[list], list]] = None,
                 media_name: Optional[Callable[[UploadedFile], Optional[str]]] = None,
                 custom_properties: Optional[dict] = None,
                 on_load_state: Optional[Callable[[dict], None]] = None,
                 on_persist: Optional[Callable[[dict], None]] = None,
                 preserve_filenames: bool = False,
                 visibility: str = "private",
                 pipeline: Optional[IngestionPipeline] = None):
        self.media = media
        self.storage = storage
        self.config = config
        self.collection = collection or "default"
        self.multiple = multiple
        self.filter_media = filter_media
        self.media_name = media_name
        self.custom_properties = custom_properties or {}
        self.on_load_state = on_load_state
        self.on_persist = on_persist
        self.preserve_filenames = preserve_filenames
        self.visibility = visibility
        self.pipeline = pipeline or IngestionPipeline()

    def _filtered(self, records: list) -> list:
        if self.filter_media is None:
            return records
        result = self.filter_media(records)
        return records if result is None else list(result)

    async def records(self, owner_id: int) -> list:
        return await self.media.for_owner(owner_id, self.collection)

    async def load_state(self, owner_id: int) -> dict:
        records = await self.records(owner_id)
        if not self.multiple:
            records = self._filtered(records[:1])
        state = {r["uuid"]: r["uuid"] for r in records}
        if self.on_load_state:
            self.on_load_state(state)
        return state

    def _ingest(self, upload: UploadedFile, media_uuid: str) -> tuple:
        # Runs in a worker thread: read, transform and write all block.
        raw = upload.read()
        filename = storage_filename(upload, self.preserve_filenames)
        result = self.pipeline.process(raw, upload.mime_type, filename, self.config)
        path = f"{self.collection}/{media_uuid}/{result.filename}"
        options = {"visibility": "public"} if self.visibility == "public" else {}
        self.storage.put(path, result.data, options)
        return path, result, len(raw)

    def _stored_mime_type(self, upload: UploadedFile, result: PipelineResult) -> str:
        if result.transformed and self.config.optimize_format:
            return mime_type_for(self.config.optimize_format) or upload.mime_type or ""
        return upload.mime_type or ""

    async def save_uploaded_file(self, owner_id: int, upload: UploadedFile) -> Optional[str]:
        if not is_available(upload):
            return None

        media_uuid = str(uuid.uuid4())
        path, result, original_size = await asyncio.to_thread(self._ingest, upload, media_uuid)

        name = None
        if self.media_name:
            name = self.media_name(upload)
        if name is None:
            name = Path(upload.client_name).stem

        record = await self.media.add(
            uuid=media_uuid,
            owner_id=owner_id,
            collection=self.collection,
            name=name,
            file_name=result.filename,
            mime_type=self._stored_mime_type(upload, result),
            size=len(result.data),
            path=path,
            custom_properties={**self.custom_properties, "transformed": result.transformed,
                               "original_size": original_size},
        )
        if self.on_persist:
            self.on_persist(record)
        return media_uuid

    async def delete_abandoned(self, owner_id: int, state: dict) -> int:
        keep = set((state or {}).keys())
        abandoned = [r for r in await self.records(owner_id) if r["uuid"] not in keep]
        abandoned = self._filtered(abandoned)
        for record in abandoned:
            await asyncio.to_thread(self.storage.delete, record["path"])
            await self.media.delete(record["uuid"])
        if abandoned:
            logger.info(f"Removed {len(abandoned)} abandoned media for owner {owner_id}")
        return len(abandoned)

    async def reorder(self, state: dict) -> dict:
        uuids = [v for v in state.values() if v]
        await self.media.set_order(uuids)
        return state

    async def save_relationships(self, owner_id: int, state: dict,
                                 uploads: Iterable[UploadedFile]) -> list:
        await self.delete_abandoned(owner_id, state)
        saved = []
        for upload in uploads:
            media_uuid = await self.save_uploaded_file(owner_id, upload)
            if media_uuid:
                saved.append(media_uuid)
        return saved

    async def get_uploaded_file(self, media_uuid: str) -> Optional[dict]:
        record = await self.media.get(media_uuid)
        if record is None:
            return None
        return {
            "name": record["name"] or record["file_name"],
            "size": record["size"],
            "type": record["mime_type"],
            "path": record["path"],
        }
