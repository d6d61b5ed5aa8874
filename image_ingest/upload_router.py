"""
Upload routing: receives files, stores them through the configured front-end,
and serves the per-user gallery commands.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional

from aiogram import Router, Bot, F
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from image_ingest.config import BotConfig, logger
from image_ingest.database import UsageRepo
from image_ingest.downloads import DownloadArea, human_size, resolve_mime_type, stopwatch
from image_ingest.media_library import MediaLibraryUpload
from image_ingest.uploads import FileUploadHandler, UploadedFile

StoreFn = Callable[[int, UploadedFile], Awaitable[Optional[dict]]]


def library_store(library: MediaLibraryUpload) -> StoreFn:
    async def store(user_id: int, upload: UploadedFile) -> Optional[dict]:
        media_uuid = await library.save_uploaded_file(user_id, upload)
        if media_uuid is None:
            return None
        record = await library.media.get(media_uuid)
        return {
            "ref": media_uuid,
            "file_name": record["file_name"],
            "size": record["size"],
            "transformed": bool(record["custom_properties"].get("transformed")),
        }
    return store


def disk_store(handler: FileUploadHandler) -> StoreFn:
    async def store(user_id: int, upload: UploadedFile) -> Optional[dict]:
        stored = await asyncio.to_thread(handler.store, upload)
        if stored is None:
            return None
        return {
            "ref": stored.path,
            "file_name": Path(stored.path).name,
            "size": len(stored.result.data),
            "transformed": stored.result.transformed,
        }
    return store


def register_upload_handlers(rt: Router, config: BotConfig, downloads: DownloadArea, usage: UsageRepo,
                             bot: Bot, store: StoreFn,
                             library: Optional[MediaLibraryUpload] = None) -> None:
    semaphore = asyncio.Semaphore(config.max_concurrent)

    async def ingest(message: Message, file_id: str, file_name: str,
                     file_size: int, mime_type: str) -> None:
        uid = message.from_user.id
        if file_size and file_size > config.max_file_size_bytes:
            await message.reply(f"❌ File too large (max {config.max_file_size_mb}MB)")
            return

        status = await message.reply(f"⏳ Processing {file_name}...")
        inp = None
        try:
            async with semaphore:
                inp = await downloads.fetch(bot, file_id, file_name)
                original_size = inp.stat().st_size
                upload = UploadedFile(inp, file_name, mime_type)
                with stopwatch() as lap:
                    stored = await store(uid, upload)

            if stored is None:
                await usage.log(uid, mime_type, "store", file_size, "failure", "file unavailable")
                await status.edit_text("❌ Upload was lost before it could be stored. Try again.")
                return

            await usage.log(uid, mime_type, "store", original_size, "success", "", lap["ms"])
            change = "optimized" if stored["transformed"] else "stored as-is"
            await status.edit_text(
                f"✅ {change} ({lap['ms']}ms)\n"
                f"📄 {stored['file_name']}\n"
                f"📦 {human_size(original_size)} → {human_size(stored['size'])}\n"
                f"🏷 {stored['ref']}"
            )
        except Exception as e:
            logger.error(f"Store error ({file_name}): {e}", exc_info=True)
            await usage.log(uid, mime_type, "store", file_size, "failure", str(e)[:200])
            await status.edit_text(f"❌ Error: {str(e)[:200]}")
        finally:
            downloads.discard(inp)

    @rt.message(F.photo)
    async def on_photo(message: Message):
        photo = message.photo[-1]
        await ingest(message, photo.file_id, "photo.jpg", photo.file_size or 0, "image/jpeg")

    @rt.message(F.document)
    async def on_file(message: Message):
        doc = message.document
        name = doc.file_name or "file"
        await ingest(message, doc.file_id, name, doc.file_size or 0,
                     resolve_mime_type(name, doc.mime_type))

    @rt.message(Command("gallery"))
    async def cmd_gallery(message: Message):
        if library is None:
            await message.reply("Gallery is only available in library storage mode.")
            return
        records = await library.records(message.from_user.id)
        if not records:
            await message.reply("Your gallery is empty. Send me an image.")
            return
        lines = [
            f"{i}. {r['file_name']} ({human_size(r['size'])})\n   {r['uuid']}"
            for i, r in enumerate(records, start=1)
        ]
        await message.reply("🖼 Gallery\n━━━━━━━━━━━━━━━━━━━━━\n" + "\n".join(lines))

    @rt.message(Command("reorder"))
    async def cmd_reorder(message: Message, command: CommandObject):
        if library is None:
            await message.reply("Reordering is only available in library storage mode.")
            return
        wanted = (command.args or "").split()
        if not wanted:
            await message.reply("Usage: /reorder <uuid> <uuid> ...")
            return
        current = [r["uuid"] for r in await library.records(message.from_user.id)]
        unknown = [u for u in wanted if u not in current]
        if unknown:
            await message.reply(f"❌ Not in your gallery: {', '.join(unknown)}")
            return
        ordered = list(dict.fromkeys(wanted)) + [u for u in current if u not in wanted]
        await library.reorder({u: u for u in ordered})
        await message.reply("✅ Gallery reordered.")

    @rt.message(Command("remove"))
    async def cmd_remove(message: Message, command: CommandObject):
        if library is None:
            await message.reply("Removing is only available in library storage mode.")
            return
        target = (command.args or "").strip()
        if not target:
            await message.reply("Usage: /remove <uuid>")
            return
        uid = message.from_user.id
        state = await library.load_state(uid)
        if target not in state:
            await message.reply("❌ Not in your gallery.")
            return
        state.pop(target)
        removed = await library.delete_abandoned(uid, state)
        await message.reply(f"🗑 Removed {removed} file(s).")

    @rt.message(Command("stats"))
    async def cmd_stats(message: Message):
        uid = message.from_user.id
        today = await usage.today_processed(uid)
        mine = await usage.outcomes(user_id=uid, operation="store")
        text = (
            f"📊 Your uploads today: {today}\n"
            f"Stored: {mine['success']} ok, {mine['failure']} failed, "
            f"{human_size(mine['bytes_in'])} received"
        )
        if uid == config.admin_id:
            everyone = await usage.outcomes(operation="store")
            text += f"\nAll users: {everyone['success']} ok, {everyone['failure']} failed"
        await message.reply(text)
