from aiogram import Bot, Dispatcher, Router
from aiogram.types import Message, BotCommand
from aiogram.filters import Command

from image_ingest.config import BotConfig, logger
from image_ingest.database import Database, MediaRepo, UsageRepo
from image_ingest.downloads import DownloadArea
from image_ingest.media_library import MediaLibraryUpload
from image_ingest.middleware import AccessMiddleware
from image_ingest.storage import LocalDiskStorage
from image_ingest.upload_router import disk_store, library_store, register_upload_handlers
from image_ingest.uploads import FileUploadHandler


async def set_bot_commands(bot: Bot) -> None:
    commands = [
        BotCommand(command="start", description="Start the bot"),
        BotCommand(command="help", description="How to use"),
        BotCommand(command="myid", description="Get your Telegram ID"),
        BotCommand(command="gallery", description="List your stored images"),
        BotCommand(command="reorder", description="Reorder your gallery"),
        BotCommand(command="remove", description="Remove a stored image"),
        BotCommand(command="stats", description="Upload statistics"),
    ]
    await bot.set_my_commands(commands)
    logger.info("Bot commands set")


def describe_transform(config: BotConfig) -> str:
    t = config.transform
    parts = []
    if t.max_width or t.max_height:
        parts.append(f"max {t.max_width or '∞'}x{t.max_height or '∞'}")
    if t.resize_percent:
        parts.append(f"shrink {t.resize_percent}%")
    if t.optimize_format:
        parts.append(f"convert to {t.optimize_format.upper()}")
    if t.watermark is not None:
        parts.append(f"watermark {t.watermark_position}")
    return ", ".join(parts) or "stored as-is"


async def setup_bot(config: BotConfig):
    db = Database(config.database_path)
    await db.connect()

    usage = UsageRepo(db)
    storage = LocalDiskStorage(config.storage_dir)
    downloads = DownloadArea(config.temp_dir)

    library = None
    if config.storage_mode == "library":
        library = MediaLibraryUpload(
            MediaRepo(db),
            storage,
            config.transform,
            collection=config.collection,
            preserve_filenames=config.preserve_filenames,
            visibility=config.visibility,
        )
        store = library_store(library)
    else:
        handler = FileUploadHandler(
            storage,
            config.transform,
            directory=config.upload_directory,
            visibility=config.visibility,
            preserve_filenames=config.preserve_filenames,
        )
        store = disk_store(handler)

    bot = Bot(token=config.token)
    dp = Dispatcher()

    await set_bot_commands(bot)

    dp.message.middleware(AccessMiddleware(config))

    main_rt = Router(name="main")

    @main_rt.message(Command("start"))
    async def cmd_start(message: Message):
        is_admin = message.from_user.id == config.admin_id
        badge = " (Admin)" if is_admin else ""
        await message.reply(
            f"Welcome to Image Ingest Bot!{badge}\n\n"
            f"Send me images and I will store them for you.\n\n"
            f"Processing: {describe_transform(config)}\n"
            f"Max size: {config.max_file_size_mb}MB\n\n"
            f"Use /help for details."
        )

    @main_rt.message(Command("help"))
    async def cmd_help(message: Message):
        await message.reply(
            "How to use:\n\n"
            "1. Send an image (as file for full quality)\n"
            "2. It is resized, converted and watermarked as configured\n"
            "3. The result is stored in your gallery\n\n"
            "Other files are stored unchanged.\n\n"
            "Gallery:\n"
            "- /gallery to list\n"
            "- /reorder <uuid> ... to change order\n"
            "- /remove <uuid> to delete"
        )

    @main_rt.message(Command("myid"))
    async def cmd_myid(message: Message):
        await message.reply(f"Your ID: {message.from_user.id}")

    upload_rt = Router(name="uploads")
    register_upload_handlers(upload_rt, config, downloads, usage, bot, store, library)

    dp.include_router(main_rt)
    dp.include_router(upload_rt)

    logger.info(f"Bot setup complete ({config.storage_mode} mode)")
    return bot, dp, db, downloads
