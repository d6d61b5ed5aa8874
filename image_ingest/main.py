"""
Entry point: startup, polling, shutdown.
"""

import asyncio
import sys

from aiohttp import web

from image_ingest.config import load_config, logger
from image_ingest.bot import setup_bot
from image_ingest.downloads import DownloadArea

TEMP_MAX_AGE_SECONDS = 1800
CLEANUP_INTERVAL_SECONDS = 600


async def health_server(port: int) -> web.AppRunner:
    """Minimal HTTP server for health checks."""
    async def handle(request):
        return web.Response(text="OK")

    app = web.Application()
    app.router.add_get("/", handle)
    app.router.add_get("/health", handle)
    runner = web.AppRunner(app)
    await runner.setup()
    await web.TCPSite(runner, "0.0.0.0", port).start()
    logger.info(f"Health server on port {port}")
    return runner


async def auto_cleanup_task(downloads: DownloadArea) -> None:
    """Delete temp downloads older than 30 minutes, every 10 minutes."""
    while True:
        count = downloads.sweep(TEMP_MAX_AGE_SECONDS)
        if count > 0:
            logger.info(f"Auto-cleanup: Removed {count} old files")
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)


async def main() -> None:
    logger.info("Starting Image Ingest Bot...")
    config = load_config()
    bot, dp, db, downloads = await setup_bot(config)

    runner = None
    try:
        runner = await health_server(config.port)
    except OSError as e:
        logger.warning(f"Health server failed (non-critical): {e}")

    cleanup = asyncio.create_task(auto_cleanup_task(downloads))

    try:
        logger.info("Polling started...")
        await dp.start_polling(bot, allowed_updates=["message"], drop_pending_updates=True)
    finally:
        logger.info("Shutting down...")
        cleanup.cancel()
        if runner:
            await runner.cleanup()
        downloads.sweep_all()
        await db.close()
        await bot.session.close()
        logger.info("Shutdown complete.")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted. Exiting.")
    except Exception as e:
        logger.critical(f"Fatal: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
