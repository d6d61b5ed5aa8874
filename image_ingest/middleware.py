from aiogram import BaseMiddleware
from aiogram.types import Message

from image_ingest.config import BotConfig, logger


class AccessMiddleware(BaseMiddleware):
    def __init__(self, config: BotConfig):
        self.config = config
        super().__init__()

    def is_allowed(self, user_id: int) -> bool:
        if user_id == self.config.admin_id:
            return True
        if not self.config.allowed_users:
            return True
        return user_id in self.config.allowed_users

    async def __call__(self, handler, event, data):
        user_id = None
        if isinstance(event, Message) and event.from_user:
            user_id = event.from_user.id

        if user_id is None:
            return

        if not self.is_allowed(user_id):
            logger.info(f"Rejected user {user_id}")
            if isinstance(event, Message) and event.text and event.text.startswith("/start"):
                await event.reply(f"You're not authorized yet.\nContact admin.\n\nYour ID: {user_id}")
            return

        return await handler(event, data)
