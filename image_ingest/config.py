"""
Configuration and logging.
All settings from environment variables only.
"""

import os
import sys
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from image_ingest.errors import InvalidConfig
from image_ingest.transform import TransformConfig

load_dotenv()


LOGGER_NAME = "imageingest"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(funcName)s:%(lineno)d | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(level: Optional[str] = None) -> logging.Logger:
    """Return the shared ``imageingest`` logger, attaching its stdout handler once.

    ``level`` (or ``LOG_LEVEL``) sets the threshold; unknown names fall back to INFO.
    aiogram's per-update event log is kept at WARNING so uploads are not logged twice.
    """
    named = logging.getLogger(LOGGER_NAME)
    wanted = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    level_no = logging.getLevelName(wanted)
    named.setLevel(level_no if isinstance(level_no, int) else logging.INFO)

    if not any(getattr(h, "name", None) == LOGGER_NAME for h in named.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(LOGGER_NAME)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        named.addHandler(handler)
        logging.getLogger("aiogram.event").setLevel(logging.WARNING)
    return named


logger = setup_logger()


@dataclass(frozen=True)
class BotConfig:
    token: str = field(repr=False)
    admin_id: int = 0
    allowed_users: tuple = ()
    database_path: str = "data/media.db"
    storage_dir: str = "data/storage"
    upload_directory: str = ""
    storage_mode: str = "library"
    collection: str = "default"
    visibility: str = "private"
    preserve_filenames: bool = False
    max_file_size_mb: int = 20
    temp_dir: str = "tmp"
    port: int = 10000
    max_concurrent: int = 2
    transform: TransformConfig = field(default_factory=TransformConfig)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name, "").strip()
    return value or None


def _env_int(env: Mapping[str, str], name: str) -> Optional[int]:
    value = _env_str(env, name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidConfig(f"{name} must be an integer, got {value!r}") from None


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    value = _env_str(env, name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def load_transform_config(env: Mapping[str, str] = os.environ) -> TransformConfig:
    watermark = None
    watermark_path = _env_str(env, "WATERMARK_PATH")
    if watermark_path:
        path = Path(watermark_path)
        if not path.is_file():
            raise InvalidConfig(f"WATERMARK_PATH does not exist: {path}")
        watermark = path.read_bytes()

    return TransformConfig(
        optimize_format=_env_str(env, "OPTIMIZE_FORMAT"),
        quality=_env_int(env, "OPTIMIZE_QUALITY"),
        resize_percent=_env_int(env, "RESIZE_PERCENT"),
        max_width=_env_int(env, "MAX_IMAGE_WIDTH"),
        max_height=_env_int(env, "MAX_IMAGE_HEIGHT"),
        watermark=watermark,
        watermark_position=_env_str(env, "WATERMARK_POSITION"),
        watermark_opacity=_env_int(env, "WATERMARK_OPACITY"),
        watermark_offset_x=_env_int(env, "WATERMARK_OFFSET_X"),
        watermark_offset_y=_env_int(env, "WATERMARK_OFFSET_Y"),
    )


def load_config() -> BotConfig:
    token = os.getenv("BOT_TOKEN", "").strip()
    if not token:
        logger.critical("BOT_TOKEN is required")
        sys.exit(1)

    admin_id_str = os.getenv("ADMIN_ID", "0").strip()
    if not admin_id_str.isdigit() or int(admin_id_str) == 0:
        logger.critical("ADMIN_ID must be a valid numeric ID")
        sys.exit(1)

    allowed = tuple(
        int(part) for part in os.getenv("ALLOWED_USERS", "").replace(" ", "").split(",")
        if part.isdigit()
    )

    storage_mode = os.getenv("STORAGE_MODE", "library").strip().lower()
    if storage_mode not in ("library", "disk"):
        logger.critical("STORAGE_MODE must be 'library' or 'disk'")
        sys.exit(1)

    try:
        transform = load_transform_config()
        config = BotConfig(
            token=token,
            admin_id=int(admin_id_str),
            allowed_users=allowed,
            database_path=os.getenv("DATABASE_PATH", "data/media.db").strip(),
            storage_dir=os.getenv("STORAGE_DIR", "data/storage").strip(),
            upload_directory=os.getenv("UPLOAD_DIRECTORY", "").strip(),
            storage_mode=storage_mode,
            collection=os.getenv("MEDIA_COLLECTION", "default").strip() or "default",
            visibility="public" if os.getenv("VISIBILITY", "").strip().lower() == "public" else "private",
            preserve_filenames=_env_bool(os.environ, "PRESERVE_FILENAMES"),
            max_file_size_mb=_env_int(os.environ, "MAX_FILE_SIZE_MB") or 20,
            temp_dir=os.getenv("TEMP_DIR", "tmp").strip(),
            port=_env_int(os.environ, "PORT") or 10000,
            max_concurrent=_env_int(os.environ, "MAX_CONCURRENT") or 2,
            transform=transform,
        )
    except InvalidConfig as e:
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    Path(config.database_path).parent.mkdir(parents=True, exist_ok=True)
    Path(config.storage_dir).mkdir(parents=True, exist_ok=True)
    Path(config.temp_dir).mkdir(parents=True, exist_ok=True)

    t = config.transform
    logger.info(
        f"Config loaded: Admin: {config.admin_id}, Mode: {config.storage_mode}, "
        f"Max size: {config.max_file_size_mb}MB, Format: {t.optimize_format or 'source'}, "
        f"Resize: {t.resize_percent or 0}%, Max: {t.max_width or '-'}x{t.max_height or '-'}, "
        f"Watermark: {'yes' if t.watermark is not None else 'no'}"
    )
    return config
