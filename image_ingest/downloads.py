"""
Scratch area for files fetched from Telegram before they are ingested.
"""

import mimetypes
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from image_ingest.config import logger

SIZE_UNITS = ("B", "KB", "MB", "GB")


class DownloadArea:
    def __init__(self, root: str = "tmp"):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def reserve(self, file_name: Optional[str] = None) -> Path:
        suffix = Path(file_name).suffix.lower() if file_name else ""
        return self.root / f"dl-{uuid.uuid4().hex}{suffix}"

    async def fetch(self, bot, file_id: str, file_name: Optional[str] = None) -> Path:
        target = self.reserve(file_name)
        remote = await bot.get_file(file_id)
        await bot.download_file(remote.file_path, destination=str(target))
        logger.info(f"Fetched {file_name or file_id} -> {target.name}")
        return target

    def discard(self, path: Optional[Path]) -> None:
        if path is None:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not discard {path}: {e}")

    def sweep(self, max_age_seconds: float) -> int:
        """Remove downloads older than ``max_age_seconds``; returns how many went."""
        cutoff = time.time() - max_age_seconds
        removed = 0
        for entry in self.root.glob("dl-*"):
            try:
                if entry.is_file() and entry.stat().st_mtime < cutoff:
                    entry.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not sweep {entry}: {e}")
        return removed

    def sweep_all(self) -> int:
        return self.sweep(-1)


@contextmanager
def stopwatch() -> Iterator[dict]:
    lap = {"ms": 0}
    started = time.perf_counter()
    try:
        yield lap
    finally:
        lap["ms"] = int((time.perf_counter() - started) * 1000)


def human_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in SIZE_UNITS:
        if size < 1024 or unit == SIZE_UNITS[-1]:
            break
        size /= 1024
    return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"


def resolve_mime_type(file_name: Optional[str], declared: Optional[str] = None) -> str:
    """Prefer the type Telegram declared, else guess from the extension."""
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(file_name or "")
    return guessed or "application/octet-stream"
