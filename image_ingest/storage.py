"""
Local disk storage sink.
"""

import os
from pathlib import Path
from typing import Optional

from image_ingest.config import logger

PUBLIC_MODE = 0o644
PRIVATE_MODE = 0o600


class LocalDiskStorage:
    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def full_path(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return target

    def put(self, path: str, data: bytes, options: Optional[dict] = None) -> Path:
        target = self.full_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        public = (options or {}).get("visibility") == "public"
        os.chmod(target, PUBLIC_MODE if public else PRIVATE_MODE)
        logger.info(f"Stored: {path} ({len(data)} bytes, {'public' if public else 'private'})")
        return target

    def exists(self, path: str) -> bool:
        return self.full_path(path).is_file()

    def size(self, path: str) -> int:
        return self.full_path(path).stat().st_size

    def delete(self, path: str) -> bool:
        target = self.full_path(path)
        if not target.is_file():
            return False
        target.unlink()
        logger.info(f"Deleted: {path}")
        return True
