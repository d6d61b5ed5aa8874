from typing import Optional

JPEG_FORMATS = ("jpeg", "jpg")
JPEG_DEFAULT_QUALITY = 70
DEFAULT_QUALITY = 100


def resolve_quality(fmt: Optional[str], explicit_quality: Optional[int] = None) -> Optional[int]:
    """Encode quality for a forced format. ``None`` when no format is forced."""
    if not fmt:
        return None
    if explicit_quality is not None:
        return explicit_quality
    if fmt.strip().lstrip(".").lower() in JPEG_FORMATS:
        return JPEG_DEFAULT_QUALITY
    return DEFAULT_QUALITY
