import posixpath
from typing import Optional


def format_filename(filename: str, forced_format: Optional[str] = None) -> str:
    """Swap the last extension of ``filename`` for ``forced_format``.

    >>> format_filename("photo.PNG", "webp")
    'photo.webp'
    >>> format_filename("photo", ".JPG")
    'photo.jpg'
    """
    if not forced_format:
        return filename

    directory, name = posixpath.split(filename)
    stem = posixpath.splitext(name)[0] or name
    new_name = f"{stem}.{forced_format.strip().lower().lstrip('.')}"
    return posixpath.join(directory, new_name) if directory else new_name
