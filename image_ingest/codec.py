"""
Pillow-backed image handle used by the pipeline and the watermark compositor.

Every operation returns a new handle; the wrapped image is never modified in place.
"""

import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from image_ingest.errors import DecodeError, EncodeError

FORMAT_ALIASES = {
    "JPG": "JPEG",
    "MPO": "JPEG",
    "TIF": "TIFF",
}

LOSSY_FORMATS = ("JPEG", "WEBP")


def pillow_format(fmt: str) -> str:
    """Pillow's name for ``fmt``; any format Pillow has a writer for is accepted."""
    key = fmt.strip().lstrip(".").upper()
    key = FORMAT_ALIASES.get(key, key)
    Image.init()
    if key not in Image.SAVE:
        raise EncodeError(f"Unsupported output format: {fmt}")
    return key


def mime_type_for(fmt: str) -> Optional[str]:
    return Image.MIME.get(pillow_format(fmt))


def decode(data: bytes) -> "ImageHandle":
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Cannot decode image: {e}") from e
    return ImageHandle(img, img.format)


def _anchor_point(width: int, height: int, position: str, offset_x: int = 0, offset_y: int = 0) -> tuple[int, int]:
    # Edge anchors measure the offset inward from that edge; centred axes shift forward.
    if position in ("top-left", "left", "bottom-left"):
        x = offset_x
    elif position in ("top-right", "right", "bottom-right"):
        x = width - offset_x
    else:
        x = width // 2 + offset_x

    if position in ("top-left", "top", "top-right"):
        y = offset_y
    elif position in ("bottom-left", "bottom", "bottom-right"):
        y = height - offset_y
    else:
        y = height // 2 + offset_y
    return x, y


class ImageHandle:
    def __init__(self, image: Image.Image, source_format: Optional[str] = None):
        self.image = image
        self.source_format = source_format

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def _derive(self, image: Image.Image) -> "ImageHandle":
        return ImageHandle(image, self.source_format)

    def resize(self, width: Optional[int], height: Optional[int],
               preserve_aspect_ratio: bool = True, upsize: bool = False) -> "ImageHandle":
        """Resize to the target box.

        With ``preserve_aspect_ratio`` a missing dimension is derived from the
        source ratio, and when both are given the image fits inside the box.
        Never enlarges the image unless ``upsize`` is set.
        """
        src_w, src_h = self.width, self.height
        if width is None and height is None:
            return self._derive(self.image.copy())

        if not preserve_aspect_ratio:
            new_w, new_h = width or src_w, height or src_h
        elif height is None or (width is not None and width / src_w <= height / src_h):
            new_w = width
            new_h = max(1, int(round(width * src_h / src_w)))
        else:
            new_h = height
            new_w = max(1, int(round(height * src_w / src_h)))

        if not upsize and (new_w > src_w or new_h > src_h):
            if preserve_aspect_ratio:
                return self._derive(self.image.copy())
            new_w, new_h = min(new_w, src_w), min(new_h, src_h)

        if (new_w, new_h) == (src_w, src_h):
            return self._derive(self.image.copy())
        return self._derive(self.image.resize((new_w, new_h), Image.LANCZOS))

    def with_opacity(self, opacity: int) -> "ImageHandle":
        """Scale the alpha channel to ``opacity`` percent (0 transparent, 100 unchanged)."""
        opacity = max(0, min(int(opacity), 100))
        img = self.image.convert("RGBA")
        if opacity < 100:
            alpha = img.getchannel("A").point(lambda a: a * opacity // 100)
            img.putalpha(alpha)
        return self._derive(img)

    def insert(self, overlay: "ImageHandle", position: str = "bottom-right",
               offset_x: int = 0, offset_y: int = 0) -> "ImageHandle":
        base_x, base_y = _anchor_point(self.width, self.height, position, offset_x, offset_y)
        pivot_x, pivot_y = _anchor_point(overlay.width, overlay.height, position)

        mode = self.image.mode
        canvas = self.image.convert("RGBA")
        layer = overlay.image.convert("RGBA")
        canvas.paste(layer, (base_x - pivot_x, base_y - pivot_y), layer)
        if mode in ("RGB", "L"):
            canvas = canvas.convert(mode)
        return self._derive(canvas)

    def encode(self, fmt: Optional[str] = None, quality: Optional[int] = None) -> bytes:
        """Encode to ``fmt`` or, when not given, to the source format."""
        pil_fmt = pillow_format(fmt or self.source_format or "PNG")
        img = self.image
        if pil_fmt == "JPEG" and img.mode in ("RGBA", "LA", "P"):
            img = img.convert("RGB")

        options = {}
        if quality is not None and pil_fmt in LOSSY_FORMATS:
            options["quality"] = quality

        buf = io.BytesIO()
        try:
            img.save(buf, format=pil_fmt, **options)
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(f"Cannot encode image as {pil_fmt}: {e}") from e
        return buf.getvalue()
