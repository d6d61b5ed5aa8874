"""
Watermark compositing on top of an already-resized base image.
"""

from dataclasses import dataclass
from typing import Optional, Union

from PIL import Image

from image_ingest.codec import ImageHandle, decode


@dataclass(frozen=True)
class RawBytes:
    data: bytes


@dataclass(frozen=True)
class DecodedImage:
    image: ImageHandle


WatermarkSource = Union[RawBytes, DecodedImage]

WATERMARK_TYPES = (bytes, bytearray, ImageHandle, Image.Image, RawBytes, DecodedImage)


def to_watermark_source(value) -> WatermarkSource:
    if isinstance(value, (RawBytes, DecodedImage)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return RawBytes(bytes(value))
    if isinstance(value, ImageHandle):
        return DecodedImage(value)
    if isinstance(value, Image.Image):
        return DecodedImage(ImageHandle(value, value.format))
    raise TypeError(f"Unsupported watermark source: {type(value).__name__}")


class WatermarkCompositor:
    @staticmethod
    def load(source: WatermarkSource) -> ImageHandle:
        if isinstance(source, RawBytes):
            return decode(source.data)
        return source.image

    def composite(self, base: ImageHandle, watermark, position: str = "bottom-right",
                  opacity: int = 75, offset_x: Optional[int] = None,
                  offset_y: Optional[int] = None) -> ImageHandle:
        """Overlay ``watermark`` on ``base`` at the anchor ``position``.

        When neither offset is given the overlay is inserted at the bare anchor.
        When only one is given the other counts as 0 and both are passed on.
        """
        wm = self.load(to_watermark_source(watermark)).with_opacity(opacity)

        if offset_x is None and offset_y is None:
            return base.insert(wm, position)
        return base.insert(wm, position, offset_x or 0, offset_y or 0)
