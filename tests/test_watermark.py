from unittest.mock import MagicMock

import pytest
from PIL import Image

from conftest import make_image_bytes
from image_ingest.codec import ImageHandle, decode
from image_ingest.watermark import (
    DecodedImage,
    RawBytes,
    WatermarkCompositor,
    to_watermark_source,
)


class TestWatermarkSource:

    def test_bytes_become_raw(self):
        assert to_watermark_source(b"abc") == RawBytes(b"abc")

    def test_bytearray_becomes_raw(self):
        assert to_watermark_source(bytearray(b"abc")) == RawBytes(b"abc")

    def test_handle_becomes_decoded(self):
        handle = ImageHandle(Image.new("RGBA", (2, 2)))
        assert to_watermark_source(handle).image is handle

    def test_pil_image_is_wrapped(self):
        img = Image.new("RGBA", (2, 2))
        source = to_watermark_source(img)
        assert isinstance(source, DecodedImage)
        assert source.image.image is img

    def test_unsupported(self):
        with pytest.raises(TypeError):
            to_watermark_source("logo.png")

    def test_load_decodes_raw_bytes(self):
        handle = WatermarkCompositor.load(RawBytes(make_image_bytes((7, 3))))
        assert (handle.width, handle.height) == (7, 3)


class TestCompositeOffsets:
    """The insert call shape depends only on which offsets were supplied."""

    @pytest.fixture
    def base(self):
        return MagicMock(spec=ImageHandle)

    @pytest.fixture
    def watermark(self):
        return ImageHandle(Image.new("RGBA", (4, 4), (0, 0, 255, 255)))

    def test_no_offsets(self, base, watermark):
        WatermarkCompositor().composite(base, watermark, "top-left", 75, None, None)
        args = base.insert.call_args.args
        assert len(args) == 2
        assert args[1] == "top-left"

    def test_only_x(self, base, watermark):
        WatermarkCompositor().composite(base, watermark, "bottom-right", 75, 10, None)
        assert base.insert.call_args.args[1:] == ("bottom-right", 10, 0)

    def test_only_y(self, base, watermark):
        WatermarkCompositor().composite(base, watermark, "bottom-right", 75, None, 7)
        assert base.insert.call_args.args[1:] == ("bottom-right", 0, 7)

    def test_both(self, base, watermark):
        WatermarkCompositor().composite(base, watermark, "center", 75, 3, 4)
        assert base.insert.call_args.args[1:] == ("center", 3, 4)

    def test_opacity_applied_before_insert(self, base, watermark):
        WatermarkCompositor().composite(base, watermark, "center", 50)
        overlay = base.insert.call_args.args[0]
        assert overlay.image.getpixel((0, 0))[3] == 127


def test_composite_blends_into_corner(watermark_bytes):
    base = decode(make_image_bytes((100, 100), "PNG", (255, 0, 0)))
    out = WatermarkCompositor().composite(base, watermark_bytes, "bottom-right", 75)
    r, g, b = out.image.getpixel((99, 99))
    assert b > r
    assert out.image.getpixel((0, 0)) == (255, 0, 0)
    assert (out.width, out.height) == (100, 100)
