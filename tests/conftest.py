import io

import pytest
from PIL import Image


def make_image_bytes(size=(100, 100), fmt="PNG", color="red", mode="RGB"):
    """Build an in-memory image file."""
    img = Image.new(mode, size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def open_bytes(data):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


@pytest.fixture
def image_bytes():
    return make_image_bytes


@pytest.fixture
def watermark_bytes():
    return make_image_bytes((20, 10), "PNG", (0, 0, 255, 255), "RGBA")
