import pytest

from conftest import make_image_bytes, open_bytes
from image_ingest.errors import DecodeError
from image_ingest.pipeline import IngestionPipeline, should_process
from image_ingest.transform import TransformConfig


@pytest.fixture
def pipeline():
    return IngestionPipeline()


class TestShouldProcess:

    @pytest.mark.parametrize("mime", ["image/png", "image/jpeg", "image/svg+xml"])
    def test_images_with_processing(self, mime):
        assert should_process(mime, TransformConfig(max_width=10))

    @pytest.mark.parametrize("mime", ["application/pdf", "text/plain", "", None])
    def test_non_images(self, mime):
        assert not should_process(mime, TransformConfig(max_width=10))

    def test_image_without_processing(self):
        assert not should_process("image/png", TransformConfig())


class TestPassThrough:

    def test_non_image_is_untouched(self, pipeline):
        raw = b"%PDF-1.4 not an image"
        result = pipeline.process(raw, "application/pdf", "doc.pdf", TransformConfig(optimize_format="webp"))
        assert result.data is raw
        assert result.filename == "doc.pdf"
        assert result.transformed is False

    def test_image_without_processing_is_untouched(self, pipeline, watermark_bytes):
        raw = make_image_bytes((50, 50))
        result = pipeline.process(raw, "image/png", "a.png", TransformConfig(watermark=watermark_bytes))
        assert result.data is raw
        assert result.filename == "a.png"
        assert result.transformed is False

    def test_garbage_is_not_decoded_when_not_processing(self, pipeline):
        result = pipeline.process(b"junk", "image/png", "a.png", TransformConfig())
        assert result.data == b"junk"


class TestProcessing:

    def test_max_width_keeps_format_and_ratio(self, pipeline):
        raw = make_image_bytes((1000, 800), "PNG")
        result = pipeline.process(raw, "image/png", "photo.png", TransformConfig(max_width=500))
        img = open_bytes(result.data)
        assert img.size == (500, 400)
        assert img.format == "PNG"
        assert result.filename == "photo.png"
        assert result.transformed is True

    def test_forced_format_changes_encoding_and_name(self, pipeline):
        raw = make_image_bytes((200, 100), "PNG")
        result = pipeline.process(raw, "image/png", "photo.PNG", TransformConfig(optimize_format="jpg"))
        img = open_bytes(result.data)
        assert img.format == "JPEG"
        assert img.size == (200, 100)
        assert result.filename == "photo.jpg"

    def test_resize_percent(self, pipeline):
        raw = make_image_bytes((400, 200), "PNG")
        result = pipeline.process(raw, "image/png", "p.png", TransformConfig(resize_percent=50))
        assert open_bytes(result.data).size == (200, 100)

    def test_small_image_is_not_enlarged(self, pipeline):
        raw = make_image_bytes((100, 80), "PNG")
        result = pipeline.process(raw, "image/png", "p.png", TransformConfig(max_width=500))
        assert open_bytes(result.data).size == (100, 80)
        assert result.transformed is True

    def test_watermark_applied_after_resize(self, pipeline, watermark_bytes):
        raw = make_image_bytes((1000, 1000), "PNG", (255, 0, 0))
        config = TransformConfig(max_width=100, watermark=watermark_bytes, watermark_opacity=100)
        img = open_bytes(pipeline.process(raw, "image/png", "w.png", config).data).convert("RGB")
        assert img.size == (100, 100)
        assert img.getpixel((99, 99)) == (0, 0, 255)
        assert img.getpixel((80, 90)) == (0, 0, 255)
        assert img.getpixel((79, 99)) == (255, 0, 0)
        assert img.getpixel((99, 89)) == (255, 0, 0)

    def test_watermark_offset(self, pipeline, watermark_bytes):
        raw = make_image_bytes((100, 100), "PNG", (255, 0, 0))
        config = TransformConfig(optimize_format="png", watermark=watermark_bytes, watermark_opacity=100,
                                 watermark_position="top-left", watermark_offset_x=10)
        img = open_bytes(pipeline.process(raw, "image/png", "w.png", config).data).convert("RGB")
        assert img.getpixel((5, 5)) == (255, 0, 0)
        assert img.getpixel((10, 0)) == (0, 0, 255)

    def test_undecodable_image_raises(self, pipeline):
        with pytest.raises(DecodeError):
            pipeline.process(b"junk", "image/png", "a.png", TransformConfig(max_width=10))

    def test_custom_compositor_is_used(self, watermark_bytes):
        calls = []

        class RecordingCompositor:
            def composite(self, base, watermark, position, opacity, offset_x, offset_y):
                calls.append((position, opacity, offset_x, offset_y))
                return base

        raw = make_image_bytes((50, 50))
        config = TransformConfig(max_width=20, watermark=watermark_bytes)
        IngestionPipeline(RecordingCompositor()).process(raw, "image/png", "a.png", config)
        assert calls == [("bottom-right", 75, None, None)]


def test_wide_jpeg_clamped_without_forced_format(pipeline):
    raw = make_image_bytes((2000, 1000), "JPEG")
    result = pipeline.process(raw, "image/jpeg", "wide.jpg", TransformConfig(max_width=800))
    img = open_bytes(result.data)
    assert img.size == (800, 400)
    assert img.format == "JPEG"
    assert result.filename == "wide.jpg"


@pytest.mark.parametrize("fmt, mime", [("PPM", "image/x-portable-pixmap"), ("TGA", "image/x-tga")])
def test_clamps_any_writable_source_format(pipeline, fmt, mime):
    raw = make_image_bytes((200, 100), fmt)
    result = pipeline.process(raw, mime, "scan.img", TransformConfig(max_width=50))
    img = open_bytes(result.data)
    assert img.format == fmt
    assert img.size == (50, 25)


def test_reprocessing_own_output_keeps_dimensions(pipeline):
    config = TransformConfig(optimize_format="webp")
    first = pipeline.process(make_image_bytes((300, 200)), "image/png", "a.png", config)
    second = pipeline.process(first.data, "image/webp", first.filename, config)
    assert open_bytes(second.data).size == (300, 200)
    assert second.transformed is True
    assert second.filename == "a.webp"
