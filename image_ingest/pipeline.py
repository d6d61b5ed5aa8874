"""
Ingestion pipeline. Decides per upload whether to transform, then applies
resize and watermark before re-encoding.
"""

from typing import Optional

from image_ingest.codec import decode
from image_ingest.config import logger
from image_ingest.filename import format_filename
from image_ingest.geometry import plan_geometry
from image_ingest.quality import resolve_quality
from image_ingest.transform import PipelineResult, TransformConfig
from image_ingest.watermark import WatermarkCompositor


def should_process(mime_type: Optional[str], config: TransformConfig) -> bool:
    return "image" in (mime_type or "") and config.has_processing


class IngestionPipeline:
    def __init__(self, compositor: Optional[WatermarkCompositor] = None):
        self.compositor = compositor or WatermarkCompositor()

    def process(self, raw_bytes: bytes, mime_type: Optional[str],
                original_filename: str, config: TransformConfig) -> PipelineResult:
        if not should_process(mime_type, config):
            logger.debug(f"Pass-through: {original_filename} ({mime_type})")
            return PipelineResult(raw_bytes, original_filename, False)

        image = decode(raw_bytes)
        source = (image.width, image.height, image.source_format)

        quality = None
        if config.optimize_format:
            quality = resolve_quality(config.optimize_format, config.quality)

        decision = plan_geometry(image.width, image.height, config)
        if decision.should_resize:
            image = image.resize(decision.target_width, decision.target_height, preserve_aspect_ratio=True)

        if config.watermark is not None:
            image = self.compositor.composite(
                image,
                config.watermark,
                config.watermark_position,
                config.watermark_opacity,
                config.watermark_offset_x,
                config.watermark_offset_y,
            )

        data = image.encode(config.optimize_format, quality)
        filename = format_filename(original_filename, config.optimize_format)

        logger.info(
            f"Processed {original_filename}: {source[0]}x{source[1]} {source[2]} -> "
            f"{image.width}x{image.height} {config.optimize_format or source[2]}"
            f"{f' q={quality}' if quality is not None else ''}"
        )
        return PipelineResult(data, filename, True)
