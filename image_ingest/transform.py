"""
Transform configuration and the value objects passed through the pipeline.
"""

from dataclasses import dataclass
from typing import Any, Optional

from image_ingest.errors import InvalidConfig
from image_ingest.watermark import WATERMARK_TYPES

WATERMARK_POSITIONS = (
    "top-left", "top", "top-right",
    "left", "center", "right",
    "bottom-left", "bottom", "bottom-right",
)

DEFAULT_WATERMARK_POSITION = "bottom-right"
DEFAULT_WATERMARK_OPACITY = 75


def _check_int(name: str, value: Any, low: Optional[int] = None, high: Optional[int] = None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfig(f"{name} must be an integer, got {value!r}")
    if low is not None and value < low:
        raise InvalidConfig(f"{name} must be >= {low}, got {value}")
    if high is not None and value > high:
        raise InvalidConfig(f"{name} must be <= {high}, got {value}")


@dataclass(frozen=True)
class TransformConfig:
    """What processing was requested for an upload.

    Read-only after construction. ``optimize_format`` set to an empty string
    means no forced format. ``resize_percent`` shrinks the longer edge by that
    many percent; ``max_width``/``max_height`` only constrain images larger
    than them.
    """

    optimize_format: Optional[str] = None
    quality: Optional[int] = None
    resize_percent: Optional[int] = None
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    watermark: Any = None
    watermark_position: Optional[str] = DEFAULT_WATERMARK_POSITION
    watermark_opacity: Optional[int] = DEFAULT_WATERMARK_OPACITY
    watermark_offset_x: Optional[int] = None
    watermark_offset_y: Optional[int] = None

    def __post_init__(self) -> None:
        fmt = self.optimize_format
        if fmt is not None:
            if not isinstance(fmt, str):
                raise InvalidConfig(f"optimize_format must be a string, got {fmt!r}")
            object.__setattr__(self, "optimize_format", fmt.strip() or None)

        _check_int("quality", self.quality, 0, 100)
        _check_int("resize_percent", self.resize_percent, 0, 99)
        _check_int("max_width", self.max_width, 1)
        _check_int("max_height", self.max_height, 1)
        _check_int("watermark_offset_x", self.watermark_offset_x)
        _check_int("watermark_offset_y", self.watermark_offset_y)

        if self.watermark_opacity is None:
            object.__setattr__(self, "watermark_opacity", DEFAULT_WATERMARK_OPACITY)
        _check_int("watermark_opacity", self.watermark_opacity, 0, 100)

        position = self.watermark_position
        if position is None:
            position = DEFAULT_WATERMARK_POSITION
        if not isinstance(position, str) or position.strip().lower() not in WATERMARK_POSITIONS:
            raise InvalidConfig(
                f"watermark_position must be one of {', '.join(WATERMARK_POSITIONS)}, got {position!r}"
            )
        object.__setattr__(self, "watermark_position", position.strip().lower())

        if self.watermark is not None and not isinstance(self.watermark, WATERMARK_TYPES):
            raise InvalidConfig(f"Unsupported watermark source: {type(self.watermark).__name__}")

    @property
    def has_processing(self) -> bool:
        return bool(self.optimize_format or self.resize_percent or self.max_width or self.max_height)


@dataclass(frozen=True)
class GeometryDecision:
    target_width: Optional[int] = None
    target_height: Optional[int] = None

    @property
    def should_resize(self) -> bool:
        return self.target_width is not None or self.target_height is not None


@dataclass(frozen=True)
class PipelineResult:
    data: bytes
    filename: str
    transformed: bool = False
