"""
Resize planning from source dimensions, max-dimension clamps and percentage shrink.
"""

import math
from dataclasses import dataclass
from typing import Optional

from image_ingest.transform import GeometryDecision, TransformConfig


@dataclass
class _Plan:
    width: Optional[int] = None
    height: Optional[int] = None
    resize: bool = False


def _shrink(value: int, percent: int) -> int:
    # Half-up rounding, never below one pixel.
    return max(1, int(math.floor(value * (1 - percent / 100) + 0.5)))


def plan_geometry(width: int, height: int, config: TransformConfig) -> GeometryDecision:
    """Work out the resize target for a ``width`` x ``height`` image.

    Rules run in order and a later rule overwrites an earlier one on the same
    axis: max width clamp, max height clamp, then the percentage shrink of the
    dominant axis (height when the image is taller than wide, else width).
    """
    plan = _Plan()

    if config.max_width and width > config.max_width:
        plan.resize = True
        plan.width = config.max_width

    if config.max_height and height > config.max_height:
        plan.resize = True
        plan.height = config.max_height

    if config.resize_percent:
        plan.resize = True
        if height > width:
            plan.height = _shrink(height, config.resize_percent)
        else:
            plan.width = _shrink(width, config.resize_percent)

    if not plan.resize:
        return GeometryDecision()
    return GeometryDecision(plan.width, plan.height)
