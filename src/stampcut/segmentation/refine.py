"""
Region refinement: noise rejection, tight refit, padding and parity.

Turns dilated-mask components into final crop rectangles in source
coordinates. Rectangles are inclusive on both ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .bitmap import alpha_channel
from .labeling import Component
from ..config import SegmentationConfig
from ..logging import get_logger

logger = get_logger(__name__)

Box = Tuple[int, int, int, int]


@dataclass(frozen=True)
class Region:
    """Final crop rectangle for one object, in source-bitmap coordinates."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    # Discovery label of the component this region came from
    component_label: int = -1

    @property
    def x(self) -> int:
        return self.min_x

    @property
    def y(self) -> int:
        return self.min_y

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def is_even(self) -> bool:
        return self.width % 2 == 0 and self.height % 2 == 0

    @property
    def bbox(self) -> Box:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


def passes_noise_filter(component: Component, min_box_area: int = 900, min_pixel_count: int = 200) -> bool:
    """True if the dilated box area or the dilated pixel count is strictly above its threshold."""
    return component.bbox_area > min_box_area or component.pixel_count > min_pixel_count


def tight_bbox(alpha: np.ndarray, box: Box, threshold: int = 20) -> Optional[Box]:
    """
    Minimal rectangle covering every pixel with alpha > threshold inside ``box``.

    Returns None when the sub-region has no such pixel.
    """
    min_x, min_y, max_x, max_y = box
    window = alpha[min_y:max_y + 1, min_x:max_x + 1] > threshold

    rows = np.flatnonzero(window.any(axis=1))
    if rows.size == 0:
        return None
    cols = np.flatnonzero(window.any(axis=0))

    return (
        min_x + int(cols[0]),
        min_y + int(rows[0]),
        min_x + int(cols[-1]),
        min_y + int(rows[-1]),
    )


def pad_box(box: Box, padding: int, width: int, height: int) -> Box:
    """Grow ``box`` by ``padding`` on every side, clamped to the image."""
    min_x, min_y, max_x, max_y = box
    return (
        max(0, min_x - padding),
        max(0, min_y - padding),
        min(width - 1, max_x + padding),
        min(height - 1, max_y + padding),
    )


def enforce_even(box: Box, width: int, height: int) -> Box:
    """
    Make both dimensions even by moving one edge by a pixel.

    An odd dimension first grows its high edge (right/bottom); when that edge
    already touches the image border, the low edge (left/top) shrinks
    instead. If both edges are at the border the dimension stays odd.
    """
    min_x, min_y, max_x, max_y = box

    if (max_x - min_x + 1) % 2 != 0:
        if max_x < width - 1:
            max_x += 1
        elif min_x > 0:
            min_x -= 1

    if (max_y - min_y + 1) % 2 != 0:
        if max_y < height - 1:
            max_y += 1
        elif min_y > 0:
            min_y -= 1

    return (min_x, min_y, max_x, max_y)


def refine_regions(
    bitmap: np.ndarray,
    components: Sequence[Component],
    config: Optional[SegmentationConfig] = None,
) -> List[Region]:
    """
    Convert components into padded, even-sized crop regions.

    Components failing the noise filter, or whose dilated box holds no
    foreground pixel in the original alpha channel, are dropped.

    Args:
        bitmap: Original (pre-dilation) RGBA array
        components: Components in discovery order
        config: Thresholds and padding (uses defaults if None)

    Returns:
        One Region per surviving component, in discovery order
    """
    if config is None:
        config = SegmentationConfig()

    height, width = bitmap.shape[:2]
    alpha = alpha_channel(bitmap)
    regions: List[Region] = []

    for component in components:
        if not passes_noise_filter(component, config.min_box_area, config.min_pixel_count):
            logger.debug(
                f"Component {component.label}: rejected as noise "
                f"(box area {component.bbox_area}, {component.pixel_count} pixels)"
            )
            continue

        tight = tight_bbox(alpha, component.bbox, config.alpha_threshold)
        if tight is None:
            logger.debug(f"Component {component.label}: rejected, no foreground inside {component.bbox}")
            continue

        padded = pad_box(tight, config.padding, width, height)
        min_x, min_y, max_x, max_y = enforce_even(padded, width, height)
        region = Region(min_x, min_y, max_x, max_y, component_label=component.label)

        if not region.is_even:
            # TODO: decide how a region spanning an odd-sized image edge to edge should be cropped
            logger.warning(
                f"Component {component.label}: region {region.bbox} spans the full "
                f"odd image extent and keeps an odd dimension ({region.width}x{region.height})"
            )

        regions.append(region)

    logger.debug(f"Refined {len(components)} components into {len(regions)} regions")
    return regions
