"""
Connected-component labeling over a dilated mask.

Components are reported in discovery order: the raster position (row-major,
top row first) of each component's first pixel. Connectivity is 4-way.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import cv2

from .errors import ResourceError
from ..logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class Component:
    """One flood-fill run over the dilated mask."""

    # Discovery index, 0 for the component found first
    label: int

    # Flat pixel indices (y * width + x) in dilated-mask space
    pixels: np.ndarray

    # Inclusive bounding rectangle
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def pixel_count(self) -> int:
        return int(self.pixels.size)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def bbox_area(self) -> int:
        return self.width * self.height

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


def label_components(mask: np.ndarray, backend: str = "bfs") -> List[Component]:
    """
    Find the 4-connected components of a binary mask.

    Args:
        mask: Binary uint8 mask of shape (height, width)
        backend: "bfs" for the breadth-first flood fill, "opencv" for
            cv2.connectedComponentsWithStats reordered into discovery order.
            Both return the same components.

    Returns:
        Components in discovery order
    """
    if mask.ndim != 2:
        raise ValueError(f"Expected a 2D mask, got shape {mask.shape}")
    if mask.dtype != np.uint8:
        mask = (mask != 0).astype(np.uint8)

    if backend == "bfs":
        components = _label_bfs(mask)
    elif backend == "opencv":
        components = _label_opencv(mask)
    else:
        raise ValueError(f"Unknown labeler backend: {backend!r}")

    logger.debug(f"Labeled {len(components)} components ({backend})")
    return components


def _label_bfs(mask: np.ndarray) -> List[Component]:
    height, width = mask.shape
    try:
        foreground = np.ascontiguousarray(mask).tobytes()
        visited = bytearray(width * height)
    except MemoryError as exc:
        raise ResourceError(f"Cannot allocate visited buffer for {width}x{height} mask") from exc

    components: List[Component] = []

    # Seeds in raster order; already-visited seeds belong to earlier components
    for seed in np.flatnonzero(mask).tolist():
        if visited[seed]:
            continue

        visited[seed] = 1
        queue = deque([seed])
        pixels = []
        min_y, min_x = divmod(seed, width)
        max_x, max_y = min_x, min_y

        while queue:
            idx = queue.popleft()
            pixels.append(idx)

            y, x = divmod(idx, width)
            # The seed is the first raster pixel, so min_y never moves
            if x < min_x:
                min_x = x
            elif x > max_x:
                max_x = x
            if y > max_y:
                max_y = y

            if x + 1 < width:
                n = idx + 1
                if foreground[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
            if x > 0:
                n = idx - 1
                if foreground[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
            if y + 1 < height:
                n = idx + width
                if foreground[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)
            if y > 0:
                n = idx - width
                if foreground[n] and not visited[n]:
                    visited[n] = 1
                    queue.append(n)

        components.append(Component(
            label=len(components),
            pixels=np.asarray(pixels, dtype=np.int64),
            min_x=min_x,
            min_y=min_y,
            max_x=max_x,
            max_y=max_y,
        ))

    return components


def _label_opencv(mask: np.ndarray) -> List[Component]:
    height, width = mask.shape
    try:
        count, labels, stats, _ = cv2.connectedComponentsWithStats(mask, connectivity=4, ltype=cv2.CV_32S)
        flat = labels.ravel()
        label_ids, first_index = np.unique(flat, return_index=True)
        # Stable sort keeps each label's pixels in raster order
        by_label = np.argsort(flat, kind="stable")
    except (MemoryError, cv2.error) as exc:
        raise ResourceError(f"Cannot allocate label buffers for {width}x{height} mask") from exc

    offsets = np.concatenate(([0], np.cumsum(np.bincount(flat, minlength=count))))

    # OpenCV numbers labels by its own scan; discovery order is the raster
    # position of each label's first pixel. Label 0 is the background.
    keep = label_ids != 0
    discovery = label_ids[keep][np.argsort(first_index[keep], kind="stable")]

    components: List[Component] = []
    for label in discovery.tolist():
        left = int(stats[label, cv2.CC_STAT_LEFT])
        top = int(stats[label, cv2.CC_STAT_TOP])
        components.append(Component(
            label=len(components),
            pixels=by_label[offsets[label]:offsets[label + 1]].astype(np.int64),
            min_x=left,
            min_y=top,
            max_x=left + int(stats[label, cv2.CC_STAT_WIDTH]) - 1,
            max_y=top + int(stats[label, cv2.CC_STAT_HEIGHT]) - 1,
        ))

    return components
