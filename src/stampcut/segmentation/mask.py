"""
Binary mask construction and dilation.

Masks are ``(height, width)`` uint8 arrays holding 0 or 1. Every function
here allocates a fresh output buffer and leaves its input untouched.
"""

import numpy as np
import cv2

from .bitmap import alpha_channel
from .errors import ResourceError
from ..logging import get_logger

logger = get_logger(__name__)

ALPHA_THRESHOLD = 20
DILATION_RADIUS = 15


def build_alpha_mask(bitmap: np.ndarray, threshold: int = ALPHA_THRESHOLD) -> np.ndarray:
    """
    Foreground mask of an RGBA bitmap: 1 where alpha > threshold, else 0.

    Args:
        bitmap: RGBA uint8 array of shape (height, width, 4)
        threshold: Alpha value a pixel must strictly exceed

    Returns:
        uint8 mask of shape (height, width)
    """
    try:
        mask = (alpha_channel(bitmap) > threshold).astype(np.uint8)
    except MemoryError as exc:
        raise ResourceError(f"Cannot allocate {bitmap.shape[1]}x{bitmap.shape[0]} mask") from exc

    logger.debug(f"Alpha mask: {int(mask.sum())} foreground pixels of {mask.size}")
    return mask


def dilate_mask(mask: np.ndarray, radius: int = DILATION_RADIUS) -> np.ndarray:
    """
    Grow a binary mask by a square of side ``2 * radius + 1``.

    The box is applied as two separable passes: a horizontal line of
    length 2R+1 along every row into a temporary mask, then a vertical line
    of the same length along every column. Both passes clamp at the image
    border, so the result equals a direct box dilation and is a superset of
    the input.

    Args:
        mask: Binary uint8 mask of shape (height, width)
        radius: Chebyshev radius R

    Returns:
        New dilated mask with the same shape as ``mask``
    """
    if mask.ndim != 2:
        raise ValueError(f"Expected a 2D mask, got shape {mask.shape}")
    if radius < 0:
        raise ValueError(f"radius must be non-negative, got {radius}")

    if radius == 0:
        try:
            return mask.copy()
        except MemoryError as exc:
            raise ResourceError("Cannot allocate dilated mask") from exc

    size = 2 * radius + 1
    row_kernel = np.ones((1, size), np.uint8)
    column_kernel = np.ones((size, 1), np.uint8)

    try:
        # Pass 1: rows
        horizontal = cv2.dilate(mask, row_kernel, borderType=cv2.BORDER_CONSTANT, borderValue=0)
        # Pass 2: columns
        dilated = cv2.dilate(horizontal, column_kernel, borderType=cv2.BORDER_CONSTANT, borderValue=0)
    except (MemoryError, cv2.error) as exc:
        raise ResourceError(f"Cannot allocate dilation buffers for {mask.shape[1]}x{mask.shape[0]} mask") from exc

    logger.debug(f"Dilated mask (R={radius}): {int(mask.sum())} -> {int(dilated.sum())} pixels")
    return dilated
