"""
Bitmap normalization for the segmentation pipeline.

A bitmap is a ``(height, width, 4)`` uint8 RGBA array. Pillow images are
accepted at the public boundary and converted once.
"""

from __future__ import annotations

from typing import Union

import numpy as np
from PIL import Image

from .errors import BitmapError, ResourceError
from ..logging import get_logger

logger = get_logger(__name__)

BitmapLike = Union[np.ndarray, Image.Image]


def as_rgba_array(bitmap: BitmapLike) -> np.ndarray:
    """
    Return ``bitmap`` as a read-only RGBA uint8 array.

    Arrays that already have the right shape and dtype are wrapped in a
    read-only view rather than copied, so the caller's buffer is never
    written to.

    Raises:
        BitmapError: If the input has no alpha channel, the wrong dtype,
            or zero area
    """
    if isinstance(bitmap, Image.Image):
        if bitmap.mode != "RGBA":
            bitmap = bitmap.convert("RGBA")
        try:
            array = np.asarray(bitmap, dtype=np.uint8)
        except MemoryError as exc:
            raise ResourceError(f"Cannot allocate {bitmap.size} bitmap buffer") from exc
    elif isinstance(bitmap, np.ndarray):
        array = bitmap
    else:
        raise BitmapError(f"Unsupported bitmap type: {type(bitmap).__name__}")

    if array.ndim != 3 or array.shape[2] != 4:
        raise BitmapError(f"Expected an RGBA array of shape (height, width, 4), got {array.shape}")
    if array.dtype != np.uint8:
        raise BitmapError(f"Expected uint8 pixels, got {array.dtype}")
    if array.shape[0] == 0 or array.shape[1] == 0:
        raise BitmapError(f"Bitmap has zero area: {array.shape[1]}x{array.shape[0]}")

    view = array.view()
    view.flags.writeable = False
    return view


def alpha_channel(bitmap: np.ndarray) -> np.ndarray:
    """Alpha plane of an RGBA array, shape ``(height, width)``."""
    return bitmap[:, :, 3]
