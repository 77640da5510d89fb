"""
Per-object extraction: crop each region out of the source bitmap and
encode it as a standalone PNG.

Crops of different regions share nothing but the read-only source, so they
run on a thread pool. An encoding failure drops only the affected object.
"""

from __future__ import annotations

import io
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from PIL import Image

from .errors import EncodeError, ResourceError
from .refine import Region
from ..logging import get_logger

logger = get_logger(__name__)


class ExtractionStatus(Enum):
    """Outcome of extracting a single object."""
    ENCODED = "encoded"
    FAILED = "failed"


@dataclass(frozen=True)
class SegmentedObject:
    """One extracted stamp: a PNG cutout and its placement in the source image."""
    id: str
    source_id: str
    index: int              # Discovery index among the image's regions
    png: bytes              # Lossless RGBA encoding of the crop
    x: int
    y: int
    width: int
    height: int

    def to_image(self) -> Image.Image:
        """Decode the cutout into a Pillow image."""
        image = Image.open(io.BytesIO(self.png))
        image.load()
        return image

    def to_array(self) -> np.ndarray:
        """Decode the cutout into an RGBA array of shape (height, width, 4)."""
        return np.asarray(self.to_image().convert("RGBA"))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization (pixels excluded)."""
        return {
            "id": self.id,
            "source_id": self.source_id,
            "index": self.index,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "png_bytes": len(self.png),
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Tagged result of one extraction: an object, or the reason it was dropped."""
    index: int
    region: Region
    status: ExtractionStatus
    obj: Optional[SegmentedObject] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ExtractionStatus.ENCODED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "bbox": list(self.region.bbox),
            "status": self.status.value,
            "object_id": self.obj.id if self.obj else None,
            "error": self.error,
        }


def make_object_id(source_id: str, index: int) -> str:
    """Object identifier unique within a run: source, discovery index and a random token."""
    return f"obj-{source_id}-{index}-{uuid.uuid4().hex[:12]}"


def crop_region(bitmap: np.ndarray, region: Region) -> np.ndarray:
    """Copy the pixels of ``region`` into a new (height, width, 4) array."""
    try:
        return bitmap[region.min_y:region.max_y + 1, region.min_x:region.max_x + 1].copy()
    except MemoryError as exc:
        raise ResourceError(f"Cannot allocate {region.width}x{region.height} crop surface") from exc


def encode_png(pixels: np.ndarray) -> bytes:
    """
    Encode an RGBA array as PNG bytes with the alpha channel intact.

    Raises:
        EncodeError: If Pillow cannot encode the array
    """
    try:
        buffer = io.BytesIO()
        Image.fromarray(np.ascontiguousarray(pixels)).save(buffer, format="PNG")
        return buffer.getvalue()
    except MemoryError:
        raise
    except Exception as exc:
        raise EncodeError(f"Failed to encode {pixels.shape[1]}x{pixels.shape[0]} cutout: {exc}") from exc


def extract_object(bitmap: np.ndarray, region: Region, source_id: str, index: int) -> SegmentedObject:
    """Crop and encode a single region."""
    pixels = crop_region(bitmap, region)
    try:
        png = encode_png(pixels)
    except MemoryError as exc:
        raise ResourceError(f"Cannot allocate encoder buffers for object {index}") from exc

    return SegmentedObject(
        id=make_object_id(source_id, index),
        source_id=source_id,
        index=index,
        png=png,
        x=region.min_x,
        y=region.min_y,
        width=region.width,
        height=region.height,
    )


def extract_objects(
    bitmap: np.ndarray,
    regions: Sequence[Region],
    source_id: str,
    max_workers: Optional[int] = None,
) -> List[ExtractionResult]:
    """
    Extract every region of ``bitmap`` into its own SegmentedObject.

    Args:
        bitmap: Original RGBA array
        regions: Regions in discovery order; the position in this sequence
            becomes the object's discovery index
        source_id: Stable identifier of the source image
        max_workers: Thread pool size; 1 runs sequentially

    Returns:
        One ExtractionResult per region, in region order

    Raises:
        ResourceError: If a crop surface cannot be allocated. This aborts
            the whole image, unlike an EncodeError.
    """
    if not regions:
        return []

    if max_workers == 1 or len(regions) == 1:
        outcomes = [_attempt(bitmap, region, source_id, index) for index, region in enumerate(regions)]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(_attempt, bitmap, region, source_id, index)
                for index, region in enumerate(regions)
            ]
            outcomes = [future.result() for future in futures]

    failures = sum(1 for outcome in outcomes if not outcome.ok)
    if failures:
        logger.warning(f"{source_id}: {failures}/{len(outcomes)} objects failed to encode")
    logger.debug(f"{source_id}: extracted {len(outcomes) - failures} objects")

    return outcomes


def _attempt(bitmap: np.ndarray, region: Region, source_id: str, index: int) -> ExtractionResult:
    try:
        obj = extract_object(bitmap, region, source_id, index)
    except EncodeError as exc:
        logger.warning(f"{source_id}: object {index} at {region.bbox} dropped - {exc}")
        return ExtractionResult(index=index, region=region, status=ExtractionStatus.FAILED, error=str(exc))

    return ExtractionResult(index=index, region=region, status=ExtractionStatus.ENCODED, obj=obj)
