"""
End-to-end segmentation of one background-removed image into stamps.

Stages run strictly in order: alpha mask, dilation, labeling, refinement,
extraction. Only extraction is parallel. Callers get a SegmentationResult
that either carries every object found (possibly none) or a failure
variant with zero objects, never a partial list.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from .bitmap import BitmapLike, as_rgba_array
from .errors import BitmapError, ResourceError
from .extraction import ExtractionResult, SegmentedObject, extract_objects
from .labeling import label_components
from .mask import build_alpha_mask, dilate_mask
from .refine import Region, refine_regions
from ..config import SegmentationConfig
from ..logging import get_logger

logger = get_logger(__name__)


class SegmentationStatus(Enum):
    """Whether the pipeline ran to completion for an image."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ReasonCode(Enum):
    """Why an image produced the objects it did."""
    OBJECTS_FOUND = "objects_found"
    NO_OBJECTS = "no_objects"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    INVALID_BITMAP = "invalid_bitmap"


@dataclass(frozen=True)
class SegmentationResult:
    """Outcome of segmenting one source image."""
    source_id: str
    status: SegmentationStatus
    reason_code: ReasonCode
    objects: Tuple[SegmentedObject, ...] = ()
    extractions: Tuple[ExtractionResult, ...] = ()
    width: int = 0
    height: int = 0
    components_found: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is SegmentationStatus.SUCCEEDED

    @property
    def regions(self) -> List[Region]:
        return [extraction.region for extraction in self.extractions]

    @property
    def encode_failures(self) -> int:
        return sum(1 for extraction in self.extractions if not extraction.ok)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source_id": self.source_id,
            "status": self.status.value,
            "reason_code": self.reason_code.value,
            "width": self.width,
            "height": self.height,
            "components_found": self.components_found,
            "objects": [obj.to_dict() for obj in self.objects],
            "extractions": [extraction.to_dict() for extraction in self.extractions],
            "error": self.error,
        }


@dataclass
class SegmentationHealthMetrics:
    """Health metrics across a batch of segmented images."""
    images_attempted: int = 0
    images_succeeded: int = 0
    images_failed: int = 0
    objects_attempted: int = 0
    objects_encoded: int = 0
    encode_failures: int = 0
    failure_reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        if self.images_attempted == 0:
            return 0.0
        return self.images_succeeded / self.images_attempted

    @property
    def failure_rate(self) -> float:
        if self.images_attempted == 0:
            return 0.0
        return self.images_failed / self.images_attempted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "images_attempted": self.images_attempted,
            "images_succeeded": self.images_succeeded,
            "images_failed": self.images_failed,
            "objects_attempted": self.objects_attempted,
            "objects_encoded": self.objects_encoded,
            "encode_failures": self.encode_failures,
            "success_rate": self.success_rate,
            "failure_rate": self.failure_rate,
            "failure_reasons": self.failure_reasons,
        }


def find_regions(bitmap: np.ndarray, config: Optional[SegmentationConfig] = None) -> Tuple[List[Region], int]:
    """
    Run the sequential stages (mask, dilation, labeling, refinement).

    Args:
        bitmap: RGBA array as returned by ``as_rgba_array``
        config: Segmentation policy (uses defaults if None)

    Returns:
        Tuple of (regions in discovery order, number of labeled components)

    Raises:
        ResourceError: If a stage cannot allocate its buffers
    """
    if config is None:
        config = SegmentationConfig()

    raw = build_alpha_mask(bitmap, config.alpha_threshold)
    dilated = dilate_mask(raw, config.dilation_radius)
    components = label_components(dilated, backend=config.labeler_backend)
    regions = refine_regions(bitmap, components, config)
    return regions, len(components)


def segment(
    bitmap: BitmapLike,
    source_id: str,
    config: Optional[SegmentationConfig] = None,
) -> SegmentationResult:
    """
    Split a background-removed image into individual stamp cutouts.

    Args:
        bitmap: RGBA array (height, width, 4) or Pillow image whose alpha
            channel marks the subjects
        source_id: Stable identifier of the source image, embedded in
            every object id
        config: Segmentation policy (uses defaults if None)

    Returns:
        SegmentationResult. A resource failure yields status FAILED with
        reason RESOURCE_UNAVAILABLE; an image with nothing to extract
        yields SUCCEEDED with reason NO_OBJECTS.

    Raises:
        BitmapError: If ``bitmap`` is not a usable RGBA image
    """
    if config is None:
        config = SegmentationConfig()

    pixels = as_rgba_array(bitmap)
    height, width = pixels.shape[:2]
    logger.debug(f"{source_id}: segmenting {width}x{height} bitmap")

    try:
        regions, components_found = find_regions(pixels, config)
        extractions = extract_objects(pixels, regions, source_id, max_workers=config.max_workers)
    except ResourceError as exc:
        logger.error(f"{source_id}: segmentation aborted - {exc}")
        return SegmentationResult(
            source_id=source_id,
            status=SegmentationStatus.FAILED,
            reason_code=ReasonCode.RESOURCE_UNAVAILABLE,
            width=width,
            height=height,
            error=str(exc),
        )

    objects = tuple(extraction.obj for extraction in extractions if extraction.ok)
    reason = ReasonCode.OBJECTS_FOUND if objects else ReasonCode.NO_OBJECTS

    logger.info(f"{source_id}: {len(objects)} objects from {components_found} components")

    return SegmentationResult(
        source_id=source_id,
        status=SegmentationStatus.SUCCEEDED,
        reason_code=reason,
        objects=objects,
        extractions=tuple(extractions),
        width=width,
        height=height,
        components_found=components_found,
    )


async def segment_async(
    bitmap: BitmapLike,
    source_id: str,
    config: Optional[SegmentationConfig] = None,
) -> SegmentationResult:
    """Awaitable ``segment`` that runs the pipeline in a worker thread."""
    return await asyncio.to_thread(segment, bitmap, source_id, config)


def segment_batch(
    bitmaps: Mapping[str, BitmapLike],
    config: Optional[SegmentationConfig] = None,
) -> Dict[str, SegmentationResult]:
    """
    Segment several images one after another.

    Images are processed in mapping order so that only one image's masks
    are alive at a time. A failing image does not stop the batch.

    Args:
        bitmaps: Mapping of source id to bitmap

    Returns:
        Mapping of source id to its SegmentationResult, in input order
    """
    results: Dict[str, SegmentationResult] = {}

    for source_id, bitmap in bitmaps.items():
        try:
            results[source_id] = segment(bitmap, source_id, config)
        except BitmapError as exc:
            logger.warning(f"{source_id}: skipped - {exc}")
            results[source_id] = SegmentationResult(
                source_id=source_id,
                status=SegmentationStatus.FAILED,
                reason_code=ReasonCode.INVALID_BITMAP,
                error=str(exc),
            )

    return results


def calculate_health_metrics(results: Mapping[str, SegmentationResult]) -> SegmentationHealthMetrics:
    """Summarize a batch of results."""
    metrics = SegmentationHealthMetrics()

    for result in results.values():
        metrics.images_attempted += 1
        if result.ok:
            metrics.images_succeeded += 1
        else:
            metrics.images_failed += 1
            reason = result.reason_code.value
            metrics.failure_reasons[reason] = metrics.failure_reasons.get(reason, 0) + 1

        metrics.objects_attempted += len(result.extractions)
        metrics.objects_encoded += len(result.objects)
        metrics.encode_failures += result.encode_failures

    return metrics
