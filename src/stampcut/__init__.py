"""stampcut – split background-removed photos into individual stamp cutouts."""

from .config import SegmentationConfig
from .segmentation import SegmentationResult, SegmentedObject, segment, segment_async, segment_batch

__version__ = "0.1.0"

__all__ = [
    "SegmentationConfig",
    "SegmentationResult",
    "SegmentedObject",
    "segment",
    "segment_async",
    "segment_batch",
]
