"""
Object segmentation for background-removed images.

Splits the opaque pixels of a transparent bitmap into distinct objects
and returns a cropped PNG cutout plus source position for each.
"""

from .bitmap import as_rgba_array
from .errors import BitmapError, EncodeError, ResourceError, SegmentationError
from .extraction import ExtractionResult, ExtractionStatus, SegmentedObject, extract_objects
from .labeling import Component, label_components
from .mask import build_alpha_mask, dilate_mask
from .pipeline import (
    ReasonCode,
    SegmentationHealthMetrics,
    SegmentationResult,
    SegmentationStatus,
    calculate_health_metrics,
    find_regions,
    segment,
    segment_async,
    segment_batch,
)
from .refine import Region, refine_regions

__all__ = [
    'as_rgba_array',
    'build_alpha_mask',
    'dilate_mask',
    'label_components',
    'refine_regions',
    'extract_objects',
    'find_regions',
    'segment',
    'segment_async',
    'segment_batch',
    'calculate_health_metrics',
    'Component',
    'Region',
    'SegmentedObject',
    'ExtractionResult',
    'ExtractionStatus',
    'SegmentationResult',
    'SegmentationStatus',
    'SegmentationHealthMetrics',
    'ReasonCode',
    'SegmentationError',
    'ResourceError',
    'EncodeError',
    'BitmapError',
]
