"""Exceptions raised by the segmentation pipeline."""


class SegmentationError(Exception):
    """Base class for segmentation failures."""


class ResourceError(SegmentationError):
    """Raised when a scratch buffer or output surface cannot be allocated."""


class EncodeError(SegmentationError):
    """Raised when a single object's raster cannot be encoded."""


class BitmapError(SegmentationError, ValueError):
    """Raised when the input is not a usable RGBA bitmap."""
