from dataclasses import dataclass
from pathlib import Path
from typing import Optional


LABELER_BACKENDS = ("bfs", "opencv")


@dataclass
class Settings:
    output_dir: Path = Path("output")
    write_manifest: bool = True


@dataclass(frozen=True)
class SegmentationConfig:
    """Numeric policy for splitting a transparent bitmap into objects."""

    # Pixels with alpha strictly above this count as foreground
    alpha_threshold: int = 20

    # Chebyshev radius of the box dilation that bridges gaps inside one object
    dilation_radius: int = 15

    # A component survives if its dilated box area OR its dilated pixel
    # count is strictly greater than these
    min_box_area: int = 900
    min_pixel_count: int = 200

    # Margin added around the tight box before parity correction
    padding: int = 10

    # "bfs" is the reference flood fill, "opencv" the accelerated labeler.
    # Both return the same components; the flood fill runs in pure Python
    # and is far slower on multi-megapixel photos.
    labeler_backend: str = "bfs"

    # Thread pool size for per-object extraction (None = executor default)
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        for field_name in ("alpha_threshold", "dilation_radius", "min_box_area", "min_pixel_count", "padding"):
            value = getattr(self, field_name)
            if value < 0:
                raise ValueError(f"{field_name} must be non-negative, got {value}")
        if self.alpha_threshold > 255:
            raise ValueError(f"alpha_threshold must be <= 255, got {self.alpha_threshold}")
        if self.labeler_backend not in LABELER_BACKENDS:
            raise ValueError(
                f"Unknown labeler backend: {self.labeler_backend!r}. Expected one of {LABELER_BACKENDS}"
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
