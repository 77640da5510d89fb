"""
Manifest generation for stampcut output.

Writes each segmented object as a PNG file and a JSON manifest describing
where every cutout came from.
"""

import json
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..segmentation.pipeline import SegmentationResult, calculate_health_metrics
from ..logging import get_logger

logger = get_logger(__name__)

MANIFEST_VERSION = "1.0.0"


@dataclass(frozen=True)
class ManifestItem:
    """Single cutout in the manifest."""
    object_id: str                          # Unique object identifier
    source_id: str                          # Source image identifier
    index: int                              # Discovery index within the source
    file_name: str                          # Output file name
    x: int                                  # Top-left corner in the source image
    y: int
    width: int
    height: int
    file_path: Optional[str] = None         # Path to saved PNG

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass(frozen=True)
class Manifest:
    """Complete manifest describing all extracted stamps."""
    version: str
    extraction_timestamp: str
    total_items: int
    images: List[Dict[str, Any]]            # Per-source status and counts
    items: List[ManifestItem]
    segmentation_health: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "version": self.version,
            "extraction_timestamp": self.extraction_timestamp,
            "total_items": self.total_items,
            "images": self.images,
            "items": [item.to_dict() for item in self.items],
        }
        if self.segmentation_health is not None:
            result["segmentation_health"] = self.segmentation_health
        return result


def save_objects_flat(results: Mapping[str, SegmentationResult], output_dir: Path) -> Dict[str, Path]:
    """
    Write every segmented object to ``output_dir/stamps/stamp-<id>.png``.

    Returns:
        Mapping of object id to written path
    """
    stamps_dir = output_dir / "stamps"
    stamps_dir.mkdir(parents=True, exist_ok=True)
    saved: Dict[str, Path] = {}

    for result in results.values():
        for obj in result.objects:
            path = stamps_dir / f"stamp-{obj.id}.png"
            temp_path = path.with_suffix(".tmp")
            try:
                temp_path.write_bytes(obj.png)
                temp_path.replace(path)
            except OSError as exc:
                logger.error(f"Failed to save {obj.id} to {path}: {exc}")
                if temp_path.exists():
                    temp_path.unlink()
                continue

            saved[obj.id] = path
            logger.debug(f"Saved {obj.id} ({obj.width}x{obj.height}) as {path}")

    logger.info(f"Saved {len(saved)} stamps to {stamps_dir}")
    return saved


def build_manifest(
    results: Mapping[str, SegmentationResult],
    path_mapping: Mapping[str, Path],
    source_files: Optional[Mapping[str, str]] = None,
) -> Manifest:
    """
    Build a manifest from segmentation results.

    Args:
        results: Segmentation results by source id
        path_mapping: Saved file path by object id
        source_files: Optional original file name by source id

    Returns:
        Complete Manifest object
    """
    items: List[ManifestItem] = []
    images: List[Dict[str, Any]] = []

    for source_id, result in results.items():
        images.append({
            "source_id": source_id,
            "source_file": source_files.get(source_id) if source_files else None,
            "status": result.status.value,
            "reason_code": result.reason_code.value,
            "width": result.width,
            "height": result.height,
            "objects": len(result.objects),
            "encode_failures": result.encode_failures,
            "error": result.error,
        })

        for obj in result.objects:
            saved_path = path_mapping.get(obj.id)
            if saved_path is None:
                logger.warning(f"No saved file path found for object {obj.id} - object failed to save")
                continue

            items.append(ManifestItem(
                object_id=obj.id,
                source_id=obj.source_id,
                index=obj.index,
                file_name=saved_path.name,
                x=obj.x,
                y=obj.y,
                width=obj.width,
                height=obj.height,
                file_path=str(saved_path),
            ))

    manifest = Manifest(
        version=MANIFEST_VERSION,
        extraction_timestamp=datetime.now().isoformat(),
        total_items=len(items),
        images=images,
        items=items,
        segmentation_health=calculate_health_metrics(results).to_dict(),
    )

    logger.info(f"Built manifest with {len(items)} items from {len(images)} images")
    return manifest


def write_manifest_json(manifest: Manifest, output_dir: Path) -> Path:
    """Write ``manifest.json`` into ``output_dir`` and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = output_dir / "manifest.json"

    try:
        with open(manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest.to_dict(), f, indent=2, ensure_ascii=False)
    except Exception as exc:
        logger.error(f"Failed to write manifest to {manifest_path}: {exc}")
        raise

    logger.info(f"Wrote manifest to {manifest_path}")
    return manifest_path


def load_manifest_json(manifest_path: Path) -> Manifest:
    """Load a manifest previously written by ``write_manifest_json``."""
    try:
        with open(manifest_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except Exception as exc:
        logger.error(f"Failed to load manifest from {manifest_path}: {exc}")
        raise

    items = [ManifestItem(**item_data) for item_data in data.get("items", [])]

    return Manifest(
        version=data["version"],
        extraction_timestamp=data["extraction_timestamp"],
        total_items=data["total_items"],
        images=data.get("images", []),
        items=items,
        segmentation_health=data.get("segmentation_health"),
    )
