from pathlib import Path
from typing import Dict, List, Optional

import typer
from PIL import Image

from .config import LABELER_BACKENDS, SegmentationConfig, Settings
from .logging import get_logger, set_verbose
from .output.manifest import build_manifest, save_objects_flat, write_manifest_json
from .segmentation.pipeline import calculate_health_metrics, segment_batch

app = typer.Typer(help="stampcut – split background-removed photos into stamp cutouts", no_args_is_help=True)


def safe_echo(message: str) -> None:
    """Echo message with an ASCII fallback for consoles without Unicode support."""
    try:
        typer.echo(message)
    except UnicodeEncodeError:
        fallback_message = (
            message.replace("✅", "[OK]")
            .replace("🖼️", "[IMG]")
            .replace("✂️", "[CUT]")
            .replace("⚠️", "[WARN]")
            .replace("📁", "[DIR]")
            .replace("📋", "[LIST]")
        )
        typer.echo(fallback_message)


def load_bitmap(path: Path) -> Image.Image:
    """Open an image file and return it as RGBA."""
    logger = get_logger(__name__)
    with Image.open(path) as img:
        img.load()
        if "A" not in img.getbands() and "transparency" not in img.info:
            logger.warning(f"{path.name} has no alpha channel; every pixel will count as foreground")
        return img.convert("RGBA")


def _unique_source_id(stem: str, taken: Dict[str, str]) -> str:
    source_id = stem
    suffix = 1
    while source_id in taken:
        suffix += 1
        source_id = f"{stem}-{suffix}"
    return source_id


@app.command()
def segment(
    images: List[Path] = typer.Argument(..., exists=True, readable=True, dir_okay=False, help="Background-removed images (PNG with alpha)"),
    out: Path = typer.Option(Settings.output_dir, "--out", "-o", help="Output directory for stamp cutouts"),
    alpha_threshold: int = typer.Option(20, help="Alpha value a pixel must exceed to count as foreground"),
    dilation_radius: int = typer.Option(15, help="Gap in pixels bridged inside one object"),
    min_box_area: int = typer.Option(900, help="Dilated box area a component must exceed (or see --min-pixel-count)"),
    min_pixel_count: int = typer.Option(200, help="Dilated pixel count a component must exceed (or see --min-box-area)"),
    padding: int = typer.Option(10, help="Margin in pixels around each cutout"),
    backend: str = typer.Option("bfs", help=f"Component labeler: {' or '.join(LABELER_BACKENDS)}. Both give identical results; use opencv for large photos"),
    workers: Optional[int] = typer.Option(None, help="Threads used to encode cutouts"),
    write_manifest: bool = typer.Option(Settings.write_manifest, "--write-manifest/--no-write-manifest", help="Write JSON manifest file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every pipeline stage"),
) -> None:
    """
    Segment each image into individual stamps and save them as PNG files.

    Every input must already have its background removed: opaque pixels are
    subjects, transparent pixels are background.
    """
    logger = get_logger(__name__)
    if verbose:
        set_verbose()

    try:
        config = SegmentationConfig(
            alpha_threshold=alpha_threshold,
            dilation_radius=dilation_radius,
            min_box_area=min_box_area,
            min_pixel_count=min_pixel_count,
            padding=padding,
            labeler_backend=backend,
            max_workers=workers,
        )
    except ValueError as exc:
        logger.error(f"Invalid configuration: {exc}")
        raise typer.Exit(code=2) from exc

    bitmaps: Dict[str, Image.Image] = {}
    source_files: Dict[str, str] = {}
    for path in images:
        try:
            bitmap = load_bitmap(path)
        except (OSError, Image.DecompressionBombError) as exc:
            logger.error(f"Cannot decode {path}: {exc}")
            raise typer.Exit(code=2) from exc

        source_id = _unique_source_id(path.stem, source_files)
        bitmaps[source_id] = bitmap
        source_files[source_id] = path.name

    logger.info(f"Segmenting {len(bitmaps)} images")
    results = segment_batch(bitmaps, config)
    metrics = calculate_health_metrics(results)

    path_mapping = save_objects_flat(results, out)

    if write_manifest:
        manifest = build_manifest(results, path_mapping, source_files)
        manifest_path = write_manifest_json(manifest, out)
        logger.info(f"Wrote manifest to {manifest_path}")

    safe_echo("\n✅ Segmentation complete!")
    safe_echo(f"🖼️  Images processed: {metrics.images_succeeded}/{metrics.images_attempted}")
    safe_echo(f"✂️  Stamps extracted: {len(path_mapping)}")
    for source_id, result in results.items():
        if not result.ok:
            safe_echo(f"⚠️  {source_files[source_id]}: {result.reason_code.value} ({result.error})")
        elif not result.objects:
            safe_echo(f"⚠️  {source_files[source_id]}: no objects found")
    safe_echo(f"📁 Output directory: {out}")
    if write_manifest:
        safe_echo("📋 Manifest: manifest.json")

    if metrics.images_attempted and metrics.images_failed == metrics.images_attempted:
        logger.error("Every image failed to segment")
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
