"""Tests for cutout persistence and manifest generation."""

import json

import numpy as np
from PIL import Image

from stampcut import segment_batch
from stampcut.output.manifest import (
    MANIFEST_VERSION,
    ManifestItem,
    build_manifest,
    load_manifest_json,
    save_objects_flat,
    write_manifest_json,
)

from tests.helpers.bitmap_factory import make_blocks


def _results():
    return segment_batch({
        "sheet": make_blocks(200, 100, [(10, 10, 20, 20), (150, 50, 20, 20)]),
        "blank": make_blocks(50, 50, []),
        "bad": np.zeros((3, 3), dtype=np.uint8),
    })


class TestSaveObjectsFlat:
    def test_writes_one_png_per_object(self, tmp_path):
        results = _results()

        saved = save_objects_flat(results, tmp_path)

        assert len(saved) == 2
        for object_id, path in saved.items():
            assert path.parent == tmp_path / "stamps"
            assert path.name == f"stamp-{object_id}.png"
            with Image.open(path) as img:
                assert img.mode == "RGBA"
        assert not list((tmp_path / "stamps").glob("*.tmp"))


class TestBuildManifest:
    def test_items_and_image_summaries(self, tmp_path):
        results = _results()
        saved = save_objects_flat(results, tmp_path)

        manifest = build_manifest(results, saved, {"sheet": "sheet.png"})

        assert manifest.version == MANIFEST_VERSION
        assert manifest.total_items == 2
        assert [item.index for item in manifest.items] == [0, 1]
        assert all(item.source_id == "sheet" for item in manifest.items)

        images = {entry["source_id"]: entry for entry in manifest.images}
        assert images["sheet"]["source_file"] == "sheet.png"
        assert images["sheet"]["objects"] == 2
        assert images["blank"]["reason_code"] == "no_objects"
        assert images["bad"]["status"] == "failed"
        assert manifest.segmentation_health["images_failed"] == 1

    def test_unsaved_objects_skipped(self):
        results = _results()

        manifest = build_manifest(results, {})

        assert manifest.items == []
        assert manifest.total_items == 0


class TestManifestJson:
    def test_write_and_load_round_trip(self, tmp_path):
        results = _results()
        saved = save_objects_flat(results, tmp_path)
        manifest = build_manifest(results, saved)

        path = write_manifest_json(manifest, tmp_path)
        loaded = load_manifest_json(path)

        assert path == tmp_path / "manifest.json"
        assert loaded.items == manifest.items
        assert loaded.images == manifest.images
        assert loaded.segmentation_health == manifest.segmentation_health

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["total_items"] == 2
        assert isinstance(ManifestItem(**data["items"][0]), ManifestItem)
