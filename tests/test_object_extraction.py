"""Tests for per-object cropping and PNG encoding."""

import io

import numpy as np
import pytest
from PIL import Image

from stampcut.segmentation import extraction
from stampcut.segmentation.errors import EncodeError, ResourceError
from stampcut.segmentation.extraction import (
    ExtractionStatus,
    SegmentedObject,
    crop_region,
    encode_png,
    extract_objects,
    make_object_id,
)
from stampcut.segmentation.refine import Region

from tests.helpers.bitmap_factory import make_canvas, make_textured_block


@pytest.fixture
def textured_bitmap():
    bitmap = make_canvas(120, 80)
    bitmap[10:40, 20:60] = make_textured_block(40, 30, seed=1)
    bitmap[50:70, 80:110] = make_textured_block(30, 20, seed=2)
    return bitmap


class TestCropAndEncode:
    def test_crop_copies_region(self, textured_bitmap):
        region = Region(20, 10, 59, 39)
        crop = crop_region(textured_bitmap, region)

        assert crop.shape == (30, 40, 4)
        assert np.array_equal(crop, textured_bitmap[10:40, 20:60])
        assert not np.shares_memory(crop, textured_bitmap)

    def test_encode_png_is_lossless_with_alpha(self, textured_bitmap):
        pixels = textured_bitmap[10:40, 20:60].copy()
        png = encode_png(pixels)

        assert png.startswith(b"\x89PNG")
        decoded = np.asarray(Image.open(io.BytesIO(png)))
        assert decoded.shape == pixels.shape
        assert np.array_equal(decoded, pixels)

    def test_encode_failure_raises_encode_error(self):
        with pytest.raises(EncodeError):
            encode_png(np.zeros((4, 4, 4), dtype=np.float64))

    def test_object_id_embeds_source_and_index(self):
        object_id = make_object_id("photo-1", 3)
        assert object_id.startswith("obj-photo-1-3-")
        assert make_object_id("photo-1", 3) != object_id


class TestExtractObjects:
    def test_round_trip_matches_source(self, textured_bitmap):
        """Cropping the source at (x, y, width, height) reproduces the cutout."""
        regions = [Region(18, 8, 61, 41), Region(78, 48, 111, 71)]

        results = extract_objects(textured_bitmap, regions, "src")

        assert [r.status for r in results] == [ExtractionStatus.ENCODED] * 2
        for result in results:
            obj = result.obj
            expected = textured_bitmap[obj.y:obj.y + obj.height, obj.x:obj.x + obj.width]
            assert np.array_equal(obj.to_array(), expected)

    def test_records_match_regions(self, textured_bitmap):
        regions = [Region(18, 8, 61, 41), Region(78, 48, 111, 71)]

        results = extract_objects(textured_bitmap, regions, "src")

        for index, (region, result) in enumerate(zip(regions, results)):
            obj = result.obj
            assert isinstance(obj, SegmentedObject)
            assert obj.index == index
            assert obj.source_id == "src"
            assert (obj.x, obj.y) == (region.min_x, region.min_y)
            assert (obj.width, obj.height) == (region.width, region.height)
            assert obj.to_image().size == (region.width, region.height)

    def test_ids_unique(self, textured_bitmap):
        regions = [Region(0, 0, 9, 9)] * 5
        results = extract_objects(textured_bitmap, regions, "src")
        assert len({r.obj.id for r in results}) == 5

    def test_sequential_and_threaded_agree(self, textured_bitmap):
        regions = [Region(18, 8, 61, 41), Region(78, 48, 111, 71), Region(0, 0, 9, 9)]

        threaded = extract_objects(textured_bitmap, regions, "src", max_workers=4)
        sequential = extract_objects(textured_bitmap, regions, "src", max_workers=1)

        assert [r.obj.png for r in threaded] == [r.obj.png for r in sequential]

    def test_empty_regions(self, textured_bitmap):
        assert extract_objects(textured_bitmap, [], "src") == []

    def test_encode_failure_isolated_to_one_object(self, textured_bitmap, monkeypatch):
        """One object's encode failure must not abort its siblings."""
        real_encode = extraction.encode_png

        def flaky_encode(pixels):
            if pixels.shape[:2] == (10, 10):
                raise EncodeError("encoder exploded")
            return real_encode(pixels)

        monkeypatch.setattr(extraction, "encode_png", flaky_encode)
        regions = [Region(18, 8, 61, 41), Region(0, 0, 9, 9), Region(78, 48, 111, 71)]

        results = extract_objects(textured_bitmap, regions, "src")

        assert [r.status for r in results] == [
            ExtractionStatus.ENCODED,
            ExtractionStatus.FAILED,
            ExtractionStatus.ENCODED,
        ]
        assert results[1].obj is None
        assert "encoder exploded" in results[1].error
        assert results[2].obj.index == 2

    def test_resource_failure_propagates(self, textured_bitmap, monkeypatch):
        def no_surface(bitmap, region):
            raise ResourceError("no surface")

        monkeypatch.setattr(extraction, "crop_region", no_surface)

        with pytest.raises(ResourceError):
            extract_objects(textured_bitmap, [Region(0, 0, 9, 9), Region(10, 10, 19, 19)], "src")

    def test_to_dict_excludes_pixels(self, textured_bitmap):
        (result,) = extract_objects(textured_bitmap, [Region(0, 0, 9, 9)], "src")
        data = result.obj.to_dict()

        assert data["width"] == 10
        assert data["png_bytes"] == len(result.obj.png)
        assert "png" not in data
        assert result.to_dict()["status"] == "encoded"
