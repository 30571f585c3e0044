import math

import numpy as np
import pytest

from mosaic.models import BoundingBox, CompositeCanvas, FeatureSet, SimilarityTransform, Tile
from mosaic.tile_store import TileStore


class TestSimilarityTransform:

    def test_identity_leaves_points(self):
        pts = np.array([[0, 0], [3.5, -2.0]])
        assert np.allclose(SimilarityTransform.identity().apply(pts), pts)

    def test_params_round_trip(self):
        t = SimilarityTransform.from_params(1.5, math.radians(30), 12.0, -4.0)
        assert t.scale == pytest.approx(1.5)
        assert math.degrees(t.rotation) == pytest.approx(30.0)
        assert t.translation == pytest.approx((12.0, -4.0))

    def test_compose_applies_other_first(self):
        rotate = SimilarityTransform.from_params(1.0, math.pi / 2)
        shift = SimilarityTransform.translation_only(10, 0)
        # shift then rotate: (1, 0) -> (11, 0) -> (0, 11)
        out = rotate.compose(shift).apply([[1, 0]])
        assert np.allclose(out, [[0, 11]])

    def test_inverse(self):
        t = SimilarityTransform.from_params(2.0, 0.3, 5.0, 7.0)
        assert t.compose(t.inverse()).almost_equal(SimilarityTransform.identity())

    def test_from_matrix_rejects_shear(self):
        with pytest.raises(ValueError):
            SimilarityTransform.from_matrix([[1.0, 0.5, 0.0], [0.0, 1.0, 0.0]])

    def test_from_matrix_rejects_non_uniform_scale(self):
        with pytest.raises(ValueError):
            SimilarityTransform.from_matrix([[2.0, 0.0, 0.0], [0.0, 1.0, 0.0]])

    def test_matrix_is_read_only(self):
        t = SimilarityTransform.identity()
        with pytest.raises(ValueError):
            t.matrix[0, 2] = 5

    def test_integer_translation_detection(self):
        assert SimilarityTransform.translation_only(3, -4).is_integer_translation()
        assert not SimilarityTransform.translation_only(3.5, 0).is_integer_translation()
        assert not SimilarityTransform.from_params(1.0, 0.01).is_integer_translation()


class TestBoundingBox:

    def test_extent_is_exclusive(self):
        box = BoundingBox.from_extent(100, 80)
        assert box.as_list() == [0, 100, 0, 80]
        assert (box.width, box.height) == (100, 80)

    def test_union_covers_both(self):
        a = BoundingBox(0, 100, 0, 100)
        b = BoundingBox(-20, 50, 10, 130)
        u = a.union(b)
        assert u.as_list() == [-20, 100, 0, 130]
        assert u.contains(a) and u.contains(b)

    def test_union_with_none(self):
        a = BoundingBox(1, 2, 3, 4)
        assert a.union(None) is a

    def test_inverted_box_rejected(self):
        with pytest.raises(ValueError):
            BoundingBox(10, 0, 0, 10)


class TestFeatureSet:

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            FeatureSet(np.zeros((3, 2)), np.zeros((2, 32), np.uint8))

    def test_offset(self):
        fs = FeatureSet(np.array([[1, 2]]), np.array([[7]], np.uint8))
        moved = fs.offset(10, -2)
        assert np.allclose(moved.points, [[11, 0]])
        assert np.array_equal(moved.descriptors, fs.descriptors)

    def test_empty(self):
        fs = FeatureSet.empty(128, np.float32)
        assert len(fs) == 0
        assert fs.descriptors.shape == (0, 128)


def _tile(index, x=0, y=0, w=10, h=10):
    transform = SimilarityTransform.translation_only(x, y)
    return Tile(
        index=index,
        raster=np.zeros((h, w), np.uint8),
        transform=transform,
        bounding_box=BoundingBox(x, x + w, y, y + h),
        features=FeatureSet.empty(1),
    )


class TestTile:

    def test_raster_is_an_immutable_copy(self):
        raster = np.ones((4, 6), np.uint8)
        tile = Tile(0, raster, SimilarityTransform.identity(), BoundingBox.from_extent(6, 4), FeatureSet.empty())
        raster[0, 0] = 9
        assert tile.raster[0, 0] == 1
        with pytest.raises(ValueError):
            tile.raster[0, 0] = 5

    def test_corners(self):
        tile = _tile(0, x=5, y=7, w=10, h=20)
        assert np.allclose(tile.corners(), [[5, 7], [15, 7], [15, 27], [5, 27]])


class TestTileStore:

    def test_append_in_order(self):
        store = TileStore()
        store.append(_tile(0))
        store.append(_tile(1, x=5))
        assert len(store) == 2
        assert [t.index for t in store] == [0, 1]

    def test_append_rejects_wrong_index(self):
        store = TileStore()
        with pytest.raises(ValueError):
            store.append(_tile(1))

    def test_bounds_union(self):
        store = TileStore()
        assert store.bounds() is None
        store.append(_tile(0))
        store.append(_tile(1, x=-5, y=3))
        assert store.bounds().as_list() == [-5, 10, 0, 13]

    def test_snapshot_is_detached(self):
        store = TileStore()
        store.append(_tile(0))
        snap = store.snapshot()
        store.append(_tile(1))
        assert len(snap) == 1


def test_canvas_coordinates():
    canvas = CompositeCanvas(np.zeros((5, 5), np.uint8), BoundingBox(-10, -5, 3, 8))
    assert np.allclose(canvas.to_canvas([[-10, 3], [-6, 7]]), [[0, 0], [4, 4]])
