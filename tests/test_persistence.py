import json

import numpy as np
import pytest
import yaml
from PIL import Image

from conftest import crop
from mosaic.canvas import CanvasManager
from mosaic.errors import PersistenceError
from mosaic.persistence import MANIFEST_FILENAME, SOFTWARE_NAME, MosaicWriter
from mosaicConfig import FileFormat


@pytest.fixture
def two_tiles(engine, world):
    seed = engine.register(crop(world, 0, 0), (), None)
    second = engine.register(crop(world, 10, 5), (seed.tile,), seed.bounds)
    tiles = (seed.tile, second.tile)
    return CanvasManager().rebuild(tiles, second.bounds), tiles


class TestMosaicWriter:

    def test_png_layout(self, tmp_path, two_tiles):
        canvas, tiles = two_tiles
        paths = MosaicWriter().write(tmp_path, "slide", canvas, tiles, {"objective": "10x"})

        folder = tmp_path / "slide"
        assert paths[0] == folder / "slide.png"
        assert (folder / "Tile_1.png").exists()
        assert (folder / "Tile_2.png").exists()

        with Image.open(paths[0]) as img:
            assert img.size == (110, 105)
            assert img.text["Software"] == SOFTWARE_NAME
            meta = json.loads(img.text["Metadata"])
        assert meta["bounds"] == [0, 110, 0, 105]
        assert meta["additional"] == {"objective": "10x"}

        with Image.open(folder / "Tile_2.png") as img:
            assert np.array_equal(np.array(img), tiles[1].raster)

    def test_manifest(self, tmp_path, two_tiles):
        canvas, tiles = two_tiles
        MosaicWriter().write(tmp_path, "slide", canvas, tiles)

        with open(tmp_path / "slide" / MANIFEST_FILENAME, encoding="utf-8") as f:
            manifest = yaml.safe_load(f)
        assert manifest["bounds"] == [0, 110, 0, 105]
        assert [t["file"] for t in manifest["tiles"]] == ["Tile_1.png", "Tile_2.png"]
        assert manifest["tiles"][1]["transform"]["tx"] == pytest.approx(10)
        assert manifest["tiles"][1]["bounding_box"] == [10, 110, 5, 105]

    def test_tiff(self, tmp_path, two_tiles):
        canvas, tiles = two_tiles
        writer = MosaicWriter(file_format=FileFormat.TIFF, tile_name_template="scan_{i}_of_{n}")
        paths = writer.write(tmp_path, "slide", canvas, tiles)
        names = [p.name for p in paths]
        assert names[:3] == ["slide.tiff", "scan_1_of_2.tiff", "scan_2_of_2.tiff"]
        with Image.open(paths[0]) as img:
            assert img.size == (110, 105)

    def test_unwritable_destination(self, tmp_path, two_tiles):
        canvas, tiles = two_tiles
        blocker = tmp_path / "blocker"
        blocker.write_text("not a folder")
        with pytest.raises(PersistenceError):
            MosaicWriter().write(blocker, "slide", canvas, tiles)

    def test_no_canvas(self, tmp_path):
        with pytest.raises(PersistenceError):
            MosaicWriter().write(tmp_path, "slide", None, ())
