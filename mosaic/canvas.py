from typing import Optional, Sequence

import numpy as np

from logger import get_logger
from mosaic.models import BoundingBox, CompositeCanvas, Tile
from mosaic.render import blend, warp, warp_mask


class CanvasManager:
    """
    Renders the composite from every tile into the frame of the current bounds.

    The canvas is always rebuilt from scratch: each tile's target frame
    depends on the global bounds, which may have moved since the last add.
    Tiles are applied in insertion order, so a later tile wins inside its own
    footprint and never touches pixels outside it.
    """

    def __init__(self, dtype=np.uint8):
        self.dtype = dtype
        self._logger = get_logger()

    def rebuild(self, tiles: Sequence[Tile], bounds: Optional[BoundingBox]) -> Optional[CompositeCanvas]:
        if not tiles or bounds is None:
            return None

        size = (bounds.width, bounds.height)
        canvas = np.zeros((bounds.height, bounds.width), dtype=self.dtype)

        for tile in tiles:
            to_canvas = tile.transform.translated(-bounds.x_min, -bounds.y_min)
            warped = warp(tile.raster, to_canvas, size).astype(self.dtype, copy=False)
            mask = warp_mask(tile.raster.shape, to_canvas, size)
            canvas = blend(canvas, warped, mask)

        self._logger.debug(f"Canvas rebuilt from {len(tiles)} tiles at {bounds.width}x{bounds.height}")
        canvas.setflags(write=False)
        return CompositeCanvas(image=canvas, bounds=bounds)
