"""
Mosaic controller: owns the tile store, the mosaic bounds and the composite
canvas, and exposes add / preview / save.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

from camera.image_name_formatter import ImageNameFormatter
from logger import get_logger
from mosaic.canvas import CanvasManager
from mosaic.errors import FailureKind, PersistenceError, RegistrationError
from mosaic.models import (
    AddResult,
    BoundingBox,
    CompositeCanvas,
    MosaicState,
    PreviewResult,
    SaveResult,
    Tile,
)
from mosaic.persistence import MosaicWriter
from mosaic.registration import RegistrationEngine
from mosaic.tile_store import TileStore
from mosaicConfig import MosaicSettings


class MosaicController:
    """
    Incremental mosaic assembly, one image at a time.

    Every operation computes first and commits last: a failed add leaves
    tiles, bounds and canvas exactly as they were, and preview never
    changes them.
    """

    def __init__(
        self,
        settings: Optional[MosaicSettings] = None,
        *,
        engine: Optional[RegistrationEngine] = None,
        canvas_manager: Optional[CanvasManager] = None,
        writer: Optional[MosaicWriter] = None,
    ):
        self.settings = settings or MosaicSettings()
        self.engine = engine or RegistrationEngine.from_settings(self.settings)
        self.canvas_manager = canvas_manager or CanvasManager()
        self.writer = writer or MosaicWriter(
            file_format=self.settings.file_format,
            tile_name_template=self.settings.tile_name_template,
        )
        self.name_formatter = ImageNameFormatter(template=self.settings.composite_name_template)

        self._store = TileStore()
        self._bounds: Optional[BoundingBox] = None
        self._canvas: Optional[CompositeCanvas] = None
        self._logger = get_logger()

    # ---------------- Read-only state ----------------

    @property
    def tiles(self) -> Tuple[Tile, ...]:
        return self._store.snapshot()

    @property
    def tile_count(self) -> int:
        return len(self._store)

    @property
    def bounds(self) -> Optional[BoundingBox]:
        return self._bounds

    @property
    def canvas(self) -> Optional[CompositeCanvas]:
        return self._canvas

    @property
    def state(self) -> MosaicState:
        return MosaicState.EMPTY if self._store.is_empty else MosaicState.SEEDED

    # ---------------- Operations ----------------

    def add_image(self, raw) -> AddResult:
        """
        Register `raw` and, on success, append it and rebuild the canvas.

        Returns:
            AddResult; on failure `failure` names the kind and nothing changed
        """
        tiles = self._store.snapshot()
        try:
            result = self.engine.register(raw, tiles, self._bounds)
        except RegistrationError as e:
            self._logger.warning(f"Image not added ({e.kind.value}): {e}")
            return AddResult(ok=False, failure=e.kind, message=str(e), bounds=self._bounds)

        canvas = self.canvas_manager.rebuild(tiles + (result.tile,), result.bounds)

        # Commit
        self._store.append(result.tile)
        self._bounds = result.bounds
        self._canvas = canvas

        if result.matched_index is None:
            self._logger.info(f"Seed tile added, bounds {result.bounds.as_list()}")
        else:
            self._logger.info(
                f"Tile {result.tile.index} added via tile {result.matched_index} "
                f"({result.inlier_count}/{result.match_count} inliers), bounds {result.bounds.as_list()}"
            )
        return AddResult(ok=True, tile_index=result.tile.index, bounds=result.bounds)

    def add_image_file(self, path) -> AddResult:
        """Load an image from disk as grayscale and add it."""
        image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            self._logger.warning(f"Could not load {path}")
            return AddResult(
                ok=False,
                failure=FailureKind.EMPTY_INPUT,
                message=f"Could not load {path}",
                bounds=self._bounds,
            )
        return self.add_image(image)

    def preview_image(self, raw) -> PreviewResult:
        """
        Show where `raw` would go without adding it.

        Returns:
            PreviewResult with a throw-away canvas including the candidate and
            its outline in that canvas' pixel coordinates. On failure the
            current canvas is returned along with the failure kind.
        """
        tiles = self._store.snapshot()
        try:
            result = self.engine.register(raw, tiles, self._bounds)
        except RegistrationError as e:
            return PreviewResult(canvas=self._canvas, failure=e.kind, message=str(e))

        canvas = self.canvas_manager.rebuild(tiles + (result.tile,), result.bounds)
        outline = canvas.to_canvas(result.tile.corners())
        return PreviewResult(
            canvas=canvas,
            outline=outline,
            bounding_box=result.tile.bounding_box,
            registration=result,
        )

    def save_mosaic(
        self,
        destination=None,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SaveResult:
        """
        Rebuild the canvas and export it with every tile.

        Args:
            destination: parent folder, defaults to settings.output_dir
            name: folder/composite name, defaults to the timestamp template
            metadata: extra values stored with every file

        Returns:
            SaveResult; in-memory state is never affected by a failed save
        """
        if self._store.is_empty:
            message = "Nothing to save: the mosaic is empty"
            self._logger.warning(message)
            return SaveResult(ok=False, failure=FailureKind.PERSISTENCE_FAILURE, message=message)

        destination = Path(destination) if destination is not None else Path(self.settings.output_dir)
        name = name or self.name_formatter.get_formatted_string(count=self.tile_count)

        tiles = self._store.snapshot()
        self._canvas = self.canvas_manager.rebuild(tiles, self._bounds)

        attempts = self.settings.save_retries + 1
        last_error: Optional[PersistenceError] = None
        for attempt in range(1, attempts + 1):
            try:
                paths = self.writer.write(destination, name, self._canvas, tiles, metadata)
                return SaveResult(ok=True, directory=destination / name, paths=paths)
            except PersistenceError as e:
                last_error = e
                self._logger.warning(f"Save attempt {attempt}/{attempts} failed: {e}")

        self._logger.error(f"Mosaic could not be saved to {destination / name}")
        return SaveResult(
            ok=False,
            failure=FailureKind.PERSISTENCE_FAILURE,
            message=str(last_error),
            directory=destination / name,
        )

    def composite_image(self) -> Optional[np.ndarray]:
        return None if self._canvas is None else self._canvas.image
