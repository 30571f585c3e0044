from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from camera.base_camera import BaseCamera
from camera.image_name_formatter import ImageNameFormatter
from logger import get_logger
from mosaic.controller import MosaicController
from mosaic.errors import PersistenceError
from mosaic.models import AddResult, PreviewResult, SaveResult
from mosaicConfig import MosaicSettings


class MosaicSession:
    """
    One panorama: a controller plus the camera feeding it.

    Sessions are plain objects owned by the caller; several can exist at
    once without sharing any state.
    """

    def __init__(
        self,
        settings: Optional[MosaicSettings] = None,
        camera: Optional[BaseCamera] = None,
        *,
        controller: Optional[MosaicController] = None,
    ):
        self.settings = settings or MosaicSettings()
        self.camera = camera
        self.controller = controller or MosaicController(self.settings)
        self._last_frame: Optional[np.ndarray] = None
        self._logger = get_logger()

    @property
    def last_frame(self) -> Optional[np.ndarray]:
        """Most recent averaged frame from the camera."""
        return self._last_frame

    def acquire(self, num_frame_averages: Optional[int] = None) -> np.ndarray:
        """
        Grab an averaged grayscale frame.

        Raises:
            RuntimeError: no camera attached, or the camera failed
        """
        if self.camera is None:
            raise RuntimeError("No camera attached to this session")
        n = num_frame_averages if num_frame_averages is not None else self.settings.num_frame_averages
        self._last_frame = self.camera.acquire_image(n)
        self._logger.debug(f"Acquired {n}-frame average of shape {self._last_frame.shape}")
        return self._last_frame

    def preview_from_camera(self) -> PreviewResult:
        return self.controller.preview_image(self.acquire())

    def add_from_camera(self, frame: Optional[np.ndarray] = None) -> AddResult:
        """Add `frame`, or a freshly acquired one when not given."""
        if frame is None:
            frame = self.acquire()
        return self.controller.add_image(frame)

    def save(self, destination=None, name: Optional[str] = None) -> SaveResult:
        metadata: Dict[str, Any] = {}
        if self.camera is not None:
            metadata["camera"] = self.camera.get_camera_metadata()
        return self.controller.save_mosaic(destination, name, metadata=metadata or None)

    def save_snapshot(self, destination=None, name: Optional[str] = None) -> SaveResult:
        """
        Acquire one averaged frame and save it on its own, outside the mosaic.

        Args:
            destination: folder, defaults to settings.snapshot_dir
            name: file name without extension, defaults to the snapshot template

        Raises:
            RuntimeError: no camera attached, or the camera failed
        """
        frame = self.acquire()
        destination = Path(destination) if destination is not None else Path(self.settings.snapshot_dir)
        name = name or ImageNameFormatter(template=self.settings.snapshot_name_template).get_formatted_string()
        try:
            path = self.controller.writer.write_snapshot(
                destination, name, frame, metadata={"camera": self.camera.get_camera_metadata()}
            )
        except PersistenceError as e:
            self._logger.error(f"Snapshot could not be saved: {e}")
            return SaveResult(ok=False, failure=e.kind, message=str(e), directory=destination)
        return SaveResult(ok=True, directory=destination, paths=[path])
