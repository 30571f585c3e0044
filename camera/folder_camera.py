"""
Camera that replays previously captured images from a folder.
Useful for assembling a mosaic offline or driving the acquisition loop
without hardware attached.
"""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from camera.base_camera import BaseCamera, CameraResolution
from logger import get_logger

VALID_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp'}


def _numeric_key(path: Path):
    # "10.png" sorts after "9.png"; names without leading digits go last
    match = re.match(r'(\d+)', path.name)
    if match:
        return (0, int(match.group(1)), path.name)
    return (1, 0, path.name)


class FolderCamera(BaseCamera):
    """
    Replays the images of a folder in natural numeric order.

    Every call to grab_frame() returns the current image; advance() steps
    to the next one. Frame averaging therefore averages identical copies,
    matching a static specimen under a real camera.
    """

    def __init__(self, folder, *, loop: bool = False):
        super().__init__()
        self.folder = Path(folder)
        self.loop = loop
        self._files: List[Path] = []
        self._position = 0
        self._current: Optional[np.ndarray] = None

    @property
    def files(self) -> List[Path]:
        return list(self._files)

    @property
    def position(self) -> int:
        return self._position

    def open(self) -> bool:
        logger = get_logger()
        if not self.folder.is_dir():
            logger.error(f"Image folder not found: {self.folder}")
            return False

        self._files = sorted(
            (p for p in self.folder.iterdir() if p.suffix.lower() in VALID_EXTENSIONS),
            key=_numeric_key,
        )
        if not self._files:
            logger.error(f"No images found in {self.folder}")
            return False

        self._position = 0
        self._current = None
        self._is_open = True
        logger.info(f"Replaying {len(self._files)} images from {self.folder}")
        return True

    def close(self):
        self._files = []
        self._current = None
        self._is_open = False

    def exhausted(self) -> bool:
        return not self.loop and self._position >= len(self._files)

    def advance(self) -> bool:
        """
        Move to the next image.

        Returns:
            False once the last image has been passed and loop is off
        """
        if not self._files:
            return False
        self._position += 1
        self._current = None
        if self._position >= len(self._files):
            if not self.loop:
                self._position = len(self._files)
                return False
            self._position = 0
        return True

    def grab_frame(self) -> Optional[np.ndarray]:
        if not self._is_open or self.exhausted():
            return None
        if self._current is None:
            path = self._files[self._position]
            frame = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
            if frame is None:
                get_logger().warning(f"Could not load {path}")
                return None
            self._current = frame
        return self._current

    def get_current_resolution(self) -> Optional[CameraResolution]:
        frame = self.grab_frame()
        if frame is None:
            return None
        return CameraResolution(frame.shape[1], frame.shape[0])

    def get_camera_metadata(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"camera": "folder", "folder": str(self.folder)}
        if self._is_open and not self.exhausted():
            metadata["source_file"] = self._files[self._position].name
        return metadata
