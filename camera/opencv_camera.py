"""
Camera implementation on top of OpenCV's VideoCapture.
Covers USB/UVC microscope cameras that expose a standard video device.
"""

from typing import Any, Dict, Optional

import cv2
import numpy as np

from camera.base_camera import BaseCamera, CameraResolution
from logger import get_logger


class OpenCVCamera(BaseCamera):
    """
    Wraps cv2.VideoCapture to conform to the BaseCamera interface.

    Example:
        >>> with OpenCVCamera(0) as cam:
        ...     image = cam.acquire_image(5)
    """

    def __init__(self, camera_id: int = 0, backend: int = cv2.CAP_ANY):
        super().__init__()
        self.camera_id = int(camera_id)
        self.backend = backend
        self._capture: Optional[cv2.VideoCapture] = None

    def open(self) -> bool:
        """Open connection to the video device"""
        logger = get_logger()
        if self._is_open:
            return True

        capture = cv2.VideoCapture(self.camera_id, self.backend)
        if not capture.isOpened():
            capture.release()
            logger.error(f"Could not open camera {self.camera_id}")
            return False

        self._capture = capture
        self._is_open = True
        res = self.get_current_resolution()
        logger.info(f"Camera {self.camera_id} opened ({res})")
        return True

    def close(self):
        """Release the video device"""
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            get_logger().info(f"Camera {self.camera_id} closed")
        self._is_open = False

    def grab_frame(self) -> Optional[np.ndarray]:
        if self._capture is None:
            return None
        ok, frame = self._capture.read()
        if not ok:
            get_logger().warning(f"Camera {self.camera_id} returned no frame")
            return None
        return frame

    def get_current_resolution(self) -> Optional[CameraResolution]:
        if self._capture is None:
            return None
        width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return CameraResolution(width, height)

    def get_camera_metadata(self) -> Dict[str, Any]:
        """
        Get current camera settings as metadata.

        Properties the backend does not report come back as 0 or -1 from
        OpenCV and are omitted.
        """
        metadata: Dict[str, Any] = {
            "camera": "opencv",
            "camera_id": self.camera_id,
        }
        res = self.get_current_resolution()
        if res is not None:
            metadata["width"] = res.width
            metadata["height"] = res.height
            metadata["resolution"] = f"{res.width}x{res.height}"

        if self._capture is not None:
            for key, prop in (
                ("exposure", cv2.CAP_PROP_EXPOSURE),
                ("gain", cv2.CAP_PROP_GAIN),
                ("fps", cv2.CAP_PROP_FPS),
            ):
                value = self._capture.get(prop)
                if value > 0:
                    metadata[key] = float(value)
        return metadata
