"""
Base camera class that defines the interface for acquisition.
All specific camera implementations should inherit from this class.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import cv2
import numpy as np


@dataclass
class CameraResolution:
    """Represents a camera resolution"""
    width: int
    height: int

    def __str__(self):
        return f"{self.width}*{self.height}"


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """
    Convert a BGR/BGRA/gray frame to a single channel image.

    Args:
        frame: Image as numpy array (height, width, channels) or (height, width)

    Returns:
        2D array with the frame's dtype, or float32 for colour frames of a
        depth cvtColor does not accept
    """
    if frame.ndim == 2:
        return frame
    if frame.ndim == 3 and frame.shape[2] == 1:
        return frame[:, :, 0]
    if frame.ndim == 3 and frame.shape[2] in (3, 4):
        if frame.dtype not in (np.uint8, np.uint16, np.float32):
            frame = frame.astype(np.float32)
        code = cv2.COLOR_BGR2GRAY if frame.shape[2] == 3 else cv2.COLOR_BGRA2GRAY
        return cv2.cvtColor(frame, code)
    raise ValueError(f"Unsupported frame shape: {frame.shape}")


class BaseCamera(ABC):
    """
    Abstract base class for camera operations.

    Implementations only need to deliver single frames through grab_frame();
    frame averaging and grayscale conversion are shared here.
    """

    def __init__(self):
        self._is_open = False

    @property
    def is_open(self) -> bool:
        """Check if camera is currently open"""
        return self._is_open

    @abstractmethod
    def open(self) -> bool:
        """
        Open camera connection

        Returns:
            True if successful, False otherwise
        """

    @abstractmethod
    def close(self):
        """Close camera connection and cleanup resources"""

    @abstractmethod
    def grab_frame(self) -> Optional[np.ndarray]:
        """
        Capture one frame.

        Returns:
            Frame as numpy array, or None if no frame could be read
        """

    @abstractmethod
    def get_current_resolution(self) -> Optional[CameraResolution]:
        """Get the resolution frames are delivered at, if known"""

    @abstractmethod
    def get_camera_metadata(self) -> Dict[str, Any]:
        """
        Get current camera settings as metadata

        Returns:
            Dictionary of camera settings stored alongside exported images
        """

    def acquire_image(self, num_frame_averages: int = 1) -> np.ndarray:
        """
        Capture several frames and return their average as a grayscale image.

        Args:
            num_frame_averages: The number of frames to combine into one (>= 1)

        Returns:
            2D uint8 array

        Raises:
            ValueError: If num_frame_averages < 1
            RuntimeError: If the camera is closed or a frame cannot be read
        """
        if num_frame_averages < 1:
            raise ValueError(f"num_frame_averages must be >= 1, got {num_frame_averages}")
        if not self._is_open:
            raise RuntimeError("Camera is not open")

        accumulator: Optional[np.ndarray] = None
        for index in range(num_frame_averages):
            frame = self.grab_frame()
            if frame is None or frame.size == 0:
                raise RuntimeError(f"Failed to read frame {index + 1} of {num_frame_averages}")
            gray = to_grayscale(frame).astype(np.float64)
            if frame.dtype == np.uint16:
                gray /= 257.0  # 16 bit -> 8 bit range
            if accumulator is None:
                accumulator = gray
            elif gray.shape != accumulator.shape:
                raise RuntimeError(
                    f"Frame size changed during acquisition: {gray.shape} != {accumulator.shape}"
                )
            else:
                accumulator += gray

        mean = accumulator / num_frame_averages
        return np.clip(np.rint(mean), 0, 255).astype(np.uint8)

    def __enter__(self):
        if not self._is_open and not self.open():
            raise RuntimeError(f"Failed to open {self.__class__.__name__}")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
