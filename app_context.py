"""
Application context for shared resources: settings and the camera.
Mosaics themselves are not global; every panorama is its own MosaicSession.
"""

from pathlib import Path
from typing import Optional, Union

from camera.base_camera import BaseCamera
from camera.folder_camera import FolderCamera
from camera.opencv_camera import OpenCVCamera
from generic_config import ConfigManager, ConfigValidationError
from logger import get_logger
from mosaic.session import MosaicSession
from mosaicConfig import MosaicSettings, make_mosaic_settings_manager


class AppContext:
    """
    Singleton application context managing shared resources.
    """
    _instance: Optional['AppContext'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._camera: Optional[BaseCamera] = None
        self._camera_source: Optional[Path] = None
        self._folder_loop = False
        self._settings_manager: Optional[ConfigManager[MosaicSettings]] = None
        self._settings: Optional[MosaicSettings] = None
        self._initialized = True

    @property
    def settings(self) -> MosaicSettings:
        """Get the mosaic settings, loading them on first use"""
        if self._settings is None:
            self.load_settings()
        return self._settings

    @property
    def settings_manager(self) -> ConfigManager[MosaicSettings]:
        if self._settings_manager is None:
            self._settings_manager = make_mosaic_settings_manager()
        return self._settings_manager

    @property
    def camera(self) -> Optional[BaseCamera]:
        """Get the camera instance, opening it if needed"""
        if self._camera is None:
            self._initialize_camera()
        return self._camera

    def load_settings(self, config_dir: Optional[Union[str, Path]] = None) -> MosaicSettings:
        """
        Load settings, optionally from a different config directory.
        Falls back to defaults if loading fails.
        """
        logger = get_logger()
        if config_dir is not None:
            self._settings_manager = make_mosaic_settings_manager(root_dir=config_dir)
        try:
            self._settings = self.settings_manager.load()
            logger.info(f"Mosaic settings loaded - version: {self._settings.version}")
        except (OSError, ConfigValidationError) as e:
            logger.error(f"Failed to load mosaic settings: {e}")
            self._settings = MosaicSettings()
            logger.warning("Using default mosaic settings")
        return self._settings

    def load_settings_file(self, path: Union[str, Path]) -> MosaicSettings:
        """
        Use settings from a YAML file for this run without touching the active file.

        Raises:
            OSError, yaml.YAMLError, TypeError, ConfigValidationError: unreadable or invalid file
        """
        self._settings = self.settings_manager.load_from_file(path)
        get_logger().info(f"Mosaic settings loaded from {path}")
        return self._settings

    def restore_default_settings(self) -> MosaicSettings:
        """Restore defaults into the active settings file (the current one is backed up)."""
        self._settings = self.settings_manager.restore_defaults_into_active()
        get_logger().info("Mosaic settings restored to defaults")
        return self._settings

    def write_default_settings(self) -> Path:
        """Store the current settings as this config directory's defaults."""
        path = self.settings_manager.write_defaults(self.settings)
        get_logger().info(f"Default mosaic settings written to {path}")
        return path

    def use_folder(self, folder: Union[str, Path], *, loop: bool = False):
        """Replay images from a folder instead of opening a live camera."""
        self.close_camera()
        self._camera_source = Path(folder)
        self._camera = None
        self._folder_loop = loop

    def _initialize_camera(self):
        logger = get_logger()
        if self._camera_source is not None:
            camera: BaseCamera = FolderCamera(self._camera_source, loop=self._folder_loop)
        else:
            camera = OpenCVCamera(self.settings.camera_id)

        if camera.open():
            self._camera = camera
            logger.info(f"Camera subsystem initialized ({camera.__class__.__name__})")
        else:
            logger.error("Failed to initialize camera subsystem")
            self._camera = None

    def create_session(self) -> MosaicSession:
        """New, empty mosaic sharing the context's settings and camera."""
        return MosaicSession(self.settings, self.camera)

    def close_camera(self):
        if self._camera is not None and self._camera.is_open:
            self._camera.close()
        self._camera = None

    def cleanup(self):
        """Cleanup resources"""
        self.close_camera()
        self._camera_source = None
        self._settings_manager = None
        self._settings = None


def get_app_context() -> AppContext:
    """Get the global application context"""
    return AppContext()
