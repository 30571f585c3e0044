from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

from camera.image_name_formatter import ImageNameFormatter
from generic_config import ConfigManager, DEFAULT_FILENAME

TEMPLATE_FIELDS = ('composite_name_template', 'tile_name_template', 'snapshot_name_template')


class DetectorType(str, Enum):
    """Feature detectors available for registration."""
    ORB = 'ORB'
    SIFT = 'SIFT'


class FileFormat(str, Enum):
    """Image formats the mosaic can be exported as."""
    PNG = 'png'
    TIFF = 'tiff'


@dataclass
class MosaicSettings:
    """Acquisition, registration and export settings with validation."""

    version: str = "1.0"

    # Acquisition
    camera_id: int = 0
    num_frame_averages: int = 5

    # Registration
    detector: DetectorType = DetectorType.ORB
    max_features: int = 2000
    min_correspondences: int = 4             # similarity estimate needs 4 point pairs
    ransac_confidence: float = 0.99
    ransac_max_trials: int = 2000
    ransac_reprojection_threshold: float = 3.0
    min_scale: float = 0.5                   # reject estimates that zoom too far
    max_scale: float = 2.0

    # Export
    output_dir: str = "Acquisitions/Composites"
    composite_name_template: str = "Composite_{M}_{D}_{Y}_{h}:{m}:{s}"
    tile_name_template: str = "Tile_{i}"
    file_format: FileFormat = FileFormat.PNG
    save_retries: int = 2

    # Snapshots: single averaged frames saved outside any mosaic
    snapshot_dir: str = "Acquisitions/Snapshots"
    snapshot_name_template: str = "Image_Manual_{M}_{D}_{Y}_{h}:{m}:{s}"

    # Live preview
    preview_fps: int = 30

    @classmethod
    def get_ranges(cls) -> dict:
        """
        Return validation ranges for all numeric parameters.

        Returns:
            Dictionary mapping parameter names to (min, max) tuples
        """
        return {
            'camera_id': (0, 64),
            'num_frame_averages': (1, 1000),
            'max_features': (10, 100000),
            'min_correspondences': (2, 10000),
            'ransac_confidence': (0.5, 0.9999),
            'ransac_max_trials': (1, 1000000),
            'ransac_reprojection_threshold': (0.1, 100.0),
            'min_scale': (0.01, 1.0),
            'max_scale': (1.0, 100.0),
            'save_retries': (0, 10),
            'preview_fps': (1, 240),
        }

    def validate(self) -> None:
        """
        Validate all settings are within acceptable ranges.

        Raises:
            ValueError: If any parameter is outside its valid range
        """
        for param, (min_val, max_val) in self.get_ranges().items():
            value = getattr(self, param)
            if isinstance(value, bool) or not (min_val <= value <= max_val):
                raise ValueError(
                    f"{param} = {value} is outside valid range [{min_val}, {max_val}]"
                )

        if not isinstance(self.detector, DetectorType):
            raise ValueError(f"detector must be a DetectorType enum, got {type(self.detector)}")

        if not isinstance(self.file_format, FileFormat):
            raise ValueError(f"file_format must be a FileFormat enum, got {type(self.file_format)}")

        formatter = ImageNameFormatter()
        for name in TEMPLATE_FIELDS:
            template = getattr(self, name)
            if not template.strip():
                raise ValueError(f"{name} must not be empty")
            issues = formatter.validate_template(template)["issues"]
            if issues:
                raise ValueError(f"{name} = {template!r} is invalid: {' '.join(issues)}")

    def __post_init__(self) -> None:
        # YAML hands enums back as plain strings
        if isinstance(self.detector, str) and not isinstance(self.detector, DetectorType):
            self.detector = DetectorType(self.detector.upper())
        if isinstance(self.file_format, str) and not isinstance(self.file_format, FileFormat):
            self.file_format = FileFormat(self.file_format.lower())


def make_mosaic_settings_manager(
    *,
    root_dir: Union[str, Path] = "./config/mosaic",
    default_filename: str = DEFAULT_FILENAME,
    backup_dirname: str = "backups",
    backup_keep: int = 5,
) -> ConfigManager[MosaicSettings]:
    return ConfigManager[MosaicSettings](
        MosaicSettings,
        root_dir=root_dir,
        default_filename=default_filename,
        backup_dirname=backup_dirname,
        backup_keep=backup_keep,
    )
