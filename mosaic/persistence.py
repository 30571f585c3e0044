"""
Export of a mosaic: the composite, every tile raster and a YAML manifest.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import yaml
from PIL import ExifTags, Image, PngImagePlugin
from PIL.Image import Exif

from camera.image_name_formatter import ImageNameFormatter
from logger import get_logger
from mosaic.errors import PersistenceError
from mosaic.models import CompositeCanvas, Tile
from mosaicConfig import FileFormat

SOFTWARE_NAME = "Mosaic"
MANIFEST_FILENAME = "manifest.yaml"


class MosaicWriter:
    """
    Writes one folder per mosaic:

        <destination>/<name>/
            <name>.png          composite
            Tile_1.png ...      one file per tile, insertion order
            manifest.yaml       bounds and per-tile transforms
    """

    def __init__(
        self,
        *,
        file_format: FileFormat = FileFormat.PNG,
        tile_name_template: str = "Tile_{i}",
    ):
        self.file_format = FileFormat(file_format)
        self.formatter = ImageNameFormatter(template=tile_name_template)
        self._logger = get_logger()

    @property
    def extension(self) -> str:
        return ".tiff" if self.file_format == FileFormat.TIFF else ".png"

    def write(
        self,
        destination,
        name: str,
        canvas: CompositeCanvas,
        tiles: Sequence[Tile],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[Path]:
        """
        Returns:
            Paths written, composite first

        Raises:
            PersistenceError: directory or file could not be written
        """
        if canvas is None:
            raise PersistenceError("Nothing to save: the mosaic is empty")

        folder = Path(destination) / name
        full_metadata = {
            "timestamp": datetime.now().isoformat(),
            "bounds": canvas.bounds.as_list(),
            "tile_count": len(tiles),
        }
        if metadata:
            full_metadata["additional"] = metadata

        written: List[Path] = []
        try:
            folder.mkdir(parents=True, exist_ok=True)

            composite_path = folder / f"{name}{self.extension}"
            self._save_image(canvas.image, composite_path, full_metadata)
            written.append(composite_path)

            for tile in tiles:
                tile_name = self.formatter.get_formatted_string(index=tile.index + 1, count=len(tiles))
                tile_path = folder / f"{tile_name}{self.extension}"
                tile_meta = dict(full_metadata, tile=self._tile_entry(tile))
                self._save_image(tile.raster, tile_path, tile_meta)
                written.append(tile_path)

            manifest_path = folder / MANIFEST_FILENAME
            with open(manifest_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    {
                        "name": name,
                        "created": full_metadata["timestamp"],
                        "bounds": canvas.bounds.as_list(),
                        "composite": composite_path.name,
                        "tiles": [
                            dict(self._tile_entry(t), file=p.name)
                            for t, p in zip(tiles, written[1:])
                        ],
                        "additional": metadata or {},
                    },
                    f,
                    sort_keys=False,
                )
            written.append(manifest_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise PersistenceError(f"Failed to write mosaic to {folder}: {e}") from e

        self._logger.info(f"Mosaic saved to {folder} ({len(tiles)} tiles)")
        return written

    def write_snapshot(
        self,
        destination,
        name: str,
        image: np.ndarray,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Path:
        """
        Save a single frame as <destination>/<name>.<ext>.

        Raises:
            PersistenceError: empty frame, or the file could not be written
        """
        if image is None or image.size == 0:
            raise PersistenceError("Nothing to save: empty frame")

        path = Path(destination) / f"{name}{self.extension}"
        full_metadata = {"timestamp": datetime.now().isoformat(), "snapshot": True}
        if metadata:
            full_metadata["additional"] = metadata
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._save_image(image, path, full_metadata)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to write snapshot {path}: {e}") from e

        self._logger.info(f"Snapshot saved to {path}")
        return path

    @staticmethod
    def _tile_entry(tile: Tile) -> Dict[str, Any]:
        return {
            "index": tile.index,
            "width": tile.width,
            "height": tile.height,
            "bounding_box": tile.bounding_box.as_list(),
            "transform": tile.transform.to_dict(),
        }

    def _save_image(self, image_data: np.ndarray, filepath: Path, metadata: Dict[str, Any]):
        """
        Save a 2D uint8 raster with metadata.
        PNG: metadata in text chunks. TIFF: metadata as JSON in EXIF UserComment.
        """
        pil_image = Image.fromarray(np.ascontiguousarray(image_data))
        try:
            if self.file_format == FileFormat.TIFF:
                self._save_tiff_with_metadata(pil_image, filepath, metadata)
            else:
                self._save_png_with_metadata(pil_image, filepath, metadata)
        finally:
            pil_image.close()

    def _save_tiff_with_metadata(self, pil_image: Image.Image, filepath: Path, metadata: Dict[str, Any]):
        base_tags = {tag.name: tag.value for tag in ExifTags.Base}
        exif = Exif()
        exif[base_tags['Software']] = SOFTWARE_NAME
        timestamp = datetime.fromisoformat(metadata["timestamp"]).strftime("%Y:%m:%d %H:%M:%S")
        exif[base_tags['DateTime']] = timestamp

        exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
        exif_ifd[base_tags['DateTimeOriginal']] = timestamp
        exif_ifd[base_tags['UserComment']] = json.dumps(metadata, indent=2, default=str).encode('utf-16')

        pil_image.save(filepath, format='TIFF', exif=exif, compression='tiff_deflate')
        self._logger.debug(f"TIFF with EXIF metadata saved to {filepath}")

    def _save_png_with_metadata(self, pil_image: Image.Image, filepath: Path, metadata: Dict[str, Any]):
        pnginfo = PngImagePlugin.PngInfo()
        pnginfo.add_text("Software", SOFTWARE_NAME)
        pnginfo.add_text("Metadata", json.dumps(metadata, indent=2, default=str))
        pil_image.save(filepath, format='PNG', pnginfo=pnginfo)
        self._logger.debug(f"PNG metadata saved to {filepath}")
