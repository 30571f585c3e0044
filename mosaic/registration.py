"""
Registration of a new image against the tiles already in the mosaic.

The engine only computes: it reads the tiles it is given and returns a new
Tile plus the grown bounds, or raises a RegistrationError. Inserting the
tile is the controller's job.
"""

import math
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from camera.base_camera import to_grayscale
from logger import get_logger
from mosaic.errors import EmptyInputError, InsufficientOverlapError, TransformNotFoundError
from mosaic.features import FeatureDetector, FeatureMatcher, make_detector, make_matcher
from mosaic.models import BoundingBox, FeatureSet, RegistrationResult, SimilarityTransform, Tile
from mosaic.render import mask_bounds, warp, warp_mask
from mosaic.transform import RansacSimilarityEstimator, SimilarityEstimator
from mosaicConfig import MosaicSettings

# Features this close to a warped tile's edge come from the black fill, not the specimen
MASK_EROSION_PX = 3


def prepare_image(raw) -> np.ndarray:
    """
    Validate a raw frame and bring it to 2D uint8.

    Non-uint8 data is rescaled first so that colour conversion only ever
    sees 8-bit input.

    Raises:
        EmptyInputError: None, zero-sized or otherwise unusable input
    """
    if raw is None:
        raise EmptyInputError("No image given")
    image = np.asarray(raw)
    if image.size == 0 or image.ndim not in (2, 3) or min(image.shape[:2]) < 1:
        raise EmptyInputError(f"Unusable image of shape {image.shape}")

    if image.dtype != np.uint8:
        if image.dtype == np.bool_:
            image = image.astype(np.uint8) * 255
        else:
            try:
                data = image.astype(np.float64)
            except (TypeError, ValueError) as e:
                raise EmptyInputError(f"Unsupported image type {image.dtype}") from e
            if not np.all(np.isfinite(data)):
                raise EmptyInputError("Image contains non-finite values")
            peak = data.max()
            if peak > 255:
                data = data / peak * 255
            elif np.issubdtype(image.dtype, np.floating) and 0 < peak <= 1.0:
                data = data * 255
            image = np.clip(np.rint(data), 0, 255).astype(np.uint8)

    try:
        image = to_grayscale(image)
    except (ValueError, cv2.error) as e:
        raise EmptyInputError(str(e)) from e
    return np.ascontiguousarray(image)


def select_best(scores: Sequence[int]) -> Tuple[Optional[int], int]:
    """
    Index and value of the highest score. Ties go to the earliest tile.

    Returns:
        (None, 0) for an empty sequence
    """
    best_index: Optional[int] = None
    best_score = 0
    for index, score in enumerate(scores):
        if best_index is None or score > best_score:
            best_index, best_score = index, score
    return best_index, best_score


class RegistrationEngine:
    """
    Finds where a new image sits in the mosaic.

    Args:
        detector: keypoint detector/descriptor
        matcher: descriptor matcher returning unique index pairs
        estimator: robust similarity estimator
        min_correspondences: fewer matches than this is "no overlap"
        min_scale / max_scale: accepted range for the estimated scale
    """

    def __init__(
        self,
        detector: FeatureDetector,
        matcher: FeatureMatcher,
        estimator: SimilarityEstimator,
        *,
        min_correspondences: int = 4,
        min_scale: float = 0.5,
        max_scale: float = 2.0,
    ):
        self.detector = detector
        self.matcher = matcher
        self.estimator = estimator
        self.min_correspondences = int(min_correspondences)
        self.min_scale = float(min_scale)
        self.max_scale = float(max_scale)
        self._logger = get_logger()

    @classmethod
    def from_settings(cls, settings: MosaicSettings) -> 'RegistrationEngine':
        return cls(
            make_detector(settings),
            make_matcher(settings),
            RansacSimilarityEstimator.from_settings(settings),
            min_correspondences=settings.min_correspondences,
            min_scale=settings.min_scale,
            max_scale=settings.max_scale,
        )

    # ---------------- Matching ----------------

    def match_tiles(self, features: FeatureSet, tiles: Sequence[Tile]) -> List[List[Tuple[int, int]]]:
        """Correspondences between `features` and every tile, in tile order."""
        return [self.matcher.match(features.descriptors, tile.features.descriptors) for tile in tiles]

    # ---------------- Placement ----------------

    def place(self, image: np.ndarray, transform: SimilarityTransform) -> Tuple[BoundingBox, np.ndarray, np.ndarray]:
        """
        Warp an image into the tightest frame around its footprint.

        Returns:
            (bounding box in mosaic coordinates, warped image, warped mask),
            the last two cropped to the bounding box

        Raises:
            TransformNotFoundError: the footprint is empty
        """
        h, w = image.shape[:2]
        corners = transform.apply([[0, 0], [w, 0], [w, h], [0, h]])
        fx0 = int(math.floor(corners[:, 0].min()))
        fy0 = int(math.floor(corners[:, 1].min()))
        fx1 = int(math.ceil(corners[:, 0].max()))
        fy1 = int(math.ceil(corners[:, 1].max()))
        frame = (max(1, fx1 - fx0), max(1, fy1 - fy0))

        local = transform.translated(-fx0, -fy0)
        mask = warp_mask((h, w), local, frame)
        extent = mask_bounds(mask)
        if extent is None:
            raise TransformNotFoundError(f"Warped footprint is empty for {transform}")

        x0, x1, y0, y1 = extent
        bbox = BoundingBox(x0 + fx0, x1 + fx0, y0 + fy0, y1 + fy0)
        warped = warp(image, local, frame)
        return bbox, warped[y0:y1, x0:x1], mask[y0:y1, x0:x1]

    def mosaic_features(self, warped: np.ndarray, mask: np.ndarray, bbox: BoundingBox) -> FeatureSet:
        """Detect on the warped image and express the result in mosaic coordinates."""
        kernel = np.ones((2 * MASK_EROSION_PX + 1, 2 * MASK_EROSION_PX + 1), np.uint8)
        inner = cv2.erode(mask, kernel)
        features = self.detector.detect(warped, inner)
        return features.offset(bbox.x_min, bbox.y_min)

    # ---------------- Public API ----------------

    def register(
        self,
        raw,
        tiles: Sequence[Tile],
        bounds: Optional[BoundingBox],
    ) -> RegistrationResult:
        """
        Compute the tile `raw` would become.

        Args:
            raw: grayscale (or colour) image
            tiles: current tiles in insertion order
            bounds: current mosaic bounds, None for an empty mosaic

        Returns:
            RegistrationResult with the new tile and the bounds after adding it

        Raises:
            EmptyInputError, InsufficientOverlapError, TransformNotFoundError
        """
        image = prepare_image(raw)
        features = self.detector.detect(image)
        index = len(tiles)

        if not tiles:
            bbox = BoundingBox.from_extent(image.shape[1], image.shape[0])
            tile = Tile(index, image, SimilarityTransform.identity(), bbox, features)
            self._logger.debug(f"Seed tile {image.shape[1]}x{image.shape[0]} with {len(features)} features")
            return RegistrationResult(tile=tile, bounds=bbox.union(bounds))

        all_matches = self.match_tiles(features, tiles)
        scores = tuple(len(m) for m in all_matches)
        best, best_score = select_best(scores)
        self._logger.debug(f"Match scores per tile: {list(scores)} -> tile {best}")

        if best_score < self.min_correspondences:
            raise InsufficientOverlapError(best_score, self.min_correspondences)

        pairs = np.array(all_matches[best], dtype=np.int64)
        src = features.points[pairs[:, 0]]
        dst = tiles[best].features.points[pairs[:, 1]]

        # Stored features are already in mosaic coordinates, so this estimate
        # is the new image's transform composed with the matched tile's.
        estimate = self.estimator.estimate(src, dst)
        if estimate is None:
            raise TransformNotFoundError(
                f"No similarity transform found from {len(pairs)} correspondences with tile {best}"
            )
        transform, inliers = estimate
        inlier_count = int(np.count_nonzero(inliers))

        if inlier_count < self.min_correspondences:
            raise TransformNotFoundError(
                f"Only {inlier_count} inliers of {len(pairs)} correspondences with tile {best}"
            )
        if not (self.min_scale <= transform.scale <= self.max_scale):
            raise TransformNotFoundError(
                f"Estimated scale {transform.scale:.3f} outside [{self.min_scale}, {self.max_scale}]"
            )

        bbox, warped, mask = self.place(image, transform)
        tile = Tile(index, image, transform, bbox, self.mosaic_features(warped, mask, bbox))

        self._logger.debug(
            f"Registered against tile {best}: {inlier_count}/{len(pairs)} inliers, "
            f"{transform}, box {bbox.as_list()}"
        )
        return RegistrationResult(
            tile=tile,
            bounds=bbox.union(bounds),
            matched_index=best,
            match_count=best_score,
            inlier_count=inlier_count,
            scores=scores,
        )
