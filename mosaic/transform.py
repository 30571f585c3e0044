"""
Robust similarity estimation from point correspondences.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import cv2
import numpy as np

from mosaic.models import SimilarityTransform
from mosaicConfig import MosaicSettings


class SimilarityEstimator(ABC):

    @abstractmethod
    def estimate(self, src: np.ndarray, dst: np.ndarray) -> Optional[Tuple[SimilarityTransform, np.ndarray]]:
        """
        Estimate the transform taking `src` points onto `dst` points.

        Returns:
            (transform, inlier mask) or None when no model was found
        """


class RansacSimilarityEstimator(SimilarityEstimator):
    """cv2.estimateAffinePartial2D (4 DOF) with RANSAC outlier rejection."""

    def __init__(
        self,
        confidence: float = 0.99,
        max_trials: int = 2000,
        reprojection_threshold: float = 3.0,
        refine_iters: int = 10,
    ):
        self.confidence = confidence
        self.max_trials = max_trials
        self.reprojection_threshold = reprojection_threshold
        self.refine_iters = refine_iters

    @classmethod
    def from_settings(cls, settings: MosaicSettings) -> 'RansacSimilarityEstimator':
        return cls(
            confidence=settings.ransac_confidence,
            max_trials=settings.ransac_max_trials,
            reprojection_threshold=settings.ransac_reprojection_threshold,
        )

    def estimate(self, src: np.ndarray, dst: np.ndarray) -> Optional[Tuple[SimilarityTransform, np.ndarray]]:
        src = np.asarray(src, dtype=np.float32).reshape(-1, 1, 2)
        dst = np.asarray(dst, dtype=np.float32).reshape(-1, 1, 2)
        if len(src) < 2 or len(src) != len(dst):
            return None

        matrix, inliers = cv2.estimateAffinePartial2D(
            src, dst,
            method=cv2.RANSAC,
            ransacReprojThreshold=self.reprojection_threshold,
            maxIters=self.max_trials,
            confidence=self.confidence,
            refineIters=self.refine_iters,
        )
        if matrix is None or not np.all(np.isfinite(matrix)):
            return None

        try:
            transform = SimilarityTransform.from_matrix(matrix, tol=1e-4)
        except ValueError:
            return None

        mask = inliers.ravel().astype(bool) if inliers is not None else np.ones(len(src), bool)
        return transform, mask
