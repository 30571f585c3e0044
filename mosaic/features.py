"""
Feature detection and matching on top of OpenCV.

Detectors return a FeatureSet (points + descriptors); matchers return index
pairs that are unique on both sides.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import cv2
import numpy as np

from mosaic.models import FeatureSet
from mosaicConfig import DetectorType, MosaicSettings


class FeatureDetector(ABC):
    """Finds keypoints and describes them."""

    @abstractmethod
    def detect(self, image: np.ndarray, mask: Optional[np.ndarray] = None) -> FeatureSet:
        """
        Args:
            image: 2D uint8 image
            mask: optional uint8 mask, features are only taken where mask > 0

        Returns:
            FeatureSet in the image's pixel coordinates
        """


class FeatureMatcher(ABC):
    """Pairs descriptors of two feature sets."""

    @abstractmethod
    def match(self, desc_a: np.ndarray, desc_b: np.ndarray) -> List[Tuple[int, int]]:
        """
        Returns:
            (index_a, index_b) pairs, no index used twice on either side,
            sorted by index_a
        """


class OpenCVDetector(FeatureDetector):
    """Adapter for any cv2.Feature2D (ORB, SIFT, ...)."""

    def __init__(self, feature2d, descriptor_size: int, descriptor_dtype):
        self._feature2d = feature2d
        self._descriptor_size = descriptor_size
        self._descriptor_dtype = descriptor_dtype

    def detect(self, image: np.ndarray, mask: Optional[np.ndarray] = None) -> FeatureSet:
        keypoints, descriptors = self._feature2d.detectAndCompute(image, mask)
        if descriptors is None or not keypoints:
            return FeatureSet.empty(self._descriptor_size, self._descriptor_dtype)
        points = np.array([kp.pt for kp in keypoints], dtype=np.float32)
        return FeatureSet(points, descriptors)


class OrbDetector(OpenCVDetector):
    def __init__(self, max_features: int = 2000):
        super().__init__(cv2.ORB_create(nfeatures=max_features), 32, np.uint8)


class SiftDetector(OpenCVDetector):
    def __init__(self, max_features: int = 2000):
        super().__init__(cv2.SIFT_create(nfeatures=max_features), 128, np.float32)


class BruteForceMatcher(FeatureMatcher):
    """
    Exhaustive matcher with cross check: a pair is kept only when each
    descriptor is the other's nearest neighbour, which makes matches unique.
    """

    def __init__(self, norm_type: int = cv2.NORM_HAMMING):
        self.norm_type = norm_type
        self._matcher = cv2.BFMatcher(norm_type, crossCheck=True)

    def match(self, desc_a: np.ndarray, desc_b: np.ndarray) -> List[Tuple[int, int]]:
        if desc_a is None or desc_b is None or len(desc_a) == 0 or len(desc_b) == 0:
            return []
        if desc_a.shape[1] != desc_b.shape[1] or desc_a.dtype != desc_b.dtype:
            return []
        matches = self._matcher.match(desc_a, desc_b)
        return sorted((m.queryIdx, m.trainIdx) for m in matches)


def make_detector(settings: MosaicSettings) -> FeatureDetector:
    if settings.detector == DetectorType.SIFT:
        return SiftDetector(settings.max_features)
    return OrbDetector(settings.max_features)


def make_matcher(settings: MosaicSettings) -> FeatureMatcher:
    if settings.detector == DetectorType.SIFT:
        return BruteForceMatcher(cv2.NORM_L2)
    return BruteForceMatcher(cv2.NORM_HAMMING)
