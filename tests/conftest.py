"""
Deterministic stand-ins for the OpenCV feature pipeline.

A "landmark" scene is a black image with isolated bright pixels, each with a
unique grey value. The landmark detector reports every pixel >= 100 with its
value as descriptor, so matches between two crops of the same scene are
exact and known in advance.
"""

from typing import List, Optional, Tuple

import numpy as np
import pytest

from mosaic.features import FeatureDetector, FeatureMatcher
from mosaic.models import FeatureSet, SimilarityTransform
from mosaic.registration import RegistrationEngine
from mosaic.transform import SimilarityEstimator

LANDMARK_THRESHOLD = 100
LANDMARK_SPACING = 25
LANDMARK_OFFSET = 6


def landmark_world(size: int = 300) -> np.ndarray:
    """Black world with a grid of single-pixel landmarks of unique value."""
    world = np.zeros((size, size), dtype=np.uint8)
    value = LANDMARK_THRESHOLD
    for y in range(LANDMARK_OFFSET, size, LANDMARK_SPACING):
        for x in range(LANDMARK_OFFSET, size, LANDMARK_SPACING):
            world[y, x] = value
            value += 1
    assert value <= 256
    return world


def crop(world: np.ndarray, x: int, y: int, w: int = 100, h: int = 100) -> np.ndarray:
    return world[y:y + h, x:x + w].copy()


class LandmarkDetector(FeatureDetector):

    def detect(self, image: np.ndarray, mask: Optional[np.ndarray] = None) -> FeatureSet:
        selected = image >= LANDMARK_THRESHOLD
        if mask is not None:
            selected &= mask > 0
        ys, xs = np.nonzero(selected)
        points = np.stack([xs, ys], axis=1).astype(np.float32)
        return FeatureSet(points, image[ys, xs].reshape(-1, 1))


class ExactMatcher(FeatureMatcher):
    """Pairs identical descriptors, first come first served."""

    def match(self, desc_a: np.ndarray, desc_b: np.ndarray) -> List[Tuple[int, int]]:
        lookup = {}
        for j, d in enumerate(desc_b):
            lookup.setdefault(d.tobytes(), j)
        pairs = []
        used = set()
        for i, d in enumerate(desc_a):
            j = lookup.get(d.tobytes())
            if j is not None and j not in used:
                used.add(j)
                pairs.append((i, j))
        return pairs


class TranslationEstimator(SimilarityEstimator):
    """Mean offset between correspondences; exact for exact data."""

    def estimate(self, src, dst):
        src = np.asarray(src, dtype=np.float64)
        dst = np.asarray(dst, dtype=np.float64)
        if len(src) == 0:
            return None
        dx, dy = (dst - src).mean(axis=0)
        return SimilarityTransform.translation_only(dx, dy), np.ones(len(src), bool)


class NoModelEstimator(SimilarityEstimator):
    def estimate(self, src, dst):
        return None


class FixedEstimator(SimilarityEstimator):
    def __init__(self, transform: SimilarityTransform, inliers: Optional[int] = None):
        self.transform = transform
        self.inliers = inliers

    def estimate(self, src, dst):
        mask = np.ones(len(src), bool)
        if self.inliers is not None:
            mask[self.inliers:] = False
        return self.transform, mask


def make_engine(estimator: Optional[SimilarityEstimator] = None, **kwargs) -> RegistrationEngine:
    return RegistrationEngine(
        LandmarkDetector(),
        ExactMatcher(),
        estimator or TranslationEstimator(),
        **kwargs,
    )


@pytest.fixture
def world():
    return landmark_world()


@pytest.fixture
def engine():
    return make_engine()
