"""
Data types shared by the registration engine, canvas manager and controller.

Coordinates are (x, y) pixels. Bounding boxes use an exclusive maximum, so an
untransformed W x H image covers [0, W, 0, H].
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from mosaic.errors import FailureKind


class MosaicState(str, Enum):
    EMPTY = 'Empty'
    SEEDED = 'Seeded'


@dataclass(frozen=True, eq=False)
class SimilarityTransform:
    """
    2D similarity transform (uniform scale, rotation, translation) stored as
    the 2x3 matrix [[s*cos, -s*sin, tx], [s*sin, s*cos, ty]].
    """
    matrix: np.ndarray

    def __post_init__(self):
        m = np.asarray(self.matrix, dtype=np.float64)
        if m.shape == (3, 3):
            m = m[:2]
        if m.shape != (2, 3):
            raise ValueError(f"Similarity matrix must be 2x3, got {m.shape}")
        m = m.copy()
        m.setflags(write=False)
        object.__setattr__(self, 'matrix', m)

    @classmethod
    def identity(cls) -> 'SimilarityTransform':
        return cls(np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]))

    @classmethod
    def from_params(cls, scale: float = 1.0, rotation: float = 0.0,
                    tx: float = 0.0, ty: float = 0.0) -> 'SimilarityTransform':
        """Build from scale, rotation (radians, counter-clockwise in x/y) and translation."""
        a = scale * math.cos(rotation)
        b = scale * math.sin(rotation)
        return cls(np.array([[a, -b, tx], [b, a, ty]]))

    @classmethod
    def translation_only(cls, tx: float, ty: float) -> 'SimilarityTransform':
        return cls.from_params(1.0, 0.0, tx, ty)

    @classmethod
    def from_matrix(cls, matrix, tol: float = 1e-6) -> 'SimilarityTransform':
        """
        Wrap a 2x3 (or 3x3) matrix, rejecting anything with shear or
        non-uniform scale.
        """
        m = np.asarray(matrix, dtype=np.float64)
        if m.shape == (3, 3):
            m = m[:2]
        if m.shape != (2, 3) or not np.all(np.isfinite(m)):
            raise ValueError("Not a finite 2x3 matrix")
        ref = max(1.0, float(np.abs(m[:, :2]).max()))
        if abs(m[0, 0] - m[1, 1]) > tol * ref or abs(m[0, 1] + m[1, 0]) > tol * ref:
            raise ValueError("Matrix is not a similarity transform")
        return cls(m)

    @property
    def scale(self) -> float:
        return float(math.hypot(self.matrix[0, 0], self.matrix[1, 0]))

    @property
    def rotation(self) -> float:
        return float(math.atan2(self.matrix[1, 0], self.matrix[0, 0]))

    @property
    def translation(self) -> Tuple[float, float]:
        return float(self.matrix[0, 2]), float(self.matrix[1, 2])

    def as_3x3(self) -> np.ndarray:
        return np.vstack([self.matrix, [0.0, 0.0, 1.0]])

    def compose(self, other: 'SimilarityTransform') -> 'SimilarityTransform':
        """Return self after other: points go through `other` first."""
        return SimilarityTransform(self.as_3x3() @ other.as_3x3())

    def translated(self, dx: float, dy: float) -> 'SimilarityTransform':
        """Same transform followed by a translation."""
        return SimilarityTransform.translation_only(dx, dy).compose(self)

    def inverse(self) -> 'SimilarityTransform':
        return SimilarityTransform(np.linalg.inv(self.as_3x3()))

    def apply(self, points) -> np.ndarray:
        """Map an (N, 2) array of x/y points."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return pts @ self.matrix[:, :2].T + self.matrix[:, 2]

    def is_integer_translation(self, tol: float = 1e-6) -> bool:
        m = self.matrix
        return (
            abs(m[0, 0] - 1.0) < tol and abs(m[1, 1] - 1.0) < tol
            and abs(m[0, 1]) < tol and abs(m[1, 0]) < tol
            and abs(m[0, 2] - round(m[0, 2])) < tol
            and abs(m[1, 2] - round(m[1, 2])) < tol
        )

    def almost_equal(self, other: 'SimilarityTransform', tol: float = 1e-9) -> bool:
        return bool(np.allclose(self.matrix, other.matrix, atol=tol, rtol=0.0))

    def to_dict(self) -> Dict[str, Any]:
        tx, ty = self.translation
        return {
            "scale": self.scale,
            "rotation_deg": math.degrees(self.rotation),
            "tx": tx,
            "ty": ty,
            "matrix": self.matrix.tolist(),
        }

    def __repr__(self):
        tx, ty = self.translation
        return (f"SimilarityTransform(scale={self.scale:.4f}, "
                f"rotation={math.degrees(self.rotation):.3f}deg, t=({tx:.2f}, {ty:.2f}))")


@dataclass(frozen=True, eq=False)
class FeatureSet:
    """Keypoint positions (N x 2, x/y) paired with their descriptors (N x D)."""
    points: np.ndarray
    descriptors: np.ndarray

    def __post_init__(self):
        pts = np.asarray(self.points, dtype=np.float32).reshape(-1, 2).copy()
        desc = np.asarray(self.descriptors).copy()
        if desc.ndim == 1:
            desc = desc.reshape(-1, 1)
        if len(desc) != len(pts):
            raise ValueError(f"{len(pts)} points but {len(desc)} descriptors")
        pts.setflags(write=False)
        desc.setflags(write=False)
        object.__setattr__(self, 'points', pts)
        object.__setattr__(self, 'descriptors', desc)

    @classmethod
    def empty(cls, descriptor_size: int = 32, dtype=np.uint8) -> 'FeatureSet':
        return cls(np.zeros((0, 2), np.float32), np.zeros((0, descriptor_size), dtype))

    def __len__(self) -> int:
        return len(self.points)

    def offset(self, dx: float, dy: float) -> 'FeatureSet':
        return FeatureSet(self.points + np.array([dx, dy], np.float32), self.descriptors)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned [x_min, x_max) x [y_min, y_max) region in mosaic pixels."""
    x_min: int
    x_max: int
    y_min: int
    y_max: int

    def __post_init__(self):
        if self.x_max < self.x_min or self.y_max < self.y_min:
            raise ValueError(f"Inverted bounding box: {self.as_list()}")

    @classmethod
    def from_extent(cls, width: int, height: int) -> 'BoundingBox':
        return cls(0, int(width), 0, int(height))

    @property
    def width(self) -> int:
        return self.x_max - self.x_min

    @property
    def height(self) -> int:
        return self.y_max - self.y_min

    @property
    def origin(self) -> Tuple[int, int]:
        return self.x_min, self.y_min

    def union(self, other: Optional['BoundingBox']) -> 'BoundingBox':
        if other is None:
            return self
        return BoundingBox(
            min(self.x_min, other.x_min),
            max(self.x_max, other.x_max),
            min(self.y_min, other.y_min),
            max(self.y_max, other.y_max),
        )

    def contains(self, other: 'BoundingBox') -> bool:
        return (self.x_min <= other.x_min and other.x_max <= self.x_max
                and self.y_min <= other.y_min and other.y_max <= self.y_max)

    def as_list(self) -> List[int]:
        return [self.x_min, self.x_max, self.y_min, self.y_max]


# The mosaic's bounds are just the union of its tile boxes
MosaicBounds = BoundingBox


@dataclass(frozen=True, eq=False)
class Tile:
    """
    One registered image. Created once at registration and never revised.
    `features` are expressed in mosaic coordinates.
    """
    index: int
    raster: np.ndarray
    transform: SimilarityTransform
    bounding_box: BoundingBox
    features: FeatureSet

    def __post_init__(self):
        raster = np.array(self.raster, copy=True)
        raster.setflags(write=False)
        object.__setattr__(self, 'raster', raster)

    @property
    def width(self) -> int:
        return int(self.raster.shape[1])

    @property
    def height(self) -> int:
        return int(self.raster.shape[0])

    def corners(self) -> np.ndarray:
        """Corners of the raster extent in mosaic coordinates (TL, TR, BR, BL)."""
        w, h = self.width, self.height
        return self.transform.apply([[0, 0], [w, 0], [w, h], [0, h]])


@dataclass(frozen=True, eq=False)
class CompositeCanvas:
    """Composite pixels for `bounds`; pixel (0, 0) sits at mosaic (x_min, y_min)."""
    image: np.ndarray
    bounds: BoundingBox

    @property
    def origin(self) -> Tuple[int, int]:
        return self.bounds.origin

    def to_canvas(self, points) -> np.ndarray:
        """Convert mosaic coordinates to canvas pixel coordinates."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return pts - np.array(self.origin, dtype=np.float64)


@dataclass(frozen=True)
class RegistrationResult:
    """A fully-formed tile ready for insertion plus the bounds after inserting it."""
    tile: Tile
    bounds: BoundingBox
    matched_index: Optional[int] = None
    match_count: int = 0
    inlier_count: int = 0
    scores: Tuple[int, ...] = ()


@dataclass(frozen=True)
class PreviewResult:
    canvas: Optional[CompositeCanvas]
    outline: Optional[np.ndarray] = None          # 4 x 2 corners in canvas pixels
    bounding_box: Optional[BoundingBox] = None
    registration: Optional[RegistrationResult] = None
    failure: Optional[FailureKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class AddResult:
    ok: bool
    failure: Optional[FailureKind] = None
    message: str = ""
    tile_index: Optional[int] = None
    bounds: Optional[BoundingBox] = None


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    failure: Optional[FailureKind] = None
    message: str = ""
    directory: Optional[Path] = None
    paths: List[Path] = field(default_factory=list)
