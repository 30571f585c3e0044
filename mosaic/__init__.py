from .errors import (
    FailureKind,
    MosaicError,
    RegistrationError,
    InsufficientOverlapError,
    TransformNotFoundError,
    EmptyInputError,
    PersistenceError,
)
from .models import (
    SimilarityTransform,
    FeatureSet,
    BoundingBox,
    MosaicBounds,
    Tile,
    CompositeCanvas,
    RegistrationResult,
    PreviewResult,
    AddResult,
    SaveResult,
    MosaicState,
)
from .tile_store import TileStore
from .registration import RegistrationEngine
from .canvas import CanvasManager
from .controller import MosaicController
from .session import MosaicSession

__all__ = [
    'FailureKind',
    'MosaicError',
    'RegistrationError',
    'InsufficientOverlapError',
    'TransformNotFoundError',
    'EmptyInputError',
    'PersistenceError',
    'SimilarityTransform',
    'FeatureSet',
    'BoundingBox',
    'MosaicBounds',
    'Tile',
    'CompositeCanvas',
    'RegistrationResult',
    'PreviewResult',
    'AddResult',
    'SaveResult',
    'MosaicState',
    'TileStore',
    'RegistrationEngine',
    'CanvasManager',
    'MosaicController',
    'MosaicSession',
]
