from enum import Enum


class FailureKind(str, Enum):
    """Why an add/preview/save did not go through."""
    INSUFFICIENT_OVERLAP = 'InsufficientOverlap'
    TRANSFORM_NOT_FOUND = 'TransformNotFound'
    EMPTY_INPUT = 'EmptyInput'
    PERSISTENCE_FAILURE = 'PersistenceFailure'


class MosaicError(Exception):
    """Base class for all mosaic errors."""
    kind: FailureKind


class RegistrationError(MosaicError):
    """A new image could not be placed. Mosaic state is unchanged."""


class InsufficientOverlapError(RegistrationError):
    kind = FailureKind.INSUFFICIENT_OVERLAP

    def __init__(self, best_score: int, required: int):
        self.best_score = best_score
        self.required = required
        super().__init__(
            f"Best tile shares {best_score} matched features, {required} required"
        )


class TransformNotFoundError(RegistrationError):
    kind = FailureKind.TRANSFORM_NOT_FOUND


class EmptyInputError(RegistrationError):
    kind = FailureKind.EMPTY_INPUT


class PersistenceError(MosaicError):
    kind = FailureKind.PERSISTENCE_FAILURE
