"""
Error taxonomy for the georeferencing engine.

Pure computations report failures as return values (``None`` or a failed
``EstimationResult``) so that batch operations can report partial success.
The exception classes below are raised when a caller asks for a failure to be
surfaced, e.g. ``EstimationResult.raise_for_failure()``.
"""

from enum import Enum


class FailureKind(Enum):
    """Kinds of failure a georeferencing step can report."""

    INSUFFICIENT_CONTROL_POINTS = "insufficient_control_points"
    """Fewer matched pairs than the estimator needs."""

    SINGULAR_SYSTEM = "singular_system"
    """Normal equations not solvable (collinear or duplicated points)."""

    INVALID_GEOMETRY = "invalid_geometry"
    """Malformed bounds, non-finite offsets or non-positive image dimensions."""

    UNRESOLVED_IDENTIFIER = "unresolved_identifier"
    """Entity has no usable identifier or no GPS counterpart."""

    MALFORMED_ENTITY_COORDINATES = "malformed_entity_coordinates"
    """Entity lacks required coordinate fields."""


class GeoreferencingError(Exception):
    """Base class for georeferencing failures."""

    kind: FailureKind


class InsufficientControlPointsError(GeoreferencingError):
    kind = FailureKind.INSUFFICIENT_CONTROL_POINTS


class SingularSystemError(GeoreferencingError):
    kind = FailureKind.SINGULAR_SYSTEM


class InvalidGeometryError(GeoreferencingError, ValueError):
    kind = FailureKind.INVALID_GEOMETRY


class UnresolvedIdentifierError(GeoreferencingError):
    kind = FailureKind.UNRESOLVED_IDENTIFIER


class MalformedEntityCoordinatesError(GeoreferencingError, ValueError):
    kind = FailureKind.MALFORMED_ENTITY_COORDINATES


_ERRORS_BY_KIND = {
    FailureKind.INSUFFICIENT_CONTROL_POINTS: InsufficientControlPointsError,
    FailureKind.SINGULAR_SYSTEM: SingularSystemError,
    FailureKind.INVALID_GEOMETRY: InvalidGeometryError,
    FailureKind.UNRESOLVED_IDENTIFIER: UnresolvedIdentifierError,
    FailureKind.MALFORMED_ENTITY_COORDINATES: MalformedEntityCoordinatesError,
}


def error_for(kind: FailureKind, message: str) -> GeoreferencingError:
    """Build the exception matching a failure kind.

    Args:
        kind: Failure kind reported by a computation
        message: Human readable description

    Returns:
        Exception instance (not raised)
    """
    return _ERRORS_BY_KIND[kind](message)
