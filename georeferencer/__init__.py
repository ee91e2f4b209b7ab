"""
Georeferencing engine for image overlays.

This package fits a 6-parameter affine transformation from matched control
points (image pixel coordinates <-> GPS coordinates) by least squares in
spherical Web Mercator, applies it to reposition an image overlay and every
entity drawn on it, and keeps GPS-sourced and image-sourced entities
consistent as data is loaded incrementally.

Example Usage:
    >>> from georeferencer import (
    ...     ControlPoint,
    ...     estimate_affine_transformation,
    ...     apply_affine_transform,
    ... )
    >>>
    >>> points = [
    ...     ControlPoint("A-01", 0, 0, 35.0010, 139.0000),
    ...     ControlPoint("A-02", 100, 0, 35.0010, 139.0010),
    ...     ControlPoint("A-03", 100, 100, 35.0000, 139.0010),
    ... ]
    >>> result = estimate_affine_transformation(points)
    >>> if result.ok:
    ...     lat, lng = apply_affine_transform(50, 50, result.transformation)
    ...     print(f"GPS: {lat:.6f}, {lng:.6f}")

Available Classes:
    Estimation:
        - ControlPoint: Matched image/GPS pair
        - AffineTransformation: Image pixel -> Web Mercator transformation
        - AccuracyReport: Residuals in projected meters
        - EstimationResult: Fit outcome with structured failure

    Matching and data:
        - GpsPoint: Surveyed GPS point
        - MatchResult: Matched control points and unmatched identifiers
        - TrackedEntity / EntityRegistry: Entities displayed on the map

    Workflow:
        - GeoreferencingSession: Load, match, fit, synchronize and export
        - GeoreferencerConfig: Engine configuration
"""

from georeferencer.affine import (
    AccuracyReport,
    AffineTransformation,
    ControlPoint,
    EstimationResult,
    apply_affine_transform,
    compute_accuracy,
    estimate_affine_transformation,
    invert_affine_transform,
)
from georeferencer.config import GeoreferencerConfig, get_default_config
from georeferencer.entities import EntityKind, EntityRegistry, Origin, TrackedEntity
from georeferencer.errors import (
    FailureKind,
    GeoreferencingError,
    InsufficientControlPointsError,
    InvalidGeometryError,
    MalformedEntityCoordinatesError,
    SingularSystemError,
    UnresolvedIdentifierError,
)
from georeferencer.matching import GpsPoint, MatchResult, match_control_points
from georeferencer.scale import ScaleEstimate, ScaleMethod, compute_scale
from georeferencer.session import GeoreferencingSession

# Define public API
__all__ = [
    # Estimation
    'AccuracyReport',
    'AffineTransformation',
    'ControlPoint',
    'EstimationResult',
    'apply_affine_transform',
    'compute_accuracy',
    'estimate_affine_transformation',
    'invert_affine_transform',
    'ScaleEstimate',
    'ScaleMethod',
    'compute_scale',

    # Matching and entities
    'GpsPoint',
    'MatchResult',
    'match_control_points',
    'EntityKind',
    'EntityRegistry',
    'Origin',
    'TrackedEntity',

    # Errors
    'FailureKind',
    'GeoreferencingError',
    'InsufficientControlPointsError',
    'InvalidGeometryError',
    'MalformedEntityCoordinatesError',
    'SingularSystemError',
    'UnresolvedIdentifierError',

    # Workflow and configuration
    'GeoreferencingSession',
    'GeoreferencerConfig',
    'get_default_config',
]

# Package metadata
__version__ = '0.1.0'
__description__ = 'Affine georeferencing of image overlays against GPS control points'
