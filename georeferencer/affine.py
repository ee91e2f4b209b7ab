#!/usr/bin/env python3
"""
Affine transform estimation from image/GPS control points.

A 6-parameter affine transformation maps image pixel coordinates onto
spherical Web Mercator meters:

    web_mercator_x = a * image_x + b * image_y + c
    web_mercator_y = d * image_x + e * image_y + f

Parameters are fitted by linear least squares over all matched control
points. Each point contributes two rows to a 2n x 6 design matrix, and the
normal equations (A^T A) p = A^T B are solved with Gauss-Jordan elimination.

Usage Example:
    >>> from georeferencer.affine import (
    ...     ControlPoint, apply_affine_transform, estimate_affine_transformation,
    ... )
    >>> points = [
    ...     ControlPoint("A", 0, 0, 35.001, 139.000),
    ...     ControlPoint("B", 100, 0, 35.001, 139.001),
    ...     ControlPoint("C", 0, 100, 35.000, 139.000),
    ... ]
    >>> result = estimate_affine_transformation(points)
    >>> result.ok
    True
    >>> lat, lng = apply_affine_transform(50, 50, result.transformation)
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from georeferencer.coordinate_math import lat_to_y, lon_to_x, x_to_lon, y_to_lat
from georeferencer.errors import FailureKind, InvalidGeometryError, error_for
from georeferencer.linear_solver import (
    DEFAULT_PIVOT_EPSILON,
    gauss_jordan,
    multiply,
    multiply_vector,
    transpose,
)
from georeferencer.types import Degrees, Meters, PixelsFloat

logger = logging.getLogger(__name__)

# Six unknowns need at least three non-collinear points
MIN_CONTROL_POINTS = 3


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class ControlPoint:
    """
    A matched pair of image pixel coordinates and GPS coordinates.

    Attributes:
        identifier: Shared identifier of the image point and GPS point
        image_x: Pixel column in the source image
        image_y: Pixel row in the source image (top-left origin)
        lat: Latitude in decimal degrees
        lng: Longitude in decimal degrees
        elevation: Optional elevation in meters

    Raises:
        InvalidGeometryError: If any coordinate is not a finite number
    """

    identifier: str
    image_x: PixelsFloat
    image_y: PixelsFloat
    lat: Degrees
    lng: Degrees
    elevation: Optional[Meters] = None

    def __post_init__(self):
        for name in ("image_x", "image_y", "lat", "lng"):
            value = getattr(self, name)
            if not _is_finite_number(value):
                raise InvalidGeometryError(
                    f"Control point '{self.identifier}' has non-finite {name}: {value!r}"
                )


@dataclass(frozen=True)
class AffineTransformation:
    """
    Image pixel -> Web Mercator meters affine transformation.

    Attributes:
        a, b, c: Coefficients of web_mercator_x = a*x + b*y + c
        d, e, f: Coefficients of web_mercator_y = d*x + e*y + f
    """

    a: float
    b: float
    c: float
    d: float
    e: float
    f: float

    def as_matrix(self) -> np.ndarray:
        """Return the 2x3 matrix [[a, b, c], [d, e, f]]."""
        return np.array([[self.a, self.b, self.c], [self.d, self.e, self.f]], dtype=np.float64)

    def apply_projected(self, image_x: float, image_y: float) -> Tuple[Meters, Meters]:
        """Map an image pixel to projected Web Mercator (x, y) meters."""
        return (
            self.a * image_x + self.b * image_y + self.c,
            self.d * image_x + self.e * image_y + self.f,
        )

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.a, self.b, self.c, self.d, self.e, self.f))

    def to_dict(self) -> Dict[str, float]:
        return {"a": self.a, "b": self.b, "c": self.c, "d": self.d, "e": self.e, "f": self.f}


@dataclass(frozen=True)
class AccuracyReport:
    """
    Per-control-point residuals of a fitted transformation.

    Attributes:
        errors: Residual in projected meters per control point, input order
        mean_error: Mean residual (meters)
        min_error: Smallest residual (meters)
        max_error: Largest residual (meters)
    """

    errors: Tuple[Meters, ...]
    mean_error: Meters
    min_error: Meters
    max_error: Meters

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meanError": self.mean_error,
            "maxError": self.max_error,
            "minError": self.min_error,
            "errors": list(self.errors),
        }


@dataclass
class EstimationResult:
    """
    Outcome of an affine estimation attempt.

    On success ``transformation`` and ``accuracy`` are set. On failure both
    are None and ``failure`` / ``message`` describe what went wrong.

    Attributes:
        control_points: Control points supplied to the estimator
        transformation: Fitted transformation, or None on failure
        accuracy: Residual statistics, or None on failure
        failure: FailureKind on failure, None on success
        message: Human readable failure description
    """

    control_points: List[ControlPoint] = field(default_factory=list)
    transformation: Optional[AffineTransformation] = None
    accuracy: Optional[AccuracyReport] = None
    failure: Optional[FailureKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None and self.transformation is not None

    @property
    def used_points(self) -> int:
        return len(self.control_points) if self.ok else 0

    def raise_for_failure(self) -> None:
        """Raise the exception matching ``failure``; no-op on success."""
        if self.failure is not None:
            raise error_for(self.failure, self.message)


def _failure(
    control_points: Sequence[ControlPoint], kind: FailureKind, message: str
) -> EstimationResult:
    logger.warning(message)
    return EstimationResult(control_points=list(control_points), failure=kind, message=message)


def estimate_affine_transformation(
    control_points: Sequence[ControlPoint],
    min_points: int = MIN_CONTROL_POINTS,
    pivot_epsilon: float = DEFAULT_PIVOT_EPSILON,
) -> EstimationResult:
    """
    Fit an affine transformation to control points by least squares.

    For each control point two equations are added:
        [x, y, 1, 0, 0, 0] . p = lon_to_x(lng)
        [0, 0, 0, x, y, 1] . p = lat_to_y(lat)

    Args:
        control_points: Matched image/GPS pairs
        min_points: Minimum number of control points required
        pivot_epsilon: Singularity threshold for the normal-equation solver

    Returns:
        EstimationResult. Fails with INSUFFICIENT_CONTROL_POINTS when fewer
        than ``min_points`` points are given and SINGULAR_SYSTEM when the
        normal equations cannot be solved (e.g. collinear points).
    """
    points = list(control_points)
    if len(points) < min_points:
        return _failure(
            points,
            FailureKind.INSUFFICIENT_CONTROL_POINTS,
            f"At least {min_points} control points are required, got {len(points)}",
        )

    design: List[List[float]] = []
    observations: List[float] = []
    for point in points:
        x, y = float(point.image_x), float(point.image_y)
        design.append([x, y, 1.0, 0.0, 0.0, 0.0])
        observations.append(lon_to_x(point.lng))
        design.append([0.0, 0.0, 0.0, x, y, 1.0])
        observations.append(lat_to_y(point.lat))

    design_t = transpose(design)
    normal_matrix = multiply(design_t, design) if design_t is not None else None
    normal_rhs = multiply_vector(design_t, observations) if design_t is not None else None
    if normal_matrix is None or normal_rhs is None:
        return _failure(
            points, FailureKind.SINGULAR_SYSTEM, "Failed to build normal equations"
        )

    params = gauss_jordan(normal_matrix, normal_rhs, pivot_epsilon=pivot_epsilon)
    if params is None:
        return _failure(
            points,
            FailureKind.SINGULAR_SYSTEM,
            f"Normal equations are singular for {len(points)} control points "
            f"(points may be collinear or duplicated)",
        )

    transformation = AffineTransformation(*(float(p) for p in params))
    accuracy = compute_accuracy(points, transformation)

    logger.info(
        f"Affine transformation fitted from {len(points)} control points: "
        f"mean error {accuracy.mean_error:.2f} m, max error {accuracy.max_error:.2f} m"
    )

    return EstimationResult(
        control_points=points,
        transformation=transformation,
        accuracy=accuracy,
    )


def compute_accuracy(
    control_points: Sequence[ControlPoint], transformation: AffineTransformation
) -> AccuracyReport:
    """
    Residuals of a transformation at its control points.

    The residual of each point is the Euclidean distance, in projected
    meters, between the transformed image position and the projected GPS
    position.

    Args:
        control_points: Control points to evaluate
        transformation: Fitted transformation

    Returns:
        AccuracyReport with residuals in input order. An empty input yields
        an all-zero report.
    """
    errors: List[float] = []
    for point in control_points:
        predicted_x, predicted_y = transformation.apply_projected(point.image_x, point.image_y)
        dx = predicted_x - lon_to_x(point.lng)
        dy = predicted_y - lat_to_y(point.lat)
        errors.append(math.sqrt(dx * dx + dy * dy))

    if not errors:
        return AccuracyReport(errors=(), mean_error=0.0, min_error=0.0, max_error=0.0)

    return AccuracyReport(
        errors=tuple(errors),
        mean_error=sum(errors) / len(errors),
        min_error=min(errors),
        max_error=max(errors),
    )


def apply_affine_transform(
    image_x: PixelsFloat,
    image_y: PixelsFloat,
    transformation: Optional[AffineTransformation],
) -> Optional[Tuple[Degrees, Degrees]]:
    """
    Map an image pixel to GPS coordinates.

    Args:
        image_x: Pixel column
        image_y: Pixel row
        transformation: Fitted transformation

    Returns:
        Tuple of (lat, lng), or None when the transformation is missing or
        malformed, or the inputs/result are not finite.
    """
    if transformation is None or not isinstance(transformation, AffineTransformation):
        logger.debug("apply_affine_transform called without a transformation")
        return None
    if not transformation.is_finite():
        logger.warning("Affine transformation has non-finite coefficients")
        return None
    if not _is_finite_number(image_x) or not _is_finite_number(image_y):
        logger.debug(f"Non-finite image coordinates ({image_x!r}, {image_y!r})")
        return None

    x, y = transformation.apply_projected(image_x, image_y)
    try:
        lat = y_to_lat(y)
    except OverflowError:
        return None
    lng = x_to_lon(x)

    if not math.isfinite(lat) or not math.isfinite(lng):
        return None
    return lat, lng


def invert_affine_transform(
    lat: Degrees,
    lng: Degrees,
    transformation: Optional[AffineTransformation],
) -> Optional[Tuple[PixelsFloat, PixelsFloat]]:
    """
    Map GPS coordinates back into image pixel coordinates.

    Args:
        lat: Latitude (degrees)
        lng: Longitude (degrees)
        transformation: Fitted transformation

    Returns:
        Tuple of (image_x, image_y), or None when the transformation is
        missing or its linear part is singular.
    """
    if transformation is None or not transformation.is_finite():
        return None

    t = transformation
    det = t.a * t.e - t.b * t.d
    if abs(det) < 1e-12:
        logger.warning("Affine transformation is not invertible (determinant ~ 0)")
        return None

    try:
        px = lon_to_x(lng) - t.c
        py = lat_to_y(lat) - t.f
    except ValueError:
        return None

    image_x = (t.e * px - t.b * py) / det
    image_y = (-t.d * px + t.a * py) / det
    return image_x, image_y
