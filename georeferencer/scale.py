"""
Display scale derivation for a fitted affine transformation.

The overlay image is drawn on a Web Mercator map at some display scale
(display pixels per image pixel). Matching that scale to the fitted
transformation keeps the image and the GPS markers aligned after a fit.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from georeferencer.affine import AffineTransformation, ControlPoint
from georeferencer.coordinate_math import geodesic_distance, meters_per_pixel
from georeferencer.types import Degrees, Meters, Unitless

logger = logging.getLogger(__name__)

DEFAULT_ANISOTROPY_THRESHOLD = 1.05


class ScaleMethod(Enum):
    """How a display scale was derived."""

    CONTROL_POINTS = "control_points"
    """Geodesic / pixel distance ratio of the first two control points."""

    MATRIX_NORMS = "matrix_norms"
    """Average column norm of the linear part of the transformation."""


@dataclass(frozen=True)
class ScaleEstimate:
    """
    Derived display scale.

    Attributes:
        scale: Display pixels per image pixel at the current zoom
        method: Derivation method used
        meters_per_image_pixel: Ground size of one image pixel (meters)
        anisotropy: Ratio of the larger to the smaller axis scale of the
            transformation (1.0 means uniform scaling)
        anisotropy_threshold: Ratio above which the fit counts as anisotropic
    """

    scale: Unitless
    method: ScaleMethod
    meters_per_image_pixel: Meters
    anisotropy: Unitless = 1.0
    anisotropy_threshold: Unitless = DEFAULT_ANISOTROPY_THRESHOLD

    @property
    def is_anisotropic(self) -> bool:
        return self.anisotropy > self.anisotropy_threshold


def axis_scales(transformation: AffineTransformation) -> Tuple[float, float]:
    """Projected meters per image pixel along the image x and y axes."""
    sx = math.sqrt(transformation.a ** 2 + transformation.d ** 2)
    sy = math.sqrt(transformation.b ** 2 + transformation.e ** 2)
    return sx, sy


def compute_scale(
    transformation: AffineTransformation,
    control_points: Sequence[ControlPoint],
    map_center_lat: Degrees,
    map_zoom: Unitless,
    anisotropy_threshold: Unitless = DEFAULT_ANISOTROPY_THRESHOLD,
) -> Optional[ScaleEstimate]:
    """
    Display scale implied by a fitted transformation.

    The primary estimate uses the first two control points: geodesic
    distance divided by pixel distance gives meters per image pixel, which
    divided by the map resolution gives the display scale. When those two
    points coincide in either space, the average column norm of the linear
    part is used instead and a warning is logged.

    Args:
        transformation: Fitted affine transformation
        control_points: Control points used for the fit
        map_center_lat: Latitude of the current map center
        map_zoom: Current map zoom level
        anisotropy_threshold: Ratio reported as anisotropic

    Returns:
        ScaleEstimate, or None when the map resolution cannot be computed.
    """
    mpp = meters_per_pixel(map_center_lat, map_zoom)
    if mpp is None:
        return None

    sx, sy = axis_scales(transformation)
    if min(sx, sy) > 0:
        anisotropy = max(sx, sy) / min(sx, sy)
    else:
        anisotropy = math.inf

    if len(control_points) >= 2:
        p1, p2 = control_points[0], control_points[1]
        image_distance = math.hypot(p2.image_x - p1.image_x, p2.image_y - p1.image_y)
        gps_distance = geodesic_distance(p1.lat, p1.lng, p2.lat, p2.lng)

        if image_distance > 0 and gps_distance > 0:
            meters_per_image_pixel = gps_distance / image_distance
            scale = meters_per_image_pixel / mpp
            logger.info(
                f"Display scale {scale:.4f} from control points "
                f"'{p1.identifier}' and '{p2.identifier}' "
                f"({meters_per_image_pixel:.3f} m per image pixel)"
            )
            return ScaleEstimate(
                scale=scale,
                method=ScaleMethod.CONTROL_POINTS,
                meters_per_image_pixel=meters_per_image_pixel,
                anisotropy=anisotropy,
                anisotropy_threshold=anisotropy_threshold,
            )

    meters_per_image_pixel = (sx + sy) / 2
    scale = meters_per_image_pixel / mpp
    logger.warning(
        f"Control points unusable for scale; using transformation norms "
        f"(scale {scale:.4f}, anisotropy {anisotropy:.3f})"
    )
    if anisotropy > anisotropy_threshold:
        logger.warning(
            f"Transformation is anisotropic (x {sx:.3f} m/px, y {sy:.3f} m/px); "
            f"averaged scale distorts one axis"
        )

    return ScaleEstimate(
        scale=scale,
        method=ScaleMethod.MATRIX_NORMS,
        meters_per_image_pixel=meters_per_image_pixel,
        anisotropy=anisotropy,
        anisotropy_threshold=anisotropy_threshold,
    )
