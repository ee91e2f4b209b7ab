"""
Image overlay placement on the map.

An ImagePlacement describes where the source image is drawn: its pixel size,
the display scale and the resulting geographic bounds. Placements change
when the image is first shown, when the user moves or rescales it, and
after each affine fit. Every change is announced through an
ImageUpdateNotifier so dependent markers can follow.

Usage Example:
    >>> notifier = ImageUpdateNotifier()
    >>> _ = notifier.subscribe(lambda placement: print(placement.center))
    >>> placement = place_image(35.0, 139.0, 1000, 800, scale=0.8, zoom_level=16)
    >>> notifier.notify(placement)
    (35.0, 139.0)
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from georeferencer.affine import AffineTransformation, apply_affine_transform
from georeferencer.coordinate_math import GeoBounds, image_bounds_for_placement
from georeferencer.types import Degrees, Unitless

logger = logging.getLogger(__name__)

DEFAULT_SCALE = 0.8


@dataclass(frozen=True)
class ImagePlacement:
    """
    Displayed position of the source image.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
        bounds: Geographic bounds of the displayed image
        center: Displayed center as (lat, lng)
        scale: Display pixels per image pixel
        zoom_level: Map zoom the scale refers to
    """

    width: float
    height: float
    bounds: GeoBounds
    center: Tuple[Degrees, Degrees]
    scale: Unitless
    zoom_level: Unitless


ImageUpdateCallback = Callable[[ImagePlacement], None]


class ImageUpdateNotifier:
    """Observer list for image placement changes."""

    def __init__(self):
        self._subscribers: List[ImageUpdateCallback] = []

    def subscribe(self, callback: ImageUpdateCallback) -> bool:
        """Register a callback; returns False if it was already registered."""
        if callback in self._subscribers:
            return False
        self._subscribers.append(callback)
        return True

    def unsubscribe(self, callback: ImageUpdateCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def notify(self, placement: ImagePlacement) -> None:
        """Call every subscriber with the new placement.

        A subscriber that raises is logged and the remaining subscribers
        still run.
        """
        for callback in list(self._subscribers):
            try:
                callback(placement)
            except Exception:
                logger.exception(f"Image update subscriber {callback!r} failed")


def place_image(
    center_lat: Degrees,
    center_lng: Degrees,
    width: float,
    height: float,
    scale: Unitless = DEFAULT_SCALE,
    zoom_level: Unitless = 14,
) -> Optional[ImagePlacement]:
    """
    Place the image centered on a point at a display scale.

    Returns:
        ImagePlacement, or None when the bounds cannot be computed.
    """
    bounds = image_bounds_for_placement(center_lat, center_lng, width, height, scale, zoom_level)
    if bounds is None:
        return None
    return ImagePlacement(
        width=width,
        height=height,
        bounds=bounds,
        center=(center_lat, center_lng),
        scale=scale,
        zoom_level=zoom_level,
    )


def transformed_corners(
    transformation: AffineTransformation, width: float, height: float
) -> Optional[List[Tuple[Degrees, Degrees]]]:
    """GPS positions of the four image corners (TL, TR, BR, BL), or None."""
    corners = [(0, 0), (width, 0), (width, height), (0, height)]
    result = []
    for x, y in corners:
        latlng = apply_affine_transform(x, y, transformation)
        if latlng is None:
            return None
        result.append(latlng)
    return result


def placement_from_transformation(
    transformation: AffineTransformation,
    width: float,
    height: float,
    zoom_level: Unitless,
    scale: Unitless,
) -> Optional[ImagePlacement]:
    """
    Placement of the image after an affine fit.

    The four image corners are transformed to GPS; the image is centered on
    the middle of their lat/lng envelope and drawn at ``scale``.

    Args:
        transformation: Fitted affine transformation
        width: Image width in pixels
        height: Image height in pixels
        zoom_level: Current map zoom
        scale: Display scale derived from the fit

    Returns:
        ImagePlacement, or None if the corners or bounds cannot be computed.
    """
    corners = transformed_corners(transformation, width, height)
    if corners is None:
        logger.warning("Could not transform image corners; placement unchanged")
        return None

    lats = [lat for lat, _ in corners]
    lngs = [lng for _, lng in corners]
    center_lat = (min(lats) + max(lats)) / 2
    center_lng = (min(lngs) + max(lngs)) / 2

    placement = place_image(center_lat, center_lng, width, height, scale, zoom_level)
    if placement is not None:
        logger.info(
            f"Image placed at ({center_lat:.6f}, {center_lng:.6f}) with scale {scale:.6f}"
        )
    return placement
