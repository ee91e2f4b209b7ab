#!/usr/bin/env python3
"""
Web Mercator and GPS coordinate math.

This module provides the pure coordinate functions used by the georeferencing
engine:

1. Spherical Web Mercator projection (WGS84 lat/lng <-> projected meters)
2. Map resolution (meters per display pixel at a given zoom and latitude)
3. Haversine geodesic distance
4. Bounds-based interpolation of image pixels into GPS coordinates

Coordinate System Convention:
    - Projected X axis: East-West (positive = East), meters
    - Projected Y axis: North-South (positive = North), meters
    - Image X axis: columns, increasing right
    - Image Y axis: rows, increasing DOWN (top-left origin)

Notes:
    The projection uses the spherical model with a fixed radius of 6,378,137 m,
    so projected X spans +-20,037,508.34 m at +-180 degrees. Latitudes are not
    clamped; callers must not pass |lat| >= 90.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from georeferencer.types import Degrees, Meters, PixelsFloat, Unitless

logger = logging.getLogger(__name__)


# WGS84 semi-major axis used by spherical Web Mercator (meters)
EARTH_RADIUS_M = 6378137.0

# Projected X at +-180 degrees (meters)
WEB_MERCATOR_MAX = 20037508.34

# Ground resolution of zoom level 0 at the equator (meters per display pixel)
ZOOM0_METERS_PER_PIXEL = 156543.03392


@dataclass(frozen=True)
class GeoBounds:
    """Geographic bounding box of a displayed image.

    Attributes:
        south: Southern edge latitude (degrees)
        west: Western edge longitude (degrees)
        north: Northern edge latitude (degrees)
        east: Eastern edge longitude (degrees)
    """

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_corners(
        cls, south_west: Tuple[float, float], north_east: Tuple[float, float]
    ) -> "GeoBounds":
        """Create bounds from (lat, lng) south-west and north-east corners."""
        return cls(
            south=south_west[0], west=south_west[1],
            north=north_east[0], east=north_east[1],
        )

    @property
    def south_west(self) -> Tuple[float, float]:
        return (self.south, self.west)

    @property
    def north_east(self) -> Tuple[float, float]:
        return (self.north, self.east)

    @property
    def center(self) -> Tuple[float, float]:
        """Center of the box as (lat, lng)."""
        return ((self.south + self.north) / 2, (self.west + self.east) / 2)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.south, self.west, self.north, self.east))


def lon_to_x(lon: Degrees) -> Meters:
    """Convert longitude to Web Mercator X (meters)."""
    return lon * WEB_MERCATOR_MAX / 180


def lat_to_y(lat: Degrees) -> Meters:
    """Convert latitude to Web Mercator Y (meters).

    Uses the standard formula without clamping; |lat| >= 90 yields
    non-finite values or a math domain error.
    """
    y = math.log(math.tan((90 + lat) * math.pi / 360)) / (math.pi / 180)
    return y * WEB_MERCATOR_MAX / 180


def x_to_lon(x: Meters) -> Degrees:
    """Convert Web Mercator X (meters) to longitude."""
    return x * 180 / WEB_MERCATOR_MAX


def y_to_lat(y: Meters) -> Degrees:
    """Convert Web Mercator Y (meters) to latitude."""
    lat = y * 180 / WEB_MERCATOR_MAX
    return 180 / math.pi * (2 * math.atan(math.exp(lat * math.pi / 180)) - math.pi / 2)


def meters_per_pixel(center_lat: Degrees, zoom_level: Unitless) -> Optional[Meters]:
    """
    Ground resolution of the map at a latitude and zoom level.

    Formula:
        156543.03392 * cos(lat * pi / 180) / 2^zoom

    Args:
        center_lat: Latitude of the map center (degrees)
        zoom_level: Map zoom level

    Returns:
        Meters per display pixel, or None when the result is not finite or
        not positive (e.g. at the poles).
    """
    try:
        value = ZOOM0_METERS_PER_PIXEL * math.cos(center_lat * math.pi / 180) / math.pow(2, zoom_level)
    except (OverflowError, ValueError, TypeError):
        logger.warning(f"meters_per_pixel failed for lat={center_lat}, zoom={zoom_level}")
        return None

    if not math.isfinite(value) or value <= 0:
        logger.warning(
            f"meters_per_pixel produced invalid resolution {value} "
            f"(lat={center_lat}, zoom={zoom_level})"
        )
        return None

    return value


def geodesic_distance(lat1: Degrees, lng1: Degrees, lat2: Degrees, lng2: Degrees) -> Meters:
    """
    Calculate distance between two GPS coordinates using Haversine formula.

    Args:
        lat1, lng1: First point (decimal degrees)
        lat2, lng2: Second point (decimal degrees)

    Returns:
        Distance in meters
    """
    R = EARTH_RADIUS_M

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = math.sin(delta_lat / 2) ** 2 + \
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2
    # Rounding can push a marginally above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def convert_image_coords_to_gps(
    image_x: PixelsFloat,
    image_y: PixelsFloat,
    bounds: Optional[GeoBounds],
    image_width: Optional[float],
    image_height: Optional[float],
) -> Optional[Tuple[Degrees, Degrees]]:
    """
    Interpolate an image pixel into the image's displayed geographic bounds.

    The image's top-left pixel maps to the north-west corner and the
    bottom-right pixel (width, height) maps to the south-east corner.

    Args:
        image_x: Pixel column
        image_y: Pixel row
        bounds: Displayed geographic bounds of the image
        image_width: Image width in pixels
        image_height: Image height in pixels

    Returns:
        Tuple of (lat, lng), or None if bounds are missing or the image
        dimensions are missing or non-positive.
    """
    if bounds is None or not image_width or not image_height:
        logger.warning("Image bounds or image size missing; cannot interpolate position")
        return None
    if image_width <= 0 or image_height <= 0:
        logger.warning(f"Non-positive image size {image_width}x{image_height}")
        return None

    x_ratio = image_x / image_width
    y_ratio = image_y / image_height

    lng = bounds.west + (bounds.east - bounds.west) * x_ratio
    lat = bounds.north - (bounds.north - bounds.south) * y_ratio

    return lat, lng


def image_bounds_for_placement(
    center_lat: Degrees,
    center_lng: Degrees,
    image_width: float,
    image_height: float,
    scale: Unitless,
    zoom_level: Unitless,
) -> Optional[GeoBounds]:
    """
    Displayed bounds of an image overlay centered on a point.

    The overlay is drawn at ``scale`` display pixels per image pixel, so its
    ground footprint is ``pixels * scale * meters_per_pixel`` meters along
    each axis.

    Args:
        center_lat: Overlay center latitude
        center_lng: Overlay center longitude
        image_width: Image width in pixels
        image_height: Image height in pixels
        scale: Display scale factor
        zoom_level: Current map zoom

    Returns:
        GeoBounds, or None when the geometry is invalid (non-positive image
        size, failed resolution, or non-finite offsets).
    """
    if not image_width or not image_height or image_width <= 0 or image_height <= 0:
        logger.warning(f"Cannot place image with size {image_width}x{image_height}")
        return None

    mpp = meters_per_pixel(center_lat, zoom_level)
    if mpp is None:
        return None

    width_m = image_width * scale * mpp
    height_m = image_height * scale * mpp

    cos_lat = math.cos(center_lat * math.pi / 180)
    lat_offset = (height_m / 2) / EARTH_RADIUS_M * (180 / math.pi)
    try:
        lng_offset = (width_m / 2) / (EARTH_RADIUS_M * cos_lat) * (180 / math.pi)
    except ZeroDivisionError:
        lng_offset = math.inf

    if not math.isfinite(lat_offset) or not math.isfinite(lng_offset):
        logger.warning("Image placement produced non-finite offsets")
        return None

    bounds = GeoBounds(
        south=center_lat - lat_offset,
        west=center_lng - lng_offset,
        north=center_lat + lat_offset,
        east=center_lng + lng_offset,
    )
    if not bounds.is_finite():
        logger.warning("Image placement produced non-finite bounds")
        return None
    return bounds
