"""
Unit type annotations for georeferencing parameters.

NewType aliases for the units that flow through the georeferencer package.
They document expected units in function signatures and let static type
checkers flag mixed-up arguments, with no runtime cost.

Usage Example:
    >>> from georeferencer.types import Degrees, Meters
    >>>
    >>> def distance(lat1: Degrees, lng1: Degrees, lat2: Degrees, lng2: Degrees) -> Meters:
    ...     pass
"""

from typing import NewType

# Angular units
Degrees = NewType('Degrees', float)
"""Angle in degrees (latitude, longitude)"""

# Distance/position units
Meters = NewType('Meters', float)
"""Distance in meters (residuals, geodesic distances, projected Web Mercator coordinates)"""

# Image coordinate units
PixelsFloat = NewType('PixelsFloat', float)
"""Floating-point image coordinates in pixels (imageX, imageY)"""

Pixels = NewType('Pixels', int)
"""Image dimensions in pixels (width, height)"""

# Dimensionless quantities
Unitless = NewType('Unitless', float)
"""Dimensionless scalar (display scale, anisotropy ratio, zoom level)"""
