"""
Matching of image point records to GPS points by shared identifier.

Image point records are plain mappings as produced by the JSON loaders
(``{"Id": "P-01", "imageX": 120.5, "imageY": 88.0}``). A record's identifier
is the first non-empty value of ``Id``, ``id`` or ``name``; identifiers are
compared as strings so numeric ids in JSON match text ids in spreadsheets.

Usage Example:
    >>> gps = [GpsPoint("P-01", 35.0, 139.0), GpsPoint("P-02", 35.1, 139.1)]
    >>> records = [{"Id": "P-01", "imageX": 10, "imageY": 20}, {"name": "X"}]
    >>> result = match_control_points(gps, records)
    >>> result.to_dict()
    {'matchedCount': 1, 'unmatchedIdentifiers': ['X'], 'totalCandidates': 2}
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from georeferencer.affine import ControlPoint
from georeferencer.errors import InvalidGeometryError
from georeferencer.types import Degrees, Meters

logger = logging.getLogger(__name__)

IDENTIFIER_FIELDS = ("Id", "id", "name")

DUPLICATE_POLICIES = ("last", "first")


@dataclass(frozen=True)
class GpsPoint:
    """
    A surveyed GPS point.

    Attributes:
        identifier: Point identifier shared with image point records
        lat: Latitude in decimal degrees
        lng: Longitude in decimal degrees
        elevation: Elevation in meters, if known
        name: Display name
        location: Location label
        description: Free-form remarks
        source: "excel" or "geojson"
    """

    identifier: str
    lat: Degrees
    lng: Degrees
    elevation: Optional[Meters] = None
    name: str = ""
    location: str = ""
    description: str = ""
    source: str = "excel"


@dataclass
class MatchResult:
    """
    Result of matching image point records against GPS points.

    Attributes:
        matched: Control points in image record order
        unmatched_identifiers: Identifiers (or placeholders) left unmatched
        total_candidates: Number of image records considered
    """

    matched: List[ControlPoint] = field(default_factory=list)
    unmatched_identifiers: List[str] = field(default_factory=list)
    total_candidates: int = 0

    @property
    def matched_count(self) -> int:
        return len(self.matched)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matchedCount": self.matched_count,
            "unmatchedIdentifiers": list(self.unmatched_identifiers),
            "totalCandidates": self.total_candidates,
        }


def resolve_identifier(record: Mapping[str, Any]) -> Optional[str]:
    """First non-empty of ``Id``, ``id``, ``name``, as a string; None if absent."""
    for key in IDENTIFIER_FIELDS:
        value = record.get(key)
        if value is None or value == "":
            continue
        return str(value)
    return None


def missing_identifier_placeholder(index: int) -> str:
    return f"[{index}] (no id)"


def build_gps_lookup(
    points: Iterable[GpsPoint], duplicate_policy: str = "last"
) -> Dict[str, GpsPoint]:
    """
    Index GPS points by identifier.

    Args:
        points: GPS points in load order
        duplicate_policy: "last" (later points replace earlier ones) or
            "first" (the first point with an identifier is kept)

    Returns:
        Dictionary of identifier -> GpsPoint

    Raises:
        ValueError: If duplicate_policy is not recognized
    """
    if duplicate_policy not in DUPLICATE_POLICIES:
        raise ValueError(
            f"Invalid duplicate_policy '{duplicate_policy}'. "
            f"Must be one of: {', '.join(DUPLICATE_POLICIES)}"
        )

    lookup: Dict[str, GpsPoint] = {}
    for point in points:
        key = str(point.identifier)
        if key in lookup:
            logger.debug(f"Duplicate GPS identifier '{key}' ({duplicate_policy} wins)")
            if duplicate_policy == "first":
                continue
        lookup[key] = point
    return lookup


def _image_coordinate(record: Mapping[str, Any], key: str) -> Optional[float]:
    value = record.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def match_control_points(
    gps_points: Sequence[GpsPoint],
    image_records: Sequence[Mapping[str, Any]],
    duplicate_policy: str = "last",
) -> MatchResult:
    """
    Pair image point records with GPS points by identifier.

    Records are processed in order, so the output is deterministic for a
    given input. A record is left unmatched when it has no identifier
    (reported as ``"[<index>] (no id)"``), when no GPS point carries its
    identifier, or when its image coordinates are missing or not finite.

    Args:
        gps_points: Available GPS points
        image_records: Image point records
        duplicate_policy: How repeated GPS identifiers resolve, see
            ``build_gps_lookup``

    Returns:
        MatchResult with matched control points and unmatched identifiers
    """
    lookup = build_gps_lookup(gps_points, duplicate_policy)
    result = MatchResult(total_candidates=len(image_records))

    for index, record in enumerate(image_records):
        identifier = resolve_identifier(record)
        if identifier is None:
            logger.warning(f"Image point record [{index}] has no identifier")
            result.unmatched_identifiers.append(missing_identifier_placeholder(index))
            continue

        gps_point = lookup.get(identifier)
        if gps_point is None:
            result.unmatched_identifiers.append(identifier)
            continue

        image_x = _image_coordinate(record, "imageX")
        image_y = _image_coordinate(record, "imageY")
        if image_x is None or image_y is None:
            logger.warning(f"Image point '{identifier}' has malformed image coordinates; skipped")
            result.unmatched_identifiers.append(identifier)
            continue

        try:
            control_point = ControlPoint(
                identifier=identifier,
                image_x=image_x,
                image_y=image_y,
                lat=gps_point.lat,
                lng=gps_point.lng,
                elevation=gps_point.elevation,
            )
        except InvalidGeometryError as e:
            logger.warning(f"Skipping control point '{identifier}': {e}")
            result.unmatched_identifiers.append(identifier)
            continue

        result.matched.append(control_point)

    logger.info(
        f"Matched {result.matched_count} of {result.total_candidates} image points "
        f"({len(result.unmatched_identifiers)} unmatched)"
    )
    return result
