"""
Duplicate detection and merging for route and spot records.

Records are the normalized mappings produced by ``georeferencer.sources``:

- spot: ``{"spotId", "name", "imageX", "imageY", "coordinates": {"lat", "lng"}, ...}``
- route: ``{"routeId", "startPoint": {"id", "name", "lat", "lng"}, "endPoint": {...},
  "points": [...], ...}``

Two routes are the same when they join the same two endpoints in either
direction. Two spots are the same when they sit on (almost) the same image
pixel, or, lacking image coordinates, the same GPS position.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_PIXEL_TOLERANCE = 0.1
DEFAULT_GPS_TOLERANCE_DEG = 1e-4

RECORD_KINDS = ("route", "spot")


@dataclass
class MergeOutcome:
    """
    Result of merging newly loaded records into existing ones.

    Attributes:
        records: Merged record list (existing order, new records appended)
        added: Number of new records appended
        updated: Number of existing records updated by a duplicate
    """

    records: List[Dict[str, Any]] = field(default_factory=list)
    added: int = 0
    updated: int = 0


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _has_image_coords(record: Mapping[str, Any]) -> bool:
    return record.get("imageX") is not None and record.get("imageY") is not None


def is_same_spot(
    spot1: Mapping[str, Any],
    spot2: Mapping[str, Any],
    pixel_tolerance: float = DEFAULT_PIXEL_TOLERANCE,
    gps_tolerance: float = DEFAULT_GPS_TOLERANCE_DEG,
) -> bool:
    """
    Whether two spot records describe the same spot.

    Image coordinates take precedence: when both spots carry them, they match
    when both axes differ by less than ``pixel_tolerance`` pixels. Otherwise
    their ``coordinates`` must both be present and differ by less than
    ``gps_tolerance`` degrees in latitude and longitude.
    """
    if _has_image_coords(spot1) and _has_image_coords(spot2):
        x1, y1 = _number(spot1["imageX"]), _number(spot1["imageY"])
        x2, y2 = _number(spot2["imageX"]), _number(spot2["imageY"])
        if None in (x1, y1, x2, y2):
            return False
        return abs(x1 - x2) < pixel_tolerance and abs(y1 - y2) < pixel_tolerance

    coord1 = spot1.get("coordinates")
    coord2 = spot2.get("coordinates")
    if not coord1 or not coord2:
        return False

    lat1, lng1 = _number(coord1.get("lat")), _number(coord1.get("lng"))
    lat2, lng2 = _number(coord2.get("lat")), _number(coord2.get("lng"))
    if None in (lat1, lng1, lat2, lng2):
        return False
    return abs(lat1 - lat2) < gps_tolerance and abs(lng1 - lng2) < gps_tolerance


def _endpoint_id(endpoint: Mapping[str, Any]) -> Optional[str]:
    value = endpoint.get("id") or endpoint.get("name")
    return str(value) if value else None


def _endpoint_coords(endpoint: Mapping[str, Any]) -> Optional[tuple]:
    lat, lng = _number(endpoint.get("lat")), _number(endpoint.get("lng"))
    # Zero is treated as a missing coordinate
    if not lat or not lng:
        return None
    return lat, lng


def is_same_route(
    route1: Mapping[str, Any],
    route2: Mapping[str, Any],
    gps_tolerance: float = DEFAULT_GPS_TOLERANCE_DEG,
) -> bool:
    """
    Whether two route records connect the same endpoints.

    Endpoints are compared by identifier (``id`` or ``name``) when all four
    have one, in the same or the reverse direction. Otherwise all four must
    have coordinates, compared within ``gps_tolerance`` degrees. A route
    missing either endpoint is never a duplicate.
    """
    start1, end1 = route1.get("startPoint"), route1.get("endPoint")
    start2, end2 = route2.get("startPoint"), route2.get("endPoint")
    if not start1 or not end1 or not start2 or not end2:
        return False

    ids = [_endpoint_id(p) for p in (start1, end1, start2, end2)]
    if all(ids):
        s1, e1, s2, e2 = ids
        return (s1 == s2 and e1 == e2) or (s1 == e2 and e1 == s2)

    coords = [_endpoint_coords(p) for p in (start1, end1, start2, end2)]
    if not all(coords):
        return False
    s1, e1, s2, e2 = coords

    def close(p, q):
        return abs(p[0] - q[0]) < gps_tolerance and abs(p[1] - q[1]) < gps_tolerance

    return (close(s1, s2) and close(e1, e2)) or (close(s1, e2) and close(e1, s2))


def merge_and_deduplicate(
    existing: Sequence[Mapping[str, Any]],
    new: Sequence[Mapping[str, Any]],
    kind: str,
    pixel_tolerance: float = DEFAULT_PIXEL_TOLERANCE,
    gps_tolerance: float = DEFAULT_GPS_TOLERANCE_DEG,
) -> MergeOutcome:
    """
    Merge newly loaded records into existing ones without duplicates.

    Each new record is compared against the merged list built so far. A
    duplicate spot is updated with the new record's fields but keeps its
    existing ``coordinates``; a duplicate route is replaced entirely. Other
    records are appended. Neither input is modified.

    Args:
        existing: Records already loaded
        new: Newly loaded records
        kind: "route" or "spot"
        pixel_tolerance: Spot image coordinate tolerance (pixels)
        gps_tolerance: GPS coordinate tolerance (degrees)

    Returns:
        MergeOutcome with the merged list and added/updated counts

    Raises:
        ValueError: If kind is not "route" or "spot"
    """
    if kind not in RECORD_KINDS:
        raise ValueError(f"Invalid record kind '{kind}'. Must be one of: {', '.join(RECORD_KINDS)}")

    outcome = MergeOutcome(records=[dict(record) for record in existing])

    for new_record in new:
        if kind == "route":
            duplicate_index = next(
                (i for i, record in enumerate(outcome.records)
                 if is_same_route(record, new_record, gps_tolerance)),
                -1,
            )
        else:
            duplicate_index = next(
                (i for i, record in enumerate(outcome.records)
                 if is_same_spot(record, new_record, pixel_tolerance, gps_tolerance)),
                -1,
            )

        if duplicate_index == -1:
            outcome.records.append(dict(new_record))
            outcome.added += 1
            continue

        if kind == "spot":
            current = outcome.records[duplicate_index]
            merged = {**current, **new_record}
            merged["coordinates"] = current.get("coordinates")
            outcome.records[duplicate_index] = merged
        else:
            outcome.records[duplicate_index] = dict(new_record)
        outcome.updated += 1

    logger.info(f"Merged {kind} records: {outcome.added} added, {outcome.updated} updated")
    return outcome
