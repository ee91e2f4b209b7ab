"""
Normalization of loaded GPS, point, route and spot data.

File parsing itself (spreadsheets, JSON bytes) is done by collaborators; the
functions here take the parsed structures (lists of rows, decoded JSON) and
turn them into GpsPoint objects, plain records for matching and
deduplication, and TrackedEntity objects for the registry.

Supported inputs:

- GPS points: GeoJSON FeatureCollection / Feature of Point geometries, or
  spreadsheet rows with a header row (``ポイントID``, ``名称``, ``緯度``,
  ``経度`` required; ``標高``, ``備考`` optional; English aliases accepted).
- Image JSON files, classified by ``detect_json_type``:
  route (``routeInfo`` + waypoints), spot (``spots`` list or a bare spot)
  and point (``points`` list of named image points).
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

from georeferencer.coordinate_math import GeoBounds, convert_image_coords_to_gps
from georeferencer.entities import EntityKind, Origin, TrackedEntity
from georeferencer.matching import GpsPoint, resolve_identifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_SPREADSHEET_ROWS = 1000

# Canonical column -> accepted header names
SPREADSHEET_COLUMNS: dict[str, tuple[str, ...]] = {
    "id": ("ポイントID", "id"),
    "name": ("名称", "name"),
    "lat": ("緯度", "lat"),
    "lng": ("経度", "lng"),
    "elevation": ("標高", "elevation"),
    "description": ("備考", "description"),
}
REQUIRED_SPREADSHEET_COLUMNS = ("id", "name", "lat", "lng")

JSON_TYPES = ("route", "spot", "point")


class FileSystem(Protocol):
    """Protocol for file system operations."""

    def read_text(self, path: str | Path) -> str:
        """Read text from a file."""
        ...

    def write_text(self, path: str | Path, content: str) -> None:
        """Write text to a file."""
        ...


class DefaultFileSystem:
    """Default file system implementation."""

    def read_text(self, path: str | Path) -> str:
        """Read text from a file."""
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: str | Path, content: str) -> None:
        """Write text to a file."""
        Path(path).write_text(content, encoding="utf-8")


def get_fs(fs: FileSystem | None) -> FileSystem:
    """Return the provided filesystem or the default."""
    return fs if fs is not None else DefaultFileSystem()


def load_json_file(path: str | Path, fs: FileSystem | None = None) -> Any:
    """Read and decode a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON.
    """
    text = get_fs(fs).read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}") from e


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool) or _is_blank(value):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _has_image_xy(item: Any) -> bool:
    return isinstance(item, Mapping) and "imageX" in item and "imageY" in item


# ---------------------------------------------------------------------------
# GPS points
# ---------------------------------------------------------------------------


def _gps_point_from_feature(feature: Mapping[str, Any], default_id: str) -> GpsPoint | None:
    geometry = feature.get("geometry") or {}
    if geometry.get("type") != "Point":
        return None

    coordinates = geometry.get("coordinates") or []
    if len(coordinates) < 2:
        logger.warning(f"GeoJSON point '{default_id}' has fewer than two coordinates; skipped")
        return None

    lng, lat = _to_float(coordinates[0]), _to_float(coordinates[1])
    if lat is None or lng is None:
        logger.warning(f"GeoJSON point '{default_id}' has non-numeric coordinates; skipped")
        return None

    properties = feature.get("properties") or {}
    identifier = properties.get("id") or properties.get("name") or default_id

    elevation = _to_float(coordinates[2]) if len(coordinates) > 2 else None
    if not elevation:
        elevation = _to_float(properties.get("elevation")) or None

    return GpsPoint(
        identifier=str(identifier),
        lat=lat,
        lng=lng,
        elevation=elevation,
        name=str(properties.get("name") or ""),
        location=str(
            properties.get("name") or properties.get("location") or properties.get("description") or ""
        ),
        description=str(properties.get("description") or ""),
        source="geojson",
    )


def gps_points_from_geojson(data: Mapping[str, Any]) -> list[GpsPoint]:
    """
    Extract GPS points from a GeoJSON FeatureCollection or single Feature.

    Only Point features are used. Coordinates are ``[lng, lat, elevation?]``.
    The identifier is ``properties.id``, then ``properties.name``, then
    ``Point_<n>`` (1-based feature position).

    Raises:
        ValueError: If data is neither a FeatureCollection nor a Feature.
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"GeoJSON data must be an object, got {type(data).__name__}")

    geojson_type = data.get("type")
    if geojson_type == "FeatureCollection":
        features = data.get("features") or []
    elif geojson_type == "Feature":
        features = [data]
    else:
        raise ValueError(
            f"Unsupported GeoJSON type '{geojson_type}'. Expected 'FeatureCollection' or 'Feature'"
        )

    points = []
    for index, feature in enumerate(features):
        point = _gps_point_from_feature(feature, f"Point_{index + 1}")
        if point is not None:
            points.append(point)

    logger.info(f"Loaded {len(points)} GPS points from GeoJSON ({len(features)} features)")
    return points


def _column_indices(header: Sequence[Any]) -> dict[str, int]:
    labels = [str(h).strip() if h is not None else "" for h in header]
    indices: dict[str, int] = {}
    for column, aliases in SPREADSHEET_COLUMNS.items():
        for alias in aliases:
            if alias in labels:
                indices[column] = labels.index(alias)
                break
    return indices


def gps_points_from_rows(
    rows: Sequence[Sequence[Any]],
    max_rows: int = DEFAULT_MAX_SPREADSHEET_ROWS,
) -> list[GpsPoint]:
    """
    Validate spreadsheet rows and convert them to GPS points.

    The first row is the header. Rows with a missing required value,
    non-numeric coordinates or coordinates out of range are skipped with a
    warning. At most ``max_rows`` rows (header included) are read.

    Args:
        rows: Sheet rows as lists of cell values
        max_rows: Maximum number of rows read, header included

    Returns:
        List of GpsPoint in row order

    Raises:
        ValueError: If there are no rows, no header, or a required column is
            missing
    """
    if not rows:
        raise ValueError("Spreadsheet is empty")

    header = rows[0]
    if not header:
        raise ValueError("Spreadsheet header row not found")

    indices = _column_indices(header)
    for column in REQUIRED_SPREADSHEET_COLUMNS:
        if column not in indices:
            raise ValueError(
                f"Required column '{SPREADSHEET_COLUMNS[column][0]}' not found "
                f"(accepted headers: {', '.join(SPREADSHEET_COLUMNS[column])})"
            )

    if len(rows) > max_rows:
        logger.warning(f"Spreadsheet has {len(rows)} rows; only the first {max_rows} are read")
    data_rows = rows[1:max_rows]

    def cell(row: Sequence[Any], column: str) -> Any:
        index = indices.get(column)
        if index is None or index >= len(row):
            return None
        return row[index]

    points = []
    for offset, row in enumerate(data_rows):
        line = offset + 2
        if not row:
            continue
        if any(_is_blank(cell(row, column)) for column in REQUIRED_SPREADSHEET_COLUMNS):
            continue

        lat = _to_float(cell(row, "lat"))
        lng = _to_float(cell(row, "lng"))
        if lat is None or lng is None:
            logger.warning(f"Row {line}: latitude/longitude are not numeric; skipped")
            continue
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            logger.warning(f"Row {line}: latitude/longitude out of range ({lat}, {lng}); skipped")
            continue

        description = cell(row, "description")
        points.append(
            GpsPoint(
                identifier=str(cell(row, "id")).strip(),
                lat=lat,
                lng=lng,
                elevation=_to_float(cell(row, "elevation")),
                name=str(cell(row, "name")),
                description="" if _is_blank(description) else str(description),
                source="excel",
            )
        )

    logger.info(f"Spreadsheet validated: {len(points)}/{len(data_rows)} rows usable")
    return points


# ---------------------------------------------------------------------------
# Image JSON files
# ---------------------------------------------------------------------------


def detect_json_type(data: Any) -> str | None:
    """
    Classify an image JSON document as "route", "spot" or "point".

    Returns:
        The detected type, or None when the document matches no shape.
    """
    if not isinstance(data, Mapping):
        return None

    route_info = data.get("routeInfo")
    points = data.get("points")

    if (
        isinstance(route_info, Mapping)
        and route_info.get("startPoint")
        and route_info.get("endPoint")
        and isinstance(points, list)
        and any(
            _has_image_xy(p) and p.get("type") == "waypoint" for p in points
        )
    ):
        return "route"

    spots = data.get("spots")
    if isinstance(spots, list) and any(_is_named_spot(s) for s in spots):
        return "spot"

    if _is_named_spot(data):
        return "spot"

    if isinstance(points, list) and any(
        _has_image_xy(p) and p.get("type") != "waypoint" and resolve_identifier(p) is not None
        for p in points
    ):
        return "point"

    logger.warning("Could not determine JSON document type; skipped")
    return None


def _is_named_spot(item: Any) -> bool:
    if not _has_image_xy(item):
        return False
    name = item.get("name")
    return isinstance(name, str) and name.strip() != ""


def extract_point_records(data: Any) -> list[dict[str, Any]]:
    """Image point records from a list, a ``points`` document or a single object."""
    if data is None:
        return []
    if isinstance(data, list):
        return [dict(item) for item in data if isinstance(item, Mapping)]
    if isinstance(data, Mapping):
        if isinstance(data.get("points"), list):
            return [dict(item) for item in data["points"] if isinstance(item, Mapping)]
        return [dict(data)]
    raise ValueError(f"Point data must be a list or object, got {type(data).__name__}")


def extract_coordinates(
    item: Mapping[str, Any],
    bounds: GeoBounds | None = None,
    image_width: float | None = None,
    image_height: float | None = None,
) -> dict[str, float] | None:
    """
    GPS coordinates of a record as ``{"lat", "lng"}``.

    Tried in order: ``lat``/``lng``, ``latitude``/``longitude``,
    ``coordinates`` ``[lng, lat]``, ``geometry.coordinates``, and finally
    image coordinates interpolated into the displayed image bounds.
    """
    if item.get("lat") and item.get("lng"):
        return {"lat": item["lat"], "lng": item["lng"]}
    if item.get("latitude") and item.get("longitude"):
        return {"lat": item["latitude"], "lng": item["longitude"]}

    coordinates = item.get("coordinates")
    if isinstance(coordinates, list) and len(coordinates) >= 2:
        return {"lat": coordinates[1], "lng": coordinates[0]}

    geometry = item.get("geometry")
    if isinstance(geometry, Mapping) and geometry.get("coordinates"):
        coords = geometry["coordinates"]
        return {"lat": coords[1], "lng": coords[0]}

    if _has_image_xy(item) and bounds is not None:
        x, y = _to_float(item.get("imageX")), _to_float(item.get("imageY"))
        if x is None or y is None:
            return None
        converted = convert_image_coords_to_gps(x, y, bounds, image_width, image_height)
        if converted is not None:
            return {"lat": converted[0], "lng": converted[1]}

    return None


def _endpoint_from_point(point: Mapping[str, Any], fallback_name: str) -> dict[str, Any]:
    return {
        "lat": point.get("lat") or point.get("latitude"),
        "lng": point.get("lng") or point.get("longitude"),
        "name": point.get("name") or point.get("id") or point.get("pointId") or fallback_name,
        "id": point.get("id") or point.get("name") or point.get("pointId"),
    }


def _route_endpoint(data: Mapping[str, Any], which: str) -> dict[str, Any] | None:
    route_info = data.get("routeInfo") or {}
    info_key = "startPoint" if which == "start" else "endPoint"
    if route_info.get(info_key):
        value = route_info[info_key]
        return {"lat": None, "lng": None, "name": value, "id": value}

    points = data.get("points")
    if isinstance(points, list) and points:
        point = points[0] if which == "start" else points[-1]
        return _endpoint_from_point(point, "Start" if which == "start" else "End")

    return None


def route_record_from_json(data: Mapping[str, Any], file_name: str) -> dict[str, Any]:
    """
    Normalize a route document.

    The route id is the document ``id``, else the file name without its
    ``.json`` suffix. Endpoints come from ``routeInfo`` when present, else
    from the first and last points.
    """
    stem = file_name[:-5] if file_name.endswith(".json") else file_name
    record = dict(data)
    record["fileName"] = file_name
    record["routeId"] = str(data.get("id") or stem)
    record["startPoint"] = _route_endpoint(data, "start")
    record["endPoint"] = _route_endpoint(data, "end")
    return record


def spot_records_from_json(
    data: Any,
    file_name: str,
    bounds: GeoBounds | None = None,
    image_width: float | None = None,
    image_height: float | None = None,
) -> list[dict[str, Any]]:
    """
    Normalize a spot document into one record per spot.

    Accepts a list of spots, a ``spots`` document, a GeoJSON
    FeatureCollection, or a single spot object. Each record gains
    ``fileName``, ``spotId`` (``id``, ``name`` or ``<file>_spot_<n>``) and
    ``coordinates``.
    """
    def normalize(item: Mapping[str, Any], index: int, coordinates=None) -> dict[str, Any]:
        record = dict(item)
        record["fileName"] = file_name
        record["spotId"] = str(item.get("id") or item.get("name") or f"{file_name}_spot_{index}")
        record["coordinates"] = (
            coordinates if coordinates is not None
            else extract_coordinates(item, bounds, image_width, image_height)
        )
        return record

    if isinstance(data, list):
        return [normalize(item, i) for i, item in enumerate(data) if isinstance(item, Mapping)]

    if not isinstance(data, Mapping):
        raise ValueError(f"Spot data must be a list or object, got {type(data).__name__}")

    if isinstance(data.get("spots"), list):
        return [
            normalize(item, i) for i, item in enumerate(data["spots"]) if isinstance(item, Mapping)
        ]

    if isinstance(data.get("features"), list):
        records = []
        for i, feature in enumerate(data["features"]):
            if not isinstance(feature, Mapping):
                continue
            properties = feature.get("properties") or {}
            coords = (feature.get("geometry") or {}).get("coordinates")
            coordinates = {"lat": coords[1], "lng": coords[0]} if coords else None
            records.append(normalize(properties, i, coordinates))
        return records

    return [normalize(data, 0)]


# ---------------------------------------------------------------------------
# Registry entities
# ---------------------------------------------------------------------------


def unique_route_ids(records: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Copies of route records whose ``routeId`` values are all distinct.

    A repeated id gains a ``_<n>`` suffix, so each route keeps its own
    waypoint group even when two documents share an ``id``.
    """
    seen: set[str] = set()
    result = []
    for record in records:
        record = dict(record)
        base = str(record.get("routeId") or record.get("name") or "route")
        route_id, n = base, 2
        while route_id in seen:
            route_id = f"{base}_{n}"
            n += 1
        if route_id != base:
            logger.warning(f"Route id '{base}' is used by more than one route; renamed to '{route_id}'")
        seen.add(route_id)
        record["routeId"] = route_id
        result.append(record)
    return result


def route_entities(record: Mapping[str, Any]) -> list[TrackedEntity]:
    """One ROUTE_WAYPOINT entity per route point, ordered by vertex index.

    Waypoints are grouped and keyed by ``routeId``; the route ``name`` is
    only carried for display. Points with image coordinates follow the
    image; the rest keep their GPS position.
    """
    group = str(record.get("routeId") or record.get("name"))
    route_name = record.get("name")
    entities = []
    for index, point in enumerate(record.get("points") or []):
        if not isinstance(point, Mapping):
            continue
        image_origin = _has_image_xy(point)
        coords = extract_coordinates(point) if not image_origin else None
        properties = {"type": point.get("type") or "waypoint"}
        if route_name:
            properties["routeName"] = str(route_name)
        entities.append(
            TrackedEntity(
                key=f"route:{group}:{index}",
                kind=EntityKind.ROUTE_WAYPOINT,
                origin=Origin.IMAGE if image_origin else Origin.GPS,
                image_x=_to_float(point.get("imageX")),
                image_y=_to_float(point.get("imageY")),
                lat=_to_float(coords["lat"]) if coords else None,
                lng=_to_float(coords["lng"]) if coords else None,
                group=group,
                name=str(point.get("name") or point.get("id") or point.get("pointId") or f"Point-{index + 1}"),
                index=index,
                properties=properties,
            )
        )
    return entities


def spot_entity(record: Mapping[str, Any], index: int) -> TrackedEntity:
    image_origin = _has_image_xy(record)
    coords = record.get("coordinates")
    if not isinstance(coords, Mapping):
        coords = {}
    spot_id = str(record.get("name") or record.get("spotId") or f"spot{index + 1:02d}")
    return TrackedEntity(
        key=f"spot:{index}:{spot_id}",
        kind=EntityKind.SPOT,
        origin=Origin.IMAGE if image_origin else Origin.GPS,
        image_x=_to_float(record.get("imageX")),
        image_y=_to_float(record.get("imageY")),
        lat=_to_float(coords.get("lat")),
        lng=_to_float(coords.get("lng")),
        name=spot_id,
        index=index,
    )


def point_entities(records: Iterable[Mapping[str, Any]]) -> list[TrackedEntity]:
    """POINT entities for image point records.

    Records with pixel coordinates follow the image; records that only carry
    a latitude/longitude keep that GPS position.
    """
    entities = []
    for index, record in enumerate(records):
        identifier = record.get("Id") or record.get("id") or record.get("name")
        image_origin = _has_image_xy(record)
        coords = extract_coordinates(record) if not image_origin else None
        entities.append(
            TrackedEntity(
                key=f"point:{index}",
                kind=EntityKind.POINT,
                origin=Origin.IMAGE if image_origin else Origin.GPS,
                image_x=_to_float(record.get("imageX")),
                image_y=_to_float(record.get("imageY")),
                lat=_to_float(coords["lat"]) if coords else None,
                lng=_to_float(coords["lng"]) if coords else None,
                name=str(identifier) if identifier else None,
                index=index,
            )
        )
    return entities
