"""
GeoJSON and KML export of georeferenced data.

The exported FeatureCollection contains one Point feature per resolved
entity, in this order:

1. Matched GPS points (``type: gps_point``), at their surveyed position.
2. Image-origin route waypoints, grouped per route and numbered
   ``route_<start>_to_<end>_waypoint_NN``.
3. Image-origin spots, numbered ``spotNN_<name>``.

Coordinates are ``[lng, lat]`` rounded to 5 decimals; matched GPS points
carry a third elevation value when it is known and positive.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence
from xml.sax.saxutils import escape

from jinja2 import Environment, PackageLoader

from georeferencer.entities import EntityKind, EntityRegistry, Origin, TrackedEntity
from georeferencer.matching import GpsPoint, MatchResult, build_gps_lookup
from georeferencer.sources import FileSystem, get_fs

logger = logging.getLogger(__name__)

DEFAULT_COORDINATE_PRECISION = 5

GPS_SOURCE_LABELS = {
    "excel": "GPS_Excel",
    "geojson": "GPS_GeoJSON",
}

_template_env = Environment(
    loader=PackageLoader("georeferencer", "templates"),
    autoescape=False,  # KML is XML, we handle escaping manually
    trim_blocks=True,
    lstrip_blocks=True,
)


def round_coordinate(value: float, precision: int = DEFAULT_COORDINATE_PRECISION) -> float:
    return round(value, precision)


def _point_feature(properties: dict[str, Any], coordinates: list[float]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Point", "coordinates": coordinates},
    }


def matched_gps_points(
    gps_points: Sequence[GpsPoint],
    match_result: MatchResult,
    duplicate_policy: str = "last",
) -> list[GpsPoint]:
    """GPS points paired with a control point, in control point order."""
    lookup = build_gps_lookup(gps_points, duplicate_policy)
    return [lookup[cp.identifier] for cp in match_result.matched if cp.identifier in lookup]


def gps_point_features(
    points: Iterable[GpsPoint], precision: int = DEFAULT_COORDINATE_PRECISION
) -> list[dict[str, Any]]:
    features = []
    for point in points:
        coordinates = [round_coordinate(point.lng, precision), round_coordinate(point.lat, precision)]
        if point.elevation and point.elevation > 0:
            coordinates.append(point.elevation)
        features.append(
            _point_feature(
                {
                    "id": point.identifier,
                    "name": point.name or point.location,
                    "type": "gps_point",
                    "source": GPS_SOURCE_LABELS.get(point.source, point.source),
                    "description": point.description or "GPS control point",
                    "notes": "",
                },
                coordinates,
            )
        )
    return features


def _find_route(route_records: Sequence[Mapping[str, Any]], group: str) -> Mapping[str, Any] | None:
    for record in route_records:
        file_name = str(record.get("fileName") or "")
        if (
            record.get("routeId") == group
            or record.get("name") == group
            or (file_name and file_name.replace(".json", "") == group)
        ):
            return record
    return None


def full_route_id(route_records: Sequence[Mapping[str, Any]], group: str) -> str:
    """``route_<start>_to_<end>`` for the route a waypoint group belongs to."""
    start, end = "unknown_start", "unknown_end"
    record = _find_route(route_records, group)
    if record is not None:
        route_info = record.get("routeInfo") or {}
        start = (record.get("startPoint") or {}).get("id") or route_info.get("startPoint") or start
        end = (record.get("endPoint") or {}).get("id") or route_info.get("endPoint") or end
    return f"route_{start}_to_{end}"


def _placed_image_entities(registry: EntityRegistry, kind: EntityKind) -> list[TrackedEntity]:
    return [
        e for e in registry.by_kind(kind)
        if e.origin is Origin.IMAGE and e.has_position
    ]


def route_waypoint_features(
    registry: EntityRegistry,
    route_records: Sequence[Mapping[str, Any]] = (),
    precision: int = DEFAULT_COORDINATE_PRECISION,
) -> list[dict[str, Any]]:
    groups: dict[str, list[TrackedEntity]] = {}
    for entity in _placed_image_entities(registry, EntityKind.ROUTE_WAYPOINT):
        groups.setdefault(entity.group or "unknown_route", []).append(entity)

    features = []
    for group, members in groups.items():
        route_id = full_route_id(route_records, group)
        members.sort(key=lambda e: e.index if e.index is not None else 0)
        for number, entity in enumerate(members, start=1):
            waypoint_name = f"waypoint_{number:02d}"
            features.append(
                _point_feature(
                    {
                        "id": f"{route_id}_{waypoint_name}",
                        "name": waypoint_name,
                        "type": "route_waypoint",
                        "source": "image_transformed",
                        "route_id": route_id,
                        "description": "Route waypoint",
                    },
                    [round_coordinate(entity.lng, precision), round_coordinate(entity.lat, precision)],
                )
            )
    return features


def spot_features(
    registry: EntityRegistry, precision: int = DEFAULT_COORDINATE_PRECISION
) -> list[dict[str, Any]]:
    features = []
    for number, entity in enumerate(_placed_image_entities(registry, EntityKind.SPOT), start=1):
        counter = f"spot{number:02d}"
        name = entity.name or counter
        features.append(
            _point_feature(
                {
                    "id": f"{counter}_{name}",
                    "name": name,
                    "type": "spot",
                    "source": "image_transformed",
                    "description": "Spot",
                },
                [round_coordinate(entity.lng, precision), round_coordinate(entity.lat, precision)],
            )
        )
    return features


def build_feature_collection(
    matched_points: Sequence[GpsPoint],
    registry: EntityRegistry | None = None,
    route_records: Sequence[Mapping[str, Any]] = (),
    precision: int = DEFAULT_COORDINATE_PRECISION,
) -> dict[str, Any]:
    """
    Build the export FeatureCollection.

    Args:
        matched_points: GPS points matched to image points
        registry: Entity registry holding placed routes and spots
        route_records: Loaded route records, used to name waypoint groups
        precision: Decimal places kept in coordinates

    Returns:
        GeoJSON FeatureCollection dictionary
    """
    features = gps_point_features(matched_points, precision)
    if registry is not None:
        features.extend(route_waypoint_features(registry, route_records, precision))
        features.extend(spot_features(registry, precision))

    logger.info(f"Built FeatureCollection with {len(features)} features")
    return {"type": "FeatureCollection", "features": features}


def default_output_name(image_name: str | None = None, today: date | None = None) -> str:
    """Export file name without extension.

    ``<image stem>-GPS`` when an image is loaded, else
    ``georeferenced-YYYYMMDD``.
    """
    if image_name:
        return f"{Path(image_name).stem}-GPS"
    today = today or date.today()
    return f"georeferenced-{today.strftime('%Y%m%d')}"


def save_feature_collection(
    feature_collection: Mapping[str, Any],
    path: str | Path,
    fs: FileSystem | None = None,
) -> Path:
    """Write a FeatureCollection as indented UTF-8 JSON."""
    content = json.dumps(feature_collection, ensure_ascii=False, indent=2)
    get_fs(fs).write_text(path, content)
    logger.info(f"Saved {len(feature_collection.get('features', []))} features to {path}")
    return Path(path)


def render_kml(feature_collection: Mapping[str, Any], document_name: str = "georeferenced") -> str:
    """Render a FeatureCollection as a KML document of Placemarks.

    Uses Jinja2 template for KML generation.
    """
    placemarks = []
    for feature in feature_collection.get("features", []):
        properties = feature.get("properties") or {}
        coordinates = (feature.get("geometry") or {}).get("coordinates") or []
        if len(coordinates) < 2:
            continue
        data = [
            (escape(str(key), {'"': '&quot;'}), escape(str(value)))
            for key, value in properties.items()
            if key not in ("name", "description") and value not in (None, "")
        ]
        placemarks.append(
            {
                "name": escape(str(properties.get("name") or properties.get("id") or "")),
                "description": escape(str(properties.get("description") or "")),
                "style": escape(str(properties.get("type") or "gps_point")),
                "data": data,
                "coordinates": ",".join(str(c) for c in coordinates),
            }
        )

    template = _template_env.get_template("features.kml.j2")
    return template.render(document_name=escape(document_name), placemarks=placemarks)
