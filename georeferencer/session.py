#!/usr/bin/env python3
"""
Georeferencing session: load, match, fit, place, synchronize and export.

GeoreferencingSession ties the stateless modules together the way an
interactive georeferencing tool uses them:

1. Load GPS points (GeoJSON or spreadsheet rows) and image point records
2. Show the source image on the map at a default display scale
3. Load route and spot documents, merging them with earlier loads
4. Match image points to GPS points and fit an affine transformation
5. Re-place the image from the fit and move every image-origin entity
6. Export the result as GeoJSON (or KML)

Steps run synchronously and in order. Each fit replaces the previous
transformation.

Usage Example:
    >>> session = GeoreferencingSession()
    >>> session.load_gps_geojson(gps_geojson)
    >>> session.load_points(points_json)
    >>> session.load_image(width=2000, height=1500, name="site-map.png")
    >>> session.load_documents([("route-a.json", route_json), ("spots.json", spots_json)])
    >>> result = session.georeference()
    >>> print(result.accuracy.mean_error)
    >>> collection = session.export()
    >>> print(session.output_name())
    site-map-GPS
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from georeferencer.affine import EstimationResult, estimate_affine_transformation
from georeferencer.config import GeoreferencerConfig, get_default_config
from georeferencer.dedup import merge_and_deduplicate
from georeferencer.entities import EntityKind, EntityRegistry
from georeferencer.export import (
    build_feature_collection,
    default_output_name,
    matched_gps_points,
    render_kml,
)
from georeferencer.matching import GpsPoint, MatchResult, match_control_points
from georeferencer.placement import (
    ImagePlacement,
    ImageUpdateNotifier,
    place_image,
    placement_from_transformation,
)
from georeferencer.scale import ScaleEstimate, compute_scale
from georeferencer.sources import (
    detect_json_type,
    extract_point_records,
    gps_points_from_geojson,
    gps_points_from_rows,
    point_entities,
    route_entities,
    route_record_from_json,
    spot_entity,
    spot_records_from_json,
    unique_route_ids,
)
from georeferencer.sync import MarkerRenderer, PositionSynchronizer, SyncReport

logger = logging.getLogger(__name__)


class GeoreferencingSession:
    """
    Stateful georeferencing workflow over one source image.

    Attributes:
        config: Engine configuration
        registry: Entities displayed on the map
        notifier: Image placement change notifier
        synchronizer: Keeps image-origin entities aligned with the image
        gps_points: Loaded GPS points
        point_records: Loaded image point records
        route_records: Merged route records
        spot_records: Merged spot records
        placement: Current image placement, None until an image is loaded
        image_name: File name of the loaded image
        match_result: Result of the last matching pass
        estimation: Result of the last affine fit
        scale_estimate: Display scale derived from the last fit
    """

    def __init__(
        self,
        config: Optional[GeoreferencerConfig] = None,
        registry: Optional[EntityRegistry] = None,
        notifier: Optional[ImageUpdateNotifier] = None,
        renderer: Optional[MarkerRenderer] = None,
    ):
        self.config = config or get_default_config()
        self.registry = registry if registry is not None else EntityRegistry()
        self.notifier = notifier or ImageUpdateNotifier()
        self.synchronizer = PositionSynchronizer(self.registry, self.notifier, renderer)
        self.synchronizer.attach()

        self.gps_points: List[GpsPoint] = []
        self.point_records: List[Dict[str, Any]] = []
        self.route_records: List[Dict[str, Any]] = []
        self.spot_records: List[Dict[str, Any]] = []
        self.placement: Optional[ImagePlacement] = None
        self.image_name: Optional[str] = None
        self.match_result: Optional[MatchResult] = None
        self.estimation: Optional[EstimationResult] = None
        self.scale_estimate: Optional[ScaleEstimate] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_gps_geojson(self, data: Mapping[str, Any]) -> List[GpsPoint]:
        """Replace GPS points with those of a GeoJSON document."""
        self.gps_points = gps_points_from_geojson(data)
        return self.gps_points

    def load_gps_rows(self, rows: Sequence[Sequence[Any]]) -> List[GpsPoint]:
        """Replace GPS points with validated spreadsheet rows."""
        self.gps_points = gps_points_from_rows(rows, max_rows=self.config.max_spreadsheet_rows)
        return self.gps_points

    def load_points(self, data: Any) -> List[Dict[str, Any]]:
        """Replace image point records and their POINT entities."""
        self.point_records = extract_point_records(data)
        self.registry.replace_kind(EntityKind.POINT, point_entities(self.point_records))
        logger.info(f"Loaded {len(self.point_records)} image point records")
        return self.point_records

    def load_image(
        self,
        width: float,
        height: float,
        name: Optional[str] = None,
        center: Optional[Tuple[float, float]] = None,
    ) -> Optional[ImagePlacement]:
        """
        Show the source image centered on the map at the default scale.

        Clears any previous transformation; entities follow the image bounds
        until the next fit.

        Returns:
            The new placement, or None if it could not be computed.
        """
        self.image_name = name
        self.estimation = None
        self.scale_estimate = None
        self.synchronizer.set_transformation(None)

        center_lat, center_lng = center or self.config.map_center
        placement = place_image(
            center_lat,
            center_lng,
            width,
            height,
            scale=self.config.default_scale,
            zoom_level=self.config.map_zoom,
        )
        if placement is None:
            logger.warning(f"Could not place image {name or ''} ({width}x{height})")
            return None

        self._update_placement(placement)
        return placement

    def load_documents(self, documents: Iterable[Tuple[str, Any]]) -> Dict[str, int]:
        """
        Load route and spot JSON documents.

        Each document is classified with ``detect_json_type``. Routes and
        spots are merged into the already loaded ones without duplicates.
        Point documents and unrecognized documents are skipped.

        Args:
            documents: (file name, decoded JSON) pairs

        Returns:
            Counts of loaded routes, spots and skipped documents
        """
        new_routes: List[Dict[str, Any]] = []
        new_spots: List[Dict[str, Any]] = []
        skipped = 0

        bounds = self.placement.bounds if self.placement else None
        width = self.placement.width if self.placement else None
        height = self.placement.height if self.placement else None

        for file_name, data in documents:
            json_type = detect_json_type(data)
            if json_type == "route":
                new_routes.append(route_record_from_json(data, file_name))
            elif json_type == "spot":
                new_spots.extend(spot_records_from_json(data, file_name, bounds, width, height))
            else:
                logger.warning(f"Skipping {file_name}: unsupported document type {json_type}")
                skipped += 1

        if new_routes:
            outcome = merge_and_deduplicate(
                self.route_records, new_routes, "route", gps_tolerance=self.config.gps_tolerance_deg
            )
            self.route_records = unique_route_ids(outcome.records)
            entities = []
            for record in self.route_records:
                entities.extend(route_entities(record))
            self.registry.replace_kind(EntityKind.ROUTE_WAYPOINT, entities)

        if new_spots:
            outcome = merge_and_deduplicate(
                self.spot_records,
                new_spots,
                "spot",
                pixel_tolerance=self.config.spot_pixel_tolerance,
                gps_tolerance=self.config.gps_tolerance_deg,
            )
            self.spot_records = outcome.records
            self.registry.replace_kind(
                EntityKind.SPOT,
                [spot_entity(record, i) for i, record in enumerate(self.spot_records)],
            )

        if new_routes or new_spots:
            self.synchronizer.synchronize()

        return {"routes": len(new_routes), "spots": len(new_spots), "skipped": skipped}

    # ------------------------------------------------------------------
    # Georeferencing
    # ------------------------------------------------------------------

    def match(self) -> MatchResult:
        """Match image point records against the loaded GPS points."""
        self.match_result = match_control_points(
            self.gps_points, self.point_records, self.config.duplicate_policy
        )
        return self.match_result

    def fit(self) -> EstimationResult:
        """
        Match, estimate and apply an affine transformation.

        Failures are reported in the returned EstimationResult; the previous
        transformation stays in effect.
        """
        match_result = self.match()
        result = estimate_affine_transformation(
            match_result.matched,
            min_points=self.config.min_control_points,
            pivot_epsilon=self.config.pivot_epsilon,
        )
        if not result.ok:
            return result

        self.estimation = result
        self.synchronizer.set_transformation(result.transformation)

        center_lat = self.placement.center[0] if self.placement else self.config.map_center[0]
        self.scale_estimate = compute_scale(
            result.transformation,
            result.control_points,
            center_lat,
            self.config.map_zoom,
            anisotropy_threshold=self.config.anisotropy_threshold,
        )
        scale = self.scale_estimate.scale if self.scale_estimate else self.config.default_scale

        placement = None
        if self.placement is not None:
            placement = placement_from_transformation(
                result.transformation,
                self.placement.width,
                self.placement.height,
                self.config.map_zoom,
                scale,
            )

        if placement is not None:
            self._update_placement(placement)
        else:
            self.synchronizer.synchronize()

        return result

    def georeference(self) -> EstimationResult:
        """Like ``fit`` but raises when the estimation fails.

        Raises:
            GeoreferencingError: Subclass matching the failure kind
        """
        result = self.fit()
        result.raise_for_failure()
        return result

    def synchronize(self) -> SyncReport:
        return self.synchronizer.synchronize()

    def _update_placement(self, placement: ImagePlacement) -> None:
        self.placement = placement
        self.notifier.notify(placement)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self) -> Dict[str, Any]:
        """FeatureCollection of matched GPS points, routes and spots."""
        match_result = self.match_result or self.match()
        matched = matched_gps_points(self.gps_points, match_result, self.config.duplicate_policy)
        return build_feature_collection(
            matched,
            self.registry,
            self.route_records,
            precision=self.config.coordinate_precision,
        )

    def export_kml(self) -> str:
        return render_kml(self.export(), document_name=self.output_name())

    def output_name(self, today: Optional[date] = None) -> str:
        return default_output_name(self.image_name, today)

    def report(self) -> Dict[str, Any]:
        """Diagnostic summary of the last match, fit and synchronization."""
        summary: Dict[str, Any] = {
            "match": self.match_result.to_dict() if self.match_result else None,
            "accuracy": None,
            "transformation": None,
            "scale": None,
            "sync": None,
        }
        if self.estimation is not None and self.estimation.ok:
            summary["accuracy"] = self.estimation.accuracy.to_dict()
            summary["transformation"] = self.estimation.transformation.to_dict()
        if self.scale_estimate is not None:
            summary["scale"] = {
                "scale": self.scale_estimate.scale,
                "method": self.scale_estimate.method.value,
                "metersPerImagePixel": self.scale_estimate.meters_per_image_pixel,
                "anisotropy": self.scale_estimate.anisotropy,
            }
        if self.synchronizer.last_report is not None:
            summary["sync"] = self.synchronizer.last_report.to_dict()
        return summary

    def __repr__(self) -> str:
        return (
            f"GeoreferencingSession(image='{self.image_name}', gps_points={len(self.gps_points)}, "
            f"point_records={len(self.point_records)}, routes={len(self.route_records)}, "
            f"spots={len(self.spot_records)})"
        )
