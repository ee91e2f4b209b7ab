"""Unit tests for georeferencer.coordinate_math."""

import math

import pytest
from pyproj import Transformer

from georeferencer.coordinate_math import (
    EARTH_RADIUS_M,
    WEB_MERCATOR_MAX,
    GeoBounds,
    convert_image_coords_to_gps,
    geodesic_distance,
    image_bounds_for_placement,
    lat_to_y,
    lon_to_x,
    meters_per_pixel,
    x_to_lon,
    y_to_lat,
)


class TestWebMercator:
    """Tests for the spherical Web Mercator projection."""

    def test_origin(self) -> None:
        assert lon_to_x(0.0) == 0.0
        assert lat_to_y(0.0) == pytest.approx(0.0, abs=1e-6)

    def test_antimeridian(self) -> None:
        assert lon_to_x(180.0) == pytest.approx(WEB_MERCATOR_MAX)
        assert lon_to_x(-180.0) == pytest.approx(-WEB_MERCATOR_MAX)

    @pytest.mark.parametrize(
        "lat,lng",
        [
            (35.681236, 139.767125),
            (-33.8688, 151.2093),
            (51.5074, -0.1278),
            (0.0, 0.0),
            (84.9, -179.9),
        ],
        ids=["tokyo", "sydney", "london", "null-island", "far-north"],
    )
    def test_round_trip(self, lat: float, lng: float) -> None:
        """Projecting and unprojecting returns the original coordinates."""
        assert x_to_lon(lon_to_x(lng)) == pytest.approx(lng, abs=1e-9)
        assert y_to_lat(lat_to_y(lat)) == pytest.approx(lat, abs=1e-9)

    @pytest.mark.parametrize(
        "lat,lng",
        [
            (35.681236, 139.767125),
            (-33.8688, 151.2093),
            (51.5074, -0.1278),
            (-85.0, 180.0),
            (85.0, -180.0),
        ],
        ids=["tokyo", "sydney", "london", "south-limit", "north-limit"],
    )
    def test_matches_pyproj_epsg3857(self, lat: float, lng: float) -> None:
        """Projection agrees with pyproj's EPSG:3857 within a centimeter."""
        transformer = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
        expected_x, expected_y = transformer.transform(lng, lat)

        assert lon_to_x(lng) == pytest.approx(expected_x, abs=0.01)
        assert lat_to_y(lat) == pytest.approx(expected_y, abs=0.01)

    def test_latitude_is_monotonic(self) -> None:
        ys = [lat_to_y(lat) for lat in range(-80, 81, 10)]
        assert ys == sorted(ys)


class TestMetersPerPixel:
    """Tests for map ground resolution."""

    def test_equator_zoom_zero(self) -> None:
        assert meters_per_pixel(0.0, 0) == pytest.approx(156543.03392)

    def test_halves_per_zoom_level(self) -> None:
        assert meters_per_pixel(35.0, 17) == pytest.approx(meters_per_pixel(35.0, 16) / 2)

    def test_scales_with_cosine_of_latitude(self) -> None:
        assert meters_per_pixel(60.0, 10) == pytest.approx(meters_per_pixel(0.0, 10) * 0.5)

    @pytest.mark.parametrize(
        "lat,zoom",
        [(100.0, 10), (0.0, float("nan")), (0.0, float("inf")), (float("nan"), 10)],
        ids=["beyond-pole", "nan-zoom", "infinite-zoom", "nan-lat"],
    )
    def test_invalid_returns_none(self, lat: float, zoom: float) -> None:
        assert meters_per_pixel(lat, zoom) is None


class TestGeodesicDistance:
    """Tests for the haversine distance."""

    def test_identical_points(self) -> None:
        assert geodesic_distance(35.0, 139.0, 35.0, 139.0) == 0.0

    def test_one_degree_along_equator(self) -> None:
        expected = EARTH_RADIUS_M * math.pi / 180
        assert geodesic_distance(0.0, 0.0, 0.0, 1.0) == pytest.approx(expected, rel=1e-12)

    def test_antipodal_points(self) -> None:
        assert geodesic_distance(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * EARTH_RADIUS_M)


class TestGeoBounds:
    """Tests for GeoBounds helpers."""

    def test_from_corners(self) -> None:
        bounds = GeoBounds.from_corners((35.0, 139.0), (35.1, 139.2))

        assert bounds.south == 35.0
        assert bounds.west == 139.0
        assert bounds.north == 35.1
        assert bounds.east == 139.2
        assert bounds.south_west == (35.0, 139.0)
        assert bounds.north_east == (35.1, 139.2)

    def test_center(self) -> None:
        bounds = GeoBounds(south=35.0, west=139.0, north=35.2, east=139.4)
        assert bounds.center == pytest.approx((35.1, 139.2))

    def test_is_finite(self) -> None:
        assert GeoBounds(35.0, 139.0, 35.1, 139.1).is_finite()
        assert not GeoBounds(35.0, math.nan, 35.1, 139.1).is_finite()


class TestConvertImageCoordsToGps:
    """Tests for bounds-based interpolation."""

    BOUNDS = GeoBounds(south=35.0, west=139.0, north=35.1, east=139.2)

    @pytest.mark.parametrize(
        "image_x,image_y,expected",
        [
            (0, 0, (35.1, 139.0)),
            (1000, 0, (35.1, 139.2)),
            (1000, 500, (35.0, 139.2)),
            (0, 500, (35.0, 139.0)),
            (500, 250, (35.05, 139.1)),
        ],
        ids=["top-left", "top-right", "bottom-right", "bottom-left", "center"],
    )
    def test_interpolation(self, image_x, image_y, expected) -> None:
        result = convert_image_coords_to_gps(image_x, image_y, self.BOUNDS, 1000, 500)
        assert result == pytest.approx(expected)

    @pytest.mark.parametrize(
        "bounds,width,height",
        [(None, 1000, 500), (BOUNDS, 0, 500), (BOUNDS, 1000, None), (BOUNDS, -10, 500)],
        ids=["no-bounds", "zero-width", "no-height", "negative-width"],
    )
    def test_invalid_inputs_return_none(self, bounds, width, height) -> None:
        assert convert_image_coords_to_gps(10, 10, bounds, width, height) is None


class TestImageBoundsForPlacement:
    """Tests for overlay bounds computation."""

    def test_centered_on_requested_point(self) -> None:
        bounds = image_bounds_for_placement(35.68, 139.76, 1000, 800, 0.8, 16)

        assert bounds is not None
        assert bounds.center == pytest.approx((35.68, 139.76), abs=1e-12)

    def test_ground_size_matches_scale(self) -> None:
        """Bounds span pixels * scale * meters_per_pixel on the ground."""
        lat, zoom, scale = 35.68, 16, 0.8
        bounds = image_bounds_for_placement(lat, 139.76, 1000, 800, scale, zoom)
        mpp = meters_per_pixel(lat, zoom)

        height_m = math.radians(bounds.north - bounds.south) * EARTH_RADIUS_M
        width_m = math.radians(bounds.east - bounds.west) * EARTH_RADIUS_M * math.cos(math.radians(lat))

        assert height_m == pytest.approx(800 * scale * mpp, rel=1e-9)
        assert width_m == pytest.approx(1000 * scale * mpp, rel=1e-9)

    @pytest.mark.parametrize(
        "width,height,zoom",
        [(0, 800, 16), (1000, -1, 16), (1000, 800, float("nan"))],
        ids=["zero-width", "negative-height", "nan-zoom"],
    )
    def test_invalid_geometry_returns_none(self, width, height, zoom) -> None:
        assert image_bounds_for_placement(35.68, 139.76, width, height, 0.8, zoom) is None
