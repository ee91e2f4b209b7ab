"""Shared fixtures for georeferencer tests."""

import pytest

from georeferencer.affine import ControlPoint, estimate_affine_transformation

# Small rectangle near Tokyo Station used throughout the tests
NORTH = 35.6820
SOUTH = 35.6800
WEST = 139.7660
EAST = 139.7690

IMAGE_WIDTH = 1000
IMAGE_HEIGHT = 800


@pytest.fixture
def square_control_points():
    """Unit square image corners mapped to a small GPS rectangle (image y points down)."""
    return [
        ControlPoint("A-01", 0, 0, 35.001, 139.000),
        ControlPoint("A-02", 100, 0, 35.001, 139.001),
        ControlPoint("A-03", 100, 100, 35.000, 139.001),
        ControlPoint("A-04", 0, 100, 35.000, 139.000),
    ]


@pytest.fixture
def image_control_points():
    """Full-image corners mapped to the Tokyo rectangle."""
    return [
        ControlPoint("P-01", 0, 0, NORTH, WEST),
        ControlPoint("P-02", IMAGE_WIDTH, 0, NORTH, EAST),
        ControlPoint("P-03", IMAGE_WIDTH, IMAGE_HEIGHT, SOUTH, EAST),
        ControlPoint("P-04", 0, IMAGE_HEIGHT, SOUTH, WEST),
    ]


@pytest.fixture
def image_transformation(image_control_points):
    result = estimate_affine_transformation(image_control_points)
    assert result.ok
    return result.transformation


@pytest.fixture
def gps_geojson():
    """GeoJSON FeatureCollection of the four rectangle corners."""
    corners = [
        ("P-01", NORTH, WEST, 12.5),
        ("P-02", NORTH, EAST, 0),
        ("P-03", SOUTH, EAST, None),
        ("P-04", SOUTH, WEST, 8.0),
    ]
    features = []
    for identifier, lat, lng, elevation in corners:
        coordinates = [lng, lat] if elevation is None else [lng, lat, elevation]
        features.append(
            {
                "type": "Feature",
                "properties": {"id": identifier, "name": f"Corner {identifier}"},
                "geometry": {"type": "Point", "coordinates": coordinates},
            }
        )
    return {"type": "FeatureCollection", "features": features}


@pytest.fixture
def points_json():
    """Image point records for the four image corners."""
    return {
        "points": [
            {"Id": "P-01", "imageX": 0, "imageY": 0},
            {"Id": "P-02", "imageX": IMAGE_WIDTH, "imageY": 0},
            {"Id": "P-03", "imageX": IMAGE_WIDTH, "imageY": IMAGE_HEIGHT},
            {"Id": "P-04", "imageX": 0, "imageY": IMAGE_HEIGHT},
        ]
    }


@pytest.fixture
def route_json():
    return {
        "routeInfo": {"startPoint": "A-01", "endPoint": "A-05"},
        "points": [
            {"type": "waypoint", "imageX": 100, "imageY": 100},
            {"type": "waypoint", "imageX": 500, "imageY": 400},
            {"type": "waypoint", "imageX": 900, "imageY": 700},
        ],
    }


@pytest.fixture
def spots_json():
    return {
        "spots": [
            {"name": "Gate", "imageX": 250, "imageY": 200},
            {"name": "Tower", "imageX": 750, "imageY": 600},
        ]
    }


@pytest.fixture
def image_size():
    return IMAGE_WIDTH, IMAGE_HEIGHT
