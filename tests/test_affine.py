"""Unit tests for georeferencer.affine."""

import math

import numpy as np
import pytest

from georeferencer.affine import (
    AccuracyReport,
    AffineTransformation,
    ControlPoint,
    EstimationResult,
    apply_affine_transform,
    compute_accuracy,
    estimate_affine_transformation,
    invert_affine_transform,
)
from georeferencer.coordinate_math import lat_to_y, lon_to_x, x_to_lon, y_to_lat
from georeferencer.errors import (
    FailureKind,
    InsufficientControlPointsError,
    InvalidGeometryError,
    SingularSystemError,
)


class TestControlPoint:
    """Tests for ControlPoint validation."""

    def test_creation(self) -> None:
        point = ControlPoint("A-01", 10.5, 20.0, 35.0, 139.0, elevation=12.0)

        assert point.identifier == "A-01"
        assert point.image_x == 10.5
        assert point.elevation == 12.0

    def test_frozen(self) -> None:
        point = ControlPoint("A-01", 0, 0, 35.0, 139.0)

        with pytest.raises(AttributeError):
            point.lat = 36.0  # type: ignore[misc]

    @pytest.mark.parametrize(
        "image_x,image_y,lat,lng",
        [
            (math.nan, 0, 35.0, 139.0),
            (0, math.inf, 35.0, 139.0),
            (0, 0, None, 139.0),
            (0, 0, 35.0, "139"),
        ],
        ids=["nan-x", "inf-y", "none-lat", "string-lng"],
    )
    def test_non_finite_rejected(self, image_x, image_y, lat, lng) -> None:
        with pytest.raises(InvalidGeometryError):
            ControlPoint("bad", image_x, image_y, lat, lng)


class TestEstimateAffineTransformation:
    """Tests for least-squares estimation."""

    def test_square_fits_exactly(self, square_control_points) -> None:
        result = estimate_affine_transformation(square_control_points)

        assert result.ok
        assert result.failure is None
        assert result.used_points == 4
        assert result.accuracy.mean_error < 1.0
        assert result.accuracy.max_error < 1.0

    def test_center_maps_to_rectangle_center(self, square_control_points) -> None:
        result = estimate_affine_transformation(square_control_points)

        lat, lng = apply_affine_transform(50, 50, result.transformation)

        assert lat == pytest.approx(35.0005, abs=1e-6)
        assert lng == pytest.approx(139.0005, abs=1e-8)

    def test_control_points_reproduced(self, image_control_points) -> None:
        result = estimate_affine_transformation(image_control_points)

        for point in image_control_points:
            lat, lng = apply_affine_transform(point.image_x, point.image_y, result.transformation)
            assert lat == pytest.approx(point.lat, abs=1e-7)
            assert lng == pytest.approx(point.lng, abs=1e-7)

    def test_coefficients_of_exact_affine(self) -> None:
        """Points generated from a known projected affine recover its coefficients."""
        truth = AffineTransformation(a=0.5, b=0.1, c=15558000.0, d=-0.05, e=-0.5, f=4257000.0)
        points = []
        for i, (x, y) in enumerate([(0, 0), (800, 0), (800, 600), (0, 600), (400, 300)]):
            lat, lng = apply_affine_transform(x, y, truth)
            points.append(ControlPoint(f"P{i}", x, y, lat, lng))

        result = estimate_affine_transformation(points)

        np.testing.assert_allclose(
            result.transformation.as_matrix(), truth.as_matrix(), rtol=1e-6, atol=1e-4
        )

    @pytest.mark.parametrize("count", [0, 1, 2], ids=["none", "one", "two"])
    def test_insufficient_points(self, square_control_points, count) -> None:
        result = estimate_affine_transformation(square_control_points[:count])

        assert not result.ok
        assert result.failure is FailureKind.INSUFFICIENT_CONTROL_POINTS
        assert result.transformation is None
        assert result.accuracy is None

    def test_configurable_minimum(self, square_control_points) -> None:
        result = estimate_affine_transformation(square_control_points, min_points=5)
        assert result.failure is FailureKind.INSUFFICIENT_CONTROL_POINTS

    def test_collinear_points_are_singular(self) -> None:
        points = [
            ControlPoint("A", 0, 0, 35.000, 139.000),
            ControlPoint("B", 50, 50, 35.001, 139.001),
            ControlPoint("C", 100, 100, 35.002, 139.002),
        ]

        result = estimate_affine_transformation(points)

        assert not result.ok
        assert result.failure is FailureKind.SINGULAR_SYSTEM

    def test_duplicated_points_are_singular(self) -> None:
        points = [ControlPoint("A", 10, 10, 35.0, 139.0)] * 3

        result = estimate_affine_transformation(points)

        assert result.failure is FailureKind.SINGULAR_SYSTEM


class TestEstimationResult:
    """Tests for EstimationResult failure surfacing."""

    def test_raise_for_failure_insufficient(self) -> None:
        result = estimate_affine_transformation([])

        with pytest.raises(InsufficientControlPointsError):
            result.raise_for_failure()

    def test_raise_for_failure_singular(self) -> None:
        result = EstimationResult(failure=FailureKind.SINGULAR_SYSTEM, message="singular")

        with pytest.raises(SingularSystemError, match="singular"):
            result.raise_for_failure()

    def test_success_does_not_raise(self, square_control_points) -> None:
        estimate_affine_transformation(square_control_points).raise_for_failure()


class TestComputeAccuracy:
    """Tests for residual computation."""

    def test_residuals_in_projected_meters(self) -> None:
        """A point 3 m east and 4 m north of its prediction has a 5 m residual."""
        transformation = AffineTransformation(a=1, b=0, c=0, d=0, e=-1, f=0)
        predicted_x, predicted_y = transformation.apply_projected(10, 20)

        point = ControlPoint(
            "A", 10, 20, y_to_lat(predicted_y + 4), x_to_lon(predicted_x + 3)
        )

        report = compute_accuracy([point], transformation)

        assert report.errors[0] == pytest.approx(5.0, abs=1e-6)

    def test_statistics(self) -> None:
        transformation = AffineTransformation(a=1, b=0, c=0, d=0, e=1, f=0)
        points = [
            ControlPoint(f"P{i}", 0, 0, y_to_lat(0.0), x_to_lon(offset))
            for i, offset in enumerate([1.0, 2.0, 6.0])
        ]

        report = compute_accuracy(points, transformation)

        assert report.mean_error == pytest.approx(3.0, abs=1e-6)
        assert report.min_error == pytest.approx(1.0, abs=1e-6)
        assert report.max_error == pytest.approx(6.0, abs=1e-6)

    def test_to_dict(self) -> None:
        report = AccuracyReport(errors=(1.0, 3.0), mean_error=2.0, min_error=1.0, max_error=3.0)

        assert report.to_dict() == {
            "meanError": 2.0,
            "maxError": 3.0,
            "minError": 1.0,
            "errors": [1.0, 3.0],
        }

    def test_empty(self) -> None:
        report = compute_accuracy([], AffineTransformation(1, 0, 0, 0, 1, 0))
        assert report.errors == ()
        assert report.mean_error == 0.0


class TestApplyAffineTransform:
    """Tests for apply_affine_transform()."""

    def test_identity_like_at_origin(self) -> None:
        transformation = AffineTransformation(a=1, b=0, c=lon_to_x(139.0), d=0, e=-1, f=lat_to_y(35.0))

        lat, lng = apply_affine_transform(0, 0, transformation)

        assert lat == pytest.approx(35.0)
        assert lng == pytest.approx(139.0)

    @pytest.mark.parametrize(
        "transformation",
        [None, "not-a-transformation", AffineTransformation(math.nan, 0, 0, 0, 1, 0)],
        ids=["none", "wrong-type", "nan-coefficient"],
    )
    def test_malformed_transformation(self, transformation) -> None:
        assert apply_affine_transform(10, 10, transformation) is None

    @pytest.mark.parametrize(
        "image_x,image_y",
        [(math.nan, 0), (0, math.inf), (None, 0)],
        ids=["nan", "inf", "none"],
    )
    def test_non_finite_input(self, image_x, image_y) -> None:
        transformation = AffineTransformation(1, 0, 0, 0, 1, 0)
        assert apply_affine_transform(image_x, image_y, transformation) is None


class TestInvertAffineTransform:
    """Tests for invert_affine_transform()."""

    def test_round_trip(self, image_transformation) -> None:
        lat, lng = apply_affine_transform(321.5, 654.25, image_transformation)

        image_x, image_y = invert_affine_transform(lat, lng, image_transformation)

        assert image_x == pytest.approx(321.5, abs=1e-6)
        assert image_y == pytest.approx(654.25, abs=1e-6)

    def test_singular_linear_part(self) -> None:
        transformation = AffineTransformation(a=1, b=2, c=0, d=2, e=4, f=0)
        assert invert_affine_transform(35.0, 139.0, transformation) is None

    def test_missing_transformation(self) -> None:
        assert invert_affine_transform(35.0, 139.0, None) is None
