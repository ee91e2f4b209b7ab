"""Unit tests for georeferencer.dedup."""

import copy

import pytest

from georeferencer.dedup import is_same_route, is_same_spot, merge_and_deduplicate


def _route(start, end, **extra):
    return {"startPoint": start, "endPoint": end, **extra}


class TestIsSameSpot:
    """Tests for spot duplicate detection."""

    @pytest.mark.parametrize(
        "spot1,spot2,expected",
        [
            ({"imageX": 100, "imageY": 200}, {"imageX": 100.05, "imageY": 200.05}, True),
            ({"imageX": 100, "imageY": 200}, {"imageX": 100.2, "imageY": 200}, False),
            ({"imageX": 100, "imageY": 200}, {"imageX": 100, "imageY": 200.15}, False),
        ],
        ids=["within-tolerance", "x-outside", "y-outside"],
    )
    def test_image_coordinates(self, spot1, spot2, expected) -> None:
        assert is_same_spot(spot1, spot2) is expected

    def test_image_coordinates_take_precedence(self) -> None:
        """Distant image positions are different spots even with identical GPS."""
        coordinates = {"lat": 35.0, "lng": 139.0}
        spot1 = {"imageX": 0, "imageY": 0, "coordinates": coordinates}
        spot2 = {"imageX": 50, "imageY": 50, "coordinates": coordinates}

        assert not is_same_spot(spot1, spot2)

    @pytest.mark.parametrize(
        "coord2,expected",
        [
            ({"lat": 35.00005, "lng": 139.00005}, True),
            ({"lat": 35.0002, "lng": 139.0}, False),
        ],
        ids=["within-tolerance", "outside"],
    )
    def test_gps_fallback(self, coord2, expected) -> None:
        spot1 = {"coordinates": {"lat": 35.0, "lng": 139.0}}
        spot2 = {"coordinates": coord2}

        assert is_same_spot(spot1, spot2) is expected

    def test_one_side_without_image_uses_gps(self) -> None:
        spot1 = {"imageX": 10, "imageY": 10, "coordinates": {"lat": 35.0, "lng": 139.0}}
        spot2 = {"coordinates": {"lat": 35.0, "lng": 139.0}}

        assert is_same_spot(spot1, spot2)

    def test_no_coordinates_is_not_a_duplicate(self) -> None:
        assert not is_same_spot({"name": "A"}, {"name": "A"})

    def test_custom_pixel_tolerance(self) -> None:
        spot1 = {"imageX": 0, "imageY": 0}
        spot2 = {"imageX": 2, "imageY": 2}

        assert is_same_spot(spot1, spot2, pixel_tolerance=5)


class TestIsSameRoute:
    """Tests for route duplicate detection."""

    def test_same_direction_by_id(self) -> None:
        assert is_same_route(_route({"id": "A"}, {"id": "B"}), _route({"id": "A"}, {"id": "B"}))

    def test_reverse_direction_by_id(self) -> None:
        assert is_same_route(_route({"id": "A"}, {"id": "B"}), _route({"id": "B"}, {"id": "A"}))

    def test_name_used_when_id_missing(self) -> None:
        assert is_same_route(
            _route({"name": "A"}, {"name": "B"}), _route({"id": "A"}, {"id": "B"})
        )

    def test_different_endpoints(self) -> None:
        assert not is_same_route(
            _route({"id": "A"}, {"id": "B"}), _route({"id": "A"}, {"id": "C"})
        )

    def test_coordinates_when_ids_missing(self) -> None:
        route1 = _route({"lat": 35.0, "lng": 139.0}, {"lat": 35.01, "lng": 139.01})
        route2 = _route({"lat": 35.01, "lng": 139.01}, {"lat": 35.00005, "lng": 139.0})

        assert is_same_route(route1, route2)

    def test_coordinates_outside_tolerance(self) -> None:
        route1 = _route({"lat": 35.0, "lng": 139.0}, {"lat": 35.01, "lng": 139.01})
        route2 = _route({"lat": 35.001, "lng": 139.0}, {"lat": 35.01, "lng": 139.01})

        assert not is_same_route(route1, route2)

    def test_zero_coordinates_are_missing(self) -> None:
        route1 = _route({"lat": 0, "lng": 0}, {"lat": 35.0, "lng": 139.0})
        route2 = _route({"lat": 0, "lng": 0}, {"lat": 35.0, "lng": 139.0})

        assert not is_same_route(route1, route2)

    def test_missing_endpoint(self) -> None:
        assert not is_same_route(_route({"id": "A"}, None), _route({"id": "A"}, {"id": "B"}))


class TestMergeAndDeduplicate:
    """Tests for merge_and_deduplicate()."""

    def test_new_spots_appended(self) -> None:
        existing = [{"name": "Gate", "imageX": 10, "imageY": 10}]
        new = [{"name": "Tower", "imageX": 500, "imageY": 500}]

        outcome = merge_and_deduplicate(existing, new, "spot")

        assert [r["name"] for r in outcome.records] == ["Gate", "Tower"]
        assert outcome.added == 1
        assert outcome.updated == 0

    def test_duplicate_spot_keeps_existing_coordinates(self) -> None:
        existing = [
            {"name": "Gate", "imageX": 10, "imageY": 10, "coordinates": {"lat": 35.0, "lng": 139.0}}
        ]
        new = [
            {"name": "Main Gate", "imageX": 10.05, "imageY": 10,
             "coordinates": {"lat": 36.0, "lng": 140.0}}
        ]

        outcome = merge_and_deduplicate(existing, new, "spot")

        assert len(outcome.records) == 1
        assert outcome.records[0]["name"] == "Main Gate"
        assert outcome.records[0]["imageX"] == 10.05
        assert outcome.records[0]["coordinates"] == {"lat": 35.0, "lng": 139.0}
        assert outcome.updated == 1
        assert outcome.added == 0

    def test_duplicate_route_replaced(self) -> None:
        existing = [_route({"id": "A"}, {"id": "B"}, routeId="old", points=[1, 2])]
        new = [_route({"id": "B"}, {"id": "A"}, routeId="new", points=[3])]

        outcome = merge_and_deduplicate(existing, new, "route")

        assert len(outcome.records) == 1
        assert outcome.records[0]["routeId"] == "new"
        assert outcome.records[0]["points"] == [3]

    def test_duplicates_within_new_batch(self) -> None:
        new = [
            {"name": "Gate", "imageX": 10, "imageY": 10},
            {"name": "Gate again", "imageX": 10, "imageY": 10},
        ]

        outcome = merge_and_deduplicate([], new, "spot")

        assert len(outcome.records) == 1
        assert outcome.records[0]["name"] == "Gate again"
        assert outcome.added == 1
        assert outcome.updated == 1

    def test_inputs_not_modified(self) -> None:
        existing = [
            {"name": "Gate", "imageX": 10, "imageY": 10, "coordinates": {"lat": 35.0, "lng": 139.0}}
        ]
        new = [{"name": "Gate 2", "imageX": 10, "imageY": 10}]
        existing_before = copy.deepcopy(existing)
        new_before = copy.deepcopy(new)

        merge_and_deduplicate(existing, new, "spot")

        assert existing == existing_before
        assert new == new_before

    def test_merge_is_idempotent(self) -> None:
        records = [
            {"name": "Gate", "imageX": 10, "imageY": 10, "coordinates": None},
            {"name": "Tower", "imageX": 500, "imageY": 500, "coordinates": {"lat": 35.0, "lng": 139.0}},
        ]

        once = merge_and_deduplicate([], records, "spot").records
        twice = merge_and_deduplicate(once, records, "spot").records

        assert twice == once

    def test_invalid_kind(self) -> None:
        with pytest.raises(ValueError, match="Invalid record kind"):
            merge_and_deduplicate([], [], "point")
