"""Tests for georeferencer.config."""

import pytest
import yaml

from georeferencer.config import GeoreferencerConfig, get_default_config


class TestGeoreferencerConfig:
    """Tests for configuration defaults and validation."""

    def test_defaults(self) -> None:
        config = get_default_config()

        assert config.min_control_points == 3
        assert config.pivot_epsilon == 1e-10
        assert config.spot_pixel_tolerance == 0.1
        assert config.gps_tolerance_deg == 1e-4
        assert config.duplicate_policy == "last"
        assert config.coordinate_precision == 5
        assert config.max_spreadsheet_rows == 1000

    @pytest.mark.parametrize(
        "overrides",
        [
            {"min_control_points": 2},
            {"pivot_epsilon": 0},
            {"spot_pixel_tolerance": -1},
            {"gps_tolerance_deg": float("nan")},
            {"duplicate_policy": "newest"},
            {"anisotropy_threshold": 0.9},
            {"map_center": (95.0, 139.0)},
            {"map_zoom": 31},
            {"coordinate_precision": -1},
            {"max_spreadsheet_rows": 1},
        ],
        ids=["min-points", "epsilon", "pixel-tolerance", "gps-tolerance", "policy",
             "anisotropy", "center", "zoom", "precision", "rows"],
    )
    def test_invalid_values(self, overrides) -> None:
        with pytest.raises(ValueError):
            GeoreferencerConfig(**overrides)

    def test_from_dict(self) -> None:
        config = GeoreferencerConfig.from_dict(
            {"map_zoom": 17, "duplicate_policy": "first", "map_center": [35.0, 139.0]}
        )

        assert config.map_zoom == 17
        assert config.duplicate_policy == "first"
        assert config.map_center == (35.0, 139.0)

    def test_from_dict_unknown_key(self) -> None:
        with pytest.raises(ValueError, match="Unknown configuration keys: zoom"):
            GeoreferencerConfig.from_dict({"zoom": 17})

    @pytest.mark.parametrize(
        "data",
        [["map_zoom", 17], {"map_center": [35.0]}, {"map_zoom": "high"}],
        ids=["not-a-dict", "short-center", "wrong-type"],
    )
    def test_from_dict_invalid(self, data) -> None:
        with pytest.raises(ValueError):
            GeoreferencerConfig.from_dict(data)

    def test_to_dict(self) -> None:
        result = get_default_config().to_dict()

        assert result["map_center"] == [35.681236, 139.767125]
        assert GeoreferencerConfig.from_dict(result) == get_default_config()


class TestYamlConfig:
    """Tests for YAML loading and saving."""

    def test_save_and_load(self, tmp_path) -> None:
        path = tmp_path / "nested" / "georeferencer.yaml"
        config = GeoreferencerConfig(map_zoom=18, duplicate_policy="first")

        config.save_to_yaml(str(path))
        loaded = GeoreferencerConfig.from_yaml(str(path))

        assert loaded == config
        assert "georeferencer" in yaml.safe_load(path.read_text(encoding="utf-8"))

    def test_partial_section_uses_defaults(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("georeferencer:\n  min_control_points: 4\n", encoding="utf-8")

        config = GeoreferencerConfig.from_yaml(str(path))

        assert config.min_control_points == 4
        assert config.map_zoom == 16

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            GeoreferencerConfig.from_yaml(str(tmp_path / "missing.yaml"))

    @pytest.mark.parametrize(
        "content,message",
        [
            ("", "empty"),
            ("other:\n  a: 1\n", "missing 'georeferencer' section"),
            ("georeferencer: [unclosed\n", "Failed to parse"),
        ],
        ids=["empty", "no-section", "bad-yaml"],
    )
    def test_malformed_file(self, tmp_path, content, message) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ValueError, match=message):
            GeoreferencerConfig.from_yaml(str(path))
