"""
Configuration for the georeferencing engine.

Values can be built in code, loaded from a dictionary, or read from the
``georeferencer`` section of a YAML file:

    georeferencer:
      min_control_points: 3
      duplicate_policy: last
      map_center: [35.681236, 139.767125]
      map_zoom: 16
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Tuple
import logging
import math

import yaml

from georeferencer.matching import DUPLICATE_POLICIES

logger = logging.getLogger(__name__)


@dataclass
class GeoreferencerConfig:
    """Georeferencing configuration.

    Attributes:
        min_control_points: Minimum matched pairs needed for a fit
        pivot_epsilon: Singularity threshold of the normal-equation solver
        spot_pixel_tolerance: Image distance (pixels) below which spots are duplicates
        gps_tolerance_deg: Coordinate difference (degrees) below which
            spots/route endpoints are duplicates
        duplicate_policy: Which GPS point wins for a repeated identifier,
            "last" or "first"
        anisotropy_threshold: Axis-scale ratio reported as anisotropic
        map_center: Initial map center (lat, lng)
        map_zoom: Map zoom used for display scale computation
        default_scale: Display scale used until a fit provides one
        coordinate_precision: Decimal places kept in exported coordinates
        max_spreadsheet_rows: Maximum spreadsheet rows read, header included
    """
    min_control_points: int = 3
    pivot_epsilon: float = 1e-10
    spot_pixel_tolerance: float = 0.1
    gps_tolerance_deg: float = 1e-4
    duplicate_policy: str = "last"
    anisotropy_threshold: float = 1.05
    map_center: Tuple[float, float] = (35.681236, 139.767125)
    map_zoom: float = 16
    default_scale: float = 0.8
    coordinate_precision: int = 5
    max_spreadsheet_rows: int = 1000

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: If any value is out of range
        """
        if self.min_control_points < 3:
            raise ValueError(
                f"min_control_points must be at least 3 for a 6-parameter affine fit, "
                f"got {self.min_control_points}"
            )
        for name in ("pivot_epsilon", "spot_pixel_tolerance", "gps_tolerance_deg", "default_scale"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive number, got {value}")
        if self.duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(
                f"Invalid duplicate_policy '{self.duplicate_policy}'. "
                f"Must be one of: {', '.join(DUPLICATE_POLICIES)}"
            )
        if self.anisotropy_threshold < 1.0:
            raise ValueError(f"anisotropy_threshold must be >= 1.0, got {self.anisotropy_threshold}")
        if len(self.map_center) != 2:
            raise ValueError(f"map_center must be [lat, lng], got {self.map_center}")
        lat, lng = self.map_center
        if not (-90 < lat < 90 and -180 <= lng <= 180):
            raise ValueError(f"map_center out of range: {self.map_center}")
        if not 0 <= self.map_zoom <= 30:
            raise ValueError(f"map_zoom must be between 0 and 30, got {self.map_zoom}")
        if self.coordinate_precision < 0:
            raise ValueError(f"coordinate_precision must be >= 0, got {self.coordinate_precision}")
        if self.max_spreadsheet_rows < 2:
            raise ValueError(f"max_spreadsheet_rows must be >= 2, got {self.max_spreadsheet_rows}")

    @classmethod
    def from_dict(cls, config: dict) -> 'GeoreferencerConfig':
        """Create configuration from dictionary.

        Unknown keys are rejected so typos do not pass silently.

        Args:
            config: Dictionary of configuration values

        Returns:
            GeoreferencerConfig instance

        Raises:
            ValueError: If configuration is invalid

        Example:
            >>> config = GeoreferencerConfig.from_dict({'map_zoom': 17, 'duplicate_policy': 'first'})
        """
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(config)}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(
                f"Unknown configuration keys: {', '.join(unknown)}. "
                f"Valid keys: {', '.join(sorted(known))}"
            )

        values: Dict[str, Any] = dict(config)
        if 'map_center' in values:
            center = values['map_center']
            if not isinstance(center, (list, tuple)) or len(center) != 2:
                raise ValueError(f"'map_center' must be a [lat, lng] list, got {center!r}")
            values['map_center'] = (float(center[0]), float(center[1]))

        try:
            return cls(**values)
        except TypeError as e:
            raise ValueError(f"Invalid configuration value: {e}") from e

    @classmethod
    def from_yaml(cls, path: str) -> 'GeoreferencerConfig':
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            GeoreferencerConfig instance loaded from file

        Raises:
            FileNotFoundError: If configuration file does not exist
            ValueError: If configuration file is malformed or contains invalid values
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}\n"
                f"Please create a configuration file or use get_default_config()"
            )

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML configuration file: {e}") from e

        if not data:
            raise ValueError(
                f"Configuration file is empty: {path}\n"
                f"Expected a 'georeferencer' section"
            )

        if 'georeferencer' not in data:
            raise ValueError(
                f"Configuration file missing 'georeferencer' section: {path}\n"
                f"Expected structure: georeferencer:\n  min_control_points: ...\n  ..."
            )

        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data['georeferencer'] or {})

    def to_dict(self) -> dict:
        """Convert configuration to dictionary suitable for YAML serialization."""
        result = asdict(self)
        result['map_center'] = list(self.map_center)
        return result

    def save_to_yaml(self, path: str) -> None:
        """Save configuration to YAML file under a 'georeferencer' section."""
        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump({'georeferencer': self.to_dict()}, f, sort_keys=False)


def get_default_config() -> GeoreferencerConfig:
    """Get default georeferencing configuration."""
    return GeoreferencerConfig()
