import json
import logging
import math
import os
from dataclasses import dataclass, asdict, fields, replace as dataclass_replace
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PRESETS_PATH = os.path.join(os.path.dirname(os.path.realpath(__file__)), "presets.json")


class ConfigurationError(ValueError):
    """Raised when a tree support configuration cannot drive a generation pass."""


@dataclass
class TreeSupportConfig:
    """Parameters for a tree support generation pass.

    Defaults follow Cura's organic tree support settings. Angles are in degrees,
    lengths in model units (mm for the shipped presets).
    """

    # Branch settings
    branch_radius: float = 1.5
    tip_diameter: float = 0.8
    branch_diameter_angle: float = 7.0

    # Movement settings
    maximum_move_distance: float = 5.0
    maximum_move_distance_slow: float = 2.5

    # Layer settings
    layer_height: float = 0.2
    tip_layers: int = 4

    # Support settings
    support_angle: float = 50.0
    support_xy_distance: float = 0.7
    support_z_distance: float = 0.2

    # Tree structure settings
    tree_support_branch_distance: float = 4.0
    tree_support_collision_resolution: float = 0.5

    # Build volume
    build_plate_z: float = 0.0
    print_area_bounds: float = 20.0
    floor_tolerance: float = 1.0

    # Overhang detection
    floating_threshold: float = 0.5
    bottom_grid_spacing: float = 2.0
    perimeter_samples: int = 16
    perimeter_sample_scale: float = 1.2

    # Geometry output
    connector_min_length: float = 0.01

    # Centralized growth
    organic_strength: float = 0.5
    slow_progress_fraction: float = 0.3

    @property
    def tip_radius(self) -> float:
        return self.tip_diameter / 2

    @property
    def taper_slope(self) -> float:
        """Radius gained per unit of branch length."""
        return math.tan(math.radians(self.branch_diameter_angle))

    @property
    def support_angle_radians(self) -> float:
        return math.radians(self.support_angle)

    def validate(self) -> "TreeSupportConfig":
        """Check that the configuration can drive a generation pass.

        Returns:
            The configuration itself, so calls can be chained.

        Raises:
            ConfigurationError: On the first invalid value found.
        """
        for name in ("layer_height", "print_area_bounds", "bottom_grid_spacing",
                     "tree_support_branch_distance", "tree_support_collision_resolution",
                     "branch_radius", "tip_diameter", "maximum_move_distance",
                     "maximum_move_distance_slow"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive number, got {value!r}")

        for name in ("support_xy_distance", "support_z_distance", "floor_tolerance",
                     "floating_threshold", "connector_min_length", "organic_strength",
                     "branch_diameter_angle"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"{name} must not be negative, got {value!r}")

        if not math.isfinite(self.build_plate_z):
            raise ConfigurationError(f"build_plate_z must be finite, got {self.build_plate_z!r}")

        if self.tip_layers < 0:
            raise ConfigurationError(f"tip_layers must not be negative, got {self.tip_layers!r}")

        if self.perimeter_samples < 1:
            raise ConfigurationError(f"perimeter_samples must be at least 1, got {self.perimeter_samples!r}")

        if self.perimeter_sample_scale < 1.0:
            raise ConfigurationError(
                f"perimeter_sample_scale must be at least 1.0, got {self.perimeter_sample_scale!r}")

        if not 0.0 < self.support_angle < 90.0:
            raise ConfigurationError(f"support_angle must be between 0 and 90 degrees, got {self.support_angle!r}")

        if self.branch_diameter_angle >= 90.0:
            raise ConfigurationError(
                f"branch_diameter_angle must be below 90 degrees, got {self.branch_diameter_angle!r}")

        if not 0.0 <= self.slow_progress_fraction <= 1.0:
            raise ConfigurationError(
                f"slow_progress_fraction must be between 0 and 1, got {self.slow_progress_fraction!r}")

        if self.tip_radius > self.branch_radius:
            raise ConfigurationError(
                f"tip_diameter {self.tip_diameter} is wider than the branch diameter {2 * self.branch_radius}")

        return self

    def replace(self, **changes) -> "TreeSupportConfig":
        return dataclass_replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreeSupportConfig":
        """Build a configuration from a (possibly partial) settings dictionary.

        Raises:
            ConfigurationError: If the dictionary contains unknown settings.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown tree support settings: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def fromPreset(cls, preset_name: str, path: Optional[str] = None) -> "TreeSupportConfig":
        """Build and validate the configuration stored under preset_name."""
        presets = load_presets(path)
        if preset_name not in presets:
            raise ConfigurationError(f"Preset not found: {preset_name}")
        config = cls.from_dict(presets[preset_name]).validate()
        logger.info(f"Applied preset: {preset_name}")
        return config


DEFAULT_PRESETS = {
    "Cura Default": {},
    "Fine Tips": {
        "tip_diameter": 0.4,
        "branch_radius": 1.0,
        "tree_support_branch_distance": 2.5,
    },
    "Sturdy Trunks": {
        "branch_radius": 3.0,
        "branch_diameter_angle": 10.0,
        "tip_diameter": 1.2,
    },
}


def load_presets(path: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """Load named presets from a JSON file.

    Args:
        path: File to read, defaults to the presets.json shipped with the package.

    Returns:
        Mapping of preset name to a partial settings dictionary. Falls back to
        the built-in presets when the file is missing or unreadable.
    """
    presets_path = path or PRESETS_PATH
    try:
        if os.path.exists(presets_path):
            with open(presets_path, "r") as f:
                data = json.load(f)
                presets = data.get("presets", {})
                logger.info(f"Loaded {len(presets)} presets from {os.path.basename(presets_path)}")
                return presets
        logger.warning(f"{presets_path} not found, using default presets")
    except (OSError, ValueError) as e:
        logger.error(f"Error loading presets: {e}")
    return {name: dict(settings) for name, settings in DEFAULT_PRESETS.items()}


def save_presets(presets: Dict[str, Dict[str, Any]], path: str) -> None:
    """Save presets to a JSON file after checking that each one is valid."""
    for name, settings in presets.items():
        if not name:
            raise ConfigurationError("Cannot save preset with empty name")
        TreeSupportConfig.from_dict(settings).validate()

    data = {"presets": presets}
    with open(path, "w") as f:
        json.dump(data, f, indent=4)
    logger.info(f"Saved {len(presets)} presets to {os.path.basename(path)}")
