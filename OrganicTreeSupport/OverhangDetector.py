import logging
import math
from typing import List

import numpy as np

from .config import TreeSupportConfig
from .SupportElement import EDGE_OVERHANG, FLOATING_BOTTOM, OverhangSample
from .geometry_utils import boxes_intersect
from .targets import SolidTarget

logger = logging.getLogger(__name__)


class OverhangDetector:
    """Finds the points of each solid that cannot print without support."""

    def __init__(self, config: TreeSupportConfig):
        self._config = config

    def detectAllOverhangs(self, targets: List[SolidTarget]) -> List[OverhangSample]:
        """Scan every target and concatenate their overhang samples in target order."""
        logger.debug(f"Scanning {len(targets)} objects for overhangs")

        all_overhangs: List[OverhangSample] = []
        for target in targets:
            overhangs = self.detectObjectOverhangs(target)
            if overhangs:
                logger.debug(f"{target.name}: Found {len(overhangs)} overhang points")
            else:
                logger.debug(f"{target.name}: No overhangs detected")
            all_overhangs.extend(overhangs)

        logger.info(f"Detected {len(all_overhangs)} overhang points on {len(targets)} objects")
        return all_overhangs

    def detectObjectOverhangs(self, target: SolidTarget) -> List[OverhangSample]:
        if self.isFloating(target):
            logger.debug(f"{target.name} is floating "
                         f"{target.min[2] - self._config.build_plate_z:.2f} above the build plate")
            return self.generateBottomSupportPoints(target)

        overhangs = []
        layer_height = self._config.layer_height
        layers = int(math.ceil(target.size[2] / layer_height))
        for layer in range(1, layers):
            z = target.min[2] + layer * layer_height
            layer_overhangs = self.findOverhangsAtHeight(target, z)
            if layer_overhangs:
                logger.debug(f"Layer {layer} (z={z:.2f}): Found {len(layer_overhangs)} overhang points")
            overhangs.extend(layer_overhangs)
        return overhangs

    def isFloating(self, target: SolidTarget) -> bool:
        return target.min[2] > self._config.build_plate_z + self._config.floating_threshold

    def generateBottomSupportPoints(self, target: SolidTarget) -> List[OverhangSample]:
        """Grid of downward facing samples under the whole footprint of a floating solid.

        The samples sit one z distance plus a tip radius below the solid so a tip
        placed there does not overlap it.
        """
        size = target.size
        spacing = self._config.bottom_grid_spacing
        points_x = max(1, int(math.ceil(size[0] / spacing)))
        points_y = max(1, int(math.ceil(size[1] / spacing)))
        z = target.min[2] - (self._config.support_z_distance + self._config.tip_radius)

        logger.debug(f"Generating {points_x}x{points_y} grid of bottom support points")

        samples = []
        normal = np.array([0.0, 0.0, -1.0])
        for i in range(points_x):
            for j in range(points_y):
                x = target.min[0] + (i + 0.5) * (size[0] / points_x)
                y = target.min[1] + (j + 0.5) * (size[1] / points_y)
                samples.append(OverhangSample(
                    position=np.array([x, y, z]),
                    normal=normal.copy(),
                    solid=target,
                    subtype=FLOATING_BOTTOM,
                    height=z,
                ))
        return samples

    def findOverhangsAtHeight(self, target: SolidTarget, z: float) -> List[OverhangSample]:
        """Sample a ring slightly outside the footprint and keep the points that need support.

        The ring is sized on the largest half extent, so some of its points can
        fall inside the footprint (the diagonals of a square). Points where a
        tip would overlap its own solid are dropped.
        """
        tip_radius = self._config.tip_radius
        center = target.center
        object_radius = target.radius
        sample_radius = object_radius * self._config.perimeter_sample_scale
        samples = self._config.perimeter_samples

        overhangs = []
        for i in range(samples):
            angle = (i / samples) * math.pi * 2
            x = center[0] + math.cos(angle) * sample_radius
            y = center[1] + math.sin(angle) * sample_radius
            point = np.array([x, y, z])
            if boxes_intersect(point - tip_radius, point + tip_radius, target.min, target.max):
                continue
            if self.needsSupport(point, target):
                overhangs.append(OverhangSample(
                    position=point,
                    normal=np.array([math.cos(angle), math.sin(angle), 0.0]),
                    solid=target,
                    subtype=EDGE_OVERHANG,
                    height=z,
                ))
        return overhangs

    def needsSupport(self, point: np.ndarray, target: SolidTarget) -> bool:
        """True if the point sticks out further than the material below it can carry."""
        center = target.center
        horizontal_dist = math.hypot(point[0] - center[0], point[1] - center[1])
        height_above_base = point[2] - target.min[2]
        max_supported_overhang = height_above_base * math.tan(self._config.support_angle_radians)
        overhang_distance = horizontal_dist - target.radius
        return overhang_distance > 0 and overhang_distance > max_supported_overhang * 0.5
