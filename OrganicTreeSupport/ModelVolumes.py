import logging
import math
from typing import Iterable, List, Optional

import numpy as np

from .config import TreeSupportConfig
from .geometry_utils import boxes_intersect, planar_direction, planar_distance
from .targets import SolidTarget

logger = logging.getLogger(__name__)


class ModelVolumes:
    """Collision and avoidance queries against the bounding proxies of the target solids.

    Read-only during a pass, so it can be shared by every growth strategy and thread.
    """

    def __init__(self, targets: List[SolidTarget], config: TreeSupportConfig):
        self._targets = list(targets)
        self._config = config

    @property
    def targets(self) -> List[SolidTarget]:
        return list(self._targets)

    def _candidates(self, exclude: Optional[Iterable[SolidTarget]]) -> List[SolidTarget]:
        if not exclude:
            return self._targets
        excluded = {id(target) for target in exclude}
        return [target for target in self._targets if id(target) not in excluded]

    def collidingTargets(self, position, radius: float,
                         exclude: Optional[Iterable[SolidTarget]] = None) -> List[SolidTarget]:
        """All solids whose bounds overlap the box of half size radius around position."""
        position = np.asarray(position, dtype=float)
        support_min = position - radius
        support_max = position + radius
        return [target for target in self._candidates(exclude)
                if boxes_intersect(support_min, support_max, target.min, target.max)]

    def isColliding(self, position, radius: float,
                    exclude: Optional[Iterable[SolidTarget]] = None) -> bool:
        return len(self.collidingTargets(position, radius, exclude)) > 0

    def getAvoidanceArea(self, position, radius: float,
                         exclude: Optional[Iterable[SolidTarget]] = None) -> np.ndarray:
        """Return a position where a support of the given radius does not hit any solid.

        Colliding positions are pushed away horizontally from the centroid of the
        nearest colliding solid until they clear its footprint plus the xy
        distance. If the result overlaps another solid it keeps moving outward in
        steps of the collision resolution. The height is never changed.

        Args:
            position: Center of the support element.
            radius: Radius of the support element.
            exclude: Solids to ignore, e.g. the solid a branch is meant to touch.

        Returns:
            The original position when it is free, otherwise the pushed-out position.
        """
        position = np.array(position, dtype=float)
        colliding = self.collidingTargets(position, radius, exclude)
        if not colliding:
            return position

        nearest = min(colliding, key=lambda target: planar_distance(position, target.center))
        center = nearest.center
        direction = planar_direction(center, position)
        push_distance = nearest.bounding_radius + radius + self._config.support_xy_distance

        pushed = position.copy()
        pushed[0] = center[0] + direction[0] * push_distance
        pushed[1] = center[1] + direction[1] * push_distance

        step = self._config.tree_support_collision_resolution
        max_steps = int(math.ceil(2 * self._config.print_area_bounds / step))
        for _ in range(max_steps):
            if not self.isColliding(pushed, radius, exclude):
                break
            pushed[0] += direction[0] * step
            pushed[1] += direction[1] * step
        else:
            logger.debug(f"Could not clear ({position[0]:.2f}, {position[1]:.2f}) from all solids")

        logger.debug(f"Pushed ({position[0]:.2f}, {position[1]:.2f}) away from '{nearest.name}' "
                     f"to ({pushed[0]:.2f}, {pushed[1]:.2f})")
        return pushed
