import logging
import math
from typing import List, Optional

import numpy as np

from .GeometryEmitter import Primitive, TrunkPrimitive, create_connector
from .ModelVolumes import ModelVolumes
from .SupportElement import OverhangSample, layer_index
from .config import TreeSupportConfig
from .geometry_utils import random_perpendicular

logger = logging.getLogger(__name__)


class CentralizedPathGrower:
    """Grows one organic branch from a fixed anchor up to an overhang target.

    The branch starts as thick as the remaining length allows and thins
    towards the target, stepping slowly at first and faster later, with a
    random sideways drift that fades out as the branch approaches the target.
    """

    def __init__(self, config: TreeSupportConfig, model_volumes: ModelVolumes,
                 rng: Optional[np.random.Generator] = None):
        self._config = config
        self._model_volumes = model_volumes
        self._rng = rng if rng is not None else np.random.default_rng()

    def calculateBranchRadius(self, distance_from_tip: float) -> float:
        config = self._config
        return max(config.tip_radius,
                   min(config.branch_radius, config.tip_radius + distance_from_tip * config.taper_slope))

    def growPath(self, start_position, overhang: OverhangSample, branch_index: int = 0) -> List[Primitive]:
        """Grow a path from start_position to the overhang.

        Args:
            start_position: Anchor position the branch starts from.
            overhang: Target sample. Its own solid is ignored for collisions, all
                others are kept at support_xy_distance from the branch surface.
            branch_index: Tag written on every emitted primitive.

        Returns:
            Connector and trunk primitives in growth order. A branch that reaches
            the target ends with a connector onto the target at tip radius. A
            path that runs out of steps is returned as far as it got.
        """
        config = self._config
        start = np.array(start_position, dtype=float)
        target = np.asarray(overhang.position, dtype=float)
        total_distance = float(np.linalg.norm(target - start))
        tolerance = config.support_xy_distance

        if total_distance < config.connector_min_length:
            logger.debug(f"Branch {branch_index} too short ({total_distance:.3f}), skipping")
            return []

        total_steps = int(math.ceil(total_distance / config.layer_height))
        exclude = [overhang.solid] if overhang.solid is not None else None

        path: List[Primitive] = []
        current_position = start
        current_radius = self.calculateBranchRadius(total_distance)
        reached = False

        for step in range(total_steps):
            progress = step / total_steps
            next_position = self.calculateNextPosition(current_position, target, progress,
                                                       drift_progress=(step + 1) / total_steps)

            radius = self.calculateBranchRadius(float(np.linalg.norm(target - next_position)))
            adjusted_position = self._model_volumes.getAvoidanceArea(
                next_position, radius + config.support_xy_distance, exclude)
            remaining = float(np.linalg.norm(target - adjusted_position))
            radius = self.calculateBranchRadius(remaining)

            connector = create_connector(current_position, adjusted_position, current_radius, radius,
                                         config.connector_min_length,
                                         branch_index=branch_index, segment_index=step)
            if connector is not None:
                path.append(connector)
            path.append(TrunkPrimitive(
                position=adjusted_position.copy(),
                radius=radius,
                height=config.layer_height,
                layer=layer_index(adjusted_position[2], config),
                branch_index=branch_index,
                segment_index=step,
            ))

            current_position = adjusted_position
            current_radius = radius

            if remaining < tolerance:
                reached = True
                # Close the gap so the branch touches the overhang itself
                closing = create_connector(current_position, target, current_radius, config.tip_radius,
                                           config.connector_min_length,
                                           branch_index=branch_index, segment_index=step + 1)
                if closing is not None:
                    path.append(closing)
                break

        if not reached:
            logger.warning(f"Branch {branch_index} stopped {remaining:.2f} short of its target "
                           f"after {total_steps} steps")
        logger.debug(f"Generated path with {len(path)} elements for branch {branch_index}")
        return path

    def calculateNextPosition(self, current_position: np.ndarray, target_position: np.ndarray,
                              progress: float, drift_progress: Optional[float] = None) -> np.ndarray:
        """Step towards the target with a sideways drift.

        Args:
            current_position: Position the step starts from.
            target_position: Overhang the branch grows to.
            progress: Fraction of the step budget used before this step, picks the move cap.
            drift_progress: Fraction used after this step, scales the drift. Defaults to progress.

        Returns:
            The unadjusted next position.
        """
        config = self._config
        direct_vector = target_position - current_position
        distance = float(np.linalg.norm(direct_vector))
        if distance < 1e-9:
            return current_position.copy()

        direction = direct_vector / distance
        max_move = (config.maximum_move_distance_slow if progress < config.slow_progress_fraction
                    else config.maximum_move_distance)
        move_distance = min(distance, max_move)

        next_position = current_position + direction * move_distance
        next_position += self.calculateOrganicOffset(
            direction, progress if drift_progress is None else drift_progress)
        return next_position

    def calculateOrganicOffset(self, direction: np.ndarray, progress: float) -> np.ndarray:
        """Sideways drift that fades out linearly as the branch approaches its target."""
        organic_strength = (1 - progress) * self._config.organic_strength
        if organic_strength <= 0:
            return np.zeros(3)
        return random_perpendicular(direction, self._rng) * organic_strength
