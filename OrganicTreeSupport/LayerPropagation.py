import logging
import math
from typing import Callable, Iterator, List, Optional, Tuple

import numpy as np

from .ModelVolumes import ModelVolumes
from .SupportElement import GenerationContext, SupportElement, branch_radius
from .geometry_utils import planar_distance

logger = logging.getLogger(__name__)

DIAGONAL_FACTOR = 0.7
MERGE_OVERLAP_FACTOR = 0.8


def movement_attempts(max_move: float) -> List[Tuple[float, float]]:
    """Lateral offsets tried for every element, in priority order. Not moving is always tried first."""
    diagonal = max_move * DIAGONAL_FACTOR
    return [
        (0.0, 0.0),
        (max_move, 0.0),
        (-max_move, 0.0),
        (0.0, max_move),
        (0.0, -max_move),
        (diagonal, diagonal),
        (-diagonal, diagonal),
        (diagonal, -diagonal),
        (-diagonal, -diagonal),
    ]


class LayerPropagationEngine:
    """Grows every element one layer towards the build plate, then merges overlapping elements."""

    def __init__(self, context: GenerationContext, model_volumes: ModelVolumes):
        self._context = context
        self._model_volumes = model_volumes

    def createLayerPathing(self, should_cancel: Optional[Callable[[], bool]] = None) -> bool:
        """Propagate all layers from the top down to the build plate.

        Args:
            should_cancel: Checked after every processed layer; returning True stops the pass.

        Returns:
            True if every layer was processed, False if the pass was cancelled.
        """
        for layer in self.iterateLayers():
            if layer > 1 and should_cancel is not None and should_cancel():
                logger.info(f"Layer pathing cancelled below layer {layer}")
                return False
        return True

    def iterateLayers(self) -> Iterator[int]:
        """Process one layer per step, yielding the index of the layer just propagated."""
        layers = self._context.layers
        top_layer = layers.topLayer()
        logger.debug(f"Creating layer pathing from layer {top_layer}")

        for layer in range(top_layer, 0, -1):
            current_elements = list(layers.bucket(layer))
            if current_elements:
                logger.debug(f"Processing layer {layer} with {len(current_elements)} elements")
                for element_id in current_elements:
                    self.propagateElement(self._context.element(element_id), layer - 1)

                if len(layers.bucket(layer - 1)) > 1:
                    self.mergeInfluenceAreas(layer - 1)
            yield layer

    def propagateElement(self, element: SupportElement, target_layer: int) -> Optional[SupportElement]:
        """Create the child of element on target_layer, or abandon the branch if nothing fits."""
        if target_layer < 0:
            return None

        config = self._context.config
        # Slow moves near the tip keep the first branch segments close to vertical
        if element.distance_to_tip < config.tip_layers:
            max_move = config.maximum_move_distance_slow
        else:
            max_move = config.maximum_move_distance

        radius = self._context.radius(element)
        for dx, dy in movement_attempts(max_move):
            new_position = np.array([
                element.position[0] + dx,
                element.position[1] + dy,
                element.position[2] - config.layer_height,
            ])
            if not self.isValidPosition(new_position, radius):
                continue

            child = self._context.createElement(
                new_position,
                target_layer,
                element.distance_to_tip + 1,
                parent=element.id,
                to_buildplate=element.to_buildplate,
                to_model_gracious=element.to_model_gracious,
                branch=element.branch,
            )
            child.last_move_distance = math.hypot(dx, dy)
            self._context.layers.add(target_layer, child.id)
            logger.debug(f"Propagated element {element.id} to ({new_position[0]:.2f}, {new_position[1]:.2f}) "
                         f"with move distance {child.last_move_distance:.2f}")
            return child

        logger.debug(f"Failed to propagate element {element.id} from layer {element.layer}")
        return None

    def isValidPosition(self, position: np.ndarray, radius: float) -> bool:
        config = self._context.config
        if self._model_volumes.isColliding(position, radius):
            return False

        if position[2] < config.build_plate_z - config.floor_tolerance:
            return False

        bounds = config.print_area_bounds
        if abs(position[0]) > bounds or abs(position[1]) > bounds:
            return False

        return True

    def shouldMergeElements(self, element_a: SupportElement, element_b: SupportElement) -> bool:
        """True if the influence areas overlap and the merged element would have room at the midpoint."""
        dist = planar_distance(element_a.position, element_b.position)
        influence_a = self._context.influenceRadius(element_a)
        influence_b = self._context.influenceRadius(element_b)
        if dist >= (influence_a + influence_b) * MERGE_OVERLAP_FACTOR:
            return False

        midpoint = (element_a.position + element_b.position) / 2
        merged_radius = branch_radius(min(element_a.distance_to_tip, element_b.distance_to_tip),
                                      self._context.config)
        if not self.isValidPosition(midpoint, merged_radius):
            logger.debug(f"Not merging elements {element_a.id} and {element_b.id}, midpoint is blocked")
            return False
        return True

    def mergeElements(self, element_a: SupportElement, element_b: SupportElement, layer: int) -> SupportElement:
        """Replace two overlapping elements by one at their average position.

        The merged element keeps the smaller distance to tip and adopts the parents
        of both inputs as extra children so both ancestries stay connected.
        """
        merged = self._context.createElement(
            (element_a.position + element_b.position) / 2,
            layer,
            min(element_a.distance_to_tip, element_b.distance_to_tip),
            to_buildplate=element_a.to_buildplate and element_b.to_buildplate,
            to_model_gracious=element_a.to_model_gracious and element_b.to_model_gracious,
            branch=min(element_a.branch, element_b.branch),
        )
        for original in (element_a, element_b):
            if original.parent is not None:
                merged.children.append(original.parent)
        return merged

    def mergeInfluenceAreas(self, layer: int) -> None:
        layers = self._context.layers
        elements = [self._context.element(element_id) for element_id in layers.bucket(layer)]
        merged_elements: List[int] = []
        merged_indices = set()

        for i, element_a in enumerate(elements):
            if i in merged_indices:
                continue

            merged_with_any = False
            for j in range(i + 1, len(elements)):
                if j in merged_indices:
                    continue

                element_b = elements[j]
                if self.shouldMergeElements(element_a, element_b):
                    merged = self.mergeElements(element_a, element_b, layer)
                    merged_elements.append(merged.id)
                    merged_indices.add(i)
                    merged_indices.add(j)
                    merged_with_any = True
                    logger.debug(f"Merged 2 elements at ({element_a.position[0]:.1f}, {element_a.position[1]:.1f}) "
                                 f"and ({element_b.position[0]:.1f}, {element_b.position[1]:.1f})")
                    break

            if not merged_with_any:
                merged_elements.append(element_a.id)

        layers.replace(layer, merged_elements)
        logger.debug(f"Layer {layer}: {len(elements)} -> {len(merged_elements)} elements")
