from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import numpy as np

from .config import TreeSupportConfig
from .targets import SolidTarget

EDGE_OVERHANG = "edge_overhang"
FLOATING_BOTTOM = "floating_bottom"


@dataclass(frozen=True, eq=False)
class OverhangSample:
    """A surface point that needs support, as found by the OverhangDetector."""
    position: np.ndarray
    normal: np.ndarray
    solid: Optional[SolidTarget]
    subtype: str = EDGE_OVERHANG
    height: float = 0.0


def branch_radius(distance_to_tip: int, config: TreeSupportConfig) -> float:
    """Cura's radius calculation: thin at the tip, widening with every layer down to the trunk limit."""
    return min(config.branch_radius,
               config.tip_radius + distance_to_tip * config.layer_height * config.taper_slope)


def layer_index(z: float, config: TreeSupportConfig) -> int:
    """Layer a height belongs to, counted from the build plate."""
    return max(0, int(round((z - config.build_plate_z) / config.layer_height)))


@dataclass(eq=False)
class SupportElement:
    """A node of the support tree.

    parent and children hold arena ids, not objects. The parent sits one layer
    above (closer to the tip). children holds the elements grown below this one
    and, for merged elements, the parents of the elements that were merged.
    """
    id: int
    position: np.ndarray
    layer: int
    distance_to_tip: int
    to_buildplate: bool = True
    to_model_gracious: bool = False
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    last_move_distance: float = 0.0
    branch: int = 0


class LayerTable:
    """Buckets of element ids indexed by layer, layer 0 being the build plate."""

    def __init__(self):
        self._buckets: List[List[int]] = []

    def ensureLayer(self, layer: int) -> None:
        while len(self._buckets) <= layer:
            self._buckets.append([])

    def bucket(self, layer: int) -> List[int]:
        if layer < 0 or layer >= len(self._buckets):
            return []
        return self._buckets[layer]

    def add(self, layer: int, element_id: int) -> None:
        self.ensureLayer(layer)
        self._buckets[layer].append(element_id)

    def replace(self, layer: int, element_ids: List[int]) -> None:
        self.ensureLayer(layer)
        self._buckets[layer] = list(element_ids)

    def topLayer(self) -> int:
        """Highest layer holding at least one element, -1 for an empty table."""
        for layer in range(len(self._buckets) - 1, -1, -1):
            if self._buckets[layer]:
                return layer
        return -1

    def elementCount(self) -> int:
        return sum(len(bucket) for bucket in self._buckets)

    def __len__(self):
        return len(self._buckets)

    def __iter__(self) -> Iterator[List[int]]:
        return iter(self._buckets)


class GenerationContext:
    """Everything one layer pathing pass owns: the element arena and the layer table."""

    def __init__(self, config: TreeSupportConfig):
        self.config = config
        self.elements: List[SupportElement] = []
        self.layers = LayerTable()

    def createElement(self, position, layer: int, distance_to_tip: int,
                      parent: Optional[int] = None, to_buildplate: bool = True,
                      to_model_gracious: bool = False, branch: int = 0) -> SupportElement:
        """Add an element to the arena. Registers it with its parent but not with the layer table."""
        element = SupportElement(
            id=len(self.elements),
            position=np.array(position, dtype=float),
            layer=layer,
            distance_to_tip=distance_to_tip,
            to_buildplate=to_buildplate,
            to_model_gracious=to_model_gracious,
            parent=parent,
            branch=branch,
        )
        self.elements.append(element)
        if parent is not None:
            self.elements[parent].children.append(element.id)
        return element

    def element(self, element_id: int) -> SupportElement:
        return self.elements[element_id]

    def radius(self, element: SupportElement) -> float:
        return branch_radius(element.distance_to_tip, self.config)

    def influenceRadius(self, element: SupportElement) -> float:
        """Influence area is larger than the branch radius by the xy avoidance distance."""
        return self.radius(element) + self.config.support_xy_distance

    def liveElements(self) -> Iterator[SupportElement]:
        """Elements currently held by the layer table, from the build plate upward."""
        for bucket in self.layers:
            for element_id in bucket:
                yield self.elements[element_id]
