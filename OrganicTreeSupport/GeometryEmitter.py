import logging
from dataclasses import dataclass
from typing import List, Optional, Union

import numpy as np

from .SupportElement import GenerationContext, SupportElement

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class TrunkPrimitive:
    """Vertical cylinder of one layer height centred on an element."""
    position: np.ndarray
    radius: float
    height: float
    layer: int = 0
    branch_index: int = 0
    segment_index: int = 0

    kind = "trunk"

    @property
    def top_radius(self) -> float:
        return self.radius

    @property
    def bottom_radius(self) -> float:
        return self.radius

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "position": [float(v) for v in self.position],
            "radius": float(self.radius),
            "height": float(self.height),
            "layer": int(self.layer),
            "branch_index": int(self.branch_index),
            "segment_index": int(self.segment_index),
        }


@dataclass(frozen=True, eq=False)
class ConnectorPrimitive:
    """Tapered cylinder between two elements, start_radius at start and end_radius at end."""
    start: np.ndarray
    end: np.ndarray
    start_radius: float
    end_radius: float
    length: float
    branch_index: int = 0
    segment_index: int = 0

    kind = "connector"

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "start": [float(v) for v in self.start],
            "end": [float(v) for v in self.end],
            "start_radius": float(self.start_radius),
            "end_radius": float(self.end_radius),
            "length": float(self.length),
            "branch_index": int(self.branch_index),
            "segment_index": int(self.segment_index),
        }


Primitive = Union[TrunkPrimitive, ConnectorPrimitive]


class GeometryEmitter:
    """Converts the finished element graph into cylinder primitives."""

    def __init__(self, context: GenerationContext):
        self._context = context

    def generateSupportGeometry(self) -> List[Primitive]:
        """Emit a trunk for every element and connectors towards the tips, layer 0 first."""
        primitives: List[Primitive] = []
        trunks = 0

        for element in self._context.liveElements():
            primitives.append(self.createSupportBranch(element))
            trunks += 1

            if element.parent is not None:
                connection = self.createParentConnection(element, self._context.element(element.parent))
                if connection is not None:
                    primitives.append(connection)

            # Merged elements carry the parents of the elements they replaced
            for child_id in element.children:
                ancestor = self._context.element(child_id)
                if ancestor.layer != element.layer + 1:
                    continue
                connection = self.createParentConnection(element, ancestor)
                if connection is not None:
                    primitives.append(connection)

        logger.info(f"Generated {trunks} support branches, {len(primitives) - trunks} connections")
        return primitives

    def createSupportBranch(self, element: SupportElement) -> TrunkPrimitive:
        return TrunkPrimitive(
            position=element.position.copy(),
            radius=self._context.radius(element),
            height=self._context.config.layer_height,
            layer=element.layer,
            branch_index=element.branch,
            segment_index=element.distance_to_tip,
        )

    def createParentConnection(self, child: SupportElement, parent: SupportElement) -> Optional[ConnectorPrimitive]:
        return create_connector(
            child.position,
            parent.position,
            self._context.radius(child),
            self._context.radius(parent),
            self._context.config.connector_min_length,
            branch_index=child.branch,
            segment_index=child.distance_to_tip,
        )


def create_connector(start, end, start_radius: float, end_radius: float, min_length: float,
                     branch_index: int = 0, segment_index: int = 0) -> Optional[ConnectorPrimitive]:
    """Build a connector between two points, or None if they are too close to matter."""
    start = np.array(start, dtype=float)
    end = np.array(end, dtype=float)
    length = float(np.linalg.norm(end - start))
    if length < min_length:
        return None

    return ConnectorPrimitive(
        start=start,
        end=end,
        start_radius=float(start_radius),
        end_radius=float(end_radius),
        length=length,
        branch_index=branch_index,
        segment_index=segment_index,
    )
