import logging
from typing import Optional, Sequence

import numpy as np
import trimesh

from .geometry_utils import world_bounds

logger = logging.getLogger(__name__)


class SolidTarget:
    """World-space bounding proxy of a solid that may need support."""

    def __init__(self, minimum, maximum, name: str = "", transform: Optional[np.ndarray] = None):
        min_corner, max_corner = world_bounds(minimum, maximum, transform)
        if not (np.all(np.isfinite(min_corner)) and np.all(np.isfinite(max_corner))):
            raise ValueError(f"Bounds of '{name}' are not finite")
        if np.any(min_corner > max_corner):
            raise ValueError(f"Bounds of '{name}' have a minimum above the maximum: {min_corner} > {max_corner}")

        self.name = name
        self.min = min_corner
        self.max = max_corner

    @classmethod
    def fromMesh(cls, mesh: trimesh.Trimesh, name: str = "",
                 transform: Optional[np.ndarray] = None) -> "SolidTarget":
        """Create a target from the bounds of a (transformed) trimesh."""
        if mesh is None or len(mesh.vertices) == 0:
            raise ValueError("No vertices in mesh data")

        vertices = np.asarray(mesh.vertices, dtype=float)
        if transform is not None:
            vertices = trimesh.transformations.transform_points(vertices, np.asarray(transform, dtype=float))

        logger.debug(f"Creating target '{name}' from mesh with {len(vertices)} vertices")
        return cls(vertices.min(axis=0), vertices.max(axis=0), name=name)

    @property
    def size(self) -> np.ndarray:
        return self.max - self.min

    @property
    def center(self) -> np.ndarray:
        return (self.min + self.max) / 2

    @property
    def radius(self) -> float:
        """Largest horizontal half extent, used as the object's footprint radius."""
        half = self.size / 2
        return float(max(half[0], half[1]))

    @property
    def bounding_radius(self) -> float:
        """Horizontal half diagonal, the circle enclosing the whole footprint."""
        half = self.size / 2
        return float(np.hypot(half[0], half[1]))

    def __repr__(self):
        return f"SolidTarget({self.name!r}, min={self.min.tolist()}, max={self.max.tolist()})"


class Anchor:
    """Fixed point every support branch grows from, e.g. the base of a central column."""

    def __init__(self, position: Sequence[float], normal: Sequence[float] = (0.0, 0.0, -1.0)):
        self.position = np.asarray(position, dtype=float)
        normal = np.asarray(normal, dtype=float)
        length = np.linalg.norm(normal)
        self.normal = normal / length if length > 0 else np.array([0.0, 0.0, -1.0])

    def __repr__(self):
        return f"Anchor(position={self.position.tolist()}, normal={self.normal.tolist()})"
