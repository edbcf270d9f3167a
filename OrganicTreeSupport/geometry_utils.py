import numpy
import trimesh


def world_bounds(minimum, maximum, transform=None):
    """
    Calculate the world-space axis-aligned bounds of a local box.

    Args:
        minimum (array-like): Local minimum corner (x, y, z).
        maximum (array-like): Local maximum corner (x, y, z).
        transform (np.ndarray, optional): 4x4 world transformation of the box.

    Returns:
        tuple: (min_corner, max_corner) as float arrays enclosing the transformed box.
    """
    minimum = numpy.asarray(minimum, dtype=float)
    maximum = numpy.asarray(maximum, dtype=float)
    if transform is None:
        return minimum.copy(), maximum.copy()

    corners = trimesh.bounds.corners(numpy.array([minimum, maximum]))
    transformed = trimesh.transformations.transform_points(corners, numpy.asarray(transform, dtype=float))
    return transformed.min(axis=0), transformed.max(axis=0)


def boxes_intersect(min_a, max_a, min_b, max_b):
    """
    Check two axis-aligned boxes for overlap. Touching boxes count as overlapping.

    Args:
        min_a, max_a (np.ndarray): Corners of the first box.
        min_b, max_b (np.ndarray): Corners of the second box.

    Returns:
        bool: True if the boxes share at least one point.
    """
    return bool(numpy.all(min_a <= max_b) and numpy.all(min_b <= max_a))


def point_in_box(point, minimum, maximum):
    return bool(numpy.all(point >= minimum) and numpy.all(point <= maximum))


def planar_distance(a, b):
    """Distance between two points projected on the XY plane."""
    return float(numpy.hypot(a[0] - b[0], a[1] - b[1]))


def planar_direction(origin, point):
    """
    Unit vector in the XY plane pointing from origin towards point.

    Args:
        origin (np.ndarray): Start of the direction.
        point (np.ndarray): Point the direction should face.

    Returns:
        np.ndarray: (dx, dy) unit vector, +X when the two points share an XY position.
    """
    delta = numpy.array([point[0] - origin[0], point[1] - origin[1]], dtype=float)
    length = numpy.linalg.norm(delta)
    if length < 1e-9:
        return numpy.array([1.0, 0.0])
    return delta / length


def random_perpendicular(direction, rng):
    """
    Draw a random unit vector perpendicular to direction.

    Args:
        direction (np.ndarray): Unit vector the result must be perpendicular to.
        rng (np.random.Generator): Random source.

    Returns:
        np.ndarray: A unit vector, or zeros if direction is degenerate.
    """
    for _ in range(8):
        candidate = rng.uniform(-0.5, 0.5, size=3)
        candidate -= numpy.dot(candidate, direction) * direction
        candidate_norm = numpy.linalg.norm(candidate)
        if candidate_norm > 1e-6:
            return candidate / candidate_norm

    # Fall back to a deterministic perpendicular when the draws keep lining up
    axis = numpy.array([1.0, 0.0, 0.0]) if abs(direction[0]) < 0.9 else numpy.array([0.0, 1.0, 0.0])
    fallback = numpy.cross(direction, axis)
    fallback_norm = numpy.linalg.norm(fallback)
    if fallback_norm < 1e-6:
        return numpy.zeros(3)
    return fallback / fallback_norm
