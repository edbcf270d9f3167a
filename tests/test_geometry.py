"""
Unit tests for OrganicTreeSupport geometry handling.

Tests for target bounds, collision avoidance and primitive emission.
"""

import math
import unittest

import numpy as np
import trimesh

from OrganicTreeSupport import (
    GenerationContext,
    GeometryEmitter,
    LayerPropagationEngine,
    LayerTable,
    ModelVolumes,
    SolidTarget,
    TreeSupportConfig,
)
from OrganicTreeSupport.GeometryEmitter import create_connector
from OrganicTreeSupport.geometry_utils import (
    boxes_intersect,
    planar_direction,
    random_perpendicular,
    world_bounds,
)


# ============================================================================
# Bounds helpers
# ============================================================================

class TestWorldBounds(unittest.TestCase):
    """Tests for transforming local boxes to world space."""

    def test_identity(self):
        minimum, maximum = world_bounds((0, 0, 0), (1, 2, 3))
        np.testing.assert_allclose(minimum, [0, 0, 0])
        np.testing.assert_allclose(maximum, [1, 2, 3])

    def test_translation(self):
        transform = trimesh.transformations.translation_matrix([5.0, 0.0, 0.0])
        minimum, maximum = world_bounds((0, 0, 0), (1, 2, 1), transform)
        np.testing.assert_allclose(minimum, [5, 0, 0])
        np.testing.assert_allclose(maximum, [6, 2, 1])

    def test_rotation_about_z(self):
        """A quarter turn swaps the footprint axes."""
        transform = trimesh.transformations.rotation_matrix(math.pi / 2, [0, 0, 1])
        minimum, maximum = world_bounds((0, 0, 0), (2, 1, 1), transform)
        np.testing.assert_allclose(minimum, [-1, 0, 0], atol=1e-9)
        np.testing.assert_allclose(maximum, [0, 2, 1], atol=1e-9)

    def test_touching_boxes_intersect(self):
        self.assertTrue(boxes_intersect(np.zeros(3), np.ones(3), np.ones(3), np.full(3, 2.0)))
        self.assertFalse(boxes_intersect(np.zeros(3), np.ones(3), np.full(3, 1.01), np.full(3, 2.0)))

    def test_planar_direction(self):
        np.testing.assert_allclose(planar_direction((0, 0, 5), (3, 4, 0)), [0.6, 0.8])
        np.testing.assert_allclose(planar_direction((1, 1, 0), (1, 1, 9)), [1.0, 0.0])


class TestSolidTarget(unittest.TestCase):
    """Tests for the bounding proxy of a solid."""

    def test_from_mesh(self):
        mesh = trimesh.creation.box(extents=[2.0, 4.0, 6.0])

        target = SolidTarget.fromMesh(mesh, name="box")

        np.testing.assert_allclose(target.min, [-1, -2, -3])
        np.testing.assert_allclose(target.max, [1, 2, 3])
        np.testing.assert_allclose(target.center, [0, 0, 0])
        self.assertAlmostEqual(target.radius, 2.0)
        self.assertAlmostEqual(target.bounding_radius, math.hypot(1.0, 2.0))
        self.assertEqual(target.name, "box")

    def test_from_transformed_mesh(self):
        mesh = trimesh.creation.box(extents=[2.0, 4.0, 6.0])
        transform = trimesh.transformations.translation_matrix([1.0, 1.0, 3.0])

        target = SolidTarget.fromMesh(mesh, transform=transform)

        np.testing.assert_allclose(target.min, [0, -1, 0])
        np.testing.assert_allclose(target.max, [2, 3, 6])

    def test_empty_mesh(self):
        with self.assertRaises(ValueError):
            SolidTarget.fromMesh(trimesh.Trimesh())

    def test_invalid_bounds(self):
        with self.assertRaises(ValueError):
            SolidTarget((1, 0, 0), (0, 1, 1))
        with self.assertRaises(ValueError):
            SolidTarget((0, 0, 0), (1, float("nan"), 1))


# ============================================================================
# Collision avoidance
# ============================================================================

class TestModelVolumes(unittest.TestCase):
    """Tests for collision queries and push-out."""

    def setUp(self):
        self.config = TreeSupportConfig()
        self.box = SolidTarget((-1.0, -1.0, 0.0), (1.0, 1.0, 2.0), name="box")
        self.volumes = ModelVolumes([self.box], self.config)

    def test_touching_counts_as_collision(self):
        self.assertTrue(self.volumes.isColliding((1.5, 0.0, 1.0), 0.5))
        self.assertFalse(self.volumes.isColliding((1.6, 0.0, 1.0), 0.5))

    def test_excluded_solid_is_ignored(self):
        self.assertTrue(self.volumes.isColliding((0.0, 0.0, 1.0), 0.5))
        self.assertFalse(self.volumes.isColliding((0.0, 0.0, 1.0), 0.5, exclude=[self.box]))
        self.assertEqual(self.volumes.collidingTargets((0.0, 0.0, 1.0), 0.5), [self.box])

    def test_free_position_is_unchanged(self):
        position = np.array([5.0, 5.0, 1.0])

        result = self.volumes.getAvoidanceArea(position, 0.5)

        np.testing.assert_allclose(result, position)
        self.assertIsNot(result, position)

    def test_push_out_clears_footprint(self):
        radius = 0.5
        result = self.volumes.getAvoidanceArea((0.5, 0.0, 1.0), radius)

        expected = self.box.bounding_radius + radius + self.config.support_xy_distance
        self.assertAlmostEqual(result[0], expected)
        self.assertAlmostEqual(result[1], 0.0)
        self.assertEqual(result[2], 1.0)
        self.assertFalse(self.volumes.isColliding(result, radius))

    def test_push_out_from_centroid(self):
        """A position on the centroid has no direction of its own and is pushed along +X."""
        result = self.volumes.getAvoidanceArea((0.0, 0.0, 1.0), 0.5)
        self.assertGreater(result[0], 0.0)
        self.assertAlmostEqual(result[1], 0.0)

    def test_push_out_steps_past_neighbour(self):
        neighbour = SolidTarget((2.5, -0.5, 0.0), (3.0, 0.5, 2.0), name="neighbour")
        volumes = ModelVolumes([self.box, neighbour], self.config)
        radius = 0.5

        result = volumes.getAvoidanceArea((0.5, 0.0, 1.0), radius)

        first_push = self.box.bounding_radius + radius + self.config.support_xy_distance
        self.assertAlmostEqual(result[0], first_push + 2 * self.config.tree_support_collision_resolution)
        self.assertFalse(volumes.isColliding(result, radius))

    def test_no_targets(self):
        volumes = ModelVolumes([], self.config)
        self.assertFalse(volumes.isColliding((0.0, 0.0, 0.0), 10.0))
        self.assertEqual(volumes.targets, [])


# ============================================================================
# Primitive emission
# ============================================================================

class TestGeometryEmitter(unittest.TestCase):
    """Tests for turning the element graph into trunks and connectors."""

    def setUp(self):
        self.config = TreeSupportConfig()
        self.context = GenerationContext(self.config)
        for x in (0.0, 1.0):
            tip = self.context.createElement((x, 0.0, 1.0), 5, 0)
            self.context.layers.add(5, tip.id)
        LayerPropagationEngine(self.context, ModelVolumes([], self.config)).createLayerPathing()
        self.primitives = GeometryEmitter(self.context).generateSupportGeometry()

    def test_counts_after_merge(self):
        """Two tips, one merged element and four layers down to the plate."""
        trunks = [p for p in self.primitives if p.kind == "trunk"]
        connectors = [p for p in self.primitives if p.kind == "connector"]
        self.assertEqual(len(trunks), 7)
        self.assertEqual(len(connectors), 6)

    def test_plate_first(self):
        first = self.primitives[0]
        self.assertEqual(first.kind, "trunk")
        self.assertEqual(first.layer, 0)
        layers = [p.layer for p in self.primitives if p.kind == "trunk"]
        self.assertEqual(layers, sorted(layers))

    def test_merged_element_connects_to_both_tips(self):
        merged_end = np.array([0.5, 0.0, 0.8])
        to_tips = [p for p in self.primitives
                   if p.kind == "connector" and np.allclose(p.start, merged_end)]
        self.assertEqual(len(to_tips), 2)
        ends = sorted(float(p.end[0]) for p in to_tips)
        self.assertEqual(ends, [0.0, 1.0])
        for connector in to_tips:
            self.assertAlmostEqual(connector.end_radius, self.config.tip_radius)
            self.assertGreater(connector.start_radius, connector.end_radius)

    def test_trunk_dimensions(self):
        for trunk in (p for p in self.primitives if p.kind == "trunk"):
            self.assertAlmostEqual(trunk.height, self.config.layer_height)
            self.assertEqual(trunk.top_radius, trunk.bottom_radius)
            self.assertGreaterEqual(trunk.radius, self.config.tip_radius)

    def test_to_dict(self):
        data = self.primitives[0].to_dict()
        self.assertEqual(data["type"], "trunk")
        self.assertEqual(len(data["position"]), 3)
        self.assertIsInstance(data["position"][0], float)

        connector = next(p for p in self.primitives if p.kind == "connector")
        data = connector.to_dict()
        self.assertEqual(data["type"], "connector")
        self.assertAlmostEqual(data["length"], float(np.linalg.norm(connector.end - connector.start)))

    def test_short_connector_is_skipped(self):
        self.assertIsNone(create_connector((0, 0, 0), (0, 0, 0.005), 1.0, 1.0, 0.01))
        connector = create_connector((0, 0, 0), (0, 0, 2.0), 1.0, 0.5, 0.01, branch_index=3, segment_index=2)
        self.assertAlmostEqual(connector.length, 2.0)
        self.assertEqual(connector.branch_index, 3)
        self.assertEqual(connector.segment_index, 2)


# ============================================================================
# Support structures
# ============================================================================

class TestLayerTable(unittest.TestCase):
    """Tests for the per-layer element buckets."""

    def test_empty(self):
        table = LayerTable()
        self.assertEqual(table.topLayer(), -1)
        self.assertEqual(table.bucket(3), [])
        self.assertEqual(table.bucket(-1), [])
        self.assertEqual(len(table), 0)

    def test_add_and_replace(self):
        table = LayerTable()
        table.add(3, 7)
        table.add(3, 8)
        table.add(1, 2)

        self.assertEqual(len(table), 4)
        self.assertEqual(table.topLayer(), 3)
        self.assertEqual(table.elementCount(), 3)

        table.replace(3, [9])
        self.assertEqual(table.bucket(3), [9])
        table.replace(3, [])
        self.assertEqual(table.topLayer(), 1)


class TestRandomPerpendicular(unittest.TestCase):
    """Tests for the organic jitter direction."""

    def test_unit_and_perpendicular(self):
        rng = np.random.default_rng(0)
        direction = np.array([1.0, 2.0, 3.0]) / math.sqrt(14.0)
        for _ in range(20):
            vector = random_perpendicular(direction, rng)
            self.assertAlmostEqual(float(np.linalg.norm(vector)), 1.0)
            self.assertAlmostEqual(float(np.dot(vector, direction)), 0.0)

    def test_seeded(self):
        direction = np.array([0.0, 0.0, 1.0])
        a = random_perpendicular(direction, np.random.default_rng(5))
        b = random_perpendicular(direction, np.random.default_rng(5))
        np.testing.assert_array_equal(a, b)


if __name__ == '__main__':
    unittest.main()
