"""Tests for BVH acceleration structure."""

import pytest
import numpy as np

from pathweaver.vec3 import Vec3, Point3, Color
from pathweaver.ray import Ray
from pathweaver.shapes import Sphere, MovingSphere, HittableList, Hittable, GeometryError
from pathweaver.materials import Lambertian
from pathweaver.bvh import BVHNode, build_bvh


INF = float('inf')


class Unbounded(Hittable):
    """A primitive that cannot report a bounding box."""

    def hit(self, ray, t_min, t_max):
        return None

    def bounding_box(self, time0, time1):
        return None


def random_spheres(rng, count, moving=False):
    objects = []
    for _ in range(count):
        center = Point3(*rng.uniform(-10, 10, 3))
        radius = float(rng.uniform(0.2, 1.5))
        if moving and rng.random() < 0.5:
            center1 = center + Vec3(*rng.uniform(-1, 1, 3))
            objects.append(MovingSphere(center, center1, 0.0, 1.0, radius))
        else:
            objects.append(Sphere(center, radius))
    return objects


class TestBVHNodeConstruction:
    """Test BVHNode construction cases."""

    def test_empty_range_is_fatal(self, rng):
        with pytest.raises(GeometryError):
            build_bvh([], rng=rng)

    def test_unbounded_primitive_is_fatal(self, rng):
        with pytest.raises(GeometryError):
            build_bvh([Sphere(Point3(0, 0, 0), 1.0), Unbounded()], rng=rng)

    def test_single_object_on_both_sides(self, rng):
        sphere = Sphere(Point3(0, 0, 0), 1.0)
        node = build_bvh([sphere], rng=rng)

        assert node.left is sphere
        assert node.right is sphere
        assert node.bbox.minimum == Point3(-1, -1, -1)
        assert node.bbox.maximum == Point3(1, 1, 1)

    def test_two_objects_greater_first(self):
        s1 = Sphere(Point3(-2, -2, -2), 1.0)
        s2 = Sphere(Point3(2, 2, 2), 1.0)
        for seed in range(10):
            node = build_bvh([s1, s2], rng=np.random.default_rng(seed))
            # s2 has the larger minimum on every axis
            assert node.left is s2
            assert node.right is s1

    def test_two_objects_are_leaves(self, rng):
        s1 = Sphere(Point3(-2, 0, 0), 1.0)
        s2 = Sphere(Point3(2, 0, 0), 1.0)
        node = build_bvh([s1, s2], rng=rng)
        assert {id(node.left), id(node.right)} == {id(s1), id(s2)}
        assert node.bbox.minimum == Point3(-3, -1, -1)
        assert node.bbox.maximum == Point3(3, 1, 1)

    def test_many_objects_split_recursively(self, rng):
        spheres = [Sphere(Point3(i, 0, 0), 0.5) for i in range(100)]
        node = build_bvh(spheres, rng=rng)

        assert isinstance(node.left, BVHNode)
        assert isinstance(node.right, BVHNode)
        assert node.bbox.minimum.x == -0.5
        assert node.bbox.maximum.x == 99.5
        # Median splits keep the tree balanced
        assert node.depth() <= 7

    def test_three_objects(self, rng):
        spheres = [Sphere(Point3(i * 3, 0, 0), 1.0) for i in range(3)]
        node = build_bvh(spheres, rng=rng)
        leaves = []

        def collect(n):
            for child in (n.left, n.right):
                if isinstance(child, BVHNode):
                    collect(child)
                else:
                    leaves.append(child)

        collect(node)
        assert all(any(leaf is s for leaf in leaves) for s in spheres)

    def test_input_list_not_reordered(self, rng):
        spheres = [Sphere(Point3(10 - i, 5 - i, i), 0.5) for i in range(20)]
        original = list(spheres)
        build_bvh(spheres, rng=rng)
        assert all(a is b for a, b in zip(spheres, original))

    def test_node_box_contains_children(self, rng):
        node = build_bvh(random_spheres(rng, 40), rng=rng)

        def check(n):
            for child in (n.left, n.right):
                box = child.bounding_box(0.0, 0.0)
                for axis in range(3):
                    assert n.bbox.minimum[axis] <= box.minimum[axis]
                    assert n.bbox.maximum[axis] >= box.maximum[axis]
                if isinstance(child, BVHNode):
                    check(child)

        check(node)

    def test_moving_sphere_box_uses_shutter(self, rng):
        sphere = MovingSphere(Point3(0, 0, 0), Point3(0, 4, 0), 0.0, 1.0, 0.5)
        node = build_bvh([sphere], 0.0, 1.0, rng)
        assert node.bbox.maximum.y == 4.5


class TestBVHTraversal:
    """Test BVH hit queries."""

    def test_single_sphere(self, rng):
        bvh = build_bvh([Sphere(Point3(0, 0, -5), 1.0)], rng=rng)
        hit = bvh.hit(Ray(Point3(0, 0, 0), Vec3(0, 0, -1)), 0.001, INF)
        assert abs(hit.t - 4.0) < 1e-9

    def test_finds_closest(self, rng):
        spheres = [
            Sphere(Point3(0, 0, -15), 1.0),
            Sphere(Point3(0, 0, -5), 1.0),
            Sphere(Point3(0, 0, -10), 1.0),
        ]
        bvh = build_bvh(spheres, rng=rng)
        hit = bvh.hit(Ray(Point3(0, 0, 0), Vec3(0, 0, -1)), 0.001, INF)
        assert abs(hit.t - 4.0) < 1e-9

    def test_occluded_sphere_never_reported(self):
        near_mat = Lambertian(Color(1, 0, 0))
        far_mat = Lambertian(Color(0, 0, 1))
        near = Sphere(Point3(0, 0, -3), 1.0, near_mat)
        far = Sphere(Point3(0, 0, -8), 1.0, far_mat)
        ray = Ray(Point3(0, 0, 0), Vec3(0, 0, -1))

        # Every axis choice and both input orders
        for seed in range(10):
            for objects in ([near, far], [far, near]):
                bvh = build_bvh(objects, rng=np.random.default_rng(seed))
                hit = bvh.hit(ray, 0.001, INF)
                assert hit.material is near_mat
                assert abs(hit.t - 2.0) < 1e-9

    def test_miss_pruned_by_box(self, rng):
        spheres = [Sphere(Point3(0, 0, -5), 1.0), Sphere(Point3(5, 0, -5), 1.0)]
        bvh = build_bvh(spheres, rng=rng)
        assert bvh.hit(Ray(Point3(0, 10, 0), Vec3(1, 0, 0)), 0.001, INF) is None

    def test_respects_t_max(self, rng):
        bvh = build_bvh([Sphere(Point3(0, 0, -5), 1.0)], rng=rng)
        assert bvh.hit(Ray(Point3(0, 0, 0), Vec3(0, 0, -1)), 0.001, 3.0) is None

    def test_bounding_box(self, rng):
        bvh = build_bvh([Sphere(Point3(-5, 0, 0), 1.0), Sphere(Point3(5, 0, 0), 1.0)], rng=rng)
        box = bvh.bounding_box(0.0, 0.0)
        assert box.minimum.x == -6
        assert box.maximum.x == 6


class TestBVHEquivalence:
    """BVH traversal must agree with brute-force linear search."""

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_matches_linear_search(self, seed):
        rng = np.random.default_rng(seed)
        spheres = random_spheres(rng, 60)
        bvh = build_bvh(spheres, rng=rng)
        linear = HittableList(spheres)

        for _ in range(150):
            origin = Point3(*rng.uniform(-15, 15, 3))
            direction = Vec3(*rng.normal(size=3))
            ray = Ray(origin, direction)

            bvh_hit = bvh.hit(ray, 0.001, INF)
            linear_hit = linear.hit(ray, 0.001, INF)

            if linear_hit is None:
                assert bvh_hit is None
            else:
                assert bvh_hit is not None
                assert abs(bvh_hit.t - linear_hit.t) < 1e-9
                assert bvh_hit.point == linear_hit.point

    def test_matches_linear_search_with_motion(self):
        rng = np.random.default_rng(99)
        objects = random_spheres(rng, 40, moving=True)
        bvh = build_bvh(objects, 0.0, 1.0, rng)
        linear = HittableList(objects)

        for _ in range(150):
            ray = Ray(
                Point3(*rng.uniform(-15, 15, 3)),
                Vec3(*rng.normal(size=3)),
                float(rng.random())
            )
            bvh_hit = bvh.hit(ray, 0.001, INF)
            linear_hit = linear.hit(ray, 0.001, INF)

            if linear_hit is None:
                assert bvh_hit is None
            else:
                assert abs(bvh_hit.t - linear_hit.t) < 1e-9

    def test_material_preserved(self, rng):
        mat = Lambertian(Color(1, 0, 0))
        bvh = build_bvh([Sphere(Point3(0, 0, -5), 1.0, mat)], rng=rng)
        hit = bvh.hit(Ray(Point3(0, 0, 0), Vec3(0, 0, -1)), 0.001, INF)
        assert hit.material is mat
