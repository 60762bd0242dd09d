"""
Bounding Volume Hierarchy (BVH) for accelerating ray-object intersection.

The BVH is a binary tree where every node stores the AABB of its two
children. Leaves are the scene primitives themselves; a node over a single
primitive holds that primitive on both sides.

Construction is top-down: each node picks a random axis, orders its
primitives by the minimum corner of their boxes along that axis and splits
the range at the midpoint.
"""

from __future__ import annotations
import logging
from typing import Optional, List, Sequence

import numpy as np

from .ray import Ray
from .shapes import Hittable, HitRecord, AABB, GeometryError

logger = logging.getLogger(__name__)


def _box_of(obj: Hittable, time0: float, time1: float) -> AABB:
    bbox = obj.bounding_box(time0, time1)
    if bbox is None:
        raise GeometryError(f"No bounding box for {obj!r} in BVHNode construction")
    return bbox


class BVHNode(Hittable):
    """A node in the Bounding Volume Hierarchy tree."""

    def __init__(
        self,
        objects: List[Hittable],
        start: int,
        end: int,
        time0: float,
        time1: float,
        rng: np.random.Generator
    ):
        """Build a BVH over objects[start:end].

        The sub-range of ``objects`` is reordered in place.

        Args:
            objects: List of hittable objects
            start: Start index in the objects list
            end: End index (exclusive) in the objects list
            time0: Shutter open time used for bounding boxes
            time1: Shutter close time used for bounding boxes
            rng: Generator used to pick the split axis

        Raises:
            GeometryError: If the range is empty or an object has no bounding box
        """
        object_span = end - start
        if object_span <= 0:
            raise GeometryError("BVHNode construction got an empty list of objects")

        axis = int(rng.integers(0, 3))

        def axis_min(obj: Hittable) -> float:
            return _box_of(obj, time0, time1).minimum[axis]

        if object_span == 1:
            self.left = self.right = objects[start]

        elif object_span == 2:
            first, second = objects[start], objects[start + 1]
            if axis_min(first) >= axis_min(second):
                self.left, self.right = first, second
            else:
                self.left, self.right = second, first

        else:
            objects[start:end] = sorted(objects[start:end], key=axis_min)

            mid = start + object_span // 2
            self.left = BVHNode(objects, start, mid, time0, time1, rng)
            self.right = BVHNode(objects, mid, end, time0, time1, rng)

        self.bbox = AABB.surrounding_box(
            _box_of(self.left, time0, time1),
            _box_of(self.right, time0, time1)
        )

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Return the nearest hit in [t_min, t_max] within this subtree."""
        if not self.bbox.hit(ray, t_min, t_max):
            return None

        hit_left = self.left.hit(ray, t_min, t_max)

        # A right hit must be closer than the left one to replace it
        if hit_left is not None:
            hit_right = self.right.hit(ray, t_min, hit_left.t)
        else:
            hit_right = self.right.hit(ray, t_min, t_max)

        if hit_right is not None:
            return hit_right
        return hit_left

    def bounding_box(self, time0: float = 0.0, time1: float = 0.0) -> Optional[AABB]:
        """Return the precomputed bounding box for this node."""
        return self.bbox

    def depth(self) -> int:
        """Number of BVHNode levels from this node down to the deepest leaf."""
        child_depths = [
            child.depth() for child in (self.left, self.right)
            if isinstance(child, BVHNode)
        ]
        return 1 + max(child_depths, default=0)

    def __repr__(self) -> str:
        return f"BVHNode(bbox={self.bbox})"


def build_bvh(
    objects: Sequence[Hittable],
    time0: float = 0.0,
    time1: float = 0.0,
    rng: Optional[np.random.Generator] = None
) -> BVHNode:
    """Build a BVH over a list of primitives.

    The input sequence is copied, never reordered.

    Args:
        objects: Primitives to accelerate (must be non-empty)
        time0: Shutter open time
        time1: Shutter close time
        rng: Generator for split-axis selection (a fresh one if None)

    Returns:
        Root BVHNode of the tree

    Raises:
        GeometryError: If objects is empty or any object is unbounded
    """
    if rng is None:
        rng = np.random.default_rng()

    items = list(objects)
    root = BVHNode(items, 0, len(items), time0, time1, rng)
    logger.debug("Built BVH over %d primitives (depth %d)", len(items), root.depth())
    return root
