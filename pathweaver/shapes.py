"""
Geometric primitives for the path tracer.

Every primitive implements the Hittable interface:
- ``hit(ray, t_min, t_max)`` returns the nearest HitRecord in range or None
- ``bounding_box(time0, time1)`` returns an AABB covering the shutter interval
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, TYPE_CHECKING
import math

import numpy as np

from .vec3 import Vec3, Point3
from .ray import Ray

if TYPE_CHECKING:
    from .materials import Material


class GeometryError(Exception):
    """Malformed geometry that prevents building the acceleration structure."""
    pass


@dataclass
class HitRecord:
    """Stores information about a ray-object intersection.

    Attributes:
        point: The intersection point in world space
        normal: Unit surface normal, always facing against the incoming ray
        t: The ray parameter at intersection
        front_face: True if ray hit from outside the object
        material: The material of the primitive that was hit
    """
    point: Point3
    normal: Vec3
    t: float
    front_face: bool
    material: Optional[Material] = None

    def set_face_normal(self, ray: Ray, outward_normal: Vec3) -> None:
        """Set the normal to always point against the ray direction.

        Args:
            ray: The incoming ray
            outward_normal: The geometric unit normal pointing out of the surface
        """
        self.front_face = ray.direction.dot(outward_normal) < 0
        self.normal = outward_normal if self.front_face else -outward_normal


class Hittable(ABC):
    """Abstract base class for all objects that can be hit by rays."""

    @abstractmethod
    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Test if ray intersects this object.

        Args:
            ray: The ray to test
            t_min: Minimum t value to consider (avoid self-intersection)
            t_max: Maximum t value to consider

        Returns:
            HitRecord for the nearest intersection in range, None otherwise
        """
        pass

    @abstractmethod
    def bounding_box(self, time0: float, time1: float) -> Optional[AABB]:
        """Get the axis-aligned bounding box for this object.

        Args:
            time0: Start of the shutter interval
            time1: End of the shutter interval

        Returns:
            AABB if the object is bounded, None otherwise
        """
        pass


class AABB:
    """Axis-Aligned Bounding Box for acceleration structures."""

    __slots__ = ('minimum', 'maximum')

    def __init__(self, minimum: Point3, maximum: Point3):
        """Create an AABB from corner points.

        Args:
            minimum: Corner with smallest x, y, z values
            maximum: Corner with largest x, y, z values
        """
        self.minimum = minimum
        self.maximum = maximum

    def hit(self, ray: Ray, t_min: float, t_max: float) -> bool:
        """Test if ray intersects this AABB using the slab method.

        Zero direction components divide to +/-inf under IEEE rules, so a ray
        parallel to a slab passes that axis exactly when its origin lies
        between the slab planes. NaN bounds (origin on a plane) leave the
        interval unchanged.
        """
        with np.errstate(divide='ignore', invalid='ignore'):
            inv_d = 1.0 / ray.direction._data
            t0s = (self.minimum._data - ray.origin._data) * inv_d
            t1s = (self.maximum._data - ray.origin._data) * inv_d

        for axis in range(3):
            t0 = t0s[axis]
            t1 = t1s[axis]
            if inv_d[axis] < 0:
                t0, t1 = t1, t0

            t_min = t0 if t0 > t_min else t_min
            t_max = t1 if t1 < t_max else t_max

            if t_max <= t_min:
                return False

        return True

    @staticmethod
    def surrounding_box(box0: AABB, box1: AABB) -> AABB:
        """Return the AABB that contains both input boxes."""
        return AABB(
            Vec3.minimum(box0.minimum, box1.minimum),
            Vec3.maximum(box0.maximum, box1.maximum)
        )

    def __repr__(self) -> str:
        return f"AABB(min={self.minimum}, max={self.maximum})"


def _hit_sphere(
    ray: Ray,
    center: Point3,
    radius: float,
    material: Optional[Material],
    t_min: float,
    t_max: float
) -> Optional[HitRecord]:
    """Shared ray/sphere test for static and moving spheres.

    The equation (P-C)·(P-C) = r² where P = ray.at(t)
    expands to: t²(d·d) + 2t(d·(O-C)) + (O-C)·(O-C) - r² = 0.
    """
    oc = ray.origin - center
    a = ray.direction.length_squared()
    if a == 0:
        return None
    half_b = oc.dot(ray.direction)
    c = oc.length_squared() - radius * radius

    discriminant = half_b * half_b - a * c
    if discriminant < 0:
        return None

    sqrtd = math.sqrt(discriminant)

    # Nearest root first, then the far one
    root = (-half_b - sqrtd) / a
    if root < t_min or root > t_max:
        root = (-half_b + sqrtd) / a
        if root < t_min or root > t_max:
            return None

    point = ray.at(root)
    outward_normal = (point - center) / radius

    hit_record = HitRecord(
        point=point,
        normal=outward_normal,
        t=root,
        front_face=True,
        material=material
    )
    hit_record.set_face_normal(ray, outward_normal)

    return hit_record


class Sphere(Hittable):
    """A sphere defined by center and radius."""

    def __init__(self, center: Point3, radius: float, material: Optional[Material] = None):
        """Create a sphere.

        Args:
            center: Center point of the sphere
            radius: Radius of the sphere (must be positive)
            material: Material for shading
        """
        if radius <= 0:
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        self.center = center
        self.radius = radius
        self.material = material

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        return _hit_sphere(ray, self.center, self.radius, self.material, t_min, t_max)

    def bounding_box(self, time0: float = 0.0, time1: float = 0.0) -> Optional[AABB]:
        """Return the AABB containing this sphere."""
        r_vec = Vec3(self.radius, self.radius, self.radius)
        return AABB(self.center - r_vec, self.center + r_vec)

    def __repr__(self) -> str:
        return f"Sphere(center={self.center}, radius={self.radius})"


class MovingSphere(Hittable):
    """A sphere that moves linearly between two positions over time.

    Used for motion blur effects. The center is extrapolated, not clamped,
    for times outside [time0, time1].
    """

    def __init__(
        self,
        center0: Point3,
        center1: Point3,
        time0: float,
        time1: float,
        radius: float,
        material: Optional[Material] = None
    ):
        """Create a moving sphere.

        Args:
            center0: Center position at time0
            center1: Center position at time1
            time0: Start time
            time1: End time (strictly after time0)
            radius: Radius of the sphere (must be positive)
            material: Material for shading
        """
        if radius <= 0:
            raise ValueError(f"MovingSphere radius must be positive, got {radius}")
        if not time0 < time1:
            raise ValueError(f"MovingSphere requires time0 < time1, got {time0} >= {time1}")
        self.center0 = center0
        self.center1 = center1
        self.time0 = time0
        self.time1 = time1
        self.radius = radius
        self.material = material

    def center(self, time: float) -> Point3:
        """Get the center position at a given time."""
        t = (time - self.time0) / (self.time1 - self.time0)
        return self.center0 + (self.center1 - self.center0) * t

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Test ray-sphere intersection at the ray's time."""
        return _hit_sphere(ray, self.center(ray.time), self.radius, self.material, t_min, t_max)

    def bounding_box(self, time0: float, time1: float) -> Optional[AABB]:
        """Return the union of the sphere's boxes at time0 and time1."""
        r_vec = Vec3(self.radius, self.radius, self.radius)
        c0 = self.center(time0)
        c1 = self.center(time1)
        box0 = AABB(c0 - r_vec, c0 + r_vec)
        box1 = AABB(c1 - r_vec, c1 + r_vec)
        return AABB.surrounding_box(box0, box1)

    def __repr__(self) -> str:
        return (
            f"MovingSphere(center0={self.center0}, center1={self.center1}, "
            f"radius={self.radius})"
        )


class HittableList(Hittable):
    """A flat collection of hittable objects tested linearly."""

    def __init__(self, objects: Optional[Sequence[Hittable]] = None):
        self.objects: list[Hittable] = list(objects) if objects is not None else []

    def add(self, obj: Hittable) -> None:
        """Add an object to the list."""
        self.objects.append(obj)

    def hit(self, ray: Ray, t_min: float, t_max: float) -> Optional[HitRecord]:
        """Find the closest intersection among all objects."""
        closest_hit: Optional[HitRecord] = None
        closest_t = t_max

        for obj in self.objects:
            hit_record = obj.hit(ray, t_min, closest_t)
            if hit_record is not None:
                closest_hit = hit_record
                closest_t = hit_record.t

        return closest_hit

    def bounding_box(self, time0: float, time1: float) -> Optional[AABB]:
        """Return the AABB containing all objects, or None if any is unbounded."""
        if not self.objects:
            return None

        result: Optional[AABB] = None
        for obj in self.objects:
            box = obj.bounding_box(time0, time1)
            if box is None:
                return None
            result = box if result is None else AABB.surrounding_box(result, box)

        return result

    def __len__(self) -> int:
        return len(self.objects)

    def __iter__(self):
        return iter(self.objects)
