"""
Surface materials.

Implements:
- Lambertian diffuse
- Metal (specular reflection with fuzz)
- Dielectric (glass, water - with refraction)

A material turns an incoming ray and a hit record into a ScatterResult: the
attenuation color and, unless the ray was absorbed, the scattered ray.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING
import math

import numpy as np

from .vec3 import Vec3, Color
from .ray import Ray

if TYPE_CHECKING:
    from .shapes import HitRecord


@dataclass
class ScatterResult:
    """Result of a material scatter operation.

    ``scattered_ray`` is None when the ray is absorbed.
    """
    scattered_ray: Optional[Ray]
    attenuation: Color

    @property
    def absorbed(self) -> bool:
        return self.scattered_ray is None


class Material(ABC):
    """Abstract base class for materials."""

    @abstractmethod
    def scatter(self, ray_in: Ray, hit: HitRecord, rng: np.random.Generator) -> ScatterResult:
        """Compute the scattered ray and attenuation.

        Args:
            ray_in: The incoming ray
            hit: Intersection record; its normal faces against ray_in
            rng: Random generator owned by the calling worker

        Returns:
            ScatterResult with scattered_ray None if the ray is absorbed
        """
        pass


class Lambertian(Material):
    """Diffuse material with Lambertian (ideal matte) scattering."""

    def __init__(self, albedo: Color):
        """Create a Lambertian material.

        Args:
            albedo: The base color (RGB, each component 0-1)
        """
        self.albedo = albedo

    def scatter(self, ray_in: Ray, hit: HitRecord, rng: np.random.Generator) -> ScatterResult:
        scatter_direction = hit.normal + Vec3.random_unit_vector(rng)

        # Catch degenerate scatter direction
        if scatter_direction.near_zero():
            scatter_direction = hit.normal

        return ScatterResult(Ray(hit.point, scatter_direction, ray_in.time), self.albedo)

    def __repr__(self) -> str:
        return f"Lambertian(albedo={self.albedo})"


class Metal(Material):
    """Metallic material with specular reflection."""

    def __init__(self, albedo: Color, fuzz: float = 0.0):
        """Create a metal material.

        Args:
            albedo: The reflection color
            fuzz: Radius of the reflection perturbation (0 = mirror, capped at 1)
        """
        self.albedo = albedo
        self.fuzz = min(fuzz, 1.0)

    def scatter(self, ray_in: Ray, hit: HitRecord, rng: np.random.Generator) -> ScatterResult:
        reflected = ray_in.direction.normalize().reflect(hit.normal)
        direction = reflected + Vec3.random_in_unit_sphere(rng) * self.fuzz

        # Reflections into the surface are absorbed
        if direction.dot(hit.normal) > 0:
            return ScatterResult(Ray(hit.point, direction, ray_in.time), self.albedo)
        return ScatterResult(None, self.albedo)

    def __repr__(self) -> str:
        return f"Metal(albedo={self.albedo}, fuzz={self.fuzz})"


def reflectance(cosine: float, ref_idx: float) -> float:
    """Schlick's approximation for reflectance."""
    r0 = (1 - ref_idx) / (1 + ref_idx)
    r0 = r0 * r0
    return r0 + (1 - r0) * pow(1 - cosine, 5)


class Dielectric(Material):
    """Dielectric (glass-like) material with refraction.

    The medium does not absorb light, so attenuation is always white.
    """

    def __init__(self, ior: float = 1.5):
        """Create a dielectric material.

        Args:
            ior: Index of refraction (1.0 = air, 1.5 = glass, 2.4 = diamond)
        """
        self.ior = ior

    def scatter(self, ray_in: Ray, hit: HitRecord, rng: np.random.Generator) -> ScatterResult:
        refraction_ratio = 1.0 / self.ior if hit.front_face else self.ior

        unit_direction = ray_in.direction.normalize()
        cos_theta = min(-unit_direction.dot(hit.normal), 1.0)
        sin_theta = math.sqrt(1.0 - cos_theta * cos_theta)

        cannot_refract = refraction_ratio * sin_theta > 1.0

        if cannot_refract or reflectance(cos_theta, refraction_ratio) > rng.random():
            direction = unit_direction.reflect(hit.normal)
        else:
            direction = unit_direction.refract(hit.normal, refraction_ratio)

        return ScatterResult(Ray(hit.point, direction, ray_in.time), Color(1.0, 1.0, 1.0))

    def __repr__(self) -> str:
        return f"Dielectric(ior={self.ior})"
