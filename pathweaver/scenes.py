"""
Built-in demo scenes.

Scene construction happens once, before rendering; the returned primitive
lists are handed to ``build_bvh`` or straight to ``Renderer.render``.
"""

from __future__ import annotations
from typing import List

import numpy as np

from .vec3 import Vec3, Point3, Color
from .camera import Camera
from .shapes import Hittable, Sphere, MovingSphere
from .materials import Lambertian, Metal, Dielectric


def random_spheres_scene(rng: np.random.Generator) -> List[Hittable]:
    """The classic field of small random spheres around three large ones.

    Diffuse spheres bounce upward during the shutter interval [0, 1].
    """
    world: List[Hittable] = [
        Sphere(Point3(0, -1000, 0), 1000, Lambertian(Color(0.5, 0.5, 0.5)))
    ]

    for a in range(-11, 11):
        for b in range(-11, 11):
            choose_mat = rng.random()
            center = Point3(a + 0.9 * rng.random(), 0.2, b + 0.9 * rng.random())

            if (center - Point3(4, 0.2, 0)).length() <= 0.9:
                continue

            if choose_mat < 0.8:
                albedo = Color.random(rng) * Color.random(rng)
                center1 = center + Vec3(0, rng.uniform(0, 0.5), 0)
                world.append(MovingSphere(center, center1, 0.0, 1.0, 0.2, Lambertian(albedo)))
            elif choose_mat < 0.95:
                albedo = Color.random(rng, 0.5, 1.0)
                fuzz = rng.uniform(0, 0.5)
                world.append(Sphere(center, 0.2, Metal(albedo, fuzz)))
            else:
                world.append(Sphere(center, 0.2, Dielectric(1.5)))

    world.extend(_feature_spheres())
    return world


def three_spheres_scene() -> List[Hittable]:
    """Ground plus one large glass, diffuse and metal sphere."""
    return [
        Sphere(Point3(0, -1000, 0), 1000, Lambertian(Color(0.5, 0.5, 0.5))),
        *_feature_spheres(),
    ]


def _feature_spheres() -> List[Hittable]:
    return [
        Sphere(Point3(0, 1, 0), 1.0, Dielectric(1.5)),
        Sphere(Point3(-4, 1, 0), 1.0, Lambertian(Color(0.4, 0.2, 0.1))),
        Sphere(Point3(4, 1, 0), 1.0, Metal(Color(0.7, 0.6, 0.5), 0.0)),
    ]


def default_camera(aspect_ratio: float) -> Camera:
    """Camera framing the demo scenes, with defocus blur and a [0, 1] shutter."""
    return Camera(
        look_from=Point3(13, 2, 3),
        look_at=Point3(0, 0, 0),
        vup=Vec3(0, 1, 0),
        vfov=20,
        aspect_ratio=aspect_ratio,
        aperture=0.1,
        focus_dist=10.0,
        time0=0.0,
        time1=1.0
    )


def parse_aspect_ratio(value: str) -> float:
    """Parse an aspect ratio written as ``W:H`` (e.g. ``3:2``)."""
    parts = value.split(':')
    if len(parts) != 2:
        raise ValueError(f"Aspect ratio must look like W:H, got {value!r}")

    try:
        numerator, denominator = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValueError(f"Aspect ratio must look like W:H, got {value!r}") from None

    if numerator <= 0 or denominator <= 0:
        raise ValueError(f"Aspect ratio terms must be positive, got {value!r}")
    return numerator / denominator


SCENES = {
    'random': random_spheres_scene,
    'three': lambda rng: three_spheres_scene(),
}
