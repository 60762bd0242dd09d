"""
Pathweaver - A Monte Carlo path tracer

Renders scenes of spheres with:
- Lambertian, metal and dielectric materials
- Motion blur and defocus blur
- Bounding volume hierarchy acceleration
- Row-parallel rendering over threads or processes
"""

__version__ = "0.1.0"
__author__ = "Pathweaver Team"

from .vec3 import Vec3, Point3, Color
from .ray import Ray
from .shapes import Sphere, MovingSphere, HittableList, AABB, HitRecord, Hittable, GeometryError
from .materials import Material, ScatterResult, Lambertian, Metal, Dielectric
from .bvh import BVHNode, build_bvh
from .camera import Camera
from .renderer import (
    Renderer, RenderSettings, ray_color, sky_color,
    flatten_image, to_ldr, save_image
)
from .scenes import random_spheres_scene, three_spheres_scene, default_camera, parse_aspect_ratio
