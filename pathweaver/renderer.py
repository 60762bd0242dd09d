"""
Renderer module - the heart of the path tracer.

Implements:
- The recursive path-tracing estimator (ray_color)
- Row-parallel rendering over a thread or process pool
- Conversion of the linear radiance buffer to 8-bit images
"""

from __future__ import annotations
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Callable, Sequence, Union
import numpy as np

from .vec3 import Color
from .ray import Ray
from .camera import Camera
from .shapes import Hittable
from .bvh import build_bvh

logger = logging.getLogger(__name__)

# Minimum hit distance for secondary rays, keeps them off their own surface
T_MIN = 0.001

IMAGE_FORMATS = {
    'png': 'PNG',
    'jpg': 'JPEG',
    'jpeg': 'JPEG',
    'gif': 'GIF',
    'bmp': 'BMP',
    'tiff': 'TIFF',
}


def sky_color(ray: Ray) -> Color:
    """Vertical white-to-blue gradient used as the only light source."""
    unit_direction = ray.direction.normalize()
    t = 0.5 * (unit_direction.y + 1.0)
    return Color(1.0, 1.0, 1.0) * (1.0 - t) + Color(0.5, 0.7, 1.0) * t


def ray_color(ray: Ray, world: Hittable, depth: int, rng: np.random.Generator) -> Color:
    """Estimate the radiance carried back along a ray.

    Args:
        ray: The ray to trace
        world: Scene root (usually a BVHNode)
        depth: Remaining bounces; zero or less yields black
        rng: Generator owned by the calling worker

    Returns:
        Linear radiance estimate for this ray
    """
    if depth <= 0:
        return Color(0, 0, 0)

    hit_record = world.hit(ray, T_MIN, float('inf'))
    if hit_record is None:
        return sky_color(ray)

    # Surfaces without a material absorb everything
    if hit_record.material is None:
        return Color(0, 0, 0)

    result = hit_record.material.scatter(ray, hit_record, rng)
    if result.scattered_ray is None:
        return Color(0, 0, 0)
    return result.attenuation * ray_color(result.scattered_ray, world, depth - 1, rng)


@dataclass
class RenderSettings:
    """Configuration for the renderer."""
    width: int = 800
    height: int = 600
    samples_per_pixel: int = 100
    max_depth: int = 50
    num_workers: int = 0  # 0 = auto-detect
    use_processes: bool = False
    seed: Optional[int] = None
    gamma: float = 2.0

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.samples_per_pixel <= 0:
            raise ValueError(f"samples_per_pixel must be positive, got {self.samples_per_pixel}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must not be negative, got {self.max_depth}")
        if self.num_workers < 0:
            raise ValueError(f"num_workers must not be negative, got {self.num_workers}")
        if self.gamma <= 0:
            raise ValueError(f"gamma must be positive, got {self.gamma}")
        if self.num_workers == 0:
            self.num_workers = os.cpu_count() or 4


def render_row(
    world: Hittable,
    camera: Camera,
    settings: RenderSettings,
    row: int,
    seed: np.random.SeedSequence
) -> np.ndarray:
    """Render one image row (row 0 is the top) to a (width, 3) array."""
    rng = np.random.default_rng(seed)
    width = settings.width
    height = settings.height
    samples = settings.samples_per_pixel
    u_scale = max(width - 1, 1)
    v_scale = max(height - 1, 1)

    row_image = np.zeros((width, 3), dtype=np.float64)
    for i in range(width):
        pixel_color = Color(0, 0, 0)

        for _ in range(samples):
            u = (i + rng.random()) / u_scale
            v = (height - 1 - row + rng.random()) / v_scale

            ray = camera.get_ray(u, v, rng)
            pixel_color = pixel_color + ray_color(ray, world, settings.max_depth, rng)

        row_image[i] = pixel_color._data / samples

    return row_image


# Scene installed once per worker process by the pool initializer
_worker_state: Optional[tuple] = None


def _install_worker_scene(world: Hittable, camera: Camera, settings: RenderSettings) -> None:
    global _worker_state
    _worker_state = (world, camera, settings)


def _render_row_in_worker(row: int, seed: np.random.SeedSequence) -> np.ndarray:
    world, camera, settings = _worker_state
    return render_row(world, camera, settings, row, seed)


class Renderer:
    """Path tracing renderer with row-parallel workers."""

    def __init__(self, settings: RenderSettings = None):
        """Create a renderer with the given settings.

        Args:
            settings: Render configuration (uses defaults if None)
        """
        self.settings = settings if settings else RenderSettings()
        self._progress_callback: Optional[Callable[[float], None]] = None

    def set_progress_callback(self, callback: Callable[[float], None]) -> None:
        """Set a callback function for progress updates.

        Args:
            callback: Function that takes progress as float (0.0 to 1.0)
        """
        self._progress_callback = callback

    def render(self, scene: Union[Hittable, Sequence[Hittable]], camera: Camera) -> np.ndarray:
        """Render the scene and return the linear radiance image.

        Args:
            scene: A Hittable (typically a BVHNode) or a list of primitives,
                which is assembled into a BVH over the camera shutter interval
            camera: The camera to render from

        Returns:
            Float64 array of shape (height, width, 3); row 0 is the top of
            the image and values are averaged, pre-gamma radiance
        """
        settings = self.settings
        width = settings.width
        height = settings.height

        if isinstance(scene, Hittable):
            world = scene
        else:
            world = build_bvh(
                scene, camera.time0, camera.time1,
                np.random.default_rng(settings.seed)
            )

        # One independent stream per row, stable regardless of scheduling
        seeds = np.random.SeedSequence(settings.seed).spawn(height)
        image = np.zeros((height, width, 3), dtype=np.float64)

        logger.info(
            "Rendering %dx%d, %d spp, depth %d on %d %s",
            width, height, settings.samples_per_pixel, settings.max_depth,
            settings.num_workers, "processes" if settings.use_processes else "threads"
        )
        start_time = time.perf_counter()

        if settings.num_workers <= 1:
            for row in range(height):
                image[row] = render_row(world, camera, settings, row, seeds[row])
                self._report_progress(row + 1, height)
        else:
            if settings.use_processes:
                executor = ProcessPoolExecutor(
                    max_workers=settings.num_workers,
                    initializer=_install_worker_scene,
                    initargs=(world, camera, settings)
                )
                task, shared = _render_row_in_worker, ()
            else:
                executor = ThreadPoolExecutor(max_workers=settings.num_workers)
                task, shared = render_row, (world, camera, settings)

            with executor:
                futures = {
                    executor.submit(task, *shared, row, seeds[row]): row
                    for row in range(height)
                }

                # Rows land by index, whatever order they finish in
                for done, future in enumerate(as_completed(futures), start=1):
                    image[futures[future]] = future.result()
                    self._report_progress(done, height)

        elapsed = time.perf_counter() - start_time
        total_samples = width * height * settings.samples_per_pixel
        logger.info(
            "Render finished in %.2fs (%.0f samples/s)",
            elapsed, total_samples / elapsed if elapsed > 0 else float('inf')
        )

        return image

    def _report_progress(self, done: int, total: int) -> None:
        if self._progress_callback:
            self._progress_callback(done / total)

    def save_image(self, image: np.ndarray, filename: str, fmt: Optional[str] = None) -> None:
        """Save a linear image using this renderer's gamma."""
        save_image(image, filename, fmt, gamma=self.settings.gamma)


def flatten_image(image: np.ndarray) -> np.ndarray:
    """Flatten a (height, width, 3) image to a row-major (width*height, 3) buffer."""
    height, width = image.shape[:2]
    return image.reshape(height * width, 3)


def to_ldr(hdr_image: np.ndarray, gamma: float = 2.0) -> np.ndarray:
    """Convert a linear image to 8-bit with gamma correction.

    Args:
        hdr_image: Linear radiance array (float)
        gamma: Display gamma

    Returns:
        LDR image as uint8 array
    """
    corrected = np.power(np.clip(hdr_image, 0, None), 1.0 / gamma)
    return (256.0 * np.clip(corrected, 0.0, 0.999)).astype(np.uint8)


def save_image(
    image: np.ndarray,
    filename: str,
    fmt: Optional[str] = None,
    gamma: float = 2.0
) -> None:
    """Encode an image with Pillow.

    Args:
        image: Linear float image or uint8 image of shape (height, width, 3)
        filename: Output path
        fmt: One of png, jpg, jpeg, gif, bmp, tiff (taken from the file
            extension if None)
        gamma: Gamma applied when converting float images

    Raises:
        ValueError: If the format is not supported
    """
    from PIL import Image as PILImage

    name = (fmt or Path(filename).suffix.lstrip('.')).lower()
    if name not in IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format: {name!r}")

    if image.dtype != np.uint8:
        image = to_ldr(image, gamma)

    PILImage.fromarray(image).save(filename, format=IMAGE_FORMATS[name])
    logger.debug("Wrote %s (%s)", filename, IMAGE_FORMATS[name])
