"""
Renderer module - the heart of the path tracer.

Implements:
- Iterative path tracing bounded by a fixed bounce budget
- Monte Carlo anti-aliasing with jittered samples per pixel
- Row-parallel rendering on a thread or process pool
- Gamma correction and 8-bit RGB output
"""

from __future__ import annotations
import logging
import math
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Optional, Callable
import numpy as np

from .vec3 import Color
from .ray import Ray
from .camera import Camera
from .shapes import Hittable
from .materials import scatter

logger = logging.getLogger(__name__)

# Lower bound of the hit interval; keeps scattered rays from re-hitting their own surface
T_MIN = 0.001

SKY_HORIZON = Color(1.0, 1.0, 1.0)
SKY_ZENITH = Color(0.5, 0.7, 1.0)
BLACK = Color(0.0, 0.0, 0.0)


class RenderConfigError(ValueError):
    """Invalid render configuration."""


class RenderCancelled(Exception):
    """The render was stopped through its cancel event."""


@dataclass
class RenderSettings:
    """Configuration for the renderer.

    When `height` is omitted it is derived from `width / aspect_ratio`.
    `num_workers` of 0 means one worker per CPU.
    """
    width: int = 400
    height: Optional[int] = None
    aspect_ratio: float = 16.0 / 9.0
    samples_per_pixel: int = 100
    max_depth: int = 50
    num_workers: int = 0
    use_processes: bool = False
    rows_per_task: int = 1
    gamma: float = 2.0
    seed: Optional[int] = None

    def __post_init__(self):
        if self.width < 1:
            raise RenderConfigError(f"width must be at least 1, got {self.width}")
        if not self.aspect_ratio > 0:
            raise RenderConfigError(f"aspect_ratio must be positive, got {self.aspect_ratio}")
        if self.height is None:
            self.height = int(self.width / self.aspect_ratio)
        if self.height < 1:
            raise RenderConfigError(f"height must be at least 1, got {self.height}")
        if self.samples_per_pixel < 1:
            raise RenderConfigError(
                f"samples_per_pixel must be at least 1, got {self.samples_per_pixel}"
            )
        if self.max_depth < 1:
            raise RenderConfigError(f"max_depth must be at least 1, got {self.max_depth}")
        if self.rows_per_task < 1:
            raise RenderConfigError(f"rows_per_task must be at least 1, got {self.rows_per_task}")
        if not self.gamma > 0:
            raise RenderConfigError(f"gamma must be positive, got {self.gamma}")
        if self.num_workers < 0:
            raise RenderConfigError(f"num_workers cannot be negative, got {self.num_workers}")
        if self.num_workers == 0:
            self.num_workers = os.cpu_count() or 4


def sky_color(ray: Ray) -> Color:
    """Vertical white-to-blue gradient used when a ray escapes the scene."""
    unit_direction = ray.direction.normalize()
    t = 0.5 * (unit_direction.y + 1.0)
    return SKY_HORIZON * (1.0 - t) + SKY_ZENITH * t


def ray_color(ray: Ray, world: Hittable, depth: int, rng: np.random.Generator) -> Color:
    """Estimate the light arriving along a ray.

    Follows a single scattered path, multiplying attenuations, until the
    path escapes to the sky, is absorbed, or runs out of bounces.

    Args:
        ray: The ray to trace
        world: The scene to trace against
        depth: Maximum number of bounces (0 returns black)
        rng: Random source for material sampling

    Returns:
        The estimated linear color for this ray
    """
    attenuation = Color(1.0, 1.0, 1.0)

    for _ in range(depth):
        hit_record = world.hit(ray, T_MIN, math.inf)
        if hit_record is None:
            return attenuation * sky_color(ray)

        result = scatter(hit_record.material, ray, hit_record, rng)
        if result is None:
            return BLACK

        attenuation = attenuation * result.attenuation
        ray = result.scattered

    return BLACK


def render_rows(
    world: Hittable,
    camera: Camera,
    settings: RenderSettings,
    rows: range,
    seed: np.random.SeedSequence,
    cancel_event: Optional[threading.Event] = None
) -> np.ndarray:
    """Render a block of image rows.

    Row 0 is the top of the image. Each call owns its random generator,
    so blocks can run concurrently without sharing state.

    Returns:
        Linear color block of shape (len(rows), width, 3)
    """
    rng = np.random.default_rng(seed)
    width = settings.width
    height = settings.height
    samples = settings.samples_per_pixel
    max_depth = settings.max_depth

    # Single-pixel dimensions would otherwise divide by zero
    u_scale = 1.0 / max(width - 1, 1)
    v_scale = 1.0 / max(height - 1, 1)

    block = np.zeros((len(rows), width, 3), dtype=np.float64)

    for k, j in enumerate(rows):
        if cancel_event is not None and cancel_event.is_set():
            raise RenderCancelled(f"Render cancelled at row {j}")

        for i in range(width):
            pixel_color = np.zeros(3, dtype=np.float64)

            for _ in range(samples):
                u = (i + rng.random()) * u_scale
                v = (height - 1 - j + rng.random()) * v_scale

                ray = camera.get_ray(u, v, rng)
                pixel_color += ray_color(ray, world, max_depth, rng).to_array()

            block[k, i] = pixel_color / samples

    return block


class Renderer:
    """Path tracing renderer that spreads image rows over a worker pool."""

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

    def render(
        self,
        world: Hittable,
        camera: Camera,
        cancel_event: Optional[threading.Event] = None
    ) -> np.ndarray:
        """Render the scene and return the linear image.

        Args:
            world: The scene to render (any Hittable)
            camera: The camera to render from
            cancel_event: Optional event; setting it stops the render between rows

        Returns:
            HDR image as numpy array of shape (height, width, 3), top row first

        Raises:
            RenderCancelled: If cancel_event was set before the render finished
        """
        settings = self.settings
        height = settings.height
        image = np.zeros((height, settings.width, 3), dtype=np.float64)

        tasks = self._generate_row_tasks(height)
        seeds = np.random.SeedSequence(settings.seed).spawn(len(tasks))
        total = len(tasks)

        logger.info(
            "Rendering %dx%d, %d spp, max depth %d, %d task(s) on %d %s worker(s)",
            settings.width, height, settings.samples_per_pixel, settings.max_depth,
            total, settings.num_workers,
            "process" if settings.use_processes else "thread"
        )
        start_time = time.perf_counter()

        if settings.num_workers == 1:
            for done, (rows, seed) in enumerate(zip(tasks, seeds), start=1):
                image[rows.start:rows.stop] = render_rows(
                    world, camera, settings, rows, seed, cancel_event
                )
                self._report_progress(done, total)
        else:
            self._render_parallel(world, camera, tasks, seeds, image, cancel_event)

        logger.info("Render finished in %.2fs", time.perf_counter() - start_time)
        return image

    def _render_parallel(self, world, camera, tasks, seeds, image, cancel_event) -> None:
        """Run row tasks on a pool and copy each block into its rows of the image."""
        settings = self.settings
        if settings.use_processes:
            executor_cls = ProcessPoolExecutor
            # Events do not cross process boundaries; the main thread checks instead
            worker_event = None
        else:
            executor_cls = ThreadPoolExecutor
            worker_event = cancel_event

        with executor_cls(max_workers=settings.num_workers) as executor:
            futures = {
                executor.submit(render_rows, world, camera, settings, rows, seed, worker_event): rows
                for rows, seed in zip(tasks, seeds)
            }

            for done, future in enumerate(as_completed(futures), start=1):
                if cancel_event is not None and cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                    raise RenderCancelled("Render cancelled")

                rows = futures[future]
                image[rows.start:rows.stop] = future.result()
                logger.debug("Rows %d-%d done", rows.start, rows.stop - 1)
                self._report_progress(done, len(futures))

    def _report_progress(self, done: int, total: int) -> None:
        if self._progress_callback:
            self._progress_callback(done / total)

    def _generate_row_tasks(self, height: int) -> list[range]:
        """Split the image rows into consecutive blocks of `rows_per_task` rows."""
        step = self.settings.rows_per_task
        return [range(y, min(y + step, height)) for y in range(0, height, step)]

    def to_ldr(self, hdr_image: np.ndarray) -> np.ndarray:
        """Convert a linear image to 8-bit with gamma correction.

        Channels are gamma corrected, clamped to [0, 0.999] and scaled by
        256, so 1.0 maps to 255 and 0.0 to 0.

        Args:
            hdr_image: Linear image array (float64)

        Returns:
            LDR image as uint8 array
        """
        linear = np.nan_to_num(hdr_image, nan=0.0, posinf=1.0, neginf=0.0)
        corrected = np.power(np.clip(linear, 0.0, None), 1.0 / self.settings.gamma)
        return (256 * np.clip(corrected, 0.0, 0.999)).astype(np.uint8)

    def to_bytes(self, hdr_image: np.ndarray) -> bytes:
        """Return the image as packed RGB bytes, row-major, top row first."""
        return np.ascontiguousarray(self.to_ldr(hdr_image)).tobytes()

    def save_image(self, image: np.ndarray, filename: str) -> None:
        """Save image to file.

        Args:
            image: Image array (linear float or uint8)
            filename: Output filename (extension determines format)
        """
        from PIL import Image as PILImage

        if image.dtype != np.uint8:
            image = self.to_ldr(image)

        PILImage.fromarray(image).save(filename)
        logger.info("Saved %dx%d image to %s", image.shape[1], image.shape[0], filename)
