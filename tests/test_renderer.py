"""Tests for Renderer class."""

import pytest
import math
import os
import threading
import numpy as np

from lumenpath.vec3 import Vec3, Point3, Color
from lumenpath.ray import Ray
from lumenpath.camera import Camera
from lumenpath.shapes import Sphere, HittableList
from lumenpath.materials import Lambertian, Metal, Dielectric
from lumenpath.scenes import ground_scene
from lumenpath.renderer import (
    Renderer, RenderSettings, RenderConfigError, RenderCancelled,
    ray_color, sky_color, render_rows
)


def forward_camera(aspect_ratio=1.0):
    return Camera(
        look_from=Point3(0, 0, 0),
        look_at=Point3(0, 0, -1),
        vup=Vec3(0, 1, 0),
        vfov=90,
        aspect_ratio=aspect_ratio
    )


def expected_sky(direction: Vec3) -> Color:
    t = 0.5 * (direction.normalize().y + 1.0)
    return Color(1.0 - 0.5 * t, 1.0 - 0.3 * t, 1.0)


@pytest.fixture
def rng():
    return np.random.default_rng(2024)


class TestRenderSettings:
    """Test RenderSettings configuration."""

    def test_default_values(self):
        settings = RenderSettings()
        assert settings.width == 400
        assert settings.height == 225
        assert settings.samples_per_pixel == 100
        assert settings.max_depth == 50
        assert settings.gamma == 2.0

    def test_height_derived_from_aspect_ratio(self):
        assert RenderSettings(width=1200).height == 675
        assert RenderSettings(width=300, aspect_ratio=1.5).height == 200

    def test_explicit_height(self):
        settings = RenderSettings(width=64, height=48)
        assert settings.height == 48

    def test_auto_worker_detection(self):
        settings = RenderSettings(num_workers=0)
        assert settings.num_workers == (os.cpu_count() or 4)

    @pytest.mark.parametrize("kwargs", [
        dict(width=0),
        dict(width=-4),
        dict(height=0),
        dict(width=1, aspect_ratio=2.0),
        dict(aspect_ratio=0.0),
        dict(samples_per_pixel=0),
        dict(max_depth=0),
        dict(rows_per_task=0),
        dict(gamma=0.0),
        dict(num_workers=-1),
    ])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(RenderConfigError):
            RenderSettings(**kwargs)

    def test_config_error_is_value_error(self):
        assert issubclass(RenderConfigError, ValueError)


class TestRayColor:
    """Test the light transport loop."""

    def test_sky_gradient_empty_scene(self, rng):
        world = HittableList()
        for direction in (Vec3(0, 1, 0), Vec3(0, -1, 0), Vec3(1, 0.3, -2), Vec3(0, 0, -1)):
            color = ray_color(Ray(Point3(0, 0, 0), direction), world, 10, rng)
            assert color == expected_sky(direction)

    def test_sky_extremes(self):
        assert sky_color(Ray(Point3(0, 0, 0), Vec3(0, 5, 0))) == Color(0.5, 0.7, 1.0)
        assert sky_color(Ray(Point3(0, 0, 0), Vec3(0, -5, 0))) == Color(1.0, 1.0, 1.0)

    def test_zero_budget_is_black(self, rng):
        ray = Ray(Point3(0, 0, 0), Vec3(0, 0, -1))
        for world in (HittableList(), ground_scene()):
            color = ray_color(ray, world, 0, rng)
            assert (color.x, color.y, color.z) == (0.0, 0.0, 0.0)

    def test_negative_budget_is_black(self, rng):
        color = ray_color(Ray(Point3(0, 0, 0), Vec3(0, 1, 0)), HittableList(), -3, rng)
        assert color == Color(0, 0, 0)

    def test_single_bounce_budget_exhausted_on_hit(self, rng):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0, Lambertian(Color(1, 1, 1)))])
        color = ray_color(Ray(Point3(0, 0, 0), Vec3(0, 0, -1)), world, 1, rng)
        assert color == Color(0, 0, 0)

    def test_mirror_reflects_sky_with_albedo(self, rng):
        # Looking straight down at a perfect mirror returns the zenith color tinted by albedo
        albedo = Color(0.5, 0.6, 0.7)
        world = HittableList([Sphere(Point3(0, -1001, 0), 1000.0, Metal(albedo, 0.0))])
        color = ray_color(Ray(Point3(0, 0, 0), Vec3(0, -1, 0)), world, 5, rng)
        assert color == albedo * Color(0.5, 0.7, 1.0)

    def test_budget_exhausted_inside_mirror(self, rng):
        # Camera inside a mirror sphere: the ray bounces until the budget runs out
        world = HittableList([Sphere(Point3(0, 0, 0), 5.0, Metal(Color(1, 1, 1), 0.0))])
        color = ray_color(Ray(Point3(0, 0, 0), Vec3(0, 0, -1)), world, 8, rng)
        assert color == Color(0, 0, 0)

    def test_clear_glass_is_transparent_head_on(self, rng):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0, Dielectric(1.0))])
        direction = Vec3(0, 0, -1)
        color = ray_color(Ray(Point3(0, 0, 0), direction), world, 10, rng)
        assert color == expected_sky(direction)


class TestRendererBasic:
    """Test basic renderer functionality."""

    def test_render_produces_image(self):
        settings = RenderSettings(width=10, height=10, samples_per_pixel=1, max_depth=2, num_workers=1)
        world = HittableList()
        world.add(Sphere(Point3(0, 0, -5), 1.0, Lambertian(Color(1, 0, 0))))

        image = Renderer(settings).render(world, forward_camera())

        assert image.shape == (10, 10, 3)
        assert image.dtype == np.float64

    def test_sky_gradient_rows(self):
        settings = RenderSettings(width=10, height=10, samples_per_pixel=4, max_depth=1, num_workers=1)
        image = Renderer(settings).render(HittableList(), forward_camera())

        # Top row first: the top is bluer (less red) than the bottom
        assert image[0, 5, 0] < image[9, 5, 0]
        assert np.allclose(image[:, :, 2], 1.0)

    def test_single_pixel_image(self):
        settings = RenderSettings(width=1, height=1, samples_per_pixel=2, max_depth=3, num_workers=1)
        image = Renderer(settings).render(HittableList(), forward_camera())
        assert image.shape == (1, 1, 3)
        assert np.all(np.isfinite(image))

    def test_ground_sphere_end_to_end(self):
        """Upper rows see sky, lower rows see the grey ground."""
        settings = RenderSettings(
            width=24, height=16, samples_per_pixel=8, max_depth=10,
            num_workers=1, seed=5
        )
        camera = Camera(
            look_from=Point3(0, 1, 0),
            look_at=Point3(0, 1, -1),
            vup=Vec3(0, 1, 0),
            vfov=90,
            aspect_ratio=24 / 16
        )
        renderer = Renderer(settings)
        image = renderer.render(ground_scene(Color(0.5, 0.5, 0.5)), camera)

        top = image[0].mean(axis=0)
        # Looking up at 45 degrees: sky between horizon white and zenith blue
        assert 0.5 < top[0] < 0.9
        assert top[2] == pytest.approx(1.0)
        assert top[0] < top[2]

        bottom = image[-1].mean(axis=0)
        # One diffuse bounce off albedo 0.5, then straight to the sky
        assert bottom[2] == pytest.approx(0.5)
        assert 0.24 < bottom[0] < 0.38
        assert bottom[0] < bottom[1] < bottom[2]

        ldr = renderer.to_ldr(image)
        assert ldr[0].mean() > ldr[-1].mean()

    def test_seed_reproducible_single_worker(self):
        world = HittableList([Sphere(Point3(0, 0, -3), 1.0, Lambertian(Color(0.7, 0.3, 0.3)))])
        settings = RenderSettings(width=6, height=6, samples_per_pixel=2, max_depth=4,
                                  num_workers=1, seed=11)
        a = Renderer(settings).render(world, forward_camera())
        b = Renderer(settings).render(world, forward_camera())
        assert np.array_equal(a, b)

    def test_render_rows_block(self):
        settings = RenderSettings(width=5, height=8, samples_per_pixel=1, max_depth=1, num_workers=1)
        block = render_rows(HittableList(), forward_camera(), settings, range(2, 5),
                            np.random.SeedSequence(1))
        assert block.shape == (3, 5, 3)


class TestRendererProgress:
    """Test renderer progress reporting."""

    @pytest.mark.parametrize("workers", [1, 3])
    def test_progress_callback(self, workers):
        settings = RenderSettings(width=8, height=10, samples_per_pixel=1, max_depth=1,
                                  rows_per_task=3, num_workers=workers)
        renderer = Renderer(settings)

        progress_values = []
        renderer.set_progress_callback(progress_values.append)
        renderer.render(HittableList(), forward_camera())

        # 10 rows in blocks of 3 -> 4 tasks
        assert len(progress_values) == 4
        assert progress_values == sorted(progress_values)
        assert progress_values[-1] == 1.0


class TestRendererCancellation:
    """Test cooperative cancellation."""

    @pytest.mark.parametrize("workers", [1, 2])
    def test_preset_event_cancels(self, workers):
        settings = RenderSettings(width=4, height=4, samples_per_pixel=1, max_depth=1,
                                  num_workers=workers)
        event = threading.Event()
        event.set()

        with pytest.raises(RenderCancelled):
            Renderer(settings).render(HittableList(), forward_camera(), cancel_event=event)

    def test_cancel_from_progress_callback(self):
        settings = RenderSettings(width=4, height=6, samples_per_pixel=1, max_depth=1,
                                  num_workers=1)
        renderer = Renderer(settings)
        event = threading.Event()
        seen = []

        def callback(progress):
            seen.append(progress)
            event.set()

        renderer.set_progress_callback(callback)
        with pytest.raises(RenderCancelled):
            renderer.render(HittableList(), forward_camera(), cancel_event=event)

        # The first row finished, the second never started
        assert len(seen) == 1

    def test_unset_event_completes(self):
        settings = RenderSettings(width=4, height=4, samples_per_pixel=1, max_depth=1,
                                  num_workers=2)
        image = Renderer(settings).render(HittableList(), forward_camera(),
                                          cancel_event=threading.Event())
        assert image.shape == (4, 4, 3)


class TestRendererOutput:
    """Test linear to 8-bit conversion."""

    def test_white_and_black_extremes(self):
        renderer = Renderer(RenderSettings())
        hdr = np.array([[[1.0, 1.0, 1.0], [0.0, 0.0, 0.0]]], dtype=np.float64)
        ldr = renderer.to_ldr(hdr)

        assert ldr.dtype == np.uint8
        assert ldr[0, 0].tolist() == [255, 255, 255]
        assert ldr[0, 1].tolist() == [0, 0, 0]

    def test_gamma_two_is_square_root(self):
        renderer = Renderer(RenderSettings())
        ldr = renderer.to_ldr(np.array([[[0.25, 0.5, 0.0]]]))
        # sqrt(0.25) = 0.5 -> 128
        assert ldr[0, 0, 0] == 128
        assert ldr[0, 0, 1] == int(256 * math.sqrt(0.5))

    def test_to_ldr_clamps(self):
        renderer = Renderer(RenderSettings())
        ldr = renderer.to_ldr(np.array([[[2.0, np.nan, -0.5]]]))
        assert ldr[0, 0].tolist() == [255, 0, 0]

    def test_to_bytes_layout(self):
        renderer = Renderer(RenderSettings())
        hdr = np.zeros((2, 3, 3), dtype=np.float64)
        hdr[0, 0] = [1.0, 0.0, 0.0]   # top-left red
        hdr[1, 2] = [0.0, 0.0, 1.0]   # bottom-right blue
        data = renderer.to_bytes(hdr)

        assert isinstance(data, bytes)
        assert len(data) == 2 * 3 * 3
        assert data[0:3] == bytes([255, 0, 0])
        assert data[-3:] == bytes([0, 0, 255])

    def test_save_image(self, tmp_path):
        from PIL import Image

        renderer = Renderer(RenderSettings())
        hdr = np.full((4, 6, 3), 0.25, dtype=np.float64)
        path = tmp_path / "out.png"
        renderer.save_image(hdr, str(path))

        with Image.open(path) as img:
            assert img.size == (6, 4)
            assert img.mode == "RGB"
            assert img.getpixel((0, 0)) == (128, 128, 128)


class TestRendererTasks:
    """Test row task generation."""

    def test_tasks_cover_rows(self):
        renderer = Renderer(RenderSettings(width=10, height=10, rows_per_task=4))
        tasks = renderer._generate_row_tasks(10)

        assert [list(t) for t in tasks] == [[0, 1, 2, 3], [4, 5, 6, 7], [8, 9]]


class TestRendererParallel:
    """Test multi-worker rendering."""

    def test_threads_produce_same_shape(self):
        world = HittableList()
        world.add(Sphere(Point3(0, 0, -5), 1.0, Lambertian(Color(1, 0, 0))))

        single = Renderer(RenderSettings(width=12, height=12, samples_per_pixel=1,
                                         max_depth=2, num_workers=1))
        multi = Renderer(RenderSettings(width=12, height=12, samples_per_pixel=1,
                                        max_depth=2, num_workers=4, rows_per_task=2))

        image_single = single.render(world, forward_camera())
        image_multi = multi.render(world, forward_camera())

        assert image_single.shape == image_multi.shape
        assert np.all(image_multi >= 0.0)

    def test_thread_and_inline_agree_on_sky(self):
        settings_kwargs = dict(width=6, height=6, samples_per_pixel=1, max_depth=1)
        single = Renderer(RenderSettings(num_workers=1, **settings_kwargs))
        multi = Renderer(RenderSettings(num_workers=3, **settings_kwargs))

        a = single.render(HittableList(), forward_camera())
        b = multi.render(HittableList(), forward_camera())
        # Blue channel of the sky is always exactly 1
        assert np.allclose(a[:, :, 2], 1.0)
        assert np.allclose(b[:, :, 2], 1.0)

    def test_process_pool(self):
        settings = RenderSettings(width=6, height=4, samples_per_pixel=1, max_depth=3,
                                  num_workers=2, use_processes=True, rows_per_task=2)
        world = ground_scene()
        image = Renderer(settings).render(world, forward_camera(6 / 4))

        assert image.shape == (4, 6, 3)
        assert np.all(np.isfinite(image))
