"""Built-in scenes."""

from __future__ import annotations
from typing import Optional

import numpy as np

from .vec3 import Vec3, Point3, Color
from .camera import Camera
from .shapes import Sphere, HittableList
from .materials import Material, Lambertian, Metal, Dielectric


def random_scene(rng: Optional[np.random.Generator] = None) -> HittableList:
    """Create the classic scene: a ground sphere, a grid of small random spheres
    and three large spheres (glass, diffuse, metal).

    Args:
        rng: Random source for sphere placement and materials

    Returns:
        The scene as a HittableList
    """
    rng = rng if rng is not None else np.random.default_rng()
    world = HittableList()
    materials: dict[str, Material] = {}

    materials['ground'] = Lambertian(Color(0.5, 0.5, 0.5))
    world.add(Sphere(Point3(0, -1000, 0), 1000, materials['ground']))

    clearing = Point3(4, 0.2, 0)
    for a in range(-11, 11):
        for b in range(-11, 11):
            choose_mat = rng.random()
            center = Point3(a + 0.9 * rng.random(), 0.2, b + 0.9 * rng.random())

            # Keep the area around the large metal sphere clear
            if (center - clearing).length() <= 0.9:
                continue

            if choose_mat < 0.8:
                # diffuse
                albedo = Vec3.random(rng) * Vec3.random(rng)
                material = Lambertian(albedo)
            elif choose_mat < 0.95:
                # metal
                albedo = Vec3.random(rng, 0.5, 1.0)
                fuzz = rng.uniform(0.0, 0.5)
                material = Metal(albedo, fuzz)
            else:
                # glass
                material = Dielectric(1.5)

            materials[f"{a}_{b}"] = material
            world.add(Sphere(center, 0.2, material))

    materials['glass'] = Dielectric(1.5)
    world.add(Sphere(Point3(0, 1, 0), 1.0, materials['glass']))

    materials['diffuse'] = Lambertian(Color(0.4, 0.2, 0.1))
    world.add(Sphere(Point3(-4, 1, 0), 1.0, materials['diffuse']))

    materials['metal'] = Metal(Color(0.7, 0.6, 0.5), 0.0)
    world.add(Sphere(Point3(4, 1, 0), 1.0, materials['metal']))

    return world


def ground_scene(albedo: Color = Color(0.5, 0.5, 0.5)) -> HittableList:
    """A single huge diffuse sphere acting as the ground plane under open sky."""
    world = HittableList()
    world.add(Sphere(Point3(0, -1000, 0), 1000, Lambertian(albedo)))
    return world


def default_camera(aspect_ratio: float = 16.0 / 9.0) -> Camera:
    """Camera framing `random_scene`."""
    return Camera(
        look_from=Point3(13, 2, 3),
        look_at=Point3(0, 0, 0),
        vup=Vec3(0, 1, 0),
        vfov=90.0,
        aspect_ratio=aspect_ratio,
        aperture=0.1,
        focus_dist=10.0
    )
