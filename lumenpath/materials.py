"""
Surface materials.

The material set is closed: Lambertian (diffuse), Metal (specular with
fuzz) and Dielectric (glass). Materials are plain immutable records and
all scattering goes through the single `scatter` function below.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union
import math

import numpy as np

from .vec3 import Vec3, Color
from .ray import Ray
from .shapes import HitRecord


@dataclass
class ScatterResult:
    """Result of a material scatter operation."""
    scattered: Ray
    attenuation: Color


@dataclass(frozen=True)
class Lambertian:
    """Diffuse material with Lambertian (ideal matte) scattering.

    Attributes:
        albedo: The base color (RGB, each component 0-1)
    """
    albedo: Color


@dataclass(frozen=True)
class Metal:
    """Metallic material with specular reflection.

    Attributes:
        albedo: The reflection color
        fuzz: Surface roughness, clamped to [0, 1] (0 = mirror)
    """
    albedo: Color
    fuzz: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'fuzz', max(0.0, min(float(self.fuzz), 1.0)))


@dataclass(frozen=True)
class Dielectric:
    """Clear refractive material such as glass or water.

    Attributes:
        refraction_index: Index of refraction (1.0 = air, 1.5 = glass, 2.4 = diamond)
    """
    refraction_index: float = 1.5

    def __post_init__(self):
        if not self.refraction_index > 0:
            raise ValueError(
                f"Refraction index must be positive, got {self.refraction_index}"
            )


Material = Union[Lambertian, Metal, Dielectric]

WHITE = Color(1.0, 1.0, 1.0)


def scatter(material: Material, ray_in: Ray, hit: HitRecord,
            rng: np.random.Generator) -> Optional[ScatterResult]:
    """Scatter an incoming ray off a surface.

    Args:
        material: The material at the hit point
        ray_in: The incoming ray
        hit: The intersection record (normal faces the incoming ray)
        rng: Random source for the stochastic parts of the model

    Returns:
        ScatterResult if the ray scatters, None if it is absorbed
    """
    if isinstance(material, Lambertian):
        return _scatter_lambertian(material, hit, rng)
    if isinstance(material, Metal):
        return _scatter_metal(material, ray_in, hit, rng)
    if isinstance(material, Dielectric):
        return _scatter_dielectric(material, ray_in, hit, rng)
    raise TypeError(f"Unsupported material type: {type(material).__name__}")


def _scatter_lambertian(material: Lambertian, hit: HitRecord,
                        rng: np.random.Generator) -> ScatterResult:
    scatter_direction = hit.normal + Vec3.random_in_unit_sphere(rng)

    # Catch degenerate scatter direction
    if scatter_direction.near_zero():
        scatter_direction = hit.normal

    return ScatterResult(Ray(hit.point, scatter_direction), material.albedo)


def _scatter_metal(material: Metal, ray_in: Ray, hit: HitRecord,
                   rng: np.random.Generator) -> Optional[ScatterResult]:
    reflected = ray_in.direction.normalize().reflect(hit.normal)
    if material.fuzz > 0:
        reflected = reflected + Vec3.random_in_unit_sphere(rng) * material.fuzz

    # Fuzz can push the reflection below the surface
    if reflected.dot(hit.normal) <= 0:
        return None
    return ScatterResult(Ray(hit.point, reflected), material.albedo)


def _scatter_dielectric(material: Dielectric, ray_in: Ray, hit: HitRecord,
                        rng: np.random.Generator) -> ScatterResult:
    ior = material.refraction_index
    refraction_ratio = 1.0 / ior if hit.front_face else ior

    unit_direction = ray_in.direction.normalize()
    cos_theta = min(-unit_direction.dot(hit.normal), 1.0)
    sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))

    cannot_refract = refraction_ratio * sin_theta > 1.0
    if cannot_refract or reflectance(cos_theta, refraction_ratio) > rng.random():
        direction = unit_direction.reflect(hit.normal)
    else:
        direction = unit_direction.refract(hit.normal, refraction_ratio)

    return ScatterResult(Ray(hit.point, direction), WHITE)


def reflectance(cosine: float, ref_idx: float) -> float:
    """Schlick's approximation for Fresnel reflectance."""
    r0 = (1 - ref_idx) / (1 + ref_idx)
    r0 = r0 * r0
    return r0 + (1 - r0) * pow(1 - cosine, 5)
