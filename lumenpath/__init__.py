"""
LumenPath - A Python Monte Carlo Path Tracer

Renders scenes of spheres with:
- Diffuse, metal and glass materials
- Thin lens depth of field
- Sky gradient lighting
- Row-parallel rendering on threads or processes
- PNG output
"""

import logging

__version__ = "0.1.0"
__author__ = "LumenPath Team"

from .vec3 import Vec3, Point3, Color
from .ray import Ray
from .shapes import Sphere, HittableList, HitRecord, Hittable
from .materials import Material, Lambertian, Metal, Dielectric, ScatterResult, scatter
from .camera import Camera
from .renderer import (
    Renderer, RenderSettings, RenderConfigError, RenderCancelled,
    ray_color, sky_color
)
from .scenes import random_scene, ground_scene, default_camera
from .scene_parser import SceneParser, SceneParseError, load_scene, parse_scene
from .logging_config import setup_logging

logging.getLogger(__name__).addHandler(logging.NullHandler())
