"""
Scene description parser.

Scenes can be written in YAML or JSON:

```yaml
camera:
  look_from: [13, 2, 3]
  look_at: [0, 0, 0]
  vfov: 20
  aperture: 0.1
  focus_dist: 10

render:
  width: 400
  height: 225
  samples: 100
  max_depth: 50

materials:
  ground:
    type: lambertian
    albedo: [0.5, 0.5, 0.5]

  glass:
    type: dielectric
    ior: 1.5

objects:
  - type: sphere
    center: [0, -1000, 0]
    radius: 1000
    material: ground

  - type: sphere
    center: [0, 1, 0]
    radius: 1
    material: glass
```
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
import json
import logging

import yaml

from .vec3 import Vec3, Point3, Color
from .camera import Camera
from .shapes import Sphere, HittableList
from .materials import Material, Lambertian, Metal, Dielectric
from .renderer import RenderSettings

logger = logging.getLogger(__name__)


class SceneParseError(Exception):
    """Error during scene parsing."""


class SceneParser:
    """Parser for scene description files."""

    def __init__(self):
        self.materials: Dict[str, Material] = {}
        self.objects: HittableList = HittableList()
        self.camera: Optional[Camera] = None
        self.settings: Optional[RenderSettings] = None

    def parse_file(self, filepath: str) -> Tuple[HittableList, Camera, RenderSettings]:
        """Parse a scene file.

        Args:
            filepath: Path to the scene file (.yaml, .yml or .json)

        Returns:
            Tuple of (scene, camera, settings)
        """
        path = Path(filepath)
        if not path.exists():
            raise SceneParseError(f"Scene file not found: {filepath}")

        content = path.read_text()

        try:
            if path.suffix == '.json':
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise SceneParseError(f"Cannot read scene file {filepath}: {exc}") from exc

        if not isinstance(data, dict):
            raise SceneParseError(f"Scene file {filepath} must contain a mapping at top level")

        logger.debug("Loaded scene description from %s", path)
        return self.parse_dict(data)

    def parse_dict(self, data: Dict[str, Any]) -> Tuple[HittableList, Camera, RenderSettings]:
        """Parse a scene from a dictionary.

        Args:
            data: Scene description dictionary

        Returns:
            Tuple of (scene, camera, settings)
        """
        if not isinstance(data, dict):
            raise SceneParseError("Scene description must be a mapping")

        # Settings first: the camera defaults to the image's aspect ratio
        self._parse_settings(self._section(data, 'render', dict))

        # Materials before objects (objects reference them)
        self._parse_materials(self._section(data, 'materials', dict))
        self._parse_objects(self._section(data, 'objects', list))

        self._parse_camera(self._section(data, 'camera', dict))

        logger.info(
            "Parsed scene: %d object(s), %d material(s)",
            len(self.objects), len(self.materials)
        )
        return self.objects, self.camera, self.settings

    @staticmethod
    def _section(data: Dict[str, Any], key: str, kind: type) -> Any:
        """Fetch a top-level section; a missing or empty key yields an empty one."""
        section = data.get(key) or kind()
        if not isinstance(section, kind):
            raise SceneParseError(f"Section '{key}' must be a {kind.__name__}")
        return section

    def _parse_vec3(self, data: Any) -> Vec3:
        """Parse a Vec3 from a list or an x/y/z mapping."""
        try:
            if isinstance(data, (list, tuple)):
                if len(data) != 3:
                    raise SceneParseError(f"Vec3 must have 3 components, got {len(data)}")
                return Vec3(float(data[0]), float(data[1]), float(data[2]))
            elif isinstance(data, dict):
                return Vec3(
                    float(data.get('x', 0)),
                    float(data.get('y', 0)),
                    float(data.get('z', 0))
                )
        except (TypeError, ValueError) as exc:
            raise SceneParseError(f"Cannot parse Vec3 from {data}: {exc}") from exc
        raise SceneParseError(f"Cannot parse Vec3 from: {data}")

    def _parse_color(self, data: Any) -> Color:
        """Parse a Color from a list, an r/g/b mapping or a #rrggbb string."""
        if isinstance(data, str):
            if data.startswith('#') and len(data) == 7:
                hex_color = data[1:]
                try:
                    r = int(hex_color[0:2], 16) / 255.0
                    g = int(hex_color[2:4], 16) / 255.0
                    b = int(hex_color[4:6], 16) / 255.0
                except ValueError as exc:
                    raise SceneParseError(f"Invalid hex color: {data}") from exc
                return Color(r, g, b)
            raise SceneParseError(f"Cannot parse color from string: {data}")

        try:
            if isinstance(data, (list, tuple)):
                if len(data) != 3:
                    raise SceneParseError(f"Color must have 3 components, got {len(data)}")
                return Color(float(data[0]), float(data[1]), float(data[2]))
            elif isinstance(data, dict):
                return Color(
                    float(data.get('r', 0)),
                    float(data.get('g', 0)),
                    float(data.get('b', 0))
                )
        except (TypeError, ValueError) as exc:
            raise SceneParseError(f"Cannot parse Color from {data}: {exc}") from exc
        raise SceneParseError(f"Cannot parse Color from: {data}")

    def _parse_material(self, mat_data: Any) -> Material:
        """Build one material from its description."""
        if not isinstance(mat_data, dict):
            raise SceneParseError(f"Material must be a mapping, got: {mat_data}")
        mat_type = str(mat_data.get('type', 'lambertian')).lower()

        try:
            if mat_type == 'lambertian':
                albedo = self._parse_color(mat_data.get('albedo', [0.5, 0.5, 0.5]))
                return Lambertian(albedo)

            elif mat_type == 'metal':
                albedo = self._parse_color(mat_data.get('albedo', [0.8, 0.8, 0.8]))
                fuzz = float(mat_data.get('fuzz', 0.0))
                return Metal(albedo, fuzz)

            elif mat_type == 'dielectric':
                ior = float(mat_data.get('ior', mat_data.get('refraction_index', 1.5)))
                return Dielectric(ior)
        except (TypeError, ValueError) as exc:
            raise SceneParseError(f"Invalid {mat_type} material: {exc}") from exc

        raise SceneParseError(f"Unknown material type: {mat_type}")

    def _parse_materials(self, materials_data: Dict[str, Any]) -> None:
        """Parse materials section."""
        for name, mat_data in materials_data.items():
            self.materials[name] = self._parse_material(mat_data)

    def _get_material(self, mat_ref: Any) -> Material:
        """Get a material by name or inline definition."""
        if isinstance(mat_ref, str):
            if mat_ref not in self.materials:
                raise SceneParseError(f"Unknown material: {mat_ref}")
            return self.materials[mat_ref]
        elif isinstance(mat_ref, dict):
            return self._parse_material(mat_ref)
        else:
            raise SceneParseError(f"Invalid material reference: {mat_ref}")

    def _parse_objects(self, objects_data: list) -> None:
        """Parse objects section."""
        for obj_data in objects_data:
            if not isinstance(obj_data, dict):
                raise SceneParseError(f"Object must be a mapping, got: {obj_data}")
            obj_type = str(obj_data.get('type', 'sphere')).lower()
            if obj_type != 'sphere':
                raise SceneParseError(f"Unknown object type: {obj_type}")
            if 'material' not in obj_data:
                raise SceneParseError("Every object needs a material")

            material = self._get_material(obj_data['material'])
            center = self._parse_vec3(obj_data.get('center', [0, 0, 0]))
            try:
                radius = float(obj_data.get('radius', 1.0))
                self.objects.add(Sphere(center, radius, material))
            except (TypeError, ValueError) as exc:
                raise SceneParseError(f"Invalid sphere: {exc}") from exc

    def _parse_camera(self, camera_data: Dict[str, Any]) -> None:
        """Parse camera section."""
        look_from = self._parse_vec3(camera_data.get('look_from', [0, 0, 5]))
        look_at = self._parse_vec3(camera_data.get('look_at', [0, 0, 0]))
        vup = self._parse_vec3(camera_data.get('vup', [0, 1, 0]))

        try:
            self.camera = Camera(
                look_from=look_from,
                look_at=look_at,
                vup=vup,
                vfov=float(camera_data.get('vfov', 60)),
                aspect_ratio=float(camera_data.get(
                    'aspect_ratio', self.settings.width / self.settings.height
                )),
                aperture=float(camera_data.get('aperture', 0.0)),
                focus_dist=float(camera_data.get('focus_dist', 1.0))
            )
        except (TypeError, ValueError) as exc:
            raise SceneParseError(f"Invalid camera: {exc}") from exc

    def _parse_settings(self, settings_data: Dict[str, Any]) -> None:
        """Parse render settings section."""
        height = settings_data.get('height')
        seed = settings_data.get('seed')
        try:
            self.settings = RenderSettings(
                width=int(settings_data.get('width', 400)),
                height=int(height) if height is not None else None,
                aspect_ratio=float(settings_data.get('aspect_ratio', 16 / 9)),
                samples_per_pixel=int(settings_data.get('samples', 100)),
                max_depth=int(settings_data.get('max_depth', 50)),
                num_workers=int(settings_data.get('workers', 0)),
                use_processes=bool(settings_data.get('processes', False)),
                rows_per_task=int(settings_data.get('rows_per_task', 1)),
                gamma=float(settings_data.get('gamma', 2.0)),
                seed=int(seed) if seed is not None else None
            )
        except (TypeError, ValueError) as exc:
            # RenderConfigError is a ValueError
            raise SceneParseError(f"Invalid render settings: {exc}") from exc


def load_scene(filepath: str) -> Tuple[HittableList, Camera, RenderSettings]:
    """Convenience function to load a scene file.

    Args:
        filepath: Path to the scene file

    Returns:
        Tuple of (scene, camera, settings)
    """
    parser = SceneParser()
    return parser.parse_file(filepath)


def parse_scene(data: Dict[str, Any]) -> Tuple[HittableList, Camera, RenderSettings]:
    """Convenience function to parse a scene from a dictionary."""
    parser = SceneParser()
    return parser.parse_dict(data)
