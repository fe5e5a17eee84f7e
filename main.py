#!/usr/bin/env python3
"""
LumenPath - A Python Monte Carlo Path Tracer

Main entry point for rendering scenes.
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from lumenpath.renderer import Renderer, RenderSettings, RenderConfigError
from lumenpath.scenes import random_scene, ground_scene, default_camera
from lumenpath.scene_parser import load_scene, SceneParseError
from lumenpath.logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        description='LumenPath - A Python Monte Carlo Path Tracer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python main.py --output render.png
  python main.py --width 1200 --samples 500 --processes --output final.png
  python main.py --scene-file scenes/three_spheres.yaml --output spheres.png
        '''
    )

    parser.add_argument('--scene', type=str, default='random', choices=['random', 'ground'],
                        help='Built-in scene to render (default: random)')
    parser.add_argument('--scene-file', type=str, default=None,
                        help='YAML or JSON scene description (overrides --scene and render options)')
    parser.add_argument('--width', type=int, default=400, help='Image width (default: 400)')
    parser.add_argument('--aspect', type=float, default=16.0 / 9.0,
                        help='Aspect ratio, height is derived from it (default: 16/9)')
    parser.add_argument('--samples', type=int, default=100, help='Samples per pixel (default: 100)')
    parser.add_argument('--depth', type=int, default=50, help='Max bounces per path (default: 50)')
    parser.add_argument('--workers', type=int, default=0, help='Number of workers (0=auto)')
    parser.add_argument('--processes', action='store_true',
                        help='Render on a process pool instead of threads')
    parser.add_argument('--seed', type=int, default=None, help='Seed for the random sources')
    parser.add_argument('--output', type=str, default='output/render.png', help='Output filename')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Log level (default: LUMENPATH_LOG_LEVEL or INFO)')
    return parser


def progress_printer():
    """Return a progress callback drawing a bar on stdout."""
    last_progress = [0]

    def progress_callback(progress: float):
        pct = int(progress * 100)
        if pct > last_progress[0]:
            last_progress[0] = pct
            bar_len = 40
            filled = int(bar_len * progress)
            bar = '█' * filled + '░' * (bar_len - filled)
            print(f'\rRendering: [{bar}] {pct}%', end='', flush=True)

    return progress_callback


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    print("=" * 60)
    print("LumenPath Path Tracer")
    print("=" * 60)

    try:
        if args.scene_file:
            print(f"\nLoading scene file: {args.scene_file}")
            world, camera, settings = load_scene(args.scene_file)
        else:
            settings = RenderSettings(
                width=args.width,
                aspect_ratio=args.aspect,
                samples_per_pixel=args.samples,
                max_depth=args.depth,
                num_workers=args.workers,
                use_processes=args.processes,
                seed=args.seed
            )
            print(f"\nCreating scene: {args.scene}")
            if args.scene == 'ground':
                world = ground_scene()
            else:
                world = random_scene(np.random.default_rng(args.seed))
            camera = default_camera(settings.width / settings.height)
    except (RenderConfigError, SceneParseError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print(f"\nRender Settings:")
    print(f"  Resolution: {settings.width}x{settings.height}")
    print(f"  Samples: {settings.samples_per_pixel}")
    print(f"  Max Depth: {settings.max_depth}")
    print(f"  Workers: {settings.num_workers} ({'processes' if settings.use_processes else 'threads'})")
    print(f"  Objects in scene: {len(world)}")

    renderer = Renderer(settings)
    renderer.set_progress_callback(progress_printer())

    print("\nRendering...")
    start_time = time.time()

    image = renderer.render(world, camera)

    elapsed = time.time() - start_time
    print(f"\nRender completed in {elapsed:.2f} seconds")
    samples_total = settings.width * settings.height * settings.samples_per_pixel
    print(f"  Samples per second: {samples_total / max(elapsed, 1e-9):.0f}")

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    print(f"\nSaving to: {args.output}")
    renderer.save_image(image, str(output_path))

    print("\nDone!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
