#!/usr/bin/env python3
"""
Pathweaver - A Monte Carlo path tracer

Main entry point for rendering the built-in scenes.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np

from pathweaver.bvh import build_bvh
from pathweaver.renderer import Renderer, RenderSettings, IMAGE_FORMATS
from pathweaver.scenes import SCENES, default_camera, parse_aspect_ratio
from pathweaver.shapes import GeometryError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Pathweaver - A Monte Carlo path tracer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python main.py --scene three --output render.png
  python main.py --image-width 1200 --aspect-ratio 16:9 --samples 500 --processes
  python main.py --scene random --seed 7 --output random.jpg --format jpg
        '''
    )

    parser.add_argument('-a', '--aspect-ratio', type=str, default='3:2',
                        help='Aspect ratio of the image as W:H (default: 3:2)')
    parser.add_argument('-w', '--image-width', type=int, default=600,
                        help='Image width; height follows from the aspect ratio (default: 600)')
    parser.add_argument('-s', '--samples', type=int, default=100, help='Samples per pixel (default: 100)')
    parser.add_argument('-d', '--max-depth', type=int, default=50,
                        help='Number of bounces before a ray dies (default: 50)')
    parser.add_argument('--workers', type=int, default=0, help='Number of workers (0=auto)')
    parser.add_argument('--processes', action='store_true',
                        help='Render with a process pool instead of threads')
    parser.add_argument('--seed', type=int, default=None, help='Seed for scene and sampling')
    parser.add_argument('--scene', type=str, default='random', choices=sorted(SCENES),
                        help='Scene to render (default: random)')
    parser.add_argument('-o', '--output', type=str, default='image.png', help='Output filename')
    parser.add_argument('-f', '--format', type=str, default=None, choices=sorted(IMAGE_FORMATS),
                        help='Output format (default: from the file extension)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s'
    )

    try:
        aspect_ratio = parse_aspect_ratio(args.aspect_ratio)
        settings = RenderSettings(
            width=args.image_width,
            height=max(int(args.image_width / aspect_ratio), 1),
            samples_per_pixel=args.samples,
            max_depth=args.max_depth,
            num_workers=args.workers,
            use_processes=args.processes,
            seed=args.seed
        )

        print("[1/3] Setup...")
        print(f"  Resolution: {settings.width}x{settings.height}")
        print(f"  Samples: {settings.samples_per_pixel}")
        print(f"  Max Depth: {settings.max_depth}")
        print(f"  Workers: {settings.num_workers}")

        rng = np.random.default_rng(args.seed)
        camera = default_camera(aspect_ratio)
        objects = SCENES[args.scene](rng)
        world = build_bvh(objects, camera.time0, camera.time1, rng)
        print(f"  Objects in scene: {len(objects)}")

        renderer = Renderer(settings)

        last_progress = [0]

        def progress_callback(progress: float):
            pct = int(progress * 100)
            if pct > last_progress[0]:
                last_progress[0] = pct
                bar_len = 40
                filled = int(bar_len * progress)
                bar = '█' * filled + '░' * (bar_len - filled)
                print(f'\r[2/3] Render: [{bar}] {pct}%', end='', flush=True)

        renderer.set_progress_callback(progress_callback)

        start_time = time.time()
        image = renderer.render(world, camera)
        elapsed = time.time() - start_time
        print(f"\nRender time: {elapsed:.2f} seconds")

        print(f"[3/3] Write to disk: {args.output}")
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        renderer.save_image(image, str(output_path), args.format)
    except (GeometryError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"Image size: {output_path.stat().st_size} bytes")
    print("Complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
