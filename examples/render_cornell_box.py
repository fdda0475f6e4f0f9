#!/usr/bin/env python3
"""Render the Cornell box scene.

Builds the classic Cornell box (tall rotated box, glass sphere, ceiling
light), renders it on the CPU backend in bands of rows and writes the image.

Usage:
    python examples/render_cornell_box.py [options]

Options:
    --width WIDTH        Image width in pixels (default: 600)
    --samples SAMPLES    Samples per pixel, rounded down to a square (default: 100)
    --max-depth DEPTH    Maximum path depth (default: 50)
    --seed SEED          Render seed; omit for a fresh one
    --threads N          CPU worker threads (default: all cores)
    --output OUTPUT      Output file, .ppm or .png (default: cornell_box.ppm)
    --quiet              Suppress progress output

Example:
    python examples/render_cornell_box.py --width 200 --samples 16 --seed 7
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

logger = logging.getLogger("render_cornell_box")


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the Cornell box scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--width",
        type=int,
        default=600,
        help="Image width in pixels (default: 600)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=100,
        help="Samples per pixel, rounded down to a perfect square (default: 100)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=50,
        help="Maximum path depth (default: 50)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Render seed; a fixed seed reproduces the image exactly",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=None,
        help="Number of CPU worker threads (default: all cores)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="cornell_box.ppm",
        help="Output file path, .ppm or .png (default: cornell_box.ppm)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    return parser.parse_args()


def render_cornell_box(
    width: int = 600,
    samples: int = 100,
    max_depth: int = 50,
    seed: int | None = None,
    output_path: str = "cornell_box.ppm",
    quiet: bool = False,
) -> Path:
    """Render the Cornell box scene and save it to a file.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from pathtracer.core.render import Renderer
    from pathtracer.scene.cornell_box import create_cornell_box_scene

    scene, config = create_cornell_box_scene(
        image_width=width, samples_per_pixel=samples, max_depth=max_depth
    )
    logger.info(
        "Scene: %d instances, %d light entries, %d materials",
        scene.get_instance_count(),
        scene.get_light_count(),
        scene.get_material_count(),
    )

    renderer = Renderer(config)
    start_time = time.perf_counter()

    def progress_callback(done: int, total: int) -> None:
        if not quiet:
            elapsed = time.perf_counter() - start_time
            print(
                f"\r  Scanlines remaining: {total - done:5d} ({100.0 * done / total:5.1f}%, "
                f"{elapsed:.1f}s)",
                end="",
                file=sys.stderr,
                flush=True,
            )

    renderer.render(seed=seed, callback=progress_callback)
    if not quiet:
        print(file=sys.stderr)

    output_file = Path(output_path)
    renderer.save_image(output_file)
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    init_kwargs = {"arch": ti.cpu}
    if args.threads is not None:
        init_kwargs["cpu_max_num_threads"] = args.threads
    ti.init(**init_kwargs)

    try:
        render_cornell_box(
            width=args.width,
            samples=args.samples,
            max_depth=args.max_depth,
            seed=args.seed,
            output_path=args.output,
            quiet=args.quiet,
        )
        return 0
    except (ValueError, RuntimeError) as e:
        logger.error("Render failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
