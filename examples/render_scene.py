#!/usr/bin/env python3
"""Render one of the demo scenes to a PNG file.

Usage:
    python -m examples.render_scene SCENE [options]

Options:
    --width WIDTH         Image width in pixels (default: the scene's)
    --height HEIGHT       Image height in pixels (default: from the aspect ratio)
    --samples SAMPLES     Samples per pixel (default: the scene's)
    --max-depth DEPTH     Maximum path length (default: the scene's)
    --seed SEED           Sampling seed (default: 0)
    --batch-size SIZE     Samples per progress update (default: 16)
    --image PATH          Image used by the earth and final scenes
    --output OUTPUT       Output file path (default: SCENE.png)
    --arch {cpu,gpu}      Taichi backend (default: cpu)
    --threads N           CPU threads (default: all)
    --verbose             Log scene and timing details
    --quiet               Suppress progress output

Example:
    python -m examples.render_scene cornell_box --width 256 --samples 64
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

from examples.scenes import SCENES


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a demo scene with the path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("scene", choices=sorted(SCENES), help="Scene to render")
    parser.add_argument("--width", type=int, default=None, help="Image width in pixels")
    parser.add_argument("--height", type=int, default=None, help="Image height in pixels")
    parser.add_argument("--samples", type=int, default=None, help="Samples per pixel")
    parser.add_argument("--max-depth", type=int, default=None, help="Maximum path length")
    parser.add_argument("--seed", type=int, default=0, help="Sampling seed (default: 0)")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=16,
        help="Samples per progress update (default: 16)",
    )
    parser.add_argument("--image", type=str, default=None, help="Image for textured globes")
    parser.add_argument("--output", type=str, default=None, help="Output file (default: SCENE.png)")
    parser.add_argument(
        "--arch",
        choices=("cpu", "gpu"),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    parser.add_argument("--threads", type=int, default=None, help="CPU threads (default: all)")
    parser.add_argument("--verbose", action="store_true", help="Log scene and timing details")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args(argv)


def build_scene(args: argparse.Namespace):
    """Build the selected scene with the command-line overrides applied."""
    overrides = {"seed": args.seed, "batch_size": args.batch_size}
    if args.width is not None:
        overrides["width"] = args.width
    if args.height is not None:
        overrides["height"] = args.height
    if args.samples is not None:
        overrides["samples_per_pixel"] = args.samples
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth

    if args.scene == "earth" and args.image is not None:
        return SCENES["earth"](image_path=args.image, **overrides)
    if args.scene == "final_scene":
        return SCENES["final_scene"](image_path=args.image, **overrides)
    return SCENES[args.scene](**overrides)


def render(args: argparse.Namespace) -> Path:
    """Render the selected scene and save it.

    Returns:
        Path to the saved image file.
    """
    # Lazy import to allow Taichi initialization first
    from pathtracer.core.renderer import Renderer

    if not args.quiet:
        print(f"Building scene '{args.scene}'...")
    scene = build_scene(args)
    settings = scene.settings

    renderer = Renderer(scene)
    if not args.quiet:
        print(
            f"Rendering {settings.width}x{settings.height} at "
            f"{settings.samples_per_pixel} spp ({renderer.stats.primitives} primitives)..."
        )

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not args.quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            samples_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples "
                f"({progress_pct:.1f}%) - {samples_per_sec:.1f} spp/s",
                end="",
                flush=True,
            )

    renderer.render(callback=progress_callback)
    if not args.quiet:
        print()

    output_file = Path(args.output if args.output is not None else f"{args.scene}.png")
    renderer.save_image(output_file)

    if not args.quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {time.time() - start_time:.2f}s")
    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    init_kwargs = {"arch": ti.gpu if args.arch == "gpu" else ti.cpu}
    if args.threads is not None:
        init_kwargs["cpu_max_num_threads"] = args.threads
    ti.init(**init_kwargs)

    try:
        render(args)
        return 0
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
