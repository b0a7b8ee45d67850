"""
Command-Line Interface for Voxel Raymarch

Usage:
    voxmarch model.vox -o preview.png
    voxmarch model.vox --width 512 --height 512 --camera 40 60 -30 -o preview
    voxmarch scene.vox --model 2 --fov 50 --stats

"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
import time

from . import __version__
from .model import load_models
from .render import RenderConfig, render_material_ids, save_image, shade
from .vox_reader import read_vox


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="voxmarch",
        description="Voxel Raymarch - Render MagicaVoxel models by grid ray marching",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voxmarch castle.vox -o castle.png
      Render every model in castle.vox to castle_<n>.png

  voxmarch castle.vox --model 0 --width 800 --height 600 -o castle
      Render only the first model at 800x600

  voxmarch castle.vox --camera 20 40 -60 --target 8 8 8 --fov 45
      Place the camera explicitly (model-local coordinates)

Coordinates:
  Camera and target are given in model-local space, where one unit is one
  voxel and the model occupies [0, size) on each axis.
        """
    )

    # Input
    parser.add_argument(
        "input",
        help="Input .vox file"
    )

    # Output
    parser.add_argument(
        "-o", "--output",
        help="Output PNG path (default: input path with .png)"
    )

    parser.add_argument(
        "--model",
        type=int,
        help="Render only the model with this index"
    )

    # Camera settings
    parser.add_argument(
        "--width",
        type=int,
        default=256,
        help="Image width in pixels (default: 256)"
    )

    parser.add_argument(
        "--height",
        type=int,
        default=256,
        help="Image height in pixels (default: 256)"
    )

    parser.add_argument(
        "--fov",
        type=float,
        default=70.0,
        help="Vertical field of view in degrees (default: 70)"
    )

    parser.add_argument(
        "--camera",
        nargs=3,
        type=float,
        metavar=("X", "Y", "Z"),
        default=[50.0, 100.0, -40.0],
        help="Camera position in model space (default: 50 100 -40)"
    )

    parser.add_argument(
        "--target",
        nargs=3,
        type=float,
        metavar=("X", "Y", "Z"),
        help="Look-at point in model space (default: model center)"
    )

    parser.add_argument(
        "--background",
        nargs=4,
        type=int,
        metavar=("R", "G", "B", "A"),
        default=[0, 0, 0, 0],
        help="Background RGBA for missed rays (default: 0 0 0 0)"
    )

    # Loading
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads used to build models (default: 1)"
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with debug logging"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print model and hit statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def output_paths(output_base: Path, indices: List[int], total: int) -> List[Path]:
    """Name one PNG per rendered model."""
    if total == 1 and len(indices) == 1:
        return [output_base.with_suffix(".png")]
    return [
        output_base.with_name(f"{output_base.stem}_{i}").with_suffix(".png")
        for i in indices
    ]


def process(args) -> int:
    """Load a .vox file and render its models."""
    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    output_base = Path(args.output) if args.output else input_path.with_suffix("")

    start_time = time.time()

    try:
        if args.verbose:
            print(f"Loading: {input_path}")

        container = read_vox(input_path)
        models = load_models(container, workers=args.workers)

        if not models:
            print(f"Error: No models in {input_path}", file=sys.stderr)
            return 1

        if args.model is not None:
            if not 0 <= args.model < len(models):
                print(
                    f"Error: Model index {args.model} out of range "
                    f"(file has {len(models)})",
                    file=sys.stderr
                )
                return 1
            indices = [args.model]
        else:
            indices = list(range(len(models)))

        config = RenderConfig(
            width=args.width,
            height=args.height,
            fov_degrees=args.fov,
            camera_position=tuple(args.camera),
            target=tuple(args.target) if args.target else None,
            background=tuple(args.background),
        )

        paths = output_paths(output_base, indices, len(models))

        for index, path in zip(indices, paths):
            model = models[index]

            if args.verbose:
                print(f"Rendering model {index} ({'x'.join(map(str, model.size))})")

            ids = render_material_ids(model, config)
            save_image(shade(ids, model.palette, config.background), path)

            if args.stats or args.verbose:
                hits = int((ids != 0).sum())
                print(f"\nModel {index} Statistics:")
                print(f"  Grid size: {model.size}")
                print(f"  Voxels: {model.count_voxels()}")
                print(f"  Pixels hit: {hits} / {ids.size}")

            if args.verbose:
                print(f"Exported: {path}")

        elapsed = time.time() - start_time
        if args.verbose:
            print(f"\nCompleted in {elapsed:.2f}s")

        return 0

    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        )

    return process(args)


if __name__ == "__main__":
    sys.exit(main())
