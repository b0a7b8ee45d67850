#!/usr/bin/env python3
"""
Voxel Raymarch Demo Script

This script demonstrates the full ingestion and rendering pipeline by:
1. Creating synthetic sparse voxel models (no .vox files needed)
2. Decoding a packed palette and building dense grids
3. Ray marching previews on the CPU
4. Printing statistics and a batch marching benchmark

Run with: python examples/demo.py
"""

import sys
from pathlib import Path
import numpy as np
import time

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_raymarch import (
    VoxContainer, RenderConfig, load_models, march_many, render_model, save_image
)


def pack_rgba(r: int, g: int, b: int, a: int = 255) -> int:
    """Pack a color the way .vox RGBA chunks store it."""
    return r | (g << 8) | (b << 16) | (a << 24)


def create_palette() -> list:
    """A small palette: a blue ramp followed by a green ramp."""
    colors = []
    for i in range(8):
        colors.append(pack_rgba(40, 80 + i * 20, 160 + i * 12))
    for i in range(8):
        colors.append(pack_rgba(30, 100 + i * 18, 40))
    return colors


def create_sphere(radius: int = 10) -> list:
    """
    Create a sphere centered on the origin (negative coordinates included).

    Returns:
        List of (x, y, z, material_index) tuples
    """
    voxels = []
    for x in range(-radius, radius + 1):
        for y in range(-radius, radius + 1):
            for z in range(-radius, radius + 1):
                dist = np.sqrt(x * x + y * y + z * z)
                if dist <= radius:
                    # Shade by height
                    index = int((y + radius) / (2 * radius) * 7)
                    voxels.append((x, y, z, index))
    return voxels


def create_tower(height: int = 24) -> list:
    """Create a hollow square tower far from the origin."""
    voxels = []
    for y in range(height):
        for x in range(100, 108):
            for z in range(-50, -42):
                if x in (100, 107) or z in (-50, -43):
                    voxels.append((x, y, z, 8 + y * 7 // height))
    return voxels


def run_demo():
    """Run the demonstration."""
    print("=" * 60)
    print("Voxel Raymarch - Demo")
    print("=" * 60)
    print()

    # Create output directory
    output_dir = Path(__file__).parent / "output"
    output_dir.mkdir(exist_ok=True)

    container = VoxContainer(
        models=[create_sphere(10), create_tower(24), []],
        palette=create_palette(),
    )
    names = ["sphere", "tower", "empty"]

    total_start = time.time()

    load_start = time.time()
    models = load_models(container, workers=3)
    print(f"Loaded {len(models)} models in {(time.time() - load_start)*1000:.1f}ms")

    for name, model in zip(names, models):
        print(f"\n--- Rendering: {name} ---")
        print(f"  Grid size: {model.size}")
        print(f"  Voxels: {model.count_voxels()}")

        sx, sy, sz = model.size
        config = RenderConfig(
            width=160,
            height=160,
            fov_degrees=50.0,
            camera_position=(sx * 2.0, sy * 1.5, -sz * 1.5),
        )

        render_start = time.time()
        image = render_model(model, config)
        render_time = time.time() - render_start

        covered = int(np.count_nonzero(image[:, :, 3]))
        print(f"  Render: {render_time*1000:.1f}ms, {covered} pixels covered")

        path = output_dir / f"{name}.png"
        save_image(image, path)
        print(f"  Saved: {path}")

    total_time = time.time() - total_start

    print("\n" + "=" * 60)
    print(f"Demo complete! Total time: {total_time:.2f}s")
    print(f"Output files in: {output_dir}")
    print("=" * 60)

    return 0


def benchmark_marching():
    """Benchmark batch ray marching on solid-shell grids."""
    print("\n--- Batch Marching Benchmark ---\n")

    sizes = [16, 32, 64, 128]
    rng = np.random.default_rng(0)

    for size in sizes:
        grid = np.zeros((size, size, size), dtype=np.uint8)
        grid[size // 4:3 * size // 4, size // 4:3 * size // 4, size // 4:3 * size // 4] = 1

        n = 100_000
        origins = rng.uniform(0, size, (n, 3))
        directions = rng.normal(size=(n, 3))
        directions /= np.linalg.norm(directions, axis=1, keepdims=True)

        # Warm up the JIT
        march_many(grid, origins[:10], directions[:10])

        start = time.time()
        ids = march_many(grid, origins, directions)
        elapsed = time.time() - start

        print(f"Grid size: {size}x{size}x{size}")
        print(f"  {n} rays in {elapsed*1000:.1f}ms, {int(np.count_nonzero(ids))} hits")
        print()


if __name__ == "__main__":
    run_demo()

    # Uncomment to run benchmark
    # benchmark_marching()
