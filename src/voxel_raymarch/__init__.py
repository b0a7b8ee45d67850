"""
Voxel Raymarch
==============

Render MagicaVoxel models by ray marching a dense, palette-indexed grid
instead of building polygon meshes.

This package turns sparse voxel lists into tight dense grids and walks rays
through them cell by cell to find the first visible voxel.

Key Features:
- 256-slot palette decoding from packed 32-bit RGBA tables
- Tight bounding boxes and zero-based dense uint8 grids
- Grid DDA ray marching with Numba JIT compilation
- Explicit byte layouts for GPU volume textures and palette buffers
- CPU reference renderer and a .vox reader for previews

Example Usage:
    from voxel_raymarch import read_vox, load_models, Ray

    container = read_vox("castle.vox")
    model = load_models(container)[0]
    result = model.march(Ray((0.5, 0.5, -1.0), (0.0, 0.0, 1.0)))
"""

__version__ = "1.0.0"
__author__ = "Voxel Raymarch Team"

from .palette import Palette, Material, decode_palette
from .grid import BoundingBox, compute_bounds, build_dense_grid
from .model import VoxelModel, build_models, load_models
from .raymarch import Ray, Hit, Miss, march, march_many
from .render import RenderConfig, render_model, save_image
from .vox_reader import VoxContainer, read_vox

__all__ = [
    "Palette",
    "Material",
    "decode_palette",
    "BoundingBox",
    "compute_bounds",
    "build_dense_grid",
    "VoxelModel",
    "build_models",
    "load_models",
    "Ray",
    "Hit",
    "Miss",
    "march",
    "march_many",
    "RenderConfig",
    "render_model",
    "save_image",
    "VoxContainer",
    "read_vox",
]
