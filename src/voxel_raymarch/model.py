"""
Voxel Model Assembly

This module ties ingestion together:
1. Palette decoding (once per source file, shared by every model)
2. Bounding box computation
3. Dense grid construction

A VoxelModel is built once at load time and never mutated afterwards; its
grid is flagged read-only so any number of render workers can march it at
the same time.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
import logging
import numpy as np

from .grid import (
    BoundingBox, SparseVoxels, build_dense_grid, compute_bounds,
    to_texture_bytes
)
from .palette import Palette, decode_palette
from .raymarch import EPSILON, MarchResult, Ray, march

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class VoxelModel:
    """
    Immutable bundle of a dense material grid and its palette.

    Local space: one unit is one grid cell, the grid spans [0, size) on
    each axis.

    Attributes:
        palette: Shared palette the grid values index into
        grid: Read-only uint8 array of shape size
        size: Grid dimensions (x, y, z)
        bounds: Source bounds the grid was cropped to (None for empty models)
    """

    palette: Palette
    grid: np.ndarray
    size: Tuple[int, int, int]
    bounds: Optional[BoundingBox] = None

    @classmethod
    def from_sparse(cls, voxels: SparseVoxels, palette: Palette) -> "VoxelModel":
        """
        Build a model from sparse voxels.

        Args:
            voxels: (x, y, z, material_index) rows at arbitrary offsets
            palette: Decoded palette shared with sibling models

        Returns:
            VoxelModel with a tight, zero-based grid
        """
        bounds = compute_bounds(voxels)
        grid = build_dense_grid(voxels, bounds)
        grid.setflags(write=False)

        if bounds is None:
            logger.debug("Empty model; using a 1x1x1 empty grid")

        return cls(
            palette=palette,
            grid=grid,
            size=tuple(int(s) for s in grid.shape),
            bounds=bounds,
        )

    @property
    def size_vector(self) -> np.ndarray:
        """Get the local-space size as a float32 vector."""
        return np.array(self.size, dtype=np.float32)

    def count_voxels(self) -> int:
        """Count the non-empty cells."""
        return int(np.count_nonzero(self.grid))

    def lookup(self, x: int, y: int, z: int) -> int:
        """
        Exact, non-interpolated lookup of a cell's material id.

        Returns:
            The stored material id, or 0 outside the grid
        """
        sx, sy, sz = self.size
        if not (0 <= x < sx and 0 <= y < sy and 0 <= z < sz):
            return 0
        return int(self.grid[x, y, z])

    def march(self, ray: Ray, epsilon: float = EPSILON) -> MarchResult:
        """March a local-space ray through this model's grid."""
        return march(self.grid, ray, epsilon)

    def texture_bytes(self) -> bytes:
        """Get the grid in the R8 unsigned 3D texture layout."""
        return to_texture_bytes(self.grid)

    def palette_buffer(self) -> bytes:
        """Get the palette in the render-side buffer layout."""
        return self.palette.to_buffer()


def build_models(
    models: Iterable[SparseVoxels],
    palette: Palette,
    workers: Optional[int] = None
) -> List[VoxelModel]:
    """
    Build one VoxelModel per sparse voxel list.

    Args:
        models: Sparse voxel lists, one per exported model
        palette: Palette shared by all models
        workers: Thread count; None or 1 builds sequentially

    Returns:
        Models in input order
    """
    models = list(models)

    if workers is None or workers <= 1 or len(models) <= 1:
        return [VoxelModel.from_sparse(voxels, palette) for voxels in models]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(
            lambda voxels: VoxelModel.from_sparse(voxels, palette),
            models
        ))


def load_models(container, workers: Optional[int] = None) -> List[VoxelModel]:
    """
    Run ingestion for a parsed container.

    Args:
        container: Object with .models (sparse voxel lists) and .palette
            (packed 32-bit colors), e.g. a VoxContainer
        workers: Thread count for building models

    Returns:
        One VoxelModel per container model, all sharing one Palette
    """
    palette = decode_palette(container.palette)
    result = build_models(container.models, palette, workers)

    logger.info(
        "Loaded %d model(s): %s",
        len(result), ", ".join("x".join(str(s) for s in m.size) for m in result)
    )
    return result
