"""
Dense Grid Construction

This module provides:
- compute_bounds: Tight per-axis bounding box of a sparse voxel list
- build_dense_grid: Scatter sparse voxels into a zero-based dense uint8 grid

Sparse voxels are (x, y, z, material_index) rows with signed coordinates and
material indices in 0-254. The dense grid stores material_index + 1 so that
0 can mean "empty" and a cell value v reads palette slot v.

Memory consideration: the grid is one byte per cell, so a 256³ model is
16 MB - trivial next to the per-pixel work of marching it.
"""

from typing import NamedTuple, Optional, Sequence, Tuple, Union
import logging
import numpy as np
from numba import njit

logger = logging.getLogger(__name__)


MAX_MATERIAL_INDEX = 254

SparseVoxels = Union[np.ndarray, Sequence[Tuple[int, int, int, int]]]


class BoundingBox(NamedTuple):
    """Inclusive integer bounds of a sparse voxel set."""
    min_x: int
    max_x: int
    min_y: int
    max_y: int
    min_z: int
    max_z: int

    @property
    def size(self) -> Tuple[int, int, int]:
        """Get the grid dimensions (x, y, z) covering these bounds."""
        return (
            self.max_x - self.min_x + 1,
            self.max_y - self.min_y + 1,
            self.max_z - self.min_z + 1,
        )

    @property
    def origin(self) -> Tuple[int, int, int]:
        """Get the minimum corner."""
        return (self.min_x, self.min_y, self.min_z)


def as_voxel_array(voxels: SparseVoxels) -> np.ndarray:
    """
    Normalize sparse voxel input to an int64 array of shape (N, 4).

    Args:
        voxels: Sequence of (x, y, z, material_index) tuples or an (N, 4) array

    Returns:
        Contiguous int64 array
    """
    array = np.asarray(voxels, dtype=np.int64)
    if array.size == 0:
        return np.zeros((0, 4), dtype=np.int64)
    if array.ndim != 2 or array.shape[1] != 4:
        raise ValueError(
            f"Voxels must have shape (N, 4) as (x, y, z, index), got {array.shape}"
        )
    return np.ascontiguousarray(array)


@njit(cache=True)
def _scan_bounds(voxels: np.ndarray) -> np.ndarray:
    """Single pass running min/max over the coordinate columns."""
    bounds = np.empty(6, dtype=np.int64)
    for axis in range(3):
        bounds[2 * axis] = voxels[0, axis]
        bounds[2 * axis + 1] = voxels[0, axis]

    for i in range(1, voxels.shape[0]):
        for axis in range(3):
            value = voxels[i, axis]
            if value < bounds[2 * axis]:
                bounds[2 * axis] = value
            if value > bounds[2 * axis + 1]:
                bounds[2 * axis + 1] = value

    return bounds


@njit(cache=True)
def _scatter(
    grid: np.ndarray,
    voxels: np.ndarray,
    min_x: int, min_y: int, min_z: int
):
    """Write index + 1 for every voxel at its translated cell."""
    for i in range(voxels.shape[0]):
        x = voxels[i, 0] - min_x
        y = voxels[i, 1] - min_y
        z = voxels[i, 2] - min_z
        grid[x, y, z] = voxels[i, 3] + 1


def compute_bounds(voxels: SparseVoxels) -> Optional[BoundingBox]:
    """
    Compute the tightest axis-aligned box containing all voxels.

    Args:
        voxels: Sparse voxel rows (x, y, z, material_index)

    Returns:
        BoundingBox, or None when there are no voxels
    """
    array = as_voxel_array(voxels)
    if len(array) == 0:
        return None

    b = _scan_bounds(array)
    return BoundingBox(*(int(v) for v in b))


def clamp_material_indices(voxels: np.ndarray) -> np.ndarray:
    """
    Clamp material indices into 0-254.

    A corrupt index only affects its own voxel instead of failing the model.

    Args:
        voxels: int64 array of shape (N, 4)

    Returns:
        The same array when all indices are valid, otherwise a clamped copy
    """
    indices = voxels[:, 3]
    clamped = np.clip(indices, 0, MAX_MATERIAL_INDEX)
    bad = int(np.count_nonzero(clamped != indices))
    if bad == 0:
        return voxels

    logger.warning(
        "Clamped %d voxel(s) with material index outside 0-%d",
        bad, MAX_MATERIAL_INDEX
    )
    voxels = voxels.copy()
    voxels[:, 3] = clamped
    return voxels


def build_dense_grid(
    voxels: SparseVoxels,
    bounds: Optional[BoundingBox]
) -> np.ndarray:
    """
    Build a dense material grid from sparse voxels.

    Args:
        voxels: Sparse voxel rows (x, y, z, material_index)
        bounds: Bounds from compute_bounds(); None builds the empty 1x1x1 grid

    Returns:
        uint8 array of shape bounds.size where 0 is empty and v > 0 is
        palette slot v
    """
    array = as_voxel_array(voxels)

    if bounds is None:
        if len(array) > 0:
            raise ValueError("Bounds are required for a non-empty voxel set")
        return np.zeros((1, 1, 1), dtype=np.uint8)

    coords = array[:, :3]
    if len(array) > 0 and (
        np.any(coords.min(axis=0) < bounds.origin) or
        np.any(coords.max(axis=0) > (bounds.max_x, bounds.max_y, bounds.max_z))
    ):
        raise ValueError(f"Voxels fall outside the given bounds {bounds}")

    grid = np.zeros(bounds.size, dtype=np.uint8)
    if len(array) > 0:
        _scatter(grid, clamp_material_indices(array), *bounds.origin)

    return grid


def to_texture_bytes(grid: np.ndarray) -> bytes:
    """
    Serialize a grid as an R8 unsigned 3D texture.

    One byte per cell, x varying fastest, then y, then z.

    Args:
        grid: uint8 array of shape (X, Y, Z)

    Returns:
        X*Y*Z bytes
    """
    return np.asarray(grid, dtype=np.uint8).tobytes(order="F")
