"""
Grid DDA Ray Marching with Numba JIT Compilation

This module walks rays cell-by-cell through a dense material grid and reports
the first non-empty cell. It is the CPU counterpart of the fragment-shader
marcher: the grid is sampled with exact integer lookups, never interpolated.

Algorithm Overview:
1. Bias: Nudge the origin along the ray so it does not sit on a cell face
2. Setup: Per-axis step sign, distance to the next boundary (tmax) and
   distance to cross one cell (tdelta)
3. Walk: Bounds-check, sample, then advance the axis with the smallest tmax
   (ties go to x, then y, then z)

Every iteration advances exactly one axis by one cell and the bounds are
checked before every sample, so a W x H x D grid is left after at most
W + H + D advances.
"""

from typing import NamedTuple, Sequence, Tuple, Union
import math
import numpy as np
from numba import njit, prange


# Origin bias along the ray direction, in cells
EPSILON = 1e-4

# Direction components smaller than this are treated as zero
DIRECTION_EPS = 1e-12

# Parametric distance used for axes that never advance
NO_CROSSING = 1e30


class Ray(NamedTuple):
    """A ray in model-local space, where one unit is one grid cell."""
    origin: Tuple[float, float, float]
    direction: Tuple[float, float, float]

    @classmethod
    def towards(
        cls,
        start: Sequence[float],
        target: Sequence[float]
    ) -> "Ray":
        """
        Build a ray from start pointing at target.

        The direction is normalize(target - start). When the points coincide
        the direction is zero and the ray only samples its start cell.

        Args:
            start: Ray origin (e.g. a point on the proxy box surface)
            target: Point the ray heads for

        Returns:
            Ray with unit-length direction
        """
        start = np.asarray(start, dtype=np.float64)
        delta = np.asarray(target, dtype=np.float64) - start
        length = float(np.linalg.norm(delta))
        if length > 0.0:
            delta = delta / length
        return cls(tuple(float(v) for v in start), tuple(float(v) for v in delta))


class Hit(NamedTuple):
    """The ray stopped in a non-empty cell."""
    material_id: int
    cell: Tuple[int, int, int]
    steps: int


class Miss(NamedTuple):
    """The ray left the grid without touching a voxel."""
    cell: Tuple[int, int, int]
    steps: int


MarchResult = Union[Hit, Miss]


@njit(cache=True)
def _axis_setup(origin: float, direction: float, cell: int) -> Tuple[int, float, float]:
    """
    Compute (step, tmax, tdelta) for one axis.

    An axis without motion gets NO_CROSSING for both distances so it is
    never picked for advancing.
    """
    if direction > DIRECTION_EPS:
        inv = 1.0 / direction
        return 1, ((cell + 1.0) - origin) * inv, inv
    elif direction < -DIRECTION_EPS:
        inv = -1.0 / direction
        return -1, (origin - cell) * inv, inv
    return 0, NO_CROSSING, NO_CROSSING


@njit(cache=True)
def _march_kernel(
    grid: np.ndarray,
    ox: float, oy: float, oz: float,
    dx: float, dy: float, dz: float,
    epsilon: float
) -> Tuple[int, int, int, int, int]:
    """
    March one ray through the grid.

    Returns:
        (material_id, x, y, z, steps); material_id 0 means the ray missed
        and (x, y, z) is the first cell outside the grid
    """
    sx, sy, sz = grid.shape

    px = ox + dx * epsilon
    py = oy + dy * epsilon
    pz = oz + dz * epsilon

    x = int(math.floor(px))
    y = int(math.floor(py))
    z = int(math.floor(pz))

    step_x, tmax_x, tdelta_x = _axis_setup(px, dx, x)
    step_y, tmax_y, tdelta_y = _axis_setup(py, dy, y)
    step_z, tmax_z, tdelta_z = _axis_setup(pz, dz, z)

    stationary = step_x == 0 and step_y == 0 and step_z == 0
    max_steps = sx + sy + sz
    steps = 0

    while True:
        if x < 0 or x >= sx or y < 0 or y >= sy or z < 0 or z >= sz:
            return 0, x, y, z, steps

        value = grid[x, y, z]
        if value != 0:
            return int(value), x, y, z, steps

        if stationary or steps >= max_steps:
            return 0, x, y, z, steps

        if tmax_x <= tmax_y and tmax_x <= tmax_z:
            x += step_x
            tmax_x += tdelta_x
        elif tmax_y <= tmax_z:
            y += step_y
            tmax_y += tdelta_y
        else:
            z += step_z
            tmax_z += tdelta_z
        steps += 1


@njit(cache=True, parallel=True)
def _march_batch(
    grid: np.ndarray,
    origins: np.ndarray,
    directions: np.ndarray,
    epsilon: float
) -> np.ndarray:
    """March N rays in parallel; returns material ids (0 = miss)."""
    n = origins.shape[0]
    result = np.zeros(n, dtype=np.uint8)

    for i in prange(n):
        hit = _march_kernel(
            grid,
            origins[i, 0], origins[i, 1], origins[i, 2],
            directions[i, 0], directions[i, 1], directions[i, 2],
            epsilon
        )
        result[i] = hit[0]

    return result


def _check_grid(grid: np.ndarray):
    if grid.ndim != 3:
        raise ValueError(f"Grid must be 3D, got shape {grid.shape}")


def march(grid: np.ndarray, ray: Ray, epsilon: float = EPSILON) -> MarchResult:
    """
    Find the first non-empty cell along a ray.

    Never raises for any ray: a ray that starts outside the grid, points
    away from it, or passes only through empty cells is a Miss.

    Args:
        grid: Dense uint8 material grid of shape (X, Y, Z)
        ray: Ray in grid-local space
        epsilon: Origin bias along the direction

    Returns:
        Hit with the cell's material id, or Miss
    """
    _check_grid(grid)
    ox, oy, oz = (float(v) for v in ray.origin)
    dx, dy, dz = (float(v) for v in ray.direction)

    material_id, x, y, z, steps = _march_kernel(
        grid, ox, oy, oz, dx, dy, dz, epsilon
    )
    if material_id == 0:
        return Miss((x, y, z), steps)
    return Hit(material_id, (x, y, z), steps)


def march_many(
    grid: np.ndarray,
    origins: np.ndarray,
    directions: np.ndarray,
    epsilon: float = EPSILON
) -> np.ndarray:
    """
    March a batch of rays.

    Args:
        grid: Dense uint8 material grid of shape (X, Y, Z)
        origins: Array of shape (N, 3)
        directions: Array of shape (N, 3)
        epsilon: Origin bias along each direction

    Returns:
        uint8 array of shape (N,) with material ids, 0 where the ray missed
    """
    _check_grid(grid)
    origins = np.ascontiguousarray(origins, dtype=np.float64).reshape(-1, 3)
    directions = np.ascontiguousarray(directions, dtype=np.float64).reshape(-1, 3)
    if origins.shape != directions.shape:
        raise ValueError(
            f"Origins {origins.shape} and directions {directions.shape} differ"
        )

    return _march_batch(grid, origins, directions, epsilon)
