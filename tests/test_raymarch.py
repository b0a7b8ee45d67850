"""
Unit tests for grid DDA ray marching.
"""

import sys
from pathlib import Path
import numpy as np
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voxel_raymarch.raymarch import EPSILON, Hit, Miss, Ray, march, march_many


def cell_interval(cell, start, direction):
    """Exact parametric (t_enter, t_exit) of a ray inside one cell, or None."""
    t_enter, t_exit = 0.0, np.inf
    for a in range(3):
        lo, hi = float(cell[a]), float(cell[a]) + 1.0
        if direction[a] == 0:
            if not lo <= start[a] < hi:
                return None
            continue
        t1 = (lo - start[a]) / direction[a]
        t2 = (hi - start[a]) / direction[a]
        t_enter = max(t_enter, min(t1, t2))
        t_exit = min(t_exit, max(t1, t2))
    if t_exit < t_enter - 1e-9:
        return None
    return t_enter, t_exit


def first_entry(grid, start, direction):
    """Smallest entry distance over occupied cells the ray passes through."""
    best = None
    for cell in zip(*np.nonzero(grid)):
        interval = cell_interval(cell, start, direction)
        # Ignore cells the ray only grazes along an edge or corner
        if interval is None or interval[1] - interval[0] <= 1e-7:
            continue
        if best is None or interval[0] < best:
            best = interval[0]
    return best


class TestMarchScenarios(unittest.TestCase):
    """Tests for basic hit/miss behavior."""

    def test_ray_pointing_away(self):
        """Test that a ray leaving an empty grid misses."""
        grid = np.zeros((4, 4, 4), dtype=np.uint8)
        result = march(grid, Ray((-1.0, 2.0, 2.0), (-1.0, 0.0, 0.0)))

        assert isinstance(result, Miss)
        assert result.steps == 0

    def test_origin_inside_occupied_cell(self):
        """Test an immediate hit from the center of a filled cell."""
        grid = np.ones((1, 1, 1), dtype=np.uint8)
        result = march(grid, Ray((0.5, 0.5, 0.5), (0.0, 0.0, 1.0)))

        assert result == Hit(material_id=1, cell=(0, 0, 0), steps=0)

    def test_axis_aligned_walk(self):
        """Test a +x ray that only ever advances x."""
        grid = np.zeros((4, 1, 1), dtype=np.uint8)
        grid[3, 0, 0] = 1
        result = march(grid, Ray((0.0, 0.0, 0.0), (1.0, 0.0, 0.0)))

        assert isinstance(result, Hit)
        assert result.material_id == 1
        assert result.cell == (3, 0, 0)
        assert result.steps == 3

    def test_negative_direction(self):
        """Test a -x ray walking back to the first cell."""
        grid = np.zeros((4, 1, 1), dtype=np.uint8)
        grid[0, 0, 0] = 4
        result = march(grid, Ray((3.5, 0.5, 0.5), (-1.0, 0.0, 0.0)))

        assert result == Hit(material_id=4, cell=(0, 0, 0), steps=3)

    def test_empty_grid_traversal(self):
        """Test that a ray crossing an empty grid misses just past the far face."""
        grid = np.zeros((4, 1, 1), dtype=np.uint8)
        result = march(grid, Ray((0.5, 0.5, 0.5), (1.0, 0.0, 0.0)))

        assert isinstance(result, Miss)
        assert result.cell == (4, 0, 0)
        assert result.steps == 4

    def test_first_hit_wins(self):
        """Test that the nearest occupied cell is reported."""
        grid = np.zeros((6, 1, 1), dtype=np.uint8)
        grid[2, 0, 0] = 7
        grid[4, 0, 0] = 9
        result = march(grid, Ray((0.5, 0.5, 0.5), (1.0, 0.0, 0.0)))

        assert result.material_id == 7
        assert result.cell == (2, 0, 0)

    def test_origin_bias_on_boundary(self):
        """Test that an origin on a cell face starts in the cell ahead of it."""
        grid = np.zeros((4, 1, 1), dtype=np.uint8)
        grid[2, 0, 0] = 1

        forward = march(grid, Ray((2.0, 0.5, 0.5), (1.0, 0.0, 0.0)))
        assert forward == Hit(material_id=1, cell=(2, 0, 0), steps=0)

        backward = march(grid, Ray((2.0, 0.5, 0.5), (-1.0, 0.0, 0.0)))
        assert isinstance(backward, Miss)
        assert backward.cell == (-1, 0, 0)
        assert backward.steps == 2

    def test_entry_from_proxy_surface(self):
        """Test a ray starting on the grid's outer face."""
        grid = np.zeros((3, 3, 3), dtype=np.uint8)
        grid[1, 1, 2] = 5
        result = march(grid, Ray((1.5, 1.5, 3.0), (0.0, 0.0, -1.0)))

        assert result == Hit(material_id=5, cell=(1, 1, 2), steps=0)

    def test_zero_direction(self):
        """Test that a ray without direction samples its start cell only."""
        grid = np.zeros((3, 3, 3), dtype=np.uint8)
        assert march(grid, Ray((1.5, 1.5, 1.5), (0.0, 0.0, 0.0))) == Miss((1, 1, 1), 0)

        grid[1, 1, 1] = 2
        assert march(grid, Ray((1.5, 1.5, 1.5), (0.0, 0.0, 0.0))) == Hit(2, (1, 1, 1), 0)

    def test_diagonal_ray(self):
        """Test a diagonal ray reaching the far corner."""
        grid = np.zeros((3, 3, 3), dtype=np.uint8)
        grid[2, 2, 2] = 3
        direction = np.array([1.0, 1.0, 1.0]) / np.sqrt(3.0)
        result = march(grid, Ray((0.5, 0.5, 0.5), tuple(direction)))

        assert isinstance(result, Hit)
        assert result.cell == (2, 2, 2)
        assert result.steps == 6

    def test_bad_grid(self):
        """Test that the grid must be 3D."""
        with self.assertRaises(ValueError):
            march(np.zeros((4, 4), dtype=np.uint8), Ray((0, 0, 0), (1, 0, 0)))


class TestTieBreak(unittest.TestCase):
    """Tests for the fixed x, y, z advance order on equal tmax."""

    def test_x_before_y(self):
        """Test that x advances first when x and y tie."""
        grid = np.zeros((2, 2, 1), dtype=np.uint8)
        grid[1, 0, 0] = 2
        grid[0, 1, 0] = 3
        result = march(grid, Ray((0.0, 0.0, 0.5), (1.0, 1.0, 0.0)))

        assert result == Hit(material_id=2, cell=(1, 0, 0), steps=1)

    def test_y_before_z(self):
        """Test that y advances first when y and z tie."""
        grid = np.zeros((1, 2, 2), dtype=np.uint8)
        grid[0, 1, 0] = 2
        grid[0, 0, 1] = 3
        result = march(grid, Ray((0.5, 0.0, 0.0), (0.0, 1.0, 1.0)))

        assert result == Hit(material_id=2, cell=(0, 1, 0), steps=1)

    def test_x_before_z(self):
        """Test that x advances first when x and z tie."""
        grid = np.zeros((2, 1, 2), dtype=np.uint8)
        grid[1, 0, 0] = 2
        grid[0, 0, 1] = 3
        result = march(grid, Ray((0.0, 0.5, 0.0), (1.0, 0.0, 1.0)))

        assert result == Hit(material_id=2, cell=(1, 0, 0), steps=1)


class TestTermination(unittest.TestCase):
    """Tests for the W + H + D step bound."""

    def test_random_rays_match_reference(self):
        """Test random rays against exact cell intervals and exit counts."""
        rng = np.random.default_rng(42)

        for _ in range(20):
            size = tuple(int(s) for s in rng.integers(1, 12, size=3))
            grid = (rng.random(size) < 0.05).astype(np.uint8)

            for _ in range(100):
                origin = rng.uniform(0.0, size)
                direction = rng.normal(size=3)
                # Exercise axis-aligned and planar rays too
                direction[rng.random(3) < 0.2] = 0.0

                result = march(grid, Ray(tuple(origin), tuple(direction)))
                start = origin + direction * EPSILON
                cell = np.floor(start).astype(int)

                if np.any(cell < 0) or np.any(cell >= size):
                    assert result == Miss(tuple(int(c) for c in cell), 0)
                    continue

                # Cells left to cross on each moving axis before exiting
                exit_count = sum(
                    int(size[a] - cell[a]) if direction[a] > 0 else int(cell[a] + 1)
                    for a in range(3) if direction[a] != 0
                )
                assert result.steps <= exit_count

                first = first_entry(grid, start, direction)

                if isinstance(result, Hit):
                    assert grid[result.cell] == result.material_id
                    interval = cell_interval(result.cell, start, direction)
                    assert interval is not None
                    assert first is not None
                    assert interval[0] <= first + 1e-7
                elif not np.any(direction):
                    assert result.steps == 0
                    assert grid[tuple(cell)] == 0
                else:
                    assert first is None
                    out = np.array(result.cell)
                    assert np.any(out < 0) or np.any(out >= size)
                    # Each advance moves one axis by one cell
                    assert result.steps == int(np.abs(out - cell).sum())

    def test_long_empty_diagonal(self):
        """Test the bound on a ray crossing a whole empty grid."""
        grid = np.zeros((8, 5, 3), dtype=np.uint8)
        direction = np.array([8.0, 5.0, 3.0])
        direction /= np.linalg.norm(direction)
        result = march(grid, Ray((0.01, 0.01, 0.01), tuple(direction)))

        assert isinstance(result, Miss)
        assert result.steps <= 16

    def test_far_origin(self):
        """Test that a distant origin misses without raising."""
        grid = np.ones((4, 4, 4), dtype=np.uint8)
        result = march(grid, Ray((1e6, -1e6, 3e5), (0.0, 1.0, 0.0)))
        assert isinstance(result, Miss)


class TestMarchMany(unittest.TestCase):
    """Tests for batch marching."""

    def test_matches_single(self):
        """Test that batch results equal per-ray results."""
        rng = np.random.default_rng(5)
        grid = (rng.random((6, 7, 8)) < 0.1).astype(np.uint8) * 3

        origins = rng.uniform(0.0, 6.0, size=(200, 3))
        directions = rng.normal(size=(200, 3))
        directions[::7, 1] = 0.0

        ids = march_many(grid, origins, directions)
        assert ids.shape == (200,)

        for i in range(200):
            result = march(grid, Ray(tuple(origins[i]), tuple(directions[i])))
            expected = result.material_id if isinstance(result, Hit) else 0
            assert ids[i] == expected

    def test_read_only_grid(self):
        """Test batch marching over a read-only grid."""
        grid = np.zeros((4, 1, 1), dtype=np.uint8)
        grid[3, 0, 0] = 6
        grid.setflags(write=False)

        ids = march_many(
            grid,
            np.array([[0.5, 0.5, 0.5], [0.5, 0.5, 0.5]]),
            np.array([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]])
        )
        assert list(ids) == [6, 0]

    def test_shape_mismatch(self):
        """Test that origins and directions must pair up."""
        grid = np.zeros((2, 2, 2), dtype=np.uint8)
        with self.assertRaises(ValueError):
            march_many(grid, np.zeros((3, 3)), np.zeros((2, 3)))


class TestRay(unittest.TestCase):
    """Tests for ray construction."""

    def test_towards(self):
        """Test that towards() normalizes surface - camera."""
        ray = Ray.towards((0.0, 0.0, -5.0), (0.0, 0.0, 0.0))
        assert ray.origin == (0.0, 0.0, -5.0)
        assert ray.direction == (0.0, 0.0, 1.0)

        ray = Ray.towards((1.0, 2.0, 3.0), (4.0, 6.0, 3.0))
        assert np.allclose(ray.direction, (0.6, 0.8, 0.0))

    def test_towards_same_point(self):
        """Test that coincident points give a zero direction."""
        ray = Ray.towards((1.0, 1.0, 1.0), (1.0, 1.0, 1.0))
        assert ray.direction == (0.0, 0.0, 0.0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
