"""
CPU Reference Render Loop

Renders a VoxelModel the way the GPU path does, on the CPU:
1. Build one ray per pixel from a pinhole camera in model-local space
2. Clip each ray against the model's bounding-box proxy [0, size]
3. March from the proxy surface point through the dense grid
4. Shade hits with the palette, misses with the background

The proxy box only serves as a canvas: rays that miss it never reach the
marcher, and rays that hit it start on its surface (or at the camera when
the camera sits inside the box).

Coordinate system: model-local, one unit per cell, Y-up for the camera.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union
import logging
import math
import numpy as np
from PIL import Image

from .raymarch import EPSILON, NO_CROSSING, march_many

logger = logging.getLogger(__name__)


# Default camera placement in model space
DEFAULT_CAMERA = (50.0, 100.0, -40.0)
WORLD_UP = (0.0, 1.0, 0.0)


@dataclass
class RenderConfig:
    """
    Settings for the reference renderer.

    Attributes:
        width, height: Output image size in pixels
        fov_degrees: Vertical field of view
        camera_position: Camera position in model-local space
        target: Look-at point; None aims at the model center
        background: RGBA (0-255) for pixels whose ray misses
        epsilon: Origin bias passed to the marcher
    """

    width: int = 256
    height: int = 256
    fov_degrees: float = 70.0
    camera_position: Tuple[float, float, float] = DEFAULT_CAMERA
    target: Optional[Tuple[float, float, float]] = None
    background: Tuple[int, int, int, int] = (0, 0, 0, 0)
    epsilon: float = EPSILON

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Image size must be positive, got {self.width}x{self.height}"
            )
        if not 0.0 < self.fov_degrees < 180.0:
            raise ValueError(f"Field of view must be in (0, 180), got {self.fov_degrees}")


def _normalize(v: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(v, axis=-1, keepdims=True)
    return np.where(norm > 0, v / np.where(norm > 0, norm, 1.0), 0.0)


def camera_basis(
    camera_position: Sequence[float],
    target: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Build an orthonormal (right, up, forward) camera basis.

    Falls back to +Z as the reference up vector when looking straight along Y.
    """
    forward = np.asarray(target, dtype=np.float64) - np.asarray(camera_position, dtype=np.float64)
    if not np.any(forward):
        raise ValueError("Camera position and target coincide")
    forward = forward / np.linalg.norm(forward)

    up = np.array(WORLD_UP)
    if abs(float(np.dot(forward, up))) > 0.999:
        up = np.array([0.0, 0.0, 1.0])

    right = np.cross(forward, up)
    right = right / np.linalg.norm(right)
    true_up = np.cross(right, forward)

    return right, true_up, forward


def intersect_box(
    origin: np.ndarray,
    directions: np.ndarray,
    size: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Slab test of rays sharing one origin against the box [0, size].

    Args:
        origin: Shared ray origin (3,)
        directions: Ray directions (N, 3)
        size: Box extent (x, y, z)

    Returns:
        (t_enter, hit) where t_enter >= 0 is the parametric entry distance and
        hit flags rays that reach the box
    """
    size = np.asarray(size, dtype=np.float64)
    origin = np.asarray(origin, dtype=np.float64)

    moving = np.abs(directions) > 0.0
    safe = np.where(moving, directions, 1.0)
    t1 = (0.0 - origin) / safe
    t2 = (size - origin) / safe

    # Axes without motion either always overlap the slab or never do
    inside = (origin >= 0.0) & (origin <= size)
    t_lo = np.where(moving, np.minimum(t1, t2), np.where(inside, -NO_CROSSING, NO_CROSSING))
    t_hi = np.where(moving, np.maximum(t1, t2), np.where(inside, NO_CROSSING, -NO_CROSSING))

    t_enter = np.maximum(t_lo.max(axis=1), 0.0)
    t_exit = t_hi.min(axis=1)
    return t_enter, t_enter <= t_exit


def camera_rays(
    size: Sequence[int],
    config: RenderConfig
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Build proxy-clipped rays for every pixel.

    Args:
        size: Model grid dimensions
        config: Render settings

    Returns:
        (origins, directions, valid) with shapes (H*W, 3), (H*W, 3), (H*W,)
        in row-major pixel order. Origins are proxy surface points and
        directions are normalize(surface_point - camera_position).
    """
    camera = np.asarray(config.camera_position, dtype=np.float64)
    target = config.target
    if target is None:
        target = np.asarray(size, dtype=np.float64) / 2.0

    right, up, forward = camera_basis(camera, target)

    aspect = config.width / config.height
    half_height = math.tan(math.radians(config.fov_degrees) / 2.0)
    half_width = half_height * aspect

    xs = ((np.arange(config.width) + 0.5) / config.width * 2.0 - 1.0) * half_width
    ys = (1.0 - (np.arange(config.height) + 0.5) / config.height * 2.0) * half_height
    px, py = np.meshgrid(xs, ys)

    directions = (
        forward[np.newaxis, :] +
        px.reshape(-1, 1) * right[np.newaxis, :] +
        py.reshape(-1, 1) * up[np.newaxis, :]
    )
    directions = _normalize(directions)

    t_enter, valid = intersect_box(camera, directions, size)
    origins = camera[np.newaxis, :] + t_enter[:, np.newaxis] * directions
    # Entry points can round just outside the box on a non-entry axis
    origins[valid] = np.clip(origins[valid], 0.0, np.asarray(size, dtype=np.float64))

    return origins, directions, valid


def render_material_ids(model, config: Optional[RenderConfig] = None) -> np.ndarray:
    """
    March every pixel ray and collect material ids.

    Args:
        model: VoxelModel to render
        config: Render settings (defaults apply when None)

    Returns:
        uint8 array of shape (height, width); 0 where nothing was hit
    """
    config = config or RenderConfig()
    origins, directions, valid = camera_rays(model.size, config)

    ids = np.zeros(len(origins), dtype=np.uint8)
    if np.any(valid):
        ids[valid] = march_many(
            model.grid, origins[valid], directions[valid], config.epsilon
        )

    logger.debug(
        "Marched %d of %d pixel rays, %d hit",
        int(np.count_nonzero(valid)), len(origins), int(np.count_nonzero(ids))
    )
    return ids.reshape(config.height, config.width)


def shade(ids: np.ndarray, palette, background=(0, 0, 0, 0)) -> np.ndarray:
    """
    Turn material ids into RGBA pixels.

    Args:
        ids: Material id image (H, W)
        palette: Palette the ids index into
        background: RGBA (0-255) for id 0

    Returns:
        uint8 image of shape (H, W, 4)
    """
    colors = np.asarray(palette.colors)[ids]
    image = np.clip(colors * 255.0 + 0.5, 0, 255).astype(np.uint8)
    image[ids == 0] = np.asarray(background, dtype=np.uint8)
    return image


def render_model(model, config: Optional[RenderConfig] = None) -> np.ndarray:
    """
    Render a model to an RGBA image.

    Args:
        model: VoxelModel to render
        config: Render settings

    Returns:
        uint8 image of shape (height, width, 4)
    """
    config = config or RenderConfig()
    ids = render_material_ids(model, config)
    return shade(ids, model.palette, config.background)


def save_image(image: np.ndarray, output_path: Union[str, Path]):
    """
    Save an RGBA image as PNG.

    Args:
        image: uint8 array of shape (H, W, 4)
        output_path: Output file path
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(image, dtype=np.uint8)).save(output_path)
