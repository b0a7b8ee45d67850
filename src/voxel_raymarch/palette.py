"""
Palette Decoding Module

Handles:
- Unpacking 32-bit RGBA color tables into normalized float colors
- The 256-slot material table with slot 0 reserved for "empty"
- The render-side palette buffer layout

Palette Background:
- MagicaVoxel stores up to 255 colors; color i lives in palette slot i+1
- Slot 0 is never a visible material, it marks empty space in the grid
- Grid values and palette slots share the same +1 shift, so a grid value v
  always reads Palette[v]
"""

from typing import Iterable, NamedTuple, Tuple
import logging
import numpy as np

logger = logging.getLogger(__name__)


PALETTE_SIZE = 256
MAX_COLORS = PALETTE_SIZE - 1  # slot 0 is the empty sentinel
EMPTY_COLOR = (0.0, 0.0, 0.0, 0.0)

# Bytes per palette record in the render-side buffer: albedo (vec3) + roughness
PALETTE_RECORD_BYTES = 16
DEFAULT_ROUGHNESS = 1.0


class Material(NamedTuple):
    """A single palette entry."""
    color: Tuple[float, float, float, float]  # RGBA in [0, 1]


def unpack_colors(raw_colors: Iterable[int]) -> np.ndarray:
    """
    Split packed 32-bit colors into byte channels.

    Byte 0 is red, byte 1 green, byte 2 blue and byte 3 alpha, i.e. the
    value a little-endian uint32 read of an (R, G, B, A) byte quad yields.

    Args:
        raw_colors: Packed color values (masked to 32 bits)

    Returns:
        uint8 array of shape (N, 4)
    """
    packed = np.array(
        [int(c) & 0xFFFFFFFF for c in raw_colors],
        dtype=np.uint32
    )
    channels = np.empty((len(packed), 4), dtype=np.uint8)
    for i in range(4):
        channels[:, i] = (packed >> np.uint32(8 * i)) & np.uint32(0xFF)
    return channels


class Palette:
    """
    Fixed 256-entry material table.

    The palette is shared read-only by every model decoded from the same
    source file; its color array is flagged non-writeable after construction.
    """

    def __init__(self, colors: np.ndarray):
        """
        Initialize the palette.

        Args:
            colors: float32 array of shape (256, 4) with RGBA in [0, 1]
        """
        colors = np.array(colors, dtype=np.float32)
        if colors.shape != (PALETTE_SIZE, 4):
            raise ValueError(
                f"Palette must have shape ({PALETTE_SIZE}, 4), got {colors.shape}"
            )
        colors.setflags(write=False)
        self._colors = colors

    @property
    def colors(self) -> np.ndarray:
        """Get the read-only (256, 4) RGBA array."""
        return self._colors

    def __len__(self) -> int:
        return PALETTE_SIZE

    def __getitem__(self, index: int) -> Material:
        return Material(tuple(float(c) for c in self._colors[index]))

    def to_buffer(self, roughness: float = DEFAULT_ROUGHNESS) -> bytes:
        """
        Pack the palette into the render-side buffer layout.

        Each of the 256 records is 16 bytes of little-endian float32:
        (r, g, b, roughness). Alpha is not part of the shading record.

        Args:
            roughness: Roughness written for every slot

        Returns:
            4096 bytes
        """
        records = np.empty((PALETTE_SIZE, 4), dtype="<f4")
        records[:, :3] = self._colors[:, :3]
        records[:, 3] = roughness
        return records.tobytes()


def decode_palette(raw_colors: Iterable[int]) -> Palette:
    """
    Decode a packed color table into a Palette.

    Color i of the input is written to slot i+1. Anything past 255 colors is
    dropped and a short table leaves the remaining slots empty.

    Args:
        raw_colors: Ordered packed 32-bit RGBA values

    Returns:
        Palette with slot 0 set to the empty sentinel
    """
    raw_colors = list(raw_colors)
    if len(raw_colors) > MAX_COLORS:
        logger.debug(
            "Dropping %d palette entries beyond %d",
            len(raw_colors) - MAX_COLORS, MAX_COLORS
        )
        raw_colors = raw_colors[:MAX_COLORS]

    colors = np.zeros((PALETTE_SIZE, 4), dtype=np.float32)
    colors[0] = EMPTY_COLOR

    if raw_colors:
        channels = unpack_colors(raw_colors)
        colors[1:1 + len(channels)] = channels.astype(np.float32) / 255.0

    return Palette(colors)
