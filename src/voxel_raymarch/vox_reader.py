"""
MagicaVoxel .vox Reader

The .vox format is a RIFF-style chunk-based binary format used by MagicaVoxel.
It stores voxels as sparse data with a 256-color palette.

File Structure:
- Header: "VOX " (4 bytes) + version (4 bytes, int32)
- MAIN chunk (container)
  - SIZE chunk: dimensions (x, y, z)            } repeated once
  - XYZI chunk: voxel data (x, y, z, color_index) } per model
  - RGBA chunk: 256-color palette
  - scene graph / material chunks (skipped)

This reader only decodes chunks into plain tuples and packed colors; turning
them into renderable models is the job of voxel_raymarch.model.

Notes:
- XYZI color indices are 1-255 and refer to palette slot i; they are
  returned as material indices 0-254 (index - 1)
- RGBA color i (0-based) belongs to palette slot i+1, so only the first 255
  of its 256 entries are kept
"""

from pathlib import Path
from typing import List, NamedTuple, Tuple, Union
import logging
import struct

logger = logging.getLogger(__name__)


# VOX format constants
VOX_MAGIC = b'VOX '
CHUNK_HEADER_SIZE = 12
PALETTE_ENTRIES = 256

# Used when a file carries no RGBA chunk: opaque black
DEFAULT_COLOR = 0xFF000000


class VoxContainer(NamedTuple):
    """Decoded container contents."""
    models: List[List[Tuple[int, int, int, int]]]  # (x, y, z, material_index)
    palette: List[int]                             # packed RGBA, <= 255 entries
    version: int = 150


def _parse_xyzi(content: bytes) -> List[Tuple[int, int, int, int]]:
    """Decode an XYZI chunk into (x, y, z, material_index) tuples."""
    if len(content) < 4:
        raise ValueError("Truncated XYZI chunk")

    num_voxels = struct.unpack('<I', content[:4])[0]
    if len(content) < 4 + num_voxels * 4:
        raise ValueError(
            f"XYZI chunk declares {num_voxels} voxels but holds "
            f"{(len(content) - 4) // 4}"
        )

    voxels = []
    for i in range(num_voxels):
        offset = 4 + i * 4
        x, y, z, color_index = struct.unpack('<BBBB', content[offset:offset + 4])
        voxels.append((x, y, z, color_index - 1))
    return voxels


def _parse_rgba(content: bytes) -> List[int]:
    """Decode an RGBA chunk into packed colors for palette slots 1-255."""
    if len(content) < PALETTE_ENTRIES * 4:
        raise ValueError("Truncated RGBA chunk")

    colors = struct.unpack(f'<{PALETTE_ENTRIES}I', content[:PALETTE_ENTRIES * 4])
    return list(colors[:PALETTE_ENTRIES - 1])


def parse_vox(data: bytes) -> VoxContainer:
    """
    Decode .vox file bytes.

    Args:
        data: Complete file contents

    Returns:
        VoxContainer with one voxel list per model and the packed palette
    """
    if len(data) < 8 or data[:4] != VOX_MAGIC:
        raise ValueError(f"Invalid VOX file: bad magic {data[:4]!r}")

    version = struct.unpack('<i', data[4:8])[0]

    def read_chunk(offset: int):
        if offset + CHUNK_HEADER_SIZE > len(data):
            raise ValueError(f"Truncated chunk header at offset {offset}")
        chunk_id = data[offset:offset + 4]
        content_size, children_size = struct.unpack(
            '<II', data[offset + 4:offset + CHUNK_HEADER_SIZE]
        )
        start = offset + CHUNK_HEADER_SIZE
        content = data[start:start + content_size]
        if len(content) < content_size:
            raise ValueError(f"Truncated {chunk_id!r} chunk at offset {offset}")
        return chunk_id, content, children_size, start + content_size

    main_id, _, main_children_size, offset = read_chunk(8)
    if main_id != b'MAIN':
        raise ValueError("Expected MAIN chunk")

    end = min(offset + main_children_size, len(data))
    models = []
    palette = None
    pending_size = None

    while offset < end:
        chunk_id, content, children_size, offset = read_chunk(offset)

        if chunk_id == b'SIZE':
            if len(content) < 12:
                raise ValueError("Truncated SIZE chunk")
            pending_size = struct.unpack('<III', content[:12])
        elif chunk_id == b'XYZI':
            if pending_size is None:
                raise ValueError("XYZI chunk without a preceding SIZE chunk")
            models.append(_parse_xyzi(content))
            pending_size = None
        elif chunk_id == b'RGBA':
            palette = _parse_rgba(content)
        else:
            logger.debug("Skipping %r chunk (%d bytes)", chunk_id, len(content))

        # Skip children bytes if any
        offset += children_size

    if palette is None:
        logger.warning("No RGBA chunk found; using default palette")
        palette = [DEFAULT_COLOR] * (PALETTE_ENTRIES - 1)

    logger.debug("Read %d model(s) from VOX version %d", len(models), version)
    return VoxContainer(models, palette, version)


def read_vox(file_path: Union[str, Path]) -> VoxContainer:
    """
    Load a .vox file.

    Args:
        file_path: Path to .vox file

    Returns:
        VoxContainer with models and packed palette
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"VOX file not found: {file_path}")

    with open(file_path, 'rb') as f:
        return parse_vox(f.read())
