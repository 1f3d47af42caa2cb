"""
Tile index remapping: replace, resize and convert

=============================================================================
OPERATIONS
=============================================================================

Exactly one operation runs per invocation. Each one mutates the map in
place (or not at all) and returns the Shape the result is written with.

REPLACE (find, replace)
    Every non-empty cell whose logical index equals 'find' is rewritten
    to point at logical index 'replace'. Empty cells (GID 0) are never
    touched.

        grid [[0, 5, 6]], find=4, replace=9  ->  [[0, 10, 6]]

RESIZE (tilecount, columns)
    The tileset image was reflowed to a different width. A tile keeps its
    (row, column) position in the image, so its index must be re-derived
    with the new stride:

        old columns = 8, new columns = 4

        +---+---+---+---+---+---+---+---+       +---+---+---+---+
        | 0 | 1 | 2 | 3 | 4 | 5 | 6 | 7 |       | 0 | 1 | 2 | 3 |
        +---+---+---+---+---+---+---+---+  ->   +---+---+---+---+
        | 8 | 9 |...                            | 4 | 5 |...
                                                (4..7 fell off the row)

        GID 9 (logical 8, row 1 col 0) -> 9 + (8 // 8) * (4 - 8) = 5

    Only cells with GID >= old columns are rewritten; smaller GIDs are in
    the first image row and keep their index. Afterwards the tileset's
    columns and tilecount are overwritten.

CONVERT
    No grid change. Selects the JSON shape.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image as PILImage

from .codec import UINT32_MAX, to_gid, to_logical
from .errors import RemapError
from .model import Tileset, TiledMap
from .shapes import JsonShape, Shape, XmlShape

logger = logging.getLogger(__name__)


def _write_row(row: list, values: np.ndarray):
    """Store remapped values back into a grid row, checking the u32 range."""
    if values.size and (values.min() < 0 or values.max() > UINT32_MAX):
        raise RemapError("remapped tile index does not fit in 32 bits")
    row[:] = values.tolist()


def replace_tiles(tiled_map: TiledMap, find: int, replace: int) -> int:
    """
    Point every cell showing tile 'find' at tile 'replace'.

    Parameters:
    -----------
    find, replace : int
        Logical (zero-based) tile indexes in the consulted tileset

    Returns:
    --------
    int : number of cells changed

    Raises:
    -------
    MissingTilesetError : If the map has no tileset
    """
    firstgid = tiled_map.primary_tileset.firstgid
    replace_gid = to_gid(replace, firstgid)

    changed = 0
    for layer in tiled_map.iter_tile_layers():
        for row in layer.data.grid:
            values = np.asarray(row, dtype=np.int64)
            mask = (values != 0) & (to_logical(values, firstgid) == find)
            if mask.any():
                values[mask] = replace_gid
                _write_row(row, values)
                changed += int(mask.sum())

    logger.info("replace %d -> %d: %d cells changed", find, replace, changed)
    return changed


def resize_tileset(tiled_map: TiledMap, tilecount: int, columns: int) -> int:
    """
    Re-derive every GID after the tileset image changed its column count.

    For each cell with GID >= old columns:

        gid += (logical(gid) // old_columns) * (columns - old_columns)

    then the tileset's columns and tilecount are replaced.

    Returns:
    --------
    int : number of cells changed

    Raises:
    -------
    MissingTilesetError : If the map has no tileset
    RemapError : If the tileset has no column count or a result is out of range
    """
    tileset = tiled_map.primary_tileset
    old_columns = tileset.columns
    if old_columns <= 0:
        raise RemapError(f"tileset '{tileset.name}' has no column count to resize from")
    if columns <= 0:
        raise RemapError(f"new column count must be positive, got {columns}")

    changed = 0
    for layer in tiled_map.iter_tile_layers():
        for row in layer.data.grid:
            values = np.asarray(row, dtype=np.int64)
            mask = (values >= old_columns) & (values >= tileset.firstgid)
            if not mask.any():
                continue
            logical = to_logical(values[mask], tileset.firstgid)
            delta = (logical // old_columns) * (columns - old_columns)
            changed += int(np.count_nonzero(delta))
            values[mask] += delta
            _write_row(row, values)

    logger.info("resize columns %d -> %d, tilecount %d -> %d: %d cells changed",
                old_columns, columns, tileset.tilecount, tilecount, changed)

    tileset.columns = columns
    tileset.tilecount = tilecount
    return changed


def measure_tileset_image(tileset: Tileset, image_path: Union[str, Path]) -> Tuple[int, int, int, int]:
    """
    Work out a tileset's grid from a (reflowed) image file.

    Tiles are laid out as in Tiled:

        columns = (width  - 2 * margin + spacing) // (tilewidth  + spacing)
        rows    = (height - 2 * margin + spacing) // (tileheight + spacing)

    Returns:
    --------
    (tilecount, columns, image width, image height)
    """
    if tileset.tilewidth <= 0 or tileset.tileheight <= 0:
        raise RemapError(f"tileset '{tileset.name}' has no tile size")

    with PILImage.open(image_path) as img:
        width, height = img.size

    columns = (width - 2 * tileset.margin + tileset.spacing) // (tileset.tilewidth + tileset.spacing)
    rows = (height - 2 * tileset.margin + tileset.spacing) // (tileset.tileheight + tileset.spacing)
    if columns <= 0 or rows <= 0:
        raise RemapError(
            f"image {image_path} ({width}x{height}) is smaller than one "
            f"{tileset.tilewidth}x{tileset.tileheight} tile"
        )
    return columns * rows, columns, width, height


# =============================================================================
# OPERATION OBJECTS
# =============================================================================

class Operation:
    """One edit applied to a loaded map. apply() returns the output shape."""

    def apply(self, tiled_map: TiledMap) -> Shape:
        raise NotImplementedError


@dataclass
class Replace(Operation):
    find: int
    replace: int

    def apply(self, tiled_map: TiledMap) -> Shape:
        replace_tiles(tiled_map, self.find, self.replace)
        return XmlShape()


@dataclass
class Resize(Operation):
    """
    Resize the consulted tileset to a new column count.

    Either give tilecount and columns directly, or point image_path at the
    reflowed tileset image and let them be measured. In the second case the
    tileset's <image> width and height are updated as well once the grids
    have been remapped, and its source too when set_source is true. The new
    source is written relative to map_dir, the directory of the map file.
    """
    tilecount: Optional[int] = None
    columns: Optional[int] = None
    image_path: Optional[Path] = None
    set_source: bool = False
    map_dir: Optional[Path] = None

    def apply(self, tiled_map: TiledMap) -> Shape:
        if self.image_path is None:
            if self.tilecount is None or self.columns is None:
                raise RemapError("resize needs tilecount and columns, or an image to measure")
            resize_tileset(tiled_map, self.tilecount, self.columns)
            return XmlShape()

        tileset = tiled_map.primary_tileset
        tilecount, columns, width, height = measure_tileset_image(tileset, self.image_path)
        logger.info("measured %s: %dx%d px, %d columns, %d tiles",
                    self.image_path, width, height, columns, tilecount)

        resize_tileset(tiled_map, tilecount, columns)

        if tileset.image is not None:
            tileset.image.width = width
            tileset.image.height = height
            if self.set_source:
                tileset.image.source = self.relative_source()
        return XmlShape()

    def relative_source(self) -> str:
        """Path of the new image as seen from the map's directory, '/'-separated."""
        start = self.map_dir if self.map_dir is not None else Path.cwd()
        return Path(os.path.relpath(self.image_path, start)).as_posix()


@dataclass
class Convert(Operation):
    def apply(self, tiled_map: TiledMap) -> Shape:
        return JsonShape()
