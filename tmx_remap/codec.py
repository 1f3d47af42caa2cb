"""
CSV tile grid codec and GID conversions.

=============================================================================
CSV TILE DATA
=============================================================================

Tiled stores a tile layer's grid as comma separated GIDs inside <data>:

    <data encoding="csv">
    1,2,3,
    4,5,6
    </data>

Rows end with a comma followed by a newline. The last row has no trailing
comma. When decoding we split on ",\\n" first and parse every chunk as CSV
records, so both Tiled's layout and plain newline separated rows are
accepted.

When encoding we write rows separated by a bare newline with no trailing
comma or newline after the final cell:

    [[1, 2], [3, 4]]  ->  "1,2\\n3,4"

=============================================================================
GID CONVENTION
=============================================================================

    GID 0      = empty cell
    GID N > 0  = logical tile index N - firstgid

to_logical() and to_gid() are the only places that arithmetic is written
down. Everything else goes through them.

=============================================================================
"""

import csv
import re
from typing import Iterable, List

from .errors import GridDecodeError, GridEncodeError

# A grid is a list of rows, each row a list of GIDs
Grid = List[List[int]]

ROW_DELIMITER = ",\n"
UINT32_MAX = 0xFFFFFFFF

_DIGITS = re.compile(r"[0-9]+")


def _parse_cell(token: str) -> int:
    """Parse one CSV token as an unsigned 32-bit integer. No padding is allowed."""
    if not _DIGITS.fullmatch(token):
        raise GridDecodeError(f"invalid tile index {token!r}")
    value = int(token)
    if value > UINT32_MAX:
        raise GridDecodeError(f"tile index {token} does not fit in 32 bits")
    return value


def decode(text: str) -> Grid:
    """
    Decode CSV tile data into a grid of GIDs.

    Parameters:
    -----------
    text : str
        Contents of a <data encoding="csv"> element

    Returns:
    --------
    Grid : list of rows, each a list of ints

    Raises:
    -------
    GridDecodeError : If any token is not a valid unsigned 32-bit integer
    """
    grid: Grid = []
    for chunk in text.split(ROW_DELIMITER):
        # Indentation around each line is layout, spaces inside a line are not
        lines = (line.strip() for line in chunk.splitlines())
        for record in csv.reader(lines):
            # Blank lines around the blob (Tiled writes one before and after)
            if not record:
                continue
            grid.append([_parse_cell(field) for field in record])
    return grid


def encode(grid: Iterable[Iterable[int]]) -> str:
    """
    Encode a grid of GIDs as CSV text.

    Cells are comma separated, rows newline separated, and nothing follows
    the final cell.
    """
    lines = []
    for row in grid:
        cells = []
        for cell in row:
            value = int(cell)
            if not 0 <= value <= UINT32_MAX:
                raise GridEncodeError(f"tile index {value} does not fit in 32 bits")
            cells.append(str(value))
        lines.append(",".join(cells))
    return "\n".join(lines)


def flatten(grid: Grid) -> List[int]:
    """Return every cell of the grid in row-major order."""
    return [cell for row in grid for cell in row]


def to_logical(gid: int, firstgid: int = 1) -> int:
    """
    Convert a non-empty GID to its zero-based index in the tileset.

    GID 0 has no logical index. Callers filter it out first; the function
    also works element-wise on numpy arrays.
    """
    return gid - firstgid


def to_gid(index: int, firstgid: int = 1) -> int:
    """Convert a zero-based tileset index to the GID stored in a grid."""
    return index + firstgid
