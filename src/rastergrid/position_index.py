"""
Valid-cell compaction and (row, col) <-> index mapping.

Compaction scans a dense grid in row-major order and keeps the cells that
hold data (and, when a footprint is given, that lie inside it). The kept
values form the compacted array; their (row, col) pairs form a PositionIndex,
so ``positions[i]`` is always the grid cell whose value sits at index ``i``.

Coordinate helpers convert between real-world (x, y) and (row, col) using a
RasterHeader's cell-centre origin.
"""

import logging
import math
from typing import Optional, Tuple

import numpy as np

from src.rastergrid.exceptions import CoordinateOutOfRangeError
from src.rastergrid.grid_store import is_nodata
from src.rastergrid.header import RasterHeader

logger = logging.getLogger(__name__)


class PositionIndex:
    """
    Row-major ordered (row, col) pairs of the valid cells of a grid.

    Lookups by (row, col) go through a dict, so ``index_of`` is O(1).

    Attributes:
        positions: Integer array of shape (n, 2), one (row, col) per cell
    """

    def __init__(self, positions: np.ndarray):
        positions = np.array(positions, dtype=np.int64).reshape(-1, 2)
        self.positions = positions
        self.positions.flags.writeable = False
        self._lookup = {
            (int(row), int(col)): i for i, (row, col) in enumerate(positions.tolist())
        }
        if len(self._lookup) != len(positions):
            raise ValueError("PositionIndex contains duplicate (row, col) pairs")

    @classmethod
    def from_valid_mask(cls, valid: np.ndarray) -> "PositionIndex":
        """Build an index from a boolean (nrows, ncols) array of kept cells."""
        rows, cols = np.nonzero(valid)
        return cls(np.column_stack((rows, cols)))

    def __len__(self) -> int:
        return self.positions.shape[0]

    def __contains__(self, row_col) -> bool:
        return tuple(row_col) in self._lookup

    @property
    def rows(self) -> np.ndarray:
        return self.positions[:, 0]

    @property
    def cols(self) -> np.ndarray:
        return self.positions[:, 1]

    def index_of(self, row: int, col: int) -> int:
        """Compacted index of (row, col), or -1 if the cell is not in the index."""
        return self._lookup.get((int(row), int(col)), -1)

    def row_col(self, index: int) -> Tuple[int, int]:
        """(row, col) stored at a compacted index."""
        row, col = self.positions[index]
        return int(row), int(col)

    def valid_mask(self, shape: Tuple[int, int]) -> np.ndarray:
        """Boolean (nrows, ncols) array, True at every indexed cell."""
        valid = np.zeros(shape, dtype=bool)
        valid[self.rows, self.cols] = True
        return valid

    def scatter(self, values: np.ndarray, shape: Tuple[int, int], fill) -> np.ndarray:
        """
        Re-expand compacted values into a dense grid.

        Args:
            values: Compacted values, shape (n,) or (n, layers)
            shape: (nrows, ncols) of the dense grid
            fill: Value for cells that are not in the index

        Returns:
            Dense array of shape (nrows, ncols), or (layers, nrows, ncols) for
            multi-layer values
        """
        values = np.asarray(values)
        if values.shape[0] != len(self):
            raise ValueError(
                f"Got {values.shape[0]} values for an index of {len(self)} cells"
            )
        if values.ndim == 1:
            dense = np.full(shape, fill, dtype=values.dtype)
            dense[self.rows, self.cols] = values
            return dense

        dense = np.full((values.shape[1],) + tuple(shape), fill, dtype=values.dtype)
        dense[:, self.rows, self.cols] = values.T
        return dense


def compact(
    dense: np.ndarray,
    nodata_value: float,
    footprint: Optional[np.ndarray] = None,
    keep_footprint_nodata: bool = False,
) -> Tuple[np.ndarray, PositionIndex]:
    """
    Compact a dense grid into its valid cells.

    A cell is dropped when it holds the no-data value (for multi-layer grids:
    when every layer holds it), or when a footprint is given and the cell
    lies outside it. With ``keep_footprint_nodata`` every cell inside the
    footprint is kept, no-data or not, so grids compacted against the same
    mask share one index.

    Args:
        dense: (nrows, ncols) array, or band-first (layers, nrows, ncols)
        nodata_value: No-data sentinel
        footprint: Optional boolean (nrows, ncols) array of allowed cells
        keep_footprint_nodata: Keep no-data cells inside the footprint

    Returns:
        tuple: (values, index) where values has shape (n,) or (n, layers)
    """
    dense = np.asarray(dense)
    if dense.ndim not in (2, 3):
        raise ValueError(f"Dense grid must be 2D or 3D, got shape {dense.shape}")

    nodata = is_nodata(dense, nodata_value)
    if dense.ndim == 3:
        nodata = nodata.all(axis=0)

    if footprint is not None:
        if footprint.shape != nodata.shape:
            raise ValueError(
                f"Footprint shape {footprint.shape} does not match grid shape {nodata.shape}"
            )
        keep = footprint if keep_footprint_nodata else footprint & ~nodata
    else:
        keep = ~nodata

    index = PositionIndex.from_valid_mask(keep)
    if dense.ndim == 2:
        values = dense[keep]
    else:
        # (layers, n) -> (n, layers)
        values = dense[:, keep].T.copy()

    logger.debug(
        f"Compacted {nodata.size} cells to {len(index)} "
        f"({int(nodata.sum())} no-data, footprint={'yes' if footprint is not None else 'no'})"
    )
    return values, index


def coordinate_to_row_col(header: RasterHeader, x: float, y: float) -> Tuple[int, int]:
    """
    (row, col) of the cell containing (x, y).

    The extent is the closed box [xmin, xmax] x [ymin, ymax]; points on the
    right or bottom edge belong to the last column or row.

    Raises:
        CoordinateOutOfRangeError: If (x, y) is outside the extent
    """
    if not (header.xmin <= x <= header.xmax):
        raise CoordinateOutOfRangeError(
            f"x coordinate {x} is outside [{header.xmin}, {header.xmax}]"
        )
    if not (header.ymin <= y <= header.ymax):
        raise CoordinateOutOfRangeError(
            f"y coordinate {y} is outside [{header.ymin}, {header.ymax}]"
        )

    row = int(math.floor((header.ymax - y) / header.cell_size))
    col = int(math.floor((x - header.xmin) / header.cell_size))
    return min(row, header.nrows - 1), min(col, header.ncols - 1)


def row_col_to_coordinate(header: RasterHeader, row: int, col: int) -> Tuple[float, float]:
    """(x, y) of the centre of cell (row, col)."""
    x = header.xll_center + col * header.cell_size
    y = header.yll_center + (header.nrows - row - 1) * header.cell_size
    return x, y
