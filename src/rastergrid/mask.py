"""
Mask binding: restricting a grid to the valid footprint of another grid.

The subject grid never owns its mask. MaskBinder keeps a weak reference, so
the mask must stay alive for as long as the subject grid uses it; accessing a
mask that has been garbage-collected raises UninitializedAccessError.
"""

import logging
import weakref

import numpy as np

from src.rastergrid.exceptions import MaskMismatchError, UninitializedAccessError
from src.rastergrid.grid_store import is_nodata
from src.rastergrid.header import RasterHeader

logger = logging.getLogger(__name__)


class MaskBinder:
    """
    Non-owning link from a subject grid to its mask grid.

    The mask is any RasterData-like object exposing ``header``, ``positions``
    (a PositionIndex or None), ``to_dense()``, ``get_position()`` and
    ``get_value()``.
    """

    def __init__(self, mask=None):
        self._mask_ref = None
        if mask is not None:
            self.bind(mask)

    def bind(self, mask) -> None:
        """Record a weak reference to ``mask``."""
        self._mask_ref = weakref.ref(mask)
        logger.debug(f"Bound mask {mask!r}")

    @property
    def is_bound(self) -> bool:
        return self._mask_ref is not None

    @property
    def mask(self):
        """The bound mask grid, or None when nothing is bound."""
        if self._mask_ref is None:
            return None
        mask = self._mask_ref()
        if mask is None:
            raise UninitializedAccessError(
                "The bound mask no longer exists; a mask must outlive the grids bound to it"
            )
        return mask

    @property
    def header(self) -> RasterHeader:
        return self.mask.header

    def check(self, header: RasterHeader) -> None:
        """
        Ensure the mask lines up with a subject grid.

        Raises:
            MaskMismatchError: If rows, columns or cell size differ
        """
        mask_header = self.header
        if not mask_header.same_grid(header):
            raise MaskMismatchError(
                f"Mask grid ({mask_header.nrows} rows x {mask_header.ncols} cols, "
                f"cell size {mask_header.cell_size}) does not match subject grid "
                f"({header.nrows} rows x {header.ncols} cols, cell size {header.cell_size})"
            )

    def footprint(self) -> np.ndarray:
        """Boolean (nrows, ncols) array, True at every valid cell of the mask."""
        mask = self.mask
        mask_header = mask.header
        if mask.positions is not None:
            return mask.positions.valid_mask(mask_header.shape)

        dense = mask.to_dense(layer=0)
        return ~is_nodata(dense, mask_header.nodata_value)

    def contains(self, row: int, col: int) -> bool:
        """True if (row, col) is a valid cell of the mask."""
        mask = self.mask
        if mask.positions is not None:
            return mask.positions.index_of(row, col) != -1
        if mask.get_position(row, col) == -1:
            return False
        value = mask.get_value(row, col)
        return not bool(is_nodata(np.asarray(value), mask.header.nodata_value))
