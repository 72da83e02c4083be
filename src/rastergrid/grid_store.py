"""
Compacted value storage for raster grids.

A GridStore owns one numpy buffer holding either one value per cell (shape
``(n,)``) or a fixed number of layer values per cell (shape ``(n, layers)``).
Cells are addressed by their compacted index.
"""

import logging

import numpy as np

from src import config
from src.rastergrid.exceptions import IndexOutOfRangeError, LayerOutOfRangeError

logger = logging.getLogger(__name__)


def is_nodata(values: np.ndarray, nodata_value: float) -> np.ndarray:
    """
    Boolean array marking entries equal to the no-data sentinel.

    Integer arrays compare exactly. Float arrays compare with an absolute
    tolerance of ``config.FLOAT_TOLERANCE``, and a NaN sentinel matches NaN.

    Args:
        values: Array of any shape
        nodata_value: Sentinel value

    Returns:
        Boolean array with the same shape as ``values``
    """
    values = np.asarray(values)
    if np.issubdtype(values.dtype, np.integer):
        if not np.isfinite(nodata_value):
            return np.zeros(values.shape, dtype=bool)
        return values == nodata_value
    return np.isclose(
        values,
        nodata_value,
        rtol=0.0,
        atol=config.FLOAT_TOLERANCE,
        equal_nan=True,
    )


class GridStore:
    """
    Owned, bounds-checked buffer of compacted cell values.

    Attributes:
        values: numpy array of shape (n,) or (n, layers)
    """

    def __init__(self, values: np.ndarray):
        values = np.asarray(values)
        if values.ndim not in (1, 2):
            raise ValueError(f"GridStore values must be 1D or 2D, got shape {values.shape}")
        # Own the buffer so callers' arrays are never modified through the store
        self.values = np.array(values, copy=True)

    def __len__(self) -> int:
        return self.values.shape[0]

    @property
    def is_multilayer(self) -> bool:
        return self.values.ndim == 2

    @property
    def layers(self) -> int:
        return self.values.shape[1] if self.is_multilayer else 1

    @property
    def dtype(self) -> np.dtype:
        return self.values.dtype

    def check_index(self, index: int) -> None:
        if index < 0 or index >= len(self):
            raise IndexOutOfRangeError(
                f"Cell index {index} is out of range, the grid holds {len(self)} cells"
            )

    def check_layer(self, layer: int) -> None:
        if layer < 0 or layer >= self.layers:
            raise LayerOutOfRangeError(
                f"Layer {layer} is out of range, the grid has {self.layers} layer(s)"
            )

    def get(self, index: int, layer: int = 0):
        """Value of one layer at a compacted index."""
        self.check_layer(layer)
        self.check_index(index)
        if self.is_multilayer:
            return self.values[index, layer]
        return self.values[index]

    def get_cell(self, index: int) -> np.ndarray:
        """New array of length ``layers`` with every layer's value at ``index``."""
        self.check_index(index)
        if self.is_multilayer:
            return self.values[index].copy()
        return np.array([self.values[index]], dtype=self.dtype)

    def set(self, index: int, value, layer: int = 0) -> None:
        self.check_layer(layer)
        self.check_index(index)
        if self.is_multilayer:
            self.values[index, layer] = value
        else:
            self.values[index] = value

    def layer_values(self, layer: int = 0) -> np.ndarray:
        """Read-only view of one layer across all cells."""
        self.check_layer(layer)
        view = self.values[:, layer] if self.is_multilayer else self.values[:]
        view.flags.writeable = False
        return view
