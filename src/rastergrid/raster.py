"""
RasterData: a compacted, randomly addressable raster grid.

Loads a dense grid (text grid, GeoTIFF, archive, or in-memory array),
optionally restricts it to the footprint of a mask grid, and compacts it to
its valid cells. Cells can then be addressed by compacted index, by
(row, col), or by (x, y) coordinate.

Lookup policy:
- Explicit-index APIs (``get_value_by_index``, ``get_cell_values``,
  ``set_value_by_index``) raise on bad indices or layers.
- Row/col and coordinate value lookups (``get_value``, ``get_cell_values_at``)
  return the NODATA value for cells outside the grid, outside the mask, or
  without data.
- ``set_value`` on a cell that is not stored (NODATA, outside the mask, or
  outside the grid) does nothing and returns False. Writes to such cells are
  dropped, not reported as errors.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from tqdm import tqdm

from src import config
from src.rastergrid.archive import RasterArchive
from src.rastergrid.ascii_io import read_ascii_grid, write_ascii_grid
from src.rastergrid.exceptions import (
    CoordinateOutOfRangeError,
    InvalidHeaderError,
    UninitializedAccessError,
)
from src.rastergrid.geotiff_io import read_geotiff, write_geotiff
from src.rastergrid.grid_store import GridStore, is_nodata
from src.rastergrid.header import RasterHeader
from src.rastergrid.mask import MaskBinder
from src.rastergrid.position_index import (
    PositionIndex,
    compact,
    coordinate_to_row_col,
    row_col_to_coordinate,
)
from src.rastergrid.statistics import RasterStatistics, compute_statistics

logger = logging.getLogger(__name__)


def read_raster(
    path: Union[str, Path],
    dtype=config.DEFAULT_DTYPE,
    archive: Optional[RasterArchive] = None,
) -> Tuple[RasterHeader, np.ndarray]:
    """
    Read a raster file into (header, dense), choosing the reader by extension.

    ``.asc`` files use the text grid reader; anything else is read through
    rasterio. When an archive is given, the parsed result is cached in it and
    reused until the source file changes.

    Args:
        path: Raster file path
        dtype: numpy dtype of the returned values
        archive: Optional RasterArchive used as a load cache

    Returns:
        tuple: (header, dense)
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"The file {path} does not exist or is not readable")

    archive_name = None
    if archive is not None and archive.enabled:
        archive_name = f"source_{archive.compute_source_hash(path, dtype)}"
        cached = archive.load(archive_name)
        if cached is not None:
            header, dense = cached
            return header, dense.astype(dtype, copy=False)

    suffix = path.suffix.lower().lstrip(".")
    if suffix in config.ASCII_EXTENSIONS:
        header, dense = read_ascii_grid(path, dtype=dtype)
    else:
        header, dense = read_geotiff(path, dtype=dtype)

    if archive_name is not None:
        archive.save(archive_name, header, dense)

    return header, dense


class RasterData:
    """
    Raster grid holding only its valid cells plus a (row, col) position index.

    Attributes:
        filename (Path): Source file, or None for grids built from arrays
        excludes_nodata (bool): Whether cells were compacted (NODATA removed)
        use_mask_extent (bool): Keep every cell inside the mask, NODATA or not

    Examples:
        >>> dem = RasterData("dem.asc")
        >>> dem.cell_count
        541
        >>> float(dem.get_value(2, 4))
        8.06
        >>> dem.get_position_by_coordinate(4.05, 37.95)
        29
        >>> basin = RasterData("basin_mask.asc", dtype="int32")  # keep a reference
        >>> soil = RasterData("soil.asc", mask=basin)
        >>> soil.cell_count == basin.cell_count
        True
    """

    def __init__(
        self,
        filename: Union[str, Path, None] = None,
        mask: Optional["RasterData"] = None,
        calc_positions: bool = True,
        use_mask_extent: bool = True,
        dtype=config.DEFAULT_DTYPE,
        archive: Optional[RasterArchive] = None,
    ) -> None:
        """
        Load a raster grid.

        Args:
            filename: Raster file (.asc text grid or a rasterio-readable file).
                If None, an empty grid is created and every query raises
                UninitializedAccessError until it is loaded.
            mask: Grid whose valid cells restrict this grid. Not copied and
                not owned: the mask must stay alive while this grid is used.
            calc_positions: Compact the grid to its valid cells (default: True).
                When False, values stay in full row-major order.
            use_mask_extent: With a mask, keep every cell inside the mask even
                if it holds NODATA, so grids sharing a mask share one index
                (default: True)
            dtype: numpy dtype of the cell values (default: float32)
            archive: Optional RasterArchive used as a load cache

        Raises:
            FileNotFoundError: If the file does not exist
            MalformedHeaderError, TruncatedBodyError, MalformedBodyError,
            InvalidHeaderError: If the file cannot be parsed
            MaskMismatchError: If the mask does not line up with the grid
        """
        self.filename = Path(filename) if filename is not None else None
        self.excludes_nodata = calc_positions
        self.use_mask_extent = use_mask_extent

        self._header: Optional[RasterHeader] = None
        self._store: Optional[GridStore] = None
        self._positions: Optional[PositionIndex] = None
        self._mask = MaskBinder()
        self._stats_cache: Dict[int, RasterStatistics] = {}

        if self.filename is not None:
            header, dense = read_raster(self.filename, dtype=dtype, archive=archive)
            self._load(header, dense, mask)

    @classmethod
    def from_array(
        cls,
        data: np.ndarray,
        header: RasterHeader,
        mask: Optional["RasterData"] = None,
        calc_positions: bool = True,
        use_mask_extent: bool = True,
    ) -> "RasterData":
        """
        Build a grid from a dense array and a header.

        Args:
            data: (nrows, ncols) array, or band-first (layers, nrows, ncols)
            header: Header describing ``data``; copied, not shared

        Returns:
            RasterData
        """
        raster = cls(calc_positions=calc_positions, use_mask_extent=use_mask_extent)
        raster._load(header.copy(), data, mask)
        return raster

    @classmethod
    def from_layer_files(
        cls,
        filenames: Sequence[Union[str, Path]],
        mask: Optional["RasterData"] = None,
        calc_positions: bool = True,
        use_mask_extent: bool = True,
        dtype=config.DEFAULT_DTYPE,
        archive: Optional[RasterArchive] = None,
    ) -> "RasterData":
        """
        Stack several single-layer raster files into one multi-layer grid.

        Every file must share dimensions, origin, cell size and NODATA value.

        Raises:
            ValueError: If no files are given
            InvalidHeaderError: If the files' headers differ
        """
        if not filenames:
            raise ValueError("No layer files given")

        header = None
        layers = []
        with tqdm(filenames, desc="Reading layer files") as pbar:
            for filename in pbar:
                layer_header, dense = read_raster(filename, dtype=dtype, archive=archive)
                if dense.ndim != 2:
                    raise InvalidHeaderError(f"{filename} has more than one band")
                if header is None:
                    header = layer_header
                elif layer_header.to_fields() != header.to_fields():
                    raise InvalidHeaderError(
                        f"Header of {filename} differs from the first layer file"
                    )
                layers.append(dense)
                pbar.set_postfix({"layers": len(layers)})

        header.layers = len(layers)
        raster = cls(calc_positions=calc_positions, use_mask_extent=use_mask_extent)
        raster._load(header, np.stack(layers), mask)
        return raster

    @classmethod
    def from_archive(
        cls,
        archive: RasterArchive,
        name: str,
        mask: Optional["RasterData"] = None,
        calc_positions: bool = True,
        use_mask_extent: bool = True,
    ) -> "RasterData":
        """
        Build a grid from an archive entry.

        Raises:
            FileNotFoundError: If the archive holds no entry called ``name``
        """
        loaded = archive.load(name)
        if loaded is None:
            raise FileNotFoundError(f"No archived raster named '{name}' in {archive.archive_dir}")
        header, dense = loaded
        raster = cls(calc_positions=calc_positions, use_mask_extent=use_mask_extent)
        raster._load(header, dense, mask)
        return raster

    def _load(self, header: RasterHeader, dense: np.ndarray, mask: Optional["RasterData"]) -> None:
        """Bind the mask, then compact ``dense`` into the store and position index."""
        dense = np.array(dense, copy=True)
        if dense.ndim == 2:
            header.layers = 1
        elif dense.ndim == 3:
            header.layers = dense.shape[0]
        else:
            raise ValueError(f"Raster data must be 2D or 3D, got shape {dense.shape}")
        if dense.shape[-2:] != header.shape:
            raise InvalidHeaderError(
                f"Data shape {dense.shape[-2:]} does not match header shape {header.shape}"
            )
        nodata_value = mask.header.nodata_value if mask is not None else header.nodata_value
        if np.issubdtype(dense.dtype, np.integer) and not np.isfinite(nodata_value):
            raise InvalidHeaderError(
                f"NODATA value {nodata_value} cannot be stored in an integer grid ({dense.dtype})"
            )

        footprint = None
        if mask is not None:
            self._mask.bind(mask)
            self._mask.check(header)
            mask_header = self._mask.header
            if not _same_nodata(header.nodata_value, mask_header.nodata_value):
                dense[is_nodata(dense, header.nodata_value)] = mask_header.nodata_value
            header.copy_from(mask_header)
            footprint = self._mask.footprint()

        if self.excludes_nodata:
            values, positions = compact(
                dense,
                header.nodata_value,
                footprint=footprint,
                keep_footprint_nodata=self.use_mask_extent and footprint is not None,
            )
        else:
            if footprint is not None:
                dense[..., ~footprint] = header.nodata_value
            values = dense.reshape(-1) if dense.ndim == 2 else dense.reshape(header.layers, -1).T
            positions = None

        self._header = header
        self._store = GridStore(values)
        self._positions = positions
        self._stats_cache.clear()

        logger.info(f"Raster loaded{f' from {self.filename.name}' if self.filename else ''}:")
        logger.info(f"  Shape: {header.nrows} x {header.ncols}, layers: {header.layers}")
        logger.info(
            f"  Cells stored: {len(self._store)}"
            f"{' (NODATA excluded)' if self.excludes_nodata else ' (full grid)'}"
            f"{', masked' if mask is not None else ''}"
        )

    # ------------------------------------------------------------------
    # Header and layout

    def _require_loaded(self) -> None:
        if self._store is None:
            raise UninitializedAccessError("Please first load the raster before querying it")

    @property
    def is_loaded(self) -> bool:
        return self._store is not None

    @property
    def header(self) -> RasterHeader:
        """Grid header. With a mask bound, its georeferencing is the mask's."""
        self._require_loaded()
        return self._header

    @property
    def mask(self) -> Optional["RasterData"]:
        return self._mask.mask

    @property
    def positions(self) -> Optional[PositionIndex]:
        """Position index of the stored cells, or None when NODATA is not excluded."""
        self._require_loaded()
        return self._positions

    @property
    def ncols(self) -> int:
        return self.header.ncols

    @property
    def nrows(self) -> int:
        return self.header.nrows

    @property
    def cell_size(self) -> float:
        return self.header.cell_size

    @property
    def xll_center(self) -> float:
        return self.header.xll_center

    @property
    def yll_center(self) -> float:
        return self.header.yll_center

    @property
    def dtype(self) -> np.dtype:
        self._require_loaded()
        return self._store.dtype

    @property
    def nodata_value(self):
        """NODATA sentinel in the grid's dtype."""
        return self.dtype.type(self.header.nodata_value)

    @property
    def layers(self) -> int:
        self._require_loaded()
        return self._store.layers

    @property
    def is_multilayer(self) -> bool:
        self._require_loaded()
        return self._store.is_multilayer

    @property
    def cell_count(self) -> int:
        """Number of stored cells (valid cells, or nrows * ncols when not compacted)."""
        self._require_loaded()
        return len(self._store)

    def __len__(self) -> int:
        return self.cell_count

    @property
    def values(self) -> np.ndarray:
        """Read-only view of the stored values, shape (n,) or (n, layers)."""
        self._require_loaded()
        view = self._store.values.view()
        view.flags.writeable = False
        return view

    def __repr__(self) -> str:
        if self._store is None:
            return "RasterData(<empty>)"
        return (
            f"RasterData({self.nrows}x{self.ncols}, layers={self.layers}, "
            f"cells={self.cell_count}, dtype={self.dtype})"
        )

    # ------------------------------------------------------------------
    # Positions and coordinates

    def get_position(self, row: int, col: int) -> int:
        """
        Index of cell (row, col) in the stored values.

        Returns:
            The index, or -1 when the cell is not stored (NODATA, outside the
            mask, or outside the grid)
        """
        self._require_loaded()
        if self._positions is not None:
            return self._positions.index_of(row, col)
        if 0 <= row < self._header.nrows and 0 <= col < self._header.ncols:
            return row * self._header.ncols + col
        return -1

    def coordinate_to_row_col(self, x: float, y: float) -> Tuple[int, int]:
        """
        (row, col) of the cell containing (x, y).

        Raises:
            CoordinateOutOfRangeError: If (x, y) is outside the grid extent
        """
        return coordinate_to_row_col(self.header, x, y)

    def row_col_to_coordinate(self, row: int, col: int) -> Tuple[float, float]:
        """(x, y) of the centre of cell (row, col)."""
        return row_col_to_coordinate(self.header, row, col)

    def get_position_by_coordinate(self, x: float, y: float) -> int:
        """
        Index of the cell containing (x, y), or -1 if that cell is not stored.

        Raises:
            CoordinateOutOfRangeError: If (x, y) is outside the grid extent
        """
        row, col = self.coordinate_to_row_col(x, y)
        return self.get_position(row, col)

    # ------------------------------------------------------------------
    # Values

    def get_value_by_index(self, index: int, layer: int = 0):
        """
        Value of one layer at a stored-cell index.

        Raises:
            IndexOutOfRangeError: If index is negative or >= cell_count
            LayerOutOfRangeError: If layer is negative or >= layers
            UninitializedAccessError: If the raster was never loaded
        """
        self._require_loaded()
        return self._store.get(index, layer)

    def get_cell_values(self, index: int) -> np.ndarray:
        """New array with the value of every layer at a stored-cell index."""
        self._require_loaded()
        return self._store.get_cell(index)

    def get_value(self, row: int, col: int, layer: int = 0):
        """
        Value of one layer at (row, col), or NODATA when the cell is not stored.

        Raises:
            LayerOutOfRangeError: If layer is negative or >= layers
        """
        self._require_loaded()
        self._store.check_layer(layer)
        index = self.get_position(row, col)
        if index == -1:
            return self.nodata_value
        return self._store.get(index, layer)

    def get_value_by_coordinate(self, x: float, y: float, layer: int = 0):
        """Value at (x, y); NODATA when the point is outside the grid or the cell is not stored."""
        self._require_loaded()
        self._store.check_layer(layer)
        try:
            row, col = self.coordinate_to_row_col(x, y)
        except CoordinateOutOfRangeError:
            return self.nodata_value
        return self.get_value(row, col, layer)

    def get_cell_values_at(self, row: int, col: int) -> np.ndarray:
        """New array with every layer's value at (row, col), NODATA-filled when not stored."""
        self._require_loaded()
        index = self.get_position(row, col)
        if index == -1:
            return np.full(self.layers, self.nodata_value, dtype=self.dtype)
        return self._store.get_cell(index)

    def set_value(self, row: int, col: int, value, layer: int = 0) -> bool:
        """
        Overwrite the value of one layer at (row, col).

        Cells that are not stored (NODATA cells removed by compaction, cells
        outside the mask, cells outside the grid) cannot be written: the call
        is ignored and returns False.

        Returns:
            True if a stored cell was updated, False if the write was dropped

        Raises:
            LayerOutOfRangeError: If layer is negative or >= layers
        """
        self._require_loaded()
        self._store.check_layer(layer)
        index = self.get_position(row, col)
        if index == -1:
            logger.debug(f"Ignoring write to ({row}, {col}): cell is not stored")
            return False
        self._store.set(index, value, layer)
        self._stats_cache.clear()
        return True

    def set_value_by_index(self, index: int, value, layer: int = 0) -> None:
        """
        Overwrite the value of one layer at a stored-cell index.

        Raises:
            IndexOutOfRangeError: If index is negative or >= cell_count
            LayerOutOfRangeError: If layer is negative or >= layers
        """
        self._require_loaded()
        self._store.set(index, value, layer)
        self._stats_cache.clear()

    def to_dense(self, layer: Optional[int] = None) -> np.ndarray:
        """
        Re-expand stored values to the full grid, NODATA where cells are not stored.

        Args:
            layer: Single layer to expand. If None, all layers: (nrows, ncols)
                for single-layer grids, (layers, nrows, ncols) otherwise.
        """
        self._require_loaded()
        if layer is not None:
            values = self._store.layer_values(layer)
        else:
            values = self._store.values

        if self._positions is not None:
            return self._positions.scatter(values, self._header.shape, self._header.nodata_value)
        if values.ndim == 1:
            return values.reshape(self._header.shape).copy()
        return values.T.reshape((values.shape[1],) + self._header.shape).copy()

    # ------------------------------------------------------------------
    # Statistics

    def statistics(self, layer: int = 0) -> RasterStatistics:
        """
        Count, mean, min, max, std and range of one layer, skipping NODATA.

        Cached until the next value change.
        """
        self._require_loaded()
        self._store.check_layer(layer)
        if layer not in self._stats_cache:
            self._stats_cache[layer] = compute_statistics(
                self._store.layer_values(layer), self._header.nodata_value
            )
        return self._stats_cache[layer]

    def get_average(self, layer: int = 0) -> float:
        return self.statistics(layer).mean

    # ------------------------------------------------------------------
    # Output

    def write_ascii(self, filename: Union[str, Path]) -> List[Path]:
        """
        Write the grid as a text grid, NODATA where cells are not stored.

        Multi-layer grids are written as one file per layer, named
        ``<stem>_<layer+1><suffix>``.

        Returns:
            List of written file paths
        """
        self._require_loaded()
        return write_ascii_grid(self._header, self._positions, self._store.values, filename)

    def write_geotiff(self, filename: Union[str, Path], crs: Optional[str] = None) -> Path:
        """Write the grid as a GeoTIFF with one band per layer."""
        self._require_loaded()
        return write_geotiff(self._header, self.to_dense(), filename, crs=crs)

    def save_to_archive(self, archive: RasterArchive, name: str):
        """Store the re-expanded grid in an archive under ``name``."""
        self._require_loaded()
        return archive.save(name, self._header, self.to_dense())

    @staticmethod
    def lookup_with_template(template: "RasterData", values: np.ndarray, row: int, col: int):
        """
        Value at (row, col) of an array laid out like ``template``'s stored cells.

        Returns:
            ``values[template.get_position(row, col)]``, or the template's
            NODATA value when the cell is not stored
        """
        index = template.get_position(row, col)
        if index == -1:
            return template.nodata_value
        return values[index]

    @staticmethod
    def write_ascii_with_template(
        template: "RasterData", values: np.ndarray, filename: Union[str, Path]
    ) -> List[Path]:
        """Write ``values`` (laid out like ``template``'s stored cells) using the template's header."""
        return write_ascii_grid(template.header, template.positions, values, filename)


def _same_nodata(a: float, b: float) -> bool:
    if np.isnan(a) and np.isnan(b):
        return True
    return a == b
