"""
Raster grid container package.

Core functionality:
- RasterData class for loading, masking and compacting grids to their valid cells
- PositionIndex and compact() for (row, col) <-> index mapping
- Text grid (ASCII) and GeoTIFF readers/writers
- RasterArchive for on-disk storage of parsed grids
"""

from .header import RasterHeader
from .grid_store import GridStore, is_nodata
from .position_index import (
    PositionIndex,
    compact,
    coordinate_to_row_col,
    row_col_to_coordinate,
)
from .mask import MaskBinder
from .statistics import RasterStatistics, compute_statistics
from .ascii_io import read_ascii_grid, write_ascii_grid
from .geotiff_io import read_geotiff, write_geotiff
from .archive import RasterArchive
from .raster import RasterData, read_raster
from .exceptions import (
    RasterError,
    MalformedHeaderError,
    TruncatedBodyError,
    MalformedBodyError,
    InvalidHeaderError,
    MaskMismatchError,
    IndexOutOfRangeError,
    LayerOutOfRangeError,
    CoordinateOutOfRangeError,
    UninitializedAccessError,
)

__all__ = [
    "RasterData",
    "read_raster",
    "RasterHeader",
    "GridStore",
    "is_nodata",
    "PositionIndex",
    "compact",
    "coordinate_to_row_col",
    "row_col_to_coordinate",
    "MaskBinder",
    "RasterStatistics",
    "compute_statistics",
    "read_ascii_grid",
    "write_ascii_grid",
    "read_geotiff",
    "write_geotiff",
    "RasterArchive",
    "RasterError",
    "MalformedHeaderError",
    "TruncatedBodyError",
    "MalformedBodyError",
    "InvalidHeaderError",
    "MaskMismatchError",
    "IndexOutOfRangeError",
    "LayerOutOfRangeError",
    "CoordinateOutOfRangeError",
    "UninitializedAccessError",
]
