"""
Raster header: dimensions, georeferencing and no-data sentinel of a grid.

Origins are always stored in cell-centre form (XLLCENTER / YLLCENTER). Readers
that see corner-form keys shift the origin by half a cell before building a
header.
"""

import logging
import math
from dataclasses import dataclass, fields
from typing import Mapping

from affine import Affine

from src.rastergrid.exceptions import InvalidHeaderError, MalformedHeaderError

logger = logging.getLogger(__name__)

# Header keys as they appear in text grid files
HEADER_NCOLS = "NCOLS"
HEADER_NROWS = "NROWS"
HEADER_XLL = "XLLCENTER"
HEADER_YLL = "YLLCENTER"
HEADER_XLL_CORNER = "XLLCORNER"
HEADER_YLL_CORNER = "YLLCORNER"
HEADER_CELLSIZE = "CELLSIZE"
HEADER_NODATA = "NODATA_VALUE"
HEADER_LAYERS = "LAYERS"

STANDARD_KEYS = (
    HEADER_NCOLS,
    HEADER_NROWS,
    HEADER_XLL,
    HEADER_YLL,
    HEADER_CELLSIZE,
    HEADER_NODATA,
)


@dataclass
class RasterHeader:
    """
    Scalar metadata describing a grid.

    Attributes:
        ncols: Number of columns (> 0)
        nrows: Number of rows (> 0)
        xll_center: X coordinate of the centre of the lower-left cell
        yll_center: Y coordinate of the centre of the lower-left cell
        cell_size: Cell width and height (> 0)
        nodata_value: Sentinel marking cells without a measurement
        layers: Values stored per cell (>= 1)
    """

    ncols: int
    nrows: int
    xll_center: float
    yll_center: float
    cell_size: float
    nodata_value: float
    layers: int = 1

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check dimensions and cell size.

        Raises:
            InvalidHeaderError: If ncols, nrows or layers are not positive, or
                cell_size is not a positive finite number
        """
        if self.ncols <= 0 or self.nrows <= 0:
            raise InvalidHeaderError(
                f"Grid dimensions must be positive, got {self.nrows} rows x {self.ncols} cols"
            )
        if not math.isfinite(self.cell_size) or self.cell_size <= 0:
            raise InvalidHeaderError(f"Cell size must be positive, got {self.cell_size}")
        if self.layers < 1:
            raise InvalidHeaderError(f"Layer count must be at least 1, got {self.layers}")

    @classmethod
    def from_fields(cls, header_fields: Mapping[str, float]) -> "RasterHeader":
        """
        Build a header from text-format keys.

        Corner-form origin keys are accepted and converted to centre form.

        Args:
            header_fields: Mapping of header key (case-insensitive) to value

        Returns:
            RasterHeader

        Raises:
            MalformedHeaderError: If a required key is missing or a dimension
                is not an integer
            InvalidHeaderError: If the values fail validation
        """
        upper = {str(key).upper(): value for key, value in header_fields.items()}

        for key in (HEADER_NCOLS, HEADER_NROWS, HEADER_CELLSIZE, HEADER_NODATA):
            if key not in upper:
                raise MalformedHeaderError(f"Missing header key: {key}")

        cell_size = float(upper[HEADER_CELLSIZE])
        xll = _origin(upper, HEADER_XLL, HEADER_XLL_CORNER, cell_size)
        yll = _origin(upper, HEADER_YLL, HEADER_YLL_CORNER, cell_size)

        return cls(
            ncols=_as_int(upper[HEADER_NCOLS], HEADER_NCOLS),
            nrows=_as_int(upper[HEADER_NROWS], HEADER_NROWS),
            xll_center=xll,
            yll_center=yll,
            cell_size=cell_size,
            nodata_value=float(upper[HEADER_NODATA]),
            layers=_as_int(upper.get(HEADER_LAYERS, 1), HEADER_LAYERS),
        )

    def to_fields(self) -> dict:
        """Return the header as a dict of text-format keys."""
        return {
            HEADER_NCOLS: self.ncols,
            HEADER_NROWS: self.nrows,
            HEADER_XLL: self.xll_center,
            HEADER_YLL: self.yll_center,
            HEADER_CELLSIZE: self.cell_size,
            HEADER_NODATA: self.nodata_value,
            HEADER_LAYERS: self.layers,
        }

    def copy_from(self, other: "RasterHeader") -> None:
        """
        Adopt another header's dimensions, georeferencing and no-data value.

        Only the six standard keys are overwritten; ``layers`` is left as is.
        """
        self.ncols = other.ncols
        self.nrows = other.nrows
        self.nodata_value = other.nodata_value
        self.cell_size = other.cell_size
        self.xll_center = other.xll_center
        self.yll_center = other.yll_center
        self.validate()

    def copy(self) -> "RasterHeader":
        """Return an independent copy of this header."""
        return RasterHeader(**{f.name: getattr(self, f.name) for f in fields(self)})

    def same_grid(self, other: "RasterHeader") -> bool:
        """True if both headers describe the same number of rows, columns and cell size."""
        return (
            self.ncols == other.ncols
            and self.nrows == other.nrows
            and math.isclose(self.cell_size, other.cell_size, rel_tol=1e-9)
        )

    @property
    def shape(self) -> tuple:
        """(nrows, ncols)"""
        return (self.nrows, self.ncols)

    @property
    def cell_total(self) -> int:
        return self.nrows * self.ncols

    @property
    def xmin(self) -> float:
        return self.xll_center - self.cell_size / 2.0

    @property
    def xmax(self) -> float:
        return self.xmin + self.cell_size * self.ncols

    @property
    def ymin(self) -> float:
        return self.yll_center - self.cell_size / 2.0

    @property
    def ymax(self) -> float:
        return self.ymin + self.cell_size * self.nrows

    def to_transform(self) -> Affine:
        """North-up affine transform mapping (col, row) pixel corners to (x, y)."""
        return Affine.translation(self.xmin, self.ymax) * Affine.scale(
            self.cell_size, -self.cell_size
        )

    @classmethod
    def from_transform(
        cls,
        transform: Affine,
        width: int,
        height: int,
        nodata_value: float,
        layers: int = 1,
    ) -> "RasterHeader":
        """
        Build a header from a north-up affine transform.

        Raises:
            InvalidHeaderError: If the transform is rotated or its cells are not square
        """
        if transform.b != 0 or transform.d != 0:
            raise InvalidHeaderError(f"Rotated transforms are not supported: {transform}")
        if not math.isclose(abs(transform.a), abs(transform.e), rel_tol=1e-9):
            raise InvalidHeaderError(
                f"Cells must be square, got {abs(transform.a)} x {abs(transform.e)}"
            )

        cell_size = abs(transform.a)
        # Lower-left corner of the bottom-left pixel
        x_corner = transform.c if transform.a > 0 else transform.c + transform.a * width
        y_corner = transform.f + transform.e * height if transform.e < 0 else transform.f

        return cls(
            ncols=int(width),
            nrows=int(height),
            xll_center=x_corner + cell_size / 2.0,
            yll_center=y_corner + cell_size / 2.0,
            cell_size=cell_size,
            nodata_value=float(nodata_value),
            layers=layers,
        )


def _origin(upper: Mapping[str, float], center_key: str, corner_key: str, cell_size: float) -> float:
    """Read an origin key, converting corner form to centre form."""
    if center_key in upper:
        return float(upper[center_key])
    if corner_key in upper:
        return float(upper[corner_key]) + 0.5 * cell_size
    raise MalformedHeaderError(f"Missing header key: {center_key} or {corner_key}")


def _as_int(value, key: str) -> int:
    """Convert an integral header value, rejecting fractional numbers."""
    number = float(value)
    if not number.is_integer():
        raise MalformedHeaderError(f"{key} must be an integer, got {value}")
    return int(number)
