"""Pytest configuration and fixtures for rastergrid tests."""
import sys
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest
import numpy as np

NODATA = -9999.0


def write_asc_file(
    path,
    data,
    xll=1.0,
    yll=1.0,
    cell_size=2.0,
    nodata=NODATA,
    corner=False,
):
    """Write a text grid by hand so reader tests do not depend on the writer."""
    nrows, ncols = data.shape
    x_key, y_key = ("XLLCORNER", "YLLCORNER") if corner else ("XLLCENTER", "YLLCENTER")
    lines = [
        f"NCOLS {ncols}",
        f"NROWS {nrows}",
        f"{x_key} {xll}",
        f"{y_key} {yll}",
        f"CELLSIZE {cell_size}",
        f"NODATA_VALUE {nodata:g}",
    ]
    for row in data:
        lines.append(" ".join(f"{value:g}" for value in row))
    Path(path).write_text("\n".join(lines) + "\n")
    return Path(path)


@pytest.fixture
def asc_writer():
    """Function writing a hand-formatted text grid: asc_writer(path, data, **header)."""
    return write_asc_file


@pytest.fixture
def dem_values():
    """
    20 x 30 elevation grid with 541 data cells.

    Cell size 2.0 and origin (1.0, 1.0) when written with the default header.
    NODATA cells: (0, 0)-(0, 2), row 18 columns 0-25, all of row 19.
    Value 8.06 at (2, 4), minimum 2.75 at (5, 5), maximum 98.49 at (10, 10).
    The remaining cells step by column from 3.5 to 14.3, with (7, 7) and
    (12, 12) set so the data cells have mean 9.205 and population std 5.613.
    """
    _, cols = np.mgrid[0:20, 0:30]
    values = 3.5 + 1.2 * (cols % 10)
    values[2, 4] = 8.06
    values[5, 5] = 2.75
    values[10, 10] = 98.49
    values[7, 7] = 60.4472
    values[12, 12] = 7.35781
    values[0, 0:3] = NODATA
    values[18, 0:26] = NODATA
    values[19, :] = NODATA
    return values


@pytest.fixture
def dem_asc(tmp_path, dem_values):
    """Path to the 20 x 30 DEM written as a text grid."""
    return write_asc_file(tmp_path / "dem.asc", dem_values)


@pytest.fixture
def mask_values():
    """20 x 30 integer mask, valid (1) in columns 0-19 and NODATA elsewhere."""
    mask = np.ones((20, 30), dtype=np.int32)
    mask[:, 20:] = int(NODATA)
    return mask


@pytest.fixture
def mask_asc(tmp_path, mask_values):
    """Path to the 20 x 30 mask written as a text grid."""
    return write_asc_file(tmp_path / "mask.asc", mask_values)


@pytest.fixture
def project_root():
    """Get the project root directory."""
    return Path(__file__).parent.parent
