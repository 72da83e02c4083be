"""
Reading and writing text (ASCII) grid files.

File layout::

    NCOLS <int>
    NROWS <int>
    XLLCENTER|XLLCORNER <float>
    YLLCENTER|YLLCORNER <float>
    CELLSIZE <float>
    NODATA_VALUE <float>
    <NROWS rows of NCOLS space-separated values>

Corner-form origins are converted to centre form on read; the writer always
emits centre-form keys.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
from tqdm import tqdm

from src import config
from src.rastergrid.exceptions import (
    MalformedBodyError,
    MalformedHeaderError,
    TruncatedBodyError,
)
from src.rastergrid.header import (
    HEADER_CELLSIZE,
    HEADER_NCOLS,
    HEADER_NODATA,
    HEADER_NROWS,
    HEADER_XLL,
    HEADER_XLL_CORNER,
    HEADER_YLL,
    HEADER_YLL_CORNER,
    RasterHeader,
)
from src.rastergrid.position_index import PositionIndex

logger = logging.getLogger(__name__)

# Accepted keys for each of the six header lines, in file order
_HEADER_LINES = (
    (HEADER_NCOLS,),
    (HEADER_NROWS,),
    (HEADER_XLL, HEADER_XLL_CORNER),
    (HEADER_YLL, HEADER_YLL_CORNER),
    (HEADER_CELLSIZE,),
    (HEADER_NODATA,),
)


def read_ascii_grid(
    path: Union[str, Path], dtype=config.DEFAULT_DTYPE
) -> Tuple[RasterHeader, np.ndarray]:
    """
    Read a text grid file into a header and a dense array.

    Args:
        path: Path to the .asc file
        dtype: numpy dtype of the returned values (default: float32)

    Returns:
        tuple: (header, dense) where dense has shape (nrows, ncols)

    Raises:
        FileNotFoundError: If the file does not exist or is not a file
        MalformedHeaderError: If a header line has the wrong key or token count,
            or is not ASCII text
        InvalidHeaderError: If dimensions or cell size are not positive
        TruncatedBodyError: If the body holds fewer than nrows * ncols values
        MalformedBodyError: If a body token is not a number, or the body is
            not ASCII text
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"The file {path} does not exist or is not readable")

    logger.info(f"Reading ASCII grid {path}...")

    # Header lines and body are decoded separately
    with open(path, "rb") as f:
        header_lines = [f.readline() for _ in _HEADER_LINES]
        body = f.read()

    header_fields = {}
    for line_number, (raw_line, accepted_keys) in enumerate(zip(header_lines, _HEADER_LINES), start=1):
        try:
            line = raw_line.decode("ascii")
        except UnicodeDecodeError as e:
            raise MalformedHeaderError(
                f"Header line {line_number} of {path} is not ASCII text: {e}"
            ) from e
        key, value = _parse_header_line(line, line_number, accepted_keys)
        header_fields[key] = value
    header = RasterHeader.from_fields(header_fields)

    try:
        tokens = body.decode("ascii").split()
    except UnicodeDecodeError as e:
        raise MalformedBodyError(f"Body of {path} is not ASCII text: {e}") from e

    expected = header.cell_total
    if len(tokens) < expected:
        raise TruncatedBodyError(
            f"{path} holds {len(tokens)} values, expected {header.nrows} x {header.ncols} = {expected}"
        )
    if len(tokens) > expected:
        logger.warning(f"Ignoring {len(tokens) - expected} extra values at the end of {path}")

    try:
        dense = np.array(tokens[:expected], dtype=np.float64)
    except ValueError as e:
        raise MalformedBodyError(f"Non-numeric value in {path}: {e}") from e

    dense = dense.reshape(header.shape).astype(dtype)

    logger.info(f"  Shape: {dense.shape}, dtype: {dense.dtype}")
    logger.debug(
        f"  Origin (centre): ({header.xll_center}, {header.yll_center}), "
        f"cell size: {header.cell_size}, NODATA: {header.nodata_value}"
    )
    return header, dense


def _parse_header_line(line: str, line_number: int, accepted_keys: Tuple[str, ...]):
    """Split one header line into (KEY, float value)."""
    tokens = line.split()
    if len(tokens) != 2:
        raise MalformedHeaderError(
            f"Header line {line_number}: expected 'KEY VALUE', got {line.strip()!r}"
        )

    key = tokens[0].upper()
    if key not in accepted_keys:
        raise MalformedHeaderError(
            f"Header line {line_number}: expected {' or '.join(accepted_keys)}, got {tokens[0]!r}"
        )

    try:
        value = float(tokens[1])
    except ValueError as e:
        raise MalformedHeaderError(
            f"Header line {line_number}: {key} value {tokens[1]!r} is not a number"
        ) from e
    return key, value


def layer_file_path(path: Union[str, Path], layer: int) -> Path:
    """Output path of one layer of a multi-layer grid: ``<stem>_<layer+1><suffix>``."""
    path = Path(path)
    return path.with_name(f"{path.stem}_{layer + 1}{path.suffix}")


def write_ascii_grid(
    header: RasterHeader,
    positions: Optional[PositionIndex],
    values: np.ndarray,
    path: Union[str, Path],
) -> List[Path]:
    """
    Write compacted values to a text grid, re-inserting NODATA where cells are missing.

    Args:
        header: Grid header (dimensions, origin, cell size, NODATA)
        positions: Index of the compacted cells, or None when ``values`` is
            the full row-major grid
        values: Compacted values, shape (n,) or (n, layers)
        path: Output file. Multi-layer values are split into one file per
            layer named ``<stem>_<layer+1><suffix>``

    Returns:
        List of written file paths
    """
    values = np.asarray(values)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if values.ndim == 1:
        _write_single_layer(header, positions, values, path)
        return [path]

    written = []
    with tqdm(range(values.shape[1]), desc="Writing layers") as pbar:
        for layer in pbar:
            layer_path = layer_file_path(path, layer)
            _write_single_layer(header, positions, values[:, layer], layer_path)
            written.append(layer_path)
            pbar.set_postfix({"file": layer_path.name})
    return written


def _write_single_layer(
    header: RasterHeader,
    positions: Optional[PositionIndex],
    values: np.ndarray,
    path: Path,
) -> None:
    if positions is None:
        if values.size != header.cell_total:
            raise ValueError(
                f"Got {values.size} values for a {header.nrows} x {header.ncols} grid"
            )
        dense = values.reshape(header.shape)
    else:
        dense = positions.scatter(values, header.shape, header.nodata_value)

    integral = np.issubdtype(dense.dtype, np.integer)

    with open(path, "w") as f:
        f.write(f"{HEADER_NCOLS} {header.ncols}\n")
        f.write(f"{HEADER_NROWS} {header.nrows}\n")
        f.write(f"{HEADER_XLL} {float(header.xll_center)!r}\n")
        f.write(f"{HEADER_YLL} {float(header.yll_center)!r}\n")
        f.write(f"{HEADER_CELLSIZE} {float(header.cell_size)!r}\n")
        f.write(f"{HEADER_NODATA} {_format_value(np.float64(header.nodata_value), False)}\n")
        for row in dense:
            f.write(" ".join(_format_value(value, integral) for value in row))
            f.write("\n")

    logger.info(f"Wrote ASCII grid {path} ({header.nrows} x {header.ncols})")


def _format_value(value, integral: bool) -> str:
    """Shortest text that reads back to the same value in its own dtype."""
    if integral:
        return str(int(value))
    return np.format_float_positional(value, trim="-")
