"""
GeoTIFF loading and saving through rasterio.

Produces and consumes the same (RasterHeader, dense) shape as the text grid
reader, so binary rasters go through the same compaction pipeline. Any
single- or multi-band raster readable by rasterio can be loaded; multi-band
rasters become multi-layer grids.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import rasterio

from src import config
from src.rastergrid.header import RasterHeader

logger = logging.getLogger(__name__)


def read_geotiff(
    path: Union[str, Path], dtype=config.DEFAULT_DTYPE
) -> Tuple[RasterHeader, np.ndarray]:
    """
    Read a raster file into a header and a dense array.

    Args:
        path: Path to a GeoTIFF (or other rasterio-readable raster)
        dtype: numpy dtype of the returned values (default: float32)

    Returns:
        tuple: (header, dense) where dense has shape (nrows, ncols) for one
            band, or (bands, nrows, ncols) for several

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidHeaderError: If the raster is rotated or its cells are not square
        rasterio.errors.RasterioIOError: If rasterio cannot open the file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"The file {path} does not exist or is not readable")

    logger.info(f"Reading raster {path}...")

    try:
        with rasterio.open(path) as src:
            if src.count == 0:
                raise ValueError(f"No raster bands found in {path}")

            nodata = src.nodata
            if nodata is None:
                logger.warning(f"{path} has no NODATA value, using {config.DEFAULT_NODATA}")
                nodata = config.DEFAULT_NODATA

            data = src.read().astype(dtype)
            header = RasterHeader.from_transform(
                src.transform,
                width=src.width,
                height=src.height,
                nodata_value=nodata,
                layers=src.count,
            )
    except rasterio.errors.RasterioIOError as e:
        logger.error(f"Failed to open {path}: {str(e)}")
        raise

    dense = data[0] if header.layers == 1 else data

    logger.info(f"  Shape: {dense.shape}, bands: {header.layers}, dtype: {dense.dtype}")
    logger.debug(f"  Transform: {header.to_transform()}")
    return header, dense


def write_geotiff(
    header: RasterHeader,
    dense: np.ndarray,
    path: Union[str, Path],
    crs: Optional[str] = None,
) -> Path:
    """
    Write a dense grid to a GeoTIFF, one band per layer.

    Args:
        header: Grid header, provides transform and NODATA
        dense: (nrows, ncols) or band-first (layers, nrows, ncols) array
        path: Output file
        crs: Optional coordinate reference system passed through to rasterio

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    bands = dense[np.newaxis, ...] if dense.ndim == 2 else dense
    if bands.shape[1:] != header.shape:
        raise ValueError(f"Array shape {bands.shape[1:]} does not match header shape {header.shape}")

    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=header.nrows,
        width=header.ncols,
        count=bands.shape[0],
        dtype=bands.dtype,
        crs=crs,
        transform=header.to_transform(),
        nodata=header.nodata_value,
        compress="lzw",
    ) as dst:
        dst.write(bands)

    logger.info(f"Wrote GeoTIFF {path} ({bands.shape[0]} band(s), {header.nrows} x {header.ncols})")
    return path
