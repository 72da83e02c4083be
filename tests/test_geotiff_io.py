"""
Tests for GeoTIFF reading and writing.

Creates small GeoTIFFs with rasterio and checks that they come back as the
same (header, dense) pair the text grid reader produces.
"""

import pytest
import numpy as np
from pathlib import Path
import tempfile
import rasterio
from rasterio.transform import Affine


def write_test_tiff(path, data, transform, nodata=-9999.0, crs="EPSG:4326"):
    bands = data[np.newaxis, ...] if data.ndim == 2 else data
    with rasterio.open(
        path,
        "w",
        driver="GTiff",
        height=bands.shape[1],
        width=bands.shape[2],
        count=bands.shape[0],
        dtype=bands.dtype,
        crs=crs,
        transform=transform,
        nodata=nodata,
    ) as dst:
        dst.write(bands)
    return path


class TestReadGeotiff:
    """Tests for read_geotiff function."""

    def test_single_band(self):
        """Test that a single band is returned as a 2D array with a matching header."""
        from src.rastergrid.geotiff_io import read_geotiff

        with tempfile.TemporaryDirectory() as tmpdir:
            data = np.arange(12, dtype=np.float32).reshape(3, 4)
            transform = Affine.translation(100.0, 50.0) * Affine.scale(10.0, -10.0)
            path = write_test_tiff(Path(tmpdir) / "single.tif", data, transform)

            header, dense = read_geotiff(path)

            assert dense.shape == (3, 4)
            assert np.array_equal(dense, data)
            assert header.ncols == 4
            assert header.nrows == 3
            assert header.cell_size == 10.0
            assert header.xll_center == 105.0
            assert header.yll_center == 25.0
            assert header.nodata_value == -9999.0
            assert header.layers == 1

    def test_multi_band_becomes_layers(self):
        """Test that bands are returned band-first with layers set."""
        from src.rastergrid.geotiff_io import read_geotiff

        with tempfile.TemporaryDirectory() as tmpdir:
            data = np.stack([np.full((2, 2), i, dtype=np.float32) for i in range(3)])
            transform = Affine.translation(0, 2) * Affine.scale(1, -1)
            path = write_test_tiff(Path(tmpdir) / "multi.tif", data, transform)

            header, dense = read_geotiff(path)

            assert dense.shape == (3, 2, 2)
            assert header.layers == 3
            assert dense[2, 0, 0] == 2.0

    def test_casts_to_requested_dtype(self):
        """Test that values are cast to the requested dtype."""
        from src.rastergrid.geotiff_io import read_geotiff

        with tempfile.TemporaryDirectory() as tmpdir:
            data = np.ones((2, 2), dtype=np.float32)
            transform = Affine.translation(0, 2) * Affine.scale(1, -1)
            path = write_test_tiff(Path(tmpdir) / "cast.tif", data, transform)

            _, dense = read_geotiff(path, dtype="float64")

            assert dense.dtype == np.float64

    def test_missing_nodata_uses_default(self):
        """Test that a raster without NODATA falls back to the configured default."""
        from src import config
        from src.rastergrid.geotiff_io import read_geotiff

        with tempfile.TemporaryDirectory() as tmpdir:
            data = np.ones((2, 2), dtype=np.float32)
            transform = Affine.translation(0, 2) * Affine.scale(1, -1)
            path = write_test_tiff(Path(tmpdir) / "nonodata.tif", data, transform, nodata=None)

            header, _ = read_geotiff(path)

            assert header.nodata_value == config.DEFAULT_NODATA

    def test_missing_file_raises(self):
        """Test that a nonexistent path raises FileNotFoundError."""
        from src.rastergrid.geotiff_io import read_geotiff

        with pytest.raises(FileNotFoundError):
            read_geotiff("/nonexistent/raster.tif")

    def test_unreadable_file_raises(self):
        """Test that a file rasterio cannot open raises RasterioIOError."""
        from src.rastergrid.geotiff_io import read_geotiff

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "garbage.tif"
            path.write_bytes(b"not a raster")

            with pytest.raises(rasterio.errors.RasterioIOError):
                read_geotiff(path)


class TestWriteGeotiff:
    """Tests for write_geotiff function."""

    def test_write_then_read(self, tmp_path):
        """Test that written files carry transform, NODATA and CRS."""
        from src.rastergrid.geotiff_io import read_geotiff, write_geotiff
        from src.rastergrid.header import RasterHeader

        header = RasterHeader(
            ncols=4, nrows=3, xll_center=1.0, yll_center=1.0, cell_size=2.0, nodata_value=-9999.0
        )
        dense = np.arange(12, dtype=np.float32).reshape(3, 4)

        path = write_geotiff(header, dense, tmp_path / "sub" / "out.tif", crs="EPSG:32617")

        with rasterio.open(path) as src:
            assert src.crs.to_epsg() == 32617
            assert src.nodata == -9999.0
            assert src.transform == header.to_transform()

        read_header, read_dense = read_geotiff(path)
        assert read_header == header
        assert np.array_equal(read_dense, dense)

    def test_write_multilayer(self, tmp_path):
        """Test that a band-first array is written as several bands."""
        from src.rastergrid.geotiff_io import write_geotiff
        from src.rastergrid.header import RasterHeader

        header = RasterHeader(
            ncols=2, nrows=2, xll_center=0.5, yll_center=0.5, cell_size=1.0, nodata_value=-1, layers=2
        )
        dense = np.zeros((2, 2, 2), dtype=np.int32)

        path = write_geotiff(header, dense, tmp_path / "multi.tif")

        with rasterio.open(path) as src:
            assert src.count == 2

    def test_shape_mismatch_raises(self, tmp_path):
        """Test that the array must match the header's grid shape."""
        from src.rastergrid.geotiff_io import write_geotiff
        from src.rastergrid.header import RasterHeader

        header = RasterHeader(
            ncols=2, nrows=2, xll_center=0.5, yll_center=0.5, cell_size=1.0, nodata_value=-1
        )

        with pytest.raises(ValueError):
            write_geotiff(header, np.zeros((3, 3)), tmp_path / "bad.tif")
