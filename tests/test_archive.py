"""
Test suite for the raster archive module.

Tests the RasterArchive class for hash computation, save/load operations,
deletion, archive management, and its use as a load cache.
"""

import unittest
import tempfile
import shutil
import os
from pathlib import Path
import numpy as np
from src.rastergrid.archive import RasterArchive
from src.rastergrid.header import RasterHeader


def make_header(**overrides):
    fields = dict(
        ncols=4, nrows=3, xll_center=0.5, yll_center=0.5, cell_size=1.0, nodata_value=-9999.0
    )
    fields.update(overrides)
    return RasterHeader(**fields)


def write_small_asc(path, values=None):
    """Write a 3 x 4 text grid with one NODATA cell."""
    if values is None:
        values = np.arange(12, dtype=float).reshape(3, 4)
        values[0, 0] = -9999
    lines = ["NCOLS 4", "NROWS 3", "XLLCENTER 0.5", "YLLCENTER 0.5", "CELLSIZE 1", "NODATA_VALUE -9999"]
    lines += [" ".join(f"{v:g}" for v in row) for row in values]
    Path(path).write_text("\n".join(lines) + "\n")
    return Path(path)


class TestRasterArchiveHashComputation(unittest.TestCase):
    """Test source hash computation."""

    def setUp(self):
        """Create temporary directories."""
        self.test_dir = tempfile.mkdtemp()
        self.archive_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up temporary directories."""
        shutil.rmtree(self.test_dir)
        shutil.rmtree(self.archive_dir)

    def test_compute_source_hash_returns_string(self):
        """Test that compute_source_hash returns a valid hash string."""
        source = write_small_asc(Path(self.test_dir, "dem.asc"))

        archive = RasterArchive(archive_dir=Path(self.archive_dir))
        hash_val = archive.compute_source_hash(source)

        self.assertIsInstance(hash_val, str)
        self.assertEqual(len(hash_val), 64)  # SHA256 hash is 64 hex chars

    def test_compute_source_hash_is_deterministic(self):
        """Test that the same file produces the same hash."""
        source = write_small_asc(Path(self.test_dir, "dem.asc"))

        archive = RasterArchive(archive_dir=Path(self.archive_dir))

        self.assertEqual(archive.compute_source_hash(source), archive.compute_source_hash(source))

    def test_compute_source_hash_changes_with_mtime(self):
        """Test that touching the source file changes the hash."""
        source = write_small_asc(Path(self.test_dir, "dem.asc"))

        archive = RasterArchive(archive_dir=Path(self.archive_dir))
        hash1 = archive.compute_source_hash(source)

        stat = source.stat()
        os.utime(source, (stat.st_atime, stat.st_mtime + 10))
        hash2 = archive.compute_source_hash(source)

        self.assertNotEqual(hash1, hash2)

    def test_compute_source_hash_changes_with_dtype(self):
        """Test that the parse dtype is part of the hash."""
        source = write_small_asc(Path(self.test_dir, "dem.asc"))

        archive = RasterArchive(archive_dir=Path(self.archive_dir))

        self.assertNotEqual(
            archive.compute_source_hash(source, "float32"),
            archive.compute_source_hash(source, "int32"),
        )

    def test_compute_source_hash_raises_on_missing_file(self):
        """Test that a missing source raises FileNotFoundError."""
        archive = RasterArchive(archive_dir=Path(self.archive_dir))

        with self.assertRaises(FileNotFoundError):
            archive.compute_source_hash(Path(self.test_dir, "missing.asc"))


class TestRasterArchiveSaveLoad(unittest.TestCase):
    """Test archive save and load operations."""

    def setUp(self):
        """Create temporary archive directory."""
        self.archive_dir = tempfile.mkdtemp()
        self.archive = RasterArchive(archive_dir=Path(self.archive_dir))

    def tearDown(self):
        """Clean up temporary directory."""
        shutil.rmtree(self.archive_dir)

    def test_save_creates_files(self):
        """Test that save writes the .npz and metadata files."""
        dense = np.zeros((3, 4), dtype=np.float32)

        archive_path, metadata_path = self.archive.save("dem", make_header(), dense)

        self.assertTrue(archive_path.exists())
        self.assertTrue(metadata_path.exists())
        self.assertEqual(archive_path.name, "dem.npz")
        self.assertEqual(metadata_path.name, "dem_meta.json")

    def test_save_load_round_trip(self):
        """Test that loaded header and values equal the saved ones."""
        header = make_header(layers=2)
        dense = np.random.rand(2, 3, 4).astype(np.float32)

        self.archive.save("soil", header, dense)
        loaded = self.archive.load("soil")

        self.assertIsNotNone(loaded)
        loaded_header, loaded_dense = loaded
        self.assertEqual(loaded_header, header)
        np.testing.assert_array_equal(loaded_dense, dense)
        self.assertEqual(loaded_dense.dtype, np.float32)

    def test_load_missing_returns_none(self):
        """Test that loading an unknown name returns None."""
        self.assertIsNone(self.archive.load("nothing"))

    def test_load_corrupt_metadata_returns_none(self):
        """Test that an unreadable entry is treated as missing."""
        self.archive.save("dem", make_header(), np.zeros((3, 4)))
        self.archive.get_metadata_path("dem").write_text("{not json")

        self.assertIsNone(self.archive.load("dem"))

    def test_exists(self):
        """Test exists before and after saving."""
        self.assertFalse(self.archive.exists("dem"))
        self.archive.save("dem", make_header(), np.zeros((3, 4)))
        self.assertTrue(self.archive.exists("dem"))

    def test_delete(self):
        """Test that delete removes both files of one entry."""
        self.archive.save("a", make_header(), np.zeros((3, 4)))
        self.archive.save("b", make_header(), np.zeros((3, 4)))

        self.assertEqual(self.archive.delete("a"), 2)
        self.assertFalse(self.archive.exists("a"))
        self.assertTrue(self.archive.exists("b"))
        self.assertEqual(self.archive.delete("a"), 0)

    def test_clear(self):
        """Test that clear removes every entry."""
        self.archive.save("a", make_header(), np.zeros((3, 4)))
        self.archive.save("b", make_header(), np.zeros((3, 4)))

        self.assertEqual(self.archive.clear(), 4)
        self.assertEqual(self.archive.get_archive_stats()["entries"], 0)

    def test_archive_stats(self):
        """Test entry counting in get_archive_stats."""
        self.archive.save("a", make_header(), np.zeros((3, 4)))

        stats = self.archive.get_archive_stats()

        self.assertEqual(stats["entries"], 1)
        self.assertEqual(len(stats["files"]), 2)
        self.assertTrue(stats["enabled"])


class TestRasterArchiveDisabled(unittest.TestCase):
    """Test a disabled archive."""

    def setUp(self):
        self.archive_dir = Path(tempfile.mkdtemp()) / "never_created"
        self.archive = RasterArchive(archive_dir=self.archive_dir, enabled=False)

    def tearDown(self):
        shutil.rmtree(self.archive_dir.parent)

    def test_disabled_archive_does_nothing(self):
        """Test that a disabled archive neither writes nor reads."""
        self.assertEqual(self.archive.save("dem", make_header(), np.zeros((3, 4))), (None, None))
        self.assertIsNone(self.archive.load("dem"))
        self.assertFalse(self.archive.exists("dem"))
        self.assertEqual(self.archive.clear(), 0)
        self.assertFalse(self.archive_dir.exists())


class TestRasterArchiveWithRasterData(unittest.TestCase):
    """Test archive use from RasterData and read_raster."""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.archive_dir = tempfile.mkdtemp()
        self.archive = RasterArchive(archive_dir=Path(self.archive_dir))
        self.source = write_small_asc(Path(self.test_dir, "dem.asc"))

    def tearDown(self):
        shutil.rmtree(self.test_dir)
        shutil.rmtree(self.archive_dir)

    def test_read_raster_populates_archive(self):
        """Test that the first read stores the parsed grid."""
        from src.rastergrid.raster import read_raster

        read_raster(self.source, archive=self.archive)

        name = f"source_{self.archive.compute_source_hash(self.source)}"
        self.assertTrue(self.archive.exists(name))

    def test_read_raster_uses_archive(self):
        """Test that a second read returns the archived grid instead of parsing."""
        from src.rastergrid.raster import read_raster

        header, dense = read_raster(self.source, archive=self.archive)

        # Overwrite the archived copy to prove the cached entry is what comes back
        name = f"source_{self.archive.compute_source_hash(self.source)}"
        marked = dense.copy()
        marked[2, 3] = 42.0
        self.archive.save(name, header, marked)

        _, cached = read_raster(self.source, archive=self.archive)

        self.assertEqual(cached[2, 3], 42.0)

    def test_save_to_archive_and_from_archive(self):
        """Test storing a compacted grid and rebuilding it."""
        from src.rastergrid.raster import RasterData

        rs = RasterData(self.source)
        rs.save_to_archive(self.archive, "dem")

        restored = RasterData.from_archive(self.archive, "dem")

        self.assertEqual(restored.cell_count, 11)
        self.assertEqual(restored.header, rs.header)
        np.testing.assert_array_equal(restored.values, rs.values)

    def test_from_archive_missing_raises(self):
        """Test that rebuilding from an unknown entry raises FileNotFoundError."""
        from src.rastergrid.raster import RasterData

        with self.assertRaises(FileNotFoundError):
            RasterData.from_archive(self.archive, "missing")


if __name__ == "__main__":
    unittest.main()
