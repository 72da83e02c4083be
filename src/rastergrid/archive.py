"""
On-disk raster archive.

Stores a grid's header and dense values as a named .npz file plus a JSON
metadata sidecar, and hands back the same (RasterHeader, dense) shape the
file readers produce. Also used to cache parsed text grids, keyed by a hash
of the source file's path and modification time.
"""

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from src import config
from src.rastergrid.header import RasterHeader

logger = logging.getLogger(__name__)


class RasterArchive:
    """
    Named storage of (header, dense values) pairs.

    Each entry is two files:
    - ``<name>.npz`` holding the dense array
    - ``<name>_meta.json`` holding the header and summary metadata

    Attributes:
        archive_dir: Directory where archive files are stored
        enabled: Whether the archive reads and writes anything
    """

    def __init__(self, archive_dir: Optional[Path] = None, enabled: bool = True):
        """
        Initialize raster archive.

        Args:
            archive_dir: Directory for archive files. If None, uses config.ARCHIVE_DIR
            enabled: Whether the archive is enabled (default: True)
        """
        if archive_dir is None:
            archive_dir = config.ARCHIVE_DIR

        self.archive_dir = Path(archive_dir)
        self.enabled = enabled

        if self.enabled:
            self.archive_dir.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Raster archive initialized at: {self.archive_dir}")

    def compute_source_hash(self, source_path: Union[str, Path], dtype=config.DEFAULT_DTYPE) -> str:
        """
        Hash a source raster file's absolute path, modification time and target dtype.

        The hash changes when the file is modified or moved, so an archived
        copy of a parsed file is never reused after the source changes.

        Args:
            source_path: Path to the source raster file
            dtype: dtype the file is parsed into

        Returns:
            SHA256 hash string

        Raises:
            FileNotFoundError: If the source file does not exist
        """
        source = Path(source_path)
        if not source.is_file():
            raise FileNotFoundError(f"The file {source} does not exist or is not readable")

        metadata_str = "|".join(
            [str(source.resolve()), str(source.stat().st_mtime), np.dtype(dtype).name]
        )
        return hashlib.sha256(metadata_str.encode()).hexdigest()

    def get_archive_path(self, name: str) -> Path:
        return self.archive_dir / f"{name}.npz"

    def get_metadata_path(self, name: str) -> Path:
        return self.archive_dir / f"{name}_meta.json"

    def exists(self, name: str) -> bool:
        return self.enabled and self.get_archive_path(name).exists()

    def save(
        self, name: str, header: RasterHeader, dense: np.ndarray
    ) -> Tuple[Optional[Path], Optional[Path]]:
        """
        Save a header and dense array under ``name``.

        Args:
            name: Archive entry name
            header: Grid header
            dense: (nrows, ncols) or (layers, nrows, ncols) array

        Returns:
            Tuple of (archive_file_path, metadata_file_path), or (None, None)
            when the archive is disabled
        """
        if not self.enabled:
            return None, None

        archive_path = self.get_archive_path(name)
        metadata_path = self.get_metadata_path(name)

        start_time = time.time()

        np.savez_compressed(archive_path, values=dense)

        metadata = {
            "name": name,
            "header": header.to_fields(),
            "shape": list(dense.shape),
            "dtype": str(dense.dtype),
            "archive_time": time.time(),
        }
        with open(metadata_path, "w") as f:
            json.dump(metadata, f, indent=2)

        elapsed = time.time() - start_time
        logger.info(f"Archived raster to {archive_path.name} ({elapsed:.2f}s)")
        logger.debug(f"Archive size: {archive_path.stat().st_size / (1024*1024):.1f} MB")

        return archive_path, metadata_path

    def load(self, name: str) -> Optional[Tuple[RasterHeader, np.ndarray]]:
        """
        Load an archived header and dense array.

        Args:
            name: Archive entry name

        Returns:
            Tuple of (header, dense) or None if the entry does not exist or
            cannot be read
        """
        if not self.enabled:
            return None

        archive_path = self.get_archive_path(name)
        metadata_path = self.get_metadata_path(name)

        if not archive_path.exists() or not metadata_path.exists():
            logger.debug(f"Archive miss: {archive_path.name}")
            return None

        try:
            with open(metadata_path) as f:
                metadata = json.load(f)
            header = RasterHeader.from_fields(metadata["header"])

            with np.load(archive_path) as archive_data:
                dense = archive_data["values"]

            logger.info(f"Loaded raster from archive {archive_path.name}")
            logger.debug(f"Shape: {dense.shape}, dtype: {dense.dtype}")
            return header, dense

        except (OSError, KeyError, ValueError) as e:
            logger.warning(f"Failed to load archive {archive_path.name}: {e}")
            return None

    def delete(self, name: str) -> int:
        """
        Delete one archive entry.

        Returns:
            Number of files deleted
        """
        deleted_count = 0
        for path in (self.get_archive_path(name), self.get_metadata_path(name)):
            if path.exists():
                path.unlink()
                deleted_count += 1
        logger.debug(f"Deleted {deleted_count} file(s) for '{name}'")
        return deleted_count

    def clear(self) -> int:
        """
        Delete every archive entry.

        Returns:
            Number of files deleted
        """
        if not self.enabled:
            return 0

        deleted_count = 0
        for archive_file in list(self.archive_dir.glob("*.npz")) + list(
            self.archive_dir.glob("*_meta.json")
        ):
            try:
                archive_file.unlink()
                deleted_count += 1
            except OSError as e:
                logger.warning(f"Failed to delete {archive_file.name}: {e}")

        logger.info(f"Cleared {deleted_count} archive files")
        return deleted_count

    def get_archive_stats(self) -> dict:
        """
        Get statistics about archived files.

        Returns:
            Dictionary with archive statistics
        """
        stats = {
            "archive_dir": str(self.archive_dir),
            "enabled": self.enabled,
            "entries": 0,
            "total_size_mb": 0,
            "files": [],
        }

        if not self.archive_dir.exists():
            return stats

        for archive_file in self.archive_dir.glob("*"):
            if archive_file.is_file():
                size_bytes = archive_file.stat().st_size
                if archive_file.suffix == ".npz":
                    stats["entries"] += 1
                stats["total_size_mb"] += size_bytes / (1024 * 1024)
                stats["files"].append({
                    "name": archive_file.name,
                    "size_mb": size_bytes / (1024 * 1024),
                    "mtime": archive_file.stat().st_mtime,
                })

        return stats
