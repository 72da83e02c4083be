"""Configuration module for rastergrid project.

Centralizes data paths and default settings.
"""
from pathlib import Path

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
SAMPLES_DIR = DATA_DIR / "samples"

# Archive directory (created on first save, not on import)
ARCHIVE_DIR = DATA_DIR / "archive"

# Raster file extensions (lower case, without dot)
ASCII_EXTENSIONS = ("asc",)
GEOTIFF_EXTENSIONS = ("tif", "tiff")

# Default settings
DEFAULT_NODATA = -9999.0
DEFAULT_DTYPE = "float32"
DEFAULT_MASK_DTYPE = "int32"
FLOAT_TOLERANCE = 1e-6  # absolute tolerance when comparing float values to NODATA
DEFAULT_LOG_LEVEL = "INFO"
