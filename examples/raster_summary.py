#!/usr/bin/env python3
"""
Raster summary: load a grid, optionally restrict it to a mask, and report on it.

Prints header fields, stored cell counts and basic statistics, looks up a
value by coordinate, and optionally writes the (masked) grid back out as a
text grid or GeoTIFF.

Usage:
    python examples/raster_summary.py data/samples/dem.asc
    python examples/raster_summary.py data/samples/dem.asc --mask data/samples/basin.asc
    python examples/raster_summary.py dem.asc --point 4.05 37.95 --output out/dem_masked.tif
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src import config
from src.rastergrid import RasterArchive, RasterData, RasterError

logging.basicConfig(
    level=config.DEFAULT_LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Summarize a raster grid")
    parser.add_argument("raster", type=Path, help="Raster file (.asc or GeoTIFF)")
    parser.add_argument("--mask", type=Path, help="Mask grid restricting the raster")
    parser.add_argument(
        "--no-mask-extent",
        action="store_true",
        help="Drop NODATA cells inside the mask instead of keeping the full mask extent",
    )
    parser.add_argument(
        "--full-grid", action="store_true", help="Keep NODATA cells (no compaction)"
    )
    parser.add_argument(
        "--point", type=float, nargs=2, metavar=("X", "Y"), help="Look up the value at (X, Y)"
    )
    parser.add_argument("--output", type=Path, help="Write the grid (.asc or .tif)")
    parser.add_argument(
        "--archive-dir",
        type=Path,
        default=None,
        help=f"Cache parsed files in this directory (default: {config.ARCHIVE_DIR})",
    )
    parser.add_argument("--no-archive", action="store_true", help="Disable the load cache")
    args = parser.parse_args()

    archive = RasterArchive(archive_dir=args.archive_dir, enabled=not args.no_archive)

    try:
        mask = None
        if args.mask is not None:
            mask = RasterData(args.mask, dtype=config.DEFAULT_MASK_DTYPE, archive=archive)
            print(f"Mask: {args.mask.name}, {mask.cell_count} valid cells")

        raster = RasterData(
            args.raster,
            mask=mask,
            calc_positions=not args.full_grid,
            use_mask_extent=not args.no_mask_extent,
            archive=archive,
        )
    except (FileNotFoundError, RasterError) as e:
        logger.error(f"Failed to load raster: {e}")
        return 1

    header = raster.header
    print(f"Raster: {args.raster.name}")
    print(f"  Rows x cols: {header.nrows} x {header.ncols}, layers: {raster.layers}")
    print(f"  Lower-left centre: ({header.xll_center}, {header.yll_center})")
    print(f"  Cell size: {header.cell_size}, NODATA: {header.nodata_value}")
    print(f"  Stored cells: {raster.cell_count}")

    for layer in range(raster.layers):
        stats = raster.statistics(layer)
        print(
            f"  Layer {layer + 1}: count={stats.count} mean={stats.mean:.3f} "
            f"min={stats.minimum:.3f} max={stats.maximum:.3f} std={stats.std:.3f}"
        )

    if args.point is not None:
        x, y = args.point
        value = raster.get_value_by_coordinate(x, y)
        try:
            index = raster.get_position_by_coordinate(x, y)
        except RasterError as e:
            print(f"  ({x}, {y}) is outside the grid: {e}")
        else:
            print(f"  Value at ({x}, {y}): {value} (index {index})")

    if args.output is not None:
        suffix = args.output.suffix.lower().lstrip(".")
        if suffix in config.GEOTIFF_EXTENSIONS:
            written = [raster.write_geotiff(args.output)]
        else:
            written = raster.write_ascii(args.output)
        for path in written:
            print(f"  Wrote {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
