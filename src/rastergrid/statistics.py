"""Basic statistics over compacted raster values."""

import logging
from dataclasses import dataclass, asdict

import numpy as np

from src.rastergrid.grid_store import is_nodata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterStatistics:
    """Summary of the data cells of one layer. Fields are NaN when count is 0."""

    count: int
    mean: float
    minimum: float
    maximum: float
    std: float
    range: float

    def to_dict(self) -> dict:
        return asdict(self)


def compute_statistics(values: np.ndarray, nodata_value: float) -> RasterStatistics:
    """
    Compute count, mean, min, max, population std and range, skipping no-data.

    Args:
        values: 1D array of cell values
        nodata_value: Entries equal to this sentinel are ignored

    Returns:
        RasterStatistics
    """
    values = np.asarray(values)
    data = values[~is_nodata(values, nodata_value)].astype(np.float64)

    if data.size == 0:
        logger.warning("No data cells, statistics are undefined")
        nan = float("nan")
        return RasterStatistics(count=0, mean=nan, minimum=nan, maximum=nan, std=nan, range=nan)

    minimum = float(data.min())
    maximum = float(data.max())
    stats = RasterStatistics(
        count=int(data.size),
        mean=float(data.mean()),
        minimum=minimum,
        maximum=maximum,
        std=float(data.std()),
        range=maximum - minimum,
    )
    logger.debug(f"Statistics: {stats}")
    return stats
