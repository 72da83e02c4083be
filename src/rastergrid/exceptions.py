"""
Exceptions raised by raster loading, indexing and export.

Every class derives from RasterError and from the closest builtin, so callers
can catch either ``RasterError`` or e.g. ``IndexError``.
"""


class RasterError(Exception):
    """Base class for all raster errors."""

    pass


class MalformedHeaderError(RasterError, ValueError):
    """Raised when a text grid header line has the wrong key or token count."""

    pass


class TruncatedBodyError(RasterError, ValueError):
    """Raised when a text grid body holds fewer than nrows * ncols values."""

    pass


class MalformedBodyError(RasterError, ValueError):
    """Raised when a text grid body holds a token that is not a number."""

    pass


class InvalidHeaderError(RasterError, ValueError):
    """Raised when dimensions or cell size are not positive."""

    pass


class MaskMismatchError(RasterError, ValueError):
    """Raised when a mask does not share the subject grid's dimensions or cell size."""

    pass


class IndexOutOfRangeError(RasterError, IndexError):
    """Raised when a compacted cell index is negative or past the last cell."""

    pass


class LayerOutOfRangeError(RasterError, IndexError):
    """Raised when a layer number is negative or not below the layer count."""

    pass


class CoordinateOutOfRangeError(RasterError, ValueError):
    """Raised when an (x, y) coordinate lies outside the grid extent."""

    pass


class UninitializedAccessError(RasterError, RuntimeError):
    """Raised when querying a grid that was never loaded, or a mask that no longer exists."""

    pass
