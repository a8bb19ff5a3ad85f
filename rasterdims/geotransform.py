"""GDAL geotransform interpretation.

In the particular, but common, case of a "north up" image without any rotation
or shearing, the georeferencing transform takes the following form::

    gt[0]  top left x
    gt[1]  w-e pixel resolution
    gt[2]  0
    gt[3]  top left y
    gt[4]  0
    gt[5]  n-s pixel resolution (negative value)

See https://lists.osgeo.org/pipermail/gdal-dev/2011-July/029449.html
"""

import numpy as np
from affine import Affine

from rasterdims.exceptions import UnsupportedTransformError

__all__ = [
    "EMPTY_TRANSFORM",
    "LinRange",
    "from_affine",
    "from_axis_ranges",
    "is_aligned",
    "to_affine",
    "to_axis_ranges",
]

EMPTY_TRANSFORM = (0.0, 1.0, 0.0, 0.0, 0.0, 1.0)
TOPLEFT_X = 0
WE_RES = 1
ROT1 = 2
TOPLEFT_Y = 3
ROT2 = 4
NS_RES = 5


class LinRange:
    """Evenly spaced range defined by its endpoints and length.

    The step is derived from the endpoints rather than stored, so it reflects
    the realized spacing of the values. A single element range has no
    spacing to derive, so `fallback_step` is used for it.

    Parameters
    ----------
    start : float
        The first value.
    stop : float
        The last value (inclusive).
    num : int
        The number of values. Must be positive.
    fallback_step : float, optional
        Step reported when `num` is 1. Default is 0.

    """

    __slots__ = ("start", "stop", "num", "_fallback_step")

    def __init__(self, start, stop, num, fallback_step=0.0):
        num = int(num)
        if num < 1:
            raise ValueError(f"LinRange length must be positive. Got {num}.")
        self.start = float(start)
        self.stop = float(stop)
        self.num = num
        self._fallback_step = float(fallback_step)

    def __repr__(self):
        return f"LinRange({self.start!r}, {self.stop!r}, {self.num})"

    def __len__(self):
        return self.num

    def __eq__(self, other):
        if not isinstance(other, LinRange):
            return NotImplemented
        return (self.start, self.stop, self.num, self.step) == (
            other.start,
            other.stop,
            other.num,
            other.step,
        )

    def __array__(self, dtype=None):
        return np.asarray(self.values, dtype=dtype)

    @property
    def step(self):
        if self.num == 1:
            return self._fallback_step
        return (self.stop - self.start) / (self.num - 1)

    @property
    def first(self):
        return self.start

    @property
    def last(self):
        return self.stop

    @property
    def values(self):
        return np.linspace(self.start, self.stop, self.num)


def is_aligned(gt):
    """Return ``True`` if the geotransform has no rotation or shear terms."""
    return gt[ROT1] == 0 and gt[ROT2] == 0


def _check_aligned(gt):
    if len(gt) != 6:
        raise ValueError(
            f"A geotransform must have 6 coefficients. Got {len(gt)}."
        )
    if not is_aligned(gt):
        raise UnsupportedTransformError(
            "Rotated/sheared geotransforms are not supported. "
            f"Got rotation terms {gt[ROT1]!r} and {gt[ROT2]!r}."
        )


def to_axis_ranges(gt, width, height):
    """Compute the longitude and latitude ranges implied by a geotransform.

    Parameters
    ----------
    gt : sequence of float
        The six GDAL geotransform coefficients.
    width, height : int
        The raster size in pixels.

    Returns
    -------
    tuple of LinRange
        ``(lon_range, lat_range)``. The longitude range starts at the top left
        x and the latitude range at the top left y, so with the usual negative
        n-s resolution latitude values decrease with the row index.

    Raises
    ------
    rasterdims.exceptions.UnsupportedTransformError
        If the geotransform is not aligned.

    """
    _check_aligned(gt)
    lonstep = gt[WE_RES]
    lonmin = gt[TOPLEFT_X]
    lonmax = lonmin + lonstep * (width - 1)
    lonrange = LinRange(lonmin, lonmax, width, fallback_step=lonstep)

    latstep = gt[NS_RES]
    latmax = gt[TOPLEFT_Y]
    latmin = latmax + latstep * (height - 1)
    latrange = LinRange(latmax, latmin, height, fallback_step=latstep)
    return lonrange, latrange


def from_axis_ranges(lat, lon):
    """Build a geotransform from latitude and longitude ranges.

    The ranges must already be in write order: longitude ascending and
    latitude descending. Anything with ``first`` and ``step`` attributes is
    accepted.

    """
    gt = [0.0] * 6
    gt[TOPLEFT_X] = float(lon.first)
    gt[WE_RES] = float(lon.step)
    gt[ROT1] = 0.0
    gt[TOPLEFT_Y] = float(lat.first)
    gt[ROT2] = 0.0
    gt[NS_RES] = float(lat.step)
    return tuple(gt)


def to_affine(gt):
    """Convert GDAL geotransform coefficients to an `affine.Affine`."""
    return Affine.from_gdal(*gt)


def from_affine(affine):
    """Convert an `affine.Affine` to GDAL geotransform coefficients."""
    return tuple(float(c) for c in affine.to_gdal())
