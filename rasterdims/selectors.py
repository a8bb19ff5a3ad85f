"""Coordinate selectors for addressing dims by value instead of position."""

import numpy as np
from rasterio.warp import transform as warp_transform

from rasterdims.dims import Intervals, Lat, Locus, Lon
from rasterdims.exceptions import SelectorError

__all__ = [
    "At",
    "Between",
    "Contains",
    "Near",
    "Selector",
    "select_index",
    "translate_selectors",
]


class Selector:
    """Base class for coordinate selectors."""

    __slots__ = ()

    def points(self):
        """Coordinate values held by the selector."""
        raise NotImplementedError()

    def with_points(self, points):
        raise NotImplementedError()

    def resolve(self, dim):
        """Return the positional index into `dim` that the selector picks."""
        raise NotImplementedError()

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash((type(self), self._key()))

    def __repr__(self):
        args = ", ".join(repr(v) for v in self._key())
        return f"{type(self).__name__}({args})"


def _values(dim):
    values = np.asarray(dim.values)
    if values.ndim != 1:
        raise TypeError(f"Can't select on a dim without coordinates: {dim!r}")
    return values


class At(Selector):
    """Select the index whose value equals `value`.

    Parameters
    ----------
    value : scalar or sequence of scalars
        The value(s) to match.
    atol : float, optional
        Absolute tolerance. If not given, values must match to within a
        tiny fraction of the dim step. The closest match is selected.

    """

    __slots__ = ("value", "atol")

    def __init__(self, value, atol=None):
        self.value = value
        self.atol = atol

    def _key(self):
        value = self.value
        if not np.isscalar(value):
            value = tuple(np.asarray(value).tolist())
        return (value, self.atol)

    def points(self):
        return list(np.atleast_1d(self.value))

    def with_points(self, points):
        value = points[0] if np.isscalar(self.value) else list(points)
        return At(value, self.atol)

    def _tolerance(self, dim, values):
        if self.atol is not None:
            return self.atol
        step = abs(dim.step) if dim.step is not None else 1.0
        # Allow for rounding in coordinates computed from the geotransform
        rounding = 8 * np.spacing(float(np.abs(values).max(initial=0)))
        return max(1e-9 * max(1.0, step), rounding)

    def _match(self, values, v, atol):
        dist = np.abs(values - v)
        hits = np.flatnonzero(dist <= atol)
        if not len(hits):
            raise SelectorError(f"{v!r} not found in dimension values")
        return int(hits[np.argmin(dist[hits])])

    def resolve(self, dim):
        values = _values(dim)
        atol = self._tolerance(dim, values)
        if np.isscalar(self.value):
            return self._match(values, self.value, atol)
        return np.array([self._match(values, v, atol) for v in self.value])


class Near(Selector):
    """Select the index whose value is closest to `value`."""

    __slots__ = ("value",)

    def __init__(self, value):
        self.value = value

    def _key(self):
        value = self.value
        if not np.isscalar(value):
            value = tuple(np.asarray(value).tolist())
        return (value,)

    def points(self):
        return list(np.atleast_1d(self.value))

    def with_points(self, points):
        value = points[0] if np.isscalar(self.value) else list(points)
        return Near(value)

    def resolve(self, dim):
        values = _values(dim)
        if np.isscalar(self.value):
            return int(np.argmin(np.abs(values - self.value)))
        return np.array(
            [int(np.argmin(np.abs(values - v))) for v in self.value]
        )


def _cell_edges(dim):
    """Return the lower and upper edge of every cell of an interval dim."""
    values = _values(dim).astype(float)
    step = dim.step
    locus = dim.sampling.locus
    if locus == Locus.START:
        a, b = values, values + step
    elif locus == Locus.END:
        a, b = values - step, values
    else:
        a, b = values - step / 2, values + step / 2
    return np.minimum(a, b), np.maximum(a, b)


def _is_interval_dim(dim):
    return isinstance(dim.sampling, Intervals) and dim.step is not None


class Contains(Selector):
    """Select the cell that contains `value`.

    For point sampled dims this is the same as :class:`At`.
    """

    __slots__ = ("value",)

    def __init__(self, value):
        self.value = value

    def _key(self):
        return (self.value,)

    def points(self):
        return [self.value]

    def with_points(self, points):
        return Contains(points[0])

    def resolve(self, dim):
        if not _is_interval_dim(dim):
            return At(self.value).resolve(dim)
        lower, upper = _cell_edges(dim)
        v = self.value
        hits = np.flatnonzero((lower <= v) & (v < upper))
        if not len(hits):
            # Upper edge of the outermost cell
            outer = np.isclose(upper, v) & (upper == upper.max())
            hits = np.flatnonzero(outer)
        if not len(hits):
            raise SelectorError(
                f"{v!r} is outside the extent of dimension {dim.name!r}"
            )
        return int(hits[0])


class Between(Selector):
    """Select the contiguous range of indices within ``[lo, hi)``.

    For interval sampled dims, only cells lying entirely inside the bounds are
    selected. The bounds may be given in either order.
    """

    __slots__ = ("lo", "hi")

    def __init__(self, lo, hi):
        self.lo = lo
        self.hi = hi

    def _key(self):
        return (self.lo, self.hi)

    def points(self):
        return [self.lo, self.hi]

    def with_points(self, points):
        return Between(points[0], points[1])

    def resolve(self, dim):
        lo, hi = sorted((self.lo, self.hi))
        if _is_interval_dim(dim):
            lower, upper = _cell_edges(dim)
            tol = 1e-9 * max(1.0, abs(dim.step))
            inside = (lower >= lo - tol) & (upper <= hi + tol)
        else:
            values = _values(dim)
            inside = (values >= lo) & (values < hi)
        hits = np.flatnonzero(inside)
        if not len(hits):
            return slice(0, 0)
        return slice(int(hits[0]), int(hits[-1]) + 1)


def select_index(dim, index):
    """Resolve a selector against `dim`. Non-selectors are returned as is."""
    if isinstance(index, Selector):
        return index.resolve(dim)
    return index


def _reproject(src_crs, dst_crs, xs, ys):
    xs, ys = warp_transform(src_crs, dst_crs, list(xs), list(ys))
    return list(xs), list(ys)


def _needs_translation(dim, index):
    return (
        isinstance(index, Selector)
        and isinstance(dim, (Lon, Lat))
        and dim.usercrs is not None
        and dim.crs is not None
        and dim.usercrs != dim.crs
    )


def translate_selectors(dims, indices):
    """Translate Lon/Lat selector values from the user CRS to the native CRS.

    `indices` is aligned with `dims`. When both a Lon and a Lat selector with
    matching numbers of values are present, they are transformed as coordinate
    pairs. A lone Lon or Lat selector is transformed with the other coordinate
    set to 0.

    """
    indices = list(indices)
    pending = [
        i
        for i, (d, idx) in enumerate(zip(dims, indices))
        if _needs_translation(d, idx)
    ]
    if not pending:
        return tuple(indices)

    ilon = next((i for i in pending if isinstance(dims[i], Lon)), None)
    ilat = next((i for i in pending if isinstance(dims[i], Lat)), None)
    if ilon is not None and ilat is not None:
        lon_sel, lat_sel = indices[ilon], indices[ilat]
        xs, ys = lon_sel.points(), lat_sel.points()
        if len(xs) == len(ys):
            d = dims[ilon]
            xs, ys = _reproject(d.usercrs, d.crs, xs, ys)
            indices[ilon] = lon_sel.with_points(xs)
            indices[ilat] = lat_sel.with_points(ys)
            pending = [i for i in pending if i not in (ilon, ilat)]

    for i in pending:
        d, sel = dims[i], indices[i]
        points = sel.points()
        zeros = [0.0] * len(points)
        if isinstance(d, Lon):
            points, _ = _reproject(d.usercrs, d.crs, points, zeros)
        else:
            _, points = _reproject(d.usercrs, d.crs, zeros, points)
        indices[i] = sel.with_points(points)
    return tuple(indices)
