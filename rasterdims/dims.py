"""Dimension types carrying coordinate semantics for raster axes."""

from dataclasses import dataclass, field, replace
from enum import Enum

import numpy as np
from rasterio.crs import CRS

from rasterdims.config import DEFAULT_DIMS_CONFIG
from rasterdims.geotransform import LinRange, to_axis_ranges

__all__ = [
    "Band",
    "Categorical",
    "Dimension",
    "Direction",
    "Intervals",
    "Irregular",
    "Lat",
    "Locus",
    "Lon",
    "NoIndex",
    "Ordered",
    "Points",
    "ProjectedIndex",
    "Regular",
    "Unordered",
    "basetype",
    "build_dims",
    "dimnum",
    "finddim",
    "hasdim",
]


class Direction(Enum):
    FORWARD = "forward"
    REVERSE = "reverse"


class Locus(Enum):
    """Position of a coordinate value within its cell."""

    START = "start"
    CENTER = "center"
    END = "end"


@dataclass(frozen=True)
class Ordered:
    """Ordering of a dimension.

    `index` is the direction of the values with increasing index, `array` is
    the direction the data are stored/plotted in and `relation` maps index to
    array position.
    """

    index: Direction = Direction.FORWARD
    array: Direction = Direction.FORWARD
    relation: Direction = Direction.FORWARD


@dataclass(frozen=True)
class Unordered:
    relation: Direction = Direction.FORWARD


@dataclass(frozen=True)
class Points:
    """Each coordinate is an exact sample location."""


@dataclass(frozen=True)
class Intervals:
    """Each coordinate anchors a cell at `locus`."""

    locus: Locus = Locus.START


@dataclass(frozen=True)
class Regular:
    step: float


@dataclass(frozen=True)
class Irregular:
    pass


@dataclass(frozen=True)
class NoIndex:
    order: Ordered = field(default_factory=Ordered)


@dataclass(frozen=True)
class Categorical:
    order: Unordered = field(default_factory=Unordered)


@dataclass(frozen=True)
class ProjectedIndex:
    """Index mode for projected spatial dimensions.

    `usercrs` is only used to translate selector values into `crs`. Values are
    always stored in `crs`.
    """

    order: Ordered = field(default_factory=Ordered)
    span: object = field(default_factory=Irregular)
    sampling: object = field(default_factory=Points)
    crs: object = None
    usercrs: object = None


def _normalize_values(values):
    if isinstance(values, LinRange):
        return values.values
    if isinstance(values, (list, tuple, range, np.ndarray)):
        return np.asarray(values)
    return values


class Dimension:
    """A named array axis.

    A dimension holds either coordinate values, when it describes an axis of an
    array, or an index/selector, when it is used to address an axis by name,
    e.g. ``Lon(slice(0, 10))`` or ``Lat(Near(45.0))``.

    Dimensions are immutable. Use :meth:`rebuild` to derive modified copies.

    """

    name = "dim"
    __slots__ = ("values", "mode", "metadata")

    def __init__(self, values=slice(None), mode=None, metadata=None):
        self.values = _normalize_values(values)
        self.mode = NoIndex() if mode is None else mode
        self.metadata = {} if metadata is None else dict(metadata)

    def __repr__(self):
        return f"{type(self).__name__}({self.values!r}, mode={self.mode!r})"

    def __len__(self):
        return len(self.values)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        if isinstance(self.values, np.ndarray) or isinstance(
            other.values, np.ndarray
        ):
            values_equal = np.array_equal(
                np.asarray(self.values), np.asarray(other.values)
            )
        else:
            values_equal = self.values == other.values
        return (
            values_equal
            and self.mode == other.mode
            and self.metadata == other.metadata
        )

    __hash__ = None

    def rebuild(self, **changes):
        """Return a copy with the given attributes replaced."""
        kwargs = {
            "values": self.values,
            "mode": self.mode,
            "metadata": self.metadata,
        }
        kwargs.update(changes)
        return type(self)(**kwargs)

    def with_values(self, values):
        return self.rebuild(values=values)

    @property
    def order(self):
        return getattr(self.mode, "order", Unordered())

    @property
    def sampling(self):
        return getattr(self.mode, "sampling", Points())

    @property
    def span(self):
        return getattr(self.mode, "span", Irregular())

    @property
    def crs(self):
        return getattr(self.mode, "crs", None)

    @property
    def usercrs(self):
        return getattr(self.mode, "usercrs", None)

    @property
    def step(self):
        span = self.span
        if isinstance(span, Regular):
            return span.step
        return None

    @property
    def is_reversed(self):
        order = self.order
        return isinstance(order, Ordered) and order.index == Direction.REVERSE

    def bounds(self):
        """Return the ``(min, max)`` extent covered by the dimension.

        Interval sampled dims with a regular span include the full extent of
        the first and last cells.
        """
        values = np.asarray(self.values)
        lo, hi = float(values.min()), float(values.max())
        sampling = self.sampling
        step = self.step
        if isinstance(sampling, Intervals) and step is not None:
            size = abs(step)
            if sampling.locus == Locus.START:
                if step > 0:
                    hi += size
                else:
                    lo -= size
            elif sampling.locus == Locus.END:
                if step > 0:
                    lo -= size
                else:
                    hi += size
            else:
                lo -= size / 2
                hi += size / 2
        return lo, hi


class Lon(Dimension):
    name = "lon"
    __slots__ = ()


class Lat(Dimension):
    name = "lat"
    __slots__ = ()


class Band(Dimension):
    name = "band"
    __slots__ = ()


DIM_TYPES = {
    "lon": Lon,
    "x": Lon,
    "lat": Lat,
    "y": Lat,
    "band": Band,
}


def basetype(query):
    """Resolve a dim class, instance or name to a Dimension subclass."""
    if isinstance(query, Dimension):
        return type(query)
    if isinstance(query, type) and issubclass(query, Dimension):
        return query
    if isinstance(query, str):
        try:
            return DIM_TYPES[query.lower()]
        except KeyError:
            raise ValueError(f"Unknown dimension name: {query!r}") from None
    raise TypeError(f"Could not interpret {query!r} as a dimension")


def finddim(dims, query):
    """Return the dim in `dims` matching `query`, or ``None``."""
    cls = basetype(query)
    for d in dims:
        if isinstance(d, cls):
            return d
    return None


def hasdim(dims, query):
    return finddim(dims, query) is not None


def dimnum(dims, query):
    """Return the position of the dim matching `query` in `dims`."""
    cls = basetype(query)
    for i, d in enumerate(dims):
        if isinstance(d, cls):
            return i
    raise ValueError(f"No {cls.name!r} dimension in {dims!r}")


def _to_crs(value):
    if value is None or isinstance(value, CRS):
        return value
    if isinstance(value, str) and not value.strip():
        return None
    return CRS.from_user_input(value)


def build_dims(
    width,
    height,
    nbands,
    gt,
    crs=None,
    usercrs=None,
    area_or_point=None,
    config=None,
):
    """Build ``(Lon, Lat, Band)`` dims for a raster grid.

    Parameters
    ----------
    width, height, nbands : int
        The raster size.
    gt : sequence of float
        The six GDAL geotransform coefficients.
    crs : str, rasterio.crs.CRS, optional
        The native CRS of the raster. Empty strings are treated as missing.
    usercrs : str, int, rasterio.crs.CRS, optional
        A CRS that selector values will be given in. They are translated to
        `crs` before being matched.
    area_or_point : str, optional
        The value of the raster's area/point tag.
    config : rasterdims.config.DimsConfig, optional
        Controls how the sampling mode is chosen.

    Returns
    -------
    tuple
        ``(Lon, Lat, Band)``

    Raises
    ------
    rasterdims.exceptions.UnsupportedTransformError
        If `gt` has rotation terms.

    """
    if config is None:
        config = DEFAULT_DIMS_CONFIG
    lonrange, latrange = to_axis_ranges(gt, width, height)

    if (
        config.honor_area_or_point
        and area_or_point == config.point_tag_value
    ):
        sampling = Points()
    else:
        # GeoTIFF uses the pixel corner convention
        sampling = Intervals(Locus(config.default_locus))

    crs = _to_crs(crs)
    usercrs = _to_crs(usercrs)
    lonmode = ProjectedIndex(
        order=Ordered(),
        span=Regular(lonrange.step),
        sampling=sampling,
        crs=crs,
        usercrs=usercrs,
    )
    latmode = ProjectedIndex(
        # Latitude is stored top row first, the reverse of how it is plotted
        order=Ordered(Direction.REVERSE, Direction.REVERSE, Direction.FORWARD),
        span=Regular(latrange.step),
        sampling=sampling,
        crs=crs,
        usercrs=usercrs,
    )
    lon = Lon(lonrange, mode=lonmode)
    lat = Lat(latrange, mode=latmode)
    band = Band(np.arange(1, nbands + 1), mode=Categorical())
    return lon, lat, band
