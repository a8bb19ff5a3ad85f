"""Lazy and realized geospatial arrays."""

from collections import namedtuple
from enum import Enum

import dask
import dask.array as da
import numpy as np
import rioxarray  # noqa: F401
import xarray as xr

from rasterdims.backend import (
    _convert_nodata,
    dims_from_probe,
    get_backend,
    metadata_from_probe,
    missingval_from_probe,
    read_windowed,
    reading,
    writing,
)
from rasterdims.config import DEFAULT_DIMS_CONFIG
from rasterdims.dims import (
    Band,
    Lat,
    Lon,
    Points,
    dimnum,
    finddim,
    hasdim,
)
from rasterdims.dtypes import U8, should_write_as_byte
from rasterdims.exceptions import (
    DimensionsError,
    MissingBandDimError,
    MissingSpatialDimsError,
)
from rasterdims.geotransform import LinRange, from_axis_ranges, to_affine
from rasterdims.selectors import At, Between, Selector
from rasterdims.window import (
    apply_indices,
    compose_indices,
    dims_to_indices,
    resolve_window,
    slice_dims,
    window_size,
)

__all__ = [
    "GeoArray",
    "IndexKind",
    "IndexResult",
    "LazyArray",
    "open_array",
    "write",
]


class IndexKind(Enum):
    SUBARRAY = "subarray"
    SCALAR = "scalar"


IndexResult = namedtuple("IndexResult", ("kind", "value"))
IndexResult.__doc__ = """Result of indexing a lazy array.

`kind` is :attr:`IndexKind.SUBARRAY` when `value` is a new lazy array and
:attr:`IndexKind.SCALAR` when every axis was collapsed and `value` is the
single element read from storage.
"""


def _as_selector(value):
    if isinstance(value, Selector):
        return value
    if isinstance(value, slice):
        if value.step is not None:
            raise ValueError("Label based slices can't have a step")
        lo = -np.inf if value.start is None else value.start
        hi = np.inf if value.stop is None else value.stop
        return Between(lo, hi)
    return At(value)


class _GeoArrayBase:
    __slots__ = ()

    @property
    def dims(self):
        """The array's dims, in axis order."""
        return self._dims

    @property
    def refdims(self):
        """Dims collapsed to a single value by earlier indexing."""
        return self._refdims

    @property
    def name(self):
        return self._name

    @property
    def metadata(self):
        return self._metadata

    @property
    def missingval(self):
        """The value marking missing data, or ``None``."""
        return self._missingval

    @property
    def ndim(self):
        return len(self._dims)

    @property
    def size(self):
        return int(np.prod(self.shape))

    @property
    def crs(self):
        """The native CRS of the spatial dims, or ``None``."""
        for d in (*self._dims, *self._refdims):
            if isinstance(d, (Lon, Lat)) and d.crs is not None:
                return d.crs
        return None

    def dim(self, query):
        """Return the dim matching `query` (a dim class, instance or name)."""
        d = finddim(self._dims, query)
        if d is None:
            raise ValueError(f"No dimension matching {query!r}")
        return d

    def __len__(self):
        if not self._dims:
            raise TypeError("len() of unsized array")
        return self.shape[0]


class LazyArray(_GeoArrayBase):
    """A raster file exposed as a lazily indexed array.

    Only the raster's size, geotransform, projection and band metadata are
    read on construction. Indexing composes windows in memory. Data are only
    read by :meth:`materialize` (and the methods that use it) or when an index
    selects a single element.

    The backend resource is never held open between calls, so a LazyArray can
    be shared between threads.

    Parameters
    ----------
    filename : str
        The location of the raster.
    dims : tuple of Dimension
        The full, unwindowed dims of the raster.
    refdims : tuple of Dimension, optional
        Reference dims carried over from elsewhere, e.g. a stack.
    name : str, optional
        A name for the array.
    metadata : dict, optional
        Raster metadata.
    missingval : scalar, optional
        The value marking missing data.
    window : tuple, dict or Dimension, optional
        A window restricting the array to a sub-region. It can be given as
        dims, selectors or positional indices.
    dtype : numpy.dtype, optional
        The pixel dtype. Default is float64.
    backend : rasterdims.backend.Backend, optional
        The I/O backend. Default is the rasterio backend.

    """

    __slots__ = (
        "_filename",
        "_full_dims",
        "_base_refdims",
        "_name",
        "_metadata",
        "_missingval",
        "_window",
        "_dtype",
        "_backend",
        "_dims",
        "_refdims",
    )

    def __init__(
        self,
        filename,
        dims,
        refdims=(),
        name="",
        metadata=None,
        missingval=None,
        window=(),
        dtype=None,
        backend=None,
    ):
        self._filename = str(filename)
        self._full_dims = tuple(dims)
        self._base_refdims = tuple(refdims)
        self._name = name
        self._metadata = {} if metadata is None else dict(metadata)
        self._missingval = missingval
        self._window = resolve_window(self._full_dims, window)
        self._dtype = np.dtype(float if dtype is None else dtype)
        self._backend = get_backend(backend)
        self._dims, self._refdims = slice_dims(
            self._full_dims, self._base_refdims, self._window
        )

    @classmethod
    def open(  # noqa: A003
        cls,
        filename,
        usercrs=None,
        name="",
        window=(),
        backend=None,
        config=None,
    ):
        """Open a raster file lazily.

        Parameters
        ----------
        filename : str or path-like
            The raster location.
        usercrs : str, int, rasterio.crs.CRS, optional
            CRS that Lon/Lat selector values will be given in. Selectors are
            translated to the raster's native CRS before being matched.
        name : str, optional
            A name for the array.
        window : tuple, dict or Dimension, optional
            Initial window.
        backend : rasterdims.backend.Backend, optional
            The I/O backend.
        config : rasterdims.config.DimsConfig, optional
            Controls how the dims are built.

        Raises
        ------
        rasterdims.exceptions.RasterNotFoundError
            If `filename` does not exist.
        rasterdims.exceptions.UnsupportedTransformError
            If the raster's geotransform is rotated.

        """
        backend = get_backend(backend)
        with reading(backend, filename) as handle:
            return cls.from_handle(
                handle,
                backend,
                usercrs=usercrs,
                name=name,
                window=window,
                config=config,
            )

    @classmethod
    def from_handle(
        cls,
        handle,
        backend,
        usercrs=None,
        dims=None,
        refdims=(),
        name="",
        metadata=None,
        window=(),
        config=None,
    ):
        """Build a LazyArray from an already open backend handle."""
        probe = backend.probe(handle)
        if dims is None:
            dims = dims_from_probe(probe, usercrs=usercrs, config=config)
        if metadata is None:
            metadata = metadata_from_probe(probe)
        return cls(
            probe.filepath,
            dims,
            refdims=refdims,
            name=name,
            metadata=metadata,
            missingval=missingval_from_probe(probe),
            window=window,
            dtype=probe.dtype,
            backend=backend,
        )

    def __repr__(self):
        dims = ", ".join(f"{d.name}: {len(d)}" for d in self._dims)
        return (
            f"<rasterdims.LazyArray (name={self._name!r}, "
            f"filename={self._filename!r})>\n"
            f"  dims: ({dims}), dtype: {self._dtype}"
        )

    @property
    def filename(self):
        return self._filename

    @property
    def window(self):
        """The resolved window over the full raster extent."""
        return self._window

    @property
    def full_dims(self):
        """The dims of the whole raster, ignoring the window."""
        return self._full_dims

    @property
    def shape(self):
        return window_size(self._window)

    @property
    def dtype(self):
        return self._dtype

    @property
    def backend(self):
        return self._backend

    def rebuild(self, **changes):
        """Return a copy with the given constructor arguments replaced."""
        kwargs = {
            "filename": self._filename,
            "dims": self._full_dims,
            "refdims": self._base_refdims,
            "name": self._name,
            "metadata": self._metadata,
            "missingval": self._missingval,
            "window": self._window,
            "dtype": self._dtype,
            "backend": self._backend,
        }
        kwargs.update(changes)
        new = LazyArray(**kwargs)
        if not changes.keys() & {"dims", "refdims", "window"}:
            new._refdims = self._refdims
        return new

    def materialize(self):
        """Read the windowed data into memory.

        Returns
        -------
        GeoArray
            The data with this array's dims and reference dims.

        """
        with reading(self._backend, self._filename) as handle:
            data = read_windowed(
                self._backend, handle, self._full_dims, self._window
            )
        return GeoArray(
            data,
            self._dims,
            refdims=self._refdims,
            name=self._name,
            metadata=self._metadata,
            missingval=self._missingval,
        )

    def index(self, *indices):
        """Index the array.

        Indices can be positional (ints, slices, int or bool arrays),
        selectors, dims wrapping either (``Lon(slice(0, 2))``) or a single
        dict keyed by dim name.

        Returns
        -------
        IndexResult
            A new lazy array if any axis remains, without reading anything.
            Otherwise the single selected element, read immediately.

        """
        if len(indices) == 1 and isinstance(indices[0], dict):
            indices = indices[0]
        window, dims, refdims = compose_indices(
            self._full_dims, self._window, indices, self._refdims
        )
        if not dims:
            with reading(self._backend, self._filename) as handle:
                value = read_windowed(
                    self._backend, handle, self._full_dims, window
                )
            return IndexResult(IndexKind.SCALAR, np.asarray(value)[()])
        sub = self.rebuild(window=window)
        # Keep the order in which axes were collapsed
        sub._refdims = refdims
        return IndexResult(IndexKind.SUBARRAY, sub)

    def __getitem__(self, key):
        if not isinstance(key, tuple):
            key = (key,)
        return self.index(*key).value

    def isel(self, **indexers):
        """Index by dim name with positional indices."""
        return self.index(indexers).value

    def sel(self, **selectors):
        """Index by dim name with coordinate values.

        Scalars select exact matches, slices select the values between their
        bounds and selector objects are used as given.
        """
        return self.index(
            {k: _as_selector(v) for k, v in selectors.items()}
        ).value

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self.materialize().data, dtype=dtype)

    def to_numpy(self):
        return self.materialize().data

    def to_xarray(self):
        """Materialize as an :class:`xarray.DataArray`."""
        return self.materialize().to_xarray()

    def to_dask(self):
        """Return a dask array that materializes this array when computed."""
        delayed_data = dask.delayed(LazyArray.to_numpy)(self)
        return da.from_delayed(
            delayed_data, shape=self.shape, dtype=self.dtype
        )

    def write(self, filename, options=None, config=None):
        """Write the windowed data to a new raster. See :func:`write`."""
        return write(
            filename,
            self,
            options=options,
            backend=self._backend,
            config=config,
        )


def open_array(filename, **kwargs):
    """Open a raster file as a :class:`LazyArray`."""
    return LazyArray.open(filename, **kwargs)


class GeoArray(_GeoArrayBase):
    """An in-memory array with geospatial dims.

    Parameters
    ----------
    data : array-like
        The data, with one axis per dim.
    dims : tuple of Dimension
        The dims, in axis order.
    refdims : tuple of Dimension, optional
        Dims collapsed by earlier indexing.
    name : str, optional
    metadata : dict, optional
    missingval : scalar, optional

    """

    __slots__ = (
        "_data",
        "_dims",
        "_refdims",
        "_name",
        "_metadata",
        "_missingval",
    )

    def __init__(
        self, data, dims, refdims=(), name="", metadata=None, missingval=None
    ):
        data = np.asarray(data)
        dims = tuple(dims)
        if data.ndim != len(dims):
            raise DimensionsError(
                f"Data has {data.ndim} dimensions but {len(dims)} dims were "
                "given"
            )
        for d, n in zip(dims, data.shape):
            if len(d) != n:
                raise DimensionsError(
                    f"Dim {d.name!r} has length {len(d)} but the data axis "
                    f"has length {n}"
                )
        self._data = data
        self._dims = dims
        self._refdims = tuple(refdims)
        self._name = name
        self._metadata = {} if metadata is None else dict(metadata)
        self._missingval = missingval

    def __repr__(self):
        dims = ", ".join(f"{d.name}: {len(d)}" for d in self._dims)
        return (
            f"<rasterdims.GeoArray (name={self._name!r})>\n"
            f"  dims: ({dims})\n{self._data!r}"
        )

    @property
    def data(self):
        return self._data

    @property
    def shape(self):
        return self._data.shape

    @property
    def dtype(self):
        return self._data.dtype

    def __array__(self, dtype=None, copy=None):
        return np.asarray(self._data, dtype=dtype)

    def rebuild(self, data=None, dims=None, refdims=None):
        return GeoArray(
            self._data if data is None else data,
            self._dims if dims is None else dims,
            refdims=self._refdims if refdims is None else refdims,
            name=self._name,
            metadata=self._metadata,
            missingval=self._missingval,
        )

    def __getitem__(self, key):
        if isinstance(key, list) or not isinstance(key, (tuple, dict)):
            key = (key,)
        indices = dims_to_indices(self._dims, key)
        data = apply_indices(self._data, indices)
        dims, refdims = slice_dims(self._dims, self._refdims, indices)
        if not dims:
            return np.asarray(data)[()]
        return self.rebuild(data=data, dims=dims, refdims=refdims)

    def permute_dims(self, order):
        """Reorder the axes to match `order`, a sequence of dim queries."""
        perm = [dimnum(self._dims, q) for q in order]
        if sorted(perm) != list(range(self.ndim)):
            raise DimensionsError(
                f"{order!r} is not a permutation of the array's dims"
            )
        return self.rebuild(
            data=np.transpose(self._data, perm),
            dims=tuple(self._dims[i] for i in perm),
        )

    def to_xarray(self):
        """Convert to an :class:`xarray.DataArray`.

        Coordinates are named after the dims. Reference dims become scalar
        coordinates. The CRS, geotransform and missing value are written with
        rioxarray.
        """
        coords = {d.name: np.asarray(d.values) for d in self._dims}
        for rd in self._refdims:
            coords[rd.name] = np.asarray(rd.values)[0]
        xarr = xr.DataArray(
            self._data,
            dims=[d.name for d in self._dims],
            coords=coords,
            name=self._name or None,
            attrs=dict(self._metadata),
        )
        if self.crs is not None:
            xarr = xarr.rio.write_crs(self.crs)
        lon = finddim(self._dims, Lon)
        lat = finddim(self._dims, Lat)
        if lon is not None and lat is not None:
            xarr = xarr.rio.set_spatial_dims(
                x_dim=lon.name, y_dim=lat.name, inplace=False
            )
            try:
                gt = _data_geotransform(lon, lat)
            except DimensionsError:
                gt = None
            if gt is not None:
                xarr = xarr.rio.write_transform(to_affine(gt))
        nv = _fitting_nodata(self._missingval, self.dtype)
        if nv is not None:
            xarr = xarr.rio.write_nodata(nv)
        return xarr

    def write(self, filename, options=None, backend=None, config=None):
        """Write to a new raster. See :func:`write`."""
        return write(
            filename, self, options=options, backend=backend, config=config
        )


def _fitting_nodata(nv, dtype):
    if nv is None:
        return None
    try:
        return _convert_nodata(nv, np.dtype(dtype))
    except (ValueError, OverflowError, TypeError):
        return None


def _realized_step(dim):
    """The absolute spacing of a dim's values."""
    n = len(dim)
    step = dim.step
    if step is None:
        raise DimensionsError(
            f"Can't write dim {dim.name!r} without a regular span"
        )
    if n > 1:
        values = np.asarray(dim.values, dtype=float)
        return abs(values[-1] - values[0]) / (n - 1)
    return abs(step)


def _corner_range(dim, ascending=None):
    """The dim's coordinates as a LinRange of pixel corners.

    `ascending` gives the wanted order. If it is ``None`` the values keep
    their current order. Returns the range and whether the values had to be
    reversed to get there.
    """
    values = np.asarray(dim.values, dtype=float)
    n = len(values)
    step = _realized_step(dim)
    if ascending is None:
        ascending = values[-1] > values[0] if n > 1 else dim.step > 0
    flip = n > 1 and (values[-1] < values[0]) == ascending
    lo, hi = dim.bounds()
    if ascending:
        first = lo
    else:
        first, step = hi, -step
    return LinRange(first, first + step * (n - 1), n, fallback_step=step), flip


def _write_geotransform(lon, lat):
    lonrange, flip_lon = _corner_range(lon, ascending=True)
    latrange, flip_lat = _corner_range(lat, ascending=False)
    return from_axis_ranges(latrange, lonrange), flip_lon, flip_lat


def _data_geotransform(lon, lat):
    """The geotransform for lon and lat in their current order."""
    lonrange, _ = _corner_range(lon)
    latrange, _ = _corner_range(lat)
    return from_axis_ranges(latrange, lonrange)


def write(filename, array, options=None, backend=None, config=None):
    """Write a 2D or 3D array with Lon/Lat dims to a new raster.

    Parameters
    ----------
    filename : str or path-like
        The destination. Writers to the same destination must be serialized
        by the caller.
    array : LazyArray or GeoArray
        The array to write. Lazy arrays are materialized first.
    options : rasterdims.config.WriteOptions, optional
        Driver and creation options. Default is a DEFLATE compressed, tiled
        GeoTIFF.
    backend : rasterdims.backend.Backend, optional
        The I/O backend.
    config : rasterdims.config.DimsConfig, optional
        Supplies the tag used to mark point sampled rasters.

    Returns
    -------
    str
        `filename`

    Raises
    ------
    rasterdims.exceptions.MissingSpatialDimsError
        If `array` does not have both Lon and Lat dims.
    rasterdims.exceptions.MissingBandDimError
        If `array` is 3D and has no Band dim.

    """
    if config is None:
        config = DEFAULT_DIMS_CONFIG
    dims = array.dims
    if not (hasdim(dims, Lon) and hasdim(dims, Lat)):
        raise MissingSpatialDimsError(
            "Array must have Lat and Lon dims to be written to a raster"
        )
    if len(dims) == 3 and not hasdim(dims, Band):
        raise MissingBandDimError(
            "Must have a Band dimension to write a 3-dimensional array"
        )
    if len(dims) not in (2, 3):
        raise DimensionsError(
            f"Only 2D and 3D arrays can be written. Got {len(dims)}D."
        )
    lon = finddim(dims, Lon)
    lat = finddim(dims, Lat)
    gt, flip_lon, flip_lat = _write_geotransform(lon, lat)
    backend = get_backend(backend)

    if isinstance(array, LazyArray):
        array = array.materialize()
    if array.ndim == 2:
        array = array.permute_dims((Lon, Lat))
        data = array.data[..., np.newaxis]
    else:
        array = array.permute_dims((Lon, Lat, Band))
        data = array.data
    if flip_lon:
        data = data[::-1]
    if flip_lat:
        data = data[:, ::-1]
    # (lon, lat, band) -> (band, row, col)
    data = np.ascontiguousarray(np.transpose(data, (2, 1, 0)))
    if should_write_as_byte(data.dtype):
        data = data.astype(U8)
    nbands, height, width = data.shape
    band_indices = list(range(1, nbands + 1))

    crs = lat.crs if lat.crs is not None else lon.crs
    projection = crs.to_wkt() if crs is not None else ""
    nodata = _fitting_nodata(array.missingval, data.dtype)
    with writing(
        backend, filename, width, height, nbands, data.dtype, options
    ) as handle:
        backend.set_projection(handle, projection)
        backend.set_geotransform(handle, gt)
        if nodata is not None:
            backend.set_nodata(handle, nodata)
        if isinstance(lat.sampling, Points):
            backend.set_tags(
                handle, {config.area_or_point_key: config.point_tag_value}
            )
        backend.write_bands(handle, data, band_indices)
    return filename
