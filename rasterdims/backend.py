"""The boundary to the native raster I/O library.

Every operation that touches storage acquires a handle through :func:`reading`
or :func:`writing` and releases it before returning, on error paths too. No
handle outlives the call that opened it.
"""

import logging
import warnings
from abc import ABC, abstractmethod
from collections import namedtuple
from contextlib import contextmanager

import numpy as np
import rasterio as rio
from rasterio.crs import CRS
from rasterio.windows import Window

from rasterdims.config import DEFAULT_DIMS_CONFIG, DEFAULT_WRITE_OPTIONS
from rasterdims.dims import Band, Lat, Lon, build_dims, dimnum
from rasterdims.dtypes import fits_dtype, is_bool, is_float, is_int
from rasterdims.exceptions import IncompatibleNoDataWarning
from rasterdims.geotransform import EMPTY_TRANSFORM, from_affine, to_affine
from rasterdims.utils import validate_path
from rasterdims.window import apply_indices, window_size, window_to_ranges

__all__ = [
    "Backend",
    "RasterProbe",
    "RasterioBackend",
    "dims_from_probe",
    "get_backend",
    "metadata_from_probe",
    "missingval_from_probe",
    "read_windowed",
    "reading",
    "writing",
]

logger = logging.getLogger(__name__)


RasterProbe = namedtuple(
    "RasterProbe",
    (
        "filepath",
        "width",
        "height",
        "nbands",
        "geotransform",
        "projection",
        "dtype",
        "nodata",
        "scale",
        "offset",
        "units",
        "tags",
    ),
)


class Backend(ABC):
    """Interface to a raster I/O library.

    Read data are returned with shape ``(band, row, col)`` and written data
    are expected in the same layout. Band indices are 1-based.
    """

    @abstractmethod
    def open_for_read(self, location):
        """Open `location` for reading.

        Raises
        ------
        rasterdims.exceptions.RasterNotFoundError
            If the location does not exist.

        """

    @abstractmethod
    def probe(self, handle):
        """Return a :class:`RasterProbe` describing an open dataset."""

    @abstractmethod
    def read_window(self, handle, ranges, bands):
        """Read ``((row_start, row_stop), (col_start, col_stop))`` of bands."""

    @abstractmethod
    def create_for_write(
        self, location, width, height, nbands, dtype, options
    ):
        """Create a new dataset at `location` and return its handle."""

    @abstractmethod
    def set_projection(self, handle, projection):
        pass

    @abstractmethod
    def set_geotransform(self, handle, gt):
        pass

    @abstractmethod
    def set_nodata(self, handle, nodata):
        pass

    @abstractmethod
    def set_tags(self, handle, tags):
        pass

    @abstractmethod
    def write_bands(self, handle, data, band_indices):
        pass

    @abstractmethod
    def close(self, handle):
        pass


def _is_local_path(location):
    return "://" not in location and not location.startswith("/vsi")


class RasterioBackend(Backend):
    """Backend built on rasterio and GDAL."""

    def open_for_read(self, location):
        location = str(location)
        if _is_local_path(location):
            validate_path(location)
        return rio.open(location)

    def probe(self, handle):
        crs = handle.crs
        files = handle.files
        return RasterProbe(
            filepath=files[0] if files else handle.name,
            width=handle.width,
            height=handle.height,
            nbands=handle.count,
            # Ungeoreferenced rasters report the identity transform, which
            # matches GDAL's default geotransform.
            geotransform=from_affine(handle.transform),
            projection=crs.to_wkt() if crs is not None else "",
            dtype=np.dtype(handle.dtypes[0]),
            nodata=handle.nodatavals[0],
            scale=handle.scales[0],
            offset=handle.offsets[0],
            units=handle.units[0] or "",
            tags=handle.tags(),
        )

    def read_window(self, handle, ranges, bands):
        rows, cols = ranges
        window = Window.from_slices(rows, cols)
        return handle.read(indexes=list(bands), window=window)

    def create_for_write(
        self, location, width, height, nbands, dtype, options
    ):
        return rio.open(
            str(location),
            "w",
            width=width,
            height=height,
            count=nbands,
            dtype=np.dtype(dtype).name,
            **options.backend_kwargs(),
        )

    def set_projection(self, handle, projection):
        if projection is None or projection == "":
            return
        handle.crs = CRS.from_user_input(projection)

    def set_geotransform(self, handle, gt):
        handle.transform = to_affine(gt)

    def set_nodata(self, handle, nodata):
        handle.nodata = nodata

    def set_tags(self, handle, tags):
        handle.update_tags(**tags)

    def write_bands(self, handle, data, band_indices):
        handle.write(data, indexes=list(band_indices))

    def close(self, handle):
        handle.close()


_DEFAULT_BACKEND = RasterioBackend()


def get_backend(backend=None):
    """Return `backend` or the default rasterio backend."""
    if backend is None:
        return _DEFAULT_BACKEND
    if not isinstance(backend, Backend):
        raise TypeError(f"Expected a Backend instance. Got {backend!r}")
    return backend


@contextmanager
def reading(backend, location):
    """Scoped read handle for `location`."""
    handle = backend.open_for_read(location)
    logger.debug("Opened %s for reading", location)
    try:
        yield handle
    finally:
        backend.close(handle)
        logger.debug("Closed %s", location)


@contextmanager
def writing(backend, location, width, height, nbands, dtype, options=None):
    """Scoped write handle for a new dataset at `location`."""
    if options is None:
        options = DEFAULT_WRITE_OPTIONS
    handle = backend.create_for_write(
        location, width, height, nbands, dtype, options
    )
    logger.debug(
        "Created %s (%d x %d x %d, %s)",
        location,
        width,
        height,
        nbands,
        np.dtype(dtype).name,
    )
    try:
        yield handle
    finally:
        backend.close(handle)
        logger.debug("Closed %s", location)


def dims_from_probe(probe, usercrs=None, config=None):
    """Build the full ``(Lon, Lat, Band)`` dims of a probed raster."""
    if config is None:
        config = DEFAULT_DIMS_CONFIG
    gt = probe.geotransform
    if gt is None:
        gt = EMPTY_TRANSFORM
    return build_dims(
        probe.width,
        probe.height,
        probe.nbands,
        tuple(gt),
        crs=probe.projection,
        usercrs=usercrs,
        area_or_point=probe.tags.get(config.area_or_point_key),
        config=config,
    )


def _convert_nodata(nv, dtype):
    dtype = np.dtype(dtype)
    if not fits_dtype(nv, dtype):
        raise ValueError(f"{nv!r} can't be represented as {dtype}")
    if is_bool(dtype):
        return bool(nv)
    if is_int(dtype):
        return dtype.type(int(nv))
    if is_float(dtype):
        return dtype.type(nv)
    return nv


def missingval_from_probe(probe):
    """Get the missing value of a raster, cast to its pixel dtype.

    If the no-data value can't be represented in the dtype, a
    :class:`rasterdims.exceptions.IncompatibleNoDataWarning` is emitted and
    the value is returned unconverted.

    """
    nv = probe.nodata
    if nv is None:
        return None
    dtype = np.dtype(probe.dtype)
    try:
        return _convert_nodata(nv, dtype)
    except (ValueError, OverflowError, TypeError):
        warnings.warn(
            f"No data value {nv!r} is not convertible to data type {dtype}. "
            "The missing value is probably incorrect.",
            IncompatibleNoDataWarning,
            stacklevel=2,
        )
        return nv


def metadata_from_probe(probe):
    return {
        "filepath": probe.filepath,
        "scale": probe.scale,
        "offset": probe.offset,
        "units": probe.units,
    }


def read_windowed(backend, handle, full_dims, window):
    """Read the data selected by a resolved `window` from an open handle.

    The result is laid out in the order of `full_dims`, with axes collapsed by
    integer window entries dropped.

    """
    ranges, local = window_to_ranges(window)
    ilon = dimnum(full_dims, Lon)
    ilat = dimnum(full_dims, Lat)
    iband = dimnum(full_dims, Band)
    (b0, b1) = ranges[iband]
    bands = range(b0 + 1, b1 + 1)
    size = window_size(window)
    if 0 in size:
        return np.empty(size, dtype=backend.probe(handle).dtype)
    data = backend.read_window(handle, (ranges[ilat], ranges[ilon]), bands)
    # (band, row, col) -> order of full_dims
    axis_of = {iband: 0, ilat: 1, ilon: 2}
    data = np.transpose(data, [axis_of[i] for i in range(3)])
    return apply_indices(data, local)
