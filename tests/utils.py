import numpy as np
import rasterio as rio

from rasterdims.backend import Backend, RasterProbe
from rasterdims.exceptions import RasterNotFoundError
from rasterdims.geotransform import to_affine
from rasterdims.utils import is_strictly_decreasing, is_strictly_increasing
from rasterdims.window import _is_int

SMALL_GT = (0.0, 1.0, 0.0, 10.0, 0.0, -5.0)
GRID_GT = (-120.0, 0.5, 0.0, 46.0, 0.0, -0.5)


def make_raster(path, data, gt, crs=None, nodata=None, tags=None, dtype=None):
    """Write a GeoTIFF from `data` laid out as ``(band, row, col)``."""
    data = np.asarray(data)
    if data.ndim == 2:
        data = data[None]
    dtype = data.dtype if dtype is None else np.dtype(dtype)
    nbands, height, width = data.shape
    with rio.open(
        str(path),
        "w",
        driver="GTiff",
        width=width,
        height=height,
        count=nbands,
        dtype=dtype.name,
        crs=crs,
        transform=to_affine(gt),
        nodata=nodata,
    ) as ds:
        ds.write(data.astype(dtype))
        if tags:
            ds.update_tags(**tags)
    return str(path)


def windows_equal(a, b):
    if len(a) != len(b):
        return False
    for wa, wb in zip(a, b):
        if _is_int(wa) or _is_int(wb) or isinstance(wa, slice):
            if wa != wb:
                return False
        elif isinstance(wb, slice) or not np.array_equal(wa, wb):
            return False
    return True


def assert_valid_spatial_dims(dims):
    lon, lat, band = dims
    assert lon.name == "lon"
    assert lat.name == "lat"
    assert band.name == "band"
    if len(lon) > 1:
        assert is_strictly_increasing(lon.values)
    if len(lat) > 1:
        assert is_strictly_decreasing(lat.values)
    assert np.array_equal(band.values, np.arange(len(band)) + 1)


class FakeDataset:
    def __init__(
        self,
        data,
        gt=(0.0, 1.0, 0.0, 0.0, 0.0, -1.0),
        projection="",
        nodata=None,
        tags=None,
    ):
        self.data = np.asarray(data)
        self.gt = tuple(gt)
        self.projection = projection
        self.nodata = nodata
        self.tags = dict(tags or {})


class FakeHandle:
    def __init__(self, location, dataset):
        self.location = location
        self.dataset = dataset
        self.closed = False


class FakeBackend(Backend):
    """In-memory backend that records every call made to it."""

    def __init__(self):
        self.datasets = {}
        self.calls = []
        self.open_handles = 0

    def add(self, location, data, **kwargs):
        self.datasets[location] = FakeDataset(data, **kwargs)
        return location

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    def open_for_read(self, location):
        location = str(location)
        self.calls.append(("open_for_read", location))
        if location not in self.datasets:
            raise RasterNotFoundError(f"Path does not exist: '{location}'")
        self.open_handles += 1
        return FakeHandle(location, self.datasets[location])

    def probe(self, handle):
        ds = handle.dataset
        nbands, height, width = ds.data.shape
        return RasterProbe(
            filepath=handle.location,
            width=width,
            height=height,
            nbands=nbands,
            geotransform=ds.gt,
            projection=ds.projection,
            dtype=ds.data.dtype,
            nodata=ds.nodata,
            scale=1.0,
            offset=0.0,
            units="",
            tags=ds.tags,
        )

    def read_window(self, handle, ranges, bands):
        self.calls.append(("read_window", ranges, tuple(bands)))
        (r0, r1), (c0, c1) = ranges
        bands = np.asarray(list(bands)) - 1
        return handle.dataset.data[bands, r0:r1, c0:c1].copy()

    def create_for_write(
        self, location, width, height, nbands, dtype, options
    ):
        location = str(location)
        self.calls.append(("create_for_write", location, np.dtype(dtype)))
        ds = FakeDataset(np.zeros((nbands, height, width), dtype=dtype))
        self.datasets[location] = ds
        self.open_handles += 1
        return FakeHandle(location, ds)

    def set_projection(self, handle, projection):
        self.calls.append(("set_projection", projection))
        handle.dataset.projection = projection

    def set_geotransform(self, handle, gt):
        self.calls.append(("set_geotransform", tuple(gt)))
        handle.dataset.gt = tuple(gt)

    def set_nodata(self, handle, nodata):
        self.calls.append(("set_nodata", nodata))
        handle.dataset.nodata = nodata

    def set_tags(self, handle, tags):
        self.calls.append(("set_tags", dict(tags)))
        handle.dataset.tags.update(tags)

    def write_bands(self, handle, data, band_indices):
        self.calls.append(("write_bands", tuple(band_indices)))
        idx = np.asarray(list(band_indices)) - 1
        handle.dataset.data[idx] = data

    def close(self, handle):
        self.calls.append(("close", handle.location))
        handle.closed = True
        self.open_handles -= 1
