from rasterdims._version import __version__  # noqa
from rasterdims.array import (
    GeoArray,
    IndexKind,
    IndexResult,
    LazyArray,
    open_array,
    write,
)
from rasterdims.backend import Backend, RasterioBackend
from rasterdims.config import DimsConfig, WriteOptions
from rasterdims.dims import Band, Lat, Lon
from rasterdims.exceptions import (
    DimensionsError,
    IncompatibleNoDataWarning,
    MissingBandDimError,
    MissingSpatialDimsError,
    RasterDimsError,
    RasterNotFoundError,
    SelectorError,
    UnsupportedTransformError,
)
from rasterdims.selectors import At, Between, Contains, Near
from rasterdims.stack import LazyStack, copy_into

__all__ = [
    "At",
    "Backend",
    "Band",
    "Between",
    "Contains",
    "DimensionsError",
    "DimsConfig",
    "GeoArray",
    "IncompatibleNoDataWarning",
    "IndexKind",
    "IndexResult",
    "Lat",
    "LazyArray",
    "LazyStack",
    "Lon",
    "MissingBandDimError",
    "MissingSpatialDimsError",
    "Near",
    "RasterDimsError",
    "RasterNotFoundError",
    "RasterioBackend",
    "SelectorError",
    "UnsupportedTransformError",
    "WriteOptions",
    "copy_into",
    "open_array",
    "write",
]
