class RasterDimsError(Exception):
    """The base exception for errors in rasterdims."""


class RasterNotFoundError(RasterDimsError, FileNotFoundError):
    """Raised if a raster location does not exist when it is opened."""


class UnsupportedTransformError(RasterDimsError):
    """
    Raised if a geotransform has rotation or shear terms.

    Only north-up, axis aligned transforms can be mapped to Lon/Lat dims.
    """


class DimensionsError(RasterDimsError):
    """Raised if there is a problem with the dimensions of an array."""


class MissingSpatialDimsError(DimensionsError):
    """Raised if an array without Lon and Lat dims is written."""


class MissingBandDimError(DimensionsError):
    """Raised if a 3D array without a Band dim is written."""


class SelectorError(RasterDimsError, KeyError):
    """Raised if a coordinate selector does not match any index."""


class IncompatibleNoDataWarning(UserWarning):
    """
    Warned when a no-data value can't be represented in the pixel dtype.
    """
