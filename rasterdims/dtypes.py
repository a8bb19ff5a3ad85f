from numbers import Integral, Number

import numpy as np

U8 = np.dtype(np.uint8)


def is_int(value_or_dtype):
    if isinstance(value_or_dtype, np.dtype):
        return value_or_dtype.kind in ("u", "i")
    return isinstance(value_or_dtype, Integral)


def is_float(value_or_dtype):
    if isinstance(value_or_dtype, np.dtype):
        return value_or_dtype.kind == "f"
    return is_scalar(value_or_dtype) and not is_int(value_or_dtype)


def is_bool(value_or_dtype):
    if isinstance(value_or_dtype, np.dtype):
        return value_or_dtype.kind == "b"
    return isinstance(value_or_dtype, (bool, np.bool_))


def is_scalar(value_or_dtype):
    if not isinstance(value_or_dtype, np.dtype):
        return isinstance(value_or_dtype, Number)
    return is_int(value_or_dtype) or is_float(value_or_dtype)


def should_write_as_byte(dtype):
    """GDAL has no boolean pixel type so booleans are stored as bytes."""
    return is_bool(np.dtype(dtype))


def fits_dtype(value, dtype):
    """Return ``True`` if `value` can be stored in `dtype` without change."""
    dtype = np.dtype(dtype)
    if is_bool(dtype):
        return value in (0, 1)
    if is_int(dtype):
        if not np.isfinite(value) or not float(value).is_integer():
            return False
        info = np.iinfo(dtype)
        return info.min <= value <= info.max
    if is_float(dtype):
        return not np.isfinite(value) or abs(value) <= np.finfo(dtype).max
    return True
