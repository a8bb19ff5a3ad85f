import os

import numpy as np

from rasterdims.exceptions import RasterNotFoundError


def validate_path(path):
    if os.path.exists(path):
        return path
    raise RasterNotFoundError(f"Path does not exist: '{path}'")


def is_strictly_increasing(x):
    x = np.atleast_1d(np.asarray(x).squeeze())
    assert x.ndim == 1

    diff = np.diff(x)
    return len(diff) > 0 and (diff > 0).all()


def is_strictly_decreasing(x):
    x = np.atleast_1d(np.asarray(x).squeeze())
    assert x.ndim == 1

    diff = np.diff(x)
    return len(diff) > 0 and (diff < 0).all()


def has_regular_step(idx):
    """True if the 1D integer array `idx` has a constant positive step."""
    idx = np.asarray(idx)
    if idx.size < 2:
        return idx.size == 1
    diff = np.diff(idx)
    return bool(diff[0] > 0 and (diff == diff[0]).all())
