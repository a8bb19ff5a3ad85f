"""Window algebra: resolving and composing index windows lazily.

A pending window can be given as a tuple of dimension wrapped requests
(``(Lon(slice(0, 10)), Band(At(2)))``), as positional indices or selectors
aligned with the dims, or as a dict keyed by dimension name. A resolved window
is a tuple aligned with the full dims holding, per axis, an ``int`` (the axis
is collapsed), a canonical ``slice`` or a 1D integer numpy array. Resolved
windows always index the full backing extent.
"""

import numbers
from dataclasses import replace

import numpy as np

from rasterdims.dims import Dimension, Irregular, Regular, dimnum
from rasterdims.selectors import select_index, translate_selectors
from rasterdims.utils import has_regular_step

__all__ = [
    "apply_indices",
    "compose_indices",
    "dims_to_indices",
    "is_full_window",
    "resolve_window",
    "slice_dims",
    "window_size",
    "window_to_ranges",
]


def _is_int(index):
    return isinstance(index, numbers.Integral) and not isinstance(
        index, (bool, np.bool_)
    )


def _canonical_slice(start, stop, step):
    n = len(range(start, stop, step))
    if n == 0:
        return slice(start, start)
    stop = start + (n - 1) * step + 1
    return slice(start, stop, None if step == 1 else step)


def _canonical_array(idx):
    idx = np.asarray(idx, dtype=np.intp)
    if idx.size == 0:
        return slice(0, 0)
    if has_regular_step(idx):
        step = int(idx[1] - idx[0]) if idx.size > 1 else 1
        return _canonical_slice(int(idx[0]), int(idx[-1]) + 1, step)
    return idx


def _to_positional(index, n):
    """Normalize a raw index into an int, canonical slice or int array."""
    if _is_int(index):
        i = int(index)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError(f"Index {index} is out of bounds for size {n}")
        return i
    if isinstance(index, slice):
        start, stop, step = index.indices(n)
        if step < 0:
            raise IndexError("Negative slice steps are not supported")
        return _canonical_slice(start, stop, step)
    idx = np.asarray(index)
    if idx.dtype == bool:
        if idx.shape != (n,):
            raise IndexError(
                f"Boolean index of shape {idx.shape} does not match size {n}"
            )
        return _canonical_array(np.flatnonzero(idx))
    if idx.ndim != 1 or (idx.size and idx.dtype.kind not in "iu"):
        raise IndexError(f"Unsupported index: {index!r}")
    idx = idx.astype(np.intp)
    idx = np.where(idx < 0, idx + n, idx)
    if idx.size and (idx.min() < 0 or idx.max() >= n):
        raise IndexError(f"Index {index!r} is out of bounds for size {n}")
    return _canonical_array(idx)


def dims_to_indices(dims, window):
    """Translate a pending window into positional indices aligned with `dims`.

    Selectors are resolved against the dims. Lon/Lat selectors are first
    translated from the dims' user CRS to their native CRS, if one was given.

    Parameters
    ----------
    dims : tuple of Dimension
        The dims the window applies to.
    window : tuple, dict, Dimension, scalar or None
        The pending window. ``None`` and ``()`` select everything.

    Returns
    -------
    tuple
        One normalized index (``int``, ``slice`` or int array) per dim.

    """
    indices = [slice(None)] * len(dims)
    seen = set()

    def assign(key, index):
        i = dimnum(dims, key)
        if i in seen:
            raise ValueError(f"Dimension {dims[i].name!r} indexed twice")
        seen.add(i)
        indices[i] = index

    if window is None:
        window = ()
    if isinstance(window, dict):
        for key, index in window.items():
            assign(key, index)
    else:
        if not isinstance(window, (tuple, list)):
            window = (window,)
        wrapped = [isinstance(w, Dimension) for w in window]
        if any(wrapped):
            if not all(wrapped):
                raise TypeError(
                    "Can't mix dimension wrapped and positional indices"
                )
            for w in window:
                assign(w, w.values)
        else:
            if len(window) > len(dims):
                raise IndexError(
                    f"Too many indices: got {len(window)} for "
                    f"{len(dims)} dims"
                )
            indices[: len(window)] = window
    indices = translate_selectors(dims, indices)
    return tuple(
        _to_positional(select_index(d, idx), len(d))
        for d, idx in zip(dims, indices)
    )


def resolve_window(full_dims, window):
    """Resolve a pending window into integer indices over the full extent.

    An empty window resolves to ``slice(0, size)`` on every axis.
    """
    return dims_to_indices(full_dims, window)


def is_full_window(full_dims, window):
    return all(
        isinstance(w, slice) and w == slice(0, len(d))
        for d, w in zip(full_dims, window)
    )


def _slice_mode(mode, index):
    span = getattr(mode, "span", None)
    if not isinstance(span, Regular):
        return mode
    if isinstance(index, slice):
        return replace(mode, span=Regular(span.step * (index.step or 1)))
    if index.size > 1 and has_regular_step(index):
        return replace(
            mode, span=Regular(span.step * int(index[1] - index[0]))
        )
    if index.size > 1:
        return replace(mode, span=Irregular())
    return mode


def slice_dims(dims, refdims, indices):
    """Apply positional `indices` to `dims`.

    Integer indices drop their dim and append it to the reference dims,
    holding just the selected coordinate value.

    Returns
    -------
    tuple
        ``(dims, refdims)``, both tuples.

    """
    newdims = []
    newrefdims = list(refdims)
    for d, index in zip(dims, indices):
        index = _to_positional(index, len(d))
        values = np.asarray(d.values)
        if _is_int(index):
            newrefdims.append(d.with_values(values[index : index + 1]))
        else:
            mode = _slice_mode(d.mode, index)
            newdims.append(d.rebuild(values=values[index], mode=mode))
    return tuple(newdims), tuple(newrefdims)


def compose_indices(full_dims, window, indices, refdims=()):
    """Compose an incoming index request with an existing resolved window.

    The request is interpreted relative to the windowed dims, but the result
    is expressed over the full extent so that windows compose without
    reference to intermediate coordinate spaces.

    Parameters
    ----------
    full_dims : tuple of Dimension
        The full, unwindowed dims.
    window : tuple
        The existing window. It is resolved first if needed.
    indices : tuple, dict, Dimension or scalar
        The new request.
    refdims : tuple of Dimension, optional
        The current reference dims. Axes collapsed by this request are
        appended to them, in dim order.

    Returns
    -------
    tuple
        ``(window, dims, refdims)`` where `window` is the new resolved window
        over `full_dims` and `dims`/`refdims` describe the result.

    """
    window = resolve_window(full_dims, window)
    windims, _ = slice_dims(full_dims, (), window)
    newidx = iter(dims_to_indices(windims, indices))
    composed = []
    for d, w in zip(full_dims, window):
        if _is_int(w):
            composed.append(w)
            continue
        absolute = np.arange(len(d))[w]
        k = next(newidx)
        if _is_int(k):
            composed.append(int(absolute[k]))
        else:
            composed.append(_canonical_array(absolute[k]))
    composed = tuple(composed)
    dims, _ = slice_dims(full_dims, (), composed)
    collapsed = [
        (d, c)
        for d, w, c in zip(full_dims, window, composed)
        if _is_int(c) and not _is_int(w)
    ]
    _, newrefdims = slice_dims(
        tuple(d for d, _ in collapsed), refdims, tuple(c for _, c in collapsed)
    )
    return composed, dims, newrefdims


def window_size(window):
    """The shape of the data selected by a resolved window."""
    size = []
    for w in window:
        if _is_int(w):
            continue
        if isinstance(w, slice):
            size.append(len(range(w.start, w.stop, w.step or 1)))
        else:
            size.append(len(w))
    return tuple(size)


def window_to_ranges(window):
    """Split a resolved window into contiguous read ranges and local indices.

    Returns
    -------
    tuple
        ``(ranges, local)``. `ranges` holds a half-open ``(start, stop)`` pair
        per axis covering everything the window touches. `local` holds the
        index to apply to the data read from those ranges.

    """
    ranges = []
    local = []
    for w in window:
        if _is_int(w):
            ranges.append((w, w + 1))
            local.append(0)
        elif isinstance(w, slice):
            ranges.append((w.start, max(w.start, w.stop)))
            local.append(slice(None, None, w.step))
        else:
            lo = int(w.min())
            ranges.append((lo, int(w.max()) + 1))
            local.append(w - lo)
    return tuple(ranges), tuple(local)


def apply_indices(data, indices):
    """Index `data` independently along each axis.

    Integer array indices are applied per axis (outer indexing) rather than
    being broadcast together as numpy's fancy indexing would.
    """
    for axis in reversed(range(len(indices))):
        index = indices[axis]
        if _is_int(index) or not isinstance(index, slice):
            data = np.take(data, index, axis=axis)
        else:
            data = data[(slice(None),) * axis + (index,)]
    return data
