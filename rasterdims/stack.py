"""Lazy stacks of named rasters."""

from collections.abc import Mapping

import numpy as np
import xarray as xr

from rasterdims.array import GeoArray, LazyArray
from rasterdims.backend import (
    dims_from_probe,
    get_backend,
    read_windowed,
    reading,
)
from rasterdims.window import resolve_window, window_size

__all__ = ["LazyStack", "copy_into"]


class LazyStack(Mapping):
    """A mapping of layer names to raster files, opened on demand.

    Nothing is opened when the stack is built. Each lookup opens its file,
    builds a :class:`~rasterdims.array.LazyArray` and releases the file again.
    The stack's window and reference dims are applied to every layer.

    Parameters
    ----------
    filenames : dict
        Maps layer keys to raster locations. Iteration follows its order.
    refdims : tuple of Dimension, optional
        Reference dims attached to every layer.
    window : tuple, dict or Dimension, optional
        Window applied to every layer.
    usercrs : str, int, rasterio.crs.CRS, optional
        CRS that Lon/Lat selector values are given in.
    backend : rasterdims.backend.Backend, optional
        The I/O backend.
    config : rasterdims.config.DimsConfig, optional
        Controls how each layer's dims are built.

    """

    def __init__(
        self,
        filenames,
        refdims=(),
        window=(),
        usercrs=None,
        backend=None,
        config=None,
    ):
        self._filenames = dict(filenames)
        self._refdims = tuple(refdims)
        self._window = window
        self._usercrs = usercrs
        self._backend = get_backend(backend)
        self._config = config

    def __repr__(self):
        keys = ", ".join(repr(k) for k in self._filenames)
        return f"<rasterdims.LazyStack ({keys})>"

    def __getitem__(self, key):
        if isinstance(key, tuple):
            key, *indices = key
            return self[key][tuple(indices)]
        filename = self.filename(key)
        with reading(self._backend, filename) as handle:
            return LazyArray.from_handle(
                handle,
                self._backend,
                usercrs=self._usercrs,
                refdims=self._refdims,
                name=str(key),
                window=self._window,
                config=self._config,
            )

    def __iter__(self):
        return iter(self._filenames)

    def __len__(self):
        return len(self._filenames)

    @property
    def refdims(self):
        return self._refdims

    @property
    def window(self):
        return self._window

    def filename(self, key):
        """Return the location of layer `key`."""
        try:
            return self._filenames[key]
        except KeyError:
            raise KeyError(f"No layer named {key!r} in the stack") from None

    @property
    def metadata(self):
        """Metadata of the first layer, or an empty dict for an empty stack."""
        for key in self:
            return self[key].metadata
        return {}

    def with_window(self, window):
        """Return a stack with `window` applied to every layer."""
        return LazyStack(
            self._filenames,
            refdims=self._refdims,
            window=window,
            usercrs=self._usercrs,
            backend=self._backend,
            config=self._config,
        )

    def copy_into(self, dst, key):
        """Read layer `key` into the preallocated array `dst`.

        The layer is read straight from one open handle, without building a
        lazy array for it.

        Raises
        ------
        ValueError
            If the shape of `dst` does not match the layer.

        """
        backend = self._backend
        with reading(backend, self.filename(key)) as handle:
            probe = backend.probe(handle)
            full_dims = dims_from_probe(
                probe, usercrs=self._usercrs, config=self._config
            )
            window = resolve_window(full_dims, self._window)
            shape = window_size(window)
            if tuple(dst.shape) != shape:
                raise ValueError(
                    f"Destination shape {dst.shape} does not match layer "
                    f"{key!r} shape {shape}"
                )
            data = read_windowed(backend, handle, full_dims, window)
        target = dst.data if isinstance(dst, GeoArray) else dst
        np.copyto(target, data, casting="unsafe")
        return dst

    def materialize(self):
        """Read every layer into memory. Returns a dict of GeoArrays."""
        return {key: self[key].materialize() for key in self}

    def to_xarray(self):
        """Read every layer into an :class:`xarray.Dataset`."""
        layers = self.materialize()
        return xr.Dataset(
            {str(key): arr.to_xarray() for key, arr in layers.items()}
        )


def copy_into(dst, stack, key):
    """Read layer `key` of `stack` into `dst`.

    See :meth:`LazyStack.copy_into`.
    """
    return stack.copy_into(dst, key)
