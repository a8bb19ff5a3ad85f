import numpy as np
import pytest

from rasterdims.dims import Band, Irregular, Lat, Lon, Regular, build_dims
from rasterdims.selectors import At, Between
from rasterdims.window import (
    apply_indices,
    compose_indices,
    dims_to_indices,
    is_full_window,
    resolve_window,
    slice_dims,
    window_size,
    window_to_ranges,
)
from tests.utils import windows_equal

GT = (0.0, 1.0, 0.0, 10.0, 0.0, -5.0)


@pytest.fixture
def small_dims():
    return build_dims(3, 2, 1, GT)


@pytest.fixture
def dims():
    return build_dims(10, 8, 3, (-120.0, 0.5, 0.0, 46.0, 0.0, -0.5))


def test_identity_window(dims):
    for pending in [(), None, {}]:
        window = resolve_window(dims, pending)
        assert window == (slice(0, 10), slice(0, 8), slice(0, 3))
        assert is_full_window(dims, window)
    assert window_size(resolve_window(dims, ())) == (10, 8, 3)


@pytest.mark.parametrize(
    "pending,expected",
    [
        ((slice(1, 3),), (slice(1, 3), slice(0, 8), slice(0, 3))),
        ({"lat": 2}, (slice(0, 10), 2, slice(0, 3))),
        ({"band": -1}, (slice(0, 10), slice(0, 8), 2)),
        ((Lon(slice(2, 4)),), (slice(2, 4), slice(0, 8), slice(0, 3))),
        (Band(0), (slice(0, 10), slice(0, 8), 0)),
        ((Band(At(2)), Lon(slice(0, 4))), (slice(0, 4), slice(0, 8), 1)),
        ((slice(0, 9, 2),), (slice(0, 9, 2), slice(0, 8), slice(0, 3))),
        ((slice(0, 10, 3),), (slice(0, 10, 3), slice(0, 8), slice(0, 3))),
        ((np.array([1, 2, 3]),), (slice(1, 4), slice(0, 8), slice(0, 3))),
        ((slice(5, 2),), (slice(5, 5), slice(0, 8), slice(0, 3))),
    ],
)
def test_resolve_window(dims, pending, expected):
    window = resolve_window(dims, pending)
    assert windows_equal(window, expected)


def test_resolve_window_arrays(dims):
    window = resolve_window(dims, (np.array([0, 1, 5]),))
    assert np.array_equal(window[0], [0, 1, 5])
    mask = np.zeros(8, dtype=bool)
    mask[[1, 3]] = True
    window = resolve_window(dims, {"lat": mask})
    assert window[1] == slice(1, 4, 2)
    window = resolve_window(dims, ([-1, 0],))
    assert np.array_equal(window[0], [9, 0])


def test_resolve_window_selectors(dims):
    window = resolve_window(
        dims, (Lon(Between(-119.0, -118.0)), Lat(At(45.5)))
    )
    assert window == (slice(2, 4), 1, slice(0, 3))


def test_resolve_window_errors(dims):
    with pytest.raises(IndexError):
        resolve_window(dims, (0, 0, 0, 0))
    with pytest.raises(IndexError):
        resolve_window(dims, (10,))
    with pytest.raises(IndexError):
        resolve_window(dims, (slice(None, None, -1),))
    with pytest.raises(IndexError):
        resolve_window(dims, (np.array([0, 12]),))
    with pytest.raises(IndexError):
        resolve_window(dims, {"lat": np.ones(3, dtype=bool)})
    with pytest.raises(ValueError):
        resolve_window(dims, {"time": 0})
    with pytest.raises(TypeError):
        resolve_window(dims, (Lon(0), slice(None)))


@pytest.mark.parametrize(
    "pending",
    [
        (Lon(0), Lon(1)),
        (Band(0), Lat(slice(0, 2)), Band(At(2))),
        {"lon": 0, Lon: 1},
    ],
)
def test_resolve_window_repeated_dim(dims, pending):
    with pytest.raises(ValueError, match="lon|band"):
        resolve_window(dims, pending)


def test_dims_to_indices_relative(small_dims):
    assert dims_to_indices(small_dims, (1, 0)) == (1, 0, slice(0, 1))


def test_slice_dims(small_dims):
    indices = resolve_window(small_dims, (slice(1, 3), 0))
    dims, refdims = slice_dims(small_dims, (), indices)
    assert [d.name for d in dims] == ["lon", "band"]
    assert np.allclose(dims[0].values, [1, 2])
    assert dims[0].mode == small_dims[0].mode
    assert len(refdims) == 1
    assert isinstance(refdims[0], Lat)
    assert np.allclose(refdims[0].values, [10])
    assert refdims[0].mode == small_dims[1].mode


def test_slice_dims_span(dims):
    sliced, _ = slice_dims(dims, (), resolve_window(dims, (slice(0, 9, 2),)))
    assert sliced[0].span == Regular(1.0)
    assert np.allclose(sliced[0].values, [-120, -119, -118, -117, -116])

    sliced, _ = slice_dims(dims, (), (np.array([0, 1, 5]),))
    assert sliced[0].span == Irregular()
    assert sliced[0].step is None


def test_slice_dims_keeps_refdims(small_dims):
    existing = (Band(np.array([1])),)
    _, refdims = slice_dims(small_dims, existing, (0, slice(0, 2), 0))
    assert [type(d) for d in refdims] == [Band, Lon, Band]


def test_compose_identity(dims):
    window = resolve_window(dims, (slice(2, 9), 3))
    _, current = slice_dims(dims, (), window)
    composed, newdims, refdims = compose_indices(
        dims, window, (), refdims=current
    )
    assert windows_equal(composed, window)
    assert [d.name for d in newdims] == ["lon", "band"]
    assert [d.name for d in refdims] == ["lat"]


def test_compose_relative(small_dims):
    # Element 0 of a lon=1:3 window is absolute lon index 1
    window = resolve_window(small_dims, (slice(1, 3),))
    composed, newdims, refdims = compose_indices(
        small_dims, window, (0, 0, 0)
    )
    assert composed == (1, 0, 0)
    assert newdims == ()
    assert [d.name for d in refdims] == ["lon", "lat", "band"]
    assert np.allclose(refdims[0].values, [1])


@pytest.mark.parametrize(
    "w1,a,b,combined",
    [
        (
            (slice(2, 9),),
            (slice(1, 6),),
            (slice(1, 3),),
            (slice(2, 4),),
        ),
        (
            (slice(2, 9),),
            (slice(0, 6, 2),),
            ([0, 2],),
            ([0, 4],),
        ),
        (
            (slice(1, 10), slice(1, 7)),
            (np.array([0, 3, 4, 8]), 2),
            (slice(1, 3),),
            (np.array([3, 4]), 2),
        ),
        (
            {"band": slice(1, 3)},
            {"lat": slice(2, 6)},
            {"lat": 1, "band": 0},
            {"lat": 3, "band": 0},
        ),
    ],
)
def test_compose_law(dims, w1, a, b, combined):
    first, _, refdims = compose_indices(dims, w1, a)
    twice, dims2, refdims2 = compose_indices(dims, first, b, refdims=refdims)
    once, dims1, refdims1 = compose_indices(dims, w1, combined)
    assert windows_equal(twice, once)
    assert dims2 == dims1
    assert refdims2 == refdims1


def test_compose_selectors(dims):
    window = resolve_window(dims, (slice(4, 10),))
    # The window starts at lon -118
    composed, _, _ = compose_indices(
        dims, window, (Lon(At(-117.5)), Lat(Between(44.0, 46.0)))
    )
    assert composed == (5, slice(0, 4), slice(0, 3))


def test_compose_refdims_threaded(dims):
    existing = (Band(np.array([7])),)
    _, _, refdims = compose_indices(dims, (), (0,), refdims=existing)
    assert [type(d) for d in refdims] == [Band, Lon]


def test_compose_refdims_collapse_order(dims):
    window, _, refdims = compose_indices(dims, (), {"band": 1})
    window, _, refdims = compose_indices(dims, window, (2,), refdims)
    window, newdims, refdims = compose_indices(
        dims, window, (), refdims=refdims
    )
    assert [d.name for d in newdims] == ["lat"]
    assert [d.name for d in refdims] == ["band", "lon"]
    assert np.allclose(refdims[0].values, [2])
    assert np.allclose(refdims[1].values, [-119.0])


def test_window_size():
    assert window_size((slice(0, 10), 2, slice(0, 3))) == (10, 3)
    assert window_size((slice(0, 9, 2), np.array([1, 4]))) == (5, 2)
    assert window_size((slice(3, 3), 0, 0)) == (0,)
    assert window_size((1, 2, 3)) == ()


def test_window_to_ranges():
    ranges, local = window_to_ranges((1, slice(0, 5, 2), np.array([3, 1, 4])))
    assert ranges == ((1, 2), (0, 5), (1, 5))
    assert local[0] == 0
    assert local[1] == slice(None, None, 2)
    assert np.array_equal(local[2], [2, 0, 3])


def test_apply_indices():
    data = np.arange(24).reshape((2, 3, 4))
    out = apply_indices(data, (slice(None), np.array([0, 2]), [1, 3]))
    assert out.shape == (2, 2, 2)
    assert np.array_equal(out, data[:, [0, 2]][..., [1, 3]])
    out = apply_indices(data, (1, slice(None, None, 2), 0))
    assert np.array_equal(out, data[1, ::2, 0])
    assert apply_indices(data, (1, 2, 3)) == data[1, 2, 3]
