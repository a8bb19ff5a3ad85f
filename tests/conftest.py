import numpy as np
import pytest

from tests.utils import GRID_GT, SMALL_GT, FakeBackend, make_raster


@pytest.fixture
def small_data():
    # 1 band, 2 rows, 3 cols
    return np.array([[[1, 2, 3], [4, 5, 6]]], dtype="int16")


@pytest.fixture
def small_path(tmp_path, small_data):
    return make_raster(tmp_path / "small.tif", small_data, SMALL_GT)


@pytest.fixture
def grid_data():
    return np.arange(3 * 8 * 10, dtype="float32").reshape((3, 8, 10))


@pytest.fixture
def grid_path(tmp_path, grid_data):
    return make_raster(
        tmp_path / "grid.tif",
        grid_data,
        GRID_GT,
        crs="EPSG:4326",
        nodata=-9999.0,
    )


@pytest.fixture
def fake_backend(small_data):
    backend = FakeBackend()
    backend.add("mem://small", small_data, gt=SMALL_GT)
    return backend
