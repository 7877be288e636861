"""PyTest test configuration."""

# pylint: disable=missing-docstring

from pathlib import Path

import numpy as np
import pytest
import xarray as xr


def pytest_addoption(parser):  # numpydoc ignore=GL08
    parser.addoption("--skip-integration", action="store_true", default=False, help="skip end-to-end conversion tests")


def pytest_collection_modifyitems(config, items):  # numpydoc ignore=GL08
    if config.getoption("--skip-integration"):
        skip_slow = pytest.mark.skip(reason="--skip-integration option provided")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture(name="make_trendy_file")
def fixture_make_trendy_file(tmp_path):
    """
    Factory writing small TRENDY-like NetCDF files.

    The file holds one variable on ``(time, lat, lon)`` with a 2x3 grid and
    values ``0, 1, 2, ...`` unless ``data`` is given. Every aspect of the time
    axis can be chosen, and ``encoding`` sets how the variable is stored.

    Parameters
    ----------
    tmp_path : pathlib.Path
        Pytest temporary directory.

    Returns
    -------
    callable
        ``_make(name, ...) -> pathlib.Path``.

    Examples
    --------
    def test_something(make_trendy_file):
        path = make_trendy_file(time=[1, 2, 3], units="months")
    """

    def _make(
        name: str = "CLASSIC_S3_gpp.nc",
        variable: str = "gpp",
        time=(150.0, 151.0, 152.0),
        units: str | None = "years since 1850",
        calendar: str | None = None,
        lat_name: str = "lat",
        lon_name: str = "lon",
        var_attrs: dict | None = None,
        directory: Path | None = None,
        data=None,
        encoding: dict | None = None,
    ) -> Path:
        time = np.asarray(time)
        if data is None:
            data = np.arange(len(time) * 6, dtype="float64").reshape(len(time), 2, 3)
        time_attrs = {}
        if units is not None:
            time_attrs["units"] = units
        if calendar is not None:
            time_attrs["calendar"] = calendar
        if var_attrs is None:
            var_attrs = {"units": "gC m-2", "long_name": "Gross Primary Production"}
        ds = xr.Dataset(
            {variable: (("time", lat_name, lon_name), data, var_attrs)},
            coords={
                "time": ("time", time, time_attrs),
                lat_name: (lat_name, np.array([-45.0, 45.0]), {"units": "degrees"}),
                lon_name: (lon_name, np.array([0.0, 120.0, 240.0]), {"units": "degrees"}),
            },
        )
        path = Path(directory or tmp_path) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        ds.to_netcdf(path, encoding={variable: encoding} if encoding else None)
        return path

    return _make
