# Copyright (C) 2025 Andy Aschwanden
#
# This file is part of trendy-ilamb.
#
# TRENDY-ILAMB is free software; you can redistribute it and/or modify it under the
# terms of the GNU General Public License as published by the Free Software
# Foundation; either version 3 of the License, or (at your option) any later
# version.
#
# TRENDY-ILAMB is distributed in the hope that it will be useful, but WITHOUT ANY
# WARRANTY; without even the implied warranty of MERCHANTABILITY or FITNESS
# FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
# details.
#
# You should have received a copy of the GNU General Public License
# along with TRENDY-ILAMB; if not, write to the Free Software

"""
Tests for the in-memory output container.
"""

from __future__ import annotations

import numpy as np
import pytest
import xarray as xr
from numpy.testing import assert_array_equal

from trendy_ilamb.container import OutputContainer


def _container() -> OutputContainer:
    """
    Build a small container with a time axis and one variable.

    Returns
    -------
    OutputContainer
        Container with dimensions ``time`` and ``nb``.
    """
    c = OutputContainer()
    c.define_dimension("time", 3)
    c.define_dimension("nb", 2)
    c.add_variable("time", ("time",), np.array([0, 31, 59]), attrs={"units": "days since 1850-01-01"})
    c.add_variable("time_bounds", ("time", "nb"), np.array([[0, 31], [31, 59], [59, 90]], dtype="float64"))
    c.add_variable("gpp", ("time",), np.array([1.0, 2.0, 3.0]), attrs={"units": "kg m-2 s-1"})
    return c


def test_define_dimension_is_idempotent():
    """
    Defining a dimension twice with the same size is a no-op.
    """
    c = OutputContainer()
    assert c.define_dimension("lat", 2) is True
    assert c.define_dimension("lat", 2) is False
    assert c.dimensions == {"lat": 2}


def test_define_dimension_size_conflict():
    """
    Fail when a dimension is redefined with another size.
    """
    c = OutputContainer()
    c.define_dimension("lat", 2)
    with pytest.raises(ValueError):
        c.define_dimension("lat", 3)


def test_dimension_order_is_kept():
    """
    Dimensions are kept in definition order.
    """
    c = OutputContainer()
    for name, size in (("lat", 2), ("lon", 3), ("time", 4), ("nb", 2)):
        c.define_dimension(name, size)
    c.define_dimension("lat", 2)
    assert list(c.dimensions) == ["lat", "lon", "time", "nb"]


def test_undefined_dimension_fails():
    """
    Fail when a variable uses a dimension that was never defined.
    """
    c = OutputContainer()
    with pytest.raises(KeyError):
        c.add_variable("gpp", ("time",), np.zeros(3))


def test_shape_mismatch_fails():
    """
    Fail when data do not match the dimension sizes.
    """
    c = OutputContainer()
    c.define_dimension("time", 3)
    with pytest.raises(ValueError):
        c.add_variable("gpp", ("time",), np.zeros(4))


def test_to_dataset_coordinates():
    """
    One-dimensional variables named after their dimension become coordinates.
    """
    ds = _container().to_dataset()
    assert "time" in ds.coords
    assert "gpp" in ds.data_vars
    assert "time_bounds" in ds.data_vars


def test_write(tmp_path):
    """
    Written files hold the collected variables and no temporary file remains.
    """
    path = _container().write(tmp_path / "sub" / "out.nc")
    assert path.exists()
    assert [p.name for p in path.parent.iterdir()] == ["out.nc"]
    with xr.open_dataset(path, decode_times=False) as ds:
        assert_array_equal(ds["time"].values, [0, 31, 59])
        assert ds["time"].attrs["units"] == "days since 1850-01-01"
        assert ds["time_bounds"].dims == ("time", "nb")


def test_failed_write_leaves_nothing(tmp_path):
    """
    A failing write removes its temporary file and keeps an existing output.
    """
    target = tmp_path / "out.nc"
    target.write_bytes(b"previous")
    c = _container()
    c.encoding["gpp"] = {"no_such_encoding_key": 1}
    with pytest.raises(ValueError):
        c.write(target)
    assert target.read_bytes() == b"previous"
    assert [p.name for p in tmp_path.iterdir()] == ["out.nc"]
