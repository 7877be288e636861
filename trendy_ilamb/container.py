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
In-memory output container written atomically to NetCDF.
"""

from __future__ import annotations

import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

import numpy as np
import xarray as xr


class OutputContainer:
    """
    Collect dimensions and variables of an output file before writing it.

    Dimensions are defined explicitly and in order; defining an existing
    dimension again with the same size is a no-op. Variables may only use
    defined dimensions.

    Examples
    --------
    >>> c = OutputContainer()
    >>> c.define_dimension("time", 3)
    True
    >>> c.define_dimension("time", 3)
    False
    >>> c.dimensions
    {'time': 3}
    """

    def __init__(self):
        self.dimensions: dict[str, int] = {}
        self.variables: dict[str, xr.Variable] = {}
        self.encoding: dict[str, dict[str, Any]] = {}
        self.attrs: dict[str, Any] = {}

    def define_dimension(self, name: str, size: int) -> bool:
        """
        Define a dimension unless it already exists.

        Parameters
        ----------
        name : str
            Dimension name.
        size : int
            Dimension length.

        Returns
        -------
        bool
            True if the dimension was added, False if it already existed.

        Raises
        ------
        ValueError
            If the dimension exists with a different size.
        """
        size = int(size)
        if name in self.dimensions:
            if self.dimensions[name] != size:
                raise ValueError(f"dimension '{name}' already defined with size {self.dimensions[name]}, not {size}")
            return False
        self.dimensions[name] = size
        return True

    def add_variable(
        self,
        name: str,
        dims: tuple[str, ...],
        data: Any,
        attrs: dict[str, Any] | None = None,
        encoding: dict[str, Any] | None = None,
    ) -> xr.Variable:
        """
        Add a variable over already defined dimensions.

        Parameters
        ----------
        name : str
            Variable name.
        dims : tuple of str
            Dimension names, each defined with :meth:`define_dimension`.
        data : array_like
            Values; the shape must match the dimension sizes.
        attrs : dict or None, optional
            Variable attributes.
        encoding : dict or None, optional
            NetCDF encoding passed to :meth:`xarray.Dataset.to_netcdf`.

        Returns
        -------
        xarray.Variable
            The stored variable.

        Raises
        ------
        KeyError
            If a dimension is not defined.
        ValueError
            If the data shape does not match the dimensions.
        """
        dims = tuple(dims)
        missing = [d for d in dims if d not in self.dimensions]
        if missing:
            raise KeyError(f"variable '{name}' uses undefined dimension(s): {', '.join(missing)}")
        data = np.asarray(data)
        expected = tuple(self.dimensions[d] for d in dims)
        if data.shape != expected:
            raise ValueError(f"variable '{name}' has shape {data.shape}, dimensions {dims} need {expected}")
        var = xr.Variable(dims, data, attrs=dict(attrs or {}))
        self.variables[name] = var
        if encoding:
            self.encoding[name] = dict(encoding)
        return var

    def to_dataset(self) -> xr.Dataset:
        """
        Assemble the collected variables.

        Returns
        -------
        xarray.Dataset
            Dataset with coordinate variables (one-dimensional variables named
            after their dimension) as coordinates.
        """
        coords = {k: v for k, v in self.variables.items() if v.dims == (k,)}
        data_vars = {k: v for k, v in self.variables.items() if k not in coords}
        return xr.Dataset(data_vars=data_vars, coords=coords, attrs=self.attrs)

    def write(self, path: str | Path) -> Path:
        """
        Write the container to NetCDF, atomically.

        The file is written under a temporary name in the target directory and
        renamed on success; on failure the temporary file is removed and an
        existing file at ``path`` is left untouched.

        Parameters
        ----------
        path : str or pathlib.Path
            Output file.

        Returns
        -------
        pathlib.Path
            The written file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False) as f:
            tmp = Path(f.name)
        try:
            ds = self.to_dataset()
            ds.to_netcdf(tmp, encoding=self.encoding)
            ds.close()
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        return path
