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
Unit and variable metadata lookups.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from typing import NamedTuple

# TRENDY unit strings -> CF units; only the string changes, never the data
DEFAULT_UNIT_CONVERSIONS = {
    "gC/m^2": "kg m-2",
    "gC/m2": "kg m-2",
    "mm/yr": "kg m-2 s-1",
    "mm/year": "kg m-2 s-1",
    "gC m-2": "kg m-2",
    "gC m-2 yr-1": "kg m-2 s-1",
    "kgC m-2": "kg m-2",
}

DEFAULT_VARIABLES = {
    "cVeg": {
        "name": "cVeg",
        "long_name": "Carbon in Vegetation",
        "units": "kg m-2",
        "standard_name": "vegetation_carbon_content",
    },
    "cSoil": {
        "name": "cSoil",
        "long_name": "Carbon in Soil",
        "units": "kg m-2",
        "standard_name": "soil_carbon_content",
    },
    "gpp": {
        "name": "gpp",
        "long_name": "Gross Primary Production",
        "units": "kg m-2 s-1",
        "standard_name": "gross_primary_productivity_of_carbon",
    },
}

DEFAULT_ILAMB_VARIABLES = (
    "gpp",
    "nbp",
    "npp",
    "ra",
    "rh",
    "lai",
    "mrro",
    "mrros",
    "mrso",
    "evapotrans",
    "cSoil",
    "cVeg",
    "cLitter",
    "cProduct",
    "burntArea",
    "fFire",
    "tas",
    "pr",
    "rsds",
)


class VariableInfo(NamedTuple):
    """
    ILAMB metadata of a variable.
    """

    name: str
    long_name: str
    units: str
    standard_name: str


def standardize_units(units: str, table: Mapping[str, str] | None = None) -> str:
    """
    Map a TRENDY units string to its CF spelling.

    Parameters
    ----------
    units : str
        Units as found in the file.
    table : Mapping or None, optional
        Lookup table; defaults to :data:`DEFAULT_UNIT_CONVERSIONS`.

    Returns
    -------
    str
        The mapped units, or ``units`` unchanged if there is no mapping.

    Examples
    --------
    >>> standardize_units("gC/m^2")
    'kg m-2'
    >>> standardize_units("W m-2")
    'W m-2'
    """
    table = DEFAULT_UNIT_CONVERSIONS if table is None else table
    return table.get(units, units)


def get_variable_metadata(variable: str, table: Mapping[str, Mapping[str, str]] | None = None) -> VariableInfo:
    """
    Look up ILAMB metadata for a TRENDY variable.

    Parameters
    ----------
    variable : str
        TRENDY variable name.
    table : Mapping or None, optional
        Mapping from variable name to a mapping with ``name``, ``long_name``,
        ``units`` and ``standard_name``; defaults to :data:`DEFAULT_VARIABLES`.

    Returns
    -------
    VariableInfo
        Metadata for ``variable``. Unknown variables get a placeholder with
        ``units="unknown"`` and a warning is issued.
    """
    table = DEFAULT_VARIABLES if table is None else table
    entry = table.get(variable)
    if entry is None:
        warnings.warn(f"No metadata mapping found for variable: {variable}")
        return VariableInfo(variable, variable, "unknown", variable)
    return VariableInfo(
        entry.get("name", variable),
        entry.get("long_name", variable),
        entry.get("units", "unknown"),
        entry.get("standard_name", variable),
    )
