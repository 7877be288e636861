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
Config.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import toml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from trendy_ilamb.variables import (
    DEFAULT_ILAMB_VARIABLES,
    DEFAULT_UNIT_CONVERSIONS,
    DEFAULT_VARIABLES,
    VariableInfo,
    get_variable_metadata,
)


def load_config(path: str | Path | None = None) -> ConversionConfig:
    """
    Load and validate a conversion configuration from a TOML file.

    Parameters
    ----------
    path : str or pathlib.Path or None, optional
        Path to the TOML configuration file. ``None`` returns the defaults.

    Returns
    -------
    ConversionConfig
        Parsed and validated configuration model.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    toml.TomlDecodeError
        If the file content is not valid TOML.
    pydantic.ValidationError
        If the parsed content fails model validation.

    Examples
    --------
    >>> cfg = load_config("trendy.toml")
    >>> cfg.time_units
    'days since 1850-01-01'
    """
    if path is None:
        return ConversionConfig()
    data = toml.loads(Path(path).read_text("utf-8"))
    return ConversionConfig.model_validate(data)


class OverrideRule(BaseModel):
    """
    Synthetic calendar for a model whose time axis carries no usable units.

    Attributes
    ----------
    model : str
        Source model identifier, e.g. ``"CARDAMOM"``.
    pattern : {"month-index"}
        Raw time pattern the rule applies to. ``"month-index"`` is a plain
        sequence ``1, 2, ..., N`` of consecutive months.
    start_year : int
        Year of the first month.
    start_month : int
        Month of the first index, 1-based.

    Examples
    --------
    >>> OverrideRule(model="CARDAMOM", start_year=2003)
    OverrideRule(model='CARDAMOM', pattern='month-index', start_year=2003, start_month=1)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str
    pattern: Literal["month-index"] = "month-index"
    start_year: int
    start_month: int = Field(default=1, ge=1, le=12)


class VariableMetadata(BaseModel):
    """
    ILAMB metadata of one variable.

    Attributes
    ----------
    name : str
        ILAMB variable name.
    long_name : str
        Descriptive name written to ``long_name`` when the source has none.
    units : str
        CF units of the ILAMB variable.
    standard_name : str
        CF standard name.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    long_name: str
    units: str = "unknown"
    standard_name: str


class FilenameConvention(BaseModel):
    """
    Fixed segments of the ILAMB output filename.

    The filename is
    ``{variable}_{frequency}_{ensemble_prefix}-{model}_{experiment}_{realization}_{grid}_{start}-{end}.{extension}``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    frequency: str = "Lmon"
    ensemble_prefix: str = "ENSEMBLE"
    experiment: str = "historical"
    realization: str = "r1i1p1f1"
    grid: str = "gn"
    extension: str = "nc"

    def render(self, variable: str, model: str, start: str, end: str) -> str:
        """
        Build an output filename.

        Parameters
        ----------
        variable : str
            Variable name.
        model : str
            Source model identifier.
        start : str
            ``YYYYMM`` label of the first step.
        end : str
            ``YYYYMM`` label of the last step.

        Returns
        -------
        str
            Filename, without directory.

        Examples
        --------
        >>> FilenameConvention().render("gpp", "CARDAMOM", "200301", "202312")
        'gpp_Lmon_ENSEMBLE-CARDAMOM_historical_r1i1p1f1_gn_200301-202312.nc'
        """
        return (
            f"{variable}_{self.frequency}_{self.ensemble_prefix}-{model}_{self.experiment}_"
            f"{self.realization}_{self.grid}_{start}-{end}.{self.extension}"
        )


class ConversionConfig(BaseModel):
    """
    Static lookup tables and conventions used by a conversion.

    Instances are immutable and passed explicitly to the components that need
    them.

    Attributes
    ----------
    epoch_year : int
        Year of the canonical epoch; output time is ``days since <epoch_year>-01-01``.
    calendar : str
        Calendar of the output time axis.
    default_time_units : str
        Units assumed when the input time variable has no ``units`` attribute.
    bounds_dimension : str
        Name of the 2-wide bounds dimension.
    bounds_variable : str
        Name of the time bounds variable.
    unit_conversions : dict of str to str
        Units standardization table.
    variables : dict of str to VariableMetadata
        Variable metadata table.
    ilamb_variables : tuple of str
        Variables the batch driver converts; others are skipped.
    simulations : tuple of str
        Simulation directories the batch driver visits.
    overrides : tuple of OverrideRule
        Per-model synthetic calendars.
    filename : FilenameConvention
        Output filename segments.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    epoch_year: int = 1850
    calendar: str = "noleap"
    default_time_units: str = "days since 1850-01-01"
    bounds_dimension: str = "nb"
    bounds_variable: str = "time_bounds"
    unit_conversions: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_UNIT_CONVERSIONS))
    variables: dict[str, VariableMetadata] = Field(
        default_factory=lambda: {k: VariableMetadata(**v) for k, v in DEFAULT_VARIABLES.items()}
    )
    ilamb_variables: tuple[str, ...] = DEFAULT_ILAMB_VARIABLES
    simulations: tuple[str, ...] = ("S0", "S1", "S2", "S3")
    overrides: tuple[OverrideRule, ...] = (OverrideRule(model="CARDAMOM", start_year=2003, start_month=1),)
    filename: FilenameConvention = Field(default_factory=FilenameConvention)

    @field_validator("calendar")
    @classmethod
    def _check_calendar(cls, v: str) -> str:
        """
        Only no-leap calendars match the 365-day arithmetic.

        Parameters
        ----------
        v : str
            Calendar name.

        Returns
        -------
        str
            Lower-cased calendar name.
        """
        v = v.strip().lower()
        if v not in ("noleap", "365_day"):
            raise ValueError(f"canonical calendar must be 'noleap' or '365_day', got '{v}'")
        return v

    @property
    def time_units(self) -> str:
        """
        Canonical output time units.

        Returns
        -------
        str
            ``"days since YYYY-01-01"``.
        """
        return f"days since {self.epoch_year:04d}-01-01"

    def override_for(self, model: str) -> OverrideRule | None:
        """
        Return the override rule of a model, if any.

        Parameters
        ----------
        model : str
            Source model identifier.

        Returns
        -------
        OverrideRule or None
            The first rule for ``model``.
        """
        return next((rule for rule in self.overrides if rule.model == model), None)

    def variable_info(self, variable: str) -> VariableInfo:
        """
        Metadata of a variable from the configured table.

        Parameters
        ----------
        variable : str
            TRENDY variable name.

        Returns
        -------
        VariableInfo
            Metadata, or a placeholder for unknown variables.
        """
        table = {k: v.model_dump() for k, v in self.variables.items()}
        return get_variable_metadata(variable, table)

    def is_ilamb_variable(self, variable: str) -> bool:
        """
        Case-insensitive membership in :attr:`ilamb_variables`.

        Parameters
        ----------
        variable : str
            Variable name.

        Returns
        -------
        bool
            True if the variable is converted by the batch driver.
        """
        return variable.lower() in {v.lower() for v in self.ilamb_variables}
