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
Tests for ConversionConfig loading and validation.

This suite checks:
- Defaults match the ILAMB conventions.
- TOML files override selected fields.
- Unknown keys and non no-leap calendars are rejected.
- Configurations are immutable.
- Variable metadata and units lookups.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from trendy_ilamb.config import ConversionConfig, FilenameConvention, OverrideRule, load_config
from trendy_ilamb.variables import get_variable_metadata, standardize_units


def test_defaults():
    """
    Validate the default conventions.
    """
    cfg = load_config()
    assert cfg.epoch_year == 1850
    assert cfg.calendar == "noleap"
    assert cfg.time_units == "days since 1850-01-01"
    assert cfg.bounds_dimension == "nb"
    assert cfg.bounds_variable == "time_bounds"
    assert cfg.override_for("CARDAMOM") == OverrideRule(model="CARDAMOM", start_year=2003, start_month=1)
    assert cfg.override_for("CLASSIC") is None
    assert cfg.is_ilamb_variable("gpp")
    assert cfg.is_ilamb_variable("GPP")
    assert not cfg.is_ilamb_variable("foo")


def test_load_toml(tmp_path):
    """
    Validate loading of a TOML file.

    Notes
    -----
    Fields not present in the file keep their defaults.
    """
    p = tmp_path / "trendy.toml"
    p.write_text(
        """
epoch_year = 1700
simulations = ["S3"]

[[overrides]]
model = "FOO"
start_year = 1901
start_month = 7

[filename]
experiment = "S3exp"

[unit_conversions]
"g m-2" = "kg m-2"
""",
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.epoch_year == 1700
    assert cfg.time_units == "days since 1700-01-01"
    assert cfg.simulations == ("S3",)
    assert cfg.override_for("FOO").start_month == 7
    assert cfg.override_for("CARDAMOM") is None
    assert cfg.filename.experiment == "S3exp"
    assert cfg.filename.frequency == "Lmon"
    assert cfg.unit_conversions == {"g m-2": "kg m-2"}
    assert cfg.calendar == "noleap"


def test_unknown_key_fails(tmp_path):
    """
    Fail on keys the configuration does not know.

    Raises
    ------
    pydantic.ValidationError
        If an unknown key is present.
    """
    p = tmp_path / "bad.toml"
    p.write_text("epoch = 1850\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(p)


def test_missing_file_fails(tmp_path):
    """
    Fail on a missing configuration file.
    """
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.toml")


@pytest.mark.parametrize("calendar,expected", [("noleap", "noleap"), (" 365_DAY ", "365_day")])
def test_calendar_normalized(calendar, expected):
    """
    No-leap calendar names are accepted and lower-cased.
    """
    assert ConversionConfig(calendar=calendar).calendar == expected


@pytest.mark.parametrize("calendar", ["standard", "360_day", "julian"])
def test_calendar_must_be_noleap(calendar):
    """
    Fail on calendars whose years are not 365 days long.
    """
    with pytest.raises(ValidationError):
        ConversionConfig(calendar=calendar)


def test_start_month_range():
    """
    Fail on override start months outside 1-12.
    """
    with pytest.raises(ValidationError):
        OverrideRule(model="FOO", start_year=2000, start_month=13)


def test_config_is_frozen():
    """
    Fail on assignment to a configuration field.
    """
    cfg = ConversionConfig()
    with pytest.raises(ValidationError):
        cfg.epoch_year = 1900


def test_filename_render():
    """
    Validate the ILAMB filename layout.
    """
    name = FilenameConvention().render("gpp", "CARDAMOM", "200301", "202312")
    assert name == "gpp_Lmon_ENSEMBLE-CARDAMOM_historical_r1i1p1f1_gn_200301-202312.nc"


@pytest.mark.parametrize(
    "units,expected",
    [
        ("gC/m^2", "kg m-2"),
        ("gC m-2 yr-1", "kg m-2 s-1"),
        ("mm/yr", "kg m-2 s-1"),
        ("W m-2", "W m-2"),
    ],
)
def test_standardize_units(units, expected):
    """
    Known TRENDY units map to CF spellings, others pass through.
    """
    assert standardize_units(units) == expected


def test_variable_metadata():
    """
    Known variables have metadata, unknown ones get a placeholder and a warning.
    """
    cfg = ConversionConfig()
    info = cfg.variable_info("gpp")
    assert info.standard_name == "gross_primary_productivity_of_carbon"
    assert info.units == "kg m-2 s-1"
    with pytest.warns(UserWarning, match="No metadata mapping"):
        info = get_variable_metadata("foo")
    assert info.units == "unknown"
    assert info.name == "foo"
