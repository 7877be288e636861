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
Tests for per-model synthetic calendars.

This suite checks:
- A bare month index of a configured model becomes consecutive months.
- CF-compliant axes that happen to start at 1 are left alone.
- Models without a rule are left alone.
"""

from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from trendy_ilamb.bounds import check_bounds
from trendy_ilamb.config import ConversionConfig, OverrideRule
from trendy_ilamb.overrides import is_month_index, month_index_series, resolve_override
from trendy_ilamb.timeaxis import NOLEAP_MONTH_LENGTHS, month_labels


@pytest.fixture(name="config")
def fixture_config():
    """
    Default configuration with its CARDAMOM rule.

    Returns
    -------
    ConversionConfig
        Default configuration.
    """
    return ConversionConfig()


def test_cardamom_month_index(config):
    """
    252 indexed months of CARDAMOM cover January 2003 to December 2023.
    """
    series = resolve_override("CARDAMOM", np.arange(1, 253), None, config)
    assert series is not None
    assert series.source == "override"
    assert len(series) == 252
    assert month_labels(series) == ("200301", "202312")


def test_month_index_series_layout():
    """
    Steps sit mid-month and bounds span whole no-leap months.
    """
    series = month_index_series(12, 2003, 1, 1850)
    start = (2003 - 1850) * 365
    assert series.days[0] == start + 15
    assert series.days[1] == start + 31 + 14
    assert_array_equal(series.bounds[:, 1] - series.bounds[:, 0], NOLEAP_MONTH_LENGTHS)
    assert series.bounds[0, 0] == start
    assert series.bounds[-1, 1] == start + 365
    check_bounds(series.bounds)


def test_start_month_wraps_year():
    """
    A series starting in November runs into the next year.
    """
    series = month_index_series(4, 2003, 11, 1850)
    assert month_labels(series) == ("200311", "200402")


def test_since_units_are_not_overridden(config):
    """
    Values ``1..N`` with CF units are left to normal parsing.
    """
    assert resolve_override("CARDAMOM", np.arange(1, 13), "months since 2003-01-01", config) is None


def test_model_without_rule(config):
    """
    A bare month index of a model without a rule is not overridden.
    """
    assert resolve_override("CLASSIC", np.arange(1, 13), "month", config) is None


def test_custom_rule():
    """
    Rules for other models and start dates apply the same way.
    """
    config = ConversionConfig(overrides=[OverrideRule(model="FOO", start_year=1901, start_month=7)])
    series = resolve_override("FOO", np.arange(1, 7, dtype="float64"), "", config)
    assert month_labels(series) == ("190107", "190112")


@pytest.mark.parametrize(
    "values,expected",
    [
        (np.arange(1, 5), True),
        (np.arange(1.0, 5.0), True),
        (np.array([1]), False),
        (np.arange(0, 5), False),
        (np.array([1, 2, 4]), False),
        (np.array(["1", "2"]), False),
    ],
)
def test_is_month_index(values, expected):
    """
    Only consecutive numbers starting at 1 form a month index.
    """
    assert is_month_index(values) is expected


def test_default_config_is_used():
    """
    Without a configuration the default CARDAMOM rule and epoch apply.
    """
    series = resolve_override("CARDAMOM", np.arange(1, 13), None)
    assert series.epoch_year == 1850
    assert month_labels(series) == ("200301", "200312")


def test_override_epoch_follows_config():
    """
    Synthetic days count from the configured epoch.
    """
    config = ConversionConfig(epoch_year=2000)
    series = resolve_override("CARDAMOM", np.arange(1, 13), None, config)
    assert series.days[0] == 3 * 365 + 15
    assert month_labels(series) == ("200301", "200312")
