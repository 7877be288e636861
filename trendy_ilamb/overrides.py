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
Synthetic calendars for models whose time axis has no usable units.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from trendy_ilamb.bounds import noleap_month_bounds
from trendy_ilamb.config import ConversionConfig
from trendy_ilamb.timeaxis import DAYS_PER_YEAR, NOLEAP_MONTH_LENGTHS, NOLEAP_MONTH_STARTS, CanonicalTimeSeries
from trendy_ilamb.units import matches_since_pattern


def is_month_index(raw_values: Any) -> bool:
    """
    Return True for a plain index ``1, 2, ..., N`` with at least two values.

    Parameters
    ----------
    raw_values : array_like
        Raw time values.

    Returns
    -------
    bool
        True if the values are consecutive integers starting at 1.
    """
    values = np.asarray(raw_values)
    if values.ndim != 1 or len(values) < 2 or values.dtype.kind not in "iuf":
        return False
    return bool(np.array_equal(values, np.arange(1, len(values) + 1)))


def month_index_series(
    n_months: int,
    start_year: int,
    start_month: int = 1,
    epoch_year: int = 1850,
) -> CanonicalTimeSeries:
    """
    Build a canonical axis of consecutive months.

    Each step sits in the middle of its month on the no-leap calendar and its
    bounds span the whole month, from the first day of the month to the first
    day of the next.

    Parameters
    ----------
    n_months : int
        Number of months.
    start_year : int
        Year of the first month.
    start_month : int, optional
        First month, 1-based, by default 1.
    epoch_year : int, optional
        Canonical epoch year, by default 1850.

    Returns
    -------
    CanonicalTimeSeries
        Axis with ``source="override"``.

    Examples
    --------
    >>> s = month_index_series(2, 2003, 1, 1850)
    >>> s.days.tolist()
    [55860, 55890]
    """
    month_offset = np.arange(n_months) + (start_month - 1)
    year = start_year + month_offset // 12
    month = month_offset % 12

    lower = (year - epoch_year) * DAYS_PER_YEAR + NOLEAP_MONTH_STARTS[month]
    days = (lower + NOLEAP_MONTH_LENGTHS[month] // 2).astype("int64")
    return CanonicalTimeSeries(days, noleap_month_bounds(days), epoch_year, "override")


def resolve_override(
    model: str,
    raw_values: Any,
    raw_units: str | None,
    config: ConversionConfig | None = None,
) -> CanonicalTimeSeries | None:
    """
    Apply a model override when the raw time axis is a bare month index.

    The override applies only when the values are ``1, 2, ..., N`` **and** the
    units do not read ``"<kind> since <date>"``; a CF-compliant axis that
    happens to start at 1 is left alone. If the pattern is found but the model
    has no rule, nothing is returned and normal parsing decides.

    Parameters
    ----------
    model : str
        Source model identifier.
    raw_values : array_like
        Raw time values.
    raw_units : str or None
        Raw units attribute, ``None`` if absent.
    config : ConversionConfig or None, optional
        Provides the override rules and the canonical epoch; defaults are used
        if ``None``.

    Returns
    -------
    CanonicalTimeSeries or None
        Synthetic axis, or ``None`` if no override applies.
    """
    if matches_since_pattern(raw_units) or not is_month_index(raw_values):
        return None
    config = config or ConversionConfig()
    rule = config.override_for(model)
    if rule is None:
        return None
    n_months = len(np.asarray(raw_values))
    return month_index_series(n_months, rule.start_year, rule.start_month, config.epoch_year)
