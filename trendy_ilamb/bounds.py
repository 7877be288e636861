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
Time bounds for canonical time axes.
"""

from __future__ import annotations

import numpy as np

from trendy_ilamb.errors import NonMonotonicTime
from trendy_ilamb.timeaxis import (
    DAYS_PER_YEAR,
    NOLEAP_MONTH_LENGTHS,
    NOLEAP_MONTH_STARTS,
    CalendarTimes,
    NumericTimes,
    TimeValues,
    absolute_years,
    calendar_days,
    years_to_days,
)
from trendy_ilamb.units import TimeEncoding

# spacing in years at or above which a numeric series is yearly
YEARLY_SPACING = 0.9
# below this spacing in years a numeric series is treated as sub-monthly
SUBMONTHLY_SPACING = 0.06
SINGLE_SAMPLE_HALF_WIDTH = 15.0
# encodings counting whole days, whose months are not twelfths of a year
DAY_RESOLUTION_ENCODINGS = (TimeEncoding.DAY, TimeEncoding.HOUR, TimeEncoding.DECIMAL_DAY)


def detect_cadence(years: np.ndarray) -> str:
    """
    Classify a series of absolute fractional years by its typical spacing.

    Parameters
    ----------
    years : numpy.ndarray
        Absolute fractional years with at least two values.

    Returns
    -------
    str
        ``"yearly"``, ``"monthly"`` or ``"submonthly"``.
    """
    spacing = float(np.median(np.diff(years)))
    if spacing >= YEARLY_SPACING:
        return "yearly"
    if spacing >= SUBMONTHLY_SPACING:
        return "monthly"
    return "submonthly"


def midpoint_bounds(days: np.ndarray) -> np.ndarray:
    """
    Bounds halfway between neighbouring day offsets.

    The first and last steps are extended symmetrically using the gap to their
    only neighbour. A single sample gets a half width of 15 days.

    Parameters
    ----------
    days : numpy.ndarray
        Day offsets since the canonical epoch.

    Returns
    -------
    numpy.ndarray
        Bounds with shape ``(n, 2)``, float64.
    """
    days = np.asarray(days, dtype="float64")
    n = len(days)
    bounds = np.zeros((n, 2), dtype="float64")
    if n == 0:
        return bounds
    if n == 1:
        bounds[0] = [days[0] - SINGLE_SAMPLE_HALF_WIDTH, days[0] + SINGLE_SAMPLE_HALF_WIDTH]
        return bounds

    mid = (days[:-1] + days[1:]) / 2.0
    bounds[1:, 0] = mid
    bounds[:-1, 1] = mid

    first_half = (days[1] - days[0]) / 2.0
    bounds[0, 0] = days[0] - first_half

    last_half = (days[-1] - days[-2]) / 2.0
    bounds[-1, 1] = days[-1] + last_half
    return bounds


def noleap_month_bounds(days: np.ndarray) -> np.ndarray:
    """
    Bounds spanning the no-leap month each day offset falls in.

    Each interval runs from the first day of the month to the first day of the
    next month.

    Parameters
    ----------
    days : numpy.ndarray
        Day offsets since the canonical epoch.

    Returns
    -------
    numpy.ndarray
        Bounds with shape ``(n, 2)``, float64.

    Examples
    --------
    >>> noleap_month_bounds(np.array([0, 45])).tolist()
    [[0.0, 31.0], [31.0, 59.0]]
    """
    days = np.asarray(days, dtype="int64")
    year_start = (days // DAYS_PER_YEAR) * DAYS_PER_YEAR
    month = np.searchsorted(NOLEAP_MONTH_STARTS, days % DAYS_PER_YEAR, side="right") - 1
    lower = year_start + NOLEAP_MONTH_STARTS[month]
    upper = lower + NOLEAP_MONTH_LENGTHS[month]
    return np.stack([lower, upper], axis=1).astype("float64")


def numeric_bounds(times: NumericTimes, epoch_year: int = 1850) -> np.ndarray:
    """
    Bounds for numeric time values, spanning one year or one month per step.

    The cadence is detected from the spacing of the absolute years: at or above
    0.9 years each step covers a full 365-day year, otherwise it covers one
    twelfth of a year. Ends are the start of the next interval minus one day.
    Monthly day, hour and decimal-day values land on irregular no-leap month
    positions; their steps span the whole no-leap month they fall in.

    Parameters
    ----------
    times : NumericTimes
        Numeric values and their encoding.
    epoch_year : int, optional
        Canonical epoch year, by default 1850.

    Returns
    -------
    numpy.ndarray
        Bounds with shape ``(n, 2)``, float64.

    Notes
    -----
    Sub-monthly numeric series (spacing below about three weeks) use
    :func:`midpoint_bounds` on the normalized offsets instead.
    """
    years = absolute_years(times)
    start = years_to_days(years, epoch_year)
    if len(years) < 2:
        return midpoint_bounds(start)

    cadence = detect_cadence(years)
    if cadence == "submonthly":
        return midpoint_bounds(start)
    if cadence == "monthly" and times.descriptor.kind in DAY_RESOLUTION_ENCODINGS:
        return noleap_month_bounds(start)

    width = 1.0 if cadence == "yearly" else 1.0 / 12.0
    end = years_to_days(years + width, epoch_year) - 1
    return np.stack([start, end], axis=1).astype("float64")


def calendar_bounds(times: CalendarTimes, epoch_year: int = 1850) -> np.ndarray:
    """
    Bounds for calendar dates, halfway between neighbouring steps.

    Parameters
    ----------
    times : CalendarTimes
        Date values.
    epoch_year : int, optional
        Canonical epoch year, by default 1850.

    Returns
    -------
    numpy.ndarray
        Bounds with shape ``(n, 2)``, float64.
    """
    return midpoint_bounds(calendar_days(times.values, epoch_year))


def time_bounds(times: TimeValues, epoch_year: int = 1850) -> np.ndarray:
    """
    Bounds for tagged time values.

    Parameters
    ----------
    times : NumericTimes or CalendarTimes
        Raw time values.
    epoch_year : int, optional
        Canonical epoch year, by default 1850.

    Returns
    -------
    numpy.ndarray
        Bounds with shape ``(n, 2)``, float64.

    Examples
    --------
    >>> from trendy_ilamb.timeaxis import NumericTimes
    >>> b = time_bounds(NumericTimes.from_reference_year([150.0, 151.0], 1850), 1850)
    >>> (b[:, 1] - b[:, 0]).tolist()
    [364.0, 364.0]
    """
    if isinstance(times, CalendarTimes):
        return calendar_bounds(times, epoch_year)
    return numeric_bounds(times, epoch_year)


def orient_time_bounds(bounds: np.ndarray, n_time: int) -> np.ndarray:
    """
    Return bounds laid out as ``(n_time, 2)``.

    Bounds with a leading dimension of 2 are transposed. For ``n_time == 2``
    the layout is ambiguous and the array is taken as ``(n_time, 2)``.

    Parameters
    ----------
    bounds : numpy.ndarray
        Bounds shaped ``(n_time, 2)`` or ``(2, n_time)``.
    n_time : int
        Length of the time dimension.

    Returns
    -------
    numpy.ndarray
        Bounds shaped ``(n_time, 2)``.

    Raises
    ------
    ValueError
        If ``bounds`` has neither layout.
    """
    bounds = np.asarray(bounds)
    if bounds.shape == (n_time, 2):
        return bounds
    if bounds.shape == (2, n_time):
        return bounds.T
    raise ValueError(f"time bounds of shape {bounds.shape} do not match {n_time} time steps")


def check_bounds(bounds: np.ndarray) -> None:
    """
    Raise if bounds are empty intervals, decrease or overlap.

    Parameters
    ----------
    bounds : numpy.ndarray
        Bounds shaped ``(n, 2)``.

    Raises
    ------
    NonMonotonicTime
        If any interval has ``end <= start``, or a step starts before the
        previous one ends.
    """
    bounds = np.asarray(bounds, dtype="float64")
    if np.any(bounds[:, 1] <= bounds[:, 0]):
        i = int(np.argmax(bounds[:, 1] <= bounds[:, 0]))
        raise NonMonotonicTime(f"time bounds of step {i} are empty: {bounds[i].tolist()}")
    overlap = bounds[1:, 0] < bounds[:-1, 1]
    if np.any(overlap):
        i = int(np.argmax(overlap))
        raise NonMonotonicTime(f"time bounds of steps {i} and {i + 1} overlap")
