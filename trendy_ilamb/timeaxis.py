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
Normalize raw time values to canonical no-leap day offsets.
"""

from __future__ import annotations

import datetime
import numbers
from dataclasses import dataclass, field
from typing import Any, Sequence, Union

import cftime
import numpy as np

from trendy_ilamb.errors import NonMonotonicTime, UnparsableUnits, UnsupportedTimeType
from trendy_ilamb.units import ReferenceDate, TimeEncoding, TimeUnitDescriptor

DAYS_PER_YEAR = 365
NOLEAP_MONTH_LENGTHS = np.array([31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31])
NOLEAP_MONTH_STARTS = np.concatenate([[0], np.cumsum(NOLEAP_MONTH_LENGTHS)[:-1]])

# tolerance used before rounding fractional day offsets down
_ROUND_DECIMALS = 6


@dataclass(frozen=True)
class NumericTimes:
    """
    Numeric raw time values together with the encoding that explains them.

    Attributes
    ----------
    values : numpy.ndarray
        Raw values as float64.
    descriptor : TimeUnitDescriptor
        Parsed units of the values.
    """

    values: np.ndarray
    descriptor: TimeUnitDescriptor

    @classmethod
    def from_reference_year(cls, values: Sequence[float] | np.ndarray, reference_year: int) -> "NumericTimes":
        """
        Build year offsets from a bare reference year.

        Parameters
        ----------
        values : sequence of float or numpy.ndarray
            Offsets in years from ``reference_year``.
        reference_year : int
            Reference year.

        Returns
        -------
        NumericTimes
            Values described as ``years since <reference_year>``.
        """
        descriptor = TimeUnitDescriptor(
            TimeEncoding.YEAR, ReferenceDate(int(reference_year)), f"years since {reference_year}"
        )
        return cls(np.asarray(values, dtype="float64"), descriptor)

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class CalendarTimes:
    """
    Raw time values that already carry year, month and day.

    Attributes
    ----------
    values : tuple
        ``cftime.datetime`` or ``datetime.date`` objects.
    """

    values: tuple = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.values)


TimeValues = Union[NumericTimes, CalendarTimes]


@dataclass(frozen=True)
class CanonicalTimeSeries:
    """
    Canonical time axis of one converted file.

    Attributes
    ----------
    days : numpy.ndarray
        Integer days since the canonical epoch, no-leap calendar.
    bounds : numpy.ndarray
        Interval bounds, one ``(start, end)`` pair per step.
    epoch_year : int
        Year of the canonical epoch.
    source : str
        How the axis was obtained: ``"numeric"``, ``"calendar"`` or ``"override"``.
    months : numpy.ndarray or None
        Absolute month index ``year * 12 + month - 1`` of each step, set when
        the raw values count in months or years. A month on that grid is a
        twelfth of a 365-day year and need not start on a no-leap month start,
        so date labels are read from it instead of from ``days``.
    """

    days: np.ndarray
    bounds: np.ndarray
    epoch_year: int
    source: str
    months: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self.days)


def _is_calendar(value: Any) -> bool:
    return isinstance(value, (cftime.datetime, datetime.date))


def _is_number(value: Any) -> bool:
    return isinstance(value, (numbers.Real, np.number)) and not isinstance(value, (bool, np.bool_))


def as_time_values(raw_values: Any, descriptor: TimeUnitDescriptor | None = None) -> TimeValues:
    """
    Resolve raw time values into a :class:`NumericTimes` or :class:`CalendarTimes`.

    Parameters
    ----------
    raw_values : array_like
        Values read from the time coordinate.
    descriptor : TimeUnitDescriptor or None, optional
        Parsed units; required for numeric values.

    Returns
    -------
    NumericTimes or CalendarTimes
        Tagged time values.

    Raises
    ------
    UnsupportedTimeType
        If values mix numbers and dates or have a type that is neither.
    ValueError
        If numeric values are given without a descriptor.
    """
    arr = np.asarray(raw_values)
    if arr.ndim != 1:
        arr = arr.reshape(-1)

    if arr.dtype.kind in "iuf":
        if descriptor is None:
            raise ValueError("numeric time values require a units descriptor")
        return NumericTimes(arr.astype("float64"), descriptor)
    if arr.dtype.kind == "M":
        return CalendarTimes(tuple(arr.astype("datetime64[s]").tolist()))
    if arr.dtype.kind != "O":
        raise UnsupportedTimeType(f"unsupported time type: {arr.dtype}")

    items = arr.tolist()
    if not items:
        raise UnsupportedTimeType("empty time axis")
    if _is_calendar(items[0]):
        offending = next((v for v in items if not _is_calendar(v)), None)
        if offending is None:
            return CalendarTimes(tuple(items))
    elif _is_number(items[0]):
        offending = next((v for v in items if not _is_number(v)), None)
        if offending is None:
            if descriptor is None:
                raise ValueError("numeric time values require a units descriptor")
            return NumericTimes(np.asarray(items, dtype="float64"), descriptor)
    else:
        offending = items[0]
    raise UnsupportedTimeType(f"unsupported time type: {type(offending).__name__}")


def noleap_day_of_year(month: int, day: int) -> int:
    """
    Return the zero-based no-leap day of year of a month and day.

    Days past the end of a no-leap month (February 29 or 30 in other
    calendars) are clipped to the last day of the month.

    Parameters
    ----------
    month : int
        Month, 1-based.
    day : int
        Day of month, 1-based.

    Returns
    -------
    int
        Day of year starting at 0.
    """
    return int(NOLEAP_MONTH_STARTS[month - 1] + min(day, NOLEAP_MONTH_LENGTHS[month - 1]) - 1)


def _reference_year_fraction(reference: ReferenceDate) -> float:
    offset = noleap_day_of_year(reference.month, reference.day) + reference.day_fraction
    return reference.year + offset / DAYS_PER_YEAR


def _decimal_month_years(values: np.ndarray) -> np.ndarray:
    year = np.floor(values / 100.0)
    month_part = values - year * 100.0
    month = np.floor(month_part)
    if np.any((month < 1) | (month > 12)):
        raise UnparsableUnits("decimal month value out of range")
    return year + (month - 1 + (month_part - month)) / 12.0


def _decimal_day_years(values: np.ndarray) -> np.ndarray:
    year = np.floor(values / 10000.0)
    rest = values - year * 10000.0
    month = np.floor(rest / 100.0)
    if np.any((month < 1) | (month > 12)):
        raise UnparsableUnits("decimal day value out of range")
    day_part = rest - month * 100.0
    starts = NOLEAP_MONTH_STARTS[month.astype(int) - 1]
    return year + (starts + day_part - 1.0) / DAYS_PER_YEAR


def absolute_years(times: NumericTimes) -> np.ndarray:
    """
    Convert numeric time values to absolute fractional years.

    Offsets are first added to the reference date; the result is a position on
    a 365-day year.

    Parameters
    ----------
    times : NumericTimes
        Numeric values and their encoding.

    Returns
    -------
    numpy.ndarray
        Fractional years.

    Raises
    ------
    UnparsableUnits
        If the encoding is unknown or decimal values are malformed.
    """
    values = np.asarray(times.values, dtype="float64")
    descriptor = times.descriptor
    kind = descriptor.kind

    if kind == TimeEncoding.DECIMAL_YEAR:
        return values.copy()
    if kind == TimeEncoding.DECIMAL_MONTH:
        return _decimal_month_years(values)
    if kind == TimeEncoding.DECIMAL_DAY:
        return _decimal_day_years(values)
    if not kind.is_offset or descriptor.reference is None:
        raise UnparsableUnits("cannot interpret time values", units=descriptor.raw)

    reference = descriptor.reference
    if kind == TimeEncoding.MONTH:
        start = reference.year + (reference.day - 1 + reference.day_fraction) / DAYS_PER_YEAR
        return start + (reference.month - 1 + values) / 12.0

    start = _reference_year_fraction(reference)
    if kind == TimeEncoding.YEAR:
        return start + values
    if kind == TimeEncoding.DAY:
        return start + values / DAYS_PER_YEAR
    return start + values / (24.0 * DAYS_PER_YEAR)


def years_to_days(years: np.ndarray | float, epoch_year: int) -> np.ndarray:
    """
    Express absolute fractional years as whole days since the epoch.

    Parameters
    ----------
    years : numpy.ndarray or float
        Absolute fractional years.
    epoch_year : int
        Canonical epoch year.

    Returns
    -------
    numpy.ndarray
        ``floor((years - epoch_year) * 365)`` as int64.
    """
    days = np.round((np.asarray(years, dtype="float64") - epoch_year) * DAYS_PER_YEAR, _ROUND_DECIMALS)
    return np.floor(days).astype("int64")


# encodings whose steps are twelfths of a 365-day year
MONTH_GRID_ENCODINGS = (
    TimeEncoding.MONTH,
    TimeEncoding.YEAR,
    TimeEncoding.DECIMAL_MONTH,
    TimeEncoding.DECIMAL_YEAR,
)


def absolute_months(times: NumericTimes) -> np.ndarray | None:
    """
    Absolute month index of each value counted in months or years.

    Parameters
    ----------
    times : NumericTimes
        Numeric values and their encoding.

    Returns
    -------
    numpy.ndarray or None
        ``floor(years * 12)`` as int64, or ``None`` for day and hour
        encodings, whose month follows from the day offset itself.

    Examples
    --------
    >>> absolute_months(NumericTimes.from_reference_year([150.0, 150.5], 1850)).tolist()
    [24000, 24006]
    """
    if times.descriptor.kind not in MONTH_GRID_ENCODINGS:
        return None
    months = np.round(absolute_years(times) * 12.0, _ROUND_DECIMALS)
    return np.floor(months).astype("int64")


def calendar_days(values: Sequence[Any], epoch_year: int) -> np.ndarray:
    """
    Convert dates to whole days since the epoch on a no-leap calendar.

    Parameters
    ----------
    values : sequence
        Objects exposing ``year``, ``month`` and ``day``.
    epoch_year : int
        Canonical epoch year.

    Returns
    -------
    numpy.ndarray
        ``(year - epoch_year) * 365 + day_of_year - 1`` as int64.
    """
    return np.array(
        [(t.year - epoch_year) * DAYS_PER_YEAR + noleap_day_of_year(t.month, t.day) for t in values],
        dtype="int64",
    )


def normalize(times: TimeValues, epoch_year: int = 1850) -> np.ndarray:
    """
    Convert tagged time values to integer days since the canonical epoch.

    Parameters
    ----------
    times : NumericTimes or CalendarTimes
        Raw time values resolved by :func:`as_time_values`.
    epoch_year : int, optional
        Canonical epoch year, by default 1850.

    Returns
    -------
    numpy.ndarray
        Day offsets, int64, one per input value.

    Raises
    ------
    UnsupportedTimeType
        If ``times`` is neither variant.

    Examples
    --------
    >>> normalize(NumericTimes.from_reference_year([150.0, 151.0], 1850), 1850)
    array([54750, 55115])
    """
    if isinstance(times, NumericTimes):
        return years_to_days(absolute_years(times), epoch_year)
    if isinstance(times, CalendarTimes):
        return calendar_days(times.values, epoch_year)
    raise UnsupportedTimeType(f"unsupported time type: {type(times).__name__}")


def check_monotonic(days: np.ndarray, what: str = "time") -> None:
    """
    Raise if offsets decrease between consecutive steps.

    Parameters
    ----------
    days : numpy.ndarray
        Offsets to check.
    what : str, optional
        Name used in the error message.

    Raises
    ------
    NonMonotonicTime
        If any step decreases.
    """
    steps = np.diff(np.asarray(days, dtype="float64"))
    if np.any(steps < 0):
        i = int(np.argmax(steps < 0))
        raise NonMonotonicTime(f"{what} decreases at step {i + 1}: {days[i]} -> {days[i + 1]}")


def date_label(day: int, epoch_year: int = 1850) -> str:
    """
    Return the ``YYYYMM`` label of a canonical day offset.

    Parameters
    ----------
    day : int
        Days since the canonical epoch.
    epoch_year : int, optional
        Canonical epoch year, by default 1850.

    Returns
    -------
    str
        Label such as ``"200301"``.
    """
    year = epoch_year + int(day) // DAYS_PER_YEAR
    day_of_year = int(day) % DAYS_PER_YEAR
    month = int(np.searchsorted(NOLEAP_MONTH_STARTS, day_of_year, side="right"))
    return f"{year:04d}{month:02d}"


def month_label(month_index: int) -> str:
    """
    Return the ``YYYYMM`` label of an absolute month index.

    Parameters
    ----------
    month_index : int
        ``year * 12 + month - 1``.

    Returns
    -------
    str
        Label such as ``"200301"``.

    Examples
    --------
    >>> month_label(2003 * 12)
    '200301'
    """
    year, month = divmod(int(month_index), 12)
    return f"{year:04d}{month + 1:02d}"


def month_labels(series: CanonicalTimeSeries) -> tuple[str, str]:
    """
    Return the start and end ``YYYYMM`` labels of a canonical time axis.

    Parameters
    ----------
    series : CanonicalTimeSeries
        Canonical time axis.

    Returns
    -------
    tuple of str
        ``(start, end)`` labels.
    """
    if len(series) == 0:
        raise ValueError("cannot label an empty time axis")
    if series.months is not None:
        return month_label(series.months[0]), month_label(series.months[-1])
    return (
        date_label(series.days[0], series.epoch_year),
        date_label(series.days[-1], series.epoch_year),
    )
