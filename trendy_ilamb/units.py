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
Parse time units strings found in TRENDY files.

The strings seen in the wild include CF-compliant ``"days since 1700-01-01"``,
month-name dates such as ``"years since AD 1700-Jan-1st"``, bare reference
years (``"months since 1860"``), typed suffixes (``"days since 1900-1-1 (double)"``),
bare ``"yr"`` and decimal pseudo formats like ``"day as %Y%m%d.%f"``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from trendy_ilamb.errors import UnparsableUnits

MONTH_NAMES = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}


class TimeEncoding(str, Enum):
    """
    Encoding kind of a raw time axis.
    """

    DAY = "day"
    MONTH = "month"
    YEAR = "year"
    HOUR = "hour"
    DECIMAL_DAY = "decimal-day"
    DECIMAL_MONTH = "decimal-month"
    DECIMAL_YEAR = "decimal-year"
    UNKNOWN = "unknown"

    @property
    def is_offset(self) -> bool:
        """
        Return True for encodings that count from a reference date.

        Returns
        -------
        bool
            True for day, month, year and hour offsets.
        """
        return self in (TimeEncoding.DAY, TimeEncoding.MONTH, TimeEncoding.YEAR, TimeEncoding.HOUR)

    @property
    def is_decimal(self) -> bool:
        """
        Return True for self-describing decimal date encodings.

        Returns
        -------
        bool
            True for the decimal day, month and year encodings.
        """
        return self in (TimeEncoding.DECIMAL_DAY, TimeEncoding.DECIMAL_MONTH, TimeEncoding.DECIMAL_YEAR)


# leading token of "<kind> since ..." -> encoding
KIND_TOKENS = {
    "day": TimeEncoding.DAY,
    "days": TimeEncoding.DAY,
    "d": TimeEncoding.DAY,
    "month": TimeEncoding.MONTH,
    "months": TimeEncoding.MONTH,
    "mon": TimeEncoding.MONTH,
    "year": TimeEncoding.YEAR,
    "years": TimeEncoding.YEAR,
    "yr": TimeEncoding.YEAR,
    "yrs": TimeEncoding.YEAR,
    "common_years": TimeEncoding.YEAR,
    "hour": TimeEncoding.HOUR,
    "hours": TimeEncoding.HOUR,
    "hr": TimeEncoding.HOUR,
    "h": TimeEncoding.HOUR,
}

BARE_YEAR_TOKENS = ("yr", "yrs", "year", "years")

DECIMAL_FORMATS = {
    "day as %y%m%d.%f": TimeEncoding.DECIMAL_DAY,
    "month as %y%m.%f": TimeEncoding.DECIMAL_MONTH,
    "year as %y.%f": TimeEncoding.DECIMAL_YEAR,
}

_KIND = r"(?P<kind>[a-z_]+)\s+since\s+"
_TYPE_SUFFIX_RE = re.compile(r"\s*\((?:double|float|int|integer|long|short|real)\)\s*$", re.IGNORECASE)
_ERA_RE = re.compile(r"\bsince\s+(?:AD|A\.D\.)\s*(?=\d)", re.IGNORECASE)
_MONTH_NAME_RE = re.compile(
    _KIND + r"(?P<year>-?\d{1,5})-(?P<month>[a-z]{3})[a-z]*-(?P<day>\d{1,2})(?:st|nd|rd|th)?\b",
    re.IGNORECASE,
)
_ISO_RE = re.compile(
    _KIND + r"(?P<year>-?\d{1,5})-(?P<month>\d{1,2})-(?P<day>\d{1,2})"
    r"(?:[ T](?P<hour>\d{1,2}):(?P<minute>\d{1,2})(?::(?P<second>\d{1,2}(?:\.\d*)?))?)?",
    re.IGNORECASE,
)
_YEAR_RE = re.compile(_KIND + r"(?P<year>-?\d{1,5})\s*$", re.IGNORECASE)
_SINCE_RE = re.compile(r"^\s*[a-z_]+\s+since\s+\S", re.IGNORECASE)


@dataclass(frozen=True)
class ReferenceDate:
    """
    Reference date of an offset encoding.

    Attributes
    ----------
    year : int
        Reference year.
    month : int
        Reference month, 1-based.
    day : int
        Reference day of month, 1-based.
    hour : int
        Reference hour of day.
    minute : int
        Reference minute.
    second : float
        Reference second, possibly fractional.
    """

    year: int
    month: int = 1
    day: int = 1
    hour: int = 0
    minute: int = 0
    second: float = 0.0

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"reference month out of range: {self.month}")
        if not 1 <= self.day <= 31:
            raise ValueError(f"reference day out of range: {self.day}")
        if not 0 <= self.hour <= 23:
            raise ValueError(f"reference hour out of range: {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"reference minute out of range: {self.minute}")
        if not 0 <= self.second < 60:
            raise ValueError(f"reference second out of range: {self.second}")

    @property
    def day_fraction(self) -> float:
        """
        Time of day as a fraction of a day.

        Returns
        -------
        float
            ``(hour + minute / 60 + second / 3600) / 24``.
        """
        return (self.hour + self.minute / 60.0 + self.second / 3600.0) / 24.0


@dataclass(frozen=True)
class TimeUnitDescriptor:
    """
    Structured description of a raw time units string.

    Attributes
    ----------
    kind : TimeEncoding
        Encoding kind.
    reference : ReferenceDate or None
        Reference date for offset encodings; ``None`` for decimal and unknown
        encodings.
    raw : str
        The units string as found in the file.
    """

    kind: TimeEncoding
    reference: ReferenceDate | None = None
    raw: str = field(default="", compare=False)

    def __post_init__(self):
        if self.kind.is_offset and self.reference is None:
            raise ValueError(f"{self.kind.value} encoding requires a reference date")

    @property
    def reference_year(self) -> int | None:
        """
        Year of the reference date, if any.

        Returns
        -------
        int or None
            Reference year or ``None`` when the encoding has no reference.
        """
        return None if self.reference is None else self.reference.year

    def cf_units(self) -> str | None:
        """
        Render the descriptor as a CF units string.

        Returns
        -------
        str or None
            ``"<kind>s since YYYY-MM-DD HH:MM:SS"`` for offset encodings,
            ``None`` otherwise.
        """
        if not self.kind.is_offset or self.reference is None:
            return None
        r = self.reference
        if float(r.second).is_integer():
            second = f"{int(r.second):02d}"
        else:
            second = f"{r.second:09.6f}"
        return f"{self.kind.value}s since {r.year:04d}-{r.month:02d}-{r.day:02d} {r.hour:02d}:{r.minute:02d}:{second}"


def clean_units(raw_units: str) -> str:
    """
    Strip noise tokens from a units string.

    Removes a trailing type qualifier such as ``"(double)"`` and an ``"AD"``
    era marker in front of a numeric year.

    Parameters
    ----------
    raw_units : str
        Units string as found in the file.

    Returns
    -------
    str
        Cleaned units string.

    Examples
    --------
    >>> clean_units("years since AD 1700-Jan-1st")
    'years since 1700-Jan-1st'
    >>> clean_units("days since 1900-1-1 (double)")
    'days since 1900-1-1'
    """
    units = _TYPE_SUFFIX_RE.sub("", str(raw_units))
    units = _ERA_RE.sub("since ", units)
    return units.strip()


def matches_since_pattern(raw_units: str | None) -> bool:
    """
    Return True if the string looks like ``"<kind> since <date>"``.

    Parameters
    ----------
    raw_units : str or None
        Units string; ``None`` never matches.

    Returns
    -------
    bool
        True if a "since" clause with a known kind is present.
    """
    if not raw_units:
        return False
    units = clean_units(raw_units)
    if not _SINCE_RE.match(units):
        return False
    return units.split()[0].lower() in KIND_TOKENS


def _kind(token: str, raw_units: str) -> TimeEncoding:
    try:
        return KIND_TOKENS[token.lower()]
    except KeyError:
        raise UnparsableUnits(f"unknown time unit '{token}'", units=raw_units) from None


def parse_units(raw_units: str) -> TimeUnitDescriptor:
    """
    Parse a raw time units string into a :class:`TimeUnitDescriptor`.

    Patterns are tried in priority order: month-name dates
    (``since YYYY-Mon-DD[suffix]``), ISO-like dates
    (``since YYYY-MM-DD[ HH:MM:SS]``), bare years (``since YYYY``) and finally
    the decimal pseudo formats and bare year tokens.

    Parameters
    ----------
    raw_units : str
        Units string as found in the file.

    Returns
    -------
    TimeUnitDescriptor
        Parsed descriptor.

    Raises
    ------
    UnparsableUnits
        If no pattern matches.

    Notes
    -----
    A bare ``"yr"``/``"years"`` carries no reference date; it is read as
    year 0 so that the values are taken as absolute years. This is an
    approximation inherited from existing conversions, not a documented
    convention.

    Examples
    --------
    >>> parse_units("years since AD 1700-Jan-1st").reference_year
    1700
    >>> parse_units("yr").reference_year
    0
    """
    units = clean_units(raw_units)

    m = _MONTH_NAME_RE.match(units)
    if m is not None:
        month_name = m["month"][:3].lower()
        if month_name not in MONTH_NAMES:
            raise UnparsableUnits(f"unknown month name '{m['month']}'", units=raw_units)
        try:
            reference = ReferenceDate(int(m["year"]), MONTH_NAMES[month_name], int(m["day"]))
        except ValueError as e:
            raise UnparsableUnits(str(e), units=raw_units) from e
        return TimeUnitDescriptor(_kind(m["kind"], raw_units), reference, raw_units)

    m = _ISO_RE.match(units)
    if m is not None:
        try:
            reference = ReferenceDate(
                int(m["year"]),
                int(m["month"]),
                int(m["day"]),
                int(m["hour"] or 0),
                int(m["minute"] or 0),
                float(m["second"] or 0.0),
            )
        except ValueError as e:
            raise UnparsableUnits(str(e), units=raw_units) from e
        return TimeUnitDescriptor(_kind(m["kind"], raw_units), reference, raw_units)

    m = _YEAR_RE.match(units)
    if m is not None:
        return TimeUnitDescriptor(_kind(m["kind"], raw_units), ReferenceDate(int(m["year"])), raw_units)

    lowered = " ".join(units.lower().split())
    if lowered in DECIMAL_FORMATS:
        return TimeUnitDescriptor(DECIMAL_FORMATS[lowered], None, raw_units)
    if lowered in BARE_YEAR_TOKENS:
        return TimeUnitDescriptor(TimeEncoding.YEAR, ReferenceDate(0), raw_units)

    raise UnparsableUnits("could not parse reference date from time units", units=raw_units)


def describe_units(raw_units: str | None) -> TimeUnitDescriptor:
    """
    Parse a units string without raising.

    Parameters
    ----------
    raw_units : str or None
        Units string; ``None`` is treated as unparsable.

    Returns
    -------
    TimeUnitDescriptor
        Parsed descriptor, or one of kind ``unknown`` if parsing failed.
    """
    if raw_units is None:
        return TimeUnitDescriptor(TimeEncoding.UNKNOWN, None, "")
    try:
        return parse_units(raw_units)
    except UnparsableUnits:
        return TimeUnitDescriptor(TimeEncoding.UNKNOWN, None, str(raw_units))
