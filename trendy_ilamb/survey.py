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
Survey the time encodings of a TRENDY tree.
"""

from __future__ import annotations

from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from dataclasses import dataclass
from pathlib import Path

from trendy_ilamb.convert import open_source
from trendy_ilamb.overrides import is_month_index
from trendy_ilamb.units import describe_units


@dataclass(frozen=True)
class TimeFormat:
    """
    Time encoding found in one file.

    Attributes
    ----------
    path : pathlib.Path
        The file.
    units : str
        Raw units, ``"no units"`` if absent.
    calendar : str
        Raw calendar, ``"no calendar"`` if absent.
    first : float
        First raw value.
    last : float
        Last raw value.
    encoding : str
        Detected encoding kind, ``"month-index"`` for a bare index.
    """

    path: Path
    units: str
    calendar: str
    first: float
    last: float
    encoding: str


def check_time_format(path: str | Path) -> TimeFormat | None:
    """
    Read the time encoding of a file.

    Parameters
    ----------
    path : str or pathlib.Path
        NetCDF file.

    Returns
    -------
    TimeFormat or None
        The encoding, or ``None`` if the file has no time variable.
    """
    path = Path(path)
    with open_source(path) as ds:
        if "time" not in ds.variables:
            return None
        time_var = ds["time"]
        raw_units = time_var.attrs.get("units")
        values = time_var.values
        encoding = describe_units(raw_units).kind.value
        if is_month_index(values) and encoding == "unknown":
            encoding = "month-index"
        first = float(values[0]) if values.size and values.dtype.kind in "iuf" else float("nan")
        last = float(values[-1]) if values.size and values.dtype.kind in "iuf" else float("nan")
        return TimeFormat(
            path,
            str(raw_units) if raw_units is not None else "no units",
            str(time_var.attrs.get("calendar", "no calendar")),
            first,
            last,
            encoding,
        )


def survey_time_formats(root_dir: str | Path) -> list[TimeFormat]:
    """
    Print the time encoding of every NetCDF file below a directory.

    Files that cannot be read are reported and skipped.

    Parameters
    ----------
    root_dir : str or pathlib.Path
        Directory to walk.

    Returns
    -------
    list of TimeFormat
        Encodings of the readable files with a time variable.
    """
    print("")
    print("Time format analysis")
    print("-" * 120)
    print(f"{'File':<50} | {'Units':<40} | {'Calendar':<15} | {'Encoding':<13} | Time range")
    print("-" * 120)

    formats: list[TimeFormat] = []
    for p in sorted(Path(root_dir).rglob("*.nc")):
        try:
            tf = check_time_format(p)
        except Exception as e:  # pylint: disable=broad-exception-caught
            print(f"{p.name:<50} | ✗ ({type(e).__name__}: {e})")
            continue
        if tf is None:
            continue
        formats.append(tf)
        print(
            f"{p.name:<50} | {tf.units:<40} | {tf.calendar:<15} | {tf.encoding:<13} | "
            f"First: {tf.first:<10g} | Last: {tf.last:<10g}"
        )
    return formats


def main():
    """
    Run main script.
    """

    # set up the option parser
    parser = ArgumentParser(formatter_class=ArgumentDefaultsHelpFormatter)
    parser.description = "Survey time encodings of TRENDY files."
    parser.add_argument(
        "TRENDY_DIR",
        help="Directory to walk.",
        nargs=1,
    )

    options, unknown = parser.parse_known_args()
    survey_time_formats(options.TRENDY_DIR[0])


if __name__ == "__main__":
    __spec__ = None  # type: ignore
    main()
