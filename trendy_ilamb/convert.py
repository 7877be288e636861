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
Convert TRENDY files to ILAMB-compliant NetCDF.
"""

from __future__ import annotations

import warnings
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

import cftime
import numpy as np
import xarray as xr

from trendy_ilamb.bounds import check_bounds, orient_time_bounds, time_bounds
from trendy_ilamb.config import ConversionConfig
from trendy_ilamb.container import OutputContainer
from trendy_ilamb.errors import ConversionError, CorruptSource, MissingRequiredDimension
from trendy_ilamb.overrides import resolve_override
from trendy_ilamb.timeaxis import (
    CalendarTimes,
    CanonicalTimeSeries,
    NumericTimes,
    absolute_months,
    as_time_values,
    check_monotonic,
    month_labels,
    normalize,
)
from trendy_ilamb.units import TimeEncoding, TimeUnitDescriptor, parse_units
from trendy_ilamb.variables import standardize_units

SPATIAL_NAMES = {
    "lat": ("lat", "latitude"),
    "lon": ("lon", "longitude"),
}
SPATIAL_UNITS = {"lat": "degrees_north", "lon": "degrees_east"}

# encoding keys that decide how variable data are stored
PACKING_ENCODING = ("dtype", "scale_factor", "add_offset", "missing_value", "_Unsigned")

CF_CALENDARS = (
    "standard",
    "gregorian",
    "proleptic_gregorian",
    "noleap",
    "365_day",
    "all_leap",
    "366_day",
    "360_day",
    "julian",
)


@dataclass(frozen=True)
class ConversionRequest:
    """
    One TRENDY file to convert.

    Attributes
    ----------
    path : pathlib.Path
        Input NetCDF file.
    model : str
        Source model identifier, e.g. ``"CLASSIC"``.
    simulation : str
        Simulation identifier, e.g. ``"S3"``.
    variable : str
        Variable to convert.
    """

    path: Path
    model: str
    simulation: str
    variable: str


@dataclass(frozen=True)
class ConversionResult:
    """
    Outcome of a successful conversion.

    Attributes
    ----------
    path : pathlib.Path
        Output NetCDF file.
    variable : str
        Variable name.
    units : str
        Standardized units of the variable.
    time_units : str
        Canonical time units.
    calendar : str
        Canonical calendar.
    start : str
        ``YYYYMM`` label of the first step.
    end : str
        ``YYYYMM`` label of the last step.
    """

    path: Path
    variable: str
    units: str
    time_units: str
    calendar: str
    start: str = ""
    end: str = ""


@contextmanager
def open_source(path: str | Path) -> Iterator[xr.Dataset]:
    """
    Open a TRENDY file without decoding times.

    Parameters
    ----------
    path : str or pathlib.Path
        Input NetCDF file.

    Yields
    ------
    xarray.Dataset
        The open dataset; closed when the context exits.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    CorruptSource
        If the file cannot be opened.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    try:
        ds = xr.open_dataset(path, engine="netcdf4", decode_times=False, decode_timedelta=False)
    except (OSError, RuntimeError) as e:
        raise CorruptSource(f"cannot open file: {e}", path=path) from e
    try:
        yield ds
    finally:
        ds.close()


def _load(da: xr.DataArray, path: str | Path) -> np.ndarray:
    try:
        return da.values
    except (OSError, RuntimeError) as e:
        raise CorruptSource(f"cannot read '{da.name}': {e}", path=path) from e


def decode_calendar(raw_values: Any, descriptor: TimeUnitDescriptor, calendar: str) -> CalendarTimes | None:
    """
    Decode day or hour offsets to dates on the file's calendar.

    Parameters
    ----------
    raw_values : array_like
        Numeric time values.
    descriptor : TimeUnitDescriptor
        Parsed units of a day or hour encoding.
    calendar : str
        Calendar attribute of the time variable.

    Returns
    -------
    CalendarTimes or None
        Decoded dates, or ``None`` if the values cannot be decoded (unknown
        calendar, dates out of range); the caller then treats the values as
        numeric offsets.
    """
    units = descriptor.cf_units()
    values = np.asarray(raw_values)
    if units is None or values.dtype.kind not in "iuf":
        return None
    calendar = str(calendar).strip().lower()
    if calendar not in CF_CALENDARS:
        warnings.warn(f"Unknown calendar '{calendar}', reading offsets as 365-day years")
        return None
    try:
        dates = cftime.num2date(values, units, calendar=calendar, only_use_cftime_datetimes=True)
    except (ValueError, OverflowError) as e:
        warnings.warn(
            f"Could not decode '{descriptor.raw}' on calendar '{calendar}' ({e}), reading offsets as 365-day years"
        )
        return None
    return CalendarTimes(tuple(np.asarray(dates).reshape(-1).tolist()))


def resolve_time_axis(
    model: str,
    raw_values: Any,
    raw_units: str | None,
    calendar: str = "standard",
    config: ConversionConfig | None = None,
) -> CanonicalTimeSeries:
    """
    Turn a raw time axis into a canonical one.

    Model overrides are consulted first. Otherwise the units are parsed (the
    configured default is used when the attribute is missing), day and hour
    offsets are decoded to dates on the file's calendar, and everything else is
    read as offsets on a 365-day year.

    Parameters
    ----------
    model : str
        Source model identifier.
    raw_values : array_like
        Raw time values.
    raw_units : str or None
        Raw ``units`` attribute, ``None`` if absent.
    calendar : str, optional
        Raw ``calendar`` attribute, by default ``"standard"``.
    config : ConversionConfig or None, optional
        Conversion configuration; defaults are used if ``None``.

    Returns
    -------
    CanonicalTimeSeries
        Canonical days and bounds.

    Raises
    ------
    UnparsableUnits
        If the units match no known encoding.
    UnsupportedTimeType
        If the values are neither numbers nor dates.
    NonMonotonicTime
        If the canonical axis or its bounds decrease.
    """
    config = config or ConversionConfig()
    epoch_year = config.epoch_year

    series = resolve_override(model, raw_values, raw_units, config)
    if series is None:
        units = raw_units
        if units is None:
            warnings.warn(f"Time variable has no units, assuming '{config.default_time_units}'")
            units = config.default_time_units
        descriptor = parse_units(units)

        times = None
        if descriptor.kind in (TimeEncoding.DAY, TimeEncoding.HOUR):
            times = decode_calendar(raw_values, descriptor, calendar)
        if times is None:
            times = as_time_values(raw_values, descriptor)

        series = CanonicalTimeSeries(
            normalize(times, epoch_year),
            time_bounds(times, epoch_year),
            epoch_year,
            "calendar" if isinstance(times, CalendarTimes) else "numeric",
            months=absolute_months(times) if isinstance(times, NumericTimes) else None,
        )

    check_monotonic(series.days)
    check_bounds(orient_time_bounds(series.bounds, len(series)))
    return series


def _spatial_name(ds: xr.Dataset, name: str) -> str | None:
    return next((n for n in SPATIAL_NAMES[name] if n in ds.dims or n in ds.variables), None)


def build_container(
    ds: xr.Dataset,
    request: ConversionRequest,
    series: CanonicalTimeSeries,
    config: ConversionConfig,
) -> tuple[OutputContainer, str]:
    """
    Lay out the ILAMB output of one variable.

    Dimensions are defined in the order lat, lon, time, bounds, then any other
    dimension of the variable. Latitude and longitude are copied under their
    short names with CF units, the variable data are copied unchanged.

    Parameters
    ----------
    ds : xarray.Dataset
        Source dataset opened by :func:`open_source`.
    request : ConversionRequest
        The conversion being run.
    series : CanonicalTimeSeries
        Canonical time axis.
    config : ConversionConfig
        Conversion configuration.

    Returns
    -------
    tuple of (OutputContainer, str)
        The filled container and the standardized variable units.
    """
    container = OutputContainer()
    renames: dict[str, str] = {}

    for short in ("lat", "lon"):
        name = _spatial_name(ds, short)
        if name is None:
            continue
        renames[name] = short
        if name in ds.dims:
            container.define_dimension(short, ds.sizes[name])

    n_time = len(series)
    container.define_dimension("time", n_time)
    container.define_dimension(config.bounds_dimension, 2)

    for short in ("lat", "lon"):
        name = _spatial_name(ds, short)
        if name is None or name not in ds.variables or ds[name].ndim != 1 or short not in container.dimensions:
            continue
        container.add_variable(
            short,
            (short,),
            _load(ds[name], request.path),
            attrs={"units": SPATIAL_UNITS[short]},
            encoding={"_FillValue": None},
        )

    container.add_variable(
        "time",
        ("time",),
        np.asarray(series.days, dtype="int64"),
        attrs={"units": config.time_units, "calendar": config.calendar, "bounds": config.bounds_variable},
        encoding={"_FillValue": None},
    )
    container.add_variable(
        config.bounds_variable,
        ("time", config.bounds_dimension),
        orient_time_bounds(series.bounds, n_time).astype("float64"),
        encoding={"_FillValue": None},
    )

    da = ds[request.variable]
    dims = tuple(renames.get(d, d) for d in da.dims)
    for source_dim, dim in zip(da.dims, dims):
        container.define_dimension(dim, ds.sizes[source_dim])

    attrs = da.attrs
    units = standardize_units(str(attrs.get("units", "unknown")), config.unit_conversions)
    long_name = attrs.get("long_name")
    if long_name is None:
        long_name = config.variable_info(request.variable).long_name
    out_attrs = {"units": units, "long_name": str(long_name)}
    metadata = config.variables.get(request.variable)
    if metadata is not None:
        out_attrs["standard_name"] = metadata.standard_name

    # re-encode with the source packing so the stored values come back unchanged
    encoding = {key: da.encoding[key] for key in PACKING_ENCODING if key in da.encoding}
    encoding["_FillValue"] = da.encoding.get("_FillValue")

    container.add_variable(request.variable, dims, _load(da, request.path), attrs=out_attrs, encoding=encoding)
    return container, units


def convert_to_ilamb(
    request: ConversionRequest,
    output_dir: str | Path = ".",
    config: ConversionConfig | None = None,
) -> ConversionResult:
    """
    Convert one TRENDY file to an ILAMB-compliant NetCDF file.

    Either a complete output file is written or none: the file is assembled in
    memory and written atomically, so a failure leaves no partial output.

    Parameters
    ----------
    request : ConversionRequest
        File, model, simulation and variable to convert.
    output_dir : str or pathlib.Path, optional
        Directory of the output file, created if missing. Default is the
        current directory.
    config : ConversionConfig or None, optional
        Conversion configuration; defaults are used if ``None``.

    Returns
    -------
    ConversionResult
        Output path, variable units and canonical time metadata.

    Raises
    ------
    MissingRequiredDimension
        If the file has no time dimension or lacks the variable.
    UnparsableUnits
        If the time units match no known encoding and no override applies.
    UnsupportedTimeType
        If the time values cannot be interpreted.
    CorruptSource
        If the file cannot be read.

    Examples
    --------
    >>> request = ConversionRequest(Path("CARDAMOM_S3_gpp.nc"), "CARDAMOM", "S3", "gpp")
    >>> convert_to_ilamb(request, output_dir="ilamb").path.name
    'gpp_Lmon_ENSEMBLE-CARDAMOM_historical_r1i1p1f1_gn_200301-202312.nc'
    """
    config = config or ConversionConfig()
    raw_units = None
    try:
        with open_source(request.path) as ds:
            if "time" not in ds.dims:
                raise MissingRequiredDimension("No time dimension found")
            if request.variable not in ds.variables:
                raise MissingRequiredDimension(f"Variable '{request.variable}' not found")
            if "time" not in ds.variables:
                raise MissingRequiredDimension("No time coordinate found")

            time_var = ds["time"]
            raw_units = time_var.attrs.get("units")
            calendar = time_var.attrs.get("calendar", "standard")
            raw_values = _load(time_var, request.path)

            series = resolve_time_axis(request.model, raw_values, raw_units, calendar, config)
            if len(series) != ds.sizes["time"]:
                raise ValueError(f"canonical time has {len(series)} steps, file has {ds.sizes['time']}")

            start, end = month_labels(series)
            output_file = Path(output_dir) / config.filename.render(request.variable, request.model, start, end)

            container, units = build_container(ds, request, series, config)
            container.write(output_file)
    except ConversionError as e:
        raise e.with_context(
            path=request.path,
            model=request.model,
            variable=request.variable,
            units=None if raw_units is None else str(raw_units),
        )

    return ConversionResult(
        output_file,
        request.variable,
        units,
        config.time_units,
        config.calendar,
        start,
        end,
    )
