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
Compare a converted file with its TRENDY source.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import xarray as xr

from trendy_ilamb.convert import ConversionRequest, ConversionResult, open_source


@dataclass(frozen=True)
class Finding:
    """
    A difference found during verification.

    Attributes
    ----------
    kind : str
        ``"ShapeMismatch"`` or ``"ValueMismatch"``.
    message : str
        Description of the difference.
    """

    kind: str
    message: str


@dataclass(frozen=True)
class VerificationReport:
    """
    Result of comparing source and converted variable data.

    Attributes
    ----------
    variable : str
        Variable compared.
    source_shape : tuple of int
        Shape in the source file.
    output_shape : tuple of int
        Shape in the converted file.
    max_abs_diff : float or None
        Largest absolute difference over valid values, if shapes match.
    mean_abs_diff : float or None
        Mean absolute difference over valid values, if shapes match.
    findings : tuple of Finding
        Differences found; empty if the data match.
    """

    variable: str
    source_shape: tuple[int, ...]
    output_shape: tuple[int, ...]
    max_abs_diff: float | None = None
    mean_abs_diff: float | None = None
    findings: tuple[Finding, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        """
        True if no differences were found.

        Returns
        -------
        bool
            Whether the data match.
        """
        return not self.findings


def compare_arrays(
    source: np.ndarray,
    output: np.ndarray,
    variable: str = "",
    rtol: float = 1e-5,
    atol: float = 1e-8,
) -> VerificationReport:
    """
    Compare two arrays, treating missing values as equal.

    Parameters
    ----------
    source : numpy.ndarray
        Source data; masked entries and NaN are missing.
    output : numpy.ndarray
        Converted data; masked entries and NaN are missing.
    variable : str, optional
        Variable name used in the report.
    rtol : float, optional
        Relative tolerance, by default 1e-5.
    atol : float, optional
        Absolute tolerance, by default 1e-8.

    Returns
    -------
    VerificationReport
        Shapes, differences and findings.
    """
    a = np.ma.filled(np.ma.asarray(source, dtype="float64"), np.nan)
    b = np.ma.filled(np.ma.asarray(output, dtype="float64"), np.nan)

    if a.shape != b.shape:
        finding = Finding("ShapeMismatch", f"source shape {a.shape} differs from output shape {b.shape}")
        return VerificationReport(variable, a.shape, b.shape, findings=(finding,))

    findings = []
    missing_a = np.isnan(a)
    missing_b = np.isnan(b)
    if np.any(missing_a != missing_b):
        n = int(np.count_nonzero(missing_a != missing_b))
        findings.append(Finding("ValueMismatch", f"{n} values are missing in only one of the files"))

    valid = ~missing_a & ~missing_b
    max_diff: float | None = None
    mean_diff: float | None = None
    if np.any(valid):
        diff = np.abs(a[valid] - b[valid])
        max_diff = float(diff.max())
        mean_diff = float(diff.mean())
        if not np.allclose(a[valid], b[valid], rtol=rtol, atol=atol):
            findings.append(
                Finding("ValueMismatch", f"values differ: max abs diff {max_diff:g}, mean abs diff {mean_diff:g}")
            )

    return VerificationReport(variable, a.shape, b.shape, max_diff, mean_diff, tuple(findings))


def compare_datasets(ds1: xr.Dataset, ds2: xr.Dataset, name1: str = "Dataset 1", name2: str = "Dataset 2") -> None:
    """
    Print dimensions, variables and attributes of two datasets.

    Parameters
    ----------
    ds1, ds2 : xarray.Dataset
        Datasets to describe.
    name1, name2 : str, optional
        Headings.
    """
    for name, ds in ((name1, ds1), (name2, ds2)):
        print(f"\n{name}:")
        print(f"Dimensions: {dict(ds.sizes)}")
        print(f"Variables: {list(ds.variables)}")
        for v in ds.variables:
            print(f"  {v}: {dict(ds[v].attrs)}")


def verify_conversion(
    request: ConversionRequest,
    result: ConversionResult,
    verbose: bool = False,
) -> VerificationReport:
    """
    Compare the variable of a converted file with its source.

    Parameters
    ----------
    request : ConversionRequest
        The conversion that produced ``result``.
    result : ConversionResult
        Output of :func:`trendy_ilamb.convert.convert_to_ilamb`.
    verbose : bool, optional
        Print both datasets and the outcome.

    Returns
    -------
    VerificationReport
        Shapes, differences and findings. Findings are reported, never raised.
    """
    with open_source(request.path) as source, open_source(Path(result.path)) as output:
        if verbose:
            compare_datasets(source, output, name1="Original TRENDY file", name2="Converted ILAMB file")
        report = compare_arrays(
            source[request.variable].values,
            output[result.variable].values,
            variable=request.variable,
        )

    if verbose:
        if report.ok:
            print("\nData verification: ✓ Variable data matches (within floating-point tolerance)")
        else:
            print("\nData verification: ✗ Variable data differs")
            for finding in report.findings:
                print(f"  {finding.kind}: {finding.message}")
    return report
