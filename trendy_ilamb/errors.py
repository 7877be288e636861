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
Errors raised while converting TRENDY files.
"""

from __future__ import annotations

from pathlib import Path


class ConversionError(Exception):
    """
    Base class for failures that abort the conversion of a single file.

    The optional context is filled in by whoever knows it (the parser knows the
    units string, the assembler knows the file, model and variable) so the batch
    driver can report a failure without re-running the conversion.

    Parameters
    ----------
    message : str
        Human readable description of the failure.
    path : str or Path or None, optional
        Input file being converted.
    model : str or None, optional
        Source model identifier.
    variable : str or None, optional
        Variable being converted.
    units : str or None, optional
        Raw time units string that was being interpreted.
    """

    def __init__(
        self,
        message: str,
        path: str | Path | None = None,
        model: str | None = None,
        variable: str | None = None,
        units: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = path
        self.model = model
        self.variable = variable
        self.units = units

    def with_context(
        self,
        path: str | Path | None = None,
        model: str | None = None,
        variable: str | None = None,
        units: str | None = None,
    ) -> "ConversionError":
        """
        Fill in missing context and return the same exception.

        Parameters
        ----------
        path : str or Path or None, optional
            Input file being converted.
        model : str or None, optional
            Source model identifier.
        variable : str or None, optional
            Variable being converted.
        units : str or None, optional
            Raw time units string.

        Returns
        -------
        ConversionError
            ``self``, so the call can be used in a ``raise`` statement.
        """
        self.path = self.path or path
        self.model = self.model or model
        self.variable = self.variable or variable
        self.units = self.units or units
        return self

    def __str__(self) -> str:
        context = [
            f"{k}={v}"
            for k, v in (("file", self.path), ("model", self.model), ("variable", self.variable), ("units", self.units))
            if v is not None
        ]
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class UnparsableUnits(ConversionError, ValueError):
    """
    The time units string matches no known encoding and no override applies.
    """


class UnsupportedTimeType(ConversionError, TypeError):
    """
    Raw time values are of a type the normalizer cannot interpret.
    """


class MissingRequiredDimension(ConversionError, LookupError):
    """
    The input lacks a time dimension or the requested variable.
    """


class CorruptSource(ConversionError, OSError):
    """
    The I/O layer could not read the input structure.
    """


class NonMonotonicTime(ConversionError, ValueError):
    """
    Canonical time offsets or bounds decrease between consecutive steps.
    """
