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
Tests for batch conversion of a TRENDY tree.

This suite checks:
- Collection of ``<model>/<simulation>/*.nc`` files and skipping of
  variables that are not converted.
- Partitioning by model.
- Classification of failures.
- A run where one model fails keeps converting the others.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from trendy_ilamb.batch import (
    classify_error,
    collect_tasks,
    convert_all,
    partition_by_model,
    print_summary,
    variable_from_filename,
)
from trendy_ilamb.config import ConversionConfig
from trendy_ilamb.errors import (
    CorruptSource,
    MissingRequiredDimension,
    NonMonotonicTime,
    UnparsableUnits,
    UnsupportedTimeType,
)
from trendy_ilamb.survey import check_time_format, survey_time_formats


@pytest.fixture(name="trendy_tree")
def fixture_trendy_tree(tmp_path, make_trendy_file):
    """
    A small TRENDY tree with three models.

    ``CLASSIC`` has a yearly ``gpp`` file and a variable that is not converted,
    ``CARDAMOM`` a bare month index and ``BROKEN`` unparsable time units.

    Parameters
    ----------
    tmp_path : pathlib.Path
        Pytest temporary directory.
    make_trendy_file : callable
        File factory.

    Returns
    -------
    pathlib.Path
        Root of the tree.
    """
    root = tmp_path / "trendy"
    make_trendy_file("CLASSIC_S3_gpp.nc", directory=root / "CLASSIC" / "S3")
    make_trendy_file("CLASSIC_S3_foo.nc", variable="foo", directory=root / "CLASSIC" / "S3")
    make_trendy_file("CLASSIC_S9_gpp.nc", directory=root / "CLASSIC" / "S9")
    make_trendy_file("CARDAMOM_S3_gpp.nc", time=np.arange(1, 13), units=None, directory=root / "CARDAMOM" / "S3")
    make_trendy_file(
        "BROKEN_S2_cVeg.nc", variable="cVeg", time=np.arange(1, 13), units="month", directory=root / "BROKEN" / "S2"
    )
    return root


def test_variable_from_filename():
    """
    The variable is the last underscore-separated token.
    """
    assert variable_from_filename("CLASSIC_S3_gpp.nc") == "gpp"
    assert variable_from_filename(Path("x/LPJ-GUESS_S3_cSoil.nc")) == "cSoil"
    assert variable_from_filename("gpp.nc") is None


def test_collect_tasks(trendy_tree, tmp_path):
    """
    Files of known simulations and converted variables become tasks.
    """
    tasks, skipped = collect_tasks(trendy_tree, tmp_path / "output")
    keys = [(t.request.model, t.request.simulation, t.request.variable) for t in tasks]
    assert keys == [("BROKEN", "S2", "cVeg"), ("CARDAMOM", "S3", "gpp"), ("CLASSIC", "S3", "gpp")]
    assert [p.name for p in skipped] == ["CLASSIC_S3_foo.nc"]
    assert tasks[1].output_dir == tmp_path / "output" / "CARDAMOM" / "S3"


def test_collect_tasks_for_models(trendy_tree, tmp_path):
    """
    Restrict collection to selected models.
    """
    tasks, _ = collect_tasks(trendy_tree, tmp_path / "output", models=["CLASSIC"])
    assert {t.request.model for t in tasks} == {"CLASSIC"}


def test_partition_by_model(trendy_tree, tmp_path):
    """
    Partitions are disjoint and cover every task.
    """
    config = ConversionConfig(simulations=["S3", "S9"])
    tasks, _ = collect_tasks(trendy_tree, tmp_path / "output", config=config)
    partitions = partition_by_model(tasks)
    assert set(partitions) == {"CARDAMOM", "CLASSIC"}
    assert len(partitions["CLASSIC"]) == 2
    assert sum(len(p) for p in partitions.values()) == len(tasks)


@pytest.mark.parametrize(
    "error,kind",
    [
        (CorruptSource("cannot open file"), "Corrupted NetCDF"),
        (OSError("NetCDF: HDF error"), "Corrupted NetCDF"),
        (MissingRequiredDimension("No time dimension found"), "Missing time dimension"),
        (MissingRequiredDimension("Variable 'gpp' not found"), "Missing variable"),
        (UnparsableUnits("could not parse"), "Unparsable time units"),
        (UnsupportedTimeType("unsupported time type: str"), "Unsupported time type"),
        (NonMonotonicTime("time decreases"), "Non-monotonic time"),
        (KeyError("x"), "Other error"),
    ],
)
def test_classify_error(error, kind):
    """
    Check the summary classification of failures.
    """
    assert classify_error(error) == kind


@pytest.mark.integration
def test_convert_all(trendy_tree, tmp_path, capsys):
    """
    One failing model does not stop the others.
    """
    output = tmp_path / "output"
    summary = convert_all(trendy_tree, output, max_workers=1, verify=True)

    assert summary.workers == 1
    assert len(summary.outcomes) == 3
    assert sum(summary.converted.values()) == 2
    assert [o.task.request.model for o in summary.failed] == ["BROKEN"]
    assert summary.error_kinds == {"Unparsable time units": 1}

    assert (output / "CLASSIC" / "S3" / "gpp_Lmon_ENSEMBLE-CLASSIC_historical_r1i1p1f1_gn_200001-200201.nc").exists()
    assert (output / "CARDAMOM" / "S3" / "gpp_Lmon_ENSEMBLE-CARDAMOM_historical_r1i1p1f1_gn_200301-200312.nc").exists()
    assert not (output / "BROKEN").exists() or not any((output / "BROKEN").rglob("*.nc"))

    print_summary(summary)
    out = capsys.readouterr().out
    assert "Unparsable time units" in out


@pytest.mark.integration
def test_survey_time_formats(trendy_tree, capsys):
    """
    The survey reports the encoding of every file.
    """
    formats = survey_time_formats(trendy_tree)
    encodings = {tf.path.name: tf.encoding for tf in formats}
    assert encodings["CLASSIC_S3_gpp.nc"] == "year"
    assert encodings["CARDAMOM_S3_gpp.nc"] == "month-index"
    assert encodings["BROKEN_S2_cVeg.nc"] == "month-index"
    assert "Time format analysis" in capsys.readouterr().out

    tf = check_time_format(trendy_tree / "CARDAMOM" / "S3" / "CARDAMOM_S3_gpp.nc")
    assert tf.units == "no units"
    assert (tf.first, tf.last) == (1.0, 12.0)
