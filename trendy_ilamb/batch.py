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
Convert a TRENDY directory tree to ILAMB format.

The NetCDF library is not safe for concurrent use within a process, so files
are partitioned by model and each partition is converted sequentially by its
own worker process. Partitions never share an output path.
"""

from __future__ import annotations

import os
import time
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from collections import Counter
from collections.abc import Iterable, Sequence
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from pyfiglet import Figlet
from tqdm.auto import tqdm

from trendy_ilamb.config import ConversionConfig, load_config
from trendy_ilamb.convert import ConversionRequest, convert_to_ilamb
from trendy_ilamb.errors import (
    CorruptSource,
    MissingRequiredDimension,
    NonMonotonicTime,
    UnparsableUnits,
    UnsupportedTimeType,
)
from trendy_ilamb.verify import verify_conversion


@dataclass(frozen=True)
class ConversionTask:
    """
    A file selected for conversion.

    Attributes
    ----------
    request : ConversionRequest
        What to convert.
    output_dir : pathlib.Path
        Where to write the result.
    """

    request: ConversionRequest
    output_dir: Path


@dataclass(frozen=True)
class TaskOutcome:
    """
    Outcome of one task.

    Attributes
    ----------
    success : bool
        Whether the conversion succeeded.
    task : ConversionTask
        The task.
    message : str
        One line for the report.
    error_kind : str
        Error classification, empty on success.
    output : pathlib.Path or None
        Output file on success.
    """

    success: bool
    task: ConversionTask
    message: str
    error_kind: str = ""
    output: Path | None = None


@dataclass
class BatchSummary:
    """
    Totals of a batch run.

    Attributes
    ----------
    outcomes : list of TaskOutcome
        One outcome per task.
    skipped : list of pathlib.Path
        Files not selected for conversion.
    elapsed : float
        Wall clock time in seconds.
    workers : int
        Number of worker processes.
    """

    outcomes: list[TaskOutcome] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    elapsed: float = 0.0
    workers: int = 1

    @property
    def converted(self) -> Counter:
        """
        Successful conversions per variable.

        Returns
        -------
        collections.Counter
            Count per variable name.
        """
        return Counter(o.task.request.variable for o in self.outcomes if o.success)

    @property
    def failed(self) -> list[TaskOutcome]:
        """
        Failed tasks.

        Returns
        -------
        list of TaskOutcome
            Outcomes with ``success=False``.
        """
        return [o for o in self.outcomes if not o.success]

    @property
    def error_kinds(self) -> Counter:
        """
        Failures per error kind.

        Returns
        -------
        collections.Counter
            Count per error classification.
        """
        return Counter(o.error_kind for o in self.failed)


def variable_from_filename(path: str | Path) -> str | None:
    """
    Variable name of a TRENDY file, the last ``_``-separated token.

    Parameters
    ----------
    path : str or pathlib.Path
        TRENDY file such as ``CLASSIC_S3_gpp.nc``.

    Returns
    -------
    str or None
        Variable name, or ``None`` if the name has fewer than three tokens.

    Examples
    --------
    >>> variable_from_filename("CLASSIC_S3_gpp.nc")
    'gpp'
    """
    parts = Path(path).stem.split("_")
    if len(parts) < 3:
        return None
    return parts[-1]


def collect_tasks(
    trendy_dir: str | Path,
    output_base: str | Path,
    config: ConversionConfig | None = None,
    models: Sequence[str] | None = None,
) -> tuple[list[ConversionTask], list[Path]]:
    """
    Collect files of a ``<model>/<simulation>/*.nc`` tree.

    Parameters
    ----------
    trendy_dir : str or pathlib.Path
        Root of the TRENDY tree.
    output_base : str or pathlib.Path
        Root of the output tree; files go to ``<output_base>/<model>/<simulation>``.
    config : ConversionConfig or None, optional
        Provides the simulations to visit and the variables to convert.
    models : sequence of str or None, optional
        Restrict to these models.

    Returns
    -------
    tuple of (list of ConversionTask, list of pathlib.Path)
        Tasks, and files skipped because their variable is not converted.
    """
    config = config or ConversionConfig()
    trendy_dir = Path(trendy_dir)
    output_base = Path(output_base)

    tasks: list[ConversionTask] = []
    skipped: list[Path] = []
    model_dirs = sorted(p for p in trendy_dir.iterdir() if p.is_dir() and not p.name.startswith("."))
    for model_dir in model_dirs:
        model = model_dir.name
        if models and model not in models:
            continue
        for sim in config.simulations:
            sim_dir = model_dir / sim
            if not sim_dir.is_dir():
                continue
            for nc_file in sorted(sim_dir.glob("*.nc")):
                var = variable_from_filename(nc_file)
                if var is None or not config.is_ilamb_variable(var):
                    skipped.append(nc_file)
                    continue
                request = ConversionRequest(nc_file, model, sim, var)
                tasks.append(ConversionTask(request, output_base / model / sim))
    return tasks, skipped


def partition_by_model(tasks: Iterable[ConversionTask]) -> dict[str, list[ConversionTask]]:
    """
    Group tasks by source model.

    Parameters
    ----------
    tasks : iterable of ConversionTask
        Tasks to group.

    Returns
    -------
    dict of str to list of ConversionTask
        Disjoint partitions keyed by model, in first-seen order.
    """
    partitions: dict[str, list[ConversionTask]] = {}
    for task in tasks:
        partitions.setdefault(task.request.model, []).append(task)
    return partitions


def classify_error(e: BaseException) -> str:
    """
    Short classification of a conversion failure.

    Parameters
    ----------
    e : BaseException
        The failure.

    Returns
    -------
    str
        Error kind used in the summary.
    """
    if isinstance(e, CorruptSource) or "HDF error" in str(e):
        return "Corrupted NetCDF"
    if isinstance(e, MissingRequiredDimension):
        return "Missing time dimension" if "time" in e.message else "Missing variable"
    if isinstance(e, UnparsableUnits):
        return "Unparsable time units"
    if isinstance(e, UnsupportedTimeType):
        return "Unsupported time type"
    if isinstance(e, NonMonotonicTime):
        return "Non-monotonic time"
    return "Other error"


def convert_task(task: ConversionTask, config: ConversionConfig, verify: bool = False) -> TaskOutcome:
    """
    Convert one file and report the outcome instead of raising.

    Parameters
    ----------
    task : ConversionTask
        File to convert.
    config : ConversionConfig
        Conversion configuration.
    verify : bool, optional
        Compare the output with the source after converting.

    Returns
    -------
    TaskOutcome
        Success with the output path, or failure with a classified error.
    """
    r = task.request
    label = f"[{os.getpid()}] {r.model}/{r.simulation}/{r.variable}"
    try:
        result = convert_to_ilamb(r, output_dir=task.output_dir, config=config)
        note = ""
        if verify:
            report = verify_conversion(r, result)
            note = " verified ✓" if report.ok else " verification ✗ " + "; ".join(f.kind for f in report.findings)
        size = result.path.stat().st_size / 1024 / 1024
        message = f"{label} ✓ → {result.path.name} ({size:.2f} MB){note}"
        return TaskOutcome(True, task, message, output=result.path)
    except Exception as e:  # pylint: disable=broad-exception-caught
        kind = classify_error(e)
        message = f"{label} ✗ {type(e).__name__} ({kind}): {e} [file={r.path}]"
        return TaskOutcome(False, task, message, error_kind=kind)


def convert_partition(
    tasks: Sequence[ConversionTask],
    config: ConversionConfig,
    verify: bool = False,
) -> list[TaskOutcome]:
    """
    Convert the tasks of one partition sequentially.

    Parameters
    ----------
    tasks : sequence of ConversionTask
        Tasks of one model.
    config : ConversionConfig
        Conversion configuration.
    verify : bool, optional
        Verify each output.

    Returns
    -------
    list of TaskOutcome
        One outcome per task, in order.
    """
    return [convert_task(task, config, verify=verify) for task in tasks]


def convert_all(
    trendy_dir: str | Path,
    output_base: str | Path = "output",
    config: ConversionConfig | None = None,
    max_workers: int | None = None,
    verify: bool = False,
    models: Sequence[str] | None = None,
) -> BatchSummary:
    """
    Convert every selected file of a TRENDY tree.

    Each model's files are converted by a single worker process; one file's
    failure is recorded and the run continues.

    Parameters
    ----------
    trendy_dir : str or pathlib.Path
        Root of the TRENDY tree.
    output_base : str or pathlib.Path, optional
        Root of the output tree, by default ``"output"``.
    config : ConversionConfig or None, optional
        Conversion configuration.
    max_workers : int or None, optional
        Number of worker processes. If ``None``, use half the CPUs (at least 1).
        With 1 worker everything runs in this process.
    verify : bool, optional
        Verify each output against its source.
    models : sequence of str or None, optional
        Restrict to these models.

    Returns
    -------
    BatchSummary
        Outcomes and totals.
    """
    config = config or ConversionConfig()
    tasks, skipped = collect_tasks(trendy_dir, output_base, config=config, models=models)
    partitions = partition_by_model(tasks)
    max_workers = max_workers or max(1, (os.cpu_count() or 2) // 2)
    max_workers = max(1, min(max_workers, len(partitions) or 1))

    print(f"Files to convert: {len(tasks)}")
    print(f"Files to skip: {len(skipped)}")
    print(f"Models: {len(partitions)}, workers: {max_workers}")

    summary = BatchSummary(skipped=skipped, workers=max_workers)
    start = time.time()
    if max_workers == 1:
        for part in tqdm(partitions.values(), total=len(partitions), desc="Converting models"):
            summary.outcomes.extend(convert_partition(part, config, verify))
    else:
        with ProcessPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(convert_partition, part, config, verify) for part in partitions.values()]
            for fut in tqdm(as_completed(futs), total=len(futs), desc="Converting models (parallel)"):
                summary.outcomes.extend(fut.result())
    summary.elapsed = time.time() - start
    return summary


def print_summary(summary: BatchSummary) -> None:
    """
    Print the outcome of a batch run.

    Parameters
    ----------
    summary : BatchSummary
        Totals to report.
    """
    print("")
    print("=" * 80)
    for outcome in summary.outcomes:
        print(outcome.message)
    print("")
    print("=" * 80)
    print("Conversion summary")
    print("-" * 80)
    print(f"Total time: {summary.elapsed / 60:.1f} minutes")
    print(f"Workers used: {summary.workers}")
    print(f"Converted: {len(summary.outcomes) - len(summary.failed)}")
    print(f"Failed: {len(summary.failed)}")
    print(f"Skipped: {len(summary.skipped)}")
    if summary.converted:
        print("Converted per variable:")
        for var, n in sorted(summary.converted.items()):
            print(f"  {var}: {n}")
    if summary.error_kinds:
        print("Errors by kind:")
        for kind, n in summary.error_kinds.most_common():
            print(f"  {kind}: {n}")
    print("=" * 80)


def main():
    """
    Run main script.
    """

    # set up the option parser
    parser = ArgumentParser(formatter_class=ArgumentDefaultsHelpFormatter)
    parser.description = "Convert TRENDY model output to ILAMB format."
    parser.add_argument(
        "--output-dir",
        help="Root of the output tree.",
        type=str,
        default="output",
    )
    parser.add_argument(
        "--config",
        help="Conversion config TOML.",
        type=str,
        default=None,
    )
    parser.add_argument(
        "--max-workers",
        help="Number of worker processes, at most one per model.",
        type=int,
        default=None,
    )
    parser.add_argument(
        "--models",
        help="Only convert these models.",
        nargs="*",
        default=None,
    )
    parser.add_argument(
        "--verify",
        help="Compare each output with its source.",
        action="store_true",
        default=False,
    )
    parser.add_argument(
        "TRENDY_DIR",
        help="Root of the TRENDY tree (<model>/<simulation>/*.nc).",
        nargs=1,
    )

    options, unknown = parser.parse_known_args()
    config = load_config(options.config)

    f = Figlet(font="standard")
    banner = f.renderText("trendy-ilamb")
    print("=" * 80)
    print(banner)
    print("=" * 80)
    print(f"Convert {options.TRENDY_DIR[0]}")
    print("-" * 80)
    print("")

    summary = convert_all(
        options.TRENDY_DIR[0],
        options.output_dir,
        config=config,
        max_workers=options.max_workers,
        verify=options.verify,
        models=options.models,
    )
    print_summary(summary)


if __name__ == "__main__":
    __spec__ = None  # type: ignore
    main()
