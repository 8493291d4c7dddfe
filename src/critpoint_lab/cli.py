"""
Command-line interface for Critpoint Lab.

Usage:
    critpoint-lab objectives     List benchmark objectives
    critpoint-lab refine         Build a reference set from a candidate grid
    critpoint-lab capture        Capture analysis across Newton iteration budgets
"""

import logging
from typing import Annotated

import numpy as np
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from critpoint_lab import __version__
from critpoint_lab.algorithms import (
    DEFAULT_REFERENCE_FRACTION,
    BenchmarkObjective,
    NewtonRefiner,
    ReferenceSet,
    ReferenceSetBuilder,
    VerdictLabel,
    candidate_grid,
    compute_capture_analysis,
    compute_capture_verdict,
    get_objective,
    list_objectives,
    missed_critical_points,
)
from critpoint_lab.data import CAPTURE_TYPES, RefinementConfig

app = typer.Typer(
    name="critpoint-lab",
    help="Critical point refinement and capture analysis",
    add_completion=False,
)
console = Console()

_LABEL_STYLES = {
    VerdictLabel.EXCELLENT: "bold green",
    VerdictLabel.GOOD: "yellow",
    VerdictLabel.POOR: "bold red",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"critpoint-lab version {__version__}")
        raise typer.Exit()


def _configure_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.callback()  # type: ignore[misc]
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log refinement progress."),
    ] = False,
) -> None:
    """Critpoint Lab - Critical point refinement experiments."""
    if verbose:
        _configure_logging(logging.INFO)


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/] {escape(message)}")
    return typer.Exit(code=1)


def _load(objective: str) -> BenchmarkObjective:
    try:
        return get_objective(objective)
    except ValueError as exc:
        raise _fail(str(exc)) from exc


def _config(
    method: str, tol: float, max_iterations: int, dedup: float, workers: int | None
) -> RefinementConfig:
    try:
        return RefinementConfig(
            gradient_method=method,  # type: ignore[arg-type]
            tol=tol,
            max_iterations=max_iterations,
            dedup_fraction=dedup,
            max_workers=workers,
        )
    except ValueError as exc:
        raise _fail(str(exc)) from exc


def _build_reference(
    benchmark: BenchmarkObjective, config: RefinementConfig, candidates: np.ndarray
) -> ReferenceSet:
    try:
        return ReferenceSetBuilder(
            benchmark.function, benchmark.bounds, config=config
        ).build(candidates)
    except ValueError as exc:
        raise _fail(str(exc)) from exc


def _grid(benchmark: BenchmarkObjective, points_per_dim: int) -> np.ndarray:
    try:
        return candidate_grid(benchmark.bounds, points_per_dim)
    except ValueError as exc:
        raise _fail(str(exc)) from exc


ObjectiveArg = Annotated[str, typer.Argument(help="Benchmark objective name")]
GridOpt = Annotated[int, typer.Option("--grid", "-g", help="Start points per dimension")]
MethodOpt = Annotated[
    str, typer.Option("--method", "-m", help="Gradient method (exact or numerical)")
]
TolOpt = Annotated[float, typer.Option("--tol", help="Gradient norm tolerance")]
DedupOpt = Annotated[
    float, typer.Option("--dedup", help="Deduplication distance (fraction of diameter)")
]
WorkersOpt = Annotated[
    int | None, typer.Option("--workers", "-w", help="Refinement threads")
]


@app.command()  # type: ignore[misc]
def objectives() -> None:
    """List the available benchmark objectives."""
    table = Table(title="Benchmark Objectives")

    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Dim", justify="right")
    table.add_column("Domain")
    table.add_column("Diameter", justify="right")
    table.add_column("Description")

    for name in list_objectives():
        benchmark = get_objective(name)
        domain = " × ".join(f"[{lo:g}, {hi:g}]" for lo, hi in benchmark.bounds.pairs())
        table.add_row(
            name,
            str(benchmark.ndim),
            domain,
            f"{benchmark.bounds.diameter:.3f}",
            benchmark.description,
        )

    console.print(table)


@app.command()  # type: ignore[misc]
def refine(
    objective: ObjectiveArg = "double_well",
    grid: GridOpt = 5,
    method: MethodOpt = "exact",
    tol: TolOpt = 1e-8,
    max_iterations: Annotated[
        int, typer.Option("--max-iter", "-i", help="Maximum Newton iterations")
    ] = 100,
    dedup: DedupOpt = 0.01,
    workers: WorkersOpt = None,
) -> None:
    """Refine a grid of start points into a reference set of critical points."""
    benchmark = _load(objective)
    config = _config(method, tol, max_iterations, dedup, workers)
    reference = _build_reference(benchmark, config, _grid(benchmark, grid))

    table = Table(title=f"Reference Set: {benchmark.name}")

    table.add_column("#", justify="right")
    table.add_column("Point")
    table.add_column("f(x)", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("‖∇f‖", justify="right")
    table.add_column("Iter", justify="right")

    for i, outcome in enumerate(reference.unique_outcomes):
        coords = ", ".join(f"{c:+.6f}" for c in outcome.point)
        table.add_row(
            str(i),
            f"({coords})",
            f"{outcome.objective_value:.6g}",
            outcome.cp_type.capture_type.value,
            f"{outcome.gradient_norm:.2e}",
            str(outcome.iterations),
        )

    console.print(table)

    counts = reference.known.type_counts()
    console.print(f"\n  Candidates:  {reference.n_candidates}")
    console.print(
        f"  Converged:   {reference.n_converged} ({reference.convergence_rate:.1%})"
    )
    console.print(f"  Duplicates:  {reference.n_duplicates}")
    console.print(f"  Unique:      {reference.n_unique}")
    console.print(
        "  Types:       "
        + ", ".join(f"{t.value}={counts[t]}" for t in CAPTURE_TYPES if t in counts)
    )


@app.command()  # type: ignore[misc]
def capture(
    objective: ObjectiveArg = "double_well",
    grid: GridOpt = 5,
    levels: Annotated[
        list[int] | None,
        typer.Option("--level", "-l", help="Newton iteration budgets to compare"),
    ] = None,
    reference_fraction: Annotated[
        float, typer.Option("--reference", "-r", help="Reference tolerance fraction")
    ] = DEFAULT_REFERENCE_FRACTION,
    method: MethodOpt = "exact",
    tol: TolOpt = 1e-8,
    dedup: DedupOpt = 0.01,
    workers: WorkersOpt = None,
) -> None:
    """Measure how much of the reference set truncated refinements capture.

    Each iteration budget acts as a fidelity level: its final iterates are
    the computed points compared against the fully refined reference set.
    """
    if levels is None:
        levels = [0, 1, 2, 4, 8]

    benchmark = _load(objective)
    config = _config(method, tol, 100, dedup, workers)
    candidates = _grid(benchmark, grid)
    reference = _build_reference(benchmark, config, candidates)
    known = reference.known

    level_results = []
    for level in levels:
        try:
            refiner = NewtonRefiner(
                benchmark.function,
                config=config.replace(max_iterations=level),
                bounds=benchmark.bounds,
            )
        except ValueError as exc:
            raise _fail(str(exc)) from exc
        computed = [o.point for o in refiner.refine_many(candidates)]
        level_results.append((level, compute_capture_analysis(known, computed)))

    fractions = level_results[0][1].tolerance_fractions
    table = Table(title=f"Capture Rate vs Newton Budget: {benchmark.name}")

    table.add_column("Budget", justify="right", style="bold")
    table.add_column("Computed", justify="right")
    for f in fractions:
        table.add_column(f"{f:.1%}", justify="right")

    for level, result in level_results:
        table.add_row(
            str(level),
            str(result.n_computed),
            *[f"{rate:.1%}" for rate in result.capture_rates],
        )

    console.print(table)

    try:
        verdict = compute_capture_verdict(level_results, reference_fraction)
    except ValueError as exc:
        raise _fail(str(exc)) from exc

    style = _LABEL_STYLES[verdict.label]
    console.print(
        f"\n  Known critical points: {verdict.n_known} "
        f"(tolerance {verdict.tolerance_fraction:.1%} = {verdict.tolerance_value:.4g})"
    )
    console.print(
        f"  Best budget: {verdict.best_level} captures "
        f"{verdict.n_captured}/{verdict.n_known} ({verdict.capture_rate:.1%})"
    )
    for cp_type, breakdown in verdict.type_breakdown.items():
        console.print(
            f"    {cp_type.value:<7} {breakdown.captured}/{breakdown.total} "
            f"({breakdown.rate:.1%})"
        )
    console.print(f"  Verdict: [{style}]{verdict.label.value}[/]")

    best = next(r for level, r in level_results if level == verdict.best_level)
    t = best.tolerance_index(reference_fraction)
    missed = missed_critical_points(best, known, t)
    if missed:
        console.print(f"\n[yellow]Missed at {verdict.tolerance_fraction:.1%}:[/]")
        for point in missed:
            coords = ", ".join(f"{c:+.4f}" for c in point.point)
            console.print(
                f"    #{point.index} {point.cp_type.value} ({coords}) "
                f"nearest {point.nearest_distance:.3g}"
            )


if __name__ == "__main__":
    app()
