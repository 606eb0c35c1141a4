"""CONCURRENT SIMULATION OF INDEPENDENT CASES.

A parametric study runs the same kind of simulation for a number of cases,
e.g. for different weather scenarios, or for different variants of a building
created with `BuildingConfiguration.with_material()` or
`BuildingConfiguration.with_boundary_area()`. The cases are independent, so
they are run concurrently. A `ThermalModel` is never modified by a simulation,
so one model can be shared by several cases.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import numpy as np
from rcbuilding import Quantity
from rcbuilding.logging import ModuleLogger
from ..exceptions import InvalidArgumentError
from ..thermal_models import ThermalModel
from .input_trajectory import InputTrajectory
from .integrator import SimulationOptions, Trajectory, simulate

logger = ModuleLogger.get_logger(__name__)
logger.setLevel(ModuleLogger.WARNING)


@dataclass(frozen=True)
class SimulationCase:
    """
    Arguments of one simulation run (see `simulate()`).

    Attributes
    ----------
    x0:
        Initial state.
    inputs:
        Input values.
    time_span:
        Start and end time.
    options:
        Simulation options. If `None`, the options passed to
        `simulate_many()` apply.
    model:
        Model to simulate. If `None`, the model passed to `simulate_many()` is
        used.
    name:
        Optional name to identify the case in log messages.
    """
    x0: Quantity | np.ndarray | float
    inputs: InputTrajectory | Mapping | Callable
    time_span: tuple[Quantity | float, Quantity | float]
    options: SimulationOptions | None = None
    model: ThermalModel | None = None
    name: str = ''


def simulate_many(
    model: ThermalModel | None,
    cases: Sequence[SimulationCase],
    max_workers: int | None = None,
    options: SimulationOptions | None = None
) -> list[Trajectory]:
    """Runs the simulation of each case in a pool of worker threads.

    Parameters
    ----------
    model:
        Model shared by all cases that don't have a model of their own.
    cases:
        The simulation cases.
    max_workers:
        Maximum number of worker threads. If `None`, the default of
        `concurrent.futures.ThreadPoolExecutor` applies.
    options:
        Simulation options of the cases that don't have options of their own.

    Returns
    -------
    list[Trajectory]
        The trajectories in the same order as `cases`.

    Raises
    ------
    The first exception raised by any of the cases (in the order of `cases`).
    Cases that were not started yet when the exception is raised are
    cancelled.
    """
    def _run(i: int, case: SimulationCase) -> Trajectory:
        case_model = case.model or model
        if case_model is None:
            raise InvalidArgumentError(f"Simulation case {i} has no model to simulate.")
        logger.info(f"Running simulation case {case.name or i}.")
        return simulate(
            case_model,
            case.x0,
            case.inputs,
            case.time_span,
            case.options or options
        )

    with ThreadPoolExecutor(max_workers, thread_name_prefix='rcbuilding') as executor:
        futures = [executor.submit(_run, i, case) for i, case in enumerate(cases)]
        try:
            return [future.result() for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise
