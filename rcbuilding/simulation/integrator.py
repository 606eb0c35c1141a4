"""TIME INTEGRATION OF A BUILDING THERMAL MODEL.

Function `simulate()` integrates the state-space model of a building

    dx/dt = A x + B u

forward in time on a time grid with a fixed time step, to which the sample
times of the inputs are added, so that piecewise constant or piecewise linear
inputs are followed exactly.

Three integration methods are available:

- 'expm' (default): exact discretization with the matrix exponential. With a
  zero-order hold on the inputs:

      x[k+1] = Phi x[k] + Gamma_0 u[k]

  and with a first-order hold (inputs change linearly over a time step):

      x[k+1] = Phi x[k] + Gamma_0 u[k] + Gamma_1 (u[k+1] - u[k])

  `Phi`, `Gamma_0` and `Gamma_1` are blocks of the matrix exponential of an
  augmented matrix, which does not require `A` to be invertible. They are
  computed once for each different step length.

- 'backward_euler': implicit Euler method, which is unconditionally stable
  (L-stable). Its local error is of the order of `(h * |lambda|max)^2`, where
  `h` is the time step and `|lambda|max` the largest absolute eigenvalue of `A`,
  so it damps the fast modes of the model, but can be inaccurate for them.

- 'euler': explicit Euler method. It is only stable if the time step is
  smaller than twice the smallest time constant of the model, which is checked
  before the integration starts.
"""
from __future__ import annotations

import math
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
import numpy as np
import pandas as pd
import pint
from scipy.linalg import expm, lu_factor, lu_solve
from rcbuilding import Quantity
from rcbuilding.logging import ModuleLogger
from ..exceptions import InvalidArgumentError, NumericalInstabilityError
from ..thermal_models import ThermalModel
from ..thermal_models.units import Units
from .input_trajectory import InputTrajectory, to_seconds

Q_ = Quantity

logger = ModuleLogger.get_logger(__name__)
logger.setLevel(ModuleLogger.WARNING)

METHODS = ('expm', 'backward_euler', 'euler')


@dataclass(frozen=True)
class SimulationOptions:
    """
    Options of a simulation run.

    Attributes
    ----------
    time_step:
        Fixed time step of the time grid. Plain numbers are in seconds.
    method:
        Integration method: 'expm', 'backward_euler' or 'euler'.
    cancel_event:
        If set during the simulation, the simulation stops at the next time
        step and the trajectory up to that moment is returned.
    max_abs_state:
        The simulation is considered to diverge if the absolute value of any
        state variable (in K) exceeds this value.
    input_default:
        Value of the inputs of the model that are not in the input trajectory
        (a single value, or a mapping of input names to values). If `None`, all
        inputs of the model must be in the input trajectory.
    """
    time_step: Quantity | float = field(default_factory=lambda: Q_(1.0, 'hr'))
    method: str = 'expm'
    cancel_event: threading.Event | None = None
    max_abs_state: float = 1.0e6
    input_default: float | Mapping[str, Quantity | float] | None = None


@dataclass
class Trajectory:
    """
    Result of a simulation run.

    Attributes
    ----------
    time:
        Time values of the time grid in seconds.
    states:
        Values of the state variables (in K), one row per time value.
    outputs:
        Values of the output variables (in K), one row per time value.
    inputs:
        Values of the input variables (in K or W), one row per time value.
    state_names, output_names, input_names:
        Names of the columns of `states`, `outputs` and `inputs`.
    status:
        'completed', 'cancelled' (the simulation was cancelled; the
        trajectory ends at the moment of cancellation) or 'diverged' (the
        trajectory ends at the last time step before divergence).
    """
    time: np.ndarray
    states: np.ndarray
    outputs: np.ndarray
    inputs: np.ndarray
    state_names: tuple[str, ...]
    output_names: tuple[str, ...]
    input_names: tuple[str, ...]
    status: str = 'completed'

    def __len__(self) -> int:
        return self.time.size

    @property
    def final_state(self) -> np.ndarray:
        return self.states[-1]

    def _table(self, data: np.ndarray, columns: Sequence[str], unit: str) -> pd.DataFrame:
        data = Q_(data, Units.unit_T).to(unit).m
        df = pd.DataFrame(
            data=data,
            index=Q_(self.time, Units.unit_t).to('hr').m,
            columns=list(columns)
        )
        df.index.name = 'time [h]'
        return df

    def state_table(self, unit: str = 'degC') -> pd.DataFrame:
        """Returns the values of the state variables in a Pandas DataFrame,
        indexed by time in hours, with temperatures in `unit`.
        """
        return self._table(self.states, self.state_names, unit)

    def output_table(self, unit: str = 'degC') -> pd.DataFrame:
        """Returns the values of the output variables in a Pandas DataFrame,
        indexed by time in hours, with temperatures in `unit`.
        """
        return self._table(self.outputs, self.output_names, unit)

    def input_table(self) -> pd.DataFrame:
        df = pd.DataFrame(
            data=self.inputs,
            index=Q_(self.time, Units.unit_t).to('hr').m,
            columns=list(self.input_names)
        )
        df.index.name = 'time [h]'
        return df


def _get_time_grid(
    t0: float,
    t1: float,
    h: float,
    breakpoints: np.ndarray
) -> np.ndarray:
    """Returns the time grid from `t0` to `t1` with time step `h`, merged with
    the given breakpoints. The last time step may be shorter than `h`.
    """
    num_steps = int(math.ceil((t1 - t0) / h - 1e-9))
    grid = np.append(t0 + h * np.arange(num_steps), t1)
    grid = np.union1d(grid, breakpoints)
    # Breakpoints that nearly coincide with a grid point would give time
    # steps of (almost) zero length.
    tol = 1e-9 * h
    keep = np.concatenate(([True], np.diff(grid) > tol))
    grid = grid[keep]
    if grid[-1] != t1:
        grid[-1] = t1
    return grid


class _Stepper:
    """Advances the state vector over one time step with a given integration
    method. Discretized matrices are cached for each step length.
    """
    def __init__(self, A: np.ndarray, B: np.ndarray, method: str, hold: str) -> None:
        self.A = A
        self.B = B
        self.method = method
        self.foh = hold == 'foh'
        self.n, self.m = B.shape
        self._cache: dict[float, tuple] = {}

    def _discretize(self, h: float) -> tuple:
        n, m = self.n, self.m
        if self.method == 'expm':
            if self.foh:
                M = np.zeros((n + 2 * m, n + 2 * m))
                M[:n, :n] = self.A * h
                M[:n, n:n + m] = self.B * h
                M[n:n + m, n + m:] = np.eye(m)
                E = expm(M)
                return E[:n, :n], E[:n, n:n + m], E[:n, n + m:]
            M = np.zeros((n + m, n + m))
            M[:n, :n] = self.A * h
            M[:n, n:] = self.B * h
            E = expm(M)
            return E[:n, :n], E[:n, n:]
        if self.method == 'backward_euler':
            return (lu_factor(np.eye(n) - h * self.A),)
        return ()

    def step(self, x: np.ndarray, u0: np.ndarray, u1: np.ndarray, h: float) -> np.ndarray:
        """Returns the state at the end of a time step `h`, given the state
        `x` and the inputs `u0` at the start and `u1` at the end of the step.
        """
        # Step lengths computed from the time grid differ in the last digits;
        # rounding them to a microsecond keeps one discretization per step length.
        h = round(h, 6)
        try:
            d = self._cache[h]
        except KeyError:
            d = self._cache[h] = self._discretize(h)
        if self.method == 'expm':
            if self.foh:
                Phi, Gamma_0, Gamma_1 = d
                return Phi @ x + Gamma_0 @ u0 + Gamma_1 @ (u1 - u0)
            Phi, Gamma_0 = d
            return Phi @ x + Gamma_0 @ u0
        if self.method == 'backward_euler':
            u = u1 if self.foh else u0
            return lu_solve(d[0], x + h * (self.B @ u))
        return x + h * (self.A @ x + self.B @ u0)


def smallest_time_constant(A: np.ndarray) -> float:
    """Returns the smallest time constant in seconds of a system with system
    matrix `A`, or infinity if the system has no decaying modes.
    """
    if A.size == 0:
        return math.inf
    re = np.real(np.linalg.eigvals(A))
    re = re[re < 0.0]
    if re.size == 0:
        return math.inf
    return float(np.min(-1.0 / re))


def _check_time_span(time_span: Sequence) -> tuple[float, float]:
    try:
        t0, t1 = time_span
    except (TypeError, ValueError):
        raise InvalidArgumentError(
            f"Time span must be a pair (t0, t1), got {time_span!r}."
        ) from None
    t0 = float(to_seconds(t0)[0])
    t1 = float(to_seconds(t1)[0])
    if not (math.isfinite(t0) and math.isfinite(t1)) or t1 <= t0:
        raise InvalidArgumentError(
            f"End of the time span must come after its start, got "
            f"t0 = {t0} s and t1 = {t1} s."
        )
    return t0, t1


def _check_initial_state(x0: Quantity | np.ndarray | float, n: int) -> np.ndarray:
    if isinstance(x0, Quantity):
        try:
            x0 = Units.T(x0)
        except pint.DimensionalityError:
            raise InvalidArgumentError(
                f"Initial state must be a temperature, got {x0.units}."
            ) from None
    x0 = np.asarray(x0, dtype=float)
    if x0.ndim == 0:
        x0 = np.full(n, float(x0))
    if x0.shape != (n,):
        raise InvalidArgumentError(
            f"Initial state must have shape ({n},), got {x0.shape}."
        )
    if not np.all(np.isfinite(x0)):
        raise InvalidArgumentError("Initial state has non-finite values.")
    return x0


def _get_input_trajectory(
    inputs: InputTrajectory | Mapping | Callable,
    model: ThermalModel
) -> InputTrajectory:
    if isinstance(inputs, InputTrajectory):
        return inputs
    if isinstance(inputs, Mapping):
        return InputTrajectory.constant(inputs)
    if callable(inputs):
        return InputTrajectory.from_function(inputs, model.input_names)
    raise InvalidArgumentError(
        f"Inputs must be an `InputTrajectory`, a mapping or a function of "
        f"time, got {type(inputs).__name__}."
    )


def simulate(
    model: ThermalModel,
    x0: Quantity | np.ndarray | float,
    inputs: InputTrajectory | Mapping | Callable,
    time_span: tuple[Quantity | float, Quantity | float],
    options: SimulationOptions | None = None
) -> Trajectory:
    """Integrates the model forward in time.

    Parameters
    ----------
    model:
        The state-space model of the building (see `assemble()`).
    x0:
        Initial values of the state variables: a `Quantity` (temperature),
        or plain numbers in K. A single value applies to all state variables.
    inputs:
        Values of the input variables: an `InputTrajectory`, a mapping of input
        names to constant values, or a function of time (in seconds) that
        returns the values of all inputs of the model in the order of
        `model.input_names`.
    time_span:
        Start and end time of the simulation. Plain numbers are in seconds.
    options:
        Simulation options. If `None`, the defaults of `SimulationOptions`
        apply.

    Returns
    -------
    Trajectory
        With status 'completed', or 'cancelled' if `options.cancel_event` was
        set during the simulation.

    Raises
    ------
    InvalidArgumentError
        If the time span, time step, initial state or inputs are invalid, or if
        the time step is too large for the explicit Euler method.
    NumericalInstabilityError
        If a state variable becomes non-finite or exceeds
        `options.max_abs_state`.
    """
    options = options or SimulationOptions()
    if options.method not in METHODS:
        raise InvalidArgumentError(
            f"Integration method must be one of {METHODS}, got {options.method!r}."
        )
    t0, t1 = _check_time_span(time_span)
    h = float(to_seconds(options.time_step)[0])
    if not (math.isfinite(h) and h > 0.0):
        raise InvalidArgumentError(f"Time step must be greater than zero, got {h} s.")
    A, B, C, D = model.A, model.B, model.C, model.D
    x = _check_initial_state(x0, model.num_states)
    if options.method == 'euler':
        tau_min = smallest_time_constant(A)
        if not h < 2 * tau_min:
            raise InvalidArgumentError(
                f"Time step {h} s is too large for the explicit Euler method: "
                f"it must be less than twice the smallest time constant of "
                f"the model ({tau_min:.4g} s)."
            )

    inputs = _get_input_trajectory(inputs, model)
    time = _get_time_grid(t0, t1, h, inputs.breakpoints(t0, t1))
    U = inputs.matrix(model.input_names, time, options.input_default)
    stepper = _Stepper(A, B, options.method, inputs.hold)

    X = np.empty((time.size, model.num_states))
    X[0] = x
    status = 'completed'
    num_points = time.size
    logger.info(
        f"Simulation started: {time.size - 1} time steps from t = {t0} s to "
        f"t = {t1} s, method '{options.method}'."
    )
    for k in range(time.size - 1):
        if options.cancel_event is not None and options.cancel_event.is_set():
            status = 'cancelled'
            num_points = k + 1
            logger.info(f"Simulation cancelled at t = {time[k]} s.")
            break
        x_next = stepper.step(X[k], U[k], U[k + 1], time[k + 1] - time[k])
        if not np.all(np.isfinite(x_next)) or np.max(np.abs(x_next), initial=0.0) > options.max_abs_state:
            trajectory = _create_trajectory(model, time, X, U, k + 1, 'diverged')
            logger.error(f"Simulation diverged at time step {k + 1} (t = {time[k + 1]} s).")
            raise NumericalInstabilityError(
                f"The state diverged at time step {k + 1} (t = {time[k + 1]} s).",
                step_index=k + 1,
                last_good_state=X[k].copy(),
                trajectory=trajectory
            )
        X[k + 1] = x_next
    else:
        logger.info("Simulation completed.")
    return _create_trajectory(model, time, X, U, num_points, status)


def _create_trajectory(
    model: ThermalModel,
    time: np.ndarray,
    X: np.ndarray,
    U: np.ndarray,
    num_points: int,
    status: str
) -> Trajectory:
    X = X[:num_points].copy()
    U = U[:num_points].copy()
    Y = X @ model.C.T + U @ model.D.T
    return Trajectory(
        time=time[:num_points].copy(),
        states=X,
        outputs=Y,
        inputs=U,
        state_names=model.state_names,
        output_names=model.output_names,
        input_names=model.input_names,
        status=status
    )
