"""TIME-DEPENDENT INPUTS OF A THERMAL MODEL.

An `InputTrajectory` provides the values of the input variables of a building
model (pseudo-zone temperatures and heat flows) at any moment of a simulation.
It is created from samples (which may be irregularly spaced in time), from a
Pandas DataFrame, from a function of time, or from constant values.

Between samples, values are either held constant (zero-order hold, `'zoh'`) or
linearly interpolated (first-order hold, `'foh'`). Before the first sample and
after the last sample, the value of the first and last sample is held.

Values are stored as magnitudes in the units of class `Units`: temperatures in
K and heat flows in W. `Quantity` objects are converted; plain numbers are
taken to be already expressed in these units.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
import numpy as np
import pandas as pd
import pint
from rcbuilding import Quantity
from rcbuilding.logging import ModuleLogger
from ..exceptions import InvalidArgumentError
from ..thermal_models.units import Units

Q_ = Quantity

logger = ModuleLogger.get_logger(__name__)
logger.setLevel(ModuleLogger.WARNING)

HOLD_METHODS = ('zoh', 'foh')


def to_magnitude(value: Quantity | np.ndarray | float, name: str) -> np.ndarray:
    """Returns the magnitude of an input value as a float array: temperatures
    in `Units.unit_T`, heat flows in `Units.unit_Q`.
    """
    if isinstance(value, Quantity):
        if value.check('[temperature]'):
            value = Units.T(value)
        elif value.check('[power]'):
            value = Units.Q(value)
        else:
            raise InvalidArgumentError(
                f"Input '{name}' must be a temperature or a heat flow, "
                f"got {value.units}."
            )
    try:
        return np.asarray(value, dtype=float)
    except (TypeError, ValueError):
        raise InvalidArgumentError(
            f"Input '{name}' has non-numeric values."
        ) from None


def to_seconds(time: Quantity | np.ndarray | Sequence[float]) -> np.ndarray:
    """Returns time values as a float array in `Units.unit_t`. Plain numbers
    are taken to be in seconds.
    """
    if isinstance(time, Quantity):
        try:
            time = Units.t(time)
        except pint.DimensionalityError:
            raise InvalidArgumentError(f"{time.units} is not a unit of time.") from None
    return np.atleast_1d(np.asarray(time, dtype=float))


class InputTrajectory:
    """Values of input variables as a function of time."""

    def __init__(
        self,
        names: Sequence[str],
        time: np.ndarray | None = None,
        samples: np.ndarray | None = None,
        function: Callable[[float], Mapping[str, float] | Sequence[float]] | None = None,
        hold: str = 'zoh'
    ) -> None:
        """Creates an `InputTrajectory` object. Use one of the classmethods
        instead of calling the constructor directly.

        Parameters
        ----------
        names:
            Names of the input variables.
        time:
            Sample times in seconds, strictly increasing.
        samples:
            Array with one row per sample time and one column per input.
        function:
            Function of time (in seconds) that returns the input values,
            either as a mapping with the input names as keys or as a sequence
            in the order of `names`. Used instead of `time` and `samples`.
        hold:
            'zoh' (zero-order hold) or 'foh' (first-order hold, i.e. linear
            interpolation between samples).
        """
        if hold not in HOLD_METHODS:
            raise InvalidArgumentError(
                f"Hold method must be one of {HOLD_METHODS}, got {hold!r}."
            )
        self.names: tuple[str, ...] = tuple(names)
        if len(set(self.names)) != len(self.names):
            raise InvalidArgumentError("Input names must be unique.")
        self.hold = hold
        self.function = function
        self.time = time
        self.samples = samples
        if function is None:
            if time is None or samples is None:
                raise InvalidArgumentError(
                    "An input trajectory needs either samples or a function."
                )
            if time.ndim != 1 or time.size == 0:
                raise InvalidArgumentError("Sample times must be a non-empty 1D array.")
            if not np.all(np.isfinite(time)) or np.any(np.diff(time) <= 0.0):
                raise InvalidArgumentError(
                    "Sample times must be finite and strictly increasing."
                )
            if samples.shape != (time.size, len(self.names)):
                raise InvalidArgumentError(
                    f"Expected {time.size} samples of {len(self.names)} inputs, "
                    f"got an array of shape {samples.shape}."
                )

    def __repr__(self) -> str:
        kind = 'function' if self.function is not None else f"{self.time.size} samples"
        return f"InputTrajectory({list(self.names)}, {kind}, hold='{self.hold}')"

    @classmethod
    def from_samples(
        cls,
        time: Quantity | np.ndarray | Sequence[float],
        samples: Mapping[str, Quantity | np.ndarray | Sequence[float] | float],
        hold: str = 'zoh'
    ) -> InputTrajectory:
        """Creates an `InputTrajectory` from sampled values.

        Parameters
        ----------
        time:
            Sample times. Plain numbers are taken to be in seconds.
        samples:
            Maps input names to their sampled values (one value per sample
            time) or to a single value which applies at all times.
        hold:
            'zoh' or 'foh'.
        """
        time = to_seconds(time)
        columns = []
        for name, values in samples.items():
            values = to_magnitude(values, name)
            if values.ndim == 0:
                values = np.full(time.size, float(values))
            if values.shape != time.shape:
                raise InvalidArgumentError(
                    f"Input '{name}' has {values.size} samples, but there are "
                    f"{time.size} sample times."
                )
            columns.append(values)
        data = np.column_stack(columns) if columns else np.zeros((time.size, 0))
        return cls(list(samples.keys()), time, data, hold=hold)

    @classmethod
    def from_dataframe(
        cls,
        df: pd.DataFrame,
        units: Mapping[str, str] | None = None,
        time_unit: str = 's',
        hold: str = 'zoh'
    ) -> InputTrajectory:
        """Creates an `InputTrajectory` from a Pandas DataFrame with one column
        per input variable.

        Parameters
        ----------
        df:
            The index holds the sample times: numbers in `time_unit`, or a
            `DatetimeIndex` or `TimedeltaIndex` (times are then counted from
            the first index value).
        units:
            Maps column names to the measuring unit of their values (e.g.
            `{'T@outside': 'degC'}`). Columns not in `units` are taken to be
            in K (temperatures) or W (heat flows).
        time_unit:
            Unit of a numeric index.
        hold:
            'zoh' or 'foh'.
        """
        units = units or {}
        index = df.index
        if isinstance(index, pd.DatetimeIndex):
            time = (index - index[0]).total_seconds().to_numpy()
        elif isinstance(index, pd.TimedeltaIndex):
            time = (index - index[0]).total_seconds().to_numpy()
        else:
            time = to_seconds(Q_(index.to_numpy(dtype=float), time_unit))
        samples = {}
        for column in df.columns:
            values = df[column].to_numpy(dtype=float)
            if column in units:
                values = Q_(values, units[column])
            samples[str(column)] = values
        return cls.from_samples(time, samples, hold)

    @classmethod
    def from_function(
        cls,
        function: Callable[[float], Mapping[str, float] | Sequence[float]],
        names: Sequence[str],
        hold: str = 'zoh'
    ) -> InputTrajectory:
        """Creates an `InputTrajectory` from a function of time in seconds that
        returns the values of the inputs `names` (in `Units`).
        """
        return cls(names, function=function, hold=hold)

    @classmethod
    def constant(
        cls,
        values: Mapping[str, Quantity | float]
    ) -> InputTrajectory:
        """Creates an `InputTrajectory` of which the inputs keep the same value
        at all times.
        """
        return cls.from_samples([0.0], values)

    def breakpoints(self, t0: float, t1: float) -> np.ndarray:
        """Returns the sample times between `t0` and `t1` (exclusive)."""
        if self.function is not None:
            return np.empty(0)
        return self.time[(self.time > t0) & (self.time < t1)]

    def _values_at(self, times: np.ndarray) -> np.ndarray:
        if self.function is not None:
            rows = []
            for t in times:
                values = self.function(float(t))
                if isinstance(values, Mapping):
                    try:
                        values = [values[name] for name in self.names]
                    except KeyError as err:
                        raise InvalidArgumentError(
                            f"Input function returned no value for {err} "
                            f"at t = {t} s."
                        ) from None
                rows.append(np.asarray(values, dtype=float).reshape(len(self.names)))
            return np.array(rows).reshape(len(times), len(self.names))
        if self.hold == 'foh':
            return np.column_stack([
                np.interp(times, self.time, self.samples[:, j])
                for j in range(len(self.names))
            ]) if self.names else np.zeros((len(times), 0))
        i = np.searchsorted(self.time, times, side='right') - 1
        i = np.clip(i, 0, self.time.size - 1)
        return self.samples[i, :]

    def matrix(
        self,
        input_names: Sequence[str],
        times: np.ndarray,
        default: float | Mapping[str, float] | None = None
    ) -> np.ndarray:
        """Returns the values of the inputs at the given times in an array with
        one row per time and one column per name in `input_names`.

        Parameters
        ----------
        input_names:
            Names of the input variables of the model, in the order of the
            columns of its input matrix.
        times:
            Times in seconds.
        default:
            Value of the inputs of the model which are not in this trajectory:
            a single value for all of them, or a mapping with a value per name.

        Raises
        ------
        InvalidArgumentError
            If an input of the model has no value in this trajectory and no
            default value is given for it.
        """
        times = np.asarray(times, dtype=float)
        values = self._values_at(times)
        index = {name: j for j, name in enumerate(self.names)}
        unused = [name for name in self.names if name not in input_names]
        if unused:
            logger.warning(f"Inputs {unused} are not inputs of the model and are ignored.")
        U = np.zeros((times.size, len(input_names)))
        missing = []
        for k, name in enumerate(input_names):
            if name in index:
                U[:, k] = values[:, index[name]]
            elif isinstance(default, Mapping) and name in default:
                U[:, k] = to_magnitude(default[name], name)
            elif default is not None and not isinstance(default, Mapping):
                U[:, k] = to_magnitude(default, name)
            else:
                missing.append(name)
        if missing:
            raise InvalidArgumentError(f"No values are given for inputs {missing}.")
        return U
