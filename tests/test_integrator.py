import threading
import numpy as np
import pandas as pd
import pytest
from rcbuilding import (
    Quantity,
    assemble,
    simulate,
    InputTrajectory,
    SimulationOptions,
    InvalidArgumentError,
    NumericalInstabilityError
)
from rcbuilding.logging import ModuleLogger
from rcbuilding.simulation import smallest_time_constant
from rcbuilding.simulation.integrator import _Stepper, _get_time_grid

Q_ = Quantity

C_AIR = 1.204 * 1006.0


@pytest.fixture
def entrance_model(entrance_config):
    return assemble(entrance_config)


@pytest.fixture
def entrance_inputs():
    return InputTrajectory.constant({
        'T@outside': Q_(0.0, 'degC'),
        'Q_sol@entrance': 0.0,
        'Q_int@entrance': 0.0,
        'Q_hvac@entrance': 0.0
    })


def test_entrance_cools_down_monotonically(entrance_model, entrance_inputs):
    traj = simulate(
        entrance_model,
        Q_(20.0, 'degC'),
        entrance_inputs,
        (0.0, Q_(10, 'day')),
        SimulationOptions(time_step=Q_(15, 'min'))
    )
    assert traj.status == 'completed'
    assert traj.time[-1] == pytest.approx(10 * 86400.0)
    T = traj.output_table('degC')['T@entrance'].to_numpy()
    assert T[0] == pytest.approx(20.0)
    assert np.all(np.diff(T) <= 1e-9)
    assert np.all(T >= -1e-9)
    # all node temperatures stay between the outside and initial temperature
    states = traj.state_table('degC').to_numpy()
    assert np.all(states <= 20.0 + 1e-9)
    assert np.all(states >= -1e-9)


def test_resistive_wall_decays_with_zone_time_constant(entrance_config):
    # with a wall without thermal mass, the zone temperature decays
    # exponentially with time constant C_zone / G_wall
    entrance_config['boundary_types']['wall'] = {'u': 0.059 / 0.44}
    model = assemble(entrance_config)
    assert model.state_names == ('T@entrance',)
    G_wall = 0.059 / 0.44 * 5.0
    tau = 23.383 * C_AIR / G_wall
    assert model.time_constants().to('s').m[0] == pytest.approx(tau)
    traj = simulate(
        model, 20.0, {'T@outside': 0.0}, (0.0, tau),
        SimulationOptions(time_step=tau / 7, input_default=0.0)
    )
    assert traj.outputs[-1, 0] == pytest.approx(20.0 * np.exp(-1.0), rel=1e-9)


def test_uniform_temperature_is_a_fixed_point(house_config):
    model = assemble(house_config)
    T = Q_(18.0, 'degC')
    for method in ('expm', 'backward_euler'):
        traj = simulate(
            model, T, {'T@outside': T, 'T@ground': T}, (0.0, 86400.0),
            SimulationOptions(time_step=3600.0, method=method, input_default=0.0)
        )
        np.testing.assert_allclose(traj.states, T.to("K").m, rtol=0.0, atol=1e-7)


def test_methods_agree(entrance_model, entrance_inputs):
    results = {}
    for method, h in (('expm', 600.0), ('backward_euler', 60.0), ('euler', 60.0)):
        traj = simulate(
            entrance_model, Q_(20.0, 'degC'), entrance_inputs, (0.0, 2 * 86400.0),
            SimulationOptions(time_step=h, method=method)
        )
        results[method] = traj.output_table('degC').iloc[-1, 0]
    assert results['backward_euler'] == pytest.approx(results['expm'], abs=0.05)
    assert results['euler'] == pytest.approx(results['expm'], abs=0.05)


def test_euler_time_step_is_validated(entrance_model, entrance_inputs):
    tau_min = smallest_time_constant(np.asarray(entrance_model.A))
    with pytest.raises(InvalidArgumentError, match='Euler'):
        simulate(
            entrance_model, 293.15, entrance_inputs, (0.0, 100 * tau_min),
            SimulationOptions(time_step=2.5 * tau_min, method='euler')
        )


def test_time_grid_includes_input_breakpoints(entrance_model):
    inputs = InputTrajectory.from_samples(
        Q_([0.0, 1.5, 4.0], 'hr'),
        {
            'T@outside': Q_([0.0, 5.0, 10.0], 'degC'),
            'Q_sol@entrance': 0.0,
            'Q_int@entrance': 0.0,
            'Q_hvac@entrance': [0.0, 500.0, 0.0]
        }
    )
    traj = simulate(
        entrance_model, Q_(20.0, 'degC'), inputs, (0.0, Q_(5, 'hr')),
        SimulationOptions(time_step=Q_(1, 'hr'))
    )
    assert traj.state_table().index.tolist() == pytest.approx([0.0, 1.0, 1.5, 2.0, 3.0, 4.0, 5.0])
    j = entrance_model.input_index('Q_hvac@entrance')
    np.testing.assert_allclose(traj.inputs[:, j], [0, 0, 500, 500, 500, 0, 0])


def test_first_order_hold_is_exact_for_ramps(entrance_model):
    # a zone heated with a linearly increasing heat flow: the result must not
    # depend on the time step
    inputs = InputTrajectory.from_samples(
        [0.0, 86400.0],
        {'T@outside': [273.15, 273.15], 'Q_hvac@entrance': [0.0, 2000.0]},
        hold='foh'
    )
    options = dict(input_default=0.0)
    coarse = simulate(entrance_model, 293.15, inputs, (0.0, 86400.0), SimulationOptions(time_step=21600.0, **options))
    fine = simulate(entrance_model, 293.15, inputs, (0.0, 86400.0), SimulationOptions(time_step=900.0, **options))
    np.testing.assert_allclose(coarse.final_state, fine.final_state, rtol=1e-9)


def test_function_inputs(entrance_model):
    def inputs(t: float) -> dict:
        return {
            'T@outside': 273.15 + 5.0 * np.sin(2 * np.pi * t / 86400.0),
            'Q_sol@entrance': 0.0,
            'Q_int@entrance': 100.0,
            'Q_hvac@entrance': 0.0
        }
    traj = simulate(
        entrance_model, 293.15, InputTrajectory.from_function(inputs, list(inputs(0.0))),
        (0.0, 86400.0), SimulationOptions(time_step=3600.0)
    )
    assert len(traj) == 25
    assert traj.inputs[6, 0] == pytest.approx(278.15)


def test_inputs_from_dataframe(entrance_model):
    index = pd.Timestamp('2024-01-01') + pd.to_timedelta([0, 6, 12, 18], unit='h')
    df = pd.DataFrame({'T@outside': [0.0, 2.0, 6.0, 3.0]}, index=index)
    inputs = InputTrajectory.from_dataframe(df, units={'T@outside': 'degC'})
    traj = simulate(
        entrance_model, Q_(20, 'degC'), inputs, (0.0, Q_(18, 'hr')),
        SimulationOptions(time_step=Q_(3, 'hr'), input_default=0.0)
    )
    j = entrance_model.input_index('T@outside')
    np.testing.assert_allclose(traj.inputs[::2, j], [273.15, 275.15, 279.15, 276.15])


def test_missing_inputs(entrance_model):
    with pytest.raises(InvalidArgumentError, match='Q_hvac@entrance'):
        simulate(entrance_model, 293.15, {'T@outside': 273.15}, (0.0, 3600.0))


@pytest.mark.parametrize('time_span, time_step', [
    ((3600.0, 0.0), 600.0),
    ((0.0, 0.0), 600.0),
    ((0.0, 3600.0), 0.0),
    ((0.0, 3600.0), -60.0),
    ((0.0,), 600.0),
])
def test_invalid_time_span_and_step(entrance_model, entrance_inputs, time_span, time_step):
    with pytest.raises(InvalidArgumentError):
        simulate(entrance_model, 293.15, entrance_inputs, time_span, SimulationOptions(time_step=time_step))


def test_invalid_initial_state(entrance_model, entrance_inputs):
    with pytest.raises(InvalidArgumentError):
        simulate(entrance_model, np.zeros(2), entrance_inputs, (0.0, 3600.0))
    with pytest.raises(InvalidArgumentError):
        simulate(entrance_model, Q_(1.0, 'm'), entrance_inputs, (0.0, 3600.0))
    with pytest.raises(InvalidArgumentError):
        simulate(entrance_model, [293.15, np.nan, 293.15], entrance_inputs, (0.0, 3600.0))


def test_cancellation_returns_prefix(entrance_model, entrance_inputs):
    cancel_event = threading.Event()
    cancel_event.set()
    traj = simulate(
        entrance_model, 293.15, entrance_inputs, (0.0, 86400.0),
        SimulationOptions(time_step=3600.0, cancel_event=cancel_event)
    )
    assert traj.status == 'cancelled'
    assert len(traj) == 1
    np.testing.assert_allclose(traj.states[0], 293.15)


class _CancelAfter(threading.Event):
    """Event that reports to be set after a given number of checks."""

    def __init__(self, num_checks: int) -> None:
        super().__init__()
        self.num_checks = num_checks

    def is_set(self) -> bool:
        self.num_checks -= 1
        return self.num_checks < 0


def test_cancellation_during_run(entrance_model, entrance_inputs):
    traj = simulate(
        entrance_model, 293.15, entrance_inputs, (0.0, 86400.0),
        SimulationOptions(time_step=3600.0, cancel_event=_CancelAfter(5))
    )
    assert traj.status == 'cancelled'
    assert len(traj) == 6
    assert traj.time[-1] == pytest.approx(5 * 3600.0)
    assert traj.outputs.shape == (6, 1)


def test_divergence(entrance_model):
    # a heat flow of 5 kW heats the entrance far beyond any sensible value
    inputs = {'T@outside': 273.15, 'Q_hvac@entrance': 5000.0}
    with pytest.raises(NumericalInstabilityError) as exc_info:
        simulate(
            entrance_model, 293.15, inputs, (0.0, 10 * 86400.0),
            SimulationOptions(time_step=3600.0, max_abs_state=400.0, input_default=0.0)
        )
    err = exc_info.value
    assert err.step_index >= 1
    assert err.trajectory.status == 'diverged'
    assert len(err.trajectory) == err.step_index
    np.testing.assert_array_equal(err.last_good_state, err.trajectory.final_state)
    assert np.all(np.abs(err.trajectory.states) <= 400.0)


def test_tables(entrance_model, entrance_inputs):
    traj = simulate(
        entrance_model, Q_(20.0, 'degC'), entrance_inputs, (0.0, 7200.0),
        SimulationOptions(time_step=3600.0)
    )
    df = traj.input_table()
    assert list(df.columns) == list(entrance_model.input_names)
    assert df.index.name == 'time [h]'
    assert df['T@outside'].tolist() == pytest.approx([273.15] * 3)
    assert traj.state_table('K').iloc[0].tolist() == pytest.approx([293.15] * 3)


def test_debug_logging(entrance_model, entrance_inputs, caplog):
    ModuleLogger.set_level(ModuleLogger.DEBUG)
    try:
        with caplog.at_level(ModuleLogger.DEBUG, logger='rcbuilding.simulation.integrator'):
            simulate(entrance_model, 293.15, entrance_inputs, (0.0, 3600.0))
        assert 'Simulation completed.' in caplog.text
    finally:
        ModuleLogger.set_level(ModuleLogger.WARNING)


def test_one_discretization_per_step_length(entrance_model):
    h = 1000.1
    time = _get_time_grid(0.0, 8760 * h, h, np.empty(0))
    stepper = _Stepper(np.asarray(entrance_model.A), np.asarray(entrance_model.B), 'expm', 'zoh')
    x = np.full(entrance_model.num_states, 293.15)
    u = np.zeros(entrance_model.num_inputs)
    for k in range(time.size - 1):
        x = stepper.step(x, u, u, time[k + 1] - time[k])
    assert len(stepper._cache) == 1


def test_heat_flow_quantities_are_converted_to_watt(entrance_model):
    inputs = InputTrajectory.constant({
        'T@outside': Q_(0.0, 'degC'),
        'Q_hvac@entrance': Q_(1.5, 'kW')
    })
    U = inputs.matrix(entrance_model.input_names, np.array([0.0, 3600.0]), default=0.0)
    j = entrance_model.input_index('Q_hvac@entrance')
    np.testing.assert_allclose(U[:, j], 1500.0)
    with pytest.raises(InvalidArgumentError):
        InputTrajectory.constant({'Q_hvac@entrance': Q_(1.5, 'kWh')})
