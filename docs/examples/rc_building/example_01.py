"""
EXAMPLE 1
---------
FREE-FLOATING TEMPERATURE OF AN ENTRANCE HALL
An entrance hall with one exterior wall of wood fibre board is heated up to
20 °C and then left to itself. The outdoor temperature fluctuates harmonically
around 0 °C. The building is assembled into a 3R2C state-space model and the
temperature of the hall air and of the wall nodes is simulated over ten days.

In a second part, the same simulation is repeated for wood fibre boards with
a different thermal conductivity. These cases are run concurrently with
`simulate_many()`.
"""
import numpy as np
import pandas as pd

from rcbuilding import (
    Quantity,
    BuildingConfiguration,
    assemble,
    simulate,
    simulate_many,
    InputTrajectory,
    SimulationCase,
    SimulationOptions
)

Q_ = Quantity


CONFIGURATION = {
    'materials': {
        'wood_fibre': {
            'thermal_conductivity': 0.059,
            'specific_heat_capacity': 1000.0,
            'density': 660.0
        }
    },
    'boundary_types': {
        'wall': {'layers': [{'material': 'wood_fibre', 'thickness': 0.44}]},
        'window': {'u': 0.74, 'g': 0.5}
    },
    'zones': {
        'entrance': {'volume': 23.383},
        'outside': None
    },
    'boundaries': [
        {
            'boundary_type': 'wall',
            'zones': ['outside', 'entrance'],
            'area': 5.0,
            'sub_boundaries': [{'boundary_type': 'window', 'area': 0.0}]
        }
    ]
}


# Average outdoor temperature and amplitude of its daily fluctuation.
T_out_avg = Q_(0.0, 'degC')
T_out_ampl = Q_(5.0, 'K')


def inputs(t_sec: float) -> dict[str, float]:
    period = 24 * 3600
    T_out = T_out_avg.to('K').m + T_out_ampl.m * np.sin(2 * np.pi * t_sec / period)
    return {
        'T@outside': T_out,
        'Q_sol@entrance': 0.0,
        'Q_int@entrance': 0.0,
        'Q_hvac@entrance': 0.0
    }


def main():
    config = BuildingConfiguration.from_dict(CONFIGURATION)
    model = assemble(config)
    print(f"states: {', '.join(model.state_names)}")
    print(f"inputs: {', '.join(model.input_names)}")
    tau = model.time_constants().to('hr')
    print(f"time constants: {', '.join(f'{t:~P.2f}' for t in tau)}")

    trajectory = simulate(
        model,
        x0=Q_(20.0, 'degC'),
        inputs=InputTrajectory.from_function(inputs, list(inputs(0.0))),
        time_span=(Q_(0, 'hr'), Q_(10, 'day')),
        options=SimulationOptions(time_step=Q_(15, 'min'))
    )
    df = trajectory.state_table('degC')
    print('TEMPERATURES OF THE ENTRANCE HALL AND THE WALL')
    with pd.option_context(
        'display.max_rows', None,
        'display.max_columns', None,
        'display.width', None
    ): print(df.iloc[::24].round(2))

    # Parametric study: thermal conductivity of the wood fibre board.
    k_values = [0.040, 0.059, 0.080]
    cases = [
        SimulationCase(
            x0=Q_(20.0, 'degC'),
            inputs=InputTrajectory.from_function(inputs, list(inputs(0.0))),
            time_span=(Q_(0, 'hr'), Q_(10, 'day')),
            model=assemble(config.with_material('wood_fibre', k=k)),
            name=f"k = {k} W/(m.K)"
        )
        for k in k_values
    ]
    trajectories = simulate_many(
        None, cases,
        options=SimulationOptions(time_step=Q_(15, 'min'))
    )
    df = pd.DataFrame({
        case.name: traj.output_table('degC')['T@entrance']
        for case, traj in zip(cases, trajectories)
    })
    print('TEMPERATURE OF THE ENTRANCE HALL FOR DIFFERENT WALL CONDUCTIVITIES')
    with pd.option_context(
        'display.max_rows', None,
        'display.max_columns', None,
        'display.width', None
    ): print(df.iloc[::24].round(2))


if __name__ == '__main__':
    main()
