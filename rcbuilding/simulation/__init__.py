from .input_trajectory import InputTrajectory
from .integrator import (
    SimulationOptions,
    Trajectory,
    simulate,
    smallest_time_constant
)
from .parametric import SimulationCase, simulate_many
