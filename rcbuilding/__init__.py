from .pint_setup import UNITS, Quantity
from .exceptions import (
    RCBuildingError,
    ConfigurationError,
    UnknownZoneError,
    UnknownConstructionError,
    NumericalInstabilityError,
    InvalidArgumentError
)
from .building import (
    Material,
    MaterialLibrary,
    Layer,
    HeatingMarker,
    LayeredConstruction,
    ResistiveConstruction,
    ResolvedConstruction,
    resolve_construction,
    Zone,
    Boundary,
    SubBoundary,
    BuildingConfiguration
)
from .thermal_models import (
    AssemblyOptions,
    ThermalModel,
    assemble
)
from .simulation import (
    InputTrajectory,
    SimulationOptions,
    SimulationCase,
    Trajectory,
    simulate,
    simulate_many
)
