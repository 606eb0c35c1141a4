"""ASSEMBLY OF THE STATE-SPACE MODEL OF A BUILDING.

Function `assemble()` compiles a `BuildingConfiguration` into a `ThermalModel`:
the linear, continuous-time state-space model

    dx/dt = A x + B u
        y = C x + D u

of the building. The state variables `x` are the temperatures of the zone-air
nodes (in declaration order of the zones), followed by the temperatures of the
nodes inside the boundaries (in declaration order of the boundaries). The
input variables `u` are the temperatures of the pseudo-zones, followed by the
heat flows into each zone and the heat flows of embedded heating. The output
variables `y` are by default the temperatures of the zone-air nodes.

All values in the matrices are expressed in the units of class `Units`
(temperature in K, time in s, heat flow in W).
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
import numpy as np
import pandas as pd
import control as ct
from rcbuilding import Quantity
from rcbuilding.logging import ModuleLogger
from ..building import BuildingConfiguration
from ..exceptions import ConfigurationError, UnknownZoneError
from .thermal_network import ThermalNetwork, create_system
from .zone_model import ZoneModel, ZONE_HEAT_FLOWS, zone_terminal
from .boundary_element_model import BoundaryElementModel
from .units import Units

Q_ = Quantity

logger = ModuleLogger.get_logger(__name__)
logger.setLevel(ModuleLogger.WARNING)


@dataclass(frozen=True)
class AssemblyOptions:
    """
    Options of the assembly of a building model.

    Attributes
    ----------
    min_zone_capacitance:
        Lower limit of the thermal capacitance of a zone-air node. Applies to
        zones with zero (or very small) volume.
    surface_resistance:
        Unit thermal resistance of the surface films on both faces of massive
        boundaries. Zero by default, i.e. the surface films are ignored.
    zone_heat_flows:
        Names of the heat flow inputs of each real zone.
    outputs:
        Names of the zones (or of any state variables) whose temperature are
        the outputs of the model. If `None`, all real zones are outputs.
    pseudo_zone_names:
        Names of declared zones that must be treated as pseudo-zones, even if
        they are declared with a volume.
    """
    min_zone_capacitance: Quantity = field(default_factory=lambda: Q_(1.0, 'J / K'))
    surface_resistance: Quantity = field(default_factory=lambda: Q_(0.0, 'K * m ** 2 / W'))
    zone_heat_flows: tuple[str, ...] = ZONE_HEAT_FLOWS
    outputs: tuple[str, ...] | None = None
    pseudo_zone_names: tuple[str, ...] = ()


def _read_only(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=float)
    a.flags.writeable = False
    return a


@dataclass(frozen=True, eq=False)
class ThermalModel:
    """
    State-space model of a building, as returned by `assemble()`.

    Attributes
    ----------
    A, B, C, D:
        System, input, output and feedforward matrix (read-only arrays).
    state_names, input_names, output_names:
        Names of the state, input and output variables in the order of the
        rows and columns of the matrices.
    system:
        The model as a `control.StateSpace` object with named signals.
    network:
        The thermal network the model was derived from.
    solar_apertures:
        Effective solar aperture (sum of g-value times area of the exterior
        windows) of each real zone that has windows.
    """
    A: np.ndarray
    B: np.ndarray
    C: np.ndarray
    D: np.ndarray
    state_names: tuple[str, ...]
    input_names: tuple[str, ...]
    output_names: tuple[str, ...]
    system: ct.StateSpace
    network: ThermalNetwork
    solar_apertures: Mapping[str, Quantity] = field(default_factory=dict)

    def __post_init__(self):
        for name in ('A', 'B', 'C', 'D'):
            object.__setattr__(self, name, _read_only(getattr(self, name)))
        for name in ('state_names', 'input_names', 'output_names'):
            object.__setattr__(self, name, tuple(getattr(self, name)))
        object.__setattr__(self, 'solar_apertures', MappingProxyType(dict(self.solar_apertures)))

    @property
    def num_states(self) -> int:
        return len(self.state_names)

    @property
    def num_inputs(self) -> int:
        return len(self.input_names)

    @property
    def num_outputs(self) -> int:
        return len(self.output_names)

    def state_index(self, name: str) -> int:
        try:
            return self.state_names.index(name)
        except ValueError:
            raise KeyError(f"'{name}' is not a state of the model.") from None

    def input_index(self, name: str) -> int:
        try:
            return self.input_names.index(name)
        except ValueError:
            raise KeyError(f"'{name}' is not an input of the model.") from None

    def A_frame(self) -> pd.DataFrame:
        """Returns the system matrix as a Pandas DataFrame object."""
        return pd.DataFrame(self.A, index=self.state_names, columns=self.state_names)

    def B_frame(self) -> pd.DataFrame:
        """Returns the input matrix as a Pandas DataFrame object."""
        return pd.DataFrame(self.B, index=self.state_names, columns=self.input_names)

    def C_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.C, index=self.output_names, columns=self.state_names)

    def D_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.D, index=self.output_names, columns=self.input_names)

    def time_constants(self) -> Quantity:
        """Returns the time constants of the model, derived from the poles of
        the system, sorted from large to small. A pole at zero (e.g. a zone
        that is not connected to anything) has an infinite time constant.
        """
        poles = np.real(self.system.poles())
        with np.errstate(divide='ignore'):
            tau = np.where(poles < 0.0, -1.0 / poles, np.inf)
        return Q_(np.sort(tau)[::-1], Units.unit_t)

    def solar_gain(self, zone: str, irradiance: Quantity | float) -> Quantity:
        """Returns the solar heat gain through the windows of `zone` for the
        given solar irradiance on the windows. Plain numbers are taken to be
        in W/m².
        """
        if not isinstance(irradiance, Quantity):
            irradiance = Q_(irradiance, 'W / m ** 2')
        aperture = self.solar_apertures.get(zone, Q_(0.0, 'm ** 2'))
        return (aperture * irradiance).to('W')


def _get_output_names(
    outputs: Sequence[str] | None,
    zone_models: Sequence[ZoneModel],
    state_names: Sequence[str]
) -> list[str]:
    if outputs is None:
        return [zm.node.name for zm in zone_models]
    output_names = []
    for name in outputs:
        if zone_terminal(name) in state_names:
            output_names.append(zone_terminal(name))
        elif name in state_names:
            output_names.append(name)
        else:
            raise UnknownZoneError(name)
    return output_names


def assemble(
    config: BuildingConfiguration | Mapping,
    options: AssemblyOptions | None = None
) -> ThermalModel:
    """Compiles a building configuration into its state-space model.

    Parameters
    ----------
    config:
        A `BuildingConfiguration` object, or a mapping from which one can be
        created with `BuildingConfiguration.from_dict()`.
    options:
        Assembly options. If `None`, the defaults of `AssemblyOptions` apply.

    Returns
    -------
    ThermalModel

    Raises
    ------
    ConfigurationError
        If the configuration is invalid. `UnknownZoneError` and
        `UnknownConstructionError` are raised if a boundary refers to a zone
        or boundary type which is not declared. No model is returned if any
        error occurs.
    """
    if not isinstance(config, BuildingConfiguration):
        config = BuildingConfiguration.from_dict(config)
    options = options or AssemblyOptions()

    zone_names = [zone.name for zone in config.zones]
    for name in options.pseudo_zone_names:
        if name not in zone_names:
            raise UnknownZoneError(name)
    pseudo_zones = [
        zone.name for zone in config.zones
        if zone.is_pseudo or zone.name in options.pseudo_zone_names
    ]
    real_zones = [zone for zone in config.zones if zone.name not in pseudo_zones]
    if not real_zones:
        raise ConfigurationError("The building configuration has no real zones.")

    air = config.materials.air
    zone_models = [
        ZoneModel(zone, air, options.zone_heat_flows, options.min_zone_capacitance)
        for zone in real_zones
    ]
    boundary_models = [
        BoundaryElementModel(
            boundary,
            config.boundary_types,
            pseudo_zones,
            options.surface_resistance
        )
        for boundary in config.boundaries
    ]
    for bm in boundary_models:
        if all(z in pseudo_zones for z in bm.boundary.zones):
            logger.info(
                f"{bm.label} only connects pseudo-zones and does not "
                f"affect the model."
            )

    network = ThermalNetwork.merge('building', [*zone_models, *boundary_models])
    inert = network.inert_nodes()
    if inert:
        logger.debug(f"Inert nodes left out of the model: {sorted(inert)}")

    # An undeclared pseudo-zone is only an input if heat can flow to it.
    connected = set(network.external_terminals())
    implicit = {zone.name for zone in config.zones if zone.implicit}
    inputs = [
        zone_terminal(name) for name in pseudo_zones
        if name not in implicit or zone_terminal(name) in connected
    ]
    for zm in zone_models:
        inputs.extend(hf.input_name for hf in zm.heat_flows)
    for bm in boundary_models:
        inputs.extend(hf.input_name for hf in bm.heat_flows if hf.node not in inert)

    state_names = [node.name for node in network.nodes if node.name not in inert]
    outputs = _get_output_names(options.outputs, zone_models, state_names)
    A, B, C, D, state_names, inputs, outputs = network.state_space(outputs, inputs)
    system = create_system(network.name, A, B, C, D, state_names, inputs, outputs)

    solar_apertures: dict[str, Quantity] = {}
    for bm in boundary_models:
        for zone, aperture in bm.solar_apertures.items():
            solar_apertures[zone] = solar_apertures.get(zone, Q_(0.0, 'm ** 2')) + aperture

    logger.info(
        f"Assembled building model: {len(real_zones)} zones, "
        f"{len(pseudo_zones)} pseudo-zones, {len(boundary_models)} boundaries, "
        f"{A.shape[0]} states, {B.shape[1]} inputs, {C.shape[0]} outputs."
    )
    return ThermalModel(
        A=A, B=B, C=C, D=D,
        state_names=tuple(state_names),
        input_names=tuple(inputs),
        output_names=tuple(outputs),
        system=system,
        network=network,
        solar_apertures=solar_apertures
    )
