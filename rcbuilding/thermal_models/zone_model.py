from collections.abc import Sequence
from rcbuilding import Quantity
from rcbuilding.logging import ModuleLogger
from ..building import Zone, Material
from .thermal_network import ThermalNetwork, TemperatureNode, Capacitor, HeatFlow

Q_ = Quantity

logger = ModuleLogger.get_logger(__name__)
logger.setLevel(ModuleLogger.WARNING)

ZONE_HEAT_FLOWS = ('Q_sol', 'Q_int', 'Q_hvac')


def zone_terminal(zone_name: str) -> str:
    """Returns the name of the temperature of a zone in the thermal network:
    the name of a state variable if the zone is a real zone, or the name of an
    input variable if it is a pseudo-zone.
    """
    return f"T@{zone_name}"


class ZoneModel(ThermalNetwork):
    """Models the air of a zone as a single temperature node with the thermal
    capacity of the zone air, into which the heat flows of the zone (solar,
    internal and HVAC heat gains) are injected.
    """
    def __init__(
        self,
        zone: Zone,
        air: Material,
        heat_flows: Sequence[str] = ZONE_HEAT_FLOWS,
        min_capacitance: Quantity = Q_(1.0, 'J / K')
    ) -> None:
        """Creates a `ZoneModel` object.

        Parameters
        ----------
        zone:
            Real zone (not a pseudo-zone).
        air:
            Material with the thermal properties of the zone air.
        heat_flows:
            Names of the heat flow inputs of the zone. The input variables are
            named '<heat flow>@<zone name>'.
        min_capacitance:
            Lower limit of the thermal capacitance of the zone-air node. A zone
            with zero volume would otherwise have a node without thermal
            capacity, which cannot be a state variable.
        """
        self.zone = zone
        C = (zone.volume * air.volumetric_heat_capacity).to('J / K')
        C_min = min_capacitance.to('J / K')
        self.capacitance_floored = C < C_min
        if self.capacitance_floored:
            logger.warning(
                f"Zone '{zone.name}' has a thermal capacitance of {C:~P.3g}. "
                f"The capacitance floor {C_min:~P.3g} is used instead."
            )
            C = C_min
        node = TemperatureNode(zone_terminal(zone.name), Capacitor(C))
        super().__init__(
            name=zone.name,
            nodes=(node,),
            heat_flows=tuple(
                HeatFlow(node.name, f"{q}@{zone.name}")
                for q in heat_flows
            )
        )

    @property
    def node(self) -> TemperatureNode:
        return self.nodes[0]

    @property
    def C(self) -> Quantity:
        """Thermal capacitance of the zone-air node."""
        return self.node.capacitor.value
