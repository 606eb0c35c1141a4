from .units import Units
from .thermal_network import (
    Resistor,
    Capacitor,
    TemperatureNode,
    Edge,
    HeatFlow,
    ThermalNetwork
)
from .zone_model import ZoneModel, zone_terminal
from .boundary_element_model import BoundaryElementModel
from .assembler import AssemblyOptions, ThermalModel, assemble
