"""3R2C MODELS OF BUILDING BOUNDARIES.

A `BoundaryElementModel` turns a boundary of the building configuration into a
small thermal network between the temperatures of the two zones on either side
of the boundary (see `zone_model.zone_terminal()`).

A massive construction (layers with thermal mass) becomes a 3R2C element with
two temperature nodes, one for the outer half and one for the inner half of the
layer stack:

    T@zone_a --R_o/2-- T1@boundary[i] --R_o/2 + R_i/2-- T2@boundary[i] --R_i/2-- T@zone_b

A construction without thermal mass (window, door) is a single resistor
between both zone temperatures. The resistors of all windows and doors of a
boundary (and of the boundary itself if it has no thermal mass) are in
parallel, so they are combined into one equivalent resistor.
"""
from __future__ import annotations

import operator
from collections.abc import Collection, Mapping, Sequence
from functools import reduce
from rcbuilding import Quantity
from ..building import Boundary, ResolvedConstruction, resolve_construction
from ..building.construction_assembly import Construction, OUTER
from ..exceptions import ConfigurationError
from .thermal_network import (
    ThermalNetwork,
    TemperatureNode,
    Resistor,
    Capacitor,
    Edge,
    HeatFlow
)
from .zone_model import zone_terminal
from .units import Units

Q_ = Quantity


class BoundaryElementModel(ThermalNetwork):
    """Thermal network of a single boundary and its sub-boundaries."""

    def __init__(
        self,
        boundary: Boundary,
        constructions: Mapping[str, Construction],
        pseudo_zones: Collection[str] = (),
        surface_resistance: Quantity = Q_(0.0, 'K * m ** 2 / W')
    ) -> None:
        """Creates a `BoundaryElementModel` object.

        Parameters
        ----------
        boundary:
            The boundary to model.
        constructions:
            Boundary types of the building configuration by name.
        pseudo_zones:
            Names of the zones of which the temperature is an input. Needed to
            determine the solar apertures of the boundary.
        surface_resistance:
            Unit thermal resistance of the surface film on both faces of a
            massive element. Zero by default.
        """
        self.boundary = boundary
        self.label = boundary.label
        self.surface_resistance = surface_resistance.to('K * m ** 2 / W')
        self.terminals = tuple(zone_terminal(z) for z in boundary.zones)

        A_net = boundary.net_area.to('m ** 2')
        if A_net.m < 0.0:
            A_net = Q_(0.0, 'm ** 2')
        self.parent = resolve_construction(
            [constructions[name] for name in boundary.boundary_type],
            A_net
        )
        self.sub_boundaries: list[ResolvedConstruction] = [
            resolve_construction(
                [constructions[name] for name in sub.boundary_type],
                sub.area
            )
            for sub in boundary.sub_boundaries
        ]

        nodes: list[TemperatureNode] = []
        edges: list[Edge] = []
        heat_flows: list[HeatFlow] = []
        resistive: list[ResolvedConstruction] = []
        if self.parent.massive:
            self._add_3r2c(self.parent, self.label, nodes, edges, heat_flows)
        else:
            resistive.append(self.parent)
        for j, sub in enumerate(self.sub_boundaries):
            if sub.massive:
                label = f"{self.label}.sub[{j}]"
                self._add_3r2c(sub, label, nodes, edges, heat_flows)
            else:
                resistive.append(sub)
        if resistive:
            R_eq = reduce(operator.floordiv, (Resistor(r.R) for r in resistive))
            if not R_eq.is_open:
                edges.append(Edge(*self.terminals, R_eq))
        self.solar_apertures = self._get_solar_apertures(resistive, pseudo_zones)
        super().__init__(self.label, nodes, edges, heat_flows)

    def _add_3r2c(
        self,
        resolved: ResolvedConstruction,
        label: str,
        nodes: list[TemperatureNode],
        edges: list[Edge],
        heat_flows: list[HeatFlow]
    ) -> None:
        # If the area is zero, all resistances are infinite and all
        # capacitances are zero: the nodes are declared, but they are inert.
        R_o, R_i = (R.to(Units.unit_R) for R in resolved.R_halves)
        C_o, C_i = resolved.C_halves
        A = resolved.area.to('m ** 2').m
        if A > 0.0:
            if C_o.m == 0.0 or C_i.m == 0.0:
                raise ConfigurationError(
                    f"Construction '{resolved.name}' of {label} has no thermal "
                    f"mass on one side of its midpoint."
                )
            R_s = Q_(self.surface_resistance.m / A, Units.unit_R)
        else:
            R_s = Q_(0.0, Units.unit_R)
        n1 = TemperatureNode(f"T1@{label}", Capacitor(C_o))
        n2 = TemperatureNode(f"T2@{label}", Capacitor(C_i))
        nodes.extend((n1, n2))
        edges.extend((
            Edge(self.terminals[0], n1.name, Resistor(R_s) + Resistor(R_o / 2)),
            Edge(n1.name, n2.name, Resistor(R_o / 2) + Resistor(R_i / 2)),
            Edge(n2.name, self.terminals[1], Resistor(R_i / 2) + Resistor(R_s))
        ))
        if resolved.heating_half is not None:
            node = n1 if resolved.heating_half == OUTER else n2
            heat_flows.append(HeatFlow(node.name, f"Q_heat@{label}"))

    def _get_solar_apertures(
        self,
        resistive: Sequence[ResolvedConstruction],
        pseudo_zones: Collection[str]
    ) -> dict[str, Quantity]:
        """Returns the effective solar aperture (g-value times area) of the
        windows in the boundary, attributed to the real zone, if the boundary
        separates a real zone from a pseudo-zone.
        """
        zone_a, zone_b = self.boundary.zones
        if (zone_a in pseudo_zones) == (zone_b in pseudo_zones):
            return {}
        zone = zone_b if zone_a in pseudo_zones else zone_a
        aperture = sum(
            (r.g * r.area for r in resistive),
            Q_(0.0, 'm ** 2')
        )
        if aperture.m == 0.0:
            return {}
        return {zone: aperture}

    @property
    def heating_inputs(self) -> list[str]:
        return [hf.input_name for hf in self.heat_flows]
