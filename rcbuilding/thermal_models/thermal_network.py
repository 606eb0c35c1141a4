"""THERMAL NETWORK OF TEMPERATURE NODES, RESISTORS AND HEAT FLOWS.

A thermal network is kept as an explicit table of temperature nodes (each with
a thermal capacitor) and a list of edges. An edge is a thermal resistor between
two terminals; a terminal is either the name of a temperature node in the
network, or the name of an external temperature (e.g. the outdoor air
temperature), which is an input of the network. Heat flows (e.g. internal heat
gains) are attached directly to a temperature node and are also inputs.

The network is never traversed node by node: the state-space matrices are
filled by accumulating the contribution of every edge and every heat flow into
the heat balance equations of the nodes it touches:

    C_i * dT_i/dt = sum_j (T_j - T_i) / R_ij + sum_k Q_k
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import numpy as np
import control as ct
from rcbuilding import Quantity
from ..exceptions import ConfigurationError
from .units import Units, UNITS


class ThermalNetworkComponent:
    preferred_unit: UNITS.Unit

    def __init__(self, value: Quantity) -> None:
        self.value = value.to(self.preferred_unit)

    def __repr__(self):
        return f"{self.value:~P.3g}"

    def __eq__(self, other):
        if type(other) is type(self):
            return self.value.m == other.value.m
        return NotImplemented

    def __hash__(self):
        return hash((type(self).__name__, self.value.m))


class Resistor(ThermalNetworkComponent):
    """Represents a thermal resistor between two terminals of a thermal
    network. A resistor with infinite resistance is an open connection.
    """
    preferred_unit = Units.unit_R

    @classmethod
    def from_conductance(cls, G: Quantity) -> Resistor:
        G = G.to(Units.unit_G).m
        if G == 0.0:
            return cls(Quantity(float('inf'), Units.unit_R))
        return cls(Quantity(1 / G, Units.unit_R))

    @property
    def G(self) -> float:
        """Returns the conductance of the resistor in `Units.unit_G`."""
        R = self.value.m
        if math.isinf(R):
            return 0.0
        return 1 / R

    @property
    def is_open(self) -> bool:
        return self.G == 0.0

    def __add__(self, other: Resistor) -> Resistor:
        """Adds the values of two resistors in series together and returns a
        single new resistor.
        """
        return Resistor(self.value + other.value)

    def __floordiv__(self, other: Resistor) -> Resistor:
        """Combines two resistors in parallel (their conductances add)."""
        G = self.G + other.G
        return Resistor.from_conductance(Quantity(G, Units.unit_G))


class Capacitor(ThermalNetworkComponent):
    """Represents the thermal capacitor of a temperature node in a thermal
    network.
    """
    preferred_unit = Units.unit_C


@dataclass(frozen=True)
class TemperatureNode:
    """A node of the thermal network. The temperature of the node is a state
    variable of the network; its heat balance equation is a row of the system
    matrix and of the input matrix.

    Attributes
    ----------
    name:
        Unique name of the node, which is also the name of its state variable,
        e.g. 'T@living_room' or 'T1@boundary[3]'.
    capacitor:
        Thermal capacitor of the node.
    """
    name: str
    capacitor: Capacitor

    @property
    def C(self) -> float:
        return self.capacitor.value.m

    def __repr__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Edge:
    """A thermal resistor between terminals `a` and `b`."""
    a: str
    b: str
    resistor: Resistor


@dataclass(frozen=True)
class HeatFlow:
    """A heat flow input named `input_name` into temperature node `node`. A
    heat flow extracted from the node (cooling) is a negative input value.
    """
    node: str
    input_name: str


class ThermalNetwork:
    """Represents a thermal network of temperature nodes interconnected by
    thermal resistors. Once created, the network is not modified anymore;
    combining networks with `merge()` returns a new network.
    """
    def __init__(
        self,
        name: str,
        nodes: Iterable[TemperatureNode] = (),
        edges: Iterable[Edge] = (),
        heat_flows: Iterable[HeatFlow] = ()
    ) -> None:
        """Creates a `ThermalNetwork` object.

        Parameters
        ----------
        name:
            Name to identify the network.
        nodes:
            Temperature nodes of the network. Their order determines the order
            of the state variables.
        edges:
            Resistors between the nodes, or between a node and an external
            temperature.
        heat_flows:
            Heat flows into or out of the nodes.
        """
        self.name = name
        self.nodes: tuple[TemperatureNode, ...] = tuple(nodes)
        self.edges: tuple[Edge, ...] = tuple(edges)
        self.heat_flows: tuple[HeatFlow, ...] = tuple(heat_flows)
        self._node_index = {node.name: i for i, node in enumerate(self.nodes)}
        if len(self._node_index) != len(self.nodes):
            raise ConfigurationError(
                f"Thermal network '{name}' has duplicate node names."
            )
        for heat_flow in self.heat_flows:
            if heat_flow.node not in self._node_index:
                raise ConfigurationError(
                    f"Heat flow '{heat_flow.input_name}' is attached to "
                    f"unknown node '{heat_flow.node}'."
                )

    def __repr__(self) -> str:
        return (
            f"ThermalNetwork('{self.name}', {len(self.nodes)} nodes, "
            f"{len(self.edges)} edges, {len(self.heat_flows)} heat flows)"
        )

    @classmethod
    def merge(
        cls,
        name: str,
        networks: Sequence[ThermalNetwork],
        edges: Iterable[Edge] = (),
        heat_flows: Iterable[HeatFlow] = ()
    ) -> ThermalNetwork:
        """Returns a new network with the nodes, edges and heat flows of all
        `networks`, in the given order, plus the additional connecting `edges`
        and `heat_flows`.
        """
        nodes, all_edges, all_heat_flows = [], [], []
        for nw in networks:
            nodes.extend(nw.nodes)
            all_edges.extend(nw.edges)
            all_heat_flows.extend(nw.heat_flows)
        all_edges.extend(edges)
        all_heat_flows.extend(heat_flows)
        return cls(name, nodes, all_edges, all_heat_flows)

    def _clean_up(self) -> list[tuple[str, str, float]]:
        """Folds all resistors between the same pair of terminals into one
        equivalent conductance (parallel resistors). Pairs are kept in the
        order in which they first appear in the edge list.
        """
        conductances: dict[tuple[str, str], float] = {}
        for edge in self.edges:
            if edge.a == edge.b:
                continue
            key = (edge.a, edge.b) if edge.a <= edge.b else (edge.b, edge.a)
            conductances[key] = conductances.get(key, 0.0) + edge.resistor.G
        return [(a, b, G) for (a, b), G in conductances.items()]

    def inert_nodes(self) -> set[str]:
        """Returns the names of the nodes that have no thermal capacity and no
        closed (finite resistance) connection to any terminal. Such nodes are
        declared by degenerate, zero-area boundaries; they are left out of the
        state-space representation.
        """
        connected = set()
        for a, b, G in self._clean_up():
            if G > 0.0:
                connected.update((a, b))
        return {
            node.name for node in self.nodes
            if node.C == 0.0 and node.name not in connected
        }

    def external_terminals(self) -> list[str]:
        """Returns the names of the external temperatures connected to the
        network by at least one closed (finite resistance) edge, in order of
        first appearance in the edge list.
        """
        terminals = {}
        for a, b, G in self._clean_up():
            if G == 0.0:
                continue
            for terminal in (a, b):
                if terminal not in self._node_index:
                    terminals.setdefault(terminal, None)
        return list(terminals)

    def state_space(
        self,
        output_nodes: Sequence[str] | None = None,
        inputs: Sequence[str] | None = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, list[str], list[str], list[str]]:
        """Returns the state-space representation of the network.

        Parameters
        ----------
        output_nodes:
            Names of the nodes whose temperature are the outputs of the system.
            If `None`, all state variables are outputs.
        inputs:
            Names of the input variables (external temperatures and heat flows)
            in the order of the columns of the input matrix. If `None`, the
            external temperatures come first in order of first appearance,
            followed by the heat flows in order of declaration.

        Returns
        -------
        A, B, C, D:
            System, input, output and feedforward matrix.
        state_names, input_names, output_names:
            Names of the state, input and output variables.

        Raises
        ------
        ConfigurationError
            If a node without thermal capacity is connected to other terminals
            (such a node should have been eliminated before), or if an input
            of the network is missing in `inputs`.
        """
        inert = self.inert_nodes()
        states = [node for node in self.nodes if node.name not in inert]
        state_index = {node.name: i for i, node in enumerate(states)}
        heat_flows = [hf for hf in self.heat_flows if hf.node in state_index]
        if inputs is None:
            input_names = self.external_terminals()
            for hf in heat_flows:
                if hf.input_name not in input_names:
                    input_names.append(hf.input_name)
        else:
            input_names = list(inputs)
        input_index = {name: j for j, name in enumerate(input_names)}

        n, m = len(states), len(input_names)
        A = np.zeros((n, n))
        B = np.zeros((n, m))
        C_inv = np.zeros(n)
        for i, node in enumerate(states):
            if node.C > 0.0:
                C_inv[i] = 1 / node.C

        def _terminal_row(terminal: str, other: str, G: float) -> None:
            # heat balance contribution of conductance `G` between `terminal`
            # (a state node) and `other` (a state node or an input)
            i = state_index[terminal]
            if C_inv[i] == 0.0:
                raise ConfigurationError(
                    f"Node '{terminal}' has no thermal capacity but is "
                    f"connected to '{other}'."
                )
            A[i, i] -= G * C_inv[i]
            if other in state_index:
                A[i, state_index[other]] += G * C_inv[i]
            else:
                try:
                    B[i, input_index[other]] += G * C_inv[i]
                except KeyError:
                    raise ConfigurationError(
                        f"External terminal '{other}' is not an input of "
                        f"the system."
                    ) from None

        for a, b, G in self._clean_up():
            if G == 0.0:
                continue
            if a in state_index:
                _terminal_row(a, b, G)
            if b in state_index:
                _terminal_row(b, a, G)

        for hf in heat_flows:
            i = state_index[hf.node]
            try:
                j = input_index[hf.input_name]
            except KeyError:
                raise ConfigurationError(
                    f"Heat flow '{hf.input_name}' is not an input of the system."
                ) from None
            B[i, j] += C_inv[i]

        if output_nodes is None:
            output_names = [node.name for node in states]
        else:
            output_names = list(output_nodes)
        C = np.zeros((len(output_names), n))
        for k, name in enumerate(output_names):
            try:
                C[k, state_index[name]] = 1.0
            except KeyError:
                raise KeyError(
                    f"Node '{name}' is not a state of network '{self.name}'."
                ) from None
        D = np.zeros((len(output_names), m))
        state_names = [node.name for node in states]
        return A, B, C, D, state_names, input_names, output_names

    def create_system(
        self,
        output_nodes: Sequence[str] | None = None,
        inputs: Sequence[str] | None = None
    ) -> ct.StateSpace:
        """Creates the system of the thermal network in state-space
        representation as a `control.StateSpace` object with named states,
        inputs and outputs.
        """
        return create_system(self.name, *self.state_space(output_nodes, inputs))


def create_system(
    name: str,
    A: np.ndarray,
    B: np.ndarray,
    C: np.ndarray,
    D: np.ndarray,
    states: Sequence[str],
    inputs: Sequence[str],
    outputs: Sequence[str]
) -> ct.StateSpace:
    """Wraps the matrices of a state-space representation in a
    `control.StateSpace` object named `name`, with named signals.
    """
    system = ct.ss(A, B, C, D)
    system.name = name
    system.set_inputs(list(inputs))
    system.set_states(list(states))
    system.set_outputs(list(outputs))
    return system
