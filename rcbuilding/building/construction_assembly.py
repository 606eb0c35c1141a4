"""CONSTRUCTION ASSEMBLIES AND THEIR REDUCTION TO 3R2C ELEMENTS.

A construction (boundary type) is either a `LayeredConstruction`, an ordered
stack of material layers from one face to the other, or a
`ResistiveConstruction` (window, door) characterized only by its thermal
transmittance U and its solar transmittance g.

Constructions are area-independent. Function `resolve_construction()` takes a
construction (or a list of constructions stacked at one interface) together
with the area of the boundary where it is used, and returns the equivalent
thermal resistance and capacitance of the element. For a layered construction
it also returns the split of the stack into an outer and an inner half, which
become the two capacitive nodes of a 3R2C element:

    face 1 --R_o/2-- T1 --R_o/2 + R_i/2-- T2 --R_i/2-- face 2

The midpoint of the split is determined by resistance, not by thickness. A
layer that straddles the midpoint is split at the midpoint, its capacitance
being attributed to both halves in proportion to the resistance fraction on
each side.
"""
from __future__ import annotations

import math
import pint
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from rcbuilding import Quantity
from ..exceptions import ConfigurationError, InvalidArgumentError
from .materials import Material, MaterialLibrary, to_quantity

Q_ = Quantity

OUTER = 0
INNER = 1


@dataclass(frozen=True)
class Layer:
    """
    A flat layer of a single material in a layered construction.

    Attributes
    ----------
    material: Material
        The material the layer is made of.
    t: Quantity
        Thickness of the layer.
    """
    material: Material
    t: Quantity

    def __post_init__(self):
        what = f"Layer of '{self.material.name}'"
        t = to_quantity(self.t, 'm', what)
        if not (math.isfinite(t.m) and t.m > 0.0):
            raise ConfigurationError(
                f"{what}: thickness must be greater than zero, got {t:~P}."
            )
        object.__setattr__(self, 't', t)

    @property
    def unit_R(self) -> Quantity:
        """Unit thermal resistance of the layer, i.e. per unit area."""
        return (self.t / self.material.k).to('K * m ** 2 / W')

    @property
    def unit_C(self) -> Quantity:
        """Unit thermal capacitance of the layer, i.e. per unit area."""
        return (self.material.rho * self.material.c * self.t).to('J / (K * m ** 2)')


@dataclass(frozen=True)
class HeatingMarker:
    """Marks the position of an embedded heat source (e.g. floor heating pipes)
    in a layered construction. The marker has no material, and therefore no
    thermal resistance and no thermal capacitance.
    """
    kind: str = 'heating'


@dataclass(frozen=True)
class LayeredConstruction:
    """
    A massive construction (wall, floor, ceiling) made of an ordered sequence
    of layers, going from face 1 to face 2 of the boundary.

    Attributes
    ----------
    name: str
        Name of the boundary type in the building configuration.
    layers: tuple
        Layers of the construction, `Layer` objects or `HeatingMarker` objects.
    """
    name: str
    layers: tuple[Layer | HeatingMarker, ...] = field(default_factory=tuple)

    def __post_init__(self):
        layers = tuple(self.layers)
        object.__setattr__(self, 'layers', layers)
        if not any(isinstance(layer, Layer) for layer in layers):
            raise ConfigurationError(
                f"Boundary type '{self.name}' has an empty layer list."
            )

    @property
    def massive(self) -> bool:
        return True

    @property
    def has_heating(self) -> bool:
        return any(isinstance(layer, HeatingMarker) for layer in self.layers)

    @property
    def unit_R(self) -> Quantity:
        """Unit thermal resistance of the layer stack."""
        return sum(
            (layer.unit_R for layer in self.layers if isinstance(layer, Layer)),
            Q_(0.0, 'K * m ** 2 / W')
        )

    @property
    def unit_C(self) -> Quantity:
        """Unit thermal capacitance of the layer stack."""
        return sum(
            (layer.unit_C for layer in self.layers if isinstance(layer, Layer)),
            Q_(0.0, 'J / (K * m ** 2)')
        )


@dataclass(frozen=True)
class ResistiveConstruction:
    """
    A construction without thermal mass, like a window or a door.

    Attributes
    ----------
    name: str
        Name of the boundary type in the building configuration.
    u: Quantity
        Thermal transmittance (U-value).
    g: float
        Solar energy transmittance (g-value), between 0 and 1.
    """
    name: str
    u: Quantity
    g: float = 0.0

    def __post_init__(self):
        what = f"Boundary type '{self.name}'"
        u = to_quantity(self.u, 'W / (m ** 2 * K)', what)
        if not (math.isfinite(u.m) and u.m >= 0.0):
            raise ConfigurationError(
                f"{what}: U-value must be a finite value not less than zero, "
                f"got {u:~P}."
            )
        g = self.g
        if isinstance(g, Quantity):
            g = g.to('frac').m
        if isinstance(g, bool) or not isinstance(g, (int, float)) or not 0.0 <= g <= 1.0:
            raise ConfigurationError(
                f"{what}: g-value must be a number between 0 and 1, got {g!r}."
            )
        object.__setattr__(self, 'u', u)
        object.__setattr__(self, 'g', float(g))

    @property
    def massive(self) -> bool:
        return False

    @property
    def has_heating(self) -> bool:
        return False

    @property
    def unit_R(self) -> Quantity:
        return (1 / self.u).to('K * m ** 2 / W')

    @property
    def unit_C(self) -> Quantity:
        return Q_(0.0, 'J / (K * m ** 2)')


Construction = LayeredConstruction | ResistiveConstruction


def build_construction(
    name: str,
    d: Mapping,
    materials: MaterialLibrary
) -> Construction:
    """Creates a construction from its entry in the `boundary_types` section of
    a building configuration. The entry is either a mapping with key `layers`
    (a list of `{material, thickness}` or `{marker: 'heating'}` mappings) or a
    mapping with keys `u` and `g`.
    """
    if not isinstance(d, Mapping):
        raise ConfigurationError(
            f"Boundary type '{name}' must be a mapping, got {type(d).__name__}."
        )
    if 'layers' in d:
        layers = []
        for i, layer in enumerate(d['layers'] or ()):
            if not isinstance(layer, Mapping):
                raise ConfigurationError(
                    f"Boundary type '{name}': layer {i} must be a mapping."
                )
            if 'marker' in layer:
                if layer['marker'] != 'heating':
                    raise ConfigurationError(
                        f"Boundary type '{name}': unknown marker "
                        f"{layer['marker']!r} in layer {i}."
                    )
                layers.append(HeatingMarker())
                continue
            try:
                material = materials[layer['material']]
                t = layer['thickness']
            except KeyError as err:
                raise ConfigurationError(
                    f"Boundary type '{name}': layer {i} is missing {err}."
                ) from None
            except ConfigurationError as err:
                raise ConfigurationError(
                    f"Boundary type '{name}': layer {i}: {err}"
                ) from None
            layers.append(Layer(material, t))
        return LayeredConstruction(name, tuple(layers))
    if 'u' in d:
        return ResistiveConstruction(name, d['u'], d.get('g', 0.0))
    raise ConfigurationError(
        f"Boundary type '{name}' has neither a layer list nor a (u, g) pair."
    )


@dataclass(frozen=True)
class ResolvedConstruction:
    """
    Equivalent thermal resistance and capacitance of a construction used over
    a given area.

    Attributes
    ----------
    name: str
        Name of the (composite) construction.
    area: Quantity
        Area the construction was resolved for.
    R: Quantity
        Total thermal resistance (K/W) between both faces.
    C: Quantity
        Total thermal capacitance (J/K).
    R_halves: tuple[Quantity, Quantity] | None
        Thermal resistance of the outer and of the inner half. `None` if the
        construction has no thermal mass.
    C_halves: tuple[Quantity, Quantity] | None
        Thermal capacitance of the outer and of the inner half.
    heating_half: int | None
        Index of the half (`OUTER` = 0, `INNER` = 1) that contains a heating
        marker, if any.
    g: float
        Solar energy transmittance (only meaningful for resistive
        constructions).
    """
    name: str
    area: Quantity
    R: Quantity
    C: Quantity
    R_halves: tuple[Quantity, Quantity] | None = None
    C_halves: tuple[Quantity, Quantity] | None = None
    heating_half: int | None = None
    g: float = 0.0

    @property
    def massive(self) -> bool:
        return self.R_halves is not None

    @property
    def G(self) -> Quantity:
        """Thermal conductance between both faces."""
        if math.isinf(self.R.m):
            return Q_(0.0, 'W / K')
        return (1 / self.R).to('W / K')

    def as_tuple(self) -> tuple[Quantity, Quantity]:
        return self.R, self.C


def _check_area(area: Quantity | float | None) -> Quantity:
    if area is None:
        raise InvalidArgumentError(
            "An area is needed to resolve the resistance and capacitance "
            "of a construction."
        )
    if isinstance(area, Quantity):
        try:
            area = area.to('m ** 2')
        except pint.DimensionalityError:
            raise InvalidArgumentError(f"{area} is not an area.") from None
    elif isinstance(area, (int, float)) and not isinstance(area, bool):
        area = Q_(float(area), 'm ** 2')
    else:
        raise InvalidArgumentError(f"{area!r} is not an area.")
    if not math.isfinite(area.m) or area.m < 0.0:
        raise InvalidArgumentError(
            f"Area must be a finite value not less than zero, got {area:~P}."
        )
    return area


def _segments(
    constructions: Sequence[Construction]
) -> list[tuple[float, float, bool]]:
    """Flattens a stack of constructions into a list of segments
    `(unit_R, unit_C, is_marker)` in SI units per unit area.
    """
    segments = []
    for constr in constructions:
        if isinstance(constr, LayeredConstruction):
            for layer in constr.layers:
                if isinstance(layer, HeatingMarker):
                    segments.append((0.0, 0.0, True))
                else:
                    segments.append((layer.unit_R.m, layer.unit_C.m, False))
        else:
            # a window or door in a stack acts as a massless series resistance
            segments.append((constr.unit_R.m, 0.0, False))
    return segments


def _split_halves(
    segments: list[tuple[float, float, bool]]
) -> tuple[tuple[float, float], tuple[float, float], int | None]:
    """Splits a list of segments at its midpoint by resistance. Returns the
    (R, C) of the outer half, the (R, C) of the inner half and the index of the
    half that contains a heating marker.
    """
    R_tot = sum(s[0] for s in segments)
    R_mid = R_tot / 2
    R_o = C_o = R_i = C_i = 0.0
    R_cum = 0.0
    heating_half = None
    for R, C, is_marker in segments:
        if is_marker:
            heating_half = OUTER if R_cum <= R_mid else INNER
            continue
        if R_cum + R <= R_mid:
            R_o += R
            C_o += C
        elif R_cum >= R_mid:
            R_i += R
            C_i += C
        else:
            # the layer straddles the midpoint
            f = (R_mid - R_cum) / R
            R_o += f * R
            C_o += f * C
            R_i += (1 - f) * R
            C_i += (1 - f) * C
        R_cum += R
    return (R_o, C_o), (R_i, C_i), heating_half


def resolve_construction(
    construction: Construction | Sequence[Construction],
    area: Quantity | float | None
) -> ResolvedConstruction:
    """Returns the equivalent thermal resistance and capacitance of
    `construction` when it is used over the given `area`.

    Parameters
    ----------
    construction:
        A `LayeredConstruction` or a `ResistiveConstruction`, or a sequence of
        them which are stacked in the given order at the same interface (e.g. a
        floor slab with a separate floor finish on top).
    area:
        Area over which the construction is used. Plain numbers are taken to be
        in m².

    Returns
    -------
    ResolvedConstruction
        Use `as_tuple()` to get the pair `(R, C)`.

    Raises
    ------
    InvalidArgumentError
        If `area` is missing, negative or not finite.
    ConfigurationError
        If the construction sequence is empty.
    """
    area = _check_area(area)
    if isinstance(construction, (LayeredConstruction, ResistiveConstruction)):
        constructions = [construction]
    else:
        constructions = list(construction)
    if not constructions:
        raise ConfigurationError("Cannot resolve an empty list of constructions.")
    name = ' + '.join(c.name for c in constructions)
    A = area.m
    massive = any(c.massive for c in constructions)

    if not massive:
        unit_R = sum(c.unit_R.m for c in constructions)
        g = math.prod(c.g for c in constructions)
        R = unit_R / A if A > 0.0 else float('inf')
        return ResolvedConstruction(
            name=name,
            area=area,
            R=Q_(R, 'K / W'),
            C=Q_(0.0, 'J / K'),
            g=g
        )

    segments = _segments(constructions)
    (R_o, C_o), (R_i, C_i), heating_half = _split_halves(segments)
    if A > 0.0:
        R_halves = (Q_(R_o / A, 'K / W'), Q_(R_i / A, 'K / W'))
        R = Q_(sum(s[0] for s in segments) / A, 'K / W')
    else:
        R_halves = (Q_(float('inf'), 'K / W'), Q_(float('inf'), 'K / W'))
        R = Q_(float('inf'), 'K / W')
    C_halves = (Q_(C_o * A, 'J / K'), Q_(C_i * A, 'J / K'))
    C = Q_(sum(s[1] for s in segments) * A, 'J / K')
    return ResolvedConstruction(
        name=name,
        area=area,
        R=R,
        C=C,
        R_halves=R_halves,
        C_halves=C_halves,
        heating_half=heating_half
    )
