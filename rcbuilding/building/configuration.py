"""IMMUTABLE BUILDING CONFIGURATION.

A `BuildingConfiguration` groups the material library, the boundary types
(constructions), the zones and the boundaries of a building. It is created from
a hierarchical document (e.g. a decoded JSON file) with
`BuildingConfiguration.from_dict()`, which validates the document and resolves
all references by name. Once created, a configuration is never modified; the
`with_...()` methods return a new configuration, which is what parametric
studies need.
"""
from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from rcbuilding import Quantity
from ..exceptions import (
    ConfigurationError,
    UnknownZoneError,
    UnknownConstructionError
)
from .materials import MaterialLibrary, to_quantity
from .construction_assembly import (
    Construction,
    Layer,
    LayeredConstruction,
    build_construction
)

Q_ = Quantity

# Names of zones which, when referenced by a boundary without being declared,
# are taken to be pseudo-zones (boundary conditions).
PSEUDO_ZONE_NAMES = ('outside', 'ground')


def _type_names(boundary_type: str | Sequence[str], what: str) -> tuple[str, ...]:
    if isinstance(boundary_type, str):
        return (boundary_type,)
    if isinstance(boundary_type, Sequence) and boundary_type:
        if all(isinstance(name, str) for name in boundary_type):
            return tuple(boundary_type)
    raise ConfigurationError(
        f"{what}: `boundary_type` must be a name or a non-empty list of "
        f"names, got {boundary_type!r}."
    )


def _area(value, what: str) -> Quantity:
    A = to_quantity(value, 'm ** 2', what)
    if not math.isfinite(A.m) or A.m < 0.0:
        raise ConfigurationError(f"{what}: area must not be negative, got {A:~P}.")
    return A


@dataclass(frozen=True)
class Zone:
    """
    A well-mixed air volume with a single lumped temperature.

    Attributes
    ----------
    name: str
        Name of the zone.
    volume: Quantity | None
        Air volume of the zone. `None` for a pseudo-zone (outside, ground,
        adjacent unmodeled space), of which the temperature is an input of the
        thermal model instead of a state.
    implicit: bool
        `True` for a pseudo-zone that is only referenced by boundaries and
        not declared in the configuration.
    """
    name: str
    volume: Quantity | None = None
    implicit: bool = False

    def __post_init__(self):
        if self.volume is not None:
            V = to_quantity(self.volume, 'm ** 3', f"Zone '{self.name}'")
            if not math.isfinite(V.m) or V.m < 0.0:
                raise ConfigurationError(
                    f"Zone '{self.name}': volume must not be negative, got {V:~P}."
                )
            object.__setattr__(self, 'volume', V)

    @property
    def is_pseudo(self) -> bool:
        return self.volume is None


@dataclass(frozen=True)
class SubBoundary:
    """
    An opening (window, door) cut out of the area of its parent boundary.

    Attributes
    ----------
    boundary_type: tuple[str, ...]
        Name(s) of the construction(s) of the opening.
    area: Quantity
        Area of the opening.
    """
    boundary_type: tuple[str, ...]
    area: Quantity

    @classmethod
    def from_dict(cls, d: Mapping, what: str) -> SubBoundary:
        if not isinstance(d, Mapping):
            raise ConfigurationError(f"{what} must be a mapping.")
        try:
            boundary_type = _type_names(d['boundary_type'], what)
            area = _area(d['area'], what)
        except KeyError as err:
            raise ConfigurationError(f"{what} is missing {err}.") from None
        return cls(boundary_type, area)


@dataclass(frozen=True)
class Boundary:
    """
    An interface between two zones (one of which may be a pseudo-zone) made of
    one construction (or a stack of constructions) over a given area.

    Attributes
    ----------
    index: int
        Position of the boundary in the configuration; used to name the nodes
        and inputs of the boundary and to report errors.
    boundary_type: tuple[str, ...]
        Name(s) of the construction(s) of the boundary. More than one name
        means the constructions are stacked in the given order, going from
        `zones[0]` to `zones[1]`.
    zones: tuple[str, str]
        Names of the two zones on either side of the boundary.
    area: Quantity
        Gross area of the boundary, including the area of its sub-boundaries.
    sub_boundaries: tuple[SubBoundary, ...]
        Openings in the boundary.
    """
    index: int
    boundary_type: tuple[str, ...]
    zones: tuple[str, str]
    area: Quantity
    sub_boundaries: tuple[SubBoundary, ...] = ()

    @classmethod
    def from_dict(cls, index: int, d: Mapping) -> Boundary:
        what = f"Boundary {index}"
        if not isinstance(d, Mapping):
            raise ConfigurationError(f"{what} must be a mapping.")
        try:
            boundary_type = _type_names(d['boundary_type'], what)
            zones = d['zones']
            area = _area(d['area'], what)
        except KeyError as err:
            raise ConfigurationError(f"{what} is missing {err}.") from None
        if (
            isinstance(zones, str)
            or not isinstance(zones, Sequence)
            or len(zones) != 2
            or not all(isinstance(z, str) for z in zones)
        ):
            raise ConfigurationError(
                f"{what}: `zones` must be a list of two zone names, got {zones!r}."
            )
        sub_boundaries = tuple(
            SubBoundary.from_dict(sub, f"{what}, sub-boundary {j}")
            for j, sub in enumerate(d.get('sub_boundaries') or ())
        )
        return cls(index, boundary_type, (zones[0], zones[1]), area, sub_boundaries)

    @property
    def net_area(self) -> Quantity:
        """Area of the boundary that is left for its own construction after
        subtracting the area of its sub-boundaries.
        """
        A_sub = sum((sub.area for sub in self.sub_boundaries), Q_(0.0, 'm ** 2'))
        return self.area - A_sub

    @property
    def label(self) -> str:
        return f"boundary[{self.index}]"


@dataclass(frozen=True)
class BuildingConfiguration:
    """
    Immutable description of a building: materials, boundary types, zones and
    boundaries.

    Attributes
    ----------
    materials: MaterialLibrary
    boundary_types: Mapping[str, Construction]
    zones: tuple[Zone, ...]
        Zones in declaration order, including pseudo-zones.
    boundaries: tuple[Boundary, ...]
        Boundaries in declaration order.
    """
    materials: MaterialLibrary
    boundary_types: Mapping[str, Construction]
    zones: tuple[Zone, ...]
    boundaries: tuple[Boundary, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'boundary_types', MappingProxyType(dict(self.boundary_types)))
        object.__setattr__(self, 'boundaries', tuple(self.boundaries))
        zones = list(self.zones)
        names = [zone.name for zone in zones]
        if len(set(names)) != len(names):
            raise ConfigurationError("Zone names must be unique.")
        # Well-known pseudo-zones may be referenced without being declared.
        for boundary in self.boundaries:
            for name in boundary.zones:
                if name not in names and name in PSEUDO_ZONE_NAMES:
                    zones.append(Zone(name, implicit=True))
                    names.append(name)
        object.__setattr__(self, 'zones', tuple(zones))
        self._validate()

    def _validate(self) -> None:
        zone_names = {zone.name for zone in self.zones}
        for boundary in self.boundaries:
            for name in boundary.zones:
                if name not in zone_names:
                    raise UnknownZoneError(name, boundary.index)
            if boundary.zones[0] == boundary.zones[1]:
                raise ConfigurationError(
                    f"Boundary {boundary.index} connects zone "
                    f"'{boundary.zones[0]}' with itself."
                )
            type_names = list(boundary.boundary_type)
            for sub in boundary.sub_boundaries:
                type_names.extend(sub.boundary_type)
            for name in type_names:
                if name not in self.boundary_types:
                    raise UnknownConstructionError(name, boundary.index)
            A_net = boundary.net_area.to('m ** 2').m
            if A_net < -1e-9 * max(boundary.area.to('m ** 2').m, 1.0):
                raise ConfigurationError(
                    f"Boundary {boundary.index} between zones "
                    f"'{boundary.zones[0]}' and '{boundary.zones[1]}' has less "
                    f"area than the sum of its sub-boundaries."
                )

    @classmethod
    def from_dict(cls, d: Mapping) -> BuildingConfiguration:
        """Creates a `BuildingConfiguration` from a hierarchical document with
        sections `materials`, `boundary_types`, `zones` and `boundaries`.

        Numbers in the document are in SI units. A zone is declared either as
        a mapping `{volume, adjacent_zones?}` or as `None`/null, which declares
        a pseudo-zone. An entry of `adjacent_zones`, `{suffix, boundary_type,
        area}`, declares a zero-volume zone named '<zone>/<suffix>' which is
        connected to the zone by a boundary of the given type and area.

        Raises
        ------
        ConfigurationError
            If the document is malformed or incomplete.
        UnknownZoneError, UnknownConstructionError
            If a boundary refers to a zone or boundary type that is not
            declared.
        """
        if not isinstance(d, Mapping):
            raise ConfigurationError("A building configuration must be a mapping.")
        materials = MaterialLibrary.from_dict(d.get('materials'))
        boundary_types_d = d.get('boundary_types') or {}
        if not isinstance(boundary_types_d, Mapping):
            raise ConfigurationError("Section 'boundary_types' must be a mapping.")
        boundary_types = {
            name: build_construction(name, bt, materials)
            for name, bt in boundary_types_d.items()
        }
        boundaries_d = d.get('boundaries') or []
        if isinstance(boundaries_d, (str, Mapping)) or not isinstance(boundaries_d, Sequence):
            raise ConfigurationError("Section 'boundaries' must be a list.")
        boundaries = [
            Boundary.from_dict(i, bd)
            for i, bd in enumerate(boundaries_d)
        ]
        zones_d = d.get('zones') or {}
        if not isinstance(zones_d, Mapping):
            raise ConfigurationError("Section 'zones' must be a mapping.")
        zones = []
        for name, zd in zones_d.items():
            if zd is None:
                zones.append(Zone(name))
                continue
            if not isinstance(zd, Mapping) or 'volume' not in zd:
                raise ConfigurationError(
                    f"Zone '{name}' must be null or a mapping with a volume."
                )
            zones.append(Zone(name, zd['volume']))
            for adj in zd.get('adjacent_zones') or ():
                what = f"Zone '{name}', adjacent zone"
                try:
                    adj_name = f"{name}/{adj['suffix']}"
                    zones.append(Zone(adj_name, Q_(0.0, 'm ** 3')))
                    boundaries.append(Boundary(
                        index=len(boundaries),
                        boundary_type=_type_names(adj['boundary_type'], what),
                        zones=(name, adj_name),
                        area=_area(adj['area'], what)
                    ))
                except (KeyError, TypeError) as err:
                    raise ConfigurationError(f"{what} is malformed ({err}).") from None
        return cls(materials, boundary_types, tuple(zones), tuple(boundaries))

    @classmethod
    def from_json(cls, file_path: Path | str) -> BuildingConfiguration:
        """Reads a building configuration from a JSON file."""
        with open(file_path, 'r', encoding='utf-8') as fh:
            d = json.load(fh)
        return cls.from_dict(d)

    def get_zone(self, name: str) -> Zone:
        for zone in self.zones:
            if zone.name == name:
                return zone
        raise UnknownZoneError(name)

    @property
    def real_zones(self) -> tuple[Zone, ...]:
        return tuple(zone for zone in self.zones if not zone.is_pseudo)

    @property
    def pseudo_zones(self) -> tuple[Zone, ...]:
        return tuple(zone for zone in self.zones if zone.is_pseudo)

    def with_material(self, name: str, **props) -> BuildingConfiguration:
        """Returns a new configuration in which the properties `k`, `c` and/or
        `rho` of material `name` are replaced. All boundary types that use the
        material are rebuilt with the new material.
        """
        materials = self.materials.replace(name, **props)
        boundary_types = {}
        for bt_name, constr in self.boundary_types.items():
            if isinstance(constr, LayeredConstruction):
                layers = tuple(
                    Layer(materials[layer.material.name], layer.t)
                    if isinstance(layer, Layer) else layer
                    for layer in constr.layers
                )
                constr = LayeredConstruction(constr.name, layers)
            boundary_types[bt_name] = constr
        return replace(self, materials=materials, boundary_types=boundary_types)

    def with_boundary_area(
        self,
        index: int,
        area: Quantity | float
    ) -> BuildingConfiguration:
        """Returns a new configuration in which the gross area of the boundary
        with the given index is replaced by `area`.
        """
        boundaries = list(self.boundaries)
        for i, boundary in enumerate(boundaries):
            if boundary.index == index:
                A = _area(area, f"Boundary {index}")
                boundaries[i] = replace(boundary, area=A)
                break
        else:
            raise ConfigurationError(f"There is no boundary with index {index}.")
        return replace(self, boundaries=tuple(boundaries))

    def without_boundary(self, index: int) -> BuildingConfiguration:
        """Returns a new configuration without the boundary with the given
        index. The other boundaries keep their index.
        """
        boundaries = tuple(b for b in self.boundaries if b.index != index)
        if len(boundaries) == len(self.boundaries):
            raise ConfigurationError(f"There is no boundary with index {index}.")
        return replace(self, boundaries=boundaries)
