from __future__ import annotations

import math
import pint
from collections.abc import Mapping, Iterator
from dataclasses import dataclass
from rcbuilding import Quantity
from ..exceptions import ConfigurationError

Q_ = Quantity


def to_quantity(value: Quantity | float | int, unit: str, what: str) -> Quantity:
    """Returns `value` as a `Quantity` expressed in `unit`. Plain numbers are
    taken to be already expressed in `unit` (the configuration file uses SI
    units throughout).
    """
    if isinstance(value, Quantity):
        try:
            return value.to(unit)
        except pint.DimensionalityError as err:
            raise ConfigurationError(
                f"{what}: cannot convert {value} to '{unit}' ({err})."
            ) from None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(
            f"{what}: expected a number, got {value!r}."
        )
    return Q_(float(value), unit)


@dataclass(frozen=True)
class Material:
    """
    Immutable record of the physical properties of a named material.

    Attributes
    ----------
    name: str
        Name of the material in the material library.
    k: Quantity
        Thermal conductivity.
    c: Quantity
        Specific heat capacity.
    rho: Quantity
        Mass density.
    """
    name: str
    k: Quantity
    c: Quantity
    rho: Quantity

    def __post_init__(self):
        what = f"Material '{self.name}'"
        object.__setattr__(self, 'k', to_quantity(self.k, 'W / (m * K)', what))
        object.__setattr__(self, 'c', to_quantity(self.c, 'J / (kg * K)', what))
        object.__setattr__(self, 'rho', to_quantity(self.rho, 'kg / m ** 3', what))
        for label, value in (
            ('thermal_conductivity', self.k),
            ('specific_heat_capacity', self.c),
            ('density', self.rho)
        ):
            if not (math.isfinite(value.m) and value.m > 0.0):
                raise ConfigurationError(
                    f"{what}: {label} must be a finite value greater than "
                    f"zero, got {value:~P}."
                )

    @classmethod
    def from_dict(cls, name: str, d: Mapping) -> Material:
        """Creates a `Material` from its entry in the `materials` section of a
        building configuration, i.e. a mapping with keys
        `thermal_conductivity`, `specific_heat_capacity` and `density`.
        """
        if not isinstance(d, Mapping):
            raise ConfigurationError(
                f"Material '{name}' must be a mapping, got {type(d).__name__}."
            )
        try:
            return cls(
                name=name,
                k=d['thermal_conductivity'],
                c=d['specific_heat_capacity'],
                rho=d['density']
            )
        except KeyError as err:
            raise ConfigurationError(
                f"Material '{name}' is missing property {err}."
            ) from None

    @property
    def volumetric_heat_capacity(self) -> Quantity:
        """Returns the heat capacity per unit volume (rho * c)."""
        return (self.rho * self.c).to('J / (K * m ** 3)')


# Dry air at 20 °C and 101,325 Pa.
AIR = Material(
    name='air',
    k=Q_(0.02514, 'W / (m * K)'),
    c=Q_(1006.0, 'J / (kg * K)'),
    rho=Q_(1.204, 'kg / m ** 3')
)


class MaterialLibrary(Mapping):
    """Read-only mapping of material names to `Material` objects."""

    def __init__(self, materials: Mapping[str, Material] | None = None) -> None:
        self._materials: dict[str, Material] = dict(materials or {})

    @classmethod
    def from_dict(cls, d: Mapping[str, Mapping] | None) -> MaterialLibrary:
        """Creates the material library from the `materials` section of a
        building configuration.
        """
        if d is None:
            return cls()
        if not isinstance(d, Mapping):
            raise ConfigurationError("Section 'materials' must be a mapping.")
        return cls({
            name: props if isinstance(props, Material) else Material.from_dict(name, props)
            for name, props in d.items()
        })

    def __getitem__(self, name: str) -> Material:
        try:
            return self._materials[name]
        except KeyError:
            raise ConfigurationError(f"Unknown material '{name}'.") from None

    def __contains__(self, name: object) -> bool:
        return name in self._materials

    def get(self, name: str, default: Material | None = None) -> Material | None:
        return self._materials.get(name, default)

    def __iter__(self) -> Iterator[str]:
        return iter(self._materials)

    def __len__(self) -> int:
        return len(self._materials)

    def __repr__(self) -> str:
        return f"MaterialLibrary({list(self._materials)})"

    @property
    def air(self) -> Material:
        """Returns the material used for the zone air. This is the material
        named 'air' if the library has one, otherwise dry air at 20 °C.
        """
        return self._materials.get('air', AIR)

    def replace(self, name: str, **props) -> MaterialLibrary:
        """Returns a new library in which the properties of material `name`
        are replaced by the keyword arguments given (any of `k`, `c`, `rho`).
        """
        material = self[name]
        new_material = Material(
            name=name,
            k=props.get('k', material.k),
            c=props.get('c', material.c),
            rho=props.get('rho', material.rho)
        )
        materials = dict(self._materials)
        materials[name] = new_material
        return MaterialLibrary(materials)
