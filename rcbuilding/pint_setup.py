"""Unit registry of `rcbuilding`.

All quantities of the package are created with `Quantity` of this registry,
which is also made the application registry of pint, so that quantities
created by user code with `pint.Quantity` can be mixed with them. Dimensionless
fractions can be expressed in `frac` or `pct` (e.g. the g-value of a window).
"""
import pint

UNITS = pint.UnitRegistry()
Quantity = UNITS.Quantity

unit_definitions = [
    'fraction = [] = frac',
    'percent = 1e-2 frac = % = pct',
]
for ud in unit_definitions:
    UNITS.define(ud)

pint.set_application_registry(UNITS)
