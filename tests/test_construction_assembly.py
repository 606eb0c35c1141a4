import math
import pytest
from rcbuilding import (
    Quantity,
    Material,
    MaterialLibrary,
    Layer,
    HeatingMarker,
    LayeredConstruction,
    ResistiveConstruction,
    resolve_construction,
    ConfigurationError,
    InvalidArgumentError
)
from rcbuilding.building import build_construction
from rcbuilding.building.construction_assembly import OUTER, INNER

Q_ = Quantity


@pytest.fixture
def library(materials) -> MaterialLibrary:
    return MaterialLibrary.from_dict(materials)


def test_single_layer(library):
    wall = LayeredConstruction('wall', (Layer(library['wood_fibre'], 0.44),))
    R, C = resolve_construction(wall, 5.0).as_tuple()
    assert R.to('K / W').m == pytest.approx(0.44 / (0.059 * 5.0))
    assert C.to('J / K').m == pytest.approx(660.0 * 1000.0 * 0.44 * 5.0)


def test_area_scaling(library):
    wall = LayeredConstruction('wall', (
        Layer(library['concrete'], 0.14),
        Layer(library['insulation'], 0.12)
    ))
    R1, C1 = resolve_construction(wall, Q_(4.0, 'm ** 2')).as_tuple()
    R2, C2 = resolve_construction(wall, Q_(8.0, 'm ** 2')).as_tuple()
    assert R2.m == pytest.approx(R1.m / 2)
    assert C2.m == pytest.approx(C1.m * 2)


def test_series_law(library):
    concrete = LayeredConstruction('c', (Layer(library['concrete'], 0.14),))
    insulation = LayeredConstruction('i', (Layer(library['insulation'], 0.12),))
    both = LayeredConstruction('ci', concrete.layers + insulation.layers)
    R_c, C_c = resolve_construction(concrete, 3.0).as_tuple()
    R_i, C_i = resolve_construction(insulation, 3.0).as_tuple()
    R, C = resolve_construction(both, 3.0).as_tuple()
    assert R.m == pytest.approx(R_c.m + R_i.m)
    assert C.m == pytest.approx(C_c.m + C_i.m)


def test_split_at_resistance_midpoint():
    # unit resistances: 0.1 / 0.1 = 1 and 0.3 / 0.1 = 3 K.m²/W; the midpoint
    # (2 K.m²/W) lies at one third of the second layer.
    a = Layer(Material('a', 0.1, 1000.0, 1000.0), 0.1)
    b = Layer(Material('b', 0.1, 500.0, 2000.0), 0.3)
    resolved = resolve_construction(LayeredConstruction('ab', (a, b)), 2.0)
    R_o, R_i = (R.m for R in resolved.R_halves)
    C_o, C_i = (C.m for C in resolved.C_halves)
    assert R_o == pytest.approx(1.0)
    assert R_i == pytest.approx(1.0)
    C_a = 1000.0 * 1000.0 * 0.1 * 2.0
    C_b = 500.0 * 2000.0 * 0.3 * 2.0
    assert C_o == pytest.approx(C_a + C_b / 3)
    assert C_i == pytest.approx(2 * C_b / 3)
    assert C_o + C_i == pytest.approx(resolved.C.m)


def test_heating_marker_half(library):
    concrete = Layer(library['concrete'], 0.1)
    insulation = Layer(library['insulation'], 0.1)
    outer = LayeredConstruction('f1', (concrete, HeatingMarker(), insulation))
    inner = LayeredConstruction('f2', (insulation, HeatingMarker(), concrete))
    assert resolve_construction(outer, 1.0).heating_half == OUTER
    assert resolve_construction(inner, 1.0).heating_half == INNER
    plain = LayeredConstruction('f3', (insulation, concrete))
    assert resolve_construction(plain, 1.0).heating_half is None


def test_heating_marker_has_no_resistance_nor_capacitance(library):
    layers = (Layer(library['concrete'], 0.1), Layer(library['insulation'], 0.1))
    with_marker = LayeredConstruction('f1', (layers[0], HeatingMarker(), layers[1]))
    without_marker = LayeredConstruction('f2', layers)
    assert resolve_construction(with_marker, 2.0).as_tuple() == \
        resolve_construction(without_marker, 2.0).as_tuple()


def test_resistive_construction():
    window = ResistiveConstruction('window', 1.1, 0.6)
    resolved = resolve_construction(window, 2.5)
    assert not resolved.massive
    assert resolved.R.m == pytest.approx(1 / (1.1 * 2.5))
    assert resolved.C.m == 0.0
    assert resolved.G.m == pytest.approx(1.1 * 2.5)
    assert resolved.g == pytest.approx(0.6)


def test_g_value_as_percentage():
    window = ResistiveConstruction('window', Q_(1.1, 'W / (m ** 2 * K)'), Q_(60, 'pct'))
    assert window.g == pytest.approx(0.6)
    with pytest.raises(ConfigurationError):
        ResistiveConstruction('window', 1.1, Q_(120, 'pct'))


def test_zero_area_is_an_open_connection(library):
    wall = LayeredConstruction('wall', (Layer(library['concrete'], 0.1),))
    resolved = resolve_construction(wall, 0.0)
    assert math.isinf(resolved.R.m)
    assert resolved.C.m == 0.0
    assert resolved.G.m == 0.0
    window = resolve_construction(ResistiveConstruction('window', 1.1), 0.0)
    assert math.isinf(window.R.m)


@pytest.mark.parametrize('area', [None, -1.0, float('inf'), Q_(2.0, 'm'), 'big'])
def test_invalid_area(library, area):
    wall = LayeredConstruction('wall', (Layer(library['concrete'], 0.1),))
    with pytest.raises(InvalidArgumentError):
        resolve_construction(wall, area)


def test_composite_construction(library):
    deck = LayeredConstruction('deck', (Layer(library['concrete'], 0.2),))
    insulation = LayeredConstruction('ins', (Layer(library['insulation'], 0.2),))
    door = ResistiveConstruction('door', 2.0)
    R_d, C_d = resolve_construction(deck, 4.0).as_tuple()
    R_i, C_i = resolve_construction(insulation, 4.0).as_tuple()
    resolved = resolve_construction([insulation, deck], 4.0)
    assert resolved.name == 'ins + deck'
    assert resolved.R.m == pytest.approx(R_d.m + R_i.m)
    assert resolved.C.m == pytest.approx(C_d.m + C_i.m)
    # a resistive member adds a massless series resistance
    resolved = resolve_construction([insulation, door], 4.0)
    assert resolved.R.m == pytest.approx(R_i.m + 1 / (2.0 * 4.0))
    assert resolved.C.m == pytest.approx(C_i.m)


def test_empty_composite_raises():
    with pytest.raises(ConfigurationError):
        resolve_construction([], 1.0)


def test_build_construction(library):
    constr = build_construction('floor', {'layers': [
        {'material': 'concrete', 'thickness': 0.1},
        {'marker': 'heating'},
        {'material': 'concrete', 'thickness': 0.05}
    ]}, library)
    assert isinstance(constr, LayeredConstruction)
    assert constr.has_heating
    constr = build_construction('window', {'u': 1.1, 'g': 0.6}, library)
    assert isinstance(constr, ResistiveConstruction)


@pytest.mark.parametrize('d', [
    {'layers': []},
    {'layers': [{'marker': 'heating'}]},
    {'layers': [{'material': 'unobtainium', 'thickness': 0.1}]},
    {'layers': [{'material': 'concrete'}]},
    {'layers': [{'material': 'concrete', 'thickness': 0.0}]},
    {'u': -1.0},
    {'u': 1.0, 'g': 1.5},
    {'g': 0.5},
])
def test_invalid_construction(library, d):
    with pytest.raises(ConfigurationError):
        build_construction('bad', d, library)
