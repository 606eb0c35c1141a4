import pytest
from rcbuilding import Quantity

Q_ = Quantity


@pytest.fixture
def materials() -> dict:
    return {
        'wood_fibre': {
            'thermal_conductivity': 0.059,
            'specific_heat_capacity': 1000.0,
            'density': 660.0
        },
        'concrete': {
            'thermal_conductivity': 1.4,
            'specific_heat_capacity': 880.0,
            'density': 2300.0
        },
        'insulation': {
            'thermal_conductivity': 0.035,
            'specific_heat_capacity': 1450.0,
            'density': 30.0
        }
    }


@pytest.fixture
def entrance_config(materials) -> dict:
    """A single zone 'entrance' with one wood-fibre wall to the outside, in
    which there is a window with zero area.
    """
    return {
        'materials': materials,
        'boundary_types': {
            'wall': {'layers': [{'material': 'wood_fibre', 'thickness': 0.44}]},
            'window': {'u': 0.74, 'g': 0.5}
        },
        'zones': {
            'entrance': {'volume': 23.383},
            'outside': None
        },
        'boundaries': [
            {
                'boundary_type': 'wall',
                'zones': ['outside', 'entrance'],
                'area': 5.0,
                'sub_boundaries': [{'boundary_type': 'window', 'area': 0.0}]
            }
        ]
    }


@pytest.fixture
def house_config(materials) -> dict:
    """Two zones, exterior walls with windows, an interior wall, a floor on
    the ground with floor heating and a roof of a composite construction.
    """
    return {
        'materials': materials,
        'boundary_types': {
            'ext_wall': {'layers': [
                {'material': 'concrete', 'thickness': 0.14},
                {'material': 'insulation', 'thickness': 0.12},
                {'material': 'concrete', 'thickness': 0.09}
            ]},
            'int_wall': {'layers': [{'material': 'concrete', 'thickness': 0.1}]},
            'floor': {'layers': [
                {'material': 'insulation', 'thickness': 0.1},
                {'material': 'concrete', 'thickness': 0.15},
                {'marker': 'heating'},
                {'material': 'concrete', 'thickness': 0.05}
            ]},
            'roof_deck': {'layers': [{'material': 'concrete', 'thickness': 0.2}]},
            'roof_insulation': {'layers': [{'material': 'insulation', 'thickness': 0.2}]},
            'window': {'u': 1.1, 'g': 0.6},
            'door': {'u': 2.0}
        },
        'zones': {
            'living': {'volume': 120.0},
            'bedroom': {'volume': 40.0},
            'outside': None,
            'ground': None
        },
        'boundaries': [
            {
                'boundary_type': 'ext_wall',
                'zones': ['outside', 'living'],
                'area': 30.0,
                'sub_boundaries': [
                    {'boundary_type': 'window', 'area': 6.0},
                    {'boundary_type': 'door', 'area': 2.0}
                ]
            },
            {
                'boundary_type': 'ext_wall',
                'zones': ['outside', 'bedroom'],
                'area': 15.0,
                'sub_boundaries': [{'boundary_type': 'window', 'area': 2.0}]
            },
            {
                'boundary_type': 'int_wall',
                'zones': ['living', 'bedroom'],
                'area': 10.0
            },
            {
                'boundary_type': 'floor',
                'zones': ['ground', 'living'],
                'area': 50.0
            },
            {
                'boundary_type': ['roof_insulation', 'roof_deck'],
                'zones': ['outside', 'bedroom'],
                'area': 20.0
            }
        ]
    }
