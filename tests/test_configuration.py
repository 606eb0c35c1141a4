import copy
import dataclasses
import json
import pytest
from rcbuilding import (
    Quantity,
    BuildingConfiguration,
    ConfigurationError,
    UnknownZoneError,
    UnknownConstructionError
)

Q_ = Quantity


def test_from_dict(house_config):
    config = BuildingConfiguration.from_dict(house_config)
    assert [z.name for z in config.real_zones] == ['living', 'bedroom']
    assert [z.name for z in config.pseudo_zones] == ['outside', 'ground']
    assert len(config.boundaries) == 5
    assert config.boundaries[4].boundary_type == ('roof_insulation', 'roof_deck')
    assert config.boundaries[0].net_area.to('m ** 2').m == pytest.approx(22.0)


def test_undeclared_outside_is_a_pseudo_zone(entrance_config):
    del entrance_config['zones']['outside']
    config = BuildingConfiguration.from_dict(entrance_config)
    assert config.get_zone('outside').is_pseudo


def test_unknown_zone(house_config):
    house_config['boundaries'][2]['zones'] = ['living', 'attic']
    with pytest.raises(UnknownZoneError) as exc_info:
        BuildingConfiguration.from_dict(house_config)
    assert exc_info.value.boundary_index == 2
    assert exc_info.value.name == 'attic'


def test_unknown_construction(house_config):
    house_config['boundaries'][1]['sub_boundaries'][0]['boundary_type'] = 'skylight'
    with pytest.raises(UnknownConstructionError) as exc_info:
        BuildingConfiguration.from_dict(house_config)
    assert exc_info.value.boundary_index == 1
    assert exc_info.value.name == 'skylight'
    assert isinstance(exc_info.value, ConfigurationError)


def test_sub_boundaries_larger_than_boundary(house_config):
    house_config['boundaries'][1]['sub_boundaries'][0]['area'] = 16.0
    with pytest.raises(ConfigurationError, match='Boundary 1'):
        BuildingConfiguration.from_dict(house_config)


def test_sub_boundaries_may_fill_the_boundary(house_config):
    house_config['boundaries'][1]['sub_boundaries'][0]['area'] = 15.0
    config = BuildingConfiguration.from_dict(house_config)
    assert config.boundaries[1].net_area.m == pytest.approx(0.0)


@pytest.mark.parametrize('path, value', [
    (('zones', 'living'), {'volume': -1.0}),
    (('zones', 'living'), {'height': 2.5}),
    (('boundaries', 0, 'area'), -2.0),
    (('boundaries', 0, 'zones'), ['living']),
    (('boundaries', 2, 'zones'), ['living', 'living']),
])
def test_malformed_configuration(house_config, path, value):
    d = house_config
    for key in path[:-1]:
        d = d[key]
    d[path[-1]] = value
    with pytest.raises(ConfigurationError):
        BuildingConfiguration.from_dict(house_config)


def test_missing_key(house_config):
    del house_config['boundaries'][0]['area']
    with pytest.raises(ConfigurationError, match='area'):
        BuildingConfiguration.from_dict(house_config)


def test_adjacent_zones(house_config):
    house_config['zones']['living']['adjacent_zones'] = [
        {'suffix': 'closet', 'boundary_type': 'int_wall', 'area': 4.0}
    ]
    config = BuildingConfiguration.from_dict(house_config)
    closet = config.get_zone('living/closet')
    assert closet.volume.m == 0.0
    assert not closet.is_pseudo
    boundary = config.boundaries[-1]
    assert boundary.index == 5
    assert boundary.zones == ('living', 'living/closet')


def test_configuration_is_immutable(house_config):
    config = BuildingConfiguration.from_dict(house_config)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.zones = ()
    with pytest.raises(TypeError):
        config.boundary_types['door'] = None


def test_with_material(house_config):
    config = BuildingConfiguration.from_dict(house_config)
    new_config = config.with_material('insulation', k=0.02)
    assert config.materials['insulation'].k.m == pytest.approx(0.035)
    layer = new_config.boundary_types['ext_wall'].layers[1]
    assert layer.material.k.m == pytest.approx(0.02)


def test_with_boundary_area(house_config):
    config = BuildingConfiguration.from_dict(house_config)
    new_config = config.with_boundary_area(2, Q_(12.0, 'm ** 2'))
    assert new_config.boundaries[2].area.m == pytest.approx(12.0)
    assert config.boundaries[2].area.m == pytest.approx(10.0)
    with pytest.raises(ConfigurationError):
        config.with_boundary_area(17, 1.0)
    # the sub-boundaries of boundary 0 need 8 m²
    with pytest.raises(ConfigurationError):
        config.with_boundary_area(0, 5.0)


def test_without_boundary_keeps_indices(house_config):
    config = BuildingConfiguration.from_dict(house_config)
    new_config = config.without_boundary(1)
    assert [b.index for b in new_config.boundaries] == [0, 2, 3, 4]


def test_from_json(tmp_path, house_config):
    file_path = tmp_path / 'house.json'
    file_path.write_text(json.dumps(house_config), encoding='utf-8')
    config = BuildingConfiguration.from_json(file_path)
    assert config == BuildingConfiguration.from_dict(copy.deepcopy(house_config))
