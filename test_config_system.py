#!/usr/bin/env python3
"""
Configuration system tests
"""
import json

import numpy as np
import pytest
import yaml

from velocity_control import ConfigValidationError, VelocityController
from velocity_control.config import ControllerConfig, LatencyConfig, VehicleConfig
from velocity_control.controllers import static_feedforward_gain
from velocity_control.latency import LatencyMonitor, LoopbackLink
from velocity_control.utils import ConfigManager, load_config


def test_controller_defaults_build_params():
    config = ControllerConfig()
    params = config.to_params()

    assert config.frequency == 50
    assert config['pid']['kp'] == [0.45, 0.45]
    assert params.period == pytest.approx(0.02)
    assert np.all(params.kp == 0.45)
    assert params.lowpass is True
    assert params.median is False
    assert params.feedforward_gain == pytest.approx(static_feedforward_gain())


def test_partial_overrides_keep_other_defaults():
    config = ControllerConfig({'pid': {'kp': [0.6, 0.5]}, 'filter': {'median': True}})

    assert config.pid['kp'] == [0.6, 0.5]
    assert config.pid['ki'] == [0.15, 0.15]
    assert config.filter['median'] is True
    assert config.filter['alpha'] == 0.5
    assert config.to_params().median is True


def test_vehicle_constants_drive_feedforward_gain():
    vehicle = VehicleConfig({'max_tilt_deg': 24.0})
    params = ControllerConfig().to_params(vehicle)
    assert params.feedforward_gain == pytest.approx(static_feedforward_gain() / 2)


def test_update_rolls_back_on_invalid_value():
    config = ControllerConfig()
    with pytest.raises(ConfigValidationError):
        config.update({'pid': {'kp': [-1.0, 0.45]}})

    assert config.pid['kp'] == [0.45, 0.45]
    assert config['pid']['kp'] == [0.45, 0.45]

    config.update({'windup_limit': [0.3, 0.3]})
    assert config.to_params().windup_limit.tolist() == [0.3, 0.3]


@pytest.mark.parametrize("config_cls, values", [
    (ControllerConfig, {'frequency': 0}),
    (ControllerConfig, {'set_point_weight': 0.0}),
    (VehicleConfig, {'gravity': 0.0}),
    (VehicleConfig, {'measurement_noise': -0.1}),
    (LatencyConfig, {'period': 0.0}),
    (LatencyConfig, {'port': 70000}),
    (LatencyConfig, {'initial_latency': -1.0}),
])
def test_invalid_sections_fail_validation(config_cls, values):
    with pytest.raises(ConfigValidationError):
        config_cls(values).validate()


def test_yaml_save_and_load(tmp_path):
    original = ControllerConfig({'frequency': 20, 'pid': {'kd': [0.2, 0.3]}})
    path = tmp_path / "controller.yaml"
    original.save(path)

    loaded = ControllerConfig.load(path)
    assert loaded.to_dict() == original.to_dict()
    assert loaded.to_params().period == pytest.approx(0.05)


def test_json_save_and_load(tmp_path):
    path = tmp_path / "latency.json"
    LatencyConfig({'port': 9800}).save(path, format='json')

    with open(path) as f:
        assert json.load(f)['port'] == 9800
    assert LatencyConfig.load(path).port == 9800


def test_load_rejects_invalid_file(tmp_path):
    path = tmp_path / "vehicle.yaml"
    path.write_text(yaml.dump({'drag_gain': -0.1}))
    with pytest.raises(ConfigValidationError):
        VehicleConfig.load(path)


def test_unsupported_format(tmp_path):
    with pytest.raises(ValueError):
        ControllerConfig().save(tmp_path / "controller.ini", format='ini')
    with pytest.raises(ValueError):
        ControllerConfig.load(tmp_path / "controller.ini")


def test_load_config_from_combined_file(tmp_path):
    path = tmp_path / "flight.yaml"
    path.write_text(yaml.dump({
        'controller': {'frequency': 25, 'output_limit': [0.4, 0.4]},
        'vehicle': {'name': 'Test Quad'},
        'latency': {'period': 1.0},
    }))

    manager = load_config(path)
    assert manager.controller.frequency == 25
    assert manager.vehicle.name == 'Test Quad'
    assert manager.latency.period == 1.0
    assert manager.get_combined_config()['controller']['output_limit'] == [0.4, 0.4]


def test_load_config_rejects_invalid_combined_file(tmp_path):
    path = tmp_path / "flight.json"
    path.write_text(json.dumps({'controller': {'pid': {'kp': [0.0, 0.0]}}}))
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_save_configs_then_load_from_directory(tmp_path):
    manager = ConfigManager(tmp_path).load_default()
    manager.controller.update({'frequency': 100})
    manager.save_configs()

    assert (tmp_path / "default_controller.yaml").exists()
    assert (tmp_path / "default_vehicle.yaml").exists()
    assert (tmp_path / "default_latency.yaml").exists()

    reloaded = load_config(config_dir=tmp_path)
    assert reloaded.controller.frequency == 100
    assert reloaded.validate_all()


def test_load_config_without_files_uses_defaults(tmp_path):
    manager = load_config(config_dir=tmp_path / "missing")
    assert manager.get_combined_config() == {
        'controller': ControllerConfig().to_dict(),
        'vehicle': VehicleConfig().to_dict(),
        'latency': LatencyConfig().to_dict(),
    }


def test_manager_builds_components():
    manager = ConfigManager().load_default()
    link = LoopbackLink()
    monitor = manager.create_latency_monitor(link=link)
    controller = manager.create_controller(latency_source=monitor.current_latency)

    assert isinstance(monitor, LatencyMonitor)
    assert monitor.period == 0.5
    assert isinstance(controller, VelocityController)
    assert controller.params.period == pytest.approx(0.02)
    assert controller.latency_source == monitor.current_latency
