import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest
import yaml

from fogplace.config import ControllerConfig, config_from_dict, load_config
from fogplace.state import Mode


def test_defaults():
    config = load_config(env={})
    assert config == ControllerConfig()
    state = config.controller_state()
    assert state.mode is Mode.DISTRIBUTED
    assert (state.weights.alpha, state.weights.beta, state.weights.gamma) == (0.6, 0.3, 0.1)
    assert state.hysteresis == 1.0
    assert state.tau_latency_ms == 300.0
    assert state.tau_energy_j == 2.0e5
    assert config.interval_ms == 50.0


def test_yaml_controller_section(tmp_path):
    path = tmp_path / "controller.yaml"
    path.write_text(yaml.safe_dump({"controller": {"tau_latency_ms": 150, "policy": "Centralized"}}))
    config = load_config(str(path), env={})
    assert config.tau_latency_ms == 150.0
    assert config.policy == "centralized"


def test_yaml_top_level_mapping(tmp_path):
    path = tmp_path / "controller.yaml"
    path.write_text(yaml.safe_dump({"hysteresis": 0.5, "candidate_order": "given"}))
    config = load_config(str(path), env={})
    assert config.hysteresis == 0.5
    assert config.candidate_order == "given"


def test_layering_base_then_file_then_env(tmp_path):
    path = tmp_path / "controller.yaml"
    path.write_text(yaml.safe_dump({"controller": {"tau_latency_ms": 150, "alpha": 0.9}}))
    env = {"FOGPLACE_TAU_LATENCY_MS": "120", "FOGPLACE_CONFIG": str(path)}
    config = load_config(env=env, base={"tau_latency_ms": 500, "alpha": 0.2, "beta": 0.7})
    assert config.tau_latency_ms == 120.0
    assert config.alpha == 0.9
    assert config.beta == 0.7


def test_missing_file_falls_back_to_defaults(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="fogplace.config"):
        config = load_config(str(tmp_path / "absent.yaml"), env={})
    assert config == ControllerConfig()
    assert "not found" in caplog.text


def test_non_mapping_file_rejected(tmp_path):
    path = tmp_path / "controller.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(str(path), env={})


@pytest.mark.parametrize("data", [
    {"alpha": -0.1},
    {"hysteresis": -1},
    {"interval_ms": 0},
    {"policy": "random"},
    {"candidate_order": "shuffled"},
    {"initial_mode": "hybrid"},
    {"tau_latency_ms": "fast"},
])
def test_invalid_values_rejected(data):
    with pytest.raises(ValueError):
        config_from_dict(data)


def test_unknown_keys_ignored_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="fogplace.config"):
        config = config_from_dict({"tau_latency_ms": 250, "sampling": 3})
    assert config.tau_latency_ms == 250.0
    assert "sampling" in caplog.text


def test_initial_mode_carried_into_state():
    state = config_from_dict({"initial_mode": "centralized", "latency_dead_zone_ms": 25}).controller_state()
    assert state.mode is Mode.CENTRALIZED
    assert state.latency_dead_zone_ms == 25.0
