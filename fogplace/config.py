"""Controller configuration: defaults, optional YAML file, environment overrides."""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from fogplace.state import ControllerState, Mode, Weights

logger = logging.getLogger(__name__)

ENV_PREFIX = "FOGPLACE_"
CONFIG_ENV = "FOGPLACE_CONFIG"

_POLICIES = ("adaptive", "centralized", "distributed")
_ORDERS = ("node_id", "given")
_STRING_KEYS = ("policy", "candidate_order", "initial_mode")


@dataclass
class ControllerConfig:
    alpha: float = 0.6
    beta: float = 0.3
    gamma: float = 0.1
    hysteresis: float = 1.0
    tau_latency_ms: float = 300.0
    tau_energy_j: float = 2.0e5
    interval_ms: float = 50.0
    rate_per_million_work_units: float = 0.01
    latency_dead_zone_ms: float = 0.0
    energy_dead_zone_j: float = 0.0
    policy: str = "adaptive"
    candidate_order: str = "node_id"
    initial_mode: str = "distributed"

    def validate(self) -> "ControllerConfig":
        for key in ("alpha", "beta", "gamma", "hysteresis", "latency_dead_zone_ms",
                    "energy_dead_zone_j", "rate_per_million_work_units"):
            if getattr(self, key) < 0:
                raise ValueError(f"'{key}' must be non-negative")
        if self.interval_ms <= 0:
            raise ValueError("'interval_ms' must be positive")
        if self.policy not in _POLICIES:
            raise ValueError(f"unknown policy '{self.policy}', expected one of {_POLICIES}")
        if self.candidate_order not in _ORDERS:
            raise ValueError(f"unknown candidate_order '{self.candidate_order}'")
        if self.initial_mode not in {m.value for m in Mode}:
            raise ValueError(f"unknown initial_mode '{self.initial_mode}'")
        return self

    @property
    def weights(self) -> Weights:
        return Weights(alpha=self.alpha, beta=self.beta, gamma=self.gamma)

    def controller_state(self) -> ControllerState:
        return ControllerState(
            mode=Mode(self.initial_mode),
            weights=self.weights,
            hysteresis=self.hysteresis,
            tau_latency_ms=self.tau_latency_ms,
            tau_energy_j=self.tau_energy_j,
            latency_dead_zone_ms=self.latency_dead_zone_ms,
            energy_dead_zone_j=self.energy_dead_zone_j,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(key: str, value: Any) -> Any:
    if key in _STRING_KEYS:
        return str(value).strip().lower()
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be numeric, got {value!r}")


def config_from_dict(data: Mapping[str, Any]) -> ControllerConfig:
    known = {f.name for f in fields(ControllerConfig)}
    values: Dict[str, Any] = {}
    for key, value in (data or {}).items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key '{key}'")
            continue
        values[key] = _coerce(key, value)
    return ControllerConfig(**values).validate()


def load_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, Any]] = None,
) -> ControllerConfig:
    """Load defaults, then ``base`` (e.g. a scenario's controller section),
    then the YAML file, then ``FOGPLACE_<KEY>`` overrides."""
    env = os.environ if env is None else env
    path = path or env.get(CONFIG_ENV)

    data: Dict[str, Any] = dict(base or {})
    if path:
        config_path = Path(path)
        if config_path.exists():
            with open(config_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"config file {path} must contain a mapping")
            data.update(loaded.get("controller", loaded))
            logger.info(f"Loaded controller config from {path}")
        else:
            logger.warning(f"Config file {path} not found, using defaults")

    for f in fields(ControllerConfig):
        override = env.get(ENV_PREFIX + f.name.upper())
        if override is not None:
            data[f.name] = override

    return config_from_dict(data)
