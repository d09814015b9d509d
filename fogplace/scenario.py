"""Scenario loading: topology, application graph, sensors and actuators."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from fogplace.power import LinearPowerModel
from fogplace.state import Actuator, Application, Direction, Node, Sensor, Topology, safe_float

logger = logging.getLogger(__name__)


@dataclass
class Scenario:
    topology: Topology
    application: Application
    sensors: List[Sensor] = field(default_factory=list)
    actuators: List[Actuator] = field(default_factory=list)
    static_mapping: Dict[str, List[str]] = field(default_factory=dict)
    controller: Dict[str, Any] = field(default_factory=dict)


# Environmental monitoring: one cloud data centre, two fog gateways, ten
# sensors and an alert display.
ENV_MONITOR: Dict[str, Any] = {
    "application": "env-monitor",
    "nodes": [
        {"id": 1, "name": "cloud-dc", "level": 0, "capacity": [40000], "busy_w": 16.0, "idle_w": 13.0},
        {"id": 2, "name": "fog-1", "level": 1, "parent": "cloud-dc", "uplink_latency_ms": 20.0,
         "capacity": [10000], "busy_w": 107.339, "idle_w": 83.4333},
        {"id": 3, "name": "fog-2", "level": 1, "parent": "cloud-dc", "uplink_latency_ms": 20.0,
         "capacity": [10000], "busy_w": 107.339, "idle_w": 83.4333},
    ],
    "modules": [
        {"name": "env-processor", "required_capacity": 1000, "adaptive": True},
        {"name": "env-storage", "required_capacity": 500},
    ],
    "edges": [
        {"source": "SENSOR_AQI", "destination": "env-processor", "work_length": 3000, "payload_size": 500,
         "direction": "up", "tuple_type": "AQI_DATA"},
        {"source": "SENSOR_TEMP", "destination": "env-processor", "work_length": 3000, "payload_size": 500,
         "direction": "up", "tuple_type": "TEMP_DATA"},
        {"source": "SENSOR_HUM", "destination": "env-processor", "work_length": 3000, "payload_size": 500,
         "direction": "up", "tuple_type": "HUM_DATA"},
        {"source": "env-processor", "destination": "env-storage", "work_length": 2000, "payload_size": 500,
         "direction": "up", "tuple_type": "ANALYTICS"},
        {"source": "env-processor", "destination": "ALERT_DISPLAY", "work_length": 100, "payload_size": 100,
         "direction": "down", "tuple_type": "ALERT"},
    ],
    "loops": [
        ["SENSOR_AQI", "env-processor", "ALERT_DISPLAY"],
        ["SENSOR_TEMP", "env-processor", "ALERT_DISPLAY"],
        ["SENSOR_HUM", "env-processor", "ALERT_DISPLAY"],
    ],
    "sensors": [
        {"name": f"s-{i}", "tuple_type": "SENSOR_" + ("AQI", "TEMP", "HUM")[i % 3],
         "gateway": "fog-1" if i < 5 else "fog-2", "interval_ms": 5.0, "latency_ms": 2.0}
        for i in range(10)
    ],
    "actuators": [
        {"name": "actuators/alert", "actuator_type": "ALERT_DISPLAY", "gateway": "fog-1", "latency_ms": 1.0},
    ],
    "static_mapping": {"env-storage": ["cloud-dc"]},
}


def _build_node(entry: Dict[str, Any], parents: Dict[str, int]) -> Node:
    power = None
    if "busy_w" in entry or "idle_w" in entry:
        busy = safe_float(entry.get("busy_w"), 0.0)
        power = LinearPowerModel(busy_w=busy, idle_w=safe_float(entry.get("idle_w"), busy))
    capacity = entry.get("capacity", [])
    if not isinstance(capacity, list):
        capacity = [capacity]
    parent = entry.get("parent")
    if parent is not None and parent not in parents:
        raise ValueError(f"Node '{entry['name']}' references unknown parent '{parent}'")
    return Node(
        id=int(entry["id"]),
        name=str(entry["name"]),
        level=int(entry.get("level", 0)),
        uplink_latency_ms=entry.get("uplink_latency_ms", 0.0),
        pe_capacity=[float(c) for c in capacity],
        power_model=power,
        parent_id=parents.get(parent) if parent is not None else None,
        centralized=entry.get("centralized"),
    )


def scenario_from_dict(data: Dict[str, Any]) -> Scenario:
    try:
        topology = Topology()
        parents: Dict[str, int] = {}
        for entry in data.get("nodes", []):
            node = _build_node(entry, parents)
            topology.add_node(node)
            parents[node.name] = node.id

        application = Application(str(data.get("application", "app")))
        for entry in data.get("modules", []):
            application.add_module(
                entry["name"],
                required_capacity=safe_float(entry.get("required_capacity"), 0.0),
                adaptive=bool(entry.get("adaptive", False)),
            )
        for entry in data.get("edges", []):
            application.add_edge(
                entry["source"],
                entry["destination"],
                work_length=safe_float(entry.get("work_length"), 0.0),
                payload_size=safe_float(entry.get("payload_size"), 0.0),
                direction=Direction(str(entry.get("direction", "up")).lower()),
                tuple_type=entry.get("tuple_type"),
            )
        for elements in data.get("loops", []):
            application.add_loop(elements)

        def gateway_id(name: str) -> int:
            if name not in parents:
                raise ValueError(f"Unknown gateway node '{name}'")
            return parents[name]

        sensors = [
            Sensor(
                name=entry["name"],
                tuple_type=entry["tuple_type"],
                gateway_id=gateway_id(entry["gateway"]),
                interval_ms=safe_float(entry.get("interval_ms"), 5.0),
                latency_ms=safe_float(entry.get("latency_ms"), 0.0),
            )
            for entry in data.get("sensors", [])
        ]
        actuators = [
            Actuator(
                name=entry["name"],
                actuator_type=entry["actuator_type"],
                gateway_id=gateway_id(entry["gateway"]),
                latency_ms=safe_float(entry.get("latency_ms"), 0.0),
            )
            for entry in data.get("actuators", [])
        ]
    except KeyError as e:
        raise ValueError(f"Scenario entry missing required field {e}")

    return Scenario(
        topology=topology,
        application=application,
        sensors=sensors,
        actuators=actuators,
        static_mapping={k: list(v) for k, v in (data.get("static_mapping") or {}).items()},
        controller=dict(data.get("controller") or {}),
    )


def load_scenario(path: str) -> Scenario:
    """Load a scenario description from a YAML file."""
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Scenario file {path} must contain a mapping")
    scenario = scenario_from_dict(data)
    logger.info(
        f"Loaded scenario '{scenario.application.name}' from {path}: "
        f"{len(scenario.topology.list_nodes())} nodes, {len(scenario.application.modules)} modules"
    )
    return scenario


def env_monitor_scenario(overrides: Optional[Dict[str, Any]] = None) -> Scenario:
    data = copy.deepcopy(ENV_MONITOR)
    data.update(overrides or {})
    return scenario_from_dict(data)
