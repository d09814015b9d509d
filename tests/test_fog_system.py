import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from app import seed_state
from fogplace.api import create_app
from fogplace.config import config_from_dict
from fogplace.controller import build_controller
from fogplace.des_simulator import EventLoop, run_simulation
from fogplace.report import format_report, write_csv
from fogplace.scenario import env_monitor_scenario, load_scenario, scenario_from_dict
from fogplace.state import Mode

SCENARIOS = Path(__file__).resolve().parents[1] / "scenarios"


def test_env_monitor_topology():
    scenario = env_monitor_scenario()
    topology = scenario.topology
    assert [n.name for n in topology.centralized_nodes()] == ["cloud-dc"]
    assert [n.name for n in topology.edge_nodes()] == ["fog-1", "fog-2"]
    assert len(scenario.sensors) == 10
    assert topology.path_latency_ms(3, 2) == pytest.approx(40.0)
    assert [m.name for m in scenario.application.adaptive_modules()] == ["env-processor"]


def test_load_three_tier_scenario():
    scenario = load_scenario(str(SCENARIOS / "three_tier.yaml"))
    topology = scenario.topology
    assert topology.path_latency_ms(3, 1) == pytest.approx(14.0)
    assert [n.id for n in topology.edge_nodes()] == [2, 3]
    assert scenario.controller["tau_latency_ms"] == 150.0


def test_scenario_errors():
    with pytest.raises(ValueError):
        scenario_from_dict({"nodes": [{"id": 1, "name": "fog", "parent": "missing"}]})
    with pytest.raises(ValueError):
        scenario_from_dict({"nodes": [{"name": "no-id"}]})
    with pytest.raises(ValueError):
        build_controller(
            env_monitor_scenario({"static_mapping": {"env-storage": ["nowhere"]}}), config_from_dict({})
        )


def test_event_loop_cancels_one_shot_timers():
    loop = EventLoop()
    fired = []
    loop.schedule(10.0, lambda: fired.append("a"))
    handle = loop.schedule(20.0, lambda: fired.append("b"))
    loop.cancel(handle)
    assert loop.run(100.0) == 100.0
    assert fired == ["a"]
    assert loop.pending() == 0


def test_adaptive_run_switches_mode():
    outcome = run_simulation(env_monitor_scenario(), config_from_dict({}), duration_ms=500.0)
    controller = outcome.controller
    report = outcome.report

    assert controller.ticks == 10
    assert not controller.running
    # fog processing alone is 300 ms, so the first tick already exceeds the threshold
    assert controller.history[0].mode is Mode.CENTRALIZED
    assert report.mode_changes >= 1
    assert all(avg > 0 for _, avg in report.loop_latencies)
    assert all(energy > 0 for _, energy in report.node_energy)


def test_pinned_policies_on_harness():
    distributed = run_simulation(env_monitor_scenario(), config_from_dict({"policy": "distributed"}), 300.0)
    assert distributed.report.placement["env-processor"] == [2, 3]
    assert distributed.report.placement["env-storage"] == [1]
    assert distributed.report.cost_units == 0.0
    assert distributed.report.mode_changes == 0
    assert distributed.simulation.dropped_tuples == 0

    centralized = run_simulation(env_monitor_scenario(), config_from_dict({"policy": "centralized"}), 300.0)
    assert centralized.report.placement["env-processor"] == [1]
    assert centralized.report.cost_units > 0
    assert centralized.simulation.enactments == 1

    cloud_latency = sum(avg for _, avg in centralized.report.loop_latencies)
    fog_latency = sum(avg for _, avg in distributed.report.loop_latencies)
    assert cloud_latency < fog_latency


def test_report_output(tmp_path):
    outcome = run_simulation(env_monitor_scenario(), config_from_dict({}), duration_ms=200.0)
    text = format_report(outcome.report)
    assert "APPLICATION LOOP DELAYS" in text
    assert "DEVICE ENERGY CONSUMPTION" in text
    assert "CLOUD COST" in text
    assert "[SENSOR_AQI, env-processor, ALERT_DISPLAY] --->" in text

    paths = write_csv(outcome.report, str(tmp_path))
    assert paths["loops"].read_text().startswith("loop,avg_ms")
    assert len(paths["energy"].read_text().strip().splitlines()) == 4


@pytest.fixture
def client():
    scenario = env_monitor_scenario()
    controller = build_controller(scenario, config_from_dict({}))
    seed_state(controller)
    app = create_app(controller)
    try:
        yield app.test_client()
    finally:
        controller.stop()


def loops_payload(avg_ms):
    loops = ["SENSOR_AQI", "SENSOR_TEMP", "SENSOR_HUM"]
    return {
        "loops": [{"modules": [s, "env-processor", "ALERT_DISPLAY"], "avg_ms": avg_ms} for s in loops],
        "node_energy_j": {"1": 10.0, "2": 20.0, "3": 30.0},
        "time_ms": 50,
    }


def test_placement_endpoint_returns_seeded_map(client):
    resp = client.get("/placement")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["mode"] == "distributed"
    assert data["placement"]["env-processor"] == [2, 3]
    assert data["placement"]["env-storage"] == [1]


def test_telemetry_then_evaluate_switches_mode(client):
    resp = client.post("/telemetry", json=loops_payload(350.0))
    assert resp.status_code == 200
    assert resp.get_json()["telemetry"]["cumulative_energy_j"] == pytest.approx(60.0)

    resp = client.post("/evaluate")
    data = resp.get_json()
    assert data["mode"] == "centralized"
    assert data["changed"] is True
    assert data["placement"]["env-processor"] == [1]

    history = client.get("/history").get_json()["ticks"]
    assert len(history) == 1
    assert history[0]["time_ms"] == 50.0

    report = client.get("/report").get_json()
    assert [entry["avg_ms"] for entry in report["loop_latencies"]] == [350.0, 350.0, 350.0]
    assert report["cost_units"] is None


def test_telemetry_rejects_malformed_body(client):
    assert client.post("/telemetry", data="not json").status_code == 400
    assert client.post("/telemetry", json={"loops": [{"avg_ms": 1.0}]}).status_code == 400


def test_score_endpoint(client):
    resp = client.post("/score", json={"module": "env-processor"})
    assert resp.status_code == 200
    data = resp.get_json()
    assert [c["node_id"] for c in data["candidates"]] == [1, 2, 3]
    assert data["selected"]["node"] == "cloud-dc"

    resp = client.post("/score", json={"module": "env-processor", "nodes": [2, 3]})
    assert resp.get_json()["selected"]["node_id"] == 2

    assert client.post("/score", json={}).status_code == 400
    assert client.post("/score", json={"module": "nope"}).status_code == 404
    assert client.post("/score", json={"module": "env-processor", "nodes": [99]}).status_code == 404


@pytest.mark.parametrize("body", [
    ["env-processor"],
    {"module": "env-processor", "nodes": ["abc"]},
    {"module": "env-processor", "nodes": [None]},
    {"module": "env-processor", "nodes": "2,3"},
    {"module": ["env-processor"]},
])
def test_score_rejects_malformed_bodies(client, body):
    resp = client.post("/score", json=body)
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_state_and_topology_endpoints(client):
    state = client.get("/state").get_json()
    assert state["policy"] == "adaptive"
    assert state["tau_latency_ms"] == 300.0

    nodes = client.get("/topology").get_json()["nodes"]
    assert {n["name"] for n in nodes} == {"cloud-dc", "fog-1", "fog-2"}
