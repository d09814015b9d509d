"""Policy comparison: centralized vs distributed vs adaptive placement.

Runs the environmental-monitoring scenario (or a scenario file) under each
controller policy on the reference substrate and records the shutdown
reports plus the tick timeline.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from fogplace.config import load_config
from fogplace.controller import POLICIES
from fogplace.des_simulator import run_simulation
from fogplace.report import format_report
from fogplace.scenario import Scenario, env_monitor_scenario, load_scenario


def _scenario(path: Optional[str]) -> Scenario:
	return load_scenario(path) if path else env_monitor_scenario()


def run(
	duration_ms: float = 2000.0,
	output_dir: str = "reports/experiments",
	scenario_path: Optional[str] = None,
) -> Dict[str, Any]:
	print(f"=== Policy comparison ===")
	print(f"Duration: {duration_ms}ms")
	print()
	
	results: Dict[str, Any] = {}
	for policy in POLICIES:
		scenario = _scenario(scenario_path)
		config = load_config(env={}, base={**scenario.controller, "policy": policy})
		outcome = run_simulation(scenario, config, duration_ms)
		print(f"--- policy={policy} ---")
		print(format_report(outcome.report))
		print()
		
		summary = outcome.report.to_dict()
		summary["dropped_tuples"] = outcome.simulation.dropped_tuples
		summary["enactments"] = outcome.simulation.enactments
		summary["timeline"] = [rec.to_dict() for rec in outcome.controller.history]
		results[policy] = summary
	
	out = Path(output_dir)
	out.mkdir(parents=True, exist_ok=True)
	path = out / "policy_comparison.json"
	path.write_text(json.dumps(results, indent=2))
	print(f"Saved results to {path}")
	return results


def main() -> None:
	import argparse
	
	parser = argparse.ArgumentParser()
	parser.add_argument("--duration-ms", type=float, default=2000.0)
	parser.add_argument("--output-dir", default="reports/experiments")
	parser.add_argument("--scenario", default=None, help="scenario YAML (default: built-in env-monitor)")
	args = parser.parse_args()
	run(args.duration_ms, args.output_dir, args.scenario)


if __name__ == "__main__":
	main()
