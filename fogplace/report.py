"""Shutdown report: loop delays, per-node energy and aggregate cost."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fogplace.state import Application, Topology
from fogplace.telemetry.collector import TelemetryAggregator

logger = logging.getLogger(__name__)

_RULE = "========================================="


@dataclass
class ShutdownReport:
	"""Raw aggregated numbers exposed at the end of a run."""
	loop_latencies: List[Tuple[str, float]]
	node_energy: List[Tuple[str, float]]
	cost_units: Optional[float]
	placement: Dict[str, List[int]] = field(default_factory=dict)
	mode: Optional[str] = None
	ticks: int = 0
	mode_changes: int = 0
	
	def to_dict(self) -> Dict[str, Any]:
		return {
			'loop_latencies': [{'loop': label, 'avg_ms': avg} for label, avg in self.loop_latencies],
			'node_energy_j': [{'node': name, 'energy_j': e} for name, e in self.node_energy],
			'cost_units': self.cost_units,
			'placement': self.placement,
			'mode': self.mode,
			'ticks': self.ticks,
			'mode_changes': self.mode_changes,
		}


def build_report(
	application: Application,
	topology: Topology,
	aggregator: TelemetryAggregator,
	controller: Optional[Any] = None,
) -> ShutdownReport:
	"""
	Collect the final numbers for a run.
	
	Args:
		application: Application whose loops are reported
		topology: Topology whose nodes are reported (centralized included)
		aggregator: Telemetry view holding the last snapshot
		controller: Optional RemappingController for placement and mode
		
	Returns:
		ShutdownReport; loops without a sample report 0.0
	"""
	latencies = aggregator.loop_latencies()
	energy = aggregator.node_energy()
	report = ShutdownReport(
		loop_latencies=[
			(loop.label(), latencies.get(loop.key) or 0.0) for loop in application.loops
		],
		node_energy=[(node.name, energy.get(node.id, 0.0)) for node in topology.list_nodes()],
		cost_units=aggregator.cumulative_cost_units() if aggregator.cost_available() else None,
	)
	if controller is not None:
		report.placement = controller.placement.as_dict()
		report.mode = controller.mode.value
		report.ticks = controller.ticks
		report.mode_changes = sum(1 for rec in controller.history if rec.changed)
	return report


def format_report(report: ShutdownReport) -> str:
	lines = [_RULE, "APPLICATION LOOP DELAYS", _RULE]
	for label, avg in report.loop_latencies:
		lines.append(f"{label} ---> {avg}")
	lines += [_RULE, "DEVICE ENERGY CONSUMPTION", _RULE]
	for name, energy in report.node_energy:
		lines.append(f"{name} : Energy Consumed = {energy}")
	lines += [_RULE, "CLOUD COST", _RULE]
	lines.append(f"Cloud Cost = {report.cost_units if report.cost_units is not None else 'N/A'}")
	if report.mode is not None:
		lines += [_RULE, "PLACEMENT", _RULE]
		lines.append(f"Mode = {report.mode} (ticks={report.ticks}, changes={report.mode_changes})")
		for module_name, node_ids in report.placement.items():
			lines.append(f"{module_name} -> {node_ids}")
	return "\n".join(lines)


def write_csv(report: ShutdownReport, output_dir: str = "reports/runs") -> Dict[str, Path]:
	"""Write loop and energy tables as CSV files; returns their paths."""
	out = Path(output_dir)
	out.mkdir(parents=True, exist_ok=True)
	
	loops_path = out / "loop_latencies.csv"
	with open(loops_path, 'w', newline='') as f:
		writer = csv.writer(f)
		writer.writerow(['loop', 'avg_ms'])
		writer.writerows(report.loop_latencies)
	
	energy_path = out / "node_energy.csv"
	with open(energy_path, 'w', newline='') as f:
		writer = csv.writer(f)
		writer.writerow(['node', 'energy_j'])
		writer.writerows(report.node_energy)
	
	logger.info(f"Wrote report tables to {out}")
	return {'loops': loops_path, 'energy': energy_path}
