"""Telemetry aggregation over substrate-supplied snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

from fogplace.state import safe_float

logger = logging.getLogger(__name__)

LoopKey = Tuple[str, ...]


@dataclass
class TelemetrySample:
	"""One telemetry push from the substrate."""
	loop_averages: Dict[LoopKey, Optional[float]] = field(default_factory=dict)
	node_energy_j: Dict[int, float] = field(default_factory=dict)
	cost_units: Optional[float] = None
	time_ms: float = 0.0

	@classmethod
	def from_dict(cls, payload: Dict[str, Any]) -> "TelemetrySample":
		"""
		Build a sample from its JSON form.
		
		Expected shape:
		{
		  "loops": [{"modules": ["SENSOR", "proc", "ACT"], "avg_ms": 12.5}],
		  "node_energy_j": {"1": 1500.0},
		  "cost_units": 0.02,
		  "time_ms": 500
		}
		
		Raises:
			ValueError: If the payload is malformed
		"""
		if not isinstance(payload, dict):
			raise ValueError("telemetry payload must be an object")
		loops: Dict[LoopKey, Optional[float]] = {}
		for entry in payload.get("loops") or []:
			modules = entry.get("modules") if isinstance(entry, dict) else None
			if not modules or not isinstance(modules, list):
				raise ValueError("each loop needs a non-empty 'modules' list")
			avg = entry.get("avg_ms")
			loops[tuple(str(m) for m in modules)] = None if avg is None else float(avg)
		energy: Dict[int, float] = {}
		for node_id, value in (payload.get("node_energy_j") or {}).items():
			energy[int(node_id)] = float(value)
		cost = payload.get("cost_units")
		return cls(
			loop_averages=loops,
			node_energy_j=energy,
			cost_units=None if cost is None else float(cost),
			time_ms=safe_float(payload.get("time_ms"), 0.0),
		)


class TelemetryAggregator:
	"""
	Read-through view of the latest substrate telemetry.
	
	Holds only the most recent snapshot: per-loop rolling averages,
	per-node cumulative energy counters and the running cost. Samples are
	either pushed with :meth:`ingest` or pulled from ``source`` on
	:meth:`refresh`.
	"""
	
	def __init__(self, source: Optional[Callable[[], TelemetrySample]] = None) -> None:
		self.source = source
		self._sample = TelemetrySample()
	
	def ingest(self, sample: TelemetrySample) -> None:
		self._sample = TelemetrySample(
			loop_averages=dict(sample.loop_averages),
			node_energy_j=dict(sample.node_energy_j),
			cost_units=sample.cost_units,
			time_ms=sample.time_ms,
		)
	
	def refresh(self) -> bool:
		"""Pull a fresh snapshot from the source; keep the previous one on failure."""
		if self.source is None:
			return False
		try:
			sample = self.source()
		except Exception as e:
			logger.error(f"Telemetry source failed, keeping previous snapshot: {e}")
			return False
		self.ingest(sample)
		return True
	
	def mean_loop_latency_ms(self) -> float:
		return _mean_latency(self._sample)
	
	def cumulative_energy_j(self) -> float:
		return _energy(self._sample)
	
	def cumulative_cost_units(self) -> float:
		return _cost(self._sample)
	
	def aggregates(self) -> Tuple[float, float, float, float]:
		"""(mean loop latency, energy, cost, time) read from one snapshot."""
		sample = self._sample
		return _mean_latency(sample), _energy(sample), _cost(sample), sample.time_ms
	
	def cost_available(self) -> bool:
		return self._sample.cost_units is not None
	
	def loop_latencies(self) -> Dict[LoopKey, Optional[float]]:
		return dict(self._sample.loop_averages)
	
	def node_energy(self) -> Dict[int, float]:
		return dict(self._sample.node_energy_j)
	
	@property
	def time_ms(self) -> float:
		return self._sample.time_ms
	
	def snapshot(self) -> Dict[str, Any]:
		return {
			'time_ms': self._sample.time_ms,
			'mean_loop_latency_ms': self.mean_loop_latency_ms(),
			'cumulative_energy_j': self.cumulative_energy_j(),
			'cumulative_cost_units': self.cumulative_cost_units(),
			'loops': [
				{'modules': list(key), 'avg_ms': value}
				for key, value in self._sample.loop_averages.items()
			],
			'node_energy_j': {str(k): v for k, v in self._sample.node_energy_j.items()},
		}


def _mean_latency(sample: TelemetrySample) -> float:
	values = [v for v in sample.loop_averages.values() if v is not None]
	if not values:
		return 0.0
	return float(np.mean(values))


def _energy(sample: TelemetrySample) -> float:
	return float(sum(sample.node_energy_j.values()))


def _cost(sample: TelemetrySample) -> float:
	if sample.cost_units is None:
		return 0.0
	return float(sample.cost_units)
