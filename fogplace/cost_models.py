"""Latency / energy / monetary cost estimates for a module on a node.

All functions here are pure: they read node and module fields and return
numbers, falling back to fixed values instead of raising.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from fogplace.state import Direction, Module, Node, Score, Weights, safe_float

logger = logging.getLogger(__name__)

DEGENERATE_PROCESSING_MS = 1000.0
FALLBACK_POWER_W = 100.0
DEFAULT_RATE_PER_MILLION_WORK_UNITS = 0.01


def incoming_work(module: Optional[Module]) -> float:
	"""Largest work length among UP edges feeding the module."""
	if module is None:
		return 0.0
	work = 0.0
	for edge in module.incoming:
		if edge.destination == module.name and edge.direction is Direction.UP:
			work = max(work, safe_float(edge.work_length, 0.0))
	return work


def processing_time_ms(node: Node, module: Optional[Module]) -> float:
	mi = incoming_work(module)
	cap = node.total_capacity
	if mi <= 0 or cap <= 0:
		return DEGENERATE_PROCESSING_MS
	return (mi / cap) * 1000.0


def uplink_latency_ms(node: Node) -> float:
	return safe_float(getattr(node, "uplink_latency_ms", None), 0.0)


def latency_ms(node: Node, module: Optional[Module]) -> float:
	return uplink_latency_ms(node) + processing_time_ms(node, module)


def power_draw_w(node: Node, utilization: float) -> float:
	"""Evaluate the node's power function, or the fallback draw."""
	model = getattr(node, "power_model", None)
	if model is None:
		return FALLBACK_POWER_W
	try:
		return float(model(utilization))
	except Exception as e:
		logger.debug(f"Power model of {node.name} failed at u={utilization}: {e}")
		return FALLBACK_POWER_W


def energy_j(node: Node, module: Optional[Module]) -> float:
	mi = incoming_work(module)
	cap = node.total_capacity
	avg_util = min(1.0, mi / max(1.0, cap))
	power = power_draw_w(node, avg_util)
	return power * (processing_time_ms(node, module) / 1000.0)


def cost_units(
	node: Node,
	module: Optional[Module],
	rate_per_million_work_units: float = DEFAULT_RATE_PER_MILLION_WORK_UNITS,
) -> float:
	if not node.is_centralized:
		return 0.0
	return (incoming_work(module) / 1_000_000) * rate_per_million_work_units


def weighted(
	node: Node,
	module: Optional[Module],
	weights: Weights,
	rate_per_million_work_units: float = DEFAULT_RATE_PER_MILLION_WORK_UNITS,
) -> float:
	return score(node, module, weights, rate_per_million_work_units).weighted


def score(
	node: Node,
	module: Optional[Module],
	weights: Weights,
	rate_per_million_work_units: float = DEFAULT_RATE_PER_MILLION_WORK_UNITS,
) -> Score:
	lat = latency_ms(node, module)
	energy = energy_j(node, module)
	cost = cost_units(node, module, rate_per_million_work_units)
	return Score(
		latency_ms=lat,
		energy_j=energy,
		cost_units=cost,
		weighted=weights.alpha * lat + weights.beta * energy + weights.gamma * cost,
	)


class CostModels:
	"""Cost estimator bound to a monetary rate."""

	def __init__(self, rate_per_million_work_units: float = DEFAULT_RATE_PER_MILLION_WORK_UNITS) -> None:
		self.rate_per_million_work_units = float(rate_per_million_work_units)

	def score(self, node: Node, module: Optional[Module], weights: Weights) -> Score:
		return score(node, module, weights, self.rate_per_million_work_units)

	def weighted(self, node: Node, module: Optional[Module], weights: Weights) -> float:
		return self.score(node, module, weights).weighted

	def features(self, node: Node, module: Optional[Module]) -> np.ndarray:
		return np.array(
			[
				latency_ms(node, module),
				energy_j(node, module),
				cost_units(node, module, self.rate_per_million_work_units),
			],
			dtype=float,
		).reshape(1, -1)

	def feature_matrix(self, nodes: Sequence[Node], module: Optional[Module]) -> np.ndarray:
		"""Rows of (latency_ms, energy_j, cost_units), one per node."""
		if not nodes:
			return np.zeros((0, 3), dtype=float)
		return np.vstack([self.features(n, module) for n in nodes])

	def weighted_vector(self, nodes: Sequence[Node], module: Optional[Module], weights: Weights) -> np.ndarray:
		w = np.array([weights.alpha, weights.beta, weights.gamma], dtype=float)
		return self.feature_matrix(nodes, module) @ w


def describe_scores(nodes: List[Node], module: Optional[Module], weights: Weights, rate: float) -> List[dict]:
	out = []
	for node in nodes:
		s = score(node, module, weights, rate)
		out.append({
			"node_id": node.id,
			"node": node.name,
			"latency_ms": s.latency_ms,
			"energy_j": s.energy_j,
			"cost_units": s.cost_units,
			"weighted": s.weighted,
		})
	return out
