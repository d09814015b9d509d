"""Tier-level planner for placement-adaptive modules.

DISTRIBUTED replicates every adaptive module onto all edge-tier nodes;
CENTRALIZED places a single instance on the centralized node the
:class:`HysteresisSelector` prefers. Modules without the adaptive tag keep
the static mapping supplied with the scenario.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from fogplace.cost_models import CostModels
from fogplace.policy.base import Policy
from fogplace.policy.greedy import HysteresisSelector, order_candidates
from fogplace.state import (
	Application,
	ControllerState,
	DecisionKind,
	Mode,
	Module,
	PlacementDecision,
	PlacementMap,
	Topology,
)

logger = logging.getLogger(__name__)


class ReplicationPlanner(Policy):
	def __init__(
		self,
		topology: Topology,
		application: Application,
		selector: Optional[HysteresisSelector] = None,
		static_mapping: Optional[Dict[str, List[str]]] = None,
		cost_models: Optional[CostModels] = None,
	) -> None:
		super().__init__(topology, application, cost_models)
		self.selector = selector or HysteresisSelector(topology, application, cost_models=self.cost_models)
		self.static_mapping = self._resolve_static(static_mapping or {})

	def _resolve_static(self, mapping: Dict[str, List[str]]) -> Dict[str, Tuple[int, ...]]:
		resolved: Dict[str, Tuple[int, ...]] = {}
		for module_name, node_names in mapping.items():
			ids = []
			for name in node_names:
				node = self.topology.get_node_by_name(name)
				if node is None:
					raise ValueError(f"Unknown node '{name}' in static mapping for '{module_name}'")
				ids.append(node.id)
			resolved[module_name] = tuple(ids)
		return resolved

	def _replicate(self, module: Module, state: ControllerState) -> PlacementDecision:
		edge_nodes = order_candidates(self.topology.edge_nodes(), self.selector.order)
		if not edge_nodes:
			return PlacementDecision(module_name=module.name, kind=DecisionKind.UNPLACED, mode=state.mode)
		return PlacementDecision(
			module_name=module.name,
			kind=DecisionKind.REPLICATED,
			node_ids=tuple(n.id for n in edge_nodes),
			mode=state.mode,
		)

	def place(self, state: ControllerState) -> Dict[str, PlacementDecision]:
		if state.mode is Mode.CENTRALIZED:
			return self.selector.place(state)
		return {module.name: self._replicate(module, state) for module in self.application.adaptive_modules()}

	def static_decisions(self) -> Dict[str, PlacementDecision]:
		out: Dict[str, PlacementDecision] = {}
		for module_name, ids in self.static_mapping.items():
			module = self.application.get_module(module_name)
			if module is not None and module.adaptive:
				continue
			out[module_name] = PlacementDecision(
				module_name=module_name,
				kind=DecisionKind.STATIC if ids else DecisionKind.UNPLACED,
				node_ids=ids,
			)
		return out

	def plan(self, state: ControllerState) -> Tuple[PlacementMap, Dict[str, PlacementDecision]]:
		"""Full placement map for one evaluation cycle, plus the decisions behind it."""
		decisions = self.static_decisions()
		decisions.update(self.place(state))
		placement = PlacementMap()
		for module_name, decision in decisions.items():
			if decision.placed:
				placement.assign(module_name, decision.node_ids)
		return placement, decisions
