from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional
from fogplace.cost_models import CostModels
from fogplace.state import Application, ControllerState, Module, Node, PlacementDecision, Score, Topology, Weights


class Policy(ABC):
	def __init__(
		self,
		topology: Topology,
		application: Application,
		cost_models: Optional[CostModels] = None,
	) -> None:
		self.topology = topology
		self.application = application
		self.cost_models = cost_models or CostModels()

	@abstractmethod
	def place(self, state: ControllerState) -> Dict[str, PlacementDecision]:
		raise NotImplementedError

	def score(self, node: Node, module: Optional[Module], weights: Weights) -> Score:
		return self.cost_models.score(node, module, weights)
