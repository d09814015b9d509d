from typing import Dict, Iterable, List, Optional, Tuple
import logging
import math

from fogplace.cost_models import CostModels
from fogplace.state import (
    Application,
    ControllerState,
    DecisionKind,
    Mode,
    Module,
    Node,
    PlacementDecision,
    Score,
    Topology,
    Weights,
)
from fogplace.policy.base import Policy

logger = logging.getLogger(__name__)

CANDIDATE_ORDERS = ("node_id", "given")


def order_candidates(candidates: Iterable[Node], order: str = "node_id") -> List[Node]:
    """Fix the iteration order that near-tie hysteresis decisions depend on."""
    if order == "given":
        return list(candidates)
    if order == "node_id":
        return sorted(candidates, key=lambda n: n.id)
    raise ValueError(f"unknown candidate order '{order}'")


def _select(
    candidates: Iterable[Node],
    module: Optional[Module],
    weights: Weights,
    hysteresis: float,
    cost_models: CostModels,
) -> Tuple[Optional[Node], Optional[Score]]:
    if module is None:
        return None, None
    best_node: Optional[Node] = None
    best_score: Optional[Score] = None
    best_weighted = math.inf
    for node in candidates:
        s = cost_models.score(node, module, weights)
        # A later candidate must beat the incumbent by more than the margin.
        if s.weighted + hysteresis < best_weighted:
            best_weighted = s.weighted
            best_node = node
            best_score = s
    return best_node, best_score


def select_best(
    candidates: Iterable[Node],
    module: Optional[Module],
    weights: Weights,
    hysteresis: float = 1.0,
    cost_models: Optional[CostModels] = None,
) -> Optional[Node]:
    """Minimise the weighted score over ``candidates`` in the order given.

    Returns ``None`` when the module is unresolved or there are no candidates.
    """
    node, _ = _select(candidates, module, weights, hysteresis, cost_models or CostModels())
    return node


class HysteresisSelector(Policy):
    def __init__(
        self,
        topology: Topology,
        application: Application,
        order: str = "node_id",
        cost_models: Optional[CostModels] = None,
    ) -> None:
        super().__init__(topology, application, cost_models)
        if order not in CANDIDATE_ORDERS:
            raise ValueError(f"unknown candidate order '{order}'")
        self.order = order

    def candidates_for(self, mode: Mode) -> List[Node]:
        if mode is Mode.CENTRALIZED:
            nodes = self.topology.centralized_nodes()
        else:
            nodes = self.topology.edge_nodes()
        return order_candidates(nodes, self.order)

    def rank(self, candidates: Iterable[Node], module_name: str, weights: Weights) -> List[Tuple[Node, Score]]:
        module = self.application.get_module(module_name)
        if module is None:
            return []
        return [(node, self.score(node, module, weights)) for node in order_candidates(candidates, self.order)]

    def select(
        self,
        candidates: Iterable[Node],
        module_name: str,
        state: ControllerState,
    ) -> PlacementDecision:
        module = self.application.get_module(module_name)
        ordered = order_candidates(candidates, self.order)
        node, best = _select(ordered, module, state.weights, state.hysteresis, self.cost_models)
        if node is None:
            return PlacementDecision(module_name=module_name, kind=DecisionKind.UNPLACED, mode=state.mode)
        logger.debug(
            f"Selected {node.name} for {module_name}: weighted={best.weighted:.3f} "
            f"(latency={best.latency_ms:.2f}ms energy={best.energy_j:.3f}J cost={best.cost_units:.6f})"
        )
        return PlacementDecision(
            module_name=module_name,
            kind=DecisionKind.SCORED,
            node_ids=(node.id,),
            mode=state.mode,
            score=best,
        )

    def select_best(self, candidates: Iterable[Node], module_name: str, state: ControllerState) -> Optional[Node]:
        module = self.application.get_module(module_name)
        ordered = order_candidates(candidates, self.order)
        node, _ = _select(ordered, module, state.weights, state.hysteresis, self.cost_models)
        return node

    def place(self, state: ControllerState) -> Dict[str, PlacementDecision]:
        placements: Dict[str, PlacementDecision] = {}
        candidates = self.candidates_for(state.mode)
        for module in self.application.adaptive_modules():
            placements[module.name] = self.select(candidates, module.name, state)
        return placements
