"""Threshold-driven remapping controller.

Every ``interval_ms`` of simulated time the controller reads the telemetry
aggregate, chooses CENTRALIZED when the mean loop latency or the cumulative
energy exceeds its threshold (DISTRIBUTED otherwise), recomputes the
placement map and submits it to the substrate.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from fogplace.cost_models import CostModels
from fogplace.policy.greedy import HysteresisSelector
from fogplace.policy.replication import ReplicationPlanner
from fogplace.state import ControllerState, DecisionKind, Mode, PlacementDecision, PlacementMap
from fogplace.telemetry.collector import TelemetryAggregator

logger = logging.getLogger(__name__)

POLICIES = ("adaptive", "centralized", "distributed")

PlacementSink = Callable[[PlacementMap], None]


@dataclass
class TickRecord:
    time_ms: float
    avg_latency_ms: float
    energy_j: float
    cost_units: float
    mode: Mode
    changed: bool
    unplaced: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time_ms": self.time_ms,
            "avg_latency_ms": self.avg_latency_ms,
            "energy_j": self.energy_j,
            "cost_units": self.cost_units,
            "mode": self.mode.value,
            "changed": self.changed,
            "unplaced": list(self.unplaced),
        }


class RemappingController:
    def __init__(
        self,
        planner: ReplicationPlanner,
        aggregator: TelemetryAggregator,
        state: Optional[ControllerState] = None,
        *,
        interval_ms: float = 50.0,
        sink: Optional[PlacementSink] = None,
        policy: str = "adaptive",
        history_size: int = 1000,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if policy not in POLICIES:
            raise ValueError(f"unknown policy '{policy}'")
        self.planner = planner
        self.aggregator = aggregator
        self.state = state or ControllerState()
        self.interval_ms = float(interval_ms)
        self.sink = sink
        self.policy = policy
        if policy == "centralized":
            self.state.mode = Mode.CENTRALIZED
        elif policy == "distributed":
            self.state.mode = Mode.DISTRIBUTED

        self.ticks = 0
        self.history: Deque[TickRecord] = deque(maxlen=history_size)
        self._lock = threading.RLock()
        self._placement = PlacementMap()
        self._decisions: Dict[str, PlacementDecision] = {}
        self._scheduler: Optional[Any] = None
        self._timer: Optional[Any] = None
        self._running = False

    # ------------------------------------------------------------ decisions

    def decide_mode(self, avg_latency_ms: float, energy_j: float) -> Mode:
        if self.policy == "centralized":
            return Mode.CENTRALIZED
        if self.policy == "distributed":
            return Mode.DISTRIBUTED
        st = self.state
        if avg_latency_ms > st.tau_latency_ms or energy_j > st.tau_energy_j:
            return Mode.CENTRALIZED
        # Optional dead zone below the thresholds; zero unless configured.
        if st.mode is Mode.CENTRALIZED and (
            avg_latency_ms > st.tau_latency_ms - st.latency_dead_zone_ms
            or energy_j > st.tau_energy_j - st.energy_dead_zone_j
        ):
            return Mode.CENTRALIZED
        return Mode.DISTRIBUTED

    def initial_placement(self) -> PlacementMap:
        """Plan and submit the placement for the starting mode."""
        with self._lock:
            placement, decisions = self.planner.plan(self.state)
            self._apply(placement, decisions)
            return placement.copy()

    def evaluate(self, now_ms: Optional[float] = None) -> PlacementMap:
        """Run one evaluation tick and return the submitted placement."""
        with self._lock:
            self.aggregator.refresh()
            avg_latency, energy, cost, sample_time = self.aggregator.aggregates()

            previous = self.state.mode
            self.state.mode = self.decide_mode(avg_latency, energy)
            changed = self.state.mode is not previous
            if changed:
                logger.info(
                    f"Mode {previous.value} -> {self.state.mode.value} "
                    f"(avg_latency={avg_latency:.2f}ms, energy={energy:.1f}J)"
                )

            placement, decisions = self.planner.plan(self.state)
            unplaced = self._apply(placement, decisions)
            self.ticks += 1
            self.history.append(
                TickRecord(
                    time_ms=sample_time if now_ms is None else float(now_ms),
                    avg_latency_ms=avg_latency,
                    energy_j=energy,
                    cost_units=cost,
                    mode=self.state.mode,
                    changed=changed,
                    unplaced=unplaced,
                )
            )
            return placement.copy()

    def _apply(self, placement: PlacementMap, decisions: Dict[str, PlacementDecision]) -> Tuple[str, ...]:
        unplaced = tuple(
            name for name, d in decisions.items() if d.kind is DecisionKind.UNPLACED or not d.node_ids
        )
        for name in unplaced:
            logger.warning(f"Module '{name}' has no placement this cycle (mode={self.state.mode.value})")
        if placement == self._placement:
            logger.debug("Re-submitting unchanged placement")
        self._placement = placement.copy()
        self._decisions = dict(decisions)
        if self.sink is not None:
            try:
                self.sink(placement.copy())
            except Exception as e:
                logger.error(f"Placement sink failed: {e}")
        return unplaced

    # -------------------------------------------------------------- timers

    def start(self, scheduler: Any) -> None:
        """Submit the initial placement and register the recurring evaluation timer.

        ``scheduler`` must provide ``every(interval_ms, callback)`` returning a
        handle, ``cancel(handle)`` and a ``clock_ms`` attribute.
        """
        with self._lock:
            if self._running:
                logger.warning("RemappingController already running")
                return
            self._scheduler = scheduler
            self._running = True
            self.initial_placement()
            self._timer = scheduler.every(self.interval_ms, self._on_timer)
            logger.info(
                f"RemappingController started: policy={self.policy}, "
                f"mode={self.state.mode.value}, interval={self.interval_ms}ms"
            )

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._scheduler is not None and self._timer is not None:
                self._scheduler.cancel(self._timer)
            self._timer = None
            logger.info(f"RemappingController stopped after {self.ticks} ticks")

    @property
    def running(self) -> bool:
        return self._running

    def _on_timer(self) -> None:
        if not self._running:
            return
        now = getattr(self._scheduler, "clock_ms", None)
        self.evaluate(now_ms=now)

    # ------------------------------------------------------------- views

    @property
    def mode(self) -> Mode:
        return self.state.mode

    @property
    def placement(self) -> PlacementMap:
        with self._lock:
            return self._placement.copy()

    @property
    def decisions(self) -> Dict[str, PlacementDecision]:
        with self._lock:
            return dict(self._decisions)

    def recent_history(self, limit: int = 100) -> List[TickRecord]:
        with self._lock:
            items = list(self.history)
        return items[-limit:] if limit > 0 else []

    def describe(self) -> Dict[str, Any]:
        st = self.state
        return {
            "policy": self.policy,
            "mode": st.mode.value,
            "running": self._running,
            "ticks": self.ticks,
            "interval_ms": self.interval_ms,
            "weights": {"alpha": st.weights.alpha, "beta": st.weights.beta, "gamma": st.weights.gamma},
            "hysteresis": st.hysteresis,
            "tau_latency_ms": st.tau_latency_ms,
            "tau_energy_j": st.tau_energy_j,
            "latency_dead_zone_ms": st.latency_dead_zone_ms,
            "energy_dead_zone_j": st.energy_dead_zone_j,
        }


def build_controller(
    scenario: Any,
    config: Any,
    *,
    sink: Optional[PlacementSink] = None,
    source: Optional[Callable[[], Any]] = None,
) -> RemappingController:
    """Wire selector, planner, aggregator and controller for a scenario.

    ``scenario`` is a :class:`fogplace.scenario.Scenario` and ``config`` a
    :class:`fogplace.config.ControllerConfig`.
    """
    cost_models = CostModels(config.rate_per_million_work_units)
    selector = HysteresisSelector(
        scenario.topology, scenario.application, order=config.candidate_order, cost_models=cost_models
    )
    planner = ReplicationPlanner(
        scenario.topology,
        scenario.application,
        selector=selector,
        static_mapping=scenario.static_mapping,
        cost_models=cost_models,
    )
    return RemappingController(
        planner,
        TelemetryAggregator(source=source),
        config.controller_state(),
        interval_ms=config.interval_ms,
        sink=sink,
        policy=config.policy,
    )
