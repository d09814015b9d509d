from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from fogplace.config import ControllerConfig
from fogplace.controller import RemappingController, build_controller
from fogplace.cost_models import DEFAULT_RATE_PER_MILLION_WORK_UNITS, cost_units, power_draw_w
from fogplace.report import ShutdownReport, build_report
from fogplace.scenario import Scenario
from fogplace.state import Actuator, Application, AppLoop, Node, PlacementMap, Sensor, Topology, clamp
from fogplace.telemetry.collector import TelemetrySample

logger = logging.getLogger(__name__)


@dataclass
class TimerHandle:
    interval_ms: Optional[float] = None
    cancelled: bool = False


@dataclass(order=True)
class _Event:
    time_ms: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    handle: TimerHandle = field(compare=False)


class EventLoop:
    """Simulated-time event queue with one-shot and recurring timers."""

    def __init__(self) -> None:
        self.clock_ms = 0.0
        self._seq = 0
        self.events: List[_Event] = []
        self._stopped = False

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        self._push_event(self.clock_ms + max(0.0, float(delay_ms)), callback, handle)
        return handle

    def every(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        handle = TimerHandle(interval_ms=float(interval_ms))
        self._push_event(self.clock_ms + handle.interval_ms, callback, handle)
        return handle

    def cancel(self, handle: TimerHandle) -> None:
        handle.cancelled = True

    def stop(self) -> None:
        self._stopped = True

    def pending(self) -> int:
        return sum(1 for e in self.events if not e.handle.cancelled)

    def run(self, until_ms: float) -> float:
        self._stopped = False
        while self.events and not self._stopped:
            if self.events[0].time_ms > until_ms:
                break
            event = heapq.heappop(self.events)
            if event.handle.cancelled:
                continue
            self.clock_ms = event.time_ms
            event.callback()
            # Reschedule only after the callback, which may have cancelled the timer.
            if event.handle.interval_ms is not None and not event.handle.cancelled:
                self._push_event(event.time_ms + event.handle.interval_ms, event.callback, event.handle)
        if not self._stopped:
            self.clock_ms = max(self.clock_ms, float(until_ms))
        return self.clock_ms

    def _push_event(self, time_ms: float, callback: Callable[[], None], handle: TimerHandle) -> None:
        self._seq += 1
        heapq.heappush(self.events, _Event(time_ms=time_ms, seq=self._seq, callback=callback, handle=handle))


@dataclass
class _LoopStats:
    count: int = 0
    mean_ms: float = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.mean_ms += (value - self.mean_ms) / self.count


class FogSimulation:
    """Minimal substrate: sensor traffic, loop latency, node energy and cost.

    Enacts placement maps submitted by the controller and exposes telemetry
    snapshots for the aggregator to pull.
    """

    def __init__(
        self,
        topology: Topology,
        application: Application,
        sensors: List[Sensor],
        actuators: List[Actuator],
        *,
        loop: Optional[EventLoop] = None,
        accounting_interval_ms: float = 10.0,
        rate_per_million_work_units: float = DEFAULT_RATE_PER_MILLION_WORK_UNITS,
    ) -> None:
        self.topology = topology
        self.application = application
        self.sensors = list(sensors)
        self.actuators = list(actuators)
        self.loop = loop or EventLoop()
        self.accounting_interval_ms = float(accounting_interval_ms)
        self.rate_per_million_work_units = float(rate_per_million_work_units)

        self.placement = PlacementMap()
        self.enactments = 0
        self.loop_stats: Dict[Tuple[str, ...], _LoopStats] = {}
        self.node_energy_j: Dict[int, float] = {n.id: 0.0 for n in topology.list_nodes()}
        self.cost_units = 0.0
        self.dropped_tuples = 0
        self._busy_ms: Dict[int, float] = {}
        self._last_accounting_ms = 0.0
        self._timers: List[TimerHandle] = []

    # ------------------------------------------------------------------ setup

    def start(self) -> None:
        for sensor in self.sensors:
            self._timers.append(self.loop.every(sensor.interval_ms, lambda s=sensor: self._emit(s)))
        self._timers.append(self.loop.every(self.accounting_interval_ms, self._account))
        logger.info(f"FogSimulation started: {len(self.sensors)} sensors, {len(self.topology.list_nodes())} nodes")

    def run(self, until_ms: float) -> None:
        self.loop.run(until_ms)
        self._account()

    def shutdown(self) -> None:
        for handle in self._timers:
            self.loop.cancel(handle)
        self._timers.clear()
        logger.info(f"FogSimulation finished at {self.loop.clock_ms:.1f}ms, dropped tuples: {self.dropped_tuples}")

    # -------------------------------------------------------------- substrate

    def enact(self, placement: PlacementMap) -> None:
        if placement == self.placement:
            return
        self.placement = placement.copy()
        self.enactments += 1

    def telemetry(self) -> TelemetrySample:
        return TelemetrySample(
            loop_averages={
                loop.key: (self.loop_stats[loop.key].mean_ms if loop.key in self.loop_stats else None)
                for loop in self.application.loops
            },
            node_energy_j=dict(self.node_energy_j),
            cost_units=self.cost_units,
            time_ms=self.loop.clock_ms,
        )

    # ---------------------------------------------------------------- traffic

    def _emit(self, sensor: Sensor) -> None:
        for app_loop in self.application.loops:
            if app_loop.elements and app_loop.elements[0] == sensor.tuple_type:
                latency = self._walk(sensor, app_loop)
                if latency is None:
                    self.dropped_tuples += 1
                    continue
                self.loop_stats.setdefault(app_loop.key, _LoopStats()).add(latency)

    def _walk(self, sensor: Sensor, app_loop: AppLoop) -> Optional[float]:
        location = sensor.gateway_id
        latency = sensor.latency_ms
        previous = app_loop.elements[0]
        work: List[Tuple[Node, float, str]] = []
        for element in app_loop.elements[1:]:
            module = self.application.get_module(element)
            if module is None:
                actuator = self._actuator(element)
                if actuator is None:
                    return None
                latency += self.topology.path_latency_ms(location, actuator.gateway_id) + actuator.latency_ms
                break
            host = self._nearest_replica(element, location)
            if host is None:
                return None
            edge = self.application.edge_between(previous, element)
            amount = edge.work_length if edge is not None else 0.0
            processing = (amount / host.total_capacity) * 1000.0 if host.total_capacity > 0 else 0.0
            latency += self.topology.path_latency_ms(location, host.id) + processing
            work.append((host, processing, element))
            location = host.id
            previous = element

        for host, processing, element in work:
            self._busy_ms[host.id] = self._busy_ms.get(host.id, 0.0) + processing
            if host.is_centralized:
                self.cost_units += cost_units(
                    host, self.application.get_module(element), self.rate_per_million_work_units
                )
        return latency

    def _nearest_replica(self, module_name: str, location: int) -> Optional[Node]:
        replicas = self.placement.get(module_name)
        if not replicas:
            return None
        for node_id in self.topology.ancestors(location):
            if node_id in replicas:
                return self.topology.get_node(node_id)
        return min(
            (self.topology.get_node(r) for r in replicas if self.topology.get_node(r) is not None),
            key=lambda n: self.topology.path_latency_ms(location, n.id),
            default=None,
        )

    def _actuator(self, actuator_type: str) -> Optional[Actuator]:
        for actuator in self.actuators:
            if actuator.actuator_type == actuator_type:
                return actuator
        return None

    # ----------------------------------------------------------------- energy

    def _account(self) -> None:
        now = self.loop.clock_ms
        elapsed = now - self._last_accounting_ms
        if elapsed <= 0:
            return
        for node in self.topology.list_nodes():
            busy = self._busy_ms.get(node.id, 0.0)
            util = clamp(busy / elapsed, 0.0, 1.0)
            self.node_energy_j[node.id] = self.node_energy_j.get(node.id, 0.0) + power_draw_w(node, util) * (elapsed / 1000.0)
        self._busy_ms.clear()
        self._last_accounting_ms = now


@dataclass
class SimulationRun:
    simulation: FogSimulation
    controller: RemappingController
    report: ShutdownReport


def run_simulation(
    scenario: Scenario,
    config: ControllerConfig,
    duration_ms: float = 1000.0,
    *,
    accounting_interval_ms: float = 10.0,
) -> SimulationRun:
    """Run the controller against the harness for ``duration_ms`` of simulated time."""
    loop = EventLoop()
    simulation = FogSimulation(
        scenario.topology,
        scenario.application,
        scenario.sensors,
        scenario.actuators,
        loop=loop,
        accounting_interval_ms=accounting_interval_ms,
        rate_per_million_work_units=config.rate_per_million_work_units,
    )
    controller = build_controller(scenario, config, sink=simulation.enact, source=simulation.telemetry)
    simulation.start()
    controller.start(loop)
    try:
        simulation.run(duration_ms)
    finally:
        controller.stop()
        simulation.shutdown()
    controller.aggregator.refresh()
    report = build_report(scenario.application, scenario.topology, controller.aggregator, controller)
    return SimulationRun(simulation=simulation, controller=controller, report=report)
