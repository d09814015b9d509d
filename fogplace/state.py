from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple
import threading


class Direction(Enum):
        UP = "up"  # toward the centralized tier
        DOWN = "down"  # toward the edge


class Mode(Enum):
        CENTRALIZED = "centralized"
        DISTRIBUTED = "distributed"


class DecisionKind(Enum):
        SCORED = "scored"  # within-tier winner of the weighted score
        REPLICATED = "replicated"  # one replica per edge-tier node
        STATIC = "static"  # externally supplied mapping
        UNPLACED = "unplaced"


PowerFunction = Callable[[float], float]


@dataclass
class Node:
        id: int
        name: str
        level: int
        uplink_latency_ms: Optional[float] = 0.0
        pe_capacity: List[float] = field(default_factory=list)
        power_model: Optional[PowerFunction] = None
        parent_id: Optional[int] = None
        centralized: Optional[bool] = None

        @property
        def total_capacity(self) -> float:
                return float(sum(c for c in self.pe_capacity if c and c > 0))

        @property
        def is_centralized(self) -> bool:
                if self.centralized is not None:
                        return bool(self.centralized)
                return self.level == 0


@dataclass
class AppEdge:
        source: str
        destination: str
        direction: Direction
        work_length: float
        payload_size: float = 0.0
        tuple_type: Optional[str] = None


@dataclass
class Module:
        name: str
        required_capacity: float = 0.0
        adaptive: bool = False
        incoming: List[AppEdge] = field(default_factory=list)
        outgoing: List[AppEdge] = field(default_factory=list)


@dataclass(frozen=True)
class AppLoop:
        elements: Tuple[str, ...]

        @property
        def key(self) -> Tuple[str, ...]:
                return self.elements

        def label(self) -> str:
                return "[" + ", ".join(self.elements) + "]"


@dataclass
class Sensor:
        name: str
        tuple_type: str
        gateway_id: int
        interval_ms: float = 5.0
        latency_ms: float = 0.0


@dataclass
class Actuator:
        name: str
        actuator_type: str
        gateway_id: int
        latency_ms: float = 0.0


@dataclass(frozen=True)
class Weights:
        alpha: float = 0.6
        beta: float = 0.3
        gamma: float = 0.1


@dataclass(frozen=True)
class Score:
        """Per-candidate evaluation; never persisted beyond one selection."""
        latency_ms: float
        energy_j: float
        cost_units: float
        weighted: float


@dataclass
class PlacementDecision:
        module_name: str
        kind: DecisionKind
        node_ids: Tuple[int, ...] = ()
        mode: Optional[Mode] = None
        score: Optional[Score] = None

        @property
        def placed(self) -> bool:
                return self.kind is not DecisionKind.UNPLACED and bool(self.node_ids)


@dataclass
class ControllerState:
        mode: Mode = Mode.DISTRIBUTED
        weights: Weights = field(default_factory=Weights)
        hysteresis: float = 1.0
        tau_latency_ms: float = 300.0
        tau_energy_j: float = 2.0e5
        latency_dead_zone_ms: float = 0.0
        energy_dead_zone_j: float = 0.0


class Application:
    """Modules, data-flow edges and latency loops of one application."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.modules: Dict[str, Module] = {}
        self.edges: List[AppEdge] = []
        self.loops: List[AppLoop] = []

    def add_module(self, name: str, required_capacity: float = 0.0, adaptive: bool = False) -> Module:
        module = Module(name=name, required_capacity=float(required_capacity), adaptive=adaptive)
        self.modules[name] = module
        for edge in self.edges:
            if edge.destination == name:
                module.incoming.append(edge)
            if edge.source == name:
                module.outgoing.append(edge)
        return module

    def add_edge(
        self,
        source: str,
        destination: str,
        work_length: float,
        payload_size: float = 0.0,
        direction: Direction = Direction.UP,
        tuple_type: Optional[str] = None,
    ) -> AppEdge:
        edge = AppEdge(
            source=source,
            destination=destination,
            direction=direction,
            work_length=float(work_length),
            payload_size=float(payload_size),
            tuple_type=tuple_type,
        )
        self.edges.append(edge)
        if destination in self.modules:
            self.modules[destination].incoming.append(edge)
        if source in self.modules:
            self.modules[source].outgoing.append(edge)
        return edge

    def add_loop(self, elements: Iterable[str]) -> AppLoop:
        loop = AppLoop(tuple(elements))
        self.loops.append(loop)
        return loop

    def get_module(self, name: str) -> Optional[Module]:
        return self.modules.get(name)

    def adaptive_modules(self) -> List[Module]:
        return [m for m in self.modules.values() if m.adaptive]

    def edge_between(self, source: str, destination: str) -> Optional[AppEdge]:
        for edge in self.edges:
            if edge.source == source and edge.destination == destination:
                return edge
        return None


class PlacementMap:
    """Module name -> unique node ids, in first-seen order."""

    def __init__(self, entries: Optional[Dict[str, Iterable[int]]] = None) -> None:
        self._entries: Dict[str, Tuple[int, ...]] = {}
        for module_name, node_ids in (entries or {}).items():
            self.assign(module_name, node_ids)

    def assign(self, module_name: str, node_ids: Iterable[int]) -> None:
        unique: List[int] = []
        for node_id in node_ids:
            if node_id not in unique:
                unique.append(int(node_id))
        if unique:
            self._entries[module_name] = tuple(unique)
        else:
            self._entries.pop(module_name, None)

    def get(self, module_name: str) -> Tuple[int, ...]:
        return self._entries.get(module_name, ())

    def modules(self) -> List[str]:
        return list(self._entries.keys())

    def items(self) -> Iterator[Tuple[str, Tuple[int, ...]]]:
        return iter(list(self._entries.items()))

    def copy(self) -> "PlacementMap":
        clone = PlacementMap()
        clone._entries = dict(self._entries)
        return clone

    def as_dict(self) -> Dict[str, List[int]]:
        return {name: list(ids) for name, ids in self._entries.items()}

    def __contains__(self, module_name: object) -> bool:
        return module_name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlacementMap):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"PlacementMap({self.as_dict()!r})"


class Topology:
    """Explicitly constructed node tree; callers own it and pass it by reference."""

    def __init__(self, nodes: Optional[Iterable[Node]] = None) -> None:
        self._lock = threading.RLock()
        self._nodes: Dict[int, Node] = {}
        self._by_name: Dict[str, int] = {}
        for node in nodes or []:
            self.add_node(node)

    def add_node(self, node: Node) -> None:
        with self._lock:
            if node.name in self._by_name and self._by_name[node.name] != node.id:
                raise ValueError(f"duplicate node name '{node.name}'")
            self._nodes[node.id] = node
            self._by_name[node.name] = node.id

    def get_node(self, node_id: int) -> Optional[Node]:
        with self._lock:
            return self._nodes.get(node_id)

    def get_node_by_name(self, name: str) -> Optional[Node]:
        with self._lock:
            node_id = self._by_name.get(name)
            return None if node_id is None else self._nodes.get(node_id)

    def list_nodes(self) -> List[Node]:
        with self._lock:
            return list(self._nodes.values())

    def edge_nodes(self) -> List[Node]:
        return [n for n in self.list_nodes() if not n.is_centralized]

    def centralized_nodes(self) -> List[Node]:
        return [n for n in self.list_nodes() if n.is_centralized]

    def ancestors(self, node_id: int) -> List[int]:
        """Node ids from ``node_id`` up to the root, inclusive."""
        chain: List[int] = []
        with self._lock:
            current = self._nodes.get(node_id)
            while current is not None and current.id not in chain:
                chain.append(current.id)
                if current.parent_id is None:
                    break
                current = self._nodes.get(current.parent_id)
        return chain

    def path_latency_ms(self, a: int, b: int) -> float:
        if a == b:
            return 0.0
        up_a = self.ancestors(a)
        up_b = self.ancestors(b)
        common = next((nid for nid in up_a if nid in up_b), None)

        def climb(chain: List[int]) -> float:
            total = 0.0
            for nid in chain:
                if nid == common:
                    break
                node = self.get_node(nid)
                total += safe_float(node.uplink_latency_ms if node else None, 0.0)
            return total

        return climb(up_a) + climb(up_b)

    def describe(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": n.id,
                "name": n.name,
                "level": n.level,
                "parent_id": n.parent_id,
                "centralized": n.is_centralized,
                "uplink_latency_ms": n.uplink_latency_ms,
                "total_capacity": n.total_capacity,
            }
            for n in self.list_nodes()
        ]


def safe_float(x: Any, default: float = 0.0) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return default


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))
