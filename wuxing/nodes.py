"""
Energy nodes and the per-run simulation state.

A chart becomes eight nodes: one per stem and one per branch. Each node keeps
its original element and polarity, a mutable element -> energy mapping, a set
of structural flags and an action counter that drives diminishing returns.
"""

from dataclasses import dataclass, field
from enum import Flag, auto
from typing import Optional

from wuxing.bazi import (
    ELEMENTS,
    PILLAR_NAMES,
    Element,
    NodeKind,
    Polarity,
    position_weight,
    slot_index,
)
from wuxing.config import EnergyConfig


class NodeFlag(Flag):
    NONE = 0
    COMBINED = auto()
    CLASHED = auto()
    PUNISHED = auto()
    HARMED = auto()
    SELF_PUNISHED = auto()
    DAY_MASTER = auto()


FLAG_NAMES = {
    NodeFlag.COMBINED: "combined",
    NodeFlag.CLASHED: "clashed",
    NodeFlag.PUNISHED: "punished",
    NodeFlag.HARMED: "harmed",
    NodeFlag.SELF_PUNISHED: "self_punished",
    NodeFlag.DAY_MASTER: "day_master",
}

# 1.0, 0.5, 0.25, then 0.125 for every later action
_ACTION_EFFICIENCY = (1.0, 0.5, 0.25)
_ACTION_EFFICIENCY_FLOOR = 0.125


@dataclass(frozen=True)
class NodePosition:
    pillar_index: int
    kind: NodeKind

    @property
    def order(self) -> int:
        return slot_index(self.pillar_index, self.kind)

    @property
    def label(self) -> str:
        return f"{PILLAR_NAMES[self.pillar_index]} {self.kind.value}"

    @property
    def weight(self) -> float:
        return position_weight(self.pillar_index, self.kind)


@dataclass(frozen=True)
class NodeSnapshot:
    name: str
    position: NodePosition
    element: Element
    polarity: Polarity
    energies: tuple[tuple[Element, float], ...]
    flags: NodeFlag

    @property
    def kind(self) -> NodeKind:
        return self.position.kind

    @property
    def total(self) -> float:
        return sum(v for _, v in self.energies)

    def energy(self, element: Element) -> float:
        return dict(self.energies).get(element, 0.0)

    def to_dict(self):
        return {
            "name": self.name,
            "position": self.position.label,
            "element": self.element.value,
            "polarity": self.polarity.value,
            "energies": {e.value: round(v, 4) for e, v in self.energies},
            "total": round(self.total, 4),
            "flags": flag_names(self.flags),
        }


def flag_names(flags: NodeFlag) -> list[str]:
    return [name for flag, name in FLAG_NAMES.items() if flag in flags]


class EnergyNode:
    """A single stem or branch carrying element energies."""

    def __init__(self, name: str, position: NodePosition, element: Element, polarity: Polarity):
        self.name = name
        self.position = position
        self.element = element
        self.polarity = polarity
        self.energies: dict[Element, float] = {}
        self.flags = NodeFlag.NONE
        self.action_count = 0

    def __repr__(self):
        parts = ", ".join(f"{e.value}={v:.1f}" for e, v in self.energies.items())
        return f"EnergyNode({self.name} @ {self.position.label}: {parts})"

    @property
    def kind(self) -> NodeKind:
        return self.position.kind

    @property
    def is_stem(self) -> bool:
        return self.position.kind == NodeKind.STEM

    @property
    def weight(self) -> float:
        return self.position.weight

    @property
    def total(self) -> float:
        return sum(self.energies.values())

    def energy(self, element: Element) -> float:
        return self.energies.get(element, 0.0)

    def holds(self, element: Element) -> bool:
        return self.energies.get(element, 0.0) > 0

    def update(self, element: Element, delta: float, config: EnergyConfig):
        """Add `delta` to one element, clamped into [min_energy, max_energy]."""
        value = self.energies.get(element, 0.0) + delta
        self.energies[element] = min(max(value, config.min_energy), config.max_energy)

    def scale(self, element: Element, factor: float, config: EnergyConfig):
        current = self.energies.get(element, 0.0)
        if current > 0:
            self.update(element, current * factor - current, config)

    def distribute(self, delta: float, config: EnergyConfig):
        """Spread `delta` over the current elements in proportion to their energy."""
        total = self.total
        if total <= 0:
            if delta > 0:
                self.update(self.element, delta, config)
            return
        for element, value in list(self.energies.items()):
            self.update(element, delta * (value / total), config)

    def flag(self, flag: NodeFlag):
        self.flags |= flag

    def has_flag(self, flag: NodeFlag) -> bool:
        return bool(self.flags & flag)

    def action_efficiency(self) -> float:
        if self.action_count < len(_ACTION_EFFICIENCY):
            return _ACTION_EFFICIENCY[self.action_count]
        return _ACTION_EFFICIENCY_FLOOR

    def snapshot(self) -> NodeSnapshot:
        return NodeSnapshot(
            name=self.name,
            position=self.position,
            element=self.element,
            polarity=self.polarity,
            energies=tuple((e, self.energies[e]) for e in ELEMENTS if e in self.energies),
            flags=self.flags,
        )


@dataclass(frozen=True)
class Relation:
    """A directed generative or restraining edge between two stem nodes."""
    source: EnergyNode
    target: EnergyNode
    source_element: Element
    target_element: Element

    def to_dict(self):
        return {
            "source": f"{self.source.name} ({self.source.position.label})",
            "target": f"{self.target.name} ({self.target.position.label})",
            "source_element": self.source_element.value,
            "target_element": self.target_element.value,
        }


@dataclass(frozen=True)
class LogEntry:
    step: str
    description: str
    nodes: tuple[NodeSnapshot, ...] = ()

    def as_pair(self):
        return (self.step, self.description)

    def to_dict(self):
        return {
            "step": self.step,
            "description": self.description,
            "nodes": [n.to_dict() for n in self.nodes],
        }


@dataclass
class SimulationState:
    nodes: list[EnergyNode]
    config: EnergyConfig
    generate_relations: list[Relation] = field(default_factory=list)
    control_relations: list[Relation] = field(default_factory=list)
    cycle: Optional[tuple[EnergyNode, ...]] = None
    log: list[LogEntry] = field(default_factory=list)
    base_snapshot: tuple[NodeSnapshot, ...] = ()
    raw_snapshot: Optional[tuple[NodeSnapshot, ...]] = None

    @property
    def stems(self) -> list[EnergyNode]:
        return [n for n in self.nodes if n.is_stem]

    @property
    def branches(self) -> list[EnergyNode]:
        return [n for n in self.nodes if not n.is_stem]

    @property
    def day_master(self) -> EnergyNode:
        return self.node_at(2, NodeKind.STEM)

    @property
    def month_branch(self) -> str:
        return self.node_at(1, NodeKind.BRANCH).name

    def node_at(self, pillar_index: int, kind: NodeKind) -> EnergyNode:
        for node in self.nodes:
            if node.position.pillar_index == pillar_index and node.kind == kind:
                return node
        raise KeyError(f"No {kind.value} node in pillar {pillar_index}")

    def snapshot(self) -> tuple[NodeSnapshot, ...]:
        return tuple(n.snapshot() for n in self.nodes)

    def record(self, step: str, description: str):
        self.log.append(LogEntry(step, description, self.snapshot()))

    def reset_action_counts(self):
        for node in self.nodes:
            node.action_count = 0
