"""
Pillar validation and initial node construction.

Builds the eight energy nodes for a chart and applies the three static
adjustments that precede any structural relation: root/qi gain, month-order
(seasonal) correction and penetration.
"""

import logging
from dataclasses import dataclass
from typing import Mapping

from wuxing.bazi import (
    BRANCH_BY_CHAR,
    BRANCH_QI,
    MONTH_COEFFICIENTS,
    PILLAR_NAMES,
    STEM_BY_CHAR,
    NodeKind,
)
from wuxing.config import EnergyConfig, ValidationError
from wuxing.nodes import EnergyNode, NodeFlag, NodePosition, SimulationState

logger = logging.getLogger(__name__)

ROOT_SHARE = 0.6
QI_SHARE = 0.2


@dataclass(frozen=True)
class PillarSet:
    year: str
    month: str
    day: str
    hour: str

    def __post_init__(self):
        for position in PILLAR_NAMES:
            _check_pillar(position, getattr(self, position))

    def __iter__(self):
        return iter((self.year, self.month, self.day, self.hour))

    def __str__(self):
        return " ".join(self)

    @property
    def day_stem(self) -> str:
        return self.day[0]

    @property
    def month_branch(self) -> str:
        return self.month[1]

    @classmethod
    def parse(cls, value) -> "PillarSet":
        """Accept a PillarSet, a year/month/day/hour mapping, or four codes in order."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            missing = [p for p in PILLAR_NAMES if p not in value]
            if missing:
                raise ValidationError(f"Missing pillars: {', '.join(missing)}")
            return cls(*(value[p] for p in PILLAR_NAMES))
        if isinstance(value, str):
            value = value.split()
        try:
            codes = list(value)
        except TypeError:
            raise ValidationError(f"Cannot read pillars from {value!r}") from None
        if len(codes) != 4:
            raise ValidationError(f"Expected 4 pillars, got {len(codes)}")
        return cls(*codes)

    def to_dict(self):
        return dict(zip(PILLAR_NAMES, self))


def _check_pillar(position, code):
    if not isinstance(code, str) or len(code) != 2:
        raise ValidationError(f"{position} pillar must be two characters, got {code!r}")
    stem, branch = code
    if stem not in STEM_BY_CHAR:
        raise ValidationError(f"{position} pillar {code!r}: {stem!r} is not a heavenly stem")
    if branch not in BRANCH_BY_CHAR:
        raise ValidationError(f"{position} pillar {code!r}: {branch!r} is not an earthly branch")


# ============================================================
# NODE CONSTRUCTION
# ============================================================

def create_nodes(pillars: PillarSet, config: EnergyConfig) -> list[EnergyNode]:
    """One stem node and one branch node per pillar, at base energy."""
    nodes = []
    for i, code in enumerate(pillars):
        stem = STEM_BY_CHAR[code[0]]
        branch = BRANCH_BY_CHAR[code[1]]

        stem_node = EnergyNode(stem.chinese, NodePosition(i, NodeKind.STEM),
                               stem.element, stem.polarity)
        stem_node.update(stem.element, config.stem_base_energy, config)
        if i == 2:
            stem_node.flag(NodeFlag.DAY_MASTER)

        branch_node = EnergyNode(branch.chinese, NodePosition(i, NodeKind.BRANCH),
                                 branch.element, branch.polarity)
        split = BRANCH_QI.get(branch.chinese, {branch.element: 1.0})
        for element, share in split.items():
            branch_node.update(element, config.branch_base_energy * share, config)

        nodes.extend([stem_node, branch_node])
    return nodes


def apply_root_qi(state: SimulationState) -> int:
    """
    Strengthen stems rooted in a branch that carries their element.

    Same-pillar branch share >= 0.6 is a root, >= 0.2 is qi. Without either,
    the first other branch with share >= 0.2 gives a reduced qi gain.

    Returns:
        Number of stems adjusted
    """
    config = state.config
    cross_factor = 1 + (config.qi_gain_factor - 1) * config.cross_pillar_qi_ratio
    adjusted = 0

    for stem in state.stems:
        own_branch = state.node_at(stem.position.pillar_index, NodeKind.BRANCH)
        share = BRANCH_QI.get(own_branch.name, {}).get(stem.element, 0.0)

        factor = 1.0
        if share >= ROOT_SHARE:
            factor = config.root_gain_factor
        elif share >= QI_SHARE:
            factor = config.qi_gain_factor
        else:
            for branch in state.branches:
                if branch is own_branch:
                    continue
                if BRANCH_QI.get(branch.name, {}).get(stem.element, 0.0) >= QI_SHARE:
                    factor = cross_factor
                    break

        if factor != 1.0:
            stem.scale(stem.element, factor, config)
            adjusted += 1
            logger.debug("%s %s gains x%.2f from roots", stem.position.label, stem.name, factor)
    return adjusted


def apply_month_order(state: SimulationState):
    """Multiply every element energy by the month branch's seasonal coefficient."""
    config = state.config
    coefficients = MONTH_COEFFICIENTS.get(state.month_branch)
    if coefficients is None:
        return
    for node in state.nodes:
        for element in list(node.energies):
            node.scale(element, coefficients.get(element, 1.0), config)


def apply_penetration(state: SimulationState) -> int:
    """Boost branch energy in any element that also shows on a stem."""
    config = state.config
    stem_elements = {stem.element for stem in state.stems}
    boosted = 0
    for branch in state.branches:
        for element in list(branch.energies):
            if element in stem_elements:
                branch.scale(element, config.penetration_factor, config)
                boosted += 1
    return boosted


def init_nodes(pillars, config: EnergyConfig) -> SimulationState:
    """
    Build the simulation state for a pillar set.

    Pillars are validated before any node exists. Records the base snapshot
    and one log entry per adjustment.
    """
    pillars = PillarSet.parse(pillars)
    state = SimulationState(nodes=create_nodes(pillars, config), config=config)
    state.base_snapshot = state.snapshot()
    state.record("init", f"Created {len(state.nodes)} nodes for {pillars}")

    rooted = apply_root_qi(state)
    state.record("root_qi", f"Root/qi gain applied to {rooted} stem(s)")

    apply_month_order(state)
    state.record("month_order", f"Month-order coefficients of {state.month_branch} applied")

    boosted = apply_penetration(state)
    state.record("penetration", f"Penetration boost applied to {boosted} branch element(s)")
    return state
