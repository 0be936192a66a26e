"""
Structural relations between nodes: combinations, clashes, punishments, harms.

Order is significant. Branch combinations run first (three-meeting,
three-harmony, six-combine, half-combine), then stem combinations, then clash
marking, then punishments and harms. A branch captured by a combination is
never re-used by a later combination or by a punishment.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from wuxing.bazi import (
    BRANCH_BY_CHAR,
    BRANCH_COMBINATIONS,
    PAIR_PUNISHMENTS,
    PEAK_BRANCH,
    SELF_PUNISHMENTS,
    SIX_CLASHES,
    SIX_HARMS,
    STEM_COMBINATION_DECAY,
    STEM_COMBINATIONS,
    TRIPLE_PUNISHMENTS,
    BranchCombination,
    CombinationKind,
    Element,
    supports,
)
from wuxing.nodes import EnergyNode, NodeFlag, SimulationState

logger = logging.getLogger(__name__)

# Any of these makes a branch ineligible for the remaining punishment rules
_PUNISH_EXCLUDED = NodeFlag.COMBINED | NodeFlag.PUNISHED | NodeFlag.HARMED | NodeFlag.SELF_PUNISHED


@dataclass(frozen=True)
class StructuralEvent:
    kind: str
    members: tuple[str, ...]
    element: Optional[Element] = None
    strength: Optional[float] = None

    def describe(self) -> str:
        text = f"{self.kind} {''.join(self.members)}"
        if self.element is not None:
            text += f" -> {self.element.value}"
        if self.strength is not None:
            text += f" (strength {self.strength:.2f})"
        return text


# ============================================================
# COMBINATIONS
# ============================================================

def combination_strength(rule: BranchCombination, month_branch: str) -> float:
    """
    1.0 when the combination transforms, `rule.decay` when it only binds.

    Three-meeting needs the month branch inside the group. Three-harmony needs
    the centre branch's element to equal or be produced by the month element.
    Six and half combinations need the same of their target element.
    """
    month_element = BRANCH_BY_CHAR[month_branch].element
    if rule.kind == CombinationKind.THREE_MEETING:
        return 1.0 if month_branch in rule.branches else rule.decay
    if rule.kind == CombinationKind.THREE_HARMONY:
        center_element = BRANCH_BY_CHAR[rule.center].element
        return 1.0 if supports(month_element, center_element) else rule.decay
    return 1.0 if supports(month_element, rule.element) else rule.decay


def stem_combination_strength(element: Element, month_branch: str) -> float:
    return 1.0 if PEAK_BRANCH[element] == month_branch else STEM_COMBINATION_DECAY


def _pool(state: SimulationState, members: list[EnergyNode], contributions: list[float],
          pool: float, target: Element):
    """Withdraw each member's contribution and pay `pool` back onto `target`."""
    config = state.config
    contributed = sum(contributions)
    for node, amount in zip(members, contributions):
        node.distribute(-amount, config)
    for node, amount in zip(members, contributions):
        if contributed > 0:
            node.update(target, pool * (amount / contributed), config)
        node.flag(NodeFlag.COMBINED)


def apply_branch_combinations(state: SimulationState) -> list[StructuralEvent]:
    config = state.config
    events = []
    for rule in BRANCH_COMBINATIONS:
        members = []
        for name in rule.branches:
            candidate = next(
                (n for n in state.branches
                 if n.name == name and not n.has_flag(NodeFlag.COMBINED) and n not in members),
                None,
            )
            if candidate is None:
                break
            members.append(candidate)
        else:
            strength = combination_strength(rule, state.month_branch)
            contrib_ratio = rule.contribution * strength
            external_ratio = rule.external * strength * config.global_external_energy_ratio

            contributions = [n.total * contrib_ratio for n in members]
            pool = sum(contributions) * (1 + external_ratio)
            _pool(state, members, contributions, pool, rule.element)

            event = StructuralEvent(rule.kind.value, rule.branches, rule.element, strength)
            events.append(event)
            logger.debug("Branch combination: %s", event.describe())
    return events


def apply_stem_combinations(state: SimulationState) -> list[StructuralEvent]:
    config = state.config
    events = []
    stems = state.stems
    for i, first in enumerate(stems):
        for second in stems[i + 1:]:
            if first.has_flag(NodeFlag.COMBINED) or second.has_flag(NodeFlag.COMBINED):
                continue
            element = STEM_COMBINATIONS.get(frozenset((first.name, second.name)))
            if element is None:
                continue

            strength = stem_combination_strength(element, state.month_branch)
            members = [first, second]
            contributions = [
                n.total * config.combination_contribution_ratio * strength for n in members
            ]
            contributed = sum(contributions)
            pool = contributed + contributed * (
                config.combination_external_gain * strength * config.global_external_energy_ratio
            )
            # Split evenly rather than pro rata
            for node, amount in zip(members, contributions):
                node.distribute(-amount, config)
            for node in members:
                node.update(element, pool / 2, config)
                node.flag(NodeFlag.COMBINED)

            event = StructuralEvent("stem_combination", (first.name, second.name), element, strength)
            events.append(event)
            logger.debug("Stem combination: %s", event.describe())
    return events


# ============================================================
# CLASHES
# ============================================================

def mark_clashes(state: SimulationState) -> list[StructuralEvent]:
    """Flag both sides of every six-clash present. Energies are untouched."""
    events = []
    for a, b in SIX_CLASHES:
        side_a = [n for n in state.branches if n.name == a]
        side_b = [n for n in state.branches if n.name == b]
        if not side_a or not side_b:
            continue
        for node in side_a + side_b:
            node.flag(NodeFlag.CLASHED)
        events.append(StructuralEvent("clash", (a, b)))
    return events


# ============================================================
# PUNISHMENTS AND HARMS
# ============================================================

def _eligible(state: SimulationState, name: str, taken, excluded: NodeFlag):
    return next(
        (n for n in state.branches
         if n.name == name and not n.has_flag(excluded) and n not in taken),
        None,
    )


def _find_members(state: SimulationState, names, excluded: NodeFlag) -> Optional[list[EnergyNode]]:
    members = []
    for name in names:
        node = _eligible(state, name, members, excluded)
        if node is None:
            return None
        members.append(node)
    return members


def _find_all_members(state: SimulationState, names, excluded: NodeFlag) -> Optional[list[EnergyNode]]:
    """Every eligible node for each name, or None when a name has none."""
    members = []
    for name in names:
        matches = [n for n in state.branches if n.name == name and not n.has_flag(excluded)]
        if not matches:
            return None
        members.extend(matches)
    return members


def _penalize(state: SimulationState, members, ratio: float, flag: NodeFlag):
    for node in members:
        node.distribute(-node.total * ratio, state.config)
        node.flag(flag)


def apply_punishments(state: SimulationState) -> list[StructuralEvent]:
    """
    Triple punishments, the Zi-Mao pair, six harms, then self-punishment.

    Each rule skips branches already combined or flagged by an earlier rule.
    A triple takes the first eligible node per branch; pairs and harms hit
    every eligible node carrying either name.
    """
    config = state.config
    events = []

    for names in TRIPLE_PUNISHMENTS:
        members = _find_members(state, names, NodeFlag.COMBINED | NodeFlag.PUNISHED)
        if members:
            _penalize(state, members, config.punish_loss_ratio, NodeFlag.PUNISHED)
            events.append(StructuralEvent("triple_punishment", names))

    for names in PAIR_PUNISHMENTS:
        members = _find_all_members(state, names, _PUNISH_EXCLUDED)
        if members:
            _penalize(state, members, config.punish_loss_ratio, NodeFlag.PUNISHED)
            events.append(StructuralEvent("punishment", names))

    for names in SIX_HARMS:
        members = _find_all_members(state, names, _PUNISH_EXCLUDED)
        if members:
            _penalize(state, members, config.harm_loss_ratio, NodeFlag.HARMED)
            events.append(StructuralEvent("harm", names))

    for name in SELF_PUNISHMENTS:
        members = [n for n in state.branches if n.name == name and not n.has_flag(_PUNISH_EXCLUDED)]
        if len(members) >= 2:
            _penalize(state, members, config.self_punish_loss_ratio, NodeFlag.SELF_PUNISHED)
            events.append(StructuralEvent("self_punishment", tuple(n.name for n in members)))

    for event in events:
        logger.debug("Punishment: %s", event.describe())
    return events


def _summary(events) -> str:
    if not events:
        return "none"
    return "; ".join(e.describe() for e in events)


def apply_structure(state: SimulationState) -> list[StructuralEvent]:
    """Run every structural stage in order, logging one entry per stage."""
    combined = apply_branch_combinations(state) + apply_stem_combinations(state)
    state.record("combine", f"Combinations: {_summary(combined)}")

    clashes = mark_clashes(state)
    state.record("clash", f"Clashes: {_summary(clashes)}")

    punished = apply_punishments(state)
    state.record("punish_harm", f"Punishments and harms: {_summary(punished)}")
    return combined + clashes + punished
