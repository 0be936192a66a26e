"""
Relation network between stem nodes and five-element cycle detection.
"""

import logging

from wuxing.bazi import CONTROL_CYCLE, CYCLE_ORDER, ELEMENTS, PRODUCTION_CYCLE
from wuxing.nodes import Relation, SimulationState

logger = logging.getLogger(__name__)


def build_relations(state: SimulationState):
    """
    Derive generative and restraining edges between every ordered pair of
    distinct stem nodes.

    For each element the source holds, an edge exists when the target holds
    the element that one produces (generative) or controls (restraining).
    Both lists are sorted by (source slot, target slot).
    """
    generate, control = [], []
    stems = state.stems
    for source in stems:
        for target in stems:
            if source is target:
                continue
            for element in ELEMENTS:
                if not source.holds(element):
                    continue
                produced = PRODUCTION_CYCLE[element]
                if target.holds(produced):
                    generate.append(Relation(source, target, element, produced))
                controlled = CONTROL_CYCLE[element]
                if target.holds(controlled):
                    control.append(Relation(source, target, element, controlled))

    def order(rel):
        return (rel.source.position.order, rel.target.position.order)

    state.generate_relations = sorted(generate, key=order)
    state.control_relations = sorted(control, key=order)
    state.record(
        "relations",
        f"{len(state.generate_relations)} generative and "
        f"{len(state.control_relations)} restraining relation(s)",
    )
    return state.generate_relations, state.control_relations


def detect_cycle(state: SimulationState):
    """
    Record a five-node production cycle when every element is some node's
    original element: the first node of each, metal -> water -> wood -> fire -> earth.
    """
    first_by_element = {}
    for node in state.nodes:
        first_by_element.setdefault(node.element, node)

    if all(element in first_by_element for element in CYCLE_ORDER):
        state.cycle = tuple(first_by_element[element] for element in CYCLE_ORDER)
        names = "".join(node.name for node in state.cycle)
        state.record("cycle", f"Five-element cycle detected: {names}")
        logger.debug("Cycle detected: %s", names)
    else:
        state.cycle = None
        missing = ", ".join(e.value for e in CYCLE_ORDER if e not in first_by_element)
        state.record("cycle", f"No five-element cycle (missing {missing})")
    return state.cycle
