"""
Energy transfer between nodes: generative (相生) and restraining (相克)
passes, followed by the boundary clamp.

Every transfer is scaled by the positional weights of both endpoints and by
each node's action efficiency, so a node acting for the fourth time moves
only an eighth of the energy it would have moved on its first action.
"""

import logging
import math
from dataclasses import dataclass

from wuxing.bazi import POSITION_INTERACTION_MATRIX, Element, Polarity
from wuxing.config import EnergyConfig
from wuxing.nodes import EnergyNode, SimulationState

logger = logging.getLogger(__name__)

EPSILON = 1e-6

_YANG, _YIN = Polarity.YANG, Polarity.YIN


# ============================================================
# GENERATIVE COEFFICIENTS
# ============================================================

GIVE_DECAY = 0.8  # give ratio = max_give * exp(-GIVE_DECAY * r)

# External coefficient (base, max) by mother/child polarity
EXTERNAL_BY_POLARITY = {
    (_YANG, _YANG): (1.2, 2.0),
    (_YANG, _YIN): (1.0, 1.8),
    (_YIN, _YANG): (0.6, 1.2),
    (_YIN, _YIN): (0.8, 1.5),
}

EXTERNAL_ELEMENT_BONUS = {
    (Element.WOOD, Element.FIRE): 0.4,
    (Element.FIRE, Element.EARTH): 0.2,
    (Element.EARTH, Element.METAL): 0.3,
    (Element.METAL, Element.WATER): 0.35,
    (Element.WATER, Element.WOOD): 0.5,
}
DEFAULT_ELEMENT_BONUS = 0.2

# Transfer efficiency (base, range) by element pair
EFFICIENCY_BY_ELEMENT = {
    (Element.WOOD, Element.FIRE): (0.75, 0.1),
    (Element.FIRE, Element.EARTH): (0.65, 0.1),
    (Element.EARTH, Element.METAL): (0.8, 0.15),
    (Element.METAL, Element.WATER): (0.85, 0.1),
    (Element.WATER, Element.WOOD): (0.9, 0.05),
}
DEFAULT_EFFICIENCY = (0.7, 0.1)

EFFICIENCY_POLARITY_ADJUST = {
    (_YANG, _YANG): 0.8,
    (_YANG, _YIN): 0.4,
    (_YIN, _YANG): -0.2,
    (_YIN, _YIN): 0.0,
}

MIN_EFFICIENCY = 0.05
MAX_EFFICIENCY = 0.95
EXTERNAL_MARGIN = 0.1


# ============================================================
# RESTRAINING COEFFICIENTS
# ============================================================

MIN_LOSS_RATIO = 0.005

# (max source loss, max target loss, alpha, beta) by controller/controlled element
RESTRAINT_BY_ELEMENT = {
    (Element.WOOD, Element.EARTH): (0.28, 0.25, 1.0, 1.0),
    (Element.FIRE, Element.METAL): (0.25, 0.32, 1.3, 1.2),
    (Element.EARTH, Element.WATER): (0.22, 0.30, 1.5, 1.3),
    (Element.METAL, Element.WOOD): (0.18, 0.40, 2.0, 1.8),
    (Element.WATER, Element.FIRE): (0.20, 0.38, 1.8, 1.6),
}

RESTRAINT_POWER = {
    (_YANG, _YANG): 1.4,
    (_YIN, _YIN): 1.0,
    (_YANG, _YIN): 1.2,
    (_YIN, _YANG): 0.9,
}


# ============================================================
# EDGE WEIGHTS
# ============================================================

def matrix_coefficient(source: EnergyNode, target: EnergyNode, enabled: bool) -> float:
    if not enabled:
        return 1.0
    return float(POSITION_INTERACTION_MATRIX[source.position.order][target.position.order])


def edge_weight(source: EnergyNode, target: EnergyNode, config: EnergyConfig) -> float:
    return (source.weight * target.weight
            * matrix_coefficient(source, target, config.enable_position_matrix))


# ============================================================
# GENERATIVE TRANSFER
# ============================================================

@dataclass(frozen=True)
class GenerateOutcome:
    given: float
    external: float
    received: float
    efficiency: float
    clamped: bool  # external coefficient was raised above efficiency


def _external_coefficient(r, mother_el, child_el, mother_pol, child_pol, boost):
    base, ceiling = EXTERNAL_BY_POLARITY[(mother_pol, child_pol)]
    bonus = EXTERNAL_ELEMENT_BONUS.get((mother_el, child_el), DEFAULT_ELEMENT_BONUS)
    if r >= 1:
        ratio_factor = min(1.2, 1 + (r - 1) * 0.1)
    else:
        ratio_factor = max(0.6, r)
    coef = (base + bonus) * ratio_factor * boost
    return min(max(coef, 0.1), ceiling * boost)


def _transfer_efficiency(r, mother_el, child_el, mother_pol, child_pol):
    base, spread = EFFICIENCY_BY_ELEMENT.get((mother_el, child_el), DEFAULT_EFFICIENCY)
    eff = base + EFFICIENCY_POLARITY_ADJUST[(mother_pol, child_pol)] * spread
    # A mother one to two times the child's strength transfers best
    if r < 1.0:
        eff *= 0.5 + r * 0.5
    elif r > 2.0:
        eff *= 1 - (r - 2.0) * 0.05
    return min(max(eff, MIN_EFFICIENCY), MAX_EFFICIENCY)


def generate_once(mother_energy: float, child_energy: float,
                  mother_element: Element, child_element: Element,
                  mother_polarity: Polarity, child_polarity: Polarity,
                  config: EnergyConfig, boost: float = 1.0) -> GenerateOutcome:
    """
    One mother -> child transfer, before edge weight and action efficiency.

    Args:
        mother_energy, child_energy: energy in the transferring elements
        boost: gain multiplier; the cycle pass uses cycle gain / relation gain
    """
    em = max(mother_energy, EPSILON)
    ec = max(child_energy, EPSILON)
    r = em / ec

    max_give = config.relation_generate_gain * boost
    min_give = min(0.005 * boost, max_give * 0.2)
    give_ratio = min(max(max_give * math.exp(-GIVE_DECAY * r), min_give), max_give)
    given = em * give_ratio

    coef = _external_coefficient(r, mother_element, child_element,
                                 mother_polarity, child_polarity, boost)
    efficiency = _transfer_efficiency(r, mother_element, child_element,
                                      mother_polarity, child_polarity)

    effective_external = coef * config.global_external_energy_ratio
    clamped = effective_external <= efficiency
    if clamped:
        effective_external = efficiency + EXTERNAL_MARGIN

    external = given * effective_external
    received = (given + external) * efficiency
    return GenerateOutcome(given, external, received, efficiency, clamped)


def _transfer(mother: EnergyNode, child: EnergyNode, mother_element: Element,
              child_element: Element, config: EnergyConfig, boost: float = 1.0):
    em = mother.energy(mother_element)
    ec = child.energy(child_element)
    if em <= 0 or ec <= 0:
        return None

    mother_eff = mother.action_efficiency()
    child_eff = child.action_efficiency()
    outcome = generate_once(em, ec, mother_element, child_element,
                            mother.polarity, child.polarity, config, boost)

    weight = edge_weight(mother, child, config)
    given = outcome.given * mother_eff * weight
    received = outcome.received * child_eff * weight
    if given > 0:
        mother.update(mother_element, -given, config)
        mother.action_count += 1
    if received > 0:
        child.update(child_element, received, config)
        child.action_count += 1
    return outcome


def apply_generation(state: SimulationState) -> dict:
    """
    Run the cycle pass, then every generative relation not already covered
    by the cycle.

    Returns:
        Counts of transfers and of external-coefficient clamps
    """
    config = state.config
    stats = {"cycle": 0, "relations": 0, "skipped": 0, "clamped": 0}

    if state.cycle:
        boost = config.cycle_generate_gain / max(config.relation_generate_gain, EPSILON)
        cycle = state.cycle
        for i, mother in enumerate(cycle):
            child = cycle[(i + 1) % len(cycle)]
            outcome = _transfer(mother, child, mother.element, child.element, config, boost)
            if outcome is not None:
                stats["cycle"] += 1
                stats["clamped"] += outcome.clamped

    in_cycle = set(map(id, state.cycle or ()))
    for rel in state.generate_relations:
        if id(rel.source) in in_cycle and id(rel.target) in in_cycle:
            stats["skipped"] += 1
            continue
        outcome = _transfer(rel.source, rel.target, rel.source_element,
                            rel.target_element, config)
        if outcome is not None:
            stats["relations"] += 1
            stats["clamped"] += outcome.clamped

    if stats["clamped"]:
        logger.debug("External coefficient raised above efficiency in %d transfer(s)",
                     stats["clamped"])
    state.record(
        "generate",
        f"Generative transfers: {stats['cycle']} cycle, {stats['relations']} relation, "
        f"{stats['skipped']} skipped, {stats['clamped']} external clamp(s)",
    )
    return stats


# ============================================================
# RESTRAINING TRANSFER
# ============================================================

def restraint_ratios(source_energy: float, target_energy: float,
                     source_element: Element, target_element: Element,
                     source_polarity: Polarity, target_polarity: Polarity,
                     config: EnergyConfig) -> tuple[float, float]:
    """Loss ratios (controller, controlled) for one restraining relation."""
    params = RESTRAINT_BY_ELEMENT.get((source_element, target_element))
    if params is None:
        max_k = min(0.01, config.relation_control_source_loss)
        max_b = min(0.01, config.relation_control_target_loss)
        alpha = beta = 1.0
    else:
        max_k, max_b, alpha, beta = params

    ratio = max(source_energy, EPSILON) / max(target_energy, EPSILON)
    loss_k = max(max_k * math.exp(-alpha * ratio), MIN_LOSS_RATIO)
    loss_b = max(max_b * (1 - math.exp(-beta * ratio)), MIN_LOSS_RATIO)

    if source_polarity == target_polarity == _YANG:
        delta = config.same_yang_delta
    elif source_polarity == target_polarity == _YIN:
        delta = config.same_yin_delta
    else:
        delta = 0.0
    power = RESTRAINT_POWER[(source_polarity, target_polarity)]
    loss_k *= (1 + delta) * power
    loss_b *= (1 + delta) * power

    loss_k = max(MIN_LOSS_RATIO, min(loss_k, max_k))
    loss_b = max(MIN_LOSS_RATIO, min(loss_b, max_b))
    return loss_k, loss_b


def apply_restraint(state: SimulationState) -> int:
    """Apply every restraining relation in order. Returns the number applied."""
    config = state.config
    applied = 0
    for rel in state.control_relations:
        source, target = rel.source, rel.target
        src_energy = source.energy(rel.source_element)
        tgt_energy = target.energy(rel.target_element)
        if src_energy <= 0 or tgt_energy <= 0:
            continue

        source_eff = source.action_efficiency()
        target_eff = target.action_efficiency()
        loss_k, loss_b = restraint_ratios(src_energy, tgt_energy,
                                          rel.source_element, rel.target_element,
                                          source.polarity, target.polarity, config)
        weight = edge_weight(source, target, config)
        loss_src = src_energy * loss_k * source_eff * weight
        loss_tgt = tgt_energy * loss_b * target_eff * weight

        if loss_src > 0:
            source.update(rel.source_element, -loss_src, config)
            source.action_count += 1
        if loss_tgt > 0:
            target.update(rel.target_element, -loss_tgt, config)
            target.action_count += 1
        applied += 1

    state.record("control", f"Restraining transfers: {applied} applied")
    return applied


# ============================================================
# BOUNDARY CLAMP
# ============================================================

def clamp_node(node: EnergyNode, config: EnergyConfig) -> bool:
    """Bring a node's total into [min_energy, max_energy]. Returns True if changed."""
    total = node.total
    if total <= 0:
        node.energies = {node.element: config.min_energy}
        return True
    if total > config.max_energy:
        factor = config.max_energy / total
        node.energies = {e: v * factor for e, v in node.energies.items()}
        return True
    if total < config.min_energy:
        node.distribute(config.min_energy - total, config)
        return True
    return False


def apply_bounds(state: SimulationState) -> int:
    changed = sum(clamp_node(node, state.config) for node in state.nodes)
    state.record("bounds", f"Boundary clamp adjusted {changed} node(s)")
    return changed
