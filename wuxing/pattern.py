"""
Pattern judge (格局) built on the disease/remedy (病药) model.

Node energies are projected onto the ten Ten God categories twice: once
from the raw snapshot taken before any transfer and once from the balanced
nodes after the bounds stage. From the two vectors:
- the disease (病神) is the category that threatens the Day Master most
- the remedy (相神) is the category that spent the most energy balancing
- an action verb describes how the remedy treats the disease
- result tags record what the balancing produced
- a 0-100 score grades the pattern

Design principle: everything here is a pure function of the two snapshots
and the day stem. Nothing mutates the simulation state.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from wuxing.bazi import BRANCH_BY_CHAR, TEN_GODS, NodeKind, TenGod, ten_god
from wuxing.nodes import NodeSnapshot

logger = logging.getLogger(__name__)

EPSILON = 1e-6

DISEASE_THRESHOLD = 0.7
REMEDY_THRESHOLD = 0.3

# The Day Master's own category
SELF_GOD = TenGod.COMPANION

# Threat coefficient per category (α)
THREAT_COEFFICIENTS = {
    TenGod.COMPANION: 0.35,
    TenGod.ROB_WEALTH: 0.90,
    TenGod.EATING_GOD: 0.50,
    TenGod.HURTING_OFFICER: 1.25,
    TenGod.DIRECT_WEALTH: 0.30,
    TenGod.INDIRECT_WEALTH: 0.60,
    TenGod.DIRECT_OFFICER: 0.55,
    TenGod.SEVEN_KILLINGS: 2.50,
    TenGod.DIRECT_RESOURCE: 0.25,
    TenGod.INDIRECT_RESOURCE: 0.40,
}

# Categories that support or serve the Day Master are never the disease
NON_DISEASE = frozenset({
    TenGod.COMPANION,
    TenGod.DIRECT_WEALTH,
    TenGod.INDIRECT_WEALTH,
    TenGod.DIRECT_RESOURCE,
    TenGod.INDIRECT_RESOURCE,
})

RESULT_INCREASE = 1.3
SELF_INCREASE = 1.2
TOTAL_INCREASE = 1.15
SETTLED_SUPPRESSION = 0.6


class Action(Enum):
    CONTROL = "制"
    COMBINE = "合"
    TRANSFORM = "化"
    PAIR = "配"
    SHOULDER = "担"
    BREAK = "坏"
    DRAIN = "泄"
    HARMONIZE = "调"


ACTION_VERBS = {
    Action.CONTROL: "restrains",
    Action.COMBINE: "binds",
    Action.TRANSFORM: "transforms",
    Action.PAIR: "pairs with",
    Action.SHOULDER: "shoulders",
    Action.BREAK: "breaks",
    Action.DRAIN: "drains",
    Action.HARMONIZE: "harmonizes",
}

_WEALTH = {TenGod.DIRECT_WEALTH, TenGod.INDIRECT_WEALTH}
_OFFICERS = {TenGod.DIRECT_OFFICER, TenGod.SEVEN_KILLINGS}
_RESOURCES = {TenGod.DIRECT_RESOURCE, TenGod.INDIRECT_RESOURCE}
_COMPANIONS = {TenGod.COMPANION, TenGod.ROB_WEALTH}
_OUTPUTS = {TenGod.EATING_GOD, TenGod.HURTING_OFFICER}

# (remedies, diseases, action), first match wins
ACTION_RULES = (
    ({TenGod.EATING_GOD}, {TenGod.SEVEN_KILLINGS}, Action.CONTROL),
    ({TenGod.HURTING_OFFICER}, {TenGod.SEVEN_KILLINGS}, Action.COMBINE),
    (_RESOURCES, {TenGod.SEVEN_KILLINGS}, Action.TRANSFORM),
    (_RESOURCES, {TenGod.HURTING_OFFICER}, Action.PAIR),
    (_COMPANIONS, _WEALTH, Action.SHOULDER),
    (_WEALTH, _RESOURCES, Action.BREAK),
    (_OFFICERS, _COMPANIONS, Action.CONTROL),
    (_OUTPUTS, _COMPANIONS, Action.DRAIN),
)


class ResultTag(Enum):
    WEALTH = "生财"
    STATUS = "生官"
    RESOURCE = "生印"
    SELF = "生身"
    MOMENTUM = "成势"
    SETTLED = "成局"


RESULT_TEXT = {
    ResultTag.WEALTH: "turns into wealth",
    ResultTag.STATUS: "gains status",
    ResultTag.RESOURCE: "deepens learning",
    ResultTag.SELF: "strengthens the self",
    ResultTag.MOMENTUM: "builds momentum",
    ResultTag.SETTLED: "settles the pattern",
}

# Sentence parts joined by explain(); categories are filled in as "English (中文)"
EXPLANATION_TEMPLATES = {
    "disease": "The chart's main tension is {disease}",
    "remedy": "{remedy} {verb} {disease}",
    "results": "the balance {effects}",
    "peaceful": "No category threatens the Day Master; the chart is at peace.",
}


class Grade(Enum):
    SUPERIOR = "上等格局"
    MIDDLE = "中等格局"
    LOWER = "下等格局"
    BROKEN = "破格"


def _name(god: TenGod) -> str:
    return f"{god.english} ({god.value})"


# ============================================================
# TEN GOD PROJECTION
# ============================================================

@dataclass(frozen=True)
class TenGodShare:
    """Part of one node's energy attributed to one Ten God."""
    node: str
    position: str
    god: TenGod
    energy: float
    weight: float


def ten_god_shares(snapshots: Sequence[NodeSnapshot], day_stem: str) -> list[TenGodShare]:
    """
    Attribute every node's total energy to Ten God categories.

    A stem maps to its own category. A branch's energy is split evenly
    across its hidden stems.
    """
    shares = []
    for snap in snapshots:
        if snap.kind == NodeKind.STEM:
            parts = [(snap.name, snap.total)]
        else:
            hidden = BRANCH_BY_CHAR[snap.name].hidden_stems
            parts = [(h, snap.total / len(hidden)) for h in hidden]
        for stem, energy in parts:
            god = ten_god(day_stem, stem)
            if god is None:
                continue
            shares.append(TenGodShare(snap.name, snap.position.label, god, energy,
                                      snap.position.weight))
    return shares


def ten_god_vector(shares: Sequence[TenGodShare]) -> dict:
    """Position-weighted energy per category; every category present."""
    vector = {g: 0.0 for g in TEN_GODS}
    for share in shares:
        vector[share.god] += share.energy * share.weight
    return vector


# ============================================================
# DISEASE AND REMEDY
# ============================================================

@dataclass(frozen=True)
class Threat:
    god: TenGod
    threat: float
    normalized: float


def identify_disease(shares: Sequence[TenGodShare], day_master_energy: float):
    """
    Pick the disease from per-share threats α × weight × (E / E_day_master).

    Threats are summed per category and divided by max(largest threat, 1),
    so a chart where nothing reaches the threshold has no disease.

    Returns:
        (disease or None, threats sorted by normalised threat)
    """
    self_energy = max(day_master_energy, EPSILON)
    totals = {g: 0.0 for g in TEN_GODS if g not in NON_DISEASE}
    for share in shares:
        if share.god in NON_DISEASE:
            continue
        totals[share.god] += THREAT_COEFFICIENTS[share.god] * share.weight * (share.energy / self_energy)

    peak = max(max(totals.values()), 1.0)
    threats = sorted(
        (Threat(g, t, t / peak) for g, t in totals.items()),
        key=lambda t: t.normalized,
        reverse=True,
    )
    disease = next((t.god for t in threats if t.normalized >= DISEASE_THRESHOLD), None)
    return disease, threats


@dataclass(frozen=True)
class LossRate:
    god: TenGod
    raw: float
    balanced: float
    rate: float


def identify_remedy(raw: dict, balanced: dict):
    """
    Pick the remedy: the category (other than the Day Master's own) that lost
    the largest share of its raw energy, if that share is at least 0.3.

    Returns:
        (remedy or None, loss rates sorted high to low)
    """
    rates = []
    for god in TEN_GODS:
        if god == SELF_GOD:
            continue
        r, b = raw.get(god, 0.0), balanced.get(god, 0.0)
        rate = (r - b) / r if r > 0 else 0.0
        rates.append(LossRate(god, r, b, rate))
    rates.sort(key=lambda lr: lr.rate, reverse=True)
    remedy = next((lr.god for lr in rates if lr.rate >= REMEDY_THRESHOLD), None)
    return remedy, rates


def determine_action(remedy: Optional[TenGod], disease: Optional[TenGod]) -> Optional[Action]:
    if remedy is None or disease is None:
        return None
    for remedies, diseases, action in ACTION_RULES:
        if remedy in remedies and disease in diseases:
            return action
    return Action.HARMONIZE


def suppression(raw: dict, balanced: dict, disease: Optional[TenGod]) -> float:
    """Share of the disease's raw energy removed by balancing."""
    if disease is None:
        return 0.0
    r = raw.get(disease, 0.0)
    if r <= 0:
        return 0.0
    return (r - balanced.get(disease, 0.0)) / r


# ============================================================
# RESULTS, NAME AND SCORE
# ============================================================

@dataclass(frozen=True)
class PatternResult:
    tag: ResultTag
    god: Optional[TenGod]
    increase_rate: float
    raw: float
    balanced: float

    def to_dict(self):
        return {
            "tag": self.tag.value,
            "ten_god": self.god.value if self.god else None,
            "increase_rate": round(self.increase_rate, 6),
            "raw": round(self.raw, 4),
            "balanced": round(self.balanced, 4),
        }


def _category_tag(god: TenGod, rate: float) -> Optional[ResultTag]:
    if god in _WEALTH and rate >= RESULT_INCREASE:
        return ResultTag.WEALTH
    if god in _OFFICERS and rate >= RESULT_INCREASE:
        return ResultTag.STATUS
    if god in _RESOURCES and rate >= RESULT_INCREASE:
        return ResultTag.RESOURCE
    if god == SELF_GOD and rate >= SELF_INCREASE:
        return ResultTag.SELF
    return None


def identify_results(raw: dict, balanced: dict, disease: Optional[TenGod],
                     remedy: Optional[TenGod]) -> list[PatternResult]:
    """Beneficial changes produced by balancing, sorted by increase rate."""
    results = []
    for god in TEN_GODS:
        if god in (disease, remedy):
            continue
        r, b = raw.get(god, 0.0), balanced.get(god, 0.0)
        if r <= 0:
            continue
        tag = _category_tag(god, b / r)
        if tag is not None:
            results.append(PatternResult(tag, god, b / r, r, b))

    raw_total = sum(raw.values())
    balanced_total = sum(balanced.values())
    if raw_total > 0 and balanced_total / raw_total >= TOTAL_INCREASE:
        results.append(PatternResult(ResultTag.MOMENTUM, None, balanced_total / raw_total,
                                     raw_total, balanced_total))

    s = suppression(raw, balanced, disease)
    if disease is not None and s >= SETTLED_SUPPRESSION:
        results.append(PatternResult(ResultTag.SETTLED, disease, 1 - s,
                                     raw[disease], balanced.get(disease, 0.0)))

    results.sort(key=lambda res: res.increase_rate, reverse=True)
    return results


def pattern_name(disease: Optional[TenGod], remedy: Optional[TenGod],
                 action: Optional[Action], results: Sequence[PatternResult]) -> str:
    if disease is None:
        return "平和格"
    if remedy is None or action is None:
        return f"{disease.value}无制格"
    tags = "".join(r.tag.value for r in results)
    return f"{remedy.value}{action.value}{disease.value}{tags}格"


def explain(disease: Optional[TenGod], remedy: Optional[TenGod],
            action: Optional[Action], results: Sequence[PatternResult]) -> str:
    templates = EXPLANATION_TEMPLATES
    parts = []
    if disease is not None:
        parts.append(templates["disease"].format(disease=_name(disease)))
    if remedy is not None and action is not None and disease is not None:
        parts.append(templates["remedy"].format(
            remedy=_name(remedy), verb=ACTION_VERBS[action], disease=_name(disease)))
    if results:
        effects = ", ".join(RESULT_TEXT[r.tag] for r in results)
        parts.append(templates["results"].format(effects=effects))
    if not parts:
        return templates["peaceful"]
    return "; ".join(parts) + "."


@dataclass(frozen=True)
class PatternScore:
    total: int
    grade: Grade
    suppression: int
    self_status: int
    remedy_efficiency: int

    def to_dict(self):
        return {
            "total": self.total,
            "grade": self.grade.value,
            "suppression": self.suppression,
            "self_status": self.self_status,
            "remedy_efficiency": self.remedy_efficiency,
        }


def evaluate_level(raw: dict, balanced: dict, disease: Optional[TenGod],
                   remedy: Optional[TenGod]) -> PatternScore:
    """
    Score out of 100: disease suppression (40), Day Master share (30),
    remedy efficiency (30).
    """
    suppression_score = 0
    if disease is not None:
        s = suppression(raw, balanced, disease)
        if s >= 0.6:
            suppression_score = 40
        elif s >= 0.4:
            suppression_score = 30
        elif s >= 0.2:
            suppression_score = 20
        else:
            suppression_score = 10

    balanced_total = sum(balanced.values())
    self_ratio = balanced.get(SELF_GOD, 0.0) / balanced_total if balanced_total > 0 else 0.0
    if self_ratio >= 0.25:
        self_score = 30
    elif self_ratio >= 0.15:
        self_score = 25
    elif self_ratio >= 0.08:
        self_score = 20
    else:
        self_score = 10

    if remedy is not None and disease is not None:
        r = raw.get(remedy, 0.0)
        loss = (r - balanced.get(remedy, 0.0)) / r if r > 0 else 0.0
        raw_disease = raw.get(disease, 0.0)
        disease_suppressed = raw_disease > 0 and balanced.get(disease, 0.0) < raw_disease * 0.7
        if loss >= 0.4 and disease_suppressed:
            remedy_score = 30
        elif loss >= 0.3:
            remedy_score = 25
        elif loss >= 0.2:
            remedy_score = 20
        else:
            remedy_score = 15
    else:
        remedy_score = 10

    total = suppression_score + self_score + remedy_score
    if total >= 80:
        grade = Grade.SUPERIOR
    elif total >= 70:
        grade = Grade.MIDDLE
    elif total >= 60:
        grade = Grade.LOWER
    else:
        grade = Grade.BROKEN
    return PatternScore(total, grade, suppression_score, self_score, remedy_score)


# ============================================================
# MEDICINE PLAN
# ============================================================

SEVERE, MODERATE, MILD = 0.8, 0.5, 0.3
MEDICINE_THRESHOLD = 0.5
MEDICINE_MIN_SHARE = 0.1

# β[disease][medicine], TenGod index order; zero rows are never diseases
MEDICINE_COEFFICIENTS = (
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
    (0.0, 0.0, 0.0, 0.0, 0.5, 0.6, 0.0, 0.0, 0.0, 0.0),
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.9, 0.8),
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.9, 0.8),
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.7, 0.6),
    (0.0, 0.0, 1.0, 0.8, 0.0, 0.0, 0.0, 0.0, 0.9, 0.7),
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
    (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
)


@dataclass(frozen=True)
class DiseaseValue:
    god: TenGod
    value: float
    normalized: float
    level: str

    def to_dict(self):
        return {
            "ten_god": self.god.value,
            "value": round(self.value, 6),
            "normalized": round(self.normalized, 6),
            "level": self.level,
        }


@dataclass(frozen=True)
class Medicine:
    god: TenGod
    energy: float
    effectiveness: float
    coefficient: float
    action: Action
    priority: str

    def to_dict(self):
        return {
            "ten_god": self.god.value,
            "energy": round(self.energy, 4),
            "effectiveness": round(self.effectiveness, 6),
            "coefficient": self.coefficient,
            "action": self.action.value,
            "priority": self.priority,
        }


def _disease_level(normalized: float) -> str:
    if normalized >= SEVERE:
        return "severe"
    if normalized >= MODERATE:
        return "moderate"
    if normalized >= MILD:
        return "mild"
    return "none"


def disease_values(raw: dict) -> list[DiseaseValue]:
    """
    α × (x/y) × (x/z) × ln(1 + x/y) per category, with x its raw energy,
    y the Day Master's own and z the total. Sorted high to low.
    """
    y = raw.get(SELF_GOD, 0.0) or 1.0
    z = sum(raw.values()) or 1.0
    values = []
    for god in TEN_GODS:
        x = raw.get(god, 0.0)
        values.append(THREAT_COEFFICIENTS[god] * (x / y) * (x / z) * math.log1p(x / y))
    peak = max(max(values), 1.0)
    result = [
        DiseaseValue(god, v, v / peak, _disease_level(v / peak))
        for god, v in zip(TEN_GODS, values)
    ]
    result.sort(key=lambda d: d.normalized, reverse=True)
    return result


def _medicine_action(coefficient: float) -> Action:
    if coefficient >= 0.8:
        return Action.CONTROL
    if coefficient >= 0.6:
        return Action.TRANSFORM
    return Action.DRAIN


def _medicine_priority(effectiveness: float) -> str:
    if effectiveness >= 0.8:
        return "primary"
    if effectiveness >= 0.5:
        return "secondary"
    return "auxiliary"


def find_medicines(disease: TenGod, energies: dict) -> list[Medicine]:
    """Categories able to treat `disease`, strongest first."""
    total = sum(energies.values())
    disease_energy = energies.get(disease, 0.0) or 1.0
    row = MEDICINE_COEFFICIENTS[disease.index]
    medicines = []
    for god in TEN_GODS:
        if god == disease:
            continue
        coefficient = row[god.index]
        energy = energies.get(god, 0.0)
        effectiveness = coefficient * (energy / disease_energy)
        if effectiveness >= MEDICINE_THRESHOLD and energy >= MEDICINE_MIN_SHARE * total:
            medicines.append(Medicine(god, energy, effectiveness, coefficient,
                                      _medicine_action(coefficient),
                                      _medicine_priority(effectiveness)))
    medicines.sort(key=lambda m: m.effectiveness, reverse=True)
    return medicines


# ============================================================
# VERDICT
# ============================================================

@dataclass(frozen=True)
class PatternVerdict:
    disease: Optional[TenGod]
    remedy: Optional[TenGod]
    action: Optional[Action]
    results: tuple[PatternResult, ...]
    name: str
    explanation: str
    score: PatternScore
    raw_energies: dict
    balanced_energies: dict
    threats: tuple[Threat, ...] = field(default_factory=tuple)
    loss_rates: tuple[LossRate, ...] = field(default_factory=tuple)
    disease_values: tuple[DiseaseValue, ...] = field(default_factory=tuple)
    medicines: tuple[Medicine, ...] = field(default_factory=tuple)
    raw_fallback: bool = False

    def to_dict(self):
        return {
            "name": self.name,
            "explanation": self.explanation,
            "disease": self.disease.value if self.disease else None,
            "remedy": self.remedy.value if self.remedy else None,
            "action": self.action.value if self.action else None,
            "results": [r.to_dict() for r in self.results],
            "score": self.score.to_dict(),
            "raw_energies": {g.value: round(v, 4) for g, v in self.raw_energies.items()},
            "balanced_energies": {g.value: round(v, 4) for g, v in self.balanced_energies.items()},
            "threats": [
                {"ten_god": t.god.value, "threat": round(t.threat, 6),
                 "normalized": round(t.normalized, 6)}
                for t in self.threats
            ],
            "loss_rates": [
                {"ten_god": lr.god.value, "rate": round(lr.rate, 6)} for lr in self.loss_rates
            ],
            "disease_values": [d.to_dict() for d in self.disease_values],
            "medicines": [m.to_dict() for m in self.medicines],
            "raw_fallback": self.raw_fallback,
        }


def _day_master_energy(snapshots: Sequence[NodeSnapshot]) -> float:
    for snap in snapshots:
        if snap.kind == NodeKind.STEM and snap.position.pillar_index == 2:
            return snap.total
    return 0.0


def judge_pattern(raw_snapshot: Optional[Sequence[NodeSnapshot]],
                  balanced_snapshot: Sequence[NodeSnapshot],
                  day_stem: str) -> PatternVerdict:
    """
    Judge the chart's pattern from the raw and balanced node snapshots.

    Without a raw snapshot the balanced nodes stand in for it; a warning is
    logged and the verdict carries raw_fallback=True.
    """
    raw_fallback = raw_snapshot is None
    if raw_fallback:
        logger.warning("No raw snapshot; judging pattern from balanced energies only")
        raw_snapshot = balanced_snapshot

    raw_shares = ten_god_shares(raw_snapshot, day_stem)
    raw = ten_god_vector(raw_shares)
    balanced = ten_god_vector(ten_god_shares(balanced_snapshot, day_stem))

    disease, threats = identify_disease(raw_shares, _day_master_energy(raw_snapshot))
    remedy, loss_rates = identify_remedy(raw, balanced)
    action = determine_action(remedy, disease)
    results = identify_results(raw, balanced, disease, remedy)
    score = evaluate_level(raw, balanced, disease, remedy)
    medicines = find_medicines(disease, balanced) if disease is not None else []

    verdict = PatternVerdict(
        disease=disease,
        remedy=remedy,
        action=action,
        results=tuple(results),
        name=pattern_name(disease, remedy, action, results),
        explanation=explain(disease, remedy, action, results),
        score=score,
        raw_energies=raw,
        balanced_energies=balanced,
        threats=tuple(threats),
        loss_rates=tuple(loss_rates),
        disease_values=tuple(disease_values(raw)),
        medicines=tuple(medicines),
        raw_fallback=raw_fallback,
    )
    logger.debug("Pattern %s scored %d (%s)", verdict.name, score.total, score.grade.value)
    return verdict
