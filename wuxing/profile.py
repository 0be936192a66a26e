"""
Element profile: aggregated energies, strength statuses, day-master strength
and circulation.
"""

from dataclasses import dataclass
from enum import Enum

from wuxing.bazi import ELEMENTS, STEM_BY_CHAR, Element
from wuxing.config import EnergyConfig

EPSILON = 1e-6


class EnergyStatus(Enum):
    VERY_WEAK = "very_weak"
    WEAK = "weak"
    BALANCED = "balanced"
    STRONG = "strong"
    VERY_STRONG = "very_strong"


@dataclass(frozen=True)
class ElementProfile:
    values: dict
    statuses: dict

    @property
    def total(self) -> float:
        return sum(self.values.values())

    @property
    def average(self) -> float:
        return self.total / len(ELEMENTS)

    def to_dict(self):
        return {
            e.value: {"value": round(self.values[e], 4), "status": self.statuses[e].value}
            for e in ELEMENTS
        }


@dataclass(frozen=True)
class DayMasterStrength:
    stem: str
    element: Element
    value: float
    strength: EnergyStatus

    def to_dict(self):
        return {
            "stem": self.stem,
            "element": self.element.value,
            "value": round(self.value, 4),
            "strength": self.strength.value,
        }


@dataclass(frozen=True)
class MissingElement:
    element: Element
    severity: str  # "critical" or "moderate"

    @property
    def recommendation(self) -> str:
        return f"Supplement {self.element.value} energy"


@dataclass(frozen=True)
class Circulation:
    status: str  # "smooth", "weak" or "blocked"
    missing: tuple[MissingElement, ...]

    def to_dict(self):
        return {
            "status": self.status,
            "missing_elements": [
                {"element": m.element.value, "severity": m.severity,
                 "recommendation": m.recommendation}
                for m in self.missing
            ],
        }


def aggregate(nodes) -> dict:
    """Sum node energies per element. Every element is present in the result."""
    values = {e: 0.0 for e in ELEMENTS}
    for node in nodes:
        for element, value in node.energies.items():
            values[element] += value
    return values


def classify_energy(value: float, average: float, config: EnergyConfig) -> EnergyStatus:
    """
    Status of one element from its absolute value and its ratio to the mean.

    Absolute extremes win, then relative extremes. Relative strength alone
    only counts once the value reaches the balanced-high threshold.
    """
    if value < config.very_weak_threshold:
        return EnergyStatus.VERY_WEAK
    if value > config.very_strong_threshold:
        return EnergyStatus.VERY_STRONG

    ratio = value / max(average, EPSILON)
    if ratio < config.very_weak_relative_ratio:
        return EnergyStatus.VERY_WEAK
    if ratio > config.very_strong_relative_ratio:
        return EnergyStatus.VERY_STRONG
    if value < config.weak_threshold or ratio < config.weak_relative_ratio:
        return EnergyStatus.WEAK
    if value > config.strong_threshold:
        return EnergyStatus.STRONG
    if value >= config.balanced_high_threshold and ratio > config.strong_relative_ratio:
        return EnergyStatus.STRONG
    return EnergyStatus.BALANCED


def build_profile(nodes, config: EnergyConfig) -> ElementProfile:
    values = aggregate(nodes)
    average = sum(values.values()) / len(ELEMENTS)
    statuses = {e: classify_energy(values[e], average, config) for e in ELEMENTS}
    return ElementProfile(values, statuses)


def day_master_strength(day_stem: str, profile: ElementProfile) -> DayMasterStrength:
    element = STEM_BY_CHAR[day_stem].element
    return DayMasterStrength(day_stem, element, profile.values[element], profile.statuses[element])


def circulation(profile: ElementProfile) -> Circulation:
    missing = []
    for element in ELEMENTS:
        status = profile.statuses[element]
        if status == EnergyStatus.VERY_WEAK:
            missing.append(MissingElement(element, "critical"))
        elif status == EnergyStatus.WEAK:
            missing.append(MissingElement(element, "moderate"))

    if not missing:
        status = "smooth"
    elif any(m.severity == "critical" for m in missing):
        status = "blocked"
    else:
        status = "weak"
    return Circulation(status, tuple(missing))
