"""
Ten God distribution analysis.

Two views over a chart's Ten Gods, independent of the energy simulation's
pattern judge:
- a count-based dominant pattern over visible and hidden stems
- an impact score combining per-category coefficients, a 10x10 interaction
  matrix and four classical combinations
"""

from dataclasses import dataclass, field
from typing import Optional

from wuxing.bazi import TEN_GODS, TenGod, TenGodProfile


CHARACTERISTICS = {
    TenGod.COMPANION: ("independent", "competitive", "needs cooperation to balance"),
    TenGod.ROB_WEALTH: ("cooperative", "needs personal space", "watch rivalries"),
    TenGod.EATING_GOD: ("talented", "expressive", "enjoys life"),
    TenGod.HURTING_OFFICER: ("innovative", "unconventional", "needs restraint"),
    TenGod.DIRECT_WEALTH: ("good with money", "steady income", "accumulates"),
    TenGod.INDIRECT_WEALTH: ("eye for investment", "unexpected chances", "needs stability"),
    TenGod.DIRECT_OFFICER: ("responsible", "status-aware", "needs balance"),
    TenGod.SEVEN_KILLINGS: ("under pressure", "thrives on challenge", "needs resolving"),
    TenGod.DIRECT_RESOURCE: ("helped by benefactors", "protective", "needs independence"),
    TenGod.INDIRECT_RESOURCE: ("quick learner", "deep thinker", "needs practice"),
}


@dataclass(frozen=True)
class DominantPattern:
    dominant: Optional[TenGod]
    name: str
    description: str
    characteristics: tuple[str, ...]
    counts: dict

    def to_dict(self):
        return {
            "dominant": self.dominant.value if self.dominant else None,
            "name": self.name,
            "description": self.description,
            "characteristics": list(self.characteristics),
            "counts": {g.value: n for g, n in self.counts.items()},
        }


def count_ten_gods(profile: TenGodProfile) -> dict:
    counts = {g: 0 for g in TEN_GODS}
    for god in profile.all_gods():
        counts[god] += 1
    return counts


def dominant_pattern(profile: TenGodProfile) -> DominantPattern:
    """
    The most frequent Ten God across visible and hidden stems.

    A chart whose most frequent category appears at most once has no
    dominant god and is an ordinary pattern (普通格局).
    """
    counts = count_ten_gods(profile)
    top = max(TEN_GODS, key=lambda g: counts[g])
    if counts[top] <= 1:
        return DominantPattern(None, "普通格局", "No single Ten God dominates the chart", (), counts)
    return DominantPattern(
        dominant=top,
        name=f"{top.value}格局",
        description=f"Chart led by {top.english} ({top.value}), appearing {counts[top]} times",
        characteristics=CHARACTERISTICS[top],
        counts=counts,
    )


# ============================================================
# IMPACT ON THE DAY MASTER
# ============================================================

# Positive supports the Day Master, negative drains or attacks it
BASE_COEFFICIENTS = {
    TenGod.COMPANION: 1.00,
    TenGod.ROB_WEALTH: 1.20,
    TenGod.EATING_GOD: -0.70,
    TenGod.HURTING_OFFICER: -1.00,
    TenGod.DIRECT_WEALTH: -0.60,
    TenGod.INDIRECT_WEALTH: -0.80,
    TenGod.DIRECT_OFFICER: -0.90,
    TenGod.SEVEN_KILLINGS: -1.50,
    TenGod.DIRECT_RESOURCE: 0.90,
    TenGod.INDIRECT_RESOURCE: 1.00,
}

# M[i][j]: direct effect of god i on god j, in TenGod index order
INTERACTION_MATRIX = (
    (+0.15, +0.10, -0.10, -0.15, -0.40, -0.50, -0.10, -0.30, -0.10, -0.08),
    (+0.10, +0.25, -0.15, -0.20, -0.60, -0.70, -0.15, -0.25, -0.08, -0.06),
    (-0.05, -0.10, +0.10, +0.05, +0.20, +0.15, -0.35, -0.45, -0.10, -0.15),
    (-0.10, -0.15, +0.05, +0.20, +0.15, +0.20, -0.50, -0.60, -0.20, -0.25),
    (-0.15, -0.20, +0.15, +0.10, +0.12, +0.08, +0.15, +0.25, -0.08, -0.12),
    (-0.25, -0.30, +0.10, +0.15, +0.08, +0.18, +0.25, +0.35, -0.12, -0.15),
    (-0.05, -0.08, -0.30, -0.40, +0.15, +0.20, +0.15, +0.05, +0.20, +0.10),
    (-0.20, -0.22, -0.40, -0.50, +0.25, +0.30, +0.05, +0.30, +0.30, +0.20),
    (+0.40, +0.35, -0.12, -0.20, -0.08, -0.10, +0.20, +0.30, +0.20, +0.15),
    (+0.30, +0.25, -0.25, -0.30, -0.10, -0.12, +0.10, +0.20, +0.15, +0.25),
)


def _kill_print(e):
    kill = e[TenGod.SEVEN_KILLINGS]
    prints = e[TenGod.DIRECT_RESOURCE] + e[TenGod.INDIRECT_RESOURCE]
    if not (kill > 0.8 and prints > 0.6):
        return None
    gain = (kill + prints) * 0.3
    return {
        TenGod.SEVEN_KILLINGS: kill * 0.5,
        TenGod.DIRECT_RESOURCE: e[TenGod.DIRECT_RESOURCE] * 1.5 + gain * 0.6,
        TenGod.INDIRECT_RESOURCE: e[TenGod.INDIRECT_RESOURCE] * 1.5 + gain * 0.4,
    }


def _hurt_print(e):
    if not (e[TenGod.HURTING_OFFICER] > 0.7 and e[TenGod.DIRECT_RESOURCE] > 0.5):
        return None
    return {
        TenGod.HURTING_OFFICER: e[TenGod.HURTING_OFFICER] * 0.6,
        TenGod.DIRECT_RESOURCE: e[TenGod.DIRECT_RESOURCE] * 1.4,
    }


def _food_kill(e):
    if not (e[TenGod.SEVEN_KILLINGS] > 0.8 and e[TenGod.EATING_GOD] > 0.6):
        return None
    return {
        TenGod.SEVEN_KILLINGS: e[TenGod.SEVEN_KILLINGS] * 0.7,
        TenGod.EATING_GOD: e[TenGod.EATING_GOD] * 1.2,
    }


def _companion_wealth(e):
    companions = e[TenGod.COMPANION] + e[TenGod.ROB_WEALTH]
    wealth = e[TenGod.DIRECT_WEALTH] + e[TenGod.INDIRECT_WEALTH]
    if not (companions > 0.5 and wealth > 0.4):
        return None
    return {
        TenGod.DIRECT_WEALTH: e[TenGod.DIRECT_WEALTH] * 1.3,
        TenGod.INDIRECT_WEALTH: e[TenGod.INDIRECT_WEALTH] * 1.3,
        TenGod.COMPANION: e[TenGod.COMPANION] * 0.9,
        TenGod.ROB_WEALTH: e[TenGod.ROB_WEALTH] * 0.9,
    }


# Applied in order, each seeing the adjustments of the ones before
COMBINATIONS = (
    ("杀印相生", _kill_print),
    ("伤官配印", _hurt_print),
    ("食神制杀", _food_kill),
    ("比劫夺财", _companion_wealth),
)


@dataclass(frozen=True)
class TenGodImpact:
    total: float
    base: float
    interaction: float
    combination: float
    applied: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self):
        return {
            "total": round(self.total, 6),
            "base": round(self.base, 6),
            "interaction": round(self.interaction, 6),
            "combination": round(self.combination, 6),
            "applied_combinations": list(self.applied),
        }


def _base_impact(energies) -> float:
    return sum(energies[g] * BASE_COEFFICIENTS[g] for g in TEN_GODS)


def normalize(energies: dict) -> dict:
    """Scale category energies into [0, 1] by the largest one."""
    peak = max(energies.values(), default=0.0)
    if peak <= 0:
        return {g: 0.0 for g in TEN_GODS}
    return {g: energies.get(g, 0.0) / peak for g in TEN_GODS}


def ten_god_impact(energies: dict, use_interactions: bool = True,
                   use_combinations: bool = True) -> TenGodImpact:
    """
    Combined effect of the Ten Gods on the Day Master.

    Args:
        energies: TenGod -> normalised energy (0-1)

    Returns:
        TenGodImpact; positive totals support the Day Master
    """
    energies = {g: energies.get(g, 0.0) for g in TEN_GODS}
    base = _base_impact(energies)

    interaction = 0.0
    if use_interactions:
        for i, source in enumerate(TEN_GODS):
            for j, target in enumerate(TEN_GODS):
                interaction += energies[source] * energies[target] * INTERACTION_MATRIX[i][j]

    applied = []
    adjusted = dict(energies)
    if use_combinations:
        for name, rule in COMBINATIONS:
            changes = rule(adjusted)
            if changes is not None:
                adjusted.update(changes)
                applied.append(name)
    combination = _base_impact(adjusted) - base

    return TenGodImpact(base + interaction + combination, base, interaction,
                        combination, tuple(applied))
