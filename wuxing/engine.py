"""
Five-element energy simulation pipeline.

analyze() takes four pillars and runs every stage in a fixed order:

    init -> root_qi -> month_order -> penetration
    -> combine -> clash -> punish_harm
    -> relations -> cycle
    -> generate -> control -> bounds
    -> aggregate -> pattern

Each stage appends one entry to the audit log with a snapshot of all nodes.
Between cycle detection and the first transfer the action counters are reset
and the raw snapshot is captured for the pattern judge.
"""

import logging
from dataclasses import dataclass

from wuxing.bazi import TenGodProfile, map_ten_gods
from wuxing.builder import PillarSet, init_nodes
from wuxing.config import resolve_config
from wuxing.network import build_relations, detect_cycle
from wuxing.nodes import LogEntry, SimulationState
from wuxing.pattern import PatternVerdict, judge_pattern
from wuxing.profile import (
    Circulation,
    DayMasterStrength,
    ElementProfile,
    build_profile,
    circulation,
    day_master_strength,
)
from wuxing.structure import apply_structure
from wuxing.ten_gods import DominantPattern, TenGodImpact, dominant_pattern, normalize, ten_god_impact
from wuxing.transfer import apply_bounds, apply_generation, apply_restraint

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    pillars: PillarSet
    element_profile: ElementProfile
    log: list[LogEntry]
    pattern_verdict: PatternVerdict
    day_master: DayMasterStrength
    circulation: Circulation
    ten_gods: TenGodProfile
    ten_god_pattern: DominantPattern
    ten_god_impact: TenGodImpact
    state: SimulationState

    @property
    def steps(self) -> list[tuple[str, str]]:
        return [entry.as_pair() for entry in self.log]

    def to_dict(self, include_snapshots: bool = False):
        log = [entry.to_dict() for entry in self.log]
        if not include_snapshots:
            log = [{"step": e["step"], "description": e["description"]} for e in log]
        return {
            "pillars": self.pillars.to_dict(),
            "day_master": self.day_master.to_dict(),
            "element_profile": self.element_profile.to_dict(),
            "circulation": self.circulation.to_dict(),
            "pattern": self.pattern_verdict.to_dict(),
            "ten_gods": self.ten_gods.to_dict(),
            "ten_god_pattern": self.ten_god_pattern.to_dict(),
            "ten_god_impact": self.ten_god_impact.to_dict(),
            "nodes": [node.snapshot().to_dict() for node in self.state.nodes],
            "relations": {
                "generate": [r.to_dict() for r in self.state.generate_relations],
                "control": [r.to_dict() for r in self.state.control_relations],
            },
            "log": log,
        }


def run_simulation(pillars, config=None) -> SimulationState:
    """
    Run every energy stage up to and including the boundary clamp.

    Pillars and configuration are validated before any node is built.
    """
    config = resolve_config(config)
    pillars = PillarSet.parse(pillars)

    state = init_nodes(pillars, config)
    logger.debug("Initialised %d nodes for %s", len(state.nodes), pillars)

    apply_structure(state)
    build_relations(state)
    detect_cycle(state)

    state.reset_action_counts()
    state.raw_snapshot = state.snapshot()

    stats = apply_generation(state)
    logger.debug("Generation stats: %s", stats)
    apply_restraint(state)
    apply_bounds(state)
    return state


def analyze(pillars, config=None) -> AnalysisResult:
    """
    Full analysis of a four-pillar chart.

    Args:
        pillars: PillarSet, mapping, "甲子 乙丑 丙寅 丁卯" or a sequence of four codes
        config: None for defaults, an EnergyConfig, or a mapping of overrides

    Returns:
        AnalysisResult
    """
    config = resolve_config(config)
    pillars = PillarSet.parse(pillars)
    state = run_simulation(pillars, config)

    profile = build_profile(state.nodes, config)
    summary = ", ".join(f"{e.value}={v:.1f}" for e, v in profile.values.items())
    state.record("aggregate", f"Element totals: {summary}")

    verdict = judge_pattern(state.raw_snapshot, state.snapshot(), pillars.day_stem)
    state.record("pattern", f"Pattern {verdict.name}: {verdict.score.grade.value} ({verdict.score.total})")

    ten_gods = map_ten_gods(pillars)
    impact = ten_god_impact(normalize(verdict.balanced_energies))

    result = AnalysisResult(
        pillars=pillars,
        element_profile=profile,
        log=state.log,
        pattern_verdict=verdict,
        day_master=day_master_strength(pillars.day_stem, profile),
        circulation=circulation(profile),
        ten_gods=ten_gods,
        ten_god_pattern=dominant_pattern(ten_gods),
        ten_god_impact=impact,
        state=state,
    )
    logger.info("Analysed %s: day master %s is %s, pattern %s", pillars,
                pillars.day_stem, result.day_master.strength.value, verdict.name)
    return result
