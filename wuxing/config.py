"""
Simulation coefficients.

One frozen EnergyConfig per run. Defaults reproduce the calibrated
coefficient set; callers tweak it through `EnergyConfig.from_overrides`,
which rejects unknown keys and out-of-range values before any node is built.
"""

import math
from dataclasses import dataclass, fields, replace
from typing import Mapping, Optional


class ValidationError(ValueError):
    """Malformed pillar, unknown symbol or invalid configuration."""


# (low, high) inclusive bounds; None means unbounded on that side
_RANGES = {
    "stem_base_energy": (0.0, None),
    "branch_base_energy": (0.0, None),
    "min_energy": (0.0, None),
    "max_energy": (0.0, None),
    "root_gain_factor": (1.0, 10.0),
    "qi_gain_factor": (1.0, 10.0),
    "cross_pillar_qi_ratio": (0.0, 1.0),
    "penetration_factor": (1.0, 10.0),
    "relation_generate_gain": (0.0, 1.0),
    "cycle_generate_gain": (0.0, 1.0),
    "relation_control_source_loss": (0.0, 1.0),
    "relation_control_target_loss": (0.0, 1.0),
    "same_yang_delta": (-1.0, 1.0),
    "same_yin_delta": (-1.0, 1.0),
    "combination_contribution_ratio": (0.0, 1.0),
    "combination_external_gain": (0.0, 10.0),
    "global_external_energy_ratio": (0.0, 10.0),
    "punish_loss_ratio": (0.0, 1.0),
    "harm_loss_ratio": (0.0, 1.0),
    "self_punish_loss_ratio": (0.0, 1.0),
    "very_weak_threshold": (0.0, None),
    "weak_threshold": (0.0, None),
    "balanced_high_threshold": (0.0, None),
    "strong_threshold": (0.0, None),
    "very_strong_threshold": (0.0, None),
    "very_weak_relative_ratio": (0.0, None),
    "weak_relative_ratio": (0.0, None),
    "strong_relative_ratio": (0.0, None),
    "very_strong_relative_ratio": (0.0, None),
}


def _check_increasing(label, values):
    for a, b in zip(values, values[1:]):
        if not a < b:
            raise ValidationError(f"Status {label} must be strictly increasing: {values}")


@dataclass(frozen=True)
class EnergyConfig:
    # Base energies and per-element bounds
    stem_base_energy: float = 1000.0
    branch_base_energy: float = 1200.0
    min_energy: float = 10.0
    max_energy: float = 10000.0

    # Root/qi gain from branches sharing the stem's element
    root_gain_factor: float = 1.5
    qi_gain_factor: float = 1.2
    cross_pillar_qi_ratio: float = 0.8

    # Branch energy in an element some stem shows (透干)
    penetration_factor: float = 1.1

    # Transfer gains
    relation_generate_gain: float = 0.3
    cycle_generate_gain: float = 0.3
    relation_control_source_loss: float = 0.25
    relation_control_target_loss: float = 0.35
    same_yang_delta: float = 0.03
    same_yin_delta: float = -0.03

    # Stem combinations and the global external top-up
    combination_contribution_ratio: float = 0.5
    combination_external_gain: float = 0.5
    global_external_energy_ratio: float = 0.1

    # Punishment losses (share of total node energy)
    punish_loss_ratio: float = 0.20
    harm_loss_ratio: float = 0.15
    self_punish_loss_ratio: float = 0.12

    # Status thresholds, absolute
    very_weak_threshold: float = 50.0
    weak_threshold: float = 300.0
    balanced_high_threshold: float = 2000.0
    strong_threshold: float = 3000.0
    very_strong_threshold: float = 6000.0

    # Status thresholds, relative to the mean element energy
    very_weak_relative_ratio: float = 0.2
    weak_relative_ratio: float = 0.5
    strong_relative_ratio: float = 1.5
    very_strong_relative_ratio: float = 2.5

    enable_position_matrix: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "enable_position_matrix":
                if not isinstance(value, bool):
                    raise ValidationError(f"{f.name} must be a bool, got {value!r}")
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ValidationError(f"{f.name} must be finite, got {value!r}")
            low, high = _RANGES[f.name]
            if low is not None and value < low:
                raise ValidationError(f"{f.name}={value} is below {low}")
            if high is not None and value > high:
                raise ValidationError(f"{f.name}={value} is above {high}")

        if self.min_energy >= self.max_energy:
            raise ValidationError(
                f"min_energy ({self.min_energy}) must be below max_energy ({self.max_energy})"
            )
        _check_increasing("absolute thresholds", (
            self.very_weak_threshold,
            self.weak_threshold,
            self.balanced_high_threshold,
            self.strong_threshold,
            self.very_strong_threshold,
        ))
        _check_increasing("relative ratios", (
            self.very_weak_relative_ratio,
            self.weak_relative_ratio,
            self.strong_relative_ratio,
            self.very_strong_relative_ratio,
        ))

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping] = None) -> "EnergyConfig":
        """Defaults with `overrides` applied. Unknown keys raise ValidationError."""
        if not overrides:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValidationError(f"Unknown configuration keys: {', '.join(map(str, unknown))}")
        return replace(cls(), **dict(overrides))

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_CONFIG = EnergyConfig()


def resolve_config(config) -> EnergyConfig:
    """Accept None, an EnergyConfig or a mapping of overrides."""
    if config is None:
        return DEFAULT_CONFIG
    if isinstance(config, EnergyConfig):
        return config
    if isinstance(config, Mapping):
        return EnergyConfig.from_overrides(config)
    raise ValidationError(f"Unsupported configuration type: {type(config).__name__}")
