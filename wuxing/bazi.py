"""
BaZi (Four Pillars of Destiny) symbol tables.

Handles:
- Heavenly stems and earthly branches (element, polarity, hidden stems)
- Five-element production and control cycles
- Branch element split and month-order (seasonal) coefficients
- Combination, clash, harm and punishment tables
- Positional weights and the positional interaction matrix
- Ten Gods (十神) lookup and per-chart mapping

Everything here is static data plus pure lookups. The simulation modules
read these tables; nothing in this module mutates state.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"


# Canonical iteration order for every element-keyed output
ELEMENTS = tuple(Element)


class NodeKind(Enum):
    STEM = "stem"
    BRANCH = "branch"


PILLAR_NAMES = ("year", "month", "day", "hour")


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.chinese} {self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # main qi element
    polarity: Polarity
    index: int  # 0-11 in the cycle
    hidden_stems: tuple[str, ...]  # [main_qi, middle_qi, residual_qi]

    def __str__(self):
        return f"{self.chinese} {self.pinyin} ({self.animal})"


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = [
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
]

EARTHLY_BRANCHES = [
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0,
                  ("癸",)),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1,
                  ("己", "癸", "辛")),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2,
                  ("甲", "丙", "戊")),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3,
                  ("乙",)),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4,
                  ("戊", "乙", "癸")),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5,
                  ("丙", "戊", "庚")),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6,
                  ("丁", "己")),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7,
                  ("己", "丁", "乙")),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8,
                  ("庚", "壬", "戊")),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9,
                  ("辛",)),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10,
                  ("戊", "辛", "丁")),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11,
                  ("壬", "甲")),
]

# Lookup helpers
STEM_BY_CHAR = {s.chinese: s for s in HEAVENLY_STEMS}
BRANCH_BY_CHAR = {b.chinese: b for b in EARTHLY_BRANCHES}


# ============================================================
# FIVE-ELEMENT CYCLES
# ============================================================

# Production cycle: Wood → Fire → Earth → Metal → Water → Wood
PRODUCTION_CYCLE = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# Control cycle: Wood → Earth → Water → Fire → Metal → Wood
CONTROL_CYCLE = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}

# Cycle detection walks the production loop starting from metal
CYCLE_ORDER = (Element.METAL, Element.WATER, Element.WOOD, Element.FIRE, Element.EARTH)


def supports(source: Element, target: Element) -> bool:
    """True when `source` is `target` or produces it."""
    return source == target or PRODUCTION_CYCLE[source] == target


# ============================================================
# BRANCH QI DISTRIBUTION AND MONTH ORDER
# ============================================================

# Share of a branch's base energy carried by each element
BRANCH_QI = {
    "子": {Element.WATER: 1.0},
    "丑": {Element.EARTH: 0.6, Element.METAL: 0.3, Element.WATER: 0.1},
    "寅": {Element.WOOD: 0.6, Element.FIRE: 0.3, Element.EARTH: 0.1},
    "卯": {Element.WOOD: 1.0},
    "辰": {Element.EARTH: 0.6, Element.WOOD: 0.3, Element.WATER: 0.1},
    "巳": {Element.FIRE: 0.6, Element.METAL: 0.3, Element.EARTH: 0.1},
    "午": {Element.FIRE: 0.7, Element.EARTH: 0.3},
    "未": {Element.EARTH: 0.6, Element.FIRE: 0.3, Element.WOOD: 0.1},
    "申": {Element.METAL: 0.6, Element.WATER: 0.3, Element.EARTH: 0.1},
    "酉": {Element.METAL: 1.0},
    "戌": {Element.EARTH: 0.6, Element.METAL: 0.3, Element.FIRE: 0.1},
    "亥": {Element.WATER: 0.7, Element.WOOD: 0.3},
}


def _season(wood, fire, earth, metal, water):
    return dict(zip(ELEMENTS, (wood, fire, earth, metal, water)))


# Seasonal (月令) coefficient per month branch, in wood/fire/earth/metal/water order
MONTH_COEFFICIENTS = {
    "寅": _season(1.2, 1.1, 0.48, 0.66, 0.8),
    "卯": _season(1.2, 1.1, 0.48, 0.66, 0.8),
    "辰": _season(0.6, 0.88, 1.44, 1.1, 0.4),
    "巳": _season(0.72, 1.08, 1.0, 0.52, 0.78),
    "午": _season(0.72, 1.08, 1.0, 0.52, 0.78),
    "未": _season(0.54, 0.72, 1.2, 1.3, 0.52),
    "申": _season(0.44, 0.66, 0.8, 1.2, 1.1),
    "酉": _season(0.44, 0.66, 0.8, 1.2, 1.1),
    "戌": _season(0.66, 1.1, 1.2, 0.6, 0.88),
    "亥": _season(1.0, 0.52, 0.78, 0.72, 1.08),
    "子": _season(1.0, 0.52, 0.78, 0.72, 1.08),
    "丑": _season(0.4, 0.78, 1.56, 0.9, 0.54),
}


# ============================================================
# COMBINATIONS
# ============================================================

class CombinationKind(Enum):
    THREE_MEETING = "three_meeting"   # 三会
    THREE_HARMONY = "three_harmony"   # 三合
    SIX_COMBINE = "six_combine"       # 六合
    HALF_COMBINE = "half_combine"     # 半合


@dataclass(frozen=True)
class BranchCombination:
    kind: CombinationKind
    branches: tuple[str, ...]
    element: Element
    contribution: float  # share of each member's total pooled at full strength
    external: float      # top-up ratio at full strength
    decay: float         # strength when combined but not transformed
    center: Optional[str] = None

    @property
    def label(self):
        return "".join(self.branches)


def _meeting(branches, element):
    return BranchCombination(CombinationKind.THREE_MEETING, tuple(branches), element, 0.8, 0.8, 0.3)


def _harmony(branches, element, center):
    return BranchCombination(CombinationKind.THREE_HARMONY, tuple(branches), element, 0.7, 0.7, 0.2, center)


def _six(branches, element):
    return BranchCombination(CombinationKind.SIX_COMBINE, tuple(branches), element, 0.5, 0.5, 0.25)


def _half(branches, element):
    return BranchCombination(CombinationKind.HALF_COMBINE, tuple(branches), element, 0.6, 0.6, 0.15)


# Processing order matters: each kind only sees branches not yet combined
BRANCH_COMBINATIONS = [
    _meeting("寅卯辰", Element.WOOD),
    _meeting("巳午未", Element.FIRE),
    _meeting("申酉戌", Element.METAL),
    _meeting("亥子丑", Element.WATER),
    _harmony("申子辰", Element.WATER, "子"),
    _harmony("亥卯未", Element.WOOD, "卯"),
    _harmony("寅午戌", Element.FIRE, "午"),
    _harmony("巳酉丑", Element.METAL, "酉"),
    _six("子丑", Element.EARTH),
    _six("寅亥", Element.WOOD),
    _six("卯戌", Element.FIRE),
    _six("辰酉", Element.METAL),
    _six("巳申", Element.WATER),
    _six("午未", Element.EARTH),
    _half("申子", Element.WATER),
    _half("子辰", Element.WATER),
    _half("亥卯", Element.WOOD),
    _half("卯未", Element.WOOD),
    _half("寅午", Element.FIRE),
    _half("午戌", Element.FIRE),
    _half("巳酉", Element.METAL),
    _half("酉丑", Element.METAL),
]

# Five stem combinations (天干五合)
STEM_COMBINATIONS = {
    frozenset("甲己"): Element.EARTH,
    frozenset("乙庚"): Element.METAL,
    frozenset("丙辛"): Element.WATER,
    frozenset("丁壬"): Element.WOOD,
    frozenset("戊癸"): Element.FIRE,
}

# Peak (帝旺) branch per element; earth peaks with water in 子
PEAK_BRANCH = {
    Element.WOOD: "卯",
    Element.FIRE: "午",
    Element.EARTH: "子",
    Element.METAL: "酉",
    Element.WATER: "子",
}

STEM_COMBINATION_DECAY = 0.2


# ============================================================
# CLASHES, HARMS AND PUNISHMENTS
# ============================================================

# Six Clashes (六冲)
SIX_CLASHES = [
    ("子", "午"),
    ("丑", "未"),
    ("寅", "申"),
    ("卯", "酉"),
    ("辰", "戌"),
    ("巳", "亥"),
]

# Six Harms (六害)
SIX_HARMS = [
    ("子", "未"),
    ("丑", "午"),
    ("寅", "巳"),
    ("卯", "辰"),
    ("申", "亥"),
    ("酉", "戌"),
]

# Ungrateful punishment: Yin-Si-Shen
# Uncivilized punishment: Chou-Xu-Wei
TRIPLE_PUNISHMENTS = [
    ("寅", "巳", "申"),
    ("丑", "戌", "未"),
]

# Rude punishment: Zi-Mao
PAIR_PUNISHMENTS = [
    ("子", "卯"),
]

# Self-punishment: Chen-Chen, Wu-Wu, You-You, Hai-Hai
SELF_PUNISHMENTS = ("辰", "午", "酉", "亥")


# ============================================================
# POSITIONS
# ============================================================

# How strongly each natal slot participates in transfers
POSITION_WEIGHTS = {
    (0, NodeKind.STEM): 0.35,
    (0, NodeKind.BRANCH): 0.30,
    (1, NodeKind.STEM): 0.80,
    (1, NodeKind.BRANCH): 1.00,
    (2, NodeKind.STEM): 1.00,
    (2, NodeKind.BRANCH): 0.90,
    (3, NodeKind.STEM): 0.70,
    (3, NodeKind.BRANCH): 0.50,
}

# 18x18 slot interaction matrix, indexed by pillar * 2 + (1 if branch else 0).
# Slots 0-7 are the natal pillars; 8-17 are luck/annual/monthly/daily/hourly
# layers, which the simulation never populates.
POSITION_INTERACTION_MATRIX = (
    (1, 1, .8, 0, .4, 0, .2, 0, 0, 0, .6, 0, 0, 0, 0, 0, 0, 0),
    (1, 1, 0, .8, 0, 0, 0, 0, 0, 0, 0, .6, 0, 0, 0, 0, 0, 0),
    (.8, 0, 1, 1, .8, 0, .4, 0, 0, 0, .4, 0, .6, 0, 0, 0, 0, 0),
    (0, .8, 1, 1, 0, .8, 0, 0, 0, 0, 0, .4, 0, .6, 0, 0, 0, 0),
    (.4, 0, .8, 0, 1, 1, .8, 0, 0, 0, .6, 0, .4, 0, .6, 0, .4, 0),
    (0, 0, 0, .8, 1, 1, 0, .8, 0, 0, 0, .6, 0, .4, 0, .6, 0, .4),
    (.2, 0, .4, 0, .8, 0, 1, 1, 0, 0, 0, 0, 0, 0, .4, 0, .6, 0),
    (0, 0, 0, 0, 0, .8, 1, 1, 0, 0, 0, 0, 0, 0, 0, .4, 0, .6),
    (0, 0, 0, 0, 0, 0, 0, 0, 1, 1, .8, 0, .6, 0, .4, 0, .2, 0),
    (0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 0, .8, 0, .6, 0, .4, 0, .2),
    (.6, 0, .4, 0, .6, 0, 0, 0, .8, 0, 1, 1, .8, 0, .6, 0, .4, 0),
    (0, .6, 0, .4, 0, .6, 0, 0, 0, .8, 1, 1, 0, .8, 0, .6, 0, .4),
    (0, 0, .6, 0, .4, 0, 0, 0, .6, 0, .8, 0, 1, 1, .8, 0, .6, 0),
    (0, 0, 0, .6, 0, .4, 0, 0, 0, .6, 0, .8, 1, 1, 0, .8, 0, .6),
    (0, 0, 0, 0, .6, 0, .4, 0, .4, 0, .6, 0, .8, 0, 1, 1, .8, 0),
    (0, 0, 0, 0, 0, .6, 0, .4, 0, .4, 0, .6, 0, .8, 1, 1, 0, .8),
    (0, 0, 0, 0, .4, 0, .6, 0, .2, 0, .4, 0, .6, 0, .8, 0, 1, 1),
    (0, 0, 0, 0, 0, .4, 0, .6, 0, .2, 0, .4, 0, .6, 0, .8, 1, 1),
)


def position_weight(pillar_index: int, kind: NodeKind) -> float:
    return POSITION_WEIGHTS.get((pillar_index, kind), 0.5)


def slot_index(pillar_index: int, kind: NodeKind) -> int:
    return pillar_index * 2 + (1 if kind == NodeKind.BRANCH else 0)


# ============================================================
# TEN GODS (十神) RELATIONSHIP MAPPING
# ============================================================

class TenGod(Enum):
    """The ten relationships to the Day Master, in vector index order."""
    COMPANION = "比肩"
    ROB_WEALTH = "劫财"
    EATING_GOD = "食神"
    HURTING_OFFICER = "伤官"
    DIRECT_WEALTH = "正财"
    INDIRECT_WEALTH = "偏财"
    DIRECT_OFFICER = "正官"
    SEVEN_KILLINGS = "七杀"
    DIRECT_RESOURCE = "正印"
    INDIRECT_RESOURCE = "偏印"

    @property
    def index(self) -> int:
        return TEN_GOD_INDEX[self]

    @property
    def english(self) -> str:
        return TEN_GOD_ENGLISH[self]


TEN_GODS = tuple(TenGod)
TEN_GOD_INDEX = {god: i for i, god in enumerate(TEN_GODS)}

TEN_GOD_ENGLISH = {
    TenGod.COMPANION: "Companion",
    TenGod.ROB_WEALTH: "Rob Wealth",
    TenGod.EATING_GOD: "Eating God",
    TenGod.HURTING_OFFICER: "Hurting Officer",
    TenGod.DIRECT_WEALTH: "Direct Wealth",
    TenGod.INDIRECT_WEALTH: "Indirect Wealth",
    TenGod.DIRECT_OFFICER: "Direct Officer",
    TenGod.SEVEN_KILLINGS: "7 Killings",
    TenGod.DIRECT_RESOURCE: "Direct Resource",
    TenGod.INDIRECT_RESOURCE: "Indirect Resource",
}

_TEN_GOD_CODES = {
    "比": TenGod.COMPANION,
    "劫": TenGod.ROB_WEALTH,
    "食": TenGod.EATING_GOD,
    "伤": TenGod.HURTING_OFFICER,
    "财": TenGod.DIRECT_WEALTH,
    "才": TenGod.INDIRECT_WEALTH,
    "官": TenGod.DIRECT_OFFICER,
    "杀": TenGod.SEVEN_KILLINGS,
    "印": TenGod.DIRECT_RESOURCE,
    "枭": TenGod.INDIRECT_RESOURCE,
}

# Row = day stem, column = other stem in 甲..癸 order
_TEN_GOD_ROWS = {
    "甲": "比劫食伤才财杀官枭印",
    "乙": "劫比伤食财才官杀印枭",
    "丙": "枭印比劫食伤才财杀官",
    "丁": "印枭劫比伤食财才官杀",
    "戊": "杀官枭印比劫食伤才财",
    "己": "官杀印枭劫比伤食财才",
    "庚": "才财杀官枭印比劫食伤",
    "辛": "财才官杀印枭劫比伤食",
    "壬": "食伤才财杀官枭印比劫",
    "癸": "伤食财才官杀印枭劫比",
}

TEN_GOD_TABLE = {
    day: {
        other.chinese: _TEN_GOD_CODES[code]
        for other, code in zip(HEAVENLY_STEMS, row)
    }
    for day, row in _TEN_GOD_ROWS.items()
}


def ten_god(day_stem: str, other_stem: str) -> Optional[TenGod]:
    """
    Look up the Ten God of `other_stem` relative to the Day Master `day_stem`.

    Returns None when either character is not a heavenly stem.
    """
    row = TEN_GOD_TABLE.get(day_stem)
    if row is None or other_stem not in row:
        logger.warning("No ten god for day stem %r and stem %r", day_stem, other_stem)
        return None
    return row[other_stem]


@dataclass(frozen=True)
class PillarTenGods:
    position: str
    stem: str
    stem_god: Optional[TenGod]
    branch: str
    hidden: tuple[tuple[str, Optional[TenGod]], ...] = field(default_factory=tuple)

    def to_dict(self):
        return {
            "position": self.position,
            "stem": self.stem,
            "ten_god": self.stem_god.value if self.stem_god else None,
            "branch": self.branch,
            "hidden_stem_gods": [
                {"stem": s, "ten_god": g.value if g else None} for s, g in self.hidden
            ],
        }


@dataclass(frozen=True)
class TenGodProfile:
    day_stem: str
    pillars: tuple[PillarTenGods, ...]

    def all_gods(self) -> list[TenGod]:
        """Every visible and hidden category, in pillar order."""
        gods = []
        for p in self.pillars:
            if p.stem_god is not None:
                gods.append(p.stem_god)
            gods.extend(g for _, g in p.hidden if g is not None)
        return gods

    def to_dict(self):
        return {
            "day_stem": self.day_stem,
            "pillars": [p.to_dict() for p in self.pillars],
        }


def map_ten_gods(pillars) -> TenGodProfile:
    """
    Map Ten Gods for all visible stems in the chart.
    Also maps hidden stems within each branch.

    Args:
        pillars: four two-character pillar codes in year, month, day, hour order
    """
    pillars = list(pillars)
    day_stem = pillars[2][0]
    mapped = []
    for position, code in zip(PILLAR_NAMES, pillars):
        stem, branch = code[0], code[1]
        hidden = tuple(
            (h, ten_god(day_stem, h)) for h in BRANCH_BY_CHAR[branch].hidden_stems
        )
        mapped.append(PillarTenGods(position, stem, ten_god(day_stem, stem), branch, hidden))
    return TenGodProfile(day_stem, tuple(mapped))
