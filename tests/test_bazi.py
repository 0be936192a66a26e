"""
Symbol tables and Ten God lookup.
"""

import pytest

from wuxing.bazi import (
    BRANCH_BY_CHAR,
    BRANCH_QI,
    CONTROL_CYCLE,
    EARTHLY_BRANCHES,
    HEAVENLY_STEMS,
    MONTH_COEFFICIENTS,
    POSITION_INTERACTION_MATRIX,
    PRODUCTION_CYCLE,
    Element,
    NodeKind,
    TenGod,
    map_ten_gods,
    position_weight,
    slot_index,
    supports,
    ten_god,
)


def _derive(day, other):
    """Ten God from element and polarity relations alone."""
    same = day.polarity == other.polarity
    if other.element == day.element:
        return TenGod.COMPANION if same else TenGod.ROB_WEALTH
    if PRODUCTION_CYCLE[day.element] == other.element:
        return TenGod.EATING_GOD if same else TenGod.HURTING_OFFICER
    if CONTROL_CYCLE[day.element] == other.element:
        return TenGod.INDIRECT_WEALTH if same else TenGod.DIRECT_WEALTH
    if CONTROL_CYCLE[other.element] == day.element:
        return TenGod.SEVEN_KILLINGS if same else TenGod.DIRECT_OFFICER
    return TenGod.INDIRECT_RESOURCE if same else TenGod.DIRECT_RESOURCE


class TestTables:

    def test_every_branch_splits_its_full_energy(self):
        for branch in EARTHLY_BRANCHES:
            assert sum(BRANCH_QI[branch.chinese].values()) == pytest.approx(1.0)

    def test_main_qi_matches_branch_element(self):
        for branch in EARTHLY_BRANCHES:
            split = BRANCH_QI[branch.chinese]
            assert max(split, key=split.get) == branch.element

    def test_every_month_has_all_elements(self):
        for branch in EARTHLY_BRANCHES:
            assert set(MONTH_COEFFICIENTS[branch.chinese]) == set(Element)

    def test_shen_hidden_stems(self):
        assert BRANCH_BY_CHAR["申"].hidden_stems == ("庚", "壬", "戊")

    def test_interaction_matrix_is_square(self):
        assert len(POSITION_INTERACTION_MATRIX) == 18
        assert all(len(row) == 18 for row in POSITION_INTERACTION_MATRIX)

    @pytest.mark.parametrize("source,target,expected", [
        (Element.WOOD, Element.WOOD, True),
        (Element.WOOD, Element.FIRE, True),
        (Element.FIRE, Element.WOOD, False),
        (Element.WATER, Element.FIRE, False),
    ])
    def test_supports(self, source, target, expected):
        assert supports(source, target) is expected


class TestPositions:

    def test_day_stem_weighs_most(self):
        assert position_weight(2, NodeKind.STEM) == 1.0
        assert position_weight(0, NodeKind.BRANCH) == 0.30

    def test_unknown_slot_defaults(self):
        assert position_weight(7, NodeKind.STEM) == 0.5

    def test_slot_index(self):
        assert slot_index(0, NodeKind.STEM) == 0
        assert slot_index(1, NodeKind.BRANCH) == 3
        assert slot_index(3, NodeKind.BRANCH) == 7


class TestTenGods:

    def test_table_matches_element_relations(self):
        for day in HEAVENLY_STEMS:
            for other in HEAVENLY_STEMS:
                assert ten_god(day.chinese, other.chinese) == _derive(day, other), \
                    f"{day.chinese} -> {other.chinese}"

    @pytest.mark.parametrize("day,other,expected", [
        ("甲", "庚", TenGod.SEVEN_KILLINGS),
        ("甲", "辛", TenGod.DIRECT_OFFICER),
        ("丙", "壬", TenGod.SEVEN_KILLINGS),
        ("丙", "己", TenGod.HURTING_OFFICER),
        ("癸", "戊", TenGod.DIRECT_OFFICER),
    ])
    def test_known_pairs(self, day, other, expected):
        assert ten_god(day, other) == expected

    def test_unknown_stem_returns_none(self, caplog):
        assert ten_god("甲", "X") is None
        assert "No ten god" in caplog.text

    def test_index_order(self):
        assert TenGod.COMPANION.index == 0
        assert TenGod.SEVEN_KILLINGS.index == 7
        assert TenGod.INDIRECT_RESOURCE.index == 9

    def test_map_ten_gods(self):
        profile = map_ten_gods(["甲子", "乙丑", "丙寅", "丁卯"])
        assert profile.day_stem == "丙"
        year, month, day, hour = profile.pillars
        assert year.stem_god == TenGod.INDIRECT_RESOURCE
        assert month.stem_god == TenGod.DIRECT_RESOURCE
        assert day.stem_god == TenGod.COMPANION
        assert hour.stem_god == TenGod.ROB_WEALTH
        # 寅 hides 甲 丙 戊
        assert [g for _, g in day.hidden] == [
            TenGod.INDIRECT_RESOURCE, TenGod.COMPANION, TenGod.EATING_GOD,
        ]
        assert len(profile.all_gods()) == 4 + 1 + 3 + 3 + 1
