"""
Combinations, clashes, punishments, relation network and cycle detection.
"""

import pytest

from wuxing.bazi import BRANCH_COMBINATIONS, CombinationKind, Element, NodeKind
from wuxing.builder import init_nodes
from wuxing.config import DEFAULT_CONFIG
from wuxing.network import build_relations, detect_cycle
from wuxing.nodes import NodeFlag
from wuxing.structure import (
    apply_branch_combinations,
    apply_structure,
    combination_strength,
    stem_combination_strength,
)


def _structured(pillars):
    state = init_nodes(pillars, DEFAULT_CONFIG)
    apply_structure(state)
    return state


def _branches(state, name):
    return [n for n in state.branches if n.name == name]


def _totals(entry):
    return {snap.position.label: snap.total for snap in entry.nodes}


class TestCombinationStrength:

    def _rule(self, label):
        return next(r for r in BRANCH_COMBINATIONS if r.label == label)

    def test_six_combine_in_supporting_month(self):
        assert combination_strength(self._rule("子丑"), "丑") == 1.0

    def test_six_combine_decays_otherwise(self):
        assert combination_strength(self._rule("子丑"), "子") == 0.25

    def test_three_meeting_needs_month_inside(self):
        rule = self._rule("寅卯辰")
        assert rule.kind == CombinationKind.THREE_MEETING
        assert combination_strength(rule, "卯") == 1.0
        assert combination_strength(rule, "午") == 0.3

    def test_three_harmony_follows_center(self):
        rule = self._rule("申子辰")
        # 申 metal produces the centre 子 water
        assert combination_strength(rule, "申") == 1.0
        assert combination_strength(rule, "午") == 0.2

    @pytest.mark.parametrize("element,month,strength", [
        (Element.EARTH, "子", 1.0),
        (Element.EARTH, "午", 0.2),
        (Element.WATER, "子", 1.0),
        (Element.FIRE, "午", 1.0),
        (Element.WATER, "午", 0.2),
    ])
    def test_stem_combination_peak(self, element, month, strength):
        assert stem_combination_strength(element, month) == strength


class TestBranchCombinations:

    def test_worked_example_six_combine(self, initial_state):
        events = apply_branch_combinations(initial_state)
        assert [e.members for e in events] == [("子", "丑")]
        assert events[0].strength == 1.0

        zi = initial_state.node_at(0, NodeKind.BRANCH)
        chou = initial_state.node_at(1, NodeKind.BRANCH)
        assert zi.energy(Element.WATER) == pytest.approx(324)
        assert zi.energy(Element.EARTH) == pytest.approx(340.2)
        assert chou.energy(Element.EARTH) == pytest.approx(1355.4)
        assert zi.has_flag(NodeFlag.COMBINED) and chou.has_flag(NodeFlag.COMBINED)

    def test_combined_branch_is_not_reused(self):
        state = _structured("甲寅 己巳 庚申 丙子")
        # 巳申 six-combine takes 申 before the 申子 half-combine is tried
        assert all(n.has_flag(NodeFlag.COMBINED) for n in _branches(state, "巳"))
        assert all(n.has_flag(NodeFlag.COMBINED) for n in _branches(state, "申"))
        assert not any(n.has_flag(NodeFlag.COMBINED) for n in _branches(state, "子"))

    def test_stem_combination(self):
        state = _structured("甲寅 己巳 庚申 丙子")
        assert state.node_at(0, NodeKind.STEM).has_flag(NodeFlag.COMBINED)
        assert state.node_at(1, NodeKind.STEM).has_flag(NodeFlag.COMBINED)
        assert state.node_at(0, NodeKind.STEM).holds(Element.EARTH)


class TestClashesAndPunishments:

    def test_combined_branches_escape_triple_punishment(self):
        state = _structured("甲寅 己巳 庚申 丙子")
        assert not any(n.has_flag(NodeFlag.PUNISHED) for n in state.branches)

    def test_clash_needs_both_sides(self):
        state = _structured("甲寅 己巳 庚申 丙子")
        assert all(n.has_flag(NodeFlag.CLASHED) for n in _branches(state, "寅") + _branches(state, "申"))
        assert not any(n.has_flag(NodeFlag.CLASHED) for n in _branches(state, "巳"))

    def test_triple_punishment(self):
        state = _structured("乙丑 丙戌 己未 戊辰")
        before = _totals(next(e for e in state.log if e.step == "clash"))
        after = _totals(next(e for e in state.log if e.step == "punish_harm"))

        for name in "丑戌未":
            node = _branches(state, name)[0]
            assert node.has_flag(NodeFlag.PUNISHED)
            label = node.position.label
            assert after[label] == pytest.approx(before[label] * 0.8)

        chen = _branches(state, "辰")[0]
        assert not chen.has_flag(NodeFlag.PUNISHED)
        assert after[chen.position.label] == pytest.approx(before[chen.position.label])

    def test_clashes_leave_energy_alone(self):
        state = _structured("乙丑 丙戌 己未 戊辰")
        for name in "丑未辰戌":
            assert _branches(state, name)[0].has_flag(NodeFlag.CLASHED)
        before = _totals(next(e for e in state.log if e.step == "combine"))
        after = _totals(next(e for e in state.log if e.step == "clash"))
        assert before == after

    def test_self_punishment(self):
        state = _structured("甲午 庚午 丙子 壬辰")
        horses = _branches(state, "午")
        assert len(horses) == 2
        assert all(n.has_flag(NodeFlag.SELF_PUNISHED) for n in horses)
        assert all(n.has_flag(NodeFlag.COMBINED) for n in _branches(state, "子") + _branches(state, "辰"))

    def test_harm(self):
        state = _structured("甲子 丁未 丙寅 戊戌")
        assert _branches(state, "子")[0].has_flag(NodeFlag.HARMED)
        assert _branches(state, "未")[0].has_flag(NodeFlag.HARMED)
        assert not _branches(state, "戌")[0].has_flag(NodeFlag.HARMED)

    def test_pair_punishment_hits_repeated_branch(self):
        state = _structured("甲子 丙子 丁卯 庚午")
        before = _totals(next(e for e in state.log if e.step == "clash"))
        after = _totals(next(e for e in state.log if e.step == "punish_harm"))

        rats = _branches(state, "子")
        assert len(rats) == 2
        for node in rats + _branches(state, "卯"):
            assert node.has_flag(NodeFlag.PUNISHED)
            label = node.position.label
            assert after[label] == pytest.approx(before[label] * 0.8)
        assert not _branches(state, "午")[0].has_flag(NodeFlag.PUNISHED)

    def test_harm_hits_repeated_branch(self):
        state = _structured("甲子 丁未 丙子 戊戌")
        rats = _branches(state, "子")
        assert len(rats) == 2
        assert all(n.has_flag(NodeFlag.HARMED) for n in rats)
        assert _branches(state, "未")[0].has_flag(NodeFlag.HARMED)

    def test_log_steps(self):
        state = _structured("甲子 乙丑 丙寅 丁卯")
        assert [e.step for e in state.log][-3:] == ["combine", "clash", "punish_harm"]


class TestNetwork:

    def test_worked_example_relations(self):
        state = _structured("甲子 乙丑 丙寅 丁卯")
        generate, control = build_relations(state)
        pairs = [(r.source.name, r.target.name) for r in generate]
        assert pairs == [("甲", "丙"), ("甲", "丁"), ("乙", "丙"), ("乙", "丁")]
        assert control == []

    def test_relations_between_stems_only(self):
        state = _structured("庚申 戊子 甲寅 丙午")
        generate, control = build_relations(state)
        for rel in generate + control:
            assert rel.source.is_stem and rel.target.is_stem
        orders = [(r.source.position.order, r.target.position.order) for r in control]
        assert orders == sorted(orders)

    def test_no_cycle(self):
        state = _structured("甲子 乙丑 丙寅 丁卯")
        assert detect_cycle(state) is None
        assert "No five-element cycle" in state.log[-1].description

    def test_cycle(self):
        state = _structured("庚申 戊子 甲寅 丙午")
        cycle = detect_cycle(state)
        assert "".join(n.name for n in cycle) == "庚子甲丙戊"
