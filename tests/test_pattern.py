"""
Disease/remedy pattern judge and medicine plan.
"""

import logging

import pytest

from wuxing.bazi import TEN_GODS, TenGod
from wuxing.engine import run_simulation
from wuxing.pattern import (
    Action,
    EXPLANATION_TEMPLATES,
    Grade,
    PatternResult,
    ResultTag,
    TenGodShare,
    determine_action,
    disease_values,
    evaluate_level,
    explain,
    find_medicines,
    identify_disease,
    identify_remedy,
    identify_results,
    judge_pattern,
    pattern_name,
    ten_god_shares,
    ten_god_vector,
)

KILL = TenGod.SEVEN_KILLINGS
FOOD = TenGod.EATING_GOD
HURT = TenGod.HURTING_OFFICER
SELF = TenGod.COMPANION


def _share(god, energy, weight=1.0):
    return TenGodShare("x", "day stem", god, energy, weight)


class TestDisease:

    def test_dominant_threat_is_disease(self):
        disease, threats = identify_disease([_share(KILL, 1000), _share(HURT, 100)], 1000)
        assert disease == KILL
        assert threats[0].god == KILL
        assert threats[0].normalized == pytest.approx(1.0)

    def test_small_threats_yield_no_disease(self):
        disease, threats = identify_disease([_share(KILL, 10), _share(HURT, 10)], 1000)
        assert disease is None
        assert all(t.normalized < 0.7 for t in threats)

    def test_supporting_gods_are_never_diseases(self):
        shares = [_share(g, 5000) for g in (SELF, TenGod.DIRECT_WEALTH, TenGod.DIRECT_RESOURCE)]
        disease, threats = identify_disease(shares, 100)
        assert disease is None
        assert {t.god for t in threats}.isdisjoint({SELF, TenGod.DIRECT_WEALTH})

    def test_zero_day_master_is_guarded(self):
        disease, threats = identify_disease([_share(KILL, 10)], 0)
        assert disease == KILL


class TestRemedy:

    def test_largest_loss_wins(self):
        raw = {FOOD: 100, HURT: 100}
        balanced = {FOOD: 60, HURT: 80}
        remedy, rates = identify_remedy(raw, balanced)
        assert remedy == FOOD
        assert rates[0].rate == pytest.approx(0.4)

    def test_loss_below_threshold(self):
        remedy, _ = identify_remedy({FOOD: 100}, {FOOD: 75})
        assert remedy is None

    def test_day_master_category_excluded(self):
        remedy, rates = identify_remedy({SELF: 100}, {SELF: 10})
        assert remedy is None
        assert SELF not in {r.god for r in rates}


class TestAction:

    @pytest.mark.parametrize("remedy,disease,expected", [
        (FOOD, KILL, Action.CONTROL),
        (HURT, KILL, Action.COMBINE),
        (TenGod.DIRECT_RESOURCE, KILL, Action.TRANSFORM),
        (TenGod.INDIRECT_RESOURCE, HURT, Action.PAIR),
        (TenGod.ROB_WEALTH, TenGod.INDIRECT_WEALTH, Action.SHOULDER),
        (TenGod.DIRECT_WEALTH, TenGod.DIRECT_RESOURCE, Action.BREAK),
        (TenGod.DIRECT_OFFICER, TenGod.ROB_WEALTH, Action.CONTROL),
        (HURT, TenGod.ROB_WEALTH, Action.DRAIN),
        (TenGod.DIRECT_WEALTH, KILL, Action.HARMONIZE),
        (None, KILL, None),
        (FOOD, None, None),
    ])
    def test_rules(self, remedy, disease, expected):
        assert determine_action(remedy, disease) == expected


class TestResultsAndName:

    def test_results(self):
        raw = {TenGod.DIRECT_WEALTH: 100, TenGod.DIRECT_OFFICER: 100, SELF: 100, KILL: 100, FOOD: 100}
        balanced = {TenGod.DIRECT_WEALTH: 140, TenGod.DIRECT_OFFICER: 120, SELF: 125, KILL: 30, FOOD: 50}
        results = identify_results(raw, balanced, KILL, FOOD)
        tags = [r.tag for r in results]
        assert ResultTag.WEALTH in tags
        assert ResultTag.SELF in tags
        assert ResultTag.STATUS not in tags
        assert ResultTag.SETTLED in tags
        rates = [r.increase_rate for r in results]
        assert rates == sorted(rates, reverse=True)

    def test_peaceful(self):
        assert pattern_name(None, None, None, []) == "平和格"

    def test_untreated(self):
        assert pattern_name(KILL, None, None, []) == "七杀无制格"

    def test_treated(self):
        assert pattern_name(KILL, FOOD, Action.CONTROL, []) == "食神制七杀格"

    def test_result_tags_in_name(self):
        results = [PatternResult(ResultTag.WEALTH, TenGod.DIRECT_WEALTH, 1.4, 100, 140)]
        assert pattern_name(KILL, FOOD, Action.CONTROL, results) == "食神制七杀生财格"

    def test_explain_treated(self):
        results = [PatternResult(ResultTag.WEALTH, TenGod.DIRECT_WEALTH, 1.4, 100, 140)]
        assert explain(KILL, FOOD, Action.CONTROL, results) == (
            "The chart's main tension is 7 Killings (七杀); "
            "Eating God (食神) restrains 7 Killings (七杀); "
            "the balance turns into wealth."
        )

    def test_explain_untreated(self):
        assert explain(KILL, None, None, []) == "The chart's main tension is 7 Killings (七杀)."

    def test_explain_peaceful(self):
        assert explain(None, None, None, []) == EXPLANATION_TEMPLATES["peaceful"]


class TestLevel:

    def test_superior(self):
        raw = {KILL: 1000, FOOD: 500, SELF: 300}
        balanced = {KILL: 300, FOOD: 250, SELF: 300}
        score = evaluate_level(raw, balanced, KILL, FOOD)
        assert (score.suppression, score.self_status, score.remedy_efficiency) == (40, 30, 30)
        assert score.total == 100
        assert score.grade == Grade.SUPERIOR

    def test_no_disease(self):
        score = evaluate_level({SELF: 100}, {SELF: 100}, None, None)
        assert score.total == 0 + 30 + 10
        assert score.grade == Grade.BROKEN


class TestMedicine:

    def test_food_treats_killings(self):
        energies = {KILL: 1000, FOOD: 900, TenGod.DIRECT_RESOURCE: 400, SELF: 500}
        medicines = find_medicines(KILL, energies)
        assert [m.god for m in medicines] == [FOOD]
        assert medicines[0].action == Action.CONTROL
        assert medicines[0].priority == "primary"

    def test_disease_values_cover_all_gods(self):
        values = disease_values({g: 100.0 for g in TEN_GODS})
        assert {v.god for v in values} == set(TEN_GODS)
        assert all(0 <= v.normalized <= 1 for v in values)


class TestJudgePattern:

    def test_shares_split_branches_over_hidden_stems(self):
        state = run_simulation("甲子 乙丑 丙寅 丁卯")
        shares = ten_god_shares(state.raw_snapshot, "丙")
        chou = [s for s in shares if s.node == "丑"]
        assert len(chou) == 3
        assert len({round(s.energy, 6) for s in chou}) == 1
        vector = ten_god_vector(shares)
        assert set(vector) == set(TEN_GODS)

    def test_raw_fallback(self, caplog):
        state = run_simulation("甲子 乙丑 丙寅 丁卯")
        with caplog.at_level(logging.WARNING):
            verdict = judge_pattern(None, state.snapshot(), "丙")
        assert verdict.raw_fallback is True
        assert verdict.remedy is None
        assert "No raw snapshot" in caplog.text

    def test_verdict_to_dict(self):
        state = run_simulation("庚申 戊子 甲寅 丙午")
        verdict = judge_pattern(state.raw_snapshot, state.snapshot(), "甲")
        data = verdict.to_dict()
        assert data["name"].endswith("格")
        assert data["raw_fallback"] is False
        assert set(data["raw_energies"]) == {g.value for g in TEN_GODS}
