"""
Pillar parsing and node initialisation.
"""

import pytest

from wuxing.bazi import Element, NodeKind
from wuxing.builder import PillarSet, init_nodes
from wuxing.config import DEFAULT_CONFIG, ValidationError
from wuxing.nodes import NodeFlag


class TestPillarSet:

    @pytest.mark.parametrize("value", [
        "甲子 乙丑 丙寅 丁卯",
        ["甲子", "乙丑", "丙寅", "丁卯"],
        {"year": "甲子", "month": "乙丑", "day": "丙寅", "hour": "丁卯"},
    ])
    def test_parse(self, value):
        pillars = PillarSet.parse(value)
        assert pillars == PillarSet("甲子", "乙丑", "丙寅", "丁卯")
        assert pillars.day_stem == "丙"
        assert pillars.month_branch == "丑"
        assert str(pillars) == "甲子 乙丑 丙寅 丁卯"

    @pytest.mark.parametrize("value,message", [
        ("甲子 乙丑 丙寅", "Expected 4 pillars"),
        ("甲子 乙丑 丙寅 丁", "two characters"),
        ("甲子 乙丑 子寅 丁卯", "not a heavenly stem"),
        ("甲子 乙丑 丙甲 丁卯", "not an earthly branch"),
        ({"year": "甲子"}, "Missing pillars"),
        (12, "Cannot read pillars"),
    ])
    def test_invalid(self, value, message):
        with pytest.raises(ValidationError, match=message):
            PillarSet.parse(value)


class TestInitNodes:

    def test_eight_nodes_in_slot_order(self, initial_state):
        assert [n.name for n in initial_state.nodes] == list("甲子乙丑丙寅丁卯")
        assert [n.position.order for n in initial_state.nodes] == list(range(8))

    def test_day_master_flag(self, initial_state):
        day_master = initial_state.day_master
        assert day_master.name == "丙"
        assert day_master.has_flag(NodeFlag.DAY_MASTER)

    def test_base_snapshot(self, initial_state):
        base = {s.name: s for s in initial_state.base_snapshot}
        assert base["甲"].energy(Element.WOOD) == pytest.approx(1000)
        assert base["寅"].energy(Element.WOOD) == pytest.approx(720)
        assert base["寅"].energy(Element.FIRE) == pytest.approx(360)

    def test_worked_example_energies(self, initial_state):
        # 甲 has a cross-pillar root in 寅, 丙 has qi in its own 寅, month 丑
        assert initial_state.node_at(0, NodeKind.STEM).energy(Element.WOOD) == pytest.approx(464)
        assert initial_state.node_at(0, NodeKind.BRANCH).energy(Element.WATER) == pytest.approx(648)
        assert initial_state.node_at(2, NodeKind.STEM).energy(Element.FIRE) == pytest.approx(936)
        assert initial_state.node_at(3, NodeKind.STEM).energy(Element.FIRE) == pytest.approx(904.8)

        yin = initial_state.node_at(2, NodeKind.BRANCH)
        assert yin.energy(Element.WOOD) == pytest.approx(316.8)
        assert yin.energy(Element.FIRE) == pytest.approx(308.88)
        assert yin.energy(Element.EARTH) == pytest.approx(187.2)

    def test_log_steps(self, initial_state):
        steps = [entry.step for entry in initial_state.log]
        assert steps == ["init", "root_qi", "month_order", "penetration"]
        assert all(len(entry.nodes) == 8 for entry in initial_state.log)

    def test_invalid_pillars_raise_before_nodes(self):
        with pytest.raises(ValidationError):
            init_nodes("甲子 乙丑 丙寅 丁X", DEFAULT_CONFIG)
