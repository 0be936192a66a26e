"""
Birth data -> pillars, solar terms and LMT.
"""

from datetime import date, datetime

import pytest

from wuxing.astro_calendar import apply_lmt, find_jie_dates, governing_jie, julian_day, lmt_correction
from wuxing.chart import birth_pillars, day_pillar, hour_pillar, month_pillar, year_pillar
from wuxing.config import ValidationError


class TestCalendar:

    def test_lmt_correction_san_francisco(self):
        assert lmt_correction(-122.4194, -120.0) == pytest.approx(-9.6776)

    def test_apply_lmt_nanning(self):
        lmt = apply_lmt(datetime(1990, 3, 15, 14, 5), 108.37, utc_offset=8)
        assert (lmt.hour, lmt.minute) == (13, 18)

    def test_jie_dates(self):
        terms = find_jie_dates(2026)
        assert len(terms) == 12
        assert [t.branch for t in terms] == list("丑寅卯辰巳午未申酉戌亥子")
        li_chun = terms[1]
        assert li_chun.name == "立春"
        assert (li_chun.utc.month, li_chun.utc.day) in ((2, 3), (2, 4), (2, 5))
        assert li_chun.to_dict()["longitude"] == 315.0

    @pytest.mark.parametrize("moment,name,branch", [
        (datetime(1990, 3, 15, 18, 30), "惊蛰", "卯"),
        (datetime(1990, 2, 1, 4, 0), "小寒", "丑"),
        (datetime(1990, 2, 10, 4, 0), "立春", "寅"),
        # Early January still sits in the previous year's 大雪 month
        (datetime(2026, 1, 2, 12, 0), "大雪", "子"),
    ])
    def test_governing_jie(self, moment, name, branch):
        term = governing_jie(julian_day(moment), moment.year)
        assert (term.name, term.branch) == (name, branch)


class TestPillarFormulas:

    def test_year(self):
        assert year_pillar(1990, before_li_chun=False) == "庚午"
        assert year_pillar(1990, before_li_chun=True) == "己巳"
        assert year_pillar(1984, before_li_chun=False) == "甲子"

    def test_month(self):
        assert month_pillar(6, "卯") == "己卯"
        assert month_pillar(0, "寅") == "丙寅"

    def test_day(self):
        assert day_pillar(date(1990, 3, 15)) == "己酉"
        assert day_pillar(date(1986, 6, 19)) == "甲子"

    @pytest.mark.parametrize("day_stem_index,hour,expected", [
        (5, 10, "己巳"),
        (5, 23, "甲子"),
        (5, 0, "甲子"),
        (0, 1, "乙丑"),
        (2, 12, "甲午"),
    ])
    def test_hour(self, day_stem_index, hour, expected):
        assert hour_pillar(day_stem_index, hour) == expected


class TestBirthPillars:

    def test_san_francisco_with_offset(self):
        chart = birth_pillars("1990-03-15", "10:30", longitude=-122.4194, utc_offset=-8)
        assert list(chart.pillars) == ["庚午", "己卯", "己酉", "己巳"]
        assert chart.birth_time_lmt == "10:20"
        assert chart.timezone == "UTC-8"
        assert chart.solar_term == "惊蛰"

    def test_san_francisco_detected_timezone(self):
        chart = birth_pillars("1990-03-15", "10:30", longitude=-122.4194, latitude=37.7749)
        assert str(chart.pillars) == "庚午 己卯 己酉 己巳"
        assert chart.timezone == "America/Los_Angeles (UTC-8)"
        assert chart.dst_detected is False

    def test_daylight_saving_is_stripped(self):
        chart = birth_pillars("1990-07-15", "10:30", longitude=-122.4194, latitude=37.7749)
        assert chart.dst_detected is True
        assert chart.utc_offset == -8
        assert chart.birth_time_lmt == "09:20"
        assert chart.pillars.hour[1] == "巳"

    def test_before_li_chun(self):
        chart = birth_pillars("1990-02-01", "12:00", longitude=120.0, utc_offset=8)
        assert chart.pillars.year == "己巳"
        assert chart.pillars.month == "丁丑"
        assert chart.solar_term == "小寒"

    def test_after_li_chun(self):
        chart = birth_pillars("1990-02-10", "12:00", longitude=120.0, utc_offset=8)
        assert chart.pillars.year == "庚午"
        assert chart.pillars.month == "戊寅"

    @pytest.mark.parametrize("kwargs", [
        dict(birth_date="1990-13-01", birth_time="10:30", longitude=0, utc_offset=0),
        dict(birth_date="1990-03-15", birth_time="25:00", longitude=0, utc_offset=0),
        dict(birth_date="1990-03-15", birth_time="noon", longitude=0, utc_offset=0),
        dict(birth_date="1990-03-15", birth_time="10:30", longitude=200, utc_offset=0),
        dict(birth_date="1990-03-15", birth_time="10:30", longitude=0),
    ])
    def test_invalid_birth_data(self, kwargs):
        with pytest.raises(ValidationError):
            birth_pillars(**kwargs)
