"""
Birth data -> Four Pillars.

Timezone is auto-detected from birth coordinates and date (handles historical
DST) unless an explicit UTC offset is given.

Usage from Python:
    from wuxing.chart import birth_pillars
    chart = birth_pillars("1990-03-15", "10:30", longitude=-122.4194,
                          latitude=37.7749)
    str(chart.pillars)  # '庚午 己卯 己酉 己巳'
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import swisseph as swe
from timezonefinder import TimezoneFinder

from wuxing.astro_calendar import (
    apply_lmt,
    governing_jie,
    julian_day,
    li_chun_jd,
    lmt_correction,
    sun_longitude,
)
from wuxing.bazi import BRANCH_BY_CHAR, EARTHLY_BRANCHES, HEAVENLY_STEMS, STEM_BY_CHAR
from wuxing.builder import PillarSet
from wuxing.config import ValidationError

logger = logging.getLogger(__name__)

_tf = TimezoneFinder()


def utc_offset_for(latitude, longitude, birth_date, birth_time):
    """
    Determine UTC offset from coordinates and date.

    Returns:
        (clock_offset, standard_offset, timezone_name, dst_detected)

        clock_offset:    what the clock was actually set to (includes DST if active)
        standard_offset: the zone's standard (non-DST) offset

    Pillars use the standard offset: DST is stripped before LMT correction.
    """
    tz_name = _tf.timezone_at(lat=latitude, lng=longitude)
    if tz_name is None:
        raise ValidationError(f"Could not determine timezone for ({latitude}, {longitude})")

    hour, minute = birth_time
    local_dt = datetime(birth_date.year, birth_date.month, birth_date.day,
                        hour, minute, tzinfo=ZoneInfo(tz_name))
    clock_offset = local_dt.utcoffset().total_seconds() / 3600

    dst_seconds = local_dt.dst()
    dst_detected = dst_seconds is not None and dst_seconds.total_seconds() > 0
    if dst_detected:
        standard_offset = clock_offset - dst_seconds.total_seconds() / 3600
    else:
        standard_offset = clock_offset

    return clock_offset, standard_offset, tz_name, dst_detected


# ============================================================
# PILLAR FORMULAS
# ============================================================

def year_pillar(year: int, before_li_chun: bool) -> str:
    """
    Year pillar. The BaZi year starts at Li Chun (Start of Spring);
    births before it belong to the previous year.
    """
    effective_year = year - 1 if before_li_chun else year
    # Year 4 CE was 甲子, the start of the cycle
    stem_index = (effective_year - 4) % 10
    branch_index = (effective_year - 4) % 12
    return HEAVENLY_STEMS[stem_index].chinese + EARTHLY_BRANCHES[branch_index].chinese


# Five Tigers Escape (五虎遁): year stem -> stem of the 寅 month
_TIGER_START_STEMS = {
    0: 2, 5: 2,   # 甲/己 year → 丙寅
    1: 4, 6: 4,   # 乙/庚 year → 戊寅
    2: 6, 7: 6,   # 丙/辛 year → 庚寅
    3: 8, 8: 8,   # 丁/壬 year → 壬寅
    4: 0, 9: 0,   # 戊/癸 year → 甲寅
}


def month_pillar(year_stem_index: int, month_branch: str) -> str:
    branch = BRANCH_BY_CHAR[month_branch]
    months_from_tiger = (branch.index - 2) % 12
    stem_index = (_TIGER_START_STEMS[year_stem_index] + months_from_tiger) % 10
    return HEAVENLY_STEMS[stem_index].chinese + branch.chinese


# (int(jdn) + 20) % 60 is the sexagenary index of the day
_JDN_SEXAGENARY_OFFSET = 20


def day_pillar(day: date) -> str:
    """Day pillar from the Julian Day Number (1990-03-15 = 己酉)."""
    jdn = int(swe.julday(day.year, day.month, day.day, 0))
    sexagenary = (jdn + _JDN_SEXAGENARY_OFFSET) % 60
    return HEAVENLY_STEMS[sexagenary % 10].chinese + EARTHLY_BRANCHES[sexagenary % 12].chinese


# Five Rats Escape (五鼠遁): day stem -> stem of the 子 hour
_ZI_START_STEMS = {
    0: 0, 5: 0,   # 甲/己 day → 甲子
    1: 2, 6: 2,   # 乙/庚 day → 丙子
    2: 4, 7: 4,   # 丙/辛 day → 戊子
    3: 6, 8: 6,   # 丁/壬 day → 庚子
    4: 8, 9: 8,   # 戊/癸 day → 壬子
}


def hour_pillar(day_stem_index: int, hour: int) -> str:
    """
    Hour pillar from the LMT hour. Chinese hours are 2-hour blocks
    starting at 23:00 (子).
    """
    if hour == 23 or hour == 0:
        branch_index = 0
    else:
        branch_index = ((hour + 1) // 2) % 12
    stem_index = (_ZI_START_STEMS[day_stem_index] + branch_index) % 10
    return HEAVENLY_STEMS[stem_index].chinese + EARTHLY_BRANCHES[branch_index].chinese


# ============================================================
# BIRTH DATA
# ============================================================

@dataclass(frozen=True)
class BirthPillars:
    pillars: PillarSet
    birth_date: date
    birth_time_clock: str
    birth_time_lmt: str
    timezone: str
    utc_offset: float
    dst_detected: bool
    lmt_correction_minutes: float
    sun_longitude: float
    solar_term: str

    def to_dict(self):
        return {
            "pillars": self.pillars.to_dict(),
            "birth_date": self.birth_date.isoformat(),
            "birth_time_clock": self.birth_time_clock,
            "birth_time_lmt": self.birth_time_lmt,
            "timezone": self.timezone,
            "utc_offset": self.utc_offset,
            "dst_detected": self.dst_detected,
            "lmt_correction_minutes": round(self.lmt_correction_minutes, 2),
            "sun_longitude": round(self.sun_longitude, 4),
            "solar_term": self.solar_term,
        }


def _parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Birth date must be YYYY-MM-DD, got {value!r}") from None


def _parse_time(value: str) -> tuple[int, int]:
    try:
        hour, minute = map(int, value.split(":"))
    except (AttributeError, ValueError):
        raise ValidationError(f"Birth time must be HH:MM, got {value!r}") from None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValidationError(f"Birth time out of range: {value!r}")
    return hour, minute


def _offset_label(tz_name: Optional[str], offset: float) -> str:
    sign = "+" if offset >= 0 else ""
    number = int(offset) if offset == int(offset) else offset
    if tz_name is None:
        return f"UTC{sign}{number}"
    return f"{tz_name} (UTC{sign}{number})"


def birth_pillars(birth_date, birth_time: str, longitude: float,
                  latitude: Optional[float] = None,
                  utc_offset: Optional[float] = None) -> BirthPillars:
    """
    Four pillars for a birth moment.

    Args:
        birth_date: "YYYY-MM-DD", date or datetime
        birth_time: "HH:MM" (24h, local clock time)
        longitude: east positive, used for LMT correction
        latitude: north positive; required when utc_offset is not given
        utc_offset: hours; if provided, overrides timezone detection

    Returns:
        BirthPillars
    """
    day = _parse_date(birth_date)
    hour, minute = _parse_time(birth_time)
    if not -180.0 <= longitude <= 180.0:
        raise ValidationError(f"Longitude out of range: {longitude}")
    if latitude is not None and not -90.0 <= latitude <= 90.0:
        raise ValidationError(f"Latitude out of range: {latitude}")

    clock_dt = datetime(day.year, day.month, day.day, hour, minute)

    if utc_offset is not None:
        clock_offset = standard_offset = float(utc_offset)
        tz_name, dst_detected = None, False
    elif latitude is None:
        raise ValidationError("Latitude is required when no UTC offset is given")
    else:
        clock_offset, standard_offset, tz_name, dst_detected = utc_offset_for(
            latitude, longitude, day, (hour, minute)
        )

    # Strip DST: pillars are reckoned on standard time
    standard_dt = clock_dt - timedelta(hours=clock_offset - standard_offset)
    utc_dt = clock_dt - timedelta(hours=clock_offset)

    lmt_dt = apply_lmt(standard_dt, longitude, standard_offset)

    jd = julian_day(utc_dt)
    sun_lon = sun_longitude(jd)
    before_li_chun = jd < li_chun_jd(day.year)
    jie = governing_jie(jd, day.year)

    year = year_pillar(day.year, before_li_chun)
    month = month_pillar(STEM_BY_CHAR[year[0]].index, jie.branch)
    day_code = day_pillar(day)
    hour_code = hour_pillar(STEM_BY_CHAR[day_code[0]].index, lmt_dt.hour)

    pillars = PillarSet(year, month, day_code, hour_code)
    logger.debug("Birth %s %s at %.4f -> %s (LMT %s, %s)", day, birth_time, longitude,
                 pillars, lmt_dt.strftime("%H:%M"), jie.name)

    return BirthPillars(
        pillars=pillars,
        birth_date=day,
        birth_time_clock=f"{hour:02d}:{minute:02d}",
        birth_time_lmt=lmt_dt.strftime("%H:%M"),
        timezone=_offset_label(tz_name, clock_offset),
        utc_offset=standard_offset,
        dst_detected=dst_detected,
        lmt_correction_minutes=lmt_correction(longitude, standard_offset * 15),
        sun_longitude=sun_lon,
        solar_term=jie.name,
    )
