"""
Solar calendar for pillar derivation: Local Mean Time, Sun longitude and
the twelve Jie (节) terms that open each BaZi month.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
import swisseph as swe

# Ephemeris data files live beside the package; without them pyswisseph uses Moshier
_ephe_path = str(Path(__file__).parent.parent / "ephe")
swe.set_ephe_path(_ephe_path)

LI_CHUN_LONGITUDE = 315.0


def lmt_correction(longitude: float, standard_meridian: float = 120.0) -> float:
    """
    Minutes between zone clock time and Local Mean Time.

    Args:
        longitude: birth longitude in degrees (east positive)
        standard_meridian: the zone's meridian, 15° per hour of UTC offset

    Returns:
        Correction in minutes, negative when the birthplace lies west
        of its meridian. Nanning (108.37°E) on CST gives -46.52.
    """
    return (longitude - standard_meridian) * 4.0


def apply_lmt(standard_time: datetime, longitude: float, utc_offset: float) -> datetime:
    """Shift a standard-time datetime to Local Mean Time at `longitude`."""
    return standard_time + timedelta(minutes=lmt_correction(longitude, utc_offset * 15.0))


def julian_day(moment: datetime) -> float:
    """Julian Day (UT) of a naive UTC datetime."""
    hours = moment.hour + moment.minute / 60.0 + moment.second / 3600.0
    return swe.julday(moment.year, moment.month, moment.day, hours)


def sun_longitude(jd_ut: float) -> float:
    """Tropical ecliptic longitude of the Sun, in degrees."""
    result, _ = swe.calc_ut(jd_ut, swe.SUN, swe.FLG_SWIEPH)
    return result[0] % 360.0


# ============================================================
# JIE TERMS
# ============================================================
#
# A BaZi month runs from one Jie to the next. Each Jie is the moment the
# Sun crosses a fixed longitude, found with swe.solcross_ut().

# (Sun longitude, term, month branch it opens), in calendar order
JIE_TERMS = [
    (285.0, "小寒", "丑"),
    (315.0, "立春", "寅"),
    (345.0, "惊蛰", "卯"),
    (15.0,  "清明", "辰"),
    (45.0,  "立夏", "巳"),
    (75.0,  "芒种", "午"),
    (105.0, "小暑", "未"),
    (135.0, "立秋", "申"),
    (165.0, "白露", "酉"),
    (195.0, "寒露", "戌"),
    (225.0, "立冬", "亥"),
    (255.0, "大雪", "子"),
]


@dataclass(frozen=True)
class SolarTerm:
    name: str
    branch: str
    longitude: float
    jd: float

    @property
    def utc(self) -> datetime:
        year, month, day, hours = swe.revjul(self.jd)
        return datetime(year, month, day) + timedelta(hours=hours)

    def to_dict(self):
        return {
            "name": self.name,
            "branch": self.branch,
            "longitude": self.longitude,
            "utc": self.utc.isoformat(timespec="minutes"),
        }


def li_chun_jd(year: int) -> float:
    """Julian Day (UT) of Li Chun in the given Gregorian year."""
    return swe.solcross_ut(LI_CHUN_LONGITUDE, swe.julday(year, 1, 1, 0), 0)


def find_jie_dates(year: int) -> list[SolarTerm]:
    """The Jie terms falling inside Gregorian `year`, earliest first."""
    start = swe.julday(year, 1, 1, 0)
    end = swe.julday(year + 1, 1, 1, 0)
    terms = []
    for longitude, name, branch in JIE_TERMS:
        jd = swe.solcross_ut(longitude, start, 0)
        if jd < end:
            terms.append(SolarTerm(name, branch, longitude, jd))
    terms.sort(key=lambda t: t.jd)
    return terms


def governing_jie(jd_ut: float, year: int) -> SolarTerm:
    """
    The Jie in force at `jd_ut`: the latest crossing at or before it.

    `year` is the Gregorian year of the moment; the previous year's terms
    cover births in early January, before 小寒.
    """
    passed = [t for t in find_jie_dates(year - 1) + find_jie_dates(year) if t.jd <= jd_ut]
    return passed[-1]
