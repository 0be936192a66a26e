"""
Pytest shared configuration and fixtures.
"""

import os
import sys

import pytest

# Add the project root to the path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from wuxing.builder import init_nodes  # noqa: E402
from wuxing.config import DEFAULT_CONFIG  # noqa: E402
from wuxing.engine import analyze  # noqa: E402

WORKED_EXAMPLE = "甲子 乙丑 丙寅 丁卯"

# Charts that exercise cycles, combinations, punishments and harms
SAMPLE_CHARTS = [
    "甲子 乙丑 丙寅 丁卯",
    "庚申 戊子 甲寅 丙午",
    "甲寅 己巳 庚申 丙子",
    "乙丑 丙戌 己未 戊辰",
    "甲午 庚午 丙子 壬辰",
    "甲子 丁未 丙寅 戊戌",
    "庚午 己卯 己酉 己巳",
    "壬辰 壬子 壬申 壬子",
]


@pytest.fixture(scope="session")
def worked_example():
    """Full analysis of the worked example chart (shared across the session)."""
    return analyze(WORKED_EXAMPLE)


@pytest.fixture
def initial_state():
    """Freshly initialised nodes for the worked example."""
    return init_nodes(WORKED_EXAMPLE, DEFAULT_CONFIG)
