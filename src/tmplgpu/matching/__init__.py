"""
Matching subpackage exposes high-level template matching APIs.
"""

from .dispatch import Dispatcher, Job
from .engine import MatcherState, TemplateMatcher, match_template
from .extremes import Extremes, find_extremes

__all__ = [
    "Dispatcher",
    "Extremes",
    "Job",
    "MatcherState",
    "TemplateMatcher",
    "find_extremes",
    "match_template",
]
