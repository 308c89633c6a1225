"""
GPU-accelerated template matching on WebGPU compute devices.
"""

from .errors import (
    BackendUnavailable,
    DeviceLost,
    InvalidDimensions,
    MappingFailure,
    MatchingError,
    NoActiveJob,
)
from .gpu import DeviceOptions, MatchMethod
from .matching.engine import MatcherState, TemplateMatcher, match_template
from .matching.extremes import Extremes, find_extremes

__all__ = [
    "BackendUnavailable",
    "DeviceLost",
    "DeviceOptions",
    "Extremes",
    "InvalidDimensions",
    "MappingFailure",
    "MatchMethod",
    "MatcherState",
    "MatchingError",
    "NoActiveJob",
    "TemplateMatcher",
    "find_extremes",
    "match_template",
]
