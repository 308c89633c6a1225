"""
Exceptions raised by the matching engine.
"""

from __future__ import annotations


class MatchingError(Exception):
    """
    Base class for every error raised by tmplgpu.
    """


class InvalidDimensions(MatchingError, ValueError):
    """
    Template does not fit inside the input, or a grid is not a 2D array.
    """


class BackendUnavailable(MatchingError):
    """
    No compute-capable adapter or device could be acquired.
    """


class NoActiveJob(MatchingError):
    """
    A result was requested but no job is in flight.
    """


class MappingFailure(MatchingError):
    """
    The device failed while the result buffer was being read back.
    """


class DeviceLost(MappingFailure):
    pass
