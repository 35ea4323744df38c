"""Core profiling components."""

from .models import ProfileConfig, ProfileReport, UrlTarget
from .profiler import Attempt, Profiler
from .stats import StatsAggregator

__all__ = [
    "ProfileConfig",
    "ProfileReport",
    "UrlTarget",
    "Attempt",
    "Profiler",
    "StatsAggregator",
]
