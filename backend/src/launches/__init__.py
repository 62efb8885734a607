"""Launch targets and the override resolution of their preferences."""

from .models import Launch, LaunchConfig, LaunchDTO, LaunchPreferred, Target, TargetGroup, TargetType
from .ordering import (
    DuplicatePreference,
    filter_launches,
    find_conflicts,
    find_duplicates,
    merge_effective,
    sort_by_target_order,
)
from .service import EffectiveLaunches, LaunchPreferenceService, launch_preference_service

__all__ = [
    "DuplicatePreference",
    "EffectiveLaunches",
    "Launch",
    "LaunchConfig",
    "LaunchDTO",
    "LaunchPreferenceService",
    "LaunchPreferred",
    "Target",
    "TargetGroup",
    "TargetType",
    "filter_launches",
    "find_conflicts",
    "find_duplicates",
    "launch_preference_service",
    "merge_effective",
    "sort_by_target_order",
]
