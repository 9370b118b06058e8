"""
Developmental assessment engines.
"""

from .milestones import (
    MilestoneWindow,
    milestones_for_age,
    get_milestones_for_age,
    classify,
    resolve_window,
    upcoming_milestones,
    current_progress,
)
from .assessment import (
    AssessmentProviderError,
    parse_provider_response,
    build_assessment,
    build_domain_assessments,
    build_report,
    get_growth_percentiles,
)
from .tracker import AchievementTracker, AchievementRegistry, MilestoneRemote

__all__ = [
    "MilestoneWindow",
    "milestones_for_age",
    "get_milestones_for_age",
    "classify",
    "resolve_window",
    "upcoming_milestones",
    "current_progress",
    "AssessmentProviderError",
    "parse_provider_response",
    "build_assessment",
    "build_domain_assessments",
    "build_report",
    "get_growth_percentiles",
    "AchievementTracker",
    "AchievementRegistry",
    "MilestoneRemote",
]
