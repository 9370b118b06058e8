"""
Sprout data models.
"""

from .development import (
    ASSESSED_DOMAINS,
    Citation,
    DevelopmentReport,
    Domain,
    DomainAssessment,
    DomainStatus,
    GrowthAssessment,
    GrowthProfile,
    Metric,
    MilestoneDefinition,
    MilestoneStatus,
    ProviderAssertedMilestone,
    Sex,
    UpcomingMilestone,
    utc_now,
)
from .tracking import (
    ConfirmedAchievement,
    ConfirmedBy,
    IntentStatus,
    PersistenceIntent,
    SyncOperation,
    TrackingState,
    WatchEntry,
)

__all__ = [
    "ASSESSED_DOMAINS",
    "Citation",
    "DevelopmentReport",
    "Domain",
    "DomainAssessment",
    "DomainStatus",
    "GrowthAssessment",
    "GrowthProfile",
    "Metric",
    "MilestoneDefinition",
    "MilestoneStatus",
    "ProviderAssertedMilestone",
    "Sex",
    "UpcomingMilestone",
    "utc_now",
    "ConfirmedAchievement",
    "ConfirmedBy",
    "IntentStatus",
    "PersistenceIntent",
    "SyncOperation",
    "TrackingState",
    "WatchEntry",
]
