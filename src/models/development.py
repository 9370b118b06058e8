"""
Core data models for Sprout developmental assessments.

Growth inputs and results, the milestone catalog entries, and the
per-domain assessment records produced from a provider response.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class Sex(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Metric(str, Enum):
    WEIGHT = "weight"
    HEIGHT = "height"
    HEAD_CIRCUMFERENCE = "head_circumference"


class Domain(str, Enum):
    MOTOR = "motor"
    LANGUAGE = "language"
    COGNITIVE = "cognitive"
    SOCIAL = "social"
    SENSORY = "sensory"


# Domains the assessment provider reports on
ASSESSED_DOMAINS: tuple[Domain, ...] = (
    Domain.MOTOR,
    Domain.LANGUAGE,
    Domain.COGNITIVE,
    Domain.SOCIAL,
)


class DomainStatus(str, Enum):
    ON_TRACK = "on_track"
    EMERGING = "emerging"
    NEEDS_SUPPORT = "needs_support"
    UNKNOWN = "unknown"


class MilestoneStatus(str, Enum):
    CURRENT = "current"
    UPCOMING = "upcoming"
    ACHIEVED = "achieved"
    OVERDUE = "overdue"


# =============================================================================
# CATALOG
# =============================================================================


class Citation(BaseModel):
    """A reference backing a milestone window or growth table."""
    model_config = ConfigDict(frozen=True)

    key: str | None = None
    title: str
    url: str
    organization: str
    year: int
    type: Literal["guideline", "research", "data"] = "guideline"
    region: str | None = None


class MilestoneDefinition(BaseModel):
    """A developmental milestone with its expected window in months."""
    model_config = ConfigDict(frozen=True)

    id: str
    domain: Domain
    title: str
    description: str = ""
    min_months: int = Field(ge=0)
    max_months: int = Field(ge=0)
    typical_months: int = Field(ge=0)
    source: Citation | None = None

    @model_validator(mode="after")
    def _check_window(self) -> MilestoneDefinition:
        if not self.min_months <= self.typical_months <= self.max_months:
            raise ValueError(
                f"Milestone {self.id!r}: expected min_months <= typical_months <= max_months, "
                f"got {self.min_months}/{self.typical_months}/{self.max_months}"
            )
        return self

    def in_window(self, age_months: int) -> bool:
        """True if the age falls inside the strict [min, max] window."""
        return self.min_months <= age_months <= self.max_months


# =============================================================================
# GROWTH
# =============================================================================


class GrowthProfile(BaseModel):
    """Measurements for one child at one point in time."""
    age_months: int = Field(ge=0)
    sex: Sex
    weight_kg: float = Field(gt=0)
    height_cm: float = Field(gt=0)
    head_circumference_cm: float | None = Field(default=None, gt=0)


class GrowthAssessment(BaseModel):
    """Percentile of one measurement against the reference median."""
    metric: Metric
    value: float
    percentile: float = Field(ge=0.1, le=99.9)
    z_score: float
    interpretation: str

    @computed_field
    @property
    def needs_review(self) -> bool:
        return self.percentile < 3 or self.percentile >= 97


# =============================================================================
# DOMAIN ASSESSMENT
# =============================================================================


class ProviderAssertedMilestone(BaseModel):
    """
    A milestone the assessment provider reported as achieved in one run.

    The date is the assessment's creation time, not the true achievement
    date. Never stored as a confirmed achievement unless a caller confirms it.
    """
    kind: Literal["provider_asserted"] = "provider_asserted"
    id: str
    title: str
    achieved_date: datetime


class UpcomingMilestone(BaseModel):
    """A catalog milestone in the age window not (yet) reported as achieved."""
    id: str
    title: str
    typical_months: int


class DomainAssessment(BaseModel):
    """Qualitative assessment of a single developmental domain."""
    domain: Domain
    score: float = 50
    # Known vocabulary is DomainStatus; anything else from the provider passes through
    status: DomainStatus | str = DomainStatus.UNKNOWN
    observations: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    areas_to_support: list[str] = Field(default_factory=list)
    achieved_milestones: list[ProviderAssertedMilestone] = Field(default_factory=list)
    upcoming_milestones: list[UpcomingMilestone] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)


class DevelopmentReport(BaseModel):
    """Full analysis for a child: domain assessments plus growth percentiles."""
    overall_score: float = 50
    overall_status: DomainStatus | str = DomainStatus.UNKNOWN
    summary: str = ""
    motor: DomainAssessment
    language: DomainAssessment
    cognitive: DomainAssessment
    social: DomainAssessment
    growth_percentiles: list[GrowthAssessment] = Field(default_factory=list)
    personalized_tips: list[str] = Field(default_factory=list)
    sources: list[Citation] = Field(default_factory=list, max_length=5)
    child_age_at_analysis: int = Field(ge=0)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def domains(self) -> dict[str, DomainAssessment]:
        return {
            "motor": self.motor,
            "language": self.language,
            "cognitive": self.cognitive,
            "social": self.social,
        }
