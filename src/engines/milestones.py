"""
Milestone window resolution.

A milestone is shown for an age when the age falls inside its window
widened by one month before and three months after, so that recently
achievable and soon-expected milestones stay visible. Classification
against the strict window and the child's confirmed achievements decides
whether it is current, upcoming, achieved or overdue.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field

from src.models import Domain, MilestoneDefinition, MilestoneStatus

# Widening applied to [min_months, max_months] when selecting by age
WINDOW_LEAD_MONTHS = 1
WINDOW_TRAIL_MONTHS = 3


def _check_age(age_months: int) -> int:
    if isinstance(age_months, bool) or not isinstance(age_months, int):
        raise ValueError(f"Age in months must be a whole number, got {age_months!r}")
    if age_months < 0:
        raise ValueError(f"Age in months must be non-negative, got {age_months}")
    return age_months


def _default_catalog() -> list[MilestoneDefinition]:
    from knowledge.milestones import get_catalog
    return get_catalog()


def milestones_for_age(
    age_months: int,
    catalog: Iterable[MilestoneDefinition] | None = None,
) -> list[MilestoneDefinition]:
    """
    Every definition whose widened window contains the age.

    Args:
        age_months: Child's age in whole months
        catalog: Definitions to search; defaults to the shipped catalog

    Returns:
        Matching definitions in catalog order
    """
    _check_age(age_months)
    if catalog is None:
        catalog = _default_catalog()

    return [
        m for m in catalog
        if m.min_months - WINDOW_LEAD_MONTHS <= age_months <= m.max_months + WINDOW_TRAIL_MONTHS
    ]


def classify(
    definition: MilestoneDefinition,
    age_months: int,
    achieved: Collection[str] = (),
) -> MilestoneStatus:
    """
    Classify a milestone for a child.

    Achieved wins regardless of age. A window that has fully elapsed
    without a confirmed achievement is reported as overdue.
    """
    _check_age(age_months)
    if definition.id in achieved:
        return MilestoneStatus.ACHIEVED
    if definition.min_months <= age_months <= definition.max_months:
        return MilestoneStatus.CURRENT
    if definition.min_months > age_months:
        return MilestoneStatus.UPCOMING
    return MilestoneStatus.OVERDUE


@dataclass
class MilestoneWindow:
    """Milestones visible at an age, grouped by status."""
    age_months: int
    current: list[MilestoneDefinition] = field(default_factory=list)
    upcoming: list[MilestoneDefinition] = field(default_factory=list)
    achieved: list[MilestoneDefinition] = field(default_factory=list)
    overdue: list[MilestoneDefinition] = field(default_factory=list)

    @property
    def all(self) -> list[MilestoneDefinition]:
        return self.current + self.upcoming + self.achieved + self.overdue

    def status_of(self, milestone_id: str) -> MilestoneStatus | None:
        for status in MilestoneStatus:
            if any(m.id == milestone_id for m in self.group(status)):
                return status
        return None

    def group(self, status: MilestoneStatus) -> list[MilestoneDefinition]:
        return getattr(self, status.value)

    def by_domain(self, domain: Domain | str) -> MilestoneWindow:
        domain = Domain(domain)
        return MilestoneWindow(
            age_months=self.age_months,
            current=[m for m in self.current if m.domain == domain],
            upcoming=[m for m in self.upcoming if m.domain == domain],
            achieved=[m for m in self.achieved if m.domain == domain],
            overdue=[m for m in self.overdue if m.domain == domain],
        )


def resolve_window(
    age_months: int,
    achieved: Collection[str] = (),
    catalog: Iterable[MilestoneDefinition] | None = None,
) -> MilestoneWindow:
    """Select the milestones for an age and group them by status."""
    window = MilestoneWindow(age_months=age_months)
    for definition in milestones_for_age(age_months, catalog):
        status = classify(definition, age_months, achieved)
        window.group(status).append(definition)
    return window


def upcoming_milestones(
    age_months: int,
    count: int = 5,
    catalog: Iterable[MilestoneDefinition] | None = None,
) -> list[MilestoneDefinition]:
    """The next milestones to expect, earliest window first."""
    _check_age(age_months)
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    if catalog is None:
        catalog = _default_catalog()

    ahead = [m for m in catalog if m.min_months > age_months]
    ahead.sort(key=lambda m: m.min_months)
    return ahead[:count]


def current_progress(
    age_months: int,
    achieved: Collection[str] = (),
    catalog: Iterable[MilestoneDefinition] | None = None,
) -> dict:
    """
    Progress through the milestones whose strict window contains the age.

    Returns:
        Dict with achieved, total and percent (0-100, rounded)
    """
    _check_age(age_months)
    if catalog is None:
        catalog = _default_catalog()

    in_window = [m for m in catalog if m.in_window(age_months)]
    done = sum(1 for m in in_window if m.id in achieved)
    total = len(in_window)
    return {
        "achieved": done,
        "total": total,
        "percent": round(done / total * 100) if total else 0,
    }


def get_milestones_for_age(age_months: int, region: str | None = None) -> dict:
    """
    Milestones visible at an age together with the citations backing them.

    Returns:
        Dict with milestones (MilestoneDefinition list) and sources (Citation list)
    """
    from knowledge.milestones import get_sources, get_sources_for_region

    sources = get_sources_for_region(region) if region else get_sources()
    return {
        "milestones": milestones_for_age(age_months),
        "sources": sources,
    }
