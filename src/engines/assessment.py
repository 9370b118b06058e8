"""
Domain assessment aggregation.

Turns the loosely-typed JSON returned by the assessment provider into
DomainAssessment records, cross-referenced against the milestone catalog
for the child's age. Milestones the provider says are achieved become
ProviderAssertedMilestone entries for this run only; they are never
written to a child's confirmed achievements from here.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from knowledge.growth import assess_growth
from src.models import (
    ASSESSED_DOMAINS,
    DevelopmentReport,
    Domain,
    DomainAssessment,
    DomainStatus,
    GrowthAssessment,
    GrowthProfile,
    MilestoneDefinition,
    ProviderAssertedMilestone,
    UpcomingMilestone,
    utc_now,
)

from .milestones import milestones_for_age

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0

# Outermost JSON object in free text (models often wrap JSON in prose or fences)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

# Maximum number of citations attached to a report
MAX_REPORT_SOURCES = 5


class AssessmentProviderError(RuntimeError):
    """The assessment provider failed or returned something unusable."""


def parse_provider_response(text: str) -> dict[str, Any]:
    """
    Extract the provider's JSON object from its raw response text.

    Raises:
        AssessmentProviderError: No JSON object found, invalid JSON, or the
            top-level value is not an object
    """
    if not isinstance(text, str) or not text.strip():
        raise AssessmentProviderError("Empty response from assessment provider")

    match = _JSON_OBJECT.search(text)
    if match is None:
        raise AssessmentProviderError("Invalid response format from assessment provider")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AssessmentProviderError(f"Could not parse assessment provider response: {e}") from e

    if not isinstance(data, dict):
        raise AssessmentProviderError("Assessment provider response is not a JSON object")
    return data


def _coerce_score(value: Any, label: str) -> float:
    if value is None or value == "":
        return NEUTRAL_SCORE
    if isinstance(value, bool):
        logger.warning("Non-numeric %s score %r; using %s", label, value, NEUTRAL_SCORE)
        return NEUTRAL_SCORE
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric %s score %r; using %s", label, value, NEUTRAL_SCORE)
        return NEUTRAL_SCORE


def _coerce_status(value: Any) -> DomainStatus | str:
    if value is None or value == "":
        return DomainStatus.UNKNOWN
    value = str(value)
    try:
        return DomainStatus(value)
    except ValueError:
        return value


def _coerce_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, Iterable) or isinstance(value, Mapping):
        return []
    return [str(item) for item in value if item is not None]


def build_assessment(
    domain: Domain | str,
    raw: Mapping[str, Any] | None,
    catalog: Iterable[MilestoneDefinition] | None,
    age_months: int,
    created_at: datetime | None = None,
) -> DomainAssessment:
    """
    Build one domain's assessment from the provider's block for it.

    Args:
        domain: Domain being assessed
        raw: The provider's block for the domain, or None when absent
        catalog: Milestone catalog; defaults to the shipped catalog
        age_months: Child's age, used to pick the milestone window
        created_at: Timestamp stamped on provider-asserted milestones

    Returns:
        DomainAssessment. A missing block yields score 50, status unknown
        and empty lists.
    """
    domain = Domain(domain)
    if raw is None:
        return DomainAssessment(domain=domain)
    if not isinstance(raw, Mapping):
        raise AssessmentProviderError(
            f"Expected an object for the {domain.value} block, got {type(raw).__name__}"
        )

    created_at = created_at or utc_now()

    achieved_ids = raw.get("achievedMilestoneIds")
    if achieved_ids is None:
        achieved_ids = raw.get("achievedMilestones")
    achieved_ids = set(_coerce_list(achieved_ids))

    window = [m for m in milestones_for_age(age_months, catalog) if m.domain == domain]

    achieved = [
        ProviderAssertedMilestone(id=m.id, title=m.title, achieved_date=created_at)
        for m in window if m.id in achieved_ids
    ]
    upcoming = [
        UpcomingMilestone(id=m.id, title=m.title, typical_months=m.typical_months)
        for m in window if m.id not in achieved_ids
    ]

    unknown = achieved_ids - {m.id for m in window}
    if unknown:
        logger.debug(
            "Ignoring %d %s milestone id(s) outside the window for %d months: %s",
            len(unknown), domain.value, age_months, ", ".join(sorted(unknown)),
        )

    return DomainAssessment(
        domain=domain,
        score=_coerce_score(raw.get("score"), domain.value),
        status=_coerce_status(raw.get("status")),
        observations=_coerce_list(raw.get("observations")),
        strengths=_coerce_list(raw.get("strengths")),
        areas_to_support=_coerce_list(raw.get("areasToSupport")),
        achieved_milestones=achieved,
        upcoming_milestones=upcoming,
        activities=_coerce_list(raw.get("activities")),
    )


def build_domain_assessments(
    provider_output: Mapping[str, Any],
    age_months: int,
    catalog: Iterable[MilestoneDefinition] | None = None,
    created_at: datetime | None = None,
) -> dict[str, DomainAssessment]:
    """Build the motor, language, cognitive and social assessments."""
    if not isinstance(provider_output, Mapping):
        raise AssessmentProviderError("Assessment provider output must be a JSON object")

    if catalog is None:
        from knowledge.milestones import get_catalog
        catalog = get_catalog()
    catalog = list(catalog)
    created_at = created_at or utc_now()

    return {
        domain.value: build_assessment(
            domain, provider_output.get(domain.value), catalog, age_months, created_at
        )
        for domain in ASSESSED_DOMAINS
    }


def get_growth_percentiles(profile: GrowthProfile) -> list[GrowthAssessment]:
    """Percentiles for every applicable metric of a growth profile."""
    results = assess_growth(
        profile.age_months,
        profile.sex.value,
        profile.weight_kg,
        profile.height_cm,
        profile.head_circumference_cm,
    )
    return [
        GrowthAssessment(
            metric=r.metric,
            value=r.value,
            percentile=r.percentile,
            z_score=r.z_score,
            interpretation=r.interpretation,
        )
        for r in results
    ]


def build_report(
    provider_output: Mapping[str, Any],
    profile: GrowthProfile,
    region: str | None = None,
    catalog: Iterable[MilestoneDefinition] | None = None,
    created_at: datetime | None = None,
) -> DevelopmentReport:
    """
    Combine a provider response with growth percentiles into a full report.

    Overall score and status follow the same defaulting as the domain
    blocks. Citations are those for the child's region, capped at five.
    """
    from knowledge.milestones import get_sources_for_region

    created_at = created_at or utc_now()
    domains = build_domain_assessments(
        provider_output, profile.age_months, catalog=catalog, created_at=created_at
    )

    report = DevelopmentReport(
        overall_score=_coerce_score(provider_output.get("overallScore"), "overall"),
        overall_status=_coerce_status(provider_output.get("overallStatus")),
        summary=str(provider_output.get("summary") or ""),
        growth_percentiles=get_growth_percentiles(profile),
        personalized_tips=_coerce_list(provider_output.get("personalizedTips")),
        sources=get_sources_for_region(region)[:MAX_REPORT_SOURCES],
        child_age_at_analysis=profile.age_months,
        created_at=created_at,
        **domains,
    )
    logger.info(
        "Built report for %d months: overall %s (%s)",
        profile.age_months, report.overall_score, report.overall_status,
    )
    return report
