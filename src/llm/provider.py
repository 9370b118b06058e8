"""
Assessment provider backed by Claude.

Renders the child's growth percentiles and age-window milestones into a
prompt, asks the model for a per-domain JSON assessment, and hands the
raw text back to the aggregator.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from src.engines.assessment import (
    AssessmentProviderError,
    build_report,
    get_growth_percentiles,
    parse_provider_response,
)
from src.engines.milestones import milestones_for_age
from src.models import (
    ASSESSED_DOMAINS,
    DevelopmentReport,
    GrowthAssessment,
    GrowthProfile,
    MilestoneDefinition,
)

from .client import LLMClient, get_client

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a child development specialist. You assess development against "
    "WHO and CDC milestones. You do not diagnose conditions. You respond with "
    "a single JSON object and nothing else."
)

RESPONSE_FORMAT = """{
  "overallScore": 85,
  "overallStatus": "on_track",
  "summary": "Overall development summary...",
  "motor": {
    "score": 85,
    "status": "on_track",
    "observations": ["observation1"],
    "strengths": ["strength1"],
    "areasToSupport": ["area1"],
    "achievedMilestoneIds": ["milestone-id"],
    "activities": ["activity1"]
  },
  "language": { ...same shape as motor... },
  "cognitive": { ...same shape as motor... },
  "social": { ...same shape as motor... },
  "personalizedTips": ["tip1", "tip2", "tip3"]
}"""


def build_milestone_context(milestones: Iterable[MilestoneDefinition], age_months: int) -> str:
    """Milestones grouped by assessed domain, one line each with its id."""
    lines: list[str] = []
    milestones = list(milestones)
    for domain in ASSESSED_DOMAINS:
        in_domain = [m for m in milestones if m.domain == domain]
        if not in_domain:
            continue
        lines.append(f"{domain.value.upper()}:")
        for m in in_domain:
            status = "expected" if age_months >= m.typical_months else "upcoming"
            lines.append(
                f"- [{m.id}] {m.title} ({status} at {m.typical_months}mo): {m.description}"
            )
        lines.append("")
    return "\n".join(lines).strip()


def build_growth_context(percentiles: Iterable[GrowthAssessment]) -> str:
    return "\n".join(
        f"- {p.metric.value}: {p.value} ({p.percentile:.0f}th percentile - {p.interpretation})"
        for p in percentiles
    )


class AssessmentProvider:
    """
    Generates developmental assessments with an LLM.

    Args:
        client: LLM client; defaults to the shared singleton
    """

    def __init__(self, client: LLMClient | None = None):
        self._client = client

    @property
    def client(self) -> LLMClient:
        if self._client is None:
            self._client = get_client()
        return self._client

    def build_prompt(
        self,
        profile: GrowthProfile,
        notes: str | None = None,
        region: str | None = None,
        interests: list[str] | None = None,
    ) -> str:
        age = profile.age_months
        milestone_context = build_milestone_context(milestones_for_age(age), age)
        growth_context = build_growth_context(get_growth_percentiles(profile))

        profile_lines = [
            f"- Age: {age} months",
            f"- Sex: {profile.sex.value}",
            f"- Weight: {profile.weight_kg} kg",
            f"- Height: {profile.height_cm} cm",
        ]
        if profile.head_circumference_cm is not None:
            profile_lines.append(f"- Head circumference: {profile.head_circumference_cm} cm")
        if region:
            profile_lines.append(f"- Region: {region.upper()}")
        profile_lines.append(f"- Interests: {', '.join(interests) if interests else 'Not specified'}")

        sections = [
            f"Analyze the development of a {age}-month-old child.",
            "CHILD PROFILE:\n" + "\n".join(profile_lines),
            "CURRENT GROWTH ASSESSMENT:\n" + growth_context,
            "DEVELOPMENTAL MILESTONES FOR THIS AGE:\n" + milestone_context,
        ]
        if notes:
            sections.append("CAREGIVER NOTES:\n" + notes.strip())
        sections.append(
            "GUIDELINES:\n"
            "1. Base assessments on the milestones listed above\n"
            "2. This is for informational purposes, not medical advice\n"
            "3. Do not diagnose conditions or diseases\n"
            "4. Recommend consulting a pediatrician for any concerns\n"
            "5. Use only milestone ids from the list in achievedMilestoneIds\n"
            "6. Status is one of on_track, emerging, needs_support"
        )
        sections.append("Respond in this JSON format:\n" + RESPONSE_FORMAT)
        return "\n\n".join(sections)

    def analyze(
        self,
        profile: GrowthProfile,
        notes: str | None = None,
        region: str | None = None,
        interests: list[str] | None = None,
    ) -> str:
        """
        Ask the model for an assessment.

        Returns:
            The model's raw response text

        Raises:
            AssessmentProviderError: The API call failed
        """
        prompt = self.build_prompt(profile, notes=notes, region=region, interests=interests)
        logger.info("Requesting assessment for %d-month-old", profile.age_months)
        try:
            return self.client.generate(prompt, system=SYSTEM_PROMPT)
        except Exception as e:
            raise AssessmentProviderError(f"Assessment provider request failed: {e}") from e

    def assess(
        self,
        profile: GrowthProfile,
        notes: str | None = None,
        region: str | None = None,
        interests: list[str] | None = None,
    ) -> DevelopmentReport:
        """Run the provider and build the full report from its response."""
        text = self.analyze(profile, notes=notes, region=region, interests=interests)
        data = parse_provider_response(text)
        return build_report(data, profile, region=region)
