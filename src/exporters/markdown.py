"""
Markdown exporter for Sprout.

Exports development reports as human-readable Markdown.
"""

from __future__ import annotations

from pathlib import Path

from knowledge.milestones import format_age_range, get_milestone
from src.models import DevelopmentReport, DomainAssessment, GrowthAssessment, Metric

DISCLAIMER = (
    "This report is for informational purposes only and is not medical advice. "
    "Percentiles are approximate. Please consult your pediatrician with any concerns."
)


def export_markdown(
    report: DevelopmentReport,
    output_path: Path | None = None,
    include_activities: bool = True,
) -> str:
    """
    Export a development report to Markdown format.

    Args:
        report: The report to export
        output_path: Optional path to write the Markdown file
        include_activities: Whether to include suggested activities

    Returns:
        Markdown string representation of the report
    """
    lines = []

    # Header
    lines.append("# Development Report")
    lines.append("")
    lines.append(f"**Generated:** {report.created_at.strftime('%Y-%m-%d %H:%M')}")
    lines.append(f"**Age at analysis:** {_format_age(report.child_age_at_analysis)}")
    lines.append(
        f"**Overall:** {report.overall_score:.0f}/100 ({_format_status(report.overall_status)})"
    )
    lines.append("")
    if report.summary:
        lines.append(report.summary)
        lines.append("")

    # Growth
    if report.growth_percentiles:
        lines.append("## Growth")
        lines.append("")
        lines.append("| Measurement | Value | Percentile | Interpretation |")
        lines.append("|-------------|-------|------------|----------------|")
        for g in report.growth_percentiles:
            lines.append(
                f"| {_format_metric(g)} | {g.value:g} {_unit(g.metric)} | "
                f"{g.percentile:.1f} | {g.interpretation} |"
            )
        lines.append("")

    # Domains
    for assessment in report.domains.values():
        lines.extend(_domain_section(assessment, include_activities))

    # Tips
    if report.personalized_tips:
        lines.append("## Tips")
        lines.append("")
        for tip in report.personalized_tips:
            lines.append(f"- {tip}")
        lines.append("")

    # Sources
    if report.sources:
        lines.append("## Sources")
        lines.append("")
        for source in report.sources:
            lines.append(f"- [{source.title}]({source.url}) ({source.organization}, {source.year})")
        lines.append("")

    # Footer
    lines.append("---")
    lines.append("")
    lines.append(f"*{DISCLAIMER}*")

    markdown = "\n".join(lines)

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(markdown)

    return markdown


def _domain_section(assessment: DomainAssessment, include_activities: bool) -> list[str]:
    lines = [
        f"## {assessment.domain.value.title()}",
        "",
        f"**Score:** {assessment.score:.0f}/100 ({_format_status(assessment.status)})",
        "",
    ]

    for heading, items in (
        ("Observations", assessment.observations),
        ("Strengths", assessment.strengths),
        ("Areas to support", assessment.areas_to_support),
    ):
        if items:
            lines.append(f"### {heading}")
            lines.append("")
            lines.extend(f"- {item}" for item in items)
            lines.append("")

    if assessment.achieved_milestones:
        lines.append("### Milestones observed")
        lines.append("")
        for m in assessment.achieved_milestones:
            lines.append(f"- ✓ {m.title}")
        lines.append("")

    if assessment.upcoming_milestones:
        lines.append("### Milestones to look for")
        lines.append("")
        for m in assessment.upcoming_milestones:
            definition = get_milestone(m.id)
            window = (
                format_age_range(definition.min_months, definition.max_months)
                if definition else f"around {m.typical_months} months"
            )
            lines.append(f"- {m.title} ({window})")
        lines.append("")

    if include_activities and assessment.activities:
        lines.append("### Activities")
        lines.append("")
        lines.extend(f"- {a}" for a in assessment.activities)
        lines.append("")

    return lines


def _format_age(months: int) -> str:
    """Format age as human-readable string."""
    years, remaining = divmod(months, 12)
    if years == 0:
        return f"{months} months"
    if remaining == 0:
        return f"{years} year" if years == 1 else f"{years} years"
    year_word = "year" if years == 1 else "years"
    return f"{years} {year_word}, {remaining} months"


def _format_status(status) -> str:
    value = getattr(status, "value", status)
    return str(value).replace("_", " ")


def _format_metric(g: GrowthAssessment) -> str:
    return g.metric.value.replace("_", " ").capitalize()


def _unit(metric: Metric) -> str:
    return "kg" if metric == Metric.WEIGHT else "cm"
