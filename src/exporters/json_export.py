"""
JSON exporter for Sprout.

Exports development reports as clean, human-readable JSON.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

from src.models import DevelopmentReport


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles dates and datetimes."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)


def export_json(
    report: DevelopmentReport,
    output_path: Path | None = None,
    indent: int = 2,
    include_nulls: bool = False,
) -> str:
    """
    Export a development report to JSON format.

    Args:
        report: The report to export
        output_path: Optional path to write the JSON file
        indent: JSON indentation level
        include_nulls: Whether to include null values in output

    Returns:
        JSON string representation of the report
    """
    data = report.model_dump(mode="json", exclude_none=not include_nulls)
    json_str = json.dumps(data, indent=indent, cls=DateTimeEncoder)

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json_str)

    return json_str


def export_json_summary(report: DevelopmentReport) -> dict[str, Any]:
    """
    Export a summary of the report (useful for listings/previews).
    """
    return {
        "child_age_at_analysis": report.child_age_at_analysis,
        "overall_score": report.overall_score,
        "overall_status": getattr(report.overall_status, "value", report.overall_status),
        "domain_scores": {name: a.score for name, a in report.domains.items()},
        "achieved_milestones": sum(len(a.achieved_milestones) for a in report.domains.values()),
        "growth_flags": [g.metric.value for g in report.growth_percentiles if g.needs_review],
        "created_at": report.created_at.isoformat(),
    }
