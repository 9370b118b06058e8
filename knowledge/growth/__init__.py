"""
Growth chart calculations.
"""

from .who_2006 import (
    percentile,
    z_score,
    median_for,
    value_at_percentile,
    interpret_percentile,
    calculate_percentile,
    assess_growth,
    curve,
    GrowthCurvePoint,
    GrowthResult,
    METRICS,
    SEXES,
    RELATIVE_SD,
    HC_MAX_AGE_MONTHS,
)

__all__ = [
    "percentile",
    "z_score",
    "median_for",
    "value_at_percentile",
    "interpret_percentile",
    "calculate_percentile",
    "assess_growth",
    "curve",
    "GrowthCurvePoint",
    "GrowthResult",
    "METRICS",
    "SEXES",
    "RELATIVE_SD",
    "HC_MAX_AGE_MONTHS",
]
