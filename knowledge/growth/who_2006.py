"""
WHO 2006 Child Growth Standards: approximate percentile calculations.

Reference: https://www.who.int/tools/child-growth-standards/standards

The full WHO standard is expressed with LMS parameters. Here only the
monthly medians (0-36 months) are tabulated and the spread is modelled as
a fixed fraction of the median:

    SD = M * relative_sd[metric]
    Z  = (value - M) / SD            clamped to [-4, 4]
    P  = 100 / (1 + e^(-1.7 * Z))    clamped to [0.1, 99.9]

The logistic curve with slope 1.7 is a close stand-in for the normal CDF.
Results are approximate and must not be read as clinical measurements.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from scipy.special import expit, logit

METRICS = ("weight", "height", "head_circumference")
SEXES = ("male", "female", "other")

# Relative standard deviation per metric (fraction of the median)
RELATIVE_SD: dict[str, float] = {
    "weight": 0.11,
    "height": 0.035,
    "head_circumference": 0.025,
}

Z_LIMIT = 4.0
LOGISTIC_SLOPE = 1.7
MIN_PERCENTILE = 0.1
MAX_PERCENTILE = 99.9

# Head circumference is only charted for infants and toddlers
HC_MAX_AGE_MONTHS = 36

# Medians indexed by age in months (0-36)

# Weight-for-age (kg)
WEIGHT_MEDIAN_MALE: tuple[float, ...] = (
    3.3, 4.5, 5.6, 6.4, 7.0, 7.5, 7.9, 8.3, 8.6, 8.9, 9.2, 9.4, 9.6,
    9.9, 10.1, 10.3, 10.5, 10.7, 10.9, 11.1, 11.3, 11.5, 11.8, 12.0, 12.2,
    12.4, 12.5, 12.7, 12.9, 13.1, 13.3, 13.5, 13.7, 13.8, 14.0, 14.2, 14.3,
)
WEIGHT_MEDIAN_FEMALE: tuple[float, ...] = (
    3.2, 4.2, 5.1, 5.8, 6.4, 6.9, 7.3, 7.6, 7.9, 8.2, 8.5, 8.7, 8.9,
    9.2, 9.4, 9.6, 9.8, 10.0, 10.2, 10.4, 10.6, 10.9, 11.1, 11.3, 11.5,
    11.7, 11.9, 12.1, 12.3, 12.5, 12.7, 12.9, 13.1, 13.3, 13.5, 13.7, 13.9,
)

# Length/height-for-age (cm)
HEIGHT_MEDIAN_MALE: tuple[float, ...] = (
    49.9, 54.7, 58.4, 61.4, 63.9, 65.9, 67.6, 69.2, 70.6, 72.0, 73.3, 74.5, 75.7,
    76.9, 78.0, 79.1, 80.2, 81.2, 82.3, 83.2, 84.2, 85.1, 86.0, 86.9, 87.8,
    88.0, 88.8, 89.6, 90.4, 91.2, 91.9, 92.7, 93.4, 94.1, 94.8, 95.4, 96.1,
)
HEIGHT_MEDIAN_FEMALE: tuple[float, ...] = (
    49.1, 53.7, 57.1, 59.8, 62.1, 64.0, 65.7, 67.3, 68.7, 70.1, 71.5, 72.8, 74.0,
    75.2, 76.4, 77.5, 78.6, 79.7, 80.7, 81.7, 82.7, 83.7, 84.6, 85.5, 86.4,
    86.6, 87.4, 88.3, 89.1, 89.9, 90.7, 91.4, 92.2, 92.9, 93.6, 94.4, 95.1,
)

# Head circumference-for-age (cm)
HC_MEDIAN_MALE: tuple[float, ...] = (
    34.5, 37.3, 39.1, 40.5, 41.6, 42.6, 43.3, 44.0, 44.5, 45.0, 45.4, 45.8, 46.1,
    46.3, 46.6, 46.8, 47.0, 47.2, 47.4, 47.5, 47.7, 47.8, 48.0, 48.1, 48.3,
    48.4, 48.5, 48.6, 48.8, 48.9, 49.0, 49.1, 49.2, 49.3, 49.4, 49.5, 49.6,
)
HC_MEDIAN_FEMALE: tuple[float, ...] = (
    33.9, 36.5, 38.3, 39.5, 40.6, 41.5, 42.2, 42.8, 43.4, 43.8, 44.2, 44.6, 44.9,
    45.2, 45.4, 45.7, 45.9, 46.1, 46.2, 46.4, 46.6, 46.7, 46.9, 47.0, 47.2,
    47.3, 47.4, 47.5, 47.6, 47.8, 47.9, 48.0, 48.1, 48.2, 48.3, 48.4, 48.5,
)

MEDIAN_TABLES: dict[tuple[str, str], tuple[float, ...]] = {
    ("weight", "male"): WEIGHT_MEDIAN_MALE,
    ("weight", "female"): WEIGHT_MEDIAN_FEMALE,
    ("height", "male"): HEIGHT_MEDIAN_MALE,
    ("height", "female"): HEIGHT_MEDIAN_FEMALE,
    ("head_circumference", "male"): HC_MEDIAN_MALE,
    ("head_circumference", "female"): HC_MEDIAN_FEMALE,
}


@dataclass(frozen=True)
class GrowthCurvePoint:
    """One tabulated point of a reference curve."""
    age_months: int
    median: float
    relative_sd: float


@dataclass
class GrowthResult:
    """Result of a growth calculation."""
    metric: str
    value: float
    percentile: float
    z_score: float
    interpretation: str


def _check_metric(metric: str) -> str:
    metric = getattr(metric, "value", metric)
    if metric not in METRICS:
        raise ValueError(f"Unknown growth metric: {metric!r}")
    return metric


def _check_sex(sex: str) -> str:
    sex = getattr(sex, "value", sex)
    if sex not in SEXES:
        raise ValueError(f"Unknown sex: {sex!r} (expected one of {', '.join(SEXES)})")
    return sex


def _check_age(age_months: float) -> float:
    if isinstance(age_months, bool) or not isinstance(age_months, (int, float)):
        raise ValueError(f"Age in months must be a number, got {age_months!r}")
    if not math.isfinite(age_months) or age_months < 0:
        raise ValueError(f"Age in months must be a non-negative number, got {age_months!r}")
    return age_months


def _check_value(value: float, metric: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{metric} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{metric} must be a positive number, got {value!r}")
    return float(value)


def _table_for(metric: str, sex: str) -> tuple[float, ...]:
    # "other" has no dedicated reference; it is charted against the male curve
    table_sex = "female" if sex == "female" else "male"
    return MEDIAN_TABLES[(metric, table_sex)]


def curve(metric: str, sex: str) -> list[GrowthCurvePoint]:
    """Return the tabulated reference curve for a metric and sex."""
    metric = _check_metric(metric)
    sex = _check_sex(sex)
    return [
        GrowthCurvePoint(age_months=age, median=median, relative_sd=RELATIVE_SD[metric])
        for age, median in enumerate(_table_for(metric, sex))
    ]


@lru_cache(maxsize=1024)
def _interpolate_median(metric: str, age_months: float, sex: str) -> float:
    """
    Interpolate the median for a given age.
    Uses linear interpolation between the two nearest tabulated ages and
    clamps ages outside the table to its ends.
    """
    table = _table_for(metric, sex)
    last_age = len(table) - 1

    if age_months <= 0:
        return table[0]
    if age_months >= last_age:
        return table[last_age]

    lower_age = int(math.floor(age_months))
    upper_age = lower_age + 1
    if lower_age == age_months:
        return table[lower_age]

    t = age_months - lower_age
    return table[lower_age] + t * (table[upper_age] - table[lower_age])


def median_for(metric: str, age_months: float, sex: str) -> float:
    """Reference median for a metric at an age."""
    metric = _check_metric(metric)
    sex = _check_sex(sex)
    age_months = _check_age(age_months)
    return _interpolate_median(metric, float(age_months), sex)


def z_score(metric: str, value: float, age_months: float, sex: str) -> float:
    """Clamped z-score of a measurement against the reference median."""
    metric = _check_metric(metric)
    sex = _check_sex(sex)
    age_months = _check_age(age_months)
    value = _check_value(value, metric)

    median = _interpolate_median(metric, float(age_months), sex)
    sd = median * RELATIVE_SD[metric]
    z = (value - median) / sd
    return max(-Z_LIMIT, min(Z_LIMIT, z))


def _percentile_from_z(z: float) -> float:
    """Convert a z-score to a percentile using the logistic approximation."""
    p = float(expit(LOGISTIC_SLOPE * z)) * 100
    return max(MIN_PERCENTILE, min(MAX_PERCENTILE, p))


def percentile(metric: str, value: float, age_months: float, sex: str) -> float:
    """
    Approximate percentile of a measurement.

    Args:
        metric: "weight", "height" or "head_circumference"
        value: Measurement in kg (weight) or cm (height, head circumference)
        age_months: Age in months; ages past 36 months use the 36-month median
        sex: "male", "female" or "other"

    Returns:
        Percentile in [0.1, 99.9]
    """
    return _percentile_from_z(z_score(metric, value, age_months, sex))


def value_at_percentile(metric: str, target: float, age_months: float, sex: str) -> float:
    """
    Measurement that sits at a given percentile (inverse of percentile()).

    Useful for drawing percentile bands on a growth chart.
    """
    metric = _check_metric(metric)
    sex = _check_sex(sex)
    age_months = _check_age(age_months)
    if not MIN_PERCENTILE <= target <= MAX_PERCENTILE:
        raise ValueError(
            f"Percentile must be within [{MIN_PERCENTILE}, {MAX_PERCENTILE}], got {target!r}"
        )

    median = _interpolate_median(metric, float(age_months), sex)
    z = float(logit(target / 100)) / LOGISTIC_SLOPE
    z = max(-Z_LIMIT, min(Z_LIMIT, z))
    return round(median * (1 + z * RELATIVE_SD[metric]), 2)


def interpret_percentile(value: float) -> str:
    """Interpret a growth percentile."""
    if value < 3:
        return "Below typical range - consult pediatrician"
    elif value < 15:
        return "Lower end of typical range"
    elif value < 85:
        return "Within typical range"
    elif value < 97:
        return "Higher end of typical range"
    else:
        return "Above typical range - consult pediatrician"


def calculate_percentile(
    metric: str,
    value: float,
    age_months: float,
    sex: str,
) -> GrowthResult:
    """
    Calculate a percentile with its z-score and interpretation.

    Returns:
        GrowthResult with the percentile rounded to one decimal
    """
    metric = _check_metric(metric)
    z = z_score(metric, value, age_months, sex)
    p = _percentile_from_z(z)

    return GrowthResult(
        metric=metric,
        value=float(value),
        percentile=round(p, 1),
        z_score=round(z, 2),
        interpretation=interpret_percentile(p),
    )


def assess_growth(
    age_months: int,
    sex: str,
    weight_kg: float,
    height_cm: float,
    head_circumference_cm: float | None = None,
) -> list[GrowthResult]:
    """
    Assess every applicable metric for a child.

    Head circumference is only evaluated under 36 months and when a value
    is supplied; otherwise it is left out of the results.
    """
    if isinstance(age_months, bool) or not isinstance(age_months, int):
        raise ValueError(f"Age in months must be a whole number, got {age_months!r}")
    _check_age(age_months)
    _check_sex(sex)
    _check_value(weight_kg, "weight")
    _check_value(height_cm, "height")
    if head_circumference_cm is not None:
        _check_value(head_circumference_cm, "head_circumference")

    results = [
        calculate_percentile("weight", weight_kg, age_months, sex),
        calculate_percentile("height", height_cm, age_months, sex),
    ]

    if head_circumference_cm is not None and age_months < HC_MAX_AGE_MONTHS:
        results.append(
            calculate_percentile("head_circumference", head_circumference_cm, age_months, sex)
        )

    return results
