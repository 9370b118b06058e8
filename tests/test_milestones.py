"""
Tests for the milestone catalog and window resolution.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import re

import pytest


def _milestone(id, domain="motor", min_months=9, max_months=14, typical_months=11):
    from src.models import MilestoneDefinition

    return MilestoneDefinition(
        id=id,
        domain=domain,
        title=id.replace("-", " ").title(),
        min_months=min_months,
        max_months=max_months,
        typical_months=typical_months,
    )


class TestCatalog:
    """The shipped milestone catalog."""

    def test_loads_every_domain(self):
        from knowledge.milestones import get_catalog
        from src.models import Domain

        catalog = get_catalog()
        assert {m.domain for m in catalog} == set(Domain)
        assert len(get_catalog("sensory")) > 0

    def test_ids_are_unique_kebab_case(self):
        from knowledge.milestones import get_catalog

        ids = [m.id for m in get_catalog()]
        assert len(ids) == len(set(ids))
        assert all(re.fullmatch(r"[a-z0-9]+(-[a-z0-9]+)*", i) for i in ids)

    def test_windows_are_ordered(self):
        from knowledge.milestones import get_catalog

        for m in get_catalog():
            assert m.min_months <= m.typical_months <= m.max_months

    def test_every_milestone_has_a_source(self):
        from knowledge.milestones import get_catalog

        for m in get_catalog():
            assert m.source is not None
            assert m.source.url.startswith("https://")

    def test_get_milestone(self):
        from knowledge.milestones import get_milestone

        m = get_milestone("pincer-grasp")
        assert m.domain == "motor"
        assert (m.min_months, m.max_months, m.typical_months) == (8, 12, 10)
        assert get_milestone("does-not-exist") is None

    def test_definitions_are_frozen(self):
        from pydantic import ValidationError
        from knowledge.milestones import get_milestone

        m = get_milestone("pincer-grasp")
        with pytest.raises(ValidationError):
            m.max_months = 20

    def test_invalid_window_rejected(self):
        with pytest.raises(ValueError):
            _milestone("backwards", min_months=6, max_months=10, typical_months=12)

    def test_catalog_is_cached(self):
        from knowledge.milestones import MilestoneCatalog

        first = MilestoneCatalog.milestones()
        assert MilestoneCatalog.milestones() is first

        MilestoneCatalog.reset()
        reloaded = MilestoneCatalog.milestones()
        assert reloaded is not first
        assert reloaded == first


class TestSources:
    """Citations."""

    def test_global_sources(self):
        from knowledge.milestones import get_sources

        sources = get_sources()
        assert len(sources) == 8
        assert {s.organization for s in sources} >= {"WHO", "CDC", "AAP", "UNICEF"}

    def test_region_defaults(self):
        from knowledge.milestones import get_sources_for_region

        sources = get_sources_for_region()
        assert [s.key for s in sources] == [
            "growth_standards", "motor_milestones", "developmental_milestones", "cdc_milestones",
        ]

    @pytest.mark.parametrize("region", ["afro", "amro", "searo", "euro", "emro", "wpro"])
    def test_regional_sources(self, region):
        from knowledge.milestones import get_sources_for_region

        sources = get_sources_for_region(region)
        assert len(sources) == 5
        assert sources[-1].region == region

    def test_region_is_case_insensitive(self):
        from knowledge.milestones import get_sources_for_region

        assert get_sources_for_region("EURO")[-1].region == "euro"

    def test_unknown_region(self):
        from knowledge.milestones import get_sources_for_region

        with pytest.raises(ValueError, match="Unknown WHO region"):
            get_sources_for_region("atlantis")


class TestFormatAgeRange:
    @pytest.mark.parametrize("low, high, expected", [
        (4, 9, "4-9 months"),
        (0, 3, "0-3 months"),
        (12, 30, "1y - 2y 6m"),
        (12, 24, "1y - 2y"),
        (18, 27, "1y 6m - 2y 3m"),
        (9, 15, "9m - 1y 3m"),
        (9, 12, "9m - 1y"),
    ])
    def test_format(self, low, high, expected):
        from knowledge.milestones import format_age_range

        assert format_age_range(low, high) == expected


class TestWindow:
    """Age windowing."""

    def test_widened_window(self):
        from src.engines import milestones_for_age

        catalog = [_milestone("m", min_months=9, max_months=14)]
        assert milestones_for_age(7, catalog) == []
        assert milestones_for_age(8, catalog) == catalog
        assert milestones_for_age(17, catalog) == catalog
        assert milestones_for_age(18, catalog) == []

    def test_shipped_catalog_at_ten_months(self):
        from src.engines import milestones_for_age

        ids = {m.id for m in milestones_for_age(10)}
        assert {"pincer-grasp", "bangs-objects", "first-words"} <= ids
        assert "head-control" not in ids

    def test_rejects_bad_age(self):
        from src.engines import milestones_for_age

        with pytest.raises(ValueError):
            milestones_for_age(-1)
        with pytest.raises(ValueError):
            milestones_for_age(10.5)


class TestClassify:
    """Current / upcoming / achieved / overdue."""

    def test_window_edges(self):
        from src.engines import classify
        from src.models import MilestoneStatus

        m = _milestone("m", min_months=9, max_months=14)
        assert classify(m, 9) == MilestoneStatus.CURRENT
        assert classify(m, 14) == MilestoneStatus.CURRENT
        assert classify(m, 8) == MilestoneStatus.UPCOMING

    def test_achieved_at_any_age(self):
        from src.engines import classify
        from src.models import MilestoneStatus

        m = _milestone("m", min_months=9, max_months=14)
        for age in (0, 8, 9, 14, 30):
            assert classify(m, age, {"m"}) == MilestoneStatus.ACHIEVED

    def test_elapsed_window_is_overdue(self):
        from src.engines import classify
        from src.models import MilestoneStatus

        m = _milestone("m", min_months=9, max_months=14)
        assert classify(m, 15) == MilestoneStatus.OVERDUE

    def test_unmark_after_window_is_not_current_or_upcoming(self):
        from src.engines import AchievementTracker, classify
        from src.models import MilestoneStatus

        m = _milestone("m", min_months=9, max_months=14)
        tracker = AchievementTracker("child-1")
        tracker.mark_achieved("m")
        assert classify(m, 20, tracker.achieved_ids()) == MilestoneStatus.ACHIEVED

        tracker.unmark_achieved("m")
        status = classify(m, 20, tracker.achieved_ids())
        assert status not in (MilestoneStatus.CURRENT, MilestoneStatus.UPCOMING)

    def test_resolve_window_groups(self):
        from src.engines import resolve_window
        from src.models import MilestoneStatus

        catalog = [
            _milestone("now", min_months=9, max_months=14),
            _milestone("soon", min_months=11, max_months=15, typical_months=12),
            _milestone("done", min_months=8, max_months=12, typical_months=10),
            _milestone("late", min_months=6, max_months=9, typical_months=7),
            _milestone("far", min_months=20, max_months=30, typical_months=24),
        ]
        window = resolve_window(10, {"done"}, catalog)

        assert [m.id for m in window.current] == ["now"]
        assert [m.id for m in window.upcoming] == ["soon"]
        assert [m.id for m in window.achieved] == ["done"]
        assert [m.id for m in window.overdue] == ["late"]
        assert window.status_of("far") is None
        assert window.status_of("soon") == MilestoneStatus.UPCOMING
        assert len(window.all) == 4

    def test_window_by_domain(self):
        from src.engines import resolve_window

        catalog = [
            _milestone("run", domain="motor"),
            _milestone("talk", domain="language"),
        ]
        window = resolve_window(10, catalog=catalog).by_domain("language")
        assert [m.id for m in window.current] == ["talk"]


class TestUpcomingAndProgress:
    def test_upcoming_sorted_and_limited(self):
        from src.engines import upcoming_milestones

        result = upcoming_milestones(10, count=5)
        assert len(result) == 5
        assert all(m.min_months > 10 for m in result)
        mins = [m.min_months for m in result]
        assert mins == sorted(mins)

    def test_upcoming_custom_catalog(self):
        from src.engines import upcoming_milestones

        catalog = [
            _milestone("c", min_months=20, max_months=30, typical_months=24),
            _milestone("a", min_months=12, max_months=16, typical_months=14),
            _milestone("b", min_months=15, max_months=18, typical_months=16),
            _milestone("now", min_months=9, max_months=14),
        ]
        assert [m.id for m in upcoming_milestones(10, count=2, catalog=catalog)] == ["a", "b"]

    def test_current_progress(self):
        from src.engines import current_progress

        catalog = [
            _milestone("a", min_months=9, max_months=14),
            _milestone("b", min_months=8, max_months=12, typical_months=10),
            _milestone("c", min_months=10, max_months=11, typical_months=10),
            _milestone("later", min_months=11, max_months=15, typical_months=12),
        ]
        progress = current_progress(10, {"a", "later"}, catalog)
        assert progress == {"achieved": 1, "total": 3, "percent": 33}

    def test_progress_with_nothing_in_window(self):
        from src.engines import current_progress

        assert current_progress(10, catalog=[]) == {"achieved": 0, "total": 0, "percent": 0}


class TestMilestonesForAgeWithSources:
    def test_default_sources(self):
        from src.engines import get_milestones_for_age

        result = get_milestones_for_age(10)
        assert "pincer-grasp" in {m.id for m in result["milestones"]}
        assert len(result["sources"]) == 8

    def test_regional_sources(self):
        from src.engines import get_milestones_for_age

        result = get_milestones_for_age(10, region="EURO")
        assert len(result["sources"]) == 5
        assert result["sources"][-1].region == "euro"

    def test_invalid_age(self):
        from src.engines import get_milestones_for_age

        with pytest.raises(ValueError):
            get_milestones_for_age(-3)
