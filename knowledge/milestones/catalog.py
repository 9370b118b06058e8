"""
Developmental milestone catalog.

Milestones and their citations ship as YAML next to this module and are
loaded once per process. The returned definitions are frozen models, so
the catalog can be shared freely between threads and requests.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from src.models import Citation, Domain, MilestoneDefinition

logger = logging.getLogger(__name__)

MILESTONES_DIR = Path(__file__).parent

# WHO regions with dedicated regional guidance
REGIONS = ("afro", "amro", "searo", "euro", "emro", "wpro")


class MilestoneCatalog:
    """Process-wide, read-only view of milestones.yaml and sources.yaml."""

    _milestones_cache: tuple[MilestoneDefinition, ...] | None = None
    _sources_cache: dict | None = None

    @classmethod
    def _load_sources(cls, knowledge_dir: Path = MILESTONES_DIR) -> dict:
        """Load citations from YAML file, with caching."""
        if cls._sources_cache is not None:
            return cls._sources_cache

        with open(knowledge_dir / "sources.yaml", "r") as f:
            cls._sources_cache = yaml.safe_load(f) or {}

        return cls._sources_cache

    @classmethod
    def _citation(cls, key: str) -> Citation:
        sources = cls._load_sources()
        entry = sources.get("global", {}).get(key)
        if entry is None:
            raise ValueError(f"Unknown citation key: {key!r}")
        return Citation(key=key, **entry)

    @classmethod
    def milestones(cls, knowledge_dir: Path = MILESTONES_DIR) -> tuple[MilestoneDefinition, ...]:
        """Load and validate the milestone catalog, with caching."""
        if cls._milestones_cache is not None:
            return cls._milestones_cache

        with open(knowledge_dir / "milestones.yaml", "r") as f:
            raw = yaml.safe_load(f) or {}

        definitions: list[MilestoneDefinition] = []
        seen: set[str] = set()
        for domain_name, entries in raw.items():
            domain = Domain(domain_name)
            for entry in entries or []:
                entry = dict(entry)
                source_key = entry.pop("source", None)
                definition = MilestoneDefinition(
                    domain=domain,
                    source=cls._citation(source_key) if source_key else None,
                    **entry,
                )
                if definition.id in seen:
                    raise ValueError(f"Duplicate milestone id in catalog: {definition.id!r}")
                seen.add(definition.id)
                definitions.append(definition)

        cls._milestones_cache = tuple(definitions)
        logger.debug("Loaded %d milestones from %s", len(definitions), knowledge_dir)
        return cls._milestones_cache

    @classmethod
    def reset(cls) -> None:
        """Drop cached data (for testing)."""
        cls._milestones_cache = None
        cls._sources_cache = None


def get_catalog(domain: Domain | str | None = None) -> list[MilestoneDefinition]:
    """All milestone definitions, optionally limited to one domain."""
    catalog = MilestoneCatalog.milestones()
    if domain is None:
        return list(catalog)
    domain = Domain(domain)
    return [m for m in catalog if m.domain == domain]


def get_milestone(milestone_id: str) -> MilestoneDefinition | None:
    """Look up a milestone by its id."""
    for milestone in MilestoneCatalog.milestones():
        if milestone.id == milestone_id:
            return milestone
    return None


def get_sources() -> list[Citation]:
    """Every global citation, in file order."""
    sources = MilestoneCatalog._load_sources()
    return [Citation(key=key, **entry) for key, entry in sources.get("global", {}).items()]


def get_sources_for_region(region: str | None = None) -> list[Citation]:
    """
    Citations to show alongside results for a WHO region.

    The core WHO/CDC references come first, followed by the regional
    guidance. With no region only the core references are returned.
    """
    sources = MilestoneCatalog._load_sources()
    citations = [MilestoneCatalog._citation(key) for key in sources.get("region_defaults", [])]

    if region is None:
        return citations

    region = region.lower()
    if region not in REGIONS:
        raise ValueError(f"Unknown WHO region: {region!r} (expected one of {', '.join(REGIONS)})")

    for entry in sources.get("regional", {}).get(region, []):
        citations.append(Citation(region=region, **entry))
    return citations


def format_age_range(min_months: int, max_months: int) -> str:
    """
    Human-readable age window.

    Examples:
        format_age_range(4, 9)   -> "4-9 months"
        format_age_range(12, 30) -> "1y - 2y 6m"
        format_age_range(9, 15)  -> "9m - 1y 3m"
    """
    if min_months < 12 and max_months < 12:
        return f"{min_months}-{max_months} months"

    def years(months: int) -> str:
        y, m = divmod(months, 12)
        return f"{y}y" if m == 0 else f"{y}y {m}m"

    if min_months >= 12:
        return f"{years(min_months)} - {years(max_months)}"
    return f"{min_months}m - {years(max_months)}"
