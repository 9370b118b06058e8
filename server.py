"""
Sprout Web Server

FastAPI-based web server for the Sprout developmental assessment engine.
"""

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Query, Depends, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

# Setup paths
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from knowledge.milestones import get_milestone, get_sources, get_sources_for_region
from src.models import ConfirmedBy, DevelopmentReport, GrowthProfile
from src.engines import (
    AchievementRegistry,
    AssessmentProviderError,
    build_domain_assessments,
    current_progress,
    get_growth_percentiles,
    get_milestones_for_age,
    parse_provider_response,
    resolve_window,
)
from src.exporters import export_json, export_json_summary, export_markdown
from src.db.client import has_service_key, is_configured as db_configured
from src.db.repositories import ChildMilestoneRepository
from src.llm import AssessmentProvider, is_configured as llm_configured

logging.basicConfig(
    level=os.environ.get("SPROUT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("sprout.server")


# Create FastAPI app
app = FastAPI(
    title="Sprout",
    description="Sprout - Developmental Assessment API",
    version="0.1.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory storage for generated reports
reports_store: dict[str, DevelopmentReport] = {}

_registry: Optional[AchievementRegistry] = None


def get_registry() -> AchievementRegistry:
    """Per-child trackers, persisting to Supabase when it is configured."""
    global _registry
    if _registry is None:
        remote = None
        if has_service_key():
            remote = ChildMilestoneRepository(use_admin=True)
        elif db_configured():
            logger.info("SUPABASE_SERVICE_KEY not set; persisting milestones with the anon key")
            remote = ChildMilestoneRepository()
        else:
            logger.info("Supabase not configured; milestone state is kept in memory only")
        _registry = AchievementRegistry(remote=remote)
    return _registry


def get_provider() -> AssessmentProvider:
    if not llm_configured():
        raise HTTPException(status_code=503, detail="Assessment provider not configured (set ANTHROPIC_API_KEY)")
    return AssessmentProvider()


# Request/Response models
class AssessmentRequest(BaseModel):
    """Domain assessments from a provider response the caller already has."""
    age_months: int = Field(..., ge=0, description="Child's age in months")
    provider_output: Optional[dict[str, Any]] = Field(None, description="Parsed provider JSON")
    provider_text: Optional[str] = Field(None, description="Raw provider response text")


class AnalysisRequest(BaseModel):
    """Request model for a full development analysis."""
    profile: GrowthProfile
    notes: Optional[str] = Field(None, description="Caregiver notes or transcript")
    region: Optional[str] = Field(None, description="WHO region (afro, amro, searo, euro, emro, wpro)")
    interests: Optional[list[str]] = None
    child_id: Optional[str] = Field(None, description="Child to confirm achievements for")
    confirm_achievements: bool = Field(
        False,
        description="Confirm milestones the provider reports as achieved for child_id",
    )


class MarkAchievedRequest(BaseModel):
    """Request model for marking a milestone achieved."""
    achieved_date: Optional[datetime] = None
    notes: Optional[str] = None
    confirmed_by: ConfirmedBy = ConfirmedBy.PARENT


# Error handlers
@app.exception_handler(ValueError)
async def value_error_handler(request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(AssessmentProviderError)
async def provider_error_handler(request, exc: AssessmentProviderError):
    logger.error("Assessment provider error: %s", exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "provider_configured": llm_configured(),
        "persistence_configured": db_configured(),
    }


@app.get("/api/milestones/{age_months}")
async def milestones_for(age_months: int, region: Optional[str] = Query(None)):
    """Milestones visible at an age, with their citations."""
    if age_months < 0:
        raise HTTPException(status_code=400, detail="Invalid age in months")

    result = get_milestones_for_age(age_months, region=region)
    return {
        "milestones": [m.model_dump(mode="json") for m in result["milestones"]],
        "sources": [s.model_dump(mode="json", exclude_none=True) for s in result["sources"]],
    }


@app.post("/api/growth-percentiles")
async def growth_percentiles(profile: GrowthProfile):
    """Growth percentiles for every applicable metric."""
    return {"percentiles": [g.model_dump(mode="json") for g in get_growth_percentiles(profile)]}


@app.get("/api/sources")
async def list_sources(region: Optional[str] = Query(None)):
    """Citations, optionally for a WHO region."""
    sources = get_sources_for_region(region) if region else get_sources()
    return {"sources": [s.model_dump(mode="json", exclude_none=True) for s in sources]}


@app.post("/api/assessments")
async def domain_assessments(request: AssessmentRequest):
    """Build the four domain assessments from a provider response."""
    if request.provider_output is not None:
        data = request.provider_output
    elif request.provider_text is not None:
        data = parse_provider_response(request.provider_text)
    else:
        raise HTTPException(status_code=400, detail="provider_output or provider_text is required")

    assessments = build_domain_assessments(data, request.age_months)
    return {name: a.model_dump(mode="json") for name, a in assessments.items()}


@app.post("/api/analysis")
def analyze(
    request: AnalysisRequest,
    provider: AssessmentProvider = Depends(get_provider),
    registry: AchievementRegistry = Depends(get_registry),
):
    """
    Run a full analysis through the assessment provider.

    When child_id and confirm_achievements are set, the milestones the
    provider reports as achieved are confirmed for that child.
    """
    report = provider.assess(
        request.profile,
        notes=request.notes,
        region=request.region,
        interests=request.interests,
    )
    report_id = str(uuid4())[:8]
    reports_store[report_id] = report

    confirmed = []
    if request.child_id and request.confirm_achievements:
        tracker = registry.get(request.child_id)
        confirmed = [a.milestone_id for a in tracker.confirm_provider_assertions(report)]

    return {
        "report_id": report_id,
        "summary": export_json_summary(report),
        "report": report.model_dump(mode="json"),
        "confirmed": confirmed,
    }


@app.get("/api/reports/{report_id}")
async def get_report(report_id: str):
    if report_id not in reports_store:
        raise HTTPException(status_code=404, detail="Report not found")
    return reports_store[report_id].model_dump(mode="json")


@app.get("/api/reports/{report_id}/export/{format}")
async def export_report(report_id: str, format: str):
    """
    Export a report.

    Formats: json, markdown
    """
    if report_id not in reports_store:
        raise HTTPException(status_code=404, detail="Report not found")

    report = reports_store[report_id]
    if format == "json":
        return Response(content=export_json(report), media_type="application/json")
    elif format == "markdown":
        return Response(content=export_markdown(report), media_type="text/markdown")
    else:
        raise HTTPException(status_code=400, detail="Invalid format. Use: json or markdown")


# -----------------------------------------------------------------------------
# Child milestone tracking
# -----------------------------------------------------------------------------


def _require_milestone(milestone_id: str) -> None:
    if get_milestone(milestone_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown milestone: {milestone_id}")


def _tracking_response(tracker, milestone_id: str) -> dict:
    return {
        "child_id": tracker.child_id,
        "milestone_id": milestone_id,
        "state": tracker.state_of(milestone_id).value,
    }


@app.get("/api/children/{child_id}/milestones")
def child_milestones(
    child_id: str,
    age_months: Optional[int] = Query(None, ge=0),
    registry: AchievementRegistry = Depends(get_registry),
):
    """
    A child's achieved and watched milestones.

    With age_months, also the milestone window grouped by status and
    progress through the current milestones.
    """
    tracker = registry.get(child_id)
    result = {
        "child_id": child_id,
        **tracker.snapshot(),
        "pending_sync": len(tracker.pending_intents()),
        "failed_sync": len(tracker.failed_intents()),
    }

    if age_months is not None:
        achieved = tracker.achieved_ids()
        window = resolve_window(age_months, achieved)
        result["window"] = {
            "current": [m.id for m in window.current],
            "upcoming": [m.id for m in window.upcoming],
            "achieved": [m.id for m in window.achieved],
            "overdue": [m.id for m in window.overdue],
        }
        result["progress"] = current_progress(age_months, achieved)

    return result


@app.post("/api/children/{child_id}/milestones/{milestone_id}")
def mark_milestone_achieved(
    child_id: str,
    milestone_id: str,
    request: Optional[MarkAchievedRequest] = Body(None),
    registry: AchievementRegistry = Depends(get_registry),
):
    """Mark a milestone achieved (removes it from the watch list)."""
    _require_milestone(milestone_id)
    request = request or MarkAchievedRequest()
    tracker = registry.get(child_id)
    record = tracker.mark_achieved(
        milestone_id,
        achieved_date=request.achieved_date,
        notes=request.notes,
        confirmed_by=request.confirmed_by,
    )
    return {**_tracking_response(tracker, milestone_id), "achievement": record.model_dump(mode="json")}


@app.delete("/api/children/{child_id}/milestones/{milestone_id}")
def unmark_milestone_achieved(
    child_id: str,
    milestone_id: str,
    registry: AchievementRegistry = Depends(get_registry),
):
    """Remove a milestone achievement."""
    _require_milestone(milestone_id)
    tracker = registry.get(child_id)
    removed = tracker.unmark_achieved(milestone_id)
    return {**_tracking_response(tracker, milestone_id), "removed": removed}


@app.post("/api/children/{child_id}/milestones/{milestone_id}/watch")
def watch_milestone(
    child_id: str,
    milestone_id: str,
    registry: AchievementRegistry = Depends(get_registry),
):
    """Add a milestone to the watch list. Ignored for achieved milestones."""
    _require_milestone(milestone_id)
    tracker = registry.get(child_id)
    watched = tracker.watch(milestone_id)
    return {**_tracking_response(tracker, milestone_id), "watched": watched}


@app.delete("/api/children/{child_id}/milestones/{milestone_id}/watch")
def unwatch_milestone(
    child_id: str,
    milestone_id: str,
    registry: AchievementRegistry = Depends(get_registry),
):
    """Remove a milestone from the watch list."""
    _require_milestone(milestone_id)
    tracker = registry.get(child_id)
    removed = tracker.unwatch(milestone_id)
    return {**_tracking_response(tracker, milestone_id), "removed": removed}


def run_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the server."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
