"""
Milestone tracking models.

Confirmed achievements and watch entries are the long-lived, per-child
state. Every change to them is recorded as a PersistenceIntent in the
tracker's outbox before it is delivered to remote storage.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from .development import utc_now


class ConfirmedBy(str, Enum):
    PARENT = "parent"
    ANALYSIS = "analysis"


class TrackingState(str, Enum):
    NOT_TRACKED = "not_tracked"
    WATCHED = "watched"
    ACHIEVED = "achieved"


class SyncOperation(str, Enum):
    MARK_ACHIEVED = "mark_achieved"
    UNMARK_ACHIEVED = "unmark_achieved"
    WATCH = "watch"
    UNWATCH = "unwatch"


class IntentStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    SUPERSEDED = "superseded"


class ConfirmedAchievement(BaseModel):
    """A milestone a caregiver (or a confirmed analysis) marked as achieved."""
    kind: Literal["confirmed"] = "confirmed"
    milestone_id: str
    achieved_date: datetime = Field(default_factory=utc_now)
    confirmed_by: ConfirmedBy = ConfirmedBy.PARENT
    notes: str | None = None


class WatchEntry(BaseModel):
    """A milestone being monitored but not yet achieved."""
    milestone_id: str
    added_date: datetime = Field(default_factory=utc_now)


class PersistenceIntent(BaseModel):
    """One outbox entry: a local mutation awaiting remote delivery."""
    sequence: int
    operation: SyncOperation
    child_id: str
    milestone_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    status: IntentStatus = IntentStatus.PENDING
    error: str | None = None
    delivered_at: datetime | None = None
