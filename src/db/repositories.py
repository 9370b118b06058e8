"""
Repository classes for database operations.

Each repository handles the rows of one table. ChildMilestoneRepository
combines the achieved and watched tables into the remote store the
achievement tracker persists to.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Any

from src.db.client import get_client, get_admin_client, SupabaseClient

logger = logging.getLogger(__name__)


class BaseRepository:
  """Base class for all repositories."""

  table_name: str = ""

  def __init__(self, client: Optional[SupabaseClient] = None, use_admin: bool = False):
    """
    Initialize repository with optional client.

    Args:
      client: Supabase client to use. If None, gets default client.
      use_admin: If True and no client provided, use admin client.
    """
    if client:
      self._client = client
    elif use_admin:
      self._client = get_admin_client()
    else:
      self._client = get_client()

  @property
  def table(self):
    """Get the table reference."""
    return self._client.table(self.table_name)

  def _to_dict(self, obj: Any) -> dict:
    """Convert object to dict for storage."""
    if hasattr(obj, "model_dump"):
      return obj.model_dump(mode="json", exclude_none=True)
    elif isinstance(obj, dict):
      return obj
    else:
      raise ValueError(f"Cannot convert {type(obj)} to dict")


class AchievedMilestoneRepository(BaseRepository):
  """Repository for confirmed milestone achievements."""

  table_name = "achieved_milestones"

  def get_by_child(self, child_id: str) -> list[dict]:
    """Get all achievements for a child, oldest first."""
    response = (
      self.table.select("*")
      .eq("child_id", child_id)
      .order("achieved_date")
      .execute()
    )
    return response.data or []

  def upsert(
    self,
    child_id: str,
    milestone_id: str,
    achieved_date: Optional[str] = None,
    notes: Optional[str] = None,
    confirmed_by: str = "parent",
  ) -> Optional[dict]:
    """Create or overwrite the achievement for (child, milestone)."""
    data = {
      "child_id": child_id,
      "milestone_id": milestone_id,
      "achieved_date": achieved_date or datetime.now(timezone.utc).isoformat(),
      "confirmed_by": confirmed_by,
      "notes": notes,
    }
    response = self.table.upsert(data, on_conflict="child_id,milestone_id").execute()
    return response.data[0] if response.data else None

  def delete(self, child_id: str, milestone_id: str) -> bool:
    """Delete an achievement."""
    response = (
      self.table.delete()
      .eq("child_id", child_id)
      .eq("milestone_id", milestone_id)
      .execute()
    )
    return len(response.data) > 0 if response.data else False


class WatchedMilestoneRepository(BaseRepository):
  """Repository for milestones on a child's watch list."""

  table_name = "watched_milestones"

  def get_by_child(self, child_id: str) -> list[dict]:
    """Get the watch list for a child."""
    response = (
      self.table.select("*")
      .eq("child_id", child_id)
      .order("added_date")
      .execute()
    )
    return response.data or []

  def add(self, child_id: str, milestone_id: str) -> Optional[dict]:
    """Add a milestone to the watch list (no-op if already watched)."""
    data = {
      "child_id": child_id,
      "milestone_id": milestone_id,
      "added_date": datetime.now(timezone.utc).isoformat(),
    }
    response = (
      self.table.upsert(data, on_conflict="child_id,milestone_id", ignore_duplicates=True)
      .execute()
    )
    return response.data[0] if response.data else None

  def delete(self, child_id: str, milestone_id: str) -> bool:
    """Remove a milestone from the watch list."""
    response = (
      self.table.delete()
      .eq("child_id", child_id)
      .eq("milestone_id", milestone_id)
      .execute()
    )
    return len(response.data) > 0 if response.data else False


class ChildMilestoneRepository:
  """
  Remote milestone store for the achievement tracker.

  Marking a milestone achieved also removes it from the watch list, so
  the two tables never disagree about a milestone.
  """

  def __init__(self, client: Optional[SupabaseClient] = None, use_admin: bool = False):
    if client is None:
      client = get_admin_client() if use_admin else get_client()
    self.achieved = AchievedMilestoneRepository(client)
    self.watched = WatchedMilestoneRepository(client)

  def get_child_milestones(self, child_id: str) -> dict:
    """Achieved and watched milestones in the tracker's snapshot shape."""
    achieved = [
      {
        "milestoneId": row["milestone_id"],
        "achievedDate": row.get("achieved_date"),
        "confirmedBy": row.get("confirmed_by") or "parent",
        "notes": row.get("notes"),
      }
      for row in self.achieved.get_by_child(child_id)
    ]
    watched = [
      {
        "milestoneId": row["milestone_id"],
        "addedDate": row.get("added_date"),
      }
      for row in self.watched.get_by_child(child_id)
    ]
    return {"achievedMilestones": achieved, "watchedMilestones": watched}

  def mark_milestone_achieved(self, child_id: str, milestone_id: str, data: dict) -> Optional[dict]:
    row = self.achieved.upsert(
      child_id,
      milestone_id,
      achieved_date=data.get("achievedDate"),
      notes=data.get("notes"),
      confirmed_by=data.get("confirmedBy") or "parent",
    )
    self.watched.delete(child_id, milestone_id)
    logger.debug("Stored achievement %s for child %s", milestone_id, child_id)
    return row

  def unmark_milestone_achieved(self, child_id: str, milestone_id: str) -> bool:
    return self.achieved.delete(child_id, milestone_id)

  def watch_milestone(self, child_id: str, milestone_id: str) -> Optional[dict]:
    return self.watched.add(child_id, milestone_id)

  def unwatch_milestone(self, child_id: str, milestone_id: str) -> bool:
    return self.watched.delete(child_id, milestone_id)
