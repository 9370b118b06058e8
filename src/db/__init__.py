"""
Database module for Sprout.

Provides the Supabase client and repository classes for remote
milestone persistence.
"""

from src.db.client import (
  get_client,
  get_admin_client,
  has_service_key,
  is_configured,
  reset_clients,
  SupabaseClient,
)
from src.db.repositories import (
  AchievedMilestoneRepository,
  WatchedMilestoneRepository,
  ChildMilestoneRepository,
)

__all__ = [
  "get_client",
  "get_admin_client",
  "has_service_key",
  "is_configured",
  "reset_clients",
  "SupabaseClient",
  "AchievedMilestoneRepository",
  "WatchedMilestoneRepository",
  "ChildMilestoneRepository",
]
