"""
Milestone achievement tracking.

Each child has one AchievementTracker holding confirmed achievements and
watched milestones. Local state is authoritative for the session: every
mutation is applied immediately, recorded as a PersistenceIntent in the
tracker's outbox, and then delivered once to the remote store in a
background thread. A failed delivery is logged and left in the outbox as
``failed``; it never rolls back the local change.

Deliveries for the same milestone run one at a time. An intent whose
sequence number is older than one already attempted for that milestone
is marked ``superseded`` and not sent, so the remote store ends up with
the most recent local mutation. A mutation and its sequence number are
taken under the same lock.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol

from src.models import (
    ConfirmedAchievement,
    ConfirmedBy,
    DevelopmentReport,
    DomainAssessment,
    IntentStatus,
    PersistenceIntent,
    SyncOperation,
    TrackingState,
    WatchEntry,
    utc_now,
)

logger = logging.getLogger(__name__)


class MilestoneRemote(Protocol):
    """Remote persistence store for a child's milestone state."""

    def get_child_milestones(self, child_id: str) -> dict[str, Any]: ...

    def mark_milestone_achieved(
        self, child_id: str, milestone_id: str, data: dict[str, Any]
    ) -> Any: ...

    def unmark_milestone_achieved(self, child_id: str, milestone_id: str) -> Any: ...

    def watch_milestone(self, child_id: str, milestone_id: str) -> Any: ...

    def unwatch_milestone(self, child_id: str, milestone_id: str) -> Any: ...


def _check_milestone_id(milestone_id: str) -> str:
    if not isinstance(milestone_id, str) or not milestone_id.strip():
        raise ValueError(f"Milestone id must be a non-empty string, got {milestone_id!r}")
    return milestone_id


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return utc_now()


class AchievementTracker:
    """
    Achievement and watch state for one child.

    Args:
        child_id: Child whose milestones are tracked
        remote: Remote store to persist to; None keeps intents pending
        background: Deliver in daemon threads (False delivers inline)
    """

    def __init__(
        self,
        child_id: str,
        remote: MilestoneRemote | None = None,
        background: bool = True,
    ):
        if not child_id:
            raise ValueError("child_id is required")
        self.child_id = child_id
        self.remote = remote
        self.background = background

        self._achievements: dict[str, ConfirmedAchievement] = {}
        self._watched: dict[str, WatchEntry] = {}

        self._lock = threading.RLock()
        self._outbox: list[PersistenceIntent] = []
        self._sequence = itertools.count(1)
        self._threads: list[threading.Thread] = []

        self._delivery_locks: dict[str, threading.Lock] = {}
        self._last_attempted: dict[str, int] = {}

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def mark_achieved(
        self,
        milestone_id: str,
        achieved_date: datetime | None = None,
        notes: str | None = None,
        confirmed_by: ConfirmedBy | str = ConfirmedBy.PARENT,
    ) -> ConfirmedAchievement:
        """Record a milestone as achieved, replacing any watch entry."""
        _check_milestone_id(milestone_id)
        record = ConfirmedAchievement(
            milestone_id=milestone_id,
            achieved_date=achieved_date or utc_now(),
            confirmed_by=ConfirmedBy(confirmed_by),
            notes=notes,
        )

        with self._lock:
            self._apply_mark(record)
            intent = self._record(
                SyncOperation.MARK_ACHIEVED,
                milestone_id,
                {
                    "achievedDate": record.achieved_date.isoformat(),
                    "notes": record.notes,
                    "confirmedBy": record.confirmed_by.value,
                },
            )

        self._dispatch(intent)
        return record

    def unmark_achieved(self, milestone_id: str) -> bool:
        """
        Remove a confirmed achievement. The milestone is not re-watched.

        Returns:
            True if the milestone was achieved locally
        """
        _check_milestone_id(milestone_id)
        with self._lock:
            removed = self._achievements.pop(milestone_id, None) is not None
            intent = self._record(SyncOperation.UNMARK_ACHIEVED, milestone_id)

        self._dispatch(intent)
        return removed

    def watch(self, milestone_id: str) -> bool:
        """
        Add a milestone to the watch list.

        Watching an achieved milestone is ignored.

        Returns:
            False if the milestone is achieved, True otherwise
        """
        _check_milestone_id(milestone_id)
        with self._lock:
            if not self._apply_watch(milestone_id):
                logger.debug(
                    "Ignoring watch for achieved milestone %s (child %s)",
                    milestone_id, self.child_id,
                )
                return False
            intent = self._record(SyncOperation.WATCH, milestone_id)

        self._dispatch(intent)
        return True

    def unwatch(self, milestone_id: str) -> bool:
        """
        Remove a milestone from the watch list.

        Returns:
            True if the milestone was watched locally
        """
        _check_milestone_id(milestone_id)
        with self._lock:
            removed = self._watched.pop(milestone_id, None) is not None
            intent = self._record(SyncOperation.UNWATCH, milestone_id)

        self._dispatch(intent)
        return removed

    def confirm_provider_assertions(
        self,
        assessment: DomainAssessment | DevelopmentReport | Iterable[DomainAssessment],
    ) -> list[ConfirmedAchievement]:
        """
        Confirm the milestones an assessment run reported as achieved.

        Milestones already confirmed are left as they are.

        Returns:
            The newly created achievements
        """
        if isinstance(assessment, DevelopmentReport):
            assessments = list(assessment.domains.values())
        elif isinstance(assessment, DomainAssessment):
            assessments = [assessment]
        else:
            assessments = list(assessment)

        confirmed = []
        intents = []
        with self._lock:
            for domain_assessment in assessments:
                for asserted in domain_assessment.achieved_milestones:
                    if asserted.id in self._achievements:
                        continue
                    record = ConfirmedAchievement(
                        milestone_id=asserted.id,
                        achieved_date=asserted.achieved_date,
                        confirmed_by=ConfirmedBy.ANALYSIS,
                    )
                    self._apply_mark(record)
                    intents.append(self._record(
                        SyncOperation.MARK_ACHIEVED,
                        asserted.id,
                        {
                            "achievedDate": record.achieved_date.isoformat(),
                            "notes": None,
                            "confirmedBy": record.confirmed_by.value,
                        },
                    ))
                    confirmed.append(record)

        for intent in intents:
            self._dispatch(intent)
        return confirmed

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def state_of(self, milestone_id: str) -> TrackingState:
        with self._lock:
            if milestone_id in self._achievements:
                return TrackingState.ACHIEVED
            if milestone_id in self._watched:
                return TrackingState.WATCHED
            return TrackingState.NOT_TRACKED

    def is_achieved(self, milestone_id: str) -> bool:
        with self._lock:
            return milestone_id in self._achievements

    def is_watched(self, milestone_id: str) -> bool:
        with self._lock:
            return milestone_id in self._watched

    def achieved_ids(self) -> set[str]:
        with self._lock:
            return set(self._achievements)

    def achievements(self) -> list[ConfirmedAchievement]:
        with self._lock:
            return list(self._achievements.values())

    def watched(self) -> list[WatchEntry]:
        with self._lock:
            return list(self._watched.values())

    def snapshot(self) -> dict[str, Any]:
        """Local state in the remote store's shape."""
        with self._lock:
            return {
                "achievedMilestones": [
                    {
                        "milestoneId": a.milestone_id,
                        "achievedDate": a.achieved_date.isoformat(),
                        "confirmedBy": a.confirmed_by.value,
                        "notes": a.notes,
                    }
                    for a in self._achievements.values()
                ],
                "watchedMilestones": [
                    {"milestoneId": w.milestone_id, "addedDate": w.added_date.isoformat()}
                    for w in self._watched.values()
                ],
            }

    # -------------------------------------------------------------------------
    # Remote sync
    # -------------------------------------------------------------------------

    def sync(self) -> bool:
        """
        Replace local state with the remote store's snapshot.

        Local mutations made while the snapshot was loading are applied
        again on top of it. A remote failure (or a snapshot that cannot be
        read) is logged and local state is left untouched.

        Returns:
            True if local state was refreshed
        """
        if self.remote is None:
            return False

        with self._lock:
            started_after = self._outbox[-1].sequence if self._outbox else 0

        try:
            data = self.remote.get_child_milestones(self.child_id)
            achievements, watched = self._parse_snapshot(data or {})
        except Exception as e:
            logger.warning("Could not load milestones for child %s: %s", self.child_id, e)
            return False

        with self._lock:
            self._achievements = achievements
            self._watched = watched
            replayed = [i for i in self._outbox if i.sequence > started_after]
            for intent in replayed:
                self._replay(intent)

        if replayed:
            logger.debug(
                "Re-applied %d local change(s) for child %s after sync",
                len(replayed), self.child_id,
            )

        logger.info(
            "Synced child %s: %d achieved, %d watched",
            self.child_id, len(achievements), len(watched),
        )
        return True

    @staticmethod
    def _parse_snapshot(
        data: dict[str, Any],
    ) -> tuple[dict[str, ConfirmedAchievement], dict[str, WatchEntry]]:
        achievements: dict[str, ConfirmedAchievement] = {}
        for item in data.get("achievedMilestones") or []:
            milestone_id = item.get("milestoneId")
            if not milestone_id:
                continue
            achievements[milestone_id] = ConfirmedAchievement(
                milestone_id=milestone_id,
                achieved_date=_parse_datetime(item.get("achievedDate")),
                confirmed_by=ConfirmedBy(item.get("confirmedBy") or ConfirmedBy.PARENT),
                notes=item.get("notes"),
            )

        # Achieved wins over a stale watch entry
        watched: dict[str, WatchEntry] = {}
        for item in data.get("watchedMilestones") or []:
            milestone_id = item.get("milestoneId")
            if not milestone_id or milestone_id in achievements:
                continue
            watched[milestone_id] = WatchEntry(
                milestone_id=milestone_id,
                added_date=_parse_datetime(item.get("addedDate")),
            )
        return achievements, watched

    def pending_intents(self) -> list[PersistenceIntent]:
        with self._lock:
            return [i for i in self._outbox if i.status == IntentStatus.PENDING]

    def failed_intents(self) -> list[PersistenceIntent]:
        with self._lock:
            return [i for i in self._outbox if i.status == IntentStatus.FAILED]

    def outbox(self) -> list[PersistenceIntent]:
        with self._lock:
            return list(self._outbox)

    def flush(self, timeout: float | None = None) -> bool:
        """
        Wait for in-flight deliveries to finish.

        Returns:
            True if every delivery thread finished within the timeout
        """
        with self._lock:
            threads = list(self._threads)

        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)

        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            return not self._threads

    # Callers hold self._lock for the _apply_*, _replay and _record helpers,
    # so a local change and its sequence number are taken together.

    def _apply_mark(self, record: ConfirmedAchievement) -> None:
        self._achievements[record.milestone_id] = record
        self._watched.pop(record.milestone_id, None)

    def _apply_watch(self, milestone_id: str) -> bool:
        if milestone_id in self._achievements:
            return False
        self._watched.setdefault(milestone_id, WatchEntry(milestone_id=milestone_id))
        return True

    def _replay(self, intent: PersistenceIntent) -> None:
        milestone_id = intent.milestone_id
        if intent.operation == SyncOperation.MARK_ACHIEVED:
            self._apply_mark(ConfirmedAchievement(
                milestone_id=milestone_id,
                achieved_date=_parse_datetime(intent.payload.get("achievedDate")),
                confirmed_by=ConfirmedBy(intent.payload.get("confirmedBy") or ConfirmedBy.PARENT),
                notes=intent.payload.get("notes"),
            ))
        elif intent.operation == SyncOperation.UNMARK_ACHIEVED:
            self._achievements.pop(milestone_id, None)
        elif intent.operation == SyncOperation.WATCH:
            self._apply_watch(milestone_id)
        elif intent.operation == SyncOperation.UNWATCH:
            self._watched.pop(milestone_id, None)

    def _record(
        self,
        operation: SyncOperation,
        milestone_id: str,
        payload: dict[str, Any] | None = None,
    ) -> PersistenceIntent:
        intent = PersistenceIntent(
            sequence=next(self._sequence),
            operation=operation,
            child_id=self.child_id,
            milestone_id=milestone_id,
            payload=payload or {},
        )
        self._outbox.append(intent)
        return intent

    def _dispatch(self, intent: PersistenceIntent) -> None:
        if self.remote is None:
            return

        if self.background:
            thread = threading.Thread(
                target=self._deliver,
                args=(intent,),
                name=f"milestone-sync-{self.child_id}-{intent.sequence}",
                daemon=True,
            )
            with self._lock:
                self._threads = [t for t in self._threads if t.is_alive()]
                self._threads.append(thread)
            thread.start()
        else:
            self._deliver(intent)

    def _delivery_lock(self, milestone_id: str) -> threading.Lock:
        with self._lock:
            return self._delivery_locks.setdefault(milestone_id, threading.Lock())

    def _deliver(self, intent: PersistenceIntent) -> None:
        with self._delivery_lock(intent.milestone_id):
            with self._lock:
                last = self._last_attempted.get(intent.milestone_id, 0)
                if last > intent.sequence:
                    intent.status = IntentStatus.SUPERSEDED
                    logger.debug(
                        "Skipping %s for %s (seq %d superseded by %d)",
                        intent.operation.value, intent.milestone_id, intent.sequence, last,
                    )
                    return
                self._last_attempted[intent.milestone_id] = intent.sequence

            try:
                self._send(intent)
            except Exception as e:
                with self._lock:
                    intent.status = IntentStatus.FAILED
                    intent.error = str(e)
                logger.warning(
                    "Failed to persist %s for child %s, milestone %s (seq %d): %s",
                    intent.operation.value, intent.child_id, intent.milestone_id,
                    intent.sequence, e,
                )
                return

            with self._lock:
                intent.status = IntentStatus.DELIVERED
                intent.delivered_at = utc_now()

    def _send(self, intent: PersistenceIntent) -> None:
        remote = self.remote
        child_id, milestone_id = intent.child_id, intent.milestone_id

        if intent.operation == SyncOperation.MARK_ACHIEVED:
            remote.mark_milestone_achieved(child_id, milestone_id, intent.payload)
        elif intent.operation == SyncOperation.UNMARK_ACHIEVED:
            remote.unmark_milestone_achieved(child_id, milestone_id)
        elif intent.operation == SyncOperation.WATCH:
            remote.watch_milestone(child_id, milestone_id)
        elif intent.operation == SyncOperation.UNWATCH:
            remote.unwatch_milestone(child_id, milestone_id)
        else:
            raise ValueError(f"Unknown sync operation: {intent.operation!r}")


class AchievementRegistry:
    """One tracker per child, created on first use."""

    def __init__(self, remote: MilestoneRemote | None = None, background: bool = True):
        self.remote = remote
        self.background = background
        self._trackers: dict[str, AchievementTracker] = {}
        self._creating: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def get(self, child_id: str, sync: bool = True) -> AchievementTracker:
        """
        Tracker for a child. A new tracker is loaded from the remote store
        when sync is True, and is handed out only once that load finishes.
        """
        with self._lock:
            tracker = self._trackers.get(child_id)
            if tracker is not None:
                return tracker
            creating = self._creating.setdefault(child_id, threading.Lock())

        with creating:
            with self._lock:
                tracker = self._trackers.get(child_id)
                if tracker is not None:
                    return tracker

            tracker = AchievementTracker(child_id, remote=self.remote, background=self.background)
            if sync:
                tracker.sync()

            with self._lock:
                self._trackers[child_id] = tracker
                self._creating.pop(child_id, None)
        return tracker

    def __contains__(self, child_id: str) -> bool:
        return child_id in self._trackers

    def __len__(self) -> int:
        return len(self._trackers)

    def clear(self) -> None:
        with self._lock:
            self._trackers.clear()
