"""
Progress updates.
Applies a new progress value to a goal, records it in the history, raises alerts and notifies listeners.
"""
from typing import Any, Dict, List, Optional, Tuple

from errors import InvalidInputError
from logging_config import get_logger
from normalize.models import Alert, Goal, ProgressEvent, PROGRESS_SOURCES
from normalize.util import as_number, clamp_progress, derive_status
from notify.notifier import ALERT_RAISED, PROGRESS_UPDATED, safe_broadcast
from scoring.utils import DEFAULT_CONFIG
from storage.goal_store import GoalStore
from .alerts import generate_progress_alerts

log = get_logger(__name__)


def _source(value: Any) -> str:
    source = str(value or 'MANUAL').upper()
    if source not in PROGRESS_SOURCES:
        raise InvalidInputError(f"Unknown progress source: {value}", {'allowed': list(PROGRESS_SOURCES)})
    return source


class ProgressUpdater:
    """
    The only writer of progress history. Each update, together with the alerts it raises,
    runs under the goal's lock so concurrent updates to one goal are serialized.
    """

    def __init__(self, store: GoalStore, notifier=None, alert_rules: Optional[Dict[str, Any]] = None):
        self.store = store
        self.notifier = notifier
        self.alert_rules = alert_rules or DEFAULT_CONFIG['alerts']

    def update_progress(self, goal_id: str, new_value: Any, source: str = 'MANUAL', details: Optional[Dict[str, Any]] = None) -> ProgressEvent:
        """
        Set a goal's progress. Raises NotFoundError for an unknown goal and InvalidInputError for a
        non-numeric value or unknown source; the returned event carries the clamped value.
        """
        recorded, alerts = self.apply_update(goal_id, new_value, source, details)
        self.publish(recorded, alerts)
        return recorded

    def apply_update(self, goal_id: str, new_value: Any, source: str = 'MANUAL', details: Optional[Dict[str, Any]] = None) -> Tuple[ProgressEvent, List[Alert]]:
        """
        Commit a progress update and its alerts without notifying anyone.

        Callers holding the goal lock across a larger read-modify-write call this and then
        publish() once the lock is released, so notifiers never run under a goal lock.
        """
        with self.store.goal_lock(goal_id):
            source = _source(source)
            value = clamp_progress(as_number(new_value, 'progress'))
            current = self.store.require(goal_id)
            now = self.store.now()

            status = derive_status(value, blocked=current.status == 'BLOCKED')
            previous, updated = self.store.apply_progress(goal_id, value, status, now)
            event = ProgressEvent(
                goal_id=goal_id,
                source=source,
                previous_value=previous,
                new_value=value,
                delta=value - previous,
                timestamp=now,
                details=details,
            )
            self.store.append_progress_event(event)

            history = self.store.history(goal_id, limit=max(1, self.alert_rules['stagnation_window']))
            alerts = generate_progress_alerts(updated, event.delta, history, now, self.alert_rules, id_factory=self.store.new_id)
            self.store.append_alerts(alerts)
            recorded = history[-1]

        log.info(
            'progress_updated',
            goal_id=goal_id,
            source=source,
            previous=previous,
            new=value,
            delta=recorded.delta,
            status=status,
            alerts=[a.type for a in alerts],
        )
        return recorded, alerts

    def publish(self, event: ProgressEvent, alerts: List[Alert]) -> None:
        """Broadcast a committed update and its alerts. Must not be called while holding a goal lock."""
        safe_broadcast(self.notifier, PROGRESS_UPDATED, event.to_dict())
        for alert in alerts:
            safe_broadcast(self.notifier, ALERT_RAISED, alert.to_dict())

    def set_blocked(self, goal_id: str, blocked: bool) -> Goal:
        """Set or clear the manual BLOCKED override; clearing re-derives status from progress."""
        with self.store.goal_lock(goal_id):
            goal = self.store.require(goal_id)
            status = derive_status(goal.progress, blocked=bool(blocked))
            updated = self.store.set_status(goal_id, status, self.store.now())
        log.info('goal_blocked_changed', goal_id=goal_id, blocked=bool(blocked), status=status)
        return updated
