"""
In-memory goal store.
Owns goals plus the per-goal progress history, alert and insight logs. Every read hands out a copy;
state only changes through the methods below.
"""

import copy
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from errors import NotFoundError
from logging_config import get_logger
from normalize.models import Alert, Goal, Insight, PriorityScore, ProgressEvent
from normalize.util import build_goal
from scoring.utils import utcnow

log = get_logger(__name__)

ScoreFn = Callable[[Goal, datetime], PriorityScore]


def _tail(items: List[Any], limit: Optional[int]) -> List[Any]:
    if limit is None:
        return list(items)
    if limit <= 0:
        return []
    return list(items[-limit:])


class GoalStore:
    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        score_fn: Optional[ScoreFn] = None,
        id_factory: Optional[Callable[[], str]] = None,
        due_in_days: int = 30,
        rice_default: float = 5,
    ):
        """Create an empty store.

        :param clock: returns the current aware datetime; readings never go backwards inside the store.
        :param score_fn: computes the initial score record of a newly created goal.
        :param id_factory: produces fresh ids for goals (defaults to uuid4 hex).
        """
        self._clock = clock or utcnow
        self._score_fn = score_fn
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.due_in_days = due_in_days
        self.rice_default = rice_default
        self._lock = threading.RLock()
        self._last_now: Optional[datetime] = None
        self._goals: Dict[str, Goal] = {}
        self._history: Dict[str, List[ProgressEvent]] = {}
        self._alerts: Dict[str, List[Alert]] = {}
        self._insights: Dict[str, List[Insight]] = {}
        self._goal_locks: Dict[str, threading.RLock] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __len__(self):
        with self._lock:
            return len(self._goals)

    def __contains__(self, goal_id):
        with self._lock:
            return goal_id in self._goals

    def now(self) -> datetime:
        with self._lock:
            current = self._clock()
            if self._last_now is not None and current < self._last_now:
                current = self._last_now
            self._last_now = current
            return current

    def new_id(self) -> str:
        return self._id_factory()

    def _goal(self, goal_id: str) -> Goal:
        goal = self._goals.get(goal_id)
        if goal is None:
            raise NotFoundError(f"Goal {goal_id} not found", {'goal_id': goal_id})
        return goal

    # goals

    def create(self, partial: Optional[Dict[str, Any]] = None) -> Goal:
        """Materialize, score and store a goal from a partial description."""
        now = self.now()
        with self._lock:
            goal_id = self._id_factory()
            while goal_id in self._goals:
                goal_id = self._id_factory()
            goal = build_goal(partial or {}, goal_id, now, due_in_days=self.due_in_days, rice_default=self.rice_default)
            if self._score_fn is not None:
                goal.rice = self._score_fn(goal, now)
            self._goals[goal_id] = goal
            self._history[goal_id] = []
            self._alerts[goal_id] = []
            self._insights[goal_id] = []
            self._goal_locks[goal_id] = threading.RLock()
        log.info('goal_created', goal_id=goal_id, title=goal.title, owner_id=goal.owner_id)
        return goal.copy()

    def get(self, goal_id: str) -> Optional[Goal]:
        with self._lock:
            goal = self._goals.get(goal_id)
            return goal.copy() if goal is not None else None

    def require(self, goal_id: str) -> Goal:
        with self._lock:
            return self._goal(goal_id).copy()

    def list(self, owner_id: Optional[str] = None) -> List[Goal]:
        with self._lock:
            return [g.copy() for g in self._goals.values() if owner_id is None or g.owner_id == owner_id]

    def goal_lock(self, goal_id: str) -> threading.RLock:
        """Lock serializing read-modify-write sequences on one goal."""
        with self._lock:
            self._goal(goal_id)
            return self._goal_locks[goal_id]

    def apply_progress(self, goal_id: str, progress: float, status: str, at: datetime) -> Tuple[float, Goal]:
        """Store new progress and status; returns the previous progress and a copy of the updated goal."""
        with self._lock:
            goal = self._goal(goal_id)
            previous = goal.progress
            goal.progress = progress
            goal.status = status
            goal.updated_at = max(at, goal.updated_at)
            return previous, goal.copy()

    def set_status(self, goal_id: str, status: str, at: datetime) -> Goal:
        with self._lock:
            goal = self._goal(goal_id)
            goal.status = status
            goal.updated_at = max(at, goal.updated_at)
            return goal.copy()

    def record_commit_activity(self, goal_id: str, last_commit_at: Optional[datetime], commits: int, at: datetime) -> Goal:
        """Bump the repository binding's activity metadata after a push."""
        with self._lock:
            goal = self._goal(goal_id)
            binding = goal.integrations.github
            if binding is None:
                raise NotFoundError(f"Goal {goal_id} has no repository binding", {'goal_id': goal_id})
            if last_commit_at is not None:
                binding.last_commit_at = last_commit_at
            binding.commit_count = (binding.commit_count or 0) + int(commits)
            goal.updated_at = max(at, goal.updated_at)
            return goal.copy()

    # logs

    def append_progress_event(self, event: ProgressEvent) -> None:
        with self._lock:
            self._goal(event.goal_id)
            history = self._history[event.goal_id]
            if history and event.timestamp < history[-1].timestamp:
                event.timestamp = history[-1].timestamp
            history.append(event)

    def append_alerts(self, alerts: List[Alert]) -> None:
        with self._lock:
            for alert in alerts:
                self._goal(alert.goal_id)
                self._alerts[alert.goal_id].append(alert)

    def add_insight(self, insight: Insight) -> None:
        with self._lock:
            self._goal(insight.goal_id)
            self._insights[insight.goal_id].append(insight)

    def history(self, goal_id: str, limit: Optional[int] = None) -> List[ProgressEvent]:
        """Progress events oldest first; limit keeps only the most recent entries."""
        with self._lock:
            self._goal(goal_id)
            return [_copy_event(e) for e in _tail(self._history[goal_id], limit)]

    def alerts(self, goal_id: str, limit: Optional[int] = None) -> List[Alert]:
        with self._lock:
            self._goal(goal_id)
            return [_copy_alert(a) for a in _tail(self._alerts[goal_id], limit)]

    def insights(self, goal_id: str, limit: Optional[int] = None) -> List[Insight]:
        with self._lock:
            self._goal(goal_id)
            return [_copy_insight(i) for i in _tail(self._insights[goal_id], limit)]

    def find_alert(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            for alerts in self._alerts.values():
                for a in alerts:
                    if a.alert_id == alert_id:
                        return _copy_alert(a)
        return None

    def acknowledge_alert(self, alert_id: str) -> Alert:
        with self._lock:
            for alerts in self._alerts.values():
                for a in alerts:
                    if a.alert_id == alert_id:
                        a.acknowledged = True
                        return _copy_alert(a)
        raise NotFoundError(f"Alert {alert_id} not found", {'alert_id': alert_id})

    def clear(self):
        """Drop every goal and log."""
        with self._lock:
            self._goals.clear()
            self._history.clear()
            self._alerts.clear()
            self._insights.clear()
            self._goal_locks.clear()

    def close(self):
        self.clear()


def _copy_alert(a: Alert) -> Alert:
    return Alert(a.alert_id, a.goal_id, a.type, a.severity, a.message, a.action_required, list(a.suggestions), a.created_at, a.acknowledged)


def _copy_insight(i: Insight) -> Insight:
    return Insight(i.insight_id, i.goal_id, i.type, i.title, i.description, i.confidence, i.impact, copy.deepcopy(i.data), i.created_at)


def _copy_event(e: ProgressEvent) -> ProgressEvent:
    return ProgressEvent(e.goal_id, e.source, e.previous_value, e.new_value, e.delta, e.timestamp, copy.deepcopy(e.details))
