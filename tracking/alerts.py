"""
Alert rules evaluated after every progress update.
Each rule is independent; one update may raise none, one or several alerts.
"""
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from normalize.models import Alert, Goal, ProgressEvent
from scoring.utils import DEFAULT_CONFIG, days_until_due

ACHIEVEMENT_SUGGESTIONS = ['Celebrate the achievement!', 'Consider setting a new stretch goal']
DEADLINE_SUGGESTIONS = [
    'Focus additional resources on this OKR',
    'Consider scope reduction or deadline extension',
    'Schedule dedicated time blocks',
]
BOTTLENECK_SUGGESTIONS = [
    'Check for blockers in GitHub/email',
    'Schedule focused work session',
    'Consider breaking down into smaller tasks',
]


def _fmt(value: float) -> str:
    # 35.0 -> "35", 35.5 -> "35.5"
    return str(int(value)) if float(value).is_integer() else str(value)


def is_stagnant(history: List[ProgressEvent], window: int, min_entries: int) -> bool:
    """True when the last `window` history entries, at least `min_entries` of them, all carry a zero delta."""
    recent = history[-window:] if window > 0 else []
    return len(recent) >= min_entries and all(e.delta == 0 for e in recent)


def generate_progress_alerts(
    goal: Goal,
    delta: float,
    history: List[ProgressEvent],
    now: datetime,
    rules: Optional[Dict[str, Any]] = None,
    id_factory: Optional[Callable[[], str]] = None,
) -> List[Alert]:
    """
    Build the alerts warranted by the goal's updated state.

    history must already contain the event of the update being evaluated.
    """
    rules = rules or DEFAULT_CONFIG['alerts']
    new_id = id_factory or (lambda: uuid.uuid4().hex)
    alerts: List[Alert] = []

    if goal.progress >= 100:
        alerts.append(Alert(
            alert_id=new_id(),
            goal_id=goal.goal_id,
            type='ACHIEVEMENT',
            severity='LOW',
            message=f'OKR "{goal.title}" completed!',
            action_required=False,
            suggestions=list(ACHIEVEMENT_SUGGESTIONS),
            created_at=now,
        ))

    days_left = days_until_due(goal.due_date, now)
    if days_left <= rules['deadline_days'] and goal.progress < rules['deadline_progress_below']:
        alerts.append(Alert(
            alert_id=new_id(),
            goal_id=goal.goal_id,
            type='DEADLINE_RISK',
            severity='HIGH',
            message=f'OKR "{goal.title}" at risk - {days_left} days left, {_fmt(goal.progress)}% complete',
            action_required=True,
            suggestions=list(DEADLINE_SUGGESTIONS),
            created_at=now,
        ))

    if (
        goal.auto_tracked
        and delta == 0
        and 0 < goal.progress < 100
        and is_stagnant(history, rules['stagnation_window'], rules['stagnation_min_entries'])
    ):
        alerts.append(Alert(
            alert_id=new_id(),
            goal_id=goal.goal_id,
            type='BOTTLENECK',
            severity='MEDIUM',
            message=f'No recent progress detected on "{goal.title}"',
            action_required=True,
            suggestions=list(BOTTLENECK_SUGGESTIONS),
            created_at=now,
        ))

    return alerts
