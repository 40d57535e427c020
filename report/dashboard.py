"""
Dashboard read-model.
Assembles scored goals, recent alerts, insights, activity and upcoming deadlines from the goal store.
Nothing here writes to the store.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from logging_config import get_logger
from normalize.models import Alert, Goal, Insight, ProgressEvent, PRIORITY_LABELS
from scoring.priority import scored_copy
from scoring.utils import DEFAULT_CONFIG, days_until_due, round_half_up
from storage.goal_store import GoalStore

log = get_logger(__name__)


class DashboardData:
    def __init__(
        self,
        goals: List[Goal],
        total_progress: int,
        priority_distribution: Dict[str, int],
        recent_alerts: List[Alert],
        upcoming_deadlines: List[Dict[str, Any]],
        insights: List[Insight],
        activity_timeline: List[ProgressEvent],
        generated_at: datetime,
    ):
        self.goals = goals  # sorted by score, highest first
        self.total_progress = total_progress
        self.priority_distribution = priority_distribution
        self.recent_alerts = recent_alerts
        self.upcoming_deadlines = upcoming_deadlines  # [{'goal': Goal, 'days_until_due': int}]
        self.insights = insights
        self.activity_timeline = activity_timeline
        self.generated_at = generated_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'goals': [g.to_dict() for g in self.goals],
            'total_progress': self.total_progress,
            'priority_distribution': dict(self.priority_distribution),
            'recent_alerts': [a.to_dict() for a in self.recent_alerts],
            'upcoming_deadlines': [{'goal': d['goal'].to_dict(), 'days_until_due': d['days_until_due']} for d in self.upcoming_deadlines],
            'insights': [i.to_dict() for i in self.insights],
            'activity_timeline': [e.to_dict() for e in self.activity_timeline],
            'generated_at': self.generated_at.isoformat(),
        }


def _priority_distribution(goals: List[Goal]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for label in PRIORITY_LABELS:
        n = sum(1 for g in goals if g.priority == label)
        if n:
            counts[label] = n
    return counts


def build_dashboard(
    store: GoalStore,
    owner_id: Optional[str] = None,
    now: Optional[datetime] = None,
    limits: Optional[Dict[str, Any]] = None,
    priority_rules: Optional[Dict[str, Any]] = None,
) -> DashboardData:
    """
    Build the dashboard for all goals, or only those of owner_id.

    Scores are recomputed on every call; per-goal logs are read with bounded tails and then
    truncated globally according to limits (see the 'dashboard' config section).
    """
    limits = limits or DEFAULT_CONFIG['dashboard']
    now = now or store.now()

    goals = [scored_copy(g, now=now, rules=priority_rules) for g in store.list(owner_id)]
    goals.sort(key=lambda g: g.rice.score, reverse=True)

    total_progress = int(round_half_up(sum(g.progress for g in goals) / len(goals), 0)) if goals else 0

    alerts: List[Alert] = []
    insights: List[Insight] = []
    timeline: List[ProgressEvent] = []
    for g in goals:
        alerts.extend(store.alerts(g.goal_id, limit=limits['alerts_per_goal']))
        insights.extend(store.insights(g.goal_id, limit=limits['insights_per_goal']))
        timeline.extend(store.history(g.goal_id, limit=limits['history_per_goal']))
    alerts.sort(key=lambda a: a.created_at, reverse=True)
    insights.sort(key=lambda i: i.created_at, reverse=True)
    timeline.sort(key=lambda e: e.timestamp, reverse=True)

    horizon = limits['deadline_horizon_days']
    deadlines = [{'goal': g, 'days_until_due': days_until_due(g.due_date, now)} for g in goals]
    deadlines = [d for d in deadlines if 0 < d['days_until_due'] <= horizon]
    deadlines.sort(key=lambda d: d['days_until_due'])

    data = DashboardData(
        goals=goals,
        total_progress=total_progress,
        priority_distribution=_priority_distribution(goals),
        recent_alerts=alerts[:limits['max_alerts']],
        upcoming_deadlines=deadlines[:limits['max_deadlines']],
        insights=insights[:limits['max_insights']],
        activity_timeline=timeline[:limits['max_timeline']],
        generated_at=now,
    )
    log.info('dashboard_built', owner_id=owner_id, goals=len(goals), total_progress=total_progress, alerts=len(data.recent_alerts), deadlines=len(data.upcoming_deadlines))
    return data
