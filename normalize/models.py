"""
Data models for tracked goals and the records the tracker keeps about them.
"""

import copy
from datetime import datetime
from typing import List, Optional, Dict, Any

PRIORITY_LABELS = ('LOW', 'MEDIUM', 'HIGH', 'CRITICAL')
GOAL_STATUSES = ('NOT_STARTED', 'IN_PROGRESS', 'BLOCKED', 'COMPLETED')
PROGRESS_SOURCES = ('MANUAL', 'GITHUB', 'EMAIL', 'CALENDAR', 'AI')
ALERT_TYPES = ('BOTTLENECK', 'DEADLINE_RISK', 'PRIORITY_SHIFT', 'ACHIEVEMENT')
ALERT_SEVERITIES = ('LOW', 'MEDIUM', 'HIGH')
INSIGHT_TYPES = ('PREDICTION', 'OPTIMIZATION', 'TREND', 'RECOMMENDATION')


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class SourceControlBinding:
    """
    Links a goal to a repository. commit_count stays None until the first push is recorded.
    """
    def __init__(self, repo: str, progress_weight: float, last_commit_at: Optional[datetime] = None, commit_count: Optional[int] = None):
        self.repo = repo
        self.progress_weight = progress_weight
        self.last_commit_at = last_commit_at
        self.commit_count = commit_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repo': self.repo,
            'progress_weight': self.progress_weight,
            'last_commit_at': _iso(self.last_commit_at),
            'commit_count': self.commit_count,
        }


class MessageBinding:
    def __init__(self, keywords: List[str], progress_weight: float, last_email_at: Optional[datetime] = None, email_count: Optional[int] = None):
        self.keywords = keywords
        self.progress_weight = progress_weight
        self.last_email_at = last_email_at
        self.email_count = email_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'keywords': list(self.keywords),
            'progress_weight': self.progress_weight,
            'last_email_at': _iso(self.last_email_at),
            'email_count': self.email_count,
        }


class CalendarBinding:
    def __init__(self, event_types: List[str], progress_weight: float, hours_scheduled: Optional[float] = None, hours_completed: Optional[float] = None):
        self.event_types = event_types
        self.progress_weight = progress_weight
        self.hours_scheduled = hours_scheduled
        self.hours_completed = hours_completed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_types': list(self.event_types),
            'progress_weight': self.progress_weight,
            'hours_scheduled': self.hours_scheduled,
            'hours_completed': self.hours_completed,
        }


class Integrations:
    """
    External signal bindings of a goal, at most one per source kind.
    """
    def __init__(self, github: Optional[SourceControlBinding] = None, email: Optional[MessageBinding] = None, calendar: Optional[CalendarBinding] = None):
        self.github = github
        self.email = email
        self.calendar = calendar

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for kind in ('github', 'email', 'calendar'):
            binding = getattr(self, kind)
            if binding is not None:
                out[kind] = binding.to_dict()
        return out


class PriorityScore:
    """
    RICE inputs plus the derived score, the adjustment factors that produced it and when it was computed.
    """
    def __init__(self, reach: float, impact: float, confidence: float, effort: float, score: float = 0.0, factors: Optional[List[str]] = None, last_calculated: Optional[datetime] = None):
        self.reach = reach
        self.impact = impact
        self.confidence = confidence
        self.effort = effort
        self.score = score
        self.factors = factors or []
        self.last_calculated = last_calculated

    def copy(self) -> 'PriorityScore':
        return PriorityScore(self.reach, self.impact, self.confidence, self.effort, self.score, list(self.factors), self.last_calculated)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'reach': self.reach,
            'impact': self.impact,
            'confidence': self.confidence,
            'effort': self.effort,
            'score': self.score,
            'factors': list(self.factors),
            'last_calculated': _iso(self.last_calculated),
        }


class Goal:
    """
    A tracked objective (OKR).
    """
    def __init__(
        self,
        goal_id: str,
        owner_id: str,
        title: str,
        description: str,
        tags: List[str],
        priority: str,
        progress: float,
        status: str,
        due_date: datetime,
        created_at: datetime,
        updated_at: datetime,
        auto_tracked: bool,
        integrations: Integrations,
        rice: PriorityScore,
        target_value: Optional[float] = None,
        current_value: Optional[float] = None,
        unit: Optional[str] = None,
    ):
        self.goal_id = goal_id
        self.owner_id = owner_id
        self.title = title
        self.description = description
        self.tags = tags
        self.priority = priority  # LOW/MEDIUM/HIGH/CRITICAL
        self.progress = progress  # percentage in [0, 100]
        self.status = status  # NOT_STARTED/IN_PROGRESS/BLOCKED/COMPLETED
        self.due_date = due_date
        self.created_at = created_at
        self.updated_at = updated_at
        self.auto_tracked = auto_tracked
        self.integrations = integrations
        self.rice = rice
        self.target_value = target_value
        self.current_value = current_value
        self.unit = unit

    def copy(self) -> 'Goal':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.goal_id,
            'owner_id': self.owner_id,
            'title': self.title,
            'description': self.description,
            'tags': list(self.tags),
            'priority': self.priority,
            'progress': self.progress,
            'status': self.status,
            'due_date': _iso(self.due_date),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'auto_tracked': self.auto_tracked,
            'integrations': self.integrations.to_dict(),
            'rice_priority': self.rice.to_dict(),
            'target_value': self.target_value,
            'current_value': self.current_value,
            'unit': self.unit,
        }


class ProgressEvent:
    """
    One entry of a goal's progress history. Created by the progress updater and never modified afterwards.
    """
    def __init__(self, goal_id: str, source: str, previous_value: float, new_value: float, delta: float, timestamp: datetime, details: Optional[Dict[str, Any]] = None):
        self.goal_id = goal_id
        self.source = source  # MANUAL/GITHUB/EMAIL/CALENDAR/AI
        self.previous_value = previous_value
        self.new_value = new_value
        self.delta = delta
        self.timestamp = timestamp
        self.details = dict(details) if details else {}  # e.g. {'commit_sha': ..., 'email_subject': ..., 'event_title': ..., 'reasoning': ...}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'goal_id': self.goal_id,
            'source': self.source,
            'previous_value': self.previous_value,
            'new_value': self.new_value,
            'delta': self.delta,
            'timestamp': _iso(self.timestamp),
            'details': copy.deepcopy(self.details),
        }


class Alert:
    """
    Attention signal raised for a goal after a progress update.
    """
    def __init__(self, alert_id: str, goal_id: str, type: str, severity: str, message: str, action_required: bool, suggestions: List[str], created_at: datetime, acknowledged: bool = False):
        self.alert_id = alert_id
        self.goal_id = goal_id
        self.type = type  # BOTTLENECK/DEADLINE_RISK/PRIORITY_SHIFT/ACHIEVEMENT
        self.severity = severity
        self.message = message
        self.action_required = action_required
        self.suggestions = suggestions
        self.created_at = created_at
        self.acknowledged = acknowledged

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.alert_id,
            'goal_id': self.goal_id,
            'type': self.type,
            'severity': self.severity,
            'message': self.message,
            'action_required': self.action_required,
            'suggestions': list(self.suggestions),
            'created_at': _iso(self.created_at),
            'acknowledged': self.acknowledged,
        }


class Insight:
    def __init__(self, insight_id: str, goal_id: str, type: str, title: str, description: str, confidence: float, impact: str, data: Dict[str, Any], created_at: datetime):
        self.insight_id = insight_id
        self.goal_id = goal_id
        self.type = type  # PREDICTION/OPTIMIZATION/TREND/RECOMMENDATION
        self.title = title
        self.description = description
        self.confidence = confidence
        self.impact = impact
        self.data = data
        self.created_at = created_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.insight_id,
            'goal_id': self.goal_id,
            'type': self.type,
            'title': self.title,
            'description': self.description,
            'confidence': self.confidence,
            'impact': self.impact,
            'data': copy.deepcopy(self.data),
            'created_at': _iso(self.created_at),
        }


class Commit:
    """
    Source-control commit as delivered by a push webhook. Read-only input to the commit classifier.
    """
    def __init__(self, sha: str, message: str, timestamp: str, author: Dict[str, str], added: List[str], modified: List[str], removed: List[str]):
        self.sha = sha
        self.message = message
        self.timestamp = timestamp
        self.author = author  # {'name': ..., 'email': ...}
        self.added = added
        self.modified = modified
        self.removed = removed

    @property
    def files(self) -> List[str]:
        return list(self.added) + list(self.modified) + list(self.removed)

    @property
    def files_changed(self) -> int:
        return len(self.added) + len(self.modified) + len(self.removed)

    @property
    def headline(self) -> str:
        return (self.message or '').split('\n')[0]


class PushEvent:
    """
    Normalized push webhook: repository names, pusher and the pushed commits.
    """
    def __init__(self, action: str, repo_name: str, repo_full_name: str, commits: List[Commit], pusher: Optional[Dict[str, str]] = None):
        self.action = action
        self.repo_name = repo_name
        self.repo_full_name = repo_full_name
        self.commits = commits
        self.pusher = pusher or {}
