"""
RICE priority scoring.
score = (reach x impact x confidence) / effort, then multiplicative adjustments for urgency,
inactivity and blocked state. Each adjustment that fires leaves a human-readable factor.
"""
from datetime import datetime
from typing import Dict, Any, Optional

from logging_config import get_logger
from normalize.models import Goal, PriorityScore
from .utils import DEFAULT_CONFIG, days_until_due, round_half_up, utcnow

log = get_logger(__name__)

URGENCY_FACTOR = 'Urgency boost: Task behind schedule with near deadline'
INACTIVITY_FACTOR = 'Activity penalty: No recent commits detected'
BLOCKED_FACTOR = 'Blocked status penalty'


def _effective_effort(goal: Goal, min_effort: float) -> float:
    effort = float(goal.rice.effort)
    if effort > 0:
        return effort
    log.warning('non_positive_effort', goal_id=goal.goal_id, effort=effort, floored_to=min_effort)
    return float(min_effort)


def _has_no_recorded_commits(goal: Goal) -> bool:
    gh = goal.integrations.github
    # None means nothing has been recorded yet, which is not the same as zero commits
    return gh is not None and gh.commit_count == 0


def score_goal(goal: Goal, now: Optional[datetime] = None, rules: Optional[Dict[str, Any]] = None) -> PriorityScore:
    """
    Compute a fresh PriorityScore for the goal without touching the goal itself.

    The RICE inputs are carried over unchanged; score, factors and last_calculated are derived.
    On unexpected input the goal's current score record is returned as-is.
    """
    rules = rules or DEFAULT_CONFIG['priority']
    now = now or utcnow()
    try:
        rice = goal.rice
        score = (float(rice.reach) * float(rice.impact) * float(rice.confidence)) / _effective_effort(goal, rules['min_effort'])
        factors = []

        if goal.progress < rules['urgency_progress_below'] and days_until_due(goal.due_date, now) < rules['urgency_days_below']:
            score *= rules['urgency_multiplier']
            factors.append(URGENCY_FACTOR)

        if goal.auto_tracked and _has_no_recorded_commits(goal):
            score *= rules['inactivity_multiplier']
            factors.append(INACTIVITY_FACTOR)

        if goal.status == 'BLOCKED':
            score *= rules['blocked_multiplier']
            factors.append(BLOCKED_FACTOR)

        return PriorityScore(
            reach=rice.reach,
            impact=rice.impact,
            confidence=rice.confidence,
            effort=rice.effort,
            score=round_half_up(score, 1),
            factors=factors,
            last_calculated=now,
        )
    except Exception:
        log.exception('priority_score_failed', goal_id=getattr(goal, 'goal_id', None))
        return goal.rice.copy()


def scored_copy(goal: Goal, now: Optional[datetime] = None, rules: Optional[Dict[str, Any]] = None) -> Goal:
    """Return a copy of the goal carrying a freshly computed score record."""
    out = goal.copy()
    out.rice = score_goal(goal, now=now, rules=rules)
    return out
