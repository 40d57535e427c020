"""
Scoring utility functions.
Provides configuration loading and the small numeric helpers shared by scoring, alerting and the dashboard.
"""
import copy
import math
import os
from datetime import datetime, timezone
from typing import Dict, Any, Optional

import yaml

from logging_config import get_logger

log = get_logger(__name__)

# filename used for the YAML configuration
CONFIG_FILENAME = 'okr.yaml'

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    'goals': {
        'due_in_days': 30,
        'rice_default': 5,
    },
    'priority': {
        'urgency_progress_below': 10.0,
        'urgency_days_below': 7.0,
        'urgency_multiplier': 1.5,
        'inactivity_multiplier': 0.8,
        'blocked_multiplier': 0.6,
        'min_effort': 1.0,
    },
    'alerts': {
        'deadline_days': 7,
        'deadline_progress_below': 70.0,
        # history entries inspected for stagnation, and how many must exist before it can fire
        'stagnation_window': 5,
        'stagnation_min_entries': 3,
    },
    'dashboard': {
        'alerts_per_goal': 3,
        'history_per_goal': 5,
        'insights_per_goal': 3,
        'max_alerts': 10,
        'max_deadlines': 5,
        'max_insights': 10,
        'max_timeline': 20,
        'deadline_horizon_days': 30,
    },
}


def default_config_path() -> str:
    return os.getenv('OKR_CONFIG_PATH') or os.path.join(os.path.dirname(os.path.dirname(__file__)), 'config', CONFIG_FILENAME)


def _coerce_like(key: str, default: Any, value: Any) -> Any:
    """Coerce a YAML value to the type of its default; raises ValueError for values the setting cannot hold."""
    if isinstance(value, bool):
        raise ValueError('boolean is not a number')
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError('setting must be a finite, non-negative number')
    if key == 'min_effort' and number <= 0:
        raise ValueError('min_effort must be positive')
    if isinstance(default, int):
        # counts and limits: fractional values are refused rather than truncated
        if not number.is_integer():
            raise ValueError('setting must be a whole number')
        return int(number)
    return number


def _merge_section(name: str, section: Any) -> Dict[str, Any]:
    merged = dict(DEFAULT_CONFIG[name])
    if not isinstance(section, dict):
        return merged
    for k, default in DEFAULT_CONFIG[name].items():
        if section.get(k) is None:
            continue
        try:
            merged[k] = _coerce_like(k, default, section[k])
        except (TypeError, ValueError):
            log.warning('config_value_ignored', section=name, key=k, value=section[k])
    return merged


def load_config(path: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load tracker configuration from a YAML file if available, otherwise return defaults.
    Unknown keys are ignored and missing keys keep their default values.
    """
    path = path or default_config_path()
    if not os.path.exists(path):
        return copy.deepcopy(DEFAULT_CONFIG)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            doc = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as ex:
        log.warning('config_load_failed', path=path, error=str(ex))
        return copy.deepcopy(DEFAULT_CONFIG)
    if not isinstance(doc, dict):
        return copy.deepcopy(DEFAULT_CONFIG)
    return {name: _merge_section(name, doc.get(name)) for name in DEFAULT_CONFIG}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def days_until_due(due_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until the due date, rounded up; negative once overdue."""
    now = now or utcnow()
    return math.ceil((due_date - now).total_seconds() / 86400.0)


def round_half_up(value: float, digits: int = 1) -> float:
    """Round halves upward (2.25 -> 2.3); the builtin round() rounds halves to even."""
    factor = 10 ** digits
    return math.floor(float(value) * factor + 0.5) / factor
