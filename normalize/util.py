"""
Normalization utility helpers.
Turn raw request/webhook payloads into normalize.models entities and hold the small rules
(clamping, status derivation) every component must apply the same way.
"""
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional

from errors import InvalidInputError
from normalize.models import (
    Goal,
    Integrations,
    SourceControlBinding,
    MessageBinding,
    CalendarBinding,
    PriorityScore,
    Commit,
    PushEvent,
    PRIORITY_LABELS,
    GOAL_STATUSES,
)

DEFAULT_TITLE = 'Untitled'
DEFAULT_OWNER = 'default-user'


def _pick(raw: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present (non-None) value among alternative key spellings."""
    for k in keys:
        if raw.get(k) is not None:
            return raw.get(k)
    return default


def as_number(value: Any, field: str) -> float:
    """Coerce numbers and numeric strings; booleans, NaN and infinities are rejected."""
    number = None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            number = None
    if number is None or not math.isfinite(number):
        raise InvalidInputError(f"{field} must be a number", {'field': field, 'value': value})
    return number


def clamp_progress(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def derive_status(progress: float, blocked: bool = False) -> str:
    """Status rule: 100 -> COMPLETED; a manual block holds otherwise; 0 -> NOT_STARTED; else IN_PROGRESS."""
    if progress >= 100:
        return 'COMPLETED'
    if blocked:
        return 'BLOCKED'
    if progress <= 0:
        return 'NOT_STARTED'
    return 'IN_PROGRESS'


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string, epoch seconds or datetime into an aware UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(float(value), tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidInputError(f"Unrecognized timestamp: {value}", {'value': value})
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _weight(raw: Dict[str, Any], kind: str) -> float:
    weight = as_number(_pick(raw, 'progress_weight', 'progressWeight', 'weight', default=0), f'integrations.{kind}.progress_weight')
    if weight < 0 or weight > 100:
        raise InvalidInputError('progress weight must be between 0 and 100', {'kind': kind, 'value': weight})
    return weight


def _count(raw: Dict[str, Any], *keys: str) -> Optional[int]:
    value = _pick(raw, *keys)
    return int(as_number(value, keys[0])) if value is not None else None


def normalize_integrations(raw: Optional[Dict[str, Any]]) -> Integrations:
    """Build Integrations from a raw mapping keyed by source kind (github/email/calendar)."""
    if not raw:
        return Integrations()
    if not isinstance(raw, dict):
        raise InvalidInputError('integrations must be an object', {'value': raw})

    github = None
    gh = raw.get('github')
    if isinstance(gh, dict):
        repo = _pick(gh, 'repo', 'repository', 'full_name')
        if not repo:
            raise InvalidInputError('integrations.github.repo is required')
        github = SourceControlBinding(
            repo=str(repo),
            progress_weight=_weight(gh, 'github'),
            last_commit_at=parse_datetime(_pick(gh, 'last_commit_at', 'lastCommitAt')),
            commit_count=_count(gh, 'commit_count', 'commitCount'),
        )

    email = None
    em = raw.get('email')
    if isinstance(em, dict):
        email = MessageBinding(
            keywords=[str(k) for k in (em.get('keywords') or [])],
            progress_weight=_weight(em, 'email'),
            last_email_at=parse_datetime(_pick(em, 'last_email_at', 'lastEmailAt')),
            email_count=_count(em, 'email_count', 'emailCount'),
        )

    calendar = None
    cal = raw.get('calendar')
    if isinstance(cal, dict):
        calendar = CalendarBinding(
            event_types=[str(t) for t in (_pick(cal, 'event_types', 'eventTypes', default=[]))],
            progress_weight=_weight(cal, 'calendar'),
            hours_scheduled=_pick(cal, 'hours_scheduled', 'hoursScheduled'),
            hours_completed=_pick(cal, 'hours_completed', 'hoursCompleted'),
        )
    return Integrations(github=github, email=email, calendar=calendar)


def normalize_rice(raw: Optional[Dict[str, Any]], default: float = 5) -> PriorityScore:
    """RICE inputs: missing values take the default, provided values must be positive."""
    raw = raw or {}
    values = {}
    for k in ('reach', 'impact', 'confidence', 'effort'):
        v = raw.get(k)
        if v is None:
            values[k] = float(default)
            continue
        num = as_number(v, f'rice.{k}')
        if num <= 0:
            raise InvalidInputError(f"rice.{k} must be positive", {'field': k, 'value': v})
        values[k] = num
    return PriorityScore(values['reach'], values['impact'], values['confidence'], values['effort'])


def _priority_label(value: Any) -> str:
    label = str(value or 'MEDIUM').upper()
    if label not in PRIORITY_LABELS:
        raise InvalidInputError(f"Unknown priority label: {value}", {'allowed': list(PRIORITY_LABELS)})
    return label


def _tags(value: Any) -> List[str]:
    # tags behave as a set but keep first-seen order for display
    seen: List[str] = []
    for t in value or []:
        s = str(t)
        if s not in seen:
            seen.append(s)
    return seen


def build_goal(partial: Dict[str, Any], goal_id: str, now: datetime, due_in_days: int = 30, rice_default: float = 5) -> Goal:
    """Materialize a Goal from a partial description, filling every default."""
    raw = partial or {}
    if not isinstance(raw, dict):
        raise InvalidInputError('goal description must be an object')

    status_in = raw.get('status')
    if status_in is not None and str(status_in).upper() not in GOAL_STATUSES:
        raise InvalidInputError(f"Unknown status: {status_in}", {'allowed': list(GOAL_STATUSES)})
    progress = clamp_progress(as_number(raw.get('progress') or 0, 'progress'))
    blocked = str(status_in or '').upper() == 'BLOCKED'

    due_date = parse_datetime(_pick(raw, 'due_date', 'dueDate')) or (now + timedelta(days=due_in_days))

    return Goal(
        goal_id=goal_id,
        owner_id=str(_pick(raw, 'owner_id', 'ownerId', default=DEFAULT_OWNER)),
        title=raw.get('title') or DEFAULT_TITLE,
        description=raw.get('description') or '',
        tags=_tags(raw.get('tags')),
        priority=_priority_label(raw.get('priority')),
        progress=progress,
        status=derive_status(progress, blocked),
        due_date=due_date,
        created_at=now,
        updated_at=now,
        auto_tracked=bool(_pick(raw, 'auto_tracked', 'autoTracked', default=False)),
        integrations=normalize_integrations(raw.get('integrations')),
        rice=normalize_rice(_pick(raw, 'rice_priority', 'ricePriority', 'rice'), default=rice_default),
        target_value=_pick(raw, 'target_value', 'targetValue'),
        current_value=_pick(raw, 'current_value', 'currentValue'),
        unit=raw.get('unit'),
    )


def _file_list(raw: Dict[str, Any], key: str) -> List[str]:
    files = raw.get(key) or []
    if not isinstance(files, list):
        raise InvalidInputError(f"commit.{key} must be a list", {'value': files})
    return [str(f) for f in files]


def normalize_commit(raw: Dict[str, Any]) -> Commit:
    """Create a Commit from a push-webhook commit entry."""
    if not isinstance(raw, dict):
        raise InvalidInputError('commit entries must be objects', {'value': raw})
    author = raw.get('author') if isinstance(raw.get('author'), dict) else {}
    return Commit(
        sha=str(_pick(raw, 'id', 'sha', default='')),
        message=str(raw.get('message') or ''),
        timestamp=str(raw.get('timestamp') or ''),
        author={'name': author.get('name') or '', 'email': author.get('email') or ''},
        added=_file_list(raw, 'added'),
        modified=_file_list(raw, 'modified'),
        removed=_file_list(raw, 'removed'),
    )


def normalize_push_payload(raw: Dict[str, Any]) -> PushEvent:
    """Validate the webhook payload shape and return a PushEvent.

    An unknown action or an empty commit list is valid input; a missing repository or a
    non-list commits field is not.
    """
    if not isinstance(raw, dict):
        raise InvalidInputError('webhook payload must be an object')
    repo = raw.get('repository')
    if not isinstance(repo, dict) or not (repo.get('name') or repo.get('full_name')):
        raise InvalidInputError('webhook payload is missing repository.name/full_name')
    commits_raw = raw.get('commits')
    if commits_raw is None:
        commits_raw = []
    if not isinstance(commits_raw, list):
        raise InvalidInputError('webhook payload commits must be a list', {'value': commits_raw})
    pusher = raw.get('pusher') if isinstance(raw.get('pusher'), dict) else {}
    return PushEvent(
        action=str(raw.get('action') or ''),
        repo_name=str(repo.get('name') or ''),
        repo_full_name=str(repo.get('full_name') or ''),
        commits=[normalize_commit(c) for c in commits_raw],
        pusher={'name': pusher.get('name') or '', 'email': pusher.get('email') or ''},
    )
