"""
OKR tracking service.
Wires the goal store, progress updater, webhook ingestor and dashboard together behind one object.
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional

from errors import InvalidInputError, NotFoundError
from ingest.webhook import EventIngestor, IngestResult
from logging_config import get_logger
from normalize.models import Alert, Goal, Insight, PriorityScore, ProgressEvent, ALERT_SEVERITIES, INSIGHT_TYPES
from normalize.util import as_number
from notify.notifier import NullNotifier
from report.dashboard import DashboardData, build_dashboard
from scoring.priority import score_goal
from scoring.utils import load_config
from storage.goal_store import GoalStore
from tracking.progress import ProgressUpdater

log = get_logger(__name__)

DEMO_OWNER = 'demo-user'


def _demo_goals() -> List[Dict[str, Any]]:
    return [
        {
            'title': 'Launch DOZY Sleep Tracker',
            'description': 'Complete development and launch of the DOZY sleep tracking application',
            'progress': 35,
            'auto_tracked': True,
            'priority': 'HIGH',
            'due_in_days': 14,
            'integrations': {'github': {'repo': 'dozy-sleep-tracker', 'progress_weight': 80}},
            'rice': {'reach': 8, 'impact': 9, 'confidence': 7, 'effort': 6},
            'tags': ['product', 'development', 'mobile'],
        },
        {
            'title': 'Achieve VMS 30K Revenue',
            'description': 'Close VMS contract negotiations and secure 30K revenue target',
            'progress': 65,
            'auto_tracked': True,
            'priority': 'CRITICAL',
            'due_in_days': 21,
            'integrations': {
                'email': {'keywords': ['VMS', 'Thomas', 'contract', 'revenue'], 'progress_weight': 60},
                'calendar': {'event_types': ['VMS meeting', 'client call'], 'progress_weight': 40},
            },
            'rice': {'reach': 9, 'impact': 10, 'confidence': 8, 'effort': 4},
            'tags': ['revenue', 'client', 'business'],
            'target_value': 30000,
            'current_value': 19500,
            'unit': 'EUR',
        },
        {
            'title': 'Scale HARKA Workshop Operations',
            'description': 'Expand HARKA workshop capacity and secure additional contracts',
            'progress': 25,
            'auto_tracked': True,
            'priority': 'MEDIUM',
            'due_in_days': 45,
            'integrations': {'email': {'keywords': ['HARKA', 'workshop', 'scaling', 'capacity'], 'progress_weight': 70}},
            'rice': {'reach': 7, 'impact': 8, 'confidence': 6, 'effort': 7},
            'tags': ['business', 'scaling', 'operations'],
        },
    ]


class OKRService:
    def __init__(self, config: Optional[Dict[str, Any]] = None, store: Optional[GoalStore] = None, notifier=None, github_client=None, clock=None):
        """
        :param config: parsed configuration (see scoring.utils.load_config); loaded from disk when omitted.
        :param store: existing GoalStore to operate on; a fresh one is created otherwise.
        :param notifier: collaborator with a broadcast(message) method.
        :param github_client: ingest.github.GitHubClient used by sync_repository.
        :param clock: zero-argument callable returning an aware datetime, for a freshly created store.
        """
        self.config = config or load_config()
        self.store = store or GoalStore(
            clock=clock,
            score_fn=self._score,
            due_in_days=self.config['goals']['due_in_days'],
            rice_default=self.config['goals']['rice_default'],
        )
        self.notifier = notifier or NullNotifier()
        self.updater = ProgressUpdater(self.store, self.notifier, self.config['alerts'])
        self.ingestor = EventIngestor(self.store, self.updater, self.notifier, github_client)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        """Deliver queued notifications, then drop all state."""
        close_notifier = getattr(self.notifier, 'close', None)
        if close_notifier is not None:
            close_notifier()
        self.store.close()

    def _score(self, goal: Goal, now) -> PriorityScore:
        return score_goal(goal, now=now, rules=self.config['priority'])

    # goals

    def create_goal(self, partial: Optional[Dict[str, Any]] = None) -> Goal:
        """Create a goal. A relative 'due_in_days' may stand in for an absolute due date."""
        partial = dict(partial or {})
        due_in = partial.pop('due_in_days', None)
        if due_in is not None and not (partial.get('due_date') or partial.get('dueDate')):
            partial['due_date'] = self.store.now() + timedelta(days=as_number(due_in, 'due_in_days'))
        return self.store.create(partial)

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self.store.get(goal_id)

    def list_goals(self, owner_id: Optional[str] = None) -> List[Goal]:
        return self.store.list(owner_id)

    def score(self, goal_id: str) -> PriorityScore:
        """Fresh score record for one goal; the stored goal is not modified."""
        return self._score(self.store.require(goal_id), self.store.now())

    def update_progress(self, goal_id: str, new_value: Any, source: str = 'MANUAL', details: Optional[Dict[str, Any]] = None) -> ProgressEvent:
        return self.updater.update_progress(goal_id, new_value, source, details)

    def set_blocked(self, goal_id: str, blocked: bool = True) -> Goal:
        return self.updater.set_blocked(goal_id, blocked)

    def history(self, goal_id: str, limit: Optional[int] = None) -> List[ProgressEvent]:
        return self.store.history(goal_id, limit)

    def alerts(self, goal_id: str, limit: Optional[int] = None) -> List[Alert]:
        return self.store.alerts(goal_id, limit)

    def acknowledge_alert(self, alert_id: str) -> Alert:
        alert = self.store.acknowledge_alert(alert_id)
        log.info('alert_acknowledged', alert_id=alert_id, goal_id=alert.goal_id)
        return alert

    def add_insight(
        self,
        goal_id: str,
        type: str,
        title: str,
        description: str = '',
        confidence: float = 0.5,
        impact: str = 'MEDIUM',
        data: Optional[Dict[str, Any]] = None,
    ) -> Insight:
        kind = str(type or '').upper()
        if kind not in INSIGHT_TYPES:
            raise InvalidInputError(f"Unknown insight type: {type}", {'allowed': list(INSIGHT_TYPES)})
        level = str(impact or '').upper()
        if level not in ALERT_SEVERITIES:
            raise InvalidInputError(f"Unknown insight impact: {impact}", {'allowed': list(ALERT_SEVERITIES)})
        conf = as_number(confidence, 'confidence')
        if not 0 <= conf <= 1:
            raise InvalidInputError('confidence must be between 0 and 1', {'value': confidence})
        if goal_id not in self.store:
            raise NotFoundError(f"Goal {goal_id} not found", {'goal_id': goal_id})

        insight = Insight(self.store.new_id(), goal_id, kind, title, description, conf, level, dict(data or {}), self.store.now())
        self.store.add_insight(insight)
        log.info('insight_added', goal_id=goal_id, insight_id=insight.insight_id, type=kind)
        return insight

    def seed_demo_goals(self, owner_id: str = DEMO_OWNER) -> List[Goal]:
        """Create the three demonstration goals for owner_id."""
        created = []
        for partial in _demo_goals():
            partial['owner_id'] = owner_id
            created.append(self.create_goal(partial))
        log.info('demo_goals_seeded', owner_id=owner_id, count=len(created))
        return created

    # webhooks

    def handle_webhook(self, payload: Dict[str, Any]) -> IngestResult:
        return self.ingestor.handle_webhook(payload)

    def handle_github_event(self, event_name: Optional[str], payload: Dict[str, Any]) -> IngestResult:
        return self.ingestor.handle_github_event(event_name, payload)

    def sync_repository(self, repo_name: str) -> IngestResult:
        return self.ingestor.sync_repository(repo_name)

    def webhook_status(self) -> Dict[str, Any]:
        return self.ingestor.webhook_status()

    # reads

    def dashboard(self, owner_id: Optional[str] = None) -> DashboardData:
        return build_dashboard(self.store, owner_id=owner_id, limits=self.config['dashboard'], priority_rules=self.config['priority'])
