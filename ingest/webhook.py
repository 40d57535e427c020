"""
Push-webhook ingestion.
Matches a push to the goals bound to its repository and turns the pushed commits into progress updates.
"""
from typing import Any, Dict, List, Optional, Tuple

from correlate.commits import analyze_commits, calculate_progress_increase
from errors import InvalidInputError
from logging_config import get_logger
from normalize.models import Alert, Commit, Goal, ProgressEvent, PushEvent
from normalize.util import normalize_push_payload, parse_datetime
from notify.notifier import PUSH_PROCESSED, safe_broadcast
from storage.goal_store import GoalStore
from tracking.progress import ProgressUpdater

log = get_logger(__name__)

PUSH_ACTION = 'pushed'
SUPPORTED_EVENTS = ['push', 'ping']
PLACEHOLDER_COMMIT_SHA = 'simulated-commit-id'


class IngestResult:
    """
    Outcome of one webhook delivery. goals holds one entry per matched goal.
    """

    def __init__(self, handled: bool, message: str, repository: Optional[str] = None, goals: Optional[List[Dict[str, Any]]] = None):
        self.handled = handled
        self.message = message
        self.repository = repository
        self.goals = goals or []

    @property
    def updated_goal_ids(self) -> List[str]:
        return [g['goal_id'] for g in self.goals if g.get('updated')]

    def to_dict(self) -> Dict[str, Any]:
        return {'handled': self.handled, 'message': self.message, 'repository': self.repository, 'goals': list(self.goals)}


def _tracks(goal: Goal, push: PushEvent) -> bool:
    binding = goal.integrations.github
    if binding is None or not binding.repo:
        return False
    return binding.repo in (push.repo_name, push.repo_full_name)


def _repo_label(repository: Any) -> Optional[str]:
    if not isinstance(repository, dict):
        return None
    return repository.get('full_name') or repository.get('name') or None


def _commit_time(commit: Commit):
    try:
        return parse_datetime(commit.timestamp)
    except InvalidInputError:
        log.warning('commit_timestamp_unparsed', sha=commit.sha, timestamp=commit.timestamp)
        return None


def _commit_summary(commits: List[Commit]) -> List[Dict[str, Any]]:
    return [{'sha': c.sha, 'message': c.message, 'timestamp': c.timestamp, 'files_changed': c.files_changed} for c in commits]


def placeholder_push_payload(repo_name: str, timestamp: str) -> Dict[str, Any]:
    """A single fabricated feature commit, used to exercise the pipeline when no GitHub token is configured."""
    return {
        'action': PUSH_ACTION,
        'repository': {'name': repo_name, 'full_name': f'owner/{repo_name}'},
        'commits': [
            {
                'id': PLACEHOLDER_COMMIT_SHA,
                'message': 'feat: Add sleep tracking functionality',
                'timestamp': timestamp,
                'author': {'name': 'Developer', 'email': 'dev@example.com'},
                'added': ['src/sleep-tracker.ts'],
                'modified': ['src/app.ts'],
                'removed': [],
            }
        ],
        'pusher': {'name': 'Developer', 'email': 'dev@example.com'},
    }


class EventIngestor:
    def __init__(self, store: GoalStore, updater: ProgressUpdater, notifier=None, github_client=None):
        self.store = store
        self.updater = updater
        self.notifier = notifier
        self.github_client = github_client
        self.last_processed = None

    def handle_webhook(self, payload: Dict[str, Any]) -> IngestResult:
        """
        Process a push payload. Deliveries with another action or without commits are acknowledged
        and ignored before any shape checks; an accepted push with a malformed shape raises InvalidInputError.
        """
        if not isinstance(payload, dict):
            raise InvalidInputError('webhook payload must be an object')
        action = payload.get('action')
        if action != PUSH_ACTION or not payload.get('commits'):
            repo = _repo_label(payload.get('repository'))
            log.info('webhook_ignored', action=action, repo=repo)
            return IngestResult(False, 'Webhook ignored - not a push event or no commits', repository=repo)

        push = normalize_push_payload(payload)
        repo = push.repo_full_name or push.repo_name
        log.info('webhook_received', action=push.action, repo=repo, commits=len(push.commits))

        tracking = [g for g in self.store.list() if _tracks(g, push)]
        if not tracking:
            log.info('webhook_no_tracking_goals', repo=repo)
            self.last_processed = self.store.now()
            return IngestResult(True, 'No goals track this repository', repository=repo)

        results = []
        for goal in tracking:
            outcome, committed = self._update_goal(goal.goal_id, push)
            # the goal lock is released by now
            if committed is not None:
                self.updater.publish(*committed)
            results.append(outcome)
        self.last_processed = self.store.now()
        result = IngestResult(True, 'Webhook processed successfully', repository=repo, goals=results)
        safe_broadcast(self.notifier, PUSH_PROCESSED, {'repository': repo, 'commits': len(push.commits), 'goals': results})
        return result

    def _update_goal(self, goal_id: str, push: PushEvent) -> Tuple[Dict[str, Any], Optional[Tuple[ProgressEvent, List[Alert]]]]:
        """Apply one push to one goal under its lock; returns the outcome and the committed update, if any."""
        commits = push.commits
        outcome: Dict[str, Any] = {'goal_id': goal_id, 'increase': 0.0, 'updated': False}
        committed = None
        try:
            with self.store.goal_lock(goal_id):
                goal = self.store.require(goal_id)
                binding = goal.integrations.github
                analysis = analyze_commits(commits)
                increase = calculate_progress_increase(analysis, binding)
                outcome['increase'] = increase
                outcome['previous'] = goal.progress

                if increase > 0 and goal.auto_tracked:
                    new_progress = min(100.0, goal.progress + increase)
                    committed = self.updater.apply_update(
                        goal_id,
                        new_progress,
                        'GITHUB',
                        {
                            'commit_sha': commits[0].sha,
                            'commit_count': len(commits),
                            'reasoning': f"GitHub activity detected: {len(commits)} commits with {analysis.significant_changes} significant changes",
                            'commits': _commit_summary(commits),
                        },
                    )
                    outcome['new'] = new_progress
                    outcome['updated'] = True
                    log.info('goal_progress_from_commits', goal_id=goal_id, previous=goal.progress, new=new_progress, increase=increase, commits=len(commits))
                else:
                    log.info('goal_progress_unchanged', goal_id=goal_id, increase=increase, auto_tracked=goal.auto_tracked, analysis=analysis.to_dict())

                self.store.record_commit_activity(goal_id, _commit_time(commits[0]), len(commits), self.store.now())
        except Exception as ex:
            # one failing goal must not stop the others
            log.exception('goal_update_from_commits_failed', goal_id=goal_id, commits=len(commits))
            outcome['error'] = str(ex)
        return outcome, committed

    def handle_github_event(self, event_name: Optional[str], payload: Dict[str, Any]) -> IngestResult:
        """Dispatch on the X-GitHub-Event header value."""
        if not event_name:
            raise InvalidInputError('Missing GitHub event header')
        if event_name == 'push':
            body = dict(payload or {})
            body['action'] = PUSH_ACTION
            return self.handle_webhook(body)
        if event_name == 'ping':
            log.info('github_ping_received')
            return IngestResult(False, 'Webhook ping received successfully')
        log.info('github_event_unhandled', event=event_name)
        return IngestResult(False, f'Event {event_name} received but not processed')

    def webhook_status(self) -> Dict[str, Any]:
        return {
            'github': {
                'enabled': True,
                'last_processed': self.last_processed.isoformat() if self.last_processed else None,
                'supported_events': list(SUPPORTED_EVENTS),
            },
            'email': {'enabled': False, 'last_processed': None},
            'calendar': {'enabled': False, 'last_processed': None},
        }

    def sync_repository(self, repo_name: str, limit: int = 10) -> IngestResult:
        """
        Pull recent commits for a repository and ingest them as a push.
        Without a tokened GitHub client a placeholder commit is ingested instead.
        """
        log.info('repository_sync_started', repo=repo_name)
        if self.github_client is not None and getattr(self.github_client, 'token', None):
            commits = self.github_client.get_recent_commits(repo_name, limit=limit)
            short = repo_name.split('/')[-1]
            full = repo_name if '/' in repo_name else f"{self.github_client.owner}/{repo_name}"
            payload = {'action': PUSH_ACTION, 'repository': {'name': short, 'full_name': full}, 'commits': commits, 'pusher': {}}
        else:
            payload = placeholder_push_payload(repo_name, self.store.now().isoformat())
        result = self.handle_webhook(payload)
        log.info('repository_sync_completed', repo=repo_name, handled=result.handled, updated=result.updated_goal_ids)
        return result
