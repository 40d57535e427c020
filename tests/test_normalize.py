import unittest
from datetime import datetime, timedelta, timezone

from errors import InvalidInputError
from normalize.util import (
    as_number,
    build_goal,
    clamp_progress,
    derive_status,
    normalize_push_payload,
    parse_datetime,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestNormalize(unittest.TestCase):
    def test_build_goal_defaults(self):
        goal = build_goal({}, 'g1', NOW)
        self.assertEqual(goal.goal_id, 'g1')
        self.assertEqual(goal.title, 'Untitled')
        self.assertEqual(goal.progress, 0.0)
        self.assertEqual(goal.status, 'NOT_STARTED')
        self.assertEqual(goal.priority, 'MEDIUM')
        self.assertEqual(goal.due_date, NOW + timedelta(days=30))
        self.assertEqual(goal.created_at, NOW)
        self.assertEqual(goal.updated_at, NOW)
        self.assertIsNone(goal.integrations.github)
        self.assertEqual((goal.rice.reach, goal.rice.impact, goal.rice.confidence, goal.rice.effort), (5, 5, 5, 5))

    def test_build_goal_accepts_camel_case_keys(self):
        raw = {
            'title': 'Ship it',
            'ownerId': 'alice',
            'autoTracked': True,
            'dueDate': '2025-03-15T00:00:00Z',
            'progress': 120,
            'tags': ['a', 'b', 'a'],
            'integrations': {'github': {'repo': 'acme/app', 'progressWeight': 80, 'commitCount': 3}},
            'ricePriority': {'reach': 8, 'impact': 9, 'confidence': 7, 'effort': 6},
        }
        goal = build_goal(raw, 'g2', NOW)
        self.assertEqual(goal.owner_id, 'alice')
        self.assertTrue(goal.auto_tracked)
        self.assertEqual(goal.due_date, datetime(2025, 3, 15, tzinfo=timezone.utc))
        self.assertEqual(goal.progress, 100.0)
        self.assertEqual(goal.status, 'COMPLETED')
        self.assertEqual(goal.tags, ['a', 'b'])
        self.assertEqual(goal.integrations.github.repo, 'acme/app')
        self.assertEqual(goal.integrations.github.progress_weight, 80.0)
        self.assertEqual(goal.integrations.github.commit_count, 3)
        self.assertEqual(goal.rice.effort, 6.0)

    def test_build_goal_keeps_manual_block(self):
        goal = build_goal({'progress': 30, 'status': 'BLOCKED'}, 'g3', NOW)
        self.assertEqual(goal.status, 'BLOCKED')

    def test_build_goal_rejects_bad_input(self):
        with self.assertRaises(InvalidInputError):
            build_goal({'rice': {'effort': 0}}, 'g', NOW)
        with self.assertRaises(InvalidInputError):
            build_goal({'priority': 'URGENT'}, 'g', NOW)
        with self.assertRaises(InvalidInputError):
            build_goal({'status': 'DONE'}, 'g', NOW)
        with self.assertRaises(InvalidInputError):
            build_goal({'integrations': {'github': {'repo': 'x', 'progress_weight': 150}}}, 'g', NOW)

    def test_derive_status(self):
        self.assertEqual(derive_status(0), 'NOT_STARTED')
        self.assertEqual(derive_status(0.5), 'IN_PROGRESS')
        self.assertEqual(derive_status(100), 'COMPLETED')
        self.assertEqual(derive_status(0, blocked=True), 'BLOCKED')
        self.assertEqual(derive_status(100, blocked=True), 'COMPLETED')

    def test_clamp_and_number(self):
        self.assertEqual(clamp_progress(-5), 0.0)
        self.assertEqual(clamp_progress(250), 100.0)
        self.assertEqual(as_number(' 42.5 ', 'progress'), 42.5)
        for bad in ('abc', None, True, float('nan'), float('inf'), [1]):
            with self.assertRaises(InvalidInputError):
                as_number(bad, 'progress')

    def test_parse_datetime(self):
        self.assertIsNone(parse_datetime(None))
        self.assertEqual(parse_datetime('2025-03-01T12:00:00Z'), NOW)
        self.assertEqual(parse_datetime(datetime(2025, 3, 1, 12, 0)), NOW)
        with self.assertRaises(InvalidInputError):
            parse_datetime('yesterday')

    def test_normalize_push_payload(self):
        raw = {
            'action': 'pushed',
            'repository': {'name': 'app', 'full_name': 'acme/app'},
            'commits': [
                {
                    'id': 'abc123',
                    'message': 'feat: add login\n\nlong body',
                    'timestamp': '2025-03-01T10:00:00Z',
                    'author': {'name': 'Dev', 'email': 'dev@example.com'},
                    'added': ['src/login.py'],
                    'modified': ['README.md'],
                    'removed': [],
                }
            ],
            'pusher': {'name': 'Dev', 'email': 'dev@example.com'},
        }
        push = normalize_push_payload(raw)
        self.assertEqual(push.repo_name, 'app')
        self.assertEqual(push.repo_full_name, 'acme/app')
        self.assertEqual(len(push.commits), 1)
        commit = push.commits[0]
        self.assertEqual(commit.sha, 'abc123')
        self.assertEqual(commit.headline, 'feat: add login')
        self.assertEqual(commit.files_changed, 2)

    def test_normalize_push_payload_rejects_malformed_shapes(self):
        with self.assertRaises(InvalidInputError):
            normalize_push_payload({'action': 'pushed', 'commits': []})
        with self.assertRaises(InvalidInputError):
            normalize_push_payload({'action': 'pushed', 'repository': {'name': 'app'}, 'commits': 'nope'})
        with self.assertRaises(InvalidInputError):
            normalize_push_payload({'action': 'pushed', 'repository': {'name': 'app'}, 'commits': [{'id': 'x', 'added': 'a.py'}]})
        with self.assertRaises(InvalidInputError):
            normalize_push_payload(['not', 'a', 'dict'])

    def test_missing_commits_is_an_empty_push(self):
        push = normalize_push_payload({'action': 'opened', 'repository': {'full_name': 'acme/app'}})
        self.assertEqual(push.commits, [])
        self.assertEqual(push.action, 'opened')


if __name__ == '__main__':
    unittest.main()
