from datetime import timedelta

from report.dashboard import build_dashboard
from scoring.priority import BLOCKED_FACTOR, INACTIVITY_FACTOR, URGENCY_FACTOR
from scoring.utils import DEFAULT_CONFIG

from conftest import FROZEN_NOW


def test_empty_store(service):
    data = service.dashboard()
    assert data.goals == []
    assert data.total_progress == 0
    assert data.priority_distribution == {}
    assert data.recent_alerts == []
    assert data.upcoming_deadlines == []
    assert data.insights == []
    assert data.activity_timeline == []
    assert data.generated_at == FROZEN_NOW


def test_demo_goals_summary(service):
    service.seed_demo_goals()
    data = service.dashboard()

    assert [g.title for g in data.goals] == [
        'Achieve VMS 30K Revenue',
        'Launch DOZY Sleep Tracker',
        'Scale HARKA Workshop Operations',
    ]
    assert [g.rice.score for g in data.goals] == [180.0, 84.0, 48.0]
    assert data.total_progress == 42
    assert data.priority_distribution == {'CRITICAL': 1, 'HIGH': 1, 'MEDIUM': 1}
    assert [(d['goal'].title, d['days_until_due']) for d in data.upcoming_deadlines] == [
        ('Launch DOZY Sleep Tracker', 14),
        ('Achieve VMS 30K Revenue', 21),
    ]


def test_owner_filter(service):
    service.seed_demo_goals('alice')
    service.create_goal({'title': 'Other', 'owner_id': 'bob'})
    assert [g.title for g in service.dashboard('bob').goals] == ['Other']
    assert len(service.dashboard('alice').goals) == 3
    assert len(service.dashboard().goals) == 4


def test_deadlines_exclude_overdue_and_due_now(service):
    service.create_goal({'title': 'Overdue', 'due_date': FROZEN_NOW - timedelta(days=2)})
    service.create_goal({'title': 'Now', 'due_date': FROZEN_NOW})
    service.create_goal({'title': 'Soon', 'due_date': FROZEN_NOW + timedelta(hours=5)})
    service.create_goal({'title': 'Far', 'due_date': FROZEN_NOW + timedelta(days=31)})
    data = service.dashboard()
    assert [(d['goal'].title, d['days_until_due']) for d in data.upcoming_deadlines] == [('Soon', 1)]


def test_scores_are_recomputed_on_read(service, clock):
    goal = service.create_goal({
        'title': 'Quiet repo',
        'progress': 5,
        'auto_tracked': True,
        'due_date': FROZEN_NOW + timedelta(days=30),
        'rice': {'reach': 2, 'impact': 5, 'confidence': 1, 'effort': 1},
        'integrations': {'github': {'repo': 'quiet', 'progress_weight': 50, 'commit_count': 0}},
    })
    assert service.dashboard().goals[0].rice.factors == [INACTIVITY_FACTOR]
    assert service.dashboard().goals[0].rice.score == 8.0

    clock.advance(days=25)
    service.set_blocked(goal.goal_id)
    scored = service.dashboard().goals[0]
    assert scored.rice.factors == [URGENCY_FACTOR, INACTIVITY_FACTOR, BLOCKED_FACTOR]
    assert scored.rice.score == 7.2
    # the stored goal keeps its creation-time score record
    assert service.get_goal(goal.goal_id).rice.factors == [INACTIVITY_FACTOR]


def test_truncation_and_recency_order(service, clock):
    a = service.create_goal({'title': 'A'})
    b = service.create_goal({'title': 'B'})
    for value in (10, 20, 30):
        clock.advance(minutes=1)
        service.update_progress(a.goal_id, value)
    clock.advance(minutes=1)
    service.update_progress(b.goal_id, 50)

    limits = dict(DEFAULT_CONFIG['dashboard'], history_per_goal=2, max_timeline=2)
    data = build_dashboard(service.store, limits=limits)
    assert [(e.goal_id, e.new_value) for e in data.activity_timeline] == [(b.goal_id, 50.0), (a.goal_id, 30.0)]


def test_alerts_and_insights_are_collected(service, clock):
    goal = service.create_goal({'title': 'Ship', 'progress': 90})
    service.add_insight(goal.goal_id, 'trend', 'Fast finish', 'Velocity doubled', confidence=0.9, impact='high')
    clock.advance(minutes=5)
    service.update_progress(goal.goal_id, 100)

    data = service.dashboard()
    assert [a.type for a in data.recent_alerts] == ['ACHIEVEMENT']
    assert [i.title for i in data.insights] == ['Fast finish']
    assert data.to_dict()['insights'][0]['impact'] == 'HIGH'
