import csv
import io
import json
import unittest
from datetime import timedelta

from report.renderer import CSV_HEADER, render, render_csv, render_html, render_json, render_markdown, render_text

from conftest import FROZEN_NOW


def _demo_dashboard(service):
    service.seed_demo_goals()
    return service.dashboard()


def test_text(service):
    out = render_text(_demo_dashboard(service))
    lines = out.splitlines()
    assert lines[0] == 'OKR Dashboard (3 goals, 42% average progress)'
    assert lines[1] == '- [CRITICAL] Achieve VMS 30K Revenue: 65% IN_PROGRESS (score 180.0)'
    assert 'Upcoming deadlines:' in lines
    assert '- Launch DOZY Sleep Tracker: 14 days' in lines


def test_unknown_format_falls_back_to_text(service):
    data = _demo_dashboard(service)
    assert render(data, 'pdf') == render_text(data)
    assert render(data, 'markdown') == render_markdown(data)


def test_markdown_table(service):
    out = render_markdown(_demo_dashboard(service))
    assert out.startswith('# OKR Dashboard')
    assert '| Achieve VMS 30K Revenue | CRITICAL | IN_PROGRESS | 65% | 180.0 | 21 |' in out
    assert '## Upcoming deadlines' in out


def test_csv_rows_follow_score_order(service):
    rows = list(csv.reader(io.StringIO(render_csv(_demo_dashboard(service)))))
    assert rows[0] == CSV_HEADER
    assert [r[1] for r in rows[1:]] == [
        'Achieve VMS 30K Revenue',
        'Launch DOZY Sleep Tracker',
        'Scale HARKA Workshop Operations',
    ]
    vms = dict(zip(CSV_HEADER, rows[1]))
    assert vms['score'] == '180.0'
    assert vms['days_until_due'] == '21'
    assert vms['due_date'] == (FROZEN_NOW + timedelta(days=21)).date().isoformat()


def test_json_round_trips_through_loads(service):
    doc = json.loads(render_json(_demo_dashboard(service)))
    assert doc['total_progress'] == 42
    assert doc['goals'][0]['rice_priority']['score'] == 180.0
    assert doc['upcoming_deadlines'][0]['days_until_due'] == 14
    assert doc['generated_at'] == FROZEN_NOW.isoformat()


class TestHtml(unittest.TestCase):
    def setUp(self):
        import copy
        from okr_service import OKRService
        from scoring.utils import DEFAULT_CONFIG
        from conftest import FakeClock

        self.service = OKRService(config=copy.deepcopy(DEFAULT_CONFIG), clock=FakeClock())

    def test_empty_dashboard(self):
        out = render_html(self.service.dashboard())
        self.assertIn('<h1>OKR Dashboard</h1>', out)
        self.assertIn('No goals tracked yet.', out)

    def test_titles_are_escaped(self):
        self.service.create_goal({'title': '<script>alert(1)</script>', 'progress': 50})
        out = render(self.service.dashboard(), 'html')
        self.assertNotIn('<script>alert(1)</script>', out)
        self.assertIn('&lt;script&gt;alert(1)&lt;/script&gt;', out)
        self.assertIn('50%', out)
