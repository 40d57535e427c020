"""
Report renderer: turn DashboardData into plain text, Markdown, CSV, JSON or HTML.
HTML and Markdown go through the Jinja2 templates in report/templates.
"""

import csv
import io
import json
import os
from typing import Any, Dict, List

from jinja2 import Environment, FileSystemLoader, select_autoescape

from report.dashboard import DashboardData
from scoring.utils import days_until_due

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')
FORMATS = ('text', 'md', 'csv', 'json', 'html')

CSV_HEADER = ['id', 'title', 'owner_id', 'priority', 'status', 'progress', 'score', 'due_date', 'days_until_due', 'factors']


def _env() -> Environment:
    env = Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(['html', 'xml', 'html.j2']), trim_blocks=True, lstrip_blocks=True)
    env.filters['pct'] = _pct
    return env


def _pct(value: Any) -> str:
    v = float(value or 0)
    return f"{int(v)}%" if v.is_integer() else f"{v:.1f}%"


def _days_by_goal(data: DashboardData) -> Dict[str, int]:
    return {g.goal_id: days_until_due(g.due_date, data.generated_at) for g in data.goals}


def _context(data: DashboardData) -> Dict[str, Any]:
    titles = {g.goal_id: g.title for g in data.goals}
    return {
        'data': data,
        'titles': titles,
        'deadline_days': _days_by_goal(data),
        'generated_at': data.generated_at.strftime('%Y-%m-%d %H:%M UTC'),
    }


def render_text(data: DashboardData) -> str:
    """Plain-text summary, one line per goal."""
    lines = [f"OKR Dashboard ({len(data.goals)} goals, {data.total_progress}% average progress)"]
    for g in data.goals:
        lines.append(f"- [{g.priority}] {g.title}: {_pct(g.progress)} {g.status} (score {g.rice.score})")
        for factor in g.rice.factors:
            lines.append(f"    * {factor}")
    if data.recent_alerts:
        lines.append("Alerts:")
        for a in data.recent_alerts:
            lines.append(f"- {a.severity} {a.type}: {a.message}")
    if data.upcoming_deadlines:
        lines.append("Upcoming deadlines:")
        for d in data.upcoming_deadlines:
            lines.append(f"- {d['goal'].title}: {d['days_until_due']} days")
    return "\n".join(lines)


def render_markdown(data: DashboardData) -> str:
    return _env().get_template('dashboard.md.j2').render(**_context(data))


def render_html(data: DashboardData) -> str:
    return _env().get_template('dashboard.html.j2').render(**_context(data))


def _csv_row(g, days: Dict[str, int]) -> List[Any]:
    return [
        g.goal_id,
        g.title,
        g.owner_id,
        g.priority,
        g.status,
        g.progress,
        g.rice.score,
        g.due_date.date().isoformat(),
        days[g.goal_id],
        '; '.join(g.rice.factors),
    ]


def render_csv(data: DashboardData) -> str:
    """One row per goal in score order."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    days = _days_by_goal(data)
    for g in data.goals:
        writer.writerow(_csv_row(g, days))
    return output.getvalue()


def render_json(data: DashboardData) -> str:
    return json.dumps(data.to_dict(), indent=2)


def render(data: DashboardData, fmt: str = 'text') -> str:
    """Main render function; unknown formats fall back to text."""
    fmt_l = (fmt or 'text').lower()
    if fmt_l in ('md', 'markdown'):
        return render_markdown(data)
    if fmt_l == 'csv':
        return render_csv(data)
    if fmt_l in ('html', 'htm'):
        return render_html(data)
    if fmt_l in ('json', 'js'):
        return render_json(data)
    return render_text(data)
