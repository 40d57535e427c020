"""
CLI entry point for the OKR tracker. Wires the pipeline: load goals -> apply updates/webhooks -> aggregate -> render
"""

import argparse
import json
import os
import webbrowser
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import yaml

from errors import OKRError, InvalidInputError
from ingest.github import GitHubClient
from logging_config import get_logger, setup_logging
from notify.notifier import HttpNotifier, RecordingNotifier
from okr_service import OKRService, DEMO_OWNER
from report.renderer import render, FORMATS
from scoring.utils import load_config
from storage.retry import configure_retry

log = get_logger(__name__)

FILE_FORMATS = ("html", "md", "csv", "json")


def _load_structured_file(path: str) -> Any:
    """Parse a JSON or YAML file (chosen by extension; YAML also accepts plain JSON)."""
    with open(path, 'r', encoding='utf-8') as f:
        if path.lower().endswith('.json'):
            return json.load(f)
        return yaml.safe_load(f)


def _goal_entries(doc: Any) -> List[Dict[str, Any]]:
    if isinstance(doc, dict):
        doc = doc.get('goals', [])
    if not isinstance(doc, list):
        raise InvalidInputError('goals file must contain a list of goals (or a mapping with a "goals" list)')
    return doc


def load_goals(service: OKRService, path: str) -> Dict[str, str]:
    """Create goals from a file; returns a mapping from each entry's 'id'/'key' (if any) to the generated id."""
    aliases: Dict[str, str] = {}
    for entry in _goal_entries(_load_structured_file(path)):
        if not isinstance(entry, dict):
            raise InvalidInputError('each goal entry must be a mapping', {'value': entry})
        partial = dict(entry)
        alias = partial.pop('id', None) or partial.pop('key', None)
        goal = service.create_goal(partial)
        if alias:
            aliases[str(alias)] = goal.goal_id
    return aliases


def parse_progress_arg(value: str) -> Tuple[str, str]:
    """Split GOAL_ID=VALUE."""
    goal_ref, sep, progress = (value or '').partition('=')
    if not sep or not goal_ref.strip() or not progress.strip():
        raise argparse.ArgumentTypeError(f"expected GOAL_ID=VALUE, got {value!r}")
    return goal_ref.strip(), progress.strip()


def _resolve_goal_ref(service: OKRService, aliases: Dict[str, str], ref: str) -> str:
    """Accept a generated id, a file alias or an exact goal title."""
    if ref in aliases:
        return aliases[ref]
    if service.get_goal(ref) is not None:
        return ref
    for g in service.list_goals():
        if g.title == ref:
            return g.goal_id
    return ref


def _build_notifier(args):
    url = args.notify_url or os.getenv('OKR_NOTIFY_URL')
    if url:
        return HttpNotifier(url)
    return RecordingNotifier()


def _build_github_client(args) -> Optional[GitHubClient]:
    token = args.github_token or os.getenv('GITHUB_TOKEN')
    if not token:
        return None
    return GitHubClient(token, args.github_owner or 'owner')


def run_pipeline(args, service: OKRService) -> None:
    """Load goals, then apply progress updates, webhook payloads and repository syncs in that order."""
    aliases: Dict[str, str] = {}
    if args.demo:
        service.seed_demo_goals(args.owner or DEMO_OWNER)
    if args.goals_file:
        aliases.update(load_goals(service, args.goals_file))

    for ref, value in args.progress or []:
        goal_id = _resolve_goal_ref(service, aliases, ref)
        event = service.update_progress(goal_id, value, source='MANUAL', details={'reasoning': 'Updated from command line'})
        print(f"Progress {goal_id}: {event.previous_value:g} -> {event.new_value:g}")

    for path in args.webhook_file or []:
        payload = _load_structured_file(path)
        if args.github_event:
            result = service.handle_github_event(args.github_event, payload)
        else:
            result = service.handle_webhook(payload)
        print(f"Webhook {path}: {result.message}")

    for repo in args.sync_repo or []:
        result = service.sync_repository(repo)
        print(f"Sync {repo}: {result.message}")


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def write_output(fmt: str, rendered: str, args):
    """Write output to file or stdout and optionally open HTML in browser."""
    if fmt in FILE_FORMATS and args.out_file.strip():
        out_path = args.out_file.strip()
    elif fmt in ("html", "csv"):
        out_path = f"okr_dashboard_{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}.{fmt}"
    else:
        print(rendered)
        return

    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    # newline='' is safe for CSV on Windows and harmless for other formats
    with open(out_path, "w", encoding="utf-8", newline='') as f:
        f.write(rendered)
    print(f"Wrote dashboard to {out_path}")
    if args.open and fmt == "html":
        try:
            _open_file_in_browser(out_path)
        except webbrowser.Error:
            print("Failed to open browser automatically; file saved at", out_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="okr-dashboard", description="OKR progress tracking and prioritization")
    parser.add_argument("--goals-file", type=str, default="", help="JSON or YAML file with goals to create")
    parser.add_argument("--demo", action="store_true", help="Seed the demonstration goals")
    parser.add_argument("--owner", type=str, default="", help="Only show goals of this owner (also the owner of demo goals)")
    parser.add_argument("--progress", type=parse_progress_arg, action="append", metavar="GOAL_ID=VALUE", help="Set a goal's progress; GOAL_ID may also be a goals-file id or an exact title")
    parser.add_argument("--webhook-file", type=str, action="append", help="Replay a push webhook payload from a JSON/YAML file")
    parser.add_argument("--github-event", type=str, default="", help="Treat webhook files as deliveries of this X-GitHub-Event (push, ping, ...)")
    parser.add_argument("--sync-repo", type=str, action="append", help="Sync recent commits of a repository")
    parser.add_argument("--github-token", type=str, default="", help="GitHub token for --sync-repo (defaults to GITHUB_TOKEN env)")
    parser.add_argument("--github-owner", type=str, default="", help="Repository owner used when --sync-repo names a bare repository")
    parser.add_argument("--config", type=str, default="", help="Path to okr.yaml (defaults to OKR_CONFIG_PATH or config/okr.yaml)")
    parser.add_argument("--output", type=str, choices=FORMATS, default="text", help="Output format")
    parser.add_argument("--out-file", type=str, default="", help="Output file path. HTML and CSV get a default name when omitted")
    parser.add_argument("--open", action="store_true", help="Open the generated HTML dashboard in the default browser")
    parser.add_argument("--notify-url", type=str, default="", help="POST notifications to this URL (defaults to OKR_NOTIFY_URL env)")
    # retry/backoff knobs: optional CLI overrides. Environment variables OKR_MAX_RETRIES, OKR_BACKOFF_BASE,
    # OKR_BACKOFF_JITTER, OKR_MAX_BACKOFF may also be used to set defaults.
    parser.add_argument("--max-retries", type=int, default=None, help="Maximum retry attempts for HTTP requests (overrides OKR_MAX_RETRIES env)")
    parser.add_argument("--backoff-base", type=float, default=None, help="Base backoff seconds (overrides OKR_BACKOFF_BASE env)")
    parser.add_argument("--backoff-jitter", type=float, default=None, help="Jitter seconds added to backoff (overrides OKR_BACKOFF_JITTER env)")
    parser.add_argument("--max-backoff", type=float, default=None, help="Maximum backoff cap in seconds (overrides OKR_MAX_BACKOFF env)")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level (overrides OKR_LOG_LEVEL env)")
    parser.add_argument("--log-json", action="store_true", default=None, help="Emit JSON log lines (overrides OKR_LOG_JSON env)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level, json_logs=args.log_json)

    # CLI flags take precedence over environment variables
    configure_retry(max_retries=args.max_retries, backoff_base=args.backoff_base, backoff_jitter=args.backoff_jitter, max_backoff=args.max_backoff)

    config = load_config(args.config or None)
    with OKRService(config=config, notifier=_build_notifier(args), github_client=_build_github_client(args)) as service:
        try:
            run_pipeline(args, service)
            dashboard = service.dashboard(owner_id=args.owner or None)
        except (OKRError, OSError, ValueError, yaml.YAMLError) as ex:
            log.error('cli_failed', error=str(ex))
            print(f"Error: {ex}")
            return 1
        write_output(args.output, render(dashboard, fmt=args.output), args)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
