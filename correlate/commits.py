"""
Commit classification.
Turns a batch of pushed commits into a CommitAnalysis and the analysis into a bounded progress increase.
"""
import re
from typing import List, Union

from logging_config import get_logger
from normalize.models import Commit, SourceControlBinding
from scoring.utils import round_half_up
from .models import CommitAnalysis

log = get_logger(__name__)

# paths that never count as code changes
NON_CODE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r'\.md$',
        r'\.txt$',
        r'\.json$',
        r'\.yml$',
        r'\.yaml$',
        r'\.env',
        r'\.gitignore$',
        r'\.prettierrc',
        r'\.eslintrc',
        r'LICENSE',
        r'README',
    )
]

# checked in this order; a commit lands in the first category that matches
FEATURE_KEYWORDS = ['feat:', 'feature:', 'add:', 'implement:', 'new:', 'create:', 'added', 'implement', 'feature', 'new feature', 'enhancement']
BUGFIX_KEYWORDS = ['fix:', 'bug:', 'bugfix:', 'hotfix:', 'patch:', 'fixed', 'bug', 'issue', 'error', 'problem']
DOCS_KEYWORDS = ['docs:', 'doc:', 'documentation:', 'readme:', 'documentation', 'docs', 'comment', 'comments']
PROGRESS_KEYWORDS = ['progress', 'complete', 'done', 'finished', 'ready', 'milestone', 'achievement', 'deliverable', 'mvp', 'working', 'functional', 'stable', 'release']

MAX_INCREASE_PER_PUSH = 10.0
LARGE_PUSH_FILES = 10


def is_significant_file(path: str) -> bool:
    return not any(p.search(path or '') for p in NON_CODE_PATTERNS)


def _contains_any(text: str, keywords: List[str]) -> bool:
    return any(k in text for k in keywords)


def classify_message(message: str) -> str:
    """Return 'feature', 'bugfix', 'docs' or '' for a commit message."""
    text = (message or '').lower()
    if _contains_any(text, FEATURE_KEYWORDS):
        return 'feature'
    if _contains_any(text, BUGFIX_KEYWORDS):
        return 'bugfix'
    if _contains_any(text, DOCS_KEYWORDS):
        return 'docs'
    return ''


def _analyze(commits: List[Commit]) -> CommitAnalysis:
    analysis = CommitAnalysis()
    for commit in commits:
        files = commit.files
        analysis.total_files_changed += len(files)
        if any(is_significant_file(f) for f in files):
            analysis.significant_changes += 1

        kind = classify_message(commit.message)
        if kind == 'feature':
            analysis.feature_commits += 1
            analysis.highlights.append(f"Feature: {commit.headline}")
        elif kind == 'bugfix':
            analysis.bugfix_commits += 1
            analysis.highlights.append(f"Bugfix: {commit.headline}")
        elif kind == 'docs':
            analysis.documentation_commits += 1

        if _contains_any((commit.message or '').lower(), PROGRESS_KEYWORDS):
            analysis.progress_indicators.append(f"Progress: {commit.headline}")
    return analysis


def analyze_commits(commits: List[Commit]) -> CommitAnalysis:
    """
    Classify a batch of commits. Never raises: a malformed batch yields an all-zero analysis.
    """
    try:
        return _analyze(commits or [])
    except Exception:
        log.exception('commit_analysis_failed', commits=len(commits) if isinstance(commits, list) else None)
        return CommitAnalysis()


def calculate_progress_increase(analysis: CommitAnalysis, binding: Union[SourceControlBinding, float, int]) -> float:
    """
    Weight-scaled, additive progress increase for one push, capped at MAX_INCREASE_PER_PUSH.

    binding may be the goal's source-control binding or a bare weight in 0..100.
    """
    try:
        weight = binding.progress_weight if isinstance(binding, SourceControlBinding) else binding
        base = float(weight or 0) / 100.0
        if base <= 0:
            return 0.0

        increase = 0.0
        if analysis.significant_changes > 0:
            increase += 2 * base
        increase += analysis.feature_commits * 3 * base
        increase += analysis.bugfix_commits * 1.5 * base
        if analysis.total_files_changed > LARGE_PUSH_FILES:
            increase += 2 * base
        if analysis.progress_indicators:
            increase += 1 * base

        return round_half_up(min(increase, MAX_INCREASE_PER_PUSH), 1)
    except Exception:
        log.exception('progress_increase_failed', analysis=repr(analysis))
        return 0.0
