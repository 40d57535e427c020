"""
Result model for commit batch analysis.
"""
from typing import List, Optional


class CommitAnalysis:
    """
    Aggregate classification of a batch of commits.
    """

    def __init__(
        self,
        significant_changes: int = 0,
        feature_commits: int = 0,
        bugfix_commits: int = 0,
        documentation_commits: int = 0,
        total_files_changed: int = 0,
        progress_indicators: Optional[List[str]] = None,
        highlights: Optional[List[str]] = None,
    ):
        self.significant_changes = significant_changes
        self.feature_commits = feature_commits
        self.bugfix_commits = bugfix_commits
        self.documentation_commits = documentation_commits
        self.total_files_changed = total_files_changed
        self.progress_indicators = progress_indicators or []
        # one line per feature/bugfix commit, used for reasoning text only
        self.highlights = highlights or []

    def to_dict(self):
        return {
            'significant_changes': self.significant_changes,
            'feature_commits': self.feature_commits,
            'bugfix_commits': self.bugfix_commits,
            'documentation_commits': self.documentation_commits,
            'total_files_changed': self.total_files_changed,
            'progress_indicators': list(self.progress_indicators),
            'highlights': list(self.highlights),
        }

    def __str__(self):
        return (
            f"Significant Changes: {self.significant_changes}\n"
            f"Feature Commits: {self.feature_commits}\n"
            f"Bugfix Commits: {self.bugfix_commits}\n"
            f"Documentation Commits: {self.documentation_commits}\n"
            f"Files Changed: {self.total_files_changed}\n"
            f"Progress Indicators: {len(self.progress_indicators)}"
        )
