"""
Correlate package: classify pushed commits and translate them into bounded progress deltas.
"""

from .commits import analyze_commits, calculate_progress_increase

__all__ = ["analyze_commits", "calculate_progress_increase"]
